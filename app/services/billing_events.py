"""
Typed views of the Stripe webhook payloads the reconciler consumes.

Stripe has moved some fields between API versions (period end onto
subscription items, invoice subscription under ``parent``); the parsers
accept both shapes.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from app.core.plan_limits import PAID_PLANS
from app.core.timeutils import from_unix


@dataclass
class CheckoutCompleted:
    session_id: str
    payment_status: Optional[str]
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    user_id: Optional[str] = None
    plan: Optional[str] = None
    payer_email: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    event_created: Optional[datetime] = None


@dataclass
class SubscriptionChange:
    subscription_id: str
    status: Optional[str]
    customer_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    user_id: Optional[str] = None
    plan: Optional[str] = None
    price_id: Optional[str] = None
    event_created: Optional[datetime] = None


@dataclass
class InvoicePayment:
    invoice_id: Optional[str]
    subscription_id: Optional[str]
    customer_id: Optional[str] = None
    period_end: Optional[datetime] = None
    user_id: Optional[str] = None


def metadata_user_id(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    metadata = metadata or {}
    user_id = metadata.get("userId") or metadata.get("user_id")
    return str(user_id) if user_id else None


def metadata_plan(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    """Paid plan tag from metadata, or None when absent or not a paid plan."""
    metadata = metadata or {}
    plan = metadata.get("plan") or metadata.get("planType") or metadata.get("plan_type")
    if not plan:
        return None
    plan = str(plan).strip().lower()
    return plan if plan in PAID_PLANS else None


def _ref(value: Any) -> Optional[str]:
    """An ID field that may also arrive as an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def _first_item(subscription: Dict[str, Any]) -> Dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def subscription_price_id(subscription: Dict[str, Any]) -> Optional[str]:
    return (_first_item(subscription).get("price") or {}).get("id")


def subscription_period_end(subscription: Dict[str, Any]) -> Optional[datetime]:
    period_end = subscription.get("current_period_end") or _first_item(subscription).get("current_period_end")
    return from_unix(period_end)


def parse_checkout_session(session: Dict[str, Any], event_created: Optional[int] = None) -> CheckoutCompleted:
    metadata = session.get("metadata") or {}
    customer_details = session.get("customer_details") or {}
    return CheckoutCompleted(
        session_id=session.get("id"),
        payment_status=session.get("payment_status"),
        customer_id=_ref(session.get("customer")),
        subscription_id=_ref(session.get("subscription")),
        user_id=metadata_user_id(metadata),
        plan=metadata_plan(metadata),
        payer_email=customer_details.get("email") or session.get("customer_email"),
        metadata=metadata,
        event_created=from_unix(event_created),
    )


def parse_subscription(subscription: Dict[str, Any], event_created: Optional[int] = None) -> SubscriptionChange:
    metadata = subscription.get("metadata") or {}
    return SubscriptionChange(
        subscription_id=subscription.get("id"),
        status=subscription.get("status"),
        customer_id=_ref(subscription.get("customer")),
        current_period_end=subscription_period_end(subscription),
        user_id=metadata_user_id(metadata),
        plan=metadata_plan(metadata),
        price_id=subscription_price_id(subscription),
        event_created=from_unix(event_created),
    )


def parse_invoice(invoice: Dict[str, Any]) -> InvoicePayment:
    parent_details = (invoice.get("parent") or {}).get("subscription_details") or {}
    legacy_details = invoice.get("subscription_details") or {}

    subscription_id = _ref(invoice.get("subscription")) or _ref(parent_details.get("subscription"))

    # The line item period is the renewed term; invoice.period_end is the billing window
    lines = (invoice.get("lines") or {}).get("data") or []
    line_period_end = ((lines[0].get("period") or {}).get("end")) if lines else None
    period_end = from_unix(line_period_end or invoice.get("period_end"))

    user_id = (
        metadata_user_id(invoice.get("metadata"))
        or metadata_user_id(parent_details.get("metadata"))
        or metadata_user_id(legacy_details.get("metadata"))
    )

    return InvoicePayment(
        invoice_id=invoice.get("id"),
        subscription_id=subscription_id,
        customer_id=_ref(invoice.get("customer")),
        period_end=period_end,
        user_id=user_id,
    )
