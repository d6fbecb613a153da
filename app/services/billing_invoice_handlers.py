"""
Invoice event handlers for Stripe webhooks.

Handles invoice.payment_succeeded and invoice.payment_failed events.
Renewals only move the plan expiry forward; the plan itself is owned by
the checkout and subscription events.
"""
import logging
from typing import Optional, Dict, Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.timeutils import utcnow
from app.services import user_service
from app.services.billing_events import parse_invoice
from app.services.billing_resolution import (
    BY_METADATA,
    BY_SUBSCRIPTION,
    can_link,
    link_condition,
    resolve_user,
)

logger = logging.getLogger(__name__)


def handle_invoice_payment_succeeded(db: Session, invoice_data: Dict[str, Any], event_created=None) -> Optional[User]:
    """
    Handle invoice.payment_succeeded webhook event.

    Extends plan_expires_at to the renewed period end when that is in the
    future and later than the stored expiry.
    """
    invoice = parse_invoice(invoice_data)
    subscription_id = invoice.subscription_id

    if not subscription_id:
        logger.warning(f"invoice.payment_succeeded: No subscription ID in invoice {invoice.invoice_id}")
        return None

    user, source = resolve_user(db, subscription_id=subscription_id, user_id=invoice.user_id)
    if not user:
        logger.warning(f"invoice.payment_succeeded: User not found for subscription_id={subscription_id}")
        return None

    if source != BY_SUBSCRIPTION and not can_link(user, subscription_id):
        logger.warning(
            f"invoice.payment_succeeded: user_id={user.id} is linked to {user.stripe_subscription_id}, "
            f"ignoring invoice for {subscription_id}"
        )
        return user

    period_end = invoice.period_end
    if not period_end or period_end <= utcnow():
        logger.info(f"invoice.payment_succeeded: no future period end for subscription_id={subscription_id}")
        return user

    if user.plan_expires_at and user.plan_expires_at >= period_end:
        logger.info(f"invoice.payment_succeeded: expiry already at or past {period_end.isoformat()}, user_id={user.id}")
        return user

    values = {"plan_expires_at": period_end}
    if source == BY_METADATA:
        values["stripe_subscription_id"] = subscription_id

    updated = user_service.apply_update(
        db,
        user.id,
        values,
        link_condition(subscription_id),
        or_(User.plan_expires_at.is_(None), User.plan_expires_at < period_end),
    )
    if updated is None:
        logger.info(f"invoice.payment_succeeded: newer expiry already stored for user_id={user.id}")
        return user_service.get_user(db, user.id)

    logger.info(
        f"Invoice payment succeeded: user_id={updated.id}, subscription_id={subscription_id}, "
        f"expires={period_end.isoformat()}"
    )
    return updated


def handle_invoice_payment_failed(db: Session, invoice_data: Dict[str, Any], event_created=None) -> None:
    """
    Handle invoice.payment_failed webhook event.

    Logged only; the past_due subscription update does the downgrade.
    """
    invoice = parse_invoice(invoice_data)
    logger.warning(
        f"Invoice payment failed: invoice_id={invoice.invoice_id}, "
        f"subscription_id={invoice.subscription_id}, customer_id={invoice.customer_id}"
    )
    return None
