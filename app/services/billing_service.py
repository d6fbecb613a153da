"""
Billing service for Stripe integration.

Handles checkout sessions, subscription status, cancellation and the
reconciliation of Stripe webhook events into the user's plan.

Webhooks arrive at least once and in no guaranteed order, so every write
here is a single conditional UPDATE:
- checkout completion is skipped when the same subscription already grants
  the same unexpired plan;
- canceled / unpaid / incomplete_expired / past_due always downgrade;
- active / trialing only refresh the plan with a future period end that is
  not older than what is stored, from an event not older than the last one
  applied.
"""
import logging
from typing import Optional, Dict, Any, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.errors import (
    ConfigurationError,
    NotFoundError,
    PaymentProviderError,
    SessionOwnershipError,
    ValidationError,
)
from app.core.logging_config import sanitize_log_data
from app.core.plan_limits import (
    ACTIVE_STATUSES,
    DOWNGRADE_STATUSES,
    PRICING_PLANS,
    get_plan_from_price_id,
    get_price_id_for_plan,
)
from app.core.timeutils import utcnow, one_month_from
from app.services import stripe_service, user_service
from app.services.billing_events import (
    CheckoutCompleted,
    SubscriptionChange,
    parse_checkout_session,
    parse_subscription,
    subscription_period_end,
    subscription_price_id,
)
from app.services.billing_invoice_handlers import (
    handle_invoice_payment_succeeded,
    handle_invoice_payment_failed,
)
from app.services.billing_resolution import (
    BY_SUBSCRIPTION,
    already_applied,
    can_link,
    link_condition,
    newer_event_at,
    not_already_applied,
    resolve_plan,
    resolve_user,
)

logger = logging.getLogger(__name__)

# Outcomes of applying a paid checkout
UPDATED = "updated"
ALREADY_UPDATED = "already_updated"
UNRESOLVED_PLAN = "unresolved_plan"
SUBSCRIPTION_INACTIVE = "subscription_inactive"
STALE_EVENT = "stale_event"


def create_checkout_session(db: Session, user: User, plan: str) -> Dict[str, Any]:
    """
    Create a Stripe checkout session for a paid plan.

    Creates and stores the Stripe customer on first purchase.

    Args:
        db: Database session
        user: Authenticated user
        plan: Plan type (pro or business)

    Returns:
        Dictionary with 'id' and 'url'
    """
    plan = (plan or "").strip().lower()
    if plan not in PRICING_PLANS:
        raise ValidationError(
            f"Invalid plan type: {plan}. Must be 'pro' or 'business'",
            code="invalid_plan",
        )
    catalog = PRICING_PLANS[plan]
    logger.info(f"Checkout requested: user_id={user.id}, plan={catalog['name']}, amount={catalog['amount']}")

    if not get_price_id_for_plan(plan):
        logger.error(f"Stripe Price ID is missing for {plan} plan (STRIPE_{plan.upper()}_PRICE_ID)")
        raise ConfigurationError(f"Stripe Price ID not configured for {plan} plan. Please contact support.")

    customer_id = user.stripe_customer_id
    if not customer_id:
        customer_id = stripe_service.create_customer(user.email, user.name, user.id)
        stored = user_service.apply_update(
            db, user.id, {"stripe_customer_id": customer_id}, User.stripe_customer_id.is_(None)
        )
        if stored is None:
            # A parallel request linked a customer first; use that one
            customer_id = user_service.get_user(db, user.id).stripe_customer_id

    return stripe_service.create_checkout_session(customer_id, plan, user.id)


def apply_checkout(db: Session, user: User, checkout: CheckoutCompleted) -> Tuple[User, str]:
    """
    Grant the plan bought in a paid checkout session.

    Shared by the webhook and the verify-session fallback. The subscription
    is re-read from Stripe so a replayed session cannot restore a plan that a
    later failure or cancellation already removed.

    Returns:
        Tuple of (user, outcome) where outcome is UPDATED, ALREADY_UPDATED,
        UNRESOLVED_PLAN, SUBSCRIPTION_INACTIVE or STALE_EVENT
    """
    if checkout.customer_id and user.stripe_customer_id and user.stripe_customer_id != checkout.customer_id:
        logger.warning(
            f"Customer ID mismatch for user_id={user.id}: stored={user.stripe_customer_id}, "
            f"session={checkout.customer_id}"
        )

    subscription_id = checkout.subscription_id
    plan = checkout.plan
    event_created = checkout.event_created

    if plan and already_applied(user, subscription_id, plan, utcnow()):
        logger.info(
            f"Checkout already applied: user_id={user.id}, plan={plan}, subscription_id={subscription_id}"
        )
        return user, ALREADY_UPDATED

    if event_created and user.stripe_event_at and event_created < user.stripe_event_at:
        logger.info(
            f"Stale checkout event for user_id={user.id}: event at {event_created.isoformat()}, "
            f"last applied {user.stripe_event_at.isoformat()}"
        )
        return user, STALE_EVENT

    period_end = None
    if subscription_id:
        try:
            subscription = stripe_service.retrieve_subscription(subscription_id)
        except (PaymentProviderError, ConfigurationError) as e:
            logger.warning(f"Could not retrieve subscription {subscription_id}, using fallback term: {e}")
        else:
            status = subscription.get("status")
            if status and status not in ACTIVE_STATUSES:
                logger.warning(
                    f"Subscription {subscription_id} is {status}, not granting plan "
                    f"for session {checkout.session_id} to user_id={user.id}"
                )
                return user, SUBSCRIPTION_INACTIVE
            period_end = subscription_period_end(subscription)
            if not plan:
                plan = get_plan_from_price_id(subscription_price_id(subscription))

    if not plan:
        logger.error(
            f"Cannot determine plan for checkout session {checkout.session_id}; "
            f"metadata={sanitize_log_data(checkout.metadata)}"
        )
        return user, UNRESOLVED_PLAN

    now = utcnow()
    if already_applied(user, subscription_id, plan, now):
        logger.info(f"Checkout already applied: user_id={user.id}, subscription_id={subscription_id}")
        return user, ALREADY_UPDATED

    if period_end is None:
        period_end = one_month_from(now)
        logger.warning(f"No subscription period for session {checkout.session_id}, expiring at {period_end.isoformat()}")

    values = {
        "plan": plan,
        "plan_started_at": now,
        "plan_expires_at": period_end,
    }
    if subscription_id:
        values["stripe_subscription_id"] = subscription_id
    if checkout.customer_id and not user.stripe_customer_id:
        values["stripe_customer_id"] = checkout.customer_id
    if event_created:
        values["stripe_event_at"] = newer_event_at(event_created)

    conditions = [not_already_applied(subscription_id, plan, now)] if subscription_id else []
    if event_created:
        conditions.append(or_(User.stripe_event_at.is_(None), User.stripe_event_at <= event_created))
    previous_plan = user.plan
    updated = user_service.apply_update(db, user.id, values, *conditions)

    if updated is None:
        logger.info(f"Checkout applied concurrently: user_id={user.id}, subscription_id={subscription_id}")
        return user_service.get_user(db, user.id), ALREADY_UPDATED

    logger.info(
        f"User upgraded: user_id={updated.id}, plan={previous_plan} -> {updated.plan}, "
        f"subscription_id={updated.stripe_subscription_id}, expires={updated.plan_expires_at.isoformat()}"
    )
    return updated, UPDATED


def handle_checkout_session_completed(db: Session, session_data: Dict[str, Any], event_created=None) -> Optional[User]:
    """
    Handle checkout.session.completed webhook event.

    Args:
        db: Database session
        session_data: Stripe checkout session object
        event_created: Stripe event time; older than the last applied event is skipped

    Returns:
        Updated user, or None if nothing was applied
    """
    checkout = parse_checkout_session(session_data, event_created)
    logger.info(
        f"checkout.session.completed: session_id={checkout.session_id}, "
        f"payment_status={checkout.payment_status}, subscription_id={checkout.subscription_id}"
    )

    if checkout.payment_status != "paid":
        logger.info(f"Payment status is '{checkout.payment_status}', not 'paid'. Skipping update.")
        return None

    user, _ = resolve_user(
        db,
        subscription_id=checkout.subscription_id,
        user_id=checkout.user_id,
        email=checkout.payer_email,
        customer_id=checkout.customer_id,
    )
    if not user:
        logger.warning(
            f"No user found for checkout session {checkout.session_id}; "
            f"metadata={sanitize_log_data(checkout.metadata)}"
        )
        return None

    user, outcome = apply_checkout(db, user, checkout)
    return user if outcome == UPDATED else None


def _downgrade(db: Session, user: User, subscription_id: str, reason: str, event_created=None) -> User:
    """Force the free plan whatever subscription the user currently carries."""
    if user.stripe_subscription_id and user.stripe_subscription_id != subscription_id:
        logger.warning(
            f"User user_id={user.id} is linked to {user.stripe_subscription_id}, "
            f"downgrading anyway for {reason} subscription {subscription_id}"
        )

    values = user_service.free_plan_values()
    if event_created:
        values["stripe_event_at"] = newer_event_at(event_created)

    updated = user_service.apply_update(db, user.id, values)
    logger.info(f"User downgraded: user_id={user.id}, reason={reason}, subscription_id={subscription_id}")
    return updated


def _refresh_active(db: Session, user: User, change: SubscriptionChange) -> User:
    now = utcnow()
    subscription_id = change.subscription_id
    period_end = change.current_period_end

    if change.event_created and user.stripe_event_at and change.event_created < user.stripe_event_at:
        logger.info(
            f"Stale subscription event for user_id={user.id}: event at {change.event_created.isoformat()}, "
            f"last applied {user.stripe_event_at.isoformat()}"
        )
        return user

    if not period_end or period_end <= now:
        logger.warning(f"Subscription {subscription_id} is {change.status} without a future period end, not updating plan")
        return user

    if (
        user.stripe_subscription_id == subscription_id
        and user.plan_expires_at
        and user.plan_expires_at > period_end
    ):
        logger.info(f"Subscription {subscription_id} already has a later period end, skipping")
        return user

    plan = resolve_plan(change.plan, change.price_id)
    needs_update = (
        (plan and user.plan != plan)
        or user.stripe_subscription_id != subscription_id
        or user.plan_expires_at != period_end
        or user.plan_started_at is None
    )
    if not needs_update:
        logger.info(f"User already has correct plan, no update needed: user_id={user.id}")
        return user

    values = {
        "stripe_subscription_id": subscription_id,
        "plan_expires_at": period_end,
        "plan_started_at": func.coalesce(User.plan_started_at, now),
    }
    if plan:
        values["plan"] = plan
    else:
        logger.warning(f"Could not determine plan type for subscription {subscription_id}, keeping {user.plan}")
    if change.event_created:
        values["stripe_event_at"] = newer_event_at(change.event_created)

    conditions = [
        link_condition(subscription_id),
        or_(
            User.stripe_subscription_id.is_(None),
            User.plan_expires_at.is_(None),
            User.plan_expires_at <= period_end,
        ),
    ]
    if change.event_created:
        conditions.append(or_(User.stripe_event_at.is_(None), User.stripe_event_at <= change.event_created))

    updated = user_service.apply_update(db, user.id, values, *conditions)
    if updated is None:
        logger.info(f"Newer state already stored for user_id={user.id}, subscription_id={subscription_id}")
        return user_service.get_user(db, user.id)

    logger.info(
        f"Subscription applied: user_id={updated.id}, plan={updated.plan}, status={change.status}, "
        f"subscription_id={subscription_id}, expires={period_end.isoformat()}"
    )
    return updated


def _handle_subscription_change(db: Session, subscription_data: Dict[str, Any], event_created, label: str) -> Optional[User]:
    change = parse_subscription(subscription_data, event_created)
    logger.info(f"{label}: subscription_id={change.subscription_id}, status={change.status}")

    user, source = resolve_user(
        db,
        subscription_id=change.subscription_id,
        user_id=change.user_id,
        customer_id=change.customer_id,
    )
    if not user:
        logger.warning(f"User not found for subscription: {change.subscription_id}")
        return None

    if change.status in DOWNGRADE_STATUSES:
        return _downgrade(db, user, change.subscription_id, change.status, change.event_created)

    if source != BY_SUBSCRIPTION and not can_link(user, change.subscription_id):
        logger.warning(
            f"User user_id={user.id} is linked to {user.stripe_subscription_id}, "
            f"ignoring {change.status} event for {change.subscription_id}"
        )
        return user

    if change.status in ACTIVE_STATUSES:
        return _refresh_active(db, user, change)

    logger.info(f"Subscription status is '{change.status}', not updating plan")
    return user


def handle_subscription_created(db: Session, subscription_data: Dict[str, Any], event_created=None) -> Optional[User]:
    """Handle customer.subscription.created webhook event."""
    return _handle_subscription_change(db, subscription_data, event_created, "customer.subscription.created")


def handle_subscription_updated(db: Session, subscription_data: Dict[str, Any], event_created=None) -> Optional[User]:
    """Handle customer.subscription.updated webhook event (renewals, plan changes, failures)."""
    return _handle_subscription_change(db, subscription_data, event_created, "customer.subscription.updated")


def handle_subscription_deleted(db: Session, subscription_data: Dict[str, Any], event_created=None) -> Optional[User]:
    """
    Handle customer.subscription.deleted webhook event.
    Downgrades user to free plan.
    """
    change = parse_subscription(subscription_data, event_created)
    logger.info(f"customer.subscription.deleted: subscription_id={change.subscription_id}")

    user, _ = resolve_user(db, subscription_id=change.subscription_id, user_id=change.user_id)
    if not user:
        logger.warning(f"User not found for subscription cancellation: {change.subscription_id}")
        return None

    return _downgrade(db, user, change.subscription_id, "deleted", change.event_created)


WEBHOOK_HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_created,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
}


def process_webhook_event(db: Session, event: Dict[str, Any]) -> bool:
    """
    Dispatch a verified Stripe event to its handler.

    Returns:
        True if the event type is handled, False if it was ignored
    """
    event_type = event.get("type")
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return False

    data_object = (event.get("data") or {}).get("object") or {}
    logger.info(f"Processing {event_type}: event_id={event.get('id')}")
    handler(db, data_object, event.get("created"))
    return True


def verify_checkout_session(db: Session, session_id: Optional[str], user: User) -> Dict[str, Any]:
    """
    Apply a paid checkout session on the client's request after redirect.

    Converges with the webhook path for the same session.

    Raises:
        ValidationError: Missing session ID or no resolvable plan
        SessionOwnershipError: The session was created for another user
    """
    if not session_id:
        raise ValidationError("Session ID is required", code="missing_field")

    logger.info(f"Verifying payment session: session_id={session_id}, user_id={user.id}")
    checkout = parse_checkout_session(stripe_service.retrieve_checkout_session(session_id))

    if checkout.user_id and checkout.user_id != str(user.id):
        logger.warning(f"Session {session_id} belongs to user_id={checkout.user_id}, not user_id={user.id}")
        raise SessionOwnershipError(session_id)

    if checkout.payment_status != "paid":
        logger.info(f"Payment status is '{checkout.payment_status}', not 'paid'")
        return {"success": False, "paid": False, "payment_status": checkout.payment_status}

    updated, outcome = apply_checkout(db, user, checkout)
    if outcome == UNRESOLVED_PLAN:
        raise ValidationError("Invalid plan type in session", code="invalid_plan")

    return {
        "success": True,
        "paid": True,
        "updated": outcome == UPDATED,
        "already_updated": outcome == ALREADY_UPDATED,
        "plan": updated.plan,
        "role": updated.plan,
        "planExpiresAt": updated.plan_expires_at,
    }


def get_subscription_status(db: Session, user: User) -> Dict[str, Any]:
    """Current plan after applying any pending expiry."""
    user = user_service.enforce_plan_expiry(db, user)
    return {
        "success": True,
        "plan": user.plan,
        "role": user.plan,
        "planStartedAt": user.plan_started_at,
        "planExpiresAt": user.plan_expires_at,
        "stripeCustomerId": user.stripe_customer_id,
        "stripeSubscriptionId": user.stripe_subscription_id,
        "hasActiveSubscription": user.has_active_plan(),
    }


def cancel_subscription(db: Session, user: User) -> Dict[str, Any]:
    """
    Cancel at period end; the plan stays until the deletion webhook.

    Raises:
        NotFoundError: User has no linked subscription
    """
    if not user.stripe_subscription_id:
        raise NotFoundError("No active subscription found", code="no_subscription")

    stripe_service.cancel_subscription_at_period_end(user.stripe_subscription_id)
    logger.info(f"Subscription cancellation scheduled: user_id={user.id}, subscription_id={user.stripe_subscription_id}")

    return {
        "success": True,
        "message": "Subscription will be cancelled at the end of the billing period",
        "planExpiresAt": user.plan_expires_at,
    }
