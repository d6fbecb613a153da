"""
User and plan resolution for Stripe events.

A Stripe event is tied to a user by, in order: the linked subscription ID,
the user ID in metadata, the payer email (checkout only), then the linked
customer ID. The first match wins.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import or_, and_, case
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.plan_limits import get_plan_from_price_id
from app.services import user_service

logger = logging.getLogger(__name__)

BY_SUBSCRIPTION = "subscription"
BY_METADATA = "metadata"
BY_EMAIL = "email"
BY_CUSTOMER = "customer"


def resolve_user(
    db: Session,
    subscription_id: Optional[str] = None,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> Tuple[Optional[User], Optional[str]]:
    """
    Find the user an event refers to.

    Returns:
        Tuple of (user, source) where source names the identifier that
        matched, or (None, None)
    """
    lookups = (
        (BY_SUBSCRIPTION, lambda: user_service.find_by_subscription_id(db, subscription_id)),
        (BY_METADATA, lambda: user_service.get_user(db, user_id) if user_id else None),
        (BY_EMAIL, lambda: user_service.find_by_email(db, email)),
        (BY_CUSTOMER, lambda: user_service.find_by_customer_id(db, customer_id)),
    )

    for source, lookup in lookups:
        user = lookup()
        if user:
            if source != BY_SUBSCRIPTION:
                logger.info(f"Resolved user_id={user.id} by {source} (subscription_id={subscription_id})")
            return user, source

    return None, None


def resolve_plan(metadata_plan: Optional[str], price_id: Optional[str]) -> Optional[str]:
    """Explicit metadata plan first, then the configured price IDs."""
    if metadata_plan:
        return metadata_plan
    plan = get_plan_from_price_id(price_id)
    if plan:
        logger.info(f"Determined plan type from price ID: {plan}")
    return plan


def can_link(user: User, subscription_id: Optional[str]) -> bool:
    """A user found by a fallback may only take a subscription it does not contradict."""
    return user.stripe_subscription_id in (None, subscription_id)


def link_condition(subscription_id: str):
    """SQL form of can_link for conditional updates."""
    return or_(
        User.stripe_subscription_id.is_(None),
        User.stripe_subscription_id == subscription_id,
    )


def not_already_applied(subscription_id: str, plan: str, now: datetime):
    """SQL negation of the checkout idempotency guard."""
    return or_(
        User.stripe_subscription_id.is_(None),
        User.stripe_subscription_id != subscription_id,
        User.plan != plan,
        User.plan_expires_at.is_(None),
        User.plan_expires_at <= now,
    )


def already_applied(user: User, subscription_id: Optional[str], plan: str, now: datetime) -> bool:
    return bool(
        subscription_id
        and user.stripe_subscription_id == subscription_id
        and user.plan == plan
        and user.plan_expires_at is not None
        and user.plan_expires_at > now
    )


def newer_event_at(event_created: datetime):
    """SQL expression keeping the later of the stored and incoming event times."""
    return case(
        (and_(User.stripe_event_at.isnot(None), User.stripe_event_at > event_created), User.stripe_event_at),
        else_=event_created,
    )
