"""
Manual plan repair for administrators.

Used when a payment succeeded but no webhook updated the user. These
writes are unconditional and bypass the reconciler's guards.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.plan_limits import FREE_PLAN, PAID_PLANS, normalize_plan
from app.core.timeutils import utcnow, one_month_from
from app.services import user_service

logger = logging.getLogger(__name__)


def _load(db: Session, user_id) -> User:
    user = user_service.get_user(db, user_id)
    if not user:
        raise ValueError(f"User not found with ID: {user_id}")
    return user


def update_user_plan(
    db: Session,
    user_id,
    plan: str,
    expires_at: Optional[datetime] = None,
    subscription_id: Optional[str] = None,
) -> User:
    """
    Grant a paid plan.

    Args:
        db: Database session
        user_id: User ID
        plan: pro or business
        expires_at: Expiry; defaults to one month from now
        subscription_id: Stripe subscription to link, if known

    Raises:
        ValueError: Unknown user or not a paid plan
    """
    normalized = normalize_plan(plan)
    if normalized not in PAID_PLANS:
        raise ValueError(f"Invalid plan type: {plan}. Must be one of: {', '.join(PAID_PLANS)}")

    user = _load(db, user_id)
    now = utcnow()
    values = {
        "plan": normalized,
        "plan_started_at": now,
        "plan_expires_at": expires_at or one_month_from(now),
    }
    if subscription_id:
        values["stripe_subscription_id"] = subscription_id

    logger.info(f"Manual plan update: user_id={user.id}, plan={user.plan} -> {normalized}")
    return user_service.apply_update(db, user.id, values)


def downgrade_to_free(db: Session, user_id) -> User:
    """Force the free plan and unlink the subscription."""
    user = _load(db, user_id)
    logger.info(f"Manual downgrade: user_id={user.id}, plan={user.plan} -> {FREE_PLAN}")
    return user_service.apply_update(db, user.id, user_service.free_plan_values())


def verify_user_plan(db: Session, user_id) -> Dict[str, Any]:
    """Read-only snapshot of a user's billing state."""
    user = _load(db, user_id)
    now = utcnow()
    return {
        "user_id": user.id,
        "email": user.email,
        "plan": user.plan or FREE_PLAN,
        "role": user.plan or FREE_PLAN,
        "plan_started_at": user.plan_started_at,
        "plan_expires_at": user.plan_expires_at,
        "stripe_customer_id": user.stripe_customer_id,
        "stripe_subscription_id": user.stripe_subscription_id,
        "is_expired": user.is_expired(now),
        "is_active": user.has_active_plan(now),
    }
