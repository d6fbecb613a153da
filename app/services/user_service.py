"""
User record store.

Lookups used by login and subscription reconciliation, atomic conditional
updates of billing fields, and the lazy plan-expiry downgrade.
"""
import logging
from typing import Optional, Dict, Any

from sqlalchemy import update, and_
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.plan_limits import FREE_PLAN
from app.core.timeutils import utcnow

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id) -> Optional[User]:
    """Get a user by primary key; non-numeric IDs resolve to None."""
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    return db.query(User).filter(User.id == user_id).first()


def find_by_subscription_id(db: Session, subscription_id: Optional[str]) -> Optional[User]:
    if not subscription_id:
        return None
    return db.query(User).filter(User.stripe_subscription_id == subscription_id).first()


def find_by_customer_id(db: Session, customer_id: Optional[str]) -> Optional[User]:
    if not customer_id:
        return None
    return db.query(User).filter(User.stripe_customer_id == customer_id).order_by(User.id).first()


def find_by_email(db: Session, email: Optional[str]) -> Optional[User]:
    """Emails are not unique; the oldest account wins."""
    if not email:
        return None
    return db.query(User).filter(User.email == email).order_by(User.id).first()


def upsert_google_user(db: Session, profile: Dict[str, Any]) -> User:
    """
    Create the user on first Google login, otherwise refresh last_login.

    Args:
        db: Database session
        profile: Mapped Google profile with google_id, name, email, avatar

    Returns:
        The persisted User
    """
    google_id = profile.get("google_id")
    if not google_id:
        raise ValueError("Google profile has no subject identifier")

    user = db.query(User).filter(User.google_id == google_id).first()
    now = utcnow()

    if not user:
        user = User(
            google_id=google_id,
            name=profile.get("name"),
            email=profile.get("email"),
            avatar=profile.get("avatar"),
            provider="google",
            created_at=now,
            last_login=now,
            plan=FREE_PLAN,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"New user created: user_id={user.id}")
    else:
        user.last_login = now
        db.commit()
        db.refresh(user)
        logger.info(f"User logged in: user_id={user.id}")

    return user


def apply_update(db: Session, user_id: int, values: Dict[str, Any], *conditions) -> Optional[User]:
    """
    Atomically update one user row.

    Issues a single UPDATE ... WHERE id = :user_id AND <conditions>, so a
    concurrent writer can never interleave between check and write.

    Returns:
        The refreshed User if a row was written, None if the conditions
        did not match.
    """
    values = dict(values)
    values.setdefault("updated_at", utcnow())

    stmt = (
        update(User)
        .where(and_(User.id == user_id, *conditions))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if not result.rowcount:
        return None

    return db.query(User).filter(User.id == user_id).populate_existing().first()


def free_plan_values() -> Dict[str, Any]:
    """Field values for a downgrade to the free plan."""
    return {
        "plan": FREE_PLAN,
        "plan_expires_at": None,
        "stripe_subscription_id": None,
    }


def enforce_plan_expiry(db: Session, user: User) -> User:
    """
    Downgrade a paid plan whose term is over before anyone reads it.

    Args:
        db: Database session
        user: Freshly loaded user

    Returns:
        The user with up-to-date billing fields
    """
    now = utcnow()
    if not user.is_expired(now):
        return user

    logger.info(f"Plan expired for user_id={user.id}, downgrading to free")
    downgraded = apply_update(
        db,
        user.id,
        free_plan_values(),
        User.plan != FREE_PLAN,
        User.plan_expires_at.isnot(None),
        User.plan_expires_at < now,
    )
    if downgraded is None:
        # Another request already changed the row
        return db.query(User).filter(User.id == user.id).populate_existing().first()

    logger.info(f"User downgraded to free plan due to expiration: user_id={user.id}")
    return downgraded


def serialize_user(user: User) -> Dict[str, Any]:
    """User payload for /auth/me; role mirrors plan."""
    plan = user.plan or FREE_PLAN
    return {
        "id": user.id,
        "googleId": user.google_id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
        "provider": user.provider,
        "createdAt": user.created_at,
        "lastLogin": user.last_login,
        "plan": plan,
        "role": plan,
        "planStartedAt": user.plan_started_at,
        "planExpiresAt": user.plan_expires_at,
        "stripeCustomerId": user.stripe_customer_id,
        "stripeSubscriptionId": user.stripe_subscription_id,
        "hasActivePlan": user.has_active_plan(),
    }
