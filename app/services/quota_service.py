"""
Quota service for the free-plan resume limit.

The count is read at call time and not locked; concurrent creates can
briefly overshoot the limit.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models.resume import Resume
from app.db.models.user import User
from app.core.errors import PlanLimitExceededError
from app.core.plan_limits import FREE_PLAN, get_plan_limit
from app.services.user_service import enforce_plan_expiry

logger = logging.getLogger(__name__)


def count_resumes(db: Session, user_id: int) -> int:
    """Number of resumes owned by a user."""
    return db.query(func.count(Resume.id)).filter(Resume.user_id == user_id).scalar() or 0


def check_resume_quota(db: Session, user: User) -> Tuple[User, int, Optional[int]]:
    """
    Check whether the user may create another resume.

    Applies any pending plan expiry first so a lapsed subscription is
    counted against the free limit.

    Args:
        db: Database session
        user: Authenticated user

    Returns:
        Tuple of (user, current_count, limit) where limit is None for
        unlimited plans

    Raises:
        PlanLimitExceededError: The user is at or above the plan limit
    """
    user = enforce_plan_expiry(db, user)
    plan = user.plan or FREE_PLAN
    limit = get_plan_limit(plan, "resumes")
    current = count_resumes(db, user.id)

    if limit is not None and current >= limit:
        logger.warning(f"Resume limit reached: user_id={user.id}, plan={plan}, limit={limit}, current={current}")
        raise PlanLimitExceededError(plan, limit, current)

    return user, current, limit
