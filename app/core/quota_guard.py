"""
Quota enforcement dependency for resume creation.

require_resume_quota() authenticates the user and rejects the request
with 403 plan_limit_exceeded before the route body runs.
"""
import logging
from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.auth_dependency import get_db, get_current_user_obj
from app.services.quota_service import check_resume_quota

logger = logging.getLogger(__name__)


def require_resume_quota(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency that enforces the resume limit of the user's plan.

    Returns:
        User object if another resume is allowed

    Raises:
        PlanLimitExceededError: 403 when the free plan limit is reached
    """
    user, current, limit = check_resume_quota(db, user)
    logger.debug(
        f"Quota check passed: user_id={user.id}, plan={user.plan}, "
        f"resumes={current}, limit={limit if limit is not None else 'unlimited'}"
    )
    return user
