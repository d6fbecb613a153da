from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.errors import NotAuthenticatedError
from app.db.session import SessionLocal
from app.db.models.user import User
from app.services.user_service import get_user


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request) -> int:
    """Get current user ID from the signed session cookie."""
    user_id = request.session.get("user_id")
    if user_id is None:
        raise NotAuthenticatedError("Not authenticated")
    return user_id


def get_current_user_obj(
    request: Request,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """Get current User object; a session for a deleted user is cleared."""
    user = get_user(db, user_id)
    if not user:
        request.session.clear()
        raise NotAuthenticatedError("Not authenticated")
    return user
