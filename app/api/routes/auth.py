import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core import config
from app.core.auth_dependency import get_db
from app.core.errors import AppError, OAuthInProgressError
from app.core.security import (
    create_oauth_state,
    verify_oauth_state,
    oauth_recently_started,
    mark_oauth_started,
    clear_oauth_started,
)
from app.schemas.auth import MeResponse
from app.services import google_oauth, user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


# ✅ START GOOGLE SIGN-IN
@router.get("/google")
def google_login(request: Request):
    """Redirect to Google's consent screen; a repeat within the debounce window is refused."""
    if oauth_recently_started(request.session):
        logger.info("OAuth already in progress for this session, ignoring duplicate request")
        raise OAuthInProgressError("OAuth already in progress, please wait")

    url = google_oauth.build_authorization_url(create_oauth_state())
    mark_oauth_started(request.session)
    return RedirectResponse(url, status_code=302)


# ✅ GOOGLE CALLBACK
@router.get("/google/callback")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    clear_oauth_started(request.session)

    if error:
        logger.warning(f"Google sign-in was not completed: {error}")
        return RedirectResponse(f"{config.FRONTEND_URL}/login?error=oauth_denied", status_code=302)

    try:
        verify_oauth_state(state)
        profile = google_oauth.fetch_profile(code)
        user = user_service.upsert_google_user(db, profile)
    except AppError as e:
        logger.warning(f"Google sign-in failed: {e.message}")
        return RedirectResponse(f"{config.FRONTEND_URL}/login?error={e.code}", status_code=302)

    request.session["user_id"] = user.id
    return RedirectResponse(f"{config.FRONTEND_URL}/dashboard", status_code=302)


# ✅ LOGOUT
@router.get("/logout")
def logout(request: Request):
    user_id = request.session.get("user_id")
    request.session.clear()
    if user_id is not None:
        logger.info(f"User logged out: user_id={user_id}")
    return RedirectResponse(config.FRONTEND_URL, status_code=302)


# ✅ CURRENT USER
@router.get("/me", response_model=MeResponse)
def me(request: Request, db: Session = Depends(get_db)):
    """
    Current user, re-read from the database.

    An expired paid plan is downgraded and saved before responding.
    """
    user = user_service.get_user(db, request.session.get("user_id"))
    if not user:
        request.session.pop("user_id", None)
        return JSONResponse(status_code=401, content={"user": None})

    user = user_service.enforce_plan_expiry(db, user)
    return {"user": user_service.serialize_user(user)}
