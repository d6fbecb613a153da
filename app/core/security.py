import logging
import secrets
import time
from datetime import datetime, timedelta
from jose import jwt, JWTError
from app.core.config import SECRET_KEY, ALGORITHM, OAUTH_DEBOUNCE_SECONDS
from app.core.errors import OAuthError

logger = logging.getLogger(__name__)

OAUTH_STATE_TTL = timedelta(minutes=10)
OAUTH_INIT_KEY = "oauth_init_time"


def create_oauth_state(expires_delta: timedelta = None) -> str:
    """Signed, short-lived value for the OAuth ``state`` parameter."""
    expire = datetime.utcnow() + (expires_delta or OAUTH_STATE_TTL)
    to_encode = {"nonce": secrets.token_urlsafe(16), "purpose": "oauth_state", "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_oauth_state(state: str) -> dict:
    """
    Verify the ``state`` returned by Google on callback.

    Raises:
        OAuthError: Missing, expired or forged state
    """
    if not state:
        raise OAuthError("Missing OAuth state")
    try:
        payload = jwt.decode(state, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Invalid OAuth state: {e}")
        raise OAuthError("Invalid OAuth state")

    if payload.get("purpose") != "oauth_state":
        raise OAuthError("Invalid OAuth state")
    return payload


def oauth_recently_started(session: dict, now: float = None) -> bool:
    """True if this session began an OAuth redirect within the debounce window."""
    started = session.get(OAUTH_INIT_KEY)
    if started is None:
        return False
    now = time.time() if now is None else now
    return now - float(started) < OAUTH_DEBOUNCE_SECONDS


def mark_oauth_started(session: dict, now: float = None) -> None:
    session[OAUTH_INIT_KEY] = time.time() if now is None else now


def clear_oauth_started(session: dict) -> None:
    session.pop(OAUTH_INIT_KEY, None)
