"""
Google OAuth 2.0 authorization-code flow.

Builds the consent URL, exchanges the callback code for tokens and fetches
the user's profile from the userinfo endpoint.
"""
import logging
from typing import Any, Dict
from urllib.parse import urlencode

import requests

from app.core import config
from app.core.errors import ConfigurationError, OAuthError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ("openid", "profile", "email")
REQUEST_TIMEOUT = 15


def _require_client() -> None:
    if not config.GOOGLE_CLIENT_ID or not config.GOOGLE_CLIENT_SECRET:
        raise ConfigurationError("Google OAuth is not configured")


def build_authorization_url(state: str) -> str:
    _require_client()
    params = {
        "client_id": config.GOOGLE_CLIENT_ID,
        "redirect_uri": config.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "state": state,
        "access_type": "online",
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def _google_request(method: str, url: str, **kwargs) -> Dict[str, Any]:
    try:
        response = requests.request(method=method, url=url, timeout=REQUEST_TIMEOUT, **kwargs)
    except requests.RequestException as exc:
        logger.error(f"Failed to contact Google: {exc}")
        raise OAuthError("Failed to contact Google")

    if response.status_code >= 400:
        logger.error(f"Google returned {response.status_code} for {url}")
        raise OAuthError("Google rejected the sign-in request")

    try:
        payload = response.json()
    except ValueError:
        raise OAuthError("Invalid response received from Google")

    if not isinstance(payload, dict):
        raise OAuthError("Unexpected response format from Google")
    return payload


def exchange_code(code: str) -> Dict[str, Any]:
    """Exchange an authorization code for tokens."""
    _require_client()
    if not code:
        raise OAuthError("Missing authorization code")
    return _google_request(
        "POST",
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": config.GOOGLE_CLIENT_ID,
            "client_secret": config.GOOGLE_CLIENT_SECRET,
            "redirect_uri": config.GOOGLE_REDIRECT_URI,
            "grant_type": "authorization_code",
        },
    )


def fetch_userinfo(access_token: str) -> Dict[str, Any]:
    return _google_request(
        "GET",
        GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
    )


def map_profile(userinfo: Dict[str, Any]) -> Dict[str, Any]:
    """Map Google userinfo claims onto user fields."""
    return {
        "google_id": userinfo.get("sub") or userinfo.get("id"),
        "name": userinfo.get("name"),
        "email": userinfo.get("email"),
        "avatar": userinfo.get("picture"),
    }


def fetch_profile(code: str) -> Dict[str, Any]:
    """
    Complete the callback: code -> tokens -> mapped profile.

    Raises:
        OAuthError: Any step of the exchange failed
    """
    tokens = exchange_code(code)
    access_token = tokens.get("access_token")
    if not access_token:
        raise OAuthError("Google did not return an access token")

    profile = map_profile(fetch_userinfo(access_token))
    if not profile["google_id"]:
        raise OAuthError("Google profile has no subject identifier")
    return profile
