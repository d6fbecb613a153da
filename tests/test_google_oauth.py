"""
Unit tests for the Google OAuth client and OAuth state handling.
"""
import pytest
import requests
from datetime import timedelta
from unittest.mock import MagicMock

from app.core import config
from app.core.errors import OAuthError
from app.core.security import (
    create_oauth_state,
    verify_oauth_state,
    oauth_recently_started,
    mark_oauth_started,
)
from app.services import google_oauth


@pytest.fixture(autouse=True)
def google_configured(monkeypatch):
    monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", "client-id")
    monkeypatch.setattr(config, "GOOGLE_CLIENT_SECRET", "client-secret")


def fake_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


def test_fetch_profile_maps_claims(monkeypatch):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url))
        if url == google_oauth.GOOGLE_TOKEN_URL:
            assert kwargs["data"]["code"] == "auth-code"
            return fake_response(payload={"access_token": "at-1"})
        assert kwargs["headers"]["Authorization"] == "Bearer at-1"
        return fake_response(payload={"sub": "g-1", "name": "Jane", "email": "j@example.com", "picture": "p.png"})

    monkeypatch.setattr(google_oauth.requests, "request", fake_request)

    profile = google_oauth.fetch_profile("auth-code")

    assert profile == {"google_id": "g-1", "name": "Jane", "email": "j@example.com", "avatar": "p.png"}
    assert [c[0] for c in calls] == ["POST", "GET"]


def test_token_exchange_error(monkeypatch):
    monkeypatch.setattr(google_oauth.requests, "request", lambda method, url, **kw: fake_response(400))

    with pytest.raises(OAuthError):
        google_oauth.fetch_profile("bad-code")


def test_network_error(monkeypatch):
    def boom(method, url, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(google_oauth.requests, "request", boom)

    with pytest.raises(OAuthError):
        google_oauth.exchange_code("code")


def test_missing_code():
    with pytest.raises(OAuthError):
        google_oauth.exchange_code("")


def test_oauth_state_round_trip():
    payload = verify_oauth_state(create_oauth_state())
    assert payload["purpose"] == "oauth_state"


def test_expired_oauth_state():
    with pytest.raises(OAuthError):
        verify_oauth_state(create_oauth_state(expires_delta=timedelta(seconds=-5)))


def test_debounce_window(monkeypatch):
    monkeypatch.setattr("app.core.security.OAUTH_DEBOUNCE_SECONDS", 2)
    session = {}
    assert oauth_recently_started(session) is False

    mark_oauth_started(session, now=100.0)

    assert oauth_recently_started(session, now=101.0) is True
    assert oauth_recently_started(session, now=102.5) is False
