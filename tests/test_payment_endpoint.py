"""
Integration tests for /api/payment endpoints.
Webhooks are signed with a test secret and verified by the stripe library.
"""
import hashlib
import hmac
import json
import time
import pytest

from app.core import config
from app.core.errors import PaymentProviderError
from app.services import billing_service, stripe_service

WEBHOOK_SECRET = "whsec_test_secret"


def signed(payload: dict, secret: str = WEBHOOK_SECRET):
    body = json.dumps(payload)
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256).hexdigest()
    return body, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def subscription_event(event_type, sub_id, status, customer, created=None):
    return {
        "id": "evt_test",
        "object": "event",
        "type": event_type,
        "created": created or int(time.time()),
        "data": {"object": {"id": sub_id, "object": "subscription", "status": status,
                            "customer": customer, "metadata": {}, "items": {"data": []}}},
    }


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)


def test_webhook_applies_verified_event(client, db, pro_user, webhook_secret):
    body, headers = signed(subscription_event("customer.subscription.deleted", "sub_pro", "canceled", "cus_pro"))

    response = client.post("/api/payment/webhook", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "processed": True}
    db.expire_all()
    db.refresh(pro_user)
    assert pro_user.plan == "free"


def test_webhook_rejects_bad_signature(client, db, pro_user, webhook_secret):
    body, headers = signed(
        subscription_event("customer.subscription.deleted", "sub_pro", "canceled", "cus_pro"),
        secret="whsec_wrong",
    )

    response = client.post("/api/payment/webhook", content=body, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "webhook_verification_failed"
    db.expire_all()
    db.refresh(pro_user)
    assert pro_user.plan == "pro"


def test_webhook_rejects_missing_signature(client, webhook_secret):
    response = client.post("/api/payment/webhook", content=b"{}")

    assert response.status_code == 400


def test_webhook_without_secret_is_server_error(client, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", None)
    body, headers = signed({"id": "evt", "type": "customer.created", "data": {"object": {}}})

    response = client.post("/api/payment/webhook", content=body, headers=headers)

    assert response.status_code == 500
    assert response.json()["error"] == "not_configured"


def test_webhook_acknowledges_processing_failure(client, webhook_secret, monkeypatch):
    """A bug while processing a verified event must not make Stripe retry forever."""
    def explode(db, event):
        raise RuntimeError("boom")

    monkeypatch.setattr(billing_service, "process_webhook_event", explode)
    body, headers = signed(subscription_event("customer.subscription.updated", "sub_x", "active", "cus_x"))

    response = client.post("/api/payment/webhook", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "processed": False}


def test_webhook_acknowledges_unknown_user(client, webhook_secret):
    body, headers = signed(subscription_event("customer.subscription.updated", "sub_nobody", "past_due", "cus_nobody"))

    response = client.post("/api/payment/webhook", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["processed"] is True


def test_endpoints_require_login(client):
    assert client.get("/api/payment/status").status_code == 401
    response = client.post("/api/payment/create-session", json={"planType": "pro"})
    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"


def test_create_session_invalid_plan(login, test_user):
    response = login(test_user).post("/api/payment/create-session", json={"planType": "platinum"})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_plan"


def test_create_session_returns_url(login, test_user, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_PRO_PRICE_ID", "price_pro_123")
    monkeypatch.setattr(stripe_service, "create_customer", lambda email, name, user_id: "cus_new")
    monkeypatch.setattr(stripe_service, "create_checkout_session",
                        lambda customer_id, plan, user_id: {"id": "cs_1", "url": "https://checkout.stripe.com/cs_1"})

    response = login(test_user).post("/api/payment/create-session", json={"planType": "pro"})

    assert response.status_code == 200
    assert response.json()["url"] == "https://checkout.stripe.com/cs_1"


def test_create_session_provider_error(login, test_user, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_PRO_PRICE_ID", "price_pro_123")

    def fail(email, name, user_id):
        raise PaymentProviderError("Failed to create payment customer", "card_declined")

    monkeypatch.setattr(stripe_service, "create_customer", fail)

    response = login(test_user).post("/api/payment/create-session", json={"planType": "pro"})

    assert response.status_code == 502
    assert response.json()["error"] == "payment_provider_error"


def test_verify_session_missing_id(login, test_user):
    response = login(test_user).post("/api/payment/verify-session", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_field"


def test_verify_session_forbidden(login, test_user, monkeypatch):
    monkeypatch.setattr(stripe_service, "retrieve_checkout_session", lambda session_id: {
        "id": session_id, "payment_status": "paid", "subscription": "sub_1",
        "metadata": {"userId": str(test_user.id + 100), "plan": "pro"},
    })

    response = login(test_user).post("/api/payment/verify-session", json={"sessionId": "cs_1"})

    assert response.status_code == 403
    assert response.json()["error"] == "session_forbidden"


def test_status(login, pro_user):
    response = login(pro_user).get("/api/payment/status")

    assert response.status_code == 200
    data = response.json()
    assert data["plan"] == "pro"
    assert data["role"] == "pro"
    assert data["hasActiveSubscription"] is True
    assert data["stripeSubscriptionId"] == "sub_pro"


def test_cancel_subscription_not_found(login, test_user):
    response = login(test_user).post("/api/payment/cancel-subscription")

    assert response.status_code == 404
    assert response.json()["message"] == "No active subscription found"
