"""
Unit tests for the user store and lazy plan expiry.
"""
import pytest
from datetime import timedelta

from app.db.models.user import User
from app.core.timeutils import utcnow
from app.services import user_service


def test_upsert_creates_then_updates_last_login(db):
    profile = {"google_id": "g-1", "name": "Jane", "email": "jane@example.com", "avatar": None}

    created = user_service.upsert_google_user(db, profile)
    first_login = created.last_login
    again = user_service.upsert_google_user(db, profile)

    assert again.id == created.id
    assert again.plan == "free"
    assert again.provider == "google"
    assert again.last_login >= first_login
    assert db.query(User).count() == 1


def test_upsert_requires_google_id(db):
    with pytest.raises(ValueError):
        user_service.upsert_google_user(db, {"email": "x@example.com"})


def test_get_user_ignores_non_numeric_ids(db, test_user):
    assert user_service.get_user(db, str(test_user.id)).id == test_user.id
    assert user_service.get_user(db, "abc") is None
    assert user_service.get_user(db, None) is None


def test_find_by_email_prefers_oldest(db, make_user):
    first = make_user(email="shared@example.com")
    make_user(email="shared@example.com")

    assert user_service.find_by_email(db, "shared@example.com").id == first.id


def test_apply_update_respects_conditions(db, test_user):
    skipped = user_service.apply_update(db, test_user.id, {"plan": "pro"}, User.plan == "business")
    assert skipped is None

    updated = user_service.apply_update(db, test_user.id, {"plan": "pro"}, User.plan == "free")
    assert updated.plan == "pro"
    assert updated.role == "pro"


def test_enforce_plan_expiry_downgrades(db, make_user):
    user = make_user(plan="business", plan_expires_at=utcnow() - timedelta(minutes=1), stripe_subscription_id="sub_1")

    user = user_service.enforce_plan_expiry(db, user)

    assert user.plan == "free"
    assert user.plan_expires_at is None
    assert user.stripe_subscription_id is None


def test_enforce_plan_expiry_keeps_active_plan(db, pro_user):
    user = user_service.enforce_plan_expiry(db, pro_user)

    assert user.plan == "pro"
    assert user.stripe_subscription_id == "sub_pro"


def test_paid_plan_without_expiry_is_active(make_user):
    user = make_user(plan="pro", plan_expires_at=None)

    assert user.has_active_plan() is True
    assert user.is_expired() is False


def test_serialize_user_mirrors_role(pro_user):
    payload = user_service.serialize_user(pro_user)

    assert payload["plan"] == payload["role"] == "pro"
    assert payload["hasActivePlan"] is True
    assert payload["stripeSubscriptionId"] == "sub_pro"
