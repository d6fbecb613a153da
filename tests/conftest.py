"""
Shared fixtures: in-memory SQLite database and a TestClient whose
database and session-auth dependencies point at it.
"""
import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.models.user import User
from app.core.auth_dependency import get_db, get_current_user
from app.core.timeutils import utcnow


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def make_user(db):
    """Factory for users with arbitrary billing state."""
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        n = counter["n"]
        values = {
            "google_id": f"google-{n}",
            "name": f"Test User {n}",
            "email": f"user{n}@example.com",
            "plan": "free",
        }
        values.update(fields)
        user = User(**values)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def test_user(make_user):
    return make_user(name="Test User", email="test@example.com")


@pytest.fixture
def pro_user(make_user):
    return make_user(
        plan="pro",
        plan_started_at=utcnow() - timedelta(days=5),
        plan_expires_at=utcnow() + timedelta(days=25),
        stripe_customer_id="cus_pro",
        stripe_subscription_id="sub_pro",
    )


@pytest.fixture
def client(db):
    """TestClient with the test database; lifespan (init_db on the real engine) is not run."""
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Authenticate the client as the given user by overriding the session lookup."""
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user.id
        return client

    return _login
