from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import synonym

from app.db.base import Base
from app.core.plan_limits import FREE_PLAN
from app.core.timeutils import utcnow


class User(Base):
    """
    Application user created on first Google login.

    Billing fields are written by the subscription reconciler, the lazy
    expiry check and the admin tools only.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    google_id = Column(String, unique=True, index=True, nullable=True)
    name = Column(String)
    email = Column(String, index=True)  # not unique
    avatar = Column(String)
    provider = Column(String, default="google")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login = Column(DateTime, default=utcnow)

    # Billing
    plan = Column(String, default=FREE_PLAN, nullable=False)  # free | pro | business
    plan_started_at = Column(DateTime, nullable=True)
    plan_expires_at = Column(DateTime, nullable=True)
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)
    # Provider timestamp of the newest subscription event applied
    stripe_event_at = Column(DateTime, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Legacy alias kept for API payloads; always equal to plan
    role = synonym("plan")

    def has_active_plan(self, now=None) -> bool:
        """Paid entitlement: paid plan and no expiry in the past."""
        now = now or utcnow()
        if (self.plan or FREE_PLAN) == FREE_PLAN:
            return False
        return self.plan_expires_at is None or self.plan_expires_at > now

    def is_expired(self, now=None) -> bool:
        now = now or utcnow()
        return (
            (self.plan or FREE_PLAN) != FREE_PLAN
            and self.plan_expires_at is not None
            and self.plan_expires_at < now
        )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', plan='{self.plan}')>"
