"""
Plan catalog and plan-based limits.

Single source of truth for plan names, paid-plan pricing metadata,
resume quotas and the Stripe statuses that revoke a paid plan.
None means unlimited.
"""
from typing import Dict, Optional, List, Any

from app.core import config

FREE_PLAN = "free"
PRO_PLAN = "pro"
BUSINESS_PLAN = "business"

ALL_PLANS: List[str] = [FREE_PLAN, PRO_PLAN, BUSINESS_PLAN]
PAID_PLANS: List[str] = [PRO_PLAN, BUSINESS_PLAN]

MAX_FREE_RESUMES = 3

# Resume limits per plan
PLAN_LIMITS: Dict[str, Dict[str, Optional[int]]] = {
    FREE_PLAN: {"resumes": MAX_FREE_RESUMES},
    PRO_PLAN: {"resumes": None},  # Unlimited
    BUSINESS_PLAN: {"resumes": None},
}

PRICING_PLANS: Dict[str, Dict[str, Any]] = {
    PRO_PLAN: {
        "name": "Pro Plan",
        "amount": 1200,  # cents
        "interval": "month",
        "features": ["Unlimited AI resumes", "20+ premium templates", "Priority support"],
    },
    BUSINESS_PLAN: {
        "name": "Business Plan",
        "amount": 4900,
        "interval": "month",
        "features": ["Everything in Pro", "Team management", "API access", "Custom branding"],
    },
}

# Stripe subscription statuses
ACTIVE_STATUSES = ("active", "trialing")
DOWNGRADE_STATUSES = ("canceled", "unpaid", "incomplete_expired", "past_due")


def normalize_plan(plan: Optional[str]) -> Optional[str]:
    """Lower-case a plan tag; returns None for empty or unknown values."""
    if not plan:
        return None
    plan_lower = str(plan).strip().lower()
    return plan_lower if plan_lower in ALL_PLANS else None


def get_price_id_for_plan(plan: str) -> Optional[str]:
    """Get the configured Stripe price ID for a paid plan."""
    price_ids = {
        PRO_PLAN: config.STRIPE_PRO_PRICE_ID,
        BUSINESS_PLAN: config.STRIPE_BUSINESS_PRICE_ID,
    }
    price_id = price_ids.get((plan or "").lower())
    if not price_id or price_id.startswith("price_your_"):
        # Placeholder values from .env.example
        return None
    return price_id


def get_plan_from_price_id(price_id: Optional[str]) -> Optional[str]:
    """Map a Stripe price ID back to a paid plan."""
    if not price_id:
        return None
    if config.STRIPE_PRO_PRICE_ID and price_id == config.STRIPE_PRO_PRICE_ID:
        return PRO_PLAN
    if config.STRIPE_BUSINESS_PRICE_ID and price_id == config.STRIPE_BUSINESS_PRICE_ID:
        return BUSINESS_PLAN
    return None


def get_plan_limit(plan_type: str, feature: str) -> Optional[int]:
    """
    Get the limit for a feature in a given plan.

    Args:
        plan_type: Plan type (free, pro, business)
        feature: Feature name (resumes)

    Returns:
        Limit (int) or None for unlimited
    """
    plan_type = plan_type.lower() if plan_type else FREE_PLAN
    limits = PLAN_LIMITS.get(plan_type, PLAN_LIMITS[FREE_PLAN])
    return limits.get(feature)
