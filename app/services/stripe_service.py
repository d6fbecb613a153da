"""
Stripe service for customers, checkout sessions, subscriptions and webhooks.

Everything returned from here is a plain dict so the reconciler never
depends on stripe object types.
"""
import json
import logging
from typing import Optional, Dict, Any

import stripe

from app.core import config
from app.core.errors import (
    ConfigurationError,
    PaymentProviderError,
    WebhookVerificationError,
)
from app.core.plan_limits import get_price_id_for_plan

logger = logging.getLogger(__name__)


def _client_ready() -> None:
    """Point the stripe library at the configured key or fail loudly."""
    if not config.STRIPE_SECRET_KEY:
        raise ConfigurationError("Stripe is not configured properly. Please contact support.")
    stripe.api_key = config.STRIPE_SECRET_KEY


def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if type(obj) is dict:
        return obj
    for attr in ("to_dict_recursive", "to_dict"):
        converter = getattr(obj, attr, None)
        if callable(converter):
            return converter()
    return dict(obj)


def create_customer(email: Optional[str], name: Optional[str], user_id: int) -> str:
    """
    Create a Stripe customer for a user.

    Returns:
        Stripe customer ID
    """
    _client_ready()
    try:
        customer = stripe.Customer.create(
            email=email,
            name=name,
            metadata={"userId": str(user_id)},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating customer for user_id={user_id}: {e}")
        raise PaymentProviderError("Failed to create payment customer", str(e))

    logger.info(f"Stripe customer created: user_id={user_id}, customer_id={customer['id']}")
    return customer["id"]


def create_checkout_session(customer_id: str, plan: str, user_id: int) -> Dict[str, Any]:
    """
    Create a Stripe Checkout session for a monthly subscription.

    The user ID and plan are written to both the session and the
    subscription metadata so every later webhook can be tied back.

    Args:
        customer_id: Stripe customer ID
        plan: Paid plan (pro or business)
        user_id: User ID from database

    Returns:
        Dictionary with 'id' and 'url'
    """
    _client_ready()
    price_id = get_price_id_for_plan(plan)
    if not price_id:
        raise ConfigurationError(
            f"Stripe Price ID not configured for {plan} plan. Please contact support.",
            details={"plan": plan},
        )

    metadata = {"userId": str(user_id), "plan": plan, "planType": plan}

    try:
        session = stripe.checkout.Session.create(
            customer=customer_id,
            payment_method_types=["card"],
            mode="subscription",
            line_items=[{
                "price": price_id,
                "quantity": 1,
            }],
            success_url=f"{config.FRONTEND_URL}/dashboard?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{config.FRONTEND_URL}/pricing?payment=cancelled",
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout session: {e}")
        raise PaymentProviderError("Failed to create checkout session", str(e))

    logger.info(f"Created checkout session: session_id={session['id']}, user_id={user_id}, plan={plan}")
    return {"id": session["id"], "url": session["url"]}


def retrieve_checkout_session(session_id: str) -> Dict[str, Any]:
    _client_ready()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving checkout session {session_id}: {e}")
        raise PaymentProviderError("Failed to retrieve checkout session", str(e))
    return _as_dict(session)


def retrieve_subscription(subscription_id: str) -> Dict[str, Any]:
    _client_ready()
    try:
        subscription = stripe.Subscription.retrieve(subscription_id)
    except stripe.StripeError as e:
        logger.warning(f"Stripe error retrieving subscription {subscription_id}: {e}")
        raise PaymentProviderError("Failed to retrieve subscription", str(e))
    return _as_dict(subscription)


def cancel_subscription_at_period_end(subscription_id: str) -> Dict[str, Any]:
    """Schedule cancellation; access is kept until the period ends."""
    _client_ready()
    try:
        subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
    except stripe.StripeError as e:
        logger.error(f"Stripe error cancelling subscription {subscription_id}: {e}")
        raise PaymentProviderError("Failed to cancel subscription", str(e))

    logger.info(f"Subscription scheduled for cancellation: subscription_id={subscription_id}")
    return _as_dict(subscription)


def construct_webhook_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify and parse a Stripe webhook event.

    Args:
        payload: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Parsed event dictionary

    Raises:
        ConfigurationError: If the webhook secret is missing
        WebhookVerificationError: If the payload or signature is invalid
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        raise ConfigurationError("Webhook secret not configured")

    if not signature:
        logger.error("Webhook request is missing the Stripe-Signature header")
        raise WebhookVerificationError("Missing stripe-signature header")

    try:
        stripe.Webhook.construct_event(payload, signature, config.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise WebhookVerificationError(f"Invalid webhook payload: {e}")
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise WebhookVerificationError(f"Invalid signature: {e}")

    # Signature covers the exact bytes, so the raw JSON is authentic
    event = json.loads(payload)
    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event
