"""
Payment endpoints: Stripe checkout, webhook, verification, status and
cancellation.
"""
import logging
from fastapi import APIRouter, Depends, Request, Header, status
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.auth_dependency import get_db, get_current_user_obj
from app.schemas.billing import (
    CreateSessionRequest,
    CreateSessionResponse,
    VerifySessionRequest,
    VerifySessionResponse,
    SubscriptionStatusResponse,
    CancelSubscriptionResponse,
    WebhookAck,
)
from app.services import billing_service, stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment", tags=["Payment"])


@router.post("/create-session", response_model=CreateSessionResponse)
def create_session(
    body: CreateSessionRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """
    Create a Stripe Checkout session for the pro or business plan.

    Returns the hosted checkout URL to redirect the browser to.
    """
    logger.info(f"Creating checkout session: user_id={user.id}, planType={body.planType}")
    session = billing_service.create_checkout_session(db, user, body.planType)
    return CreateSessionResponse(url=session["url"], sessionId=session["id"])


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
):
    """
    Receive Stripe events.

    Verification failures return 400. Once verified, the event is always
    acknowledged; processing errors are logged and reported as
    processed=false so Stripe does not retry them.
    """
    payload = await request.body()
    event = stripe_service.construct_webhook_event(payload, stripe_signature)

    try:
        billing_service.process_webhook_event(db, event)
    except Exception:
        db.rollback()
        logger.exception(f"Webhook processing failed: type={event.get('type')}, id={event.get('id')}")
        return WebhookAck(received=True, processed=False)

    return WebhookAck(received=True, processed=True)


@router.post("/verify-session", response_model=VerifySessionResponse, response_model_exclude_none=True)
def verify_session(
    body: VerifySessionRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """Apply a paid checkout right after the success redirect, in case the webhook is late."""
    return billing_service.verify_checkout_session(db, body.sessionId, user)


@router.get("/status", response_model=SubscriptionStatusResponse)
def subscription_status(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return billing_service.get_subscription_status(db, user)


@router.post("/cancel-subscription", status_code=status.HTTP_200_OK, response_model=CancelSubscriptionResponse)
def cancel_subscription(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """Cancel at the end of the current billing period; the plan stays until then."""
    return billing_service.cancel_subscription(db, user)
