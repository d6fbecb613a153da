"""
Pydantic schemas for payment endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    """Request schema for creating a checkout session."""
    planType: Optional[str] = Field(None, description="Plan type: 'pro' or 'business'")

    class Config:
        json_schema_extra = {
            "example": {
                "planType": "pro"
            }
        }


class CreateSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    success: bool = True
    url: str = Field(..., description="Stripe checkout session URL")
    sessionId: str = Field(..., description="Stripe checkout session ID")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "url": "https://checkout.stripe.com/c/pay/cs_test_...",
                "sessionId": "cs_test_..."
            }
        }


class VerifySessionRequest(BaseModel):
    sessionId: Optional[str] = Field(None, description="Stripe checkout session ID from the success redirect")


class VerifySessionResponse(BaseModel):
    success: bool
    paid: bool
    payment_status: Optional[str] = None
    updated: Optional[bool] = None
    already_updated: Optional[bool] = None
    plan: Optional[str] = None
    role: Optional[str] = None
    planExpiresAt: Optional[datetime] = None


class SubscriptionStatusResponse(BaseModel):
    """Current plan of the signed-in user."""
    success: bool = True
    plan: str
    role: str
    planStartedAt: Optional[datetime] = None
    planExpiresAt: Optional[datetime] = None
    stripeCustomerId: Optional[str] = None
    stripeSubscriptionId: Optional[str] = None
    hasActiveSubscription: bool = False


class CancelSubscriptionResponse(BaseModel):
    success: bool = True
    message: str
    planExpiresAt: Optional[datetime] = None


class WebhookAck(BaseModel):
    """Returned to Stripe for every verified event."""
    received: bool = True
    processed: bool = True
