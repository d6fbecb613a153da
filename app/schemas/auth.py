"""
Pydantic schemas for authentication endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    """Signed-in user; role always mirrors plan."""
    id: int = Field(..., description="User ID")
    googleId: Optional[str] = Field(None, description="Google subject identifier")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Email address")
    avatar: Optional[str] = Field(None, description="Profile picture URL")
    provider: Optional[str] = Field(None, description="Login provider")
    createdAt: Optional[datetime] = None
    lastLogin: Optional[datetime] = None
    plan: str = Field(..., description="free, pro or business")
    role: str = Field(..., description="Legacy alias of plan")
    planStartedAt: Optional[datetime] = None
    planExpiresAt: Optional[datetime] = None
    stripeCustomerId: Optional[str] = None
    stripeSubscriptionId: Optional[str] = None
    hasActivePlan: bool = Field(False, description="Paid plan that has not expired")

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "googleId": "109876543210",
                "name": "Jane Doe",
                "email": "jane@example.com",
                "avatar": "https://lh3.googleusercontent.com/a/photo",
                "provider": "google",
                "plan": "pro",
                "role": "pro",
                "planExpiresAt": "2026-02-15T10:30:00",
                "hasActivePlan": True
            }
        }


class MeResponse(BaseModel):
    user: Optional[UserResponse] = None
