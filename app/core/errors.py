"""
Application exceptions.

Services raise these; the handler registered in app.main turns them into
JSON responses with a machine-readable error code.
"""
from typing import Optional, Any, Dict


class AppError(Exception):
    """Base exception for all ResumeCraft errors."""

    status_code = 500
    code = "internal_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        payload = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        payload.update(self.details)
        return payload


class ValidationError(AppError):
    """Invalid or missing caller input."""

    status_code = 400
    code = "invalid_request"


class NotAuthenticatedError(AppError):
    status_code = 401
    code = "not_authenticated"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class PlanLimitExceededError(AppError):
    """Raised when a free-plan user hits the resume quota."""

    status_code = 403
    code = "plan_limit_exceeded"

    def __init__(self, plan: str, limit: int, current: int):
        super().__init__(
            f"Free plan limit exceeded. You can only create {limit} resumes. "
            "Upgrade to Pro or Business for unlimited access.",
            details={"plan": plan, "maxResumes": limit, "currentResumes": current},
        )


class SessionOwnershipError(AppError):
    """Raised when a checkout session belongs to a different user."""

    status_code = 403
    code = "session_forbidden"

    def __init__(self, session_id: str):
        super().__init__(
            "Session does not belong to authenticated user",
            details={"sessionId": session_id},
        )


class ConfigurationError(AppError):
    """A required setting (Stripe keys, price IDs, OAuth client) is missing."""

    status_code = 500
    code = "not_configured"


class PaymentProviderError(AppError):
    """Error communicating with Stripe."""

    status_code = 502
    code = "payment_provider_error"

    def __init__(self, message: str, provider_error: Optional[str] = None):
        super().__init__(
            message,
            details={"providerError": provider_error} if provider_error else {},
        )


class WebhookVerificationError(AppError):
    """Raised when a webhook signature or payload cannot be verified."""

    status_code = 400
    code = "webhook_verification_failed"


class OAuthError(AppError):
    """Google sign-in failed (bad state, code exchange or profile fetch)."""

    status_code = 400
    code = "oauth_failed"


class OAuthInProgressError(AppError):
    """A second OAuth start arrived while one is already under way."""

    status_code = 429
    code = "oauth_in_progress"
