# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Errors should tell HOW to fix, not just WHAT failed.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class VerifloException(Exception):
    """
    Base exception for the Veriflo API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "VERIFLO_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Credit & Quota Exceptions
# =============================================================================

class InsufficientCreditsError(VerifloException):
    """
    Raised when a charge exceeds the available balance.

    Never retried automatically: the user has to top up or wait for the
    monthly reset.
    """

    def __init__(self, available: int, required: int):
        super().__init__(
            message=f"Insufficient credits. Required {required}, available {available}.",
            code="INSUFFICIENT_CREDITS",
            status_code=402,
            suggestion="Upgrade your plan or buy a credit add-on to continue",
            details={"required": required, "available": available},
        )
        self.available = available
        self.required = required


class ConcurrentUpdateError(VerifloException):
    """Raised when a balance kept changing underneath every charge attempt."""

    def __init__(self, user_id: str, attempts: int):
        super().__init__(
            message="Could not update credits due to concurrent updates. Please retry.",
            code="CONCURRENT_UPDATE",
            status_code=409,
            suggestion="Retry the request; no credits were charged",
            details={"user_id": user_id, "attempts": attempts},
        )
        self.attempts = attempts


class InsufficientDocumentsError(VerifloException):
    """Raised when the monthly document quota is used up."""

    def __init__(self, used: int, limit: int):
        super().__init__(
            message=f"Insufficient document quota. Used {used}/{limit}.",
            code="INSUFFICIENT_DOCUMENTS",
            status_code=402,
            suggestion="Buy a document add-on or upgrade your plan",
            details={"used": used, "limit": limit},
        )
        self.used = used
        self.limit = limit


class ProfileNotFoundError(VerifloException):
    """Raised when a user has no profile row."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"Profile not found: {user_id}",
            code="PROFILE_NOT_FOUND",
            status_code=404,
            suggestion="Sign out and sign in again so your profile gets created",
            details={"user_id": user_id},
        )


class InvalidPlanError(VerifloException):
    """Raised when a plan name is not one of the known tiers."""

    def __init__(self, plan: str):
        super().__init__(
            message=f"Invalid plan type: {plan}",
            code="INVALID_PLAN",
            status_code=400,
            suggestion="Use one of: free, starter, pro, enterprise",
            details={"plan": plan},
        )


# =============================================================================
# Input Exceptions
# =============================================================================

class InvalidRequestError(VerifloException):
    """Raised when a request passes schema validation but is still unusable."""

    def __init__(self, message: str, suggestion: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="INVALID_REQUEST",
            status_code=400,
            suggestion=suggestion,
            details=details,
        )


class FileTooLargeError(VerifloException):
    """Raised when an uploaded document exceeds the size limit."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            suggestion=f"Upload a file smaller than {max_mb}MB",
            details={"size_mb": size_mb, "max_mb": max_mb},
        )


class UnsupportedFileTypeError(VerifloException):
    """Raised when a document MIME type cannot be sent to the vision model."""

    def __init__(self, mime_type: str, allowed: list[str]):
        super().__init__(
            message=f"Invalid file type: {mime_type}",
            code="UNSUPPORTED_FILE_TYPE",
            status_code=400,
            suggestion="Upload a JPEG, PNG, WebP or PDF document",
            details={"mime_type": mime_type, "allowed": allowed},
        )


# =============================================================================
# LLM Exceptions
# =============================================================================

class LLMQuotaExceededError(VerifloException):
    """Raised when Gemini rejects a call for quota reasons."""

    def __init__(self, error: str):
        super().__init__(
            message="AI quota exceeded. Please wait a moment and try again.",
            code="LLM_QUOTA_EXCEEDED",
            status_code=429,
            suggestion="Retry in a minute; your credits were refunded",
            details={"error": error},
        )


class LLMTimeoutError(VerifloException):
    """Raised when Gemini does not answer in time."""

    def __init__(self, timeout_seconds: int):
        super().__init__(
            message="Request timed out. Please try again.",
            code="LLM_TIMEOUT",
            status_code=504,
            suggestion="Retry with a smaller document or a shorter question",
            details={"timeout_seconds": timeout_seconds},
        )


class LLMServiceError(VerifloException):
    """Raised for any other Gemini failure."""

    def __init__(self, error: str, code: str = "LLM_ERROR"):
        super().__init__(
            message=f"AI service error: {error}",
            code=code,
            status_code=502,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error},
        )


# =============================================================================
# Payment & Email Exceptions
# =============================================================================

class PaymentNotConfiguredError(VerifloException):
    """Raised when Razorpay keys are missing."""

    def __init__(self):
        super().__init__(
            message="Payment not configured",
            code="PAYMENT_NOT_CONFIGURED",
            status_code=500,
            suggestion="Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET",
        )


class PaymentError(VerifloException):
    """Raised when an order cannot be created or a payment cannot be verified."""

    def __init__(self, message: str, status_code: int = 400, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="PAYMENT_ERROR",
            status_code=status_code,
            suggestion="Check the payment details or contact support",
            details=details,
        )


class EmailDeliveryError(VerifloException):
    """Raised when a transactional email could not be sent."""

    def __init__(self, template: str):
        super().__init__(
            message=f"Failed to send {template} email",
            code="EMAIL_DELIVERY_FAILED",
            status_code=502,
            suggestion="Try again later; check ZEPTOMAIL_API_KEY if this persists",
            details={"template": template},
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def veriflo_exception_handler(
    request: Request,
    exc: VerifloException
) -> JSONResponse:
    """
    Convert VerifloException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": str(exc),
        }
    )
