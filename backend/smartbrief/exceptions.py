"""
SmartBrief Backend — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for every failure category.
Why:   Each category maps to one stable error code and one HTTP status, so the
       HTTP layer never has to inspect exception shapes to decide what happened.
How:   Each exception class carries a message and optional context dict, plus a
       class-level `code` (the discriminant clients see) and `status_code`.
       Global exception handlers (registered in main.py) render them.
Who:   Raised by services; caught by global handlers.

Exception Hierarchy:
    SmartBriefError (base)
    ├── UnauthenticatedError     → 401 (missing/malformed/expired credential)
    ├── AuthError                → 500 (identity lookup itself failed)
    ├── ForbiddenError           → 403 (role or ownership violation)
    ├── NotFoundError            → 404
    ├── ValidationError          → 400 (client can fix the input)
    │   └── InvalidAmountError   → 400 (non-positive credit amount)
    ├── ExtractionError          → 400 (uploaded document could not be decoded)
    ├── InsufficientCreditsError → 400
    ├── ProviderError            → 502 (upstream AI failure, incl. timeout)
    │   └── CircuitBreakerOpenError → 503 (provider temporarily rejected)
    └── InternalError            → 500 (storage or unexpected failure)

Security Note:
    `message` is safe to return to clients. `context` may be returned for
    client-side errors (validation, provider) but is only logged for
    AuthError and InternalError.
"""

from typing import Any, Dict, Optional
from uuid import UUID


class SmartBriefError(Exception):
    """
    Base exception for all SmartBrief application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
        code:     Stable machine-readable error category
        status_code: HTTP status used by the global handler
    """

    code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class UnauthenticatedError(SmartBriefError):
    """
    Raised when the bearer credential is missing, malformed, expired or invalid.

    Never raised for infrastructure problems; those become AuthError.
    """

    code = "unauthenticated"
    status_code = 401

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthError(SmartBriefError):
    """
    Raised when credential resolution fails for internal reasons
    (e.g. the identity store is unreachable).
    """

    code = "auth_error"
    status_code = 500

    def __init__(
        self,
        message: str = "Authentication could not be completed. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(SmartBriefError):
    """Raised when the caller's role or ownership does not allow the operation."""

    code = "forbidden"
    status_code = 403

    def __init__(
        self,
        message: str = "Access denied. Insufficient permissions.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SmartBriefError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that None into
    this exception so the handler can answer 404.
    """

    code = "not_found"
    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ValidationError(SmartBriefError):
    """
    Raised when client input fails a business rule.

    When:    Empty/too long/too short text, unsupported file type, oversized
             upload, unknown provider or model.
    HTTP:    400 Bad Request (FastAPI keeps 422 for schema-level errors)
    """

    code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidAmountError(ValidationError):
    """Raised when a credit amount is zero or negative."""

    code = "invalid_amount"

    def __init__(self, user_id: UUID, amount: int):
        super().__init__(
            message=f"Credit amount must be positive, got {amount}",
            field="amount",
            context={"user_id": str(user_id), "amount": amount},
        )
        self.user_id = user_id
        self.amount = amount


class ExtractionError(SmartBriefError):
    """Raised when an uploaded document cannot be decoded into text."""

    code = "extraction_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Could not read text from the uploaded file",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InsufficientCreditsError(SmartBriefError):
    """
    Raised when the user's balance cannot cover the requested operation.

    Always carries the user id; `balance` is the balance observed at the time
    of the check (None when the decrement itself was refused).
    """

    code = "insufficient_credits"
    status_code = 400

    def __init__(
        self,
        user_id: UUID,
        required: int = 1,
        balance: Optional[int] = None,
    ):
        ctx: Dict[str, Any] = {"user_id": str(user_id), "required": required}
        if balance is not None:
            ctx["balance"] = balance
        super().__init__(
            message="Insufficient credits. Please recharge your account.",
            context=ctx,
        )
        self.user_id = user_id
        self.required = required
        self.balance = balance


class ProviderError(SmartBriefError):
    """
    Raised when an AI provider call fails: timeout, missing credentials,
    upstream error or malformed response.

    A single failed attempt is terminal for the request; nothing is retried.
    `processing_time_ms` is the time spent up to the failure.
    """

    code = "provider_error"
    status_code = 502

    def __init__(
        self,
        provider: str,
        message: str,
        processing_time_ms: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["provider"] = provider
        ctx["processing_time_ms"] = processing_time_ms
        super().__init__(message=message, context=ctx)
        self.provider = provider
        self.processing_time_ms = processing_time_ms


class CircuitBreakerOpenError(ProviderError):
    """
    Raised when a provider's circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for the recovery timeout)
        → After recovery timeout → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    code = "provider_unavailable"
    status_code = 503

    def __init__(self, provider: str, recovery_time: int = 60):
        super().__init__(
            provider=provider,
            message=(
                f"AI provider '{provider}' is temporarily unavailable due to repeated failures. "
                f"Please retry in approximately {recovery_time} seconds."
            ),
            context={"recovery_time": recovery_time},
        )
        self.recovery_time = recovery_time


class InternalError(SmartBriefError):
    """
    Raised for storage failures and anything unanticipated.

    The message returned to the client is always generic; the context
    (statement, driver error) is logged server-side only.
    """

    code = "internal_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An internal error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
