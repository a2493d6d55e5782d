"""
Billing-specific exceptions for reconciliation and gateway operations.

Exception Hierarchy:
    BillingValidationError (ValidationError) - Rejected input, no side effects
    ├── InvalidSignatureError - Payment confirmation signature mismatch
    └── InvalidMediumError - Notification medium is not sms/email

    BillingNotFoundError (NotFoundError) - Referenced entity absent

    AlreadyProcessedError (ConflictError) - Operation already applied
    InvalidStateError (ConflictError) - Operation not valid for current status
    InvalidStateTransitionError (ConflictError) - FSM transition not allowed

    GatewayError (ExternalServiceError) - Razorpay RPC failed
    ├── GatewayRequestError - Rejected by Razorpay (permanent)
    ├── GatewayUnavailableError - Network or 5xx failure (transient, retry)
    └── GatewayTimeoutError - Request timed out (transient, retry)

Usage:
    from billing.exceptions import AlreadyProcessedError, BillingNotFoundError

    if payment is None:
        raise BillingNotFoundError(
            f"Payment {payment_id} not found",
            details={"payment_id": payment_id},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Input Errors
# =============================================================================


class BillingValidationError(ValidationError):
    """
    Raised when a billing request is malformed.

    Rejected before any gateway call or database write.

    Example:
        if amount < settings.BILLING_MINIMUM_AMOUNT:
            raise BillingValidationError(
                "Amount must be at least 100",
                details={"amount": amount},
            )
    """

    default_error_code: str = "BILLING_VALIDATION_ERROR"


class InvalidSignatureError(BillingValidationError):
    """
    Raised when a payment confirmation signature does not match.

    The signature is HMAC-SHA256 over ``"{order_id}|{payment_id}"`` with
    the API key secret.
    """

    default_error_code: str = "INVALID_SIGNATURE"


class InvalidMediumError(BillingValidationError):
    """Raised when an invoice notification medium is not sms or email."""

    default_error_code: str = "INVALID_MEDIUM"


# =============================================================================
# Lookup Errors
# =============================================================================


class BillingNotFoundError(NotFoundError):
    """
    Raised when a customer, order, payment or invoice cannot be found.

    Example:
        raise BillingNotFoundError(
            f"Invoice {invoice_id} not found",
            error_code="INVOICE_NOT_FOUND",
            details={"invoice_id": invoice_id},
        )
    """

    default_error_code: str = "BILLING_NOT_FOUND"


# =============================================================================
# State Conflicts
# =============================================================================


class AlreadyProcessedError(ConflictError):
    """
    Raised when an action was already applied to the entity.

    Capturing a captured payment is the canonical case. Callers must not
    retry these.
    """

    default_error_code: str = "ALREADY_PROCESSED"


class InvalidStateError(ConflictError):
    """
    Raised when an action is not applicable to the entity's current status.

    Example:
        raise InvalidStateError(
            f"Cannot refund payment in '{payment.status}' status",
            details={"current_status": payment.status, "action": "refund"},
        )
    """

    default_error_code: str = "INVALID_STATE"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a django-fsm transition is not allowed.

    Wraps ``TransitionNotAllowed`` so callers see the standard error format.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Gateway Errors
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for all Razorpay RPC failures.

    Attributes:
        gateway_code: Razorpay's error code, when the gateway returned one
        is_retryable: Whether the caller may retry the same request
        status_code: 422 for rejections, 503 for the retryable subclasses

    The message is the provider's description so callers can surface it.
    Nothing is written locally when a gateway call fails.
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False
    status_code: int = 422

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_code:
            details["gateway_code"] = gateway_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway_code = gateway_code


class GatewayRequestError(GatewayError):
    """
    Razorpay rejected the request.

    Bad parameters, an unknown payment id, or an operation the gateway
    refuses (capture amount mismatch, refund above the captured amount).
    Retrying the same request will fail the same way.
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


class GatewayUnavailableError(GatewayError):
    """
    Razorpay could not be reached or answered with a server error.

    Transient. Safe to retry with backoff.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True
    status_code: int = 503


class GatewayTimeoutError(GatewayError):
    """
    Razorpay call exceeded RAZORPAY_API_TIMEOUT_SECONDS.

    IMPORTANT: The operation may have succeeded on Razorpay's side. The
    local record is untouched; the matching webhook or a retry converges
    the state.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True
    status_code: int = 503


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Input
    "BillingValidationError",
    "InvalidSignatureError",
    "InvalidMediumError",
    # Lookup
    "BillingNotFoundError",
    # State
    "AlreadyProcessedError",
    "InvalidStateError",
    "InvalidStateTransitionError",
    # Gateway
    "GatewayError",
    "GatewayRequestError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
]
