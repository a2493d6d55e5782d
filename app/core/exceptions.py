"""
Application error hierarchy.

Every error raised by a service carries a machine-readable ``error_code``,
optional ``details`` and the HTTP status the API answers with:

    BaseApplicationError           500
    ├── ValidationError            400  input rejected before any side effect
    ├── NotFoundError              404  referenced entity is not stored
    ├── ConflictError              409  not applicable to the current status
    └── ExternalServiceError       503  upstream failed, retry may succeed

Subclasses override ``default_error_code`` and, where the status differs
from their parent's, ``status_code``.

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        f"Payment {payment_id} not found",
        details={"payment_id": payment_id},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for service-layer errors.

    Attributes:
        message: Human-readable description, returned to API callers
        error_code: Machine-readable code (defaults to ``default_error_code``)
        details: Identifiers and values that explain the failure
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        API error body.

        Example:
            {
                "error": "Payment pay_123 is already captured",
                "error_code": "ALREADY_PROCESSED",
                "details": {"payment_id": "pay_123", "status": "captured"}
            }
        """
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Input failed a service-layer check (amount, speed, medium, signature)."""

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class NotFoundError(BaseApplicationError):
    """Referenced entity has no stored row."""

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class ConflictError(BaseApplicationError):
    """
    Action does not apply to the entity's current status.

    Capturing a captured payment or cancelling a paid invoice. Retrying
    the same request gives the same answer.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Call to an upstream service failed.

    Nothing was written locally. Subclasses that represent a permanent
    rejection lower ``status_code`` to 422.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    status_code: int = 503
