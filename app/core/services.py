"""
Service layer base classes.

- ServiceResult: outcome of a webhook handler or reconciler call
- BaseService: classmethod-only service with a per-class logger

Reconcilers return a ServiceResult because a webhook that cannot be
applied (no entity id, an event that is stale for the current status) is
an expected outcome the router records and acknowledges. Gateway actions
raise core.exceptions subclasses instead, which views turn into HTTP
statuses.

Usage:
    from core.services import BaseService, ServiceResult

    class InvoiceReconciler(BaseService):
        @classmethod
        def on_expired(cls, payload: dict) -> ServiceResult[RegistrationInvoice]:
            invoice_id = (extract_entity(payload, "invoice") or {}).get("id")
            if not invoice_id:
                return ServiceResult.failure(
                    "invoice.expired without an invoice id",
                    error_code="INVALID_WEBHOOK_PAYLOAD",
                )
            ...
            return ServiceResult.success(invoice)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Success flag plus either data or an error.

    ``data`` may be None on success: an event for an entity this service
    has never seen is acknowledged without doing anything.

    Attributes:
        success: Whether the handler applied (or deliberately skipped) the event
        data: The saved entity, a list of them, or None
        error: Human-readable reason on failure
        error_code: Machine-readable code on failure (INVALID_WEBHOOK_PAYLOAD, ...)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T | None = None) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result.

        Example:
            return ServiceResult.failure(
                "token event without a token id",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )
        """
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Failed result for a handler that raised.

        The error code defaults to the exception class name in upper case.
        """
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless services.

    Subclasses expose classmethods only and log through ``get_logger`` so
    each service can be filtered by its dotted name, e.g.
    ``billing.services.coordinator.GatewayActionCoordinator``.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
