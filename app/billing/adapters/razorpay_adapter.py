"""
Razorpay API adapter for billing operations.

This module provides the RazorpayAdapter class which encapsulates all
Razorpay API interactions. All Razorpay calls go through this adapter to
ensure consistent error handling, timeouts and observability.

Features:
- Bounded timeout on every API call (RAZORPAY_API_TIMEOUT_SECONDS)
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Responses returned as plain dicts; callers pick the fields they need

Configuration (via settings):
- RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET: API credentials
- RAZORPAY_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from billing.adapters import RazorpayAdapter

    payment = RazorpayAdapter.capture_payment("pay_123", amount=5000, currency="INR")
    refund = RazorpayAdapter.refund_payment("pay_123", amount=2000, speed="normal")
    RazorpayAdapter.cancel_invoice("inv_123")
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import razorpay
import requests
from django.conf import settings

from billing.exceptions import (
    GatewayError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Razorpay Adapter
# =============================================================================


class RazorpayAdapter:
    """
    Adapter for Razorpay API operations.

    All methods are classmethods - no instance state is maintained.
    Each call builds a client from settings so credentials can be
    overridden per test.

    Usage:
        order = RazorpayAdapter.create_order({"amount": 50000, "currency": "INR"})
        RazorpayAdapter.notify_invoice("inv_123", "sms")
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _get_client() -> razorpay.Client:
        """Build a Razorpay client from the configured credentials."""
        return razorpay.Client(
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)
        )

    @staticmethod
    def _timeout() -> int:
        return getattr(settings, "RAZORPAY_API_TIMEOUT_SECONDS", 10)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _call(cls, operation: str, log_context: dict[str, Any], func, *args, **kwargs) -> dict:
        """
        Run one SDK call with timing, logging and error translation.

        Args:
            operation: Operation name for logs
            log_context: Identifiers to attach to every log line
            func: Bound SDK method
            *args, **kwargs: Passed to func, plus the configured timeout

        Returns:
            The provider response as a dict
        """
        logger = cls.get_logger()
        log_context = {"operation": operation, **log_context}

        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        try:
            response = func(*args, timeout=cls._timeout(), **kwargs)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_gateway_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Razorpay operation completed",
            extra={
                **log_context,
                "response_id": (response or {}).get("id"),
                "duration_ms": duration_ms,
            },
        )
        return response or {}

    # =========================================================================
    # Provisioning
    # =========================================================================

    @classmethod
    def create_customer(cls, data: dict[str, Any]) -> dict:
        """Create a customer (POST /customers)."""
        client = cls._get_client()
        return cls._call(
            "create_customer",
            {"email": data.get("email")},
            client.customer.create,
            data=data,
        )

    @classmethod
    def create_order(cls, data: dict[str, Any]) -> dict:
        """Create an order (POST /orders)."""
        client = cls._get_client()
        return cls._call(
            "create_order",
            {"amount": data.get("amount"), "receipt": data.get("receipt")},
            client.order.create,
            data=data,
        )

    @classmethod
    def create_recurring_payment(cls, data: dict[str, Any]) -> dict:
        """Charge a saved token (POST /payments/create/recurring)."""
        client = cls._get_client()
        return cls._call(
            "create_recurring_payment",
            {"order_id": data.get("order_id"), "customer_id": data.get("customer_id")},
            client.payment.createRecurring,
            data=data,
        )

    @classmethod
    def create_invoice(cls, data: dict[str, Any]) -> dict:
        """Create a registration invoice / payment link (POST /invoices)."""
        client = cls._get_client()
        return cls._call(
            "create_invoice",
            {"customer_id": data.get("customer_id"), "amount": data.get("amount")},
            client.invoice.create,
            data=data,
        )

    @classmethod
    def list_customer_tokens(cls, customer_id: str) -> dict:
        """List saved tokens of a customer (GET /customers/:id/tokens)."""
        client = cls._get_client()
        return cls._call(
            "list_customer_tokens",
            {"customer_id": customer_id},
            client.token.all,
            customer_id,
        )

    @classmethod
    def delete_customer_token(cls, customer_id: str, token_id: str) -> dict:
        """Delete a saved token (DELETE /customers/:id/tokens/:token_id)."""
        client = cls._get_client()
        return cls._call(
            "delete_customer_token",
            {"customer_id": customer_id, "token_id": token_id},
            client.token.delete,
            customer_id,
            token_id,
        )

    # =========================================================================
    # Reconciliation Actions
    # =========================================================================

    @classmethod
    def capture_payment(cls, payment_id: str, amount: int, currency: str) -> dict:
        """
        Capture an authorized payment.

        Args:
            payment_id: Razorpay payment id
            amount: Amount to capture in minor units
            currency: ISO currency code

        Returns:
            The captured payment entity

        Raises:
            GatewayRequestError: Rejected (already captured, amount mismatch)
            GatewayUnavailableError: Network or server failure
            GatewayTimeoutError: Request timed out
        """
        client = cls._get_client()
        return cls._call(
            "capture_payment",
            {"payment_id": payment_id, "amount": amount},
            client.payment.capture,
            payment_id,
            amount,
            {"currency": currency},
        )

    @classmethod
    def refund_payment(
        cls,
        payment_id: str,
        amount: int | None = None,
        speed: str = "normal",
        notes: dict[str, Any] | None = None,
    ) -> dict:
        """
        Refund a captured payment, fully or partially.

        Args:
            payment_id: Razorpay payment id
            amount: Amount in minor units (None refunds the full payment)
            speed: "normal" or "optimum"
            notes: Free-form notes attached to the refund

        Returns:
            The refund entity
        """
        data: dict[str, Any] = {"speed": speed}
        if amount is not None:
            data["amount"] = amount
        if notes:
            data["notes"] = notes

        client = cls._get_client()
        return cls._call(
            "refund_payment",
            {"payment_id": payment_id, "amount": amount, "speed": speed},
            client.payment.refund,
            payment_id,
            data,
        )

    @classmethod
    def cancel_invoice(cls, invoice_id: str) -> dict:
        """Cancel an issued invoice (POST /invoices/:id/cancel)."""
        client = cls._get_client()
        return cls._call(
            "cancel_invoice",
            {"invoice_id": invoice_id},
            client.invoice.cancel,
            invoice_id,
        )

    @classmethod
    def notify_invoice(cls, invoice_id: str, medium: str) -> dict:
        """Resend an invoice notification (POST /invoices/:id/notify_by/:medium)."""
        client = cls._get_client()
        return cls._call(
            "notify_invoice",
            {"invoice_id": invoice_id, "medium": medium},
            client.invoice.notify_by,
            invoice_id,
            medium,
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_gateway_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Razorpay SDK and transport exceptions to domain exceptions.

        Args:
            error: The raised exception
            log_context: Logging context dict
            duration_ms: Operation duration for logging

        Raises:
            GatewayRequestError: Bad request or gateway decline (permanent)
            GatewayUnavailableError: Connection failure or server error
            GatewayTimeoutError: Request timed out
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, requests.exceptions.Timeout):
            logger.warning("Razorpay request timed out", extra=log_context)
            raise GatewayTimeoutError(
                "Razorpay request timed out. Please retry.",
                gateway_code="timeout",
            )

        elif isinstance(error, requests.exceptions.ConnectionError):
            logger.error(
                "Connection error to Razorpay",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not connect to Razorpay. Please retry.",
                gateway_code="connection_error",
            )

        elif isinstance(error, razorpay.errors.ServerError):
            logger.error(
                "Razorpay server error",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                str(error) or "Razorpay service error. Please retry.",
                gateway_code="server_error",
            )

        elif isinstance(error, razorpay.errors.BadRequestError):
            logger.warning(
                "Razorpay rejected request",
                extra={**log_context, "error": str(error)},
            )
            raise GatewayRequestError(
                str(error) or "Razorpay rejected the request",
                gateway_code="bad_request",
            )

        elif isinstance(error, razorpay.errors.GatewayError):
            logger.warning(
                "Razorpay gateway error",
                extra={**log_context, "error": str(error)},
            )
            raise GatewayRequestError(
                str(error) or "Razorpay gateway error",
                gateway_code="gateway_error",
            )

        else:
            logger.error(
                f"Unexpected error from Razorpay: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                f"Unexpected Razorpay error: {error}",
                gateway_code="unknown_error",
            )
