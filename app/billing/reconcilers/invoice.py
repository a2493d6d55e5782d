"""
Registration invoice reconciler.

Invoices leave ISSUED exactly once. invoice.paid and invoice.expired only
apply to an issued invoice; a repeat of the transition already taken is a
no-op and a conflicting terminal event is logged and ignored.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from billing.models import RegistrationInvoice
from billing.reconcilers.utils import extract_entity
from billing.state_machines import InvoiceStatus, NotificationStatus
from billing.store import EntityStore

if TYPE_CHECKING:
    from datetime import datetime


class InvoiceReconciler(BaseService):
    """State merge for RegistrationInvoice."""

    # =========================================================================
    # Webhook Entry Points
    # =========================================================================

    @classmethod
    def on_paid(
        cls, payload: dict, occurred_at: datetime | None = None
    ) -> ServiceResult[RegistrationInvoice | None]:
        """Handle invoice.paid."""
        entity = extract_entity(payload, "invoice") or {}
        payment_id = (extract_entity(payload, "payment") or {}).get("id") or entity.get(
            "payment_id"
        )
        return cls._reconcile(
            "invoice.paid",
            entity,
            lambda invoice: cls.apply_paid(invoice, entity, payment_id),
        )

    @classmethod
    def on_expired(
        cls, payload: dict, occurred_at: datetime | None = None
    ) -> ServiceResult[RegistrationInvoice | None]:
        """Handle invoice.expired."""
        entity = extract_entity(payload, "invoice") or {}
        return cls._reconcile("invoice.expired", entity, cls.apply_expired)

    @classmethod
    def _reconcile(cls, category, entity, mutate) -> ServiceResult[RegistrationInvoice | None]:
        logger = cls.get_logger()
        invoice_id = entity.get("id")

        if not invoice_id:
            logger.error(f"{category}: Could not extract invoice id")
            return ServiceResult.failure(
                "Could not extract invoice id from webhook",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        invoice = EntityStore.update(RegistrationInvoice, invoice_id, mutate)
        if invoice is None:
            logger.info(
                f"Invoice not found for {category} (OK)",
                extra={"invoice_id": invoice_id},
            )
            return ServiceResult.success(None)

        logger.info(
            f"Processed {category}",
            extra={"invoice_id": invoice_id, "status": invoice.status},
        )
        return ServiceResult.success(invoice)

    # =========================================================================
    # Merge Logic
    # =========================================================================

    @classmethod
    def apply_paid(
        cls, invoice: RegistrationInvoice, entity: dict, payment_id: str | None = None
    ) -> bool:
        if invoice.status != InvoiceStatus.ISSUED:
            cls._log_ignored(invoice, "invoice.paid", InvoiceStatus.PAID)
            return False
        invoice.mark_paid(
            amount_paid=int(entity.get("amount_paid") or invoice.amount),
            amount_due=int(entity.get("amount_due") or 0),
            payment_id=payment_id,
        )
        return True

    @classmethod
    def apply_expired(cls, invoice: RegistrationInvoice) -> bool:
        if invoice.status != InvoiceStatus.ISSUED:
            cls._log_ignored(invoice, "invoice.expired", InvoiceStatus.EXPIRED)
            return False
        invoice.expire()
        return True

    @classmethod
    def apply_cancelled(cls, invoice: RegistrationInvoice) -> bool:
        """Merge a gateway-confirmed cancellation. Caller checks the status first."""
        invoice.cancel()
        return True

    @classmethod
    def apply_notified(cls, invoice: RegistrationInvoice, medium: str) -> bool:
        """Flag the notification medium as sent."""
        field = f"{medium}_status"
        if getattr(invoice, field) == NotificationStatus.SENT:
            return False
        setattr(invoice, field, NotificationStatus.SENT)
        return True

    @classmethod
    def _log_ignored(cls, invoice: RegistrationInvoice, category: str, target: str) -> None:
        logger = cls.get_logger()
        extra = {"invoice_id": invoice.external_id, "status": invoice.status}
        if invoice.status == target:
            logger.info(f"Repeated {category}, invoice already {target}", extra=extra)
        else:
            logger.warning(f"Ignoring {category} for {invoice.status} invoice", extra=extra)
