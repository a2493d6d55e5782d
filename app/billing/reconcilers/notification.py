"""
Order notification reconciler.

order.notification.delivered and order.notification.failed report whether
Razorpay told the customer about an upcoming recurring debit. The latest
report is kept as ``notes["notification"]`` on the order; the rest of the
notes bag is left alone. Delivered or failed is taken from the event
category.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from billing.models import Order
from billing.reconcilers.utils import extract_entity
from billing.store import EntityStore

if TYPE_CHECKING:
    from datetime import datetime


class NotificationReconciler(BaseService):
    """Merges notification delivery reports into order notes."""

    @classmethod
    def on_notification(
        cls,
        payload: dict,
        category: str = "order.notification.delivered",
        occurred_at: datetime | None = None,
    ) -> ServiceResult[Order | None]:
        """
        Handle order.notification.delivered / order.notification.failed.

        Returns:
            ServiceResult with the updated order, or None if unknown
        """
        logger = cls.get_logger()
        entity = extract_entity(payload, "notification") or {}
        order_id = entity.get("order_id") or (extract_entity(payload, "order") or {}).get("id")

        if not order_id:
            logger.error(f"{category}: Could not extract order id")
            return ServiceResult.failure(
                "Could not extract order id from webhook",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        status = category.rsplit(".", 1)[-1]
        notification = {
            "id": entity.get("id"),
            "status": status,
            "delivered_at": entity.get("delivered_at") if status == "delivered" else None,
            "payment_after": entity.get("payment_after"),
        }

        order = EntityStore.update(
            Order,
            order_id,
            lambda instance: cls.apply_notification(instance, notification),
        )
        if order is None:
            logger.info(
                f"Order not found for {category} (OK)",
                extra={"order_id": order_id},
            )
            return ServiceResult.success(None)

        logger.info(
            "Order notification recorded",
            extra={"order_id": order_id, "notification_status": status},
        )
        return ServiceResult.success(order)

    @classmethod
    def apply_notification(cls, order: Order, notification: dict) -> bool:
        if (order.notes or {}).get("notification") == notification:
            return False
        order.merge_notes(notification=notification)
        return True
