"""
Order reconciler.

order.paid is the gateway's final word on an order, so it is applied from
any current status. An order.paid for an order we never created is
acknowledged and dropped; orders are only created by the provisioning API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from billing.models import Order
from billing.reconcilers.utils import extract_entity
from billing.state_machines import OrderStatus
from billing.store import EntityStore

if TYPE_CHECKING:
    from datetime import datetime


class OrderReconciler(BaseService):
    """State merge for Order."""

    @classmethod
    def on_paid(
        cls, payload: dict, occurred_at: datetime | None = None
    ) -> ServiceResult[Order | None]:
        """
        Handle order.paid.

        Args:
            payload: Envelope payload carrying ``order`` (and usually ``payment``)
            occurred_at: Envelope time

        Returns:
            ServiceResult with the updated order, or None if unknown
        """
        logger = cls.get_logger()
        entity = extract_entity(payload, "order")
        order_id = (entity or {}).get("id")

        if not order_id:
            logger.error("order.paid: Could not extract order id")
            return ServiceResult.failure(
                "Could not extract order id from webhook",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        order = EntityStore.update(Order, order_id, cls.apply_paid)
        if order is None:
            logger.info(
                "Order not found for order.paid (OK)",
                extra={"order_id": order_id},
            )
            return ServiceResult.success(None)

        logger.info("Order marked paid", extra={"order_id": order_id})
        return ServiceResult.success(order)

    @classmethod
    def apply_paid(cls, order: Order) -> bool:
        if order.status == OrderStatus.PAID:
            return False
        order.mark_paid()
        return True
