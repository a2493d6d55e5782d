"""
Recurring token reconciler.

Tokens are created by Razorpay during a mandate registration and are only
referenced by orders. A token.* event therefore fans out to every order
whose ``token_id`` index matches, each updated in its own transaction.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from billing.models import Order
from billing.models.order import extract_token_id
from billing.reconcilers.utils import extract_entity
from billing.state_machines import TokenStatus
from billing.store import EntityStore

if TYPE_CHECKING:
    from datetime import datetime


class TokenReconciler(BaseService):
    """Merges token status into the orders that reference the token."""

    @classmethod
    def on_token_status(
        cls,
        payload: dict,
        category: str,
        occurred_at: datetime | None = None,
    ) -> ServiceResult[list[Order]]:
        """
        Handle token.confirmed|rejected|cancelled|paused.

        Args:
            payload: Envelope payload carrying ``token``
            category: Event category; its suffix is the new token status
            occurred_at: Envelope time

        Returns:
            ServiceResult with the updated orders (possibly empty)
        """
        logger = cls.get_logger()
        entity = extract_entity(payload, "token")
        token_id = (entity or {}).get("id")

        if not token_id:
            logger.error(f"{category}: Could not extract token id")
            return ServiceResult.failure(
                "Could not extract token id from webhook",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        status = category.rsplit(".", 1)[-1]
        if status not in TokenStatus.values:
            return ServiceResult.failure(
                f"Unsupported token event: {category}",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        reported = entity.get("recurring_details") or {}
        failure_reason = reported.get("failure_reason")
        if status == TokenStatus.REJECTED and not failure_reason:
            failure_reason = "Unknown reason"
        recurring_details = {"status": status, "failure_reason": failure_reason}

        orders = EntityStore.update_matching(
            Order,
            lambda order: cls.apply_token_status(order, token_id, recurring_details),
            token_id=token_id,
        )

        logger.info(
            f"Token status {status} applied",
            extra={"token_id": token_id, "order_count": len(orders)},
        )
        return ServiceResult.success(orders)

    @classmethod
    def apply_token_status(cls, order: Order, token_id: str, recurring_details: dict) -> bool:
        # The token may have been replaced between the lookup and the lock
        if extract_token_id(order.token) != token_id:
            return False
        if (order.token or {}).get("recurring_details") == recurring_details:
            return False
        order.token = {
            **order.token,
            "recurring_details": recurring_details,
            "updated_at": int(time.time()),
        }
        return True
