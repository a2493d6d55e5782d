"""
Provisioning of gateway entities.

Creates customers, orders, recurring charges and registration invoices on
Razorpay and records what Razorpay returned. These are the only places
where billing rows are created before any webhook mentions them.

Usage:
    from billing.services import BillingProvisioningService

    customer = BillingProvisioningService.create_customer(
        name="Asha Rao", email="asha@example.com", contact="+919800000001"
    )
    order = BillingProvisioningService.create_order(
        customer_id=customer.external_id, amount=50000
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService

from billing.exceptions import BillingNotFoundError, BillingValidationError
from billing.models import Customer, Order, Payment, RegistrationInvoice
from billing.store import EntityStore

if TYPE_CHECKING:
    from typing import Any


class BillingProvisioningService(BaseService):
    """
    Gateway-first creation of billing entities.

    Every method calls Razorpay first and inserts the local row only when
    the gateway accepted the request, keyed by the id Razorpay assigned.
    """

    @classmethod
    def get_gateway_adapter(cls) -> type:
        # Shares the coordinator's adapter so one injection covers both
        from billing.services.coordinator import GatewayActionCoordinator

        return GatewayActionCoordinator.get_gateway_adapter()

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    def create_customer(
        cls,
        name: str,
        email: str,
        contact: str,
        gstin: str = "",
        notes: dict[str, Any] | None = None,
    ) -> Customer:
        """
        Create a customer on Razorpay and store it.

        Raises:
            GatewayError: Razorpay rejected or could not be reached
        """
        data: dict[str, Any] = {
            "name": name,
            "email": email,
            "contact": contact,
            "notes": notes or {},
            "fail_existing": "0",
        }
        if gstin:
            data["gstin"] = gstin

        response = cls.get_gateway_adapter().create_customer(data)

        customer = EntityStore.create(
            Customer,
            response["id"],
            name=response.get("name") or name,
            email=response.get("email") or email,
            contact=response.get("contact") or contact,
            gstin=response.get("gstin") or gstin,
            notes=response.get("notes") or notes or {},
        )

        cls.get_logger().info(
            f"Created customer {customer.external_id}",
            extra={"customer_id": customer.external_id},
        )
        return customer

    @classmethod
    def list_customer_tokens(cls, customer_id: str) -> list[dict[str, Any]]:
        """
        Return the saved recurring tokens of a known customer.

        Raises:
            BillingNotFoundError: Unknown customer
            GatewayError: Razorpay rejected or could not be reached
        """
        if EntityStore.get(Customer, customer_id) is None:
            raise BillingNotFoundError(
                f"Customer {customer_id} not found",
                details={"customer_id": customer_id},
            )

        response = cls.get_gateway_adapter().list_customer_tokens(customer_id)
        return response.get("items", [])

    @classmethod
    def delete_customer_token(cls, customer_id: str, token_id: str) -> bool:
        """
        Delete a saved recurring token of a known customer.

        Returns:
            Whether Razorpay reports the token as deleted

        Raises:
            BillingNotFoundError: Unknown customer
            GatewayError: Razorpay rejected or could not be reached
        """
        if EntityStore.get(Customer, customer_id) is None:
            raise BillingNotFoundError(
                f"Customer {customer_id} not found",
                details={"customer_id": customer_id},
            )

        response = cls.get_gateway_adapter().delete_customer_token(customer_id, token_id)
        deleted = bool(response.get("deleted"))

        cls.get_logger().info(
            f"Deleted token {token_id}" if deleted else f"Token {token_id} not deleted",
            extra={"customer_id": customer_id, "token_id": token_id},
        )
        return deleted

    # =========================================================================
    # Orders & Recurring Payments
    # =========================================================================

    @classmethod
    def create_order(
        cls,
        customer_id: str,
        amount: int,
        currency: str | None = None,
        receipt: str = "",
        notes: dict[str, Any] | None = None,
        token: dict[str, Any] | None = None,
        payment_capture: bool = True,
    ) -> Order:
        """
        Create an order on Razorpay and store it as CREATED.

        Args:
            customer_id: Owning customer (Razorpay id)
            amount: Order amount in minor units, at least BILLING_MINIMUM_AMOUNT
            currency: Currency (defaults to BILLING_DEFAULT_CURRENCY)
            receipt: Merchant receipt reference
            notes: Free-form notes
            token: Recurring token sub-record for mandate orders
            payment_capture: Let Razorpay capture automatically

        Raises:
            BillingValidationError: Amount below the minimum
            GatewayError: Razorpay rejected or could not be reached
        """
        cls._validate_amount(amount)
        currency = currency or settings.BILLING_DEFAULT_CURRENCY

        data: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "payment_capture": 1 if payment_capture else 0,
            "customer_id": customer_id,
        }
        if token:
            data["token"] = token

        response = cls.get_gateway_adapter().create_order(data)

        order = EntityStore.create(
            Order,
            response["id"],
            customer_id=customer_id,
            amount=response.get("amount") or amount,
            currency=response.get("currency") or currency,
            receipt=response.get("receipt") or receipt,
            notes=response.get("notes") or notes or {},
            token=response.get("token") or token,
        )

        cls.get_logger().info(
            f"Created order {order.external_id}",
            extra={"order_id": order.external_id, "customer_id": customer_id, "amount": amount},
        )
        return order

    @classmethod
    def create_recurring_payment(
        cls,
        email: str,
        contact: str,
        amount: int,
        order_id: str,
        customer_id: str,
        token: str,
        currency: str | None = None,
        recurring: bool = True,
        description: str = "",
        notes: dict[str, Any] | None = None,
    ) -> Payment:
        """
        Charge a saved token and store the payment as CREATED.

        Raises:
            BillingValidationError: Amount below the minimum
            GatewayError: Razorpay rejected or could not be reached
        """
        cls._validate_amount(amount)
        currency = currency or settings.BILLING_DEFAULT_CURRENCY

        data = {
            "email": email,
            "contact": contact,
            "amount": amount,
            "currency": currency,
            "order_id": order_id,
            "customer_id": customer_id,
            "token": token,
            "recurring": "1" if recurring else "0",
            "description": description,
            "notes": notes or {},
        }

        response = cls.get_gateway_adapter().create_recurring_payment(data)
        payment_id = response.get("razorpay_payment_id") or response["id"]

        payment = EntityStore.create(
            Payment,
            payment_id,
            order_id=response.get("razorpay_order_id") or order_id,
            customer_id=customer_id,
            amount=amount,
            currency=currency,
            recurring=recurring,
            metadata={"creation": response},
        )

        cls.get_logger().info(
            f"Created recurring payment {payment.external_id}",
            extra={"payment_id": payment.external_id, "order_id": order_id},
        )
        return payment

    # =========================================================================
    # Registration Invoices
    # =========================================================================

    @classmethod
    def create_registration_invoice(
        cls,
        customer_id: str,
        amount: int,
        currency: str | None = None,
        description: str = "",
        receipt: str = "",
        sms_notify: bool = True,
        email_notify: bool = True,
        expire_by: int | None = None,
        notes: dict[str, Any] | None = None,
    ) -> RegistrationInvoice:
        """
        Create a registration payment link on Razorpay and store it as ISSUED.

        Raises:
            BillingValidationError: Amount below the minimum
            GatewayError: Razorpay rejected or could not be reached
        """
        cls._validate_amount(amount)
        currency = currency or settings.BILLING_DEFAULT_CURRENCY

        data: dict[str, Any] = {
            "type": "link",
            "customer_id": customer_id,
            "amount": amount,
            "currency": currency,
            "description": description,
            "receipt": receipt,
            "sms_notify": 1 if sms_notify else 0,
            "email_notify": 1 if email_notify else 0,
            "notes": notes or {},
        }
        if expire_by:
            data["expire_by"] = expire_by

        response = cls.get_gateway_adapter().create_invoice(data)

        invoice = EntityStore.create(
            RegistrationInvoice,
            response["id"],
            customer_id=customer_id,
            order_id=response.get("order_id") or "",
            amount=amount,
            amount_due=response.get("amount_due") or amount,
            currency=currency,
            description=description,
            receipt=receipt,
            short_url=response.get("short_url") or "",
            notes=notes or {},
        )

        cls.get_logger().info(
            f"Created registration invoice {invoice.external_id}",
            extra={"invoice_id": invoice.external_id, "customer_id": customer_id},
        )
        return invoice

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def _validate_amount(amount: int) -> None:
        minimum = settings.BILLING_MINIMUM_AMOUNT
        if not isinstance(amount, int) or amount < minimum:
            raise BillingValidationError(
                f"Amount must be an integer of at least {minimum}",
                details={"amount": amount, "minimum": minimum},
            )
