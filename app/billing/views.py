"""
Views for billing API.

Endpoints:
    Customers:
        GET  /api/v1/billing/customers/                   - List customers
        POST /api/v1/billing/customers/                   - Create customer
        GET  /api/v1/billing/customers/{id}/tokens/       - List saved tokens
        DELETE /api/v1/billing/customers/{id}/tokens/{token_id}/ - Delete saved token

    Orders:
        GET  /api/v1/billing/orders/                      - List orders
        POST /api/v1/billing/orders/                      - Create order

    Payments:
        GET   /api/v1/billing/payments/                   - List payments
        POST  /api/v1/billing/payments/                   - Create recurring payment
        PATCH /api/v1/billing/payments/                   - Verify checkout signature
        POST  /api/v1/billing/payments/verify-signature/  - Verify checkout signature
        POST  /api/v1/billing/payments/{id}/capture/      - Capture payment
        POST  /api/v1/billing/payments/{id}/refund/       - Refund payment

    Invoices:
        GET  /api/v1/billing/invoices/                    - List invoices
        POST /api/v1/billing/invoices/                    - Create registration invoice
        POST /api/v1/billing/invoices/{id}/cancel/        - Cancel invoice
        POST /api/v1/billing/invoices/{id}/notify/        - Resend notification

Service exceptions are mapped to HTTP statuses in BillingAPIView.
"""

from __future__ import annotations

import logging

from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiResponse, extend_schema

from core.exceptions import BaseApplicationError

from billing.models import Customer, Order, Payment, RegistrationInvoice
from billing.serializers import (
    CaptureRequestSerializer,
    CustomerCreateRequestSerializer,
    CustomerSerializer,
    InvoiceCreateRequestSerializer,
    NotifyRequestSerializer,
    OrderCreateRequestSerializer,
    OrderSerializer,
    PaymentSerializer,
    RecurringPaymentCreateRequestSerializer,
    RefundRequestSerializer,
    RegistrationInvoiceSerializer,
    VerifySignatureRequestSerializer,
)
from billing.services import BillingProvisioningService, GatewayActionCoordinator

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: OpenApiResponse(description="Invalid input"),
    404: OpenApiResponse(description="Entity not found"),
    409: OpenApiResponse(description="Not applicable to current state"),
    422: OpenApiResponse(description="Rejected by Razorpay"),
    503: OpenApiResponse(description="Razorpay unavailable or timed out, retry"),
}


class BillingAPIView(APIView):
    """
    Base view for billing endpoints.

    Billing endpoints are called by trusted backend services and carry no
    user authentication.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            status_code = exc.status_code
            log = logger.error if status_code >= 500 else logger.info
            log(
                f"Billing request failed: {exc}",
                extra={"error_code": exc.error_code, "path": self.request.path},
            )
            return Response(exc.to_dict(), status=status_code)

        if isinstance(exc, (APIException, Http404, PermissionDenied)):
            return super().handle_exception(exc)

        logger.exception(
            f"Unexpected error in billing request: {type(exc).__name__}",
            extra={"path": self.request.path},
        )
        return Response(
            {"error": "Internal error", "error_code": "INTERNAL_ERROR"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


# =============================================================================
# Customers
# =============================================================================


class CustomerListCreateView(BillingAPIView):
    @extend_schema(
        operation_id="list_billing_customers",
        summary="List customers",
        responses={200: CustomerSerializer(many=True)},
        tags=["Billing - Customers"],
    )
    def get(self, request):
        customers = Customer.objects.order_by("-created_at")
        return Response(CustomerSerializer(customers, many=True).data)

    @extend_schema(
        operation_id="create_billing_customer",
        summary="Create customer",
        description="Create the customer on Razorpay and store it.",
        request=CustomerCreateRequestSerializer,
        responses={201: CustomerSerializer, **ERROR_RESPONSES},
        tags=["Billing - Customers"],
    )
    def post(self, request):
        serializer = CustomerCreateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer = BillingProvisioningService.create_customer(**serializer.validated_data)
        return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)


class CustomerTokensView(BillingAPIView):
    @extend_schema(
        operation_id="list_billing_customer_tokens",
        summary="List saved tokens",
        description="Recurring payment tokens Razorpay holds for the customer.",
        responses={200: OpenApiResponse(description="Token list"), **ERROR_RESPONSES},
        tags=["Billing - Customers"],
    )
    def get(self, request, customer_id: str):
        tokens = BillingProvisioningService.list_customer_tokens(customer_id)
        return Response({"count": len(tokens), "items": tokens})


class CustomerTokenDetailView(BillingAPIView):
    @extend_schema(
        operation_id="delete_billing_customer_token",
        summary="Delete saved token",
        description="Delete a recurring payment token on Razorpay.",
        responses={200: OpenApiResponse(description="Deletion result"), **ERROR_RESPONSES},
        tags=["Billing - Customers"],
    )
    def delete(self, request, customer_id: str, token_id: str):
        deleted = BillingProvisioningService.delete_customer_token(customer_id, token_id)
        return Response({"deleted": deleted})


# =============================================================================
# Orders
# =============================================================================


class OrderListCreateView(BillingAPIView):
    @extend_schema(
        operation_id="list_billing_orders",
        summary="List orders",
        responses={200: OrderSerializer(many=True)},
        tags=["Billing - Orders"],
    )
    def get(self, request):
        orders = Order.objects.order_by("-created_at")
        customer_id = request.query_params.get("customer_id")
        if customer_id:
            orders = orders.filter(customer_id=customer_id)
        return Response(OrderSerializer(orders, many=True).data)

    @extend_schema(
        operation_id="create_billing_order",
        summary="Create order",
        request=OrderCreateRequestSerializer,
        responses={201: OrderSerializer, **ERROR_RESPONSES},
        tags=["Billing - Orders"],
    )
    def post(self, request):
        serializer = OrderCreateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = BillingProvisioningService.create_order(**serializer.validated_data)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Payments
# =============================================================================


class PaymentListCreateView(BillingAPIView):
    @extend_schema(
        operation_id="list_billing_payments",
        summary="List payments",
        responses={200: PaymentSerializer(many=True)},
        tags=["Billing - Payments"],
    )
    def get(self, request):
        payments = Payment.objects.order_by("-created_at")
        order_id = request.query_params.get("order_id")
        if order_id:
            payments = payments.filter(order_id=order_id)
        return Response(PaymentSerializer(payments, many=True).data)

    @extend_schema(
        operation_id="create_billing_recurring_payment",
        summary="Create recurring payment",
        description="Charge a saved token for an existing order.",
        request=RecurringPaymentCreateRequestSerializer,
        responses={201: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Billing - Payments"],
    )
    def post(self, request):
        serializer = RecurringPaymentCreateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = BillingProvisioningService.create_recurring_payment(
            **serializer.validated_data
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="verify_billing_payment_signature_legacy",
        summary="Verify checkout signature",
        description="Same as POST /payments/verify-signature/.",
        request=VerifySignatureRequestSerializer,
        responses={200: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Billing - Payments"],
    )
    def patch(self, request):
        return verify_signature(request)


class PaymentVerifySignatureView(BillingAPIView):
    @extend_schema(
        operation_id="verify_billing_payment_signature",
        summary="Verify checkout signature",
        description=(
            "Check razorpay_signature against order_id|payment_id and mark the "
            "payment authorized."
        ),
        request=VerifySignatureRequestSerializer,
        responses={200: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Billing - Payments"],
    )
    def post(self, request):
        return verify_signature(request)


def verify_signature(request) -> Response:
    serializer = VerifySignatureRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payment = GatewayActionCoordinator.verify_payment_signature(**serializer.validated_data)
    return Response(PaymentSerializer(payment).data)


class PaymentCaptureView(BillingAPIView):
    @extend_schema(
        operation_id="capture_billing_payment",
        summary="Capture payment",
        description="Capture an authorized payment. Amount defaults to the payment amount.",
        request=CaptureRequestSerializer,
        responses={200: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Billing - Payments"],
    )
    def post(self, request, payment_id: str):
        serializer = CaptureRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = GatewayActionCoordinator.capture_payment(
            payment_id, **serializer.validated_data
        )
        return Response(PaymentSerializer(payment).data)


class PaymentRefundView(BillingAPIView):
    @extend_schema(
        operation_id="refund_billing_payment",
        summary="Refund payment",
        description=(
            "Refund a captured payment. Amount defaults to the remaining "
            "refundable amount; speed is normal or optimum."
        ),
        request=RefundRequestSerializer,
        responses={200: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Billing - Payments"],
    )
    def post(self, request, payment_id: str):
        serializer = RefundRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = GatewayActionCoordinator.refund_payment(
            payment_id, **serializer.validated_data
        )
        return Response(PaymentSerializer(payment).data)


# =============================================================================
# Invoices
# =============================================================================


class InvoiceListCreateView(BillingAPIView):
    @extend_schema(
        operation_id="list_billing_invoices",
        summary="List registration invoices",
        responses={200: RegistrationInvoiceSerializer(many=True)},
        tags=["Billing - Invoices"],
    )
    def get(self, request):
        invoices = RegistrationInvoice.objects.order_by("-created_at")
        return Response(RegistrationInvoiceSerializer(invoices, many=True).data)

    @extend_schema(
        operation_id="create_billing_invoice",
        summary="Create registration invoice",
        request=InvoiceCreateRequestSerializer,
        responses={201: RegistrationInvoiceSerializer, **ERROR_RESPONSES},
        tags=["Billing - Invoices"],
    )
    def post(self, request):
        serializer = InvoiceCreateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = BillingProvisioningService.create_registration_invoice(
            **serializer.validated_data
        )
        return Response(
            RegistrationInvoiceSerializer(invoice).data,
            status=status.HTTP_201_CREATED,
        )


class InvoiceCancelView(BillingAPIView):
    @extend_schema(
        operation_id="cancel_billing_invoice",
        summary="Cancel invoice",
        request=None,
        responses={200: RegistrationInvoiceSerializer, **ERROR_RESPONSES},
        tags=["Billing - Invoices"],
    )
    def post(self, request, invoice_id: str):
        invoice = GatewayActionCoordinator.cancel_invoice(invoice_id)
        return Response(RegistrationInvoiceSerializer(invoice).data)


class InvoiceNotifyView(BillingAPIView):
    @extend_schema(
        operation_id="notify_billing_invoice",
        summary="Resend invoice notification",
        request=NotifyRequestSerializer,
        responses={200: RegistrationInvoiceSerializer, **ERROR_RESPONSES},
        tags=["Billing - Invoices"],
    )
    def post(self, request, invoice_id: str):
        serializer = NotifyRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = GatewayActionCoordinator.notify_invoice(
            invoice_id, serializer.validated_data["medium"]
        )
        return Response(RegistrationInvoiceSerializer(invoice).data)
