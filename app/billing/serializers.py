"""
Serializers for billing API.

Serializers:
    CustomerSerializer, OrderSerializer, PaymentSerializer,
    RegistrationInvoiceSerializer: Read-only entity representations
    *RequestSerializer: Input validation for the action endpoints

Business rules (minimum amounts, refundable amounts, mediums) are checked
by the services, not here; serializers only check shape and types.

Usage:
    from billing.serializers import RefundRequestSerializer

    serializer = RefundRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from billing.models import Customer, Order, Payment, RegistrationInvoice


# =============================================================================
# Entity Serializers
# =============================================================================


class CustomerSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source="external_id", read_only=True)

    class Meta:
        model = Customer
        fields = ["id", "name", "email", "contact", "gstin", "notes", "created_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source="external_id", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "customer_id",
            "amount",
            "currency",
            "receipt",
            "status",
            "token",
            "notes",
            "paid_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """
    Payment with its capture sub-record and refund history.

    ``refunds`` is read from the payment event log, oldest first.
    """

    id = serializers.CharField(source="external_id", read_only=True)
    capture = serializers.SerializerMethodField()
    refunds = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "order_id",
            "customer_id",
            "amount",
            "currency",
            "method",
            "recurring",
            "status",
            "capture",
            "amount_refunded",
            "refunds",
            "refunded_at",
            "failed_at",
            "metadata",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_capture(self, obj: Payment) -> dict | None:
        if not obj.capture_id:
            return None
        return {
            "id": obj.capture_id,
            "amount": obj.captured_amount,
            "captured_at": obj.captured_at,
            "method": obj.capture_method,
            "fee": obj.capture_fee,
            "reference": obj.capture_reference,
        }

    def get_refunds(self, obj: Payment) -> list[dict]:
        return obj.refunds


class RegistrationInvoiceSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source="external_id", read_only=True)

    class Meta:
        model = RegistrationInvoice
        fields = [
            "id",
            "customer_id",
            "order_id",
            "payment_id",
            "amount",
            "amount_paid",
            "amount_due",
            "currency",
            "description",
            "receipt",
            "short_url",
            "status",
            "sms_status",
            "email_status",
            "paid_at",
            "cancelled_at",
            "expired_at",
            "notes",
            "version",
            "created_at",
        ]
        read_only_fields = fields


# =============================================================================
# Provisioning Requests
# =============================================================================


class CustomerCreateRequestSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    contact = serializers.CharField(max_length=32)
    gstin = serializers.CharField(max_length=15, required=False, allow_blank=True, default="")
    notes = serializers.DictField(required=False, default=dict)


class OrderCreateRequestSerializer(serializers.Serializer):
    customer_id = serializers.CharField(max_length=64)
    amount = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(max_length=3, required=False)
    receipt = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    notes = serializers.DictField(required=False, default=dict)
    token = serializers.DictField(required=False)
    payment_capture = serializers.BooleanField(required=False, default=True)


class RecurringPaymentCreateRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()
    contact = serializers.CharField(max_length=32)
    amount = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(max_length=3, required=False)
    order_id = serializers.CharField(max_length=64)
    customer_id = serializers.CharField(max_length=64)
    token = serializers.CharField(max_length=64)
    recurring = serializers.BooleanField(required=False, default=True)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.DictField(required=False, default=dict)


class InvoiceCreateRequestSerializer(serializers.Serializer):
    customer_id = serializers.CharField(max_length=64)
    amount = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(max_length=3, required=False)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    receipt = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    sms_notify = serializers.BooleanField(required=False, default=True)
    email_notify = serializers.BooleanField(required=False, default=True)
    expire_by = serializers.IntegerField(required=False, min_value=1)
    notes = serializers.DictField(required=False, default=dict)


# =============================================================================
# Action Requests
# =============================================================================


class CaptureRequestSerializer(serializers.Serializer):
    amount = serializers.IntegerField(required=False, min_value=1)
    currency = serializers.CharField(max_length=3, required=False)


class RefundRequestSerializer(serializers.Serializer):
    amount = serializers.IntegerField(required=False, min_value=1)
    speed = serializers.ChoiceField(choices=["normal", "optimum"], required=False, default="normal")
    notes = serializers.DictField(required=False, default=dict)


class VerifySignatureRequestSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=64)
    payment_id = serializers.CharField(max_length=64)
    signature = serializers.CharField(max_length=128)


class NotifyRequestSerializer(serializers.Serializer):
    # Medium is checked by the coordinator so it maps to INVALID_MEDIUM
    medium = serializers.CharField(max_length=16)
