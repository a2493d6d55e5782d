"""
Initial billing schema.

Creates:
    - Customer, Order, Payment, RegistrationInvoice (Razorpay entities)
    - PaymentEvent (append-only payment sub-event log)
    - ProcessedEvent (durable webhook idempotency store)
    - WebhookEvent (dead-letter log)
"""

import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.db import migrations, models


def uuid_pk():
    return models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Internal row id",
        primary_key=True,
        serialize=False,
    )


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="When the row was inserted",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="When the row was last saved",
            ),
        ),
    ]


def gateway_entity_fields():
    return [
        ("id", uuid_pk()),
        *timestamps(),
        (
            "version",
            models.PositiveIntegerField(
                default=1,
                help_text="Version counter - incremented on each save",
            ),
        ),
        (
            "external_id",
            models.CharField(
                help_text="Razorpay identifier - unique lookup key",
                max_length=64,
                unique=True,
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        # ---------------------------------------------------------------------
        # Customer
        # ---------------------------------------------------------------------
        migrations.CreateModel(
            name="Customer",
            fields=[
                *gateway_entity_fields(),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=255)),
                (
                    "contact",
                    models.CharField(
                        help_text="Phone number including country code",
                        max_length=32,
                    ),
                ),
                (
                    "gstin",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="GST identification number",
                        max_length=15,
                    ),
                ),
                (
                    "notes",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Free-form notes sent to and returned by Razorpay",
                    ),
                ),
            ],
            options={
                "verbose_name": "Customer",
                "verbose_name_plural": "Customers",
                "ordering": ["-created_at"],
            },
        ),
        # ---------------------------------------------------------------------
        # Order
        # ---------------------------------------------------------------------
        migrations.CreateModel(
            name="Order",
            fields=[
                *gateway_entity_fields(),
                (
                    "customer_id",
                    models.CharField(
                        db_index=True,
                        help_text="Razorpay customer id (cust_xxx)",
                        max_length=64,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Order amount in smallest currency unit",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="INR",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "receipt",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Merchant receipt reference",
                        max_length=64,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("authorized", "Authorized"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Current state of the order (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the order was marked paid",
                        null=True,
                    ),
                ),
                (
                    "token",
                    models.JSONField(
                        blank=True,
                        help_text="Recurring token sub-record",
                        null=True,
                    ),
                ),
                (
                    "token_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Token id referenced by ``token`` (maintained on save)",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "notes",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Free-form notes, merged never replaced",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer_id", "status"],
                        name="billing_order_cust_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(amount__gt=0),
                        name="billing_order_amount_positive",
                    ),
                ],
            },
        ),
        # ---------------------------------------------------------------------
        # Payment
        # ---------------------------------------------------------------------
        migrations.CreateModel(
            name="Payment",
            fields=[
                *gateway_entity_fields(),
                (
                    "order_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Razorpay order id (order_xxx)",
                        max_length=64,
                    ),
                ),
                (
                    "customer_id",
                    models.CharField(
                        db_index=True,
                        default="unknown",
                        help_text="Razorpay customer id, 'unknown' when the webhook has none",
                        max_length=64,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Payment amount in smallest currency unit",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="INR",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "provider",
                    models.CharField(
                        default="razorpay",
                        help_text="Payment gateway",
                        max_length=20,
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payment method reported by the gateway (card, upi, ...)",
                        max_length=32,
                    ),
                ),
                (
                    "recurring",
                    models.BooleanField(
                        default=False,
                        help_text="Charged against a saved recurring token",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("authorized", "Authorized"),
                            ("captured", "Captured"),
                            ("partially_refunded", "Partially Refunded"),
                            ("refunded", "Refunded"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "signature",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payment confirmation signature (set once)",
                        max_length=128,
                    ),
                ),
                ("capture_id", models.CharField(blank=True, default="", max_length=64)),
                ("captured_amount", models.PositiveBigIntegerField(blank=True, null=True)),
                ("captured_at", models.DateTimeField(blank=True, null=True)),
                ("capture_method", models.CharField(blank=True, default="", max_length=32)),
                ("capture_fee", models.PositiveBigIntegerField(default=0)),
                (
                    "capture_reference",
                    models.CharField(
                        blank=True,
                        help_text="Acquirer transaction reference",
                        max_length=128,
                        null=True,
                    ),
                ),
                (
                    "amount_refunded",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Total refunded so far (minor units)",
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the first refund was applied",
                        null=True,
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payment first failed",
                        null=True,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Latest raw provider payloads keyed by kind, merged never replaced",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["order_id", "status"],
                        name="billing_pay_order_status_idx",
                    ),
                    models.Index(
                        fields=["customer_id", "created_at"],
                        name="billing_pay_cust_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(amount_refunded__lte=models.F("amount")),
                        name="billing_payment_refund_within_amount",
                    ),
                ],
            },
        ),
        # ---------------------------------------------------------------------
        # PaymentEvent
        # ---------------------------------------------------------------------
        migrations.CreateModel(
            name="PaymentEvent",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("authorization", "Authorization"),
                            ("capture", "Capture"),
                            ("refund", "Refund"),
                            ("failure", "Failure"),
                            ("signature", "Signature"),
                        ],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                ("reference", models.CharField(blank=True, default="", max_length=128)),
                ("amount", models.PositiveBigIntegerField(blank=True, null=True)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("occurred_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="events",
                        to="billing.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Event",
                "verbose_name_plural": "Payment Events",
                "ordering": ["occurred_at", "created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("payment", "kind", "reference"),
                        name="billing_payment_event_unique_reference",
                    ),
                ],
            },
        ),
        # ---------------------------------------------------------------------
        # RegistrationInvoice
        # ---------------------------------------------------------------------
        migrations.CreateModel(
            name="RegistrationInvoice",
            fields=[
                *gateway_entity_fields(),
                ("customer_id", models.CharField(db_index=True, max_length=64)),
                ("order_id", models.CharField(blank=True, default="", max_length=64)),
                (
                    "payment_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payment that settled the invoice",
                        max_length=64,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Invoice amount in smallest currency unit",
                    ),
                ),
                ("amount_paid", models.PositiveBigIntegerField(default=0)),
                ("amount_due", models.PositiveBigIntegerField(default=0)),
                ("currency", models.CharField(default="INR", max_length=3)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("receipt", models.CharField(blank=True, default="", max_length=64)),
                ("short_url", models.URLField(blank=True, default="")),
                ("notes", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("issued", "Issued"),
                            ("paid", "Paid"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="issued",
                        help_text="Current state of the invoice (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "sms_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("sent", "Sent")],
                        default="pending",
                        max_length=10,
                    ),
                ),
                (
                    "email_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("sent", "Sent")],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Registration Invoice",
                "verbose_name_plural": "Registration Invoices",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        check=(
                            models.Q(paid_at__isnull=True, cancelled_at__isnull=True)
                            | models.Q(paid_at__isnull=True, expired_at__isnull=True)
                            | models.Q(cancelled_at__isnull=True, expired_at__isnull=True)
                        ),
                        name="billing_invoice_single_terminal_marker",
                    ),
                ],
            },
        ),
        # ---------------------------------------------------------------------
        # Webhook bookkeeping
        # ---------------------------------------------------------------------
        migrations.CreateModel(
            name="ProcessedEvent",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("event_id", models.CharField(max_length=128, unique=True)),
                (
                    "received_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now),
                ),
            ],
            options={
                "verbose_name": "Processed Event",
                "verbose_name_plural": "Processed Events",
                "ordering": ["received_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                (
                    "event_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Razorpay event id (X-Razorpay-Event-Id)",
                        max_length=128,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Razorpay event category (e.g., 'payment.captured')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook body (JSON)")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="failed",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of replay attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "retry_count"],
                        name="billing_whe_status_retry_idx",
                    ),
                ],
            },
        ),
    ]
