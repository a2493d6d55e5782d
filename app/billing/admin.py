"""
Billing admin configuration.

Entities are read-mostly here: status fields are FSM-protected and change
only through reconcilers and gateway actions, so they are read-only.
"""

from django.contrib import admin, messages

from billing.models import (
    Customer,
    Order,
    Payment,
    PaymentEvent,
    ProcessedEvent,
    RegistrationInvoice,
    WebhookEvent,
)

TIMESTAMP_FIELDS = ("created_at", "updated_at")


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["external_id", "name", "email", "contact", "created_at"]
    search_fields = ["external_id", "name", "email", "contact"]
    readonly_fields = ["id", "external_id", "version", *TIMESTAMP_FIELDS]
    ordering = ["-created_at"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ["external_id", "customer_id", "amount", "currency", "status", "token_id", "created_at"]
    list_filter = ["status", "currency"]
    search_fields = ["external_id", "customer_id", "token_id", "receipt"]
    readonly_fields = ["id", "external_id", "status", "token_id", "paid_at", "version", *TIMESTAMP_FIELDS]
    ordering = ["-created_at"]


class PaymentEventInline(admin.TabularInline):
    model = PaymentEvent
    extra = 0
    can_delete = False
    fields = ["kind", "reference", "amount", "occurred_at", "payload"]
    readonly_fields = fields
    ordering = ["occurred_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    The event log is shown inline and cannot be edited.
    """

    list_display = [
        "external_id",
        "order_id",
        "customer_id",
        "amount",
        "status",
        "amount_refunded",
        "created_at",
    ]
    list_filter = ["status", "recurring", "method"]
    search_fields = ["external_id", "order_id", "customer_id", "capture_id"]
    readonly_fields = [
        "id",
        "external_id",
        "status",
        "signature",
        "capture_id",
        "captured_amount",
        "captured_at",
        "amount_refunded",
        "refunded_at",
        "failed_at",
        "version",
        *TIMESTAMP_FIELDS,
    ]
    inlines = [PaymentEventInline]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(RegistrationInvoice)
class RegistrationInvoiceAdmin(admin.ModelAdmin):
    list_display = ["external_id", "customer_id", "amount", "status", "sms_status", "email_status", "created_at"]
    list_filter = ["status", "sms_status", "email_status"]
    search_fields = ["external_id", "customer_id", "order_id", "payment_id"]
    readonly_fields = [
        "id",
        "external_id",
        "status",
        "paid_at",
        "cancelled_at",
        "expired_at",
        "version",
        *TIMESTAMP_FIELDS,
    ]
    ordering = ["-created_at"]


@admin.register(ProcessedEvent)
class ProcessedEventAdmin(admin.ModelAdmin):
    list_display = ["event_id", "received_at"]
    search_fields = ["event_id"]
    readonly_fields = ["event_id", "received_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into dead-lettered deliveries and a replay action.
    """

    list_display = ["id", "event_id", "event_type", "status", "retry_count", "processed_at", "created_at"]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "event_type"]
    readonly_fields = ["id", "event_id", "event_type", "payload", "processed_at", *TIMESTAMP_FIELDS]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["replay_selected"]

    @admin.action(description="Replay selected webhook events")
    def replay_selected(self, request, queryset):
        from billing.tasks import replay_webhook_event

        count = 0
        for webhook_event in queryset:
            if webhook_event.can_retry:
                replay_webhook_event.delay(str(webhook_event.id))
                count += 1
        self.message_user(request, f"Queued {count} webhook event(s) for replay", messages.SUCCESS)
