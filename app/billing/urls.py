"""
URL configuration for billing app.

Included under /api/v1/billing/ by config.urls.
"""

from django.urls import path

from billing import views
from billing.webhooks.views import razorpay_webhook

app_name = "billing"

urlpatterns = [
    # Webhooks
    path("webhooks/razorpay/", razorpay_webhook, name="razorpay-webhook"),
    # Customers
    path("customers/", views.CustomerListCreateView.as_view(), name="customers"),
    path(
        "customers/<str:customer_id>/tokens/",
        views.CustomerTokensView.as_view(),
        name="customer-tokens",
    ),
    path(
        "customers/<str:customer_id>/tokens/<str:token_id>/",
        views.CustomerTokenDetailView.as_view(),
        name="customer-token-detail",
    ),
    # Orders
    path("orders/", views.OrderListCreateView.as_view(), name="orders"),
    # Payments
    path("payments/", views.PaymentListCreateView.as_view(), name="payments"),
    path(
        "payments/verify-signature/",
        views.PaymentVerifySignatureView.as_view(),
        name="payment-verify-signature",
    ),
    path(
        "payments/<str:payment_id>/capture/",
        views.PaymentCaptureView.as_view(),
        name="payment-capture",
    ),
    path(
        "payments/<str:payment_id>/refund/",
        views.PaymentRefundView.as_view(),
        name="payment-refund",
    ),
    # Invoices
    path("invoices/", views.InvoiceListCreateView.as_view(), name="invoices"),
    path(
        "invoices/<str:invoice_id>/cancel/",
        views.InvoiceCancelView.as_view(),
        name="invoice-cancel",
    ),
    path(
        "invoices/<str:invoice_id>/notify/",
        views.InvoiceNotifyView.as_view(),
        name="invoice-notify",
    ),
]
