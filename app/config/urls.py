"""
URL configuration for the billing service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/billing/               - Billing endpoints
        webhooks/razorpay/         - Razorpay webhook endpoint (POST)
        customers/                 - Customer list/create
        customers/{id}/tokens/     - Saved recurring tokens for a customer
        orders/                    - Order list/create
        payments/                  - Payment list, recurring charge, signature verify
        payments/verify-signature/ - Checkout signature verification
        payments/{id}/capture/     - Capture an authorized payment
        payments/{id}/refund/      - Refund a captured payment
        invoices/                  - Registration invoice list/create
        invoices/{id}/cancel/      - Cancel an issued invoice
        invoices/{id}/notify/      - Resend invoice by sms or email
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("billing/", include("billing.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Billing Admin"
admin.site.site_title = "Billing Admin Portal"
admin.site.index_title = "Razorpay billing records"
