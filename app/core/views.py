"""
Core views providing infrastructure endpoints.

Views here are not part of the billing domain but are needed to run the
service, such as the health check used by Docker and load balancers.
"""

import logging

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _check_database() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        return False
    return True


def _check_cache() -> bool:
    # Cache failure degrades the cache idempotency guard only; the service
    # still accepts traffic.
    try:
        cache.set("health_check", "ok", timeout=1)
        return cache.get("health_check") == "ok"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        return False


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Reports database and cache connectivity, plus whether the Razorpay
    credentials and webhook secret are configured. Only the database decides
    the HTTP status; a missing webhook secret is reported but the service
    keeps serving the synchronous API.

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "gateway": "configured",
            "webhooks": "configured",
            "idempotency_backend": "InMemoryIdempotencyGuard"
        }
    """
    database_ok = _check_database()

    health_status = {
        "status": "healthy" if database_ok else "unhealthy",
        "database": "connected" if database_ok else "disconnected",
        "cache": "connected" if _check_cache() else "disconnected",
        "gateway": (
            "configured"
            if settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET
            else "unconfigured"
        ),
        "webhooks": "configured" if settings.RAZORPAY_WEBHOOK_SECRET else "unconfigured",
        "idempotency_backend": settings.BILLING_IDEMPOTENCY_BACKEND.rsplit(".", 1)[-1],
    }

    return JsonResponse(health_status, status=200 if database_ok else 503)
