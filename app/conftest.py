"""
Root pytest configuration for the billing service.

This module configures pytest-django and provides project-wide fixtures.
Billing fixtures (credentials, idempotency guard, gateway mock) live in
billing/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_tasks.py, test_router.py, etc. → integration
    - test_models.py, test_signatures.py, test_idempotency.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_tasks.py",
        "test_router.py",
        "test_coordinator.py",
        "test_provisioning.py",
        "test_store.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_signatures.py",
        "test_idempotency.py",
        "test_razorpay_adapter.py",
        "test_utils.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
