"""
Billing services.

    GatewayActionCoordinator   -> capture, refund, signature, cancel, notify
    BillingProvisioningService -> customers, orders, recurring charges, invoices
"""

from billing.services.coordinator import GatewayActionCoordinator
from billing.services.provisioning import BillingProvisioningService

__all__ = [
    "BillingProvisioningService",
    "GatewayActionCoordinator",
]
