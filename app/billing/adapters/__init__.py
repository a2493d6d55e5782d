"""
Payment gateway adapters.

All Razorpay API calls go through RazorpayAdapter to ensure consistent
error handling, timeouts and observability.

Usage:
    from billing.adapters import RazorpayAdapter

    RazorpayAdapter.capture_payment("pay_123", amount=5000, currency="INR")
"""

from billing.adapters.razorpay_adapter import RazorpayAdapter

__all__ = ["RazorpayAdapter"]
