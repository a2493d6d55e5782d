"""
Razorpay billing integration.

Customers, orders, payments and registration invoices kept in sync with
the gateway through webhooks and synchronous actions.
"""
