"""
Razorpay webhook intake.

    views.razorpay_webhook  -> HTTP endpoint
    service.WebhookService  -> signature, parsing, dedup, routing
    router                  -> category registry with failure isolation
    handlers                -> category -> reconciler bindings
"""
