from prometheus_client import Counter
# Prometheus metrics definitions

# Payment intents successfully created at the provider
payment_created_total = Counter(
    "payment_created_total", "Pix payment intents created"
)

# Provider refused the charge or could not be reached
payment_fail_total = Counter(
    "payment_fail_total", "Failed Pix payment creations", ["reason"]
)

# Completed payments turned into subscription time (at most once per intent)
payment_reconciled_total = Counter(
    "payment_reconciled_total", "Payments reconciled into subscriptions"
)

# Gated requests sent to checkout
paywall_redirect_total = Counter(
    "paywall_redirect_total", "Gated requests redirected to checkout"
)
