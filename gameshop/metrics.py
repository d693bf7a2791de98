# gameshop/metrics.py
from prometheus_client import Counter, Histogram, make_asgi_app

# Counters
checkouts_total = Counter("checkouts_total", "Committed cart checkouts")
purchases_total = Counter("purchases_total", "Committed direct purchases")
topups_total = Counter("wallet_topups_total", "Committed wallet top-ups")
coupon_redemptions_total = Counter("coupon_redemptions_total", "Coupons redeemed at checkout")

checkout_rejections = Counter(
    "checkout_rejections_total",
    "Checkouts rolled back, by reason",
    ["reason"],
)
purchase_rejections = Counter(
    "purchase_rejections_total",
    "Direct purchases rolled back, by reason",
    ["reason"],
)

# Latency
checkout_latency = Histogram("checkout_latency_seconds", "Checkout latency in seconds")
purchase_latency = Histogram("purchase_latency_seconds", "Direct purchase latency in seconds")

# ASGI app for /metrics
metrics_asgi_app = make_asgi_app()
