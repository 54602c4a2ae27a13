"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behavior import and increment them.  Scraped from GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Authorization and entitlements
# ---------------------------------------------------------------------------

AUTHZ_DENIALS = Counter(
    "authorization_denials_total",
    "Requests rejected by the organization or super-admin gate",
    ["reason"],  # not_member | insufficient_role | not_super_admin
)

COUPON_REDEMPTIONS = Counter(
    "coupon_redemptions_total",
    "Coupon redemption attempts by outcome",
    ["result"],  # redeemed | invalid
)

PLAN_RECALCULATIONS = Counter(
    "plan_recalculations_total",
    "Organization plan recalculations by outcome",
    ["result"],  # changed | unchanged | failed
)

COUPONS_EXPIRED = Counter(
    "coupons_expired_total",
    "Coupons marked expired",
)

NOTIFICATIONS_ENQUEUED = Counter(
    "notifications_enqueued_total",
    "Outbound notifications handed to the task queue",
    ["kind"],  # role_changed | access_revoked | invited
)
