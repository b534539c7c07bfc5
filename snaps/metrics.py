"""Prometheus metrics for the snaps service."""

from prometheus_client import Counter, Info

# Application info
app_info = Info("snaps", "Snaps application info")
app_info.info({"version": "0.1.0", "name": "snaps"})

# Submission metrics
submissions_total = Counter(
    "snaps_submissions_total",
    "Total number of snap submissions",
    ["outcome"],
)

# Verification metrics
verifications_total = Counter(
    "snaps_verifications_total",
    "Total number of verification requests",
    ["result"],
)

migrations_total = Counter(
    "snaps_migrations_total",
    "Total number of migration attempts",
    ["result"],
)

snaps_counted_total = Counter(
    "snaps_counted_total",
    "Total snap weight migrated into aggregates",
)

# Notification metrics
notifications_total = Counter(
    "snaps_notifications_total",
    "Total number of verification emails dispatched",
    ["status"],
)

# Rate limiting
rate_limited_total = Counter(
    "snaps_rate_limited_total",
    "Total number of submissions rejected by the rate limiter",
)

# Maintenance
expired_submissions_total = Counter(
    "snaps_expired_submissions_total",
    "Total number of pending submissions removed by expiry",
)

replayed_intents_total = Counter(
    "snaps_replayed_intents_total",
    "Total number of interrupted migrations replayed",
)
