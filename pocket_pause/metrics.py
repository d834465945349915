"""Prometheus metrics for Pocket Pause."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("pocket_pause", "Pocket Pause application info")
app_info.info({"version": "0.1.0", "name": "pocket-pause"})

# Parse metrics
product_parses_total = Counter(
    "product_parses_total",
    "Total number of product URL parses",
    ["method", "site_type"],
)

parse_cache_hits_total = Counter(
    "parse_cache_hits_total",
    "Total number of parse requests answered from the cache",
)

parse_duration_seconds = Histogram(
    "parse_duration_seconds",
    "Time spent parsing a product URL",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 8.0, 15.0],
)

strategy_attempts_total = Counter(
    "strategy_attempts_total",
    "Extraction strategy attempts",
    ["strategy", "status"],
)

remote_backend_requests_total = Counter(
    "remote_backend_requests_total",
    "Requests to the remote fetch/extract backend",
    ["mode", "status"],
)

screenshot_fallbacks_total = Counter(
    "screenshot_fallbacks_total",
    "Number of parses that fell back to screenshot capture",
)

# Notification metrics
notifications_sent_total = Counter(
    "notifications_sent_total",
    "Total number of push notifications sent",
    ["kind", "status"],
)

notification_claim_conflicts_total = Counter(
    "notification_claim_conflicts_total",
    "Queue rows skipped because another worker already claimed them",
)


def record_parse(method: str, site_type: str, duration: float):
    """Record a completed parse."""
    product_parses_total.labels(method=method, site_type=site_type).inc()
    parse_duration_seconds.labels(method=method).observe(duration)


def record_cache_hit():
    """Record a parse cache hit."""
    parse_cache_hits_total.inc()


def record_strategy_attempt(strategy: str, status: str):
    """Record one strategy attempt (hit, miss, error)."""
    strategy_attempts_total.labels(strategy=strategy, status=status).inc()


def record_remote_request(mode: str, status: str):
    """Record a remote backend request."""
    remote_backend_requests_total.labels(mode=mode, status=status).inc()


def record_screenshot_fallback():
    """Record a screenshot fallback."""
    screenshot_fallbacks_total.inc()


def record_notification_sent(kind: str, success: bool):
    """Record a push notification send."""
    status = "success" if success else "failed"
    notifications_sent_total.labels(kind=kind, status=status).inc()


def record_claim_conflict():
    """Record a lost claim race."""
    notification_claim_conflicts_total.inc()
