from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Request-level counters
# ---------------------------------------------------------------------------
scrape_requests_total = Counter(
    "scrape_requests_total",
    "Total number of scrape invocations",
    ["mode", "status"],  # mode: sync | async | batch | cli
)
scrape_duration_seconds = Histogram(
    "scrape_duration_seconds",
    "Wall-clock time of a single orchestrated scrape",
    buckets=[1, 2, 5, 10, 20, 30, 60, 120, 240],
)

# ---------------------------------------------------------------------------
# Engine internals
# ---------------------------------------------------------------------------
navigation_attempts_total = Counter(
    "navigation_attempts_total",
    "Navigation attempts by outcome",
    ["outcome"],  # success | retry | fatal
)
challenge_detections_total = Counter(
    "challenge_detections_total",
    "Bot challenges detected, by final outcome",
    ["outcome"],  # bypassed | blocked
)
extractor_failures_total = Counter(
    "extractor_failures_total",
    "Extractor runs that raised and fell back to an empty result",
    ["extractor"],
)
active_browser_sessions = Gauge(
    "active_browser_sessions",
    "Browser sessions currently open",
)
jobs_in_flight = Gauge(
    "jobs_in_flight",
    "Async and batch jobs still running",
)


def get_metrics() -> bytes:
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
