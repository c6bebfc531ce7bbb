"""
Prometheus metrics for the wagerbook engine.

Metrics exposed:
- Feed request success/failure counters
- Ingestion cycle duration histogram and per-cycle record counters
- Settlement outcome, conflict and failure counters
- Circuit breaker state gauge
- Scheduler status gauges
"""
from prometheus_client import Counter, Gauge, Histogram

# Feed Metrics
feed_requests_success_total = Counter(
    "feed_requests_success_total",
    "Total successful feed requests",
    ["feed"]
)

feed_requests_failure_total = Counter(
    "feed_requests_failure_total",
    "Total failed feed requests",
    ["feed", "error_type"]
)

# Ingestion Metrics
ingestion_cycle_duration_seconds = Histogram(
    "ingestion_cycle_duration_seconds",
    "Duration of a full ingestion cycle in seconds"
)

ingestion_records_total = Counter(
    "ingestion_records_total",
    "Feed records processed by the ingestion cycle",
    ["feed", "result"]
)

# Settlement Metrics
wagers_settled_total = Counter(
    "wagers_settled_total",
    "Wagers moved out of pending by settlement",
    ["outcome"]
)

settlement_conflicts_total = Counter(
    "settlement_conflicts_total",
    "Wagers already out of pending when settlement reached them"
)

settlement_failures_total = Counter(
    "settlement_failures_total",
    "Wagers left pending because settlement raised"
)

# Circuit Breaker Metrics
circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["service"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the engine scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)

_BREAKER_STATE_VALUES = {"closed": 0, "open": 1, "half-open": 2}


def record_feed_success(feed: str):
    """Record a successful feed request."""
    feed_requests_success_total.labels(feed=feed).inc()


def record_feed_failure(feed: str, error_type: str = "unknown"):
    """Record a failed feed request."""
    feed_requests_failure_total.labels(feed=feed, error_type=error_type).inc()


def record_breaker_state(service: str, state: str):
    """Mirror a pybreaker state name into the gauge."""
    circuit_breaker_state.labels(service=service).set(_BREAKER_STATE_VALUES.get(state, 0))


def update_scheduler_metrics():
    """Refresh scheduler gauges from the global scheduler instance."""
    from wagerbook.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running and scheduler.scheduler:
        scheduler_running.set(1)
        scheduler_jobs_total.set(len(scheduler.scheduler.get_jobs()))
    else:
        scheduler_running.set(0)
        scheduler_jobs_total.set(0)
