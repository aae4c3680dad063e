"""Prometheus metrics for the reconcile loop."""

from prometheus_client import Counter, Gauge, Histogram, start_http_server

RELEASE_ACTIONS = Counter(
    "release_operator_actions_total",
    "Release backend calls by action and result",
    ["action", "result"],
)
PARSE_FAILURES = Counter(
    "release_operator_values_parse_failures_total",
    "ConfigMap payloads that could not be parsed",
)
TRACKED_RELEASES = Gauge(
    "release_operator_tracked_releases",
    "Releases currently held in the fingerprint store",
)
TICK_DURATION = Histogram(
    "release_operator_tick_duration_seconds",
    "Wall time of one reconciliation tick",
)


def record_action(action: str, ok: bool):
    RELEASE_ACTIONS.labels(action=action, result="success" if ok else "failure").inc()


def serve(port: int):
    """Expose /metrics on a daemon thread; port 0 disables it."""
    if port > 0:
        start_http_server(port)
