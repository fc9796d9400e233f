"""Prometheus metrics for EnvFetch observability."""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram

if TYPE_CHECKING:
    from agent.models import QueryOutcome

# --- Query metrics ---

envfetch_queries_total = Counter(
    "envfetch_queries_total",
    "Total number of queries submitted, by outcome",
    ["status"],
)

envfetch_variables_returned = Histogram(
    "envfetch_variables_returned",
    "Number of variables returned per successful query",
    buckets=[0, 1, 5, 10, 25, 50, 100, 250],
)

envfetch_active_queries = Gauge(
    "envfetch_active_queries",
    "Number of queries currently waiting on the agent",
)

# --- Agent call metrics ---

envfetch_agent_call_duration_seconds = Histogram(
    "envfetch_agent_call_duration_seconds",
    "Latency of the external agent call",
    buckets=[0.1, 0.5, 1, 5, 10, 30, 60],
)

envfetch_agent_call_failures_total = Counter(
    "envfetch_agent_call_failures_total",
    "Agent calls that raised instead of returning an envelope",
)

# --- Normalizer metrics ---

envfetch_normalizer_strategy_total = Counter(
    "envfetch_normalizer_strategy_total",
    "Which extraction strategy located the variables",
    ["strategy"],
)

# --- History metrics ---

envfetch_history_size = Gauge(
    "envfetch_history_size",
    "Number of entries in the query history",
)


# --- Helper functions ---


def record_agent_call(duration_seconds: float, failed: bool = False) -> None:
    """Observe agent call latency and count calls that raised."""
    envfetch_agent_call_duration_seconds.observe(duration_seconds)
    if failed:
        envfetch_agent_call_failures_total.inc()


def record_query_outcome(outcome: QueryOutcome) -> None:
    """Record metrics from a finished query."""
    envfetch_queries_total.labels(status=outcome.status).inc()

    if outcome.strategy is not None:
        envfetch_normalizer_strategy_total.labels(strategy=outcome.strategy).inc()

    if outcome.status == "success" and outcome.result is not None:
        envfetch_variables_returned.observe(len(outcome.result.variables))
