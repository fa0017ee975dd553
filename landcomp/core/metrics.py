from __future__ import annotations

from prometheus_client import Counter, Histogram

AGENT_LATENCY_SECONDS = Histogram(
    "landcomp_agent_execution_latency_seconds",
    "Latency for each agent execution",
    labelnames=("agent",),
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120, float("inf")),
)

AGENT_EXECUTIONS_TOTAL = Counter(
    "landcomp_agent_executions_total",
    "Agent executions grouped by outcome",
    labelnames=("agent", "outcome"),
)

COMPONENT_LATENCY_SECONDS = Histogram(
    "landcomp_component_execution_latency_seconds",
    "Latency for tracked pipeline components",
    labelnames=("component",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120, float("inf")),
)

COMPONENT_EXECUTIONS_TOTAL = Counter(
    "landcomp_component_executions_total",
    "Tracked component executions grouped by outcome",
    labelnames=("component", "outcome"),
)

GENERATION_FALLBACK_TOTAL = Counter(
    "landcomp_generation_fallback_total",
    "Generation fallback chain activations by stage",
    labelnames=("stage",),
)

ROUTING_MISS_TOTAL = Counter(
    "landcomp_routing_miss_total",
    "Requests for which no registered agent qualified",
    labelnames=("intent_type",),
)


def _outcome(success: bool) -> str:
    return "success" if success else "failure"


def observe_agent_execution(*, agent: str, latency: float, success: bool) -> None:
    AGENT_LATENCY_SECONDS.labels(agent=agent).observe(max(0.0, latency))
    AGENT_EXECUTIONS_TOTAL.labels(agent=agent, outcome=_outcome(success)).inc()


def observe_component_execution(*, component: str, latency: float, success: bool) -> None:
    COMPONENT_LATENCY_SECONDS.labels(component=component).observe(max(0.0, latency))
    COMPONENT_EXECUTIONS_TOTAL.labels(component=component, outcome=_outcome(success)).inc()


def increment_generation_fallback(*, stage: str) -> None:
    GENERATION_FALLBACK_TOTAL.labels(stage=stage).inc()


def increment_routing_miss(*, intent_type: str) -> None:
    ROUTING_MISS_TOTAL.labels(intent_type=intent_type).inc()
