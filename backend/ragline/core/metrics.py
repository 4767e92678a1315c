"""Prometheus metrics instrumentation."""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

QUERY_COUNT = Counter(
    "ragline_queries_total",
    "Total questions answered",
    labelnames=("strategy", "status"),
    registry=REGISTRY,
)

SEARCH_COUNT = Counter(
    "ragline_searches_total",
    "Total retrieval calls",
    labelnames=("strategy",),
    registry=REGISTRY,
)

STAGE_LATENCY = Histogram(
    "ragline_stage_latency_seconds",
    "Latency of query pipeline stages",
    labelnames=("stage",),
    registry=REGISTRY,
)

EMBEDDING_RETRIES = Counter(
    "ragline_embedding_retries_total",
    "Embedding batch attempts that failed and were retried",
    registry=REGISTRY,
)

CONTEXT_TRUNCATIONS = Counter(
    "ragline_context_truncations_total",
    "Assembled contexts that dropped at least one candidate",
    registry=REGISTRY,
)

KEYWORD_INDEX_SIZE = Gauge(
    "ragline_keyword_index_documents",
    "Number of chunks in the published keyword index",
    registry=REGISTRY,
)


def metrics_payload() -> tuple[bytes, str]:
    """Return metrics in the Prometheus text format with its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "QUERY_COUNT",
    "SEARCH_COUNT",
    "STAGE_LATENCY",
    "EMBEDDING_RETRIES",
    "CONTEXT_TRUNCATIONS",
    "KEYWORD_INDEX_SIZE",
    "metrics_payload",
]
