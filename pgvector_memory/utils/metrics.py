"""pgvector memory — Prometheus Metrics Utilities."""

from __future__ import annotations

import logging

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

log = logging.getLogger(__name__)


# ────────── Base collectors ──────────
MET_ERRORS_TOTAL = Counter("pgmem_errors_total", "Total errors", ["type", "component"])
LAT_DB_QUERY = Histogram("pgmem_db_query_latency_seconds", "DB operation latency")
LAT_SEARCH = Histogram("pgmem_search_latency_seconds", "Similarity search latency")
MET_POOL_TIMEOUTS = Counter("pgmem_pool_timeouts_total", "Connection pool acquisition timeouts")


# ────────── Helpers ──────────
def get_prometheus_metrics() -> str:
    """Return metrics text for a scrape endpoint."""
    return generate_latest().decode()


def get_metrics_content_type() -> str:
    """Return content-type for metrics endpoint."""
    return CONTENT_TYPE_LATEST
