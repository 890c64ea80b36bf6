"""Métricas Prometheus del servicio de ingesta.

Se exponen en /metrics. Solo se publican agregados; nunca secretos ni payloads.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge


INGEST_READINGS = Counter(
    "forest_ingest_readings_total",
    "Total readings received by the ingest endpoints",
    ["shape", "outcome"],  # flat|envelope ; accepted|rejected_auth|rejected_validation|error
)

AUTH_REJECTIONS = Counter(
    "forest_auth_rejections_total",
    "Readings rejected by signature verification",
    ["reason"],
)

ALERTS_CREATED = Counter(
    "forest_alerts_created_total",
    "Alerts raised by the alert manager",
    ["type"],
)

ALERTS_SUPPRESSED = Counter(
    "forest_alerts_suppressed_total",
    "Qualifying readings that did not raise an alert because of the per-node cooldown",
)

PERSISTENCE_FAILURES = Counter(
    "forest_persistence_failures_total",
    "Durable store operations that failed",
    ["operation"],  # append|snapshot|query|enqueue
)

PERSIST_QUEUE_DEPTH = Gauge(
    "forest_persist_queue_depth",
    "Pending jobs in the async persistence writer",
)
