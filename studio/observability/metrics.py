# studio/observability/metrics.py
# prometheus instrumentation for the preview lifecycle

from __future__ import annotations

import os
from typing import Optional

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from prometheus_client.multiprocess import MultiProcessCollector

# Detect multiprocess mode via environment.
# NOTE: PROMETHEUS_MULTIPROC_DIR must be set BEFORE importing this module when
# the API runs under several workers.
PROM_MP_DIR = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
HAVE_MP = bool(PROM_MP_DIR and os.path.isdir(PROM_MP_DIR))

# Registry used for exposition; metrics themselves always go to the default one.
REGISTRY: Optional[CollectorRegistry] = None
if HAVE_MP:
    REGISTRY = CollectorRegistry()
    MultiProcessCollector(REGISTRY)


SESSIONS_CREATED = Counter(
    "preview_sessions_created_total",
    "Preview sessions created",
    labelnames=("tier",),
)
PROVISIONING_OUTCOMES = Counter(
    "preview_provisioning_total",
    "Provisioning attempts by outcome",
    labelnames=("outcome",),  # ready | failed
)
PROVISIONING_LATENCY = Histogram(
    "preview_provisioning_seconds",
    "Schema creation plus seeding time",
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
)
SESSIONS_RECLAIMED = Counter(
    "preview_sessions_reclaimed_total",
    "Sessions reclaimed by the cleanup sweep",
    labelnames=("pass_name",),  # expired | idle | stuck
)
DROP_FAILURES = Counter(
    "preview_schema_drop_failures_total",
    "Schema drops that failed or timed out",
    labelnames=("pass_name",),
)
SWEEPS = Counter(
    "preview_sweeps_total",
    "Cleanup sweep invocations by result",
    labelnames=("result",),  # completed | partial | skipped
)


def metrics_response() -> Response:
    """// expose /metrics"""
    payload = generate_latest(REGISTRY) if REGISTRY is not None else generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
