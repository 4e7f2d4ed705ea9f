"""Prometheus metrics instrumentation for the seller desk.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the counters below.
- ``MESSAGES_INGESTED``: Stored inbound messages by channel and routing outcome.
- ``MESSAGES_DEDUPLICATED``: Repeated webhook deliveries answered from storage.
- ``THREADS_CONSOLIDATED``: Successful consolidations.

Counters are incremented where the event happens, after commit.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

MESSAGES_INGESTED: Counter = Counter(
    "sellerdesk_messages_ingested_total",
    "Inbound messages stored, by channel and routing outcome",
    ["channel", "outcome"],
)

MESSAGES_DEDUPLICATED: Counter = Counter(
    "sellerdesk_messages_deduplicated_total",
    "Inbound deliveries that matched an already stored external message id",
    ["channel"],
)

THREADS_CONSOLIDATED: Counter = Counter(
    "sellerdesk_threads_consolidated_total",
    "Consolidations committed",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
