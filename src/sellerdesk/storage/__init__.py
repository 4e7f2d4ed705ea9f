"""SQLite persistence: schema, connections, and the unit-of-work wrapper."""

from sellerdesk.storage.schema import (
    Clock,
    connect,
    format_ts,
    init_db,
    init_schema,
    parse_ts,
    utc_now,
)
from sellerdesk.storage.unit_of_work import UnitOfWork, storage_errors

__all__ = [
    "Clock",
    "UnitOfWork",
    "connect",
    "format_ts",
    "init_db",
    "init_schema",
    "parse_ts",
    "storage_errors",
    "utc_now",
]
