"""Persistencia durable (best-effort) de la telemetría."""

from .async_writer import AsyncPersistenceWriter
from .gateway import TelemetryStore
from .snapshot_file import SnapshotFileStore
from .sql_store import SqlTelemetryStore

__all__ = [
    "AsyncPersistenceWriter",
    "SnapshotFileStore",
    "SqlTelemetryStore",
    "TelemetryStore",
]
