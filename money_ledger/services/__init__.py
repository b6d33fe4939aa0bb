"""Services package."""

from money_ledger.services.snapshot_io import (
    export_filename,
    export_snapshot,
    load_snapshot,
)
from money_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
    JsonFileSnapshotStorage,
    JsonLinesAuditStorage,
    SnapshotCorruptedError,
    SnapshotStorageInterface,
    StorageError,
)

__all__ = [
    # Snapshot codec
    "export_filename",
    "export_snapshot",
    "load_snapshot",
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemorySnapshotStorage",
    "JsonFileSnapshotStorage",
    "JsonLinesAuditStorage",
    "SnapshotCorruptedError",
    "SnapshotStorageInterface",
    "StorageError",
]
