"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Snapshots live in a JSON file by default; in-memory backends are used for tests.
"""

from money_ledger.services.storage.interface import (
    AuditStorageInterface,
    SnapshotCorruptedError,
    SnapshotStorageInterface,
    StorageError,
)
from money_ledger.services.storage.json_file import (
    JsonFileSnapshotStorage,
    JsonLinesAuditStorage,
)
from money_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "SnapshotStorageInterface",
    # Exceptions
    "SnapshotCorruptedError",
    "StorageError",
    # JSON file implementation
    "JsonFileSnapshotStorage",
    "JsonLinesAuditStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemorySnapshotStorage",
]
