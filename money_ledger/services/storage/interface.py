"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the JSON file backend swappable for something else later
2. Use in-memory storage for testing
3. Keep the ledger engine decoupled from where snapshots live

The ledger is persisted as one whole-state snapshot, so the snapshot
interface is just save and load. Calls are synchronous: persistence is a
trailing step after a mutation has fully completed.
"""

from abc import ABC, abstractmethod
from typing import Optional

from money_ledger.models.audit import AuditEvent


class SnapshotStorageInterface(ABC):
    """
    Abstract interface for ledger snapshot storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def save_snapshot(self, text: str) -> str:
        """
        Persist the serialized ledger, replacing the previous snapshot.

        Args:
            text: Snapshot JSON text

        Returns:
            A description of where it was stored

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    def load_snapshot(self) -> Optional[str]:
        """
        Read the last saved snapshot.

        Returns:
            The snapshot text, or None if nothing has been saved yet

        Raises:
            StorageError: If the snapshot exists but cannot be read
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'person', 'investment')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class SnapshotCorruptedError(StorageError):
    """A stored snapshot exists but could not be read back."""
    pass
