"""In-memory storage backends, for tests and throwaway sessions."""

from typing import Optional

from money_ledger.models.audit import AuditEvent
from money_ledger.services.storage.interface import (
    AuditStorageInterface,
    SnapshotStorageInterface,
)


class InMemorySnapshotStorage(SnapshotStorageInterface):

    def __init__(self, initial: Optional[str] = None):
        self._text = initial
        self.save_count = 0

    def save_snapshot(self, text: str) -> str:
        self._text = text
        self.save_count += 1
        return "memory"

    def load_snapshot(self) -> Optional[str]:
        return self._text


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
