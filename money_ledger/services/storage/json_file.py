"""
JSON File Storage Implementation

DESIGN DECISION: A single JSON file is the default snapshot backend because:
1. The snapshot is already JSON (the same text the export produces)
2. No database setup required
3. Users can open, copy and back up the file themselves

TRADEOFFS:
- Every save rewrites the whole file (fine for a personal ledger)
- One writer at a time; there is no locking

Writes go to a temporary file in the same directory and are then moved
over the old snapshot, so a crash mid-write never leaves a half-written
ledger behind. The audit log is JSON Lines, appended one event per line.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from money_ledger.models.audit import AuditEvent
from money_ledger.services.storage.interface import (
    AuditStorageInterface,
    SnapshotCorruptedError,
    SnapshotStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


def _retrying(attempts: int) -> Retrying:
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )


class JsonFileSnapshotStorage(SnapshotStorageInterface):
    """Whole-ledger snapshot kept in one JSON file."""

    def __init__(self, path: Path, retry_attempts: int = 3):
        self._path = Path(path)
        self._retry_attempts = retry_attempts

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def save_snapshot(self, text: str) -> str:
        """Replace the snapshot file, retrying transient OS errors."""
        try:
            for attempt in _retrying(self._retry_attempts):
                with attempt:
                    self._write(text)
        except OSError as e:
            raise StorageError(f"Failed to save snapshot to {self._path}: {e}") from e

        logger.debug("snapshot_written", path=str(self._path), size=len(text))
        return str(self._path)

    def load_snapshot(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            return self._path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise SnapshotCorruptedError(f"Snapshot {self._path} is not UTF-8 text: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read snapshot {self._path}: {e}") from e


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Audit log as JSON Lines.

    Audit events are append-only.
    """

    def __init__(self, path: Path, retry_attempts: int = 3):
        self._path = Path(path)
        self._retry_attempts = retry_attempts

    def _append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            for attempt in _retrying(self._retry_attempts):
                with attempt:
                    self._append(event.to_json_line())
        except OSError as e:
            raise StorageError(f"Failed to append audit event: {e}") from e
        return True

    def _read_all(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for line in lines:
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate(json.loads(line)))
            except ValueError:
                logger.warning("audit_line_unreadable", path=str(self._path))
                continue
        return events

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._read_all()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_all()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
