"""Import validation."""

from money_ledger.validation.validator import SnapshotValidator

__all__ = ["SnapshotValidator"]
