"""Canonical ledger state."""

from money_ledger.store.ledger_store import AllocationTable, LedgerStore

__all__ = ["AllocationTable", "LedgerStore"]
