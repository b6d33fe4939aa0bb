"""
Snapshot Export / Import

The export is the same indented JSON the file backend stores, offered under
a dated file name. Import goes through the two-stage validator before a new
store is built; nothing here replaces the live ledger.
"""

import datetime as dt
from typing import Optional

from money_ledger.models.ledger import ValidationResult
from money_ledger.store.ledger_store import LedgerStore
from money_ledger.validation import SnapshotValidator


def export_filename(prefix: str = "ledger_export", on: Optional[dt.date] = None) -> str:
    """`<prefix>_<YYYY-MM-DD>.json`"""
    return f"{prefix}_{(on or dt.date.today()).isoformat()}.json"


def export_snapshot(
    store: LedgerStore,
    prefix: str = "ledger_export",
    on: Optional[dt.date] = None,
) -> tuple[str, str]:
    """Serialize the whole ledger. Returns (filename, text)."""
    return export_filename(prefix, on), store.to_snapshot().to_json()


def load_snapshot(
    text: str,
    account_name: str = "Default Bank Account",
    validator: Optional[SnapshotValidator] = None,
) -> tuple[LedgerStore, ValidationResult]:
    """
    Build a new store from snapshot text.

    Raises:
        StructuralValidationError: the text failed validation
    """
    snapshot, result = (validator or SnapshotValidator()).parse(text)
    return LedgerStore.from_snapshot(snapshot, account_name=account_name), result
