"""Read-side reports package."""

from money_ledger.queries.reports import LedgerReports, newest_first

__all__ = ["LedgerReports", "newest_first"]
