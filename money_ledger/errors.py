"""
Ledger Errors

Every rejected operation raises one of these BEFORE anything is mutated.
No error is fatal: the store stays usable and the caller may retry with
corrected input.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidInputError(LedgerError):
    """Non-positive amount, missing name, or otherwise unusable input."""
    pass


class InsufficientFundsError(LedgerError):
    """The settlement account cannot cover the requested debit."""

    def __init__(self, requested: Decimal, available: Decimal, message: Optional[str] = None):
        self.requested = requested
        self.available = available
        super().__init__(
            message
            or f"Cannot move {requested}: bank balance is only {available}"
        )


class ExceedsLiquidClaimError(LedgerError):
    """A person, borrower or investment does not hold enough to cover the amount."""

    def __init__(
        self,
        entity_name: str,
        requested: Decimal,
        available: Decimal,
        message: Optional[str] = None,
    ):
        self.entity_name = entity_name
        self.requested = requested
        self.available = available
        super().__init__(
            message
            or f"Cannot use {requested} for {entity_name}: only {available} is available"
        )


class AllocationMismatchError(LedgerError):
    """Per-contributor amounts do not add up to the declared total."""

    def __init__(self, declared: Decimal, allocated: Decimal):
        self.declared = declared
        self.allocated = allocated
        super().__init__(
            f"Allocation mismatch: allocated {allocated} but total is {declared}"
        )


class DuplicateNameError(LedgerError):
    """An active investment already uses this name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"An investment named '{name}' already exists")


class TransactionNotFoundError(LedgerError):
    def __init__(self, transaction_id: str, kind: Optional[str] = None):
        self.transaction_id = transaction_id
        self.kind = kind
        label = f"{kind} transaction" if kind else "Transaction"
        super().__init__(f"{label} not found: {transaction_id}")


class EntityNotFoundError(LedgerError):
    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class StructuralValidationError(LedgerError):
    """An imported snapshot is malformed; carries every issue found."""

    def __init__(self, issues: list, message: Optional[str] = None):
        self.issues = issues
        super().__init__(
            message
            or f"Snapshot rejected with {len(issues)} issue(s): "
            + "; ".join(issue.message for issue in issues[:3])
        )


class ImportNotConfirmedError(LedgerError):
    """Import replaces the whole ledger and must be confirmed explicitly."""
    pass
