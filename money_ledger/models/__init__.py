"""
Data Models Package

This package contains all Pydantic models used by the money ledger.
Everything persisted or imported must conform to these schemas.
"""

from money_ledger.models.ledger import (
    AccountTransaction,
    AccountTransactionKind,
    Allocation,
    ContributorShare,
    InvestedRecord,
    Investment,
    InvestmentLogEntry,
    InvestmentLogKind,
    InvestmentSnapshot,
    LedgerRecord,
    LedgerSnapshot,
    Loan,
    LoanTransactionKind,
    Person,
    PersonSnapshot,
    PersonTransactionKind,
    SettlementAccount,
    ValidationIssue,
    ValidationResult,
    new_id,
    to_money,
)
from money_ledger.models.reports import (
    ContributorView,
    DashboardSummary,
    Holding,
    InvestmentDetail,
    LoanStatement,
    PersonStatement,
    ShortfallExplanation,
    StatementLine,
    WithdrawalSimulation,
)
from money_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AccountTransaction",
    "AccountTransactionKind",
    "Allocation",
    "ContributorShare",
    "InvestedRecord",
    "Investment",
    "InvestmentLogEntry",
    "InvestmentLogKind",
    "InvestmentSnapshot",
    "LedgerRecord",
    "LedgerSnapshot",
    "Loan",
    "LoanTransactionKind",
    "Person",
    "PersonSnapshot",
    "PersonTransactionKind",
    "SettlementAccount",
    "ValidationIssue",
    "ValidationResult",
    "new_id",
    "to_money",
    # Read models
    "ContributorView",
    "DashboardSummary",
    "Holding",
    "InvestmentDetail",
    "LoanStatement",
    "PersonStatement",
    "ShortfallExplanation",
    "StatementLine",
    "WithdrawalSimulation",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
