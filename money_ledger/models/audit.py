"""
Audit Models for the Money Ledger

Every mutation of the ledger, and every rejected attempt at one, is logged
for audit purposes. This provides:
1. A trail of who-owes-what changes independent of the snapshot
2. Debugging information when a balance looks wrong
3. The liquidity alerts the dashboard shows

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
A ledger reset clears the ledger, not its audit trail.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # People and loans
    PERSON_ADDED = "person_added"
    PERSON_DELETED = "person_deleted"
    LOAN_ADDED = "loan_added"
    LOAN_DELETED = "loan_deleted"

    # Person / loan transactions
    TRANSACTION_APPLIED = "transaction_applied"
    TRANSACTION_REVERSED = "transaction_reversed"
    TRANSACTION_EDITED = "transaction_edited"

    # Investments
    INVESTMENT_CREATED = "investment_created"
    INVESTMENT_FUNDED = "investment_funded"
    INVESTMENT_WITHDRAWN = "investment_withdrawn"
    INVESTMENT_RENAMED = "investment_renamed"
    INVESTMENT_CLOSED = "investment_closed"

    # Rejections
    OPERATION_REJECTED = "operation_rejected"

    # Data management
    SNAPSHOT_SAVED = "snapshot_saved"
    SNAPSHOT_SAVE_FAILED = "snapshot_save_failed"
    SNAPSHOT_IMPORTED = "snapshot_imported"
    SNAPSHOT_EXPORTED = "snapshot_exported"
    LEDGER_CLEARED = "ledger_cleared"

    # Advisory
    LIQUIDITY_ALERT = "liquidity_alert"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every mutation attempt creates at least one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'person', 'loan', 'investment')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., an operation and its alert)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """One line of the JSON Lines audit file."""
        return json.dumps(self.to_log_dict(), default=str)


def _money(value: Decimal) -> str:
    return str(value)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.person_added(person.id, person.name)
        event = AuditEventBuilder.operation_rejected("withdraw", error)
    """

    @staticmethod
    def person_added(person_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_ADDED,
            entity_type="person",
            entity_id=person_id,
            description=f"Person added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def person_deleted(person_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="person",
            entity_id=person_id,
            description=f"Person deleted with all their transactions: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def loan_added(loan_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_ADDED,
            entity_type="loan",
            entity_id=loan_id,
            description=f"Borrower added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def loan_deleted(loan_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="loan",
            entity_id=loan_id,
            description=f"Borrower deleted with all their transactions: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def transaction_applied(
        entity_type: str,
        entity_id: str,
        kind: str,
        transaction_id: str,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_APPLIED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{kind} of {amount} recorded",
            details={
                "kind": kind,
                "transaction_id": transaction_id,
                "amount": _money(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_reversed(
        entity_type: str,
        entity_id: str,
        kind: str,
        transaction_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REVERSED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{kind} transaction deleted",
            details={"kind": kind, "transaction_id": transaction_id},
            is_user_action=True,
        )

    @staticmethod
    def transaction_edited(
        entity_type: str,
        entity_id: str,
        kind: str,
        transaction_id: str,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{kind} transaction edited to {amount}",
            details={
                "kind": kind,
                "transaction_id": transaction_id,
                "amount": _money(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def investment_created(
        investment_id: str,
        name: str,
        total: Decimal,
        contributor_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_CREATED,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment created: {name} ({total})",
            details={
                "name": name,
                "total_amount": _money(total),
                "contributors": contributor_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def investment_funded(
        investment_id: str,
        person_id: str,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_FUNDED,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Added {amount} to investment",
            details={"person_id": person_id, "amount": _money(amount)},
            is_user_action=True,
        )

    @staticmethod
    def investment_withdrawn(
        investment_id: str,
        amount: Decimal,
        transaction_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_WITHDRAWN,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Withdrew {amount} from investment",
            details={"amount": _money(amount), "transaction_id": transaction_id},
            is_user_action=True,
        )

    @staticmethod
    def investment_renamed(investment_id: str, old_name: str, new_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_RENAMED,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment renamed: {old_name} -> {new_name}",
            details={"old_name": old_name, "new_name": new_name},
            is_user_action=True,
        )

    @staticmethod
    def investment_closed(investment_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_CLOSED,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment closed (nothing left in it): {name}",
            details={"name": name},
        )

    @staticmethod
    def operation_rejected(operation: str, error: Exception) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            description=f"Operation rejected: {operation}",
            error_code=type(error).__name__,
            error_message=str(error),
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def snapshot_saved(location: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            severity=AuditSeverity.DEBUG,
            description="Ledger snapshot saved",
            details={"location": location},
        )

    @staticmethod
    def snapshot_save_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            description="Ledger snapshot could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_imported(
        people: int,
        investments: int,
        loans: int,
        warnings: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_IMPORTED,
            severity=AuditSeverity.WARNING if warnings else AuditSeverity.INFO,
            description="Ledger replaced from imported snapshot",
            details={
                "people": people,
                "investments": investments,
                "loans": loans,
                "warnings": warnings,
            },
            is_user_action=True,
        )

    @staticmethod
    def snapshot_exported(filename: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_EXPORTED,
            description=f"Ledger exported: {filename}",
            details={"filename": filename},
            is_user_action=True,
        )

    @staticmethod
    def ledger_cleared() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CLEARED,
            severity=AuditSeverity.WARNING,
            description="All ledger data cleared",
            is_user_action=True,
        )

    @staticmethod
    def liquidity_alert(balance: Decimal, obligations: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LIQUIDITY_ALERT,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            description="Bank balance is below liquid obligations",
            details={
                "balance": _money(balance),
                "liquid_obligations": _money(obligations),
                "gap": _money(obligations - balance),
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
