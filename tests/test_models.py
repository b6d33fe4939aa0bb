"""
Tests for the Money Ledger models

Test strategy:
1. Unit tests for individual components (models, engines, validator)
2. Integration tests for the service facade (with in-memory storage)
3. No real files outside tmp_path
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from money_ledger.models.ledger import (
    AccountTransaction,
    AccountTransactionKind,
    ContributorShare,
    InvestmentLogEntry,
    InvestmentLogKind,
    LedgerRecord,
    LedgerSnapshot,
    Person,
    PersonSnapshot,
    SettlementAccount,
    ValidationIssue,
    ValidationResult,
    money_to_json,
    to_money,
)
from money_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestMoney:
    """Tests for decimal amount handling."""

    def test_string_amount_is_quantized_to_cents(self):
        """Test '10.5' becomes 10.50."""
        assert to_money("10.5") == Decimal("10.50")
        assert str(to_money("10.5")) == "10.50"

    def test_int_amount(self):
        assert to_money(500) == Decimal("500.00")

    def test_float_noise_is_absorbed(self):
        """Test binary float noise from older exports is tolerated."""
        assert to_money(0.1 + 0.2) == Decimal("0.30")

    def test_sub_cent_amount_rejected(self):
        """Test amounts with more than two decimals are rejected, not rounded."""
        with pytest.raises(ValueError, match="more than two decimal places"):
            to_money("10.555")

    @pytest.mark.parametrize("value", ["abc", "inf", "NaN", True, None])
    def test_non_amounts_rejected(self, value):
        with pytest.raises(ValueError):
            to_money(value)

    def test_json_numbers(self):
        """Test amounts serialize as plain numbers."""
        assert money_to_json(Decimal("500.00")) == 500
        assert isinstance(money_to_json(Decimal("500.00")), int)
        assert money_to_json(Decimal("10.50")) == 10.5

    def test_repeated_additions_do_not_drift(self):
        total = Decimal("0.00")
        for _ in range(1000):
            total += to_money(0.1)
        assert total == Decimal("100.00")


class TestLedgerModels:
    """Tests for ledger entity models."""

    def test_record_defaults(self):
        record = LedgerRecord(amount=100)
        assert record.id
        assert record.date == date.today()
        assert record.notes is None

    def test_record_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            LedgerRecord(amount=Decimal("-100"))

    def test_person_name_strips_whitespace(self):
        person = Person(name="  Ravi  ")
        assert person.name == "Ravi"

    def test_person_requires_name(self):
        with pytest.raises(ValueError):
            Person(name="   ")

    def test_account_transaction_amount_is_signed(self):
        entry = AccountTransaction(kind=AccountTransactionKind.RETURN, amount=-250)
        assert entry.amount == Decimal("-250.00")

    def test_camel_case_aliases(self):
        """Test snapshot field names are camelCase and 'type' for kinds."""
        entry = AccountTransaction(
            kind=AccountTransactionKind.LOAN_GIVE,
            amount=-100,
            linked_loan_id="loan-1",
        )
        dumped = entry.model_dump(by_alias=True, mode="json")
        assert dumped["type"] == "Loan Give"
        assert dumped["linkedLoanId"] == "loan-1"
        assert dumped["amount"] == -100

    def test_both_spellings_accepted_on_input(self):
        a = ContributorShare.model_validate({"personId": "p1", "amount": 5})
        b = ContributorShare(person_id="p1", amount=5)
        assert a == b

    def test_log_entry_kind_values(self):
        entry = InvestmentLogEntry.model_validate(
            {"type": "Additional Contribution", "amount": 50}
        )
        assert entry.kind is InvestmentLogKind.ADDITIONAL


class TestSnapshotModel:
    """Tests for the four-collection snapshot document."""

    def test_loans_default_to_empty(self):
        snapshot = LedgerSnapshot.model_validate(
            {"people": [], "accounts": [], "investments": []}
        )
        assert snapshot.loans == []

    def test_required_collections(self):
        with pytest.raises(ValueError):
            LedgerSnapshot.model_validate({"people": [], "accounts": []})

    def test_to_json_uses_plain_numbers_and_aliases(self):
        snapshot = LedgerSnapshot(
            people=[PersonSnapshot(id="p1", name="Ravi", net_owed=Decimal("12.50"))],
            accounts=[SettlementAccount(balance=Decimal("500.00"))],
            investments=[],
        )
        data = json.loads(snapshot.to_json())
        assert set(data) == {"people", "accounts", "investments", "loans"}
        assert data["accounts"][0]["balance"] == 500
        assert data["people"][0]["netOwed"] == 12.5
        assert data["accounts"][0]["type"] == "Bank"


class TestValidationModels:
    """Tests for validation-related models."""

    def test_validation_issue_creation(self):
        issue = ValidationIssue(
            field="people[0].invested[1]",
            issue_type="orphan_record",
            message="Unknown investment",
            severity="error",
        )
        assert issue.severity == "error"

    def test_validation_issue_severity_pattern(self):
        with pytest.raises(ValueError):
            ValidationIssue(
                field="x",
                issue_type="x",
                message="x",
                severity="fatal",
            )

    def test_validation_result_counts(self):
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=False,
            issues=[
                ValidationIssue(field="a", issue_type="t", message="m", severity="error"),
                ValidationIssue(field="b", issue_type="t", message="m", severity="warning"),
            ],
        )
        assert not result.is_valid
        assert result.has_errors
        assert result.error_count == 1


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.PERSON_ADDED,
            description="Person added",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_builder_person_added(self):
        event = AuditEventBuilder.person_added("p1", "Ravi")
        assert event.event_type == AuditEventType.PERSON_ADDED
        assert event.entity_type == "person"
        assert event.entity_id == "p1"
        assert event.is_user_action

    def test_builder_operation_rejected(self):
        event = AuditEventBuilder.operation_rejected("withdraw", ValueError("too much"))
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "ValueError"
        assert event.error_message == "too much"
        assert event.details["operation"] == "withdraw"

    def test_builder_liquidity_alert(self):
        event = AuditEventBuilder.liquidity_alert(Decimal("100.00"), Decimal("500.00"))
        assert event.details["gap"] == "400.00"

    def test_json_line_round_trip(self):
        event = AuditEventBuilder.transaction_applied(
            "person", "p1", "Receipt", "t1", Decimal("500.00"),
        )
        restored = AuditEvent.model_validate(json.loads(event.to_json_line()))
        assert restored.event_id == event.event_id
        assert restored.event_type == AuditEventType.TRANSACTION_APPLIED
        assert restored.details["amount"] == "500.00"

    def test_audit_event_to_log_dict(self):
        event = AuditEventBuilder.system_error("boom", "something broke")
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "system_error"
        assert log_dict["severity"] == "error"
