"""
Core Data Models for Money Ledger

These models define the strict schemas for the ledger state and for the
whole-ledger snapshot that is persisted, exported and imported.
They are designed to:
1. Keep every amount in exact decimal cents
2. Provide clear validation error messages on import
3. Serialize to the camelCase snapshot format (plain JSON numbers)
4. Accept both camelCase and snake_case field names on input

DESIGN DECISION: A person's invested records and an investment's contributors
are two views of one relationship. Only the `Allocation` row is stored; the
snapshot shapes (`PersonSnapshot.invested`, `InvestmentSnapshot.contributors`,
`InvestmentSnapshot.total_amount`) are materialized from it on export.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# MONEY - exact decimal cents
# =============================================================================

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
FLOAT_NOISE = Decimal("0.000001")
NAME_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 1000

MoneyInput = Union[Decimal, int, str, float]


def to_money(value: Any) -> Decimal:
    """
    Convert a user or snapshot value to a two-place Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion. Values with more than two decimal places are rejected rather
    than rounded, except for float noise well below a cent.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(str(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a monetary amount: {value!r}")

    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")

    quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if quantized == amount:
        return quantized
    # Float arithmetic in older exports leaves noise like 0.30000000000000004
    if isinstance(value, float) and abs(quantized - amount) < FLOAT_NOISE:
        return quantized
    raise ValueError(f"Amount has more than two decimal places: {value!r}")


def money_to_json(value: Decimal) -> Union[int, float]:
    """Snapshot amounts are plain JSON numbers."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def new_id() -> str:
    return str(uuid4())


Money = Annotated[
    Decimal,
    BeforeValidator(to_money),
    PlainSerializer(money_to_json, when_used="json"),
]
NonNegativeMoney = Annotated[Money, Field(ge=0)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PersonTransactionKind(str, Enum):
    """Kinds of record kept against a person who lent money to the user."""
    RECEIPT = "Receipt"        # Person gave funds to the user
    RETURN = "Return"          # User gave funds back
    INVESTMENT = "Investment"  # Person's funds locked in an investment


class LoanTransactionKind(str, Enum):
    """Kinds of record kept against a borrower."""
    GIVE = "Give"
    RECOVERY = "Recovery"


class AccountTransactionKind(str, Enum):
    """
    Kinds of settlement account entry.

    REVERSAL and ADJUSTMENT are only posted when a snapshot imported from
    elsewhere lacks the entry a reversal would normally remove, or declares
    a balance its own log does not add up to.
    """
    RECEIPT = "Receipt"
    RETURN = "Return"
    INVESTMENT = "Investment"
    WITHDRAWAL = "Withdrawal"
    LOAN_GIVE = "Loan Give"
    LOAN_RECOVERY = "Loan Recovery"
    REVERSAL = "Reversal"
    ADJUSTMENT = "Adjustment"


class InvestmentLogKind(str, Enum):
    """Entries of an investment's internal history."""
    INITIAL = "Initial"
    ADDITIONAL = "Additional Contribution"
    WITHDRAWAL = "Withdrawal"


class LedgerModel(BaseModel):
    """Base for every persisted model: camelCase on the wire, snake_case in code."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# RECORDS
# =============================================================================

class LedgerRecord(LedgerModel):
    """
    A single received/returned/given/recovered record.

    Amounts are always positive; the direction comes from the sequence
    the record lives in.
    """
    id: str = Field(default_factory=new_id)
    amount: NonNegativeMoney
    date: dt.date = Field(default_factory=dt.date.today)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)


class InvestedRecord(LedgerRecord):
    """Snapshot form of an allocation, nested under its person."""
    investment_id: str
    account_transaction_id: Optional[str] = Field(
        default=None,
        description="Account entry that debited these funds"
    )


class Allocation(InvestedRecord):
    """
    One row of the person <-> investment relationship table.

    The row id doubles as the person-level transaction id and as the id of
    the matching entry in the investment's internal log.
    """
    person_id: str

    def as_invested_record(self) -> InvestedRecord:
        return InvestedRecord.model_validate(self.model_dump(exclude={"person_id"}))


class ContributorShare(LedgerModel):
    """A person's allocated amount within an investment."""
    person_id: str
    amount: NonNegativeMoney


class InvestmentLogEntry(LedgerModel):
    """Internal history entry of an investment (kept for display)."""
    id: str = Field(default_factory=new_id)
    kind: InvestmentLogKind = Field(..., alias="type")
    amount: NonNegativeMoney
    date: dt.date = Field(default_factory=dt.date.today)
    contributor_id: Optional[str] = None
    account_transaction_id: Optional[str] = None
    notes: Optional[str] = None


class AccountTransaction(LedgerModel):
    """
    One settlement account entry.

    `amount` is signed: positive credits the account, negative debits it.
    """
    id: str = Field(default_factory=new_id)
    kind: AccountTransactionKind = Field(..., alias="type")
    amount: Money
    date: dt.date = Field(default_factory=dt.date.today)
    description: str = ""
    linked_person_id: Optional[str] = None
    linked_loan_id: Optional[str] = None
    investment_id: Optional[str] = None


# =============================================================================
# ENTITIES
# =============================================================================

class Person(LedgerModel):
    """
    Someone whose money the user holds.

    `net_owed` is only a cache of the last computation; the authoritative
    value is always recomputed from the sequences and the allocation table.
    """
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    received: list[LedgerRecord] = Field(default_factory=list)
    returned: list[LedgerRecord] = Field(default_factory=list)
    net_owed: Money = ZERO
    notes: str = ""
    created_at: Optional[dt.date] = None


class Loan(LedgerModel):
    """A borrower the user has lent money to."""
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    given: list[LedgerRecord] = Field(default_factory=list)
    recovered: list[LedgerRecord] = Field(default_factory=list)
    net_owed_to_me: Money = ZERO


class Investment(LedgerModel):
    """
    A (possibly multi-contributor) investment.

    Total and contributors are not stored here; the ledger store derives
    them from the allocation table.
    """
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    date: dt.date = Field(default_factory=dt.date.today)
    status: str = "Active"
    notes: str = ""
    transactions: list[InvestmentLogEntry] = Field(default_factory=list)


class SettlementAccount(LedgerModel):
    """The single bank account every flow settles through."""
    id: str = Field(default_factory=new_id)
    name: str = "Default Bank Account"
    kind: str = Field(default="Bank", alias="type")
    balance: Money = ZERO
    transactions: list[AccountTransaction] = Field(default_factory=list)


# =============================================================================
# SNAPSHOT - the persisted / exported whole-ledger document
# =============================================================================

class PersonSnapshot(Person):
    invested: list[InvestedRecord] = Field(default_factory=list)


class InvestmentSnapshot(Investment):
    total_amount: Money = ZERO
    contributors: list[ContributorShare] = Field(default_factory=list)


class LedgerSnapshot(LedgerModel):
    """
    Whole-ledger state: four named collections.

    `people`, `accounts` and `investments` are required; `loans` was added
    later and defaults to empty for older exports.
    """
    people: list[PersonSnapshot]
    accounts: list[SettlementAccount]
    investments: list[InvestmentSnapshot]
    loans: list[Loan] = Field(default_factory=list)

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found while validating an imported snapshot."""

    field: str = Field(
        ...,
        description="Location of the issue (e.g. 'people[2].invested[0]')"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g. 'missing', 'duplicate_id', 'orphan_record')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage snapshot validation.

    Stage 1: Schema validation (structure, types)
    Stage 2: Semantic validation (references, derived totals)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
