"""
Derived Read Models

Everything here is computed from the ledger store and never persisted.
The UI layer reads these to render lists, cards and charts.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from money_ledger.models.ledger import (
    AccountTransaction,
    InvestmentLogEntry,
)


# =============================================================================
# SIMULATION
# =============================================================================

class ShortfallExplanation(BaseModel):
    """Part of a shortfall that is tied up in one invested record."""

    investment_id: str
    investment_name: str = Field(
        ...,
        description="Investment name, or 'Unknown' for an orphaned record"
    )
    amount_covered: Decimal
    record_amount: Decimal = Field(
        ...,
        description="Full amount of the invested record"
    )
    date: date


class WithdrawalSimulation(BaseModel):
    """
    Answer to "can this person be paid `requested` right now?".

    `covered + shortfall == requested`; the explanation walks invested
    records newest first and `unexplained` is whatever they could not cover.
    """

    person_id: str
    requested: Decimal
    liquid_available: Decimal
    covered: Decimal
    shortfall: Decimal
    explanation: list[ShortfallExplanation] = Field(default_factory=list)
    unexplained: Decimal
    account_sufficient: bool = Field(
        ...,
        description="Does the bank balance alone cover the request?"
    )

    @property
    def can_withdraw(self) -> bool:
        return self.shortfall == 0


# =============================================================================
# STATEMENTS
# =============================================================================

class StatementLine(BaseModel):
    """One record in a person's or borrower's history."""

    id: str
    kind: str
    amount: Decimal
    date: date
    notes: Optional[str] = None
    investment_id: Optional[str] = None


class Holding(BaseModel):
    """A person's funds currently locked in one investment."""

    allocation_id: str
    investment_id: str
    investment_name: str
    amount: Decimal
    date: date


class PersonStatement(BaseModel):
    person_id: str
    name: str
    total_received: Decimal
    total_returned: Decimal
    total_invested: Decimal
    net_owed: Decimal
    total_owed: Decimal = Field(
        ...,
        description="Liquid plus tied-up claim (net owed + invested)"
    )
    holdings: list[Holding] = Field(default_factory=list)
    lines: list[StatementLine] = Field(
        default_factory=list,
        description="All records, newest first"
    )


class LoanStatement(BaseModel):
    loan_id: str
    name: str
    total_given: Decimal
    total_recovered: Decimal
    net_receivable: Decimal
    lines: list[StatementLine] = Field(default_factory=list)


class ContributorView(BaseModel):
    person_id: str
    person_name: str
    amount: Decimal
    share_percent: Decimal


class InvestmentDetail(BaseModel):
    investment_id: str
    name: str
    date: date
    total_amount: Decimal
    contributors: list[ContributorView] = Field(default_factory=list)
    log: list[InvestmentLogEntry] = Field(
        default_factory=list,
        description="Internal history, oldest first"
    )


# =============================================================================
# DASHBOARD
# =============================================================================

class DashboardSummary(BaseModel):
    """Headline figures shown on the dashboard and in the footer."""

    bank_balance: Decimal
    liquid_obligations: Decimal
    total_invested: Decimal
    total_receivables: Decimal
    total_owed: Decimal = Field(
        ...,
        description="Sum over people of max(0, net owed + invested)"
    )
    net_worth: Decimal
    effective_liquid_balance: Decimal
    liquidity_alert: bool = Field(
        ...,
        description="Bank balance is below liquid obligations (advisory)"
    )
    recent_activity: list[AccountTransaction] = Field(default_factory=list)
    currency: str = Field(default="INR", description="ISO code of every amount above")
