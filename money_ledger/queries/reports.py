"""
Read-Side Reports

DESIGN DECISION: Reports are DETERMINISTIC reads of the ledger store.
They never mutate anything except the cached net-owed fields the balance
calculator refreshes, and every number shown comes from the same
derivations the engine validates against.
"""

from decimal import Decimal
from typing import Iterable, TypeVar

from money_ledger.engine import balances
from money_ledger.models.ledger import (
    CENT,
    ZERO,
    AccountTransaction,
    LedgerRecord,
)
from money_ledger.models.reports import (
    ContributorView,
    DashboardSummary,
    Holding,
    InvestmentDetail,
    LoanStatement,
    PersonStatement,
    StatementLine,
)
from money_ledger.store.ledger_store import LedgerStore


T = TypeVar("T")


def newest_first(items: Iterable[T]) -> list[T]:
    """Sort by date descending; on the same date the later-recorded item comes first."""
    return sorted(reversed(list(items)), key=lambda item: item.date, reverse=True)


def _lines(kind: str, records: list[LedgerRecord]) -> list[StatementLine]:
    return [
        StatementLine(id=r.id, kind=kind, amount=r.amount, date=r.date, notes=r.notes)
        for r in records
    ]


def _total(records: Iterable[LedgerRecord]) -> Decimal:
    return sum((r.amount for r in records), ZERO)


class LedgerReports:
    """
    Builds the dashboard, statements and detail views.

    GUARANTEES:
    - Only returns what is in the store
    - Orphaned invested records are skipped in holdings, never invented
    """

    def __init__(
        self,
        store: LedgerStore,
        recent_activity_limit: int = 5,
        currency_code: str = "INR",
    ):
        self._store = store
        self._recent_limit = recent_activity_limit
        self._currency = currency_code

    def dashboard(self) -> DashboardSummary:
        store = self._store
        obligations = balances.total_liquid_obligations(store)
        return DashboardSummary(
            bank_balance=store.account.balance,
            liquid_obligations=obligations,
            total_invested=balances.total_invested(store),
            total_receivables=balances.total_receivables(store),
            total_owed=balances.total_owed_to_others(store),
            net_worth=balances.net_worth(store),
            effective_liquid_balance=store.account.balance - obligations,
            liquidity_alert=store.account.balance < obligations,
            recent_activity=self.account_log()[: self._recent_limit],
            currency=self._currency,
        )

    def person_statement(self, person_id: str) -> PersonStatement:
        store = self._store
        person = store.get_person(person_id)
        rows = store.invested_records(person.id)

        holdings = []
        for row in rows:
            investment = store.find_investment(row.investment_id)
            if investment is None:
                continue
            holdings.append(Holding(
                allocation_id=row.id,
                investment_id=investment.id,
                investment_name=investment.name,
                amount=row.amount,
                date=row.date,
            ))

        lines = (
            _lines("Receipt", person.received)
            + _lines("Return", person.returned)
            + [
                StatementLine(
                    id=row.id,
                    kind="Investment",
                    amount=row.amount,
                    date=row.date,
                    notes=row.notes,
                    investment_id=row.investment_id,
                )
                for row in rows
            ]
        )

        return PersonStatement(
            person_id=person.id,
            name=person.name,
            total_received=_total(person.received),
            total_returned=_total(person.returned),
            total_invested=_total(rows),
            net_owed=balances.net_owed(store, person),
            total_owed=balances.total_owed_including_invested(store, person),
            holdings=holdings,
            lines=newest_first(lines),
        )

    def loan_statement(self, loan_id: str) -> LoanStatement:
        loan = self._store.get_loan(loan_id)
        return LoanStatement(
            loan_id=loan.id,
            name=loan.name,
            total_given=_total(loan.given),
            total_recovered=_total(loan.recovered),
            net_receivable=balances.net_receivable(loan),
            lines=newest_first(_lines("Give", loan.given) + _lines("Recovery", loan.recovered)),
        )

    def account_log(self) -> list[AccountTransaction]:
        """Every settlement account entry, newest first."""
        return newest_first(self._store.account.transactions)

    def investment_detail(self, investment_id: str) -> InvestmentDetail:
        store = self._store
        investment = store.get_investment(investment_id)
        total = store.investment_total(investment.id)

        contributors = []
        for share in store.contributors(investment.id):
            person = store.find_person(share.person_id)
            percent = (share.amount * 100 / total).quantize(CENT) if total > 0 else ZERO
            contributors.append(ContributorView(
                person_id=share.person_id,
                person_name=person.name if person else "Unknown",
                amount=share.amount,
                share_percent=percent,
            ))

        return InvestmentDetail(
            investment_id=investment.id,
            name=investment.name,
            date=investment.date,
            total_amount=total,
            contributors=contributors,
            log=sorted(investment.transactions, key=lambda e: e.date),
        )
