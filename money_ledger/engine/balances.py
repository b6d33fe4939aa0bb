"""
Balance Calculator

Pure derivations over the ledger store. The only side effect is refreshing
the `net_owed` / `net_owed_to_me` caches on the entity passed in.

Vocabulary:
- net owed (person): liquid amount the user owes that person
  = received - returned - invested
- net receivable (loan): amount the borrower still owes the user
  = given - recovered
- liquid obligations: sum of positive net owed; an overpaid person does not
  offset anyone else
"""

from decimal import Decimal

from money_ledger.models.ledger import ZERO, LedgerRecord, Loan, Person
from money_ledger.store.ledger_store import LedgerStore


def _sum(records: list[LedgerRecord]) -> Decimal:
    return sum((record.amount for record in records), ZERO)


def total_invested_by(store: LedgerStore, person: Person) -> Decimal:
    return _sum(store.invested_records(person.id))


def net_owed(store: LedgerStore, person: Person) -> Decimal:
    """received - returned - invested, cached on the person."""
    value = _sum(person.received) - _sum(person.returned) - total_invested_by(store, person)
    person.net_owed = value
    return value


def net_receivable(loan: Loan) -> Decimal:
    """given - recovered, cached on the loan."""
    value = _sum(loan.given) - _sum(loan.recovered)
    loan.net_owed_to_me = value
    return value


def total_owed_including_invested(store: LedgerStore, person: Person) -> Decimal:
    """
    The person's whole claim: liquid plus tied up in investments.

    Deliberately adds the invested amount back on top of net owed, which
    already subtracted it.
    """
    return net_owed(store, person) + total_invested_by(store, person)


def total_liquid_obligations(store: LedgerStore) -> Decimal:
    return sum((max(ZERO, net_owed(store, p)) for p in store.people), ZERO)


def total_invested(store: LedgerStore) -> Decimal:
    return sum((store.investment_total(i.id) for i in store.investments), ZERO)


def total_receivables(store: LedgerStore) -> Decimal:
    return sum((max(ZERO, net_receivable(loan)) for loan in store.loans), ZERO)


def total_owed_to_others(store: LedgerStore) -> Decimal:
    return sum(
        (max(ZERO, total_owed_including_invested(store, p)) for p in store.people),
        ZERO,
    )


def net_worth(store: LedgerStore) -> Decimal:
    """Bank balance plus invested funds, less everything owed to others."""
    return store.account.balance + total_invested(store) - total_owed_to_others(store)


def effective_liquid_balance(store: LedgerStore) -> Decimal:
    return store.account.balance - total_liquid_obligations(store)


def is_underfunded(store: LedgerStore) -> bool:
    """Advisory only: the account cannot cover every liquid obligation at once."""
    return store.account.balance < total_liquid_obligations(store)


def recalculate_all(store: LedgerStore) -> None:
    """Refresh every cached derived balance."""
    for person in store.people:
        net_owed(store, person)
    for loan in store.loans:
        net_receivable(loan)
