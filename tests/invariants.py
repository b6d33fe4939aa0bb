"""Whole-ledger consistency checks shared by the test modules."""

from money_ledger.engine.balances import net_owed
from money_ledger.models.ledger import ZERO
from money_ledger.store import LedgerStore


def assert_ledger_consistent(store: LedgerStore) -> None:
    # balance == sum of signed entries
    assert store.account.balance == store.logged_balance()

    entry_ids = [t.id for t in store.account.transactions]
    assert len(entry_ids) == len(set(entry_ids)), "account entry ids must be unique"

    for person in store.people:
        received = sum((r.amount for r in person.received), ZERO)
        returned = sum((r.amount for r in person.returned), ZERO)
        invested = sum((r.amount for r in store.invested_records(person.id)), ZERO)
        assert net_owed(store, person) == received - returned - invested
        assert person.net_owed == received - returned - invested

    for investment in store.investments:
        total = store.investment_total(investment.id)
        assert total > 0
        assert total == sum((c.amount for c in store.contributors(investment.id)), ZERO)

    for row in store.allocations:
        assert row.amount > 0
        assert store.find_investment(row.investment_id) is not None
        if row.account_transaction_id is not None:
            assert store.find_account_transaction(row.account_transaction_id) is not None

    snapshot = store.to_snapshot()
    for investment in snapshot.investments:
        assert investment.total_amount == sum((c.amount for c in investment.contributors), ZERO)
