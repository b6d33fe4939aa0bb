"""Tests for the ledger store and its allocation table."""

from datetime import date
from decimal import Decimal

import pytest

from money_ledger.errors import EntityNotFoundError
from money_ledger.models.ledger import (
    AccountTransactionKind,
    Allocation,
    Investment,
    InvestedRecord,
    LedgerRecord,
    LedgerSnapshot,
    PersonSnapshot,
    SettlementAccount,
    InvestmentSnapshot,
)
from money_ledger.store import AllocationTable, LedgerStore

from invariants import assert_ledger_consistent


def _row(row_id, person_id, investment_id, amount, on=date(2024, 1, 1)):
    return Allocation(
        id=row_id,
        person_id=person_id,
        investment_id=investment_id,
        amount=amount,
        date=on,
    )


class TestAllocationTable:
    """Tests for the person <-> investment relationship table."""

    def test_indexes_both_ways(self):
        table = AllocationTable([
            _row("a", "p1", "i1", 100),
            _row("b", "p2", "i1", 50),
            _row("c", "p1", "i2", 25),
        ])
        assert [r.id for r in table.for_person("p1")] == ["a", "c"]
        assert [r.id for r in table.for_investment("i1")] == ["a", "b"]
        assert table.total("i1") == Decimal("150.00")
        assert len(table) == 3
        assert "b" in table

    def test_contributors_aggregate_per_person_in_first_contribution_order(self):
        table = AllocationTable([
            _row("a", "p2", "i1", 100),
            _row("b", "p1", "i1", 50),
            _row("c", "p2", "i1", 25),
        ])
        shares = table.contributors("i1")
        assert [(s.person_id, s.amount) for s in shares] == [
            ("p2", Decimal("125.00")),
            ("p1", Decimal("50.00")),
        ]

    def test_duplicate_row_id_rejected(self):
        table = AllocationTable([_row("a", "p1", "i1", 100)])
        with pytest.raises(ValueError):
            table.add(_row("a", "p2", "i1", 100))

    def test_remove_updates_indexes(self):
        table = AllocationTable([_row("a", "p1", "i1", 100), _row("b", "p1", "i1", 50)])
        table.remove("a")
        assert [r.id for r in table.for_person("p1")] == ["b"]
        assert table.total("i1") == Decimal("50.00")
        assert table.get("a") is None

    def test_for_pair(self):
        table = AllocationTable([
            _row("a", "p1", "i1", 100),
            _row("b", "p2", "i1", 50),
            _row("c", "p1", "i1", 10),
        ])
        assert [r.id for r in table.for_pair("p1", "i1")] == ["a", "c"]


class TestSettlementAccount:
    """Tests for the balance / entry log pairing."""

    def test_post_moves_balance_by_signed_amount(self, store):
        store.post(AccountTransactionKind.RECEIPT, Decimal("500.00"), date.today(), "in")
        store.post(AccountTransactionKind.RETURN, Decimal("-200.00"), date.today(), "out")
        assert store.account.balance == Decimal("300.00")
        assert store.logged_balance() == Decimal("300.00")

    def test_post_uses_given_id(self, store):
        entry = store.post(
            AccountTransactionKind.RECEIPT, Decimal("1.00"), date.today(), "in",
            transaction_id="t-1",
        )
        assert entry.id == "t-1"
        assert store.find_account_transaction("t-1") is entry

    def test_remove_undoes_balance(self, store):
        entry = store.post(AccountTransactionKind.RECEIPT, Decimal("500.00"), date.today(), "in")
        store.remove_account_transaction(entry.id)
        assert store.account.balance == Decimal("0.00")
        assert store.account.transactions == []

    def test_remove_unknown_entry(self, store):
        with pytest.raises(EntityNotFoundError):
            store.remove_account_transaction("missing")

    def test_amend_moves_balance_by_difference(self, store):
        entry = store.post(AccountTransactionKind.INVESTMENT, Decimal("-1000.00"), date.today(), "x")
        store.amend_account_transaction(entry.id, Decimal("-400.00"))
        assert store.account.balance == Decimal("-400.00")
        assert store.logged_balance() == Decimal("-400.00")

    def test_find_account_transaction_none(self, store):
        assert store.find_account_transaction(None) is None


class TestLookups:
    """Tests for get/find helpers."""

    def test_get_unknown_person(self, store):
        with pytest.raises(EntityNotFoundError, match="Person not found"):
            store.get_person("nope")

    def test_get_unknown_investment(self, store):
        with pytest.raises(EntityNotFoundError):
            store.get_investment("nope")

    def test_find_investment_by_name_excludes_self(self, store):
        investment = store.add_investment(Investment(name="Gold"))
        assert store.find_investment_by_name("Gold") is investment
        assert store.find_investment_by_name("Gold", exclude_id=investment.id) is None


class TestAtomic:
    """Tests for the checkpoint / restore context manager."""

    def test_restores_on_exception(self, store):
        store.post(AccountTransactionKind.RECEIPT, Decimal("100.00"), date.today(), "in")
        with pytest.raises(RuntimeError):
            with store.atomic():
                store.post(AccountTransactionKind.RETURN, Decimal("-50.00"), date.today(), "out")
                store.add_investment(Investment(name="Gold"))
                raise RuntimeError("boom")
        assert store.account.balance == Decimal("100.00")
        assert len(store.account.transactions) == 1
        assert store.investments == []

    def test_keeps_changes_on_success(self, store):
        with store.atomic():
            store.post(AccountTransactionKind.RECEIPT, Decimal("100.00"), date.today(), "in")
        assert store.account.balance == Decimal("100.00")

    def test_nested_inner_failure_propagates(self, store):
        with pytest.raises(ValueError):
            with store.atomic():
                store.post(AccountTransactionKind.RECEIPT, Decimal("1.00"), date.today(), "a")
                with store.atomic():
                    store.post(AccountTransactionKind.RECEIPT, Decimal("2.00"), date.today(), "b")
                    raise ValueError("inner")
        assert store.account.transactions == []


class TestCollectClosedInvestments:
    """Tests for the invariant-maintenance pass."""

    def test_removes_empty_investments(self, store):
        empty = store.add_investment(Investment(name="Empty"))
        kept = store.add_investment(Investment(name="Kept"))
        store.allocations.add(_row("a", "p1", kept.id, 10))

        closed = store.collect_closed_investments()

        assert closed == [empty]
        assert store.investments == [kept]

    def test_removes_leftover_zero_rows(self, store):
        investment = store.add_investment(Investment(name="Zeroed"))
        row = store.allocations.add(_row("a", "p1", investment.id, 10))
        row.amount = Decimal("0.00")

        store.collect_closed_investments()

        assert store.investments == []
        assert len(store.allocations) == 0


class TestSnapshot:
    """Tests for to_snapshot / from_snapshot."""

    def test_snapshot_derives_invested_and_totals(self, transactions, investments, store, two_people):
        p1, p2 = two_people
        investment = investments.create_investment(
            "Fund", 1000, [{"person_id": p1.id, "amount": 600}, {"person_id": p2.id, "amount": 400}],
        )
        snapshot = store.to_snapshot()

        [fund] = snapshot.investments
        assert fund.id == investment.id
        assert fund.total_amount == Decimal("1000.00")
        assert {c.person_id: c.amount for c in fund.contributors} == {
            p1.id: Decimal("600.00"),
            p2.id: Decimal("400.00"),
        }
        people = {p.id: p for p in snapshot.people}
        assert [r.amount for r in people[p1.id].invested] == [Decimal("600.00")]
        assert people[p1.id].invested[0].investment_id == investment.id

    def test_round_trip_preserves_ids_and_balances(self, store, transactions, person):
        transactions.apply_person_transaction(
            "Investment", person.id, 300, investment_name="Gold",
        )
        rebuilt = LedgerStore.from_snapshot(LedgerSnapshot.model_validate_json(store.to_snapshot().to_json()))

        assert rebuilt.account.balance == store.account.balance
        assert [t.id for t in rebuilt.account.transactions] == [t.id for t in store.account.transactions]
        assert [r.id for r in rebuilt.allocations] == [r.id for r in store.allocations]
        assert_ledger_consistent(rebuilt)

    def test_balance_mismatch_is_reconciled_with_adjustment(self):
        snapshot = LedgerSnapshot(
            people=[],
            accounts=[SettlementAccount(balance=Decimal("250.00"))],
            investments=[],
        )
        rebuilt = LedgerStore.from_snapshot(snapshot)

        assert rebuilt.account.balance == Decimal("250.00")
        [entry] = rebuilt.account.transactions
        assert entry.kind is AccountTransactionKind.ADJUSTMENT
        assert entry.amount == Decimal("250.00")
        assert_ledger_consistent(rebuilt)

    def test_zero_rows_dropped_and_empty_investments_closed(self):
        snapshot = LedgerSnapshot(
            people=[PersonSnapshot(
                id="p1",
                name="Ravi",
                received=[LedgerRecord(amount=100)],
                invested=[InvestedRecord(amount=0, investment_id="i1")],
            )],
            accounts=[SettlementAccount(balance=Decimal("100.00"))],
            investments=[InvestmentSnapshot(id="i1", name="Done")],
        )
        rebuilt = LedgerStore.from_snapshot(snapshot)

        assert len(rebuilt.allocations) == 0
        assert rebuilt.investments == []

    def test_missing_account_gets_default(self):
        snapshot = LedgerSnapshot(people=[], accounts=[], investments=[])
        rebuilt = LedgerStore.from_snapshot(snapshot, account_name="Savings")
        assert rebuilt.account.name == "Savings"
        assert rebuilt.account.balance == Decimal("0.00")
