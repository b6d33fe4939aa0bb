"""Tests for the contribution / investment engine."""

from decimal import Decimal

import pytest

from money_ledger.engine import balances
from money_ledger.errors import (
    AllocationMismatchError,
    DuplicateNameError,
    EntityNotFoundError,
    ExceedsLiquidClaimError,
    InsufficientFundsError,
    InvalidInputError,
)
from money_ledger.models.ledger import (
    AccountTransactionKind,
    InvestedRecord,
    InvestmentLogKind,
    LedgerRecord,
    LedgerSnapshot,
    PersonSnapshot,
    SettlementAccount,
    InvestmentSnapshot,
)
from money_ledger.store import LedgerStore
from money_ledger.engine import InvestmentEngine

from conftest import DAY_1, DAY_2, DAY_3
from invariants import assert_ledger_consistent


def _state(store):
    return store.to_snapshot().to_json()


def _split(p1, p2, a1, a2):
    return [{"person_id": p1.id, "amount": a1}, {"person_id": p2.id, "amount": a2}]


class TestCreateInvestment:
    """Tests for creating single and multi-contributor investments."""

    def test_single_contributor(self, store, investments, person):
        investment = investments.create_investment(
            "Gold", 300, [{"person_id": person.id, "amount": 300}], DAY_2,
        )

        assert store.account.balance == Decimal("200.00")
        assert balances.net_owed(store, person) == Decimal("200.00")
        [row] = store.invested_records(person.id)
        assert row.amount == Decimal("300.00")
        assert row.investment_id == investment.id
        [entry] = investment.transactions
        assert entry.kind is InvestmentLogKind.INITIAL
        assert entry.id == row.id
        debit = store.account.transactions[-1]
        assert debit.kind is AccountTransactionKind.INVESTMENT
        assert debit.amount == Decimal("-300.00")
        assert debit.linked_person_id == person.id
        assert_ledger_consistent(store)

    def test_multi_contributor_shares_one_account_entry(self, store, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))

        assert store.account.balance == Decimal("0.00")
        assert store.investment_total(investment.id) == Decimal("1000.00")
        debits = [t for t in store.account.transactions if t.kind is AccountTransactionKind.INVESTMENT]
        assert len(debits) == 1
        assert debits[0].amount == Decimal("-1000.00")
        assert debits[0].linked_person_id is None
        assert len(investment.transactions) == 2
        assert balances.net_owed(store, p1) == Decimal("0.00")
        assert balances.net_owed(store, p2) == Decimal("0.00")
        assert_ledger_consistent(store)

    def test_total_liquid_obligations_drop_by_investment(self, store, investments, two_people):
        p1, p2 = two_people
        before = balances.total_liquid_obligations(store)
        investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))
        assert before - balances.total_liquid_obligations(store) == Decimal("1000.00")

    def test_allocation_mismatch_changes_nothing(self, store, investments, two_people):
        p1, p2 = two_people
        before = _state(store)
        with pytest.raises(AllocationMismatchError):
            investments.create_investment("Fund", 1000, _split(p1, p2, 600, 399))
        assert _state(store) == before

    def test_duplicate_name(self, investments, person):
        investments.create_investment("Gold", 100, [{"person_id": person.id, "amount": 100}])
        with pytest.raises(DuplicateNameError):
            investments.create_investment("Gold", 100, [{"person_id": person.id, "amount": 100}])

    def test_insufficient_funds(self, store, transactions, investments, person, loan):
        transactions.apply_loan_transaction("Give", loan.id, 400)
        before = _state(store)
        with pytest.raises(InsufficientFundsError):
            investments.create_investment("Gold", 300, [{"person_id": person.id, "amount": 300}])
        assert _state(store) == before

    def test_contributor_above_net_owed(self, store, investments, two_people):
        p1, p2 = two_people
        with pytest.raises(ExceedsLiquidClaimError):
            investments.create_investment("Fund", 1000, _split(p1, p2, 300, 700))
        assert store.investments == []

    def test_requires_contributors(self, investments):
        with pytest.raises(InvalidInputError):
            investments.create_investment("Empty", 100, [])

    def test_unknown_contributor(self, investments, person):
        with pytest.raises(EntityNotFoundError):
            investments.create_investment("Gold", 100, [{"person_id": "ghost", "amount": 100}])


class TestAddFunds:
    """Tests for adding money to an existing investment."""

    def test_new_contributor_joins(self, store, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 200, [{"person_id": p1.id, "amount": 200}])

        row = investments.add_funds(investment.id, p2.id, 150, DAY_2, notes="top up")

        assert store.investment_total(investment.id) == Decimal("350.00")
        assert {c.person_id for c in store.contributors(investment.id)} == {p1.id, p2.id}
        assert investment.transactions[-1].kind is InvestmentLogKind.ADDITIONAL
        assert investment.transactions[-1].id == row.id
        assert store.account.balance == Decimal("650.00")
        assert_ledger_consistent(store)

    def test_above_net_owed(self, investments, person):
        investment = investments.create_investment("Gold", 300, [{"person_id": person.id, "amount": 300}])
        with pytest.raises(ExceedsLiquidClaimError):
            investments.add_funds(investment.id, person.id, 201)

    def test_unknown_investment(self, investments, person):
        with pytest.raises(EntityNotFoundError):
            investments.add_funds("missing", person.id, 10)


class TestWithdraw:
    """Tests for partial and full withdrawals."""

    def test_full_withdrawal_closes_investment(self, store, investments, person):
        investment = investments.create_investment("Gold", 300, [{"person_id": person.id, "amount": 300}])

        investments.withdraw(investment.id, 300, [{"person_id": person.id, "amount": 300}])

        assert store.investments == []
        assert store.account.balance == Decimal("500.00")
        assert store.invested_records(person.id) == []
        assert balances.net_owed(store, person) == Decimal("500.00")
        assert_ledger_consistent(store)

    def test_partial_withdrawal(self, store, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))

        entry = investments.withdraw(investment.id, 500, _split(p1, p2, 300, 200), DAY_3)

        assert entry.kind is AccountTransactionKind.WITHDRAWAL
        assert entry.amount == Decimal("500.00")
        assert store.account.balance == Decimal("500.00")
        assert {c.person_id: c.amount for c in store.contributors(investment.id)} == {
            p1.id: Decimal("300.00"),
            p2.id: Decimal("200.00"),
        }
        withdrawals = [e for e in investment.transactions if e.kind is InvestmentLogKind.WITHDRAWAL]
        assert len(withdrawals) == 2
        assert balances.net_owed(store, p1) == Decimal("300.00")
        assert_ledger_consistent(store)

    def test_zero_deallocation_is_skipped(self, store, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))
        investments.withdraw(investment.id, 100, _split(p1, p2, 100, 0))
        assert len(investment.transactions) == 3
        assert_ledger_consistent(store)

    def test_oldest_rows_consumed_first(self, store, investments, person):
        investment = investments.create_investment(
            "Gold", 100, [{"person_id": person.id, "amount": 100}], DAY_1,
        )
        investments.add_funds(investment.id, person.id, 200, DAY_2)

        investments.withdraw(investment.id, 150, [{"person_id": person.id, "amount": 150}])

        [row] = store.invested_records(person.id)
        assert row.date == DAY_2
        assert row.amount == Decimal("150.00")
        assert_ledger_consistent(store)

    def test_withdrawal_keeps_investment_date(self, investments, person):
        investment = investments.create_investment(
            "Gold", 300, [{"person_id": person.id, "amount": 300}], DAY_1,
        )
        investments.withdraw(investment.id, 100, [{"person_id": person.id, "amount": 100}], DAY_3)
        assert investment.date == DAY_1

    def test_more_than_total(self, store, investments, person):
        investment = investments.create_investment("Gold", 300, [{"person_id": person.id, "amount": 300}])
        before = _state(store)
        with pytest.raises(ExceedsLiquidClaimError):
            investments.withdraw(investment.id, 301, [{"person_id": person.id, "amount": 301}])
        assert _state(store) == before

    def test_deallocations_must_sum_to_total(self, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))
        with pytest.raises(AllocationMismatchError):
            investments.withdraw(investment.id, 500, _split(p1, p2, 300, 100))

    def test_non_contributor(self, transactions, investments, two_people):
        p1, _ = two_people
        outsider = transactions.add_person("Meera")
        investment = investments.create_investment("Gold", 300, [{"person_id": p1.id, "amount": 300}])
        with pytest.raises(EntityNotFoundError):
            investments.withdraw(investment.id, 100, [{"person_id": outsider.id, "amount": 100}])

    def test_more_than_contributor_holds(self, store, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))
        before = _state(store)
        with pytest.raises(ExceedsLiquidClaimError):
            investments.withdraw(investment.id, 500, _split(p1, p2, 0, 500))
        assert _state(store) == before

    def test_non_positive_total(self, investments, person):
        investment = investments.create_investment("Gold", 300, [{"person_id": person.id, "amount": 300}])
        with pytest.raises(InvalidInputError):
            investments.withdraw(investment.id, 0, [])


class TestProportionalSplit:
    """Tests for the whole-cent proportional withdrawal split."""

    def test_remainder_goes_to_first_largest(self, transactions, investments):
        people = [transactions.add_person(n) for n in ("A", "B", "C")]
        for p in people:
            transactions.apply_person_transaction("Receipt", p.id, 100)
        investment = investments.create_investment(
            "Even", 300, [{"person_id": p.id, "amount": 100} for p in people],
        )

        shares = investments.proportional_split(investment.id, 100)

        assert [s.amount for s in shares] == [
            Decimal("33.34"), Decimal("33.33"), Decimal("33.33"),
        ]

    def test_single_cent_over_two_contributors(self, transactions, investments):
        a = transactions.add_person("A")
        b = transactions.add_person("B")
        transactions.apply_person_transaction("Receipt", a.id, "0.01")
        transactions.apply_person_transaction("Receipt", b.id, "0.01")
        investment = investments.create_investment("Tiny", "0.02", _split(a, b, "0.01", "0.01"))

        shares = investments.proportional_split(investment.id, "0.01")

        assert [s.amount for s in shares] == [Decimal("0.00"), Decimal("0.01")]
        assert sum(s.amount for s in shares) == Decimal("0.01")

    def test_uneven_holdings(self, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))
        shares = investments.proportional_split(investment.id, 333)
        assert {s.person_id: s.amount for s in shares} == {
            p1.id: Decimal("199.80"),
            p2.id: Decimal("133.20"),
        }

    def test_split_feeds_withdraw(self, store, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))
        shares = investments.proportional_split(investment.id, "123.45")
        investments.withdraw(investment.id, "123.45", shares)
        assert store.investment_total(investment.id) == Decimal("876.55")
        assert_ledger_consistent(store)

    def test_more_than_total(self, investments, person):
        investment = investments.create_investment("Gold", 300, [{"person_id": person.id, "amount": 300}])
        with pytest.raises(ExceedsLiquidClaimError):
            investments.proportional_split(investment.id, 400)


class TestReverseContribution:
    """Tests for unwinding a single contribution."""

    def test_partly_withdrawn_contribution_amends_debit(self, store, investments, person):
        investment = investments.create_investment("Gold", 300, [{"person_id": person.id, "amount": 300}])
        investments.withdraw(investment.id, 200, [{"person_id": person.id, "amount": 200}])
        [row] = store.invested_records(person.id)

        closed = investments.reverse_contribution(row.id)

        assert closed is investment
        assert store.investments == []
        debit = store.find_account_transaction(row.account_transaction_id)
        assert debit.amount == Decimal("-200.00")
        assert store.account.balance == Decimal("500.00")
        assert_ledger_consistent(store)

    def test_shared_contribution_shrinks_shared_debit(self, store, investments, two_people):
        p1, p2 = two_people
        investment = investments.create_investment("Fund", 1000, _split(p1, p2, 600, 400))
        [row] = store.invested_records(p1.id)

        closed = investments.reverse_contribution(row.id)

        assert closed is None
        assert store.investment_total(investment.id) == Decimal("400.00")
        [debit] = [t for t in store.account.transactions if t.kind is AccountTransactionKind.INVESTMENT]
        assert debit.amount == Decimal("-400.00")
        assert store.account.balance == Decimal("600.00")
        assert_ledger_consistent(store)

    def test_legacy_row_without_debit_posts_reversal(self):
        snapshot = LedgerSnapshot(
            people=[PersonSnapshot(
                id="p1",
                name="Ravi",
                received=[LedgerRecord(amount=500)],
                invested=[InvestedRecord(id="r1", amount=300, investment_id="i1")],
            )],
            accounts=[SettlementAccount(balance=Decimal("200.00"))],
            investments=[InvestmentSnapshot(id="i1", name="Legacy")],
        )
        store = LedgerStore.from_snapshot(snapshot)

        InvestmentEngine(store).reverse_contribution("r1")

        reversal = store.account.transactions[-1]
        assert reversal.kind is AccountTransactionKind.REVERSAL
        assert reversal.amount == Decimal("300.00")
        assert store.account.balance == Decimal("500.00")
        assert store.investments == []
        assert_ledger_consistent(store)


class TestRenameInvestment:
    """Tests for metadata-only edits."""

    def test_rename(self, investments, person):
        investment = investments.create_investment("Gold", 100, [{"person_id": person.id, "amount": 100}])
        investments.rename_investment(investment.id, "Gold ETF", DAY_3)
        assert investment.name == "Gold ETF"
        assert investment.date == DAY_3

    def test_rename_to_own_name_is_allowed(self, investments, person):
        investment = investments.create_investment("Gold", 100, [{"person_id": person.id, "amount": 100}])
        investments.rename_investment(investment.id, "Gold")
        assert investment.name == "Gold"

    def test_rename_to_taken_name(self, investments, person):
        investments.create_investment("Gold", 100, [{"person_id": person.id, "amount": 100}])
        silver = investments.create_investment("Silver", 100, [{"person_id": person.id, "amount": 100}])
        with pytest.raises(DuplicateNameError):
            investments.rename_investment(silver.id, "Gold")
        assert silver.name == "Silver"
