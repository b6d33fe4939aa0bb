"""
Ledger Store

Owns the canonical ledger state:
- people, loans and investments
- the single settlement account and its append-only entry log
- the allocation table linking people to investments

DESIGN DECISION: The store is the only place that touches the account
balance. `post()` appends an entry and moves the balance by the same signed
amount in one step, so `balance == sum(entry amounts)` holds by construction.

The store does not validate business rules; the engines do that before
calling in. It does maintain the structural invariants: allocation indexes,
the balance/log pairing, and removal of investments that hold nothing.
"""

import datetime as dt
from collections import defaultdict
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator, Optional

import structlog

from money_ledger.errors import EntityNotFoundError
from money_ledger.models.ledger import (
    ZERO,
    AccountTransaction,
    AccountTransactionKind,
    Allocation,
    ContributorShare,
    Investment,
    InvestmentSnapshot,
    LedgerSnapshot,
    Loan,
    Person,
    PersonSnapshot,
    SettlementAccount,
    new_id,
)


logger = structlog.get_logger(__name__)


class AllocationTable:
    """
    The person <-> investment relationship, stored once.

    Rows are kept in insertion order and indexed both ways, so
    "a person's invested records" and "an investment's contributors"
    are lookups rather than two lists kept in lockstep.
    """

    def __init__(self, rows: Iterable[Allocation] = ()):
        self._rows: dict[str, Allocation] = {}
        self._by_person: dict[str, list[str]] = defaultdict(list)
        self._by_investment: dict[str, list[str]] = defaultdict(list)
        for row in rows:
            self.add(row)

    def __iter__(self) -> Iterator[Allocation]:
        return iter(self._rows.values())

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, allocation_id: str) -> bool:
        return allocation_id in self._rows

    def add(self, row: Allocation) -> Allocation:
        if row.id in self._rows:
            raise ValueError(f"Duplicate allocation id: {row.id}")
        self._rows[row.id] = row
        self._by_person[row.person_id].append(row.id)
        self._by_investment[row.investment_id].append(row.id)
        return row

    def get(self, allocation_id: str) -> Optional[Allocation]:
        return self._rows.get(allocation_id)

    def remove(self, allocation_id: str) -> Allocation:
        row = self._rows.pop(allocation_id)
        self._by_person[row.person_id].remove(allocation_id)
        self._by_investment[row.investment_id].remove(allocation_id)
        return row

    def for_person(self, person_id: str) -> list[Allocation]:
        return [self._rows[i] for i in self._by_person.get(person_id, [])]

    def for_investment(self, investment_id: str) -> list[Allocation]:
        return [self._rows[i] for i in self._by_investment.get(investment_id, [])]

    def for_pair(self, person_id: str, investment_id: str) -> list[Allocation]:
        return [
            row for row in self.for_investment(investment_id)
            if row.person_id == person_id
        ]

    def total(self, investment_id: str) -> Decimal:
        return sum((row.amount for row in self.for_investment(investment_id)), ZERO)

    def contributors(self, investment_id: str) -> list[ContributorShare]:
        """Per-person totals, in order of each person's first contribution."""
        totals: dict[str, Decimal] = {}
        for row in self.for_investment(investment_id):
            totals[row.person_id] = totals.get(row.person_id, ZERO) + row.amount
        return [
            ContributorShare(person_id=person_id, amount=amount)
            for person_id, amount in totals.items()
        ]


class LedgerStore:
    """
    In-memory ledger state with snapshot/restore.

    Single-owner, single-writer: every public engine operation runs to
    completion inside `atomic()` before the next one starts.
    """

    def __init__(
        self,
        account: Optional[SettlementAccount] = None,
        people: Optional[list[Person]] = None,
        loans: Optional[list[Loan]] = None,
        investments: Optional[list[Investment]] = None,
        allocations: Iterable[Allocation] = (),
    ):
        self.account = account or SettlementAccount()
        self.people: list[Person] = people or []
        self.loans: list[Loan] = loans or []
        self.investments: list[Investment] = investments or []
        self.allocations = AllocationTable(allocations)

    @classmethod
    def empty(cls, account_name: str = "Default Bank Account") -> "LedgerStore":
        return cls(account=SettlementAccount(name=account_name))

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def find_person(self, person_id: str) -> Optional[Person]:
        return next((p for p in self.people if p.id == person_id), None)

    def get_person(self, person_id: str) -> Person:
        person = self.find_person(person_id)
        if person is None:
            raise EntityNotFoundError("person", person_id)
        return person

    def find_loan(self, loan_id: str) -> Optional[Loan]:
        return next((l for l in self.loans if l.id == loan_id), None)

    def get_loan(self, loan_id: str) -> Loan:
        loan = self.find_loan(loan_id)
        if loan is None:
            raise EntityNotFoundError("loan", loan_id)
        return loan

    def find_investment(self, investment_id: str) -> Optional[Investment]:
        return next((i for i in self.investments if i.id == investment_id), None)

    def get_investment(self, investment_id: str) -> Investment:
        investment = self.find_investment(investment_id)
        if investment is None:
            raise EntityNotFoundError("investment", investment_id)
        return investment

    def find_investment_by_name(
        self,
        name: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Investment]:
        return next(
            (i for i in self.investments if i.name == name and i.id != exclude_id),
            None,
        )

    def investment_total(self, investment_id: str) -> Decimal:
        return self.allocations.total(investment_id)

    def contributors(self, investment_id: str) -> list[ContributorShare]:
        return self.allocations.contributors(investment_id)

    def invested_records(self, person_id: str) -> list[Allocation]:
        return self.allocations.for_person(person_id)

    # -------------------------------------------------------------------------
    # Entity lifecycle
    # -------------------------------------------------------------------------

    def add_person(self, person: Person) -> Person:
        self.people.append(person)
        return person

    def remove_person(self, person_id: str) -> Person:
        person = self.get_person(person_id)
        self.people.remove(person)
        return person

    def add_loan(self, loan: Loan) -> Loan:
        self.loans.append(loan)
        return loan

    def remove_loan(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        self.loans.remove(loan)
        return loan

    def add_investment(self, investment: Investment) -> Investment:
        self.investments.append(investment)
        return investment

    def remove_investment(self, investment_id: str) -> Investment:
        """Remove an investment together with any allocation rows left on it."""
        investment = self.get_investment(investment_id)
        for row in self.allocations.for_investment(investment_id):
            self.allocations.remove(row.id)
        self.investments.remove(investment)
        return investment

    # -------------------------------------------------------------------------
    # Settlement account
    # -------------------------------------------------------------------------

    def post(
        self,
        kind: AccountTransactionKind,
        amount: Decimal,
        date: dt.date,
        description: str,
        transaction_id: Optional[str] = None,
        linked_person_id: Optional[str] = None,
        linked_loan_id: Optional[str] = None,
        investment_id: Optional[str] = None,
    ) -> AccountTransaction:
        """Append one account entry and move the balance by the same signed amount."""
        entry = AccountTransaction(
            id=transaction_id or new_id(),
            kind=kind,
            amount=amount,
            date=date,
            description=description,
            linked_person_id=linked_person_id,
            linked_loan_id=linked_loan_id,
            investment_id=investment_id,
        )
        self.account.transactions.append(entry)
        self.account.balance += entry.amount
        return entry

    def find_account_transaction(self, transaction_id: Optional[str]) -> Optional[AccountTransaction]:
        if transaction_id is None:
            return None
        return next(
            (t for t in self.account.transactions if t.id == transaction_id),
            None,
        )

    def unused_entry_id(self, candidate: Optional[str]) -> Optional[str]:
        """`candidate` if no account entry carries it yet, else None (post() then mints one)."""
        if candidate is None or self.find_account_transaction(candidate) is not None:
            return None
        return candidate

    def remove_account_transaction(self, transaction_id: str) -> AccountTransaction:
        """Drop an entry and undo its effect on the balance."""
        entry = self.find_account_transaction(transaction_id)
        if entry is None:
            raise EntityNotFoundError("account transaction", transaction_id)
        self.account.transactions.remove(entry)
        self.account.balance -= entry.amount
        return entry

    def amend_account_transaction(self, transaction_id: str, new_amount: Decimal) -> AccountTransaction:
        """Change an entry's signed amount, moving the balance by the difference."""
        entry = self.find_account_transaction(transaction_id)
        if entry is None:
            raise EntityNotFoundError("account transaction", transaction_id)
        self.account.balance += new_amount - entry.amount
        entry.amount = new_amount
        return entry

    def logged_balance(self) -> Decimal:
        return sum((t.amount for t in self.account.transactions), ZERO)

    def reconcile_account_balance(self) -> Optional[AccountTransaction]:
        """
        Make the entry log add up to the declared balance.

        Only needed for snapshots produced elsewhere. Appends one ADJUSTMENT
        entry for the difference without moving the balance itself.
        """
        difference = self.account.balance - self.logged_balance()
        if difference == 0:
            return None
        entry = AccountTransaction(
            kind=AccountTransactionKind.ADJUSTMENT,
            amount=difference,
            date=dt.date.today(),
            description="Opening balance adjustment (imported log did not match balance).",
        )
        self.account.transactions.append(entry)
        logger.warning(
            "account_balance_reconciled",
            difference=str(difference),
            transaction_id=entry.id,
        )
        return entry

    # -------------------------------------------------------------------------
    # Invariant maintenance
    # -------------------------------------------------------------------------

    def collect_closed_investments(self) -> list[Investment]:
        """
        Remove every investment whose derived total is zero or less.

        Run after every mutator that can shrink an investment.
        """
        closed = [
            investment for investment in self.investments
            if self.investment_total(investment.id) <= 0
        ]
        for investment in closed:
            self.remove_investment(investment.id)
            logger.info("investment_closed", investment_id=investment.id, name=investment.name)
        return closed

    # -------------------------------------------------------------------------
    # Atomicity
    # -------------------------------------------------------------------------

    def _checkpoint(self) -> tuple:
        rows = list(self.allocations)
        entities = [self.account, *self.people, *self.loans, *self.investments, *rows]
        return (
            self.account,
            list(self.people),
            list(self.loans),
            list(self.investments),
            rows,
            [(entity, entity.model_copy(deep=True)) for entity in entities],
        )

    def _restore(self, checkpoint: tuple) -> None:
        """
        Put every entity back the way it was.

        Field values are written back into the original objects, so
        references held by callers stay valid after a rollback.
        """
        account, people, loans, investments, rows, saved = checkpoint
        for original, copy in saved:
            for name in type(original).model_fields:
                setattr(original, name, getattr(copy, name))
        self.account = account
        self.people = people
        self.loans = loans
        self.investments = investments
        self.allocations = AllocationTable(rows)

    @contextmanager
    def atomic(self) -> Iterator["LedgerStore"]:
        """
        Run a multi-step mutation as one unit.

        On any exception the state is restored to the checkpoint taken on
        entry and the exception propagates unchanged.
        """
        checkpoint = self._checkpoint()
        try:
            yield self
        except Exception:
            self._restore(checkpoint)
            raise

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> LedgerSnapshot:
        """Materialize the whole state in the four-collection snapshot shape."""
        people = [
            PersonSnapshot(
                **person.model_dump(),
                invested=[row.as_invested_record() for row in self.invested_records(person.id)],
            )
            for person in self.people
        ]
        investments = [
            InvestmentSnapshot(
                **investment.model_dump(),
                total_amount=self.investment_total(investment.id),
                contributors=self.contributors(investment.id),
            )
            for investment in self.investments
        ]
        return LedgerSnapshot(
            people=people,
            accounts=[self.account.model_copy(deep=True)],
            investments=investments,
            loans=[loan.model_copy(deep=True) for loan in self.loans],
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: LedgerSnapshot,
        account_name: str = "Default Bank Account",
    ) -> "LedgerStore":
        """
        Rebuild a store from a (validated) snapshot.

        Allocation rows come from each person's invested records; the
        snapshot's declared investment totals and contributor lists are
        ignored because they are derived. Zero-amount rows are dropped.
        """
        people = []
        allocations = []
        for person_snapshot in snapshot.people:
            data = person_snapshot.model_dump(exclude={"invested"})
            people.append(Person.model_validate(data))
            for record in person_snapshot.invested:
                if record.amount <= 0:
                    continue
                allocations.append(
                    Allocation(**record.model_dump(), person_id=person_snapshot.id)
                )

        investments = [
            Investment.model_validate(inv.model_dump(exclude={"total_amount", "contributors"}))
            for inv in snapshot.investments
        ]

        if snapshot.accounts:
            account = snapshot.accounts[0].model_copy(deep=True)
        else:
            account = SettlementAccount(name=account_name)

        store = cls(
            account=account,
            people=people,
            loans=[loan.model_copy(deep=True) for loan in snapshot.loans],
            investments=investments,
            allocations=allocations,
        )
        store.reconcile_account_balance()
        store.collect_closed_investments()
        return store

    def replace_with(self, other: "LedgerStore") -> None:
        """Swap in another store's state wholesale (import / reset)."""
        self.account = other.account
        self.people = other.people
        self.loans = other.loans
        self.investments = other.investments
        self.allocations = other.allocations
