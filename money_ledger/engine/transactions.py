"""
Transaction Engine

Applies and reverses the five atomic ledger mutations:

    person side:  Receipt (+account), Return (-account), Investment (-account)
    loan side:    Give (-account), Recovery (+account)

Every Apply appends one record to the person/loan and one account entry
carrying the same id. Every Reverse removes both again. Investment records
are allocation rows, so their reversal goes through the investment engine.

DESIGN DECISION: Edit is reverse-then-apply inside one `atomic()` block.
If the new values fail validation after the old record is gone, the
checkpoint puts the old record back: an edit either fully happens or not
at all.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional, Union

import structlog

from money_ledger.engine.balances import net_owed, net_receivable
from money_ledger.engine.inputs import (
    require_kind,
    require_name,
    require_notes,
    require_positive_amount,
    resolve_date,
)
from money_ledger.engine.investments import InvestmentEngine
from money_ledger.errors import (
    ExceedsLiquidClaimError,
    InsufficientFundsError,
    TransactionNotFoundError,
)
from money_ledger.models.ledger import (
    AccountTransactionKind,
    ContributorShare,
    LedgerRecord,
    Loan,
    LoanTransactionKind,
    MoneyInput,
    Person,
    PersonTransactionKind,
    new_id,
)
from money_ledger.store.ledger_store import LedgerStore


logger = structlog.get_logger(__name__)

PersonKindInput = Union[PersonTransactionKind, str]
LoanKindInput = Union[LoanTransactionKind, str]


class TransactionEngine:
    """Person and loan transactions against the settlement account."""

    def __init__(
        self,
        store: LedgerStore,
        investments: Optional[InvestmentEngine] = None,
    ):
        self._store = store
        self._investments = investments or InvestmentEngine(store)

    # -------------------------------------------------------------------------
    # Entity lifecycle
    # -------------------------------------------------------------------------

    def add_person(self, name: str, notes: str = "") -> Person:
        person = Person(
            name=require_name(name, "person name"),
            notes=require_notes(notes) or "",
            created_at=dt.date.today(),
        )
        return self._store.add_person(person)

    def add_loan(self, name: str) -> Loan:
        return self._store.add_loan(Loan(name=require_name(name, "borrower name")))

    def delete_person(self, person_id: str) -> Person:
        """
        Remove a person after reversing every record they have.

        Their account entries are removed (or shrunk, for shared investment
        debits) and their contributions are taken out of investments, which
        may close them.
        """
        store = self._store
        person = store.get_person(person_id)
        with store.atomic():
            for row in list(store.invested_records(person.id)):
                self._investments.reverse_contribution(row.id)
            for record in list(person.received):
                self._unwind(person.received, record, record.amount, person_id=person.id)
            for record in list(person.returned):
                self._unwind(person.returned, record, -record.amount, person_id=person.id)
            store.remove_person(person.id)
        logger.info("person_deleted", person_id=person.id, name=person.name)
        return person

    def delete_loan(self, loan_id: str) -> Loan:
        store = self._store
        loan = store.get_loan(loan_id)
        with store.atomic():
            for record in list(loan.given):
                self._unwind(loan.given, record, -record.amount, loan_id=loan.id)
            for record in list(loan.recovered):
                self._unwind(loan.recovered, record, record.amount, loan_id=loan.id)
            store.remove_loan(loan.id)
        logger.info("loan_deleted", loan_id=loan.id, name=loan.name)
        return loan

    # -------------------------------------------------------------------------
    # Person transactions
    # -------------------------------------------------------------------------

    def apply_person_transaction(
        self,
        kind: PersonKindInput,
        person_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
        investment_name: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> str:
        """
        Record a receipt, return or single-person investment.

        Returns the transaction id shared by the person's record and the
        account entry.

        Raises:
            ExceedsLiquidClaimError: return/investment above the person's net owed
            InsufficientFundsError: return/investment above the bank balance
        """
        store = self._store
        kind = require_kind(PersonTransactionKind, kind)
        person = store.get_person(person_id)
        value = require_positive_amount(amount)
        notes = require_notes(notes)
        on = resolve_date(date)

        if kind is PersonTransactionKind.RECEIPT:
            with store.atomic():
                record = self._append(person.received, value, on, notes, transaction_id)
                store.post(
                    AccountTransactionKind.RECEIPT,
                    value,
                    on,
                    f"{person.name} gave funds.",
                    transaction_id=record.id,
                    linked_person_id=person.id,
                )
                net_owed(store, person)
            return record.id

        available = net_owed(store, person)
        if value > available:
            raise ExceedsLiquidClaimError(person.name, value, available)
        if value > store.account.balance:
            raise InsufficientFundsError(value, store.account.balance)

        if kind is PersonTransactionKind.RETURN:
            with store.atomic():
                record = self._append(person.returned, value, on, notes, transaction_id)
                store.post(
                    AccountTransactionKind.RETURN,
                    -value,
                    on,
                    f"Returned funds to {person.name}.",
                    transaction_id=record.id,
                    linked_person_id=person.id,
                )
                net_owed(store, person)
            return record.id

        investment = self._investments.create_investment(
            require_name(investment_name, "investment name"),
            value,
            [ContributorShare(person_id=person.id, amount=value)],
            date=on,
            notes=notes or "",
            transaction_id=transaction_id,
        )
        return investment.transactions[0].id

    def reverse_person_transaction(
        self,
        kind: PersonKindInput,
        person_id: str,
        transaction_id: str,
    ) -> None:
        """Delete a person's record and undo its effect on the account."""
        store = self._store
        kind = require_kind(PersonTransactionKind, kind)
        person = store.get_person(person_id)

        if kind is PersonTransactionKind.INVESTMENT:
            row = store.allocations.get(transaction_id)
            if row is None or row.person_id != person.id:
                raise TransactionNotFoundError(transaction_id, kind.value)
            self._investments.reverse_contribution(row.id)
            return

        records = person.received if kind is PersonTransactionKind.RECEIPT else person.returned
        record = self._find(records, transaction_id, kind.value)
        signed = record.amount if kind is PersonTransactionKind.RECEIPT else -record.amount
        with store.atomic():
            self._unwind(records, record, signed, person_id=person.id)
            net_owed(store, person)

    def edit_person_transaction(
        self,
        kind: PersonKindInput,
        person_id: str,
        transaction_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
        investment_name: Optional[str] = None,
    ) -> str:
        """
        Replace a record's amount/date/notes, keeping its id.

        Fields left as None keep their old value. A contribution whose
        investment outlives the reversal goes back into that same
        investment; otherwise a new single-person investment is created
        under `investment_name` (or the old name).
        """
        store = self._store
        kind = require_kind(PersonTransactionKind, kind)
        person = store.get_person(person_id)
        old = self._find_person_record(person, kind, transaction_id)
        on = date or old.date
        new_notes = notes if notes is not None else old.notes

        with store.atomic():
            if kind is not PersonTransactionKind.INVESTMENT:
                self.reverse_person_transaction(kind, person.id, transaction_id)
                return self.apply_person_transaction(
                    kind, person.id, amount, on, new_notes, transaction_id=transaction_id,
                )

            investment = store.find_investment(old.investment_id)
            old_name = investment.name if investment else None
            self.reverse_person_transaction(kind, person.id, transaction_id)

            if store.find_investment(old.investment_id) is not None:
                row = self._investments.add_funds(
                    old.investment_id, person.id, amount, on, new_notes,
                    transaction_id=transaction_id,
                )
                if investment_name and investment_name.strip() != old_name:
                    self._investments.rename_investment(old.investment_id, investment_name)
                return row.id

            return self.apply_person_transaction(
                kind, person.id, amount, on, new_notes,
                investment_name=investment_name or old_name,
                transaction_id=transaction_id,
            )

    # -------------------------------------------------------------------------
    # Loan transactions
    # -------------------------------------------------------------------------

    def apply_loan_transaction(
        self,
        kind: LoanKindInput,
        loan_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> str:
        """
        Lend money out (Give) or get some back (Recovery).

        Raises:
            InsufficientFundsError: give above the bank balance
            ExceedsLiquidClaimError: recovery above what the borrower owes
        """
        store = self._store
        kind = require_kind(LoanTransactionKind, kind)
        loan = store.get_loan(loan_id)
        value = require_positive_amount(amount)
        notes = require_notes(notes)
        on = resolve_date(date)
        suffix = f" {notes}" if notes else ""

        if kind is LoanTransactionKind.GIVE:
            if value > store.account.balance:
                raise InsufficientFundsError(value, store.account.balance)
            records, signed = loan.given, -value
            entry_kind = AccountTransactionKind.LOAN_GIVE
            description = f"Gave loan to {loan.name}.{suffix}"
        else:
            owed = net_receivable(loan)
            if value > owed:
                raise ExceedsLiquidClaimError(loan.name, value, owed)
            records, signed = loan.recovered, value
            entry_kind = AccountTransactionKind.LOAN_RECOVERY
            description = f"Recovered loan from {loan.name}.{suffix}"

        with store.atomic():
            record = self._append(records, value, on, notes, transaction_id)
            store.post(
                entry_kind,
                signed,
                on,
                description,
                transaction_id=record.id,
                linked_loan_id=loan.id,
            )
            net_receivable(loan)
        return record.id

    def reverse_loan_transaction(
        self,
        kind: LoanKindInput,
        loan_id: str,
        transaction_id: str,
    ) -> None:
        store = self._store
        kind = require_kind(LoanTransactionKind, kind)
        loan = store.get_loan(loan_id)
        records = loan.given if kind is LoanTransactionKind.GIVE else loan.recovered
        record = self._find(records, transaction_id, kind.value)
        signed = -record.amount if kind is LoanTransactionKind.GIVE else record.amount
        with store.atomic():
            self._unwind(records, record, signed, loan_id=loan.id)
            net_receivable(loan)

    def edit_loan_transaction(
        self,
        kind: LoanKindInput,
        loan_id: str,
        transaction_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
    ) -> str:
        store = self._store
        kind = require_kind(LoanTransactionKind, kind)
        loan = store.get_loan(loan_id)
        records = loan.given if kind is LoanTransactionKind.GIVE else loan.recovered
        old = self._find(records, transaction_id, kind.value)

        with store.atomic():
            self.reverse_loan_transaction(kind, loan.id, transaction_id)
            return self.apply_loan_transaction(
                kind,
                loan.id,
                amount,
                date or old.date,
                notes if notes is not None else old.notes,
                transaction_id=transaction_id,
            )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _append(
        records: list[LedgerRecord],
        amount: Decimal,
        on: dt.date,
        notes: Optional[str],
        transaction_id: Optional[str],
    ) -> LedgerRecord:
        record = LedgerRecord(id=transaction_id or new_id(), amount=amount, date=on, notes=notes)
        records.append(record)
        return record

    @staticmethod
    def _find(records: list[LedgerRecord], transaction_id: str, kind: str) -> LedgerRecord:
        record = next((r for r in records if r.id == transaction_id), None)
        if record is None:
            raise TransactionNotFoundError(transaction_id, kind)
        return record

    def _find_person_record(
        self,
        person: Person,
        kind: PersonTransactionKind,
        transaction_id: str,
    ):
        if kind is PersonTransactionKind.INVESTMENT:
            row = self._store.allocations.get(transaction_id)
            if row is None or row.person_id != person.id:
                raise TransactionNotFoundError(transaction_id, kind.value)
            return row
        records = person.received if kind is PersonTransactionKind.RECEIPT else person.returned
        return self._find(records, transaction_id, kind.value)

    def _unwind(
        self,
        records: list[LedgerRecord],
        record: LedgerRecord,
        signed_amount: Decimal,
        person_id: Optional[str] = None,
        loan_id: Optional[str] = None,
    ) -> None:
        """
        Drop a record and take its effect off the account.

        `signed_amount` is what the record originally did to the balance.
        The linked entry (same id) is removed; if it is missing or does not
        match, a REVERSAL entry is posted instead.
        """
        records.remove(record)
        entry = self._store.find_account_transaction(record.id)
        if entry is not None and entry.amount == signed_amount:
            self._store.remove_account_transaction(entry.id)
            return
        self._store.post(
            AccountTransactionKind.REVERSAL,
            -signed_amount,
            dt.date.today(),
            f"Reversed transaction {record.id}.",
            linked_person_id=person_id,
            linked_loan_id=loan_id,
        )
