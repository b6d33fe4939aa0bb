"""
Contribution / Investment Engine

Creates, funds, partially withdraws and unwinds multi-contributor
investments.

Every contribution is one allocation row: the row is the person's
"invested" record and one slice of the investment's contributors at the
same time, so there is nothing to keep in sync. What this engine does
maintain is the pairing with the settlement account:
- a contribution debits the account (one entry per call, shared by all
  contributors of a multi-contributor create)
- a withdrawal credits it (one entry per call)
- reversing a contribution gives the row's current amount back
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional, Union

import structlog

from money_ledger.engine.balances import net_owed
from money_ledger.engine.inputs import (
    require_name,
    require_notes,
    require_positive_amount,
    require_share,
    resolve_date,
)
from money_ledger.errors import (
    AllocationMismatchError,
    DuplicateNameError,
    EntityNotFoundError,
    ExceedsLiquidClaimError,
    InsufficientFundsError,
    InvalidInputError,
    TransactionNotFoundError,
)
from money_ledger.models.ledger import (
    CENT,
    ZERO,
    AccountTransaction,
    AccountTransactionKind,
    Allocation,
    ContributorShare,
    Investment,
    InvestmentLogEntry,
    InvestmentLogKind,
    MoneyInput,
    new_id,
)
from money_ledger.store.ledger_store import LedgerStore


logger = structlog.get_logger(__name__)

ShareInput = Union[ContributorShare, Mapping[str, Any]]


class InvestmentEngine:
    """Mutations of investments and their contributor allocations."""

    def __init__(self, store: LedgerStore):
        self._store = store

    # -------------------------------------------------------------------------
    # Create / fund
    # -------------------------------------------------------------------------

    def create_investment(
        self,
        name: str,
        total_amount: MoneyInput,
        contributors: Iterable[ShareInput],
        date: Optional[dt.date] = None,
        notes: str = "",
        transaction_id: Optional[str] = None,
    ) -> Investment:
        """
        Create an investment funded by one or more people.

        Each contributor is checked against their own current net owed only;
        the same person listed twice is not re-checked against the sum.

        Raises:
            AllocationMismatchError: contributor amounts do not sum to the total
            DuplicateNameError: an active investment already has this name
            InsufficientFundsError: the account cannot cover the total
            ExceedsLiquidClaimError: a contributor's net owed is too small
        """
        store = self._store
        name = require_name(name, "investment name")
        total = require_positive_amount(total_amount, "total amount")
        notes = require_notes(notes)
        shares = [require_share(c) for c in contributors]
        if not shares:
            raise InvalidInputError("An investment needs at least one contributor")

        allocated = sum((s.amount for s in shares), ZERO)
        if allocated != total:
            raise AllocationMismatchError(total, allocated)

        if store.find_investment_by_name(name) is not None:
            raise DuplicateNameError(name)

        if total > store.account.balance:
            raise InsufficientFundsError(total, store.account.balance)

        funders = []
        for share in shares:
            person = store.get_person(share.person_id)
            available = net_owed(store, person)
            if share.amount > available:
                raise ExceedsLiquidClaimError(person.name, share.amount, available)
            funders.append(person)

        on = resolve_date(date)
        single = len(shares) == 1

        with store.atomic():
            investment = store.add_investment(Investment(name=name, date=on, notes=notes or ""))
            if single:
                description = f"Investment: {name} (using {funders[0].name}'s funds)."
            else:
                description = f"Multi-contributor investment: {name}."
            entry = store.post(
                AccountTransactionKind.INVESTMENT,
                -total,
                on,
                description,
                transaction_id=store.unused_entry_id(transaction_id),
                linked_person_id=funders[0].id if single else None,
                investment_id=investment.id,
            )

            for share, person in zip(shares, funders):
                row = store.allocations.add(Allocation(
                    id=(transaction_id or entry.id) if single else new_id(),
                    person_id=person.id,
                    investment_id=investment.id,
                    amount=share.amount,
                    date=on,
                    notes=notes or None,
                    account_transaction_id=entry.id,
                ))
                investment.transactions.append(InvestmentLogEntry(
                    id=row.id,
                    kind=InvestmentLogKind.INITIAL,
                    amount=share.amount,
                    date=on,
                    contributor_id=person.id,
                    account_transaction_id=entry.id,
                ))
                net_owed(store, person)

        logger.info(
            "investment_created",
            investment_id=investment.id,
            name=name,
            total=str(total),
            contributors=len(shares),
        )
        return investment

    def add_funds(
        self,
        investment_id: str,
        person_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Allocation:
        """Add one person's money to an existing investment (new or existing contributor)."""
        store = self._store
        investment = store.get_investment(investment_id)
        person = store.get_person(person_id)
        value = require_positive_amount(amount)
        notes = require_notes(notes)

        available = net_owed(store, person)
        if value > available:
            raise ExceedsLiquidClaimError(person.name, value, available)
        if value > store.account.balance:
            raise InsufficientFundsError(value, store.account.balance)

        on = resolve_date(date)
        with store.atomic():
            entry = store.post(
                AccountTransactionKind.INVESTMENT,
                -value,
                on,
                f"Added funds to {investment.name} (from {person.name}).",
                transaction_id=store.unused_entry_id(transaction_id),
                linked_person_id=person.id,
                investment_id=investment.id,
            )
            row = store.allocations.add(Allocation(
                id=transaction_id or entry.id,
                person_id=person.id,
                investment_id=investment.id,
                amount=value,
                date=on,
                notes=notes,
                account_transaction_id=entry.id,
            ))
            investment.transactions.append(InvestmentLogEntry(
                id=row.id,
                kind=InvestmentLogKind.ADDITIONAL,
                amount=value,
                date=on,
                contributor_id=person.id,
                account_transaction_id=entry.id,
                notes=notes,
            ))
            net_owed(store, person)
        return row

    def rename_investment(
        self,
        investment_id: str,
        name: str,
        date: Optional[dt.date] = None,
    ) -> Investment:
        """Metadata-only edit; amounts change through add_funds / withdraw."""
        investment = self._store.get_investment(investment_id)
        name = require_name(name, "investment name")
        if self._store.find_investment_by_name(name, exclude_id=investment_id) is not None:
            raise DuplicateNameError(name)
        investment.name = name
        if date is not None:
            investment.date = date
        return investment

    # -------------------------------------------------------------------------
    # Withdraw
    # -------------------------------------------------------------------------

    def proportional_split(
        self,
        investment_id: str,
        total: MoneyInput,
    ) -> list[ContributorShare]:
        """
        Split a withdrawal across contributors in proportion to their allocations.

        Works in whole cents. Each share is rounded half-up, then the rounding
        remainder is handed out one cent at a time to the largest contributors
        first, never pushing a share past its allocation. The shares always
        sum to `total`.
        """
        investment = self._store.get_investment(investment_id)
        requested = require_positive_amount(total, "withdrawal amount")
        current = self._store.investment_total(investment_id)
        if requested > current:
            raise ExceedsLiquidClaimError(investment.name, requested, current)

        contributors = self._store.contributors(investment_id)
        total_cents = int(requested / CENT)
        current_cents = int(current / CENT)
        held = [int(c.amount / CENT) for c in contributors]
        cents = [
            int((Decimal(total_cents) * h / current_cents).quantize(Decimal(1), rounding=ROUND_HALF_UP))
            for h in held
        ]

        remainder = total_cents - sum(cents)
        largest_first = sorted(range(len(held)), key=lambda i: held[i], reverse=True)
        while remainder != 0:
            for i in largest_first:
                if remainder > 0 and cents[i] < held[i]:
                    cents[i] += 1
                    remainder -= 1
                elif remainder < 0 and cents[i] > 0:
                    cents[i] -= 1
                    remainder += 1
                if remainder == 0:
                    break

        return [
            ContributorShare(person_id=c.person_id, amount=(Decimal(n) * CENT).quantize(CENT))
            for c, n in zip(contributors, cents)
        ]

    def withdraw(
        self,
        investment_id: str,
        total: MoneyInput,
        deallocations: Iterable[ShareInput],
        date: Optional[dt.date] = None,
    ) -> AccountTransaction:
        """
        Take `total` out of an investment back into the account.

        `deallocations` says how much of the total comes out of each
        contributor's allocation; zero entries are allowed and skipped.
        Within one contributor the oldest allocation rows are consumed first
        and rows reaching zero disappear. An investment left with nothing is
        closed.
        """
        store = self._store
        investment = store.get_investment(investment_id)
        requested = require_positive_amount(total, "withdrawal amount")
        current = store.investment_total(investment_id)
        if requested > current:
            raise ExceedsLiquidClaimError(investment.name, requested, current)

        per_person: dict[str, Decimal] = {}
        for share in (require_share(d, allow_zero=True) for d in deallocations):
            per_person[share.person_id] = per_person.get(share.person_id, ZERO) + share.amount

        allocated = sum(per_person.values(), ZERO)
        if allocated != requested:
            raise AllocationMismatchError(requested, allocated)

        held = {c.person_id: c.amount for c in store.contributors(investment_id)}
        for person_id, amount in per_person.items():
            if amount == 0:
                continue
            if person_id not in held:
                raise EntityNotFoundError("contributor", person_id)
            if amount > held[person_id]:
                person = store.find_person(person_id)
                label = person.name if person else person_id
                raise ExceedsLiquidClaimError(label, amount, held[person_id])

        on = resolve_date(date)
        with store.atomic():
            entry = store.post(
                AccountTransactionKind.WITHDRAWAL,
                requested,
                on,
                f"Withdrew from {investment.name}.",
                investment_id=investment.id,
            )
            for person_id, amount in per_person.items():
                if amount == 0:
                    continue
                self._release(person_id, investment.id, amount)
                investment.transactions.append(InvestmentLogEntry(
                    kind=InvestmentLogKind.WITHDRAWAL,
                    amount=amount,
                    date=on,
                    contributor_id=person_id,
                    account_transaction_id=entry.id,
                ))
                person = store.find_person(person_id)
                if person is not None:
                    net_owed(store, person)
            store.collect_closed_investments()

        logger.info(
            "investment_withdrawn",
            investment_id=investment.id,
            amount=str(requested),
            transaction_id=entry.id,
        )
        return entry

    def _release(self, person_id: str, investment_id: str, amount: Decimal) -> None:
        """Shrink a contributor's allocation rows, oldest first."""
        remaining = amount
        rows = sorted(self._store.allocations.for_pair(person_id, investment_id), key=lambda r: r.date)
        for row in rows:
            if remaining == 0:
                break
            taken = min(remaining, row.amount)
            row.amount -= taken
            remaining -= taken
            if row.amount == 0:
                self._store.allocations.remove(row.id)

    # -------------------------------------------------------------------------
    # Reverse
    # -------------------------------------------------------------------------

    def reverse_contribution(self, allocation_id: str) -> Optional[Investment]:
        """
        Undo one contribution (delete/edit of a person's invested record).

        A single-contributor investment whose only entry is this contribution
        is deleted outright. Otherwise the contribution is taken out of the
        investment and its log entry (same id) removed; the investment is
        closed if that leaves it empty.

        Returns the investment if it was closed, else None.
        """
        store = self._store
        row = store.allocations.get(allocation_id)
        if row is None:
            raise TransactionNotFoundError(allocation_id, "Investment")

        investment = store.find_investment(row.investment_id)
        sole = investment is not None and self._is_sole_contribution(investment, row)

        with store.atomic():
            self._refund(row, investment)
            store.allocations.remove(row.id)
            if investment is not None:
                investment.transactions = [e for e in investment.transactions if e.id != row.id]

            person = store.find_person(row.person_id)
            if person is not None:
                net_owed(store, person)

            if sole:
                store.remove_investment(investment.id)
                closed = [investment]
            else:
                closed = store.collect_closed_investments()

        return investment if investment in closed else None

    def _is_sole_contribution(self, investment: Investment, row: Allocation) -> bool:
        contributors = self._store.contributors(investment.id)
        return (
            len(contributors) == 1
            and len(investment.transactions) == 1
            and contributors[0].person_id == row.person_id
            and contributors[0].amount == row.amount
        )

    def _refund(self, row: Allocation, investment: Optional[Investment]) -> None:
        """
        Credit the account with the row's current amount.

        The linked debit is removed when it debited exactly this row, shrunk
        when it was shared or the row was partly withdrawn since, and a
        REVERSAL entry is posted when there is no linked debit at all.
        """
        store = self._store
        entry = store.find_account_transaction(row.account_transaction_id or row.id)
        if entry is not None and -entry.amount == row.amount:
            store.remove_account_transaction(entry.id)
        elif entry is not None and -entry.amount > row.amount:
            store.amend_account_transaction(entry.id, entry.amount + row.amount)
        else:
            name = investment.name if investment else "unknown investment"
            store.post(
                AccountTransactionKind.REVERSAL,
                row.amount,
                dt.date.today(),
                f"Reversed contribution to {name}.",
                linked_person_id=row.person_id,
                investment_id=row.investment_id,
            )
