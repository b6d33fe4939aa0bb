"""
Withdrawal Simulation

Answers "can this person be paid X right now?" without touching the store.
When the liquid claim is short, the person's invested records are walked
newest first to show which investments are holding the difference.
"""

from decimal import Decimal

from money_ledger.engine.balances import net_owed
from money_ledger.engine.inputs import require_positive_amount
from money_ledger.models.ledger import ZERO, MoneyInput
from money_ledger.models.reports import ShortfallExplanation, WithdrawalSimulation
from money_ledger.store.ledger_store import LedgerStore


UNKNOWN_INVESTMENT = "Unknown"


def simulate_withdrawal(
    store: LedgerStore,
    person_id: str,
    requested: MoneyInput,
) -> WithdrawalSimulation:
    """
    Explain how much of `requested` is liquid and where the rest is tied up.

    Raises:
        InvalidInputError: requested is not a positive amount
        EntityNotFoundError: unknown person
    """
    person = store.get_person(person_id)
    amount = require_positive_amount(requested, "requested amount")

    liquid = net_owed(store, person)
    shortfall = max(ZERO, amount - liquid)

    explanation = []
    remaining: Decimal = shortfall
    records = sorted(store.invested_records(person.id), key=lambda r: r.date, reverse=True)
    for record in records:
        if remaining <= 0:
            break
        covered = min(remaining, record.amount)
        investment = store.find_investment(record.investment_id)
        explanation.append(ShortfallExplanation(
            investment_id=record.investment_id,
            investment_name=investment.name if investment else UNKNOWN_INVESTMENT,
            amount_covered=covered,
            record_amount=record.amount,
            date=record.date,
        ))
        remaining -= covered

    return WithdrawalSimulation(
        person_id=person.id,
        requested=amount,
        liquid_available=liquid,
        covered=amount - shortfall,
        shortfall=shortfall,
        explanation=explanation,
        unexplained=remaining,
        account_sufficient=amount <= store.account.balance,
    )
