"""Ledger consistency engine: balances, transactions, investments, simulation."""

from money_ledger.engine.balances import (
    effective_liquid_balance,
    is_underfunded,
    net_owed,
    net_receivable,
    net_worth,
    recalculate_all,
    total_invested,
    total_liquid_obligations,
    total_owed_including_invested,
    total_owed_to_others,
    total_receivables,
)
from money_ledger.engine.investments import InvestmentEngine
from money_ledger.engine.simulation import simulate_withdrawal
from money_ledger.engine.transactions import TransactionEngine

__all__ = [
    "InvestmentEngine",
    "TransactionEngine",
    "simulate_withdrawal",
    "net_owed",
    "net_receivable",
    "total_owed_including_invested",
    "total_liquid_obligations",
    "total_invested",
    "total_receivables",
    "total_owed_to_others",
    "net_worth",
    "effective_liquid_balance",
    "is_underfunded",
    "recalculate_all",
]
