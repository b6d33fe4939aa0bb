"""
Money Ledger - Source Package

A personal finance ledger that tracks money held on behalf of other
people, the investments made with it, loans given out, and the single
bank account all of these flows settle through.

DESIGN PRINCIPLES:
1. Every balance is derived, never trusted from a cache
2. Fail early, fail before mutating anything
3. Every settlement movement has exactly one account entry
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Money Ledger Team"
