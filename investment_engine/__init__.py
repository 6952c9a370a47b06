"""
Investment Transaction Engine

Tiered investment plans, deterministic return projections, and a deposit /
withdrawal state machine that mutates user balances exactly once through
compare-and-commit ledger operations. All money math uses Decimal.
"""

__version__ = "1.0.0"
