"""
Money Manager - Ledger Package

The balance-consistency core of a personal finance tracker:
accounts, income/expense transactions and transfers, with every
account balance kept equal to what its ledger says it should be.

DESIGN PRINCIPLES:
1. One authority changes balances (the reconciliation engine)
2. Fail early, fail visibly: rule violations are raised before any write
3. No silent corrections: drift is reported, never patched over
4. Every balance change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Money Manager Team"
