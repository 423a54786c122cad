"""
Group Budget - Source Package

The computational core of a shared-expense budgeting app: balances,
settlements, budgets and asset depreciation for groups of profiles.

DESIGN PRINCIPLES:
1. Derived numbers (balances, budget usage) are never stored
2. Fail early, fail visibly
3. No silent corrections
4. Every write must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Group Budget Team"
