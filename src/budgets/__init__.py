"""Budgets package."""

from src.budgets.tracker import (
    BudgetTracker,
    aggregate_budgets,
    budget_status,
    compute_budget_progress,
)

__all__ = [
    "BudgetTracker",
    "aggregate_budgets",
    "budget_status",
    "compute_budget_progress",
]
