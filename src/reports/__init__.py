"""Reports package."""

from src.reports.summary import (
    asset_expense_totals,
    build_monthly_summary,
    month_bounds,
    scope_label,
    spending_by_category,
)

__all__ = [
    "asset_expense_totals",
    "build_monthly_summary",
    "month_bounds",
    "scope_label",
    "spending_by_category",
]
