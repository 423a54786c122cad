"""
Monthly Reports

DESIGN DECISION: Reports are DETERMINISTIC aggregations over stored
transactions. Nothing is estimated: a category with no expenses in the
month simply does not appear.

Settlement transactions are transfers between members, not spending, so
they are excluded from every income and expense total here.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from src.errors import InvalidInputError
from src.models.finance import (
    Asset,
    BudgetProgress,
    CategorySpending,
    Group,
    MonthlySummary,
    Transaction,
    TransactionKind,
    round_money,
)


def month_bounds(month: Union[str, date]) -> tuple[date, date]:
    """
    First and last day of a month.

    Accepts a date (its month is used) or a "YYYY-MM" string.
    """
    if isinstance(month, date):
        year, month_number = month.year, month.month
    else:
        try:
            year_part, month_part = month.strip().split("-")
            year, month_number = int(year_part), int(month_part)
        except (AttributeError, ValueError):
            raise InvalidInputError(f"Month must look like YYYY-MM: {month!r}")
        if not 1 <= month_number <= 12:
            raise InvalidInputError(f"Month must look like YYYY-MM: {month!r}")

    last_day = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, last_day)


def sum_amounts(transactions: list[Transaction], kind: TransactionKind) -> Decimal:
    return round_money(sum(
        (t.amount for t in transactions if t.kind == kind),
        Decimal("0"),
    ))


def spending_by_category(transactions: list[Transaction]) -> list[CategorySpending]:
    """Expense totals per category, largest first."""
    totals: dict[str, Decimal] = {}
    for t in transactions:
        if t.kind != TransactionKind.EXPENSE:
            continue
        totals[t.category] = totals.get(t.category, Decimal("0")) + t.amount

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        CategorySpending(category=category, amount=round_money(amount))
        for category, amount in ranked
    ]


def scope_label(group: Group, profile_id: Optional[UUID] = None) -> str:
    """Human-readable description of whose numbers a report shows."""
    if profile_id is not None:
        profile = group.get_profile(profile_id)
        name = profile.name if profile else "Unknown"
        return f"Individual ({name} in {group.name})"
    return f"Group ({group.name})"


def build_monthly_summary(
    group: Group,
    month: Union[str, date],
    transactions: list[Transaction],
    budget_progress: list[BudgetProgress],
    profile_id: Optional[UUID] = None,
) -> MonthlySummary:
    """
    Assemble the monthly report from already-scoped data.

    Args:
        group: Group the report is for
        month: "YYYY-MM" or any date in the month
        transactions: The month's transactions in scope (any kind)
        budget_progress: Budget vs actual for the same scope
        profile_id: Set for an individual report
    """
    start, _ = month_bounds(month)
    return MonthlySummary(
        month=start.strftime("%Y-%m"),
        scope=scope_label(group, profile_id),
        total_income=sum_amounts(transactions, TransactionKind.INCOME),
        total_expenses=sum_amounts(transactions, TransactionKind.EXPENSE),
        category_spending=spending_by_category(transactions),
        budget_vs_actual=budget_progress,
        transactions=transactions,
    )


def asset_expense_totals(
    assets: list[Asset],
    transactions: list[Transaction],
) -> dict[UUID, Decimal]:
    """
    Total expenses linked to each asset (fuel, repairs, insurance...).

    Every asset gets an entry, zero when nothing is linked to it.
    """
    totals = {asset.id: Decimal("0") for asset in assets}
    for t in transactions:
        if t.kind == TransactionKind.EXPENSE and t.asset_id in totals:
            totals[t.asset_id] += t.amount
    return {asset_id: round_money(total) for asset_id, total in totals.items()}
