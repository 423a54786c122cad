"""
Budget Tracker

Monthly spending caps per profile and category, compared against the
current month's expenses.

Two views:
- Individual: one profile's budgets vs that profile's expenses
- Group: budgets summed per category across all members vs every
  expense in the group

DESIGN DECISION: Saving budgets replaces the profile's whole set. There
is no per-category edit; the batch is validated as a unit first.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from src.audit import AuditLogger
from src.config import get_settings
from src.errors import NotFoundError
from src.models.finance import (
    Budget,
    BudgetInput,
    BudgetProgress,
    BudgetStatus,
    Group,
    MonthlySummary,
    Transaction,
    TransactionKind,
    round_money,
)
from src.reports import build_monthly_summary, month_bounds
from src.services.storage import (
    BudgetStorageInterface,
    GroupStorageInterface,
    TransactionStorageInterface,
)
from src.validation import RequestValidator, parse_amount, raise_for_errors


def budget_status(percentage: float, near_limit_percentage: float = 80.0) -> BudgetStatus:
    """Classify how much of a budget has been used."""
    if percentage >= 100:
        return BudgetStatus.OVER_BUDGET
    if percentage >= near_limit_percentage:
        return BudgetStatus.NEAR_LIMIT
    return BudgetStatus.ON_TRACK


def aggregate_budgets(budgets: list[Budget]) -> list[tuple[str, Decimal]]:
    """Sum budget amounts per category, keeping first-seen order."""
    totals: dict[str, Decimal] = {}
    for budget in budgets:
        totals[budget.category] = totals.get(budget.category, Decimal("0")) + budget.amount
    return list(totals.items())


def compute_budget_progress(
    budgets: list[tuple[str, Decimal]],
    expenses: list[Transaction],
    near_limit_percentage: float = 80.0,
) -> list[BudgetProgress]:
    """
    Compare each budgeted category with what was spent.

    Args:
        budgets: (category, amount) pairs
        expenses: Transactions already limited to the scope and month
    """
    spent_by_category: dict[str, Decimal] = {}
    for t in expenses:
        if t.kind != TransactionKind.EXPENSE:
            continue
        spent_by_category[t.category] = spent_by_category.get(t.category, Decimal("0")) + t.amount

    progress = []
    for category, amount in budgets:
        spent = round_money(spent_by_category.get(category, Decimal("0")))
        percentage = round(float(spent / amount * 100), 2) if amount > 0 else 0.0
        progress.append(BudgetProgress(
            category=category,
            amount=round_money(amount),
            spent=spent,
            remaining=round_money(amount - spent),
            percentage=percentage,
            status=budget_status(percentage, near_limit_percentage),
        ))
    return progress


class BudgetTracker:
    """Stores budgets and reports progress against them."""

    def __init__(
        self,
        group_storage: GroupStorageInterface,
        transaction_storage: TransactionStorageInterface,
        budget_storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RequestValidator] = None,
    ):
        self._groups = group_storage
        self._transactions = transaction_storage
        self._budgets = budget_storage
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or RequestValidator()
        self._near_limit = get_settings().app.near_limit_percentage

    async def _get_group(self, group_id: UUID, profile_id: Optional[UUID] = None) -> Group:
        group = await self._groups.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        if profile_id is not None and not group.has_profile(profile_id):
            raise NotFoundError(f"Profile {profile_id} is not in group {group_id}")
        return group

    async def replace_budgets(
        self,
        profile_id: UUID,
        group_id: UUID,
        budgets: list[BudgetInput],
        correlation_id: Optional[UUID] = None,
    ) -> list[Budget]:
        """
        Replace every budget of a profile with a new set.

        Raises:
            InvalidInputError: Empty category, amount out of range,
                or the same category twice (case-insensitive)
            NotFoundError: Unknown group or profile
        """
        result = self._validator.validate_budgets(budgets)
        raise_for_errors(result, "Invalid budgets")

        await self._get_group(group_id, profile_id)

        new_budgets = [
            Budget(
                profile_id=profile_id,
                group_id=group_id,
                category=b.category.strip(),
                amount=parse_amount(b.amount),
            )
            for b in budgets
        ]
        saved = await self._budgets.replace_budgets(profile_id, new_budgets)

        await self._audit.log_budgets_replaced(
            group_id=group_id,
            profile_id=profile_id,
            categories=[b.category for b in saved],
            correlation_id=correlation_id,
        )
        return saved

    async def list_budgets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> list[Budget]:
        await self._get_group(group_id, profile_id)
        return await self._budgets.list_budgets(group_id, profile_id)

    async def budget_overview(
        self,
        group_id: UUID,
        as_of: Optional[date] = None,
        profile_id: Optional[UUID] = None,
    ) -> list[BudgetProgress]:
        """
        Budget vs actual for the month containing as_of.

        With profile_id: that profile's view. Without: the whole group.
        """
        await self._get_group(group_id, profile_id)
        start, end = month_bounds(as_of or date.today())

        budgets = await self._budgets.list_budgets(group_id, profile_id)
        expenses = await self._transactions.list_transactions(
            group_id,
            profile_id=profile_id,
            kinds={TransactionKind.EXPENSE},
            date_from=start,
            date_to=end,
        )
        return compute_budget_progress(
            aggregate_budgets(budgets), expenses, self._near_limit
        )

    async def monthly_summary(
        self,
        group_id: UUID,
        month: Union[str, date],
        profile_id: Optional[UUID] = None,
    ) -> MonthlySummary:
        """Income, expenses and budget usage for one month."""
        group = await self._get_group(group_id, profile_id)
        start, end = month_bounds(month)

        transactions = await self._transactions.list_transactions(
            group_id,
            profile_id=profile_id,
            date_from=start,
            date_to=end,
        )
        budgets = await self._budgets.list_budgets(group_id, profile_id)
        progress = compute_budget_progress(
            aggregate_budgets(budgets), transactions, self._near_limit
        )
        return build_monthly_summary(
            group=group,
            month=start,
            transactions=transactions,
            budget_progress=progress,
            profile_id=profile_id,
        )
