"""Tests for budgets and monthly reports."""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from src.audit import AuditLogger
from src.budgets import BudgetTracker, budget_status, compute_budget_progress
from src.errors import InvalidInputError, NotFoundError
from src.models.finance import (
    BudgetInput,
    BudgetStatus,
    Group,
    Profile,
    Transaction,
    TransactionKind,
)
from src.reports import month_bounds, spending_by_category
from src.services.storage import InMemoryAuditStorage, InMemoryStorage


def make_transaction(profile, group, amount, category="Groceries",
                     kind=TransactionKind.EXPENSE, on=date(2024, 3, 10)) -> Transaction:
    return Transaction(
        profile_id=profile.id,
        group_id=group.id,
        amount=Decimal(amount),
        transaction_date=on,
        description=f"{category} spend",
        category="Settlement" if kind.is_settlement else category,
        kind=kind,
    )


def setup():
    storage = InMemoryStorage()
    asha, ben = Profile(name="Asha"), Profile(name="Ben")
    group = Group(name="Home", profiles=[asha, ben])
    asyncio.run(storage.save_group(group))
    tracker = BudgetTracker(storage, storage, storage, AuditLogger(InMemoryAuditStorage()))
    return tracker, storage, group, asha, ben


class TestBudgetStatus:
    """Tests for status thresholds."""

    def test_thresholds(self):
        """Test the three statuses and their boundaries."""
        assert budget_status(50.0) == BudgetStatus.ON_TRACK
        assert budget_status(80.0) == BudgetStatus.NEAR_LIMIT
        assert budget_status(99.99) == BudgetStatus.NEAR_LIMIT
        assert budget_status(100.0) == BudgetStatus.OVER_BUDGET

    def test_custom_near_limit(self):
        """Test a configured near-limit percentage."""
        assert budget_status(85.0, near_limit_percentage=90.0) == BudgetStatus.ON_TRACK

    def test_over_budget_progress(self):
        """Test 5200 spent of 5000 is Over Budget at 104%."""
        asha = Profile(name="Asha")
        group = Group(name="Home", profiles=[asha])
        progress = compute_budget_progress(
            [("Groceries", Decimal("5000"))],
            [make_transaction(asha, group, "3000"), make_transaction(asha, group, "2200")],
        )
        assert len(progress) == 1
        item = progress[0]
        assert item.spent == Decimal("5200.00")
        assert item.remaining == Decimal("-200.00")
        assert item.percentage == 104.0
        assert item.status == BudgetStatus.OVER_BUDGET


class TestReplaceBudgets:
    """Tests for replacing a profile's budgets."""

    def test_replace_is_whole_set(self):
        """Test that saving budgets drops the previous set."""
        tracker, _, group, asha, _ = setup()
        asyncio.run(tracker.replace_budgets(asha.id, group.id, [
            BudgetInput(category="Food", amount=Decimal("500")),
            BudgetInput(category="Rent", amount=Decimal("1500")),
        ]))
        asyncio.run(tracker.replace_budgets(asha.id, group.id, [
            BudgetInput(category=" Travel ", amount=Decimal("250.555")),
        ]))

        budgets = asyncio.run(tracker.list_budgets(group.id, asha.id))
        assert [(b.category, b.amount) for b in budgets] == [("Travel", Decimal("250.56"))]

    def test_other_profiles_untouched(self):
        """Test that replacing one profile's budgets keeps the others."""
        tracker, _, group, asha, ben = setup()
        asyncio.run(tracker.replace_budgets(ben.id, group.id, [
            BudgetInput(category="Food", amount=Decimal("100")),
        ]))
        asyncio.run(tracker.replace_budgets(asha.id, group.id, []))
        assert len(asyncio.run(tracker.list_budgets(group.id, ben.id))) == 1

    def test_duplicate_categories_rejected(self):
        """Test that categories are unique ignoring case."""
        tracker, _, group, asha, _ = setup()
        with pytest.raises(InvalidInputError):
            asyncio.run(tracker.replace_budgets(asha.id, group.id, [
                BudgetInput(category="Food", amount=Decimal("100")),
                BudgetInput(category="food", amount=Decimal("200")),
            ]))

    @pytest.mark.parametrize("category,amount", [
        ("", Decimal("100")),
        ("Food", Decimal("0")),
        ("Food", Decimal("20000000")),
    ])
    def test_invalid_entries_rejected(self, category, amount):
        """Test empty categories and out-of-range amounts."""
        tracker, storage, group, asha, _ = setup()
        with pytest.raises(InvalidInputError):
            asyncio.run(tracker.replace_budgets(asha.id, group.id, [
                BudgetInput(category=category, amount=amount),
            ]))
        assert asyncio.run(storage.list_budgets(group.id)) == []

    def test_unknown_profile(self):
        """Test that the profile must be in the group."""
        tracker, _, group, _, _ = setup()
        with pytest.raises(NotFoundError):
            asyncio.run(tracker.replace_budgets(uuid4(), group.id, []))


class TestBudgetOverview:
    """Tests for budget vs actual views."""

    def test_individual_view(self):
        """Test one profile's budgets against their own expenses."""
        tracker, storage, group, asha, ben = setup()
        asyncio.run(tracker.replace_budgets(asha.id, group.id, [
            BudgetInput(category="Groceries", amount=Decimal("5000")),
        ]))
        for t in (
            make_transaction(asha, group, "5200"),
            make_transaction(ben, group, "999"),
            make_transaction(asha, group, "700", on=date(2024, 2, 28)),
        ):
            asyncio.run(storage.save_transaction(t))

        progress = asyncio.run(tracker.budget_overview(group.id, date(2024, 3, 15), asha.id))
        assert progress[0].spent == Decimal("5200.00")
        assert progress[0].status == BudgetStatus.OVER_BUDGET

    def test_group_view_sums_budgets(self):
        """Test that the group view adds budgets across members."""
        tracker, storage, group, asha, ben = setup()
        for profile in (asha, ben):
            asyncio.run(tracker.replace_budgets(profile.id, group.id, [
                BudgetInput(category="Groceries", amount=Decimal("1000")),
            ]))
        asyncio.run(storage.save_transaction(make_transaction(asha, group, "500")))
        asyncio.run(storage.save_transaction(make_transaction(ben, group, "700")))

        progress = asyncio.run(tracker.budget_overview(group.id, date(2024, 3, 1)))
        assert len(progress) == 1
        assert progress[0].amount == Decimal("2000.00")
        assert progress[0].spent == Decimal("1200.00")
        assert progress[0].percentage == 60.0
        assert progress[0].status == BudgetStatus.ON_TRACK


class TestMonthlySummary:
    """Tests for the monthly report."""

    def test_month_bounds(self):
        """Test month boundaries including leap February."""
        assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(date(2023, 12, 5)) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_bad_month_rejected(self):
        """Test that malformed months are invalid input."""
        with pytest.raises(InvalidInputError):
            month_bounds("2024-13")
        with pytest.raises(InvalidInputError):
            month_bounds("March")

    def test_spending_by_category_largest_first(self):
        """Test category ranking."""
        asha = Profile(name="Asha")
        group = Group(name="Home", profiles=[asha])
        spending = spending_by_category([
            make_transaction(asha, group, "20", category="Food"),
            make_transaction(asha, group, "300", category="Rent"),
            make_transaction(asha, group, "15", category="Food"),
        ])
        assert [(s.category, s.amount) for s in spending] == [
            ("Rent", Decimal("300.00")),
            ("Food", Decimal("35.00")),
        ]

    def test_group_summary_excludes_settlements(self):
        """Test totals, scope label and settlement exclusion."""
        tracker, storage, group, asha, ben = setup()
        for t in (
            make_transaction(asha, group, "3000", kind=TransactionKind.INCOME, category="Salary"),
            make_transaction(asha, group, "200", category="Food"),
            make_transaction(ben, group, "300", category="Rent"),
            make_transaction(ben, group, "250", kind=TransactionKind.SETTLEMENT_PAID),
            make_transaction(asha, group, "250", kind=TransactionKind.SETTLEMENT_RECEIVED),
            make_transaction(asha, group, "80", category="Food", on=date(2024, 4, 1)),
        ):
            asyncio.run(storage.save_transaction(t))

        summary = asyncio.run(tracker.monthly_summary(group.id, "2024-03"))
        assert summary.month == "2024-03"
        assert summary.scope == "Group (Home)"
        assert summary.total_income == Decimal("3000.00")
        assert summary.total_expenses == Decimal("500.00")
        assert len(summary.transactions) == 5

    def test_individual_scope_label(self):
        """Test the individual scope label."""
        tracker, _, group, asha, _ = setup()
        summary = asyncio.run(tracker.monthly_summary(group.id, "2024-03", asha.id))
        assert summary.scope == "Individual (Asha in Home)"
        assert summary.total_expenses == Decimal("0.00")
