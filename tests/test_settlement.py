"""Tests for balance computation and settlement planning."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from src.models.finance import (
    Balance,
    Profile,
    Transaction,
    TransactionKind,
)
from src.settlement import (
    SETTLEMENT_THRESHOLD,
    compute_balances,
    plan_settlements,
)


def expense(profile: Profile, group_id, amount: str, kind=TransactionKind.EXPENSE) -> Transaction:
    category = "Settlement" if kind.is_settlement else "Food"
    return Transaction(
        profile_id=profile.id,
        group_id=group_id,
        amount=Decimal(amount),
        transaction_date=date(2024, 3, 1),
        description="Test",
        category=category,
        kind=kind,
    )


def balance(name: str, amount: str) -> Balance:
    return Balance(profile_id=uuid4(), name=name, paid=Decimal("0"), balance=Decimal(amount))


def by_name(balances: list[Balance]) -> dict[str, Decimal]:
    return {b.name: b.balance for b in balances}


def apply_settlements(balances: list[Balance], settlements) -> dict[str, Decimal]:
    """Execute proposed settlements against the balances that produced them."""
    result = by_name(balances)
    for s in settlements:
        result[s.from_name] += s.amount
        result[s.to_name] -= s.amount
    return result


class TestComputeBalances:
    """Tests for the balance calculator."""

    def test_two_person_lunch(self):
        """Test A pays 100, B pays nothing: A +50, B -50."""
        a, b = Profile(name="A"), Profile(name="B")
        group_id = uuid4()
        balances = compute_balances([a, b], [expense(a, group_id, "100")])

        assert by_name(balances) == {"A": Decimal("50.00"), "B": Decimal("-50.00")}
        assert balances[0].paid == Decimal("100.00")
        assert balances[1].paid == Decimal("0.00")

    def test_recorded_settlement_zeroes_balances(self):
        """Test that a recorded B->A settlement brings both to zero."""
        a, b = Profile(name="A"), Profile(name="B")
        group_id = uuid4()
        transactions = [
            expense(a, group_id, "100"),
            expense(b, group_id, "50", TransactionKind.SETTLEMENT_PAID),
            expense(a, group_id, "50", TransactionKind.SETTLEMENT_RECEIVED),
        ]
        balances = compute_balances([a, b], transactions)
        assert by_name(balances) == {"A": Decimal("0.00"), "B": Decimal("0.00")}

    def test_income_is_ignored(self):
        """Test that income never moves balances."""
        a, b = Profile(name="A"), Profile(name="B")
        group_id = uuid4()
        transactions = [
            expense(a, group_id, "40"),
            expense(b, group_id, "1000", TransactionKind.INCOME),
        ]
        assert by_name(compute_balances([a, b], transactions)) == {
            "A": Decimal("20.00"),
            "B": Decimal("-20.00"),
        }

    def test_zero_sum_with_uneven_split(self):
        """Test that balances sum to zero within a cent."""
        a, b, c = Profile(name="A"), Profile(name="B"), Profile(name="C")
        group_id = uuid4()
        transactions = [expense(a, group_id, "100"), expense(b, group_id, "0.01")]
        balances = compute_balances([a, b, c], transactions)
        assert abs(sum(b.balance for b in balances)) <= Decimal("0.01")

    def test_zero_sum_survives_partial_settlements(self):
        """Test zero-sum after a sequence of settlements."""
        a, b, c = Profile(name="A"), Profile(name="B"), Profile(name="C")
        group_id = uuid4()
        transactions = [
            expense(a, group_id, "90"),
            expense(c, group_id, "33.33"),
            expense(b, group_id, "12.50", TransactionKind.SETTLEMENT_PAID),
            expense(a, group_id, "12.50", TransactionKind.SETTLEMENT_RECEIVED),
        ]
        balances = compute_balances([a, b, c], transactions)
        assert abs(sum(b.balance for b in balances)) <= Decimal("0.01")

    def test_former_member_expenses_still_count_toward_total(self):
        """Test that expenses of removed profiles raise the fair share."""
        a, b, gone = Profile(name="A"), Profile(name="B"), Profile(name="Gone")
        group_id = uuid4()
        transactions = [expense(a, group_id, "100"), expense(gone, group_id, "100")]
        assert by_name(compute_balances([a, b], transactions)) == {
            "A": Decimal("0.00"),
            "B": Decimal("-100.00"),
        }

    def test_keeps_profile_order(self):
        """Test that balances come back in group order."""
        profiles = [Profile(name=n) for n in ("C", "A", "B")]
        balances = compute_balances(profiles, [])
        assert [b.name for b in balances] == ["C", "A", "B"]
        assert all(b.balance == Decimal("0.00") for b in balances)


class TestPlanSettlements:
    """Tests for the settlement planner."""

    def test_single_settlement(self):
        """Test B owes A 50."""
        settlements = plan_settlements([balance("A", "50"), balance("B", "-50")])
        assert len(settlements) == 1
        assert settlements[0].from_name == "B"
        assert settlements[0].to_name == "A"
        assert settlements[0].amount == Decimal("50.00")

    def test_tie_keeps_profile_order(self):
        """Test A +60, B -30, C -30 gives B->A then C->A."""
        balances = [balance("A", "60"), balance("B", "-30"), balance("C", "-30")]
        settlements = plan_settlements(balances)
        assert [(s.from_name, s.to_name, s.amount) for s in settlements] == [
            ("B", "A", Decimal("30.00")),
            ("C", "A", Decimal("30.00")),
        ]

    def test_smallest_balances_settle_first(self):
        """Test ascending matching of debtors and creditors."""
        balances = [
            balance("A", "30"),
            balance("B", "-10"),
            balance("C", "-40"),
            balance("D", "20"),
        ]
        settlements = plan_settlements(balances)
        assert [(s.from_name, s.to_name, s.amount) for s in settlements] == [
            ("B", "D", Decimal("10.00")),
            ("C", "D", Decimal("10.00")),
            ("C", "A", Decimal("30.00")),
        ]

    def test_sub_threshold_amount_is_skipped(self):
        """Test that 0.003 is never proposed."""
        assert plan_settlements([balance("A", "0.003"), balance("B", "-0.003")]) == []

    def test_sub_threshold_debtor_does_not_block_others(self):
        """Test that the pointer advances past a noise-sized debtor."""
        balances = [balance("X", "-0.003"), balance("Y", "-10"), balance("Z", "10.003")]
        settlements = plan_settlements(balances)
        assert [(s.from_name, s.to_name, s.amount) for s in settlements] == [
            ("Y", "Z", Decimal("10.00")),
        ]

    def test_exactly_threshold_terminates(self):
        """Test that leftovers equal to the threshold do not loop forever."""
        balances = [
            balance("A", str(SETTLEMENT_THRESHOLD)),
            balance("B", "-" + str(SETTLEMENT_THRESHOLD)),
        ]
        assert plan_settlements(balances) == []

    def test_all_settled_produces_nothing(self):
        """Test that zero balances need no settlements."""
        assert plan_settlements([balance("A", "0"), balance("B", "0")]) == []

    def test_completeness_and_count_bound(self):
        """Test that executing the plan clears every balance."""
        a, b, c, d, e = (Profile(name=n) for n in "ABCDE")
        group_id = uuid4()
        transactions = [
            expense(a, group_id, "120.00"),
            expense(b, group_id, "30.00"),
            expense(d, group_id, "57.35"),
            expense(e, group_id, "9.99"),
        ]
        balances = compute_balances([a, b, c, d, e], transactions)
        settlements = plan_settlements(balances)

        debtors = sum(1 for x in balances if x.balance < 0)
        creditors = sum(1 for x in balances if x.balance > 0)
        assert len(settlements) <= debtors + creditors - 1
        assert all(s.amount >= SETTLEMENT_THRESHOLD for s in settlements)
        for remaining in apply_settlements(balances, settlements).values():
            assert abs(remaining) <= Decimal("0.01")

    def test_profile_ids_carried(self):
        """Test that settlements carry the profile ids."""
        creditor, debtor = balance("A", "5"), balance("B", "-5")
        settlement = plan_settlements([creditor, debtor])[0]
        assert settlement.from_profile_id == debtor.profile_id
        assert settlement.to_profile_id == creditor.profile_id
