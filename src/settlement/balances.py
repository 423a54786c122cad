"""
Balance Calculator

Turns a group's transactions into per-profile net balances.

Positive balance = the profile is owed money.
Negative balance = the profile owes money.

Recorded settlements move balances toward zero: the payer's
settlement_paid adds to their balance, the receiver's
settlement_received subtracts from theirs. Income never affects
balances.
"""

from decimal import Decimal
from typing import Iterable

from src.models.finance import (
    Balance,
    Profile,
    Transaction,
    TransactionKind,
    round_money,
)


def total_expense(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of every expense in the group, including former members'."""
    return sum(
        (t.amount for t in transactions if t.kind == TransactionKind.EXPENSE),
        Decimal("0"),
    )


def fair_share(total: Decimal, profile_count: int) -> Decimal:
    """Equal split of the total; unrounded so balances round only once."""
    if profile_count <= 0:
        return Decimal("0")
    return total / profile_count


def compute_balances(
    profiles: list[Profile],
    transactions: list[Transaction],
) -> list[Balance]:
    """
    Compute the net balance of each profile.

    Args:
        profiles: Current members, in group order
        transactions: Every transaction of the group

    Returns:
        One Balance per profile, in the same order as profiles
    """
    share = fair_share(total_expense(transactions), len(profiles))

    paid = {p.id: Decimal("0") for p in profiles}
    adjustments = {p.id: Decimal("0") for p in profiles}

    for t in transactions:
        if t.profile_id not in paid:
            continue
        if t.kind == TransactionKind.EXPENSE:
            paid[t.profile_id] += t.amount
        elif t.kind == TransactionKind.SETTLEMENT_PAID:
            adjustments[t.profile_id] += t.amount
        elif t.kind == TransactionKind.SETTLEMENT_RECEIVED:
            adjustments[t.profile_id] -= t.amount

    return [
        Balance(
            profile_id=p.id,
            name=p.name,
            color=p.color,
            paid=round_money(paid[p.id]),
            balance=round_money(paid[p.id] - share + adjustments[p.id]),
        )
        for p in profiles
    ]
