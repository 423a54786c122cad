"""
Settlement Planner

Greedy two-pointer matching of debtors to creditors.

Both sides are sorted ascending by magnitude, so the smallest debts are
cleared first. The sort is stable: profiles with equal balances keep
their group order. Amounts at or below the noise threshold are never
proposed.
"""

from decimal import Decimal

from src.models.finance import Balance, Settlement, round_money


# Remaining amounts below this are rounding noise
SETTLEMENT_THRESHOLD = Decimal("0.005")


def plan_settlements(balances: list[Balance]) -> list[Settlement]:
    """
    Propose the transfers that bring every balance to zero.

    At most (debtors + creditors - 1) settlements are produced.
    """
    debtors = sorted(
        [[b, -b.balance] for b in balances if b.balance < 0],
        key=lambda entry: entry[1],
    )
    creditors = sorted(
        [[b, b.balance] for b in balances if b.balance > 0],
        key=lambda entry: entry[1],
    )

    settlements: list[Settlement] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debtor, owed = debtors[i]
        creditor, due = creditors[j]
        amount = min(owed, due)

        emitted = amount > SETTLEMENT_THRESHOLD
        if emitted:
            settlements.append(Settlement(
                from_name=debtor.name,
                to_name=creditor.name,
                amount=round_money(amount),
                from_profile_id=debtor.profile_id,
                to_profile_id=creditor.profile_id,
            ))
            owed -= amount
            due -= amount
            debtors[i][1] = owed
            creditors[j][1] = due

        advanced = False
        if owed < SETTLEMENT_THRESHOLD:
            i += 1
            advanced = True
        if due < SETTLEMENT_THRESHOLD:
            j += 1
            advanced = True

        # Exactly-at-threshold leftovers on both sides would never move
        if not emitted and not advanced:
            if owed <= due:
                i += 1
            else:
                j += 1

    return settlements
