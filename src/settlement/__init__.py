"""
Settlement Package

Who owes whom within a group:
- balances: net position of each profile
- planner: the transfers that clear those positions
- recorder: persisting a confirmed transfer as a transaction pair
"""

from src.settlement.balances import compute_balances, fair_share, total_expense
from src.settlement.planner import SETTLEMENT_THRESHOLD, plan_settlements
from src.settlement.recorder import SettlementRecorder

__all__ = [
    "SETTLEMENT_THRESHOLD",
    "SettlementRecorder",
    "compute_balances",
    "fair_share",
    "plan_settlements",
    "total_expense",
]
