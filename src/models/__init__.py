"""
Data Models Package

This package contains all Pydantic models used in the Group Budget core.
All data flowing through the system must conform to these schemas.
"""

from src.models.finance import (
    LAST_DAY_OF_MONTH,
    SETTLEMENT_CATEGORY,
    Asset,
    AssetType,
    Balance,
    Budget,
    BudgetInput,
    BudgetProgress,
    BudgetStatus,
    CategorySpending,
    DepreciationMode,
    ExpenseSplitSummary,
    Group,
    GroupType,
    MonthlySummary,
    Profile,
    RecurringFrequency,
    Settlement,
    SettlementRecord,
    Transaction,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
    round_money,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "LAST_DAY_OF_MONTH",
    "SETTLEMENT_CATEGORY",
    "Asset",
    "AssetType",
    "Balance",
    "Budget",
    "BudgetInput",
    "BudgetProgress",
    "BudgetStatus",
    "CategorySpending",
    "DepreciationMode",
    "ExpenseSplitSummary",
    "Group",
    "GroupType",
    "MonthlySummary",
    "Profile",
    "RecurringFrequency",
    "Settlement",
    "SettlementRecord",
    "Transaction",
    "TransactionKind",
    "ValidationIssue",
    "ValidationResult",
    "round_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
