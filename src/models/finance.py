"""
Core Data Models for Group Budget

These models define the strict schemas for everything the core reads
from storage and everything it hands back to callers:
1. Groups and their embedded profiles
2. Transactions (income, expenses and settlement pairs)
3. Budgets and their derived progress
4. Depreciable assets
5. Derived balances and proposed settlements

DESIGN DECISION: Money is always Decimal, rounded half-up to 2 places at
the model boundary. Balances and settlements are derived, never stored.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")

# recurring_day_of_month value meaning "last day of the month"
LAST_DAY_OF_MONTH = 32

SETTLEMENT_CATEGORY = "Settlement"


def round_money(value: Any) -> Decimal:
    """Round a number to 2 decimal places (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _coerce_money(value: Any) -> Any:
    """Round numeric input before field constraints run; leave the rest to pydantic."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        return value
    try:
        return round_money(value)
    except (InvalidOperation, ValueError):
        return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class GroupType(str, Enum):
    """Kind of group sharing expenses."""
    FAMILY = "family"
    ROOMMATES = "roommates"
    PERSONAL = "personal"
    OTHER = "other"
    FRIENDS = "friends"


class TransactionKind(str, Enum):
    """
    Closed set of transaction kinds.

    CRITICAL: Settlement kinds are only ever created in pairs by the
    settlement recorder. Any other value is rejected at construction.
    """
    INCOME = "income"
    EXPENSE = "expense"
    SETTLEMENT_PAID = "settlement_paid"
    SETTLEMENT_RECEIVED = "settlement_received"

    @property
    def is_settlement(self) -> bool:
        return self in (
            TransactionKind.SETTLEMENT_PAID,
            TransactionKind.SETTLEMENT_RECEIVED,
        )


class RecurringFrequency(str, Enum):
    """How often a recurring transaction repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AssetType(str, Enum):
    """Supported asset types."""
    VEHICLE = "Vehicle"
    PROPERTY = "Property"
    ELECTRONICS = "Electronics"
    INVESTMENT = "Investment"
    OTHER = "Other"


class BudgetStatus(str, Enum):
    """Budget health shown next to each category."""
    ON_TRACK = "On Track"
    NEAR_LIMIT = "Near Limit"
    OVER_BUDGET = "Over Budget"


class DepreciationMode(str, Enum):
    """
    How an asset value is recalculated.

    FULL: from the initial value and purchase date (explicit update).
    INCREMENTAL: from the current value since the last application (reads).
    """
    FULL = "full"
    INCREMENTAL = "incremental"


# =============================================================================
# GROUPS & PROFILES
# =============================================================================

class Profile(BaseModel):
    """A member of a group. Lives embedded inside its Group."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    color: str = Field(
        default="#3B82F6",
        max_length=20,
        description="Color tag used by the UI"
    )
    avatar: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Group(BaseModel):
    """
    A named collection of profiles sharing expenses.

    CRITICAL: A group always has at least one profile.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    group_type: GroupType = Field(
        default=GroupType.PERSONAL,
        description="Category tag of the group"
    )
    profiles: list[Profile] = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_unique_profiles(self) -> 'Group':
        ids = [p.id for p in self.profiles]
        if len(ids) != len(set(ids)):
            raise ValueError("Profile ids must be unique within a group")
        return self

    def get_profile(self, profile_id: UUID) -> Optional[Profile]:
        """Find a member profile by id."""
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        return None

    def has_profile(self, profile_id: UUID) -> bool:
        return self.get_profile(profile_id) is not None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A financial event owned by one profile of one group.

    Amounts are always positive; the kind carries the direction.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    profile_id: UUID
    group_id: UUID
    asset_id: Optional[UUID] = Field(
        default=None,
        description="Optional link to an asset this expense belongs to"
    )

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    transaction_date: date = Field(..., description="Calendar date, no time")
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=50)
    kind: TransactionKind

    # Recurrence metadata
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    recurring_day_of_month: Optional[int] = Field(
        default=None,
        ge=1,
        le=LAST_DAY_OF_MONTH,
        description="1-31, or 32 for the last day of the month"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v: Any) -> Any:
        return _coerce_money(v)

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'Transaction':
        """Recurrence fields only make sense together."""
        if not self.is_recurring:
            if self.recurring_frequency or self.recurring_day_of_month:
                raise ValueError("Recurrence details given for a non-recurring transaction")
            return self

        if self.recurring_frequency is None:
            raise ValueError("Recurring transactions need a frequency")
        if (
            self.recurring_day_of_month is not None
            and self.recurring_frequency != RecurringFrequency.MONTHLY
        ):
            raise ValueError("Day of month only applies to monthly recurrence")
        return self

    @model_validator(mode='after')
    def validate_settlement_category(self) -> 'Transaction':
        if self.kind.is_settlement and self.category != SETTLEMENT_CATEGORY:
            raise ValueError("Settlement transactions must use the Settlement category")
        return self


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(BaseModel):
    """
    A per-profile, per-category monthly spending cap.

    Spent / remaining / percentage are NOT stored. See BudgetProgress.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    profile_id: UUID
    group_id: UUID
    category: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('amount', mode='before')
    @classmethod
    def round_amount(cls, v: Any) -> Any:
        return _coerce_money(v)


class BudgetInput(BaseModel):
    """One entry of a budget replacement batch, before validation."""

    category: str
    amount: Decimal


class BudgetProgress(BaseModel):
    """Budget vs actual for one category in the current month."""

    category: str
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: float
    status: BudgetStatus


# =============================================================================
# ASSETS
# =============================================================================

class Asset(BaseModel):
    """
    A depreciable item owned by a profile.

    current_value is derived: see src.depreciation.engine.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    profile_id: UUID
    group_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    asset_type: AssetType
    initial_value: Decimal = Field(..., gt=0, decimal_places=2)
    current_value: Optional[Decimal] = Field(
        default=None,
        ge=0,
        decimal_places=2,
        description="Starts equal to initial_value for a new asset"
    )
    purchase_date: date
    depreciation_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Annual depreciation in percent"
    )
    last_depreciation_date: Optional[date] = Field(
        default=None,
        description="When depreciation was last applied (defaults to purchase date)"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('initial_value', 'current_value', mode='before')
    @classmethod
    def round_values(cls, v: Any) -> Any:
        return _coerce_money(v)

    @model_validator(mode='after')
    def default_current_value(self) -> 'Asset':
        if self.current_value is None:
            self.current_value = self.initial_value
        return self

    @property
    def depreciation_anchor(self) -> date:
        """Date incremental depreciation counts from."""
        return self.last_depreciation_date or self.purchase_date


# =============================================================================
# DERIVED SETTLEMENT MODELS
# =============================================================================

class Balance(BaseModel):
    """
    Net position of one profile in a group.

    Positive balance: is owed money. Negative: owes money.
    """

    profile_id: UUID
    name: str
    color: Optional[str] = None
    paid: Decimal
    balance: Decimal


class Settlement(BaseModel):
    """A proposed transfer from a debtor to a creditor."""
    model_config = ConfigDict(populate_by_name=True)

    from_name: str = Field(..., alias="from")
    to_name: str = Field(..., alias="to")
    amount: Decimal
    from_profile_id: Optional[UUID] = None
    to_profile_id: Optional[UUID] = None


class ExpenseSplitSummary(BaseModel):
    """Everything the expense split view needs for one group."""

    group_id: UUID
    total_expense: Decimal
    per_person_share: Decimal
    balances: list[Balance]
    settlements: list[Settlement]


class SettlementRecord(BaseModel):
    """The two transactions written for one confirmed settlement."""

    paid: Transaction
    received: Transaction

    @property
    def amount(self) -> Decimal:
        return self.paid.amount


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a request before anything is written.

    Errors block the write; warnings are passed back to the caller.
    """

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]


# =============================================================================
# REPORTING MODELS
# =============================================================================

class CategorySpending(BaseModel):
    category: str
    amount: Decimal


class MonthlySummary(BaseModel):
    """
    Data behind the monthly financial report.

    Settlements are excluded from income and expense totals.
    """

    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    scope: str
    total_income: Decimal
    total_expenses: Decimal
    category_spending: list[CategorySpending] = Field(default_factory=list)
    budget_vs_actual: list[BudgetProgress] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
