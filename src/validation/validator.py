"""
Request Validation

DESIGN DECISION: Validation happens before anything is written, and in two
distinct stages:

STAGE 1 - SHAPE VALIDATION:
- Required ids present
- Amounts parse as numbers and are positive
- Categories non-empty
- This catches malformed requests without touching storage

STAGE 2 - SEMANTIC VALIDATION:
- Payer and receiver differ
- Amounts within the configured limits
- No duplicate budget categories (case-insensitive)

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the caller turns errors into InvalidInputError.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from src.config import AppSettings, get_settings
from src.errors import InvalidInputError
from src.models.finance import (
    BudgetInput,
    ValidationIssue,
    ValidationResult,
    round_money,
)


def parse_uuid(value: Any) -> Optional[UUID]:
    """Parse an id given as UUID or string, or return None."""
    if isinstance(value, UUID):
        return value
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a money amount, or return None if it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            return None
        return round_money(amount)
    except (InvalidOperation, ValueError):
        return None


class RequestValidator:
    """
    Validates settlement and budget requests.

    Stage 1: Shape validation (no configuration needed)
    Stage 2: Semantic validation (uses configured amount limits)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app
        self._min_amount = Decimal(str(self._settings.min_amount))
        self._max_amount = Decimal(str(self._settings.max_amount))

    def validate_settlement(
        self,
        from_profile_id: Any,
        to_profile_id: Any,
        group_id: Any,
        amount: Any,
    ) -> ValidationResult:
        """Check a settlement request before any lookups or writes."""
        issues = []

        for field, value in (
            ("from_profile_id", from_profile_id),
            ("to_profile_id", to_profile_id),
            ("group_id", group_id),
        ):
            if not value:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field} is required",
                    severity="error",
                ))
            elif parse_uuid(value) is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=f"{field} is not a valid id: {value!r}",
                    severity="error",
                ))

        parsed = parse_amount(amount)
        if parsed is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount is not a number: {amount!r}",
                severity="error",
            ))
        elif parsed <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Settlement amount must be greater than zero",
                severity="error",
            ))

        # Stage 2 only makes sense on a well-formed request
        if issues:
            return ValidationResult(issues=issues)

        if parse_uuid(from_profile_id) == parse_uuid(to_profile_id):
            issues.append(ValidationIssue(
                field="to_profile_id",
                issue_type="invalid_value",
                message="A profile cannot settle with itself",
                severity="error",
            ))

        if parsed > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Settlement amount {parsed} is unusually large",
                severity="warning",
            ))

        return ValidationResult(issues=issues)

    def validate_budgets(self, budgets: list[BudgetInput]) -> ValidationResult:
        """Check a whole budget replacement batch."""
        issues = []
        seen: set[str] = set()

        for index, budget in enumerate(budgets):
            category = (budget.category or "").strip()
            if not category:
                issues.append(ValidationIssue(
                    field=f"budgets[{index}].category",
                    issue_type="missing",
                    message="Budget category is required",
                    severity="error",
                ))
            else:
                key = category.lower()
                if key in seen:
                    issues.append(ValidationIssue(
                        field=f"budgets[{index}].category",
                        issue_type="duplicate",
                        message=f"Duplicate budget category: {category}",
                        severity="error",
                    ))
                seen.add(key)

            amount = parse_amount(budget.amount)
            if amount is None:
                issues.append(ValidationIssue(
                    field=f"budgets[{index}].amount",
                    issue_type="invalid_value",
                    message=f"Budget amount is not a number: {budget.amount!r}",
                    severity="error",
                ))
            elif not self._min_amount <= amount <= self._max_amount:
                issues.append(ValidationIssue(
                    field=f"budgets[{index}].amount",
                    issue_type="out_of_range",
                    message=(
                        f"Budget amount must be between {self._min_amount} "
                        f"and {self._max_amount}"
                    ),
                    severity="error",
                ))

        return ValidationResult(issues=issues)


def raise_for_errors(result: ValidationResult, message: str) -> None:
    """Turn a failed validation into InvalidInputError."""
    if result.has_errors:
        details = "; ".join(i.message for i in result.issues if i.severity == "error")
        raise InvalidInputError(f"{message}: {details}", issues=result.issues)
