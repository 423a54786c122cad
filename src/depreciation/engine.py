"""
Depreciation Engine

Pure recalculation of an asset's current value from its declining-balance
rate. Nothing here touches storage; see service.py for the write side.

Two modes:
- FULL: start over from the initial value and the purchase date. Used
  when the user edits an asset.
- INCREMENTAL: decay the current value by the whole years elapsed since
  depreciation was last applied. Used every time assets are read.

IMPORTANT: Only whole years count. A year is elapsed once the anniversary
(month and day) has been reached, and a span that runs backwards counts
as zero years.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel

from src.errors import DataIntegrityError
from src.models.finance import Asset, DepreciationMode, round_money


HUNDRED = Decimal("100")


class DepreciationResult(BaseModel):
    """Outcome of one recalculation."""

    current_value: Decimal
    last_depreciation_date: Optional[date]
    years_applied: int
    changed: bool


def whole_years_between(start: date, end: date) -> int:
    """
    Count full calendar years from start to end.

    Returns a negative number when end is before start; callers treat
    that as zero elapsed years.
    """
    years = end.year - start.year
    if years > 0 and (end.month, end.day) < (start.month, start.day):
        years -= 1
    elif years < 0 and (end.month, end.day) > (start.month, start.day):
        years += 1
    return years


def _coerce_date(value: Any, field: str) -> date:
    """Accept a date (or ISO string); anything else is corrupt data."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            pass
    raise DataIntegrityError(f"Asset has a missing or invalid {field}: {value!r}")


def _decay(value: Decimal, rate: Decimal, years: int) -> Decimal:
    factor = 1 - rate / HUNDRED
    for _ in range(years):
        value = value * factor
    return max(Decimal("0"), round_money(value))


def recalculate_value(
    initial_value: Decimal,
    purchase_date: Any,
    current_value: Optional[Decimal],
    last_depreciation_date: Any,
    depreciation_rate: Decimal,
    as_of: date,
    mode: DepreciationMode,
) -> DepreciationResult:
    """
    Compute the new current value of an asset.

    Args:
        initial_value: Purchase price
        purchase_date: Date of purchase (required in both modes)
        current_value: Value after the last application (incremental base)
        last_depreciation_date: When depreciation was last applied, if ever
        depreciation_rate: Annual rate in percent
        as_of: Date to depreciate up to
        mode: FULL or INCREMENTAL

    Raises:
        DataIntegrityError: If a date needed for the calculation is corrupt
    """
    purchased = _coerce_date(purchase_date, "purchase_date")
    rate = Decimal(str(depreciation_rate))
    initial = round_money(initial_value)

    if mode == DepreciationMode.FULL:
        years = max(0, whole_years_between(purchased, as_of))
        if rate > 0 and years > 0:
            value = _decay(initial, rate, years)
        else:
            value = initial
            years = 0
        # The anchor resets even when nothing decayed
        return DepreciationResult(
            current_value=value,
            last_depreciation_date=as_of,
            years_applied=years,
            changed=True,
        )

    base = round_money(current_value if current_value is not None else initial)
    if last_depreciation_date is None:
        anchor = purchased
    else:
        anchor = _coerce_date(last_depreciation_date, "last_depreciation_date")
        last_depreciation_date = anchor

    years = whole_years_between(anchor, as_of)
    if rate <= 0 or years <= 0:
        return DepreciationResult(
            current_value=base,
            last_depreciation_date=last_depreciation_date,
            years_applied=0,
            changed=False,
        )

    return DepreciationResult(
        current_value=_decay(base, rate, years),
        last_depreciation_date=as_of,
        years_applied=years,
        changed=True,
    )


def recalculate_asset_value(
    asset: Asset,
    as_of: date,
    mode: DepreciationMode,
) -> Asset:
    """Return a copy of the asset with depreciation applied up to as_of."""
    result = recalculate_value(
        initial_value=asset.initial_value,
        purchase_date=asset.purchase_date,
        current_value=asset.current_value,
        last_depreciation_date=asset.last_depreciation_date,
        depreciation_rate=asset.depreciation_rate,
        as_of=as_of,
        mode=mode,
    )
    if not result.changed:
        return asset.model_copy(deep=True)
    return asset.model_copy(update={
        "current_value": result.current_value,
        "last_depreciation_date": result.last_depreciation_date,
    })
