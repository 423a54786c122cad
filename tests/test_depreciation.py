"""Tests for the depreciation engine and service."""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from src.audit import AuditLogger
from src.depreciation import (
    DepreciationService,
    recalculate_asset_value,
    recalculate_value,
    whole_years_between,
)
from src.errors import DataIntegrityError
from src.models.audit import AuditEventType
from src.models.finance import Asset, AssetType, DepreciationMode
from src.services.storage import InMemoryAuditStorage, InMemoryStorage


def make_asset(**overrides) -> Asset:
    data = dict(
        profile_id=uuid4(),
        group_id=uuid4(),
        name="Car",
        asset_type=AssetType.VEHICLE,
        initial_value=Decimal("100000"),
        purchase_date=date(2022, 1, 1),
        depreciation_rate=Decimal("10"),
    )
    data.update(overrides)
    return Asset(**data)


def make_service():
    storage = InMemoryStorage()
    audit_storage = InMemoryAuditStorage()
    service = DepreciationService(storage, AuditLogger(audit_storage))
    return service, storage, audit_storage


class TestWholeYears:
    """Tests for the whole-year difference."""

    def test_anniversary_not_reached(self):
        """Test that a day short of the anniversary is zero years."""
        assert whole_years_between(date(2022, 3, 15), date(2023, 3, 14)) == 0

    def test_anniversary_reached(self):
        """Test that the anniversary itself counts."""
        assert whole_years_between(date(2022, 3, 15), date(2023, 3, 15)) == 1
        assert whole_years_between(date(2022, 1, 1), date(2024, 1, 1)) == 2

    def test_backwards_span_is_not_positive(self):
        """Test that an end before the start never yields elapsed years."""
        assert whole_years_between(date(2025, 6, 1), date(2024, 7, 1)) == 0
        assert whole_years_between(date(2025, 6, 1), date(2023, 6, 1)) < 0


class TestRecalculateValue:
    """Tests for the pure recalculation."""

    def test_full_two_years_at_ten_percent(self):
        """Test 100000 at 10% over two years is 81000."""
        asset = make_asset(purchase_date=date(2023, 1, 1))
        result = recalculate_asset_value(asset, date(2025, 1, 1), DepreciationMode.FULL)
        assert result.current_value == Decimal("81000.00")
        assert result.last_depreciation_date == date(2025, 1, 1)

    def test_full_ignores_partial_years(self):
        """Test that a partial year does not depreciate."""
        asset = make_asset()
        result = recalculate_asset_value(asset, date(2022, 12, 31), DepreciationMode.FULL)
        assert result.current_value == Decimal("100000.00")
        assert result.last_depreciation_date == date(2022, 12, 31)

    def test_full_with_zero_rate_returns_initial(self):
        """Test that rate 0 yields the initial value in full mode."""
        asset = make_asset(depreciation_rate=Decimal("0"), current_value=Decimal("5"))
        result = recalculate_asset_value(asset, date(2030, 1, 1), DepreciationMode.FULL)
        assert result.current_value == Decimal("100000.00")
        assert result.last_depreciation_date == date(2030, 1, 1)

    def test_full_starts_from_initial_not_current(self):
        """Test that full mode ignores previous incremental results."""
        asset = make_asset(
            current_value=Decimal("90000"),
            last_depreciation_date=date(2023, 1, 1),
        )
        result = recalculate_asset_value(asset, date(2024, 1, 1), DepreciationMode.FULL)
        assert result.current_value == Decimal("81000.00")

    def test_incremental_zero_rate_untouched(self):
        """Test that rate 0 leaves the asset alone in incremental mode."""
        asset = make_asset(depreciation_rate=Decimal("0"))
        result = recalculate_value(
            initial_value=asset.initial_value,
            purchase_date=asset.purchase_date,
            current_value=asset.current_value,
            last_depreciation_date=None,
            depreciation_rate=asset.depreciation_rate,
            as_of=date(2030, 1, 1),
            mode=DepreciationMode.INCREMENTAL,
        )
        assert not result.changed
        assert result.current_value == Decimal("100000.00")
        assert result.last_depreciation_date is None

    def test_incremental_uses_current_value_and_anchor(self):
        """Test that incremental decays the current value since the anchor."""
        asset = make_asset(
            current_value=Decimal("90000"),
            last_depreciation_date=date(2023, 1, 1),
        )
        result = recalculate_asset_value(asset, date(2024, 6, 1), DepreciationMode.INCREMENTAL)
        assert result.current_value == Decimal("81000.00")
        assert result.last_depreciation_date == date(2024, 6, 1)

    def test_value_floors_at_zero(self):
        """Test that a 100% rate ends at zero, not below."""
        asset = make_asset(depreciation_rate=Decimal("100"))
        result = recalculate_asset_value(asset, date(2025, 1, 1), DepreciationMode.FULL)
        assert result.current_value == Decimal("0")

    def test_missing_purchase_date_raises(self):
        """Test that a missing purchase date is a data integrity error."""
        with pytest.raises(DataIntegrityError):
            recalculate_value(
                initial_value=Decimal("100"),
                purchase_date=None,
                current_value=Decimal("100"),
                last_depreciation_date=None,
                depreciation_rate=Decimal("10"),
                as_of=date(2024, 1, 1),
                mode=DepreciationMode.FULL,
            )

    def test_unparseable_last_date_raises(self):
        """Test that a garbage anchor date is not replaced by today."""
        with pytest.raises(DataIntegrityError):
            recalculate_value(
                initial_value=Decimal("100"),
                purchase_date=date(2020, 1, 1),
                current_value=Decimal("100"),
                last_depreciation_date="not-a-date",
                depreciation_rate=Decimal("10"),
                as_of=date(2024, 1, 1),
                mode=DepreciationMode.INCREMENTAL,
            )

    @pytest.mark.parametrize("raw", ["2023-01-01garbage", "2023-01-01 junk", "2023-01-0"])
    def test_trailing_junk_purchase_date_raises(self, raw):
        """Test that a date string is parsed whole, not truncated."""
        with pytest.raises(DataIntegrityError):
            recalculate_value(
                initial_value=Decimal("1000"),
                purchase_date=raw,
                current_value=None,
                last_depreciation_date=None,
                depreciation_rate=Decimal("10"),
                as_of=date(2025, 1, 1),
                mode=DepreciationMode.FULL,
            )

    def test_iso_datetime_string_accepted(self):
        """Test that a full ISO timestamp resolves to its date."""
        result = recalculate_value(
            initial_value=Decimal("1000"),
            purchase_date="2023-01-01T09:30:00",
            current_value=None,
            last_depreciation_date=None,
            depreciation_rate=Decimal("10"),
            as_of=date(2025, 1, 1),
            mode=DepreciationMode.FULL,
        )
        assert result.current_value == Decimal("810.00")

    def test_iso_string_dates_accepted(self):
        """Test that ISO date strings from storage are understood."""
        result = recalculate_value(
            initial_value=Decimal("1000"),
            purchase_date="2020-05-01",
            current_value=Decimal("1000"),
            last_depreciation_date="2023-05-01",
            depreciation_rate=Decimal("50"),
            as_of=date(2024, 5, 1),
            mode=DepreciationMode.INCREMENTAL,
        )
        assert result.current_value == Decimal("500.00")


class TestDepreciationService:
    """Tests for depreciation applied on read and on edit."""

    def test_apply_on_read_persists(self):
        """Test that a read with elapsed years writes the new value."""
        service, storage, audit_storage = make_service()
        asset = make_asset()
        asyncio.run(storage.save_asset(asset))

        shown = asyncio.run(service.apply_on_read(asset, date(2024, 1, 1)))
        stored = asyncio.run(storage.get_asset(asset.id))

        assert shown.current_value == Decimal("81000.00")
        assert stored.current_value == Decimal("81000.00")
        assert stored.last_depreciation_date == date(2024, 1, 1)
        assert any(
            e.event_type == AuditEventType.ASSET_DEPRECIATED for e in audit_storage.events
        )

    def test_apply_on_read_is_idempotent(self):
        """Test that a second read on the same day changes nothing."""
        service, storage, _ = make_service()
        asset = make_asset()
        asyncio.run(storage.save_asset(asset))

        first = asyncio.run(service.apply_on_read(asset, date(2024, 1, 1)))
        second = asyncio.run(service.apply_on_read(first, date(2024, 1, 1)))

        assert second.current_value == first.current_value
        assert second.last_depreciation_date == first.last_depreciation_date

    def test_value_never_increases(self):
        """Test monotonic decline across successive reads."""
        service, storage, _ = make_service()
        asset = make_asset(depreciation_rate=Decimal("15"))
        asyncio.run(storage.save_asset(asset))

        values = []
        current = asset
        for year in range(2022, 2028):
            current = asyncio.run(service.apply_on_read(current, date(year, 6, 1)))
            values.append(current.current_value)

        assert values == sorted(values, reverse=True)

    def test_less_than_a_year_does_not_write(self):
        """Test that a read within the first year leaves storage alone."""
        service, storage, _ = make_service()
        asset = make_asset()
        asyncio.run(storage.save_asset(asset))

        asyncio.run(service.apply_on_read(asset, date(2022, 11, 30)))
        stored = asyncio.run(storage.get_asset(asset.id))

        assert stored.current_value == Decimal("100000.00")
        assert stored.last_depreciation_date is None

    def test_concurrent_read_applies_once(self):
        """Test that a stale reader gets the stored value instead of decaying twice."""
        service, storage, audit_storage = make_service()
        asset = make_asset()
        asyncio.run(storage.save_asset(asset))
        stale = asyncio.run(storage.get_asset(asset.id))

        asyncio.run(service.apply_on_read(asset, date(2023, 1, 1)))
        result = asyncio.run(service.apply_on_read(stale, date(2023, 1, 1)))
        stored = asyncio.run(storage.get_asset(asset.id))

        assert result.current_value == Decimal("90000.00")
        assert stored.current_value == Decimal("90000.00")
        assert any(
            e.event_type == AuditEventType.DEPRECIATION_CONFLICT for e in audit_storage.events
        )

    def test_corrupt_date_is_logged_and_raised(self):
        """Test that a corrupt asset raises and leaves an audit trail."""
        service, storage, audit_storage = make_service()
        asset = make_asset().model_copy(update={"purchase_date": None})

        with pytest.raises(DataIntegrityError):
            asyncio.run(service.apply_on_read(asset, date(2024, 1, 1)))

        assert any(
            e.event_type == AuditEventType.DATA_INTEGRITY_ERROR for e in audit_storage.events
        )

    def test_apply_full_resets_anchor(self):
        """Test that an explicit recalculation stores value and date."""
        service, storage, _ = make_service()
        asset = make_asset(
            current_value=Decimal("50000"),
            last_depreciation_date=date(2023, 6, 1),
        )
        asyncio.run(storage.save_asset(asset))

        updated = asyncio.run(service.apply_full(asset, date(2024, 1, 1)))
        stored = asyncio.run(storage.get_asset(asset.id))

        assert updated.current_value == Decimal("81000.00")
        assert stored.current_value == Decimal("81000.00")
        assert stored.last_depreciation_date == date(2024, 1, 1)
