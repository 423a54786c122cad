"""
Tests for the storage backends.

The Google Sheets backend runs against an in-process fake worksheet;
no network calls are made.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from src.errors import DataIntegrityError, NotFoundError
from src.models.finance import (
    Asset,
    AssetType,
    Group,
    Profile,
    Transaction,
    TransactionKind,
)
from src.services.storage import (
    DuplicateError,
    GoogleSheetsLedgerStorage,
    InMemoryStorage,
    StorageError,
)
from src.services.storage.google_sheets import (
    ASSET_COLUMNS,
    GROUP_COLUMNS,
    TRANSACTION_COLUMNS,
)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the ledger storage."""

    def __init__(self, columns, fail_after_first_append=False):
        self.rows = [list(columns)]
        self._fail_after_first_append = fail_after_first_append

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            self.rows.append(list(row))
            if self._fail_after_first_append:
                raise RuntimeError("Connection reset")

    def update(self, range_name, values, value_input_option=None):
        index = int(range_name[1:]) - 1
        self.rows[index] = list(values[0])

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self, transactions_sheet=None):
        self.transactions = transactions_sheet or FakeWorksheet(TRANSACTION_COLUMNS)
        self.assets = FakeWorksheet(ASSET_COLUMNS)
        self.groups = FakeWorksheet(GROUP_COLUMNS)

    def get_groups_sheet(self):
        return self.groups

    def get_transactions_sheet(self):
        return self.transactions

    def get_assets_sheet(self):
        return self.assets


def settlement_pair(group_id):
    payer, receiver = uuid4(), uuid4()
    common = dict(
        group_id=group_id,
        amount=Decimal("25"),
        transaction_date=date(2024, 3, 1),
        category="Settlement",
    )
    return [
        Transaction(profile_id=payer, description="Settlement paid to B",
                    kind=TransactionKind.SETTLEMENT_PAID, **common),
        Transaction(profile_id=receiver, description="Settlement received from A",
                    kind=TransactionKind.SETTLEMENT_RECEIVED, **common),
    ]


def make_asset() -> Asset:
    return Asset(
        profile_id=uuid4(),
        group_id=uuid4(),
        name="Car",
        asset_type=AssetType.VEHICLE,
        initial_value=Decimal("1000"),
        purchase_date=date(2020, 1, 1),
        depreciation_rate=Decimal("10"),
    )


class TestInMemoryStorage:
    """Tests for the default backend."""

    def test_atomic_write_rejects_duplicates_whole(self):
        """Test that a duplicate id aborts the whole batch."""
        storage = InMemoryStorage()
        group_id = uuid4()
        first, second = settlement_pair(group_id)
        asyncio.run(storage.save_transaction(first))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.save_transactions_atomic([second, first]))

        stored = asyncio.run(storage.list_transactions(group_id))
        assert [t.id for t in stored] == [first.id]

    def test_returns_copies(self):
        """Test that callers cannot mutate stored records."""
        storage = InMemoryStorage()
        group = Group(name="Home", profiles=[Profile(name="Asha")])
        asyncio.run(storage.save_group(group))

        loaded = asyncio.run(storage.get_group(group.id))
        loaded.profiles.append(Profile(name="Intruder"))
        assert len(asyncio.run(storage.get_group(group.id)).profiles) == 1

    def test_conditional_depreciation_update(self):
        """Test the optimistic guard on last_depreciation_date."""
        storage = InMemoryStorage()
        asset = make_asset()
        asyncio.run(storage.save_asset(asset))

        assert asyncio.run(storage.update_asset_depreciation(
            asset.id, Decimal("900.00"), date(2021, 1, 1), None
        ))
        assert not asyncio.run(storage.update_asset_depreciation(
            asset.id, Decimal("810.00"), date(2022, 1, 1), None
        ))
        assert asyncio.run(storage.get_asset(asset.id)).current_value == Decimal("900.00")


class TestGoogleSheetsLedgerStorage:
    """Tests for the Sheets backend against a fake worksheet."""

    def test_pair_is_written_and_read_back(self):
        """Test that both rows land and parse back."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        group_id = uuid4()
        pair = settlement_pair(group_id)

        asyncio.run(storage.save_transactions_atomic(pair))

        stored = asyncio.run(storage.list_transactions(group_id))
        assert {t.id for t in stored} == {t.id for t in pair}
        assert {t.kind for t in stored} == {
            TransactionKind.SETTLEMENT_PAID,
            TransactionKind.SETTLEMENT_RECEIVED,
        }

    def test_partial_append_is_compensated(self):
        """Test that a failed append leaves no rows behind."""
        client = FakeSheetsClient(FakeWorksheet(TRANSACTION_COLUMNS, fail_after_first_append=True))
        storage = GoogleSheetsLedgerStorage(client)

        with pytest.raises(StorageError):
            asyncio.run(storage.save_transactions_atomic(settlement_pair(uuid4())))

        assert client.transactions.rows == [TRANSACTION_COLUMNS]

    def test_unknown_kind_is_integrity_error(self):
        """Test that a stored kind outside the enum is not skipped."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        group_id = uuid4()
        pair = settlement_pair(group_id)
        asyncio.run(storage.save_transactions_atomic(pair))
        client.transactions.rows[1][8] = "refund"

        with pytest.raises(DataIntegrityError):
            asyncio.run(storage.list_transactions(group_id))

    def test_conditional_depreciation_update(self):
        """Test the optimistic guard on the Sheets backend."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        asset = make_asset()
        client.assets.append_row(storage._asset_to_row(asset))

        assert asyncio.run(storage.update_asset_depreciation(
            asset.id, Decimal("900.00"), date(2021, 1, 1), None
        ))
        assert not asyncio.run(storage.update_asset_depreciation(
            asset.id, Decimal("810.00"), date(2022, 1, 1), None
        ))
        stored = asyncio.run(storage.get_asset(asset.id))
        assert stored.current_value == Decimal("900.00")
        assert stored.last_depreciation_date == date(2021, 1, 1)

    def test_missing_purchase_date_is_integrity_error(self):
        """Test that a blank purchase date cell raises."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        asset = make_asset()
        row = storage._asset_to_row(asset)
        row[7] = ""
        client.assets.append_row(row)

        with pytest.raises(DataIntegrityError):
            asyncio.run(storage.list_assets(asset.group_id))

    def test_group_round_trip(self):
        """Test that a group and its profiles survive the JSON column."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        group = Group(name="Home", profiles=[Profile(name="Asha"), Profile(name="Ben")])

        asyncio.run(storage.save_group(group))

        loaded = asyncio.run(storage.get_group(group.id))
        assert [p.id for p in loaded.profiles] == [p.id for p in group.profiles]

    def test_group_without_members_is_not_found(self):
        """Test that a stored group with no profiles is reported missing."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        group = Group(name="Home", profiles=[Profile(name="Asha")])
        row = storage._group_to_row(group)
        row[4] = "[]"
        client.groups.append_row(row)

        with pytest.raises(NotFoundError):
            asyncio.run(storage.get_group(group.id))

    def test_list_groups_skips_memberless_rows(self):
        """Test that one empty group row does not hide the others."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        good = Group(name="Good", profiles=[Profile(name="Asha")])
        asyncio.run(storage.save_group(good))
        empty = storage._group_to_row(Group(name="Empty", profiles=[Profile(name="Ben")]))
        empty[4] = "[]"
        client.groups.append_row(empty)

        groups = asyncio.run(storage.list_groups())
        assert [g.id for g in groups] == [good.id]

    def test_trailing_junk_date_is_integrity_error(self):
        """Test that a date cell with extra characters is not truncated."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        asset = make_asset()
        row = storage._asset_to_row(asset)
        row[7] = "2020-01-01garbage"
        client.assets.append_row(row)

        with pytest.raises(DataIntegrityError):
            asyncio.run(storage.get_asset(asset.id))
