"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Households can view their shared ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a family or flat share)
- No transactions: a settlement pair is written with ONE append_rows
  request, and any rows left behind by a failed request are removed again
  (compensating rollback)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import get_settings
from src.errors import DataIntegrityError
from src.models.finance import (
    Asset,
    AssetType,
    Budget,
    Group,
    GroupType,
    Profile,
    RecurringFrequency,
    Transaction,
    TransactionKind,
)
from src.models.audit import AuditEvent
from src.services.storage.interface import (
    AssetStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    GroupStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


GROUP_COLUMNS = [
    "id",
    "name",
    "group_type",
    "created_at",
    "profiles_json",
]

TRANSACTION_COLUMNS = [
    "id",
    "profile_id",
    "group_id",
    "asset_id",
    "amount",
    "transaction_date",
    "description",
    "category",
    "kind",
    "is_recurring",
    "recurring_frequency",
    "recurring_day_of_month",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "profile_id",
    "group_id",
    "category",
    "amount",
    "created_at",
]

ASSET_COLUMNS = [
    "id",
    "profile_id",
    "group_id",
    "name",
    "asset_type",
    "initial_value",
    "current_value",
    "purchase_date",
    "depreciation_rate",
    "last_depreciation_date",
    "created_at",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "group_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle missing trailing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _parse_date(raw: str, field: str, required: bool = True) -> Optional[date]:
    """Parse an ISO date cell, raising DataIntegrityError instead of guessing."""
    if not raw:
        if required:
            raise DataIntegrityError(f"Missing {field}")
        return None
    try:
        return datetime.fromisoformat(raw.strip()).date()
    except ValueError:
        raise DataIntegrityError(f"Unparseable {field}: {raw!r}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_groups_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=5000,
        )

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def get_assets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.assets_sheet_name, ASSET_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _delete_matching_rows(sheet: gspread.Worksheet, matches: Callable[[list], bool]) -> int:
    """Delete every data row for which matches(row) is true. Bottom-up keeps indexes valid."""
    all_rows = sheet.get_all_values()
    doomed = [
        idx for idx, row in enumerate(all_rows[1:], start=2)
        if row and matches(row)
    ]
    for idx in reversed(doomed):
        sheet.delete_rows(idx)
    return len(doomed)


class GoogleSheetsLedgerStorage(
    GroupStorageInterface,
    TransactionStorageInterface,
    BudgetStorageInterface,
    AssetStorageInterface,
):
    """
    Google Sheets implementation of the record storage.

    One worksheet per record type, one record per row.
    Group profiles are JSON-serialized into a single column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _group_to_row(self, group: Group) -> list:
        return [
            str(group.id),
            group.name,
            group.group_type.value,
            group.created_at.isoformat(),
            json.dumps([p.model_dump(mode="json") for p in group.profiles]),
        ]

    def _row_to_group(self, row: list) -> Group:
        profiles_json = _safe_get(row, 4, "[]")
        if not json.loads(profiles_json):
            raise NotFoundError(f"Group {_safe_get(row, 0)} not found or has no members")
        return Group(
            id=UUID(_safe_get(row, 0)),
            name=_safe_get(row, 1),
            group_type=GroupType(_safe_get(row, 2, GroupType.OTHER.value)),
            created_at=datetime.fromisoformat(_safe_get(row, 3)),
            profiles=[Profile(**p) for p in json.loads(profiles_json)],
        )

    def _transaction_to_row(self, t: Transaction) -> list:
        return [
            str(t.id),
            str(t.profile_id),
            str(t.group_id),
            str(t.asset_id) if t.asset_id else "",
            str(t.amount),
            t.transaction_date.isoformat(),
            t.description,
            t.category,
            t.kind.value,
            str(t.is_recurring),
            t.recurring_frequency.value if t.recurring_frequency else "",
            str(t.recurring_day_of_month) if t.recurring_day_of_month else "",
            t.created_at.isoformat(),
            t.updated_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        kind_raw = _safe_get(row, 8)
        try:
            kind = TransactionKind(kind_raw)
        except ValueError:
            raise DataIntegrityError(
                f"Transaction {_safe_get(row, 0)} has unknown kind {kind_raw!r}"
            )

        return Transaction(
            id=UUID(_safe_get(row, 0)),
            profile_id=UUID(_safe_get(row, 1)),
            group_id=UUID(_safe_get(row, 2)),
            asset_id=UUID(_safe_get(row, 3)) if _safe_get(row, 3) else None,
            amount=Decimal(_safe_get(row, 4)),
            transaction_date=_parse_date(_safe_get(row, 5), "transaction_date"),
            description=_safe_get(row, 6),
            category=_safe_get(row, 7),
            kind=kind,
            is_recurring=_safe_get(row, 9).lower() == "true",
            recurring_frequency=(
                RecurringFrequency(_safe_get(row, 10)) if _safe_get(row, 10) else None
            ),
            recurring_day_of_month=int(_safe_get(row, 11)) if _safe_get(row, 11) else None,
            created_at=datetime.fromisoformat(_safe_get(row, 12)),
            updated_at=datetime.fromisoformat(_safe_get(row, 13)),
        )

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            str(budget.id),
            str(budget.profile_id),
            str(budget.group_id),
            budget.category,
            str(budget.amount),
            budget.created_at.isoformat(),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        return Budget(
            id=UUID(_safe_get(row, 0)),
            profile_id=UUID(_safe_get(row, 1)),
            group_id=UUID(_safe_get(row, 2)),
            category=_safe_get(row, 3),
            amount=Decimal(_safe_get(row, 4)),
            created_at=datetime.fromisoformat(_safe_get(row, 5)),
        )

    def _asset_to_row(self, asset: Asset) -> list:
        return [
            str(asset.id),
            str(asset.profile_id),
            str(asset.group_id),
            asset.name,
            asset.asset_type.value,
            str(asset.initial_value),
            str(asset.current_value),
            asset.purchase_date.isoformat(),
            str(asset.depreciation_rate),
            asset.last_depreciation_date.isoformat() if asset.last_depreciation_date else "",
            asset.created_at.isoformat(),
            asset.updated_at.isoformat(),
        ]

    def _row_to_asset(self, row: list) -> Asset:
        return Asset(
            id=UUID(_safe_get(row, 0)),
            profile_id=UUID(_safe_get(row, 1)),
            group_id=UUID(_safe_get(row, 2)),
            name=_safe_get(row, 3),
            asset_type=AssetType(_safe_get(row, 4)),
            initial_value=Decimal(_safe_get(row, 5)),
            current_value=Decimal(_safe_get(row, 6)),
            purchase_date=_parse_date(_safe_get(row, 7), "purchase_date"),
            depreciation_rate=Decimal(_safe_get(row, 8, "0")),
            last_depreciation_date=_parse_date(
                _safe_get(row, 9), "last_depreciation_date", required=False
            ),
            created_at=datetime.fromisoformat(_safe_get(row, 10)),
            updated_at=datetime.fromisoformat(_safe_get(row, 11)),
        )

    def _find_row(self, sheet: gspread.Worksheet, record_id: UUID) -> tuple[Optional[int], list]:
        """Return (sheet row index, row) for a record id, or (None, [])."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == str(record_id):
                return idx, row
        return None, []

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def save_group(self, group: Group) -> bool:
        try:
            sheet = self._client.get_groups_sheet()
            idx, _ = self._find_row(sheet, group.id)
            row = self._group_to_row(group)
            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(range_name=f"A{idx}", values=[row], value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save group: {e}")

    async def get_group(self, group_id: UUID) -> Optional[Group]:
        try:
            sheet = self._client.get_groups_sheet()
            _, row = self._find_row(sheet, group_id)
        except Exception as e:
            raise StorageError(f"Failed to get group: {e}")
        return self._row_to_group(row) if row else None

    async def delete_group(self, group_id: UUID) -> bool:
        try:
            sheet = self._client.get_groups_sheet()
            return _delete_matching_rows(sheet, lambda row: row[0] == str(group_id)) > 0
        except Exception as e:
            raise StorageError(f"Failed to delete group: {e}")

    async def list_groups(self) -> list[Group]:
        try:
            all_rows = self._client.get_groups_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list groups: {e}")
        # Rows without members are not groups; get_group reports them as not found
        return [
            self._row_to_group(row)
            for row in all_rows
            if row and row[0] and json.loads(_safe_get(row, 4, "[]"))
        ]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def save_transaction(self, transaction: Transaction) -> bool:
        return await self.save_transactions_atomic([transaction])

    async def save_transactions_atomic(self, transactions: list[Transaction]) -> bool:
        """
        Append all rows in a single request.

        A single values.append call either lands or fails as a whole. If
        the request errors after a partial write (e.g. a timeout on the
        response), the rows carrying our ids are deleted again before the
        error is raised.
        """
        ids = {str(t.id) for t in transactions}
        try:
            sheet = self._client.get_transactions_sheet()
        except Exception as e:
            raise StorageError(f"Failed to open transactions sheet: {e}")

        try:
            existing = {row[0] for row in sheet.get_all_values()[1:] if row}
            if ids & existing:
                raise DuplicateError(f"Transactions already exist: {sorted(ids & existing)}")
            rows = [self._transaction_to_row(t) for t in transactions]
            sheet.append_rows(rows, value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            try:
                _delete_matching_rows(sheet, lambda row: row[0] in ids)
            except Exception as cleanup_error:
                raise StorageError(
                    f"Failed to save transactions ({e}) and rollback failed: {cleanup_error}"
                )
            raise StorageError(f"Failed to save transactions: {e}")

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            _, row = self._find_row(sheet, transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")
        return self._row_to_transaction(row) if row else None

    async def update_transaction(self, transaction: Transaction) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx, _ = self._find_row(sheet, transaction.id)
            if idx is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            transaction.updated_at = datetime.utcnow()
            sheet.update(
                range_name=f"A{idx}",
                values=[self._transaction_to_row(transaction)],
                value_input_option="RAW",
            )
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            return _delete_matching_rows(sheet, lambda row: row[0] == str(transaction_id)) > 0
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
        kinds: Optional[set[TransactionKind]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        try:
            all_rows = self._client.get_transactions_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        results = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            if _safe_get(row, 2) != str(group_id):
                continue
            # Malformed rows raise DataIntegrityError: balances must not skip data
            t = self._row_to_transaction(row)
            if profile_id and t.profile_id != profile_id:
                continue
            if kinds and t.kind not in kinds:
                continue
            if date_from and t.transaction_date < date_from:
                continue
            if date_to and t.transaction_date > date_to:
                continue
            results.append(t)

        results.sort(key=lambda t: (t.transaction_date, t.created_at), reverse=True)
        return results

    async def delete_transactions_for_profile(self, profile_id: UUID) -> int:
        try:
            sheet = self._client.get_transactions_sheet()
            return _delete_matching_rows(sheet, lambda row: _safe_get(row, 1) == str(profile_id))
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")

    async def delete_transactions_for_group(self, group_id: UUID) -> int:
        try:
            sheet = self._client.get_transactions_sheet()
            return _delete_matching_rows(sheet, lambda row: _safe_get(row, 2) == str(group_id))
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    async def replace_budgets(
        self,
        profile_id: UUID,
        budgets: list[Budget],
    ) -> list[Budget]:
        try:
            sheet = self._client.get_budgets_sheet()
            _delete_matching_rows(sheet, lambda row: _safe_get(row, 1) == str(profile_id))
            if budgets:
                sheet.append_rows(
                    [self._budget_to_row(b) for b in budgets],
                    value_input_option="RAW",
                )
            return budgets
        except Exception as e:
            raise StorageError(f"Failed to replace budgets: {e}")

    async def list_budgets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> list[Budget]:
        try:
            all_rows = self._client.get_budgets_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")

        return [
            self._row_to_budget(row)
            for row in all_rows
            if row and row[0]
            and _safe_get(row, 2) == str(group_id)
            and (profile_id is None or _safe_get(row, 1) == str(profile_id))
        ]

    async def delete_budgets_for_profile(self, profile_id: UUID) -> int:
        try:
            sheet = self._client.get_budgets_sheet()
            return _delete_matching_rows(sheet, lambda row: _safe_get(row, 1) == str(profile_id))
        except Exception as e:
            raise StorageError(f"Failed to delete budgets: {e}")

    async def delete_budgets_for_group(self, group_id: UUID) -> int:
        try:
            sheet = self._client.get_budgets_sheet()
            return _delete_matching_rows(sheet, lambda row: _safe_get(row, 2) == str(group_id))
        except Exception as e:
            raise StorageError(f"Failed to delete budgets: {e}")

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    async def save_asset(self, asset: Asset) -> bool:
        try:
            sheet = self._client.get_assets_sheet()
            idx, _ = self._find_row(sheet, asset.id)
            if idx is not None:
                raise DuplicateError(f"Asset already exists: {asset.id}")
            sheet.append_row(self._asset_to_row(asset), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save asset: {e}")

    async def get_asset(self, asset_id: UUID) -> Optional[Asset]:
        try:
            sheet = self._client.get_assets_sheet()
            _, row = self._find_row(sheet, asset_id)
        except Exception as e:
            raise StorageError(f"Failed to get asset: {e}")
        return self._row_to_asset(row) if row else None

    async def update_asset(self, asset: Asset) -> bool:
        try:
            sheet = self._client.get_assets_sheet()
            idx, _ = self._find_row(sheet, asset.id)
            if idx is None:
                raise NotFoundError(f"Asset not found: {asset.id}")
            asset.updated_at = datetime.utcnow()
            sheet.update(
                range_name=f"A{idx}",
                values=[self._asset_to_row(asset)],
                value_input_option="RAW",
            )
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update asset: {e}")

    async def update_asset_depreciation(
        self,
        asset_id: UUID,
        current_value: Decimal,
        last_depreciation_date: date,
        expected_last_depreciation_date: Optional[date],
    ) -> bool:
        """
        Write a depreciation result if the stored anchor is unchanged.

        Sheets has no compare-and-set: the row is read, compared, then
        written in separate requests. Two processes racing inside that
        window can both pass the check, so on this backend the guard is
        best-effort.
        """
        try:
            sheet = self._client.get_assets_sheet()
            idx, row = self._find_row(sheet, asset_id)
        except Exception as e:
            raise StorageError(f"Failed to read asset: {e}")
        if idx is None:
            raise NotFoundError(f"Asset not found: {asset_id}")

        stored = self._row_to_asset(row)
        if stored.last_depreciation_date != expected_last_depreciation_date:
            return False

        stored.current_value = current_value
        stored.last_depreciation_date = last_depreciation_date
        stored.updated_at = datetime.utcnow()
        try:
            sheet.update(
                range_name=f"A{idx}",
                values=[self._asset_to_row(stored)],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to update asset depreciation: {e}")
        return True

    async def delete_asset(self, asset_id: UUID) -> bool:
        try:
            sheet = self._client.get_assets_sheet()
            return _delete_matching_rows(sheet, lambda row: row[0] == str(asset_id)) > 0
        except Exception as e:
            raise StorageError(f"Failed to delete asset: {e}")

    async def list_assets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> list[Asset]:
        try:
            all_rows = self._client.get_assets_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list assets: {e}")

        return [
            self._row_to_asset(row)
            for row in all_rows
            if row and row[0]
            and _safe_get(row, 2) == str(group_id)
            and (profile_id is None or _safe_get(row, 1) == str(profile_id))
        ]

    async def delete_assets_for_group(self, group_id: UUID) -> int:
        try:
            sheet = self._client.get_assets_sheet()
            return _delete_matching_rows(sheet, lambda row: _safe_get(row, 2) == str(group_id))
        except Exception as e:
            raise StorageError(f"Failed to delete assets: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")
