"""
Main Orchestrator for Group Budget

This module ties together all the components and defines the
end-to-end flows for:
1. Expense split (transactions -> balances -> proposed settlements -> record)
2. Ledger (add / edit / remove / list transactions)
3. Assets (create / list with depreciation on read / edit / remove)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Group and profile ids are always explicit parameters
- Settlement transactions only ever enter storage as a pair
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple, Optional
from uuid import UUID

from pydantic import ValidationError

from src.audit import AuditLogger, create_correlation_id
from src.budgets import BudgetTracker
from src.config import get_settings
from src.depreciation import DepreciationService
from src.errors import InvalidInputError, NotFoundError
from src.groups import GroupManager
from src.models.audit import AuditEventType
from src.models.finance import (
    Asset,
    AssetType,
    Balance,
    ExpenseSplitSummary,
    Group,
    Settlement,
    SettlementRecord,
    Transaction,
    TransactionKind,
    round_money,
)
from src.reports import asset_expense_totals
from src.services.storage import (
    AssetStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GroupStorageInterface,
    InMemoryAuditStorage,
    InMemoryStorage,
    StorageError,
    TransactionStorageInterface,
)
from src.settlement import (
    SettlementRecorder,
    compute_balances,
    fair_share,
    plan_settlements,
    total_expense,
)


async def _get_group(
    storage: GroupStorageInterface,
    group_id: UUID,
    profile_id: Optional[UUID] = None,
) -> Group:
    group = await storage.get_group(group_id)
    if group is None:
        raise NotFoundError(f"Group not found: {group_id}")
    if profile_id is not None and not group.has_profile(profile_id):
        raise NotFoundError(f"Profile {profile_id} is not in group {group_id}")
    return group


class ExpenseSplitFlow:
    """
    Orchestrates the expense split flow.

    Flow:
    1. Balances -> Net position of every member
    2. Plan -> Minimal transfers that clear those positions
    3. Record -> User confirms one transfer, stored as a transaction pair

    Planning never writes. Only record_settlement does.
    """

    def __init__(
        self,
        group_storage: GroupStorageInterface,
        transaction_storage: TransactionStorageInterface,
        recorder: Optional[SettlementRecorder] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._groups = group_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._recorder = recorder or SettlementRecorder(
            group_storage, transaction_storage, self._audit_logger
        )

    async def _load(self, group_id: UUID) -> tuple[Group, list[Transaction]]:
        group = await self._groups.get_group(group_id)
        if group is None or not group.profiles:
            raise NotFoundError(f"Group {group_id} not found or has no members")
        transactions = await self._transactions.list_transactions(group_id)
        return group, transactions

    async def compute_balances(
        self,
        group_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> list[Balance]:
        """Net balance of every member of the group."""
        group, transactions = await self._load(group_id)
        balances = compute_balances(group.profiles, transactions)

        await self._audit_logger.log_balances_computed(
            group_id=group_id,
            total_expense=round_money(total_expense(transactions)),
            profile_count=len(group.profiles),
            correlation_id=correlation_id,
        )
        return balances

    def plan_settlements(self, balances: list[Balance]) -> list[Settlement]:
        return plan_settlements(balances)

    async def get_expense_split(
        self,
        group_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseSplitSummary:
        """
        Everything the expense split view shows.

        Returns totals, balances and the proposed settlements.
        """
        correlation_id = correlation_id or create_correlation_id()
        group, transactions = await self._load(group_id)

        total = total_expense(transactions)
        balances = compute_balances(group.profiles, transactions)
        settlements = plan_settlements(balances)

        await self._audit_logger.log_balances_computed(
            group_id=group_id,
            total_expense=round_money(total),
            profile_count=len(group.profiles),
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_settlements_planned(
            group_id=group_id,
            settlement_count=len(settlements),
            total_amount=sum((s.amount for s in settlements), Decimal("0")),
            correlation_id=correlation_id,
        )

        return ExpenseSplitSummary(
            group_id=group_id,
            total_expense=round_money(total),
            per_person_share=round_money(fair_share(total, len(group.profiles))),
            balances=balances,
            settlements=settlements,
        )

    async def record_settlement(
        self,
        from_profile_id: Any,
        to_profile_id: Any,
        group_id: Any,
        amount: Any,
        on_date: Optional[date] = None,
    ) -> SettlementRecord:
        """Record a confirmed settlement. See SettlementRecorder."""
        return await self._recorder.record_settlement(
            from_profile_id=from_profile_id,
            to_profile_id=to_profile_id,
            group_id=group_id,
            amount=amount,
            on_date=on_date,
            correlation_id=create_correlation_id(),
        )


class LedgerFlow:
    """
    Orchestrates plain income and expense bookkeeping.

    Settlement kinds are refused here: they only enter storage as a pair
    through ExpenseSplitFlow.record_settlement.
    """

    EDITABLE_FIELDS = {
        "amount",
        "transaction_date",
        "description",
        "category",
        "kind",
        "asset_id",
        "is_recurring",
        "recurring_frequency",
        "recurring_day_of_month",
    }

    def __init__(
        self,
        group_storage: GroupStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._groups = group_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """
        Store a new income or expense.

        Raises:
            InvalidInputError: Settlement kinds
            NotFoundError: Unknown group, or profile not in the group
        """
        if transaction.kind.is_settlement:
            raise InvalidInputError("Settlements must be recorded through the settlement flow")
        await _get_group(self._groups, transaction.group_id, transaction.profile_id)

        try:
            await self._transactions.save_transaction(transaction)
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="storage",
                error_message=str(e),
                details={"transaction_id": str(transaction.id)},
            )
            raise
        await self._audit_logger.log_transaction_changed(
            event_type=AuditEventType.TRANSACTION_CREATED,
            transaction_id=transaction.id,
            group_id=transaction.group_id,
            kind=transaction.kind.value,
            amount=str(transaction.amount),
        )
        return transaction

    async def update_transaction(
        self,
        transaction_id: UUID,
        **changes: Any,
    ) -> Transaction:
        """
        Apply field edits to a transaction.

        Nothing else is recalculated: balances and budgets are always
        derived on the next read.
        """
        existing = await self._transactions.get_transaction(transaction_id)
        if existing is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        unknown = set(changes) - self.EDITABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        try:
            updated = Transaction.model_validate({**existing.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidInputError(f"Invalid transaction: {e}")

        if updated.kind.is_settlement != existing.kind.is_settlement:
            raise InvalidInputError("A transaction cannot change to or from a settlement kind")

        await self._transactions.update_transaction(updated)
        await self._audit_logger.log_transaction_changed(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            transaction_id=updated.id,
            group_id=updated.group_id,
            kind=updated.kind.value,
            amount=str(updated.amount),
        )
        return updated

    async def delete_transaction(self, transaction_id: UUID) -> None:
        existing = await self._transactions.get_transaction(transaction_id)
        if existing is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        await self._transactions.delete_transaction(transaction_id)
        await self._audit_logger.log_transaction_changed(
            event_type=AuditEventType.TRANSACTION_DELETED,
            transaction_id=existing.id,
            group_id=existing.group_id,
            kind=existing.kind.value,
            amount=str(existing.amount),
        )

    async def list_transactions(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
        kinds: Optional[set[TransactionKind]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """Individual view with profile_id, group view without. Newest first."""
        await _get_group(self._groups, group_id, profile_id)
        return await self._transactions.list_transactions(
            group_id,
            profile_id=profile_id,
            kinds=kinds,
            date_from=date_from,
            date_to=date_to,
        )


class AssetFlow:
    """
    Orchestrates the asset flow.

    Reading assets applies incremental depreciation first, so every list
    shows values as of today. Editing an asset recalculates from scratch.
    """

    EDITABLE_FIELDS = {
        "name",
        "asset_type",
        "initial_value",
        "purchase_date",
        "depreciation_rate",
    }

    def __init__(
        self,
        group_storage: GroupStorageInterface,
        asset_storage: AssetStorageInterface,
        transaction_storage: TransactionStorageInterface,
        depreciation: Optional[DepreciationService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._groups = group_storage
        self._assets = asset_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._depreciation = depreciation or DepreciationService(
            asset_storage, self._audit_logger
        )

    async def create_asset(
        self,
        group_id: UUID,
        profile_id: UUID,
        name: str,
        asset_type: AssetType,
        initial_value: Any,
        purchase_date: date,
        depreciation_rate: Any = 0,
    ) -> Asset:
        """Store a new asset; its current value starts at the initial value."""
        await _get_group(self._groups, group_id, profile_id)
        try:
            asset = Asset(
                group_id=group_id,
                profile_id=profile_id,
                name=name,
                asset_type=asset_type,
                initial_value=initial_value,
                purchase_date=purchase_date,
                depreciation_rate=depreciation_rate,
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid asset: {e}")

        try:
            await self._assets.save_asset(asset)
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="storage",
                error_message=str(e),
                details={"asset_id": str(asset.id)},
            )
            raise
        await self._audit_logger.log_asset_changed(
            event_type=AuditEventType.ASSET_CREATED,
            asset_id=asset.id,
            group_id=group_id,
            name=asset.name,
            current_value=str(asset.current_value),
        )
        return asset

    async def list_assets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
        as_of: Optional[date] = None,
    ) -> list[Asset]:
        """
        List assets with depreciation applied up to as_of.

        CRITICAL: This read may write. See DepreciationService.apply_on_read.
        """
        await _get_group(self._groups, group_id, profile_id)
        correlation_id = create_correlation_id()
        as_of = as_of or date.today()

        assets = await self._assets.list_assets(group_id, profile_id)
        return [
            await self._depreciation.apply_on_read(asset, as_of, correlation_id)
            for asset in assets
        ]

    async def update_asset(
        self,
        asset_id: UUID,
        as_of: Optional[date] = None,
        **changes: Any,
    ) -> Asset:
        """Apply edits, then recalculate the value from the initial value."""
        existing = await self._assets.get_asset(asset_id)
        if existing is None:
            raise NotFoundError(f"Asset not found: {asset_id}")

        unknown = set(changes) - self.EDITABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        try:
            edited = Asset.model_validate({**existing.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidInputError(f"Invalid asset: {e}")

        return await self._depreciation.apply_full(
            edited, as_of or date.today(), create_correlation_id()
        )

    async def delete_asset(self, asset_id: UUID) -> None:
        """Remove an asset and unlink the transactions pointing at it."""
        existing = await self._assets.get_asset(asset_id)
        if existing is None:
            raise NotFoundError(f"Asset not found: {asset_id}")

        linked = await self._transactions.list_transactions(existing.group_id)
        for t in linked:
            if t.asset_id == asset_id:
                await self._transactions.update_transaction(
                    t.model_copy(update={"asset_id": None})
                )

        await self._assets.delete_asset(asset_id)
        await self._audit_logger.log_asset_changed(
            event_type=AuditEventType.ASSET_DELETED,
            asset_id=existing.id,
            group_id=existing.group_id,
            name=existing.name,
            current_value=str(existing.current_value),
        )

    async def asset_expense_totals(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> dict[UUID, Decimal]:
        """Total of expenses linked to each asset in scope."""
        await _get_group(self._groups, group_id, profile_id)
        assets = await self._assets.list_assets(group_id, profile_id)
        expenses = await self._transactions.list_transactions(
            group_id, kinds={TransactionKind.EXPENSE}
        )
        return asset_expense_totals(assets, expenses)


class AppComponents(NamedTuple):
    groups: GroupManager
    ledger: LedgerFlow
    expense_split: ExpenseSplitFlow
    budgets: BudgetTracker
    assets: AssetFlow
    sheets_client: Optional[GoogleSheetsClient]


def create_app_components(
    storage_backend: Optional[str] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage_backend: "memory" or "google_sheets".
                        Defaults to the configured backend.

    Returns:
        AppComponents sharing one storage and one audit logger
    """
    backend = storage_backend or get_settings().app.storage_backend
    sheets_client = None

    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        storage = GoogleSheetsLedgerStorage(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    elif backend == "memory":
        storage = InMemoryStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        raise InvalidInputError(f"Unknown storage backend: {backend}")

    return AppComponents(
        groups=GroupManager(storage, storage, storage, storage, audit_logger),
        ledger=LedgerFlow(storage, storage, audit_logger),
        expense_split=ExpenseSplitFlow(storage, storage, audit_logger=audit_logger),
        budgets=BudgetTracker(storage, storage, storage, audit_logger),
        assets=AssetFlow(storage, storage, storage, audit_logger=audit_logger),
        sheets_client=sheets_client,
    )
