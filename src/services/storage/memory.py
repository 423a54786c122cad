"""
In-Memory Storage Implementation

Used as the default backend for local development and for all tests.
One InMemoryStorage instance implements every record interface so the
flows can share a single object.

Atomicity: every mutating call runs under one asyncio.Lock, and
multi-record writes are staged into a copy that replaces the live
table only once every record was accepted. Readers therefore see
either none or all of a settlement pair.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.models.finance import Asset, Budget, Group, Transaction, TransactionKind
from src.models.audit import AuditEvent
from src.services.storage.interface import (
    AssetStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    DuplicateError,
    GroupStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


class InMemoryStorage(
    GroupStorageInterface,
    TransactionStorageInterface,
    BudgetStorageInterface,
    AssetStorageInterface,
):
    """Dict-backed storage for groups, transactions, budgets and assets."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._groups: dict[UUID, Group] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._budgets: dict[UUID, Budget] = {}
        self._assets: dict[UUID, Asset] = {}

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def save_group(self, group: Group) -> bool:
        async with self._lock:
            self._groups[group.id] = group.model_copy(deep=True)
        return True

    async def get_group(self, group_id: UUID) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def delete_group(self, group_id: UUID) -> bool:
        async with self._lock:
            return self._groups.pop(group_id, None) is not None

    async def list_groups(self) -> list[Group]:
        groups = sorted(self._groups.values(), key=lambda g: g.created_at)
        return [g.model_copy(deep=True) for g in groups]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _insert_transaction(
        self,
        target: dict[UUID, Transaction],
        transaction: Transaction,
    ) -> None:
        """Place one transaction into a (possibly staged) table."""
        if transaction.id in target:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        target[transaction.id] = transaction.model_copy(deep=True)

    async def save_transaction(self, transaction: Transaction) -> bool:
        async with self._lock:
            self._insert_transaction(self._transactions, transaction)
        return True

    async def save_transactions_atomic(self, transactions: list[Transaction]) -> bool:
        async with self._lock:
            staged = dict(self._transactions)
            try:
                for transaction in transactions:
                    self._insert_transaction(staged, transaction)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save transactions: {e}")
            # Commit point: swap in the staged table
            self._transactions = staged
        return True

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        transaction = self._transactions.get(transaction_id)
        return transaction.model_copy(deep=True) if transaction else None

    async def update_transaction(self, transaction: Transaction) -> bool:
        async with self._lock:
            if transaction.id not in self._transactions:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            updated = transaction.model_copy(deep=True)
            updated.updated_at = datetime.utcnow()
            self._transactions[transaction.id] = updated
        return True

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        async with self._lock:
            return self._transactions.pop(transaction_id, None) is not None

    async def list_transactions(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
        kinds: Optional[set[TransactionKind]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        results = []
        for t in self._transactions.values():
            if t.group_id != group_id:
                continue
            if profile_id and t.profile_id != profile_id:
                continue
            if kinds and t.kind not in kinds:
                continue
            if date_from and t.transaction_date < date_from:
                continue
            if date_to and t.transaction_date > date_to:
                continue
            results.append(t.model_copy(deep=True))

        results.sort(key=lambda t: (t.transaction_date, t.created_at), reverse=True)
        return results

    async def delete_transactions_for_profile(self, profile_id: UUID) -> int:
        async with self._lock:
            doomed = [tid for tid, t in self._transactions.items() if t.profile_id == profile_id]
            for tid in doomed:
                del self._transactions[tid]
        return len(doomed)

    async def delete_transactions_for_group(self, group_id: UUID) -> int:
        async with self._lock:
            doomed = [tid for tid, t in self._transactions.items() if t.group_id == group_id]
            for tid in doomed:
                del self._transactions[tid]
        return len(doomed)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    async def replace_budgets(
        self,
        profile_id: UUID,
        budgets: list[Budget],
    ) -> list[Budget]:
        async with self._lock:
            staged = {
                bid: b for bid, b in self._budgets.items() if b.profile_id != profile_id
            }
            for budget in budgets:
                staged[budget.id] = budget.model_copy(deep=True)
            self._budgets = staged
        return [b.model_copy(deep=True) for b in budgets]

    async def list_budgets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> list[Budget]:
        return [
            b.model_copy(deep=True)
            for b in self._budgets.values()
            if b.group_id == group_id and (profile_id is None or b.profile_id == profile_id)
        ]

    async def delete_budgets_for_profile(self, profile_id: UUID) -> int:
        async with self._lock:
            doomed = [bid for bid, b in self._budgets.items() if b.profile_id == profile_id]
            for bid in doomed:
                del self._budgets[bid]
        return len(doomed)

    async def delete_budgets_for_group(self, group_id: UUID) -> int:
        async with self._lock:
            doomed = [bid for bid, b in self._budgets.items() if b.group_id == group_id]
            for bid in doomed:
                del self._budgets[bid]
        return len(doomed)

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    async def save_asset(self, asset: Asset) -> bool:
        async with self._lock:
            if asset.id in self._assets:
                raise DuplicateError(f"Asset already exists: {asset.id}")
            self._assets[asset.id] = asset.model_copy(deep=True)
        return True

    async def get_asset(self, asset_id: UUID) -> Optional[Asset]:
        asset = self._assets.get(asset_id)
        return asset.model_copy(deep=True) if asset else None

    async def update_asset(self, asset: Asset) -> bool:
        async with self._lock:
            if asset.id not in self._assets:
                raise NotFoundError(f"Asset not found: {asset.id}")
            updated = asset.model_copy(deep=True)
            updated.updated_at = datetime.utcnow()
            self._assets[asset.id] = updated
        return True

    async def update_asset_depreciation(
        self,
        asset_id: UUID,
        current_value: Decimal,
        last_depreciation_date: date,
        expected_last_depreciation_date: Optional[date],
    ) -> bool:
        async with self._lock:
            stored = self._assets.get(asset_id)
            if stored is None:
                raise NotFoundError(f"Asset not found: {asset_id}")
            if stored.last_depreciation_date != expected_last_depreciation_date:
                return False
            self._assets[asset_id] = stored.model_copy(update={
                "current_value": current_value,
                "last_depreciation_date": last_depreciation_date,
                "updated_at": datetime.utcnow(),
            })
        return True

    async def delete_asset(self, asset_id: UUID) -> bool:
        async with self._lock:
            return self._assets.pop(asset_id, None) is not None

    async def list_assets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> list[Asset]:
        assets = [
            a for a in self._assets.values()
            if a.group_id == group_id and (profile_id is None or a.profile_id == profile_id)
        ]
        assets.sort(key=lambda a: a.created_at)
        return [a.model_copy(deep=True) for a in assets]

    async def delete_assets_for_group(self, group_id: UUID) -> int:
        async with self._lock:
            doomed = [aid for aid, a in self._assets.items() if a.group_id == group_id]
            for aid in doomed:
                del self._assets[aid]
        return len(doomed)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-memory audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True
