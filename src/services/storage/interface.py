"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the settlement and depreciation logic decoupled from storage

The interface is intentionally small - we're not building a full ORM.
Two operations carry concurrency guarantees the core relies on:
- save_transactions_atomic: all-or-nothing multi-record write
- update_asset_depreciation: conditional write keyed on the prior
  last_depreciation_date (optimistic concurrency)
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.errors import BudgetCoreError, NotFoundError
from src.models.finance import (
    Asset,
    Budget,
    Group,
    Transaction,
    TransactionKind,
)
from src.models.audit import AuditEvent


class GroupStorageInterface(ABC):
    """Storage for groups and their embedded profiles."""

    @abstractmethod
    async def save_group(self, group: Group) -> bool:
        """
        Insert or replace a group (profiles included).

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_group(self, group_id: UUID) -> Optional[Group]:
        """Retrieve a group by id, None if missing."""
        pass

    @abstractmethod
    async def delete_group(self, group_id: UUID) -> bool:
        """Delete a group. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_groups(self) -> list[Group]:
        """List all groups."""
        pass


class TransactionStorageInterface(ABC):
    """
    Storage for transactions.

    Settlement pairs MUST go through save_transactions_atomic.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """Save a single transaction."""
        pass

    @abstractmethod
    async def save_transactions_atomic(self, transactions: list[Transaction]) -> bool:
        """
        Save several transactions as one unit.

        Either every transaction is stored or none is. A concurrent
        list_transactions never observes a partial set.

        Raises:
            StorageError: If the write fails (nothing is left behind)
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by id, None if missing."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace an existing transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """Delete a transaction. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
        kinds: Optional[set[TransactionKind]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """
        List a group's transactions with optional filters.

        Returns newest first (by date, then creation time).
        """
        pass

    @abstractmethod
    async def delete_transactions_for_profile(self, profile_id: UUID) -> int:
        """Delete every transaction of a profile. Returns the count removed."""
        pass

    @abstractmethod
    async def delete_transactions_for_group(self, group_id: UUID) -> int:
        """Delete every transaction of a group. Returns the count removed."""
        pass


class BudgetStorageInterface(ABC):
    """Storage for per-profile category budgets."""

    @abstractmethod
    async def replace_budgets(
        self,
        profile_id: UUID,
        budgets: list[Budget],
    ) -> list[Budget]:
        """
        Delete all budgets of a profile, then insert the given ones.

        This is a full replace, not a merge.
        """
        pass

    @abstractmethod
    async def list_budgets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> list[Budget]:
        """List budgets of a group, optionally for one profile."""
        pass

    @abstractmethod
    async def delete_budgets_for_profile(self, profile_id: UUID) -> int:
        pass

    @abstractmethod
    async def delete_budgets_for_group(self, group_id: UUID) -> int:
        pass


class AssetStorageInterface(ABC):
    """Storage for depreciable assets."""

    @abstractmethod
    async def save_asset(self, asset: Asset) -> bool:
        """Insert a new asset."""
        pass

    @abstractmethod
    async def get_asset(self, asset_id: UUID) -> Optional[Asset]:
        pass

    @abstractmethod
    async def update_asset(self, asset: Asset) -> bool:
        """
        Replace an existing asset unconditionally.

        Raises:
            NotFoundError: If the asset doesn't exist
        """
        pass

    @abstractmethod
    async def update_asset_depreciation(
        self,
        asset_id: UUID,
        current_value: Decimal,
        last_depreciation_date: date,
        expected_last_depreciation_date: Optional[date],
    ) -> bool:
        """
        Write a new depreciated value only if nobody else did first.

        The write happens only when the stored last_depreciation_date still
        equals expected_last_depreciation_date.

        Returns:
            True if written, False if the guard failed (concurrent update)

        Raises:
            NotFoundError: If the asset doesn't exist
        """
        pass

    @abstractmethod
    async def delete_asset(self, asset_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_assets(
        self,
        group_id: UUID,
        profile_id: Optional[UUID] = None,
    ) -> list[Asset]:
        """List a group's assets, optionally for one profile."""
        pass

    @abstractmethod
    async def delete_assets_for_group(self, group_id: UUID) -> int:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(BudgetCoreError):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


__all__ = [
    "AssetStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GroupStorageInterface",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
