"""Services package."""

from src.services.storage import (
    AssetStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GroupStorageInterface,
    InMemoryAuditStorage,
    InMemoryStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Storage services
    "AssetStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "GroupStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
