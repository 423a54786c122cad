"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend is the default; Google Sheets is the persistent one.
Both implement the same interfaces, so flows never know which is in use.
"""

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
from src.services.storage.memory import InMemoryAuditStorage, InMemoryStorage
from src.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AssetStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "GroupStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
