"""
Error Taxonomy

Every failure the core reports is one of these. Callers (HTTP handlers)
map them to responses:

- NotFoundError          -> 404, never retried
- InvalidInputError      -> 400, never retried
- DataIntegrityError     -> 500, logged, never auto-corrected
- TransactionFailedError -> 500, caller may retry the whole operation

Storage-specific errors live in src.services.storage.interface and also
derive from BudgetCoreError.
"""

from typing import Optional


class BudgetCoreError(Exception):
    """Base exception for the budget core."""
    pass


class NotFoundError(BudgetCoreError):
    """Referenced group, profile, asset or record does not exist."""
    pass


class InvalidInputError(BudgetCoreError):
    """Request data failed validation before anything was written."""

    def __init__(self, message: str, issues: Optional[list] = None):
        self.issues = issues or []
        super().__init__(message)


class DataIntegrityError(BudgetCoreError):
    """Stored data is malformed (bad dates, unknown transaction kind, ...)."""
    pass


class TransactionFailedError(BudgetCoreError):
    """An atomic multi-record write failed and was rolled back."""
    pass
