"""
Database Errors

Storage-level errors (NotFoundError, DuplicateKeyError) are defined with
the storage interface and re-exported here so callers have one import
site for everything the data layer can raise.
"""

from typing import Optional

from moneystore.models.records import ValidationIssue
from moneystore.services.storage.interface import (
    DuplicateKeyError,
    NotFoundError,
    StorageError,
)


class ValidationError(StorageError):
    """A record failed its schema. Never retried; the caller must fix the input."""

    def __init__(self, collection: str, issues: list[ValidationIssue]):
        self.collection = collection
        self.issues = list(issues)
        summary = "; ".join(str(issue) for issue in self.issues) or "invalid record"
        super().__init__(f"Invalid {collection} record: {summary}")

    @property
    def fields(self) -> list[str]:
        seen: list[str] = []
        for issue in self.issues:
            if issue.field not in seen:
                seen.append(issue.field)
        return seen


class AccountInUseError(StorageError):
    """Account delete blocked because transactions still reference it."""

    def __init__(self, account_id: str, transaction_count: int):
        self.account_id = account_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Account {account_id} has {transaction_count} linked transaction(s). "
            "Delete or reassign them first."
        )


class InitializationError(StorageError):
    """Database construction failed. The database is left uninitialized and open() may be retried."""
    pass


class NotReadyError(StorageError):
    """Collections were accessed while the database was not open."""
    pass


class ConflictError(StorageError):
    """A record changed between being read and being written by a batch."""

    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection} record {key} changed since it was read")


class BatchError(StorageError):
    """
    A batch step failed and every earlier step was undone.

    Attributes:
        step: Index of the failing step, None when the batch itself was misused
        cause: The exception raised by that step
    """

    def __init__(self, message: str, step: Optional[int] = None, cause: Optional[BaseException] = None):
        self.step = step
        self.cause = cause
        super().__init__(message)


__all__ = [
    "AccountInUseError",
    "BatchError",
    "ConflictError",
    "DuplicateKeyError",
    "InitializationError",
    "NotFoundError",
    "NotReadyError",
    "StorageError",
    "ValidationError",
]
