"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the storage medium.
This allows us to:
1. Use volatile memory by default (the app is not durable across restarts)
2. Swap in an on-disk or networked backend later
3. Inject failing backends in tests

The interface is intentionally simple - a keyed document map per
collection. Validation, ordering guarantees and locking live above it,
in the Collection, so every backend gets them for free.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from moneystore.models.audit import AuditEvent


Document = dict[str, Any]


class StorageBackend(ABC):
    """
    Abstract interface for document storage.

    Any storage implementation (memory, SQLite, etc.)
    must implement these methods. Documents are passed in and out as
    dicts; the backend must not hand out references to its own copies.
    """

    @abstractmethod
    async def create_collection(self, name: str) -> None:
        """
        Register a collection.

        Raises:
            DuplicateKeyError: If the collection already exists
        """
        pass

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Document]:
        """
        Retrieve a document by primary key.

        Returns:
            A copy of the document if found, None otherwise
        """
        pass

    @abstractmethod
    async def put(self, collection: str, key: str, document: Document) -> None:
        """
        Insert or replace a document.

        Replacing keeps the document's original position in scan order.
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def contains(self, collection: str, key: str) -> bool:
        pass

    @abstractmethod
    async def scan(self, collection: str) -> list[Document]:
        """
        All documents of a collection, in insertion order.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release every collection. The backend is unusable afterwards."""
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

    @abstractmethod
    async def get_events_by_record(
        self,
        collection: str,
        record_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific record, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Primary key not found in storage."""

    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection}/{key} not found")


class DuplicateKeyError(StorageError):
    """Attempted to insert a primary key that already exists."""

    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection}/{key} already exists")
