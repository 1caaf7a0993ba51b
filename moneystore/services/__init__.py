"""Services package."""

from moneystore.services.storage import (
    AuditStorageInterface,
    DuplicateKeyError,
    InMemoryAuditStorage,
    InMemoryStorageBackend,
    NotFoundError,
    StorageBackend,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateKeyError",
    "InMemoryAuditStorage",
    "InMemoryStorageBackend",
    "NotFoundError",
    "StorageBackend",
    "StorageError",
]
