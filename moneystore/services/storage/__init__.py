"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements volatile memory as the backend, but designed to be swappable.
"""

from moneystore.services.storage.interface import (
    AuditStorageInterface,
    Document,
    DuplicateKeyError,
    NotFoundError,
    StorageBackend,
    StorageError,
)
from moneystore.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryStorageBackend,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Document",
    "StorageBackend",
    # Exceptions
    "DuplicateKeyError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryStorageBackend",
]
