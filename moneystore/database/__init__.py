"""
Database package: collections, the lifecycle facade, atomic batches and
the referential integrity guard.
"""

from moneystore.database.batch import BatchStep, WriteBatch
from moneystore.database.collection import Collection
from moneystore.database.environment import Clock, IdGenerator, generate_id, system_clock
from moneystore.database.errors import (
    AccountInUseError,
    BatchError,
    ConflictError,
    DuplicateKeyError,
    InitializationError,
    NotFoundError,
    NotReadyError,
    StorageError,
    ValidationError,
)
from moneystore.database.facade import Database, DatabaseState
from moneystore.database.integrity import ReferentialIntegrityGuard

__all__ = [
    "AccountInUseError",
    "BatchError",
    "ConflictError",
    "BatchStep",
    "Clock",
    "Collection",
    "Database",
    "DatabaseState",
    "DuplicateKeyError",
    "IdGenerator",
    "InitializationError",
    "NotFoundError",
    "NotReadyError",
    "ReferentialIntegrityGuard",
    "StorageError",
    "ValidationError",
    "WriteBatch",
    "generate_id",
    "system_clock",
]
