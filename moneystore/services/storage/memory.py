"""
In-Memory Storage Implementation

DESIGN DECISION: Volatile memory is the default backend. Nothing
survives a process restart; that matches the mobile app this layer
serves, which rebuilds its store at launch.

Documents are deep-copied on the way in and on the way out so no caller
can mutate stored state except through the Collection API.
"""

import copy
from typing import Optional

from moneystore.models.audit import AuditEvent
from moneystore.services.storage.interface import (
    AuditStorageInterface,
    Document,
    DuplicateKeyError,
    StorageBackend,
    StorageError,
)


class InMemoryStorageBackend(StorageBackend):
    """
    Dict-of-dicts implementation of StorageBackend.

    Python dicts preserve insertion order, which gives scan() its
    insertion-order guarantee.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, Document]] = {}
        self._closed = False

    def _collection(self, name: str) -> dict[str, Document]:
        if self._closed:
            raise StorageError("Storage backend is closed")
        try:
            return self._collections[name]
        except KeyError:
            raise StorageError(f"Unknown collection: {name}") from None

    async def create_collection(self, name: str) -> None:
        if self._closed:
            raise StorageError("Storage backend is closed")
        if name in self._collections:
            raise DuplicateKeyError("collections", name)
        self._collections[name] = {}

    async def get(self, collection: str, key: str) -> Optional[Document]:
        document = self._collection(collection).get(key)
        return copy.deepcopy(document) if document is not None else None

    async def put(self, collection: str, key: str, document: Document) -> None:
        self._collection(collection)[key] = copy.deepcopy(document)

    async def delete(self, collection: str, key: str) -> bool:
        return self._collection(collection).pop(key, None) is not None

    async def contains(self, collection: str, key: str) -> bool:
        return key in self._collection(collection)

    async def scan(self, collection: str) -> list[Document]:
        return [copy.deepcopy(doc) for doc in self._collection(collection).values()]

    async def close(self) -> None:
        self._collections.clear()
        self._closed = True

    @property
    def collection_names(self) -> list[str]:
        return list(self._collections)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-memory audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_record(
        self,
        collection: str,
        record_id: str,
    ) -> list[AuditEvent]:
        return [
            event for event in self._events
            if event.collection == collection and event.record_id == record_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]

    def __len__(self) -> int:
        return len(self._events)
