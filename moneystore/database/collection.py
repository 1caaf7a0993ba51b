"""
Collection Store

A schema-checked, keyed container of records of one kind.

GUARANTEES:
- Nothing invalid reaches storage (validation fails closed)
- Writes either fully apply or leave the collection unchanged
- Writes are serialised by the owning Database's write lock
- Callers always receive copies; stored documents are never shared
"""

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional
from uuid import UUID

from moneystore.analytics.money import quantize
from moneystore.audit import AuditLogger
from moneystore.database.environment import Clock, IdGenerator
from moneystore.database.errors import (
    DuplicateKeyError,
    NotFoundError,
    NotReadyError,
    StorageError,
    ValidationError,
)
from moneystore.models.records import CollectionName, ValidationIssue
from moneystore.queries import Selector, apply_query
from moneystore.services.storage import Document, StorageBackend
from moneystore.validation import CollectionSchema, SchemaValidator


ReferenceResolver = Callable[[CollectionName, str], Awaitable[bool]]

IMMUTABLE_FIELDS = ("created_at",)


class Collection:
    """
    Schema-validated keyed store for one record kind.

    Public coroutines take the shared write lock. The underscore variants
    (_insert, _patch, _remove, ...) assume the caller already holds it;
    WriteBatch and the integrity guard use them to make multi-step writes
    atomic.
    """

    def __init__(
        self,
        schema: CollectionSchema,
        backend: StorageBackend,
        *,
        lock: asyncio.Lock,
        clock: Clock,
        id_generator: IdGenerator,
        validator: Optional[SchemaValidator] = None,
        reference_resolver: Optional[ReferenceResolver] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._schema = schema
        self._backend = backend
        self._lock = lock
        self._clock = clock
        self._id_generator = id_generator
        self._validator = validator or SchemaValidator()
        self._resolve_reference = reference_resolver
        self._audit_logger = audit_logger
        self._detached = False

    @property
    def name(self) -> CollectionName:
        return self._schema.name

    @property
    def schema(self) -> CollectionSchema:
        return self._schema

    @property
    def primary_key(self) -> str:
        return self._schema.primary_key

    def _ensure_attached(self) -> None:
        if self._detached:
            raise NotReadyError(f"Collection {self.name.value} belongs to a closed database")

    def _detach(self) -> None:
        self._detached = True

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find_by_id(self, key: str) -> Optional[Document]:
        """Return the record with this primary key, or None."""
        self._ensure_attached()
        return await self._backend.get(self.name.value, key)

    async def get(self, key: str) -> Document:
        """Like find_by_id, but raises NotFoundError."""
        document = await self.find_by_id(key)
        if document is None:
            raise NotFoundError(self.name.value, key)
        return document

    async def exists(self, key: str) -> bool:
        self._ensure_attached()
        return await self._backend.contains(self.name.value, key)

    async def find(
        self,
        selector: Selector = None,
        *,
        sort_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        """
        Query the collection.

        Args:
            selector: Mapping of field conditions (see moneystore.queries)
                      or a callable predicate. None matches everything.
            sort_by: Field to sort on. Insertion order when omitted.
            descending: Reverse the sort
            limit: Maximum number of results

        Returns:
            List of matching records (copies)
        """
        self._ensure_attached()
        documents = await self._backend.scan(self.name.value)
        return apply_query(
            documents,
            selector,
            sort_by=sort_by,
            descending=descending,
            limit=limit,
        )

    async def count(self, selector: Selector = None) -> int:
        return len(await self.find(selector))

    # -------------------------------------------------------------------------
    # Writes (public, locked)
    # -------------------------------------------------------------------------

    async def insert(self, record: Mapping[str, Any]) -> Document:
        """
        Insert a new record.

        A primary key is generated when the record has none. Both
        timestamps are set to the current clock value.

        Raises:
            ValidationError: If the record violates its schema
            DuplicateKeyError: If the primary key already exists
        """
        self._ensure_attached()
        async with self._lock:
            try:
                return await self._insert(record)
            except StorageError as e:
                await self._log_rejected("insert", record.get(self.primary_key), e)
                raise

    async def patch(self, key: str, fields: Mapping[str, Any]) -> Document:
        """
        Merge fields onto an existing record and re-validate it.

        Fields set to None are removed from the record. The primary key
        and created_at cannot change. updated_at is refreshed.

        Raises:
            NotFoundError: If no record has this key
            ValidationError: If the merged record violates its schema
        """
        self._ensure_attached()
        async with self._lock:
            try:
                return await self._patch(key, fields)
            except StorageError as e:
                await self._log_rejected("patch", key, e)
                raise

    async def remove(self, key: str) -> Document:
        """
        Delete a record and return it. No other collection is touched.

        Raises:
            NotFoundError: If no record has this key
        """
        self._ensure_attached()
        async with self._lock:
            try:
                return await self._remove(key)
            except StorageError as e:
                await self._log_rejected("remove", key, e)
                raise

    # -------------------------------------------------------------------------
    # Writes (caller holds the lock)
    # -------------------------------------------------------------------------

    async def _insert(
        self,
        record: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Document:
        self._ensure_attached()
        now = self._clock()

        document = {name: value for name, value in record.items() if value is not None}
        if document.get(self.primary_key) is None:
            document[self.primary_key] = self._id_generator()
        document["created_at"] = now
        document["updated_at"] = now

        self._validate(document, now=now, is_insert=True)
        await self._check_references(document, self._schema.references)

        key = document[self.primary_key]
        if await self._backend.contains(self.name.value, key):
            raise DuplicateKeyError(self.name.value, key)

        document = self._normalize(document)
        await self._backend.put(self.name.value, key, document)

        if self._audit_logger:
            await self._audit_logger.log_record_inserted(self.name.value, key, correlation_id)
        return document

    async def _patch(
        self,
        key: str,
        fields: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Document:
        self._ensure_attached()

        current = await self._backend.get(self.name.value, key)
        if current is None:
            raise NotFoundError(self.name.value, key)

        issues = []
        if self.primary_key in fields and fields[self.primary_key] != key:
            issues.append(ValidationIssue(
                field=self.primary_key,
                rule="immutable",
                message="Primary key cannot be changed",
            ))
        for name in IMMUTABLE_FIELDS:
            if name in fields and fields[name] != current.get(name):
                issues.append(ValidationIssue(
                    field=name,
                    rule="immutable",
                    message="Field cannot be changed",
                ))
        if issues:
            raise ValidationError(self.name.value, issues)

        merged = {**current, **fields}
        merged = {name: value for name, value in merged.items() if value is not None}
        # The clock may step backwards; updated_at must not
        merged["updated_at"] = max(self._clock(), current.get("updated_at", 0))

        self._validate(merged, now=None, is_insert=False)
        changed_references = {
            name: target
            for name, target in self._schema.references.items()
            if name in fields
        }
        await self._check_references(merged, changed_references)

        merged = self._normalize(merged)
        await self._backend.put(self.name.value, key, merged)

        if self._audit_logger:
            await self._audit_logger.log_record_patched(
                self.name.value, key, sorted(fields), correlation_id
            )
        return merged

    async def _remove(
        self,
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> Document:
        self._ensure_attached()

        current = await self._backend.get(self.name.value, key)
        if current is None:
            raise NotFoundError(self.name.value, key)
        await self._backend.delete(self.name.value, key)

        if self._audit_logger:
            await self._audit_logger.log_record_removed(self.name.value, key, correlation_id)
        return current

    async def _restore(self, key: str, document: Optional[Document]) -> None:
        """Put a previous version back verbatim (None deletes). Used to undo batch steps."""
        if document is None:
            await self._backend.delete(self.name.value, key)
        else:
            await self._backend.put(self.name.value, key, document)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _validate(self, document: Document, *, now: Optional[int], is_insert: bool) -> None:
        result = self._validator.validate(document, self._schema, now=now, is_insert=is_insert)
        if not result.is_valid:
            raise ValidationError(self.name.value, result.issues)

    async def _check_references(
        self,
        document: Document,
        references: Mapping[str, CollectionName],
    ) -> None:
        if self._resolve_reference is None:
            return
        issues = []
        for name, target in references.items():
            value = document.get(name)
            if value is None:
                continue
            if not await self._resolve_reference(target, value):
                issues.append(ValidationIssue(
                    field=name,
                    rule="reference",
                    message=f"No {target.value} record with id {value}",
                ))
        if issues:
            raise ValidationError(self.name.value, issues)

    def _normalize(self, document: Document) -> Document:
        """Store whole numbers as ints and fractional numbers as Decimals at their granularity."""
        for name in self._schema.integer_fields:
            if document.get(name) is not None:
                document[name] = int(document[name])
        for name, step in self._schema.money_fields.items():
            if document.get(name) is not None:
                document[name] = quantize(document[name], step)
        return document

    async def _log_rejected(self, operation: str, key: Optional[str], error: StorageError) -> None:
        if self._audit_logger is None:
            return
        issues = None
        if isinstance(error, ValidationError):
            issues = [issue.model_dump() for issue in error.issues]
        await self._audit_logger.log_write_rejected(
            collection=self.name.value,
            operation=operation,
            record_id=key[:100] if isinstance(key, str) else None,
            error=error,
            issues=issues,
        )

    def __repr__(self) -> str:
        return f"Collection({self.name.value!r})"
