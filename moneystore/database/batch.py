"""
Atomic Write Batches

DESIGN DECISION: A batch queues writes against any of the five
collections and commits them as one unit. Steps run in order while the
database write lock is held; if any step fails, the steps already
applied are undone in reverse order and the batch raises BatchError.
Readers never see a partial batch because every reader that runs after
commit() returns sees all of it, and a failed batch leaves nothing.

Typical use: insert a transaction and adjust the account balance.

    await (
        db.batch()
        .insert(CollectionName.TRANSACTIONS, tx)
        .adjust(CollectionName.ACCOUNTS, tx["account_id"], "balance", -amount)
        .commit()
    )
"""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from moneystore.analytics.money import Number, to_decimal
from moneystore.audit import create_correlation_id
from moneystore.database.errors import BatchError, ConflictError, NotFoundError
from moneystore.models.records import CollectionName
from moneystore.services.storage import Document

if TYPE_CHECKING:
    from moneystore.database.facade import Database


@dataclass
class BatchStep:
    """One queued write."""

    operation: str  # insert | patch | adjust | remove
    collection: CollectionName
    key: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    expected: Optional[Document] = None


class WriteBatch:
    """
    Queue of writes committed atomically.

    A batch can be committed once.
    """

    def __init__(self, database: "Database"):
        self._database = database
        self._steps: list[BatchStep] = []
        self._committed = False

    @property
    def steps(self) -> list[BatchStep]:
        return list(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def _queue(self, step: BatchStep) -> "WriteBatch":
        if self._committed:
            raise BatchError("Batch was already committed")
        self._steps.append(step)
        return self

    def insert(self, collection: CollectionName, record: dict[str, Any]) -> "WriteBatch":
        return self._queue(BatchStep("insert", CollectionName(collection), payload=dict(record)))

    def patch(self, collection: CollectionName, key: str, fields: dict[str, Any]) -> "WriteBatch":
        return self._queue(BatchStep("patch", CollectionName(collection), key, dict(fields)))

    def adjust(
        self,
        collection: CollectionName,
        key: str,
        field_name: str,
        delta: Number,
    ) -> "WriteBatch":
        """Add delta to a numeric field, reading its value at commit time."""
        return self._queue(BatchStep(
            "adjust",
            CollectionName(collection),
            key,
            {"field": field_name, "delta": to_decimal(delta)},
        ))

    def remove(
        self,
        collection: CollectionName,
        key: str,
        expected: Optional[Document] = None,
    ) -> "WriteBatch":
        """
        Remove a record.

        When expected is given, the step fails with ConflictError unless
        the stored record still equals it at commit time.
        """
        return self._queue(BatchStep("remove", CollectionName(collection), key, expected=expected))

    async def commit(self) -> list[Document]:
        """
        Apply every step, or none.

        The steps run in their own task. Cancelling the caller (for example
        a wait_for timeout) does not interrupt them, so the batch still
        ends fully applied or fully undone.

        Returns:
            The resulting record of each step, in order (the removed
            record for remove steps)

        Raises:
            BatchError: If a step failed (cause attached) or the batch
                        was already committed
        """
        if self._committed:
            raise BatchError("Batch was already committed")
        self._committed = True

        task = asyncio.get_running_loop().create_task(self._apply())
        return await asyncio.shield(task)

    async def _apply(self) -> list[Document]:
        database = self._database
        audit_logger = database.audit_logger
        correlation_id = create_correlation_id()
        results: list[Document] = []
        undo: list[tuple[CollectionName, str, Optional[Document]]] = []

        async with database.write_lock:
            for index, step in enumerate(self._steps):
                collection = database.collection(step.collection)
                try:
                    if step.operation == "insert":
                        record = await collection._insert(step.payload, correlation_id)
                        undo.append((step.collection, record[collection.primary_key], None))
                    elif step.operation == "remove":
                        if step.expected is not None:
                            current = await collection.find_by_id(step.key)
                            if current is not None and current != step.expected:
                                raise ConflictError(step.collection.value, step.key)
                        record = await collection._remove(step.key, correlation_id)
                        undo.append((step.collection, step.key, record))
                    else:
                        before = await collection.find_by_id(step.key)
                        if before is None:
                            raise NotFoundError(step.collection.value, step.key)
                        if step.operation == "adjust":
                            name = step.payload["field"]
                            fields = {name: to_decimal(before.get(name)) + step.payload["delta"]}
                        else:
                            fields = step.payload
                        record = await collection._patch(step.key, fields, correlation_id)
                        undo.append((step.collection, step.key, before))
                except asyncio.CancelledError:
                    await self._undo(undo)
                    raise
                except Exception as e:
                    await self._undo(undo)
                    await audit_logger.log_batch_rolled_back(
                        correlation_id=correlation_id,
                        failed_step=index,
                        undone=len(undo),
                        error=e,
                    )
                    raise BatchError(
                        f"Batch step {index} ({step.operation} on {step.collection.value}) failed: {e}",
                        step=index,
                        cause=e,
                    ) from e
                results.append(record)

        await audit_logger.log_batch_committed(correlation_id, len(results))
        return results

    async def _undo(self, undo: list[tuple[CollectionName, str, Optional[Document]]]) -> None:
        for name, key, previous in reversed(undo):
            await self._database.collection(name)._restore(key, previous)
