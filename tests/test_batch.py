"""Tests for atomic write batches."""

import asyncio

import pytest
from decimal import Decimal

from moneystore.database import BatchError, ConflictError, Database, NotFoundError, ValidationError
from moneystore.models import AuditEventType, CollectionName
from moneystore.services.storage import InMemoryStorageBackend


ACCOUNTS = CollectionName.ACCOUNTS
TRANSACTIONS = CollectionName.TRANSACTIONS
GOALS = CollectionName.GOALS


class InterruptingBackend(InMemoryStorageBackend):
    """Raises CancelledError on writes to one collection once armed."""

    interrupt: str = ""

    async def put(self, collection, key, document):
        if collection == self.interrupt:
            raise asyncio.CancelledError()
        await super().put(collection, key, document)


class TestWriteBatch:

    @pytest.mark.asyncio
    async def test_commit_applies_all_steps(self, database, account_data, transaction_data):
        await database.open()
        account = await database.accounts.insert(account_data(balance=1000))

        tx, updated = await (
            database.batch()
            .insert(TRANSACTIONS, transaction_data(account["id"], amount=250))
            .adjust(ACCOUNTS, account["id"], "balance", -250)
            .commit()
        )

        assert tx["amount"] == Decimal("250.00")
        assert updated["balance"] == Decimal("750.00")
        assert (await database.accounts.get(account["id"]))["balance"] == Decimal("750.00")

    @pytest.mark.asyncio
    async def test_failed_step_undoes_earlier_steps(
        self, database, account_data, transaction_data, goal_data
    ):
        await database.open()
        account = await database.accounts.insert(account_data())
        goal = await database.goals.insert(goal_data())
        before_account = await database.accounts.get(account["id"])
        before_goal = await database.goals.get(goal["id"])

        batch = (
            database.batch()
            .insert(TRANSACTIONS, transaction_data(account["id"]))
            .patch(GOALS, goal["id"], {"current_amount": 3000})
            .adjust(ACCOUNTS, account["id"], "balance", Decimal("-0.01"))
            .patch(ACCOUNTS, account["id"], {"type": "brokerage"})
        )
        with pytest.raises(BatchError) as exc_info:
            await batch.commit()

        assert exc_info.value.step == 3
        assert isinstance(exc_info.value.cause, ValidationError)
        assert await database.transactions.count() == 0
        assert await database.accounts.get(account["id"]) == before_account
        assert await database.goals.get(goal["id"]) == before_goal

    @pytest.mark.asyncio
    async def test_adjust_missing_record(self, database, account_data, transaction_data):
        await database.open()
        account = await database.accounts.insert(account_data())

        with pytest.raises(BatchError) as exc_info:
            await (
                database.batch()
                .insert(TRANSACTIONS, transaction_data(account["id"]))
                .adjust(ACCOUNTS, "ghost", "balance", 10)
                .commit()
            )

        assert isinstance(exc_info.value.cause, NotFoundError)
        assert await database.transactions.count() == 0

    @pytest.mark.asyncio
    async def test_adjust_out_of_range_rolls_back(self, database, account_data):
        await database.open()
        account = await database.accounts.insert(account_data(balance=999_999_999))

        with pytest.raises(BatchError):
            await database.batch().adjust(ACCOUNTS, account["id"], "balance", 10).commit()
        assert (await database.accounts.get(account["id"]))["balance"] == Decimal("999999999.00")

    @pytest.mark.asyncio
    async def test_removed_record_restored(self, database, account_data):
        await database.open()
        account = await database.accounts.insert(account_data())

        with pytest.raises(BatchError):
            await (
                database.batch()
                .remove(ACCOUNTS, account["id"])
                .remove(ACCOUNTS, account["id"])
                .commit()
            )
        assert await database.accounts.get(account["id"]) == account

    @pytest.mark.asyncio
    async def test_remove_with_stale_expectation(self, database, account_data):
        await database.open()
        account = await database.accounts.insert(account_data())
        await database.accounts.patch(account["id"], {"name": "Changed"})

        with pytest.raises(BatchError) as exc_info:
            await database.batch().remove(ACCOUNTS, account["id"], expected=account).commit()

        assert isinstance(exc_info.value.cause, ConflictError)
        assert await database.accounts.exists(account["id"])

    @pytest.mark.asyncio
    async def test_commit_once(self, database):
        await database.open()
        batch = database.batch()
        assert await batch.commit() == []

        with pytest.raises(BatchError):
            await batch.commit()
        with pytest.raises(BatchError):
            batch.remove(ACCOUNTS, "acc-1")

    @pytest.mark.asyncio
    async def test_steps_share_correlation_id(
        self, database, account_data, transaction_data, audit_storage
    ):
        await database.open()
        account = await database.accounts.insert(account_data())

        await (
            database.batch()
            .insert(TRANSACTIONS, transaction_data(account["id"]))
            .adjust(ACCOUNTS, account["id"], "balance", -250)
            .commit()
        )

        events = await audit_storage.get_recent_events(limit=3)
        assert [e.event_type for e in events] == [
            AuditEventType.BATCH_COMMITTED,
            AuditEventType.RECORD_PATCHED,
            AuditEventType.RECORD_INSERTED,
        ]
        assert len({e.correlation_id for e in events}) == 1

    @pytest.mark.asyncio
    async def test_rollback_is_audited(self, database, audit_storage):
        await database.open()
        with pytest.raises(BatchError):
            await database.batch().remove(ACCOUNTS, "ghost").commit()

        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.BATCH_ROLLED_BACK
        assert events[0].details == {"failed_step": 0, "undone_steps": 0}

    def test_len(self, database):
        from moneystore.database import WriteBatch

        batch = WriteBatch(database).remove(ACCOUNTS, "a").remove(ACCOUNTS, "b")
        assert len(batch) == 2

    @pytest.mark.asyncio
    async def test_cancelled_step_undoes_earlier_steps(
        self, store_settings, clock, ids, account_data, transaction_data
    ):
        backends = []

        def factory():
            backends.append(InterruptingBackend())
            return backends[-1]

        database = Database(store_settings, clock=clock, id_generator=ids, backend_factory=factory)
        await database.open()
        account = await database.accounts.insert(account_data(balance=1000))
        backends[0].interrupt = ACCOUNTS.value

        with pytest.raises(asyncio.CancelledError):
            await (
                database.batch()
                .insert(TRANSACTIONS, transaction_data(account["id"]))
                .adjust(ACCOUNTS, account["id"], "balance", -250)
                .commit()
            )

        assert await database.transactions.count() == 0
        assert (await database.accounts.get(account["id"]))["balance"] == Decimal("1000.00")
