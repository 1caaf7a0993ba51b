"""Tests for the referential integrity guard."""

import asyncio

import pytest

from moneystore.database import (
    AccountInUseError,
    NotFoundError,
    ReferentialIntegrityGuard,
    ValidationError,
)
from moneystore.models import AuditEventType, CollectionName


@pytest.fixture
def guard(database):
    return ReferentialIntegrityGuard(database)


class TestReferentialIntegrityGuard:

    @pytest.mark.asyncio
    async def test_referencing_fields_from_schema(self, database, guard):
        await database.open()
        assert guard.referencing_fields(CollectionName.ACCOUNTS) == [
            (CollectionName.TRANSACTIONS, "account_id"),
        ]
        assert guard.referencing_fields(CollectionName.GOALS) == []

    @pytest.mark.asyncio
    async def test_delete_unreferenced_account(self, database, guard, account_data):
        await database.open()
        account = await database.accounts.insert(account_data())

        assert await guard.can_delete_account(account["id"])
        removed = await guard.delete_account(account["id"])

        assert removed["id"] == account["id"]
        assert await database.accounts.find_by_id(account["id"]) is None

    @pytest.mark.asyncio
    async def test_delete_referenced_account_blocked(
        self, database, guard, account_data, transaction_data
    ):
        await database.open()
        account = await database.accounts.insert(account_data())
        await database.transactions.insert(transaction_data(account["id"]))

        assert not await guard.can_delete_account(account["id"])
        with pytest.raises(AccountInUseError) as exc_info:
            await guard.delete_account(account["id"])

        assert exc_info.value.transaction_count == 1
        assert await database.accounts.find_by_id(account["id"]) is not None

    @pytest.mark.asyncio
    async def test_delete_after_transactions_removed(
        self, database, guard, account_data, transaction_data
    ):
        await database.open()
        account = await database.accounts.insert(account_data())
        tx = await database.transactions.insert(transaction_data(account["id"]))

        await database.transactions.remove(tx["id"])
        await guard.delete_account(account["id"])
        assert await database.accounts.count() == 0

    @pytest.mark.asyncio
    async def test_delete_missing_account(self, database, guard):
        await database.open()
        with pytest.raises(NotFoundError):
            await guard.delete_account("ghost")

    @pytest.mark.asyncio
    async def test_blocked_delete_is_audited(
        self, database, guard, account_data, transaction_data, audit_storage
    ):
        await database.open()
        account = await database.accounts.insert(account_data())
        await database.transactions.insert(transaction_data(account["id"]))
        await database.transactions.insert(transaction_data(account["id"]))

        with pytest.raises(AccountInUseError):
            await guard.delete_account(account["id"])

        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.DELETE_BLOCKED
        assert events[0].details["transaction_count"] == 2

    @pytest.mark.asyncio
    async def test_delete_and_insert_race(
        self, database, guard, account_data, transaction_data
    ):
        """Test a transaction racing a delete never ends up orphaned."""
        await database.open()
        account = await database.accounts.insert(account_data())

        results = await asyncio.gather(
            guard.delete_account(account["id"]),
            database.transactions.insert(transaction_data(account["id"])),
            return_exceptions=True,
        )

        transactions = await database.transactions.find()
        accounts = await database.accounts.find()
        if isinstance(results[0], AccountInUseError):
            assert len(accounts) == 1 and len(transactions) == 1
        else:
            assert isinstance(results[1], ValidationError)
            assert accounts == [] and transactions == []
