"""Tests for the collection store."""

import pytest
from decimal import Decimal

from conftest import DAY_MS, FIXED_NOW
from moneystore.analytics import daily_spending, monthly_series
from moneystore.database import (
    DuplicateKeyError,
    NotFoundError,
    NotReadyError,
    ValidationError,
)
from moneystore.models import AuditEventType


class TestInsert:

    @pytest.mark.asyncio
    async def test_insert_generates_id_and_timestamps(self, database, account_data):
        await database.open()
        record = await database.accounts.insert(account_data())

        assert record["id"] == "id-1"
        assert record["created_at"] == FIXED_NOW
        assert record["updated_at"] == FIXED_NOW

    @pytest.mark.asyncio
    async def test_insert_keeps_caller_id(self, database, account_data):
        await database.open()
        record = await database.accounts.insert(account_data(id="acc_main"))
        assert record["id"] == "acc_main"

    @pytest.mark.asyncio
    async def test_round_trip(self, database, account_data):
        """Test insert then find_by_id returns an equal record."""
        await database.open()
        inserted = await database.accounts.insert(account_data(institution="HDFC", notes="salary"))
        found = await database.accounts.find_by_id(inserted["id"])

        assert found == inserted
        assert found["name"] == "HDFC Savings"
        assert found["institution"] == "HDFC"

    @pytest.mark.asyncio
    async def test_money_stored_as_decimal(self, database, account_data):
        await database.open()
        record = await database.accounts.insert(account_data(balance=0.1 + 0.2))
        assert record["balance"] == Decimal("0.30")
        assert isinstance(record["balance"], Decimal)

    @pytest.mark.asyncio
    async def test_whole_number_fields_stored_as_int(
        self, database, account_data, transaction_data
    ):
        await database.open()
        account = await database.accounts.insert(account_data())
        await database.transactions.insert(
            transaction_data(account["id"], date=Decimal(FIXED_NOW - DAY_MS))
        )
        second = await database.transactions.insert(
            transaction_data(account["id"], date=float(FIXED_NOW - 2 * DAY_MS))
        )

        stored = await database.transactions.find()
        assert [type(tx["date"]) for tx in stored] == [int, int]
        assert [m.month for m in monthly_series(stored)] == ["2024-06"]
        assert [d.day for d in daily_spending(stored)] == ["2024-06-08", "2024-06-09"]

        patched = await database.transactions.patch(
            second["id"], {"date": Decimal(FIXED_NOW - 3 * DAY_MS)}
        )
        assert type(patched["date"]) is int

    @pytest.mark.asyncio
    async def test_huge_balance_is_validation_error(self, database, account_data):
        await database.open()
        with pytest.raises(ValidationError) as exc_info:
            await database.accounts.insert(account_data(balance=Decimal("1E+999999")))
        assert exc_info.value.fields == ["balance"]

    @pytest.mark.asyncio
    async def test_none_values_dropped(self, database, account_data):
        await database.open()
        record = await database.accounts.insert(account_data(notes=None))
        assert "notes" not in record

    @pytest.mark.asyncio
    async def test_invalid_record_not_stored(self, database, account_data):
        await database.open()
        with pytest.raises(ValidationError) as exc_info:
            await database.accounts.insert(account_data(type="brokerage", balance="lots"))

        assert exc_info.value.fields == ["type", "balance"]
        assert await database.accounts.count() == 0

    @pytest.mark.asyncio
    async def test_malformed_id_rejected(self, database, account_data):
        await database.open()
        with pytest.raises(ValidationError):
            await database.accounts.insert(account_data(id="not valid!"))
        assert await database.accounts.count() == 0

    @pytest.mark.asyncio
    async def test_duplicate_key(self, database, account_data):
        await database.open()
        await database.accounts.insert(account_data(id="acc-1"))
        with pytest.raises(DuplicateKeyError):
            await database.accounts.insert(account_data(id="acc-1", name="Other"))

        stored = await database.accounts.get("acc-1")
        assert stored["name"] == "HDFC Savings"

    @pytest.mark.asyncio
    async def test_transaction_requires_existing_account(self, database, transaction_data):
        await database.open()
        with pytest.raises(ValidationError) as exc_info:
            await database.transactions.insert(transaction_data("ghost"))

        assert exc_info.value.issues[0].rule == "reference"
        assert await database.transactions.count() == 0

    @pytest.mark.asyncio
    async def test_goal_deadline_must_be_future(self, database, goal_data):
        await database.open()
        with pytest.raises(ValidationError) as exc_info:
            await database.goals.insert(goal_data(deadline=FIXED_NOW))
        assert exc_info.value.fields == ["deadline"]

    @pytest.mark.asyncio
    async def test_goal_current_above_target(self, database, goal_data):
        await database.open()
        with pytest.raises(ValidationError):
            await database.goals.insert(goal_data(current_amount=20000))

    @pytest.mark.asyncio
    async def test_rejection_is_audited(self, database, account_data, audit_storage):
        await database.open()
        with pytest.raises(ValidationError):
            await database.accounts.insert(account_data(currency="rupees"))

        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.WRITE_REJECTED
        assert events[0].details["operation"] == "insert"


class TestReads:

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, database):
        await database.open()
        assert await database.accounts.find_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, database):
        await database.open()
        with pytest.raises(NotFoundError):
            await database.accounts.get("nope")

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, database, account_data):
        await database.open()
        record = await database.accounts.insert(account_data())
        record["name"] = "Mutated"

        stored = await database.accounts.get(record["id"])
        assert stored["name"] == "HDFC Savings"

    @pytest.mark.asyncio
    async def test_find_transactions_for_account(self, database, account_data, transaction_data):
        await database.open()
        a = await database.accounts.insert(account_data())
        b = await database.accounts.insert(account_data(name="Cash"))
        await database.transactions.insert(transaction_data(a["id"]))
        await database.transactions.insert(transaction_data(b["id"]))
        await database.transactions.insert(transaction_data(a["id"], type="income"))

        found = await database.transactions.find({"account_id": a["id"]})
        assert [t["type"] for t in found] == ["expense", "income"]
        assert await database.transactions.count({"account_id": b["id"]}) == 1

    @pytest.mark.asyncio
    async def test_find_expenses_between_dates(self, database, account_data, transaction_data):
        await database.open()
        account = await database.accounts.insert(account_data())
        for days_ago in (1, 5, 40):
            await database.transactions.insert(
                transaction_data(account["id"], date=FIXED_NOW - days_ago * DAY_MS)
            )

        found = await database.transactions.find(
            {"type": "expense", "date": {"$gte": FIXED_NOW - 30 * DAY_MS, "$lte": FIXED_NOW}},
            sort_by="date",
        )
        assert [t["date"] for t in found] == [FIXED_NOW - 5 * DAY_MS, FIXED_NOW - DAY_MS]

    @pytest.mark.asyncio
    async def test_budgets_by_category(self, database, budget_data):
        await database.open()
        await database.budgets.insert(budget_data())
        await database.budgets.insert(budget_data(name="Rent", category="rent"))
        found = await database.budgets.find({"category": "rent"})
        assert [b["name"] for b in found] == ["Rent"]

    @pytest.mark.asyncio
    async def test_find_by_float_balance(self, database, account_data):
        await database.open()
        await database.accounts.insert(account_data(balance=100.1))

        assert len(await database.accounts.find({"balance": 100.1})) == 1
        assert len(await database.accounts.find({"balance": {"$lte": 100.1}})) == 1

    @pytest.mark.asyncio
    async def test_exists(self, database, account_data):
        await database.open()
        record = await database.accounts.insert(account_data())
        assert await database.accounts.exists(record["id"])
        assert not await database.accounts.exists("other")


class TestPatch:

    @pytest.mark.asyncio
    async def test_patch_changes_only_given_field(self, database, account_data, clock):
        await database.open()
        original = await database.accounts.insert(account_data())
        clock.advance(5_000)

        patched = await database.accounts.patch(original["id"], {"name": "Renamed"})
        found = await database.accounts.find_by_id(original["id"])

        assert found == patched
        assert found["name"] == "Renamed"
        assert found["updated_at"] == FIXED_NOW + 5_000
        unchanged = {k: v for k, v in found.items() if k not in ("name", "updated_at")}
        assert unchanged == {k: v for k, v in original.items() if k not in ("name", "updated_at")}

    @pytest.mark.asyncio
    async def test_updated_at_never_moves_backwards(self, database, account_data, clock):
        await database.open()
        original = await database.accounts.insert(account_data())
        clock.advance(-60_000)

        patched = await database.accounts.patch(original["id"], {"name": "Renamed"})
        assert patched["updated_at"] >= original["updated_at"]

    @pytest.mark.asyncio
    async def test_patch_missing_record(self, database):
        await database.open()
        with pytest.raises(NotFoundError):
            await database.accounts.patch("nope", {"name": "x"})

    @pytest.mark.asyncio
    async def test_invalid_patch_leaves_record(self, database, account_data):
        await database.open()
        original = await database.accounts.insert(account_data())
        with pytest.raises(ValidationError):
            await database.accounts.patch(original["id"], {"balance": 2_000_000_000})
        assert await database.accounts.get(original["id"]) == original

    @pytest.mark.asyncio
    async def test_primary_key_immutable(self, database, account_data):
        await database.open()
        original = await database.accounts.insert(account_data())
        with pytest.raises(ValidationError) as exc_info:
            await database.accounts.patch(original["id"], {"id": "other", "created_at": 1})
        assert exc_info.value.fields == ["id", "created_at"]

    @pytest.mark.asyncio
    async def test_patch_none_removes_optional_field(self, database, account_data):
        await database.open()
        original = await database.accounts.insert(account_data(notes="temp"))
        patched = await database.accounts.patch(original["id"], {"notes": None})
        assert "notes" not in patched

    @pytest.mark.asyncio
    async def test_patch_none_on_required_field(self, database, account_data):
        await database.open()
        original = await database.accounts.insert(account_data())
        with pytest.raises(ValidationError):
            await database.accounts.patch(original["id"], {"currency": None})

    @pytest.mark.asyncio
    async def test_patch_goal_past_deadline_allowed(self, database, goal_data, clock):
        """Test a goal whose deadline passed can still be updated."""
        await database.open()
        goal = await database.goals.insert(goal_data())
        clock.advance(365 * DAY_MS)

        patched = await database.goals.patch(goal["id"], {"status": "completed"})
        assert patched["status"] == "completed"

    @pytest.mark.asyncio
    async def test_patch_transaction_to_missing_account(
        self, database, account_data, transaction_data
    ):
        await database.open()
        account = await database.accounts.insert(account_data())
        tx = await database.transactions.insert(transaction_data(account["id"]))
        with pytest.raises(ValidationError):
            await database.transactions.patch(tx["id"], {"account_id": "ghost"})


class TestRemove:

    @pytest.mark.asyncio
    async def test_remove_then_missing(self, database, account_data):
        await database.open()
        record = await database.accounts.insert(account_data())

        removed = await database.accounts.remove(record["id"])
        assert removed == record
        assert await database.accounts.find_by_id(record["id"]) is None

        with pytest.raises(NotFoundError):
            await database.accounts.remove(record["id"])

    @pytest.mark.asyncio
    async def test_remove_does_not_cascade(self, database, account_data, transaction_data):
        await database.open()
        account = await database.accounts.insert(account_data())
        await database.transactions.insert(transaction_data(account["id"]))

        await database.accounts.remove(account["id"])
        assert await database.transactions.count() == 1


class TestDetached:

    @pytest.mark.asyncio
    async def test_collection_unusable_after_close(self, database, account_data):
        await database.open()
        accounts = database.accounts
        await database.close()

        with pytest.raises(NotReadyError):
            await accounts.insert(account_data())
        with pytest.raises(NotReadyError):
            await accounts.find()
