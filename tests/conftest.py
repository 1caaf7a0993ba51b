"""Shared test fixtures for moneystore."""

import itertools

import pytest

from moneystore.audit import AuditLogger
from moneystore.config import StoreSettings
from moneystore.database import Database
from moneystore.services.storage import InMemoryAuditStorage


# 2024-06-10T06:13:20Z, a Monday
FIXED_NOW = 1_718_000_000_000
DAY_MS = 86_400_000


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: int = FIXED_NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class SequentialIds:
    """Deterministic id generator: id-1, id-2, ..."""

    def __init__(self, prefix: str = "id"):
        self._prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self._prefix}-{next(self._counter)}"


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def ids():
    return SequentialIds()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def store_settings():
    return StoreSettings(database_name="testdb", _env_file=None)


@pytest.fixture
def database(store_settings, clock, ids, audit_storage):
    """A fresh, unopened database. Tests call `await database.open()`."""
    return Database(
        store_settings,
        clock=clock,
        id_generator=ids,
        audit_logger=AuditLogger(audit_storage),
    )


@pytest.fixture
def account_data():
    def factory(**overrides):
        record = {
            "name": "HDFC Savings",
            "type": "savings",
            "balance": 1000,
            "currency": "INR",
        }
        record.update(overrides)
        return record
    return factory


@pytest.fixture
def transaction_data():
    def factory(account_id, **overrides):
        record = {
            "account_id": account_id,
            "type": "expense",
            "amount": 250,
            "currency": "INR",
            "category": "food",
            "date": FIXED_NOW - DAY_MS,
        }
        record.update(overrides)
        return record
    return factory


@pytest.fixture
def budget_data():
    def factory(**overrides):
        record = {
            "name": "Groceries",
            "amount": 200,
            "currency": "INR",
            "period": "monthly",
            "category": "food",
            "start_date": FIXED_NOW - 10 * DAY_MS,
            "end_date": FIXED_NOW + 20 * DAY_MS,
        }
        record.update(overrides)
        return record
    return factory


@pytest.fixture
def investment_data():
    def factory(**overrides):
        record = {
            "name": "Index Fund",
            "type": "stock",
            "symbol": "NIFTY",
            "quantity": 10,
            "purchase_price": 50,
            "current_price": 55,
            "currency": "INR",
            "purchase_date": FIXED_NOW - 100 * DAY_MS,
        }
        record.update(overrides)
        return record
    return factory


@pytest.fixture
def goal_data():
    def factory(**overrides):
        record = {
            "name": "Emergency Fund",
            "target_amount": 10000,
            "current_amount": 2500,
            "currency": "INR",
            "deadline": FIXED_NOW + 180 * DAY_MS,
            "category": "emergency",
            "priority": "high",
            "status": "in_progress",
        }
        record.update(overrides)
        return record
    return factory
