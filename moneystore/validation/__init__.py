"""Schema registry and validation package."""

from moneystore.validation.schemas import (
    ACCOUNT_SCHEMA,
    BUDGET_SCHEMA,
    GOAL_SCHEMA,
    INVESTMENT_SCHEMA,
    SCHEMA_REGISTRY,
    TRANSACTION_SCHEMA,
    CollectionSchema,
    FieldRule,
    RecordRule,
    get_schema,
)
from moneystore.validation.validator import SchemaValidator, validate

__all__ = [
    "ACCOUNT_SCHEMA",
    "BUDGET_SCHEMA",
    "GOAL_SCHEMA",
    "INVESTMENT_SCHEMA",
    "SCHEMA_REGISTRY",
    "TRANSACTION_SCHEMA",
    "CollectionSchema",
    "FieldRule",
    "RecordRule",
    "SchemaValidator",
    "get_schema",
    "validate",
]
