"""
Collection Schemas

DESIGN DECISION: Schemas are data, not code. Each collection is described
by a CollectionSchema (fields, constraints, required list, indexes and
cross-field rules) and a single generic validator interprets them.
Adding a field means editing a table entry, not writing a new class.

Constraint kinds supported per field:
- type: string | number | integer
- min_length / max_length / pattern / enum (strings)
- minimum / maximum / multiple_of (numbers)
- references (foreign key into another collection)
"""

import re
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from moneystore.models.records import (
    AccountType,
    BudgetPeriod,
    CollectionName,
    GoalCategory,
    GoalPriority,
    GoalStatus,
    InvestmentType,
    TransactionType,
)


ID_PATTERN = r"^[a-zA-Z0-9-_]+$"
CURRENCY_PATTERN = r"^[A-Z]{3}$"
MAX_TIMESTAMP = 9999999999999
MAX_AMOUNT = Decimal("1000000000")
MONEY_STEP = Decimal("0.01")
QUANTITY_STEP = Decimal("0.00000001")


class FieldRule(BaseModel):
    """Constraints for a single field."""

    model_config = ConfigDict(frozen=True)

    type: Literal["string", "number", "integer"]
    min_length: Optional[int] = Field(default=None, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    pattern: Optional[str] = None
    enum: Optional[tuple[str, ...]] = None
    minimum: Optional[Decimal] = None
    maximum: Optional[Decimal] = None
    multiple_of: Optional[Decimal] = Field(default=None, gt=0)
    references: Optional[CollectionName] = None

    @field_validator('pattern')
    @classmethod
    def validate_pattern(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid pattern {v!r}: {e}") from e
        return v

    @model_validator(mode='after')
    def validate_bounds(self) -> 'FieldRule':
        if self.minimum is not None and self.maximum is not None:
            if self.minimum > self.maximum:
                raise ValueError("minimum cannot be greater than maximum")
        if self.min_length is not None and self.max_length is not None:
            if self.min_length > self.max_length:
                raise ValueError("min_length cannot be greater than max_length")
        return self

    @property
    def is_numeric(self) -> bool:
        return self.type in ("number", "integer")


class RecordRule(BaseModel):
    """A comparison between two fields of the same record."""

    model_config = ConfigDict(frozen=True)

    left: str
    op: Literal["lt", "le"]
    right: str
    message: str


class CollectionSchema(BaseModel):
    """Validation descriptor for one collection."""

    model_config = ConfigDict(frozen=True)

    name: CollectionName
    version: int = Field(default=0, ge=0)
    primary_key: str = "id"
    properties: dict[str, FieldRule]
    required: tuple[str, ...]
    indexes: tuple[str, ...] = ()
    record_rules: tuple[RecordRule, ...] = ()
    future_on_insert: tuple[str, ...] = Field(
        default=(),
        description="Timestamp fields that must lie in the future when inserted"
    )

    @model_validator(mode='after')
    def validate_field_names(self) -> 'CollectionSchema':
        """Every referenced field name must be declared."""
        declared = set(self.properties)
        mentioned = {self.primary_key, *self.required, *self.indexes, *self.future_on_insert}
        for rule in self.record_rules:
            mentioned.update((rule.left, rule.right))
        unknown = sorted(mentioned - declared)
        if unknown:
            raise ValueError(f"Schema {self.name.value} mentions undeclared fields: {unknown}")
        if self.primary_key not in self.required:
            raise ValueError(f"Primary key of {self.name.value} must be required")
        return self

    @property
    def money_fields(self) -> dict[str, Decimal]:
        """Fractional numeric fields and the granularity they are stored at."""
        return {
            name: rule.multiple_of
            for name, rule in self.properties.items()
            if rule.type == "number" and rule.multiple_of is not None and rule.multiple_of < 1
        }

    @property
    def integer_fields(self) -> list[str]:
        return [name for name, rule in self.properties.items() if rule.type == "integer"]

    @property
    def references(self) -> dict[str, CollectionName]:
        return {
            name: rule.references
            for name, rule in self.properties.items()
            if rule.references is not None
        }


# =============================================================================
# SHARED FIELD RULES
# =============================================================================

ID_RULE = FieldRule(type="string", max_length=100, pattern=ID_PATTERN)
NAME_RULE = FieldRule(type="string", min_length=1, max_length=100)
CURRENCY_RULE = FieldRule(type="string", min_length=3, max_length=3, pattern=CURRENCY_PATTERN)
TIMESTAMP_RULE = FieldRule(type="integer", minimum=Decimal(0), maximum=Decimal(MAX_TIMESTAMP))
NOTES_RULE = FieldRule(type="string", max_length=500)
CATEGORY_RULE = FieldRule(type="string", max_length=100)
AMOUNT_RULE = FieldRule(type="number", minimum=Decimal(0), maximum=MAX_AMOUNT, multiple_of=MONEY_STEP)


def _enum_rule(values: type, max_length: int = 20) -> FieldRule:
    return FieldRule(
        type="string",
        enum=tuple(member.value for member in values),
        max_length=max_length,
    )


def _with_timestamps(properties: dict[str, FieldRule]) -> dict[str, FieldRule]:
    return {
        "id": ID_RULE,
        **properties,
        "created_at": TIMESTAMP_RULE,
        "updated_at": TIMESTAMP_RULE,
    }


# =============================================================================
# COLLECTION SCHEMAS
# =============================================================================

ACCOUNT_SCHEMA = CollectionSchema(
    name=CollectionName.ACCOUNTS,
    properties=_with_timestamps({
        "name": NAME_RULE,
        "type": _enum_rule(AccountType),
        "balance": FieldRule(
            type="number",
            minimum=-MAX_AMOUNT,
            maximum=MAX_AMOUNT,
            multiple_of=MONEY_STEP,
        ),
        "currency": CURRENCY_RULE,
        "institution": FieldRule(type="string", max_length=100),
        "notes": NOTES_RULE,
    }),
    required=("id", "name", "type", "balance", "currency"),
    indexes=("type", "created_at"),
)

TRANSACTION_SCHEMA = CollectionSchema(
    name=CollectionName.TRANSACTIONS,
    properties=_with_timestamps({
        "account_id": FieldRule(
            type="string",
            max_length=100,
            references=CollectionName.ACCOUNTS,
        ),
        "type": _enum_rule(TransactionType),
        "amount": AMOUNT_RULE,
        "currency": CURRENCY_RULE,
        "description": NOTES_RULE,
        "category": CATEGORY_RULE,
        "date": TIMESTAMP_RULE,
    }),
    required=("id", "account_id", "type", "amount", "currency", "date"),
    indexes=("account_id", "type", "date"),
)

BUDGET_SCHEMA = CollectionSchema(
    name=CollectionName.BUDGETS,
    properties=_with_timestamps({
        "name": NAME_RULE,
        "amount": AMOUNT_RULE,
        "currency": CURRENCY_RULE,
        "period": _enum_rule(BudgetPeriod),
        "category": CATEGORY_RULE,
        "start_date": TIMESTAMP_RULE,
        "end_date": TIMESTAMP_RULE,
    }),
    required=("id", "name", "amount", "currency", "period", "start_date", "end_date"),
    indexes=("period", "category"),
    record_rules=(
        RecordRule(
            left="start_date",
            op="lt",
            right="end_date",
            message="Start date must be before end date",
        ),
    ),
)

INVESTMENT_SCHEMA = CollectionSchema(
    name=CollectionName.INVESTMENTS,
    properties=_with_timestamps({
        "name": NAME_RULE,
        "type": _enum_rule(InvestmentType),
        "symbol": FieldRule(type="string", max_length=20),
        "quantity": FieldRule(
            type="number",
            minimum=Decimal(0),
            maximum=MAX_AMOUNT,
            multiple_of=QUANTITY_STEP,
        ),
        "purchase_price": AMOUNT_RULE,
        "current_price": AMOUNT_RULE,
        "currency": CURRENCY_RULE,
        "purchase_date": TIMESTAMP_RULE,
    }),
    required=("id", "name", "type", "quantity", "purchase_price", "currency", "purchase_date"),
    indexes=("type", "symbol"),
)

GOAL_SCHEMA = CollectionSchema(
    name=CollectionName.GOALS,
    properties=_with_timestamps({
        "name": NAME_RULE,
        "target_amount": AMOUNT_RULE,
        "current_amount": AMOUNT_RULE,
        "currency": CURRENCY_RULE,
        "deadline": TIMESTAMP_RULE,
        "category": _enum_rule(GoalCategory),
        "priority": _enum_rule(GoalPriority, max_length=10),
        "notes": NOTES_RULE,
        "status": _enum_rule(GoalStatus),
    }),
    required=("id", "name", "target_amount", "currency", "deadline", "category", "priority"),
    indexes=("status", "deadline", "category", "priority"),
    record_rules=(
        RecordRule(
            left="current_amount",
            op="le",
            right="target_amount",
            message="Current amount cannot exceed target amount",
        ),
    ),
    future_on_insert=("deadline",),
)


SCHEMA_REGISTRY: dict[CollectionName, CollectionSchema] = {
    schema.name: schema
    for schema in (
        ACCOUNT_SCHEMA,
        TRANSACTION_SCHEMA,
        BUDGET_SCHEMA,
        INVESTMENT_SCHEMA,
        GOAL_SCHEMA,
    )
}


def get_schema(name: CollectionName) -> CollectionSchema:
    return SCHEMA_REGISTRY[CollectionName(name)]
