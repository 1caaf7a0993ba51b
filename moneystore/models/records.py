"""
Core Data Models for moneystore

Records themselves are plain dict documents (the store is a document
store). These models define everything around them:
1. The finite value sets each record kind may use
2. Validation results reported back to callers
3. The derived, never-persisted aggregation results

DESIGN DECISION: Derived values are returned as Pydantic models with
Decimal fields so the UI gets named, typed results instead of bare tuples.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CollectionName(str, Enum):
    """The five collections owned by a Database."""
    ACCOUNTS = "accounts"
    TRANSACTIONS = "transactions"
    BUDGETS = "budgets"
    INVESTMENTS = "investments"
    GOALS = "goals"


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    OTHER = "other"


class TransactionType(str, Enum):
    """
    Transaction direction.

    Only INCOME credits an account; EXPENSE and TRANSFER both debit it.
    """
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class BudgetPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class InvestmentType(str, Enum):
    STOCK = "stock"
    BOND = "bond"
    CRYPTO = "crypto"
    OTHER = "other"


class GoalCategory(str, Enum):
    SAVINGS = "savings"
    DEBT = "debt"
    INVESTMENT = "investment"
    PURCHASE = "purchase"
    EMERGENCY = "emergency"
    RETIREMENT = "retirement"


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single violated rule."""

    field: str = Field(
        ...,
        description="Field with the issue ('record' for cross-field rules)"
    )
    rule: str = Field(
        ...,
        description="Rule that failed (e.g., 'required', 'maximum', 'enum')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationResult(BaseModel):
    """
    Result of the two-stage schema validation.

    Stage 1: Field validation (presence, types, bounds, formats)
    Stage 2: Record validation (rules spanning several fields)
    """

    collection: CollectionName
    fields_valid: bool = Field(
        ...,
        description="Did field validation pass?"
    )
    record_valid: bool = Field(
        ...,
        description="Did record validation pass? False when stage 2 was skipped"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.fields_valid and self.record_valid and not self.issues

    @property
    def fields(self) -> list[str]:
        """Names of the fields with at least one issue, in order."""
        seen: list[str] = []
        for issue in self.issues:
            if issue.field not in seen:
                seen.append(issue.field)
        return seen


# =============================================================================
# DERIVED AGGREGATION RESULTS
# =============================================================================

class BudgetProgress(BaseModel):
    """Spending against one budget in the aggregation window."""

    budget_id: Optional[str] = None
    category: Optional[str] = None
    amount: Decimal
    spent: Decimal
    remaining: Decimal = Field(
        ...,
        description="amount - spent, negative when over budget"
    )
    progress: Decimal = Field(
        ...,
        ge=0,
        le=100,
        description="Percentage spent, capped at 100"
    )

    @property
    def over_budget(self) -> bool:
        return self.spent > self.amount


class BudgetOverview(BaseModel):
    """All budgets for one window, plus totals."""

    window_start: int
    window_end: int
    budgets: list[BudgetProgress] = Field(default_factory=list)
    total_budgeted: Decimal
    total_spent: Decimal


class InvestmentPerformance(BaseModel):
    """Value and gain of a single holding."""

    investment_id: Optional[str] = None
    value: Decimal
    cost: Decimal
    gain: Decimal
    gain_pct: Decimal = Field(
        ...,
        description="(value / cost - 1) * 100, zero when cost is zero"
    )


class PortfolioSummary(BaseModel):
    value: Decimal
    cost: Decimal
    gain: Decimal
    gain_pct: Decimal
    holdings: int = Field(ge=0)


class GoalProgress(BaseModel):
    goal_id: Optional[str] = None
    progress: Decimal = Field(
        ...,
        description="current / target * 100, zero when target is zero"
    )
    remaining: Decimal
    days_remaining: Optional[int] = None


class MonthlyTotals(BaseModel):
    """Income and expenses for one calendar month."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="YYYY-MM"
    )
    income: Decimal
    expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class CategoryTotal(BaseModel):
    category: str
    amount: Decimal


class DailyTotal(BaseModel):
    day: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="YYYY-MM-DD (UTC)"
    )
    amount: Decimal


class CashFlow(BaseModel):
    """Income and expenses over a trailing window."""

    window_days: int = Field(ge=1)
    income: Decimal
    expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses
