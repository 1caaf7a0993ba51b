"""
Data Models Package

Enumerations, validation results and derived aggregation results used
throughout moneystore, plus the audit event models.
"""

from moneystore.models.records import (
    AccountType,
    BudgetOverview,
    BudgetPeriod,
    BudgetProgress,
    CashFlow,
    CategoryTotal,
    CollectionName,
    DailyTotal,
    GoalCategory,
    GoalPriority,
    GoalProgress,
    GoalStatus,
    InvestmentPerformance,
    InvestmentType,
    MonthlyTotals,
    PortfolioSummary,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from moneystore.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record enums
    "AccountType",
    "BudgetPeriod",
    "CollectionName",
    "GoalCategory",
    "GoalPriority",
    "GoalStatus",
    "InvestmentType",
    "TransactionType",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Derived results
    "BudgetOverview",
    "BudgetProgress",
    "CashFlow",
    "CategoryTotal",
    "DailyTotal",
    "GoalProgress",
    "InvestmentPerformance",
    "MonthlyTotals",
    "PortfolioSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
