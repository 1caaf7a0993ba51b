"""Read-only aggregations over record snapshots, plus fixed-point money helpers."""

from moneystore.analytics.aggregations import (
    MS_PER_DAY,
    UNCATEGORIZED,
    average_goal_progress,
    budget_overview,
    budget_progress,
    budget_window,
    cash_flow,
    category_breakdown,
    daily_spending,
    expense_selector,
    goal_progress,
    investment_gain,
    monthly_series,
    net_worth,
    period_window,
    portfolio_summary,
    total_balance,
)
from moneystore.analytics.money import (
    CENT,
    CURRENCIES,
    CurrencyConfig,
    format_currency,
    get_currency_config,
    quantize,
    round_currency,
    safe_ratio,
    to_decimal,
)

__all__ = [
    "CENT",
    "CURRENCIES",
    "CurrencyConfig",
    "MS_PER_DAY",
    "UNCATEGORIZED",
    "average_goal_progress",
    "budget_overview",
    "budget_progress",
    "budget_window",
    "cash_flow",
    "category_breakdown",
    "daily_spending",
    "expense_selector",
    "format_currency",
    "get_currency_config",
    "goal_progress",
    "investment_gain",
    "monthly_series",
    "net_worth",
    "period_window",
    "portfolio_summary",
    "quantize",
    "round_currency",
    "safe_ratio",
    "to_decimal",
    "total_balance",
]
