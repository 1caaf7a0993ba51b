"""
Derived Aggregation Functions

DESIGN DECISION: Aggregations are PURE and DETERMINISTIC.
They take a just-fetched snapshot (a list of record dicts) and return
typed results. They never read from or write to a Database, so callers
decide when to re-query and the same input always gives the same output.

All arithmetic is Decimal. Results are rounded to cents only at the end
of each computation, never in between.

Time handling:
- Timestamps are epoch milliseconds
- Calendar boundaries (month, day, ISO week) are computed in UTC unless
  a tzinfo is passed
- Trailing windows cover (now - window, now]
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from moneystore.analytics.money import HUNDRED, ZERO, quantize, safe_ratio, to_decimal
from moneystore.models.records import (
    BudgetOverview,
    BudgetPeriod,
    BudgetProgress,
    CashFlow,
    CategoryTotal,
    DailyTotal,
    GoalProgress,
    InvestmentPerformance,
    MonthlyTotals,
    PortfolioSummary,
    TransactionType,
)
from moneystore.queries import apply_query


Record = Mapping[str, Any]

MS_PER_DAY = 86_400_000
UNCATEGORIZED = "uncategorized"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# TIME HELPERS
# =============================================================================

def _to_datetime(ms: int, tz: tzinfo) -> datetime:
    return (_EPOCH + timedelta(milliseconds=ms)).astimezone(tz)


def _to_ms(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def _trailing_start(now_ms: int, window_days: int) -> int:
    if window_days < 1:
        raise ValueError("window_days must be at least 1")
    return now_ms - window_days * MS_PER_DAY


def _in_trailing_window(record: Record, start_ms: int, now_ms: int) -> bool:
    when = record.get("date")
    return when is not None and start_ms < when <= now_ms


def budget_window(now_ms: int, tz: tzinfo = timezone.utc) -> tuple[int, int]:
    """
    Calendar-month-to-date window: start of the current month through now.

    This window applies to every budget regardless of its period field.
    """
    now = _to_datetime(now_ms, tz)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return _to_ms(start), now_ms


def period_window(
    period: BudgetPeriod,
    now_ms: int,
    tz: tzinfo = timezone.utc,
) -> tuple[int, int]:
    """
    Period-to-date window for a budget period.

    daily: since midnight; weekly: since Monday midnight (ISO week);
    monthly: since the 1st; yearly: since January 1st.
    """
    period = BudgetPeriod(period)
    now = _to_datetime(now_ms, tz)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period is BudgetPeriod.DAILY:
        start = midnight
    elif period is BudgetPeriod.WEEKLY:
        start = midnight - timedelta(days=midnight.weekday())
    elif period is BudgetPeriod.MONTHLY:
        start = midnight.replace(day=1)
    else:
        start = midnight.replace(month=1, day=1)

    return _to_ms(start), now_ms


def expense_selector(start_ms: int, end_ms: int) -> dict:
    """Selector for expense transactions dated within [start_ms, end_ms]."""
    return {
        "type": TransactionType.EXPENSE.value,
        "date": {"$gte": start_ms, "$lte": end_ms},
    }


# =============================================================================
# ACCOUNTS
# =============================================================================

def total_balance(accounts: Iterable[Record]) -> Decimal:
    """Sum of account balances."""
    return quantize(sum((to_decimal(a.get("balance")) for a in accounts), ZERO))


def net_worth(accounts: Iterable[Record], investments: Iterable[Record]) -> Decimal:
    """Total balance plus the current value of every investment."""
    holdings = sum((investment_gain(i).value for i in investments), ZERO)
    return quantize(total_balance(accounts) + holdings)


# =============================================================================
# BUDGETS
# =============================================================================

def budget_progress(budget: Record, transactions: Iterable[Record]) -> BudgetProgress:
    """
    Spending against a budget.

    Sums the expense transactions whose category equals the budget's.
    The caller chooses the window by choosing the transactions.

    A zero-amount budget reports 100% once anything is spent, else 0%.
    """
    category = budget.get("category")
    amount = to_decimal(budget.get("amount"))
    spent = sum(
        (
            to_decimal(tx.get("amount"))
            for tx in transactions
            if tx.get("type") == TransactionType.EXPENSE.value
            and tx.get("category") == category
        ),
        ZERO,
    )

    if amount > 0:
        progress = min(spent / amount * HUNDRED, HUNDRED)
    else:
        progress = HUNDRED if spent > 0 else ZERO

    return BudgetProgress(
        budget_id=budget.get("id"),
        category=category,
        amount=quantize(amount),
        spent=quantize(spent),
        remaining=quantize(amount - spent),
        progress=quantize(progress),
    )


def budget_overview(
    budgets: Iterable[Record],
    transactions: Iterable[Record],
    now_ms: int,
    *,
    period_aware: bool = False,
    tz: tzinfo = timezone.utc,
) -> BudgetOverview:
    """
    Progress for every budget.

    By default every budget uses the calendar-month-to-date window.
    With period_aware=True each budget uses the window of its own period;
    the overview then spans the widest of those windows.
    """
    budgets = list(budgets)
    transactions = list(transactions)

    if period_aware:
        windows = [period_window(b["period"], now_ms, tz) for b in budgets]
    else:
        windows = [budget_window(now_ms, tz)] * len(budgets)

    results = []
    filtered: dict[tuple[int, int], list] = {}
    for budget, window in zip(budgets, windows):
        if window not in filtered:
            filtered[window] = apply_query(transactions, expense_selector(*window))
        results.append(budget_progress(budget, filtered[window]))

    window_start = min((start for start, _ in windows), default=budget_window(now_ms, tz)[0])

    return BudgetOverview(
        window_start=window_start,
        window_end=now_ms,
        budgets=results,
        total_budgeted=quantize(sum((r.amount for r in results), ZERO)),
        total_spent=quantize(sum((r.spent for r in results), ZERO)),
    )


# =============================================================================
# INVESTMENTS
# =============================================================================

def investment_gain(investment: Record) -> InvestmentPerformance:
    """
    Value and gain of one holding.

    value = current_price * quantity (purchase price when no current
    price is recorded); gain% is zero when the cost is zero.
    """
    quantity = to_decimal(investment.get("quantity"))
    purchase_price = to_decimal(investment.get("purchase_price"))
    current = investment.get("current_price")
    current_price = purchase_price if current is None else to_decimal(current)

    value = current_price * quantity
    cost = purchase_price * quantity
    gain_pct = (safe_ratio(value, cost) - 1) * HUNDRED if cost else ZERO

    return InvestmentPerformance(
        investment_id=investment.get("id"),
        value=quantize(value),
        cost=quantize(cost),
        gain=quantize(value - cost),
        gain_pct=quantize(gain_pct),
    )


def portfolio_summary(investments: Iterable[Record]) -> PortfolioSummary:
    holdings = [investment_gain(i) for i in investments]
    value = sum((h.value for h in holdings), ZERO)
    cost = sum((h.cost for h in holdings), ZERO)
    gain_pct = (value / cost - 1) * HUNDRED if cost else ZERO

    return PortfolioSummary(
        value=quantize(value),
        cost=quantize(cost),
        gain=quantize(value - cost),
        gain_pct=quantize(gain_pct),
        holdings=len(holdings),
    )


# =============================================================================
# GOALS
# =============================================================================

def goal_progress(goal: Record, now_ms: Optional[int] = None) -> GoalProgress:
    """
    Completion of a savings goal.

    days_remaining is only computed when now_ms is given; it is negative
    once the deadline has passed.
    """
    target = to_decimal(goal.get("target_amount"))
    current = to_decimal(goal.get("current_amount"))

    days_remaining = None
    if now_ms is not None and goal.get("deadline") is not None:
        days_remaining = (goal["deadline"] - now_ms) // MS_PER_DAY

    return GoalProgress(
        goal_id=goal.get("id"),
        progress=quantize(safe_ratio(current, target) * HUNDRED),
        remaining=quantize(max(target - current, ZERO)),
        days_remaining=days_remaining,
    )


def average_goal_progress(goals: Iterable[Record]) -> Decimal:
    progresses = [goal_progress(g).progress for g in goals]
    if not progresses:
        return quantize(ZERO)
    return quantize(sum(progresses, ZERO) / len(progresses))


# =============================================================================
# TRANSACTION SERIES
# =============================================================================

def monthly_series(
    transactions: Iterable[Record],
    month_count: int = 6,
    *,
    tz: tzinfo = timezone.utc,
) -> list[MonthlyTotals]:
    """
    Income and expenses per calendar month.

    Returns the most recent month_count months that have transactions,
    oldest first. Only income counts as income; expense and transfer
    both count as expenses.
    """
    if month_count < 1:
        raise ValueError("month_count must be at least 1")

    buckets: dict[str, dict[str, Decimal]] = defaultdict(
        lambda: {"income": ZERO, "expenses": ZERO}
    )
    for tx in transactions:
        when = _to_datetime(tx["date"], tz)
        key = f"{when.year:04d}-{when.month:02d}"
        side = "income" if tx.get("type") == TransactionType.INCOME.value else "expenses"
        buckets[key][side] += to_decimal(tx.get("amount"))

    recent = sorted(buckets)[-month_count:]
    return [
        MonthlyTotals(
            month=month,
            income=quantize(buckets[month]["income"]),
            expenses=quantize(buckets[month]["expenses"]),
        )
        for month in recent
    ]


def category_breakdown(
    transactions: Iterable[Record],
    window_days: int = 30,
    *,
    now_ms: int,
) -> list[CategoryTotal]:
    """Expense totals per category over the trailing window, largest first."""
    start = _trailing_start(now_ms, window_days)
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)

    for tx in transactions:
        if tx.get("type") != TransactionType.EXPENSE.value:
            continue
        if not _in_trailing_window(tx, start, now_ms):
            continue
        totals[tx.get("category") or UNCATEGORIZED] += to_decimal(tx.get("amount"))

    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [CategoryTotal(category=c, amount=quantize(a)) for c, a in ordered]


def daily_spending(
    transactions: Iterable[Record],
    days: int = 30,
    *,
    tz: tzinfo = timezone.utc,
) -> list[DailyTotal]:
    """Expense totals per day for the last `days` days that have expenses, oldest first."""
    if days < 1:
        raise ValueError("days must be at least 1")

    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.get("type") != TransactionType.EXPENSE.value:
            continue
        totals[_to_datetime(tx["date"], tz).strftime("%Y-%m-%d")] += to_decimal(tx.get("amount"))

    return [
        DailyTotal(day=day, amount=quantize(totals[day]))
        for day in sorted(totals)[-days:]
    ]


def cash_flow(
    transactions: Iterable[Record],
    window_days: int = 30,
    *,
    now_ms: int,
) -> CashFlow:
    """Income and expenses over the trailing window. Transfers are excluded."""
    start = _trailing_start(now_ms, window_days)
    income = expenses = ZERO

    for tx in transactions:
        if not _in_trailing_window(tx, start, now_ms):
            continue
        if tx.get("type") == TransactionType.INCOME.value:
            income += to_decimal(tx.get("amount"))
        elif tx.get("type") == TransactionType.EXPENSE.value:
            expenses += to_decimal(tx.get("amount"))

    return CashFlow(
        window_days=window_days,
        income=quantize(income),
        expenses=quantize(expenses),
    )
