"""
Main Orchestrator for moneystore

This module ties the data layer together for the application entry
point and defines the multi-collection flows:
1. Startup (settings -> logging -> Database -> open with retries)
2. Posting a transaction (insert transaction + adjust account balance)
3. Deleting a transaction (remove transaction + reverse its balance effect)
4. Analytics reads (fresh snapshot -> pure aggregation -> typed result)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Account balance is authoritative and only moves together with the
  transaction that explains the move (one atomic batch)
- Accounts are deleted only through the integrity guard
- Every step is audited
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from moneystore import analytics
from moneystore.analytics.money import Number, format_currency, to_decimal
from moneystore.audit import AuditLogger, configure_logging
from moneystore.config import Settings, StoreSettings, get_settings
from moneystore.database import (
    Database,
    InitializationError,
    ReferentialIntegrityGuard,
    ValidationError,
)
from moneystore.models.records import (
    BudgetOverview,
    CashFlow,
    CategoryTotal,
    CollectionName,
    DailyTotal,
    GoalProgress,
    MonthlyTotals,
    PortfolioSummary,
    TransactionType,
    ValidationIssue,
)
from moneystore.services.storage import AuditStorageInterface, Document


def balance_delta(transaction_type: str, amount: Number) -> Decimal:
    """
    Effect of a transaction on its account's balance.

    Income credits the account. Expense and transfer debit it.
    """
    value = to_decimal(amount)
    if transaction_type == TransactionType.INCOME.value:
        return value
    return -value


class TransactionLedger:
    """
    Posts and deletes transactions together with their balance effect.

    Flow (record_transaction):
    1. Compute the balance delta from type and amount
    2. Check the transaction currency matches the account
    3. Insert the transaction (schema + account reference checked)
    4. Adjust the account balance by the delta
    Steps 3 and 4 commit as one batch: both apply or neither does.
    """

    def __init__(self, database: Database):
        self._database = database

    async def record_transaction(self, fields: Mapping[str, Any]) -> Document:
        """
        Insert a transaction and post it to its account.

        Returns:
            The stored transaction

        Raises:
            ValidationError: If the amount is not a number or the currency
                             differs from the account's
            BatchError: If either step failed; .cause holds the
                        ValidationError / NotFoundError raised by the step
        """
        try:
            delta = balance_delta(fields.get("type"), fields.get("amount"))
        except ValueError as e:
            raise ValidationError(
                CollectionName.TRANSACTIONS.value,
                [ValidationIssue(field="amount", rule="type", message=str(e))],
            ) from e

        account = await self._database.accounts.find_by_id(fields.get("account_id"))
        if account is not None and fields.get("currency") != account.get("currency"):
            raise ValidationError(
                CollectionName.TRANSACTIONS.value,
                [ValidationIssue(
                    field="currency",
                    rule="account_currency",
                    message=f"Account {account['id']} holds {account.get('currency')}",
                )],
            )

        transaction, _account = await (
            self._database.batch()
            .insert(CollectionName.TRANSACTIONS, dict(fields))
            .adjust(CollectionName.ACCOUNTS, fields.get("account_id"), "balance", delta)
            .commit()
        )
        return transaction

    async def delete_transaction(self, transaction_id: str) -> Document:
        """
        Remove a transaction and reverse its effect on the account balance.

        Raises:
            NotFoundError: If the transaction does not exist
            BatchError: If the transaction changed concurrently
                        (cause is ConflictError) or the reversal failed
        """
        transaction = await self._database.transactions.get(transaction_id)
        delta = -balance_delta(transaction["type"], transaction["amount"])

        removed, _account = await (
            self._database.batch()
            .remove(CollectionName.TRANSACTIONS, transaction_id, expected=transaction)
            .adjust(CollectionName.ACCOUNTS, transaction["account_id"], "balance", delta)
            .commit()
        )
        return removed


class AnalyticsFlow:
    """
    Pull-based read flow behind the dashboard, budget and analytics screens.

    FLOW (every method):
    1. Fetch a fresh snapshot of the collections involved
    2. Run the pure aggregation over it
    3. Return the typed result

    Windows and series lengths come from StoreSettings; "now" comes from
    the database clock. Nothing is cached, so each call reflects every
    write completed before it.
    """

    def __init__(self, database: Database):
        self._database = database

    @property
    def _settings(self) -> StoreSettings:
        return self._database.settings

    async def net_worth(self) -> Decimal:
        accounts = await self._database.accounts.find()
        investments = await self._database.investments.find()
        return analytics.net_worth(accounts, investments)

    async def total_balance(self) -> Decimal:
        return analytics.total_balance(await self._database.accounts.find())

    async def budget_overview(self) -> BudgetOverview:
        budgets = await self._database.budgets.find()
        transactions = await self._database.transactions.find(
            {"type": TransactionType.EXPENSE.value}
        )
        return analytics.budget_overview(
            budgets,
            transactions,
            self._database.clock(),
            period_aware=self._settings.budget_period_aware,
        )

    async def portfolio(self) -> PortfolioSummary:
        return analytics.portfolio_summary(await self._database.investments.find())

    async def goals(self) -> list[GoalProgress]:
        now = self._database.clock()
        return [
            analytics.goal_progress(goal, now_ms=now)
            for goal in await self._database.goals.find(sort_by="deadline")
        ]

    async def monthly_series(self) -> list[MonthlyTotals]:
        return analytics.monthly_series(
            await self._database.transactions.find(),
            self._settings.monthly_series_months,
        )

    async def category_breakdown(self) -> list[CategoryTotal]:
        return analytics.category_breakdown(
            await self._database.transactions.find(),
            self._settings.recent_window_days,
            now_ms=self._database.clock(),
        )

    async def daily_spending(self) -> list[DailyTotal]:
        return analytics.daily_spending(
            await self._database.transactions.find(),
            self._settings.recent_window_days,
        )

    async def cash_flow(self) -> CashFlow:
        return analytics.cash_flow(
            await self._database.transactions.find(),
            self._settings.recent_window_days,
            now_ms=self._database.clock(),
        )

    def format_amount(self, amount: Number, currency: Optional[str] = None) -> str:
        """Format an amount in the given currency, or the configured default."""
        return format_currency(amount, currency or self._settings.default_currency)


@dataclass
class AppComponents:
    """Everything the UI layer needs, built once at startup."""

    database: Database
    guard: ReferentialIntegrityGuard
    ledger: TransactionLedger
    analytics: AnalyticsFlow
    audit_logger: AuditLogger
    settings: Settings


def create_app_components(
    settings: Optional[Settings] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    **database_options: Any,
) -> AppComponents:
    """
    Factory function to create all application components.

    The database is constructed but not opened; call open_database().

    Args:
        settings: Application settings. Loaded from the environment if None.
        audit_storage: Optional persistent sink for audit events.
                       If None, audit events are only logged locally.
        database_options: Passed through to Database (clock, id_generator,
                          backend_factory)
    """
    settings = settings or get_settings()
    configure_logging(settings.logging)

    audit_logger = AuditLogger(audit_storage)
    database = Database(settings.store, audit_logger=audit_logger, **database_options)

    return AppComponents(
        database=database,
        guard=ReferentialIntegrityGuard(database),
        ledger=TransactionLedger(database),
        analytics=AnalyticsFlow(database),
        audit_logger=audit_logger,
        settings=settings,
    )


async def open_database(
    database: Database,
    settings: Optional[StoreSettings] = None,
) -> Database:
    """
    Open the database, retrying failed initializations.

    Only InitializationError is retried; the last one is re-raised once
    the attempts are exhausted.
    """
    settings = settings or database.settings

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(settings.init_max_attempts),
        wait=wait_exponential(multiplier=settings.init_retry_wait_seconds, max=10),
        retry=retry_if_exception_type(InitializationError),
        reraise=True,
    ):
        with attempt:
            await database.open()

    return database
