"""
Audit Logger

DESIGN DECISION: Every write and lifecycle change in the store is logged.
This provides:
1. Complete traceability of mutations
2. Debugging capability when writes are rejected
3. An optional persistent trail through an AuditStorageInterface sink

The audit logger:
- Is async so it can sit on the same await path as the writes it records
- Never raises because a sink failed (the write already happened)
- Supports correlation IDs to group the steps of one batch
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from moneystore.config import LoggingSettings
from moneystore.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from moneystore.services.storage import AuditStorageInterface


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Called once by the application entry point.
    """
    settings = settings or LoggingSettings()
    level = getattr(logging, settings.level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    logging.getLogger("moneystore").setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit sink (for persistence and inspection), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Sink for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("moneystore.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to the sink if available.

        Returns True if the sink write succeeded (or no sink configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_database_opened(
        self,
        database_name: str,
        collections: list[str],
        construction: int,
    ) -> None:
        await self.log(AuditEventBuilder.database_opened(
            database_name=database_name,
            collections=collections,
            construction=construction,
        ))

    async def log_database_closed(self, database_name: str) -> None:
        await self.log(AuditEventBuilder.database_closed(database_name))

    async def log_initialization_failed(
        self,
        database_name: str,
        error: BaseException,
    ) -> None:
        await self.log(AuditEventBuilder.initialization_failed(database_name, error))

    async def log_record_inserted(
        self,
        collection: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_inserted(
            collection=collection,
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_record_patched(
        self,
        collection: str,
        record_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_patched(
            collection=collection,
            record_id=record_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_record_removed(
        self,
        collection: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_removed(
            collection=collection,
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_write_rejected(
        self,
        collection: str,
        operation: str,
        record_id: Optional[str],
        error: BaseException,
        issues: Optional[list[dict]] = None,
    ) -> None:
        await self.log(AuditEventBuilder.write_rejected(
            collection=collection,
            operation=operation,
            record_id=record_id,
            error=error,
            issues=issues,
        ))

    async def log_batch_committed(self, correlation_id: UUID, steps: int) -> None:
        await self.log(AuditEventBuilder.batch_committed(correlation_id, steps))

    async def log_batch_rolled_back(
        self,
        correlation_id: UUID,
        failed_step: int,
        undone: int,
        error: BaseException,
    ) -> None:
        await self.log(AuditEventBuilder.batch_rolled_back(
            correlation_id=correlation_id,
            failed_step=failed_step,
            undone=undone,
            error=error,
        ))

    async def log_delete_blocked(self, account_id: str, transaction_count: int) -> None:
        await self.log(AuditEventBuilder.delete_blocked(account_id, transaction_count))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step write (e.g., a batch).
    Pass it through all subsequent operations.
    """
    return uuid4()
