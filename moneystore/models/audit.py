"""
Audit Models for moneystore

Every write and every lifecycle change of the Database is logged.
This provides:
1. Traceability of each mutation (what changed, in which collection)
2. Debugging information when a write is rejected
3. Ability to reconstruct the order writes were applied in

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Lifecycle
    DATABASE_OPENED = "database_opened"
    DATABASE_CLOSED = "database_closed"
    INITIALIZATION_FAILED = "initialization_failed"

    # Record writes
    RECORD_INSERTED = "record_inserted"
    RECORD_PATCHED = "record_patched"
    RECORD_REMOVED = "record_removed"
    WRITE_REJECTED = "write_rejected"

    # Multi-collection writes
    BATCH_COMMITTED = "batch_committed"
    BATCH_ROLLED_BACK = "batch_rolled_back"

    # Referential integrity
    DELETE_BLOCKED = "delete_blocked"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which record is this about?
    collection: Optional[str] = Field(
        default=None,
        description="Collection name (e.g., 'accounts')"
    )
    record_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Primary key of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all steps of one batch)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "collection": self.collection,
            "record_id": self.record_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_inserted("accounts", "acc_1")
        event = AuditEventBuilder.delete_blocked("acc_1", transaction_count=3)
    """

    @staticmethod
    def database_opened(
        database_name: str,
        collections: list[str],
        construction: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATABASE_OPENED,
            description=f"Database opened: {database_name}",
            details={
                "database_name": database_name,
                "collections": collections,
                "construction": construction,
            },
        )

    @staticmethod
    def database_closed(database_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATABASE_CLOSED,
            description=f"Database closed: {database_name}",
            details={"database_name": database_name},
        )

    @staticmethod
    def initialization_failed(
        database_name: str,
        error: BaseException,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INITIALIZATION_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Database initialization failed: {database_name}",
            details={"database_name": database_name},
            error_type=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def record_inserted(
        collection: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_INSERTED,
            collection=collection,
            record_id=record_id,
            correlation_id=correlation_id,
            description=f"Inserted {collection}/{record_id}",
        )

    @staticmethod
    def record_patched(
        collection: str,
        record_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_PATCHED,
            collection=collection,
            record_id=record_id,
            correlation_id=correlation_id,
            description=f"Patched {collection}/{record_id}",
            details={"fields": fields},
        )

    @staticmethod
    def record_removed(
        collection: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REMOVED,
            collection=collection,
            record_id=record_id,
            correlation_id=correlation_id,
            description=f"Removed {collection}/{record_id}",
        )

    @staticmethod
    def write_rejected(
        collection: str,
        operation: str,
        record_id: Optional[str],
        error: BaseException,
        issues: Optional[list[dict]] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_REJECTED,
            severity=AuditSeverity.WARNING,
            collection=collection,
            record_id=record_id,
            description=f"{operation.capitalize()} rejected on {collection}",
            details={
                "operation": operation,
                "issues": issues or [],
            },
            error_type=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def batch_committed(
        correlation_id: UUID,
        steps: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_COMMITTED,
            correlation_id=correlation_id,
            description=f"Batch committed with {steps} steps",
            details={"steps": steps},
        )

    @staticmethod
    def batch_rolled_back(
        correlation_id: UUID,
        failed_step: int,
        undone: int,
        error: BaseException,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Batch rolled back at step {failed_step}",
            details={
                "failed_step": failed_step,
                "undone_steps": undone,
            },
            error_type=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def delete_blocked(
        account_id: str,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_BLOCKED,
            severity=AuditSeverity.WARNING,
            collection="accounts",
            record_id=account_id,
            description="Account delete blocked by referencing transactions",
            details={"transaction_count": transaction_count},
        )
