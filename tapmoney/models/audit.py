"""
Audit Models for TapMoney

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every submission, from prompt to saved records
2. Debugging information when the remote parser misbehaves
3. Ability to reconstruct what happened to a record

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the ingestion pipeline has its own event type.
    """
    # Submission
    PROMPT_SUBMITTED = "prompt_submitted"

    # Remote parsing
    PARSE_COMPLETED = "parse_completed"
    PARSE_FAILED = "parse_failed"
    EMPTY_RESULT = "empty_result"

    # Persistence
    RECORDS_SAVED = "records_saved"
    RECORD_UPDATED = "record_updated"
    RECORDS_DELETED = "records_deleted"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'record', 'submission')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one submission)"
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
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.prompt_submitted(prompt, correlation_id)
        event = AuditEventBuilder.records_saved(record_ids, total, correlation_id)
    """

    @staticmethod
    def prompt_submitted(
        prompt: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROMPT_SUBMITTED,
            entity_type="submission",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="Prompt submitted for parsing",
            details={
                "prompt_length": len(prompt),
            },
            is_user_action=True,
        )

    @staticmethod
    def parse_completed(
        record_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_COMPLETED,
            entity_type="submission",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Remote parser returned {record_count} records",
            details={
                "record_count": record_count,
            },
        )

    @staticmethod
    def parse_failed(
        error_kind: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="submission",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Parsing failed: {error_kind}",
            error_code=error_kind,
            error_message=error_message,
        )

    @staticmethod
    def empty_result(
        raw: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMPTY_RESULT,
            severity=AuditSeverity.WARNING,
            entity_type="submission",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="Remote parser produced no records",
            details={
                "raw": raw,
            },
        )

    @staticmethod
    def records_saved(
        record_ids: list[UUID],
        total_amount: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDS_SAVED,
            entity_type="record",
            entity_id=record_ids[0] if len(record_ids) == 1 else None,
            correlation_id=correlation_id,
            description=f"{len(record_ids)} records saved (total ${total_amount})",
            details={
                "record_ids": [str(i) for i in record_ids],
                "total_amount": total_amount,
            },
        )

    @staticmethod
    def record_updated(record_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            entity_type="record",
            entity_id=record_id,
            description="Record edited",
            is_user_action=True,
        )

    @staticmethod
    def records_deleted(record_ids: list[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDS_DELETED,
            entity_type="record",
            entity_id=record_ids[0] if len(record_ids) == 1 else None,
            description=f"{len(record_ids)} records deleted",
            details={
                "record_ids": [str(i) for i in record_ids],
            },
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="record",
            correlation_id=correlation_id,
            description="Saving records failed",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
