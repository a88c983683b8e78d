"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability from prompt to saved records
2. Debugging capability when the remote parser misbehaves
3. A history the user can inspect

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace the events of one submission
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from tapmoney.config import get_settings
from tapmoney.models.audit import AuditEvent, AuditEventBuilder
from tapmoney.models.expense import ExpenseRecord
from tapmoney.services.storage import AuditStorageInterface


def configure_logging(json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for the whole package.

    Called once at import time with the configured renderer; call again
    to switch between JSON and console output.
    """
    if json_output is None:
        json_output = get_settings().app.log_json
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
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


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("tapmoney.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_prompt_submitted(
        self,
        prompt: str,
        correlation_id: UUID,
    ) -> None:
        """Log the start of a submission."""
        await self.log(AuditEventBuilder.prompt_submitted(
            prompt=prompt,
            correlation_id=correlation_id,
        ))

    async def log_parse_completed(
        self,
        record_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.parse_completed(
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    async def log_parse_failed(
        self,
        error_kind: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.parse_failed(
            error_kind=error_kind,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_empty_result(
        self,
        raw: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.empty_result(
            raw=raw,
            correlation_id=correlation_id,
        ))

    async def log_records_saved(
        self,
        records: list[ExpenseRecord],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.records_saved(
            record_ids=[r.id for r in records],
            total_amount=sum(r.amount for r in records),
            correlation_id=correlation_id,
        ))

    async def log_record_updated(self, record_id: UUID) -> None:
        await self.log(AuditEventBuilder.record_updated(record_id))

    async def log_records_deleted(self, record_ids: list[UUID]) -> None:
        await self.log(AuditEventBuilder.records_deleted(record_ids))

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new submission.
    Pass it through all subsequent operations.
    """
    return uuid4()
