"""
Main Orchestrator for TapMoney

This module ties together all the components and defines the
end-to-end flows for:
1. Ingestion (prompt → remote parser → records → store)
2. Ledger edits (update, delete, batch delete, export, import)
3. Insights (store snapshot → aggregates)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The ingestion pipeline is the ONLY place that turns errors into user
  messages, and the only writer of parsed records
- A failed submission never leaves a partial batch in the store
- One submission at a time per pipeline; extra submits are ignored

This is the "glue" that ensures the system works correctly
even when the remote parser behaves unexpectedly.
"""

import asyncio
from datetime import datetime
from typing import Callable, Iterable, Optional
from uuid import UUID

import structlog

from tapmoney.audit import AuditLogger, create_correlation_id
from tapmoney.insights import AggregationEngine
from tapmoney.models.expense import (
    ExpenseRecord,
    PipelineState,
    PipelineStatus,
)
from tapmoney.models.insights import DayGroup, InsightsReport
from tapmoney.services.export import export_csv, export_plain_text, import_csv
from tapmoney.services.parser import (
    Corrupted,
    DecodeError,
    EmptyResult,
    IngestionError,
    MissingField,
    PartialOrFullDecodeFailure,
    RemoteParser,
    TransportFailure,
    TypeMismatch,
    ValueMissing,
)
from tapmoney.services.storage import (
    ExpenseStoreInterface,
    InMemoryAuditStorage,
    InMemoryExpenseStore,
    JsonFileExpenseStore,
    StorageError,
)


logger = structlog.get_logger(__name__)

EMPTY_RESULT_MESSAGE = "Format error, please check wording or retry."

StatusListener = Callable[[PipelineStatus], None]


def describe_error(error: Exception) -> str:
    """
    Turn a classified failure into the message shown under the input box.

    The message names the offending field so the user knows what to reword.
    """
    if isinstance(error, PartialOrFullDecodeFailure):
        error = error.cause

    if isinstance(error, EmptyResult):
        return EMPTY_RESULT_MESSAGE
    if isinstance(error, MissingField):
        return f"Missing field: {error.field_name}"
    if isinstance(error, TypeMismatch):
        return f"Type error: {error.field_name} (expected {error.expected_type})"
    if isinstance(error, ValueMissing):
        return f"Missing value: {error.field_name}"
    if isinstance(error, Corrupted):
        return f"Data error: {error.detail}"
    if isinstance(error, DecodeError):
        return "Unknown decode error"
    if isinstance(error, TransportFailure):
        return f"Something went wrong: {error.detail}"
    if isinstance(error, StorageError):
        return f"Could not save records: {error}"
    return f"Something went wrong: {error}"


class IngestionPipeline:
    """
    Runs one user submission end-to-end.

    State machine:
        IDLE → SUBMITTING → IDLE     records saved
                          → FAILED   error_message set
        FAILED → SUBMITTING          on the next submission

    The UI observes the state through `status` (polling) or
    `subscribe()` (push). There is no global state.
    """

    def __init__(
        self,
        parser: Optional[RemoteParser] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._owns_parser = parser is None
        self._parser = parser or RemoteParser()
        self._audit_logger = audit_logger
        self._status = PipelineStatus()
        self._listeners: list[StatusListener] = []
        self._task: Optional[asyncio.Task] = None
        self._in_flight_id: Optional[UUID] = None
        self._saving: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def status(self) -> PipelineStatus:
        return self._status

    @property
    def is_busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a listener called with every new status.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_status(self, status: PipelineStatus) -> None:
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("status_listener_failed", state=status.state.value)

    def submit(
        self,
        prompt: str,
        store: ExpenseStoreInterface,
    ) -> Optional[asyncio.Task]:
        """
        Start parsing a prompt and saving its records.

        Must be called from a running event loop. Returns immediately.

        Returns:
            The task running the submission (its result is the list of
            saved records), or None if the submission was rejected:
            blank prompt, another submission in flight, or pipeline closed
        """
        text = prompt.strip()
        if not text:
            logger.debug("submission_rejected", reason="empty prompt")
            return None
        if self._closed:
            logger.warning("submission_rejected", reason="pipeline closed")
            return None
        if self.is_busy:
            logger.warning(
                "submission_ignored",
                in_flight=str(self._in_flight_id),
            )
            return None

        correlation_id = create_correlation_id()
        self._in_flight_id = correlation_id
        self._set_status(PipelineStatus(state=PipelineState.SUBMITTING))
        self._task = asyncio.create_task(self._run(text, store, correlation_id))
        return self._task

    async def _run(
        self,
        prompt: str,
        store: ExpenseStoreInterface,
        correlation_id: UUID,
    ) -> list[ExpenseRecord]:
        try:
            if self._audit_logger:
                await self._audit_logger.log_prompt_submitted(
                    prompt=prompt,
                    correlation_id=correlation_id,
                )
            records, raw = await self._parser.parse_with_raw(prompt)
            if not records:
                raise EmptyResult(raw)
            if self._audit_logger:
                await self._audit_logger.log_parse_completed(
                    record_count=len(records),
                    correlation_id=correlation_id,
                )
            if self._closed:
                self._set_status(PipelineStatus())
                return []
            # Once started, the save runs to completion even if the
            # submission is cancelled; aclose() waits for it.
            self._saving = asyncio.ensure_future(store.insert_many(records))
            await asyncio.shield(self._saving)
        except asyncio.CancelledError:
            self._set_status(PipelineStatus())
            raise
        except EmptyResult as e:
            if self._audit_logger:
                await self._audit_logger.log_empty_result(
                    raw=e.raw,
                    correlation_id=correlation_id,
                )
            self._fail(e)
            return []
        except TransportFailure as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="remote_parser",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            self._fail(e)
            return []
        except IngestionError as e:
            if self._audit_logger:
                await self._audit_logger.log_parse_failed(
                    error_kind=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            self._fail(e)
            return []
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            self._fail(e)
            return []
        except Exception as e:
            logger.exception("submission_crashed", correlation_id=str(correlation_id))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            self._fail(e)
            return []
        finally:
            self._in_flight_id = None
            self._saving = None

        if self._audit_logger:
            await self._audit_logger.log_records_saved(
                records=records,
                correlation_id=correlation_id,
            )
        logger.info("submission_completed", record_count=len(records))
        self._set_status(PipelineStatus(state=PipelineState.IDLE))
        return records

    def _fail(self, error: Exception) -> None:
        message = describe_error(error)
        logger.info("submission_failed", error_kind=type(error).__name__, message=message)
        self._set_status(PipelineStatus(state=PipelineState.FAILED, error_message=message))

    async def aclose(self) -> None:
        """
        Tear the pipeline down.

        Cancels the in-flight submission (its result is discarded and the
        store is not touched afterwards) and rejects any later submit.
        A save that already started is awaited instead, so the store is
        consistent when this returns.
        """
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            if self._saving is not None:
                await asyncio.wait([task])
            else:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if self._owns_parser:
            await self._parser.aclose()


class LedgerFlow:
    """
    Direct user edits of the record list, plus export and import.

    These bypass the remote parser entirely; they are still audited.
    """

    def __init__(
        self,
        store: ExpenseStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def add_record(self, record: ExpenseRecord) -> ExpenseRecord:
        """Add a record typed in by hand."""
        await self._store.insert(record)
        if self._audit_logger:
            await self._audit_logger.log_records_saved(records=[record])
        return record

    async def update_record(self, record: ExpenseRecord) -> ExpenseRecord:
        """Save an edited record (matched by id)."""
        await self._store.update(record)
        if self._audit_logger:
            await self._audit_logger.log_record_updated(record.id)
        return record

    async def delete_record(self, record_id: UUID) -> bool:
        return await self.delete_records([record_id]) == 1

    async def delete_records(self, record_ids: Iterable[UUID]) -> int:
        """Delete exactly the selected records."""
        selected = list(dict.fromkeys(record_ids))
        deleted = await self._store.delete_many(selected)
        if deleted and self._audit_logger:
            await self._audit_logger.log_records_deleted(selected)
        return deleted

    async def export_text(self) -> str:
        return export_plain_text(await self._store.list_records())

    async def export_csv(self) -> str:
        return export_csv(await self._store.list_records())

    async def import_csv(self, text: str) -> list[ExpenseRecord]:
        """Import a CSV export as new records, all or nothing."""
        records = import_csv(text)
        if records:
            await self._store.insert_many(records)
            if self._audit_logger:
                await self._audit_logger.log_records_saved(records=records)
        return records


class InsightsFlow:
    """
    Feeds the insights screen.

    Takes one snapshot of the store per call, then aggregates it;
    concurrent store mutations never show up half-applied.
    """

    def __init__(
        self,
        store: ExpenseStoreInterface,
        engine: Optional[AggregationEngine] = None,
    ):
        self._store = store
        self._engine = engine or AggregationEngine()

    @property
    def engine(self) -> AggregationEngine:
        return self._engine

    async def month_report(
        self,
        reference: Optional[datetime] = None,
    ) -> InsightsReport:
        snapshot = await self._store.list_records()
        return self._engine.build_report(snapshot, reference)

    async def day_groups(self) -> list[DayGroup]:
        snapshot = await self._store.list_records()
        return self._engine.entries_by_day(snapshot)


def create_app_components(
    use_file_storage: bool = True,
) -> tuple[IngestionPipeline, LedgerFlow, InsightsFlow, ExpenseStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        use_file_storage: Persist records to the configured JSON file.
                          Set to False for an in-memory store.

    Returns:
        (ingestion_pipeline, ledger_flow, insights_flow, store)
    """
    audit_logger = AuditLogger(InMemoryAuditStorage())

    if use_file_storage:
        store: ExpenseStoreInterface = JsonFileExpenseStore()
    else:
        store = InMemoryExpenseStore()

    pipeline = IngestionPipeline(audit_logger=audit_logger)
    ledger = LedgerFlow(store, audit_logger=audit_logger)
    insights = InsightsFlow(store)

    return pipeline, ledger, insights, store
