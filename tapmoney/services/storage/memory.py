"""
In-Memory Storage

Used by tests and by anything that wants a throwaway store. The JSON file
store builds on the same bookkeeping and only adds persistence.
"""

import asyncio
from typing import Iterable, Optional
from uuid import UUID

from tapmoney.models.audit import AuditEvent
from tapmoney.models.expense import ExpenseRecord
from tapmoney.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStoreInterface,
    NotFoundError,
    order_newest_first,
)


class InMemoryExpenseStore(ExpenseStoreInterface):
    """
    Dict-backed expense store.

    Dict order is insertion order, which gives the tie-break
    for list_records(). Mutations are serialized by one lock.
    """

    def __init__(self, records: Optional[Iterable[ExpenseRecord]] = None):
        self._records: dict[UUID, ExpenseRecord] = {}
        self._lock = asyncio.Lock()
        for record in records or ():
            if record.id in self._records:
                raise DuplicateError(f"Duplicate record id: {record.id}")
            self._records[record.id] = record.model_copy(deep=True)

    async def insert(self, record: ExpenseRecord) -> None:
        await self.insert_many([record])

    async def insert_many(self, records: Iterable[ExpenseRecord]) -> None:
        batch = [r.model_copy(deep=True) for r in records]
        async with self._lock:
            staged = self._stage_insert(batch)
            await self._commit(staged)

    async def update(self, record: ExpenseRecord) -> None:
        async with self._lock:
            if record.id not in self._records:
                raise NotFoundError(f"No record with id {record.id}")
            staged = dict(self._records)
            staged[record.id] = record.model_copy(deep=True)
            await self._commit(staged)

    async def delete(self, record_id: UUID) -> bool:
        return await self.delete_many([record_id]) == 1

    async def delete_many(self, record_ids: Iterable[UUID]) -> int:
        selected = set(record_ids)
        async with self._lock:
            staged = {
                rid: record
                for rid, record in self._records.items()
                if rid not in selected
            }
            deleted = len(self._records) - len(staged)
            if deleted:
                await self._commit(staged)
            return deleted

    async def get(self, record_id: UUID) -> Optional[ExpenseRecord]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def list_records(self) -> list[ExpenseRecord]:
        snapshot = [r.model_copy(deep=True) for r in self._records.values()]
        return order_newest_first(snapshot)

    def __len__(self) -> int:
        return len(self._records)

    def _stage_insert(self, batch: list[ExpenseRecord]) -> dict[UUID, ExpenseRecord]:
        staged = dict(self._records)
        for record in batch:
            if record.id in staged:
                raise DuplicateError(f"Duplicate record id: {record.id}")
            staged[record.id] = record
        return staged

    async def _commit(self, staged: dict[UUID, ExpenseRecord]) -> None:
        """Make the staged state current. Subclasses persist it first."""
        self._records = staged


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)
