"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON file for a real database later
2. Use in-memory storage for testing
3. Keep the ingestion and insights logic decoupled from storage

The interface is intentionally small - the core needs insert, delete and
an ordered read-all. Sorting and grouping happen on read, in Python.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional
from uuid import UUID

from tapmoney.models.expense import ExpenseRecord
from tapmoney.models.audit import AuditEvent


class ExpenseStoreInterface(ABC):
    """
    Abstract interface for expense record storage.

    The store exclusively owns the canonical copy of every record.
    Callers get copies; mutating them does not change the store.
    """

    @abstractmethod
    async def insert(self, record: ExpenseRecord) -> None:
        """
        Add a record.

        Raises:
            DuplicateError: If a record with the same id exists
        """
        pass

    @abstractmethod
    async def insert_many(self, records: Iterable[ExpenseRecord]) -> None:
        """
        Add several records, in order, atomically.

        Either every record is stored or none is.

        Raises:
            DuplicateError: If any id already exists (nothing is stored)
            StorageError: If the batch could not be persisted
        """
        pass

    @abstractmethod
    async def update(self, record: ExpenseRecord) -> None:
        """
        Replace the stored record that has the same id.

        Raises:
            NotFoundError: If no record has this id
        """
        pass

    @abstractmethod
    async def delete(self, record_id: UUID) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    async def delete_many(self, record_ids: Iterable[UUID]) -> int:
        """
        Delete exactly the selected records.

        Unknown ids are ignored.

        Returns:
            Number of records deleted
        """
        pass

    @abstractmethod
    async def get(self, record_id: UUID) -> Optional[ExpenseRecord]:
        """Retrieve a record by id, or None."""
        pass

    @abstractmethod
    async def list_records(self) -> list[ExpenseRecord]:
        """
        Read every record.

        Returns:
            Records ordered newest timestamp first; records with equal
            timestamps keep insertion order
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one submission, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


def order_newest_first(records: Iterable[ExpenseRecord]) -> list[ExpenseRecord]:
    """Newest timestamp first; the sort is stable so ties keep insertion order."""
    return sorted(records, key=lambda r: r.timestamp, reverse=True)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
