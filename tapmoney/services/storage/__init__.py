"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory store and a JSON file store; designed to be swappable.
"""

from tapmoney.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStoreInterface,
    NotFoundError,
    StorageError,
    order_newest_first,
)
from tapmoney.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStore,
)
from tapmoney.services.storage.json_file import JsonFileExpenseStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStoreInterface",
    "order_newest_first",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryExpenseStore",
    "JsonFileExpenseStore",
]
