"""Services package."""

from tapmoney.services.export import (
    CsvImportError,
    export_csv,
    export_plain_text,
    import_csv,
)
from tapmoney.services.parser import (
    IngestionError,
    RemoteParser,
    Transcoder,
)
from tapmoney.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStoreInterface,
    InMemoryAuditStorage,
    InMemoryExpenseStore,
    JsonFileExpenseStore,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Export services
    "CsvImportError",
    "export_csv",
    "export_plain_text",
    "import_csv",
    # Parser services
    "IngestionError",
    "RemoteParser",
    "Transcoder",
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "ExpenseStoreInterface",
    "InMemoryAuditStorage",
    "InMemoryExpenseStore",
    "JsonFileExpenseStore",
    "NotFoundError",
    "StorageError",
]
