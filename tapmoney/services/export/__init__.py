"""Export services package."""

from tapmoney.services.export.exporter import (
    CSV_HEADER,
    CsvImportError,
    export_csv,
    export_plain_text,
    import_csv,
)

__all__ = [
    "CSV_HEADER",
    "CsvImportError",
    "export_csv",
    "export_plain_text",
    "import_csv",
]
