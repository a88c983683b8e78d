"""
JSON File Storage Implementation

DESIGN DECISION: A single JSON document is enough for a personal expense
log - a few thousand records load in milliseconds, and the file is readable
(and fixable) by hand.

Layout:
    {"version": 1, "records": [{"id": "<uuid>", <wire fields>}, ...]}

Records use the same wire format as the remote parser, so timestamps keep
their explicit offset. The list is in insertion order.

TRADEOFFS:
- The whole file is rewritten on every mutation (fine at this scale)
- Writes go to a temp file and are swapped in with os.replace, so a crash
  never leaves a half-written document
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tapmoney.config import StorageSettings, get_settings
from tapmoney.models.expense import ExpenseRecord
from tapmoney.services.parser.errors import DecodeError
from tapmoney.services.parser.transcoder import Transcoder
from tapmoney.services.storage.interface import StorageError
from tapmoney.services.storage.memory import InMemoryExpenseStore


logger = structlog.get_logger(__name__)

FILE_FORMAT_VERSION = 1


class JsonFileExpenseStore(InMemoryExpenseStore):
    """
    Expense store persisted to a JSON file.

    The in-memory state only changes after the file write succeeded,
    so a failed write leaves both the file and the store untouched.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        settings: Optional[StorageSettings] = None,
    ):
        self._settings = settings or get_settings().storage
        self._path = Path(path or self._settings.data_path)
        # Our own files always carry valid timestamps - no "now" fallback on load.
        self._transcoder = Transcoder(strict=True)
        self._write_with_retry = retry(
            stop=stop_after_attempt(self._settings.write_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )(self._write_file)
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> list[ExpenseRecord]:
        if not self._path.exists():
            return []

        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read {self._path}: {e}") from e

        if not isinstance(document, dict) or not isinstance(document.get("records"), list):
            raise StorageError(f"{self._path} is not a record file")

        records = []
        for position, row in enumerate(document["records"]):
            try:
                record = self._transcoder.decode(row)
                records.append(record.model_copy(update={"id": UUID(row["id"])}))
            except (DecodeError, KeyError, TypeError, ValueError) as e:
                raise StorageError(
                    f"Record {position} in {self._path} is invalid: {e}"
                ) from e

        logger.info("records_loaded", path=str(self._path), count=len(records))
        return records

    async def _commit(self, staged: dict[UUID, ExpenseRecord]) -> None:
        document = {
            "version": FILE_FORMAT_VERSION,
            "records": [
                {"id": str(record.id), **self._transcoder.encode(record)}
                for record in staged.values()
            ],
        }
        try:
            await asyncio.to_thread(self._write_with_retry, document)
        except OSError as e:
            logger.error("records_write_failed", path=str(self._path), error=str(e))
            raise StorageError(f"Could not write {self._path}: {e}") from e

        await super()._commit(staged)

    def _write_file(self, document: dict) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=directory, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
