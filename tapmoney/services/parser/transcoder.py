"""
Wire <-> Record Transcoder

Converts expense objects produced by the remote parser into
ExpenseRecord, and back.

DESIGN DECISION: Classification happens here, presentation does not.
The transcoder raises a DecodeError subclass naming the offending field;
turning that into a sentence for the user is the orchestrator's job.

Timestamps travel as `yyyy-MM-ddTHH:mm±hh:mm` (minute precision, explicit
offset). An unparseable timestamp falls back to "now" by default (lenient),
with a warning logged for every fallback. Strict mode raises Corrupted instead.
"""

import re
from datetime import datetime
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from tapmoney.models.expense import CIVIL_TIMEZONE, ExpenseRecord, WireExpense
from tapmoney.services.parser.errors import (
    Corrupted,
    DecodeError,
    MissingField,
    TypeMismatch,
    UnknownDecodeFailure,
    ValueMissing,
)


logger = structlog.get_logger(__name__)

TIMESTAMP_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(Z|[+-]\d{2}:\d{2})$"
)

# pydantic error type -> type name shown to the user
_EXPECTED_TYPES = {
    "string_type": "string",
    "int_type": "integer",
}


def parse_timestamp(text: str) -> datetime:
    """
    Parse a wire timestamp into an aware datetime in the civil timezone.

    Raises ValueError if the text does not match the wire format.
    """
    if not TIMESTAMP_PATTERN.match(text):
        raise ValueError(f"timestamp '{text}' does not match yyyy-MM-ddTHH:mm±hh:mm")
    parsed = datetime.strptime(text, "%Y-%m-%dT%H:%M%z")
    return parsed.astimezone(CIVIL_TIMEZONE)


def format_timestamp(instant: datetime) -> str:
    """Format an instant as a wire timestamp, expressed in the civil timezone."""
    civil = instant.astimezone(CIVIL_TIMEZONE)
    offset_minutes = int(civil.utcoffset().total_seconds() // 60)
    sign = "+" if offset_minutes >= 0 else "-"
    hours, minutes = divmod(abs(offset_minutes), 60)
    return f"{civil:%Y-%m-%dT%H:%M}{sign}{hours:02d}:{minutes:02d}"


class Transcoder:
    """
    Bidirectional converter between wire dicts and ExpenseRecord.

    Args:
        strict: Raise Corrupted on an unparseable timestamp instead of
                falling back to the current time.
        clock: Source of "now" for the lenient fallback.
    """

    def __init__(
        self,
        strict: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._strict = strict
        self._clock = clock or (lambda: datetime.now(CIVIL_TIMEZONE))

    @property
    def strict(self) -> bool:
        return self._strict

    def decode(self, wire_object: Any) -> ExpenseRecord:
        """
        Turn one wire object into a new ExpenseRecord.

        Raises:
            DecodeError: one of its subclasses, naming the failing field
        """
        try:
            wire = WireExpense.model_validate(wire_object)
        except ValidationError as e:
            raise self._classify(e) from e

        return ExpenseRecord(
            icon=wire.icon,
            title=wire.title,
            amount=wire.amount,
            category=wire.category,
            timestamp=self._decode_timestamp(wire.timestamp),
            note=wire.note,
        )

    def encode(self, record: ExpenseRecord) -> dict:
        """Turn a record into its wire dict (the id is not part of the wire format)."""
        return {
            "icon": record.icon,
            "title": record.title,
            "amount": record.amount,
            "category": record.category,
            "timestamp": format_timestamp(record.timestamp),
            "note": record.note,
        }

    def _decode_timestamp(self, text: str) -> datetime:
        try:
            return parse_timestamp(text)
        except ValueError as e:
            if self._strict:
                raise Corrupted(str(e), field_name="timestamp") from e
            fallback = self._clock()
            logger.warning(
                "timestamp_fallback",
                timestamp=text,
                fallback=fallback.isoformat(),
            )
            return fallback

    def _classify(self, error: ValidationError) -> DecodeError:
        """Map the first pydantic error onto the decode taxonomy."""
        errors = error.errors()
        if not errors:
            return UnknownDecodeFailure()

        first = errors[0]
        error_type = first.get("type", "")
        loc = first.get("loc", ())
        field_name = str(loc[0]) if loc else None

        if error_type == "model_type":
            return Corrupted(
                f"expected an expense object, got {type(first.get('input')).__name__}"
            )
        if field_name is None:
            return UnknownDecodeFailure(first.get("msg", "unknown decode failure"))
        if error_type == "missing":
            return MissingField(field_name)
        if first.get("input") is None:
            return ValueMissing(field_name)
        if error_type in _EXPECTED_TYPES:
            return TypeMismatch(_EXPECTED_TYPES[error_type], field_name)
        if error_type == "value_error":
            message = first.get("msg", "").removeprefix("Value error, ")
            return Corrupted(message, field_name=field_name)

        return UnknownDecodeFailure(f"{field_name}: {first.get('msg', error_type)}")
