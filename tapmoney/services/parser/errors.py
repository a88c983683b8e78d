"""
Ingestion Error Taxonomy

Every way a submission can fail has its own class, so the orchestrator
can pick the right message without parsing strings.

    IngestionError
    ├── TransportFailure          endpoint unreachable, timeout, non-2xx
    │   └── MalformedEnvelope     body is not {"data": [...], "raw": "..."}
    ├── DecodeError               one wire object is unusable
    │   ├── MissingField
    │   ├── TypeMismatch
    │   ├── ValueMissing
    │   ├── Corrupted
    │   └── UnknownDecodeFailure
    ├── PartialOrFullDecodeFailure  a response had at least one DecodeError
    └── EmptyResult               well-formed response, zero records
"""

from typing import Optional


class IngestionError(Exception):
    """Base exception for ingestion errors."""


class TransportFailure(IngestionError):
    """The remote parser could not be reached or answered with an error status."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class MalformedEnvelope(TransportFailure):
    """The response body is not the expected JSON envelope."""


class DecodeError(IngestionError):
    """Base class for a wire object that could not become a record."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)


class MissingField(DecodeError):
    """A required key is absent."""

    def __init__(self, field_name: str):
        super().__init__(f"missing field '{field_name}'", field_name)


class TypeMismatch(DecodeError):
    """A key holds a value of the wrong JSON type."""

    def __init__(self, expected_type: str, field_name: str):
        self.expected_type = expected_type
        super().__init__(
            f"field '{field_name}' should be of type {expected_type}",
            field_name,
        )


class ValueMissing(DecodeError):
    """A required key is present but null."""

    def __init__(self, field_name: str):
        super().__init__(f"field '{field_name}' is null", field_name)


class Corrupted(DecodeError):
    """The value has the right type but cannot be interpreted."""

    def __init__(self, detail: str, field_name: Optional[str] = None):
        self.detail = detail
        super().__init__(detail, field_name)


class UnknownDecodeFailure(DecodeError):
    """Decoding failed for a reason we do not classify."""

    def __init__(self, detail: str = "unknown decode failure"):
        super().__init__(detail)


class PartialOrFullDecodeFailure(IngestionError):
    """
    At least one element of the response failed to decode.

    The whole response is rejected - `cause` is the first failure,
    `index` its position in the data array.
    """

    def __init__(self, index: int, cause: DecodeError, total: int):
        self.index = index
        self.cause = cause
        self.total = total
        super().__init__(f"element {index + 1} of {total} could not be decoded: {cause}")


class EmptyResult(IngestionError):
    """The exchange succeeded but no records could be extracted."""

    def __init__(self, raw: Optional[str] = None):
        self.raw = raw
        super().__init__("no records could be extracted")
