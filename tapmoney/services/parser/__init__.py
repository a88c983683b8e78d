"""Remote parsing services package."""

from tapmoney.services.parser.errors import (
    Corrupted,
    DecodeError,
    EmptyResult,
    IngestionError,
    MalformedEnvelope,
    MissingField,
    PartialOrFullDecodeFailure,
    TransportFailure,
    TypeMismatch,
    UnknownDecodeFailure,
    ValueMissing,
)
from tapmoney.services.parser.remote_parser import RemoteParser
from tapmoney.services.parser.transcoder import (
    Transcoder,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    # Errors
    "Corrupted",
    "DecodeError",
    "EmptyResult",
    "IngestionError",
    "MalformedEnvelope",
    "MissingField",
    "PartialOrFullDecodeFailure",
    "TransportFailure",
    "TypeMismatch",
    "UnknownDecodeFailure",
    "ValueMissing",
    # Services
    "RemoteParser",
    "Transcoder",
    "format_timestamp",
    "parse_timestamp",
]
