"""Exception hierarchy for the ingestion pipeline."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigurationError(IngestError):
    """Required configuration is missing or invalid."""


class ParseError(IngestError, ValueError):
    """A frame could not be turned into a reading."""

    reason = "invalid frame"

    def __init__(self, frame: str, message: str) -> None:
        super().__init__(message)
        self.frame = frame


class FrameFormatError(ParseError):
    reason = "wrong field count"

    def __init__(self, frame: str, field_count: int, expected: int = 6) -> None:
        super().__init__(
            frame, f"Expected {expected} fields but found {field_count}."
        )
        self.field_count = field_count
        self.expected = expected


FieldCountError = FrameFormatError


class NumericFormatError(ParseError):
    reason = "invalid numeric value"

    def __init__(self, frame: str, field_index: int, field_name: str, raw_value: str) -> None:
        super().__init__(
            frame,
            f"Field {field_index} ({field_name}) is not a finite number: {raw_value!r}",
        )
        self.field_index = field_index
        self.field_name = field_name
        self.raw_value = raw_value


class StoreError(IngestError):
    """Failure reported by the document store."""


class StoreConnectionError(StoreError):
    pass


class WriteError(StoreError):
    pass


class SerialLinkError(IngestError):
    """Connection-level failure on the serial port."""


class SerialOpenError(SerialLinkError):
    pass


class SerialRuntimeError(SerialLinkError):
    pass
