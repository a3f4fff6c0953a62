"""Ingestion error taxonomy.

Every failure raised while turning input lines into records derives from
``IngestionError``. Assembly has no error surface of its own.
"""
from __future__ import annotations

from typing import Optional


class IngestionError(Exception):
    kind = "ingestion_error"

    def __init__(self, message: str, *, line_number: Optional[int] = None, source: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.source = source

    def with_location(self, line_number: int, source: str = "") -> IngestionError:
        self.line_number = line_number
        if source:
            self.source = source
        return self

    def __str__(self) -> str:
        location = ""
        if self.source and self.line_number is not None:
            location = f"{self.source}:{self.line_number}: "
        elif self.line_number is not None:
            location = f"line {self.line_number}: "
        elif self.source:
            location = f"{self.source}: "
        return f"{location}{self.message}"


class RecordParseError(IngestionError):
    """A single line could not be turned into a record."""

    kind = "parse_error"


class MalformedLineError(RecordParseError):
    kind = "malformed_line"

    def __init__(self, line: str, expected: int, found: int) -> None:
        super().__init__(f"expected {expected} fields, found {found}: {line!r}")
        self.line = line
        self.expected = expected
        self.found = found


class MalformedRelationError(RecordParseError):
    kind = "malformed_relation"

    def __init__(self, relation: str, separator: str) -> None:
        super().__init__(f"relation must be '<parent>{separator}<id>', got {relation!r}")
        self.relation = relation
        self.separator = separator


class InvalidTimestampError(RecordParseError):
    kind = "invalid_timestamp"

    def __init__(self, field: str, value: str, reason: str) -> None:
        super().__init__(f"invalid {field} timestamp {value!r}: {reason}")
        self.field = field
        self.value = value
        self.reason = reason


class InputReadError(IngestionError):
    kind = "io_failure"
