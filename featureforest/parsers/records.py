"""Parse line-oriented feature logs into FeatureRecord models.

Line format::

    <start> <end> <program_id> <progress_status> <assigned_team> <parent>-><id>

``<parent>`` is the literal ``null`` for root features.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, Iterator, Optional, TextIO, Union

from featureforest.date_utils import parse_offset_timestamp
from featureforest.errors import (
    IngestionError,
    InputReadError,
    InvalidTimestampError,
    MalformedLineError,
    MalformedRelationError,
)
from featureforest.models import FeatureRecord

logger = logging.getLogger("featureforest.parsers")

FIELD_COUNT = 6
RELATION_SEPARATOR = "->"
NULL_PARENT = "null"
STDIN_SOURCE = "<stdin>"


def _parse_timestamp(field: str, value: str):
    try:
        return parse_offset_timestamp(value)
    except ValueError as exc:
        raise InvalidTimestampError(field, value, str(exc)) from exc


def parse_relation(relation: str) -> tuple[Optional[str], str]:
    """Split ``parent->id`` into ``(parent_id, id)``; ``null`` parents become None."""
    parts = relation.split(RELATION_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedRelationError(relation, RELATION_SEPARATOR)
    parent_token, id_token = parts
    parent_id = None if parent_token == NULL_PARENT else parent_token
    return parent_id, id_token


def parse_record_line(line: str) -> FeatureRecord:
    """Parse one line into a record, raising a RecordParseError subclass on failure."""
    fields = line.split()
    if len(fields) != FIELD_COUNT:
        raise MalformedLineError(line.strip(), FIELD_COUNT, len(fields))

    start_raw, end_raw, program_id, progress_status, assigned_team, relation = fields
    parent_id, feature_id = parse_relation(relation)
    return FeatureRecord(
        id=feature_id,
        parent_id=parent_id,
        program_id=program_id,
        progress_status=progress_status,
        assigned_team=assigned_team,
        start=_parse_timestamp("start", start_raw),
        end=_parse_timestamp("end", end_raw),
    )


def iter_records(lines: Iterable[str], source: str = "") -> Iterator[FeatureRecord]:
    """Lazily parse ``lines``; the first bad line aborts with its line number attached."""
    line_number = 0
    try:
        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                yield parse_record_line(line)
            except IngestionError as exc:
                exc.with_location(line_number, source)
                raise
    except (OSError, UnicodeDecodeError) as exc:
        raise InputReadError(
            f"failed reading input after line {line_number}: {exc}",
            source=source,
        ) from exc


def open_input(path: Union[str, Path, None] = None) -> tuple[TextIO, str]:
    """Return ``(handle, source)`` for ``path``; stdin when None or ``-``.

    The caller owns the handle and closes it unless it is ``sys.stdin``.
    """
    if path is None or str(path) == "-":
        return sys.stdin, STDIN_SOURCE

    input_path = Path(path)
    try:
        handle = input_path.open("r", encoding="utf-8")
    except OSError as exc:
        raise InputReadError(f"cannot open input: {exc}", source=str(input_path)) from exc
    logger.debug("Opened %s", input_path)
    return handle, str(input_path)
