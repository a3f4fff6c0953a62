"""Offset-aware timestamp helpers."""
from __future__ import annotations

import re
from datetime import datetime, timezone

# Fractions are limited to the widths every supported fromisoformat accepts.
_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}(:\d{2}(\.(\d{3}|\d{6}))?)?([Zz]|[+-]\d{2}:\d{2})$"
)


def parse_offset_timestamp(token: str) -> datetime:
    """Parse an RFC 3339 style timestamp that carries an explicit offset.

    ``Z``/``z`` and ``+HH:MM``/``-HH:MM`` designators are accepted. Raises
    ``ValueError`` for date-only values, naive timestamps, and anything
    ``datetime.fromisoformat`` rejects.
    """
    cleaned = (token or "").strip()
    if not _TIMESTAMP_RE.match(cleaned):
        raise ValueError("expected YYYY-MM-DDTHH:MM[:SS[.fff|.ffffff]] followed by Z or +HH:MM")
    if cleaned[-1] in "Zz":
        cleaned = cleaned[:-1] + "+00:00"
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ValueError("timestamp has no offset information")
    return parsed


def format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def span_contains(outer_start: datetime, outer_end: datetime, inner_start: datetime, inner_end: datetime) -> bool:
    return outer_start <= inner_start and inner_end <= outer_end
