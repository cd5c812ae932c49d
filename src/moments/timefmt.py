"""Timestamp formatting and parsing for Moments entries.

Timestamp patterns use moment-style tokens (``YYYY-MM-DD HH:mm``), which
pendulum formats and parses natively. Instants are epoch milliseconds and
are rendered in the local timezone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import pendulum

DEFAULT_TIMESTAMP_FORMAT = "YYYY-MM-DD HH:mm"

_LITERAL_RE = re.compile(r"\[.*?\]")


@dataclass(frozen=True)
class TimestampPrefix:
    timestamp: Optional[int]
    remaining_text: str


def now_ms() -> int:
    """Current instant in epoch milliseconds."""
    return _to_ms(pendulum.now())


def _to_ms(dt: pendulum.DateTime) -> int:
    return dt.int_timestamp * 1000 + dt.microsecond // 1000


def format_timestamp(timestamp: int, fmt: str) -> str:
    dt = pendulum.from_timestamp(timestamp / 1000, tz=pendulum.local_timezone())
    return dt.format(fmt)


def parse_timestamp(value: str, fmt: str) -> Optional[int]:
    """Strictly parse ``value`` against ``fmt``.

    Returns epoch milliseconds, or None when the string does not match the
    whole pattern or holds out-of-range fields.
    """
    if not value:
        return None
    try:
        dt = pendulum.from_format(value, fmt, tz=pendulum.local_timezone())
    except (ValueError, TypeError, OverflowError):
        return None
    # pendulum accepts one-digit MM, DD and HH; require the exact rendering
    if dt.format(fmt) != value:
        return None
    return _to_ms(dt)


def extract_timestamp_prefix(text: str, fmt: str) -> TimestampPrefix:
    """Split a leading timestamp off ``text``.

    Candidate prefixes run from ``len(fmt) + 5`` characters down to
    ``len(fmt) - 2`` (bracketed literals excluded from the length); the
    first one that parses strictly wins.
    """
    # TODO: a pattern made only of short numeric tokens can match ordinary
    # leading digits in free text; require a separator after the prefix.
    format_length = len(_LITERAL_RE.sub("", fmt))

    length = min(format_length + 5, len(text))
    while length >= max(format_length - 2, 1):
        prefix = text[:length].strip()
        parsed = parse_timestamp(prefix, fmt)
        if parsed is not None:
            return TimestampPrefix(timestamp=parsed, remaining_text=text[length:].lstrip())
        length -= 1

    return TimestampPrefix(timestamp=None, remaining_text=text)


def relative_time(timestamp: int) -> str:
    """Human readable distance to now, e.g. ``2 hours ago``."""
    return pendulum.from_timestamp(timestamp / 1000).diff_for_humans()
