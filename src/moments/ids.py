"""Block id generation and extraction for Moments entries.

Ids follow Obsidian block id rules: ``m-`` followed by lowercase
alphanumerics, referenced in the file as ``^m-xxxxxx``.
"""

from __future__ import annotations

import random
import re
import time
from dataclasses import dataclass
from typing import Iterable, Optional

BLOCK_ID_PREFIX = "m-"

_CHARS = "0123456789abcdefghijklmnopqrstuvwxyz"
_MAX_ATTEMPTS = 100

_VALID_ID_RE = re.compile(r"^m-[a-z0-9]+$")
_LINE_END_ID_RE = re.compile(r"\^(m-[a-z0-9]+)\s*$")
_INLINE_ID_RE = re.compile(r"\s*\^(m-[a-z0-9]+)\s*$")
_STANDALONE_ID_RE = re.compile(r"^\^(m-[a-z0-9]+)$")


@dataclass(frozen=True)
class StrippedContent:
    content: str
    block_id: Optional[str]


def _random_string(length: int) -> str:
    return "".join(random.choice(_CHARS) for _ in range(length))


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_CHARS[rem])
    return "".join(reversed(digits))


def generate_block_id(existing_ids: Optional[Iterable[str]] = None) -> str:
    """Generate a block id that is not in ``existing_ids``.

    After 100 collisions, falls back to a timestamp-based id that is
    returned without checking the exclusion set again.
    """
    existing = set(existing_ids) if existing_ids is not None else None

    for _ in range(_MAX_ATTEMPTS):
        candidate = BLOCK_ID_PREFIX + _random_string(6)
        if not existing or candidate not in existing:
            return candidate

    return BLOCK_ID_PREFIX + _base36(int(time.time() * 1000)) + _random_string(3)


def is_valid_block_id(value: str) -> bool:
    return bool(_VALID_ID_RE.match(value))


def extract_block_id(line: str) -> Optional[str]:
    """Return the id of a ``^m-xxx`` marker at the end of ``line``, if any."""
    match = _LINE_END_ID_RE.search(line)
    return match.group(1) if match else None


def remove_block_id(text: str) -> str:
    """Remove every block id marker from ``text`` (for display)."""
    text = re.sub(r"[ \t]*\^m-[a-z0-9]+[ \t]*$", "", text, flags=re.MULTILINE)
    return text.strip()


def strip_block_id(content: str) -> StrippedContent:
    """Strip a trailing block id, inline or on its own last line.

    The returned content is trimmed. ``block_id`` is None when no marker
    was found.
    """
    inline = _INLINE_ID_RE.search(content)
    if inline:
        return StrippedContent(
            content=content[: inline.start()].strip(),
            block_id=inline.group(1),
        )

    lines = content.split("\n")
    last_line = lines[-1].strip()
    standalone = _STANDALONE_ID_RE.match(last_line)
    if standalone:
        lines.pop()
        while lines and lines[-1].strip() == "":
            lines.pop()
        return StrippedContent(content="\n".join(lines).strip(), block_id=standalone.group(1))

    return StrippedContent(content=content.strip(), block_id=None)
