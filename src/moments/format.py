"""Moments file format: parsing and span-based serialization.

The Markdown file is the single source of truth. Layout:

    ---
    moments-plugin: true
    ---

    - 2026-01-02 10:21 This is a moment #tag [[Link]]
      Second line of content
      ^m-abc123

    - 2026-01-02 09:15 Another moment
      ^m-def456

    ***
    ## Archive

    - 2026-01-01 08:00 An archived moment
      ^m-xyz789

Every mutation is a pure ``str -> str`` transform that touches only the
span it targets. Spans are recovered by re-parsing, never cached.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Optional

from .ids import extract_block_id, generate_block_id, strip_block_id
from .models.entry import EntrySpan, MomentEntry, ParsedMomentsDoc, ParseIssue
from .timefmt import DEFAULT_TIMESTAMP_FORMAT, extract_timestamp_prefix, format_timestamp, now_ms

FRONTMATTER_KEY = "moments-plugin"
ARCHIVE_SEPARATOR = "***"
ARCHIVE_HEADING = "## Archive"

_LIST_MARKER = "- "
_INDENT = "  "
_FRONTMATTER_RE = re.compile(r"^---\s*$")
_INLINE_MARKER_RE = re.compile(r"\s*\^m-[a-z0-9]+\s*$")
_DIGITS_RE = re.compile(r"^[0-9]+$")

InsertPosition = Literal["prepend", "append"]


@dataclass
class _PendingBlock:
    lines: list[str]
    start: int
    end: int


def parse_moments_doc(text: str, timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT) -> ParsedMomentsDoc:
    """Parse a Moments document into entries and spans.

    Never raises. Entries without a block id get a synthesized one and a
    diagnostic in ``errors``.
    """
    frontmatter: dict[str, Any] = {}
    entries: list[MomentEntry] = []
    archive_entries: list[MomentEntry] = []
    errors: list[ParseIssue] = []
    spans: dict[str, EntrySpan] = {}
    archive_start_offset = -1
    parsed_at = now_ms()

    frontmatter_started = False
    in_frontmatter = False
    frontmatter_lines: list[str] = []
    in_archive = False
    block: Optional[_PendingBlock] = None

    def emit(pending: _PendingBlock) -> None:
        entry = _finalize_block(pending, timestamp_format, spans, errors, parsed_at)
        if entry is not None:
            (archive_entries if in_archive else entries).append(entry)

    offset = 0
    for line in text.split("\n"):
        line_start = offset
        line_end = offset + len(line)
        offset = line_end + 1

        if _FRONTMATTER_RE.match(line):
            if not frontmatter_started:
                frontmatter_started = True
                in_frontmatter = True
                continue
            if in_frontmatter:
                in_frontmatter = False
                frontmatter = _parse_frontmatter(frontmatter_lines)
                continue

        if in_frontmatter:
            frontmatter_lines.append(line)
            continue

        stripped = line.strip()

        if stripped == ARCHIVE_SEPARATOR:
            if block is not None:
                emit(block)
                block = None
            archive_start_offset = line_start
            in_archive = True
            continue

        if in_archive and stripped == ARCHIVE_HEADING:
            continue

        if line.startswith(_LIST_MARKER):
            if block is not None:
                emit(block)
            block = _PendingBlock(lines=[line[len(_LIST_MARKER):]], start=line_start, end=line_end - 1)
        elif block is not None:
            if line.startswith(_INDENT):
                block.lines.append(line[len(_INDENT):])
                if stripped:
                    block.end = line_end - 1
            elif not stripped:
                block.lines.append(line)
            else:
                emit(block)
                block = None

    if block is not None:
        emit(block)

    return ParsedMomentsDoc(
        frontmatter=frontmatter,
        entries=entries,
        archive_entries=archive_entries,
        errors=errors,
        original_text=text,
        spans=spans,
        archive_start_offset=archive_start_offset,
    )


def _finalize_block(
    block: _PendingBlock,
    timestamp_format: str,
    spans: dict[str, EntrySpan],
    errors: list[ParseIssue],
    parsed_at: int,
) -> Optional[MomentEntry]:
    content_lines = list(block.lines)
    block_id = extract_block_id(content_lines[-1])

    if block_id:
        last_line = content_lines[-1]
        if last_line.strip() == f"^{block_id}":
            content_lines.pop()
            while content_lines and content_lines[-1].strip() == "":
                content_lines.pop()
        else:
            content_lines[-1] = _INLINE_MARKER_RE.sub("", last_line, count=1)

    raw_with_prefix = "\n".join(content_lines)
    if raw_with_prefix.strip() == "":
        return None

    # Second pass in case a marker survived elsewhere at the end.
    stripped = strip_block_id(raw_with_prefix)
    if not stripped.content:
        return None
    if not block_id and stripped.block_id:
        block_id = stripped.block_id
    raw_with_prefix = stripped.content

    prefix = extract_timestamp_prefix(raw_with_prefix, timestamp_format)
    remaining = prefix.remaining_text or ""
    raw = strip_block_id(remaining).content or remaining or raw_with_prefix

    id_missing = not block_id
    if not block_id:
        block_id = generate_block_id(spans.keys())
        errors.append(
            ParseIssue(
                message=f"Entry missing block id, assigned: {block_id}",
                context=raw_with_prefix[:50],
            )
        )

    spans[block_id] = EntrySpan(id=block_id, start=block.start, end=block.end)

    return MomentEntry(
        id=block_id,
        created_at=prefix.timestamp if prefix.timestamp is not None else parsed_at,
        raw=raw,
        raw_with_prefix=raw_with_prefix,
        id_missing=id_missing,
    )


def _parse_frontmatter(lines: list[str]) -> dict[str, Any]:
    """Parse flat ``key: value`` lines. Lines without a colon are ignored."""
    result: dict[str, Any] = {}
    for line in lines:
        colon = line.find(":")
        if colon <= 0:
            continue
        key = line[:colon].strip()
        value: Any = line[colon + 1:].strip()
        if value == "true":
            value = True
        elif value == "false":
            value = False
        elif _DIGITS_RE.match(value):
            value = int(value)
        result[key] = value
    return result


def create_basic_frontmatter() -> str:
    """Frontmatter for a new Moments file."""
    return f"---\n{FRONTMATTER_KEY}: true\n---\n\n"


def create_entry_block(
    content: str,
    timestamp_format: str,
    block_id: Optional[str] = None,
    created_at: Optional[int] = None,
) -> str:
    """Build an entry block (without list indentation).

    The first line carries the timestamp prefix and the block id goes on
    its own last line.
    """
    entry_id = block_id or generate_block_id()
    timestamp = format_timestamp(created_at if created_at is not None else now_ms(), timestamp_format)

    lines = content.split("\n")
    lines[0] = f"{timestamp} {lines[0]}"
    lines.append(f"^{entry_id}")
    return "\n".join(lines)


def format_entry_as_list_item(entry_block: str) -> str:
    lines = entry_block.split("\n")
    return "\n".join(
        (_LIST_MARKER if i == 0 else _INDENT) + line for i, line in enumerate(lines)
    )


def get_entry_block_text(text: str, span: EntrySpan) -> str:
    """Raw source text of an entry block (used for undo and archiving)."""
    return text[span.start : span.end + 1]


def _find_frontmatter_end(text: str) -> int:
    """Offset just past the closing frontmatter line, or -1."""
    opened = False
    offset = 0
    for line in text.split("\n"):
        if _FRONTMATTER_RE.match(line):
            if opened:
                return offset + len(line) + 1
            opened = True
        offset += len(line) + 1
    return -1


def _splice_block(text: str, point: int, formatted_block: str) -> str:
    """Insert ``formatted_block`` at ``point`` with one blank line on each side."""
    head = text[:point].rstrip()
    tail = text[point:].lstrip("\n")

    result = head + "\n\n" if head else ""
    result += formatted_block + "\n"
    if tail:
        result += "\n" + tail
    return result


def _insertion_point(text: str, parsed: ParsedMomentsDoc, position: str) -> int:
    if position == "prepend":
        frontmatter_end = _find_frontmatter_end(text)
        return min(frontmatter_end, len(text)) if frontmatter_end >= 0 else 0
    if parsed.archive_start_offset >= 0:
        return parsed.archive_start_offset
    return len(text)


def insert_entry(
    text: str,
    entry_content: str,
    position: InsertPosition,
    timestamp_format: str,
) -> str:
    """Insert a new entry stamped with the current instant and a fresh id."""
    parsed = parse_moments_doc(text, timestamp_format)
    block_id = generate_block_id(parsed.spans.keys())
    entry_block = create_entry_block(entry_content, timestamp_format, block_id=block_id)

    point = _insertion_point(text, parsed, position)
    return _splice_block(text, point, format_entry_as_list_item(entry_block))


def _locate_entry(
    parsed: ParsedMomentsDoc,
    span: EntrySpan,
    include_archive: bool = True,
) -> Optional[MomentEntry]:
    """Find the entry ``span`` refers to in a fresh parse.

    Looks up the id first, then the block starting at ``span.start`` (ids
    synthesized for marker-less blocks change on every parse). A span that
    no longer lines up with the text yields None.
    """
    current = parsed.spans.get(span.id)
    if current is not None:
        if (current.start, current.end) != (span.start, span.end):
            return None
        return parsed.get_entry(span.id, include_archive=include_archive)

    entry = parsed.find_entry_by_start(span.start, include_archive=include_archive)
    if entry is None or parsed.spans[entry.id].end != span.end:
        return None
    return entry


def replace_entry_span(
    text: str,
    span: EntrySpan,
    new_content: str,
    timestamp_format: str,
    keep_original_timestamp: bool = True,
) -> str:
    """Replace an entry's block in place, keeping its block id.

    Returns ``text`` unchanged when the entry cannot be found.
    """
    parsed = parse_moments_doc(text, timestamp_format)
    existing = _locate_entry(parsed, span)
    if existing is None:
        return text

    created_at = existing.created_at if keep_original_timestamp else None
    entry_block = create_entry_block(new_content, timestamp_format, block_id=span.id, created_at=created_at)

    before = text[: span.start]
    after = text[span.end + 1 :]
    return before + format_entry_as_list_item(entry_block) + ("" if after.startswith("\n") else "\n") + after


def _span_is_valid(text: str, span: EntrySpan) -> bool:
    return 0 <= span.start <= span.end < len(text) and text.startswith(_LIST_MARKER, span.start)


def delete_entry_span(text: str, span: EntrySpan) -> str:
    """Remove an entry block and its trailing newline.

    Collapses the seam so that at most one blank line remains. A span that
    does not point at a list item in ``text`` leaves it unchanged.
    """
    if not _span_is_valid(text, span):
        return text

    before = text[: span.start]
    after = text[span.end + 2 :]

    if before.endswith("\n\n"):
        if after.startswith("\n"):
            after = after[1:]
        elif not after:
            before = before[:-1]

    return before + after


def move_to_archive(text: str, span: EntrySpan, timestamp_format: str) -> str:
    """Move an active entry to the archive section, verbatim.

    Creates the archive section when missing. Returns ``text`` unchanged
    when the entry is not among the active entries.
    """
    parsed = parse_moments_doc(text, timestamp_format)
    if _locate_entry(parsed, span, include_archive=False) is None:
        return text

    entry_block = get_entry_block_text(text, span)
    new_text = delete_entry_span(text, span).rstrip()

    if parsed.archive_start_offset < 0:
        archive_header = f"{ARCHIVE_SEPARATOR}\n{ARCHIVE_HEADING}"
        new_text = f"{new_text}\n\n{archive_header}" if new_text else archive_header

    return f"{new_text}\n\n{entry_block}\n"


def restore_entry_block(
    text: str,
    entry_block: str,
    insertion_hint: Literal["prepend", "append", "afterId"],
    after_id: Optional[str],
    timestamp_format: str,
) -> str:
    """Re-insert a previously removed block verbatim.

    An archived copy of the same block id is removed first. If the block
    id is already active the text is returned unchanged.
    """
    block_id = extract_block_id(entry_block.split("\n")[-1])
    parsed = parse_moments_doc(text, timestamp_format)

    if block_id and block_id in parsed.spans:
        if parsed.get_entry(block_id, include_archive=False) is not None:
            return text
        text = delete_entry_span(text, parsed.spans[block_id])
        parsed = parse_moments_doc(text, timestamp_format)

    if insertion_hint == "afterId" and after_id and parsed.get_entry(after_id, include_archive=False):
        point = parsed.spans[after_id].end + 1
    elif insertion_hint == "append":
        point = _insertion_point(text, parsed, "append")
    else:
        point = _insertion_point(text, parsed, "prepend")

    return _splice_block(text, point, entry_block)
