"""In-memory state for a Moments file.

Wraps the pure format functions with file I/O: a serialized
read-transform-write cycle, change notification, undo of the last delete,
and detection of self-triggered vs. external modifications.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Literal, Optional

from pydantic import ValidationError

from .config import MomentsConfig
from .format import (
    ARCHIVE_SEPARATOR,
    delete_entry_span,
    get_entry_block_text,
    insert_entry,
    move_to_archive,
    parse_moments_doc,
    replace_entry_span,
    restore_entry_block,
)
from .ledger import LedgerWriter
from .models.entry import DeletedEntryInfo, EntrySpan, MomentEntry, ParsedMomentsDoc, ParseIssue
from .models.ledger import LedgerEventType
from .storage import read_moments_file, write_moments_file
from .timefmt import now_ms

logger = logging.getLogger(__name__)

UNDO_WINDOW_MS = 5 * 60 * 1000

StateChangeCallback = Callable[[list[MomentEntry]], None]


class MomentsStateManager:
    """Owns the parsed state of one Moments file and serializes writes to it."""

    def __init__(
        self,
        path: Path,
        config: MomentsConfig,
        ledger_writer: Optional[LedgerWriter] = None,
        undo_path: Optional[Path] = None,
    ):
        """Initialize the state manager.

        Args:
            path: Path to the Moments file
            config: Moments configuration
            ledger_writer: Optional ledger for mutation events
            undo_path: Optional JSON file persisting the pending undo record
        """
        self.path = path
        self.config = config
        self.ledger_writer = ledger_writer
        self.undo_path = undo_path

        self._parsed: Optional[ParsedMomentsDoc] = None
        self._subscribers: list[StateChangeCallback] = []
        self._write_lock = threading.RLock()
        self._search_query = ""
        self._last_deleted: Optional[DeletedEntryInfo] = self._load_undo()

        # Set while our own write is in flight
        self.self_modified = False

    def initialize(self) -> bool:
        return self.reload()

    def reload(self) -> bool:
        """Re-read and re-parse the file. A failed read keeps the previous state."""
        with self._write_lock:
            result = read_moments_file(self.path)
            if not result.success or result.data is None:
                logger.error(f"Failed to read {self.path}: {result.error}")
                return False
            self._parsed = parse_moments_doc(result.data, self.config.timestamp_format)
        self._notify_subscribers()
        return True

    def update_config(self, config: MomentsConfig) -> None:
        self.config = config

    @property
    def parsed(self) -> Optional[ParsedMomentsDoc]:
        return self._parsed

    def get_entries(self) -> list[MomentEntry]:
        """Active entries, filtered by the search query and render cap."""
        if self._parsed is None:
            return []

        entries = list(self._parsed.entries)

        if self._search_query:
            query = self._search_query.lower()
            entries = [e for e in entries if query in e.raw_with_prefix.lower()]

        if self.config.max_render_count > 0:
            entries = entries[: self.config.max_render_count]

        return entries

    def get_all_entries(self) -> list[MomentEntry]:
        return list(self._parsed.entries) if self._parsed else []

    def get_archived_entries(self) -> list[MomentEntry]:
        return list(self._parsed.archive_entries) if self._parsed else []

    def get_errors(self) -> list[ParseIssue]:
        return list(self._parsed.errors) if self._parsed else []

    def get_span(self, entry_id: str) -> Optional[EntrySpan]:
        return self._parsed.spans.get(entry_id) if self._parsed else None

    def set_search_query(self, query: str) -> None:
        self._search_query = query
        self._notify_subscribers()

    def get_search_query(self) -> str:
        return self._search_query

    def _prepare_content(self, content: str) -> Optional[str]:
        """Apply trim_input. Returns None for content that cannot be stored.

        A line reading ``***`` would be parsed as the archive separator and
        split the document, so such content is refused.
        """
        if self.config.trim_input:
            content = content.strip()
        if not content.strip():
            return None
        if any(line.strip() == ARCHIVE_SEPARATOR for line in content.split("\n")):
            logger.warning(f"Refusing content with an archive separator line ({ARCHIVE_SEPARATOR})")
            return None
        return content

    def _current_span(self, text: str, entry_id: str) -> Optional[EntrySpan]:
        """Span of ``entry_id`` in ``text``.

        Reuses the cached parse only when it was made from this exact text.
        """
        if self._parsed is not None and self._parsed.original_text == text:
            return self._parsed.spans.get(entry_id)
        return parse_moments_doc(text, self.config.timestamp_format).spans.get(entry_id)

    def add_entry(self, content: str) -> Optional[str]:
        """Add a new entry.

        Returns:
            The new entry's block id, or None when nothing was written
        """
        if self._parsed is None:
            return None

        prepared = self._prepare_content(content)
        if prepared is None:
            return None
        content = prepared

        known_ids: set[str] = set()

        def transform(text: str) -> str:
            known_ids.update(parse_moments_doc(text, self.config.timestamp_format).spans)
            return insert_entry(text, content, self.config.insertion, self.config.timestamp_format)

        parsed = self._queue_write(transform)
        if parsed is None:
            return None

        new_ids = [e.id for e in parsed.entries if e.id not in known_ids and not e.id_missing]
        entry_id = new_ids[0] if new_ids else None
        self._record_event("ENTRY_ADDED", entry_id, {"insertion": self.config.insertion})
        return entry_id

    def update_entry(self, entry_id: str, new_content: str) -> bool:
        """Replace an entry's content, keeping its id and original timestamp."""
        if self._parsed is None or entry_id not in self._parsed.spans:
            return False

        prepared = self._prepare_content(new_content)
        if prepared is None:
            return False
        new_content = prepared

        def transform(text: str) -> str:
            span = self._current_span(text, entry_id)
            if span is None:
                return text
            return replace_entry_span(
                text,
                span,
                new_content,
                self.config.timestamp_format,
                keep_original_timestamp=True,
            )

        if self._queue_write(transform) is None:
            return False
        self._record_event("ENTRY_UPDATED", entry_id, {})
        return True

    def delete_entry(self, entry_id: str, soft_delete: Optional[bool] = None) -> bool:
        """Delete an active entry, or archive it when soft delete is enabled.

        Records an undo record for the deleted block.

        Args:
            entry_id: Block id of the entry
            soft_delete: Override ``config.soft_delete_to_archive``
        """
        if self._parsed is None or self._parsed.get_entry(entry_id, include_archive=False) is None:
            return False

        captured: dict[str, DeletedEntryInfo] = {}
        if soft_delete is None:
            soft_delete = self.config.soft_delete_to_archive

        def transform(text: str) -> str:
            span = self._current_span(text, entry_id)
            if span is None:
                return text

            entries = parse_moments_doc(text, self.config.timestamp_format).entries
            index = next((i for i, e in enumerate(entries) if e.id == entry_id), -1)
            insertion_hint: Literal["prepend", "append", "afterId"] = "prepend"
            after_id = None
            if index > 0:
                insertion_hint = "afterId"
                after_id = entries[index - 1].id

            captured["info"] = DeletedEntryInfo(
                entry_block=get_entry_block_text(text, span),
                insertion_hint=insertion_hint,
                after_id=after_id,
                deleted_at=now_ms(),
            )

            if soft_delete:
                return move_to_archive(text, span, self.config.timestamp_format)
            return delete_entry_span(text, span)

        if self._queue_write(transform) is None:
            return False

        # A new delete overwrites any pending undo record
        self._set_last_deleted(captured.get("info"))
        self._record_event(
            "ENTRY_ARCHIVED" if soft_delete else "ENTRY_DELETED",
            entry_id,
            {"soft_delete": soft_delete},
        )
        return True

    def repair_missing_ids(self) -> int:
        """Write a block id into every entry that lacks one.

        Entries keep their content and timestamp. Returns the number of
        repaired entries.
        """
        if self._parsed is None:
            return 0

        repaired: list[str] = []

        def transform(text: str) -> str:
            parsed = parse_moments_doc(text, self.config.timestamp_format)
            missing = [e for e in parsed.all_entries if e.id_missing]
            # Back to front so earlier spans stay valid
            for entry in sorted(missing, key=lambda e: parsed.spans[e.id].start, reverse=True):
                text = replace_entry_span(
                    text,
                    parsed.spans[entry.id],
                    entry.raw,
                    self.config.timestamp_format,
                    keep_original_timestamp=True,
                )
                repaired.append(entry.id)
            return text

        if self._queue_write(transform) is None:
            return 0
        for entry_id in repaired:
            self._record_event("ENTRY_UPDATED", entry_id, {"repair": "missing_block_id"})
        return len(repaired)

    def undo_last_delete(self) -> bool:
        """Restore the most recently deleted entry.

        Returns:
            False when there is no pending record, it has expired, or the
            restore did not change the file
        """
        deleted = self._last_deleted
        if deleted is None:
            return False

        # Consumed or expired either way
        self._set_last_deleted(None)
        if now_ms() - deleted.deleted_at > UNDO_WINDOW_MS:
            logger.info("Undo record expired")
            return False

        def transform(text: str) -> str:
            return restore_entry_block(
                text,
                deleted.entry_block,
                deleted.insertion_hint,
                deleted.after_id,
                self.config.timestamp_format,
            )

        if self._queue_write(transform) is None:
            return False
        self._record_event("ENTRY_RESTORED", None, {"insertion_hint": deleted.insertion_hint})
        return True

    def can_undo(self) -> bool:
        if self._last_deleted is None:
            return False
        return now_ms() - self._last_deleted.deleted_at <= UNDO_WINDOW_MS

    def subscribe(self, callback: StateChangeCallback) -> Callable[[], None]:
        """Register a change callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify_subscribers(self) -> None:
        entries = self.get_entries()
        for callback in list(self._subscribers):
            callback(entries)

    def _queue_write(self, transform: Callable[[str], str]) -> Optional[ParsedMomentsDoc]:
        """Run one read-transform-write cycle under the write lock.

        Returns:
            The re-parsed document, or None when reading or writing failed
            or the transform left the text unchanged
        """
        with self._write_lock:
            result = read_moments_file(self.path)
            if not result.success or result.data is None:
                logger.error(f"Failed to read file for write: {result.error}")
                return None

            new_content = transform(result.data)
            if new_content == result.data:
                logger.debug("Transform left the file unchanged, skipping write")
                return None

            self.self_modified = True
            try:
                write_result = write_moments_file(self.path, new_content)
                if not write_result.success:
                    logger.error(f"Failed to write file: {write_result.error}")
                    return None
                self._parsed = parse_moments_doc(new_content, self.config.timestamp_format)
            finally:
                self.self_modified = False

        self._notify_subscribers()
        return self._parsed

    def on_external_modify(self) -> bool:
        """Handle a change notification for the file.

        Self-triggered changes are ignored; anything else is a full reload.
        """
        if self.self_modified:
            return False
        return self.reload()

    def _record_event(self, event_type: LedgerEventType, entry_id: Optional[str], payload: dict) -> None:
        if self.ledger_writer is None:
            return
        self.ledger_writer.append_event(
            event_type=event_type,
            entry_id=entry_id,
            payload=payload,
        )

    def _set_last_deleted(self, info: Optional[DeletedEntryInfo]) -> None:
        self._last_deleted = info
        if self.undo_path is None:
            return
        if info is None:
            self.undo_path.unlink(missing_ok=True)
            return
        self.undo_path.parent.mkdir(parents=True, exist_ok=True)
        self.undo_path.write_text(info.model_dump_json(indent=2), encoding="utf-8")

    def _load_undo(self) -> Optional[DeletedEntryInfo]:
        if self.undo_path is None or not self.undo_path.exists():
            return None
        try:
            return DeletedEntryInfo.model_validate_json(self.undo_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Failed to load undo record {self.undo_path}: {e}")
            return None

    def destroy(self) -> None:
        self._subscribers.clear()
        self._parsed = None
        self._last_deleted = None
