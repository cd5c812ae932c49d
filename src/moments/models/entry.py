"""Pydantic models for parsed Moments documents."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class MomentEntry(BaseModel):
    """A single moment parsed from the Moments file."""

    id: str = Field(description="Block id, e.g. m-abc123")
    created_at: int = Field(description="Creation instant in epoch milliseconds")
    raw: str = Field(description="Content without timestamp prefix and block id")
    raw_with_prefix: str = Field(description="Content with timestamp prefix, without block id")
    id_missing: bool = Field(default=False, description="Block id was synthesized during parse")

    model_config = {"frozen": True}


class EntrySpan(BaseModel):
    """Position of an entry block in one specific text snapshot.

    ``start`` is the index of the ``- `` list marker, ``end`` the index of
    the block's last character (inclusive), before its trailing newline.
    """

    id: str
    start: int
    end: int

    model_config = {"frozen": True}


class ParseIssue(BaseModel):
    message: str
    context: Optional[str] = None

    model_config = {"frozen": True}


class ParsedMomentsDoc(BaseModel):
    """Result of parsing a Moments document.

    Spans are only valid against ``original_text``.
    """

    frontmatter: dict[str, Any] = Field(default_factory=dict)
    entries: list[MomentEntry] = Field(default_factory=list)
    archive_entries: list[MomentEntry] = Field(default_factory=list)
    errors: list[ParseIssue] = Field(default_factory=list)
    original_text: str = ""
    spans: dict[str, EntrySpan] = Field(default_factory=dict)
    archive_start_offset: int = -1

    @property
    def all_entries(self) -> list[MomentEntry]:
        return self.entries + self.archive_entries

    def get_entry(self, entry_id: str, include_archive: bool = True) -> Optional[MomentEntry]:
        pool = self.all_entries if include_archive else self.entries
        for entry in pool:
            if entry.id == entry_id:
                return entry
        return None

    def find_entry_by_start(self, start: int, include_archive: bool = True) -> Optional[MomentEntry]:
        """Find the entry whose span begins at ``start``."""
        for entry_id, span in self.spans.items():
            if span.start == start:
                return self.get_entry(entry_id, include_archive=include_archive)
        return None


class DeletedEntryInfo(BaseModel):
    """Undo record for the most recent delete."""

    entry_block: str = Field(description="Raw source text of the deleted block")
    insertion_hint: Literal["prepend", "append", "afterId"] = Field(default="prepend")
    after_id: Optional[str] = Field(default=None, description="Entry to re-insert after (afterId hint)")
    deleted_at: int = Field(description="Deletion instant in epoch milliseconds")
