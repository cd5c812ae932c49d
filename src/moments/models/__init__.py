"""Pydantic models for Moments."""

from .entry import DeletedEntryInfo, EntrySpan, MomentEntry, ParsedMomentsDoc, ParseIssue
from .ledger import LedgerEvent, LedgerEventType

__all__ = [
    # Document
    "MomentEntry",
    "EntrySpan",
    "ParseIssue",
    "ParsedMomentsDoc",
    # Undo
    "DeletedEntryInfo",
    # Ledger
    "LedgerEvent",
    "LedgerEventType",
]
