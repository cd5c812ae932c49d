"""Append-only audit ledger of changes to a Moments file."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console

from .models.ledger import LedgerEvent, LedgerEventType
from .paths import VaultPaths

console = Console(stderr=True)


class LedgerWriter:
    """Appends one JSON line per file or entry change to .moments/ledger.jsonl.

    Every event carries the Moments file it concerns in ``payload["file"]``
    when the writer knows it. The ledger is never truncated or rewritten.
    """

    def __init__(
        self,
        ledger_path: Path,
        moments_file: Optional[Path] = None,
        run_id: Optional[str] = None,
    ):
        self.ledger_path = ledger_path
        self.moments_file = moments_file
        self.run_id = run_id or str(uuid.uuid4())

    @classmethod
    def for_vault(cls, paths: VaultPaths, run_id: Optional[str] = None) -> "LedgerWriter":
        """Writer for the vault's ledger, tagging events with its Moments file."""
        return cls(paths.ledger_file, moments_file=paths.moments_file, run_id=run_id)

    def append_event(
        self,
        event_type: LedgerEventType,
        payload: Optional[dict] = None,
        entry_id: Optional[str] = None,
    ) -> LedgerEvent:
        """Append an event to the ledger.

        Args:
            event_type: Type of event
            payload: Event-specific data
            entry_id: Block id of the entry the event is about

        Returns:
            The created LedgerEvent
        """
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)

        data = {"file": str(self.moments_file)} if self.moments_file is not None else {}
        data.update(payload or {})

        event = LedgerEvent(
            event_id=str(uuid.uuid4()),
            run_id=self.run_id,
            ts=datetime.now(timezone.utc),
            event_type=event_type,
            entry_id=entry_id,
            payload=data,
        )

        with open(self.ledger_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event.model_dump(mode="json")) + "\n")

        return event


def read_ledger_tail(
    ledger_path: Path,
    n: int = 20,
    entry_id: Optional[str] = None,
) -> list[LedgerEvent]:
    """Read the last N events, optionally only those about one entry.

    Malformed lines are skipped with a warning.

    Args:
        ledger_path: Path to ledger.jsonl file
        n: Number of events to return
        entry_id: Only return events for this block id
    """
    if not ledger_path.exists():
        return []

    events: list[LedgerEvent] = []
    malformed_count = 0

    with open(ledger_path, "r", encoding="utf-8") as f:
        lines = f.readlines()

    for line in lines:
        line = line.strip()
        if not line:
            continue

        try:
            event = LedgerEvent(**json.loads(line))
        except (json.JSONDecodeError, ValueError) as e:
            malformed_count += 1
            console.print(f"[yellow]Warning: Skipping malformed line: {e}[/yellow]")
            continue

        if entry_id is None or event.entry_id == entry_id:
            events.append(event)

    if malformed_count > 0:
        console.print(f"[yellow]Skipped {malformed_count} malformed line(s)[/yellow]")

    return events[-n:] if n > 0 else []
