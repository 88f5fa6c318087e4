"""Persistent run history for rollback after the process exits.

The log is a JSON-lines file.  Each run appends one ``run`` event when it
finishes; a later ``rollback(run_id)`` appends a ``rollback`` event instead
of editing the original line.  Reading folds the events back into one
``HistoryEntry`` per run.

When more than ``max_entries`` runs are logged, the oldest runs (and their
rollback events) are dropped by rewriting the file atomically.

Usage:
    history = RunHistory(".schemagen/history.jsonl", max_entries=50)
    history.append(report)
    entry = history.latest()
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from schemagen.backup.models import FileWriteRecord
from schemagen.backup.writer import atomic_write_bytes
from schemagen.errors import RunNotFoundError
from schemagen.pipeline.models import RunReport, RunStatus

logger = logging.getLogger(__name__)


class HistoryEvent(BaseModel):
    """One line of the history log."""

    event: Literal["run", "rollback"]
    run_id: str
    timestamp: datetime = Field(default_factory=datetime.now)
    table: str | None = None
    requested: list[str] = Field(default_factory=list)
    status: RunStatus = RunStatus.COMPLETED
    records: list[FileWriteRecord] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    """A logged run with its rollback state folded in."""

    run_id: str
    timestamp: datetime
    table: str | None = None
    requested: list[str] = Field(default_factory=list)
    status: RunStatus
    records: list[FileWriteRecord] = Field(default_factory=list)
    rolled_back_at: datetime | None = None

    @property
    def can_roll_back(self) -> bool:
        """True while the run's writes are still in place."""
        return self.status == RunStatus.COMPLETED and bool(self.records)


class RunHistory:
    """Append-only, size-bounded run log.

    Args:
        path: JSON-lines file (created on first append)
        max_entries: Number of runs kept; older runs are pruned
    """

    def __init__(self, path: str | Path, max_entries: int = 50):
        self._path = Path(path)
        self._max_entries = max_entries

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def append(self, report: RunReport) -> HistoryEntry:
        """Log a finished run."""
        event = HistoryEvent(
            event="run",
            run_id=report.run_id,
            timestamp=report.finished_at or datetime.now(),
            table=report.table,
            requested=report.requested,
            status=report.status,
            records=report.records,
        )
        self._append_event(event)
        self._prune()
        return self._fold([event])[0]

    def mark_rolled_back(self, run_id: str) -> None:
        """Record that ``run_id`` was rolled back.

        Raises:
            RunNotFoundError: If the run is not in the log
        """
        self.get(run_id)
        self._append_event(HistoryEvent(event="rollback", run_id=run_id))

    def _append_event(self, event: HistoryEvent) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(event.model_dump_json() + "\n")

    def _prune(self) -> None:
        events = self._read_events()
        run_ids = [e.run_id for e in events if e.event == "run"]
        if len(run_ids) <= self._max_entries:
            return

        keep = set(run_ids[-self._max_entries:])
        kept = [e for e in events if e.run_id in keep]
        payload = "".join(e.model_dump_json() + "\n" for e in kept)
        atomic_write_bytes(self._path, payload.encode("utf-8"))
        logger.info("Pruned %d run(s) from history", len(run_ids) - len(keep))

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read_events(self) -> list[HistoryEvent]:
        if not self._path.exists():
            return []

        events = []
        with open(self._path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(HistoryEvent.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    # A torn final line after a crash is the usual cause
                    logger.warning("Skipping unreadable history line %s:%d: %s", self._path, lineno, e)
        return events

    @staticmethod
    def _fold(events: list[HistoryEvent]) -> list[HistoryEntry]:
        entries: dict[str, HistoryEntry] = {}
        for event in events:
            if event.event == "run":
                entries[event.run_id] = HistoryEntry(
                    run_id=event.run_id,
                    timestamp=event.timestamp,
                    table=event.table,
                    requested=event.requested,
                    status=event.status,
                    records=event.records,
                )
            elif event.run_id in entries:
                entry = entries[event.run_id]
                entry.status = RunStatus.ROLLED_BACK
                entry.rolled_back_at = event.timestamp
        return list(entries.values())

    def entries(self) -> list[HistoryEntry]:
        """All logged runs, oldest first."""
        return self._fold(self._read_events())

    def find(self, run_id: str) -> HistoryEntry | None:
        for entry in self.entries():
            if entry.run_id == run_id:
                return entry
        return None

    def get(self, run_id: str) -> HistoryEntry:
        """Like ``find`` but raises ``RunNotFoundError`` for unknown ids."""
        entry = self.find(run_id)
        if entry is None:
            raise RunNotFoundError(run_id)
        return entry

    def latest(self) -> HistoryEntry | None:
        entries = self.entries()
        return entries[-1] if entries else None

    def __len__(self) -> int:
        return len(self.entries())
