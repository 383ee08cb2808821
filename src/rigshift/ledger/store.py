"""Ordered append-only storage for ledger events.

Two stores are provided: :class:`MemoryLedgerStore` for a single session
and :class:`JsonlLedgerStore`, which appends one JSON object per line to a
file.  Sync status changes and failed-delivery counts are appended as
separate ``sync_status`` and ``sync_attempts`` lines and folded into the
events on load, so an event line is never rewritten.  A ``syncing`` status
found on load belongs to a delivery that was interrupted, and is read back
as ``pending``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from .models import LedgerEvent, SyncStatus

STATUS_RECORD_KIND = "sync_status"
ATTEMPTS_RECORD_KIND = "sync_attempts"


class LedgerStoreError(Exception):
    """Raised when the ledger file is corrupted or unreadable."""


class LedgerStore(Protocol):
    def load(self) -> list[LedgerEvent]: ...

    def append(self, event: LedgerEvent) -> None: ...

    def update_status(self, event_id: str, status: SyncStatus) -> None: ...

    def update_attempts(self, event_id: str, attempts: int) -> None: ...

    def clear(self) -> None: ...


class MemoryLedgerStore:
    """Keeps events in a list; nothing survives the process."""

    def __init__(self) -> None:
        self._events: list[LedgerEvent] = []

    def load(self) -> list[LedgerEvent]:
        return list(self._events)

    def append(self, event: LedgerEvent) -> None:
        self._events.append(event)

    def update_status(self, event_id: str, status: SyncStatus) -> None:
        for index, event in enumerate(self._events):
            if event.id == event_id:
                self._events[index] = event.with_sync_status(status)
                return

    def update_attempts(self, event_id: str, attempts: int) -> None:
        for index, event in enumerate(self._events):
            if event.id == event_id:
                self._events[index] = event.with_sync_attempts(attempts)
                return

    def clear(self) -> None:
        self._events.clear()


class JsonlLedgerStore:
    """Append-only JSON-lines file with deterministic (sorted) keys."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _write_line(self, record: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(record, sort_keys=True, ensure_ascii=False)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    def append(self, event: LedgerEvent) -> None:
        self._write_line(event.to_dict())

    def update_status(self, event_id: str, status: SyncStatus) -> None:
        self._write_line(
            {
                "kind": STATUS_RECORD_KIND,
                "event_id": event_id,
                "sync_status": str(status),
            }
        )

    def update_attempts(self, event_id: str, attempts: int) -> None:
        self._write_line(
            {
                "kind": ATTEMPTS_RECORD_KIND,
                "event_id": event_id,
                "sync_attempts": attempts,
            }
        )

    def load(self) -> list[LedgerEvent]:
        """Read events in file order with sync bookkeeping applied.

        Returns an empty list when the file does not exist.  Blank lines are
        skipped.  Raises :class:`LedgerStoreError` with the 1-based line
        number on invalid JSON, invalid structure, or a status or attempts
        record for an event that does not precede it.
        """
        if not self.path.exists():
            return []

        events: list[LedgerEvent] = []
        positions: dict[str, int] = {}
        with self.path.open("r", encoding="utf-8") as fh:
            for line_number, raw_line in enumerate(fh, start=1):
                stripped = raw_line.strip()
                if not stripped:
                    continue
                try:
                    obj = json.loads(stripped)
                except json.JSONDecodeError as exc:
                    raise LedgerStoreError(
                        f"Invalid JSON on line {line_number}: {exc}"
                    ) from exc
                if not isinstance(obj, dict):
                    raise LedgerStoreError(
                        f"Invalid record on line {line_number}: expected an object"
                    )

                kind = obj.get("kind")
                if kind in (STATUS_RECORD_KIND, ATTEMPTS_RECORD_KIND):
                    event_id = obj.get("event_id")
                    if event_id not in positions:
                        raise LedgerStoreError(
                            f"Sync record for unknown event {event_id!r} on line {line_number}"
                        )
                    index = positions[event_id]
                    events[index] = _fold_sync_record(events[index], obj, line_number)
                    continue

                try:
                    event = LedgerEvent.from_dict(obj)
                except (KeyError, ValueError, TypeError) as exc:
                    raise LedgerStoreError(
                        f"Invalid event structure on line {line_number}: {exc}"
                    ) from exc
                positions[event.id] = len(events)
                events.append(event)
        return [
            e.with_sync_status(SyncStatus.PENDING) if e.sync_status == SyncStatus.SYNCING else e
            for e in events
        ]

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def _fold_sync_record(event: LedgerEvent, record: dict, line_number: int) -> LedgerEvent:
    if record["kind"] == STATUS_RECORD_KIND:
        try:
            return event.with_sync_status(SyncStatus(record.get("sync_status")))
        except ValueError as exc:
            raise LedgerStoreError(f"Invalid sync status on line {line_number}: {exc}") from exc
    attempts = record.get("sync_attempts")
    if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 0:
        raise LedgerStoreError(f"Invalid sync attempts on line {line_number}: {attempts!r}")
    return event.with_sync_attempts(attempts)
