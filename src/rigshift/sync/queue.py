"""Offline sync queue.

Tracks ledger events recorded while the device had no connection and
delivers them to the server once it is reachable again.  The queue holds
only sync metadata and a copy of the payload for size diagnostics; the
ledger stays the owner of event content.

Per-entry state machine::

    PENDING -> SYNCING -> SYNCED
                       -> PENDING   (attempt failed, retries left)
                       -> FAILED    (attempt failed, retries exhausted)
    FAILED  -> PENDING              (retry_failed_events, retry_count reset)

SYNCING lives only in memory.  An attached ledger is told about every
other status and about each change of the failed-attempt count, so a
restart resumes with the same retry budget and never strands an event
that was mid-delivery.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from rigshift.config import DEFAULT_MAX_RETRIES
from rigshift.ledger.models import UNSYNCED_STATUSES, SyncStatus

from .transport import EventTransport

if TYPE_CHECKING:
    from rigshift.ledger.ledger import EventLedger

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _always_online() -> bool:
    return True


@dataclass
class SyncEntry:
    """Sync bookkeeping for one ledger event."""

    event_id: str
    event_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    sync_status: SyncStatus = SyncStatus.PENDING
    retry_count: int = 0
    last_attempt_time: datetime | None = None
    queued_at: datetime = field(default_factory=_utc_now)

    @property
    def payload_size(self) -> int:
        return len(json.dumps(self.payload, separators=(",", ":"), ensure_ascii=False))


@dataclass
class QueueStats:
    """Aggregate statistics about the sync queue.

    Used by ``rigshift sync status`` to display queue health.
    """

    total_queued: int = 0
    total_retried: int = 0
    pending: int = 0
    syncing: int = 0
    synced: int = 0
    failed: int = 0
    size_bytes: int = 0
    oldest_event_age: timedelta | None = None
    retry_distribution: dict[str, int] = field(default_factory=dict)
    top_event_types: list[tuple[str, int]] = field(default_factory=list)


@dataclass
class SyncRunResult:
    """Outcome of one :meth:`SyncQueue.sync_all` pass."""

    skipped: bool = False
    attempted: int = 0
    synced_ids: list[str] = field(default_factory=list)
    requeued_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)
    error_messages: list[str] = field(default_factory=list)

    @property
    def synced_count(self) -> int:
        return len(self.synced_ids)

    @property
    def error_count(self) -> int:
        return len(self.requeued_ids) + len(self.failed_ids)


class SyncQueue:
    """In-memory queue of ledger events awaiting server acknowledgement.

    ``enqueue`` is not idempotent: enqueueing the same event id twice
    creates two entries.  Callers that may repeat must check
    :meth:`contains` first.

    Args:
        transport: Delivers one outbound record; returns True on ack.
        is_online: Reachability flag; ``sync_all`` does nothing offline.
        max_retries: Failed attempts after which an entry parks as FAILED.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        transport: EventTransport | None = None,
        is_online: Callable[[], bool] = _always_online,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.transport = transport
        self.is_online = is_online
        self.max_retries = max_retries
        self._clock = clock
        self._entries: list[SyncEntry] = []
        self._lock = threading.RLock()
        self._resolve_event: Callable[[str], dict[str, Any] | None] | None = None
        self._on_status_change: Callable[[str, SyncStatus], None] | None = None
        self._on_attempts_change: Callable[[str, int], None] | None = None
        self.is_syncing = False
        self.last_sync_time: datetime | None = None
        self.sync_error: str | None = None

    def attach(self, ledger: EventLedger) -> None:
        """Wire the queue to a ledger.

        Offline appends are enqueued here, outbound records are built from
        the ledger's copy of the event, and status and retry-count changes
        made by the queue are written back to the ledger.
        """

        def resolve(event_id: str) -> dict[str, Any] | None:
            event = ledger.get(event_id)
            return event.to_outbound() if event is not None else None

        self._resolve_event = resolve
        self._on_status_change = ledger.update_sync_status
        self._on_attempts_change = ledger.record_sync_attempts
        ledger.sync_queue = self

    # ── Queries ───────────────────────────────────────────────────

    @property
    def entries(self) -> tuple[SyncEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def contains(self, event_id: str) -> bool:
        return any(e.event_id == event_id for e in self._entries)

    def get(self, event_id: str) -> SyncEntry | None:
        for entry in self._entries:
            if entry.event_id == event_id:
                return entry
        return None

    def pending_entries(self) -> list[SyncEntry]:
        """Entries still awaiting acknowledgement (PENDING or FAILED)."""
        return [e for e in self._entries if e.sync_status in UNSYNCED_STATUSES]

    def _count(self, status: SyncStatus) -> int:
        return sum(1 for e in self._entries if e.sync_status == status)

    def pending_count(self) -> int:
        return self._count(SyncStatus.PENDING)

    def failed_count(self) -> int:
        return self._count(SyncStatus.FAILED)

    def synced_count(self) -> int:
        return self._count(SyncStatus.SYNCED)

    def total_queue_size(self) -> int:
        """Sum of serialized payload lengths, for diagnostics only."""
        return sum(e.payload_size for e in self._entries)

    def total_queue_size_kb(self) -> str:
        return f"{self.total_queue_size() / 1024:.2f}"

    def stats(self) -> QueueStats:
        """Compute aggregate statistics about the queue.

        Retry distribution buckets are '0 retries', '1-3 retries' and
        '4+ retries'; top event types are the five most frequent.
        """
        if not self._entries:
            return QueueStats()

        oldest = min(e.queued_at for e in self._entries)
        distribution = {"0 retries": 0, "1-3 retries": 0, "4+ retries": 0}
        for entry in self._entries:
            if entry.retry_count == 0:
                distribution["0 retries"] += 1
            elif entry.retry_count <= 3:
                distribution["1-3 retries"] += 1
            else:
                distribution["4+ retries"] += 1

        return QueueStats(
            total_queued=len(self._entries),
            total_retried=sum(1 for e in self._entries if e.retry_count > 0),
            pending=self.pending_count(),
            syncing=self._count(SyncStatus.SYNCING),
            synced=self.synced_count(),
            failed=self.failed_count(),
            size_bytes=self.total_queue_size(),
            oldest_event_age=self._clock() - oldest,
            retry_distribution=distribution,
            top_event_types=Counter(e.event_type for e in self._entries).most_common(5),
        )

    # ── Mutation ──────────────────────────────────────────────────

    def enqueue(
        self, event_id: str, event_type: str, payload: dict[str, Any] | None = None
    ) -> SyncEntry:
        entry = SyncEntry(
            event_id=event_id,
            event_type=event_type,
            payload=dict(payload or {}),
            queued_at=self._clock(),
        )
        with self._lock:
            self._entries.append(entry)
        logger.debug("Queued %s %s for sync", event_type, event_id)
        return entry

    def remove_from_queue(self, event_id: str) -> None:
        with self._lock:
            self._entries = [e for e in self._entries if e.event_id != event_id]

    def update_sync_status(self, event_id: str, status: SyncStatus) -> None:
        """Set the status of every entry for ``event_id`` and record the attempt time."""
        status = SyncStatus(status)
        now = self._clock()
        with self._lock:
            for entry in self._entries:
                if entry.event_id == event_id:
                    entry.sync_status = status
                    entry.last_attempt_time = now
        if self._on_status_change is not None and status != SyncStatus.SYNCING:
            self._on_status_change(event_id, status)

    def _persist_attempts(self, entry: SyncEntry) -> None:
        if self._on_attempts_change is not None:
            self._on_attempts_change(entry.event_id, entry.retry_count)

    def increment_retry_count(self, event_id: str) -> None:
        with self._lock:
            matching = [e for e in self._entries if e.event_id == event_id]
            for entry in matching:
                entry.retry_count += 1
        for entry in matching:
            self._persist_attempts(entry)

    def clear_synced_events(self) -> int:
        """Drop acknowledged entries; returns how many were removed."""
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.sync_status != SyncStatus.SYNCED]
            return before - len(self._entries)

    def retry_failed_events(self) -> int:
        """Move every FAILED entry back to PENDING with its retry count reset."""
        retried = 0
        with self._lock:
            failed = [e for e in self._entries if e.sync_status == SyncStatus.FAILED]
            for entry in failed:
                entry.retry_count = 0
                retried += 1
        for entry in failed:
            self._persist_attempts(entry)
            self.update_sync_status(entry.event_id, SyncStatus.PENDING)
        return retried

    def rebuild_from(self, ledger: EventLedger) -> int:
        """Enqueue every unsynced ledger event not already queued.

        Used after a restart, when the queue is empty but the persisted
        ledger still holds events the server has not acknowledged.  Each
        entry resumes with the persisted failed-attempt count.
        """
        added = 0
        for event in ledger.pending_events():
            if self.contains(event.id):
                continue
            entry = self.enqueue(event.id, event.type, event.payload)
            entry.sync_status = event.sync_status
            entry.retry_count = event.sync_attempts
            if event.sync_status == SyncStatus.FAILED:
                # ledgers written before attempt records were kept
                entry.retry_count = max(entry.retry_count, self.max_retries)
            added += 1
        return added

    # ── Delivery ──────────────────────────────────────────────────

    def _outbound_record(self, entry: SyncEntry) -> dict[str, Any]:
        if self._resolve_event is not None:
            record = self._resolve_event(entry.event_id)
            if record is not None:
                return record
        return {"id": entry.event_id, "type": entry.event_type, "payload": entry.payload}

    def _attempt(
        self, transport: EventTransport, entry: SyncEntry, result: SyncRunResult
    ) -> None:
        self.update_sync_status(entry.event_id, SyncStatus.SYNCING)
        try:
            acknowledged = bool(transport.send(self._outbound_record(entry)))
            error = None if acknowledged else "server did not acknowledge event"
        except Exception as exc:
            acknowledged = False
            error = str(exc) or type(exc).__name__

        if acknowledged:
            self.update_sync_status(entry.event_id, SyncStatus.SYNCED)
            result.synced_ids.append(entry.event_id)
            return

        with self._lock:
            entry.retry_count += 1
            exhausted = entry.retry_count >= self.max_retries
        self._persist_attempts(entry)
        message = f"{entry.event_id}: {error} (attempt {entry.retry_count}/{self.max_retries})"
        result.error_messages.append(message)
        logger.warning("Sync failed for %s", message)
        if exhausted:
            self.update_sync_status(entry.event_id, SyncStatus.FAILED)
            result.failed_ids.append(entry.event_id)
        else:
            self.update_sync_status(entry.event_id, SyncStatus.PENDING)
            result.requeued_ids.append(entry.event_id)

    def sync_all(self) -> SyncRunResult:
        """Deliver every PENDING or FAILED entry, one at a time, in queue order.

        Does nothing while offline.  A failed delivery never stops later
        entries from being attempted.
        """
        if not self.is_online():
            logger.debug("Offline, skipping sync")
            return SyncRunResult(skipped=True)
        transport = self.transport
        if transport is None:
            logger.warning("No transport configured, skipping sync")
            return SyncRunResult(skipped=True)

        with self._lock:
            if self.is_syncing:
                return SyncRunResult(skipped=True)
            to_send = self.pending_entries()
            if not to_send:
                return SyncRunResult(skipped=True)
            self.is_syncing = True
            self.sync_error = None

        result = SyncRunResult(attempted=len(to_send))
        try:
            for entry in to_send:
                self._attempt(transport, entry, result)
        finally:
            with self._lock:
                self.is_syncing = False
                # a send cut short leaves its entry deliverable on the next pass
                for entry in to_send:
                    if entry.sync_status == SyncStatus.SYNCING:
                        entry.sync_status = SyncStatus.PENDING
        self.last_sync_time = self._clock()
        if result.error_messages:
            self.sync_error = result.error_messages[-1]
        logger.debug(
            "Sync pass: %d attempted, %d synced, %d errors",
            result.attempted,
            result.synced_count,
            result.error_count,
        )
        return result
