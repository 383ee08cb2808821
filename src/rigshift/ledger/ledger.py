"""Append-only, hash-chained event ledger.

The ledger is the single source of truth for what happened during a shift.
Each appended event carries the digest of its predecessor, and the latest
digest yields the operator-visible verification code.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import ulid

from rigshift.config import DEFAULT_DEVICE_ID

from .hashing import GENESIS_DIGEST, HashChain, RollingHashChain, canonicalize, verification_code
from .models import UNSYNCED_STATUSES, LedgerEvent, SyncStatus
from .store import LedgerStore, MemoryLedgerStore

if TYPE_CHECKING:
    from rigshift.sync.queue import SyncQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntegrityFailure:
    """Where and why the chain stopped verifying."""

    index: int
    event_id: str
    reason: str

    def __str__(self) -> str:
        return f"event #{self.index} ({self.event_id}): {self.reason}"


class LedgerIntegrityError(Exception):
    """Raised by :meth:`EventLedger.assert_integrity` on a broken chain."""

    def __init__(self, failure: IntegrityFailure) -> None:
        super().__init__(f"Ledger integrity check failed at {failure}")
        self.failure = failure


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _always_online() -> bool:
    return True


def _never_locked() -> bool:
    return False


class EventLedger:
    """Ordered, append-only sequence of chained events.

    Args:
        store: Where events are persisted. Events already in the store are
            loaded on construction so the chain continues across restarts.
        hash_chain: Digest function; the rolling checksum by default.
        device_id: Stamped on every event.
        is_online: Reachability flag; events appended while offline are
            marked pending and handed to the attached sync queue.
        is_locked: Lock flag owned by the workflow; while it reports True
            appends are rejected.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        store: LedgerStore | None = None,
        hash_chain: HashChain | None = None,
        device_id: str = DEFAULT_DEVICE_ID,
        is_online: Callable[[], bool] = _always_online,
        is_locked: Callable[[], bool] = _never_locked,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store: LedgerStore = store if store is not None else MemoryLedgerStore()
        self.hash_chain: HashChain = hash_chain if hash_chain is not None else RollingHashChain()
        self.device_id = device_id
        self.is_online = is_online
        self.is_locked = is_locked
        self.sync_queue: SyncQueue | None = None
        self._clock = clock
        self._lock = threading.RLock()
        self._events: list[LedgerEvent] = self.store.load()
        self._index: dict[str, int] = {e.id: i for i, e in enumerate(self._events)}

    # ── Queries ───────────────────────────────────────────────────

    @property
    def events(self) -> tuple[LedgerEvent, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[LedgerEvent]:
        return iter(tuple(self._events))

    @property
    def latest_digest(self) -> str:
        if not self._events:
            return ""
        return self._events[-1].digest

    @property
    def verification_code(self) -> str:
        return verification_code(self.latest_digest)

    def get(self, event_id: str) -> LedgerEvent | None:
        index = self._index.get(event_id)
        return self._events[index] if index is not None else None

    def events_of_type(self, event_type: str) -> list[LedgerEvent]:
        return [e for e in self._events if e.type == event_type]

    def pending_events(self) -> list[LedgerEvent]:
        """Events not yet acknowledged by the server, in ledger order."""
        return [e for e in self._events if e.sync_status in UNSYNCED_STATUSES]

    # ── Mutation ──────────────────────────────────────────────────

    def _next_timestamp(self) -> str:
        now = self._clock()
        if self._events:
            previous = datetime.fromisoformat(self._events[-1].timestamp)
            if now < previous:
                now = previous
        return now.isoformat()

    def append(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        operator_id: str = "",
        rig_id: str | None = None,
    ) -> LedgerEvent | None:
        """Chain a new event onto the ledger.

        Returns None without recording anything while the workflow is
        locked.  The lock event itself is appended before the lock flag is
        set, so it is always recorded.
        """
        payload = dict(payload or {})
        with self._lock:
            if self.is_locked():
                logger.warning("Ledger append rejected while locked: %s", event_type)
                return None

            timestamp = self._next_timestamp()
            previous = self._events[-1].digest if self._events else GENESIS_DIGEST
            content = canonicalize(timestamp, event_type, operator_id, rig_id, payload)
            online = self.is_online()
            event = LedgerEvent(
                id=str(ulid.ULID()),
                timestamp=timestamp,
                type=event_type,
                operator_id=operator_id,
                rig_id=rig_id,
                payload=payload,
                digest=self.hash_chain.digest(content, previous),
                previous_digest=previous,
                sync_status=SyncStatus.SYNCED if online else SyncStatus.PENDING,
                device_id=self.device_id,
            )
            self.store.append(event)
            self._index[event.id] = len(self._events)
            self._events.append(event)

        logger.debug("Appended %s %s (code %s)", event.type, event.id, self.verification_code)
        if not online and self.sync_queue is not None:
            self.sync_queue.enqueue(event.id, event.type, event.payload)
        return event

    def update_sync_status(self, event_id: str, status: SyncStatus) -> None:
        """Change only the sync status of one event; unknown ids are ignored."""
        status = SyncStatus(status)
        with self._lock:
            index = self._index.get(event_id)
            if index is None:
                return
            if self._events[index].sync_status == status:
                return
            self.store.update_status(event_id, status)
            self._events[index] = self._events[index].with_sync_status(status)

    def record_sync_attempts(self, event_id: str, attempts: int) -> None:
        """Persist the failed-delivery count of one event; unknown ids are ignored."""
        with self._lock:
            index = self._index.get(event_id)
            if index is None or self._events[index].sync_attempts == attempts:
                return
            self.store.update_attempts(event_id, attempts)
            self._events[index] = self._events[index].with_sync_attempts(attempts)

    def mark_synced(self, event_id: str) -> None:
        self.update_sync_status(event_id, SyncStatus.SYNCED)

    def clear(self) -> None:
        """Administrative wipe of the whole history. Never called by the workflow."""
        with self._lock:
            self.store.clear()
            self._events.clear()
            self._index.clear()
        logger.warning("Event ledger cleared")

    # ── Integrity ─────────────────────────────────────────────────

    def find_integrity_failure(self) -> IntegrityFailure | None:
        """Recompute the chain from genesis and return the first break."""
        expected_previous = GENESIS_DIGEST
        seen: set[str] = set()
        for index, event in enumerate(self._events):
            if event.id in seen:
                return IntegrityFailure(index, event.id, "duplicate event id")
            seen.add(event.id)
            if event.previous_digest != expected_previous:
                return IntegrityFailure(
                    index, event.id, "previous digest does not match the preceding event"
                )
            content = canonicalize(
                event.timestamp, event.type, event.operator_id, event.rig_id, event.payload
            )
            if self.hash_chain.digest(content, event.previous_digest) != event.digest:
                return IntegrityFailure(index, event.id, "stored digest does not match content")
            expected_previous = event.digest
        return None

    def verify(self) -> bool:
        return self.find_integrity_failure() is None

    def assert_integrity(self) -> None:
        failure = self.find_integrity_failure()
        if failure is not None:
            raise LedgerIntegrityError(failure)
