"""Periodic flush of the sync queue.

A daemon timer wakes every ``interval`` seconds.  When the queue holds
unsent events it optionally probes the server first, then runs one
``sync_all`` pass.  A pass with delivery errors switches the wait to an
exponential backoff; the first clean pass switches it back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from rigshift.config import DEFAULT_SYNC_INTERVAL

from .queue import SyncQueue, SyncRunResult

logger = logging.getLogger(__name__)

INITIAL_BACKOFF = 0.5
MAX_BACKOFF = 30.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BackgroundSyncService:
    """Keeps offline events flowing to the server while the app runs.

    Args:
        queue: Queue to flush.
        interval: Seconds between ticks while passes succeed.
        probe: Reachability check run before a tick that has work, for
            example :meth:`Connectivity.probe`.  Skipped when None.
        clock: Source of the current UTC time.
    """

    queue: SyncQueue
    interval: float = DEFAULT_SYNC_INTERVAL
    probe: Callable[[], bool] | None = None
    clock: Callable[[], datetime] = _utc_now
    failures: int = field(default=0, init=False)
    backoff: float = field(default=INITIAL_BACKOFF, init=False)
    last_success: datetime | None = field(default=None, init=False)
    last_result: SyncRunResult | None = field(default=None, init=False, repr=False)
    _timer: threading.Timer | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._timer is not None

    def next_delay(self) -> float:
        """Seconds until the next tick."""
        return self.backoff if self.failures else self.interval

    def start(self) -> None:
        if self.running:
            return
        self._arm()
        logger.debug("Background sync every %ss", self.interval)

    def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        logger.debug("Background sync stopped")

    def sync_now(self) -> SyncRunResult:
        """Run one pass now and fold its outcome into the backoff state."""
        with self._lock:
            result = self.queue.sync_all()
            self._record(result)
        return result

    def _record(self, result: SyncRunResult) -> None:
        self.last_result = result
        if result.skipped:
            return
        if result.error_count:
            self.failures += 1
            self.backoff = min(INITIAL_BACKOFF * 2**self.failures, MAX_BACKOFF)
            logger.warning(
                "%d of %d events not delivered; retrying in %.1fs",
                result.error_count,
                result.attempted,
                self.backoff,
            )
        else:
            self.failures = 0
            self.backoff = INITIAL_BACKOFF
            self.last_success = self.clock()

    def _arm(self) -> None:
        timer = threading.Timer(self.next_delay(), self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        if not self.running:
            return
        if self.queue.pending_entries() and (self.probe is None or self.probe()):
            self.sync_now()
        if self.running:
            self._arm()
