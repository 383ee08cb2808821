"""Offline sync queue and delivery to the server."""

from .background import BackgroundSyncService
from .connectivity import Connectivity
from .queue import QueueStats, SyncEntry, SyncQueue, SyncRunResult
from .transport import EventTransport, HttpTransport

__all__ = [
    "BackgroundSyncService",
    "Connectivity",
    "EventTransport",
    "HttpTransport",
    "QueueStats",
    "SyncEntry",
    "SyncQueue",
    "SyncRunResult",
]
