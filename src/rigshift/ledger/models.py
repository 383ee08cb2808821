"""Ledger event model.

Defines the SyncStatus enum, the event type tags written by the workflow,
and the frozen LedgerEvent record.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any


class SyncStatus(StrEnum):
    """Delivery state of a ledger event relative to the server."""

    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


UNSYNCED_STATUSES: frozenset[SyncStatus] = frozenset(
    {SyncStatus.PENDING, SyncStatus.FAILED}
)


# Event type tags
STEP_COMPLETE = "step_complete"
VALIDATION_FAILED = "validation_failed"
RIG_SELECTED = "rig_selected"
SAFETY_ITEM_READ = "safety_item_read"
SAFETY_CONFIRMED = "safety_confirmed"
SIGNATURE_CREATED = "signature_created"
INSPECTION_ITEM_CHECKED = "inspection_item_checked"
PHOTO_CAPTURED = "photo_captured"
INCIDENT_REPORTED = "incident_reported"
SHIFT_TOGGLED = "shift_toggled"
SHIFT_CLOSED = "shift_closed"
NEW_SHIFT_REQUESTED = "new_shift_requested"
SYSTEM_LOCKED = "system_locked"
SYSTEM_UNLOCKED = "system_unlocked"

EVENT_TYPES: frozenset[str] = frozenset(
    {
        STEP_COMPLETE,
        VALIDATION_FAILED,
        RIG_SELECTED,
        SAFETY_ITEM_READ,
        SAFETY_CONFIRMED,
        SIGNATURE_CREATED,
        INSPECTION_ITEM_CHECKED,
        PHOTO_CAPTURED,
        INCIDENT_REPORTED,
        SHIFT_TOGGLED,
        SHIFT_CLOSED,
        NEW_SHIFT_REQUESTED,
        SYSTEM_LOCKED,
        SYSTEM_UNLOCKED,
    }
)


@dataclass(frozen=True)
class LedgerEvent:
    """Immutable record of one operator action.

    Only the sync bookkeeping (``sync_status`` and ``sync_attempts``) ever
    changes after append, and only by the ledger replacing the record.
    Neither field is part of the digest.
    """

    id: str  # ULID
    timestamp: str  # ISO 8601 UTC
    type: str
    operator_id: str
    rig_id: str | None
    payload: dict[str, Any] = field(default_factory=dict)
    digest: str = ""
    previous_digest: str = ""
    sync_status: SyncStatus = SyncStatus.PENDING
    device_id: str = ""
    sync_attempts: int = 0  # failed deliveries since the last manual retry

    def with_sync_status(self, status: SyncStatus) -> LedgerEvent:
        return replace(self, sync_status=SyncStatus(status))

    def with_sync_attempts(self, attempts: int) -> LedgerEvent:
        return replace(self, sync_attempts=attempts)

    def to_outbound(self) -> dict[str, Any]:
        """Record sent to the server; excludes device-local fields."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "operatorId": self.operator_id,
            "rigId": self.rig_id,
            "payload": self.payload,
            "digest": self.digest,
            "previousDigest": self.previous_digest,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "operator_id": self.operator_id,
            "rig_id": self.rig_id,
            "payload": self.payload,
            "digest": self.digest,
            "previous_digest": self.previous_digest,
            "sync_status": str(self.sync_status),
            "device_id": self.device_id,
            "sync_attempts": self.sync_attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerEvent:
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            type=data["type"],
            operator_id=data["operator_id"],
            rig_id=data.get("rig_id"),
            payload=data.get("payload") or {},
            digest=data["digest"],
            previous_digest=data["previous_digest"],
            sync_status=SyncStatus(data.get("sync_status", SyncStatus.PENDING)),
            device_id=data.get("device_id", ""),
            sync_attempts=int(data.get("sync_attempts", 0)),
        )
