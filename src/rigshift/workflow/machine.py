"""Shift workflow state machine.

The machine owns the current step and the lock flag, and is the only
component that advances the workflow or writes workflow events to the
ledger.  Gate mutations go through its methods so the lock is checked
before every change.

Lock semantics:

- ``lock(reason)`` appends ``system_locked`` and only then sets the flag,
  so the lock event is always the last event recorded before the freeze.
- While locked every mutator returns False/None, nothing is appended and
  ``current_step`` does not move.
- ``reset_workflow`` lifts the lock only when ``clear_lock_on_reset`` is
  set; otherwise ``admin_reset`` is the way out.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Literal

from rigshift.capture import CaptureError, MockCamera, PhotoCapture, PhotoRef
from rigshift.catalog.models import Catalog, Rig
from rigshift.config import DEFAULT_LOCK_THRESHOLD
from rigshift.gates.inspection import InspectionGate
from rigshift.gates.lubrication import LubricationGate
from rigshift.gates.safety import SafetyGate
from rigshift.gates.warehouse import StockLookup, WarehouseGate
from rigshift.ledger import models as events
from rigshift.ledger.ledger import EventLedger
from rigshift.ledger.models import LedgerEvent

from .models import Step, WorkflowSnapshot, WorkflowState
from .validators import LOCKED_MESSAGE, validate_step

logger = logging.getLogger(__name__)

INCIDENT_TYPES = ("equipment_failure", "safety_violation")


class LockedError(Exception):
    """Raised by :meth:`WorkflowStateMachine.require_unlocked`."""


class WorkflowStateMachine:
    """Drives one device through the shift checklist.

    Args:
        ledger: Event ledger the machine writes to. Its lock check is
            pointed at this machine.
        catalog: Reference data (operators, rigs, checklists, stock).
        stock: Inventory lookup; defaults to a :class:`WarehouseGate` built
            from the catalog.
        camera: Photo capture capability; defaults to :class:`MockCamera`.
        clear_lock_on_reset: Whether ``reset_workflow`` lifts a lock.
        lock_threshold: Safety violation reports that lock the workflow.
    """

    def __init__(
        self,
        ledger: EventLedger,
        catalog: Catalog,
        *,
        stock: StockLookup | None = None,
        camera: PhotoCapture | None = None,
        clear_lock_on_reset: bool = False,
        lock_threshold: int = DEFAULT_LOCK_THRESHOLD,
    ) -> None:
        self.ledger = ledger
        self.catalog = catalog
        self.safety = SafetyGate(catalog.safety)
        self.inspection = InspectionGate(catalog.inspection)
        self.lubrication = LubricationGate(catalog.lubrication)
        self.warehouse = WarehouseGate(catalog.warehouse)
        self.stock: StockLookup = stock if stock is not None else self.warehouse
        self.camera: PhotoCapture = camera if camera is not None else MockCamera()
        self.clear_lock_on_reset = clear_lock_on_reset
        self.lock_threshold = lock_threshold
        self.state = WorkflowState()
        self._shift_started: float | None = None
        self._lock = threading.RLock()
        self._capture_locks: dict[str, asyncio.Lock] = {}
        ledger.is_locked = lambda: self.state.locked

    # ── State queries ─────────────────────────────────────────────

    @property
    def current_step(self) -> Step:
        return self.state.current_step

    @property
    def locked(self) -> bool:
        return self.state.locked

    @property
    def last_error(self) -> str | None:
        return self.state.last_error

    @property
    def selected_rig(self) -> Rig | None:
        if self.state.rig_id is None:
            return None
        return self.catalog.get_rig(self.state.rig_id)

    @property
    def verification_code(self) -> str:
        return self.ledger.verification_code

    def require_unlocked(self) -> None:
        if self.state.locked:
            raise LockedError(LOCKED_MESSAGE)

    def snapshot(self) -> WorkflowSnapshot:
        operator = self.catalog.get_operator(self.state.operator_id)
        rig = self.selected_rig
        model_id = rig.model_id if rig is not None else None
        if model_id is not None:
            sufficient = self.stock.has_sufficient_stock(model_id)
            shortages = tuple(i.id for i in self.stock.shortages(model_id))
        else:
            sufficient, shortages = False, ()
        return WorkflowSnapshot(
            current_step=self.state.current_step,
            locked=self.state.locked,
            operator_id=self.state.operator_id,
            operator_known=operator is not None,
            pin_matches=operator is not None and self.state.submitted_pin == operator.pin,
            rig_id=self.state.rig_id,
            rig_model_id=model_id,
            stock_sufficient=sufficient,
            stock_shortages=shortages,
            safety=self.safety.snapshot(),
            inspection=self.inspection.snapshot(),
            lubrication=self.lubrication.snapshot(),
            shift_active=self.state.shift_active,
            final_photo=self.state.final_photo,
        )

    # ── Ledger ────────────────────────────────────────────────────

    def _log(self, event_type: str, payload: dict[str, Any] | None = None) -> LedgerEvent | None:
        return self.ledger.append(
            event_type,
            payload or {},
            operator_id=self.state.operator_id,
            rig_id=self.state.rig_id,
        )

    def _reject_if_locked(self, action: str) -> bool:
        if self.state.locked:
            self.state.last_error = LOCKED_MESSAGE
            logger.warning("Rejected %s: workflow is locked", action)
            return True
        return False

    # ── Step transitions ──────────────────────────────────────────

    def validate(self, step: Step | int | None = None) -> tuple[bool, str | None]:
        """Check whether ``step`` (default: the current one) may be left."""
        target = self.state.current_step if step is None else Step(step)
        return validate_step(target, self.snapshot())

    def go_to_next_step(self) -> bool:
        with self._lock:
            if self._reject_if_locked("step advance"):
                return False
            step = self.state.current_step
            ok, error = self.validate(step)
            if not ok:
                self.state.last_error = error
                self._log(events.VALIDATION_FAILED, {"step": int(step), "error": error})
                return False
            self._log(events.STEP_COMPLETE, {"step": int(step), "nextStep": int(step) + 1})
            self.state.current_step = Step(step + 1)
            self.state.last_error = None
            return True

    def go_to_previous_step(self) -> bool:
        """Step back for corrections. No validation; never below the first step."""
        with self._lock:
            if self._reject_if_locked("step back"):
                return False
            if self.state.current_step == Step.AUTHORIZATION:
                return False
            self.state.current_step = Step(self.state.current_step - 1)
            self.state.last_error = None
            return True

    # ── Authorization and rig selection ───────────────────────────

    def submit_credentials(self, operator_id: str, pin: str) -> bool:
        """Record the operator id and PIN; True when the PIN matches."""
        with self._lock:
            if self._reject_if_locked("credentials"):
                return False
            self.state.operator_id = operator_id.strip()
            self.state.submitted_pin = pin
            return self.snapshot().pin_matches

    def select_rig(self, rig_id: str) -> bool:
        with self._lock:
            if self._reject_if_locked("rig selection"):
                return False
            rig = self.catalog.get_rig(rig_id)
            if rig is None:
                self.state.last_error = f"Unknown rig {rig_id!r}"
                return False
            self.state.rig_id = rig.id
            self.lubrication.initialize(rig.model_id)
            self._log(
                events.RIG_SELECTED,
                {"rigId": rig.id, "rigName": rig.name, "modelId": rig.model_id},
            )
            return True

    # ── Safety briefing ───────────────────────────────────────────

    def mark_safety_read(self, item_id: str) -> bool:
        with self._lock:
            if self._reject_if_locked("safety read"):
                return False
            if not self.safety.mark_read(item_id):
                return False
            item = next(i for i in self.safety.items if i.id == item_id)
            self._log(events.SAFETY_ITEM_READ, {"itemId": item.id, "title": item.title})
            return True

    def confirm_safety(self, signature: str) -> bool:
        with self._lock:
            if self._reject_if_locked("safety confirmation"):
                return False
            if not self.safety.confirm(signature):
                self.state.last_error = "All safety briefing items must be read"
                return False
            self._log(events.SAFETY_CONFIRMED, {"confirmed": True})
            self._log(events.SIGNATURE_CREATED, {})
            return True

    # ── Inspection ────────────────────────────────────────────────

    def toggle_inspection_check(self, item_id: str, index: int) -> bool:
        with self._lock:
            if self._reject_if_locked("inspection check"):
                return False
            item = self.inspection.get(item_id)
            if item is None or not self.inspection.toggle_checklist(item_id, index):
                return False
            self._log(
                events.INSPECTION_ITEM_CHECKED,
                {"itemId": item_id, "index": index, "checked": item.checklist[index].checked},
            )
            return True

    # ── Photos ────────────────────────────────────────────────────

    async def _capture(self, slot: str) -> PhotoRef | None:
        """Take one photo for ``slot``; captures for the same slot run one at a time."""
        if self._reject_if_locked(f"photo {slot}"):
            return None
        capture_lock = self._capture_locks.setdefault(slot, asyncio.Lock())
        async with capture_lock:
            try:
                photo = await self.camera.capture_photo()
            except CaptureError as exc:
                self.state.last_error = f"Photo capture failed: {exc}"
                logger.warning("Photo capture failed for %s: %s", slot, exc)
                return None
        if self._reject_if_locked(f"photo {slot}"):
            return None
        return photo

    async def capture_inspection_photo(
        self, item_id: str, when: Literal["before", "after"]
    ) -> PhotoRef | None:
        if when not in ("before", "after"):
            raise ValueError(f"when must be 'before' or 'after', got {when!r}")
        if self.inspection.get(item_id) is None:
            return None
        photo = await self._capture(f"inspection:{item_id}:{when}")
        if photo is None:
            return None
        with self._lock:
            if self._reject_if_locked("inspection photo"):
                return None
            if when == "before":
                self.inspection.set_photo_before(item_id, photo.ref)
            else:
                self.inspection.set_photo_after(item_id, photo.ref)
            self._log(
                events.PHOTO_CAPTURED,
                {"type": f"inspection_{when}", "itemId": item_id, "ref": photo.ref},
            )
        return photo

    async def capture_lubrication_photo(self, item_id: str) -> PhotoRef | None:
        if self.lubrication.get(item_id) is None:
            return None
        photo = await self._capture(f"lubrication:{item_id}")
        if photo is None:
            return None
        with self._lock:
            if self._reject_if_locked("lubrication photo"):
                return None
            self.lubrication.set_photo(item_id, photo.ref)
            self._log(
                events.PHOTO_CAPTURED,
                {"type": "lubrication", "itemId": item_id, "ref": photo.ref},
            )
        return photo

    async def capture_final_photo(self) -> PhotoRef | None:
        photo = await self._capture("final")
        if photo is None:
            return None
        with self._lock:
            if self._reject_if_locked("final photo"):
                return None
            self.state.final_photo = photo.ref
            self._log(events.PHOTO_CAPTURED, {"type": "final", "ref": photo.ref})
        return photo

    # ── Work ──────────────────────────────────────────────────────

    def shift_duration(self) -> int:
        """Seconds since work was started, 0 when not running."""
        if self._shift_started is None:
            return 0
        return int(time.monotonic() - self._shift_started)

    def toggle_shift(self) -> bool:
        """Start or stop work. Returns False when rejected."""
        with self._lock:
            if self._reject_if_locked("shift toggle"):
                return False
            duration = self.shift_duration()
            active = not self.state.shift_active
            self.state.shift_active = active
            self._shift_started = time.monotonic() if active else None
            self._log(events.SHIFT_TOGGLED, {"active": active, "duration": duration})
            return True

    def report_incident(self, incident_type: str) -> bool:
        """Record an incident; enough safety violations lock the workflow."""
        if incident_type not in INCIDENT_TYPES:
            raise ValueError(
                f"incident type must be one of {', '.join(INCIDENT_TYPES)}, got {incident_type!r}"
            )
        with self._lock:
            if self._reject_if_locked("incident report"):
                return False
            self._log(events.INCIDENT_REPORTED, {"type": incident_type})
            if incident_type == "safety_violation":
                self.state.safety_violations += 1
                if self.state.safety_violations >= self.lock_threshold:
                    self.lock(f"{self.state.safety_violations} safety violations reported")
            return True

    def close_shift(self) -> bool:
        """Record the shift closure and leave the closure step."""
        with self._lock:
            if self._reject_if_locked("shift closure"):
                return False
            if self.state.current_step != Step.SHIFT_CLOSURE:
                self.state.last_error = f"Shift can only be closed from {Step.SHIFT_CLOSURE.label}"
                return False
            ok, error = self.validate()
            if not ok:
                self.state.last_error = error
                self._log(events.VALIDATION_FAILED, {"step": int(Step.SHIFT_CLOSURE), "error": error})
                return False
            operator = self.catalog.get_operator(self.state.operator_id)
            rig = self.selected_rig
            self._log(
                events.SHIFT_CLOSED,
                {
                    "operator": (operator.name if operator and operator.name else self.state.operator_id),
                    "rig": rig.name if rig is not None else None,
                    "verificationCode": self.ledger.verification_code,
                },
            )
            return self.go_to_next_step()

    # ── Lock and reset ────────────────────────────────────────────

    def lock(self, reason: str) -> bool:
        """Freeze the workflow. The ``system_locked`` event is appended first."""
        with self._lock:
            if self.state.locked:
                return False
            self._log(events.SYSTEM_LOCKED, {"reason": reason, "step": int(self.state.current_step)})
            self.state.locked = True
            self.state.lock_reason = reason
            self.state.last_error = LOCKED_MESSAGE
            logger.warning("Workflow locked: %s", reason)
            return True

    def _unlock(self, payload: dict[str, Any]) -> None:
        self.state.locked = False
        self.state.lock_reason = None
        self._log(events.SYSTEM_UNLOCKED, payload)

    def _clear_session(self) -> None:
        self.state = WorkflowState()
        self._shift_started = None
        self.safety.reset()
        self.inspection.reset()
        self.lubrication.reset()

    def reset_workflow(self) -> bool:
        """Start a new shift from the first step. The ledger is kept.

        A locked workflow is only reset when ``clear_lock_on_reset`` is set.
        """
        with self._lock:
            if self.state.locked:
                if not self.clear_lock_on_reset:
                    self.state.last_error = LOCKED_MESSAGE
                    logger.warning("Rejected reset: workflow is locked")
                    return False
                self._unlock({"reason": "reset"})
            else:
                self._log(events.NEW_SHIFT_REQUESTED, {})
            self._clear_session()
            return True

    def admin_reset(self, admin_id: str) -> bool:
        """Lift a lock and start over. Returns False when nothing was locked."""
        if not admin_id.strip():
            raise ValueError("admin_id is required")
        with self._lock:
            if not self.state.locked:
                return False
            self._unlock({"reason": "admin", "adminId": admin_id})
            self._clear_session()
            return True
