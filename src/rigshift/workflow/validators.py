"""Per-step validation table.

Maps each step to a pure predicate over a :class:`WorkflowSnapshot`.  A
predicate returns ``(True, None)`` when the step may be left, or
``(False, message)`` with a human-readable reason.
"""

from __future__ import annotations

from collections.abc import Callable

from .models import Step, WorkflowSnapshot

LOCKED_MESSAGE = "System is locked for safety. Contact an administrator."

StepValidator = Callable[[WorkflowSnapshot], tuple[bool, str | None]]


def _validate_authorization(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    if not snap.operator_id.strip():
        return False, "Operator ID is required"
    if not snap.operator_known:
        return False, f"Unknown operator {snap.operator_id!r}"
    if not snap.pin_matches:
        return False, "Incorrect PIN"
    return True, None


def _validate_rig_selection(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    if snap.rig_id is None:
        return False, "Select a rig to continue"
    if not snap.stock_sufficient:
        detail = f": {', '.join(snap.stock_shortages)}" if snap.stock_shortages else ""
        return False, f"Work blocked by warehouse shortage{detail}"
    return True, None


def _validate_safety(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    if not snap.safety.all_read:
        return False, "All safety briefing items must be read"
    if not snap.safety.confirmed:
        return False, "Safety briefing must be confirmed"
    if snap.safety.signature is None:
        return False, "A signature is required to confirm the briefing"
    return True, None


def _validate_inspection(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    if snap.inspection.incomplete:
        return False, f"Inspection incomplete: {', '.join(snap.inspection.incomplete)}"
    return True, None


def _validate_lubrication(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    if snap.lubrication.model_id is None:
        return False, "Lubrication points are not loaded; select a rig first"
    if snap.lubrication.incomplete:
        return False, f"Lubrication incomplete: {', '.join(snap.lubrication.incomplete)}"
    return True, None


def _validate_work(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    if not snap.shift_active:
        return False, "Work must be started before the shift can be closed"
    return True, None


def _validate_shift_closure(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    if not snap.final_photo:
        return False, "A final photo of the equipment is required"
    return True, None


def _validate_completed(snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    return False, "Workflow is already completed"


STEP_VALIDATORS: dict[Step, StepValidator] = {
    Step.AUTHORIZATION: _validate_authorization,
    Step.RIG_SELECTION: _validate_rig_selection,
    Step.SAFETY_BRIEFING: _validate_safety,
    Step.INSPECTION: _validate_inspection,
    Step.LUBRICATION: _validate_lubrication,
    Step.WORK_IN_PROGRESS: _validate_work,
    Step.SHIFT_CLOSURE: _validate_shift_closure,
    Step.COMPLETED: _validate_completed,
}


def validate_step(step: Step, snap: WorkflowSnapshot) -> tuple[bool, str | None]:
    """Run the validator for ``step``; a locked snapshot always fails."""
    if snap.locked:
        return False, LOCKED_MESSAGE
    return STEP_VALIDATORS[Step(step)](snap)
