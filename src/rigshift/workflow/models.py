"""Workflow step and state types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from rigshift.gates.inspection import InspectionSnapshot
from rigshift.gates.lubrication import LubricationSnapshot
from rigshift.gates.safety import SafetySnapshot


class Step(IntEnum):
    """Shift workflow steps, in order."""

    AUTHORIZATION = 0
    RIG_SELECTION = 1
    SAFETY_BRIEFING = 2
    INSPECTION = 3
    LUBRICATION = 4
    WORK_IN_PROGRESS = 5
    SHIFT_CLOSURE = 6
    COMPLETED = 7

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass
class WorkflowState:
    """Mutable state owned by the state machine."""

    current_step: Step = Step.AUTHORIZATION
    locked: bool = False
    last_error: str | None = None
    lock_reason: str | None = None
    operator_id: str = ""
    submitted_pin: str | None = None
    rig_id: str | None = None
    shift_active: bool = False
    final_photo: str | None = None
    safety_violations: int = 0


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Immutable view of everything the step validators look at."""

    current_step: Step
    locked: bool
    operator_id: str
    pin_matches: bool
    operator_known: bool
    rig_id: str | None
    rig_model_id: str | None
    stock_sufficient: bool
    stock_shortages: tuple[str, ...]
    safety: SafetySnapshot
    inspection: InspectionSnapshot
    lubrication: LubricationSnapshot
    shift_active: bool
    final_photo: str | None
