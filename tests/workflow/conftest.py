"""Workflow fixtures and helpers."""

from __future__ import annotations

import pytest

from rigshift.capture import MockCamera
from rigshift.workflow import Step, WorkflowStateMachine

SAFETY_IDS = ["safety1", "safety2", "safety3", "safety4", "safety5"]


@pytest.fixture
def camera() -> MockCamera:
    return MockCamera(seed=7)


@pytest.fixture
def machine(ledger, catalog, camera) -> WorkflowStateMachine:
    return WorkflowStateMachine(ledger, catalog, camera=camera)


def complete_inspection(machine: WorkflowStateMachine) -> None:
    """Check every entry and set both photos directly on the gate."""
    for item in machine.inspection.items:
        for index in range(len(item.checklist)):
            machine.toggle_inspection_check(item.id, index)
        machine.inspection.set_photo_before(item.id, f"file://{item.id}-before.jpg")
        machine.inspection.set_photo_after(item.id, f"file://{item.id}-after.jpg")


def drive_to(machine: WorkflowStateMachine, target: Step, rig_id: str = "1") -> None:
    """Satisfy each gate and advance until ``target`` is the current step."""
    while machine.current_step < target:
        step = machine.current_step
        if step == Step.AUTHORIZATION:
            machine.submit_credentials("1", "1234")
        elif step == Step.RIG_SELECTION:
            machine.select_rig(rig_id)
        elif step == Step.SAFETY_BRIEFING:
            for item_id in SAFETY_IDS:
                machine.mark_safety_read(item_id)
            machine.confirm_safety("sigdata")
        elif step == Step.INSPECTION:
            complete_inspection(machine)
        elif step == Step.LUBRICATION:
            for item in machine.lubrication.items:
                machine.lubrication.set_photo(item.id, f"file://{item.id}.jpg")
        elif step == Step.WORK_IN_PROGRESS:
            machine.toggle_shift()
        elif step == Step.SHIFT_CLOSURE:
            machine.state.final_photo = "file://final.jpg"
        assert machine.go_to_next_step(), machine.last_error


@pytest.fixture
def drive():
    """Return :func:`drive_to` for tests that need a machine mid-shift."""
    return drive_to
