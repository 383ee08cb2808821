"""Shift workflow state machine and step validators."""

from .machine import INCIDENT_TYPES, LockedError, WorkflowStateMachine
from .models import Step, WorkflowSnapshot, WorkflowState
from .validators import LOCKED_MESSAGE, STEP_VALIDATORS, validate_step

__all__ = [
    "INCIDENT_TYPES",
    "LOCKED_MESSAGE",
    "STEP_VALIDATORS",
    "LockedError",
    "Step",
    "WorkflowSnapshot",
    "WorkflowState",
    "WorkflowStateMachine",
    "validate_step",
]
