"""rigshift: shift checklist workflow with a hash-chained event ledger."""

__version__ = "0.4.0"

from rigshift.ledger import EventLedger, LedgerEvent, SyncStatus
from rigshift.session import Session, open_session
from rigshift.sync import SyncQueue
from rigshift.workflow import Step, WorkflowStateMachine

__all__ = [
    "EventLedger",
    "LedgerEvent",
    "Session",
    "Step",
    "SyncQueue",
    "SyncStatus",
    "WorkflowStateMachine",
    "__version__",
    "open_session",
]
