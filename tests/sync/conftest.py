"""Shared fixtures for sync tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from rigshift.ledger import EventLedger
from rigshift.sync.connectivity import Connectivity
from rigshift.sync.queue import SyncQueue


@pytest.fixture
def connectivity() -> Connectivity:
    """Reachability flag that starts offline."""
    return Connectivity(online=False, server_url="https://sync.test")


@pytest.fixture
def transport() -> MagicMock:
    """Transport that acknowledges every event."""
    mock = MagicMock()
    mock.send.return_value = True
    return mock


@pytest.fixture
def offline_ledger(connectivity: Connectivity, clock) -> EventLedger:
    return EventLedger(is_online=connectivity, clock=clock)


@pytest.fixture
def queue(transport: MagicMock, connectivity: Connectivity, offline_ledger: EventLedger, clock) -> SyncQueue:
    """Queue attached to an offline ledger."""
    q = SyncQueue(transport=transport, is_online=connectivity, clock=clock)
    q.attach(offline_ledger)
    return q
