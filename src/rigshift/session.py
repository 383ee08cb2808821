"""Wire a device session together from configuration.

A session is one ledger, its sync queue, the reachability flag and the
workflow state machine that writes to the ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rigshift.capture import PhotoCapture
from rigshift.catalog import Catalog, load_catalog
from rigshift.config import RigshiftConfig
from rigshift.ledger import EventLedger, JsonlLedgerStore, LedgerStore, get_hash_chain
from rigshift.sync import Connectivity, EventTransport, HttpTransport, SyncQueue
from rigshift.workflow import WorkflowStateMachine

logger = logging.getLogger(__name__)


@dataclass
class Session:
    config: RigshiftConfig
    catalog: Catalog
    connectivity: Connectivity
    ledger: EventLedger
    queue: SyncQueue
    machine: WorkflowStateMachine


def open_session(
    config: RigshiftConfig | None = None,
    *,
    store: LedgerStore | None = None,
    transport: EventTransport | None = None,
    camera: PhotoCapture | None = None,
    online: bool = True,
) -> Session:
    """Build a session from config.

    Uses the JSON-lines ledger at the configured path unless ``store`` is
    given, and an HTTP transport to the configured server unless
    ``transport`` is given.  Unsynced events already in the ledger are put
    back on the sync queue.
    """
    config = config or RigshiftConfig()
    catalog = load_catalog(config.get_catalog_path())
    server_url = config.get_server_url()
    connectivity = Connectivity(online=online, server_url=server_url)

    ledger = EventLedger(
        store=store if store is not None else JsonlLedgerStore(config.get_ledger_path()),
        hash_chain=get_hash_chain(config.get_hash_algorithm()),
        device_id=config.get_device_id(),
        is_online=connectivity,
    )
    queue = SyncQueue(
        transport=transport
        if transport is not None
        else HttpTransport(server_url, timeout=config.get_timeout()),
        is_online=connectivity,
        max_retries=config.get_max_retries(),
    )
    queue.attach(ledger)
    restored = queue.rebuild_from(ledger)
    if restored:
        logger.info("Restored %d unsynced events to the sync queue", restored)

    machine = WorkflowStateMachine(
        ledger,
        catalog,
        camera=camera,
        clear_lock_on_reset=config.clear_lock_on_reset(),
        lock_threshold=config.get_lock_threshold(),
    )
    return Session(
        config=config,
        catalog=catalog,
        connectivity=connectivity,
        ledger=ledger,
        queue=queue,
        machine=machine,
    )
