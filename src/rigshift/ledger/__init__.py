"""Hash-chained event ledger."""

from .hashing import (
    GENESIS_DIGEST,
    HashChain,
    RollingHashChain,
    Sha256HashChain,
    canonicalize,
    get_hash_chain,
    verification_code,
)
from .ledger import EventLedger, IntegrityFailure, LedgerIntegrityError
from .models import LedgerEvent, SyncStatus
from .store import JsonlLedgerStore, LedgerStore, LedgerStoreError, MemoryLedgerStore

__all__ = [
    "GENESIS_DIGEST",
    "EventLedger",
    "HashChain",
    "IntegrityFailure",
    "JsonlLedgerStore",
    "LedgerEvent",
    "LedgerIntegrityError",
    "LedgerStore",
    "LedgerStoreError",
    "MemoryLedgerStore",
    "RollingHashChain",
    "Sha256HashChain",
    "SyncStatus",
    "canonicalize",
    "get_hash_chain",
    "verification_code",
]
