"""Digest chaining for ledger events.

A digest folds the canonical serialization of an event together with the
digest of the event before it, so editing or removing any recorded event
breaks every later link.  The default chain uses a 32-bit rolling checksum:
it makes tampering *evident* within a device session and is not a
security primitive.  ``Sha256HashChain`` can be swapped in without touching
the ledger.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Protocol

DIGEST_WIDTH = 64
GENESIS_DIGEST = "0" * DIGEST_WIDTH
VERIFICATION_CODE_PATTERN = re.compile(r"^[A-F0-9]{8}$")

_INT32_MIN = -(2**31)
_UINT32 = 2**32


class HashChain(Protocol):
    """Anything that can produce a chained 64-hex-character digest."""

    name: str

    def digest(self, content: str, previous_digest: str) -> str: ...


def canonicalize(
    timestamp: str,
    event_type: str,
    operator_id: str,
    rig_id: str | None,
    payload: Any,
) -> str:
    """Serialize the hashed fields of an event deterministically.

    Keys are sorted and separators fixed, so the same logical event always
    serializes to the same string regardless of payload dict ordering.
    """
    return json.dumps(
        {
            "timestamp": timestamp,
            "type": event_type,
            "operatorId": operator_id,
            "rigId": rig_id,
            "payload": payload,
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _to_int32(value: int) -> int:
    value = (value - _INT32_MIN) % _UINT32
    return value + _INT32_MIN


class RollingHashChain:
    """``acc = (acc << 5) - acc + codepoint`` folded over the input."""

    name = "rolling"

    def digest(self, content: str, previous_digest: str) -> str:
        acc = 0
        for ch in previous_digest + content:
            acc = _to_int32((acc << 5) - acc + ord(ch))
        return format(abs(acc), "x").zfill(DIGEST_WIDTH)


class Sha256HashChain:
    """SHA-256 over ``previous_digest + content``."""

    name = "sha256"

    def digest(self, content: str, previous_digest: str) -> str:
        data = (previous_digest + content).encode("utf-8")
        return hashlib.sha256(data).hexdigest()


HASH_CHAINS: dict[str, type[RollingHashChain] | type[Sha256HashChain]] = {
    RollingHashChain.name: RollingHashChain,
    Sha256HashChain.name: Sha256HashChain,
}


def get_hash_chain(name: str) -> HashChain:
    """Return a hash chain instance by config name."""
    try:
        return HASH_CHAINS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown hash chain {name!r}; expected one of {', '.join(HASH_CHAINS)}"
        ) from None


def verification_code(digest: str) -> str:
    """First 8 hex characters of a digest, upper-cased.

    Returns an empty string when there is no digest yet.
    """
    if not digest:
        return ""
    return digest[:8].upper()
