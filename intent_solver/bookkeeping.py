"""Off-ledger bookkeeping of submission hashes.

Nothing here is ever consulted for fill state; the ledger is the only
source of truth. These records exist for operators and auditing.
"""

from __future__ import annotations

from collections import OrderedDict
from enum import Enum
from typing import Protocol

import structlog

logger = structlog.get_logger()

# Hashes kept by the local cache before the oldest are evicted
DEFAULT_TX_CACHE_SIZE = 100


class TxKind(str, Enum):
    """Role of a recorded transaction."""

    MAKER = "maker"
    TAKER = "taker"
    BID = "bid"


class TxHashCache:
    """Maps an intent id to the hash of its first recorded submission.

    Capped: once `max_entries` is exceeded the oldest entries are evicted.
    """

    def __init__(self, max_entries: int = DEFAULT_TX_CACHE_SIZE) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[int, str] = OrderedDict()

    def record(self, intent_id: int, tx_hash: str) -> None:
        if intent_id in self._entries:
            return
        self._entries[intent_id] = tx_hash
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get(self, intent_id: int) -> str | None:
        return self._entries.get(intent_id)

    def __contains__(self, intent_id: object) -> bool:
        return intent_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class BookkeepingSink(Protocol):
    """External store of (kind, intent_id, tx_hash) records.

    Implementations upsert with a uniqueness constraint per hash, so
    recording the same hash twice is harmless.
    """

    def record(self, kind: TxKind, intent_id: int, tx_hash: str) -> None:
        ...


class LoggingBookkeepingSink:
    """Bookkeeping sink that only logs, deduplicating by hash."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def record(self, kind: TxKind, intent_id: int, tx_hash: str) -> None:
        if tx_hash in self._seen:
            return
        self._seen.add(tx_hash)
        logger.info("tx_recorded", kind=kind.value, intent_id=intent_id, tx_hash=tx_hash)
