"""Signing nonce sequencing for the solver account."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


@dataclass
class NonceLease:
    """A nonce held for one submission."""

    value: int
    consumed: bool = True

    def release(self) -> None:
        """Mark the nonce as not consumed; it is re-read before next use."""
        self.consumed = False


class NonceManager:
    """Hands out account sequence numbers one submission at a time.

    The lock is held for the whole submission, so no two submissions ever
    share a nonce. The nonce advances only when the ledger accepted the
    submission; after a rejection or an exception it is resynced from the
    ledger before next use.

    Args:
        fetch: Reads the account's next sequence number from the ledger
    """

    def __init__(self, fetch: Callable[[], Awaitable[int]]) -> None:
        self._fetch = fetch
        self._lock = asyncio.Lock()
        self._next: int | None = None

    @property
    def current(self) -> int | None:
        return self._next

    @asynccontextmanager
    async def reserve(self) -> AsyncIterator[NonceLease]:
        async with self._lock:
            if self._next is None:
                self._next = await self._fetch()
                logger.debug("nonce_synced", nonce=self._next)
            lease = NonceLease(value=self._next)
            try:
                yield lease
            except BaseException:
                self._next = None
                raise
            self._next = lease.value + 1 if lease.consumed else None
