"""TTL cache for token prices.

The cache is owned by the component that fetches prices and takes an
injectable clock, so expiry can be driven deterministically in tests.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

# CoinGecko rate limits make anything shorter than a few minutes wasteful
DEFAULT_PRICE_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CachedPrice:
    price: Decimal
    fetched_at: float


class PriceCache:
    """Per-key price cache with a fixed time-to-live.

    Args:
        ttl: Seconds a cached price stays fresh
        clock: Returns the current time in seconds (default: time.monotonic)
    """

    def __init__(
        self,
        ttl: float = DEFAULT_PRICE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CachedPrice] = {}

    def get(self, key: str) -> Decimal | None:
        """Fresh price for key, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self.ttl:
            return None
        return entry.price

    def get_stale(self, key: str) -> Decimal | None:
        """Last known price for key regardless of age."""
        entry = self._entries.get(key)
        return entry.price if entry is not None else None

    def put(self, key: str, price: Decimal) -> None:
        self._entries[key] = CachedPrice(price=price, fetched_at=self._clock())

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or every key when None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
