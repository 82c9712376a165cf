"""USD price sources for the oracle quoter."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx
import structlog

from intent_solver.constants import DEFAULT_TOKEN_DECIMALS
from intent_solver.models.types import normalize_address
from intent_solver.pricing.cache import PriceCache

logger = structlog.get_logger()

COINGECKO_API_URL = "https://api.coingecko.com/api/v3"


@dataclass(frozen=True)
class TokenInfo:
    """Static metadata for a token the solver knows how to price.

    Attributes:
        symbol: Display symbol
        coingecko_id: CoinGecko asset id used for USD lookups
        decimals: On-ledger precision
        is_stable: Stablecoins are priced at exactly 1 USD without a lookup
        fallback_usd: Last-resort price when the API and cache both fail
    """

    symbol: str
    coingecko_id: str
    decimals: int = DEFAULT_TOKEN_DECIMALS
    is_stable: bool = False
    fallback_usd: Decimal | None = None


# Testnet token deployments, keyed by normalized address
TUSDC_ADDRESS = "0xd249fd3776a6bf959963d2f7712386da3f343a973f0d88ed05b1e9e6be6cb015"
TMOVE_ADDRESS = "0x9913b3a2cd19b572521bcc890058dfd285943fbfa33b7c954879f55bbe5da89"

DEFAULT_TOKENS: dict[str, TokenInfo] = {
    normalize_address(TUSDC_ADDRESS): TokenInfo(
        symbol="tUSDC", coingecko_id="usd-coin", is_stable=True
    ),
    normalize_address(TMOVE_ADDRESS): TokenInfo(
        symbol="tMOVE", coingecko_id="movement", fallback_usd=Decimal("0.036")
    ),
}


def _token_key(token: str) -> str:
    try:
        return normalize_address(token)
    except ValueError:
        return token


class PriceSource(Protocol):
    """Source of USD prices for ledger tokens."""

    async def get_usd_price(self, token: str) -> Decimal | None:
        """USD price of one whole token, or None if unknown."""
        ...

    def decimals(self, token: str) -> int:
        """On-ledger precision of the token."""
        ...


class StaticPriceSource:
    """Fixed price table, for dry runs and tests.

    Args:
        prices: USD price per whole token, keyed by token address
        decimals: Token precision overrides, keyed by token address
    """

    def __init__(
        self,
        prices: Mapping[str, Decimal | str | int],
        decimals: Mapping[str, int] | None = None,
    ) -> None:
        self._prices = {_token_key(k): Decimal(v) for k, v in prices.items()}
        self._decimals = {_token_key(k): v for k, v in (decimals or {}).items()}

    async def get_usd_price(self, token: str) -> Decimal | None:
        return self._prices.get(_token_key(token))

    def decimals(self, token: str) -> int:
        return self._decimals.get(_token_key(token), DEFAULT_TOKEN_DECIMALS)


class CoinGeckoPriceSource:
    """USD prices from the CoinGecko simple price API.

    Prices are cached for the cache's TTL. When a lookup fails, the last
    cached price is served even if stale, then the token's fallback price.

    Args:
        client: Shared async HTTP client (created lazily if not given)
        tokens: Known tokens keyed by address
        cache: Price cache (default: 5 minute TTL)
        base_url: CoinGecko API root
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        tokens: Mapping[str, TokenInfo] | None = None,
        cache: PriceCache | None = None,
        base_url: str = COINGECKO_API_URL,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._tokens = {_token_key(k): v for k, v in (tokens or DEFAULT_TOKENS).items()}
        self.cache = cache if cache is not None else PriceCache()
        self.base_url = base_url.rstrip("/")

    def token_info(self, token: str) -> TokenInfo | None:
        return self._tokens.get(_token_key(token))

    def decimals(self, token: str) -> int:
        info = self.token_info(token)
        return info.decimals if info is not None else DEFAULT_TOKEN_DECIMALS

    async def get_usd_price(self, token: str) -> Decimal | None:
        info = self.token_info(token)
        if info is None:
            logger.warning("unknown_token", token=token)
            return None
        if info.is_stable:
            return Decimal(1)

        cached = self.cache.get(info.coingecko_id)
        if cached is not None:
            return cached

        try:
            price = await self._fetch(info.coingecko_id)
        except (httpx.HTTPError, ValueError, InvalidOperation) as err:
            stale = self.cache.get_stale(info.coingecko_id)
            logger.warning(
                "price_fetch_failed",
                symbol=info.symbol,
                error=str(err),
                using_stale=stale is not None,
            )
            if stale is not None:
                return stale
            return info.fallback_usd

        self.cache.put(info.coingecko_id, price)
        logger.debug("price_fetched", symbol=info.symbol, usd=str(price))
        return price

    async def _fetch(self, coingecko_id: str) -> Decimal:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        response = await self._client.get(
            f"{self.base_url}/simple/price",
            params={"ids": coingecko_id, "vs_currencies": "usd"},
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        usd = response.json().get(coingecko_id, {}).get("usd")
        if not isinstance(usd, (int, float, str)) or isinstance(usd, bool):
            raise ValueError(f"Invalid price data for {coingecko_id}")
        # Go through str so float prices keep their printed digits
        return Decimal(str(usd))

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
