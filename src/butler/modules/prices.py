"""Spot price lookup against a Binance-compatible REST API."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

logger = logging.getLogger(__name__)


class PriceError(Exception):
    """The price API failed or returned something unexpected."""


class PriceSource:
    """Fetch last traded prices via ``GET /api/v3/ticker/price``."""

    def __init__(self, api_url: str = "https://api.binance.com", timeout: int = 10) -> None:
        self._api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self, symbol: str) -> float:
        url = f"{self._api_url}/api/v3/ticker/price"
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(url, params={"symbol": symbol}) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise PriceError(f"{symbol}: HTTP {resp.status} {body[:200]}")
                    data = await resp.json()
        except asyncio.TimeoutError as e:
            raise PriceError(f"{symbol}: request timed out") from e
        except aiohttp.ClientError as e:
            raise PriceError(f"{symbol}: {e}") from e

        try:
            return float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceError(f"{symbol}: unexpected response {data!r}") from e

    async def fetch_many(self, symbols: list[str]) -> dict[str, float]:
        """Fetch each symbol; failures are logged and left out."""
        prices: dict[str, float] = {}
        for symbol in symbols:
            try:
                prices[symbol] = await self.fetch(symbol)
            except PriceError as e:
                logger.warning("Price fetch failed: %s", e)
        return prices
