"""Binance public REST API async market data client.

Fetches klines and spot prices over httpx with retry on transient errors
and a short-lived response cache.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from dextrade.config import Config
from dextrade.errors import MarketDataError
from dextrade.models.bot_config import split_pair
from dextrade.strategy.models import CandleData

logger = logging.getLogger("dextrade.market")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

# Binance lists stablecoin markets against USDT rather than USDC.
_QUOTE_ALIASES = {"USDC": "USDT"}


def pair_to_symbol(pair: str) -> str:
    """Map ``"ETH/USDC"`` to the Binance symbol ``"ETHUSDT"``."""
    base, quote = split_pair(pair.upper())
    return base + _QUOTE_ALIASES.get(quote, quote)


def _ms_to_iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


class BinanceMarketData:
    """Async client for Binance klines and ticker prices.

    Args:
        config: Application configuration (base URL, timeout, cache TTL).
        retry_base_delay: First retry delay in seconds; doubles per attempt.
    """

    def __init__(self, config: Config, retry_base_delay: float = _RETRY_BASE_DELAY) -> None:
        self._base_url = config.market_data_url.rstrip("/")
        self._timeout = config.market_data_timeout_s
        self._cache_ttl = config.market_data_cache_ttl_s
        self._retry_base_delay = retry_base_delay
        self._headers = {"Accept": "application/json"}
        self._cache: dict[tuple, tuple[float, Any]] = {}

    # ── Cache ────────────────────────────────────────────────────────────

    def _cached(self, key: tuple) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, data = entry
        if time.monotonic() - stored_at < self._cache_ttl:
            return data
        del self._cache[key]
        return None

    def _store(self, key: tuple, data: Any) -> None:
        if self._cache_ttl > 0:
            self._cache[key] = (time.monotonic(), data)

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _get_with_retry(self, url: str, params: dict) -> httpx.Response:
        """GET *url* with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504), rate limits
        (429), and transport errors.  Everything else fails immediately.
        Raises ``MarketDataError`` once retries are exhausted.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            delay = self._retry_base_delay * (2 ** attempt)
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(
                        url,
                        headers=self._headers,
                        params=params,
                        timeout=self._timeout,
                    )
            except httpx.TransportError as exc:
                logger.warning(
                    "GET %s transport error (%s) — retry %d/%d in %.1fs",
                    url, exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)
                continue

            if resp.status_code in _RETRYABLE_STATUS_CODES:
                logger.warning(
                    "GET %s returned %d — retry %d/%d in %.1fs",
                    url, resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = httpx.HTTPStatusError(
                    f"Server error '{resp.status_code}'",
                    request=resp.request,
                    response=resp,
                )
                await asyncio.sleep(delay)
                continue

            try:
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise MarketDataError(f"GET {url} failed: {exc}") from exc
            return resp

        raise MarketDataError(
            f"GET {url} failed after {_MAX_RETRIES} attempts: {last_exc}"
        ) from last_exc

    # ── Candle data ──────────────────────────────────────────────────────

    async def fetch_candles(
        self,
        pair: str,
        interval: str = "1h",
        limit: int = 50,
    ) -> list[CandleData]:
        """Fetch klines for *pair*.

        Args:
            pair: e.g. ``"ETH/USDC"``
            interval: Binance kline interval, e.g. ``"1h"``
            limit: number of candles (max 1000)

        Returns:
            List of ``CandleData`` ordered oldest-first.
        """
        symbol = pair_to_symbol(pair)
        key = ("klines", symbol, interval, limit)
        cached = self._cached(key)
        if cached is not None:
            return cached

        resp = await self._get_with_retry(
            f"{self._base_url}/klines",
            {"symbol": symbol, "interval": interval, "limit": limit},
        )
        try:
            candles = [
                CandleData(
                    time=_ms_to_iso(int(row[0])),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=float(row[5]),
                )
                for row in resp.json()
            ]
        except (ValueError, TypeError, IndexError) as exc:
            raise MarketDataError(f"Malformed kline payload for {symbol}: {exc}") from exc

        self._store(key, candles)
        return candles

    # ── Spot price ───────────────────────────────────────────────────────

    async def fetch_price(self, pair: str) -> float:
        """Latest price for *pair* from ``/ticker/price``."""
        symbol = pair_to_symbol(pair)
        key = ("price", symbol)
        cached = self._cached(key)
        if cached is not None:
            return cached

        resp = await self._get_with_retry(
            f"{self._base_url}/ticker/price", {"symbol": symbol},
        )
        try:
            price = float(resp.json()["price"])
        except (ValueError, TypeError, KeyError) as exc:
            raise MarketDataError(f"Malformed price payload for {symbol}: {exc}") from exc

        self._store(key, price)
        return price
