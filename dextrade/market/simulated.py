"""Simulated market data — seeded random-walk candles.

Only used when simulation mode is switched on explicitly.  Prices are
fabricated and must never be mistaken for live data.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np

from dextrade.models.bot_config import split_pair
from dextrade.strategy.models import CandleData

logger = logging.getLogger("dextrade.market")

_MAX_STEP = 0.025  # ±2.5 % close-to-close
_MAX_WICK = 0.02


class SimulatedMarketData:
    """Random-walk price feed with one independent walk per pair.

    Each call advances the pair's walk by one bar, so successive cycles see
    new prices.

    Args:
        seed: Seed for the numpy generator; ``None`` for a random seed.
        bar_seconds: Spacing of generated candle timestamps.
    """

    def __init__(self, seed: Optional[int] = None, bar_seconds: int = 3600) -> None:
        self._rng = np.random.default_rng(seed)
        self._bar = timedelta(seconds=bar_seconds)
        self._history: dict[str, list[CandleData]] = {}
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _next_candle(self, prev_close: float, at: datetime) -> CandleData:
        close = prev_close * (1 + self._rng.uniform(-_MAX_STEP, _MAX_STEP))
        high = max(prev_close, close) * (1 + self._rng.uniform(0, _MAX_WICK))
        low = min(prev_close, close) * (1 - self._rng.uniform(0, _MAX_WICK))
        return CandleData(
            time=at.isoformat(),
            open=prev_close,
            high=float(high),
            low=float(low),
            close=float(close),
            volume=float(self._rng.uniform(0, 1000)),
        )

    def _advance(self, pair: str, min_bars: int) -> list[CandleData]:
        split_pair(pair)
        history = self._history.setdefault(pair, [])
        if not history:
            price = float(self._rng.uniform(1000, 3000))
            start = self._clock - self._bar * min_bars
            for i in range(min_bars):
                candle = self._next_candle(price, start + self._bar * i)
                history.append(candle)
                price = candle.close
            logger.info("Simulated feed for %s seeded at %.2f", pair, history[0].open)
        else:
            last = history[-1]
            at = datetime.fromisoformat(last.time) + self._bar
            history.append(self._next_candle(last.close, at))
        return history

    async def fetch_candles(
        self, pair: str, interval: str = "1h", limit: int = 50,
    ) -> list[CandleData]:
        history = self._advance(pair, limit)
        return list(history[-limit:])

    async def fetch_price(self, pair: str) -> float:
        history = self._history.get(pair) or self._advance(pair, 1)
        return history[-1].close
