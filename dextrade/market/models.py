"""Market data provider interface."""

from typing import Protocol, runtime_checkable

from dextrade.strategy.models import CandleData


@runtime_checkable
class MarketDataProvider(Protocol):
    """Source of OHLCV candles and spot prices for trading pairs.

    Both methods raise ``MarketDataError`` on any failure.  Short results
    are returned as-is; callers decide whether they are sufficient.
    """

    async def fetch_candles(
        self, pair: str, interval: str = "1h", limit: int = 50,
    ) -> list[CandleData]:
        """Candles for *pair*, oldest first."""
        ...

    async def fetch_price(self, pair: str) -> float:
        """Latest traded price for *pair*."""
        ...
