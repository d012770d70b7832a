"""Strategy protocol.

Defines the interface that all signal strategies must implement.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from dextrade.strategy.models import CandleData, IndicatorSet, Signal


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all signal strategies must satisfy."""

    name: str
    parameters: dict

    def evaluate(
        self, candles: list[CandleData], indicators: IndicatorSet,
    ) -> Signal:
        """Map a price series and its indicators to BUY, SELL, or HOLD."""
        ...
