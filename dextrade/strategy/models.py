"""Strategy data models — typed representations for indicator and signal output."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

# Shortest price series the signal engine will act on.
MIN_SERIES_LENGTH = 20


class Signal(str, Enum):
    """Discrete trading decision for one pair and one cycle."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def is_directional(self) -> bool:
        return self is not Signal.HOLD

    def opposes(self, other: "Signal") -> bool:
        """``True`` for BUY vs SELL in either order."""
        return {self, other} == {Signal.BUY, Signal.SELL}


@dataclass(frozen=True)
class CandleData:
    """A single OHLCV bar.  Series are ordered oldest first."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class MACDPoint:
    """One MACD output.  ``signal``/``histogram`` are ``None`` until the
    signal EMA has enough MACD values to seed."""

    macd: float
    signal: Optional[float] = None
    histogram: Optional[float] = None


@dataclass(frozen=True)
class BollingerPoint:
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class StochasticPoint:
    """Simplified stochastic oscillator.

    ``d`` equals ``k``: no smoothing of %K is performed.
    """

    k: float
    d: float


@dataclass(frozen=True)
class IndicatorSet:
    """Latest value of every indicator for a series.

    Any field is ``None`` when the series is too short for that indicator.
    """

    close: Optional[float] = None
    sma: Optional[float] = None
    rsi: Optional[float] = None
    macd: Optional[MACDPoint] = None
    bollinger: Optional[BollingerPoint] = None
    stochastic: Optional[StochasticPoint] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SignalResult:
    """Signal plus the indicator snapshot it was derived from."""

    signal: Signal
    strategy: str
    indicators: IndicatorSet
