"""Technical indicators — SMA, EMA, RSI, MACD, Bollinger Bands, Stochastic.

Pure functions, no I/O.  Every function accepts series of any length and
never raises for short input: output lists only contain values from the
first bar where the indicator is defined, so a series that is too short
yields an empty list (or ``None`` for the single-value stochastic).
"""

import math
from typing import Optional

from dextrade.strategy.models import (
    BollingerPoint,
    CandleData,
    IndicatorSet,
    MACDPoint,
    StochasticPoint,
)

SMA_PERIOD = 20
RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
BOLLINGER_PERIOD = 20
BOLLINGER_STD_DEV = 2.0
STOCHASTIC_K_PERIOD = 14


def closes(candles: list[CandleData]) -> list[float]:
    """Close prices of *candles*, oldest first."""
    return [c.close for c in candles]


def calculate_sma(values: list[float], period: int = SMA_PERIOD) -> list[float]:
    """Simple moving average.

    Returns ``len(values) - period + 1`` values (empty when too short).
    """
    if period <= 0 or len(values) < period:
        return []
    window_sum = sum(values[:period])
    result = [window_sum / period]
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        result.append(window_sum / period)
    return result


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Exponential moving average seeded with the SMA of the first *period* values.

    ``EMA_today = value × k + EMA_yesterday × (1 - k)`` with
    ``k = 2 / (period + 1)``.  Returns ``len(values) - period + 1`` values.
    """
    if period <= 0 or len(values) < period:
        return []
    k = 2.0 / (period + 1)
    ema = [sum(values[:period]) / period]
    for value in values[period:]:
        ema.append(value * k + ema[-1] * (1 - k))
    return ema


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(values: list[float], period: int = RSI_PERIOD) -> list[float]:
    """Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Seed average gain/loss = SMA of first *period* deltas.
        3. Subsequent: avg = (prev_avg × (period-1) + current) / period
        4. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Needs ``period + 1`` values; returns ``len(values) - period`` values.
    """
    if period <= 0 or len(values) < period + 1:
        return []

    deltas = [values[i] - values[i - 1] for i in range(1, len(values))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    def _rsi_from_avgs(ag: float, al: float) -> float:
        if al == 0:
            return 100.0 if ag > 0 else 50.0
        return 100.0 - 100.0 / (1.0 + ag / al)

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    rsi = [_rsi_from_avgs(avg_gain, avg_loss)]

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        rsi.append(_rsi_from_avgs(avg_gain, avg_loss))

    return rsi


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    values: list[float],
    fast_period: int = MACD_FAST,
    slow_period: int = MACD_SLOW,
    signal_period: int = MACD_SIGNAL,
) -> list[MACDPoint]:
    """Moving Average Convergence Divergence.

    MACD line = EMA(fast) − EMA(slow); signal = EMA(signal_period) of the
    MACD line.  One point per bar from the first bar where the slow EMA is
    defined.  ``signal`` and ``histogram`` stay ``None`` until
    *signal_period* MACD values exist.
    """
    slow = calculate_ema(values, slow_period)
    if not slow:
        return []
    fast = calculate_ema(values, fast_period)
    # fast starts (slow_period - fast_period) bars earlier than slow
    offset = slow_period - fast_period
    macd_line = [fast[i + offset] - s for i, s in enumerate(slow)]

    signal_line = calculate_ema(macd_line, signal_period)
    first_signal = signal_period - 1

    points: list[MACDPoint] = []
    for i, m in enumerate(macd_line):
        if i >= first_signal and signal_line:
            sig = signal_line[i - first_signal]
            points.append(MACDPoint(macd=m, signal=sig, histogram=m - sig))
        else:
            points.append(MACDPoint(macd=m))
    return points


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    values: list[float],
    period: int = BOLLINGER_PERIOD,
    std_dev: float = BOLLINGER_STD_DEV,
) -> list[BollingerPoint]:
    """Bollinger Bands.

    Middle = SMA(close, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    σ is the population standard deviation of the window.
    """
    if period <= 0 or len(values) < period:
        return []

    bands: list[BollingerPoint] = []
    for i in range(period - 1, len(values)):
        window = values[i - period + 1 : i + 1]
        sma = sum(window) / period
        variance = sum((x - sma) ** 2 for x in window) / period
        sigma = math.sqrt(variance)
        bands.append(
            BollingerPoint(
                upper=sma + std_dev * sigma,
                middle=sma,
                lower=sma - std_dev * sigma,
            )
        )
    return bands


# ── Stochastic ───────────────────────────────────────────────────────────


def calculate_stochastic(
    candles: list[CandleData],
    k_period: int = STOCHASTIC_K_PERIOD,
) -> Optional[StochasticPoint]:
    """Simplified stochastic oscillator over the last *k_period* bars.

    ``%K = (close − lowest_low) / (highest_high − lowest_low) × 100``.
    %D is **not** smoothed: it is reported equal to %K.  A flat window
    (zero range) gives %K = 50.  Returns ``None`` with fewer than
    *k_period* candles.
    """
    if k_period <= 0 or len(candles) < k_period:
        return None
    window = candles[-k_period:]
    highest = max(c.high for c in window)
    lowest = min(c.low for c in window)
    current = candles[-1].close
    if highest == lowest:
        k = 50.0
    else:
        k = (current - lowest) / (highest - lowest) * 100.0
    return StochasticPoint(k=k, d=k)


# ── Aggregate ────────────────────────────────────────────────────────────


def compute_indicators(candles: list[CandleData]) -> IndicatorSet:
    """Latest SMA(20), RSI(14), MACD(12,26,9), Bollinger(20,2) and Stochastic(14)."""
    values = closes(candles)
    sma = calculate_sma(values, SMA_PERIOD)
    rsi = calculate_rsi(values, RSI_PERIOD)
    macd = calculate_macd(values, MACD_FAST, MACD_SLOW, MACD_SIGNAL)
    bands = calculate_bollinger(values, BOLLINGER_PERIOD, BOLLINGER_STD_DEV)
    return IndicatorSet(
        close=values[-1] if values else None,
        sma=sma[-1] if sma else None,
        rsi=rsi[-1] if rsi else None,
        macd=macd[-1] if macd else None,
        bollinger=bands[-1] if bands else None,
        stochastic=calculate_stochastic(candles, STOCHASTIC_K_PERIOD),
    )
