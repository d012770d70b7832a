"""Signal rules — pure mapping from indicator state to BUY / SELL / HOLD.

Missing indicator values (series too short) always map to HOLD.
"""

from dextrade.strategy.models import IndicatorSet, Signal

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
TICK_TREND_LOOKBACK = 5


def mean_reversion_signal(indicators: IndicatorSet) -> Signal:
    """Bollinger-band reversion rule.

    - BUY:  close < lower band and close > SMA
    - SELL: close > upper band and close < SMA
    """
    close = indicators.close
    sma = indicators.sma
    bands = indicators.bollinger
    if close is None or sma is None or bands is None:
        return Signal.HOLD
    if close < bands.lower and close > sma:
        return Signal.BUY
    if close > bands.upper and close < sma:
        return Signal.SELL
    return Signal.HOLD


def momentum_signal(indicators: IndicatorSet) -> Signal:
    """RSI + MACD crossover rule.

    - BUY:  RSI < 30 and MACD line > signal line
    - SELL: RSI > 70 and MACD line < signal line
    """
    rsi = indicators.rsi
    macd = indicators.macd
    if rsi is None or macd is None or macd.signal is None:
        return Signal.HOLD
    if rsi < RSI_OVERSOLD and macd.macd > macd.signal:
        return Signal.BUY
    if rsi > RSI_OVERBOUGHT and macd.macd < macd.signal:
        return Signal.SELL
    return Signal.HOLD


def tick_trend_signal(
    values: list[float], lookback: int = TICK_TREND_LOOKBACK,
) -> Signal:
    """Count up-ticks vs down-ticks over the last *lookback* closes.

    More up-ticks → BUY, more down-ticks → SELL, tie → HOLD.  Unchanged
    closes count as neither.  This is a deterministic heuristic, not a
    forecasting model.
    """
    recent = values[-lookback:]
    up = down = 0
    for prev, cur in zip(recent, recent[1:]):
        if cur > prev:
            up += 1
        elif cur < prev:
            down += 1
    if up > down:
        return Signal.BUY
    if down > up:
        return Signal.SELL
    return Signal.HOLD


def combine_signals(mean_reversion: Signal, momentum: Signal) -> Signal:
    """Agreement wins; otherwise a non-HOLD mean-reversion signal wins;
    otherwise the momentum signal."""
    if mean_reversion is momentum:
        return mean_reversion
    if mean_reversion is not Signal.HOLD:
        return mean_reversion
    return momentum
