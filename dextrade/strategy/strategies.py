"""Concrete signal strategies.

Each implements ``StrategyProtocol`` and records the inputs of its last
decision in ``last_insight`` for the status endpoint.
"""

from dextrade.strategy.indicators import (
    BOLLINGER_PERIOD,
    BOLLINGER_STD_DEV,
    MACD_FAST,
    MACD_SIGNAL,
    MACD_SLOW,
    RSI_PERIOD,
    SMA_PERIOD,
    closes,
)
from dextrade.strategy.models import CandleData, IndicatorSet, Signal
from dextrade.strategy.signals import (
    RSI_OVERBOUGHT,
    RSI_OVERSOLD,
    TICK_TREND_LOOKBACK,
    combine_signals,
    mean_reversion_signal,
    momentum_signal,
    tick_trend_signal,
)


class MeanReversionStrategy:
    """Bollinger Band + SMA reversion."""

    name = "mean_reversion"
    parameters = {
        "sma_period": SMA_PERIOD,
        "bollinger_period": BOLLINGER_PERIOD,
        "bollinger_std_dev": BOLLINGER_STD_DEV,
    }

    def __init__(self) -> None:
        self.last_insight: dict = {}

    def evaluate(self, candles: list[CandleData], indicators: IndicatorSet) -> Signal:
        signal = mean_reversion_signal(indicators)
        self.last_insight = {"strategy": self.name, "signal": signal.value}
        return signal


class MomentumStrategy:
    """RSI extremes confirmed by MACD direction."""

    name = "momentum"
    parameters = {
        "rsi_period": RSI_PERIOD,
        "rsi_oversold": RSI_OVERSOLD,
        "rsi_overbought": RSI_OVERBOUGHT,
        "macd": [MACD_FAST, MACD_SLOW, MACD_SIGNAL],
    }

    def __init__(self) -> None:
        self.last_insight: dict = {}

    def evaluate(self, candles: list[CandleData], indicators: IndicatorSet) -> Signal:
        signal = momentum_signal(indicators)
        self.last_insight = {"strategy": self.name, "signal": signal.value}
        return signal


class TickTrendStrategy:
    """Placeholder for the ``neural_network`` strategy setting.

    No model is trained or loaded.  The decision is a majority vote of
    up/down ticks over the last five closes and carries no statistical
    forecasting power.
    """

    name = "neural_network"
    parameters = {"lookback": TICK_TREND_LOOKBACK}

    def __init__(self) -> None:
        self.last_insight: dict = {}

    def evaluate(self, candles: list[CandleData], indicators: IndicatorSet) -> Signal:
        signal = tick_trend_signal(closes(candles))
        self.last_insight = {
            "strategy": self.name,
            "signal": signal.value,
            "heuristic": "tick_majority_5",
        }
        return signal


class CombinedStrategy:
    """Mean reversion and momentum, reconciled by ``combine_signals``."""

    name = "combined"
    parameters = {"components": ["mean_reversion", "momentum"]}

    def __init__(self) -> None:
        self.last_insight: dict = {}

    def evaluate(self, candles: list[CandleData], indicators: IndicatorSet) -> Signal:
        mr = mean_reversion_signal(indicators)
        mom = momentum_signal(indicators)
        signal = combine_signals(mr, mom)
        self.last_insight = {
            "strategy": self.name,
            "signal": signal.value,
            "mean_reversion": mr.value,
            "momentum": mom.value,
        }
        return signal
