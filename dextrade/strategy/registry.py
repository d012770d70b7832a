"""Strategy registry — maps ``Strategy`` settings to strategy classes.

``evaluate_signal`` is the signal engine's single entry point used by the
trading engine.
"""

from dextrade.models.bot_config import Strategy
from dextrade.strategy.base import StrategyProtocol
from dextrade.strategy.indicators import compute_indicators
from dextrade.strategy.models import (
    MIN_SERIES_LENGTH,
    CandleData,
    IndicatorSet,
    Signal,
    SignalResult,
)
from dextrade.strategy.strategies import (
    CombinedStrategy,
    MeanReversionStrategy,
    MomentumStrategy,
    TickTrendStrategy,
)


STRATEGY_REGISTRY: dict[Strategy, type] = {
    Strategy.MEAN_REVERSION: MeanReversionStrategy,
    Strategy.MOMENTUM: MomentumStrategy,
    Strategy.NEURAL_NETWORK: TickTrendStrategy,
    Strategy.COMBINED: CombinedStrategy,
}


def get_strategy(name: "Strategy | str") -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key.

    Raises ``KeyError`` if the strategy name is not registered.
    """
    try:
        key = Strategy(name)
    except ValueError:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(s.value for s in STRATEGY_REGISTRY)}"
        ) from None
    return STRATEGY_REGISTRY[key]()


def evaluate_signal(
    candles: list[CandleData],
    strategy: "Strategy | str" = Strategy.COMBINED,
) -> SignalResult:
    """Compute indicators for *candles* and the signal under *strategy*.

    Series shorter than ``MIN_SERIES_LENGTH`` return HOLD with an empty
    indicator set; this never raises for short input.
    """
    impl = get_strategy(strategy)
    if len(candles) < MIN_SERIES_LENGTH:
        return SignalResult(
            signal=Signal.HOLD, strategy=impl.name, indicators=IndicatorSet(),
        )
    indicators = compute_indicators(candles)
    signal = impl.evaluate(candles, indicators)
    return SignalResult(signal=signal, strategy=impl.name, indicators=indicators)


def describe_strategies() -> list[dict]:
    """Id, one-line description, and tuning constants of every strategy."""
    described = []
    for key, cls in STRATEGY_REGISTRY.items():
        doc = (cls.__doc__ or "").strip().splitlines()
        described.append({
            "id": key.value,
            "description": doc[0] if doc else "",
            "parameters": dict(cls.parameters),
        })
    return described
