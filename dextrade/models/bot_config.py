"""Bot configuration dataclasses.

``BotConfiguration`` is the trading-side configuration the engine reads at
the start of every cycle.  ``ConfigurationUpdate`` is the typed partial used
by ``TradingEngine.update_configuration``.
"""

from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Optional

from dextrade.errors import ConfigurationError


class Strategy(str, Enum):
    """Signal strategy selector."""

    MEAN_REVERSION = "mean_reversion"
    MOMENTUM = "momentum"
    NEURAL_NETWORK = "neural_network"  # placeholder tick-count heuristic
    COMBINED = "combined"


class RiskLevel(str, Enum):
    """Risk appetite; maps to a per-trade risk fraction."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CycleInterval(str, Enum):
    """Trading cadence."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def seconds(self) -> int:
        """Cycle period in seconds (30 / 10 / 5 minutes)."""
        return _CYCLE_SECONDS[self]


_CYCLE_SECONDS: dict[CycleInterval, int] = {
    CycleInterval.LOW: 30 * 60,
    CycleInterval.MEDIUM: 10 * 60,
    CycleInterval.HIGH: 5 * 60,
}

RISK_FRACTIONS: dict[RiskLevel, float] = {
    RiskLevel.LOW: 0.01,
    RiskLevel.MEDIUM: 0.02,
    RiskLevel.HIGH: 0.05,
}

_ENUM_FIELDS = {
    "strategy": Strategy,
    "risk_level": RiskLevel,
    "cycle_interval": CycleInterval,
}

_FLOAT_FIELDS = (
    "max_position_size_fraction",
    "stop_loss_fraction",
    "take_profit_fraction",
    "slippage_tolerance_fraction",
)


def split_pair(pair: str) -> tuple[str, str]:
    """Split ``"ETH/USDC"`` into ``("ETH", "USDC")``.

    Raises ``ConfigurationError`` if *pair* is not ``BASE/QUOTE``.
    """
    parts = pair.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ConfigurationError(
            f"Trading pair must look like 'BASE/QUOTE', got '{pair}'"
        )
    return parts[0], parts[1]


@dataclass(frozen=True)
class BotConfiguration:
    """Trading configuration for one engine.

    Defaults mirror the bot's out-of-the-box settings: combined strategy,
    medium risk, 10 % max position, 5 % stop, 10 % target, 5-minute cycle.
    """

    strategy: Strategy = Strategy.COMBINED
    risk_level: RiskLevel = RiskLevel.MEDIUM
    max_position_size_fraction: float = 0.1
    stop_loss_fraction: float = 0.05
    take_profit_fraction: float = 0.1
    trading_pairs: tuple[str, ...] = field(
        default_factory=lambda: ("ETH/USDC", "BTC/USDC")
    )
    cycle_interval: CycleInterval = CycleInterval.HIGH
    slippage_tolerance_fraction: float = 0.005

    @property
    def risk_fraction(self) -> float:
        """Per-trade risk fraction for the configured risk level."""
        return RISK_FRACTIONS[self.risk_level]

    def validate(self) -> "BotConfiguration":
        """Check every field; return ``self`` so calls can be chained.

        Raises ``ConfigurationError`` describing the first invalid field.
        """
        for name in ("max_position_size_fraction", "stop_loss_fraction",
                     "take_profit_fraction"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigurationError(
                    f"{name} must be in (0, 1], got {value}"
                )
        if not 0.0 <= self.slippage_tolerance_fraction < 1.0:
            raise ConfigurationError(
                "slippage_tolerance_fraction must be in [0, 1), "
                f"got {self.slippage_tolerance_fraction}"
            )
        if not self.trading_pairs:
            raise ConfigurationError("trading_pairs must not be empty")
        for pair in self.trading_pairs:
            split_pair(pair)
        if len(set(self.trading_pairs)) != len(self.trading_pairs):
            raise ConfigurationError(
                f"trading_pairs contains duplicates: {list(self.trading_pairs)}"
            )
        return self

    def merge(self, update: "ConfigurationUpdate") -> "BotConfiguration":
        """Return a new validated configuration with *update* applied.

        Only fields set on *update* change; ``self`` is left untouched.
        """
        changes = {
            f.name: getattr(update, f.name)
            for f in fields(update)
            if getattr(update, f.name) is not None
        }
        return replace(self, **changes).validate()

    def to_dict(self) -> dict:
        """Plain JSON-serialisable representation."""
        data = asdict(self)
        for name in _ENUM_FIELDS:
            data[name] = data[name].value
        data["trading_pairs"] = list(self.trading_pairs)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BotConfiguration":
        """Build a validated configuration from a (possibly partial) dict."""
        return cls().merge(ConfigurationUpdate.from_dict(data))


@dataclass(frozen=True)
class ConfigurationUpdate:
    """Typed partial configuration.  ``None`` means "leave unchanged"."""

    strategy: Optional[Strategy] = None
    risk_level: Optional[RiskLevel] = None
    max_position_size_fraction: Optional[float] = None
    stop_loss_fraction: Optional[float] = None
    take_profit_fraction: Optional[float] = None
    trading_pairs: Optional[tuple[str, ...]] = None
    cycle_interval: Optional[CycleInterval] = None
    slippage_tolerance_fraction: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ConfigurationUpdate":
        """Parse a JSON-style dict into a typed update.

        Raises ``ConfigurationError`` on unknown keys or values that cannot
        be coerced to the field's type.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration key(s): {', '.join(unknown)}"
            )

        kwargs: dict = {}
        for name, raw in data.items():
            if raw is None:
                continue
            if name in _ENUM_FIELDS:
                enum_cls = _ENUM_FIELDS[name]
                try:
                    kwargs[name] = enum_cls(raw)
                except ValueError:
                    allowed = ", ".join(m.value for m in enum_cls)
                    raise ConfigurationError(
                        f"{name} must be one of: {allowed}; got '{raw}'"
                    ) from None
            elif name in _FLOAT_FIELDS:
                try:
                    kwargs[name] = float(raw)
                except (TypeError, ValueError):
                    raise ConfigurationError(
                        f"{name} must be a number, got {raw!r}"
                    ) from None
            elif name == "trading_pairs":
                if not isinstance(raw, (list, tuple)) or not all(
                    isinstance(p, str) for p in raw
                ):
                    raise ConfigurationError(
                        "trading_pairs must be a list of 'BASE/QUOTE' strings"
                    )
                kwargs[name] = tuple(raw)
        return cls(**kwargs)
