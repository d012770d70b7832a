"""DexTrade — application configuration.

Loads .env variables into a typed process config, and the bot's trading
configuration from an optional JSON file.
"""

import json
import os
import pathlib
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from dextrade.models.bot_config import BotConfiguration


@dataclass(frozen=True)
class Config:
    """Typed process configuration loaded from environment variables."""

    market_data_url: str
    candle_interval: str
    candle_limit: int
    market_data_timeout_s: float
    market_data_cache_ttl_s: float
    venue_quote_timeout_s: float
    quote_deadline_s: float
    execution_timeout_s: float
    initial_balance: float
    max_drawdown_pct: float
    max_stop_loss_streak: int
    degraded_after_cycles: int
    simulation_mode: bool
    simulation_seed: Optional[int]
    bot_config_path: str
    log_level: str
    api_port: int


def _env_number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(
            f"Environment variable {name} must be a number, got '{raw}'"
        ) from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables (and *env_path* if given).

    Raises ``ValueError`` naming the variable when a numeric value does not
    parse or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    seed_raw = os.environ.get("SIMULATION_SEED", "")
    config = Config(
        market_data_url=os.environ.get(
            "MARKET_DATA_URL", "https://api.binance.com/api/v3"
        ),
        candle_interval=os.environ.get("CANDLE_INTERVAL", "1h"),
        candle_limit=_env_number("CANDLE_LIMIT", "50", int),
        market_data_timeout_s=_env_number("MARKET_DATA_TIMEOUT_S", "10", float),
        market_data_cache_ttl_s=_env_number("MARKET_DATA_CACHE_TTL_S", "30", float),
        venue_quote_timeout_s=_env_number("VENUE_QUOTE_TIMEOUT_S", "5", float),
        quote_deadline_s=_env_number("QUOTE_DEADLINE_S", "8", float),
        execution_timeout_s=_env_number("EXECUTION_TIMEOUT_S", "30", float),
        initial_balance=_env_number("INITIAL_BALANCE", "10000", float),
        max_drawdown_pct=_env_number("MAX_DRAWDOWN_PCT", "0", float),
        max_stop_loss_streak=_env_number("MAX_STOP_LOSS_STREAK", "0", int),
        degraded_after_cycles=_env_number("DEGRADED_AFTER_CYCLES", "3", int),
        simulation_mode=_env_bool("SIMULATION_MODE", False),
        simulation_seed=(
            _env_number("SIMULATION_SEED", seed_raw, int) if seed_raw else None
        ),
        bot_config_path=os.environ.get("BOT_CONFIG_PATH", "bot.json"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_number("API_PORT", "8080", int),
    )

    if config.candle_limit < 20:
        raise ValueError("CANDLE_LIMIT must be at least 20")
    if config.initial_balance <= 0:
        raise ValueError("INITIAL_BALANCE must be positive")
    if config.max_drawdown_pct < 0:
        raise ValueError("MAX_DRAWDOWN_PCT must be non-negative")
    if config.max_stop_loss_streak < 0:
        raise ValueError("MAX_STOP_LOSS_STREAK must be non-negative")
    return config


def load_bot_config(path: str | pathlib.Path | None = None) -> BotConfiguration:
    """Load the trading configuration from a JSON file.

    A missing file (or *path* of ``None``) yields the default configuration.
    Raises ``ConfigurationError`` if the file content is invalid.
    """
    if path is None:
        return BotConfiguration()
    p = pathlib.Path(path)
    if not p.exists():
        return BotConfiguration()
    data = json.loads(p.read_text(encoding="utf-8"))
    return BotConfiguration.from_dict(data)
