"""DexTrade — exception hierarchy.

Transient failures (market data, single venue) are caught at the pair
boundary by the engine.  Configuration errors propagate to the caller.
"""


class DexTradeError(Exception):
    """Base class for all DexTrade errors."""


class ConfigurationError(DexTradeError, ValueError):
    """Bot configuration failed validation."""


class MarketDataError(DexTradeError):
    """Market data could not be fetched or was unusable."""


class VenueError(DexTradeError):
    """A single venue failed to quote or execute."""


class NoLiquidityError(VenueError):
    """No venue returned a quote for the requested trade."""
