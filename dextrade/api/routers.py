"""Control API routers — status, trades, stats, positions, venues, strategies and control.

No trading logic here. Delegates to the injected ``TradingEngine`` and
``VenueAggregator``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from dextrade.errors import ConfigurationError
from dextrade.strategy.registry import describe_strategies

logger = logging.getLogger("dextrade")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine = None       # Set via configure_routers()
_aggregator = None   # Set via configure_routers()


def configure_routers(engine=None, aggregator=None) -> None:
    """Inject dependencies from the application startup.

    Args:
        engine: A ``TradingEngine`` instance (or duck-type for tests).
        aggregator: A ``VenueAggregator`` for the ``/venues`` listing.
    """
    global _engine, _aggregator  # noqa: PLW0603
    _engine = engine
    _aggregator = aggregator


def _require_engine():
    if _engine is None:
        raise HTTPException(status_code=503, detail="Trading engine not configured")
    return _engine


# ── Queries ──────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return the engine status snapshot."""
    return _require_engine().get_status()


@router.get("/trades")
async def get_trades(limit: Optional[int] = Query(default=None, ge=1, le=1000)):
    """Return executed trades, oldest first (the last *limit* when given)."""
    trades = _require_engine().get_trade_history()
    total = len(trades)
    if limit is not None:
        trades = trades[-limit:]
    return {"trades": [t.to_dict() for t in trades], "total": total}


@router.get("/stats")
async def get_stats():
    """Return trade count, traded notional and P&L totals."""
    return _require_engine().get_trade_stats()


@router.get("/positions")
async def get_positions():
    """Return open positions with their SL/TP levels."""
    positions = _require_engine().get_open_positions()
    return {"positions": [p.to_dict() for p in positions]}


@router.get("/venues")
async def get_venues():
    """Return the configured venues."""
    if _aggregator is None:
        return {"venues": []}
    return {"venues": _aggregator.list_venues()}


@router.get("/strategies")
async def get_strategies():
    """Return the selectable strategies and their tuning constants."""
    return {"strategies": describe_strategies()}


# ── Control actions ──────────────────────────────────────────────────────


@router.post("/control/start")
async def start_bot():
    """Start the trading loop (no-op when already running)."""
    engine = _require_engine()
    if engine.start():
        logger.info("Bot started via API.")
    return engine.get_status()


@router.post("/control/stop")
async def stop_bot():
    """Stop the trading loop (no-op when already stopped)."""
    engine = _require_engine()
    if engine.stop():
        logger.info("Bot stopped via API.")
    return engine.get_status()


@router.post("/config")
async def post_config(body: dict):
    """Apply a partial configuration update.

    Responds 400 with the validation message when the update is rejected;
    the previous configuration stays in effect.
    """
    engine = _require_engine()
    try:
        engine.update_configuration(body)
    except ConfigurationError as exc:
        logger.warning("Rejected configuration update: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return engine.get_status()
