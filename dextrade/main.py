"""DexTrade — application entry point.

Boots the FastAPI control server and provides the CLI entry point that
runs the trading engine.
"""

import logging

from fastapi import FastAPI

from dextrade.api.routers import router

app = FastAPI(title="DexTrade Control API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("dextrade")


@app.get("/health")
async def health():
    """Liveness check; engine health is reported by /status."""
    return {"status": "ok"}


def build_engine(config, bot_config, simulation: bool = False):
    """Wire market data, venues, and signer into a ``TradingEngine``.

    Returns ``(engine, aggregator)``.
    """
    from dextrade.engine import TradingEngine
    from dextrade.market.binance_client import BinanceMarketData
    from dextrade.market.simulated import SimulatedMarketData
    from dextrade.venues.aggregator import VenueAggregator
    from dextrade.venues.signer import PaperSigner
    from dextrade.venues.venue import build_default_venues

    if simulation or config.simulation_mode:
        logger.warning("SIMULATION MODE — market data is synthetic.")
        market_data = SimulatedMarketData(seed=config.simulation_seed)
    else:
        market_data = BinanceMarketData(config)

    aggregator = VenueAggregator(
        build_default_venues(),
        quote_timeout_s=config.venue_quote_timeout_s,
        quote_deadline_s=config.quote_deadline_s,
        execution_timeout_s=config.execution_timeout_s,
    )
    engine = TradingEngine(
        config=config,
        market_data=market_data,
        aggregator=aggregator,
        signer=PaperSigner(),
        bot_config=bot_config,
    )
    return engine, aggregator


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and run the engine (with or without the API)."""
    import argparse
    import asyncio

    from dextrade.api.routers import configure_routers
    from dextrade.config import load_bot_config, load_config

    parser = argparse.ArgumentParser(description="DexTrade trading bot")
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the trading engine without the API server",
    )
    parser.add_argument(
        "--simulation",
        action="store_true",
        help="Use synthetic market data instead of the live feed",
    )
    parser.add_argument("--port", type=int, default=None, help="API port (default: API_PORT)")
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    bot_config = load_bot_config(config.bot_config_path)

    engine, aggregator = build_engine(config, bot_config, simulation=args.simulation)
    configure_routers(engine=engine, aggregator=aggregator)

    port = args.port if args.port is not None else config.api_port
    if args.engine_only:
        asyncio.run(_run_engine_only(engine))
    else:
        asyncio.run(_run_with_api(engine, port))


async def _run_with_api(engine, port: int = 8080) -> None:
    """Serve the API and run the trading loop until the server shuts down."""
    import uvicorn

    from dextrade.cli.dashboard import print_status

    uvi_config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(uvi_config)

    engine.start()
    logger.info("Control API available at http://localhost:%d", port)
    try:
        # uvicorn handles SIGINT and returns from serve()
        await server.serve()
    finally:
        engine.stop()
        await engine.wait_stopped()
    print_status(engine.get_status())
    logger.info("DexTrade stopped.")


async def _run_engine_only(engine) -> None:
    """Run the trading loop without the API server until SIGINT."""
    import asyncio
    import signal

    from dextrade.cli.dashboard import print_status

    def handle_shutdown(*_):
        logger.info("Shutdown signal received — stopping gracefully.")
        engine.stop()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, handle_shutdown)
    except NotImplementedError:
        signal.signal(signal.SIGINT, handle_shutdown)

    engine.start()
    await engine.wait_stopped()
    print_status(engine.get_status())
    logger.info("DexTrade engine stopped.")


if __name__ == "__main__":
    _run_cli()
