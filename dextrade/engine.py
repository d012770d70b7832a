"""DexTrade — Trading engine (orchestration loop).

Connects market data, the signal engine, risk sizing, and the venue
aggregator into one recurring cycle:

    per pair:  candles → signal → close / skip / size → quote → execute
    then:      refresh prices of open positions → stop-loss / take-profit

The engine owns the ``Account``; all account mutations happen under one
lock that is never held across a network call.
"""

import asyncio
import copy
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from dextrade.config import Config
from dextrade.errors import MarketDataError, NoLiquidityError
from dextrade.market.models import MarketDataProvider
from dextrade.models.account import Account, Position, Trade
from dextrade.models.bot_config import (
    BotConfiguration,
    ConfigurationUpdate,
    split_pair,
)
from dextrade.risk.circuit_breaker import CircuitBreaker
from dextrade.risk.exits import exit_reason
from dextrade.risk.position_sizer import position_size
from dextrade.scheduler import AsyncioTicker, Ticker
from dextrade.strategy.models import MIN_SERIES_LENGTH, Signal
from dextrade.strategy.registry import evaluate_signal
from dextrade.venues.aggregator import VenueAggregator
from dextrade.venues.signer import Signer

logger = logging.getLogger("dextrade")

# Pair outcomes that mean "no usable market data this cycle".
_DATA_FAILURES = {"market_data_error", "insufficient_data"}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def swap_legs(pair: str, signal: Signal, size: float, price: float) -> tuple[str, str, float]:
    """Return ``(token_in, token_out, amount_in)`` for an order on *pair*.

    A BUY spends ``size × price`` of the quote token for the base token;
    a SELL spends ``size`` of the base token for the quote token.
    """
    if not signal.is_directional:
        raise ValueError(f"No swap for signal {signal}")
    base, quote = split_pair(pair)
    if signal is Signal.BUY:
        return quote, base, size * price
    return base, quote, size


class TradingEngine:
    """Owns the bot configuration and account, and drives trading cycles.

    Args:
        config: Process configuration (timeouts, balance, thresholds).
        market_data: Candle / price provider.
        aggregator: Venue aggregator used for quotes and execution.
        signer: Signing capability handed to venues on execution.
        bot_config: Initial trading configuration; defaults if ``None``.
        ticker: Time source between cycles; ``AsyncioTicker`` if ``None``.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        config: Config,
        market_data: MarketDataProvider,
        aggregator: VenueAggregator,
        signer: Signer,
        bot_config: Optional[BotConfiguration] = None,
        ticker: Optional[Ticker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._config = config
        self._market_data = market_data
        self._aggregator = aggregator
        self._signer = signer
        self._bot_config = (bot_config or BotConfiguration()).validate()
        self._ticker = ticker or AsyncioTicker()
        self._clock = clock or _utc_now

        self._account = Account(config.initial_balance)
        self._breaker = CircuitBreaker(
            max_drawdown_pct=config.max_drawdown_pct,
            max_stop_loss_streak=config.max_stop_loss_streak,
        )
        self._account_lock = asyncio.Lock()
        self._cycle_lock = asyncio.Lock()

        self._running: bool = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._scheduled_interval: Optional[int] = None
        self._started_at: Optional[datetime] = None

        self._cycle_count: int = 0
        self._last_cycle: Optional[dict] = None
        self._last_error: Optional[str] = None
        self._failing_cycles: int = 0
        self._insights: dict[str, dict] = {}

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    @property
    def bot_config(self) -> BotConfiguration:
        return self._bot_config

    @property
    def account(self) -> Account:
        return self._account

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def degraded(self) -> bool:
        """``True`` after enough consecutive cycles without data or quotes."""
        return self._failing_cycles >= self._config.degraded_after_cycles

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> bool:
        """Start the cycle loop; a no-op if already running.

        Must be called from inside a running event loop.  The first cycle
        runs immediately; later cycles follow the interval fixed here from
        ``cycle_interval``.  Returns ``True`` if a loop was started.
        """
        if self._running:
            logger.info("Bot is already running")
            return False

        interval = self._bot_config.cycle_interval.seconds
        stop_event = asyncio.Event()
        self._running = True
        self._stop_event = stop_event
        self._scheduled_interval = interval
        self._started_at = self._clock()
        self._task = asyncio.get_running_loop().create_task(
            self._loop(stop_event, interval)
        )
        logger.info(
            "Trading bot started — cycle every %ds (%s)",
            interval, self._bot_config.cycle_interval.value,
        )
        return True

    def stop(self) -> bool:
        """Stop scheduling cycles; a no-op if already stopped.

        A pending wait is abandoned immediately; a cycle in progress runs to
        completion, but opens no new positions once stopped.  Returns
        ``True`` if the bot was running.
        """
        if not self._running:
            logger.info("Bot is not running")
            return False
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        logger.info("Trading bot stopped")
        return True

    async def wait_stopped(self) -> None:
        """Wait until the current cycle loop (if any) has exited."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def _loop(self, stop_event: asyncio.Event, interval: int) -> None:
        while not stop_event.is_set():
            async with self._cycle_lock:
                if stop_event.is_set():
                    break
                await self._execute_cycle(stop_event)

            if stop_event.is_set():
                break
            sleeper = asyncio.create_task(self._ticker.sleep(interval))
            stopper = asyncio.create_task(stop_event.wait())
            try:
                await asyncio.wait(
                    {sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                sleeper.cancel()
                stopper.cancel()
                await asyncio.wait({sleeper, stopper})
        logger.debug("Cycle loop exited")

    # ── Configuration ────────────────────────────────────────────────────

    def update_configuration(
        self, update: Union[ConfigurationUpdate, dict],
    ) -> BotConfiguration:
        """Merge a partial configuration and return the new configuration.

        Raises ``ConfigurationError`` (leaving the current configuration in
        place) if the update is invalid.  Stop-loss / take-profit changes
        only apply to positions opened afterwards.  A new cycle interval
        only takes effect after the bot is restarted.
        """
        if isinstance(update, dict):
            update = ConfigurationUpdate.from_dict(update)
        new_config = self._bot_config.merge(update)
        old_config, self._bot_config = self._bot_config, new_config
        logger.info("Bot configuration updated: %s", new_config.to_dict())
        if self._running and new_config.cycle_interval != old_config.cycle_interval:
            logger.warning(
                "Cycle interval changed to %s; the running schedule (%ds) "
                "is kept until restart",
                new_config.cycle_interval.value, self._scheduled_interval,
            )
        return new_config

    # ── Queries ──────────────────────────────────────────────────────────

    def get_trade_history(self) -> list[Trade]:
        """Every executed order, oldest first."""
        return self._account.trades

    def get_open_positions(self) -> list[Position]:
        """Snapshot copies of the open positions."""
        return [copy.copy(p) for p in self._account.open_positions]

    def get_trade_stats(self) -> dict:
        return self._account.trade_stats()

    def get_status(self) -> dict:
        """Running state, configuration, account summary, last cycle outcome.

        Never raises.
        """
        try:
            account = self._account.summary()
            trip = self._breaker.trip_reason(self._account)
            account.update(
                circuit_breaker_active=trip is not None,
                circuit_breaker_reason=trip,
            )
            return {
                "running": self._running,
                "health": "degraded" if self.degraded else "ok",
                "configuration": self._bot_config.to_dict(),
                "account": account,
                "cycle_count": self._cycle_count,
                "cycle_interval_seconds": (
                    self._scheduled_interval
                    if self._running
                    else self._bot_config.cycle_interval.seconds
                ),
                "started_at": (
                    self._started_at.isoformat() if self._started_at else None
                ),
                "last_cycle": self._last_cycle,
                "last_error": self._last_error,
                "insights": dict(self._insights),
                "timestamp": self._clock().isoformat(),
            }
        except Exception as exc:
            logger.exception("Failed to build status")
            return {
                "running": self._running,
                "health": "unknown",
                "last_error": str(exc),
            }

    # ── Cycle ────────────────────────────────────────────────────────────

    async def run_cycle(self) -> dict:
        """Run one full cycle now and return its report.

        Cycles never overlap: a call made while another cycle is running
        waits for it to finish first.
        """
        async with self._cycle_lock:
            return await self._execute_cycle(None)

    async def _execute_cycle(self, stop_event: Optional[asyncio.Event]) -> dict:
        self._cycle_count += 1
        bot_config = self._bot_config
        started_at = self._clock()
        report: dict = {
            "cycle": self._cycle_count,
            "started_at": started_at.isoformat(),
            "finished_at": None,
            "status": "ok",
            "pairs": {},
            "exits": [],
            "errors": [],
        }
        logger.info(
            "Starting trading cycle %d (%s, %d pairs)",
            self._cycle_count, bot_config.strategy.value, len(bot_config.trading_pairs),
        )

        try:
            outcomes = await asyncio.gather(
                *(
                    self._process_pair(pair, bot_config, stop_event)
                    for pair in bot_config.trading_pairs
                ),
                return_exceptions=True,
            )
            for pair, outcome in zip(bot_config.trading_pairs, outcomes):
                if isinstance(outcome, Exception):
                    logger.error("Error analysing %s: %s", pair, outcome)
                    outcome = {"action": "error", "reason": str(outcome)}
                    report["errors"].append(f"{pair}: {outcome['reason']}")
                elif isinstance(outcome, BaseException):
                    raise outcome
                elif outcome.get("reason") == "market_data_error":
                    report["errors"].append(f"{pair}: {outcome.get('error')}")
                report["pairs"][pair] = outcome

            report["exits"] = await self._sweep_exits()
        except Exception as exc:
            logger.exception("Trading cycle %d failed", self._cycle_count)
            report["status"] = "failed"
            report["errors"].append(str(exc))

        self._account.snapshot_equity()
        self._update_health(report)
        report["finished_at"] = self._clock().isoformat()
        if report["errors"]:
            self._last_error = report["errors"][-1]
        self._last_cycle = report
        logger.info(
            "Trading cycle %d completed: %s",
            report["cycle"],
            {p: r.get("action") for p, r in report["pairs"].items()},
        )
        return report

    def _update_health(self, report: dict) -> None:
        outcomes = list(report["pairs"].values())
        data_ok = any(o.get("reason") not in _DATA_FAILURES for o in outcomes)
        quote_attempts = [o for o in outcomes if o.get("quoted") is not None]
        quotes_ok = not quote_attempts or any(o["quoted"] for o in quote_attempts)
        if report["status"] == "ok" and data_ok and quotes_ok:
            if self._failing_cycles >= self._config.degraded_after_cycles:
                logger.info("Market data and quotes recovered; health ok")
            self._failing_cycles = 0
            return
        self._failing_cycles += 1
        if self._failing_cycles == self._config.degraded_after_cycles:
            logger.error(
                "Bot degraded: %d consecutive cycles without usable data or quotes",
                self._failing_cycles,
            )

    # ── Per-pair analysis ────────────────────────────────────────────────

    def _halted(self, stop_event: Optional[asyncio.Event]) -> bool:
        return stop_event is not None and stop_event.is_set()

    async def _process_pair(
        self,
        pair: str,
        bot_config: BotConfiguration,
        stop_event: Optional[asyncio.Event],
    ) -> dict:
        # 1 ── Market data
        try:
            candles = await asyncio.wait_for(
                self._market_data.fetch_candles(
                    pair, self._config.candle_interval, self._config.candle_limit,
                ),
                timeout=self._config.market_data_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Market data for %s timed out — skipping", pair)
            return {"action": "skipped", "reason": "market_data_error", "error": "timeout"}
        except MarketDataError as exc:
            logger.warning("Market data for %s unavailable (%s) — skipping", pair, exc)
            return {"action": "skipped", "reason": "market_data_error", "error": str(exc)}

        if len(candles) < MIN_SERIES_LENGTH:
            logger.warning(
                "Insufficient market data for %s (%d candles)", pair, len(candles),
            )
            return {"action": "skipped", "reason": "insufficient_data"}

        # 2 ── Signal
        price = candles[-1].close
        result = evaluate_signal(candles, bot_config.strategy)
        signal = result.signal
        self._insights[pair] = {
            "signal": signal.value,
            "strategy": result.strategy,
            "price": price,
            "indicators": result.indicators.to_dict(),
            "evaluated_at": self._clock().isoformat(),
        }
        logger.info(
            "%s signal: %s (rsi=%s)", pair, signal.value, result.indicators.rsi,
        )
        if not signal.is_directional:
            return {"action": "skipped", "reason": "hold", "signal": signal.value}

        # 2a/2b ── Existing position
        position = self._account.position_for(pair)
        if position is not None:
            if not signal.opposes(position.entry_signal):
                logger.info("Already have position in %s, skipping", pair)
                return {
                    "action": "skipped",
                    "reason": "same_direction_position",
                    "signal": signal.value,
                }
            logger.info("Closing position in %s based on opposite signal", pair)
            try:
                closed = await self._close_position(
                    position, price, "opposite_signal", bot_config,
                )
            except NoLiquidityError as exc:
                logger.warning("No liquidity to close %s: %s", pair, exc)
                return {
                    "action": "skipped", "reason": "no_liquidity",
                    "signal": signal.value, "quoted": False,
                }
            if closed is None:
                return {
                    "action": "skipped",
                    "reason": "execution_failed",
                    "signal": signal.value,
                    "quoted": True,
                }
            return {
                "action": "closed",
                "reason": "opposite_signal",
                "signal": signal.value,
                "position_id": closed.id,
                "realized_pnl": closed.realized_pnl,
                "quoted": True,
            }

        # 2c ── New position
        trip = self._breaker.trip_reason(self._account)
        if trip is not None:
            logger.warning("Circuit breaker active (%s) — not opening %s", trip, pair)
            return {
                "action": "skipped", "reason": "circuit_breaker",
                "signal": signal.value, "trigger": trip,
            }

        size = position_size(
            self._account.equity,
            bot_config.risk_level,
            bot_config.max_position_size_fraction,
            price,
            bot_config.stop_loss_fraction,
        )
        if size <= 0:
            return {"action": "skipped", "reason": "zero_size", "signal": signal.value}

        return await self._open_position(pair, signal, size, price, bot_config, stop_event)

    async def _open_position(
        self,
        pair: str,
        signal: Signal,
        size: float,
        price: float,
        bot_config: BotConfiguration,
        stop_event: Optional[asyncio.Event],
    ) -> dict:
        token_in, token_out, amount_in = swap_legs(pair, signal, size, price)
        try:
            quote = await self._aggregator.best_quote(
                token_in, token_out, amount_in, bot_config.slippage_tolerance_fraction,
            )
        except NoLiquidityError as exc:
            logger.warning("No liquidity for %s %s: %s", signal.value, pair, exc)
            return {
                "action": "skipped", "reason": "no_liquidity",
                "signal": signal.value, "quoted": False,
            }

        if self._halted(stop_event):
            logger.info("Bot stopped mid-cycle — discarding %s quote for %s", quote.venue_id, pair)
            return {"action": "skipped", "reason": "stopped", "signal": signal.value, "quoted": True}

        logger.info("Executing %s trade for %s, size: %s", signal.value, pair, size)
        execution = await self._aggregator.execute(
            quote, self._signer, bot_config.slippage_tolerance_fraction,
        )
        if not execution.success:
            self._last_error = f"{pair}: execution failed on {execution.venue}: {execution.error}"
            logger.error("Trade execution failed for %s: %s", pair, execution.error)
            return {
                "action": "skipped", "reason": "execution_failed",
                "signal": signal.value, "error": execution.error, "quoted": True,
            }

        now = self._clock()
        async with self._account_lock:
            position = Position.open(
                pair=pair,
                size=size,
                entry_price=price,
                is_long=signal is Signal.BUY,
                entry_time=now,
                stop_loss_fraction=bot_config.stop_loss_fraction,
                take_profit_fraction=bot_config.take_profit_fraction,
                venue=execution.venue,
            )
            self._account.add_position(position)
            self._account.record_trade(
                Trade(
                    pair=pair,
                    signal=signal,
                    size=size,
                    price=price,
                    timestamp=now,
                    venue=execution.venue,
                    tx_ref=execution.tx_ref or "",
                    reason="entry",
                    position_id=position.id,
                )
            )
        logger.info(
            "Created new position: %s %s %s @ %s via %s",
            pair, position.direction.upper(), size, price, execution.venue,
        )
        return {
            "action": "opened",
            "signal": signal.value,
            "position_id": position.id,
            "size": size,
            "price": price,
            "venue": execution.venue,
            "tx_ref": execution.tx_ref,
            "quoted": True,
        }

    # ── Exits ────────────────────────────────────────────────────────────

    async def _close_position(
        self,
        position: Position,
        price: float,
        reason: str,
        bot_config: BotConfiguration,
    ) -> Optional[Position]:
        """Execute the opposite-side trade and close *position*.

        Returns the closed position, or ``None`` if execution failed (the
        position then stays open).  Raises ``NoLiquidityError`` when no
        venue quotes the exit.
        """
        signal = position.exit_signal
        token_in, token_out, amount_in = swap_legs(position.pair, signal, position.size, price)
        quote = await self._aggregator.best_quote(
            token_in, token_out, amount_in, bot_config.slippage_tolerance_fraction,
        )

        execution = await self._aggregator.execute(
            quote, self._signer, bot_config.slippage_tolerance_fraction,
        )
        if not execution.success:
            self._last_error = (
                f"{position.pair}: close failed on {execution.venue}: {execution.error}"
            )
            logger.error("Closing %s failed: %s", position.pair, execution.error)
            return None

        now = self._clock()
        async with self._account_lock:
            closed = self._account.close_position(position.pair, price, now, reason)
            self._account.record_trade(
                Trade(
                    pair=closed.pair,
                    signal=signal,
                    size=closed.size,
                    price=price,
                    timestamp=now,
                    venue=execution.venue,
                    tx_ref=execution.tx_ref or "",
                    reason=reason,
                    position_id=closed.id,
                )
            )
        logger.info(
            "Closed position: %s %s %s @ %s (%s), PnL: %.6f",
            closed.pair, closed.direction.upper(), closed.size, price,
            reason, closed.realized_pnl,
        )
        return closed

    async def _fetch_price(self, pair: str) -> Optional[float]:
        try:
            return await asyncio.wait_for(
                self._market_data.fetch_price(pair),
                timeout=self._config.market_data_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Price refresh for %s timed out", pair)
        except MarketDataError as exc:
            logger.warning("Error updating position price for %s: %s", pair, exc)
        return None

    async def _sweep_exits(self) -> list[dict]:
        """Re-mark every open position and close those hitting SL / TP."""
        positions = self._account.open_positions
        if not positions:
            return []

        prices = await asyncio.gather(*(self._fetch_price(p.pair) for p in positions))
        bot_config = self._bot_config

        exits: list[dict] = []
        for position, price in zip(positions, prices):
            if price is None:
                exits.append({
                    "pair": position.pair, "action": "skipped",
                    "reason": "market_data_error",
                })
                continue
            async with self._account_lock:
                position.mark(price)
            reason = exit_reason(position, price)
            if reason is None:
                continue
            logger.info(
                "%s hit %s at %s (entry %s)", position.pair, reason, price, position.entry_price,
            )
            try:
                closed = await self._close_position(position, price, reason, bot_config)
            except NoLiquidityError as exc:
                logger.warning("No liquidity to close %s: %s", position.pair, exc)
                exits.append({
                    "pair": position.pair, "action": "skipped",
                    "reason": "no_liquidity", "trigger": reason,
                })
                continue
            if closed is None:
                exits.append({
                    "pair": position.pair, "action": "skipped",
                    "reason": "execution_failed", "trigger": reason,
                })
            else:
                exits.append({
                    "pair": position.pair, "action": "closed", "reason": reason,
                    "position_id": closed.id, "realized_pnl": closed.realized_pnl,
                })
        return exits
