"""Tests for the trading engine orchestration.

Verifies the cycle: candles → signal → skip / close / size → quote →
execute, then the stop-loss / take-profit sweep.  Uses a fake market data
provider and a manual ticker; no network, no wall-clock waits.
"""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from dextrade.config import Config
from dextrade.engine import TradingEngine, swap_legs
from dextrade.errors import ConfigurationError, MarketDataError, VenueError
from dextrade.models.bot_config import BotConfiguration, CycleInterval, Strategy
from dextrade.scheduler import ManualTicker
from dextrade.strategy.models import CandleData, Signal
from dextrade.venues.aggregator import VenueAggregator
from dextrade.venues.signer import PaperSigner
from dextrade.venues.venue import DEFAULT_VENUES, SimulatedVenue, build_default_venues

_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

# With the tick-trend strategy: rising → BUY, falling → SELL, flat → HOLD.
RISING = [100.0 + i for i in range(30)]   # last close 129
FALLING = [130.0 - i for i in range(30)]  # last close 101
FLAT = [120.0] * 30


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(**overrides) -> Config:
    """Build a Config with sensible test defaults."""
    defaults = dict(
        market_data_url="https://api.binance.test/api/v3",
        candle_interval="1h",
        candle_limit=50,
        market_data_timeout_s=1.0,
        market_data_cache_ttl_s=0.0,
        venue_quote_timeout_s=1.0,
        quote_deadline_s=2.0,
        execution_timeout_s=1.0,
        initial_balance=10_000.0,
        max_drawdown_pct=0.0,
        max_stop_loss_streak=0,
        degraded_after_cycles=2,
        simulation_mode=False,
        simulation_seed=None,
        bot_config_path="bot.json",
        log_level="WARNING",
        api_port=8080,
    )
    defaults.update(overrides)
    return Config(**defaults)


def _candles(values: list[float]) -> list[CandleData]:
    return [
        CandleData(f"2024-03-01T{i % 24:02d}:00:00+00:00", v, v + 1, v - 1, v, 10.0)
        for i, v in enumerate(values)
    ]


class FakeMarketData:
    """Duck-typed market data provider with mutable series and prices."""

    def __init__(self, series: dict[str, list[float]]) -> None:
        self.series = dict(series)
        self.prices: dict[str, float] = {}
        self.failing: set[str] = set()

    async def fetch_candles(self, pair: str, interval: str = "1h", limit: int = 50):
        if pair in self.failing:
            raise MarketDataError(f"{pair} feed down")
        return _candles(self.series[pair][-limit:])

    async def fetch_price(self, pair: str) -> float:
        if pair in self.failing:
            raise MarketDataError(f"{pair} feed down")
        return self.prices.get(pair, self.series[pair][-1])


class HangingMarketData(FakeMarketData):
    """Provider whose listed pairs never answer."""

    def __init__(self, series: dict[str, list[float]]) -> None:
        super().__init__(series)
        self.hanging_candles: set[str] = set()
        self.hanging_prices: set[str] = set()

    async def fetch_candles(self, pair: str, interval: str = "1h", limit: int = 50):
        if pair in self.hanging_candles:
            await asyncio.Event().wait()
        return await super().fetch_candles(pair, interval, limit)

    async def fetch_price(self, pair: str) -> float:
        if pair in self.hanging_prices:
            await asyncio.Event().wait()
        return await super().fetch_price(pair)


class FailingSigner:
    async def sign_and_send(self, prepared_tx: dict) -> str:
        raise RuntimeError("nonce too low")


class BrokenVenue(SimulatedVenue):
    async def quote(self, token_in, token_out, amount_in):
        raise VenueError("pool unavailable")


class GatedVenue(SimulatedVenue):
    """Venue whose quotes block until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__(DEFAULT_VENUES[3])
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def quote(self, token_in, token_out, amount_in):
        self.entered.set()
        await self.gate.wait()
        return await super().quote(token_in, token_out, amount_in)


def _make_engine(
    market: FakeMarketData,
    venues=None,
    signer=None,
    ticker=None,
    pairs: tuple[str, ...] = ("ETH/USDC",),
    **config_overrides,
) -> TradingEngine:
    config = _make_config(**config_overrides)
    aggregator = VenueAggregator(
        venues if venues is not None else build_default_venues(),
        quote_timeout_s=config.venue_quote_timeout_s,
        quote_deadline_s=config.quote_deadline_s,
        execution_timeout_s=config.execution_timeout_s,
    )
    return TradingEngine(
        config=config,
        market_data=market,
        aggregator=aggregator,
        signer=signer or PaperSigner(),
        bot_config=BotConfiguration(strategy=Strategy.NEURAL_NETWORK, trading_pairs=pairs),
        ticker=ticker or ManualTicker(),
        clock=lambda: _NOW,
    )


# ── Opening positions ────────────────────────────────────────────────────


class TestOpenPositions:
    @pytest.mark.asyncio
    async def test_buy_opens_long_end_to_end(self):
        signer = PaperSigner()
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING}), signer=signer)

        report = await engine.run_cycle()

        outcome = report["pairs"]["ETH/USDC"]
        assert outcome["action"] == "opened"
        assert outcome["venue"] == "curve"
        [position] = engine.get_open_positions()
        assert position.is_long
        assert position.entry_price == 129.0
        # capped by the 10 % max position: 10_000 × 0.1 / 129
        assert position.size == pytest.approx(1000.0 / 129.0)
        assert position.stop_loss_price == pytest.approx(129.0 * 0.95)
        assert position.take_profit_price == pytest.approx(129.0 * 1.1)

        [trade] = engine.get_trade_history()
        assert trade.signal is Signal.BUY
        assert trade.reason == "entry"
        assert trade.position_id == position.id
        assert trade.tx_ref.startswith("0x")

        submitted = signer.submitted[0]
        assert (submitted["token_in"], submitted["token_out"]) == ("USDC", "ETH")
        assert submitted["amount_in"] == pytest.approx(1000.0)

        assert engine.account.balance == pytest.approx(9000.0)
        assert engine.account.equity == pytest.approx(10_000.0)

    @pytest.mark.asyncio
    async def test_sell_opens_short_spending_base_token(self):
        signer = PaperSigner()
        engine = _make_engine(FakeMarketData({"ETH/USDC": FALLING}), signer=signer)

        await engine.run_cycle()

        [position] = engine.get_open_positions()
        assert not position.is_long
        assert position.stop_loss_price == pytest.approx(101.0 * 1.05)
        submitted = signer.submitted[0]
        assert (submitted["token_in"], submitted["token_out"]) == ("ETH", "USDC")
        assert submitted["amount_in"] == pytest.approx(position.size)

    @pytest.mark.asyncio
    async def test_same_direction_signal_is_skipped(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING}))
        await engine.run_cycle()
        report = await engine.run_cycle()

        assert report["pairs"]["ETH/USDC"]["reason"] == "same_direction_position"
        assert len(engine.get_open_positions()) == 1
        assert len(engine.get_trade_history()) == 1

    @pytest.mark.asyncio
    async def test_at_most_one_position_per_pair(self):
        market = FakeMarketData({"ETH/USDC": RISING, "BTC/USDC": FALLING})
        engine = _make_engine(market, pairs=("ETH/USDC", "BTC/USDC"))
        for _ in range(3):
            await engine.run_cycle()
            pairs = [p.pair for p in engine.get_open_positions()]
            assert sorted(pairs) == ["BTC/USDC", "ETH/USDC"]

    @pytest.mark.asyncio
    async def test_hold_does_nothing(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": FLAT}))
        report = await engine.run_cycle()
        assert report["pairs"]["ETH/USDC"] == {"action": "skipped", "reason": "hold", "signal": "HOLD"}
        assert engine.get_trade_history() == []

    @pytest.mark.asyncio
    async def test_zero_size_is_skipped(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": [float(i - 40) for i in range(30)]}))
        report = await engine.run_cycle()
        assert report["pairs"]["ETH/USDC"]["reason"] == "zero_size"
        assert engine.get_open_positions() == []

    @pytest.mark.asyncio
    async def test_circuit_breaker_blocks_new_entries(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market, max_drawdown_pct=0.5)
        await engine.run_cycle()

        # stop-loss at 120 loses 9 × 1000/129 ≈ 69.8, about 0.7 % of 10_000
        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 120.0
        report = await engine.run_cycle()
        assert report["exits"][0]["reason"] == "stop_loss"
        account = engine.get_status()["account"]
        assert account["peak_equity"] == pytest.approx(10_000.0)
        assert account["drawdown_pct"] == pytest.approx(9000.0 / 129.0 / 100.0, abs=1e-4)
        assert account["circuit_breaker_reason"] == "max_drawdown"

        market.series["ETH/USDC"] = RISING
        report = await engine.run_cycle()

        assert report["pairs"]["ETH/USDC"]["reason"] == "circuit_breaker"
        assert report["pairs"]["ETH/USDC"]["trigger"] == "max_drawdown"
        assert engine.get_open_positions() == []

    @pytest.mark.asyncio
    async def test_stop_loss_streak_trips_breaker(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market, max_stop_loss_streak=1)
        await engine.run_cycle()
        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 120.0
        await engine.run_cycle()

        market.series["ETH/USDC"] = RISING
        report = await engine.run_cycle()

        assert report["pairs"]["ETH/USDC"]["trigger"] == "stop_loss_streak"
        assert engine.get_status()["account"]["circuit_breaker_active"] is True


# ── Closing positions ────────────────────────────────────────────────────


class TestClosePositions:
    @pytest.mark.asyncio
    async def test_opposite_signal_closes_without_reversing(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        await engine.run_cycle()
        size = engine.get_open_positions()[0].size

        market.series["ETH/USDC"] = FALLING
        report = await engine.run_cycle()

        outcome = report["pairs"]["ETH/USDC"]
        assert outcome["action"] == "closed"
        assert outcome["reason"] == "opposite_signal"
        assert outcome["realized_pnl"] == pytest.approx((101.0 - 129.0) * size)
        assert engine.get_open_positions() == []
        entry, exit_ = engine.get_trade_history()
        assert exit_.signal is Signal.SELL
        assert exit_.reason == "opposite_signal"
        assert exit_.position_id == entry.position_id
        assert engine.account.realized_pnl == pytest.approx((101.0 - 129.0) * size)

    @pytest.mark.asyncio
    async def test_stop_loss_exit(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        await engine.run_cycle()

        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 120.0  # below 129 × 0.95
        report = await engine.run_cycle()

        [exit_] = report["exits"]
        assert exit_["action"] == "closed"
        assert exit_["reason"] == "stop_loss"
        assert engine.get_open_positions() == []
        closed = engine.account.closed_positions[0]
        assert closed.exit_reason == "stop_loss"
        assert closed.exit_price == 120.0
        assert engine.get_trade_history()[-1].reason == "stop_loss"

    @pytest.mark.asyncio
    async def test_take_profit_exit_for_short(self):
        market = FakeMarketData({"ETH/USDC": FALLING})
        engine = _make_engine(market)
        await engine.run_cycle()

        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 90.0  # below 101 × 0.9
        report = await engine.run_cycle()

        assert report["exits"][0]["reason"] == "take_profit"
        last = engine.get_trade_history()[-1]
        assert last.signal is Signal.BUY
        assert last.reason == "take_profit"

    @pytest.mark.asyncio
    async def test_position_inside_band_stays_open_and_is_marked(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        await engine.run_cycle()

        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 130.0
        report = await engine.run_cycle()

        assert report["exits"] == []
        [position] = engine.get_open_positions()
        assert position.current_price == 130.0
        assert position.unrealized_pnl == pytest.approx(position.size * 1.0)

    @pytest.mark.asyncio
    async def test_config_change_does_not_touch_open_positions(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        await engine.run_cycle()
        engine.update_configuration({"stop_loss_fraction": 0.2})

        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 120.0
        report = await engine.run_cycle()

        assert report["exits"][0]["reason"] == "stop_loss"

    @pytest.mark.asyncio
    async def test_failed_close_leaves_position_open(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        await engine.run_cycle()

        engine._signer = FailingSigner()
        market.series["ETH/USDC"] = FALLING
        report = await engine.run_cycle()

        assert report["pairs"]["ETH/USDC"]["reason"] == "execution_failed"
        assert len(engine.get_open_positions()) == 1
        assert len(engine.get_trade_history()) == 1


# ── Failures and health ──────────────────────────────────────────────────


class TestFailures:
    @pytest.mark.asyncio
    async def test_execution_failure_records_nothing(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING}), signer=FailingSigner())
        report = await engine.run_cycle()

        assert report["pairs"]["ETH/USDC"]["reason"] == "execution_failed"
        assert engine.get_open_positions() == []
        assert engine.get_trade_history() == []
        assert "nonce too low" in engine.get_status()["last_error"]

    @pytest.mark.asyncio
    async def test_no_liquidity_skips_pair(self):
        venues = [BrokenVenue(spec, i) for i, spec in enumerate(DEFAULT_VENUES)]
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING}), venues=venues)
        report = await engine.run_cycle()
        assert report["pairs"]["ETH/USDC"]["reason"] == "no_liquidity"
        assert engine.get_open_positions() == []

    @pytest.mark.asyncio
    async def test_one_failing_pair_does_not_block_others(self):
        market = FakeMarketData({"ETH/USDC": RISING, "BTC/USDC": RISING})
        market.failing.add("BTC/USDC")
        engine = _make_engine(market, pairs=("ETH/USDC", "BTC/USDC"))

        report = await engine.run_cycle()

        assert report["pairs"]["BTC/USDC"]["reason"] == "market_data_error"
        assert report["pairs"]["ETH/USDC"]["action"] == "opened"
        assert engine.get_status()["health"] == "ok"

    @pytest.mark.asyncio
    async def test_insufficient_data(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING[:10]}))
        report = await engine.run_cycle()
        assert report["pairs"]["ETH/USDC"]["reason"] == "insufficient_data"

    @pytest.mark.asyncio
    async def test_degraded_after_consecutive_data_failures(self):
        market = FakeMarketData({"ETH/USDC": FLAT})
        market.failing.add("ETH/USDC")
        engine = _make_engine(market, degraded_after_cycles=2)

        await engine.run_cycle()
        assert engine.get_status()["health"] == "ok"
        await engine.run_cycle()
        assert engine.get_status()["health"] == "degraded"

        market.failing.clear()
        await engine.run_cycle()
        assert engine.get_status()["health"] == "ok"

    @pytest.mark.asyncio
    async def test_degraded_when_no_venue_quotes(self):
        venues = [BrokenVenue(spec, i) for i, spec in enumerate(DEFAULT_VENUES)]
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING}), venues=venues)
        await engine.run_cycle()
        await engine.run_cycle()
        assert engine.degraded is True

    @pytest.mark.asyncio
    async def test_price_refresh_failure_keeps_position(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        await engine.run_cycle()

        market.failing.add("ETH/USDC")
        report = await engine.run_cycle()

        assert report["exits"] == [
            {"pair": "ETH/USDC", "action": "skipped", "reason": "market_data_error"}
        ]
        assert len(engine.get_open_positions()) == 1

    @pytest.mark.asyncio
    async def test_hanging_candle_feed_times_out(self):
        market = HangingMarketData({"ETH/USDC": RISING, "BTC/USDC": RISING})
        market.hanging_candles.add("BTC/USDC")
        engine = _make_engine(
            market, pairs=("ETH/USDC", "BTC/USDC"), market_data_timeout_s=0.05,
        )

        report = await asyncio.wait_for(engine.run_cycle(), timeout=2.0)

        assert report["pairs"]["BTC/USDC"] == {
            "action": "skipped", "reason": "market_data_error", "error": "timeout",
        }
        assert report["pairs"]["ETH/USDC"]["action"] == "opened"
        assert "BTC/USDC: timeout" in report["errors"]
        assert report["finished_at"] is not None

    @pytest.mark.asyncio
    async def test_hanging_price_refresh_keeps_position(self):
        market = HangingMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market, market_data_timeout_s=0.05)
        await engine.run_cycle()

        market.series["ETH/USDC"] = FLAT
        market.hanging_prices.add("ETH/USDC")
        report = await asyncio.wait_for(engine.run_cycle(), timeout=2.0)

        assert report["exits"] == [
            {"pair": "ETH/USDC", "action": "skipped", "reason": "market_data_error"}
        ]
        [position] = engine.get_open_positions()
        assert position.current_price == 129.0

    @pytest.mark.asyncio
    async def test_zero_slippage_tolerance_still_trades_and_exits(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        engine.update_configuration({"slippage_tolerance_fraction": 0.0})

        report = await engine.run_cycle()
        assert report["pairs"]["ETH/USDC"]["action"] == "opened"

        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 120.0
        report = await engine.run_cycle()

        assert report["exits"][0]["action"] == "closed"
        assert report["exits"][0]["reason"] == "stop_loss"
        assert engine.get_status()["health"] == "ok"


# ── Configuration and status ─────────────────────────────────────────────


class TestConfigurationAndStatus:
    def test_invalid_update_rejected_and_previous_kept(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": FLAT}))
        before = engine.bot_config
        with pytest.raises(ConfigurationError):
            engine.update_configuration({"stop_loss_fraction": 1.5})
        with pytest.raises(ConfigurationError):
            engine.update_configuration({"trading_pairs": []})
        assert engine.bot_config == before

    def test_partial_update_merges(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": FLAT}))
        updated = engine.update_configuration({"risk_level": "high"})
        assert updated.risk_level.value == "high"
        assert updated.strategy is Strategy.NEURAL_NETWORK

    @pytest.mark.asyncio
    async def test_status_is_json_serialisable(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING}))
        await engine.run_cycle()

        status = engine.get_status()

        json.dumps(status)
        assert status["running"] is False
        assert status["health"] == "ok"
        assert status["cycle_count"] == 1
        assert status["account"]["open_positions"] == 1
        assert status["account"]["circuit_breaker_active"] is False
        assert status["insights"]["ETH/USDC"]["signal"] == "BUY"
        assert status["configuration"]["strategy"] == "neural_network"
        assert status["cycle_interval_seconds"] == 300

    @pytest.mark.asyncio
    async def test_trade_stats_after_round_trip(self):
        market = FakeMarketData({"ETH/USDC": RISING})
        engine = _make_engine(market)
        await engine.run_cycle()
        market.series["ETH/USDC"] = FLAT
        market.prices["ETH/USDC"] = 120.0
        await engine.run_cycle()

        stats = engine.get_trade_stats()

        size = 1000.0 / 129.0
        assert stats["total_trades"] == 2
        assert stats["exits"] == 1
        assert stats["losing_closes"] == 1
        assert stats["total_volume"] == pytest.approx(1000.0 + size * 120.0)
        assert stats["realized_pnl"] == pytest.approx(-9.0 * size, abs=1e-6)

    def test_status_never_raises(self, monkeypatch):
        engine = _make_engine(FakeMarketData({"ETH/USDC": FLAT}))

        def _boom():
            raise RuntimeError("corrupt account")

        monkeypatch.setattr(engine._account, "summary", _boom)
        status = engine.get_status()
        assert status["health"] == "unknown"
        assert "corrupt account" in status["last_error"]

    def test_swap_legs(self):
        assert swap_legs("ETH/USDC", Signal.BUY, 2.0, 100.0) == ("USDC", "ETH", 200.0)
        assert swap_legs("ETH/USDC", Signal.SELL, 2.0, 100.0) == ("ETH", "USDC", 2.0)
        with pytest.raises(ValueError):
            swap_legs("ETH/USDC", Signal.HOLD, 2.0, 100.0)


# ── Scheduling ───────────────────────────────────────────────────────────


class TestScheduling:
    @pytest.mark.asyncio
    async def test_start_runs_immediately_and_is_idempotent(self):
        ticker = ManualTicker()
        engine = _make_engine(FakeMarketData({"ETH/USDC": FLAT}), ticker=ticker)

        assert engine.start() is True
        assert engine.start() is False

        await ticker.until_waiting()
        assert engine.cycle_count == 1
        assert ticker.waiting == 1
        assert ticker.requested == [300]

        ticker.tick()
        await ticker.until_waiting()
        assert engine.cycle_count == 2
        assert ticker.waiting == 1

        assert engine.stop() is True
        assert engine.stop() is False
        await engine.wait_stopped()
        assert engine.running is False
        assert ticker.waiting == 0
        assert engine.cycle_count == 2

    @pytest.mark.asyncio
    async def test_restart_after_stop(self):
        ticker = ManualTicker()
        engine = _make_engine(FakeMarketData({"ETH/USDC": FLAT}), ticker=ticker)
        engine.start()
        await ticker.until_waiting()
        engine.stop()
        await engine.wait_stopped()

        assert engine.start() is True
        await ticker.until_waiting()
        assert engine.cycle_count == 2
        assert ticker.waiting == 1
        engine.stop()
        await engine.wait_stopped()

    @pytest.mark.asyncio
    async def test_interval_change_applies_after_restart(self):
        ticker = ManualTicker()
        engine = _make_engine(FakeMarketData({"ETH/USDC": FLAT}), ticker=ticker)
        engine.start()
        await ticker.until_waiting()

        engine.update_configuration({"cycle_interval": CycleInterval.LOW.value})
        assert engine.get_status()["cycle_interval_seconds"] == 300
        ticker.tick()
        await ticker.until_waiting()
        assert ticker.requested == [300, 300]

        engine.stop()
        await engine.wait_stopped()
        engine.start()
        await ticker.until_waiting()
        assert ticker.requested[-1] == 1800
        engine.stop()
        await engine.wait_stopped()

    @pytest.mark.asyncio
    async def test_stop_mid_cycle_discards_pending_entry(self):
        ticker = ManualTicker()
        venue = GatedVenue()
        engine = _make_engine(
            FakeMarketData({"ETH/USDC": RISING}), venues=[venue], ticker=ticker,
        )

        engine.start()
        await asyncio.wait_for(venue.entered.wait(), timeout=1.0)
        engine.stop()
        venue.gate.set()
        await engine.wait_stopped()

        assert engine.get_open_positions() == []
        assert engine.get_status()["last_cycle"]["pairs"]["ETH/USDC"]["reason"] == "stopped"
        assert engine.cycle_count == 1
        assert ticker.requested == []

    @pytest.mark.asyncio
    async def test_manual_cycles_do_not_overlap(self):
        engine = _make_engine(FakeMarketData({"ETH/USDC": RISING}))
        first, second = await asyncio.gather(engine.run_cycle(), engine.run_cycle())
        assert {first["cycle"], second["cycle"]} == {1, 2}
        assert len(engine.get_open_positions()) == 1
        assert len(engine.get_trade_history()) == 1
