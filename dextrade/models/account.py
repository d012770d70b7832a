"""Account data models — positions, trade records, and the in-memory account.

The ``Account`` is owned by a single ``TradingEngine``; the engine
serialises every mutation behind its own lock.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from dextrade.strategy.models import Signal


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Position:
    """An open (or closed) exposure to one pair.

    ``stop_loss_price`` / ``take_profit_price`` and their fractions are fixed
    at creation; configuration changes only affect positions opened later.
    """

    pair: str
    size: float
    entry_price: float
    is_long: bool
    entry_time: datetime
    stop_loss_fraction: float
    take_profit_fraction: float
    stop_loss_price: float
    take_profit_price: float
    current_price: float
    unrealized_pnl: float = 0.0
    status: str = "open"  # "open" or "closed"
    exit_price: Optional[float] = None
    exit_time: Optional[datetime] = None
    realized_pnl: Optional[float] = None
    exit_reason: Optional[str] = None
    venue: Optional[str] = None
    id: str = ""

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"position size must be positive, got {self.size}")
        if not self.id:
            self.id = _new_id()

    @classmethod
    def open(
        cls,
        pair: str,
        size: float,
        entry_price: float,
        is_long: bool,
        entry_time: datetime,
        stop_loss_fraction: float,
        take_profit_fraction: float,
        venue: Optional[str] = None,
    ) -> "Position":
        """Create a new open position with SL/TP levels derived from *entry_price*."""
        if is_long:
            sl = entry_price * (1 - stop_loss_fraction)
            tp = entry_price * (1 + take_profit_fraction)
        else:
            sl = entry_price * (1 + stop_loss_fraction)
            tp = entry_price * (1 - take_profit_fraction)
        return cls(
            pair=pair,
            size=size,
            entry_price=entry_price,
            is_long=is_long,
            entry_time=entry_time,
            stop_loss_fraction=stop_loss_fraction,
            take_profit_fraction=take_profit_fraction,
            stop_loss_price=sl,
            take_profit_price=tp,
            current_price=entry_price,
            venue=venue,
        )

    @property
    def direction(self) -> str:
        return "long" if self.is_long else "short"

    @property
    def entry_signal(self) -> Signal:
        """Signal that opened this position."""
        return Signal.BUY if self.is_long else Signal.SELL

    @property
    def exit_signal(self) -> Signal:
        """Signal of the trade that closes this position."""
        return Signal.SELL if self.is_long else Signal.BUY

    def pnl_at(self, price: float) -> float:
        """P&L of the whole position if marked at *price*."""
        if self.is_long:
            return (price - self.entry_price) * self.size
        return (self.entry_price - price) * self.size

    def mark(self, price: float) -> None:
        """Refresh ``current_price`` and ``unrealized_pnl``."""
        self.current_price = price
        self.unrealized_pnl = self.pnl_at(price)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["direction"] = self.direction
        data["entry_time"] = self.entry_time.isoformat()
        data["exit_time"] = self.exit_time.isoformat() if self.exit_time else None
        return data


@dataclass(frozen=True)
class Trade:
    """Append-only record of one executed order (entry or exit)."""

    pair: str
    signal: Signal
    size: float
    price: float
    timestamp: datetime
    venue: str
    tx_ref: str
    reason: str = "entry"  # entry, opposite_signal, stop_loss, take_profit
    position_id: str = ""
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(self, "id", _new_id())

    @property
    def notional(self) -> float:
        return self.size * self.price

    def to_dict(self) -> dict:
        data = asdict(self)
        data["signal"] = self.signal.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


class Account:
    """Quote-currency balance plus open positions and trade history.

    Balance accounting is single-asset: a BUY debits ``size × price`` and a
    SELL credits it, regardless of whether the order opens or closes.

    Closed positions and trades are kept in memory for the life of the
    process and are never pruned; a long-running bot grows them without
    bound.

    Args:
        balance: Starting balance in the quote currency.
    """

    def __init__(self, balance: float) -> None:
        if balance <= 0:
            raise ValueError(f"balance must be positive, got {balance}")
        self._balance: float = balance
        self._peak_equity: float = balance
        self._positions: dict[str, Position] = {}
        self._closed: list[Position] = []
        self._trades: list[Trade] = []

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def trades(self) -> list[Trade]:
        return list(self._trades)

    @property
    def open_positions(self) -> list[Position]:
        return list(self._positions.values())

    @property
    def closed_positions(self) -> list[Position]:
        return list(self._closed)

    def position_for(self, pair: str) -> Optional[Position]:
        """The open position for *pair*, or ``None``."""
        return self._positions.get(pair)

    @property
    def realized_pnl(self) -> float:
        return sum(p.realized_pnl or 0.0 for p in self._closed)

    @property
    def unrealized_pnl(self) -> float:
        return sum(p.unrealized_pnl for p in self._positions.values())

    @property
    def equity(self) -> float:
        """Balance marked to market.

        Longs were paid for out of the balance, so their current value is
        added back; shorts credited the balance, so their current value is
        owed.
        """
        exposure = sum(
            p.size * p.current_price * (1 if p.is_long else -1)
            for p in self._positions.values()
        )
        return self._balance + exposure

    @property
    def peak_equity(self) -> float:
        """Highest equity seen by ``snapshot_equity``."""
        return self._peak_equity

    @property
    def drawdown_pct(self) -> float:
        """Current mark-to-market equity below the peak, in percent."""
        peak = max(self._peak_equity, self.equity)
        return (peak - self.equity) / peak * 100.0

    @property
    def stop_loss_streak(self) -> int:
        """Consecutive most recent closes that were stop-loss exits."""
        streak = 0
        for position in reversed(self._closed):
            if position.exit_reason != "stop_loss":
                break
            streak += 1
        return streak

    def summary(self) -> dict:
        return {
            "balance": round(self._balance, 8),
            "equity": round(self.equity, 8),
            "peak_equity": round(self._peak_equity, 8),
            "drawdown_pct": round(self.drawdown_pct, 4),
            "stop_loss_streak": self.stop_loss_streak,
            "open_positions": len(self._positions),
            "trades": len(self._trades),
            "realized_pnl": round(self.realized_pnl, 8),
            "unrealized_pnl": round(self.unrealized_pnl, 8),
        }

    def trade_stats(self) -> dict:
        """Totals over the trade history and closed positions."""
        realized = self.realized_pnl
        unrealized = self.unrealized_pnl
        return {
            "total_trades": len(self._trades),
            "entries": sum(1 for t in self._trades if t.reason == "entry"),
            "exits": sum(1 for t in self._trades if t.reason != "entry"),
            "total_volume": round(sum(t.notional for t in self._trades), 8),
            "winning_closes": sum(1 for p in self._closed if (p.realized_pnl or 0.0) > 0),
            "losing_closes": sum(1 for p in self._closed if (p.realized_pnl or 0.0) < 0),
            "realized_pnl": round(realized, 8),
            "unrealized_pnl": round(unrealized, 8),
            "total_pnl": round(realized + unrealized, 8),
        }

    # ── Mutation ─────────────────────────────────────────────────────────

    def snapshot_equity(self) -> float:
        """Record current equity, raising the peak if it is a new high."""
        equity = self.equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        return equity

    def add_position(self, position: Position) -> None:
        """Register a newly opened position.

        Raises ``ValueError`` if the pair already has an open position.
        """
        if position.pair in self._positions:
            raise ValueError(f"{position.pair} already has an open position")
        self._positions[position.pair] = position

    def close_position(
        self,
        pair: str,
        exit_price: float,
        exit_time: datetime,
        reason: str,
    ) -> Position:
        """Transition the open position for *pair* to ``closed``.

        Raises ``KeyError`` if *pair* has no open position.
        """
        position = self._positions.pop(pair)
        position.mark(exit_price)
        position.exit_price = exit_price
        position.exit_time = exit_time
        position.realized_pnl = position.pnl_at(exit_price)
        position.unrealized_pnl = 0.0
        position.exit_reason = reason
        position.status = "closed"
        self._closed.append(position)
        return position

    def record_trade(self, trade: Trade) -> None:
        """Append *trade* to history and adjust the balance."""
        self._trades.append(trade)
        if trade.signal is Signal.BUY:
            self._balance -= trade.notional
        else:
            self._balance += trade.notional
