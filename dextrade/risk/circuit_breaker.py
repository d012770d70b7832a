"""Entry circuit breaker — blocks new positions when the account is bleeding.

Two independent trips, each disabled by a limit of ``0``:

- equity drawdown from the peak reaches ``max_drawdown_pct``
- the last ``max_stop_loss_streak`` closes were all stop-loss exits

Exits are never blocked; the breaker only gates entries.
"""

from typing import Optional, Protocol


class AccountRiskView(Protocol):
    """The account figures the breaker reads."""

    @property
    def drawdown_pct(self) -> float: ...

    @property
    def stop_loss_streak(self) -> int: ...


class CircuitBreaker:
    """Decides whether the engine may open new positions.

    Args:
        max_drawdown_pct: Drawdown (percent of peak equity, e.g. 10.0) that
            trips the breaker.  ``0`` disables.
        max_stop_loss_streak: Consecutive stop-loss exits that trip the
            breaker.  ``0`` disables.
    """

    def __init__(
        self,
        max_drawdown_pct: float = 0.0,
        max_stop_loss_streak: int = 0,
    ) -> None:
        if max_drawdown_pct < 0:
            raise ValueError(
                f"max_drawdown_pct must be non-negative, got {max_drawdown_pct}"
            )
        if max_stop_loss_streak < 0:
            raise ValueError(
                f"max_stop_loss_streak must be non-negative, got {max_stop_loss_streak}"
            )
        self._max_drawdown_pct = max_drawdown_pct
        self._max_stop_loss_streak = max_stop_loss_streak

    @property
    def enabled(self) -> bool:
        return self._max_drawdown_pct > 0 or self._max_stop_loss_streak > 0

    def trip_reason(self, account: AccountRiskView) -> Optional[str]:
        """``"max_drawdown"`` or ``"stop_loss_streak"`` if tripped, else ``None``."""
        if self._max_drawdown_pct > 0 and account.drawdown_pct >= self._max_drawdown_pct:
            return "max_drawdown"
        if (
            self._max_stop_loss_streak > 0
            and account.stop_loss_streak >= self._max_stop_loss_streak
        ):
            return "stop_loss_streak"
        return None
