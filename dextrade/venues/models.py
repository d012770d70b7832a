"""Venue data models — quotes and execution results."""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class VenueSpec:
    """Static description of a liquidity venue.

    ``price_impact`` of ``None`` means "derive from the venue's position in
    the venue list".
    """

    venue_id: str
    name: str
    fee_rate: float
    gas_estimate: int
    price_impact: Optional[float] = None
    url: str = ""


@dataclass(frozen=True)
class Quote:
    """A venue's offer for one swap.  Ephemeral, never persisted."""

    venue_id: str
    token_in: str
    token_out: str
    amount_in: float
    amount_out: float
    unit_price: float
    fee_amount: float
    slippage_estimate: float
    gas_estimate: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of executing a quote on its venue."""

    success: bool
    venue: str
    tx_ref: Optional[str] = None
    amount_in: float = 0.0
    amount_out: float = 0.0
    amount_out_min: float = 0.0
    deadline: Optional[int] = None  # unix seconds
    gas_used: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)
