"""Venue interface and the simulated venue cost model.

``SimulatedVenue`` prices swaps with a static fee and a deterministic price
impact.  It is a placeholder: real deployments should quote from live pool
liquidity behind the same ``Venue`` protocol.
"""

import logging
from typing import Protocol, runtime_checkable

from dextrade.errors import VenueError
from dextrade.venues.models import ExecutionResult, Quote, VenueSpec
from dextrade.venues.signer import Signer

logger = logging.getLogger("dextrade.venues")

# Impact step per venue position when a spec leaves price_impact unset.
PRICE_IMPACT_STEP = 0.0005

DEFAULT_VENUES: tuple[VenueSpec, ...] = (
    VenueSpec("uniswap", "Uniswap V3", fee_rate=0.003, gas_estimate=150_000,
              price_impact=0.002, url="https://app.uniswap.org"),
    VenueSpec("sushiswap", "SushiSwap", fee_rate=0.003, gas_estimate=140_000,
              price_impact=0.0025, url="https://app.sushi.com"),
    VenueSpec("pancakeswap", "PancakeSwap", fee_rate=0.0025, gas_estimate=130_000,
              price_impact=0.0015, url="https://pancakeswap.finance"),
    VenueSpec("curve", "Curve Finance", fee_rate=0.0004, gas_estimate=120_000,
              price_impact=0.0005, url="https://curve.fi"),
)


@runtime_checkable
class Venue(Protocol):
    """A liquidity source able to quote and execute swaps."""

    spec: VenueSpec

    async def quote(self, token_in: str, token_out: str, amount_in: float) -> Quote:
        """Return a quote or raise ``VenueError``."""
        ...

    async def execute(
        self,
        quote: Quote,
        signer: Signer,
        amount_out_min: float,
        deadline: int,
    ) -> ExecutionResult:
        """Execute *quote*; raise ``VenueError`` on failure."""
        ...


class SimulatedVenue:
    """Venue with a static fee and deterministic price impact.

    ``amount_out = amount_in × (1 − fee_rate) × (1 − price_impact)``.
    Amounts are in token-in equivalent units (no cross-rate is applied).

    Args:
        spec: Venue description.
        index: Position in the venue list; scales the default price impact.
    """

    def __init__(self, spec: VenueSpec, index: int = 0) -> None:
        self.spec = spec
        if spec.price_impact is not None:
            self._price_impact = spec.price_impact
        else:
            self._price_impact = PRICE_IMPACT_STEP * (index + 1)

    @property
    def price_impact(self) -> float:
        return self._price_impact

    async def quote(self, token_in: str, token_out: str, amount_in: float) -> Quote:
        if amount_in <= 0:
            raise VenueError(f"{self.spec.venue_id}: amount_in must be positive, got {amount_in}")
        fee_amount = amount_in * self.spec.fee_rate
        amount_out = (amount_in - fee_amount) * (1 - self._price_impact)
        return Quote(
            venue_id=self.spec.venue_id,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=amount_out,
            unit_price=amount_out / amount_in,
            fee_amount=fee_amount,
            slippage_estimate=self._price_impact,
            gas_estimate=self.spec.gas_estimate,
        )

    async def execute(
        self,
        quote: Quote,
        signer: Signer,
        amount_out_min: float,
        deadline: int,
    ) -> ExecutionResult:
        if quote.venue_id != self.spec.venue_id:
            raise VenueError(
                f"Quote from '{quote.venue_id}' cannot execute on '{self.spec.venue_id}'"
            )
        if quote.amount_out < amount_out_min:
            raise VenueError(
                f"{self.spec.venue_id}: output {quote.amount_out} below minimum {amount_out_min}"
            )
        prepared = {
            "venue": self.spec.venue_id,
            "token_in": quote.token_in,
            "token_out": quote.token_out,
            "amount_in": quote.amount_in,
            "amount_out_min": amount_out_min,
            "deadline": deadline,
            "gas_limit": quote.gas_estimate,
        }
        logger.info(
            "Executing swap on %s: %s %s → %s (min out %s)",
            self.spec.name, quote.amount_in, quote.token_in,
            quote.token_out, amount_out_min,
        )
        tx_ref = await signer.sign_and_send(prepared)
        return ExecutionResult(
            success=True,
            venue=self.spec.venue_id,
            tx_ref=tx_ref,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            amount_out_min=amount_out_min,
            deadline=deadline,
            gas_used=quote.gas_estimate,
        )


def build_default_venues() -> list[SimulatedVenue]:
    """One ``SimulatedVenue`` per entry in ``DEFAULT_VENUES``."""
    return [SimulatedVenue(spec, i) for i, spec in enumerate(DEFAULT_VENUES)]
