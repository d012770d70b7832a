"""Venue aggregator — concurrent quoting and best-execution routing.

Quotes every configured venue in parallel, each under its own timeout and
all under one aggregate deadline, then routes execution to the venue with
the largest output.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional

from dextrade.errors import NoLiquidityError
from dextrade.venues.models import ExecutionResult, Quote
from dextrade.venues.signer import Signer
from dextrade.venues.venue import Venue

logger = logging.getLogger("dextrade.venues")

# Swap deadline window applied to every execution.
EXECUTION_DEADLINE_S = 20 * 60


def select_best_quote(quotes: Iterable[Quote]) -> Quote:
    """Pick the quote with the highest ``amount_out``.

    Ties go to the lowest ``gas_estimate``, then to the lowest ``venue_id``
    so the choice never depends on input order.

    Raises ``NoLiquidityError`` if *quotes* is empty.
    """
    ranked = sorted(quotes, key=lambda q: (-q.amount_out, q.gas_estimate, q.venue_id))
    if not ranked:
        raise NoLiquidityError("No valid quotes from any venue")
    return ranked[0]


class VenueAggregator:
    """Best-execution router over a fixed set of venues.

    Args:
        venues: Venues implementing the ``Venue`` protocol; ids must be unique.
        quote_timeout_s: Per-venue quote timeout.
        quote_deadline_s: Deadline for the whole quote round; venues still
            pending are cancelled and ignored.
        execution_timeout_s: Timeout for a venue's execute call.
        clock: Returns unix seconds; used for swap deadlines.
    """

    def __init__(
        self,
        venues: Iterable[Venue],
        quote_timeout_s: float = 5.0,
        quote_deadline_s: float = 8.0,
        execution_timeout_s: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._venues: dict[str, Venue] = {}
        for venue in venues:
            venue_id = venue.spec.venue_id
            if venue_id in self._venues:
                raise ValueError(f"Duplicate venue id '{venue_id}'")
            self._venues[venue_id] = venue
        self._quote_timeout_s = quote_timeout_s
        self._quote_deadline_s = quote_deadline_s
        self._execution_timeout_s = execution_timeout_s
        self._clock = clock

    # ── Queries ──────────────────────────────────────────────────────────

    def list_venues(self) -> list[dict]:
        """Id, display name, and fee rate of every venue."""
        return [
            {
                "id": v.spec.venue_id,
                "name": v.spec.name,
                "fee": v.spec.fee_rate,
                "url": v.spec.url,
            }
            for v in self._venues.values()
        ]

    # ── Quoting ──────────────────────────────────────────────────────────

    async def _quote_one(
        self, venue: Venue, token_in: str, token_out: str, amount_in: float,
    ) -> Optional[Quote]:
        venue_id = venue.spec.venue_id
        try:
            return await asyncio.wait_for(
                venue.quote(token_in, token_out, amount_in),
                timeout=self._quote_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Quote from %s timed out after %.1fs", venue_id, self._quote_timeout_s,
            )
        except Exception as exc:
            logger.warning("Error getting quote from %s: %s", venue_id, exc)
        return None

    async def collect_quotes(
        self, token_in: str, token_out: str, amount_in: float,
    ) -> list[Quote]:
        """Quote every venue concurrently; return the quotes that succeeded.

        Venues that fail, time out, or miss the aggregate deadline are
        logged and left out.
        """
        if not self._venues:
            return []

        tasks = {
            asyncio.create_task(self._quote_one(v, token_in, token_out, amount_in)): vid
            for vid, v in self._venues.items()
        }
        done, pending = await asyncio.wait(tasks, timeout=self._quote_deadline_s)
        for task in pending:
            task.cancel()
            logger.warning(
                "Venue %s missed the %.1fs quote deadline", tasks[task], self._quote_deadline_s,
            )
        if pending:
            await asyncio.wait(pending)

        quotes: list[Quote] = []
        for task in done:
            quote = task.result()
            if quote is not None:
                quotes.append(quote)
        return quotes

    async def best_quote(
        self,
        token_in: str,
        token_out: str,
        amount_in: float,
        slippage_tolerance: Optional[float] = None,
    ) -> Quote:
        """Return the best quote across all venues.

        Every successful quote competes; *slippage_tolerance* never removes
        a venue from selection.  It is enforced at execution through
        ``amount_out_min``, and a winner whose estimated impact already
        exceeds it is only logged.

        Raises ``NoLiquidityError`` when no venue returned a quote.
        """
        quotes = await self.collect_quotes(token_in, token_out, amount_in)
        if not quotes:
            raise NoLiquidityError(
                f"No valid quotes for {amount_in} {token_in} → {token_out}"
            )
        best = select_best_quote(quotes)
        logger.info(
            "Best venue for %s → %s: %s (out %.6f of %d quotes)",
            token_in, token_out, best.venue_id, best.amount_out, len(quotes),
        )
        if slippage_tolerance is not None and best.slippage_estimate > slippage_tolerance:
            logger.warning(
                "%s impact estimate %.4f exceeds slippage tolerance %.4f",
                best.venue_id, best.slippage_estimate, slippage_tolerance,
            )
        return best

    # ── Execution ────────────────────────────────────────────────────────

    async def execute(
        self,
        quote: Quote,
        signer: Signer,
        slippage_tolerance: float,
    ) -> ExecutionResult:
        """Execute *quote* on its venue with slippage and deadline protection.

        ``amount_out_min = quote.amount_out × (1 − slippage_tolerance)``;
        the deadline is now + 20 minutes.  Failures are returned as
        ``ExecutionResult(success=False, error=...)`` and never retried.
        """
        venue = self._venues.get(quote.venue_id)
        if venue is None:
            return ExecutionResult(
                success=False, venue=quote.venue_id,
                error=f"Unknown venue '{quote.venue_id}'",
            )

        amount_out_min = quote.amount_out * (1 - slippage_tolerance)
        deadline = int(self._clock()) + EXECUTION_DEADLINE_S
        try:
            return await asyncio.wait_for(
                venue.execute(quote, signer, amount_out_min, deadline),
                timeout=self._execution_timeout_s,
            )
        except asyncio.TimeoutError:
            error = f"execution timed out after {self._execution_timeout_s:.1f}s"
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
        logger.error("Error executing trade on %s: %s", quote.venue_id, error)
        return ExecutionResult(
            success=False,
            venue=quote.venue_id,
            amount_in=quote.amount_in,
            amount_out_min=amount_out_min,
            deadline=deadline,
            error=error,
        )
