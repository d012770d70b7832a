"""Tickers — the engine's only notion of time passing between cycles.

``AsyncioTicker`` sleeps on the event loop.  ``ManualTicker`` only advances
when ``tick()`` is called, so cycles can be stepped deterministically.
"""

import asyncio
from typing import Protocol, runtime_checkable


@runtime_checkable
class Ticker(Protocol):
    async def sleep(self, seconds: float) -> None:
        """Return once *seconds* have (logically) elapsed."""
        ...


class AsyncioTicker:
    """Wall-clock ticker backed by ``asyncio.sleep``."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualTicker:
    """Ticker released by explicit ``tick()`` calls.

    Every pending ``sleep`` returns on the next ``tick()``.  The requested
    durations are kept in ``requested``.
    """

    def __init__(self) -> None:
        self._waiters: list[asyncio.Future] = []
        self.requested: list[float] = []

    @property
    def waiting(self) -> int:
        """Number of sleepers currently blocked."""
        return len(self._waiters)

    async def sleep(self, seconds: float) -> None:
        self.requested.append(seconds)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def tick(self) -> int:
        """Release every pending sleeper; return how many were released."""
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        return len(waiters)

    async def until_waiting(self, max_spins: int = 1000) -> None:
        """Yield to the loop until at least one sleeper is blocked.

        Raises ``RuntimeError`` if nobody starts sleeping within
        *max_spins* loop iterations.
        """
        for _ in range(max_spins):
            if self._waiters:
                return
            await asyncio.sleep(0)
        raise RuntimeError("no task started sleeping on the ticker")
