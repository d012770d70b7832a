"""Transaction signer interface.

The engine treats signing as an opaque capability: it hands over a prepared
transaction dict and gets back a transaction reference.
"""

import logging
import secrets
from typing import Protocol, runtime_checkable

logger = logging.getLogger("dextrade.venues")


@runtime_checkable
class Signer(Protocol):
    """Signs and submits a prepared transaction."""

    async def sign_and_send(self, prepared_tx: dict) -> str:
        """Return the transaction reference, or raise on failure."""
        ...


class PaperSigner:
    """Signer for paper trading — nothing leaves the process.

    Returns a random ``0x``-prefixed 32-byte hex reference and keeps every
    prepared transaction in ``submitted``.
    """

    def __init__(self) -> None:
        self.submitted: list[dict] = []

    async def sign_and_send(self, prepared_tx: dict) -> str:
        self.submitted.append(dict(prepared_tx))
        tx_ref = "0x" + secrets.token_hex(32)
        logger.debug("Paper transaction %s on %s", tx_ref, prepared_tx.get("venue"))
        return tx_ref
