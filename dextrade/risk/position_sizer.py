"""Position sizing — pure math, no I/O.

Converts account equity, the risk level, and the stop-loss distance into a
position size in base-asset units, capped by the maximum position fraction.
"""

import logging

from dextrade.models.bot_config import RISK_FRACTIONS, RiskLevel

logger = logging.getLogger("dextrade.risk")


def position_size(
    equity: float,
    risk_level: RiskLevel,
    max_position_size_fraction: float,
    current_price: float,
    stop_loss_fraction: float,
) -> float:
    """Calculate position size in base-asset units.

    Formula::

        risk_amount        = equity × max_position_size_fraction × risk_fraction
        stop_loss_distance = current_price × stop_loss_fraction
        risk_size          = risk_amount / stop_loss_distance × current_price
        max_size           = equity × max_position_size_fraction / current_price
        size               = min(risk_size, max_size)

    Args:
        equity: Account equity in the quote currency (e.g. 10_000.0).
        risk_level: ``RiskLevel``; low=1 %, medium=2 %, high=5 %.
        max_position_size_fraction: Largest share of equity one position
            may use (e.g. 0.1).
        current_price: Latest price of the base asset.
        stop_loss_fraction: Stop distance as a fraction of price (e.g. 0.05).

    Returns:
        Position size (``0.0`` when the inputs cannot produce a trade;
        the reason is logged).
    """
    if current_price <= 0:
        logger.error("Invalid price %s — position size 0", current_price)
        return 0.0
    stop_loss_distance = current_price * stop_loss_fraction
    if stop_loss_distance <= 0:
        logger.error(
            "Invalid stop loss distance %s (stop_loss_fraction=%s) — position size 0",
            stop_loss_distance, stop_loss_fraction,
        )
        return 0.0
    if equity <= 0 or max_position_size_fraction <= 0:
        logger.warning(
            "No capital to allocate (equity=%s, max_fraction=%s) — position size 0",
            equity, max_position_size_fraction,
        )
        return 0.0

    risk_amount = equity * max_position_size_fraction * RISK_FRACTIONS[RiskLevel(risk_level)]
    risk_size = risk_amount / stop_loss_distance * current_price
    max_size = equity * max_position_size_fraction / current_price
    return min(risk_size, max_size)
