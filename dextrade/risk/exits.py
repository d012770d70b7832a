"""Stop-loss and take-profit checks — pure math, no I/O.

Long positions stop out below entry and take profit above it; shorts are
mirrored.  For any position a price cannot satisfy both checks at once.
"""


def should_stop_loss(
    current_price: float,
    entry_price: float,
    stop_loss_fraction: float,
    is_long: bool,
) -> bool:
    """``True`` when *current_price* has reached the stop.

    - **Long**:  current ≤ entry × (1 − stop_loss_fraction)
    - **Short**: current ≥ entry × (1 + stop_loss_fraction)
    """
    if is_long:
        return current_price <= entry_price * (1 - stop_loss_fraction)
    return current_price >= entry_price * (1 + stop_loss_fraction)


def should_take_profit(
    current_price: float,
    entry_price: float,
    take_profit_fraction: float,
    is_long: bool,
) -> bool:
    """``True`` when *current_price* has reached the profit target.

    - **Long**:  current ≥ entry × (1 + take_profit_fraction)
    - **Short**: current ≤ entry × (1 − take_profit_fraction)
    """
    if is_long:
        return current_price >= entry_price * (1 + take_profit_fraction)
    return current_price <= entry_price * (1 - take_profit_fraction)


def exit_reason(position, current_price: float) -> "str | None":
    """Return ``"stop_loss"``, ``"take_profit"`` or ``None`` for *position*.

    Uses the fractions captured on the position when it was opened.
    """
    if should_stop_loss(
        current_price, position.entry_price,
        position.stop_loss_fraction, position.is_long,
    ):
        return "stop_loss"
    if should_take_profit(
        current_price, position.entry_price,
        position.take_profit_fraction, position.is_long,
    ):
        return "take_profit"
    return None
