"""CLI dashboard — prints bot status to the console."""


def print_status(status: dict) -> str:
    """Format and print the current bot status.

    Args:
        status: Dict returned by ``TradingEngine.get_status``.

    Returns:
        The formatted string (also printed to stdout).
    """
    running = status.get("running", False)
    health = status.get("health", "unknown")
    configuration = status.get("configuration") or {}
    account = status.get("account") or {}
    equity = account.get("equity")
    balance = account.get("balance")
    drawdown = account.get("drawdown_pct")
    cb_active = account.get("circuit_breaker_active", False)
    last_cycle = status.get("last_cycle") or {}

    equity_str = f"${equity:,.2f}" if equity is not None else "N/A"
    balance_str = f"${balance:,.2f}" if balance is not None else "N/A"
    dd_str = f"{drawdown:.2f}%" if drawdown is not None else "N/A"
    cb_reason = account.get("circuit_breaker_reason")
    cb_str = "off"
    if cb_active:
        cb_str = f"ACTIVE ({cb_reason})" if cb_reason else "ACTIVE"
    pairs = ", ".join(configuration.get("trading_pairs", [])) or "N/A"

    lines = [
        "──────────────── DexTrade Status ─────────────────",
        f"  Running:         {running}",
        f"  Health:          {health}",
        f"  Strategy:        {configuration.get('strategy', 'N/A')}",
        f"  Pairs:           {pairs}",
        f"  Equity:          {equity_str}",
        f"  Balance:         {balance_str}",
        f"  Drawdown:        {dd_str}",
        f"  Circuit Breaker: {cb_str}",
        f"  Open Positions:  {account.get('open_positions', 0)}",
        f"  Trades:          {account.get('trades', 0)}",
        f"  Cycles:          {status.get('cycle_count', 0)}",
    ]
    for pair, outcome in (last_cycle.get("pairs") or {}).items():
        detail = outcome.get("reason") or outcome.get("signal", "")
        lines.append(f"    {pair:<12} {outcome.get('action', '?'):<8} {detail}")
    if status.get("last_error"):
        lines.append(f"  Last Error:      {status['last_error']}")
    lines.append("──────────────────────────────────────────────────")
    output = "\n".join(lines)
    print(output)
    return output
