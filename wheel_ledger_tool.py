#!/usr/bin/env python3
"""
Wheel Ledger Tool - CLI and Module for tracking options wheel cycles.

Every trade in a wheel cycle (puts sold, assignments, calls sold, shares
called away) is recorded as an event. Lots, cost basis, P&L and the
current wheel phase are rebuilt from those events whenever they are asked
for, so correcting history never leaves stale derived state behind.

CLI Usage:
    wheel-ledger start AAPL --date 2025-01-02
    wheel-ledger record 1 SELL_PUT --date 2025-01-02 --contracts 1 --strike 50 --premium 2
    wheel-ledger record 1 PUT_ASSIGNED --date 2025-01-17
    wheel-ledger record 1 SELL_CALL --date 2025-01-21 --contracts 1 --strike 55 --premium 1
    wheel-ledger lots 1
    wheel-ledger metrics 1 --price 52.10
    wheel-ledger phase AAPL
    wheel-ledger detect positions.json
    wheel-ledger taxlots 250 10 --price 12

Module Usage:
    from wheel_ledger_tool import LedgerManager, load_config

    manager = LedgerManager.from_config(load_config())
    cycle = manager.start_cycle("AAPL", date(2025, 1, 2))
    manager.record_event(cycle.id, {"event_type": "SELL_PUT", "trade_date": date(2025, 1, 2),
                                    "contracts": 1, "strike": 50, "premium": 2})
    ledger = manager.rebuild_lots(cycle.id)
    metrics = manager.get_metrics(cycle.id, current_price=52)

Lot Lifecycle:
    PUT_ASSIGNED / OUTRIGHT_PURCHASE -> OPEN_UNCOVERED
    OPEN_UNCOVERED -> SELL_CALL -> OPEN_COVERED
    OPEN_COVERED -> CALL_EXPIRED / BUY_TO_CLOSE -> OPEN_UNCOVERED
    OPEN_COVERED -> CALL_ASSIGNED -> CLOSED_CALLED_AWAY
    OPEN_* -> SELL_SHARES -> CLOSED_SOLD
"""

from src.wheel_ledger import (
    LOT_TRANSITIONS,
    EventType,
    Lot,
    LotLedger,
    LotStatus,
    Metrics,
    PhaseSummary,
    WheelCycle,
    WheelPhase,
    can_transition,
    get_next_status,
    get_valid_actions,
    parse_event,
)
from src.wheel_ledger.config import load_config
from src.wheel_ledger.manager import LedgerManager

__all__ = [
    # Main class
    "LedgerManager",
    "load_config",
    # Data models
    "WheelCycle",
    "Lot",
    "LotLedger",
    "Metrics",
    "PhaseSummary",
    "parse_event",
    # State machine
    "EventType",
    "LotStatus",
    "WheelPhase",
    "LOT_TRANSITIONS",
    "can_transition",
    "get_next_status",
    "get_valid_actions",
]


def main() -> None:
    """CLI entry point."""
    from src.wheel_ledger.cli import cli

    cli()


if __name__ == "__main__":
    main()
