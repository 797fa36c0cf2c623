"""
Event recording commands for the wheel ledger CLI.

This module provides commands for appending trade events to a cycle,
listing a cycle's event log, and rolling a covered call.
"""

import sys
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import click

from ..exceptions import LedgerError
from ..export import event_to_dict
from ..money import format_money
from ..state import EventType
from .utils import (
    DATE,
    DECIMAL,
    echo_json,
    get_manager,
    print_error,
    print_success,
    print_warning,
    wants_json,
)


def _describe(event) -> str:
    """One-line summary of an event for terminal output."""
    parts = [f"#{event.id}" if event.id is not None else "#-", event.trade_date.isoformat(), event.event_type]
    if event.contract_count is not None:
        parts.append(f"{event.contract_count}x")
    strike = getattr(event, "strike", None)
    if strike is not None:
        parts.append(f"strike {format_money(strike)}")
    premium = getattr(event, "premium", None)
    if premium is not None:
        parts.append(f"premium {format_money(premium)}")
    shares = getattr(event, "quantity_shares", None)
    if shares is not None:
        parts.append(f"{abs(shares)} sh @ {format_money(event.price)}")
    if event.fees:
        parts.append(f"fees {format_money(event.fees)}")
    if event.link_event_id is not None:
        parts.append(f"-> #{event.link_event_id}")
    return "  ".join(parts)


@click.command()
@click.argument("cycle_id", type=int)
@click.argument("event_type", type=click.Choice([t.value for t in EventType], case_sensitive=False))
@click.option("--date", "trade_date", type=DATE, required=True, help="Trade date (YYYY-MM-DD)")
@click.option("--contracts", type=int, default=None, help="Number of contracts")
@click.option("--shares", type=int, default=None, help="Number of shares (purchases and sales)")
@click.option("--price", "share_price", type=DECIMAL, default=None, help="Share price ($)")
@click.option("--strike", type=DECIMAL, default=None, help="Strike price ($)")
@click.option("--premium", type=DECIMAL, default=None, help="Premium per share ($)")
@click.option("--expiration", type=DATE, default=None, help="Expiration date (YYYY-MM-DD)")
@click.option("--fees", type=DECIMAL, default=None, help="Commissions and fees ($)")
@click.option("--link", "link_event_id", type=int, default=None, help="Event this one resolves")
@click.option("--notes", default=None, help="Free-form notes")
@click.pass_context
def record(
    ctx: click.Context,
    cycle_id: int,
    event_type: str,
    trade_date: datetime,
    contracts: Optional[int],
    shares: Optional[int],
    share_price: Optional[Decimal],
    strike: Optional[Decimal],
    premium: Optional[Decimal],
    expiration: Optional[datetime],
    fees: Optional[Decimal],
    link_event_id: Optional[int],
    notes: Optional[str],
) -> None:
    """
    Record a trade event in a cycle.

    Example: wheel-ledger record 1 SELL_PUT --date 2025-01-02 --contracts 1 --strike 50 --premium 2
    """
    manager = get_manager(ctx)

    payload: dict[str, Any] = {"event_type": event_type.upper(), "trade_date": trade_date.date()}
    optional = {
        "contracts": contracts,
        "quantity_shares": shares,
        "price": share_price,
        "strike": strike,
        "premium": premium,
        "expiration": expiration.date() if expiration else None,
        "fees": fees,
        "link_event_id": link_event_id,
        "notes": notes,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})

    try:
        event = manager.record_event(cycle_id, payload)
        ledger = manager.rebuild_lots(cycle_id)
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        echo_json(event_to_dict(event))
        return

    print_success(f"Recorded: {_describe(event)}")
    for err in ledger.errors:
        if err.event_id == event.id:
            print_warning(str(err))


@click.command()
@click.argument("cycle_id", type=int)
@click.pass_context
def events(ctx: click.Context, cycle_id: int) -> None:
    """
    Show a cycle's event log in replay order.

    Example: wheel-ledger events 1
    """
    manager = get_manager(ctx)
    try:
        cycle = manager.get_cycle(cycle_id)
        log = manager.list_events(cycle_id)
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        echo_json([event_to_dict(e) for e in log])
        return

    click.echo()
    click.secho(f"=== {cycle.ticker} Cycle {cycle.id} Events ===", bold=True)
    if not log:
        click.echo("  (none)")
        return
    for event in log:
        click.echo(_describe(event))


@click.command()
@click.argument("cycle_id", type=int)
@click.option("--date", "trade_date", type=DATE, required=True, help="Roll date (YYYY-MM-DD)")
@click.option("--close-premium", type=DECIMAL, required=True, help="Debit per share to close the old call ($)")
@click.option("--strike", type=DECIMAL, required=True, help="Strike of the new call ($)")
@click.option("--premium", type=DECIMAL, required=True, help="Premium per share for the new call ($)")
@click.option("--contracts", type=int, default=None, help="Contracts to roll (default: all)")
@click.option("--expiration", type=DATE, default=None, help="New expiration (YYYY-MM-DD)")
@click.option("--link", "link_event_id", type=int, default=None, help="SELL_CALL to roll (default: oldest open)")
@click.option("--fees", type=DECIMAL, default=Decimal("0"), help="Fees on the closing leg ($)")
@click.pass_context
def roll(
    ctx: click.Context,
    cycle_id: int,
    trade_date: datetime,
    close_premium: Decimal,
    strike: Decimal,
    premium: Decimal,
    contracts: Optional[int],
    expiration: Optional[datetime],
    link_event_id: Optional[int],
    fees: Decimal,
) -> None:
    """
    Roll a covered call: buy it back and sell a new one the same day.

    Example: wheel-ledger roll 1 --date 2025-03-14 --close-premium 0.40 --strike 55 --premium 1.20
    """
    manager = get_manager(ctx)
    try:
        closing, opening = manager.roll_call(
            cycle_id,
            trade_date.date(),
            close_premium=close_premium,
            new_strike=strike,
            new_premium=premium,
            contracts=contracts,
            expiration=expiration.date() if expiration else None,
            link_event_id=link_event_id,
            fees=fees,
        )
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        echo_json([event_to_dict(closing), event_to_dict(opening)])
        return

    print_success("Rolled call:")
    click.echo(f"  {_describe(closing)}")
    click.echo(f"  {_describe(opening)}")
