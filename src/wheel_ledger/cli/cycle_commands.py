"""
Cycle management commands for the wheel ledger CLI.

This module provides commands for starting, listing and closing cycles.
"""

import sys
from datetime import date, datetime
from typing import Optional

import click

from ..exceptions import LedgerError
from ..export import cycle_to_dict
from ..state import CycleStatus
from .utils import DATE, echo_json, get_manager, print_error, print_success, wants_json


@click.command()
@click.argument("ticker")
@click.option("--date", "start_date", type=DATE, default=None, help="Start date (YYYY-MM-DD, default today)")
@click.option("--notes", default=None, help="Free-form notes")
@click.pass_context
def start(ctx: click.Context, ticker: str, start_date: Optional[datetime], notes: Optional[str]) -> None:
    """
    Start a new wheel cycle for a ticker.

    Example: wheel-ledger start AAPL --date 2025-01-02
    """
    manager = get_manager(ctx)
    try:
        cycle = manager.start_cycle(
            ticker, start_date.date() if start_date else date.today(), notes
        )
    except (LedgerError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        echo_json(cycle_to_dict(cycle))
        return
    print_success(f"Started cycle {cycle.id} for {cycle.ticker} on {cycle.start_date.isoformat()}")


@click.command()
@click.option("--ticker", default=None, help="Only show this ticker")
@click.option(
    "--status",
    type=click.Choice([s.value.lower() for s in CycleStatus]),
    default=None,
    help="Only show open or closed cycles",
)
@click.pass_context
def cycles(ctx: click.Context, ticker: Optional[str], status: Optional[str]) -> None:
    """
    List wheel cycles.

    Example: wheel-ledger cycles --ticker AAPL --status open
    """
    manager = get_manager(ctx)
    status_filter = CycleStatus(status.capitalize()) if status else None
    found = manager.list_cycles(ticker=ticker, status=status_filter)

    if wants_json(ctx):
        echo_json([cycle_to_dict(c) for c in found])
        return

    if not found:
        click.echo("No cycles found.")
        return

    click.echo()
    click.secho("=== Cycles ===", bold=True)
    for cycle in found:
        end = cycle.end_date.isoformat() if cycle.end_date else "-"
        click.echo(
            f"{cycle.id:>4}  {cycle.ticker:<8} {cycle.status.value:<7} "
            f"{cycle.start_date.isoformat()} -> {end}"
        )


@click.command()
@click.argument("cycle_id", type=int)
@click.option("--date", "end_date", type=DATE, default=None, help="End date (YYYY-MM-DD, default today)")
@click.pass_context
def close(ctx: click.Context, cycle_id: int, end_date: Optional[datetime]) -> None:
    """
    Close a cycle once it has been fully exited.

    Example: wheel-ledger close 1 --date 2025-06-20
    """
    manager = get_manager(ctx)
    try:
        cycle = manager.close_cycle(cycle_id, end_date.date() if end_date else date.today())
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        echo_json(cycle_to_dict(cycle))
        return
    print_success(f"Closed cycle {cycle.id} ({cycle.ticker}) on {cycle.end_date.isoformat()}")
