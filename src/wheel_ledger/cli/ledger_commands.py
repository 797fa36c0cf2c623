"""
Derived-view commands for the wheel ledger CLI.

This module provides commands for showing a cycle's lots and metrics
and a ticker's wheel phase. Everything shown is rebuilt from the event
log on each run.
"""

import sys
import warnings
from decimal import Decimal
from typing import Optional

import click

from ..exceptions import LedgerError, StaleDataWarning
from ..export import export_lots, export_metrics, ledger_to_dict, metrics_to_dict, phase_summary_to_dict
from .utils import (
    DECIMAL,
    echo_json,
    get_manager,
    print_error,
    print_ledger,
    print_metrics,
    print_phase_summary,
    wants_json,
)


@click.command()
@click.argument("cycle_id", type=int)
@click.option("--open-only", is_flag=True, help="Hide closed lots")
@click.option(
    "--export",
    "export_format",
    type=click.Choice(["csv", "json"]),
    default=None,
    help="Export lots instead of printing a table",
)
@click.pass_context
def lots(ctx: click.Context, cycle_id: int, open_only: bool, export_format: Optional[str]) -> None:
    """
    Show the lots rebuilt from a cycle's events.

    Example: wheel-ledger lots 1 --export csv
    """
    manager = get_manager(ctx)
    try:
        manager.get_cycle(cycle_id)
        ledger = manager.rebuild_lots(cycle_id)
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    shown = ledger.open_lots if open_only else ledger.lots
    if export_format:
        click.echo(export_lots(shown, format=export_format), nl=False)
        return

    if wants_json(ctx):
        echo_json(ledger_to_dict(ledger))
        return

    print_ledger(ledger, show_closed=not open_only)


@click.command()
@click.argument("cycle_id", type=int)
@click.option("--price", "current_price", type=DECIMAL, default=None, help="Current share price ($)")
@click.option(
    "--export",
    "export_format",
    type=click.Choice(["csv", "json"]),
    default=None,
    help="Export metrics instead of printing them",
)
@click.pass_context
def metrics(
    ctx: click.Context,
    cycle_id: int,
    current_price: Optional[Decimal],
    export_format: Optional[str],
) -> None:
    """
    Show cost basis and P&L for a cycle.

    Without --price the configured price for the ticker is used; if there
    is none, unrealized P&L is reported as N/A.

    Example: wheel-ledger metrics 1 --price 52.10
    """
    manager = get_manager(ctx)
    try:
        cycle = manager.get_cycle(cycle_id)
        # Missing prices are already listed in the metrics output
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", StaleDataWarning)
            result = manager.get_metrics(cycle_id, current_price)
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if export_format:
        click.echo(export_metrics(result, format=export_format), nl=False)
        return

    if wants_json(ctx):
        echo_json(metrics_to_dict(result))
        return

    print_metrics(result, title=f"{cycle.ticker} Cycle {cycle.id} Metrics")


@click.command()
@click.argument("ticker")
@click.pass_context
def phase(ctx: click.Context, ticker: str) -> None:
    """
    Show a ticker's current wheel phase and lifetime earnings per phase.

    Example: wheel-ledger phase AAPL
    """
    manager = get_manager(ctx)
    try:
        summary = manager.get_phase_summary(ticker.upper())
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        echo_json(phase_summary_to_dict(summary))
        return

    print_phase_summary(summary)
