"""
CLI utility functions for the wheel ledger.

This module provides helper functions for formatting output,
parsing decimal options, and reaching the manager from the click context.
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

import click

from ..models import DetectionResult, Lot, LotError, LotLedger, Metrics, PhaseSummary, TaxLot
from ..money import format_money, to_decimal


class DecimalParamType(click.ParamType):
    """Click parameter that parses into Decimal without float rounding."""

    name = "decimal"

    def convert(self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]) -> Decimal:
        if isinstance(value, Decimal):
            return value
        try:
            return to_decimal(str(value))
        except (InvalidOperation, ValueError):
            self.fail(f"{value!r} is not a valid number", param, ctx)


DECIMAL = DecimalParamType()

DATE = click.DateTime(formats=["%Y-%m-%d"])


def get_manager(ctx: click.Context):
    """Get the LedgerManager from context."""
    return ctx.obj["manager"]


def wants_json(ctx: click.Context) -> bool:
    return bool(ctx.obj.get("json"))


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


def print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def print_success(message: str) -> None:
    """Print success message."""
    click.secho(message, fg="green")


def print_warning(message: str) -> None:
    """Print warning message."""
    click.secho(f"Warning: {message}", fg="yellow")


def print_diagnostics(errors: Iterable[LotError]) -> None:
    """Print lot builder diagnostics, errors in red and warnings in yellow."""
    for err in errors:
        color = "red" if err.is_error else "yellow"
        click.secho(f"  {err}", fg=color)


def print_lots(lots: list[Lot], title: str = "Lots") -> None:
    """Print lots as a table."""
    click.echo()
    click.secho(f"=== {title} ===", bold=True)
    if not lots:
        click.echo("  (none)")
        return
    header = f"{'#':>3}  {'Acquired':<10}  {'Method':<18}  {'Shares':>6}  {'Basis':>10}  {'Status':<18}  {'Realized':>12}"
    click.echo(header)
    click.echo("-" * len(header))
    for lot in lots:
        flag = "*" if lot.ineligible_for_coverage and lot.is_open else " "
        click.echo(
            f"{lot.lot_number:>3}{flag} {lot.acquisition_date.isoformat():<10}  "
            f"{lot.acquisition_method.value[:18]:<18}  {lot.shares:>6}  "
            f"{format_money(lot.cost_basis):>10}  {lot.status.value:<18}  "
            f"{format_money(lot.realized_pl):>12}"
        )
    if any(lot.ineligible_for_coverage and lot.is_open for lot in lots):
        click.echo("  * remainder lot, not eligible for covered calls")


def print_ledger(ledger: LotLedger, show_closed: bool = True) -> None:
    """Print a rebuilt ledger: lots, reservations and diagnostics."""
    lots = ledger.lots if show_closed else ledger.open_lots
    print_lots(lots)
    if ledger.reservations:
        click.echo()
        click.echo(
            f"Cash reserved: {format_money(ledger.open_collateral)} "
            f"across {len(ledger.reservations)} put contract(s)"
        )
    if ledger.errors:
        click.echo()
        click.secho("Diagnostics:", fg="yellow")
        print_diagnostics(ledger.errors)


def print_metrics(metrics: Metrics, title: str = "Metrics") -> None:
    """Print a metrics snapshot."""
    click.echo()
    click.secho(f"=== {title} ===", bold=True)
    avg = f"${metrics.average_cost_basis:,.4f}" if metrics.average_cost_basis is not None else "N/A"
    click.echo(f"Shares Owned:       {metrics.shares_owned}")
    click.echo(f"Avg Cost Basis:     {avg}")
    click.echo(f"Cost Remaining:     {format_money(metrics.total_cost_remaining)}")
    click.echo(f"Options Cashflow:   {format_money(metrics.net_options_cashflow)}")
    click.echo(f"Realized Stock P&L: {format_money(metrics.realized_stock_pl)}")
    click.echo(f"Total Realized P&L: {format_money(metrics.total_realized_pl)}")
    click.echo(f"Current Price:      {format_money(metrics.current_price)}")
    click.echo(f"Unrealized P&L:     {format_money(metrics.unrealized_pl)}")
    if metrics.open_collateral:
        click.echo(f"Cash Reserved:      {format_money(metrics.open_collateral)}")
    for warning in metrics.warnings:
        print_warning(warning)


def print_phase_summary(summary: PhaseSummary) -> None:
    """Print a ticker's phase and lifetime earnings."""
    click.echo()
    click.secho(f"=== {summary.ticker} Wheel Phase ===", bold=True)
    if summary.current_phase is None:
        click.echo("Current Phase: none (nothing open)")
    else:
        click.echo(
            f"Current Phase: {summary.current_phase.value} "
            f"({summary.current_phase.name.replace('_', ' ').title()})"
        )
    click.echo(f"Cycles:        {summary.cycles}")
    if summary.last_called_away:
        click.echo(f"Last Called Away: {summary.last_called_away.isoformat()}")
    click.echo()
    click.echo("Lifetime Earnings:")
    for key, value in summary.lifetime_earnings.items():
        click.echo(f"  {key}: {format_money(value)}")
    click.echo(f"  total:  {format_money(summary.total_earnings)}")


def print_detections(results: list[DetectionResult], verbose: bool = False) -> None:
    """Print strategy detection results."""
    click.echo()
    click.secho("=== Detected Strategies ===", bold=True)
    if not results:
        click.echo("  (none)")
        return
    for result in results:
        color = {"high": "green", "medium": "yellow", "low": "red"}[result.confidence.value]
        click.echo(f"{result.ticker:<8} {result.strategy.value:<18}", nl=False)
        click.secho(f"{result.confidence.value:<7} ({result.confidence_score})", fg=color)
        if verbose:
            click.echo(f"         {result.description}")
            for action in result.actions:
                click.echo(f"           - {action.description} ({action.action})")


def print_tax_lots(lots: list[TaxLot]) -> None:
    """Print tax lots as a table."""
    click.echo()
    click.secho("=== Tax Lots ===", bold=True)
    if not lots:
        click.echo("  (none)")
        return
    for lot in lots:
        label = "R" if lot.is_remainder else str(lot.lot_number)
        pct = f"{lot.profit_loss_percent:.2f}%" if lot.profit_loss_percent is not None else "N/A"
        click.echo(
            f"{label:>3}  {lot.shares:>4} sh  cost {format_money(lot.cost_basis):>12}  "
            f"value {format_money(lot.market_value):>12}  P&L {format_money(lot.profit_loss):>12} ({pct})"
        )
