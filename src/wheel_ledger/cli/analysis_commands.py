"""
Analysis commands for the wheel ledger CLI.

This module provides strategy detection over a broker position snapshot
and splitting of a share position into tax lots.
"""

import json
import sys
from decimal import Decimal
from typing import Optional

import click

from ..exceptions import LedgerError
from ..export import detection_to_dict, export_tax_lots, tax_lot_to_dict
from ..models import BrokerPosition
from .utils import (
    DECIMAL,
    echo_json,
    get_manager,
    print_detections,
    print_error,
    print_tax_lots,
    wants_json,
)


def _load_positions(path: str) -> list[BrokerPosition]:
    """Read a JSON snapshot: a list of positions or {"positions": [...]}."""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("positions", [])
    if not isinstance(data, list):
        raise ValueError("snapshot must be a list of positions")
    return [BrokerPosition.from_dict(item) for item in data]


@click.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def detect(ctx: click.Context, snapshot: str) -> None:
    """
    Classify each ticker in a broker position snapshot by wheel strategy.

    SNAPSHOT is a JSON file of positions with symbol, instrument_type
    (EQUITY or OPTION) and signed quantity.

    Example: wheel-ledger detect positions.json
    """
    manager = get_manager(ctx)
    try:
        positions = _load_positions(snapshot)
        results = manager.detect_strategies(positions)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        print_error(f"Invalid position snapshot: {e}")
        sys.exit(1)
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        echo_json([detection_to_dict(r) for r in results])
        return

    print_detections(results, verbose=ctx.obj.get("verbose", False))


@click.command()
@click.argument("shares", type=int)
@click.argument("average_price", type=DECIMAL)
@click.option("--price", "current_price", type=DECIMAL, default=None, help="Current share price ($)")
@click.option(
    "--export",
    "export_format",
    type=click.Choice(["csv", "json"]),
    default=None,
    help="Export lots instead of printing a table",
)
@click.pass_context
def taxlots(
    ctx: click.Context,
    shares: int,
    average_price: Decimal,
    current_price: Optional[Decimal],
    export_format: Optional[str],
) -> None:
    """
    Split a share position into 100-share tax lots plus a remainder.

    Example: wheel-ledger taxlots 250 10 --price 12
    """
    manager = get_manager(ctx)
    try:
        result = manager.split_tax_lots(shares, average_price, current_price)
    except LedgerError as e:
        print_error(str(e))
        sys.exit(1)

    if export_format:
        click.echo(export_tax_lots(result, format=export_format), nl=False)
        return

    if wants_json(ctx):
        echo_json([tax_lot_to_dict(lot) for lot in result])
        return

    print_tax_lots(result)
