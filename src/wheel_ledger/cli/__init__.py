"""
Click CLI implementation for the wheel ledger.

This module provides command-line interface commands for recording
wheel events and viewing the lots, metrics and phases derived from them,
split into logical command groups.
"""

import logging
from pathlib import Path
from typing import Optional

import click

from ..config import LedgerConfig
from ..manager import LedgerManager

# Import command groups
from .analysis_commands import detect, taxlots
from .cycle_commands import close, cycles, start
from .event_commands import events, record, roll
from .ledger_commands import lots, metrics, phase

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--db",
    default=None,
    help="Database file path (default from config)",
    envvar="WHEEL_LEDGER_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json", "output_json", is_flag=True, help="JSON output (where supported)")
@click.option(
    "--config-file",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    db: Optional[str],
    verbose: bool,
    output_json: bool,
    config_file: Optional[str],
) -> None:
    """
    Wheel Ledger - Track options wheel cycles as an event log.

    Lots, cost basis, P&L and wheel phase are re-derived from the
    recorded events every time they are shown.
    """
    ctx.ensure_object(dict)

    # Load configuration
    try:
        if config_file:
            config = LedgerConfig.load_from_file(Path(config_file))
        else:
            config = LedgerConfig.load_from_file()
    except Exception as e:
        if verbose:
            click.echo(f"! Could not load config file: {e}", err=True)
            click.echo("  Using default configuration")
        config = LedgerConfig()

    # Apply command-line overrides
    if db:
        config.database_path = db
    if verbose:
        config.verbose = True
    if output_json:
        config.json_output = True

    logging.basicConfig(
        level=logging.INFO if config.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    manager = LedgerManager.from_config(config)
    if config.verbose:
        click.echo(f"+ Using database {config.database_path}", err=True)

    ctx.obj = {
        "manager": manager,
        "verbose": config.verbose,
        "json": config.json_output,
        "config": config,
    }


# Register cycle commands
cli.add_command(start)
cli.add_command(cycles)
cli.add_command(close)

# Register event commands
cli.add_command(record)
cli.add_command(events)
cli.add_command(roll)

# Register ledger commands
cli.add_command(lots)
cli.add_command(metrics)
cli.add_command(phase)

# Register analysis commands
cli.add_command(detect)
cli.add_command(taxlots)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
