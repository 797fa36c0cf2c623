"""CSV/JSON export of ledger results.

Decimals are written as strings so exported amounts match the ledger
to the cent.
"""

import csv
import io
import json
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

from .events import WheelCycle, WheelEvent
from .models import DetectionResult, Lot, LotError, LotLedger, Metrics, PhaseSummary, TaxLot
from .money import money, price

LOT_FIELDS = [
    "lot_number",
    "acquisition_method",
    "acquisition_date",
    "shares",
    "cost_basis",
    "acquisition_price",
    "status",
    "covered_by",
    "coverage_strike",
    "net_premium",
    "exit_price",
    "exit_date",
    "realized_pl",
    "ineligible_for_coverage",
    "event_ids",
]

TAX_LOT_FIELDS = [
    "lot_number",
    "shares",
    "is_remainder",
    "average_price",
    "current_price",
    "cost_basis",
    "market_value",
    "profit_loss",
    "profit_loss_percent",
]


def _plain(value: Any) -> Any:
    """Convert a value to something json.dumps and csv can write as-is."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _optional_money(value: Optional[Decimal]) -> Optional[Decimal]:
    return money(value) if value is not None else None


def lot_to_dict(lot: Lot) -> dict[str, Any]:
    coverage_open = lot.coverage is not None and lot.coverage.is_open
    return _plain(
        {
            "lot_number": lot.lot_number,
            "acquisition_method": lot.acquisition_method,
            "acquisition_date": lot.acquisition_date,
            "shares": lot.shares,
            "cost_basis": price(lot.cost_basis),
            "acquisition_price": price(lot.acquisition_price),
            "status": lot.status,
            "covered_by": lot.coverage.call_event_id if coverage_open else None,
            "coverage_strike": lot.coverage.strike if coverage_open else None,
            "net_premium": money(lot.net_premium),
            "exit_price": lot.exit_price,
            "exit_date": lot.exit_date,
            "realized_pl": _optional_money(lot.realized_pl),
            "ineligible_for_coverage": lot.ineligible_for_coverage,
            "event_ids": lot.event_ids,
        }
    )


def diagnostic_to_dict(error: LotError) -> dict[str, Any]:
    return _plain(
        {
            "code": error.code,
            "severity": error.severity,
            "event_id": error.event_id,
            "event_type": error.event_type,
            "message": error.message,
        }
    )


def ledger_to_dict(ledger: LotLedger) -> dict[str, Any]:
    return {
        "lots": [lot_to_dict(lot) for lot in ledger.lots],
        "reservations": [lot_to_dict(lot) for lot in ledger.reservations],
        "open_collateral": str(money(ledger.open_collateral)),
        "errors": [diagnostic_to_dict(err) for err in ledger.errors],
    }


def metrics_to_dict(metrics: Metrics) -> dict[str, Any]:
    return _plain(
        {
            "shares_owned": metrics.shares_owned,
            "average_cost_basis": metrics.average_cost_basis,
            "total_cost_remaining": metrics.total_cost_remaining,
            "net_options_cashflow": metrics.net_options_cashflow,
            "realized_stock_pl": metrics.realized_stock_pl,
            "total_realized_pl": metrics.total_realized_pl,
            "current_price": metrics.current_price,
            "unrealized_pl": metrics.unrealized_pl,
            "open_collateral": metrics.open_collateral,
            "warnings": metrics.warnings,
        }
    )


def phase_summary_to_dict(summary: PhaseSummary) -> dict[str, Any]:
    return _plain(
        {
            "ticker": summary.ticker,
            "current_phase": summary.current_phase.key if summary.current_phase else None,
            "active_phases": [phase.key for phase in summary.active_phases],
            "lifetime_earnings": summary.lifetime_earnings,
            "total_earnings": summary.total_earnings,
            "last_called_away": summary.last_called_away,
            "cycles": summary.cycles,
        }
    )


def detection_to_dict(result: DetectionResult) -> dict[str, Any]:
    return _plain(
        {
            "ticker": result.ticker,
            "strategy": result.strategy,
            "confidence": result.confidence,
            "confidence_score": result.confidence_score,
            "description": result.description,
            "shares": result.shares,
            "short_calls": result.short_calls,
            "short_puts": result.short_puts,
            "positions": [p.symbol for p in result.positions],
            "actions": [{"action": a.action, "description": a.description} for a in result.actions],
        }
    )


def tax_lot_to_dict(lot: TaxLot) -> dict[str, Any]:
    return _plain({field: getattr(lot, field) for field in TAX_LOT_FIELDS})


def event_to_dict(event: WheelEvent) -> dict[str, Any]:
    return event.model_dump(mode="json")


def cycle_to_dict(cycle: WheelCycle) -> dict[str, Any]:
    return cycle.model_dump(mode="json")


def _to_csv(fields: list[str], rows: Iterable[dict[str, Any]]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fields, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(
            {k: " ".join(str(v) for v in row[k]) if isinstance(row[k], list) else row[k] for k in fields}
        )
    return output.getvalue()


def export_lots(lots: Iterable[Lot], format: str = "csv") -> str:
    """
    Export lots to CSV or JSON.

    Args:
        lots: Lots to export
        format: "csv" or "json"

    Returns:
        Formatted string with lot data
    """
    rows = [lot_to_dict(lot) for lot in lots]
    if format == "json":
        return json.dumps(rows, indent=2)
    return _to_csv(LOT_FIELDS, rows)


def export_tax_lots(lots: Iterable[TaxLot], format: str = "csv") -> str:
    """Export tax lots to CSV or JSON."""
    rows = [tax_lot_to_dict(lot) for lot in lots]
    if format == "json":
        return json.dumps(rows, indent=2)
    return _to_csv(TAX_LOT_FIELDS, rows)


def export_metrics(metrics: Metrics, format: str = "json") -> str:
    """Export a metrics snapshot as JSON or a single-row CSV."""
    row = metrics_to_dict(metrics)
    if format == "json":
        return json.dumps(row, indent=2)
    row["warnings"] = "; ".join(row["warnings"])
    return _to_csv(list(row.keys()), [row])
