"""Phase classifier: maps a ticker's ledgers onto the four wheel phases."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from .events import WheelEvent
from .metrics import option_cashflows
from .models import LotLedger, PhaseSummary
from .money import ZERO, money
from .state import EventType, LotStatus, WheelPhase

logger = logging.getLogger(__name__)

# Highest first; current_phase is the first active one
PHASE_PRECEDENCE = (WheelPhase.COVERED_CALL, WheelPhase.SHARES_ACQUIRED, WheelPhase.CASH_SECURED_PUT)


@dataclass
class CycleHistory:
    """One cycle's events together with the ledger rebuilt from them."""

    events: Sequence[WheelEvent]
    ledger: LotLedger


def active_phases(ledger: LotLedger) -> list[WheelPhase]:
    """
    Phases a ledger is currently in, in precedence order.

    Phase 4 is an event, not a state, and is never active.
    """
    open_lots = ledger.open_lots
    any_covered = any(lot.status == LotStatus.OPEN_COVERED for lot in open_lots)
    any_uncovered = any(lot.status == LotStatus.OPEN_UNCOVERED for lot in open_lots)

    phases = []
    if any_covered:
        phases.append(WheelPhase.COVERED_CALL)
    if any_uncovered and not any_covered:
        phases.append(WheelPhase.SHARES_ACQUIRED)
    if ledger.open_puts:
        phases.append(WheelPhase.CASH_SECURED_PUT)
    return phases


def phase_earnings(history: CycleHistory) -> dict[str, Decimal]:
    """
    Earnings one cycle contributes to each phase.

    Phase 1 takes put premiums net of put close debits and put fees.
    Phase 2 takes the stock P&L of lots sold outright, net of sale fees.
    Phase 3 takes call premiums net of call close debits and call fees.
    Phase 4 takes the stock P&L of lots called away, net of assignment fees.

    Stock P&L runs from the price paid for the shares, so a put premium
    counted in phase 1 is not counted again in phase 2 or 4.
    """
    earnings = {phase.key: ZERO for phase in WheelPhase}

    for flow in option_cashflows(history.events):
        if flow.leg == EventType.SELL_PUT:
            earnings[WheelPhase.CASH_SECURED_PUT.key] += flow.amount
        elif flow.leg == EventType.SELL_CALL:
            earnings[WheelPhase.COVERED_CALL.key] += flow.amount

    for lot in history.ledger.closed_lots:
        # Price paid, not the premium-netted basis; phases 1 and 3 own the premiums
        stock_pl = (lot.stock_pl or ZERO) - lot.exit_fees
        if lot.status == LotStatus.CLOSED_SOLD:
            earnings[WheelPhase.SHARES_ACQUIRED.key] += stock_pl
        elif lot.status == LotStatus.CLOSED_CALLED_AWAY:
            earnings[WheelPhase.CALLED_AWAY.key] += stock_pl

    return {key: money(value) for key, value in earnings.items()}


def classify_phases(ticker: str, histories: Iterable[CycleHistory]) -> PhaseSummary:
    """
    Summarize a ticker's wheel phase across all of its cycles.

    Args:
        ticker: Stock ticker symbol.
        histories: Every cycle for the ticker, open and closed.

    Returns:
        PhaseSummary whose ``current_phase`` is None when nothing is open.
    """
    summary = PhaseSummary(ticker=ticker.upper())
    active: set[WheelPhase] = set()

    for history in histories:
        summary.cycles += 1
        active.update(active_phases(history.ledger))
        for key, value in phase_earnings(history).items():
            summary.lifetime_earnings[key] += value
        for lot in history.ledger.closed_lots:
            if lot.status != LotStatus.CLOSED_CALLED_AWAY or lot.exit_date is None:
                continue
            if summary.last_called_away is None or lot.exit_date > summary.last_called_away:
                summary.last_called_away = lot.exit_date

    summary.active_phases = [phase for phase in PHASE_PRECEDENCE if phase in active]
    summary.current_phase = summary.active_phases[0] if summary.active_phases else None
    logger.debug(
        f"{summary.ticker}: phase {summary.current_phase.value if summary.current_phase else None} "
        f"across {summary.cycles} cycles"
    )
    return summary
