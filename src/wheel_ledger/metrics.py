"""Metrics calculator: cost basis, realized/unrealized P&L and option cashflow."""

import logging
import warnings
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .events import WheelEvent, sort_events
from .exceptions import StaleDataWarning
from .models import Lot, Metrics
from .money import SHARES_PER_CONTRACT, ZERO, Number, money, price, to_optional_decimal
from .state import EventType

logger = logging.getLogger(__name__)


@dataclass
class Cashflow:
    """
    Signed option cashflow of one event.

    ``leg`` is SELL_PUT or SELL_CALL when the amount belongs to a put or
    call leg, None for share sales, call assignments and standalone fees.
    """

    event: WheelEvent
    amount: Decimal
    leg: Optional[EventType] = None


def option_cashflows(events: Sequence[WheelEvent]) -> list[Cashflow]:
    """
    Compute each event's contribution to net options cashflow.

    Premium received on opening sales is positive; debits paid to close
    and all fees except purchase fees (which are capitalized into the
    lot) are negative. Closing events without an explicit contract count
    resolve against the option they target, found the same way the lot
    builder finds it.
    """
    # [event_type, event_id, contracts_open] per opened option, in order
    book: list[list] = []
    flows: list[Cashflow] = []

    def target(event: WheelEvent, allowed: tuple[EventType, ...]) -> Optional[list]:
        if event.link_event_id is not None:
            for entry in book:
                if entry[1] == event.link_event_id and entry[0] in allowed and entry[2] > 0:
                    return entry
            return None
        for entry in book:
            if entry[0] in allowed and entry[2] > 0:
                return entry
        return None

    def resolve(event: WheelEvent, entry: Optional[list]) -> int:
        if entry is None:
            return event.contract_count or 0
        contracts = min(event.contract_count or entry[2], entry[2])
        entry[2] -= contracts
        return contracts

    for event in sort_events(events):
        kind = event.kind
        if kind in (EventType.SELL_PUT, EventType.SELL_CALL):
            contracts = abs(event.contracts)
            book.append([kind, event.id, contracts])
            amount = event.premium * SHARES_PER_CONTRACT * contracts - event.fees
            flows.append(Cashflow(event, amount, kind))
        elif kind in (EventType.PUT_EXPIRED, EventType.PUT_ASSIGNED):
            resolve(event, target(event, (EventType.SELL_PUT,)))
            flows.append(Cashflow(event, -event.fees, EventType.SELL_PUT))
        elif kind == EventType.CALL_EXPIRED:
            resolve(event, target(event, (EventType.SELL_CALL,)))
            flows.append(Cashflow(event, -event.fees, EventType.SELL_CALL))
        elif kind == EventType.CALL_ASSIGNED:
            resolve(event, target(event, (EventType.SELL_CALL,)))
            flows.append(Cashflow(event, -event.fees, None))
        elif kind == EventType.BUY_TO_CLOSE:
            if event.link_event_id is not None:
                entry = target(event, (EventType.SELL_CALL, EventType.SELL_PUT))
            else:
                entry = target(event, (EventType.SELL_CALL,))
            contracts = resolve(event, entry)
            amount = -(event.premium * SHARES_PER_CONTRACT * contracts) - event.fees
            leg = entry[0] if entry is not None else EventType.SELL_CALL
            flows.append(Cashflow(event, amount, leg))
        elif kind == EventType.OUTRIGHT_PURCHASE:
            flows.append(Cashflow(event, ZERO, None))
        else:
            # SELL_SHARES and FEE
            flows.append(Cashflow(event, -event.fees, None))
    return flows


def net_options_cashflow(events: Sequence[WheelEvent]) -> Decimal:
    """Lifetime premium received minus premium paid minus fees."""
    return money(sum((flow.amount for flow in option_cashflows(events)), ZERO))


def compute_metrics(
    lots: Iterable[Lot],
    events: Sequence[WheelEvent],
    current_price: Optional[Number] = None,
    open_collateral: Decimal = ZERO,
) -> Metrics:
    """
    Derive a cycle's metrics snapshot.

    Stock P&L, realized and unrealized, is measured against the price
    paid for the shares. Put premium reaches the total only through net
    options cashflow; ``average_cost_basis`` still shows it netted in.

    Args:
        lots: Lots from a rebuild (reservations excluded).
        events: The cycle's events.
        current_price: Latest share price, or None when unavailable.
        open_collateral: Cash reserved by open short puts.

    Returns:
        Metrics with average cost basis and unrealized P&L set to None
        when no shares are held or no price is known.
    """
    lots = list(lots)
    open_lots = [lot for lot in lots if lot.is_open]
    closed_lots = [lot for lot in lots if lot.is_closed]

    shares_owned = sum(lot.shares for lot in open_lots)
    total_cost = sum((lot.total_cost for lot in open_lots), ZERO)
    gross_cost = sum((lot.gross_cost for lot in open_lots), ZERO)
    average_cost_basis = price(total_cost / shares_owned) if shares_owned else None

    options_cashflow = net_options_cashflow(events)
    realized_stock_pl = money(sum((lot.stock_pl for lot in closed_lots), ZERO))

    current = to_optional_decimal(current_price)
    metrics_warnings: list[str] = []
    unrealized_pl = None
    if shares_owned > 0:
        if current is None:
            message = f"No current price available; unrealized P&L unknown for {shares_owned} shares"
            metrics_warnings.append(message)
            warnings.warn(message, StaleDataWarning, stacklevel=2)
        else:
            unrealized_pl = money(current * shares_owned - gross_cost)

    logger.debug(f"Metrics: {shares_owned} shares, cashflow {options_cashflow}, realized {realized_stock_pl}")

    return Metrics(
        shares_owned=shares_owned,
        average_cost_basis=average_cost_basis,
        total_cost_remaining=money(total_cost),
        net_options_cashflow=options_cashflow,
        realized_stock_pl=realized_stock_pl,
        total_realized_pl=realized_stock_pl + options_cashflow,
        current_price=current,
        unrealized_pl=unrealized_pl,
        open_collateral=money(open_collateral),
        warnings=metrics_warnings,
    )
