"""
Lot builder: replays a cycle's event log into 100-share lots.

The builder is a pure function of its input. Events are applied in
trade-date order (insertion order breaks ties) and every rebuild starts
from an empty ledger, so calling it twice on the same events yields the
same lots.

Matching policy:
    - An explicit ``link_event_id`` always wins.
    - Without a link, the oldest eligible lot (or open option) is used,
      by acquisition order. Lots acquired on the same date keep the order
      of the events that created them.
    - An event with no eligible target is recorded as a diagnostic and
      leaves the ledger untouched. The builder never raises for a single
      bad event.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Iterable, Optional

from .events import (
    BuyToClose,
    CallAssigned,
    CallExpired,
    Fee,
    OutrightPurchase,
    PutAssigned,
    PutExpired,
    SellCall,
    SellPut,
    SellShares,
    WheelEvent,
    sort_events,
)
from .models import Coverage, Lot, LotError, LotLedger, OptionPosition, Tranche
from .money import SHARES_PER_CONTRACT, ZERO, money
from .state import AcquisitionMethod, DiagnosticCode, EventType, LotStatus, get_next_status

logger = logging.getLogger(__name__)


class LotBuilder:
    """
    Replays events into a LotLedger.

    One builder may be reused; ``build`` resets all state before replaying.
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._lots: list[Lot] = []
        self._errors: list[LotError] = []
        self._options: list[OptionPosition] = []
        self._next_lot_number = 1
        self._sequence = 0

    def build(self, events: Iterable[WheelEvent]) -> LotLedger:
        """
        Rebuild the ledger from scratch.

        Args:
            events: The cycle's events in insertion order.

        Returns:
            LotLedger with lots in derivation order, open options, and
            any diagnostics collected along the way.
        """
        self._reset()
        ordered = sort_events(list(events))

        handlers: dict[EventType, Callable] = {
            EventType.SELL_PUT: self._sell_put,
            EventType.PUT_EXPIRED: self._put_expired,
            EventType.PUT_ASSIGNED: self._put_assigned,
            EventType.OUTRIGHT_PURCHASE: self._outright_purchase,
            EventType.SELL_CALL: self._sell_call,
            EventType.CALL_EXPIRED: self._call_expired,
            EventType.BUY_TO_CLOSE: self._buy_to_close,
            EventType.CALL_ASSIGNED: self._call_assigned,
            EventType.SELL_SHARES: self._sell_shares,
            EventType.FEE: self._fee,
        }
        for event in ordered:
            handlers[event.kind](event)

        ledger = LotLedger(
            lots=list(self._lots),
            errors=list(self._errors),
            open_options=[opt for opt in self._options if opt.contracts_open > 0],
        )
        logger.debug(
            f"Rebuilt {len(ledger.lots)} lots from {len(ordered)} events "
            f"({ledger.shares_owned} shares open, {len(ledger.errors)} diagnostics)"
        )
        return ledger

    # ------------------------------------------------------------------
    # Bookkeeping helpers
    # ------------------------------------------------------------------

    def _diagnose(self, code: DiagnosticCode, event: WheelEvent, message: str) -> None:
        error = LotError(code=code, event_id=event.id, event_type=event.kind, message=message)
        self._errors.append(error)
        logger.warning(str(error))

    def _touch(self, lot: Lot, event: WheelEvent) -> None:
        if event.id is not None and event.id not in lot.event_ids:
            lot.event_ids.append(event.id)

    def _transition(self, lot: Lot, action: str) -> None:
        lot.status = get_next_status(lot.status, action)

    def _new_lot(
        self,
        method: AcquisitionMethod,
        event: WheelEvent,
        shares: int,
        cost_basis: Decimal,
        acquisition_price: Optional[Decimal] = None,
        status: LotStatus = LotStatus.OPEN_UNCOVERED,
        tranches: Optional[list[Tranche]] = None,
    ) -> Lot:
        """
        Append a lot. Without ``tranches`` the shares form one new tranche
        acquired on the event's trade date.
        """
        lot = Lot(
            lot_number=self._next_lot_number,
            acquisition_method=method,
            acquisition_date=event.trade_date,
            shares=shares,
            cost_basis=cost_basis,
            acquisition_price=acquisition_price,
            status=status,
            source_event_id=event.id,
        )
        if tranches is None:
            self._sequence += 1
            tranches = [
                Tranche(
                    shares=shares,
                    cost_basis=cost_basis,
                    acquisition_price=lot.acquisition_price,
                    acquisition_date=event.trade_date,
                    sequence=self._sequence,
                )
            ]
        lot.tranches = tranches
        self._reprice(lot)
        self._next_lot_number += 1
        self._lots.append(lot)
        return lot

    @staticmethod
    def _reprice(lot: Lot) -> None:
        """Recompute a lot's share count and per-share prices from its tranches."""
        lot.tranches.sort(key=lambda t: t.sequence)
        lot.shares = sum(t.shares for t in lot.tranches)
        if lot.shares == 0:
            return
        if len(lot.tranches) == 1:
            lot.cost_basis = lot.tranches[0].cost_basis
            lot.acquisition_price = lot.tranches[0].acquisition_price
            return
        lot.cost_basis = sum((t.cost_basis * t.shares for t in lot.tranches), ZERO) / lot.shares
        lot.acquisition_price = sum((t.acquisition_price * t.shares for t in lot.tranches), ZERO) / lot.shares

    @staticmethod
    def _take_tranches(lot: Lot, shares: int) -> list[Tranche]:
        """Remove shares from a lot, oldest tranche first, and return them."""
        taken, kept = [], []
        remaining = shares
        for tranche in lot.tranches:
            take = min(tranche.shares, remaining)
            if take > 0:
                taken.append(replace(tranche, shares=take))
                remaining -= take
            if take < tranche.shares:
                kept.append(replace(tranche, shares=tranche.shares - take))
        lot.tranches = kept
        return taken

    def _lot_by_number(self, lot_number: int) -> Optional[Lot]:
        for lot in self._lots:
            if lot.lot_number == lot_number:
                return lot
        return None

    def _find_option(
        self, event: WheelEvent, allowed: tuple[EventType, ...]
    ) -> tuple[Optional[OptionPosition], str]:
        """
        Resolve the open option an event acts on.

        Returns:
            (option, "") on success, (None, reason) otherwise.
        """
        if event.link_event_id is not None:
            for option in self._options:
                if option.event_id != event.link_event_id:
                    continue
                if option.event_type not in allowed:
                    return None, (
                        f"linked event {event.link_event_id} is a {option.event_type.value}, "
                        f"expected {' or '.join(t.value for t in allowed)}"
                    )
                if option.contracts_open == 0:
                    return None, f"linked option {event.link_event_id} has no open contracts"
                return option, ""
            return None, f"linked event {event.link_event_id} is not an open option"

        for option in self._options:
            if option.event_type in allowed and option.contracts_open > 0:
                return option, ""
        return None, f"no open {' or '.join(t.value for t in allowed)} to resolve"

    def _contracts_to_resolve(self, event: WheelEvent, option: OptionPosition) -> int:
        requested = event.contract_count
        if requested is None:
            return option.contracts_open
        if requested > option.contracts_open:
            self._diagnose(
                DiagnosticCode.PARTIAL_MATCH,
                event,
                f"{requested} contracts requested, only {option.contracts_open} open",
            )
            return option.contracts_open
        return requested

    def _covered_lots(self, option: OptionPosition) -> list[Lot]:
        lots = []
        for number in option.covered_lots:
            lot = self._lot_by_number(number)
            if lot is not None and lot.is_covered:
                lots.append(lot)
        return lots

    def _release_coverage(self, lot: Lot) -> None:
        """Detach a lot from the open call that covers it."""
        for option in self._options:
            if lot.lot_number in option.covered_lots:
                option.covered_lots.remove(lot.lot_number)
        if lot.coverage is not None:
            lot.coverage.is_open = False

    # ------------------------------------------------------------------
    # Puts
    # ------------------------------------------------------------------

    def _sell_put(self, event: SellPut) -> None:
        contracts = abs(event.contracts)
        self._options.append(
            OptionPosition(
                event_id=event.id,
                event_type=EventType.SELL_PUT,
                trade_date=event.trade_date,
                strike=event.strike,
                premium=event.premium,
                contracts_total=contracts,
                contracts_open=contracts,
                expiration=event.expiration,
            )
        )
        logger.debug(f"Reserved {event.collateral} collateral for put {event.id}")

    def _put_expired(self, event: PutExpired) -> None:
        put, reason = self._find_option(event, (EventType.SELL_PUT,))
        if put is None:
            self._diagnose(DiagnosticCode.UNMATCHED_EVENT, event, reason)
            return
        put.contracts_open -= self._contracts_to_resolve(event, put)

    def _put_assigned(self, event: PutAssigned) -> None:
        put, reason = self._find_option(event, (EventType.SELL_PUT,))
        if put is None:
            self._diagnose(DiagnosticCode.INSUFFICIENT_COLLATERAL, event, reason)
            if event.strike is None:
                return
            # Shares still changed hands; book them at the strike without premium.
            contracts = event.contract_count or 1
            for _ in range(contracts):
                lot = self._new_lot(
                    AcquisitionMethod.PUT_ASSIGNMENT, event, SHARES_PER_CONTRACT, event.strike
                )
                self._touch(lot, event)
            return

        contracts = self._contracts_to_resolve(event, put)
        put.contracts_open -= contracts
        cost_basis = put.strike - put.premium
        for _ in range(contracts):
            lot = self._new_lot(
                AcquisitionMethod.PUT_ASSIGNMENT,
                event,
                SHARES_PER_CONTRACT,
                cost_basis,
                acquisition_price=put.strike,
            )
            if put.event_id is not None:
                lot.event_ids.append(put.event_id)
            self._touch(lot, event)

    # ------------------------------------------------------------------
    # Shares
    # ------------------------------------------------------------------

    def _outright_purchase(self, event: OutrightPurchase) -> None:
        remaining = event.share_count
        cost_basis = event.price + event.fees / remaining

        while remaining > 0:
            shares = min(SHARES_PER_CONTRACT, remaining)
            lot = self._new_lot(AcquisitionMethod.OUTRIGHT_PURCHASE, event, shares, cost_basis)
            self._touch(lot, event)
            remaining -= shares

        # Only merge when the purchase left a second open remainder lot.
        self._consolidate_partials()

    def _sell_shares(self, event: SellShares) -> None:
        to_sell = event.share_count
        open_lots = [lot for lot in self._lots if lot.is_open]
        available = sum(lot.shares for lot in open_lots)
        if to_sell > available:
            self._diagnose(
                DiagnosticCode.UNMATCHED_EVENT,
                event,
                f"cannot sell {to_sell} shares, only {available} open",
            )
            return

        # Uncovered lots first, then covered; within each group the oldest
        # tranche goes first, wherever it sits.
        takes: dict[int, int] = {}
        touched: list[Lot] = []
        remaining = to_sell
        for group in (
            [lot for lot in open_lots if not lot.is_covered],
            [lot for lot in open_lots if lot.is_covered],
        ):
            pieces = [(tranche, lot) for lot in group for tranche in lot.tranches]
            pieces.sort(key=lambda piece: piece[0].sequence)
            for tranche, lot in pieces:
                if remaining == 0:
                    break
                take = min(tranche.shares, remaining)
                if id(lot) not in takes:
                    takes[id(lot)] = 0
                    touched.append(lot)
                takes[id(lot)] += take
                remaining -= take

        for lot in touched:
            take = takes[id(lot)]
            fee_share = event.fees * take / to_sell
            if lot.is_covered:
                self._diagnose(
                    DiagnosticCode.COVERAGE_CANCELLED,
                    event,
                    f"lot {lot.lot_number} sold while covered; its short call remains open",
                )
                self._release_coverage(lot)

            if take == lot.shares:
                self._close_lot(lot, "sell_shares", event, event.price, fee_share)
            else:
                self._split_and_close(lot, take, event, fee_share)

        self._consolidate_partials()

    def _split_and_close(self, lot: Lot, shares: int, event: SellShares, fee_share: Decimal) -> None:
        """Sell part of a lot: its oldest shares become a new closed lot."""
        premium_share = lot.net_premium * shares / lot.shares
        taken = self._take_tranches(lot, shares)
        sold = self._new_lot(
            lot.acquisition_method, event, shares, lot.cost_basis, status=lot.status, tranches=taken
        )
        sold.acquisition_date = lot.acquisition_date
        sold.source_event_id = lot.source_event_id
        sold.net_premium = premium_share
        sold.event_ids = list(lot.event_ids)

        self._reprice(lot)
        lot.net_premium -= premium_share
        if lot.is_covered:
            self._transition(lot, "coverage_cancelled")
        self._touch(lot, event)
        self._close_lot(sold, "sell_shares", event, event.price, fee_share)

    def _close_lot(
        self, lot: Lot, action: str, event: WheelEvent, exit_price: Decimal, fee_share: Decimal
    ) -> None:
        self._transition(lot, action)
        lot.exit_price = exit_price
        lot.exit_date = event.trade_date
        lot.exit_fees = fee_share
        lot.closing_event_id = event.id
        lot.realized_pl = money((exit_price - lot.cost_basis) * lot.shares + lot.net_premium - fee_share)
        if lot.coverage is not None:
            lot.coverage.is_open = False
        self._touch(lot, event)

    def _consolidate_partials(self) -> None:
        """
        Keep at most one open lot under 100 shares.

        Shares move from the youngest partial lot into the oldest, keeping
        their own tranche and price. A lot emptied this way is dropped and
        its event history carried over.
        """
        while True:
            partials = [lot for lot in self._lots if lot.is_open and lot.shares < SHARES_PER_CONTRACT]
            if len(partials) < 2:
                return
            oldest, youngest = partials[0], partials[-1]
            moved = min(SHARES_PER_CONTRACT - oldest.shares, youngest.shares)
            premium_moved = youngest.net_premium * moved / youngest.shares
            oldest.tranches.extend(self._take_tranches(youngest, moved))
            self._reprice(oldest)
            self._reprice(youngest)
            oldest.net_premium += premium_moved
            youngest.net_premium -= premium_moved
            for event_id in youngest.event_ids:
                if event_id not in oldest.event_ids:
                    oldest.event_ids.append(event_id)
            if youngest.shares == 0:
                self._lots.remove(youngest)
                logger.debug(f"Merged lot {youngest.lot_number} into lot {oldest.lot_number}")

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def _sell_call(self, event: SellCall) -> None:
        contracts = abs(event.contracts)
        eligible = [
            lot
            for lot in self._lots
            if lot.status == LotStatus.OPEN_UNCOVERED and not lot.ineligible_for_coverage
        ]
        if event.link_event_id is not None:
            linked = [lot for lot in eligible if event.link_event_id in lot.event_ids]
            eligible = linked + [lot for lot in eligible if lot not in linked]

        chosen = eligible[:contracts]
        if not chosen:
            # An uncovered call never becomes an open option.
            self._diagnose(DiagnosticCode.UNMATCHED_EVENT, event, "no uncovered 100-share lot to cover")
            return

        option = OptionPosition(
            event_id=event.id,
            event_type=EventType.SELL_CALL,
            trade_date=event.trade_date,
            strike=event.strike,
            premium=event.premium,
            contracts_total=contracts,
            contracts_open=contracts,
            expiration=event.expiration,
        )
        self._options.append(option)

        if len(chosen) < contracts:
            self._diagnose(
                DiagnosticCode.PARTIAL_MATCH,
                event,
                f"{contracts} contracts sold, only {len(chosen)} lots available to cover",
            )

        fee_share = event.fees / contracts
        for lot in chosen:
            self._transition(lot, "sell_call")
            lot.coverage = Coverage(
                call_event_id=event.id,
                strike=event.strike,
                premium=event.premium,
                expiration=event.expiration,
            )
            lot.net_premium += event.premium * SHARES_PER_CONTRACT - fee_share
            option.covered_lots.append(lot.lot_number)
            self._touch(lot, event)

    def _uncover(self, event: WheelEvent, call: OptionPosition, action: str, debit: Decimal) -> None:
        contracts = self._contracts_to_resolve(event, call)
        call.contracts_open -= contracts
        fee_share = event.fees / contracts
        for lot in self._covered_lots(call)[:contracts]:
            self._transition(lot, action)
            self._release_coverage(lot)
            lot.net_premium -= debit * SHARES_PER_CONTRACT + fee_share
            self._touch(lot, event)

    def _call_expired(self, event: CallExpired) -> None:
        call, reason = self._find_option(event, (EventType.SELL_CALL,))
        if call is None:
            self._diagnose(DiagnosticCode.UNMATCHED_EVENT, event, reason)
            return
        self._uncover(event, call, "call_expired", ZERO)

    def _buy_to_close(self, event: BuyToClose) -> None:
        if event.link_event_id is not None:
            allowed: tuple[EventType, ...] = (EventType.SELL_CALL, EventType.SELL_PUT)
        else:
            allowed = (EventType.SELL_CALL,)
        option, reason = self._find_option(event, allowed)
        if option is None:
            self._diagnose(DiagnosticCode.UNMATCHED_EVENT, event, reason)
            return
        if option.is_put:
            option.contracts_open -= self._contracts_to_resolve(event, option)
            return
        self._uncover(event, option, "buy_to_close", event.premium)

    def _call_assigned(self, event: CallAssigned) -> None:
        call, reason = self._find_option(event, (EventType.SELL_CALL,))
        if call is None:
            self._diagnose(DiagnosticCode.UNMATCHED_EVENT, event, reason)
            return
        covered = self._covered_lots(call)
        if not covered:
            self._diagnose(DiagnosticCode.UNMATCHED_EVENT, event, f"call {call.event_id} covers no open lot")
            return

        contracts = self._contracts_to_resolve(event, call)
        to_close = covered[:contracts]
        if len(to_close) < contracts:
            self._diagnose(
                DiagnosticCode.PARTIAL_MATCH,
                event,
                f"{contracts} contracts assigned, only {len(to_close)} covered lots",
            )
        call.contracts_open -= contracts
        fee_share = event.fees / len(to_close)
        for lot in to_close:
            call.covered_lots.remove(lot.lot_number)
            self._close_lot(lot, "call_assigned", event, call.strike, fee_share)

    def _fee(self, event: Fee) -> None:
        logger.debug(f"Standalone fee {event.fees} on {event.trade_date}")


def build_lots(events: Iterable[WheelEvent]) -> LotLedger:
    """Replay events into a fresh LotLedger."""
    return LotBuilder().build(events)
