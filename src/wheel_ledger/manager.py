"""
Main orchestrator for wheel ledger operations.

This module provides the LedgerManager class which ties the event
store, lot builder, metrics calculator, phase classifier, strategy
detector and tax-lot splitter together behind one set of operations.
Everything it returns is re-derived from the event log on each call.
"""

import logging
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Union

from .config import LedgerConfig
from .database import get_session_factory, init_engine
from .detection import ConfidenceThresholds, StrategyDetector
from .events import BuyToClose, SellCall, WheelCycle, WheelEvent, parse_event
from .exceptions import CycleNotFoundError, UnmatchedEventError
from .lots import LotBuilder
from .metrics import compute_metrics
from .models import BrokerPosition, DetectionResult, LotLedger, Metrics, PhaseSummary, TaxLot
from .money import ZERO, Number, to_decimal
from .phases import CycleHistory, classify_phases
from .prices import PriceSource, StaticPriceSource
from .repository import EventStore
from .state import CycleStatus
from .tax_lots import split_into_lots

logger = logging.getLogger(__name__)


class LedgerManager:
    """
    Main orchestrator for wheel ledger operations.

    Example:
        manager = LedgerManager.from_config(load_config())
        cycle = manager.start_cycle("AAPL", date(2025, 1, 2))
        manager.record_event(cycle.id, {"event_type": "SELL_PUT", ...})
        ledger = manager.rebuild_lots(cycle.id)
        metrics = manager.get_metrics(cycle.id)
    """

    def __init__(
        self,
        store: EventStore,
        price_source: Optional[PriceSource] = None,
        thresholds: Optional[ConfidenceThresholds] = None,
    ):
        """
        Initialize the ledger manager.

        Args:
            store: Event store for cycles and events
            price_source: Optional source of current share prices
            thresholds: Strategy detector confidence thresholds
        """
        self.store = store
        self.price_source = price_source
        self.detector = StrategyDetector(thresholds)

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "LedgerManager":
        """Build a manager with a SQLite store and static prices from configuration."""
        engine = init_engine(config.database_path)
        session = get_session_factory(engine)()
        return cls(
            EventStore(session),
            price_source=StaticPriceSource(config.prices),
            thresholds=ConfidenceThresholds(
                high=config.high_confidence, medium=config.medium_confidence
            ),
        )

    # --- Cycle Operations ---

    def start_cycle(self, ticker: str, start_date: date, notes: Optional[str] = None) -> WheelCycle:
        """Start tracking a ticker in a new cycle."""
        cycle = self.store.create_cycle(ticker, start_date, notes)
        logger.info(f"Started cycle {cycle.id} for {cycle.ticker}")
        return cycle

    def get_cycle(self, cycle_id: int) -> WheelCycle:
        """
        Get a cycle by id.

        Raises:
            CycleNotFoundError: If the cycle does not exist
        """
        cycle = self.store.get_cycle(cycle_id)
        if cycle is None:
            raise CycleNotFoundError(f"Cycle not found: {cycle_id}")
        return cycle

    def list_cycles(
        self, ticker: Optional[str] = None, status: Optional[CycleStatus] = None
    ) -> list[WheelCycle]:
        return self.store.list_cycles(ticker=ticker, status=status)

    def close_cycle(self, cycle_id: int, end_date: date) -> WheelCycle:
        """
        Close a cycle once it is fully exited.

        Open lots or options are logged as a warning but do not block
        closing; the ledger still reports them.
        """
        ledger = self.rebuild_lots(cycle_id)
        if ledger.open_lots or ledger.open_options:
            logger.warning(
                f"Closing cycle {cycle_id} with {ledger.shares_owned} shares and "
                f"{len(ledger.open_options)} options still open"
            )
        return self.store.close_cycle(cycle_id, end_date)

    # --- Event Recording ---

    def record_event(self, cycle_id: int, event: Union[WheelEvent, Mapping[str, Any]]) -> WheelEvent:
        """
        Validate and append an event.

        Raises:
            CycleNotFoundError: If the cycle does not exist
            EventValidationError: If the event is malformed
        """
        return self.store.append_event(cycle_id, event)

    def list_events(self, cycle_id: int) -> list[WheelEvent]:
        return self.store.list_events(cycle_id)

    def roll_call(
        self,
        cycle_id: int,
        trade_date: date,
        close_premium: Number,
        new_strike: Number,
        new_premium: Number,
        contracts: Optional[int] = None,
        expiration: Optional[date] = None,
        link_event_id: Optional[int] = None,
        fees: Number = ZERO,
    ) -> tuple[WheelEvent, WheelEvent]:
        """
        Roll a covered call: buy the open call back and sell a new one.

        Appends a BUY_TO_CLOSE linked to the rolled call and a SELL_CALL
        linked to that close, both on ``trade_date``, so the new call
        covers the lots the old one released.

        Args:
            cycle_id: Cycle holding the call
            trade_date: Date of the roll
            close_premium: Debit per share paid to close the old call
            new_strike: Strike of the new call
            new_premium: Premium per share received for the new call
            contracts: Contracts to roll (default: all open on the old call)
            expiration: Expiration of the new call
            link_event_id: SELL_CALL to roll (default: oldest open call)
            fees: Fees charged on the closing leg

        Returns:
            (buy_to_close, sell_call) as stored

        Raises:
            UnmatchedEventError: If there is no open call to roll
        """
        ledger = self.rebuild_lots(cycle_id)
        calls = ledger.open_calls
        if link_event_id is not None:
            calls = [call for call in calls if call.event_id == link_event_id]
        if not calls:
            raise UnmatchedEventError(f"No open call to roll in cycle {cycle_id}")
        call = calls[0]
        count = contracts or call.contracts_open

        closing = BuyToClose(
            trade_date=trade_date,
            contracts=count,
            premium=to_decimal(close_premium),
            fees=to_decimal(fees),
            link_event_id=call.event_id,
            notes="roll: close",
        )
        # Validate the opening leg before anything is written
        parse_event(
            {
                "event_type": "SELL_CALL",
                "trade_date": trade_date,
                "contracts": count,
                "strike": to_decimal(new_strike),
                "premium": to_decimal(new_premium),
                "expiration": expiration,
            }
        )

        stored_close = self.store.append_event(cycle_id, closing)
        opening = SellCall(
            trade_date=trade_date,
            contracts=count,
            strike=to_decimal(new_strike),
            premium=to_decimal(new_premium),
            expiration=expiration,
            link_event_id=stored_close.id,
            notes="roll: open",
        )
        stored_open = self.store.append_event(cycle_id, opening)
        logger.info(f"Rolled call {call.event_id} in cycle {cycle_id} to strike {new_strike}")
        return stored_close, stored_open

    # --- Derived Views ---

    def rebuild_lots(self, cycle_id: int) -> LotLedger:
        """Re-derive a cycle's lots from its event log. Safe to call repeatedly."""
        return LotBuilder().build(self.store.list_events(cycle_id))

    def get_metrics(self, cycle_id: int, current_price: Optional[Number] = None) -> Metrics:
        """
        Compute a cycle's metrics.

        Args:
            cycle_id: Cycle identifier
            current_price: Price override; when None the price source is asked

        Raises:
            CycleNotFoundError: If the cycle does not exist
        """
        cycle = self.get_cycle(cycle_id)
        events = self.store.list_events(cycle_id)
        ledger = LotBuilder().build(events)

        if current_price is None and self.price_source is not None:
            current_price = self.price_source.get_current_price(cycle.ticker)

        return compute_metrics(ledger.lots, events, current_price, ledger.open_collateral)

    def get_phase_summary(self, ticker: str) -> PhaseSummary:
        """Current phase and lifetime per-phase earnings across all of a ticker's cycles."""
        histories = []
        for cycle in self.store.list_cycles(ticker=ticker):
            events = self.store.list_events(cycle.id)
            histories.append(CycleHistory(events=events, ledger=LotBuilder().build(events)))
        return classify_phases(ticker, histories)

    def detect_strategies(self, positions: Iterable[BrokerPosition]) -> list[DetectionResult]:
        return self.detector.detect(positions)

    def split_tax_lots(
        self, total_shares: Number, average_price: Number, current_price: Optional[Number] = None
    ) -> list[TaxLot]:
        return split_into_lots(total_shares, average_price, current_price)
