"""Event store: SQLAlchemy persistence for cycles and their event logs.

The store is append-only for events. There is no update or delete;
corrections are recorded as new events.
"""

import logging
from datetime import date
from typing import Any, Mapping, Optional, Union

from sqlalchemy.orm import Session

from .database import WheelCycleRecord, WheelEventRecord
from .events import WheelCycle, WheelEvent, parse_event
from .exceptions import CycleNotFoundError, EventValidationError, LedgerError
from .state import CycleStatus

logger = logging.getLogger(__name__)

# Event fields stored in their own column, NULL when the type does not use them
OPTIONAL_EVENT_COLUMNS = ("quantity_shares", "contracts", "price", "strike", "premium", "expiration")


class EventStore:
    """Repository for wheel cycles and events.

    Attributes:
        db: SQLAlchemy database session
    """

    def __init__(self, db: Session):
        """Initialize the event store.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def create_cycle(self, ticker: str, start_date: date, notes: Optional[str] = None) -> WheelCycle:
        """Start tracking a ticker.

        Args:
            ticker: Stock ticker symbol
            start_date: Date tracking starts
            notes: Optional free-text notes

        Returns:
            The stored cycle with its id assigned
        """
        cycle = WheelCycle(ticker=ticker, start_date=start_date, notes=notes)
        record = WheelCycleRecord(
            ticker=cycle.ticker,
            start_date=cycle.start_date,
            status=cycle.status.value,
            notes=cycle.notes,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        logger.info(f"Created cycle: {record.id} - {record.ticker} from {record.start_date}")
        return self._to_cycle(record)

    def get_cycle(self, cycle_id: int) -> Optional[WheelCycle]:
        """Get a cycle by id, None if it does not exist."""
        record = self._cycle_record(cycle_id)
        return self._to_cycle(record) if record else None

    def list_cycles(
        self, ticker: Optional[str] = None, status: Optional[CycleStatus] = None
    ) -> list[WheelCycle]:
        """List cycles, oldest first.

        Args:
            ticker: Only cycles for this ticker
            status: Only cycles in this status

        Returns:
            List of cycles
        """
        query = self.db.query(WheelCycleRecord)
        if ticker is not None:
            query = query.filter(WheelCycleRecord.ticker == ticker.upper())
        if status is not None:
            query = query.filter(WheelCycleRecord.status == status.value)
        query = query.order_by(WheelCycleRecord.start_date.asc(), WheelCycleRecord.id.asc())
        return [self._to_cycle(record) for record in query.all()]

    def close_cycle(self, cycle_id: int, end_date: date) -> WheelCycle:
        """Mark a cycle closed.

        Raises:
            CycleNotFoundError: If the cycle does not exist
            LedgerError: If the cycle is already closed
        """
        record = self._require_cycle(cycle_id)
        if record.status == CycleStatus.CLOSED.value:
            raise LedgerError(f"Cycle {cycle_id} is already closed")
        if end_date < record.start_date:
            raise LedgerError(f"End date {end_date} is before cycle start {record.start_date}")

        record.status = CycleStatus.CLOSED.value
        record.end_date = end_date
        self.db.commit()
        self.db.refresh(record)

        logger.info(f"Closed cycle: {record.id} - {record.ticker} on {end_date}")
        return self._to_cycle(record)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def append_event(self, cycle_id: int, event: Union[WheelEvent, Mapping[str, Any]]) -> WheelEvent:
        """Validate and append an event to a cycle's log.

        Args:
            cycle_id: Target cycle
            event: A validated event model, or a raw payload for parse_event

        Returns:
            The stored event with its id and cycle id assigned

        Raises:
            CycleNotFoundError: If the cycle does not exist
            LedgerError: If the cycle is closed
            EventValidationError: If the payload is malformed, or it links to
                an event outside this cycle
        """
        record_cycle = self._require_cycle(cycle_id)
        if record_cycle.status == CycleStatus.CLOSED.value:
            raise LedgerError(f"Cycle {cycle_id} is closed; no new events can be recorded")

        if isinstance(event, Mapping):
            event = parse_event(event)

        if event.link_event_id is not None:
            linked = self.db.query(WheelEventRecord).filter(WheelEventRecord.id == event.link_event_id).first()
            if linked is None or linked.cycle_id != cycle_id:
                raise EventValidationError(
                    f"link_event_id {event.link_event_id} is not an event in cycle {cycle_id}"
                )

        data = event.model_dump(exclude={"id", "cycle_id"})
        record = WheelEventRecord(
            cycle_id=cycle_id,
            event_type=data.pop("event_type"),
            trade_date=data.pop("trade_date"),
            fees=data.pop("fees"),
            link_event_id=data.pop("link_event_id"),
            notes=data.pop("notes"),
            **{column: data.get(column) for column in OPTIONAL_EVENT_COLUMNS},
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        logger.info(
            f"Recorded event: {record.id} - cycle {cycle_id} {record.event_type} on {record.trade_date}"
        )
        return self._to_event(record)

    def get_event(self, event_id: int) -> Optional[WheelEvent]:
        """Get an event by id, None if it does not exist."""
        record = self.db.query(WheelEventRecord).filter(WheelEventRecord.id == event_id).first()
        return self._to_event(record) if record else None

    def list_events(self, cycle_id: int) -> list[WheelEvent]:
        """List a cycle's events by trade date, then insertion order.

        Raises:
            CycleNotFoundError: If the cycle does not exist
        """
        self._require_cycle(cycle_id)
        records = (
            self.db.query(WheelEventRecord)
            .filter(WheelEventRecord.cycle_id == cycle_id)
            .order_by(WheelEventRecord.trade_date.asc(), WheelEventRecord.id.asc())
            .all()
        )
        return [self._to_event(record) for record in records]

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def _cycle_record(self, cycle_id: int) -> Optional[WheelCycleRecord]:
        return self.db.query(WheelCycleRecord).filter(WheelCycleRecord.id == cycle_id).first()

    def _require_cycle(self, cycle_id: int) -> WheelCycleRecord:
        record = self._cycle_record(cycle_id)
        if record is None:
            raise CycleNotFoundError(f"Cycle not found: {cycle_id}")
        return record

    @staticmethod
    def _to_cycle(record: WheelCycleRecord) -> WheelCycle:
        return WheelCycle(
            id=record.id,
            ticker=record.ticker,
            start_date=record.start_date,
            status=CycleStatus(record.status),
            end_date=record.end_date,
            notes=record.notes,
        )

    @staticmethod
    def _to_event(record: WheelEventRecord) -> WheelEvent:
        payload: dict[str, Any] = {
            "id": record.id,
            "cycle_id": record.cycle_id,
            "event_type": record.event_type,
            "trade_date": record.trade_date,
            "fees": record.fees,
            "link_event_id": record.link_event_id,
            "notes": record.notes,
        }
        for column in OPTIONAL_EVENT_COLUMNS:
            value = getattr(record, column)
            if value is not None:
                payload[column] = value
        return parse_event(payload)
