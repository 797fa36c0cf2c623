"""Pytest fixtures for wheel ledger tests.

This module provides an in-memory event store, a manager wired to it,
and a factory for building events with ids already assigned.
"""

from datetime import date
from decimal import Decimal
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from src.wheel_ledger.database import get_session_factory, init_engine
from src.wheel_ledger.detection import ConfidenceThresholds
from src.wheel_ledger.events import (
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
)
from src.wheel_ledger.manager import LedgerManager
from src.wheel_ledger.prices import StaticPriceSource
from src.wheel_ledger.repository import EventStore


def d(day: int, month: int = 1, year: int = 2025) -> date:
    """Shorthand for trade dates in January 2025."""
    return date(year, month, day)


class EventFactory:
    """Builds events with sequential ids, as the store would assign them."""

    def __init__(self) -> None:
        self.next_id = 1

    def _id(self) -> int:
        event_id = self.next_id
        self.next_id += 1
        return event_id

    def sell_put(self, day: date, strike, premium, contracts: int = 1, fees=0, **kw) -> SellPut:
        return SellPut(
            id=self._id(), trade_date=day, strike=Decimal(str(strike)),
            premium=Decimal(str(premium)), contracts=contracts, fees=Decimal(str(fees)), **kw
        )

    def put_expired(self, day: date, **kw) -> PutExpired:
        return PutExpired(id=self._id(), trade_date=day, **kw)

    def put_assigned(self, day: date, **kw) -> PutAssigned:
        return PutAssigned(id=self._id(), trade_date=day, **kw)

    def buy(self, day: date, shares: int, price, fees=0, **kw) -> OutrightPurchase:
        return OutrightPurchase(
            id=self._id(), trade_date=day, quantity_shares=shares,
            price=Decimal(str(price)), fees=Decimal(str(fees)), **kw
        )

    def sell(self, day: date, shares: int, price, fees=0, **kw) -> SellShares:
        return SellShares(
            id=self._id(), trade_date=day, quantity_shares=shares,
            price=Decimal(str(price)), fees=Decimal(str(fees)), **kw
        )

    def sell_call(self, day: date, strike, premium, contracts: int = 1, fees=0, **kw) -> SellCall:
        return SellCall(
            id=self._id(), trade_date=day, strike=Decimal(str(strike)),
            premium=Decimal(str(premium)), contracts=contracts, fees=Decimal(str(fees)), **kw
        )

    def call_expired(self, day: date, **kw) -> CallExpired:
        return CallExpired(id=self._id(), trade_date=day, **kw)

    def buy_to_close(self, day: date, premium, fees=0, **kw) -> BuyToClose:
        return BuyToClose(
            id=self._id(), trade_date=day, premium=Decimal(str(premium)), fees=Decimal(str(fees)), **kw
        )

    def call_assigned(self, day: date, fees=0, **kw) -> CallAssigned:
        return CallAssigned(id=self._id(), trade_date=day, fees=Decimal(str(fees)), **kw)

    def fee(self, day: date, amount) -> Fee:
        return Fee(id=self._id(), trade_date=day, fees=Decimal(str(amount)))


@pytest.fixture
def ev() -> EventFactory:
    """Event factory with ids starting at 1."""
    return EventFactory()


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """Create an in-memory SQLite session, destroyed after each test."""
    engine = init_engine(":memory:")
    session = get_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(test_db: Session) -> EventStore:
    return EventStore(test_db)


@pytest.fixture
def prices() -> StaticPriceSource:
    return StaticPriceSource({"AAPL": 52})


@pytest.fixture
def manager(store: EventStore, prices: StaticPriceSource) -> LedgerManager:
    """Manager over the in-memory store with a static AAPL price."""
    return LedgerManager(store, price_source=prices, thresholds=ConfidenceThresholds())


@pytest.fixture
def day():
    """The ``d`` date helper as a fixture."""
    return d


def lot_summary(lots, with_numbers: bool = True) -> list[tuple]:
    """Comparable tuple view of lots."""
    return [
        (
            lot.lot_number if with_numbers else None,
            lot.shares,
            lot.cost_basis,
            lot.status,
            lot.net_premium,
            lot.realized_pl,
        )
        for lot in lots
    ]


@pytest.fixture
def summarize():
    return lot_summary
