"""Tests for event ingestion models."""

from datetime import date
from decimal import Decimal

import pytest

from src.wheel_ledger.events import (
    OutrightPurchase,
    SellCall,
    SellPut,
    SellShares,
    WheelCycle,
    parse_event,
    sort_events,
)
from src.wheel_ledger.exceptions import EventValidationError, InvalidQuantityError, NegativePriceError
from src.wheel_ledger.state import CycleStatus, EventType


class TestParseEvent:
    """Tests for parse_event."""

    def test_sell_put(self) -> None:
        event = parse_event(
            {
                "event_type": "SELL_PUT",
                "trade_date": date(2025, 1, 2),
                "contracts": 2,
                "strike": 50,
                "premium": "2.00",
                "expiration": "2025-01-17",
            }
        )

        assert isinstance(event, SellPut)
        assert event.kind == EventType.SELL_PUT
        assert event.contracts == -2
        assert event.contract_count == 2
        assert event.premium == Decimal("2.00")
        assert event.expiration == date(2025, 1, 17)
        assert event.collateral == Decimal("10000")

    def test_accepts_enum_event_type(self) -> None:
        event = parse_event({"event_type": EventType.FEE, "trade_date": date(2025, 1, 2), "fees": 1})

        assert event.kind == EventType.FEE

    def test_share_quantities_are_signed_by_type(self) -> None:
        buy = parse_event(
            {"event_type": "OUTRIGHT_PURCHASE", "trade_date": date(2025, 1, 2), "quantity_shares": 100, "price": 10}
        )
        sell = parse_event(
            {"event_type": "SELL_SHARES", "trade_date": date(2025, 1, 3), "quantity_shares": 100, "price": 11}
        )

        assert isinstance(buy, OutrightPurchase)
        assert buy.quantity_shares == 100
        assert isinstance(sell, SellShares)
        assert sell.quantity_shares == -100
        assert sell.share_count == 100

    def test_resolution_contracts_are_optional(self) -> None:
        event = parse_event({"event_type": "CALL_EXPIRED", "trade_date": date(2025, 1, 17)})

        assert event.contracts is None
        assert event.contract_count is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"event_type": "SELL_PUT", "contracts": 1, "strike": -50, "premium": 2},
            {"event_type": "SELL_CALL", "contracts": 1, "strike": 50, "premium": -1},
            {"event_type": "OUTRIGHT_PURCHASE", "quantity_shares": 100, "price": 0},
            {"event_type": "FEE", "fees": 0},
        ],
    )
    def test_negative_prices_rejected(self, payload: dict) -> None:
        with pytest.raises(NegativePriceError):
            parse_event({"trade_date": date(2025, 1, 2), **payload})

    @pytest.mark.parametrize(
        "payload",
        [
            {"event_type": "SELL_PUT", "contracts": 0, "strike": 50, "premium": 2},
            {"event_type": "SELL_SHARES", "quantity_shares": 0, "price": 10},
            {"event_type": "OUTRIGHT_PURCHASE", "quantity_shares": 1.5, "price": 10},
            {"event_type": "OUTRIGHT_PURCHASE", "quantity_shares": -100, "price": 10},
            {"event_type": "PUT_ASSIGNED", "contracts": 0},
        ],
    )
    def test_invalid_quantities_rejected(self, payload: dict) -> None:
        with pytest.raises(InvalidQuantityError):
            parse_event({"trade_date": date(2025, 1, 2), **payload})

    def test_unknown_event_type(self) -> None:
        with pytest.raises(EventValidationError):
            parse_event({"event_type": "DIVIDEND", "trade_date": date(2025, 1, 2)})

    def test_unexpected_field_rejected(self) -> None:
        with pytest.raises(EventValidationError) as exc_info:
            parse_event({"event_type": "FEE", "trade_date": date(2025, 1, 2), "fees": 1, "strike": 10})

        assert not isinstance(exc_info.value, NegativePriceError)

    def test_missing_field_message_names_field(self) -> None:
        with pytest.raises(EventValidationError, match="strike"):
            parse_event({"event_type": "SELL_CALL", "trade_date": date(2025, 1, 2), "contracts": 1, "premium": 1})

    def test_validation_errors_are_value_errors(self) -> None:
        with pytest.raises(ValueError):
            parse_event({"event_type": "SELL_CALL", "trade_date": date(2025, 1, 2)})

    def test_events_are_immutable(self) -> None:
        event = SellCall(trade_date=date(2025, 1, 2), contracts=1, strike=Decimal("55"), premium=Decimal("1"))

        with pytest.raises(ValueError):
            event.strike = Decimal("60")


class TestSortEvents:
    """Tests for replay ordering."""

    def test_sorts_by_trade_date_keeping_ties(self) -> None:
        late = parse_event({"event_type": "FEE", "trade_date": date(2025, 1, 9), "fees": 1, "notes": "late"})
        first = parse_event({"event_type": "FEE", "trade_date": date(2025, 1, 2), "fees": 1, "notes": "a"})
        second = parse_event({"event_type": "FEE", "trade_date": date(2025, 1, 2), "fees": 1, "notes": "b"})

        ordered = sort_events([late, first, second])

        assert [e.notes for e in ordered] == ["a", "b", "late"]


class TestWheelCycle:
    """Tests for the cycle model."""

    def test_ticker_normalized(self) -> None:
        cycle = WheelCycle(ticker=" aapl ", start_date=date(2025, 1, 2))

        assert cycle.ticker == "AAPL"
        assert cycle.status == CycleStatus.OPEN
        assert cycle.is_open

    def test_blank_ticker_rejected(self) -> None:
        with pytest.raises(ValueError):
            WheelCycle(ticker="   ", start_date=date(2025, 1, 2))
