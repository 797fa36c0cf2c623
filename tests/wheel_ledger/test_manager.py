"""Tests for the ledger manager (integration tests)."""

import logging
from datetime import date
from decimal import Decimal

import pytest

from src.wheel_ledger.config import LedgerConfig
from src.wheel_ledger.exceptions import CycleNotFoundError, StaleDataWarning, UnmatchedEventError
from src.wheel_ledger.manager import LedgerManager
from src.wheel_ledger.models import BrokerPosition
from src.wheel_ledger.state import CycleStatus, EventType, LotStatus, StrategyType, WheelPhase


def record(manager: LedgerManager, cycle_id: int, event_type: str, trade_date: date, **fields):
    return manager.record_event(cycle_id, {"event_type": event_type, "trade_date": trade_date, **fields})


@pytest.fixture
def assigned_cycle(manager: LedgerManager):
    """AAPL cycle holding 100 shares from an assigned 50 put (basis 48)."""
    cycle = manager.start_cycle("AAPL", date(2025, 1, 2))
    put = record(manager, cycle.id, "SELL_PUT", date(2025, 1, 2), contracts=1, strike=50, premium=2)
    record(manager, cycle.id, "PUT_ASSIGNED", date(2025, 1, 17), link_event_id=put.id)
    return cycle


class TestCycleOperations:
    """Tests for cycle lifecycle through the manager."""

    def test_get_missing_cycle(self, manager: LedgerManager) -> None:
        with pytest.raises(CycleNotFoundError):
            manager.get_cycle(404)

    def test_close_cycle_with_open_lots_warns(self, manager: LedgerManager, assigned_cycle, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            closed = manager.close_cycle(assigned_cycle.id, date(2025, 3, 1))

        assert closed.status == CycleStatus.CLOSED
        assert "100 shares" in caplog.text
        assert manager.list_cycles(status=CycleStatus.OPEN) == []


class TestDerivedViews:
    """Tests for rebuild_lots, get_metrics and get_phase_summary."""

    def test_rebuild_lots_is_idempotent(self, manager: LedgerManager, assigned_cycle) -> None:
        first = manager.rebuild_lots(assigned_cycle.id)
        second = manager.rebuild_lots(assigned_cycle.id)

        assert first == second
        assert first.lots[0].cost_basis == Decimal("48")

    def test_metrics_use_price_source(self, manager: LedgerManager, assigned_cycle) -> None:
        metrics = manager.get_metrics(assigned_cycle.id)

        assert metrics.current_price == Decimal("52")
        assert metrics.unrealized_pl == Decimal("200.00")
        assert metrics.net_options_cashflow == Decimal("200.00")

    def test_metrics_price_override(self, manager: LedgerManager, assigned_cycle) -> None:
        metrics = manager.get_metrics(assigned_cycle.id, current_price=Decimal("47"))

        assert metrics.unrealized_pl == Decimal("-300.00")

    def test_metrics_without_price(self, manager: LedgerManager) -> None:
        cycle = manager.start_cycle("MSFT", date(2025, 1, 2))
        record(manager, cycle.id, "OUTRIGHT_PURCHASE", date(2025, 1, 2), quantity_shares=100, price=400)

        with pytest.warns(StaleDataWarning):
            metrics = manager.get_metrics(cycle.id)

        assert metrics.unrealized_pl is None

    def test_phase_summary(self, manager: LedgerManager, assigned_cycle) -> None:
        record(manager, assigned_cycle.id, "SELL_CALL", date(2025, 1, 21), contracts=1, strike=55, premium=1)

        summary = manager.get_phase_summary("aapl")

        assert summary.current_phase == WheelPhase.COVERED_CALL
        assert summary.lifetime_earnings["phase1"] == Decimal("200.00")
        assert summary.lifetime_earnings["phase3"] == Decimal("100.00")

    def test_detect_and_split(self, manager: LedgerManager) -> None:
        results = manager.detect_strategies(
            [BrokerPosition(symbol="AAPL", instrument_type="EQUITY", quantity=Decimal("250"))]
        )
        lots = manager.split_tax_lots(250, 10, 12)

        assert results[0].strategy == StrategyType.NAKED_STOCK
        assert len(lots) == 3


class TestRollCall:
    """Tests for rolling a covered call."""

    def test_roll_recovers_released_lot(self, manager: LedgerManager, assigned_cycle) -> None:
        call = record(manager, assigned_cycle.id, "SELL_CALL", date(2025, 1, 21), contracts=1, strike=55, premium=1)

        closing, opening = manager.roll_call(
            assigned_cycle.id,
            date(2025, 2, 14),
            close_premium=Decimal("0.40"),
            new_strike=Decimal("57"),
            new_premium=Decimal("1.20"),
            expiration=date(2025, 3, 21),
        )

        assert closing.kind == EventType.BUY_TO_CLOSE
        assert closing.link_event_id == call.id
        assert opening.kind == EventType.SELL_CALL
        assert opening.link_event_id == closing.id

        ledger = manager.rebuild_lots(assigned_cycle.id)
        lot = ledger.lots[0]
        assert lot.status == LotStatus.OPEN_COVERED
        assert lot.coverage.call_event_id == opening.id
        assert lot.coverage.strike == Decimal("57")
        # 100 - 40 + 120
        assert lot.net_premium == Decimal("180")
        assert ledger.errors == []

    def test_roll_without_open_call(self, manager: LedgerManager, assigned_cycle) -> None:
        with pytest.raises(UnmatchedEventError):
            manager.roll_call(
                assigned_cycle.id,
                date(2025, 2, 14),
                close_premium=1,
                new_strike=55,
                new_premium=1,
            )
        assert len(manager.list_events(assigned_cycle.id)) == 2


class TestFromConfig:
    """Tests for building a manager from configuration."""

    def test_from_config(self, tmp_path) -> None:
        config = LedgerConfig(database_path=str(tmp_path / "ledger.db"), prices={"aapl": 190.5})

        manager = LedgerManager.from_config(config)

        assert manager.price_source.get_current_price("AAPL") == Decimal("190.5")
        assert manager.detector.thresholds.high == 1.0
        assert manager.list_cycles() == []
