"""Tests for the phase classifier."""

from decimal import Decimal

from src.wheel_ledger.lots import build_lots
from src.wheel_ledger.phases import CycleHistory, active_phases, classify_phases, phase_earnings
from src.wheel_ledger.state import WheelPhase

from conftest import d


def history(events) -> CycleHistory:
    return CycleHistory(events=events, ledger=build_lots(events))


class TestActivePhases:
    """Tests for the current phase of a single ledger."""

    def test_open_put_is_phase_one(self, ev) -> None:
        ledger = build_lots([ev.sell_put(d(1), 50, 2)])

        assert active_phases(ledger) == [WheelPhase.CASH_SECURED_PUT]

    def test_uncovered_shares_are_phase_two(self, ev) -> None:
        ledger = build_lots([ev.sell_put(d(1), 50, 2), ev.put_assigned(d(17))])

        assert active_phases(ledger) == [WheelPhase.SHARES_ACQUIRED]

    def test_covered_call_takes_precedence(self, ev) -> None:
        ledger = build_lots(
            [
                ev.buy(d(1), 200, 50),
                ev.sell_call(d(2), 55, 1),
                ev.sell_put(d(3), 45, 1),
            ]
        )

        # One lot is still uncovered, but phase 2 only applies with no coverage at all
        assert active_phases(ledger) == [WheelPhase.COVERED_CALL, WheelPhase.CASH_SECURED_PUT]

    def test_nothing_open_has_no_phase(self, ev) -> None:
        ledger = build_lots([ev.sell_put(d(1), 50, 2), ev.put_expired(d(17))])

        assert active_phases(ledger) == []


class TestPhaseEarnings:
    """Tests for per-phase earnings attribution."""

    def test_full_wheel_attribution(self, ev) -> None:
        events = [
            ev.sell_put(d(1), 50, 2),
            ev.put_assigned(d(17)),
            ev.sell_call(d(21), 55, 1),
            ev.call_assigned(d(28), fees=5),
        ]

        earnings = phase_earnings(history(events))

        assert earnings == {
            "phase1": Decimal("200.00"),
            "phase2": Decimal("0.00"),
            "phase3": Decimal("100.00"),
            "phase4": Decimal("495.00"),
        }

    def test_phases_sum_to_realized_total(self, ev) -> None:
        """The put premium sits in phase 1 only, not again in phase 4."""
        events = [
            ev.sell_put(d(1), 50, 2),
            ev.put_assigned(d(17)),
            ev.sell_call(d(21), 55, 1),
            ev.call_assigned(d(28)),
        ]

        earnings = phase_earnings(history(events))

        assert earnings == {
            "phase1": Decimal("200.00"),
            "phase2": Decimal("0.00"),
            "phase3": Decimal("100.00"),
            "phase4": Decimal("500.00"),
        }
        assert sum(earnings.values()) == Decimal("800.00")

    def test_shares_sold_outright_count_as_phase_two(self, ev) -> None:
        events = [ev.buy(d(1), 100, 10), ev.sell(d(2), 100, 12, fees=1)]

        earnings = phase_earnings(history(events))

        assert earnings["phase2"] == Decimal("199.00")
        assert earnings["phase4"] == Decimal("0.00")

    def test_call_close_debit_reduces_phase_three(self, ev) -> None:
        events = [
            ev.buy(d(1), 100, 50),
            ev.sell_call(d(2), 55, 1),
            ev.buy_to_close(d(9), Decimal("0.40")),
        ]

        assert phase_earnings(history(events))["phase3"] == Decimal("60.00")


class TestClassifyPhases:
    """Tests for the ticker-level summary."""

    def test_summary_across_cycles(self, ev) -> None:
        closed = [
            ev.sell_put(d(1), 50, 2),
            ev.put_assigned(d(17)),
            ev.sell_call(d(21), 55, 1),
            ev.call_assigned(d(28)),
        ]
        current = [ev.sell_put(d(3, 2), 52, Decimal("1.5"))]

        summary = classify_phases("aapl", [history(closed), history(current)])

        assert summary.ticker == "AAPL"
        assert summary.cycles == 2
        assert summary.current_phase == WheelPhase.CASH_SECURED_PUT
        assert summary.active_phases == [WheelPhase.CASH_SECURED_PUT]
        assert summary.last_called_away == d(28)
        assert summary.lifetime_earnings["phase1"] == Decimal("350.00")
        assert summary.lifetime_earnings["phase4"] == Decimal("500.00")
        assert summary.total_earnings == Decimal("950.00")

    def test_no_history(self) -> None:
        summary = classify_phases("MSFT", [])

        assert summary.current_phase is None
        assert summary.cycles == 0
        assert summary.last_called_away is None
        assert summary.total_earnings == Decimal("0")
