"""Tests for the lot status state machine."""

import pytest

from src.wheel_ledger.state import (
    LOT_TRANSITIONS,
    DiagnosticCode,
    LotStatus,
    WheelPhase,
    can_transition,
    get_next_status,
    get_valid_actions,
)


class TestLotTransitions:
    """Tests for lot status transitions."""

    @pytest.mark.parametrize(
        "status,action,expected",
        [
            (LotStatus.CASH_RESERVED, "put_assigned", LotStatus.OPEN_UNCOVERED),
            (LotStatus.OPEN_UNCOVERED, "sell_call", LotStatus.OPEN_COVERED),
            (LotStatus.OPEN_UNCOVERED, "sell_shares", LotStatus.CLOSED_SOLD),
            (LotStatus.OPEN_COVERED, "call_expired", LotStatus.OPEN_UNCOVERED),
            (LotStatus.OPEN_COVERED, "buy_to_close", LotStatus.OPEN_UNCOVERED),
            (LotStatus.OPEN_COVERED, "call_assigned", LotStatus.CLOSED_CALLED_AWAY),
            (LotStatus.OPEN_COVERED, "sell_shares", LotStatus.CLOSED_SOLD),
        ],
    )
    def test_valid_transitions(self, status: LotStatus, action: str, expected: LotStatus) -> None:
        assert can_transition(status, action)
        assert get_next_status(status, action) == expected

    def test_uncovered_lot_cannot_be_called_away(self) -> None:
        assert not can_transition(LotStatus.OPEN_UNCOVERED, "call_assigned")
        with pytest.raises(ValueError, match="Invalid action 'call_assigned'"):
            get_next_status(LotStatus.OPEN_UNCOVERED, "call_assigned")

    @pytest.mark.parametrize("status", [LotStatus.CLOSED_SOLD, LotStatus.CLOSED_CALLED_AWAY])
    def test_closed_states_are_terminal(self, status: LotStatus) -> None:
        assert get_valid_actions(status) == []
        assert status.is_closed
        assert not status.is_open

    def test_every_status_has_an_entry(self) -> None:
        assert set(LOT_TRANSITIONS) == set(LotStatus)


class TestEnums:
    """Tests for enum helpers."""

    def test_phase_keys(self) -> None:
        assert [phase.key for phase in WheelPhase] == ["phase1", "phase2", "phase3", "phase4"]

    def test_diagnostic_severity(self) -> None:
        assert DiagnosticCode.UNMATCHED_EVENT.severity == "error"
        assert DiagnosticCode.INSUFFICIENT_COLLATERAL.severity == "error"
        assert DiagnosticCode.COVERAGE_CANCELLED.severity == "warning"
        assert DiagnosticCode.PARTIAL_MATCH.severity == "warning"
