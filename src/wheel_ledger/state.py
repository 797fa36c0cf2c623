"""State machine enums for the wheel lot ledger."""

from enum import Enum


class EventType(Enum):
    """Trade actions recorded in a cycle's event log."""

    SELL_PUT = "SELL_PUT"
    PUT_EXPIRED = "PUT_EXPIRED"
    PUT_ASSIGNED = "PUT_ASSIGNED"
    OUTRIGHT_PURCHASE = "OUTRIGHT_PURCHASE"
    SELL_CALL = "SELL_CALL"
    CALL_EXPIRED = "CALL_EXPIRED"
    BUY_TO_CLOSE = "BUY_TO_CLOSE"
    CALL_ASSIGNED = "CALL_ASSIGNED"
    SELL_SHARES = "SELL_SHARES"
    FEE = "FEE"


class CycleStatus(Enum):
    """Lifecycle of a wheel cycle."""

    OPEN = "Open"
    CLOSED = "Closed"


class AcquisitionMethod(Enum):
    """How the shares in a lot were obtained."""

    CASH_SECURED_PUT_RESERVATION = "CASH_SECURED_PUT_RESERVATION"
    PUT_ASSIGNMENT = "PUT_ASSIGNMENT"
    OUTRIGHT_PURCHASE = "OUTRIGHT_PURCHASE"


class LotStatus(Enum):
    """
    State machine for a single lot.

    A lot is born uncovered (assignment or purchase), toggles between
    uncovered and covered as calls are sold and resolved, and ends in
    one of the two closed states. CASH_RESERVED only appears on the
    derived reservations of open short puts.
    """

    CASH_RESERVED = "CASH_RESERVED"
    OPEN_UNCOVERED = "OPEN_UNCOVERED"
    OPEN_COVERED = "OPEN_COVERED"
    CLOSED_SOLD = "CLOSED_SOLD"
    CLOSED_CALLED_AWAY = "CLOSED_CALLED_AWAY"

    @property
    def is_open(self) -> bool:
        """True for lots that still hold shares."""
        return self in (LotStatus.OPEN_UNCOVERED, LotStatus.OPEN_COVERED)

    @property
    def is_closed(self) -> bool:
        """True for lots whose shares have been disposed of."""
        return self in (LotStatus.CLOSED_SOLD, LotStatus.CLOSED_CALLED_AWAY)


class WheelPhase(Enum):
    """The four phases of the wheel, numbered as the dashboard shows them."""

    CASH_SECURED_PUT = 1
    SHARES_ACQUIRED = 2
    COVERED_CALL = 3
    CALLED_AWAY = 4

    @property
    def key(self) -> str:
        """Stable mapping key, e.g. "phase1"."""
        return f"phase{self.value}"


# Valid lot status transitions, keyed by the action that drives them
LOT_TRANSITIONS: dict[LotStatus, dict[str, LotStatus]] = {
    LotStatus.CASH_RESERVED: {
        "put_assigned": LotStatus.OPEN_UNCOVERED,
    },
    LotStatus.OPEN_UNCOVERED: {
        "sell_call": LotStatus.OPEN_COVERED,
        "sell_shares": LotStatus.CLOSED_SOLD,
    },
    LotStatus.OPEN_COVERED: {
        "call_expired": LotStatus.OPEN_UNCOVERED,
        "buy_to_close": LotStatus.OPEN_UNCOVERED,
        "coverage_cancelled": LotStatus.OPEN_UNCOVERED,
        "call_assigned": LotStatus.CLOSED_CALLED_AWAY,
        "sell_shares": LotStatus.CLOSED_SOLD,
    },
    LotStatus.CLOSED_SOLD: {},
    LotStatus.CLOSED_CALLED_AWAY: {},
}


def get_valid_actions(status: LotStatus) -> list[str]:
    """Get list of valid actions from a given lot status."""
    return list(LOT_TRANSITIONS.get(status, {}).keys())


def can_transition(from_status: LotStatus, action: str) -> bool:
    """Check if a transition is valid from the current lot status."""
    return action in LOT_TRANSITIONS.get(from_status, {})


def get_next_status(from_status: LotStatus, action: str) -> LotStatus:
    """
    Get the lot status after an action.

    Raises:
        ValueError: If the transition is not valid.
    """
    transitions = LOT_TRANSITIONS.get(from_status, {})
    if action not in transitions:
        valid = get_valid_actions(from_status)
        raise ValueError(
            f"Invalid action '{action}' from status '{from_status.value}'. "
            f"Valid actions: {valid}"
        )
    return transitions[action]


class StrategyType(Enum):
    """Strategy archetypes the detector assigns to a broker snapshot."""

    FULL_WHEEL = "full_wheel"
    COVERED_CALL = "covered_call"
    CASH_SECURED_PUT = "cash_secured_put"
    NAKED_STOCK = "naked_stock"


class ConfidenceLevel(Enum):
    """Three-tier confidence for a strategy detection."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DiagnosticCode(Enum):
    """Codes carried by lot builder diagnostics."""

    UNMATCHED_EVENT = "UNMATCHED_EVENT"
    INSUFFICIENT_COLLATERAL = "INSUFFICIENT_COLLATERAL"
    COVERAGE_CANCELLED = "COVERAGE_CANCELLED"
    PARTIAL_MATCH = "PARTIAL_MATCH"

    @property
    def severity(self) -> str:
        """'error' for data problems, 'warning' for lossy but consistent outcomes."""
        if self in (DiagnosticCode.UNMATCHED_EVENT, DiagnosticCode.INSUFFICIENT_COLLATERAL):
            return "error"
        return "warning"
