"""
Wheel Ledger - Event-sourced lot accounting for the options wheel.

This package records every trade of a wheel cycle as an immutable event
and re-derives lots, cost basis, P&L and the current wheel phase from
that log on demand.

Public API:
    LedgerManager: Main orchestrator for ledger operations
    LotBuilder: Replays events into share lots
    Lot: One block of shares and its coverage
    LotLedger: Result of a replay (lots, diagnostics, open options)
    Metrics: Cost basis and P&L for a cycle
    PhaseSummary: Current wheel phase and lifetime earnings per phase
    StrategyDetector: Classifies broker positions by wheel strategy
"""

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
    WheelCycle,
    WheelEvent,
    parse_event,
)
from .exceptions import (
    CycleNotFoundError,
    EventValidationError,
    InsufficientCollateralError,
    InvalidQuantityError,
    LedgerError,
    LedgerWarning,
    NegativePriceError,
    StaleDataWarning,
    UnmatchedEventError,
)
from .models import (
    BrokerPosition,
    DetectionResult,
    Lot,
    LotError,
    LotLedger,
    Metrics,
    PhaseSummary,
    TaxLot,
)
from .state import (
    LOT_TRANSITIONS,
    AcquisitionMethod,
    ConfidenceLevel,
    CycleStatus,
    DiagnosticCode,
    EventType,
    LotStatus,
    StrategyType,
    WheelPhase,
    can_transition,
    get_next_status,
    get_valid_actions,
)

__all__ = [
    # Events
    "WheelCycle",
    "WheelEvent",
    "SellPut",
    "PutExpired",
    "PutAssigned",
    "OutrightPurchase",
    "SellCall",
    "CallExpired",
    "BuyToClose",
    "CallAssigned",
    "SellShares",
    "Fee",
    "parse_event",
    # Derived models
    "Lot",
    "LotError",
    "LotLedger",
    "Metrics",
    "PhaseSummary",
    "BrokerPosition",
    "DetectionResult",
    "TaxLot",
    # State machine
    "EventType",
    "CycleStatus",
    "AcquisitionMethod",
    "LotStatus",
    "WheelPhase",
    "StrategyType",
    "ConfidenceLevel",
    "DiagnosticCode",
    "LOT_TRANSITIONS",
    "can_transition",
    "get_next_status",
    "get_valid_actions",
    # Exceptions
    "LedgerError",
    "CycleNotFoundError",
    "EventValidationError",
    "NegativePriceError",
    "InvalidQuantityError",
    "UnmatchedEventError",
    "InsufficientCollateralError",
    "LedgerWarning",
    "StaleDataWarning",
]


# Deferred imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import for the heavier components."""
    if name == "LedgerManager":
        from .manager import LedgerManager
        return LedgerManager
    if name == "LotBuilder":
        from .lots import LotBuilder
        return LotBuilder
    if name == "StrategyDetector":
        from .detection import StrategyDetector
        return StrategyDetector
    if name == "EventStore":
        from .repository import EventStore
        return EventStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
