"""Derived data models: lots, ledger results, metrics and detector output."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from .exceptions import InsufficientCollateralError, LedgerError, UnmatchedEventError
from .money import SHARES_PER_CONTRACT, ZERO, to_decimal, to_optional_decimal
from .state import (
    AcquisitionMethod,
    ConfidenceLevel,
    DiagnosticCode,
    EventType,
    LotStatus,
    StrategyType,
    WheelPhase,
)


@dataclass
class Coverage:
    """A short call written against one lot."""

    call_event_id: Optional[int]
    strike: Decimal
    premium: Decimal  # Per share
    expiration: Optional[date] = None
    is_open: bool = True


@dataclass
class Tranche:
    """Shares inside a lot that were acquired together."""

    shares: int
    cost_basis: Decimal  # Per share, net of put premium
    acquisition_price: Decimal  # Per share, before any put premium credit
    acquisition_date: date
    sequence: int  # Acquisition order within the rebuild


@dataclass
class Lot:
    """
    A 100-share (or remainder) accounting unit.

    Lots are derived on every rebuild and carry no identity beyond their
    derivation order. ``cost_basis`` is per share and already nets out any
    put premium credited at acquisition; ``acquisition_price`` is what was
    actually paid per share (the strike for an assignment). A lot that
    absorbed shares from a later purchase keeps each purchase as a
    tranche, oldest first, and both prices are share-weighted over them.
    """

    lot_number: int
    acquisition_method: AcquisitionMethod
    acquisition_date: date
    shares: int
    cost_basis: Decimal
    status: LotStatus = LotStatus.OPEN_UNCOVERED
    coverage: Optional[Coverage] = None
    net_premium: Decimal = ZERO  # Call premium accrued to this lot, net of debits and fees
    exit_price: Optional[Decimal] = None
    exit_date: Optional[date] = None
    exit_fees: Decimal = ZERO  # Closing event fees allocated to this lot
    realized_pl: Optional[Decimal] = None
    closing_event_id: Optional[int] = None
    source_event_id: Optional[int] = None
    event_ids: list[int] = field(default_factory=list)
    acquisition_price: Optional[Decimal] = None
    tranches: list[Tranche] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.acquisition_price is None:
            self.acquisition_price = self.cost_basis

    @property
    def is_open(self) -> bool:
        return self.status.is_open

    @property
    def is_closed(self) -> bool:
        return self.status.is_closed

    @property
    def is_covered(self) -> bool:
        return self.status == LotStatus.OPEN_COVERED

    @property
    def ineligible_for_coverage(self) -> bool:
        """Remainder lots cannot back a standard 100-share call."""
        return self.shares < SHARES_PER_CONTRACT

    @property
    def total_cost(self) -> Decimal:
        return self.cost_basis * self.shares

    @property
    def gross_cost(self) -> Decimal:
        """Cash paid for the shares, without the put premium credit."""
        return self.acquisition_price * self.shares

    @property
    def stock_pl(self) -> Optional[Decimal]:
        """
        (exit - acquisition price) x shares for closed lots, None while open.

        Measured against the price paid rather than ``cost_basis`` so a put
        premium already counted as option cashflow is not counted again.
        """
        if self.exit_price is None:
            return None
        return (self.exit_price - self.acquisition_price) * self.shares


@dataclass
class LotError:
    """A per-event diagnostic collected during a rebuild."""

    code: DiagnosticCode
    event_id: Optional[int]
    event_type: Optional[EventType]
    message: str

    @property
    def severity(self) -> str:
        return self.code.severity

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def to_exception(self) -> LedgerError:
        """Return the exception matching this diagnostic."""
        if self.code == DiagnosticCode.INSUFFICIENT_COLLATERAL:
            return InsufficientCollateralError(self.message)
        if self.code == DiagnosticCode.UNMATCHED_EVENT:
            return UnmatchedEventError(self.message)
        return LedgerError(self.message)

    def __str__(self) -> str:
        ref = f"event {self.event_id}" if self.event_id is not None else "event"
        kind = self.event_type.value if self.event_type else "?"
        return f"[{self.severity}] {self.code.value} {ref} ({kind}): {self.message}"


@dataclass
class OptionPosition:
    """An open short option tracked during a rebuild."""

    event_id: Optional[int]
    event_type: EventType  # SELL_PUT or SELL_CALL
    trade_date: date
    strike: Decimal
    premium: Decimal  # Per share
    contracts_total: int
    contracts_open: int
    expiration: Optional[date] = None
    covered_lots: list[int] = field(default_factory=list)  # Lot numbers, calls only

    @property
    def is_put(self) -> bool:
        return self.event_type == EventType.SELL_PUT

    @property
    def is_call(self) -> bool:
        return self.event_type == EventType.SELL_CALL

    @property
    def collateral(self) -> Decimal:
        """Cash reserved by the open contracts of a short put."""
        if not self.is_put:
            return ZERO
        return self.strike * SHARES_PER_CONTRACT * self.contracts_open


@dataclass
class LotLedger:
    """Result of a rebuild: lots, open options, and collected diagnostics."""

    lots: list[Lot] = field(default_factory=list)
    errors: list[LotError] = field(default_factory=list)
    open_options: list[OptionPosition] = field(default_factory=list)

    @property
    def open_lots(self) -> list[Lot]:
        return [lot for lot in self.lots if lot.is_open]

    @property
    def closed_lots(self) -> list[Lot]:
        return [lot for lot in self.lots if lot.is_closed]

    @property
    def shares_owned(self) -> int:
        return sum(lot.shares for lot in self.open_lots)

    @property
    def open_puts(self) -> list[OptionPosition]:
        return [opt for opt in self.open_options if opt.is_put]

    @property
    def open_calls(self) -> list[OptionPosition]:
        return [opt for opt in self.open_options if opt.is_call]

    @property
    def open_collateral(self) -> Decimal:
        return sum((opt.collateral for opt in self.open_puts), ZERO)

    @property
    def reservations(self) -> list[Lot]:
        """
        One CASH_RESERVED lot per open short put contract.

        These describe cash set aside, not shares owned; they are numbered
        0 and never counted in share totals.
        """
        reserved = []
        for put in self.open_puts:
            for _ in range(put.contracts_open):
                reserved.append(
                    Lot(
                        lot_number=0,
                        acquisition_method=AcquisitionMethod.CASH_SECURED_PUT_RESERVATION,
                        acquisition_date=put.trade_date,
                        shares=SHARES_PER_CONTRACT,
                        cost_basis=put.strike - put.premium,
                        acquisition_price=put.strike,
                        status=LotStatus.CASH_RESERVED,
                        source_event_id=put.event_id,
                        event_ids=[put.event_id] if put.event_id is not None else [],
                    )
                )
        return reserved

    @property
    def has_errors(self) -> bool:
        return any(err.is_error for err in self.errors)

    @property
    def warnings(self) -> list[LotError]:
        return [err for err in self.errors if not err.is_error]

    def raise_for_errors(self) -> None:
        """
        Raise the first error-severity diagnostic, if any.

        Raises:
            UnmatchedEventError: A closing/covering event had no target.
            InsufficientCollateralError: An assignment had no collateral.
        """
        for err in self.errors:
            if err.is_error:
                raise err.to_exception()


@dataclass
class Metrics:
    """Cycle-level P&L snapshot derived from lots, events and a price."""

    shares_owned: int = 0
    average_cost_basis: Optional[Decimal] = None  # None when nothing is held
    total_cost_remaining: Decimal = ZERO
    net_options_cashflow: Decimal = ZERO
    realized_stock_pl: Decimal = ZERO
    total_realized_pl: Decimal = ZERO
    current_price: Optional[Decimal] = None
    unrealized_pl: Optional[Decimal] = None  # None, not zero, without a price
    open_collateral: Decimal = ZERO
    warnings: list[str] = field(default_factory=list)

    @property
    def total_pl(self) -> Optional[Decimal]:
        """Realized plus unrealized, None when unrealized is unknown and shares are held."""
        if self.unrealized_pl is None:
            return self.total_realized_pl if self.shares_owned == 0 else None
        return self.total_realized_pl + self.unrealized_pl


@dataclass
class PhaseSummary:
    """Current wheel phase and lifetime per-phase earnings for one ticker."""

    ticker: str
    current_phase: Optional[WheelPhase] = None
    active_phases: list[WheelPhase] = field(default_factory=list)
    lifetime_earnings: dict[str, Decimal] = field(
        default_factory=lambda: {phase.key: ZERO for phase in WheelPhase}
    )
    last_called_away: Optional[date] = None
    cycles: int = 0

    @property
    def total_earnings(self) -> Decimal:
        return sum(self.lifetime_earnings.values(), ZERO)


@dataclass
class BrokerPosition:
    """
    One row of a raw broker position snapshot.

    Option rows may leave ``underlying``, ``option_type``, ``strike`` and
    ``expiration`` empty when ``symbol`` is an OCC option symbol; the
    detector fills them in from the symbol.
    """

    symbol: str
    instrument_type: str  # "EQUITY" or "OPTION"
    quantity: Decimal  # Signed: negative = short
    market_value: Optional[Decimal] = None
    strike: Optional[Decimal] = None
    expiration: Optional[date] = None
    underlying: Optional[str] = None
    option_type: Optional[str] = None  # "PUT" or "CALL"

    @classmethod
    def from_dict(cls, data: dict) -> "BrokerPosition":
        """Build a position from a JSON-style mapping of plain values."""
        expiration = data.get("expiration")
        if isinstance(expiration, str):
            expiration = date.fromisoformat(expiration)
        return cls(
            symbol=str(data["symbol"]),
            instrument_type=str(data.get("instrument_type", "EQUITY")),
            quantity=to_decimal(data["quantity"]),
            market_value=to_optional_decimal(data.get("market_value")),
            strike=to_optional_decimal(data.get("strike")),
            expiration=expiration,
            underlying=data.get("underlying"),
            option_type=data.get("option_type"),
        )

    @property
    def is_option(self) -> bool:
        return self.instrument_type.upper() == "OPTION"

    @property
    def ticker(self) -> str:
        return (self.underlying or self.symbol).strip().upper()


@dataclass(frozen=True)
class SuggestedAction:
    """A next step that fits a detected strategy."""

    action: str  # e.g. "roll_call", "sell_put"
    description: str


@dataclass
class DetectionResult:
    """Strategy classification for one ticker."""

    ticker: str
    strategy: StrategyType
    confidence: ConfidenceLevel
    confidence_score: int  # 0-100
    description: str = ""
    positions: list[BrokerPosition] = field(default_factory=list)
    shares: Decimal = ZERO
    short_calls: Decimal = ZERO  # Contracts
    short_puts: Decimal = ZERO  # Contracts
    actions: list[SuggestedAction] = field(default_factory=list)


@dataclass
class TaxLot:
    """A display/export sub-lot produced by the tax-lot splitter."""

    lot_number: int  # 0 for the remainder
    shares: int
    average_price: Decimal
    current_price: Optional[Decimal]
    cost_basis: Decimal
    market_value: Optional[Decimal]
    profit_loss: Optional[Decimal]
    profit_loss_percent: Optional[Decimal]
    is_remainder: bool = False
