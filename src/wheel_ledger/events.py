"""Pydantic models for wheel cycles and the trade event log.

Every event type is its own model with the fields that type requires,
joined into one discriminated union on ``event_type``. Payloads are
validated once, at ingestion, by ``parse_event``; after that the
builder can rely on every field it reads being present and well-formed.

Sign conventions are normalized here: contracts sold to open are stored
negative (short), contracts bought or resolved are stored positive, and
shares sold are stored negative. Purchases must give a positive share
count; a negative purchase is rejected rather than flipped.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .exceptions import EventValidationError, InvalidQuantityError, NegativePriceError
from .money import SHARES_PER_CONTRACT, ZERO
from .state import CycleStatus, EventType

PRICE_FIELDS = frozenset({"price", "strike", "premium", "fees"})
QUANTITY_FIELDS = frozenset({"quantity_shares", "contracts"})


class WheelCycle(BaseModel):
    """One ticker's wheel campaign.

    Attributes:
        id: Store-assigned identifier
        ticker: Stock ticker symbol, upper-cased
        start_date: Date tracking started
        status: Open or Closed
        end_date: Date the cycle was closed
        notes: Free-text notes
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    ticker: str = Field(..., min_length=1)
    start_date: date
    status: CycleStatus = CycleStatus.OPEN
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("ticker")
    @classmethod
    def normalize_ticker(cls, v: str) -> str:
        """Upper-case and strip the ticker."""
        v = v.strip().upper()
        if not v:
            raise ValueError("ticker must not be blank")
        return v

    @property
    def is_open(self) -> bool:
        return self.status == CycleStatus.OPEN


class _EventBase(BaseModel):
    """Fields shared by every event type."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Optional[int] = None
    cycle_id: Optional[int] = None
    trade_date: date
    fees: Decimal = Field(default=ZERO, ge=0)
    link_event_id: Optional[int] = None
    notes: Optional[str] = None

    @property
    def kind(self) -> EventType:
        return EventType(self.event_type)  # type: ignore[attr-defined]

    @property
    def contract_count(self) -> Optional[int]:
        """Unsigned contract count, None where the event leaves it implicit."""
        contracts = getattr(self, "contracts", None)
        return abs(contracts) if contracts is not None else None


class _OpeningOption(_EventBase):
    """An option sold to open; contracts are stored negative."""

    contracts: int
    strike: Decimal = Field(..., gt=0)
    premium: Decimal = Field(..., ge=0)
    expiration: Optional[date] = None

    @field_validator("contracts")
    @classmethod
    def normalize_contracts(cls, v: int) -> int:
        if v == 0:
            raise ValueError("contracts must be non-zero")
        return -abs(v)


class _OptionResolution(_EventBase):
    """Expiry, assignment or close of an open option; contracts are stored positive.

    Omitted contracts means every contract still open on the target option.
    """

    contracts: Optional[int] = None

    @field_validator("contracts")
    @classmethod
    def normalize_contracts(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return None
        if v == 0:
            raise ValueError("contracts must be non-zero when given")
        return abs(v)


class SellPut(_OpeningOption):
    """Sell-to-open a cash-secured put."""

    event_type: Literal["SELL_PUT"] = "SELL_PUT"

    @property
    def collateral(self) -> Decimal:
        return self.strike * SHARES_PER_CONTRACT * abs(self.contracts)


class PutExpired(_OptionResolution):
    """A short put expired worthless."""

    event_type: Literal["PUT_EXPIRED"] = "PUT_EXPIRED"


class PutAssigned(_OptionResolution):
    """A short put was assigned; shares were bought at the strike.

    ``strike`` is only needed when the assignment cannot be tied back to
    a recorded put.
    """

    event_type: Literal["PUT_ASSIGNED"] = "PUT_ASSIGNED"
    strike: Optional[Decimal] = Field(default=None, gt=0)


class OutrightPurchase(_EventBase):
    """Shares bought on the open market."""

    event_type: Literal["OUTRIGHT_PURCHASE"] = "OUTRIGHT_PURCHASE"
    quantity_shares: int
    price: Decimal = Field(..., gt=0)

    @field_validator("quantity_shares")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity_shares must be positive for a purchase")
        return v

    @property
    def share_count(self) -> int:
        return self.quantity_shares


class SellCall(_OpeningOption):
    """Sell-to-open a covered call."""

    event_type: Literal["SELL_CALL"] = "SELL_CALL"


class CallExpired(_OptionResolution):
    """A short call expired worthless."""

    event_type: Literal["CALL_EXPIRED"] = "CALL_EXPIRED"


class BuyToClose(_OptionResolution):
    """Buy back a short option before expiration.

    ``premium`` is the debit paid per share.
    """

    event_type: Literal["BUY_TO_CLOSE"] = "BUY_TO_CLOSE"
    premium: Decimal = Field(..., ge=0)


class CallAssigned(_OptionResolution):
    """A short call was assigned; covered shares were called away at the strike."""

    event_type: Literal["CALL_ASSIGNED"] = "CALL_ASSIGNED"


class SellShares(_EventBase):
    """Shares sold manually, no option involved."""

    event_type: Literal["SELL_SHARES"] = "SELL_SHARES"
    quantity_shares: int
    price: Decimal = Field(..., gt=0)

    @field_validator("quantity_shares")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v == 0:
            raise ValueError("quantity_shares must be non-zero")
        return -abs(v)

    @property
    def share_count(self) -> int:
        return abs(self.quantity_shares)


class Fee(_EventBase):
    """A standalone fee not attached to any trade."""

    event_type: Literal["FEE"] = "FEE"
    fees: Decimal = Field(..., gt=0)


WheelEvent = Annotated[
    Union[
        SellPut,
        PutExpired,
        PutAssigned,
        OutrightPurchase,
        SellCall,
        CallExpired,
        BuyToClose,
        CallAssigned,
        SellShares,
        Fee,
    ],
    Field(discriminator="event_type"),
]

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(WheelEvent)


def parse_event(data: Mapping[str, Any]) -> "WheelEvent":
    """
    Validate a raw event payload into its typed model.

    Args:
        data: Mapping with an ``event_type`` key plus that type's fields.

    Returns:
        The event model for ``data["event_type"]``.

    Raises:
        NegativePriceError: A price, strike, premium or fee is out of range.
        InvalidQuantityError: A share or contract quantity is malformed.
        EventValidationError: Any other validation failure (unknown type,
            missing field, unexpected field).
    """
    payload = dict(data)
    if isinstance(payload.get("event_type"), EventType):
        payload["event_type"] = payload["event_type"].value
    try:
        return _EVENT_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise _translate_validation_error(payload.get("event_type"), e) from e


def _translate_validation_error(event_type: Any, error: ValidationError) -> EventValidationError:
    """Map the first pydantic error onto the ledger's error taxonomy."""
    details = error.errors()
    first = details[0] if details else {"loc": (), "msg": str(error)}
    fields = [str(part) for part in first.get("loc", ()) if isinstance(part, str)]
    field = fields[-1] if fields else ""
    message = f"{event_type or 'event'}.{field}: {first.get('msg')}" if field else str(first.get("msg"))

    # Missing or unknown fields are shape errors, not bad values
    if first.get("type") in ("missing", "extra_forbidden"):
        return EventValidationError(message)
    if field in PRICE_FIELDS:
        return NegativePriceError(message)
    if field in QUANTITY_FIELDS:
        return InvalidQuantityError(message)
    return EventValidationError(message)


def sort_events(events: Sequence["WheelEvent"]) -> list["WheelEvent"]:
    """
    Order events by trade date, keeping the given order for ties.

    The input order is taken to be insertion order; events on the same
    day are never re-sorted by type.
    """
    return sorted(events, key=lambda e: e.trade_date)
