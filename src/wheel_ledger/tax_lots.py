"""Tax-lot splitter: partitions a share position into 100-share display lots."""

from decimal import Decimal
from typing import Optional

from .exceptions import InvalidQuantityError, NegativePriceError
from .models import TaxLot
from .money import SHARES_PER_CONTRACT, Number, money, price, to_decimal, to_optional_decimal


def _make_lot(
    lot_number: int,
    shares: int,
    average_price: Decimal,
    current_price: Optional[Decimal],
    is_remainder: bool = False,
) -> TaxLot:
    cost_basis = average_price * shares
    market_value = current_price * shares if current_price is not None else None
    profit_loss = market_value - cost_basis if market_value is not None else None
    if profit_loss is not None and cost_basis > 0:
        profit_loss_percent: Optional[Decimal] = money(profit_loss / cost_basis * 100)
    else:
        profit_loss_percent = None

    return TaxLot(
        lot_number=lot_number,
        shares=shares,
        average_price=price(average_price),
        current_price=price(current_price) if current_price is not None else None,
        cost_basis=money(cost_basis),
        market_value=money(market_value) if market_value is not None else None,
        profit_loss=money(profit_loss) if profit_loss is not None else None,
        profit_loss_percent=profit_loss_percent,
        is_remainder=is_remainder,
    )


def split_into_lots(
    total_shares: Number, average_price: Number, current_price: Optional[Number] = None
) -> list[TaxLot]:
    """
    Split a share position into 100-share lots plus a remainder.

    Full lots are numbered from 1. The remainder lot, if any, is flagged
    ``is_remainder`` and numbered 0. Every lot inherits the same average
    and current price; values are computed per lot. Without a current
    price, market value and P&L are None.

    Args:
        total_shares: Whole number of shares held.
        average_price: Average cost per share.
        current_price: Latest price per share.

    Raises:
        InvalidQuantityError: If total_shares is negative or fractional.
        NegativePriceError: If either price is negative.
    """
    shares = to_decimal(total_shares)
    if shares < 0 or shares != shares.to_integral_value():
        raise InvalidQuantityError(f"total_shares must be a non-negative whole number, got {total_shares}")
    avg = to_decimal(average_price)
    current = to_optional_decimal(current_price)
    if avg < 0:
        raise NegativePriceError(f"average_price must not be negative, got {average_price}")
    if current is not None and current < 0:
        raise NegativePriceError(f"current_price must not be negative, got {current_price}")

    full_lots, remainder = divmod(int(shares), SHARES_PER_CONTRACT)
    lots = [_make_lot(number, SHARES_PER_CONTRACT, avg, current) for number in range(1, full_lots + 1)]
    if remainder:
        lots.append(_make_lot(0, remainder, avg, current, is_remainder=True))
    return lots
