"""Tests for the tax-lot splitter."""

from decimal import Decimal

import pytest

from src.wheel_ledger.exceptions import InvalidQuantityError, NegativePriceError
from src.wheel_ledger.tax_lots import split_into_lots


class TestSplitIntoLots:
    """Tests for split_into_lots."""

    def test_remainder_lot(self) -> None:
        lots = split_into_lots(250, 10, 12)

        assert [lot.shares for lot in lots] == [100, 100, 50]
        assert [lot.lot_number for lot in lots] == [1, 2, 0]
        assert [lot.is_remainder for lot in lots] == [False, False, True]
        assert [lot.market_value for lot in lots] == [
            Decimal("1200.00"),
            Decimal("1200.00"),
            Decimal("600.00"),
        ]

    def test_per_lot_values(self) -> None:
        lot = split_into_lots(250, 10, 12)[2]

        assert lot.cost_basis == Decimal("500.00")
        assert lot.profit_loss == Decimal("100.00")
        assert lot.profit_loss_percent == Decimal("20.00")
        assert lot.average_price == Decimal("10.0000")
        assert lot.current_price == Decimal("12.0000")

    def test_exact_multiple_has_no_remainder(self) -> None:
        lots = split_into_lots(300, 10)

        assert len(lots) == 3
        assert not any(lot.is_remainder for lot in lots)

    def test_fewer_than_100_shares(self) -> None:
        lots = split_into_lots(40, 10, 9)

        assert len(lots) == 1
        assert lots[0].is_remainder
        assert lots[0].profit_loss == Decimal("-40.00")

    def test_zero_shares(self) -> None:
        assert split_into_lots(0, 10, 12) == []

    def test_no_current_price(self) -> None:
        lot = split_into_lots(100, 10)[0]

        assert lot.current_price is None
        assert lot.market_value is None
        assert lot.profit_loss is None
        assert lot.profit_loss_percent is None

    def test_zero_cost_has_no_percent(self) -> None:
        lot = split_into_lots(100, 0, 5)[0]

        assert lot.profit_loss == Decimal("500.00")
        assert lot.profit_loss_percent is None

    @pytest.mark.parametrize("shares", [-100, Decimal("100.5")])
    def test_invalid_share_counts(self, shares) -> None:
        with pytest.raises(InvalidQuantityError):
            split_into_lots(shares, 10)

    def test_negative_prices(self) -> None:
        with pytest.raises(NegativePriceError):
            split_into_lots(100, -1)
        with pytest.raises(NegativePriceError):
            split_into_lots(100, 10, -1)
