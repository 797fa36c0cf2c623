"""Market price sources consumed by the metrics calculator.

The ledger never fetches prices itself. Callers hand it a PriceSource;
timeouts, caching and staleness are the source's concern.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Mapping, Optional

from .exceptions import NegativePriceError
from .money import Number, to_decimal

logger = logging.getLogger(__name__)


class PriceSource(ABC):
    """Interface for current share prices.

    Example:
        >>> class BrokerQuotes(PriceSource):
        >>>     def get_current_price(self, ticker: str) -> Optional[Decimal]:
        >>>         return client.last_trade(ticker)
    """

    @abstractmethod
    def get_current_price(self, ticker: str) -> Optional[Decimal]:
        """Latest price for a ticker, or None when unavailable.

        Implementations must return None rather than zero when they
        have no price.
        """
        pass


class StaticPriceSource(PriceSource):
    """Prices held in memory, e.g. from configuration or the command line.

    Attributes:
        prices: Ticker to price mapping, tickers upper-cased
    """

    def __init__(self, prices: Optional[Mapping[str, Number]] = None):
        """Initialize with an optional ticker -> price mapping."""
        self.prices: dict[str, Decimal] = {}
        for ticker, value in (prices or {}).items():
            self.set_price(ticker, value)

    def set_price(self, ticker: str, value: Number) -> None:
        """Set or replace a ticker's price.

        Raises:
            NegativePriceError: If the price is negative
        """
        price = to_decimal(value)
        if price < 0:
            raise NegativePriceError(f"Price for {ticker} must not be negative, got {value}")
        self.prices[ticker.upper()] = price

    def get_current_price(self, ticker: str) -> Optional[Decimal]:
        price = self.prices.get(ticker.upper())
        if price is None:
            logger.debug(f"No price available for {ticker}")
        return price
