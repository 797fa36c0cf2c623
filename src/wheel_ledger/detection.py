"""
Strategy detector for raw broker position snapshots.

Groups positions by underlying ticker and classifies each group as a
full wheel, covered call, cash-secured put or naked stock holding. Used
when a ticker has no event history yet, so the classification relies on
share and contract counts alone.
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from .exceptions import LedgerError
from .models import BrokerPosition, DetectionResult, SuggestedAction
from .money import SHARES_PER_CONTRACT, ZERO, to_decimal
from .state import ConfidenceLevel, StrategyType

logger = logging.getLogger(__name__)

STRATEGY_ORDER = {
    StrategyType.FULL_WHEEL: 0,
    StrategyType.COVERED_CALL: 1,
    StrategyType.CASH_SECURED_PUT: 2,
    StrategyType.NAKED_STOCK: 3,
}

# "HIMS  251017P00037000": root, YYMMDD, C/P, strike in thousandths
OCC_SYMBOL = re.compile(r"^([A-Z0-9.]{1,6})\s*(\d{2})(\d{2})(\d{2})([CP])(\d{8})$")

# Next steps offered for each archetype
SUGGESTED_ACTIONS: dict[StrategyType, tuple[SuggestedAction, ...]] = {
    StrategyType.FULL_WHEEL: (
        SuggestedAction("roll_call", "Roll covered call to later expiration"),
        SuggestedAction("close_call", "Buy back call option for profit"),
        SuggestedAction("sell_put", "Sell additional cash-secured puts"),
    ),
    StrategyType.COVERED_CALL: (
        SuggestedAction("roll_call", "Extend call expiration"),
        SuggestedAction("sell_put", "Start wheel by selling puts below current price"),
    ),
    StrategyType.CASH_SECURED_PUT: (
        SuggestedAction("manage_assignment", "Prepare for potential share assignment"),
        SuggestedAction("roll_put", "Roll put to avoid assignment"),
    ),
    StrategyType.NAKED_STOCK: (
        SuggestedAction("sell_call", "Start covered call strategy"),
        SuggestedAction("start_wheel", "Begin full wheel strategy"),
    ),
}


@dataclass(frozen=True)
class ParsedOption:
    """Components of an OCC option symbol."""

    underlying: str
    expiration: date
    option_type: str  # "PUT" or "CALL"
    strike: Decimal


def parse_option_symbol(symbol: str) -> Optional[ParsedOption]:
    """
    Parse an OCC option symbol.

    Format: "TICKER  YYMMDDX########", e.g. "HIMS  251017P00037000"
    is HIMS 2025-10-17 Put $37.00. Padding between root and date is
    optional.

    Returns:
        ParsedOption, or None if the symbol does not parse.
    """
    match = OCC_SYMBOL.match(symbol.strip().upper())
    if not match:
        return None
    root, yy, mm, dd, kind, strike_code = match.groups()
    try:
        expiration = date(2000 + int(yy), int(mm), int(dd))
    except ValueError:
        return None
    return ParsedOption(
        underlying=root,
        expiration=expiration,
        option_type="PUT" if kind == "P" else "CALL",
        strike=Decimal(int(strike_code)) / 1000,
    )


@dataclass(frozen=True)
class ConfidenceThresholds:
    """
    Fractions of passed consistency checks needed for each tier.

    Anything below ``medium`` is low confidence.
    """

    high: float = 1.0
    medium: float = 0.5

    def __post_init__(self) -> None:
        if not 0 < self.medium <= self.high <= 1:
            raise LedgerError(
                f"Confidence thresholds must satisfy 0 < medium <= high <= 1, "
                f"got medium={self.medium}, high={self.high}"
            )

    def level(self, fraction: float) -> ConfidenceLevel:
        if fraction >= self.high:
            return ConfidenceLevel.HIGH
        if fraction >= self.medium:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW


@dataclass
class _TickerBook:
    """Share and short-contract totals for one ticker."""

    ticker: str
    positions: list[BrokerPosition]
    shares: Decimal = ZERO
    short_calls: Decimal = ZERO
    short_puts: Decimal = ZERO
    long_options: int = 0

    @property
    def short_options(self) -> list[BrokerPosition]:
        return [p for p in self.positions if p.is_option and p.quantity < 0]


class StrategyDetector:
    """Classifies broker snapshots into wheel strategy archetypes."""

    def __init__(self, thresholds: Optional[ConfidenceThresholds] = None) -> None:
        self.thresholds = thresholds or ConfidenceThresholds()

    def detect(self, positions: Iterable[BrokerPosition]) -> list[DetectionResult]:
        """
        Classify every ticker in a snapshot.

        Tickers that fit no archetype (only long options, or short stock)
        are left out of the result.

        Returns:
            Results sorted by strategy specificity, then descending
            confidence score, then ticker.
        """
        results = []
        for book in self._group(positions):
            result = self._classify(book)
            if result is not None:
                results.append(result)
        results.sort(key=lambda r: (STRATEGY_ORDER[r.strategy], -r.confidence_score, r.ticker))
        logger.info(f"Detected {len(results)} strategies")
        return results

    def _normalize(self, position: BrokerPosition) -> BrokerPosition:
        """Fill option fields from the OCC symbol when the broker left them out."""
        if not isinstance(position.quantity, Decimal):
            position = replace(position, quantity=to_decimal(position.quantity))
        if not position.is_option:
            return position
        if position.underlying and position.option_type and position.strike and position.expiration:
            return position
        parsed = parse_option_symbol(position.symbol)
        if parsed is None:
            logger.debug(f"Could not parse option symbol {position.symbol!r}")
            return position
        return replace(
            position,
            underlying=position.underlying or parsed.underlying,
            option_type=position.option_type or parsed.option_type,
            strike=position.strike if position.strike is not None else parsed.strike,
            expiration=position.expiration or parsed.expiration,
        )

    def _group(self, positions: Iterable[BrokerPosition]) -> list[_TickerBook]:
        books: dict[str, _TickerBook] = {}
        for raw in positions:
            position = self._normalize(raw)
            book = books.setdefault(position.ticker, _TickerBook(ticker=position.ticker, positions=[]))
            book.positions.append(position)
            if not position.is_option:
                book.shares += position.quantity
                continue
            kind = (position.option_type or "").upper()
            if position.quantity >= 0:
                book.long_options += 1
            elif kind == "CALL":
                book.short_calls += -position.quantity
            elif kind == "PUT":
                book.short_puts += -position.quantity
        return list(books.values())

    def _classify(self, book: _TickerBook) -> Optional[DetectionResult]:
        shares = book.shares
        covered = (
            book.short_calls > 0
            and shares >= SHARES_PER_CONTRACT
            and book.short_calls * SHARES_PER_CONTRACT <= shares
        )
        round_lots = shares >= SHARES_PER_CONTRACT and shares % SHARES_PER_CONTRACT == 0

        if covered and book.short_puts > 0:
            strategy = StrategyType.FULL_WHEEL
            checks = [round_lots, covered, self._legs_well_formed(book)]
            description = f"{shares} shares, {book.short_calls} short call(s), {book.short_puts} short put(s)"
        elif covered:
            strategy = StrategyType.COVERED_CALL
            checks = [round_lots, covered, self._legs_well_formed(book)]
            description = f"{shares} shares covered by {book.short_calls} short call(s)"
        elif book.short_puts > 0:
            strategy = StrategyType.CASH_SECURED_PUT
            # Uncovered short calls or a round lot of stock muddy the picture
            checks = [self._legs_well_formed(book), shares < SHARES_PER_CONTRACT, book.short_calls == 0]
            description = f"{book.short_puts} short put(s)"
            if shares > 0:
                description += f" alongside {shares} shares"
        elif book.short_calls > 0:
            # Short calls without enough shares: only the direction matches
            strategy = StrategyType.COVERED_CALL
            checks = [round_lots, covered, self._legs_well_formed(book)]
            description = f"{book.short_calls} short call(s) against only {shares} shares"
        elif shares > 0 and book.long_options == 0:
            strategy = StrategyType.NAKED_STOCK
            checks = [shares % SHARES_PER_CONTRACT == 0]
            description = f"{shares} shares with no options"
        else:
            return None

        fraction = sum(1 for passed in checks if passed) / len(checks)
        actions = list(SUGGESTED_ACTIONS[strategy])
        if strategy == StrategyType.NAKED_STOCK and shares < SHARES_PER_CONTRACT:
            # Not enough shares to write a call against
            actions = []
        return DetectionResult(
            ticker=book.ticker,
            strategy=strategy,
            confidence=self.thresholds.level(fraction),
            confidence_score=round(fraction * 100),
            description=description,
            positions=book.positions,
            shares=shares,
            short_calls=book.short_calls,
            short_puts=book.short_puts,
            actions=actions,
        )

    @staticmethod
    def _legs_well_formed(book: _TickerBook) -> bool:
        """Every short option has a strike, an expiration and a whole contract count."""
        for position in book.short_options:
            if position.strike is None or position.strike <= 0 or position.expiration is None:
                return False
            if position.quantity != position.quantity.to_integral_value():
                return False
        return True


def detect_strategies(
    positions: Iterable[BrokerPosition], thresholds: Optional[ConfidenceThresholds] = None
) -> list[DetectionResult]:
    """Classify a broker snapshot with the given (or default) thresholds."""
    return StrategyDetector(thresholds).detect(positions)
