"""Custom exceptions for wheel ledger operations."""


class LedgerError(Exception):
    """Base exception for ledger operations."""

    pass


class CycleNotFoundError(LedgerError):
    """Wheel cycle not found for id."""

    pass


class EventValidationError(LedgerError, ValueError):
    """Event payload failed validation at ingestion."""

    pass


class NegativePriceError(EventValidationError):
    """A price, strike, premium or fee field is negative or zero where it must be positive."""

    pass


class InvalidQuantityError(EventValidationError):
    """A share or contract quantity is missing, zero, or of the wrong shape."""

    pass


class UnmatchedEventError(LedgerError):
    """A closing or covering event found no eligible lot or option to act on."""

    pass


class InsufficientCollateralError(LedgerError):
    """An assignment references a put whose collateral was already released or never existed."""

    pass


class LedgerWarning(UserWarning):
    """Base warning category for ledger diagnostics."""

    pass


class StaleDataWarning(LedgerWarning):
    """No current price was available; unrealized P&L is reported as None."""

    pass
