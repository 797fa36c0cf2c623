"""Configuration management for the wheel ledger.

This module provides configuration loading, validation, and management
for the ledger library and CLI: database location, strategy-detector
confidence thresholds, static prices, and CLI output options.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import LedgerError
from .money import to_decimal

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "~/.wheel_ledger/ledger.db"


class ConfigurationError(LedgerError):
    """Exception raised for configuration errors."""

    pass


class LedgerConfig:
    """Configuration for the wheel ledger.

    Manages configuration from files, environment variables, and defaults.

    Attributes:
        database_path: SQLite database file (or ":memory:")
        high_confidence: Fraction of detector checks needed for high confidence
        medium_confidence: Fraction of detector checks needed for medium confidence
        prices: Static ticker -> price mapping used when no live source is wired in
        verbose: Enable verbose logging
        json_output: Output in JSON format
    """

    def __init__(
        self,
        database_path: str = DEFAULT_DB_PATH,
        high_confidence: float = 1.0,
        medium_confidence: float = 0.5,
        prices: Optional[dict[str, Any]] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        """Initialize configuration.

        Args:
            database_path: SQLite database file (or ":memory:")
            high_confidence: Threshold for high detector confidence
            medium_confidence: Threshold for medium detector confidence
            prices: Static ticker -> price mapping
            verbose: Enable verbose logging
            json_output: Output in JSON format

        Example:
            >>> config = LedgerConfig(
            ...     database_path="/tmp/ledger.db",
            ...     prices={"AAPL": 190.5}
            ... )
        """
        self.database_path = database_path
        self.high_confidence = high_confidence
        self.medium_confidence = medium_confidence
        self.prices = {str(k).upper(): v for k, v in (prices or {}).items()}
        self.verbose = verbose
        self.json_output = json_output

        self._validate()

    def _validate(self):
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.database_path:
            raise ConfigurationError("database_path must not be empty")

        if not 0 < self.medium_confidence <= self.high_confidence <= 1:
            raise ConfigurationError(
                "confidence thresholds must satisfy 0 < medium_confidence <= high_confidence <= 1"
            )

        for ticker, value in self.prices.items():
            try:
                price = to_decimal(value)
            except (ArithmeticError, TypeError, ValueError) as e:
                raise ConfigurationError(f"price for {ticker} is not a number: {value!r}") from e
            if price < 0:
                raise ConfigurationError(f"price for {ticker} must not be negative")

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get default configuration file path.

        Returns:
            Path to default config file (~/.wheel_ledger/config.yaml)
        """
        return Path.home() / ".wheel_ledger" / "config.yaml"

    @classmethod
    def load_from_file(cls, path: Optional[Path] = None) -> "LedgerConfig":
        """Load configuration from YAML file.

        Loads configuration from the specified path or the default path.
        If the file doesn't exist, returns default configuration.
        Merges file configuration with environment variable overrides.

        Args:
            path: Optional path to config file (default: ~/.wheel_ledger/config.yaml)

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration file is invalid
        """
        config_path = path or cls.get_default_config_path()

        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
                    if file_config:
                        config_dict = file_config
                logger.debug(f"Loaded configuration from {config_path}")
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
            except OSError as e:
                raise ConfigurationError(f"Failed to load configuration file: {e}") from e
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        return cls.merge_with_defaults(config_dict)

    @classmethod
    def merge_with_defaults(cls, config_dict: dict[str, Any]) -> "LedgerConfig":
        """Merge configuration dictionary with defaults and environment variables.

        Precedence order (highest to lowest):
        1. Environment variables
        2. Config file values
        3. Default values

        Args:
            config_dict: Configuration dictionary from file

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration is invalid

        Example:
            >>> config = LedgerConfig.merge_with_defaults({
            ...     "detection": {"medium_confidence": 0.6}
            ... })
        """
        database_config = config_dict.get("database", {}) or {}
        detection_config = config_dict.get("detection", {}) or {}
        cli_config = config_dict.get("cli", {}) or {}
        prices = config_dict.get("prices", {}) or {}

        try:
            database_path = os.getenv(
                "WHEEL_LEDGER_DB_PATH",
                database_config.get("path", DEFAULT_DB_PATH),
            )
            high_confidence = float(
                os.getenv(
                    "WHEEL_LEDGER_HIGH_CONFIDENCE",
                    detection_config.get("high_confidence", 1.0),
                )
            )
            medium_confidence = float(
                os.getenv(
                    "WHEEL_LEDGER_MEDIUM_CONFIDENCE",
                    detection_config.get("medium_confidence", 0.5),
                )
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        verbose = os.getenv("WHEEL_LEDGER_VERBOSE") is not None or cli_config.get("verbose", False)
        json_output = os.getenv("WHEEL_LEDGER_JSON_OUTPUT") is not None or cli_config.get(
            "json_output", False
        )

        if not isinstance(prices, dict):
            raise ConfigurationError("prices must be a mapping of ticker to price")

        return cls(
            database_path=str(database_path),
            high_confidence=high_confidence,
            medium_confidence=medium_confidence,
            prices=prices,
            verbose=bool(verbose),
            json_output=bool(json_output),
        )

    def save_to_file(self, path: Optional[Path] = None):
        """Save configuration to YAML file.

        Args:
            path: Optional path to save to (default: ~/.wheel_ledger/config.yaml)

        Raises:
            ConfigurationError: If save fails
        """
        config_path = path or self.get_default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(config_path, "w") as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False)
            logger.info(f"Configuration saved to {config_path}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to the nested file layout.

        Returns:
            Configuration as dictionary
        """
        return {
            "database": {
                "path": self.database_path,
            },
            "detection": {
                "high_confidence": self.high_confidence,
                "medium_confidence": self.medium_confidence,
            },
            "prices": {ticker: float(to_decimal(value)) for ticker, value in self.prices.items()},
            "cli": {
                "verbose": self.verbose,
                "json_output": self.json_output,
            },
        }

    def __repr__(self) -> str:
        return (
            f"LedgerConfig("
            f"database_path={self.database_path!r}, "
            f"high_confidence={self.high_confidence}, "
            f"medium_confidence={self.medium_confidence}, "
            f"prices={len(self.prices)} tickers, "
            f"verbose={self.verbose}, "
            f"json_output={self.json_output}"
            ")"
        )


def load_config(config_path: Optional[Path] = None) -> LedgerConfig:
    """Load configuration from file or defaults.

    Args:
        config_path: Optional path to config file

    Returns:
        Configuration instance

    Example:
        >>> from src.wheel_ledger.config import load_config
        >>> config = load_config()
        >>> print(config.database_path)
    """
    return LedgerConfig.load_from_file(config_path)
