"""
Configuration Schema for Analysis Definitions

Defines the schema for YAML/JSON analysis configuration files,
including validation logic and type coercion.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Union
import logging

from tradeledger.core.pricing import DEFAULT_IMPLIED_VOLATILITY, DEFAULT_RISK_FREE_RATE
from tradeledger.core.transactions import TransactionError, transaction_from_dict

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


@dataclass
class BenchmarkConfig:
    """Buy-and-hold benchmark compared against the portfolio."""

    quantity: float
    cost_basis_per_share: float


@dataclass
class AnalysisConfig:
    """Complete analysis configuration."""

    name: str
    description: Optional[str] = None

    # Price sweep
    price_low: float = 0.0
    price_high: float = 0.0
    steps: int = 100

    # Valuation
    implied_volatility: float = DEFAULT_IMPLIED_VOLATILITY
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    as_of: Optional[Union[str, date, datetime]] = None  # None = today

    # Comparison
    benchmark: Optional[BenchmarkConfig] = None

    # Transaction log: a file path, inline records, or both
    transactions_file: Optional[str] = None
    transactions: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def price_range(self):
        return (self.price_low, self.price_high)

    @property
    def valuation_date(self) -> date:
        """as_of parsed to a date, today if unset or unparseable."""
        parsed = ConfigValidator._parse_date(self.as_of) if self.as_of else None
        return parsed or date.today()


class ConfigValidator:
    """Validates analysis configuration."""

    MAX_STEPS = 10000

    @classmethod
    def validate(cls, config: AnalysisConfig) -> List[str]:
        """
        Validate an analysis configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        # Required fields
        if not config.name:
            errors.append("Analysis name is required")

        errors.extend(cls._validate_sweep(config))
        errors.extend(cls._validate_valuation(config))

        if config.benchmark:
            errors.extend(cls._validate_benchmark(config.benchmark))

        for i, record in enumerate(config.transactions):
            try:
                transaction_from_dict(record)
            except TransactionError as e:
                errors.append(f"Transaction [{i}]: {e}")

        return errors

    @classmethod
    def _validate_sweep(cls, config: AnalysisConfig) -> List[str]:
        """Validate the price sweep."""
        errors = []

        if config.price_low < 0:
            errors.append(f"price_low cannot be negative, got {config.price_low}")

        if config.price_low >= config.price_high:
            errors.append(
                f"price_low ({config.price_low}) must be less than "
                f"price_high ({config.price_high})"
            )

        if config.steps <= 0:
            errors.append(f"steps must be positive, got {config.steps}")
        elif config.steps > cls.MAX_STEPS:
            errors.append(
                f"steps {config.steps} seems unreasonably large (>{cls.MAX_STEPS})"
            )

        return errors

    @classmethod
    def _validate_valuation(cls, config: AnalysisConfig) -> List[str]:
        """Validate valuation inputs."""
        errors = []

        if config.implied_volatility <= 0:
            errors.append(
                f"implied_volatility must be positive, got {config.implied_volatility}"
            )
        elif config.implied_volatility > 5:
            errors.append(
                f"implied_volatility {config.implied_volatility:.0%} is unusual - "
                "use a decimal (e.g., 0.30 for 30%)"
            )

        if abs(config.risk_free_rate) > 1:
            errors.append(
                f"risk_free_rate {config.risk_free_rate} looks like a percentage - "
                "use a decimal (e.g., 0.04 for 4%)"
            )

        if config.as_of is not None and cls._parse_date(config.as_of) is None:
            errors.append(f"Invalid as_of format: {config.as_of}")

        return errors

    @classmethod
    def _validate_benchmark(cls, benchmark: BenchmarkConfig) -> List[str]:
        """Validate benchmark configuration."""
        errors = []

        if benchmark.quantity <= 0:
            errors.append("Benchmark quantity must be positive")

        if benchmark.cost_basis_per_share < 0:
            errors.append("Benchmark cost basis cannot be negative")

        return errors

    @staticmethod
    def _parse_date(date_value: Union[str, date, datetime]) -> Optional[date]:
        """Parse various date formats."""
        if isinstance(date_value, datetime):
            return date_value.date()
        if isinstance(date_value, date):
            return date_value
        if isinstance(date_value, str):
            for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y"):
                try:
                    return datetime.strptime(date_value, fmt).date()
                except ValueError:
                    continue
        return None


def validate_config(config: AnalysisConfig) -> None:
    """
    Validate configuration and raise exception if invalid.

    Args:
        config: Analysis configuration to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = ConfigValidator.validate(config)
    if errors:
        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s)",
            errors=errors,
        )
