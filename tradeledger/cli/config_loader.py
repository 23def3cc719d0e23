"""
Configuration Loader for Analysis Definitions

Loads analysis configurations and transaction logs from YAML and JSON
files, validates them, and converts them to AnalysisConfig objects and
transaction records.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union
import logging

import yaml

from tradeledger.cli.config_schema import (
    AnalysisConfig,
    BenchmarkConfig,
    ConfigValidationError,
    ConfigValidator,
)
from tradeledger.cli.environment import get_settings
from tradeledger.core.transactions import (
    Transaction,
    TransactionError,
    TransactionValidationError,
    transaction_from_dict,
    transaction_to_dict,
)

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and parses analysis configuration files."""

    @classmethod
    def load(cls, path: Union[str, Path]) -> AnalysisConfig:
        """
        Load configuration from file.

        A relative ``transactions_file`` is resolved against the directory
        of the configuration file.

        Args:
            path: Path to YAML or JSON configuration file

        Returns:
            Parsed and validated AnalysisConfig

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigValidationError: If configuration is invalid
            ValueError: If file format is unsupported
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        raw_data = cls._load_file(path)

        config = cls._parse_config(raw_data)

        if config.transactions_file and not Path(config.transactions_file).is_absolute():
            config.transactions_file = str(path.parent / config.transactions_file)

        errors = ConfigValidator.validate(config)
        if errors:
            raise ConfigValidationError(
                f"Configuration validation failed: {path}", errors=errors
            )

        logger.info(f"Loaded configuration '{config.name}' from {path}")
        return config

    @classmethod
    def load_from_string(cls, content: str, format: str = "yaml") -> AnalysisConfig:
        """
        Load configuration from string content.

        Args:
            content: YAML or JSON string
            format: "yaml" or "json"

        Returns:
            Parsed and validated AnalysisConfig
        """
        raw_data = cls._parse_string(content, format)

        config = cls._parse_config(raw_data)

        errors = ConfigValidator.validate(config)
        if errors:
            raise ConfigValidationError(
                "Configuration validation failed", errors=errors
            )

        return config

    @classmethod
    def _parse_string(cls, content: str, format: str) -> Any:
        if format.lower() == "yaml":
            return yaml.safe_load(content)
        elif format.lower() == "json":
            return json.loads(content)
        else:
            raise ValueError(f"Unsupported format: {format}")

    @classmethod
    def _load_file(cls, path: Path) -> Any:
        """Load raw data from file."""
        suffix = path.suffix.lower()

        with open(path, "r") as f:
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
            elif suffix == ".json":
                return json.load(f)
            else:
                raise ValueError(f"Unsupported file format: {suffix}")

    @staticmethod
    def _number(data: Dict[str, Any], key: str, default: Any, cast=float) -> Any:
        value = data.get(key, default)
        try:
            return cast(value)
        except (TypeError, ValueError):
            raise ConfigValidationError(
                "Configuration validation failed",
                errors=[f"{key} must be a number, got {value!r}"],
            )

    @classmethod
    def _parse_config(cls, data: Any) -> AnalysisConfig:
        """Parse raw dictionary into AnalysisConfig.

        Omitted steps and valuation inputs come from the active environment.
        """
        if not isinstance(data, dict):
            raise ConfigValidationError(
                "Configuration validation failed",
                errors=["Configuration must be a mapping"],
            )

        defaults = get_settings()

        sweep = data.get("price_range") or {}
        if isinstance(sweep, (list, tuple)) and len(sweep) == 2:
            sweep = {"low": sweep[0], "high": sweep[1]}

        benchmark = None
        if data.get("benchmark"):
            benchmark = cls._parse_benchmark(data["benchmark"])

        transactions = data.get("transactions") or []
        if not isinstance(transactions, list):
            raise ConfigValidationError(
                "Configuration validation failed",
                errors=["transactions must be a list"],
            )

        return AnalysisConfig(
            name=data.get("name", "Unnamed Analysis"),
            description=data.get("description"),
            price_low=cls._number(sweep, "low", data.get("price_low", 0.0)),
            price_high=cls._number(sweep, "high", data.get("price_high", 0.0)),
            steps=cls._number(data, "steps", defaults.curve_steps, cast=int),
            implied_volatility=cls._number(data, "implied_volatility", defaults.implied_volatility),
            risk_free_rate=cls._number(data, "risk_free_rate", defaults.risk_free_rate),
            as_of=data.get("as_of"),
            benchmark=benchmark,
            transactions_file=data.get("transactions_file"),
            transactions=transactions,
        )

    @classmethod
    def _parse_benchmark(cls, data: Dict[str, Any]) -> BenchmarkConfig:
        """Parse benchmark configuration."""
        return BenchmarkConfig(
            quantity=cls._number(data, "quantity", 0.0),
            cost_basis_per_share=cls._number(data, "cost_basis_per_share", 0.0),
        )


# =============================================================================
# Transaction Logs
# =============================================================================

def parse_transactions(records: Sequence[Dict[str, Any]]) -> List[Transaction]:
    """
    Convert raw transaction mappings into records.

    Raises:
        TransactionValidationError: Listing the index of the first bad record
    """
    transactions = []
    for i, record in enumerate(records):
        try:
            transactions.append(transaction_from_dict(record))
        except TransactionError as e:
            raise TransactionValidationError(f"Transaction [{i}]: {e}")
    return transactions


def load_transactions(path: Union[str, Path]) -> List[Transaction]:
    """
    Load a transaction log file.

    The file holds either a list of transaction mappings or a mapping with
    a ``transactions`` key.

    Args:
        path: Path to a YAML or JSON transaction log

    Returns:
        Transaction records in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        TransactionValidationError: If a record is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Transaction log not found: {path}")

    data = ConfigLoader._load_file(path)
    if isinstance(data, dict):
        data = data.get("transactions")
    if data is None:
        data = []
    if not isinstance(data, list):
        raise TransactionValidationError(
            f"{path}: expected a list of transactions"
        )

    transactions = parse_transactions(data)
    logger.info(f"Loaded {len(transactions)} transactions from {path}")
    return transactions


def save_transactions(
    transactions: Sequence[Transaction],
    path: Union[str, Path]
) -> Path:
    """
    Write a transaction log as YAML or JSON (chosen by file extension).

    Returns:
        The path written

    Raises:
        ValueError: If the extension is not .yaml, .yml or .json; nothing
            is written in that case
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".yaml", ".yml", ".json"):
        raise ValueError(f"Unsupported file format: {suffix}")

    records = {"transactions": [transaction_to_dict(tx) for tx in transactions]}

    with open(path, "w") as f:
        if suffix == ".json":
            json.dump(records, f, indent=2)
        else:
            yaml.safe_dump(records, f, sort_keys=False)

    logger.info(f"Saved {len(transactions)} transactions to {path}")
    return path


def config_transactions(config: AnalysisConfig) -> List[Transaction]:
    """Transactions of an analysis: the log file first, then inline records."""
    transactions: List[Transaction] = []
    if config.transactions_file:
        transactions.extend(load_transactions(config.transactions_file))
    transactions.extend(parse_transactions(config.transactions))
    return transactions


def load_config(path: Union[str, Path]) -> AnalysisConfig:
    """
    Convenience function to load a configuration file.

    Args:
        path: Path to YAML or JSON config file

    Returns:
        Validated AnalysisConfig
    """
    return ConfigLoader.load(path)


def load_config_string(content: str, format: str = "yaml") -> AnalysisConfig:
    """
    Convenience function to load configuration from string.

    Args:
        content: YAML or JSON string
        format: "yaml" or "json"

    Returns:
        Validated AnalysisConfig
    """
    return ConfigLoader.load_from_string(content, format)
