"""
CLI Package for the Trade Ledger

Provides command-line interface tools for replaying transaction logs,
generating P/L curves, validating configurations, and managing
environments.

Usage:
    # Replay a transaction log
    tradeledger replay --transactions trades.yaml

    # Generate P/L curves
    tradeledger curves --config analysis.yaml --output curves.csv

    # Validate a configuration
    tradeledger validate --config analysis.yaml
"""

from tradeledger.cli.config_schema import (
    # Config Classes
    AnalysisConfig,
    BenchmarkConfig,
    # Validation
    ConfigValidator,
    ConfigValidationError,
    validate_config,
)

from tradeledger.cli.config_loader import (
    ConfigLoader,
    load_config,
    load_config_string,
    load_transactions,
    save_transactions,
    parse_transactions,
    config_transactions,
)

from tradeledger.cli.environment import (
    Environment,
    EnvironmentSettings,
    EnvironmentManager,
    get_environment,
    get_settings,
    set_environment,
    configure_logging,
)

__all__ = [
    # Config Classes
    "AnalysisConfig",
    "BenchmarkConfig",
    # Validation
    "ConfigValidator",
    "ConfigValidationError",
    "validate_config",
    # Loader
    "ConfigLoader",
    "load_config",
    "load_config_string",
    "load_transactions",
    "save_transactions",
    "parse_transactions",
    "config_transactions",
    # Environment
    "Environment",
    "EnvironmentSettings",
    "EnvironmentManager",
    "get_environment",
    "get_settings",
    "set_environment",
    "configure_logging",
]
