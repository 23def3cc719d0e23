"""
Environment Management for the Trade Ledger

The active environment (development, staging, production, test) supplies
the valuation defaults used when an analysis config leaves them out, and
the log level used by the CLI.

A setting is resolved from, in order:
    1. The analysis config file itself
    2. ``<env>.yaml`` or ``tradeledger.yaml`` on the config search path
    3. The built-in defaults for the environment
"""

import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml

from tradeledger.core.pricing import DEFAULT_IMPLIED_VOLATILITY, DEFAULT_RISK_FREE_RATE

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Available environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "Environment":
        """Parse an environment name, falling back to development."""
        if not name:
            return cls.DEVELOPMENT
        try:
            return cls(name.strip().lower())
        except ValueError:
            logger.warning(f"Unknown environment '{name}', defaulting to development")
            return cls.DEVELOPMENT


@dataclass(frozen=True)
class EnvironmentSettings:
    """Valuation defaults and logging for one environment."""

    name: Environment

    # Applied to analysis configs that omit them
    implied_volatility: float = DEFAULT_IMPLIED_VOLATILITY
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    curve_steps: int = 100

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_mapping(cls, name: Environment, data: Dict[str, Any]) -> "EnvironmentSettings":
        """
        Build settings from a mapping of overrides.

        Unknown keys are ignored with a warning.

        Raises:
            ValueError: If a numeric setting cannot be converted
        """
        known = {f.name for f in fields(cls)} - {"name"}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown environment settings: {', '.join(unknown)}")

        values = {key: data[key] for key in known if key in data}
        try:
            for key in ("implied_volatility", "risk_free_rate"):
                if key in values:
                    values[key] = float(values[key])
            if "curve_steps" in values:
                values["curve_steps"] = int(values["curve_steps"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid {name.value} environment settings: {e}")

        return cls(name=name, **values)


# Built-in overrides per environment
ENVIRONMENT_DEFAULTS: Dict[Environment, Dict[str, Any]] = {
    Environment.DEVELOPMENT: {"log_level": "DEBUG"},
    Environment.STAGING: {},
    Environment.PRODUCTION: {"log_level": "WARNING"},
    Environment.TEST: {"log_level": "DEBUG", "curve_steps": 20},
}


class EnvironmentManager:
    """Tracks the active environment and caches its settings."""

    # Environment variable name for current environment
    ENV_VAR = "TRADELEDGER_ENV"

    # Directories searched for environment files
    CONFIG_PATHS: List[Path] = [
        Path.cwd() / "config",
        Path.cwd() / ".config",
        Path.home() / ".tradeledger",
    ]

    _current_env: Optional[Environment] = None
    _settings: Optional[EnvironmentSettings] = None

    @classmethod
    def get_environment(cls) -> Environment:
        """The environment set explicitly, else $TRADELEDGER_ENV, else development."""
        if cls._current_env is not None:
            return cls._current_env
        return Environment.from_name(os.environ.get(cls.ENV_VAR))

    @classmethod
    def set_environment(cls, env: Environment) -> None:
        cls._current_env = env
        cls._settings = None
        logger.debug(f"Environment set to: {env.value}")

    @classmethod
    def get_settings(cls) -> EnvironmentSettings:
        """Settings for the current environment, loaded once and cached."""
        if cls._settings is None:
            env = cls.get_environment()
            data = dict(ENVIRONMENT_DEFAULTS[env])

            path = cls.find_config_file(env)
            if path is not None:
                data.update(cls._read_overrides(path, env))

            cls._settings = EnvironmentSettings.from_mapping(env, data)
        return cls._settings

    @classmethod
    def find_config_file(cls, env: Environment) -> Optional[Path]:
        """First environment file on the search path, if any."""
        names = (
            f"{env.value}.yaml",
            f"{env.value}.yml",
            "tradeledger.yaml",
            "tradeledger.yml",
        )
        for directory in cls.CONFIG_PATHS:
            for name in names:
                candidate = Path(directory) / name
                if candidate.is_file():
                    return candidate
        return None

    @staticmethod
    def _read_overrides(path: Path, env: Environment) -> Dict[str, Any]:
        """
        Read overrides from an environment file.

        The file is either a flat mapping of settings or a mapping keyed by
        environment name, in which case only this environment's section is
        used.
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring {path}: expected a mapping")
            return {}

        if any(member.value in data for member in Environment):
            data = data.get(env.value) or {}

        logger.debug(f"Loaded environment overrides from {path}")
        return data

    @classmethod
    def reset(cls) -> None:
        """Forget the explicit environment and cached settings."""
        cls._current_env = None
        cls._settings = None

    @classmethod
    def is_development(cls) -> bool:
        return cls.get_environment() == Environment.DEVELOPMENT

    @classmethod
    def is_production(cls) -> bool:
        return cls.get_environment() == Environment.PRODUCTION

    @classmethod
    def is_test(cls) -> bool:
        return cls.get_environment() == Environment.TEST


def get_environment() -> Environment:
    """Get current environment."""
    return EnvironmentManager.get_environment()


def get_settings() -> EnvironmentSettings:
    """Get current environment settings."""
    return EnvironmentManager.get_settings()


def set_environment(env: Environment) -> None:
    """Set current environment."""
    EnvironmentManager.set_environment(env)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger from the environment settings.

    Args:
        level: Overrides the environment's log level (e.g. "DEBUG" for -v)
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    handlers: List[logging.Handler] = []
    if not root_logger.handlers:
        handlers.append(logging.StreamHandler())

    if settings.log_file:
        log_path = os.path.abspath(settings.log_file)
        already_open = any(
            isinstance(handler, logging.FileHandler) and handler.baseFilename == log_path
            for handler in root_logger.handlers
        )
        if not already_open:
            handlers.append(logging.FileHandler(log_path))

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logger.info(f"Logging configured for {settings.name.value} environment")
