"""
Trade Ledger Package

Replays share and option trade logs into open positions and realized P/L,
values the open positions with Black-Scholes, and projects P/L curves over
a sweep of underlying prices.

Modules:
    core: Transaction records, position snapshots, option pricing
    engine: Ledger replay and P/L curve generation
    analytics: Realized performance metrics
    cli: Command-line interface and configuration management
"""

__version__ = "1.0.0"
__author__ = "Trade Ledger Team"

from tradeledger.core import (
    BuyShare,
    SellShare,
    OpenOption,
    CloseOption,
    ExpireOption,
    AssignOrExercise,
    OptionKind,
    PositionDirection,
    ProcessedPortfolioState,
)
from tradeledger.engine import (
    CurveGenerator,
    TransactionLedger,
    replay,
)
from tradeledger.cli import (
    load_config,
    load_config_string,
    load_transactions,
    AnalysisConfig,
    Environment,
    get_environment,
    set_environment,
)

__all__ = [
    "__version__",
    "__author__",
    "BuyShare",
    "SellShare",
    "OpenOption",
    "CloseOption",
    "ExpireOption",
    "AssignOrExercise",
    "OptionKind",
    "PositionDirection",
    "ProcessedPortfolioState",
    "CurveGenerator",
    "TransactionLedger",
    "replay",
    "load_config",
    "load_config_string",
    "load_transactions",
    "AnalysisConfig",
    "Environment",
    "get_environment",
    "set_environment",
]
