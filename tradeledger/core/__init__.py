"""
Core Module for the Trade Ledger

This module provides the building blocks shared by the ledger and the curve
generator: transaction records, position snapshots, and option pricing.

Components:
    - transactions: Closed set of trade event records and (de)serialization
    - positions: Open position snapshots and the replay result
    - pricing: Black-Scholes valuation with intrinsic-value fallback

Usage:
    from tradeledger.core import (
        BuyShare,
        OpenOption,
        OptionKind,
        PositionDirection,
        theoretical_price_per_share,
    )

    price = theoretical_price_per_share(100, 100, 0.05, 0.25, 0.20, is_call=True)
"""

from tradeledger.core.transactions import (
    # Records
    BuyShare,
    SellShare,
    OpenOption,
    CloseOption,
    ExpireOption,
    AssignOrExercise,
    Transaction,
    # Enums
    OptionKind,
    PositionDirection,
    TransactionType,
    # Exceptions
    TransactionError,
    TransactionValidationError,
    # Helpers
    make_option_id,
    transaction_type,
    transaction_from_dict,
    transaction_to_dict,
)

from tradeledger.core.positions import (
    DiagnosticKind,
    Diagnostic,
    RealizedEvent,
    OpenSharePosition,
    OpenOptionPosition,
    PriceCurvePoint,
    ProcessedPortfolioState,
)

from tradeledger.core.pricing import (
    normal_cdf,
    time_to_expiration_years,
    intrinsic_value,
    theoretical_price_per_share,
    option_position_value,
    CONTRACT_MULTIPLIER,
    DAYS_PER_YEAR,
    DEFAULT_IMPLIED_VOLATILITY,
    DEFAULT_RISK_FREE_RATE,
)

__all__ = [
    # Transactions
    "BuyShare",
    "SellShare",
    "OpenOption",
    "CloseOption",
    "ExpireOption",
    "AssignOrExercise",
    "Transaction",
    "OptionKind",
    "PositionDirection",
    "TransactionType",
    "TransactionError",
    "TransactionValidationError",
    "make_option_id",
    "transaction_type",
    "transaction_from_dict",
    "transaction_to_dict",
    # Positions
    "DiagnosticKind",
    "Diagnostic",
    "RealizedEvent",
    "OpenSharePosition",
    "OpenOptionPosition",
    "PriceCurvePoint",
    "ProcessedPortfolioState",
    # Pricing
    "normal_cdf",
    "time_to_expiration_years",
    "intrinsic_value",
    "theoretical_price_per_share",
    "option_position_value",
    "CONTRACT_MULTIPLIER",
    "DAYS_PER_YEAR",
    "DEFAULT_IMPLIED_VOLATILITY",
    "DEFAULT_RISK_FREE_RATE",
]
