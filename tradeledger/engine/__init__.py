"""
Engine Module for the Trade Ledger

This module turns a transaction log into open positions and projected P/L.

Components:
    - TransactionLedger: Replays transactions into a ProcessedPortfolioState
    - CurveGenerator: Theoretical, expiration and benchmark P/L curves,
      crossover and breakeven prices

Architecture:
    Data flows one way:
    1. The caller owns the transaction log
    2. TransactionLedger.replay produces an immutable snapshot
    3. CurveGenerator values the snapshot across a price sweep

Usage:
    from tradeledger.engine import CurveGenerator, replay

    state = replay(transactions)
    generator = CurveGenerator(as_of=date(2024, 2, 1))
    expiry = generator.expiration_curve(state, (80, 120))
    bench = generator.benchmark_curve(100, 95.0, (80, 120))
    print(generator.find_crossovers(expiry, bench))
"""

from tradeledger.engine.ledger import (
    TransactionLedger,
    replay,
    derive_share_transaction,
    positions_summary,
    transactions_frame,
    portfolio_statistics,
)

from tradeledger.engine.curves import (
    CurveGenerator,
    total_cost_basis,
    theoretical_curve,
    expiration_curve,
    benchmark_curve,
    find_crossovers,
    find_breakevens,
    curve_to_frame,
    curves_frame,
)

__all__ = [
    # Ledger
    "TransactionLedger",
    "replay",
    "derive_share_transaction",
    "positions_summary",
    "transactions_frame",
    "portfolio_statistics",
    # Curves
    "CurveGenerator",
    "total_cost_basis",
    "theoretical_curve",
    "expiration_curve",
    "benchmark_curve",
    "find_crossovers",
    "find_breakevens",
    "curve_to_frame",
    "curves_frame",
]
