"""
Analytics Module for the Trade Ledger

This module provides realized-performance metrics computed from the events
recorded while replaying a transaction log.

Components:
    - performance: Success rate, profit factor, cumulative realized P/L

Usage:
    from tradeledger.analytics import performance_summary

    summary = performance_summary(state)
    print(f"Success rate: {summary['success_rate']:.1f}%")
"""

from tradeledger.analytics.performance import (
    realized_events_frame,
    calculate_success_rate,
    calculate_profit_factor,
    cumulative_realized_by_month,
    cumulative_realized_by_year,
    performance_summary,
)

__all__ = [
    "realized_events_frame",
    "calculate_success_rate",
    "calculate_profit_factor",
    "cumulative_realized_by_month",
    "cumulative_realized_by_year",
    "performance_summary",
]
