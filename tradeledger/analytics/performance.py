"""
Realized Performance Metrics for the Trade Ledger

This module summarizes the realized side of a replayed portfolio: how
often closed legs made money, how profits compare to losses, and how
realized P/L accumulated over time.

Inputs:
    Every function works on the realized-events DataFrame returned by
    ``realized_events_frame``: one row per transaction leg that realized
    P/L, with columns ``transaction_id``, ``date``, ``ticker``, ``source``
    and ``realized_pl``.

Conventions:
    - A leg with realized P/L of exactly zero is not a win.
    - An empty frame yields 0 for rates and factors, and empty series for
      cumulative totals, rather than raising.

Usage:
    from tradeledger.analytics.performance import (
        realized_events_frame,
        calculate_success_rate,
        cumulative_realized_by_month,
    )

    events = realized_events_frame(state)
    print(f"Success rate: {calculate_success_rate(events):.1f}%")
    print(cumulative_realized_by_month(events))
"""

import logging
from typing import Any, Dict

import numpy as np
import pandas as pd

from tradeledger.core.positions import ProcessedPortfolioState

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

EVENT_COLUMNS = ['transaction_id', 'date', 'ticker', 'source', 'realized_pl']


# =============================================================================
# Event Extraction
# =============================================================================

def realized_events_frame(state: ProcessedPortfolioState) -> pd.DataFrame:
    """
    Realized events of a replay as a DataFrame.

    Returns:
        DataFrame with EVENT_COLUMNS, ``date`` as datetime64. Empty (with
        the same columns) when nothing was realized.
    """
    frame = pd.DataFrame(
        [
            {
                'transaction_id': event.transaction_id,
                'date': event.date,
                'ticker': event.ticker,
                'source': event.source,
                'realized_pl': event.realized_pl,
            }
            for event in state.realized_events
        ],
        columns=EVENT_COLUMNS,
    )
    frame['date'] = pd.to_datetime(frame['date'])
    return frame


def _require_pl(events: pd.DataFrame) -> pd.Series:
    if 'realized_pl' not in events.columns:
        raise KeyError("events DataFrame must contain 'realized_pl' column")
    return events['realized_pl'].dropna()


# =============================================================================
# Trade Statistics
# =============================================================================

def calculate_success_rate(events: pd.DataFrame) -> float:
    """
    Percentage of realized legs with positive P/L.

    Formula:
        Success Rate = winning legs / total legs * 100

    Returns:
        Success rate (0-100); 0 when there are no events

    Example:
        >>> rate = calculate_success_rate(events)
        >>> print(f"Success Rate: {rate:.1f}%")
    """
    pnl = _require_pl(events)
    if pnl.empty:
        return 0.0
    return float((pnl > 0).sum() / len(pnl) * 100.0)


def calculate_profit_factor(events: pd.DataFrame) -> float:
    """
    Gross profit divided by gross loss.

    Returns:
        Profit factor; inf when there are gains but no losses, 0 when there
        are no gains
    """
    pnl = _require_pl(events)
    gross_profit = pnl[pnl > 0].sum()
    gross_loss = abs(pnl[pnl < 0].sum())

    if gross_profit == 0:
        return 0.0
    if gross_loss == 0:
        return float(np.inf)
    return float(gross_profit / gross_loss)


def _cumulative_by(events: pd.DataFrame, period_format: str) -> pd.Series:
    pnl = _require_pl(events)
    if pnl.empty:
        return pd.Series(dtype=float, name='cumulative_realized_pl')

    dates = pd.to_datetime(events.loc[pnl.index, 'date'])
    totals = pnl.groupby(dates.dt.strftime(period_format)).sum().sort_index()
    cumulative = totals.cumsum()
    cumulative.index.name = 'period'
    return cumulative.rename('cumulative_realized_pl')


def cumulative_realized_by_month(events: pd.DataFrame) -> pd.Series:
    """
    Running realized P/L at the end of each month.

    Returns:
        Series indexed by ``YYYY-MM`` in ascending order. Months with no
        realized events are omitted.
    """
    return _cumulative_by(events, '%Y-%m')


def cumulative_realized_by_year(events: pd.DataFrame) -> pd.Series:
    """Running realized P/L at the end of each year, indexed by ``YYYY``."""
    return _cumulative_by(events, '%Y')


# =============================================================================
# Summary
# =============================================================================

def performance_summary(state: ProcessedPortfolioState) -> Dict[str, Any]:
    """
    Realized performance of a replayed portfolio.

    Returns:
        Dictionary with keys: total_realized_pl, num_events, num_winners,
        num_losers, success_rate, profit_factor, largest_win, largest_loss,
        by_month, by_year (the last two as plain dicts)
    """
    events = realized_events_frame(state)
    pnl = events['realized_pl']

    summary = {
        'total_realized_pl': state.realized_pl,
        'num_events': int(len(pnl)),
        'num_winners': int((pnl > 0).sum()),
        'num_losers': int((pnl < 0).sum()),
        'success_rate': calculate_success_rate(events),
        'profit_factor': calculate_profit_factor(events),
        'largest_win': float(pnl.max()) if not pnl.empty and pnl.max() > 0 else 0.0,
        'largest_loss': float(pnl.min()) if not pnl.empty and pnl.min() < 0 else 0.0,
        'by_month': cumulative_realized_by_month(events).to_dict(),
        'by_year': cumulative_realized_by_year(events).to_dict(),
    }

    logger.debug(
        f"Performance: {summary['num_events']} realized legs, "
        f"success rate {summary['success_rate']:.1f}%"
    )
    return summary


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    'realized_events_frame',
    'calculate_success_rate',
    'calculate_profit_factor',
    'cumulative_realized_by_month',
    'cumulative_realized_by_year',
    'performance_summary',
    'EVENT_COLUMNS',
]
