"""
CurveGenerator for the Trade Ledger

This module sweeps a range of hypothetical underlying prices and values the
open positions of a replayed portfolio at each price. It produces three
kinds of P/L curve and locates the prices where curves meet.

Curve Kinds:
    - Theoretical: options valued with Black-Scholes as of a valuation date
    - Expiration: options valued at intrinsic value (payoff at expiry)
    - Benchmark: buy-and-hold of a fixed share quantity at a fixed cost

Price Sweep:
    price_i = low + i * (high - low) / steps,  for i = 0..steps
    A degenerate range (low >= high) or steps <= 0 yields an empty curve.

Portfolio P/L at a price:
    P/L = sum(share quantity * price)
        + sum(option position value)
        - total cost basis

    where the cost basis is the share cost plus the option premium paid
    (long series add their debit, short series subtract their credit).

Usage:
    from tradeledger.engine.curves import CurveGenerator

    generator = CurveGenerator(as_of=date(2024, 2, 1), implied_volatility=0.25)
    theo = generator.theoretical_curve(state, (80, 120))
    expiry = generator.expiration_curve(state, (80, 120))
    bench = generator.benchmark_curve(100, 95.0, (80, 120))
    crossings = generator.find_crossovers(expiry, bench)
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.optimize import brentq

from tradeledger.core.positions import (
    OpenOptionPosition,
    PriceCurvePoint,
    ProcessedPortfolioState,
)
from tradeledger.core.pricing import (
    CONTRACT_MULTIPLIER,
    DEFAULT_IMPLIED_VOLATILITY,
    DEFAULT_RISK_FREE_RATE,
    intrinsic_value,
    option_position_value,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_STEPS = 100

# Grid used to bracket breakeven roots before refining with brentq
DEFAULT_BREAKEVEN_SEARCH_POINTS = 1000
BREAKEVEN_TOLERANCE = 1e-6

PriceRange = Tuple[float, float]
Curve = List[PriceCurvePoint]


# =============================================================================
# Helper Functions
# =============================================================================

def _price_sweep(price_range: PriceRange, steps: int) -> List[float]:
    """Sample prices for a sweep, or [] for a degenerate request."""
    low, high = price_range
    if (
        not np.isfinite(low)
        or not np.isfinite(high)
        or low >= high
        or steps is None
        or steps <= 0
    ):
        logger.warning(
            f"Degenerate price range: low={low}, high={high}, steps={steps}"
        )
        return []

    step_size = (high - low) / steps
    return [low + i * step_size for i in range(int(steps) + 1)]


def _resolve_as_of(as_of: Optional[Union[date, datetime]]) -> date:
    if as_of is None:
        return date.today()
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def total_cost_basis(state: ProcessedPortfolioState) -> float:
    """
    Net dollars invested in the open positions.

    Share cost basis plus option premium effects: a long series adds the
    premium paid, a short series subtracts the premium received.

    Example:
        >>> # 100 shares at $50 plus 1 short call sold for $200
        >>> total_cost_basis(state)
        4800.0
    """
    shares = sum(position.total_cost for position in state.open_shares)
    options = sum(-series.net_premium_value for series in state.open_options)
    return shares + options


def _expiration_value(series: OpenOptionPosition, price: float) -> float:
    sign = 1.0 if series.is_long else -1.0
    payoff = intrinsic_value(price, series.strike, series.is_call)
    return sign * payoff * series.quantity * CONTRACT_MULTIPLIER


def _portfolio_pl(
    state: ProcessedPortfolioState,
    price: float,
    option_value: Callable[[OpenOptionPosition, float], float],
    cost_basis: float
) -> float:
    if np.isnan(price) or price < 0:
        logger.warning(f"Skipping P/L for invalid underlying price {price}")
        return 0.0

    value = sum(position.quantity * price for position in state.open_shares)
    value += sum(option_value(series, price) for series in state.open_options)
    return value - cost_basis


def _sweep(
    state: ProcessedPortfolioState,
    price_range: PriceRange,
    steps: int,
    option_value: Callable[[OpenOptionPosition, float], float]
) -> Curve:
    prices = _price_sweep(price_range, steps)
    if not prices:
        return []

    cost_basis = total_cost_basis(state)
    return [
        PriceCurvePoint(price, _portfolio_pl(state, price, option_value, cost_basis))
        for price in prices
    ]


# =============================================================================
# Curves
# =============================================================================

def theoretical_curve(
    state: ProcessedPortfolioState,
    price_range: PriceRange,
    steps: int = DEFAULT_STEPS,
    as_of: Optional[Union[date, datetime]] = None,
    implied_volatility: float = DEFAULT_IMPLIED_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
) -> Curve:
    """
    Portfolio P/L across a price sweep with options valued by Black-Scholes.

    Args:
        state: Replayed portfolio
        price_range: (low, high) underlying prices
        steps: Number of intervals; the curve has steps + 1 points
        as_of: Valuation date (defaults to today)
        implied_volatility: Volatility applied to every option (decimal)
        risk_free_rate: Risk-free rate (decimal)

    Returns:
        List of PriceCurvePoint, empty for a degenerate range
    """
    valuation_date = _resolve_as_of(as_of)

    def value_option(series: OpenOptionPosition, price: float) -> float:
        return option_position_value(
            price,
            series.strike,
            series.option_kind,
            series.direction,
            series.quantity,
            series.expiration,
            valuation_date,
            volatility=implied_volatility,
            risk_free_rate=risk_free_rate,
        )

    return _sweep(state, price_range, steps, value_option)


def expiration_curve(
    state: ProcessedPortfolioState,
    price_range: PriceRange,
    steps: int = DEFAULT_STEPS
) -> Curve:
    """Portfolio P/L across a price sweep with options at intrinsic value."""
    return _sweep(state, price_range, steps, _expiration_value)


def benchmark_curve(
    quantity: float,
    cost_basis_per_share: float,
    price_range: PriceRange,
    steps: int = DEFAULT_STEPS
) -> Curve:
    """
    Buy-and-hold P/L: quantity * (price - cost_basis_per_share).

    Returns an empty curve when quantity <= 0, the cost basis is negative,
    or the sweep is degenerate.

    Example:
        >>> [p.as_tuple() for p in benchmark_curve(200, 290, (250, 350), 2)]
        [(250.0, -8000.0), (300.0, 2000.0), (350.0, 12000.0)]
    """
    if (
        not np.isfinite(quantity)
        or quantity <= 0
        or not np.isfinite(cost_basis_per_share)
        or cost_basis_per_share < 0
    ):
        logger.warning(
            f"Invalid benchmark: quantity={quantity}, "
            f"cost_basis_per_share={cost_basis_per_share}"
        )
        return []

    return [
        PriceCurvePoint(float(price), quantity * (price - cost_basis_per_share))
        for price in _price_sweep(price_range, steps)
    ]


# =============================================================================
# Curve Intersections
# =============================================================================

def find_crossovers(curve_a: Sequence[PriceCurvePoint], curve_b: Sequence[PriceCurvePoint]) -> List[float]:
    """
    Prices at which two sampled curves cross.

    Walks the difference a - b and, wherever it changes sign (negative to
    non-negative or positive to non-positive), interpolates linearly
    between the bracketing samples:

        price = p[i-1] + |d[i-1]| / |d[i] - d[i-1]| * (p[i] - p[i-1])

    falling back to p[i] when the denominator is zero. A zero difference
    does not replace the reference sign, so a curve that touches and then
    crosses is still detected.

    Args:
        curve_a: First curve (typically the expiration curve)
        curve_b: Second curve sampled at the same prices

    Returns:
        Crossover prices in ascending sweep order, exact duplicates removed.
        Empty when the curves are empty or not sampled at the same prices.
    """
    if not curve_a or not curve_b or len(curve_a) != len(curve_b):
        logger.warning(
            f"Cannot compare curves of length {len(curve_a)} and {len(curve_b)}"
        )
        return []

    for point_a, point_b in zip(curve_a, curve_b):
        if point_a.price != point_b.price:
            logger.warning(
                f"Curves sampled at different prices ({point_a.price} vs {point_b.price})"
            )
            return []

    diffs = [a.profit_loss - b.profit_loss for a, b in zip(curve_a, curve_b)]
    crossovers: List[float] = []
    reference_diff = diffs[0]

    for i in range(1, len(diffs)):
        previous_diff = diffs[i - 1]
        current_diff = diffs[i]

        crossed = (
            (reference_diff < 0 and current_diff >= 0)
            or (reference_diff > 0 and current_diff <= 0)
        )
        # still touching after a zero sample; already reported
        if crossed and current_diff == 0 and previous_diff == 0:
            crossed = False

        if crossed:
            span = current_diff - previous_diff
            if span != 0:
                lower = curve_a[i - 1].price
                upper = curve_a[i].price
                fraction = abs(previous_diff) / abs(span)
                crossing = lower + fraction * (upper - lower)
            else:
                crossing = curve_a[i].price
            if crossing not in crossovers:
                crossovers.append(crossing)

        if current_diff != 0:
            reference_diff = current_diff

    return crossovers


def find_breakevens(
    state: ProcessedPortfolioState,
    price_range: PriceRange,
    at_expiration: bool = True,
    as_of: Optional[Union[date, datetime]] = None,
    implied_volatility: float = DEFAULT_IMPLIED_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    num_search_points: int = DEFAULT_BREAKEVEN_SEARCH_POINTS,
    tolerance: float = BREAKEVEN_TOLERANCE
) -> List[float]:
    """
    Underlying prices where the portfolio P/L is zero.

    The range is scanned on a fine grid for sign changes and each bracketed
    root is refined with Brent's method.

    Args:
        state: Replayed portfolio
        price_range: (low, high) range to search; negative prices are
                     clipped to 0
        at_expiration: Use intrinsic values (True) or Black-Scholes values
        as_of: Valuation date for the theoretical P/L
        implied_volatility: Volatility for the theoretical P/L
        risk_free_rate: Risk-free rate for the theoretical P/L
        num_search_points: Grid size for the initial scan
        tolerance: Root-finding tolerance

    Returns:
        Sorted breakeven prices (empty if the portfolio is flat or the
        range is degenerate)

    Example:
        >>> breakevens = find_breakevens(state, (50, 150))
        >>> for be in breakevens:
        ...     print(f"Breakeven at ${be:.2f}")
    """
    if state.is_flat:
        return []

    low, high = price_range
    low = max(low, 0.0)
    if not np.isfinite(low) or not np.isfinite(high) or low >= high or num_search_points < 2:
        logger.warning(f"Degenerate breakeven search range: ({low}, {high})")
        return []

    cost_basis = total_cost_basis(state)
    if at_expiration:
        option_value = _expiration_value
    else:
        valuation_date = _resolve_as_of(as_of)

        def option_value(series: OpenOptionPosition, price: float) -> float:
            return option_position_value(
                price,
                series.strike,
                series.option_kind,
                series.direction,
                series.quantity,
                series.expiration,
                valuation_date,
                volatility=implied_volatility,
                risk_free_rate=risk_free_rate,
            )

    def pnl_func(price: float) -> float:
        return _portfolio_pl(state, price, option_value, cost_basis)

    spots = np.linspace(low, high, num_search_points)
    pnl_values = np.array([pnl_func(float(spot)) for spot in spots])

    breakevens: List[float] = []

    for i in range(len(spots) - 1):
        if pnl_values[i] * pnl_values[i + 1] < 0:
            try:
                root = brentq(pnl_func, spots[i], spots[i + 1], xtol=tolerance)
                breakevens.append(float(root))
            except (ValueError, RuntimeError):
                breakevens.append(float((spots[i] + spots[i + 1]) / 2))

        elif abs(pnl_values[i]) < tolerance:
            if not breakevens or abs(spots[i] - breakevens[-1]) > tolerance:
                breakevens.append(float(spots[i]))

    return sorted(breakevens)


# =============================================================================
# DataFrame Conversion
# =============================================================================

def curve_to_frame(curve: Sequence[PriceCurvePoint]) -> pd.DataFrame:
    """Curve as a DataFrame with ``price`` and ``profit_loss`` columns."""
    return pd.DataFrame(
        [point.as_tuple() for point in curve],
        columns=['price', 'profit_loss'],
    )


def curves_frame(
    theoretical: Sequence[PriceCurvePoint],
    expiration: Sequence[PriceCurvePoint],
    benchmark: Optional[Sequence[PriceCurvePoint]] = None
) -> pd.DataFrame:
    """
    Join curves on price into one table.

    Returns:
        DataFrame with a ``price`` column followed by ``theoretical``,
        ``expiration`` and (if given) ``benchmark`` P/L columns. Prices
        missing from a curve are NaN.
    """
    columns = {'theoretical': theoretical, 'expiration': expiration}
    if benchmark is not None:
        columns['benchmark'] = benchmark

    series = [
        curve_to_frame(curve).set_index('price')['profit_loss'].rename(name)
        for name, curve in columns.items()
    ]
    frame = pd.concat(series, axis=1).sort_index()
    frame.index.name = 'price'
    return frame.reset_index()


# =============================================================================
# CurveGenerator
# =============================================================================

class CurveGenerator:
    """
    Valuation settings bundled with the curve operations.

    Attributes:
        as_of: Valuation date for theoretical curves (None = today)
        implied_volatility: Volatility applied to every option
        risk_free_rate: Risk-free rate
        steps: Default number of sweep intervals

    Example:
        >>> generator = CurveGenerator(as_of=date(2024, 2, 1))
        >>> curve = generator.expiration_curve(state, (80, 120), steps=40)
        >>> len(curve)
        41
    """

    def __init__(
        self,
        as_of: Optional[Union[date, datetime]] = None,
        implied_volatility: float = DEFAULT_IMPLIED_VOLATILITY,
        risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
        steps: int = DEFAULT_STEPS
    ) -> None:
        self.as_of = as_of
        self.implied_volatility = implied_volatility
        self.risk_free_rate = risk_free_rate
        self.steps = steps

    def _steps(self, steps: Optional[int]) -> int:
        return self.steps if steps is None else steps

    def theoretical_curve(
        self,
        state: ProcessedPortfolioState,
        price_range: PriceRange,
        steps: Optional[int] = None
    ) -> Curve:
        return theoretical_curve(
            state,
            price_range,
            self._steps(steps),
            as_of=self.as_of,
            implied_volatility=self.implied_volatility,
            risk_free_rate=self.risk_free_rate,
        )

    def expiration_curve(
        self,
        state: ProcessedPortfolioState,
        price_range: PriceRange,
        steps: Optional[int] = None
    ) -> Curve:
        return expiration_curve(state, price_range, self._steps(steps))

    def benchmark_curve(
        self,
        quantity: float,
        cost_basis_per_share: float,
        price_range: PriceRange,
        steps: Optional[int] = None
    ) -> Curve:
        return benchmark_curve(quantity, cost_basis_per_share, price_range, self._steps(steps))

    def find_crossovers(self, curve_a: Sequence[PriceCurvePoint], curve_b: Sequence[PriceCurvePoint]) -> List[float]:
        return find_crossovers(curve_a, curve_b)

    def find_breakevens(
        self,
        state: ProcessedPortfolioState,
        price_range: PriceRange,
        at_expiration: bool = True
    ) -> List[float]:
        return find_breakevens(
            state,
            price_range,
            at_expiration=at_expiration,
            as_of=self.as_of,
            implied_volatility=self.implied_volatility,
            risk_free_rate=self.risk_free_rate,
        )

    def __repr__(self) -> str:
        return (
            f"CurveGenerator(as_of={self.as_of}, "
            f"iv={self.implied_volatility:.2%}, "
            f"rate={self.risk_free_rate:.2%}, steps={self.steps})"
        )


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    'CurveGenerator',
    'total_cost_basis',
    'theoretical_curve',
    'expiration_curve',
    'benchmark_curve',
    'find_crossovers',
    'find_breakevens',
    'curve_to_frame',
    'curves_frame',
    'DEFAULT_STEPS',
]
