"""
Option Pricing Module for the Trade Ledger

This module values option contracts under the Black-Scholes model, falling
back to intrinsic value once a contract has no time left. It is the pricing
engine behind the theoretical P/L curves.

Mathematical Framework:
    The Black-Scholes model assumes:
    - European-style options (no early exercise)
    - Log-normal distribution of underlying returns
    - Constant volatility and risk-free rate
    - No dividends

Key Formulas:
    Call Price: C = S*N(d1) - K*exp(-rT)*N(d2)
    Put Price:  P = K*exp(-rT)*N(-d2) - S*N(-d1)

    where:
        d1 = [ln(S/K) + (r + sigma^2/2)*T] / (sigma*sqrt(T))
        d2 = d1 - sigma*sqrt(T)
        N(x) = cumulative standard normal distribution

Normal CDF:
    N(x) is evaluated with the Zelen & Severo (1964) polynomial
    approximation (Abramowitz & Stegun 26.2.17), absolute error < 7.5e-8.
    Curves produced by earlier versions of the ledger were computed with this
    approximation, so it is kept instead of an erf-based CDF.

Failure Handling:
    Invalid inputs (non-positive spot, strike or volatility, non-finite
    values) never raise. The price is reported as 0 and a warning is logged
    on this module's logger.

Usage:
    from tradeledger.core.pricing import theoretical_price_per_share

    call = theoretical_price_per_share(100, 100, 0.05, 0.25, 0.20, is_call=True)
    put = theoretical_price_per_share(100, 100, 0.05, 0.25, 0.20, is_call=False)

References:
    - Black, F., & Scholes, M. (1973). The Pricing of Options and Corporate Liabilities.
    - Zelen, M., & Severo, N. C. (1964). Probability Functions. In Abramowitz &
      Stegun, Handbook of Mathematical Functions, 26.2.17.
"""

import logging
import math
from datetime import date, datetime
from typing import Union

import numpy as np

from tradeledger.core.transactions import OptionKind, PositionDirection

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Shares per contract
CONTRACT_MULTIPLIER = 100

# Calendar days per year used for time to expiration
DAYS_PER_YEAR = 365.25

# Below this many years the option is valued at intrinsic value
MIN_TIME_TO_EXPIRY = 1e-4

# Valuation defaults
DEFAULT_IMPLIED_VOLATILITY = 0.30
DEFAULT_RISK_FREE_RATE = 0.04

# Zelen & Severo coefficients
_ZS_B1 = 0.319381530
_ZS_B2 = -0.356563782
_ZS_B3 = 1.781477937
_ZS_B4 = -1.821255978
_ZS_B5 = 1.330274429
_ZS_P = 0.2316419
_ZS_C = 0.39894228


# =============================================================================
# Helper Functions
# =============================================================================

def normal_cdf(x: float) -> float:
    """
    Standard normal cumulative distribution function.

    Zelen & Severo approximation:
        t = 1 / (1 + p*|x|)
        N(x) = 1 - c*exp(-x^2/2)*t*(b1 + t*(b2 + t*(b3 + t*(b4 + t*b5))))   x >= 0
        N(x) = c*exp(-x^2/2)*t*(b1 + t*(b2 + t*(b3 + t*(b4 + t*b5))))       x < 0

    Args:
        x: Point at which to evaluate the CDF

    Returns:
        Approximate P(Z <= x) for Z ~ N(0, 1)

    Example:
        >>> round(normal_cdf(0.0), 6)
        0.5
    """
    if x >= 0:
        t = 1.0 / (1.0 + _ZS_P * x)
        return 1.0 - _ZS_C * math.exp(-(x * x) / 2.0) * t * (
            t * (t * (t * (t * _ZS_B5 + _ZS_B4) + _ZS_B3) + _ZS_B2) + _ZS_B1
        )
    t = 1.0 / (1.0 - _ZS_P * x)
    return _ZS_C * math.exp(-(x * x) / 2.0) * t * (
        t * (t * (t * (t * _ZS_B5 + _ZS_B4) + _ZS_B3) + _ZS_B2) + _ZS_B1
    )


def _to_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def time_to_expiration_years(
    expiration: Union[date, datetime],
    as_of: Union[date, datetime]
) -> float:
    """
    Time from ``as_of`` to ``expiration`` in years.

    Both values are truncated to calendar days, so the result is always a
    whole number of days divided by 365.25.

    Args:
        expiration: Contract expiration date
        as_of: Valuation date

    Returns:
        Years to expiration, or 0.0 if the contract expires on or before
        ``as_of``.

    Example:
        >>> round(time_to_expiration_years(date(2024, 4, 1), date(2024, 3, 1)), 6)
        0.084873
    """
    days = (_to_date(expiration) - _to_date(as_of)).days
    if days <= 0:
        return 0.0
    return days / DAYS_PER_YEAR


def intrinsic_value(underlying_price: float, strike: float, is_call: bool = True) -> float:
    """
    Immediate exercise value per share.

    Args:
        underlying_price: Underlying price
        strike: Strike price
        is_call: True for a call, False for a put

    Returns:
        max(S - K, 0) for a call, max(K - S, 0) for a put
    """
    if is_call:
        return max(0.0, underlying_price - strike)
    return max(0.0, strike - underlying_price)


def _is_positive_finite(value: float) -> bool:
    return value is not None and bool(np.isfinite(value)) and value > 0


# =============================================================================
# Black-Scholes Pricing Functions
# =============================================================================

def theoretical_price_per_share(
    underlying_price: float,
    strike: float,
    risk_free_rate: float,
    time_to_expiration: float,
    volatility: float,
    is_call: bool = True
) -> float:
    """
    Theoretical per-share value of a European option.

    Args:
        underlying_price: Spot price of the underlying (S > 0)
        strike: Strike price (K > 0)
        risk_free_rate: Annualized risk-free rate as a decimal (e.g. 0.04)
        time_to_expiration: Years to expiration (T)
        volatility: Annualized implied volatility as a decimal (sigma > 0)
        is_call: True for a call, False for a put

    Returns:
        Option value per share. Intrinsic value when T is effectively zero.
        0.0 when the inputs are invalid or the result is not finite; in
        that case a warning is logged instead of raising.

    Example:
        >>> price = theoretical_price_per_share(100, 100, 0.05, 0.25, 0.20)
        >>> print(f"Call price: ${price:.2f}")
        Call price: $4.61
    """
    if (
        not _is_positive_finite(underlying_price)
        or not _is_positive_finite(strike)
        or not _is_positive_finite(volatility)
        or risk_free_rate is None
        or not np.isfinite(risk_free_rate)
        or time_to_expiration is None
        or np.isnan(time_to_expiration)
    ):
        logger.warning(
            "Invalid Black-Scholes inputs: S=%s K=%s r=%s T=%s sigma=%s",
            underlying_price, strike, risk_free_rate, time_to_expiration, volatility
        )
        return 0.0

    if time_to_expiration < MIN_TIME_TO_EXPIRY:
        return intrinsic_value(underlying_price, strike, is_call)

    sigma_sqrt_t = volatility * math.sqrt(time_to_expiration)
    d1 = (
        math.log(underlying_price / strike)
        + (risk_free_rate + volatility * volatility / 2) * time_to_expiration
    ) / sigma_sqrt_t
    d2 = d1 - sigma_sqrt_t
    discounted_strike = strike * math.exp(-risk_free_rate * time_to_expiration)

    if is_call:
        price = underlying_price * normal_cdf(d1) - discounted_strike * normal_cdf(d2)
    else:
        price = discounted_strike * normal_cdf(-d2) - underlying_price * normal_cdf(-d1)

    if not np.isfinite(price):
        logger.warning(
            "Black-Scholes produced a non-finite price (%s) for S=%s K=%s r=%s T=%s sigma=%s",
            price, underlying_price, strike, risk_free_rate, time_to_expiration, volatility
        )
        return 0.0

    return price


def option_position_value(
    underlying_price: float,
    strike: float,
    option_kind: Union[OptionKind, str],
    direction: Union[PositionDirection, str],
    quantity: float,
    expiration: Union[date, datetime],
    as_of: Union[date, datetime],
    volatility: float = DEFAULT_IMPLIED_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
) -> float:
    """
    Theoretical dollar value of an option position.

    Value = per-share price * quantity * 100, negated for short positions
    (a written contract is a liability).

    Args:
        underlying_price: Hypothetical underlying price
        strike: Strike price
        option_kind: 'call' or 'put'
        direction: 'long' or 'short'
        quantity: Number of contracts
        expiration: Contract expiration date
        as_of: Valuation date
        volatility: Implied volatility (decimal)
        risk_free_rate: Risk-free rate (decimal)

    Returns:
        Signed position value in dollars

    Example:
        >>> # Short 2 calls, 10 points in the money at expiration
        >>> option_position_value(110, 100, 'call', 'short', 2,
        ...                       date(2024, 1, 19), date(2024, 1, 19))
        -2000.0
    """
    is_call = OptionKind(option_kind) == OptionKind.CALL
    sign = 1.0 if PositionDirection(direction) == PositionDirection.LONG else -1.0
    years = time_to_expiration_years(expiration, as_of)

    if years <= 0:
        per_share = intrinsic_value(underlying_price, strike, is_call)
    else:
        per_share = theoretical_price_per_share(
            underlying_price, strike, risk_free_rate, years, volatility, is_call
        )

    return sign * per_share * quantity * CONTRACT_MULTIPLIER


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    'normal_cdf',
    'time_to_expiration_years',
    'intrinsic_value',
    'theoretical_price_per_share',
    'option_position_value',
    'CONTRACT_MULTIPLIER',
    'DAYS_PER_YEAR',
    'MIN_TIME_TO_EXPIRY',
    'DEFAULT_IMPLIED_VOLATILITY',
    'DEFAULT_RISK_FREE_RATE',
]
