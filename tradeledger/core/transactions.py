"""
Transaction Records for the Trade Ledger

This module defines the closed set of trade events that can appear in a
transaction log. Each event kind is its own frozen dataclass and the
``Transaction`` alias is the union of all of them, so the ledger can match
on the concrete type instead of inspecting a free-form "type" string.

Event Kinds:
    - BuyShare / SellShare: share trades with optional commission
    - OpenOption: buy-to-open (long) or sell-to-open (short) a contract series
    - CloseOption: buy-to-close / sell-to-close part of an open series
    - ExpireOption: series expires worthless
    - AssignOrExercise: series is closed out and shares trade at the strike

Option Series:
    All events that refer to the same contract (ticker + kind + strike +
    expiration) share an ``option_id``. ``make_option_id`` builds the default
    identifier, e.g. ``AAPL_call_150.0_2024-03-15``.

Premium Convention:
    ``premium_per_contract`` is the total dollar amount of one contract
    (i.e. already multiplied by the 100-share contract multiplier).

Usage:
    from datetime import date
    from tradeledger.core.transactions import OpenOption, OptionKind, PositionDirection

    trade = OpenOption(
        id='t1',
        date=date(2024, 1, 15),
        ticker='AAPL',
        option_kind=OptionKind.CALL,
        direction=PositionDirection.SHORT,
        strike=150.0,
        expiration=date(2024, 3, 15),
        quantity=2,
        premium_per_contract=320.0,
        option_id='AAPL_call_150.0_2024-03-15',
    )
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Union

import numpy as np


# =============================================================================
# Exceptions
# =============================================================================

class TransactionError(Exception):
    """Base exception for transaction record errors."""
    pass


class TransactionValidationError(TransactionError):
    """Exception raised when a transaction record is malformed."""
    pass


# =============================================================================
# Enums
# =============================================================================

class OptionKind(str, Enum):
    """Option contract kind."""

    CALL = "call"
    PUT = "put"


class PositionDirection(str, Enum):
    """Direction of an option series: long = bought, short = sold/written."""

    LONG = "long"
    SHORT = "short"


class TransactionType(str, Enum):
    """Serialized name of each transaction kind."""

    BUY_SHARE = "buy_share"
    SELL_SHARE = "sell_share"
    OPEN_OPTION = "open_option"
    CLOSE_OPTION = "close_option"
    EXPIRE_OPTION = "expire_option"
    ASSIGN_OR_EXERCISE = "assign_or_exercise"


# =============================================================================
# Transaction Records
# =============================================================================

@dataclass(frozen=True)
class BuyShare:
    """Purchase of shares."""

    id: str
    date: date
    ticker: str
    quantity: float
    price: float
    commission: float = 0.0


@dataclass(frozen=True)
class SellShare:
    """Sale of shares."""

    id: str
    date: date
    ticker: str
    quantity: float
    price: float
    commission: float = 0.0


@dataclass(frozen=True)
class OpenOption:
    """Buy-to-open (long) or sell-to-open (short) an option series."""

    id: str
    date: date
    ticker: str
    option_kind: OptionKind
    direction: PositionDirection
    strike: float
    expiration: date
    quantity: float
    premium_per_contract: float
    option_id: str
    commission: float = 0.0


@dataclass(frozen=True)
class CloseOption:
    """Close part or all of an open series at a market premium."""

    id: str
    date: date
    ticker: str
    option_id: str
    quantity: float
    premium_per_contract: float
    commission: float = 0.0


@dataclass(frozen=True)
class ExpireOption:
    """Series expires out-of-the-money; no price is consulted."""

    id: str
    date: date
    ticker: str
    option_id: str
    quantity: float


@dataclass(frozen=True)
class AssignOrExercise:
    """Series is assigned (short) or exercised (long) at ``strike``."""

    id: str
    date: date
    ticker: str
    option_id: str
    quantity: float
    strike: float


Transaction = Union[
    BuyShare,
    SellShare,
    OpenOption,
    CloseOption,
    ExpireOption,
    AssignOrExercise,
]

TRANSACTION_CLASSES = {
    TransactionType.BUY_SHARE: BuyShare,
    TransactionType.SELL_SHARE: SellShare,
    TransactionType.OPEN_OPTION: OpenOption,
    TransactionType.CLOSE_OPTION: CloseOption,
    TransactionType.EXPIRE_OPTION: ExpireOption,
    TransactionType.ASSIGN_OR_EXERCISE: AssignOrExercise,
}

_TYPE_BY_CLASS = {cls: tx_type for tx_type, cls in TRANSACTION_CLASSES.items()}


# =============================================================================
# Helpers
# =============================================================================

def make_option_id(
    ticker: str,
    option_kind: Union[OptionKind, str],
    strike: float,
    expiration: date
) -> str:
    """
    Build the default series identifier for an option contract.

    Args:
        ticker: Underlying symbol
        option_kind: 'call' or 'put'
        strike: Strike price
        expiration: Expiration date

    Returns:
        Identifier of the form ``TICKER_kind_strike_YYYY-MM-DD``

    Example:
        >>> make_option_id('aapl', 'call', 150, date(2024, 3, 15))
        'AAPL_call_150.0_2024-03-15'
    """
    kind = OptionKind(option_kind).value
    return f"{ticker.upper().strip()}_{kind}_{float(strike)}_{expiration.isoformat()}"


def transaction_type(transaction: Transaction) -> TransactionType:
    """Return the serialized type name of a transaction record."""
    try:
        return _TYPE_BY_CLASS[type(transaction)]
    except KeyError:
        raise TransactionValidationError(
            f"Unsupported transaction record: {type(transaction).__name__}"
        )


def _parse_date(value: Any, field_name: str) -> date:
    """Parse an ISO date string (or date/datetime) into a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
        except ValueError:
            pass
    raise TransactionValidationError(
        f"{field_name} must be a date in YYYY-MM-DD format, got {value!r}"
    )


def _parse_number(
    data: Dict[str, Any],
    field_name: str,
    positive: bool = False,
    default: Any = None
) -> float:
    """Read a finite numeric field from a raw record."""
    value = data.get(field_name, default)
    if value is None:
        raise TransactionValidationError(f"{field_name} is required")
    if isinstance(value, bool):
        raise TransactionValidationError(f"{field_name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise TransactionValidationError(f"{field_name} must be a number, got {value!r}")
    if not np.isfinite(number):
        raise TransactionValidationError(f"{field_name} must be finite, got {value!r}")
    if positive and number <= 0:
        raise TransactionValidationError(f"{field_name} must be positive, got {value!r}")
    if number < 0:
        raise TransactionValidationError(f"{field_name} cannot be negative, got {value!r}")
    return number


def _parse_text(data: Dict[str, Any], field_name: str) -> str:
    value = data.get(field_name)
    if not value or not isinstance(value, str):
        raise TransactionValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


def transaction_from_dict(data: Dict[str, Any]) -> Transaction:
    """
    Build a transaction record from its dictionary form.

    The ``type`` key selects the record kind (see ``TransactionType``).
    Numeric fields must be finite; quantities, prices and strikes must be
    positive; commissions default to 0.

    Args:
        data: Raw mapping, e.g. one entry of a YAML/JSON transaction log

    Returns:
        The matching transaction record

    Raises:
        TransactionValidationError: If the mapping is malformed
    """
    if not isinstance(data, dict):
        raise TransactionValidationError(
            f"transaction must be a mapping, got {type(data).__name__}"
        )

    raw_type = data.get("type")
    try:
        tx_type = TransactionType(str(raw_type).lower().strip())
    except ValueError:
        raise TransactionValidationError(f"Unknown transaction type: {raw_type!r}")

    common = {
        "id": str(data.get("id") or "").strip(),
        "date": _parse_date(data.get("date"), "date"),
        "ticker": _parse_text(data, "ticker").upper(),
    }
    if not common["id"]:
        raise TransactionValidationError("id is required")

    if tx_type in (TransactionType.BUY_SHARE, TransactionType.SELL_SHARE):
        return TRANSACTION_CLASSES[tx_type](
            quantity=_parse_number(data, "quantity", positive=True),
            price=_parse_number(data, "price", positive=True),
            commission=_parse_number(data, "commission", default=0.0),
            **common,
        )

    if tx_type == TransactionType.OPEN_OPTION:
        try:
            option_kind = OptionKind(str(data.get("option_kind")).lower().strip())
            direction = PositionDirection(str(data.get("direction")).lower().strip())
        except ValueError as e:
            raise TransactionValidationError(str(e))
        strike = _parse_number(data, "strike", positive=True)
        expiration = _parse_date(data.get("expiration"), "expiration")
        option_id = data.get("option_id") or make_option_id(
            common["ticker"], option_kind, strike, expiration
        )
        return OpenOption(
            option_kind=option_kind,
            direction=direction,
            strike=strike,
            expiration=expiration,
            quantity=_parse_number(data, "quantity", positive=True),
            premium_per_contract=_parse_number(data, "premium_per_contract"),
            option_id=str(option_id),
            commission=_parse_number(data, "commission", default=0.0),
            **common,
        )

    option_id = _parse_text(data, "option_id")
    quantity = _parse_number(data, "quantity", positive=True)

    if tx_type == TransactionType.CLOSE_OPTION:
        return CloseOption(
            option_id=option_id,
            quantity=quantity,
            premium_per_contract=_parse_number(data, "premium_per_contract"),
            commission=_parse_number(data, "commission", default=0.0),
            **common,
        )

    if tx_type == TransactionType.EXPIRE_OPTION:
        return ExpireOption(option_id=option_id, quantity=quantity, **common)

    return AssignOrExercise(
        option_id=option_id,
        quantity=quantity,
        strike=_parse_number(data, "strike", positive=True),
        **common,
    )


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    """
    Convert a transaction record to a plain dictionary.

    Dates become ISO strings and enums their values, so the result can be
    dumped directly to YAML or JSON and read back with
    ``transaction_from_dict``.
    """
    result: Dict[str, Any] = {"type": transaction_type(transaction).value}
    for name, value in vars(transaction).items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, date):
            value = value.isoformat()
        result[name] = value
    return result


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    # Records
    'BuyShare',
    'SellShare',
    'OpenOption',
    'CloseOption',
    'ExpireOption',
    'AssignOrExercise',
    'Transaction',

    # Enums
    'OptionKind',
    'PositionDirection',
    'TransactionType',

    # Exceptions
    'TransactionError',
    'TransactionValidationError',

    # Helpers
    'make_option_id',
    'transaction_type',
    'transaction_from_dict',
    'transaction_to_dict',
    'TRANSACTION_CLASSES',
]
