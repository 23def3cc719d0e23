"""
Position Snapshots for the Trade Ledger

This module holds the value objects produced by replaying a transaction log:
open share positions, open option series, curve samples, diagnostics and
the overall ``ProcessedPortfolioState``.

Sign Conventions:
    - OpenSharePosition.quantity: positive = long, negative = short.
      total_cost is the aggregate cost basis in dollars; for a short it is
      the negative of the net sale proceeds.
    - OpenOptionPosition.net_premium_value: positive = cumulative credit
      (short series), negative = cumulative debit (long series).

All snapshots are immutable; a new state is produced by replaying the full
transaction log again.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from tradeledger.core.transactions import (
    OptionKind,
    PositionDirection,
    Transaction,
)


class DiagnosticKind(str, Enum):
    """Non-fatal anomalies reported while replaying."""

    UNKNOWN_POSITION = "unknown_position"
    DIRECTION_MISMATCH = "direction_mismatch"
    QUANTITY_CLAMPED = "quantity_clamped"
    SHORT_POSITION_OPENED = "short_position_opened"


@dataclass(frozen=True)
class Diagnostic:
    """A single anomaly, optionally tied to the transaction that caused it."""

    kind: DiagnosticKind
    message: str
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class RealizedEvent:
    """Realized P/L booked by one leg of one transaction."""

    transaction_id: str
    date: date
    ticker: str
    source: str
    realized_pl: float


@dataclass(frozen=True)
class OpenSharePosition:
    """Net share holding in one ticker."""

    ticker: str
    quantity: float
    total_cost: float

    @property
    def average_cost(self) -> float:
        """Cost basis per share (0 for an empty position)."""
        if self.quantity == 0:
            return 0.0
        return self.total_cost / self.quantity

    @property
    def is_short(self) -> bool:
        return self.quantity < 0


@dataclass(frozen=True)
class OpenOptionPosition:
    """Remaining open quantity of one option series."""

    option_id: str
    ticker: str
    option_kind: OptionKind
    strike: float
    expiration: date
    direction: PositionDirection
    quantity: float
    net_premium_value: float
    commission: float = 0.0

    @property
    def premium_per_contract(self) -> float:
        """Average entry premium of one contract (always non-negative)."""
        if self.quantity == 0:
            return 0.0
        return abs(self.net_premium_value) / self.quantity

    @property
    def is_call(self) -> bool:
        return self.option_kind == OptionKind.CALL

    @property
    def is_long(self) -> bool:
        return self.direction == PositionDirection.LONG

    @property
    def is_short(self) -> bool:
        return self.direction == PositionDirection.SHORT


@dataclass(frozen=True)
class PriceCurvePoint:
    """P/L of a curve sampled at one underlying price."""

    price: float
    profit_loss: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.price, self.profit_loss)


@dataclass(frozen=True)
class ProcessedPortfolioState:
    """
    Result of replaying a transaction log.

    Attributes:
        open_shares: Share positions with nonzero quantity
        open_options: Option series with nonzero open quantity
        realized_pl: Cumulative realized P/L across all legs
        transactions: The replayed transactions, in processing order
        diagnostics: Anomalies encountered during the replay
        realized_events: One record per realizing transaction leg
    """

    open_shares: List[OpenSharePosition] = field(default_factory=list)
    open_options: List[OpenOptionPosition] = field(default_factory=list)
    realized_pl: float = 0.0
    transactions: List[Transaction] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    realized_events: List[RealizedEvent] = field(default_factory=list)

    @property
    def is_flat(self) -> bool:
        """True when nothing is open."""
        return not self.open_shares and not self.open_options

    def get_share_position(self, ticker: str) -> Optional[OpenSharePosition]:
        ticker = ticker.upper().strip()
        for position in self.open_shares:
            if position.ticker == ticker:
                return position
        return None

    def get_option_position(self, option_id: str) -> Optional[OpenOptionPosition]:
        for position in self.open_options:
            if position.option_id == option_id:
                return position
        return None

    def tickers(self) -> List[str]:
        """Sorted tickers with an open share or option position."""
        names = {p.ticker for p in self.open_shares}
        names.update(p.ticker for p in self.open_options)
        return sorted(names)


__all__ = [
    'DiagnosticKind',
    'Diagnostic',
    'RealizedEvent',
    'OpenSharePosition',
    'OpenOptionPosition',
    'PriceCurvePoint',
    'ProcessedPortfolioState',
]
