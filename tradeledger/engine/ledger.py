"""
TransactionLedger for the Trade Ledger

This module replays an ordered transaction log into a
``ProcessedPortfolioState``: the open share positions, the open option
series, and the cumulative realized P/L.

Key Features:
    - Deterministic replay in date order (same-date ties keep log order)
    - Running weighted-average share cost basis
    - Pro-rata reduction of option premium and commission on partial closes
    - Assignment/exercise derives a share trade at the strike and folds it
      through the same share-update path as explicit trades
    - Anomalies are recorded as diagnostics instead of raising

Design Philosophy:
    The ledger is a pure reducer. All per-ticker and per-series working state
    lives inside a single ``replay`` call and is discarded afterwards; callers
    own the transaction log and replay it in full whenever it changes.

Accounting Conventions:
    - Share buy: cost = quantity * price + commission
    - Share sell: realized = (quantity * price - commission) - quantity * avg_cost
    - Selling more shares than held closes the long and opens a short for the
      excess. A short's cost basis is the negative of its net proceeds, and a
      later buy covers it before opening a new long.
    - Option premium is the total dollar amount of one contract.
      net_premium_value is +credit for short series and -debit for long ones.
    - Requested close/expire/assign quantities are clamped to the open
      quantity of the series.

Usage:
    from tradeledger.engine.ledger import replay

    state = replay(transactions)
    print(f"Realized P/L: ${state.realized_pl:,.2f}")
    for position in state.open_shares:
        print(position.ticker, position.quantity, position.average_cost)
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from tradeledger.core.positions import (
    Diagnostic,
    DiagnosticKind,
    OpenOptionPosition,
    OpenSharePosition,
    ProcessedPortfolioState,
    RealizedEvent,
)
from tradeledger.core.pricing import CONTRACT_MULTIPLIER
from tradeledger.core.transactions import (
    AssignOrExercise,
    BuyShare,
    CloseOption,
    ExpireOption,
    OpenOption,
    OptionKind,
    PositionDirection,
    SellShare,
    Transaction,
    TransactionValidationError,
    transaction_to_dict,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Positions with |quantity| below this are considered closed
QUANTITY_TOLERANCE = 1e-4

# Sources recorded on RealizedEvent
SOURCE_SHARE_TRADE = "share_trade"
SOURCE_OPTION_CLOSE = "option_close"
SOURCE_OPTION_EXPIRE = "option_expire"
SOURCE_OPTION_ASSIGN = "option_assign"
SOURCE_ASSIGNMENT_SHARES = "assignment_shares"


# =============================================================================
# Working State
# =============================================================================

class _ShareBook:
    """Mutable share holding used while replaying."""

    __slots__ = ('ticker', 'quantity', 'total_cost')

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        self.quantity = 0.0
        self.total_cost = 0.0

    @property
    def average_cost(self) -> float:
        if self.quantity == 0:
            return 0.0
        return self.total_cost / self.quantity


class _OptionSeries:
    """Mutable option series used while replaying."""

    __slots__ = (
        'option_id',
        'ticker',
        'option_kind',
        'strike',
        'expiration',
        'direction',
        'quantity',
        'net_premium_value',
        'commission',
    )

    def __init__(self, transaction: OpenOption) -> None:
        self.option_id = transaction.option_id
        self.ticker = transaction.ticker
        self.option_kind = transaction.option_kind
        self.strike = transaction.strike
        self.expiration = transaction.expiration
        self.direction = transaction.direction
        self.quantity = 0.0
        self.net_premium_value = 0.0
        self.commission = 0.0

    @property
    def is_short(self) -> bool:
        return self.direction == PositionDirection.SHORT

    @property
    def average_premium(self) -> float:
        """Average entry premium per contract (non-negative)."""
        if self.quantity == 0:
            return 0.0
        return abs(self.net_premium_value) / self.quantity

    def snapshot(self) -> OpenOptionPosition:
        return OpenOptionPosition(
            option_id=self.option_id,
            ticker=self.ticker,
            option_kind=self.option_kind,
            strike=self.strike,
            expiration=self.expiration,
            direction=self.direction,
            quantity=self.quantity,
            net_premium_value=self.net_premium_value,
            commission=self.commission,
        )


# =============================================================================
# Synthetic Share Trades
# =============================================================================

def derive_share_transaction(
    series: Union[OpenOptionPosition, _OptionSeries],
    transaction: AssignOrExercise,
    quantity: Optional[float] = None
) -> Optional[Union[BuyShare, SellShare]]:
    """
    Share trade implied by assigning or exercising an option series.

    Mapping:
        - short call assigned  -> sell shares at the strike
        - short put assigned   -> buy shares at the strike
        - long call exercised  -> buy shares at the strike
        - long put exercised   -> sell shares at the strike

    Args:
        series: The option series being assigned/exercised
        transaction: The AssignOrExercise event
        quantity: Contracts actually assigned (defaults to the event's
                  quantity, callers pass the clamped value)

    Returns:
        A BuyShare or SellShare for quantity * 100 shares, or None when the
        quantity is not positive.

    Example:
        >>> trade = derive_share_transaction(short_put, assignment)
        >>> isinstance(trade, BuyShare), trade.quantity, trade.price
        (True, 100, 100.0)
    """
    contracts = transaction.quantity if quantity is None else quantity
    if contracts <= 0:
        return None

    is_call = series.option_kind == OptionKind.CALL
    is_short = series.direction == PositionDirection.SHORT
    sells_shares = is_call == is_short

    record = SellShare if sells_shares else BuyShare
    return record(
        id=f"{transaction.id}:shares",
        date=transaction.date,
        ticker=series.ticker,
        quantity=contracts * CONTRACT_MULTIPLIER,
        price=transaction.strike,
        commission=0.0,
    )


# =============================================================================
# Replay Context
# =============================================================================

class _Replay:
    """Accumulator for one replay call."""

    __slots__ = (
        '_tolerance',
        '_shares',
        '_options',
        '_realized_pl',
        '_diagnostics',
        '_events',
    )

    def __init__(self, tolerance: float) -> None:
        self._tolerance = tolerance
        self._shares: Dict[str, _ShareBook] = {}
        self._options: Dict[str, _OptionSeries] = {}
        self._realized_pl = 0.0
        self._diagnostics: List[Diagnostic] = []
        self._events: List[RealizedEvent] = []

    # -------------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------------

    def _report(
        self,
        kind: DiagnosticKind,
        message: str,
        transaction_id: Optional[str] = None
    ) -> None:
        logger.warning(f"[{kind.value}] {message}")
        self._diagnostics.append(Diagnostic(kind, message, transaction_id))

    def _realize(
        self,
        transaction_id: str,
        trade_date: date,
        ticker: str,
        source: str,
        amount: float
    ) -> None:
        self._realized_pl += amount
        self._events.append(
            RealizedEvent(transaction_id, trade_date, ticker, source, amount)
        )
        logger.debug(f"Realized {amount:,.2f} on {ticker} ({source}, {transaction_id})")

    # -------------------------------------------------------------------------
    # Shares
    # -------------------------------------------------------------------------

    def apply_share_trade(
        self,
        transaction: Union[BuyShare, SellShare],
        source: str = SOURCE_SHARE_TRADE,
        transaction_id: Optional[str] = None
    ) -> None:
        """
        Fold a buy or sell into the ticker's share book.

        ``transaction_id`` replaces the trade's own id on realized events and
        diagnostics; assignments pass the id of the AssignOrExercise record.
        """
        origin_id = transaction_id or transaction.id
        book = self._shares.get(transaction.ticker)
        if book is None:
            book = _ShareBook(transaction.ticker)
            self._shares[transaction.ticker] = book

        quantity = transaction.quantity
        price = transaction.price
        commission = transaction.commission
        # +1 adds to a long book, -1 adds to a short book
        side = 1.0 if isinstance(transaction, BuyShare) else -1.0

        # Portion that reduces an existing position on the opposite side
        held_against = -side * book.quantity
        reducing = min(quantity, held_against) if held_against > 0 else 0.0

        if reducing > 0:
            reduce_commission = commission * reducing / quantity
            average = book.average_cost
            if side < 0:
                # selling out of a long
                realized = (reducing * price - reduce_commission) - reducing * average
            else:
                # buying back a short; average is proceeds per share
                realized = reducing * average - (reducing * price + reduce_commission)

            fraction = reducing / abs(book.quantity)
            book.total_cost -= book.total_cost * fraction
            book.quantity += side * reducing
            if abs(book.quantity) < self._tolerance:
                book.quantity = 0.0
                book.total_cost = 0.0

            self._realize(
                origin_id, transaction.date, transaction.ticker, source, realized
            )

        opening = quantity - reducing
        if opening > 0:
            open_commission = commission * opening / quantity
            if side > 0:
                book.total_cost += opening * price + open_commission
            else:
                book.total_cost -= opening * price - open_commission
                self._report(
                    DiagnosticKind.SHORT_POSITION_OPENED,
                    f"Sell of {quantity:g} {transaction.ticker} exceeds holdings; "
                    f"opened short of {opening:g} shares",
                    origin_id,
                )
            book.quantity += side * opening

        if abs(book.quantity) < self._tolerance:
            del self._shares[transaction.ticker]

    # -------------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------------

    def open_option(self, transaction: OpenOption) -> None:
        series = self._options.get(transaction.option_id)
        if series is None:
            series = _OptionSeries(transaction)
            self._options[transaction.option_id] = series
        elif series.direction != transaction.direction:
            self._report(
                DiagnosticKind.DIRECTION_MISMATCH,
                f"Series {transaction.option_id} is {series.direction.value}; "
                f"ignoring {transaction.direction.value} open",
                transaction.id,
            )
            return

        premium = transaction.premium_per_contract * transaction.quantity
        series.quantity += transaction.quantity
        series.net_premium_value += premium if series.is_short else -premium
        series.commission += transaction.commission

    def _resolve(
        self,
        transaction: Union[CloseOption, ExpireOption, AssignOrExercise]
    ) -> Optional[_OptionSeries]:
        series = self._options.get(transaction.option_id)
        if series is None:
            self._report(
                DiagnosticKind.UNKNOWN_POSITION,
                f"No open series {transaction.option_id}; "
                f"skipping {type(transaction).__name__}",
                transaction.id,
            )
        return series

    def _clamp(
        self,
        series: _OptionSeries,
        transaction: Union[CloseOption, ExpireOption, AssignOrExercise]
    ) -> float:
        if transaction.quantity > series.quantity:
            self._report(
                DiagnosticKind.QUANTITY_CLAMPED,
                f"Requested {transaction.quantity:g} contracts of "
                f"{series.option_id} but only {series.quantity:g} open",
                transaction.id,
            )
            return series.quantity
        return transaction.quantity

    def _reduce(self, series: _OptionSeries, quantity: float) -> float:
        """Shrink a series pro-rata and return the commission released."""
        fraction = quantity / series.quantity
        released_commission = series.commission * fraction
        series.net_premium_value -= series.net_premium_value * fraction
        series.commission -= released_commission
        series.quantity -= quantity
        if series.quantity < self._tolerance:
            del self._options[series.option_id]
        return released_commission

    def _settle_at_zero(self, series: _OptionSeries, quantity: float) -> float:
        """P/L of letting ``quantity`` contracts lapse with no value."""
        average = series.average_premium
        released_commission = self._reduce(series, quantity)
        sign = 1.0 if series.is_short else -1.0
        return sign * average * quantity - released_commission

    def close_option(self, transaction: CloseOption) -> None:
        series = self._resolve(transaction)
        if series is None:
            return
        quantity = self._clamp(series, transaction)

        average = series.average_premium
        released_commission = self._reduce(series, quantity)
        if series.is_short:
            gross = (average - transaction.premium_per_contract) * quantity
        else:
            gross = (transaction.premium_per_contract - average) * quantity
        realized = gross - released_commission - transaction.commission

        self._realize(
            transaction.id, transaction.date, series.ticker,
            SOURCE_OPTION_CLOSE, realized
        )

    def expire_option(self, transaction: ExpireOption) -> None:
        series = self._resolve(transaction)
        if series is None:
            return
        quantity = self._clamp(series, transaction)
        realized = self._settle_at_zero(series, quantity)
        self._realize(
            transaction.id, transaction.date, series.ticker,
            SOURCE_OPTION_EXPIRE, realized
        )

    def assign_or_exercise(self, transaction: AssignOrExercise) -> None:
        series = self._resolve(transaction)
        if series is None:
            return
        quantity = self._clamp(series, transaction)
        share_trade = derive_share_transaction(series, transaction, quantity)

        realized = self._settle_at_zero(series, quantity)
        self._realize(
            transaction.id, transaction.date, series.ticker,
            SOURCE_OPTION_ASSIGN, realized
        )

        if share_trade is not None:
            logger.debug(
                f"{transaction.option_id} assignment -> "
                f"{type(share_trade).__name__} {share_trade.quantity:g} "
                f"{share_trade.ticker} @ {share_trade.price}"
            )
            self.apply_share_trade(
                share_trade,
                source=SOURCE_ASSIGNMENT_SHARES,
                transaction_id=transaction.id,
            )

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def apply(self, transaction: Transaction) -> None:
        if isinstance(transaction, (BuyShare, SellShare)):
            self.apply_share_trade(transaction)
        elif isinstance(transaction, OpenOption):
            self.open_option(transaction)
        elif isinstance(transaction, CloseOption):
            self.close_option(transaction)
        elif isinstance(transaction, ExpireOption):
            self.expire_option(transaction)
        elif isinstance(transaction, AssignOrExercise):
            self.assign_or_exercise(transaction)
        else:
            raise TransactionValidationError(
                f"Unsupported transaction record: {type(transaction).__name__}"
            )

    def result(self, transactions: List[Transaction]) -> ProcessedPortfolioState:
        open_shares = [
            OpenSharePosition(book.ticker, book.quantity, book.total_cost)
            for book in self._shares.values()
            if abs(book.quantity) >= self._tolerance
        ]
        open_options = [
            series.snapshot()
            for series in self._options.values()
            if series.quantity >= self._tolerance
        ]
        return ProcessedPortfolioState(
            open_shares=open_shares,
            open_options=open_options,
            realized_pl=self._realized_pl,
            transactions=transactions,
            diagnostics=list(self._diagnostics),
            realized_events=list(self._events),
        )


# =============================================================================
# TransactionLedger
# =============================================================================

class TransactionLedger:
    """
    Replays transaction logs into portfolio snapshots.

    The ledger holds no portfolio state between calls; each ``replay`` starts
    from an empty book. The only configuration is the quantity tolerance
    below which a position counts as closed.

    Example:
        >>> ledger = TransactionLedger()
        >>> state = ledger.replay([
        ...     BuyShare('b1', date(2024, 1, 2), 'AAPL', 10, 50.0),
        ...     SellShare('s1', date(2024, 2, 1), 'AAPL', 10, 60.0),
        ... ])
        >>> state.realized_pl
        100.0
    """

    __slots__ = ('_tolerance',)

    def __init__(self, quantity_tolerance: float = QUANTITY_TOLERANCE) -> None:
        if quantity_tolerance <= 0:
            raise ValueError(
                f"quantity_tolerance must be positive, got {quantity_tolerance}"
            )
        self._tolerance = quantity_tolerance

    @property
    def quantity_tolerance(self) -> float:
        return self._tolerance

    def replay(self, transactions: Iterable[Transaction]) -> ProcessedPortfolioState:
        """
        Replay a transaction log.

        Transactions are processed in ascending date order; transactions on
        the same date keep their log order.

        Args:
            transactions: The full transaction log

        Returns:
            ProcessedPortfolioState with open positions, realized P/L,
            diagnostics and the processed transactions

        Raises:
            TransactionValidationError: If an element is not a transaction
                record
        """
        ordered = sorted(transactions, key=lambda tx: tx.date)
        replay_state = _Replay(self._tolerance)

        for transaction in ordered:
            logger.debug(
                f"Applying {type(transaction).__name__} {transaction.id} "
                f"on {transaction.date}"
            )
            replay_state.apply(transaction)

        state = replay_state.result(ordered)
        logger.info(
            f"Replayed {len(ordered)} transactions: "
            f"{len(state.open_shares)} share positions, "
            f"{len(state.open_options)} option series, "
            f"realized P/L ${state.realized_pl:,.2f}"
        )
        return state

    def __repr__(self) -> str:
        return f"TransactionLedger(quantity_tolerance={self._tolerance})"


def replay(transactions: Iterable[Transaction]) -> ProcessedPortfolioState:
    """
    Replay a transaction log with the default ledger settings.

    Convenience wrapper around ``TransactionLedger().replay``.
    """
    return TransactionLedger().replay(transactions)


# =============================================================================
# Reporting
# =============================================================================

def positions_summary(state: ProcessedPortfolioState) -> pd.DataFrame:
    """
    One row per open share position and option series.

    Returns:
        DataFrame with columns: type, ticker, option_id, option_kind,
        direction, strike, expiration, quantity, average_cost,
        premium_per_contract, cost_basis. Empty if nothing is open.
    """
    records = []

    for share in state.open_shares:
        records.append({
            'type': 'share',
            'ticker': share.ticker,
            'option_id': None,
            'option_kind': None,
            'direction': 'short' if share.is_short else 'long',
            'strike': None,
            'expiration': None,
            'quantity': share.quantity,
            'average_cost': share.average_cost,
            'premium_per_contract': None,
            'cost_basis': share.total_cost,
        })

    for option in state.open_options:
        records.append({
            'type': 'option',
            'ticker': option.ticker,
            'option_id': option.option_id,
            'option_kind': option.option_kind.value,
            'direction': option.direction.value,
            'strike': option.strike,
            'expiration': option.expiration,
            'quantity': option.quantity,
            'average_cost': None,
            'premium_per_contract': option.premium_per_contract,
            'cost_basis': -option.net_premium_value,
        })

    if not records:
        return pd.DataFrame()

    return pd.DataFrame(records)


def transactions_frame(state: ProcessedPortfolioState) -> pd.DataFrame:
    """Processed transactions as a DataFrame, with realized P/L per transaction."""
    if not state.transactions:
        return pd.DataFrame()

    realized: Dict[str, float] = {}
    for event in state.realized_events:
        realized[event.transaction_id] = realized.get(event.transaction_id, 0.0) + event.realized_pl

    rows = []
    for transaction in state.transactions:
        row = transaction_to_dict(transaction)
        row['realized_pl'] = realized.get(transaction.id)
        rows.append(row)

    return pd.DataFrame(rows)


def portfolio_statistics(state: ProcessedPortfolioState) -> Dict[str, Any]:
    """
    Summary counts for a replayed portfolio.

    Example:
        >>> stats = portfolio_statistics(state)
        >>> print(f"Open series: {stats['num_open_options']}")
    """
    diagnostics_by_kind: Dict[str, int] = {}
    for diagnostic in state.diagnostics:
        key = diagnostic.kind.value
        diagnostics_by_kind[key] = diagnostics_by_kind.get(key, 0) + 1

    return {
        'num_transactions': len(state.transactions),
        'num_open_shares': len(state.open_shares),
        'num_open_options': len(state.open_options),
        'realized_pl': state.realized_pl,
        'num_realized_events': len(state.realized_events),
        'tickers': state.tickers(),
        'num_diagnostics': len(state.diagnostics),
        'diagnostics_by_kind': diagnostics_by_kind,
    }


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    'TransactionLedger',
    'replay',
    'derive_share_transaction',
    'positions_summary',
    'transactions_frame',
    'portfolio_statistics',
    'QUANTITY_TOLERANCE',
]
