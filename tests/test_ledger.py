"""
Unit Tests for the TransactionLedger

Tests replay of share and option transactions into open positions and
realized P/L.

Test Categories:
    1. Share accounting: weighted-average cost, commissions, shorts
    2. Option accounting: opens, closes, expirations, pro-rata reduction
    3. Assignment/exercise: derived share trades at the strike
    4. Diagnostics: unknown series, direction mismatch, clamping
    5. Ordering and purity of replay
    6. DataFrame summaries
"""

import logging
from datetime import date

import pandas as pd
import pytest

from tradeledger.core.positions import DiagnosticKind, OpenOptionPosition
from tradeledger.core.transactions import (
    AssignOrExercise,
    BuyShare,
    CloseOption,
    ExpireOption,
    OpenOption,
    OptionKind,
    PositionDirection,
    SellShare,
    TransactionValidationError,
    make_option_id,
)
from tradeledger.engine.ledger import (
    TransactionLedger,
    derive_share_transaction,
    portfolio_statistics,
    positions_summary,
    replay,
    transactions_frame,
)


# =============================================================================
# Helpers
# =============================================================================

TICKER = "AAPL"
EXPIRY = date(2024, 3, 15)


def day(n: int) -> date:
    return date(2024, 1, n)


def buy(tx_id, n, quantity, price, commission=0.0):
    return BuyShare(tx_id, day(n), TICKER, quantity, price, commission)


def sell(tx_id, n, quantity, price, commission=0.0):
    return SellShare(tx_id, day(n), TICKER, quantity, price, commission)


def open_option(tx_id, n, kind, direction, strike, quantity, premium, commission=0.0):
    kind = OptionKind(kind)
    return OpenOption(
        id=tx_id,
        date=day(n),
        ticker=TICKER,
        option_kind=kind,
        direction=PositionDirection(direction),
        strike=strike,
        expiration=EXPIRY,
        quantity=quantity,
        premium_per_contract=premium,
        option_id=make_option_id(TICKER, kind, strike, EXPIRY),
        commission=commission,
    )


def series_id(kind, strike):
    return make_option_id(TICKER, kind, strike, EXPIRY)


def kinds(state):
    return [d.kind for d in state.diagnostics]


# =============================================================================
# Share Accounting
# =============================================================================

class TestShareAccounting:
    def test_buy_then_sell_realizes_difference(self):
        state = replay([buy("b", 2, 10, 50.0), sell("s", 3, 10, 60.0)])

        assert state.realized_pl == pytest.approx(100.0)
        assert state.open_shares == []
        assert state.is_flat

    def test_round_trip_at_same_price_is_zero(self):
        state = replay([buy("b", 2, 37, 123.45), sell("s", 3, 37, 123.45)])
        assert state.realized_pl == pytest.approx(0.0)

    def test_weighted_average_cost(self):
        state = replay([buy("b1", 2, 10, 50.0), buy("b2", 3, 10, 60.0)])

        position = state.get_share_position(TICKER)
        assert position.quantity == 20
        assert position.total_cost == pytest.approx(1100.0)
        assert position.average_cost == pytest.approx(55.0)

    def test_commissions_in_cost_and_proceeds(self):
        state = replay([buy("b", 2, 10, 50.0, commission=5.0), sell("s", 3, 5, 60.0, commission=2.0)])

        # (5 * 60 - 2) - 5 * 50.5
        assert state.realized_pl == pytest.approx(45.5)
        position = state.get_share_position(TICKER)
        assert position.quantity == 5
        assert position.total_cost == pytest.approx(252.5)
        assert position.average_cost == pytest.approx(50.5)

    def test_partial_sell_keeps_average(self):
        state = replay([buy("b1", 2, 10, 40.0), buy("b2", 3, 30, 60.0), sell("s", 4, 15, 70.0)])

        position = state.get_share_position(TICKER)
        assert position.quantity == 25
        assert position.average_cost == pytest.approx(55.0)
        assert state.realized_pl == pytest.approx(15 * (70.0 - 55.0))

    def test_oversell_opens_short(self):
        state = replay([buy("b", 2, 10, 50.0), sell("s", 3, 15, 60.0)])

        assert state.realized_pl == pytest.approx(100.0)
        position = state.get_share_position(TICKER)
        assert position.is_short
        assert position.quantity == -5
        assert position.total_cost == pytest.approx(-300.0)
        assert position.average_cost == pytest.approx(60.0)
        assert kinds(state) == [DiagnosticKind.SHORT_POSITION_OPENED]

    def test_buy_covers_short(self):
        state = replay([
            buy("b1", 2, 10, 50.0),
            sell("s", 3, 15, 60.0),
            buy("b2", 4, 5, 55.0),
        ])

        assert state.realized_pl == pytest.approx(125.0)
        assert state.open_shares == []

    def test_buy_past_short_opens_long(self):
        state = replay([sell("s", 2, 10, 60.0), buy("b", 3, 15, 50.0, commission=3.0)])

        # cover 10: 10 * 60 - (10 * 50 + 2); open 5 @ 50 + 1 commission
        assert state.realized_pl == pytest.approx(98.0)
        position = state.get_share_position(TICKER)
        assert position.quantity == 5
        assert position.total_cost == pytest.approx(251.0)

    def test_tickers_tracked_separately(self):
        state = replay([
            buy("b1", 2, 10, 50.0),
            BuyShare("b2", day(2), "MSFT", 5, 300.0),
            SellShare("s1", day(3), "MSFT", 5, 310.0),
        ])

        assert state.realized_pl == pytest.approx(50.0)
        assert [p.ticker for p in state.open_shares] == [TICKER]


# =============================================================================
# Option Accounting
# =============================================================================

class TestOptionAccounting:
    def test_short_call_expires_keeps_premium(self):
        state = replay([
            open_option("o", 2, "call", "short", 100.0, 1, 500.0),
            ExpireOption("e", date(2024, 3, 15), TICKER, series_id("call", 100.0), 1),
        ])

        assert state.realized_pl == pytest.approx(500.0)
        assert state.open_options == []

    def test_long_option_expires_loses_premium(self):
        state = replay([
            open_option("o", 2, "put", "long", 95.0, 2, 150.0, commission=2.0),
            ExpireOption("e", date(2024, 3, 15), TICKER, series_id("put", 95.0), 2),
        ])

        assert state.realized_pl == pytest.approx(-302.0)

    def test_open_and_close_at_same_premium_is_zero(self):
        sid = series_id("call", 110.0)
        state = replay([
            open_option("o", 2, "call", "short", 110.0, 3, 275.0),
            CloseOption("c", day(5), TICKER, sid, 3, 275.0),
        ])

        assert state.realized_pl == pytest.approx(0.0)
        assert state.open_options == []

    def test_partial_close_short(self):
        sid = series_id("call", 110.0)
        state = replay([
            open_option("o", 2, "call", "short", 110.0, 2, 300.0, commission=2.0),
            CloseOption("c", day(5), TICKER, sid, 1, 100.0, commission=1.0),
        ])

        # (300 - 100) - 1 pro-rata open commission - 1 close commission
        assert state.realized_pl == pytest.approx(198.0)
        series = state.get_option_position(sid)
        assert series.quantity == 1
        assert series.net_premium_value == pytest.approx(300.0)
        assert series.commission == pytest.approx(1.0)
        assert series.premium_per_contract == pytest.approx(300.0)

    def test_close_long_at_profit(self):
        sid = series_id("put", 90.0)
        state = replay([
            open_option("o", 2, "put", "long", 90.0, 1, 200.0),
            CloseOption("c", day(9), TICKER, sid, 1, 350.0),
        ])

        assert state.realized_pl == pytest.approx(150.0)

    def test_long_series_has_negative_net_premium(self):
        state = replay([open_option("o", 2, "call", "long", 120.0, 4, 80.0)])

        series = state.open_options[0]
        assert series.net_premium_value == pytest.approx(-320.0)
        assert series.premium_per_contract == pytest.approx(80.0)
        assert series.is_long

    def test_adding_to_series_averages_premium(self):
        state = replay([
            open_option("o1", 2, "call", "short", 110.0, 1, 200.0),
            open_option("o2", 3, "call", "short", 110.0, 3, 400.0),
        ])

        series = state.open_options[0]
        assert series.quantity == 4
        assert series.net_premium_value == pytest.approx(1400.0)
        assert series.premium_per_contract == pytest.approx(350.0)

    def test_pro_rata_reduction(self):
        sid = series_id("put", 100.0)
        state = replay([
            open_option("o", 2, "put", "short", 100.0, 4, 100.0, commission=4.0),
            ExpireOption("e", day(20), TICKER, sid, 1),
        ])

        series = state.get_option_position(sid)
        assert series.quantity == 3
        assert series.net_premium_value == pytest.approx(300.0)
        assert series.commission == pytest.approx(3.0)
        assert state.realized_pl == pytest.approx(99.0)


# =============================================================================
# Assignment / Exercise
# =============================================================================

class TestAssignOrExercise:
    def test_short_put_assigned_buys_shares_at_strike(self):
        sid = series_id("put", 100.0)
        state = replay([
            open_option("o", 2, "put", "short", 100.0, 1, 250.0),
            AssignOrExercise("a", date(2024, 3, 15), TICKER, sid, 1, 100.0),
        ])

        position = state.get_share_position(TICKER)
        assert position.quantity == 100
        assert position.average_cost == pytest.approx(100.0)
        assert state.realized_pl == pytest.approx(250.0)
        assert state.open_options == []

    def test_covered_call_assigned(self):
        sid = series_id("call", 100.0)
        state = replay([
            buy("b", 2, 100, 90.0),
            open_option("o", 2, "call", "short", 100.0, 1, 200.0),
            AssignOrExercise("a", date(2024, 3, 15), TICKER, sid, 1, 100.0),
        ])

        assert state.realized_pl == pytest.approx(1200.0)
        assert state.is_flat

    def test_long_call_exercise_buys_shares(self):
        sid = series_id("call", 50.0)
        state = replay([
            open_option("o", 2, "call", "long", 50.0, 2, 300.0),
            AssignOrExercise("x", day(30), TICKER, sid, 2, 50.0),
        ])

        position = state.get_share_position(TICKER)
        assert position.quantity == 200
        assert position.total_cost == pytest.approx(10000.0)
        assert state.realized_pl == pytest.approx(-600.0)

    def test_long_put_exercise_without_shares_opens_short(self):
        sid = series_id("put", 80.0)
        state = replay([
            open_option("o", 2, "put", "long", 80.0, 1, 100.0),
            AssignOrExercise("x", day(30), TICKER, sid, 1, 80.0),
        ])

        position = state.get_share_position(TICKER)
        assert position.quantity == -100
        assert position.average_cost == pytest.approx(80.0)
        assert DiagnosticKind.SHORT_POSITION_OPENED in kinds(state)

    def test_assignment_records_both_legs(self):
        sid = series_id("put", 100.0)
        state = replay([
            buy("b", 1, 100, 110.0),
            open_option("o", 2, "put", "short", 100.0, 1, 250.0),
            AssignOrExercise("a", day(30), TICKER, sid, 1, 100.0),
        ])

        assert [e.source for e in state.realized_events] == ["option_assign"]
        assert state.get_share_position(TICKER).quantity == 200
        assert state.get_share_position(TICKER).average_cost == pytest.approx(105.0)

    def test_share_leg_events_carry_assignment_id(self):
        sid = series_id("call", 110.0)
        state = replay([
            buy("b", 2, 100, 100.0),
            open_option("o", 2, "call", "short", 110.0, 1, 250.0),
            AssignOrExercise("a", day(30), TICKER, sid, 1, 110.0),
        ])

        events = [(e.transaction_id, e.source) for e in state.realized_events]
        assert events == [("a", "option_assign"), ("a", "assignment_shares")]

    def test_short_from_exercise_reports_exercise_id(self):
        sid = series_id("put", 80.0)
        state = replay([
            open_option("o", 2, "put", "long", 80.0, 1, 100.0),
            AssignOrExercise("x", day(30), TICKER, sid, 1, 80.0),
        ])

        assert [d.transaction_id for d in state.diagnostics] == ["x"]


class TestDeriveShareTransaction:
    @pytest.fixture
    def assignment(self):
        return AssignOrExercise("a", date(2024, 3, 15), TICKER, "sid", 2, 100.0)

    def series(self, kind, direction):
        return OpenOptionPosition(
            option_id="sid",
            ticker=TICKER,
            option_kind=OptionKind(kind),
            strike=100.0,
            expiration=EXPIRY,
            direction=PositionDirection(direction),
            quantity=2,
            net_premium_value=100.0,
        )

    @pytest.mark.parametrize(
        "kind,direction,expected",
        [
            ("call", "short", SellShare),
            ("put", "short", BuyShare),
            ("call", "long", BuyShare),
            ("put", "long", SellShare),
        ],
    )
    def test_direction_mapping(self, assignment, kind, direction, expected):
        trade = derive_share_transaction(self.series(kind, direction), assignment)

        assert isinstance(trade, expected)
        assert trade.quantity == 200
        assert trade.price == 100.0
        assert trade.ticker == TICKER
        assert trade.date == assignment.date

    def test_uses_clamped_quantity(self, assignment):
        trade = derive_share_transaction(self.series("put", "short"), assignment, 1)
        assert trade.quantity == 100

    def test_zero_quantity_yields_nothing(self, assignment):
        assert derive_share_transaction(self.series("put", "short"), assignment, 0) is None


# =============================================================================
# Diagnostics
# =============================================================================

class TestDiagnostics:
    def test_unknown_series_skipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tradeledger.engine.ledger"):
            state = replay([
                CloseOption("c", day(5), TICKER, "missing", 1, 100.0),
                ExpireOption("e", day(6), TICKER, "missing", 1),
                AssignOrExercise("a", day(7), TICKER, "missing", 1, 100.0),
            ])

        assert kinds(state) == [DiagnosticKind.UNKNOWN_POSITION] * 3
        assert [d.transaction_id for d in state.diagnostics] == ["c", "e", "a"]
        assert state.realized_pl == 0.0
        assert state.is_flat
        assert "missing" in caplog.text

    def test_direction_mismatch_skipped(self):
        state = replay([
            open_option("o1", 2, "call", "short", 110.0, 1, 200.0),
            open_option("o2", 3, "call", "long", 110.0, 5, 900.0),
        ])

        assert kinds(state) == [DiagnosticKind.DIRECTION_MISMATCH]
        series = state.open_options[0]
        assert series.is_short
        assert series.quantity == 1
        assert series.net_premium_value == pytest.approx(200.0)

    def test_overclose_is_clamped(self):
        sid = series_id("call", 110.0)
        state = replay([
            open_option("o", 2, "call", "short", 110.0, 1, 300.0),
            CloseOption("c", day(5), TICKER, sid, 3, 100.0),
        ])

        assert kinds(state) == [DiagnosticKind.QUANTITY_CLAMPED]
        assert state.realized_pl == pytest.approx(200.0)
        assert state.open_options == []

    def test_overassign_is_clamped(self):
        sid = series_id("put", 100.0)
        state = replay([
            open_option("o", 2, "put", "short", 100.0, 1, 250.0),
            AssignOrExercise("a", day(30), TICKER, sid, 4, 100.0),
        ])

        assert DiagnosticKind.QUANTITY_CLAMPED in kinds(state)
        assert state.get_share_position(TICKER).quantity == 100

    def test_close_after_full_close_is_unknown(self):
        sid = series_id("call", 110.0)
        state = replay([
            open_option("o", 2, "call", "short", 110.0, 1, 300.0),
            CloseOption("c1", day(5), TICKER, sid, 1, 100.0),
            CloseOption("c2", day(6), TICKER, sid, 1, 100.0),
        ])

        assert kinds(state) == [DiagnosticKind.UNKNOWN_POSITION]


# =============================================================================
# Ordering and Purity
# =============================================================================

class TestReplayOrdering:
    def test_sorted_by_date(self):
        state = replay([sell("s", 9, 10, 60.0), buy("b", 2, 10, 50.0)])

        assert state.realized_pl == pytest.approx(100.0)
        assert state.diagnostics == []
        assert [tx.id for tx in state.transactions] == ["b", "s"]

    def test_same_date_keeps_log_order(self):
        state = replay([buy("b", 2, 10, 50.0), sell("s", 2, 10, 60.0)])

        assert state.realized_pl == pytest.approx(100.0)
        assert state.diagnostics == []

    def test_same_date_sell_first_opens_short(self):
        state = replay([sell("s", 2, 10, 60.0), buy("b", 2, 10, 50.0)])

        assert kinds(state) == [DiagnosticKind.SHORT_POSITION_OPENED]
        assert state.realized_pl == pytest.approx(100.0)

    def test_replay_is_pure(self):
        log = [buy("b", 2, 10, 50.0), open_option("o", 3, "call", "short", 60.0, 1, 120.0)]
        snapshot = list(log)

        first = replay(log)
        second = replay(log)

        assert log == snapshot
        assert first == second

    def test_empty_log(self):
        state = replay([])
        assert state.is_flat
        assert state.realized_pl == 0.0
        assert state.transactions == []


class TestTransactionLedger:
    def test_class_and_function_agree(self):
        log = [buy("b", 2, 10, 50.0), sell("s", 3, 4, 70.0)]
        assert TransactionLedger().replay(log) == replay(log)

    def test_invalid_tolerance(self):
        with pytest.raises(ValueError):
            TransactionLedger(quantity_tolerance=0)

    def test_rejects_non_transactions(self):
        class NotATrade:
            date = day(1)
            id = "x"

        with pytest.raises(TransactionValidationError):
            replay([NotATrade()])

    def test_repr(self):
        assert "TransactionLedger" in repr(TransactionLedger())


# =============================================================================
# DataFrame Summaries
# =============================================================================

class TestSummaries:
    @pytest.fixture
    def state(self):
        return replay([
            buy("b", 2, 100, 50.0),
            open_option("o", 2, "call", "short", 55.0, 1, 200.0),
            sell("s", 10, 50, 52.0),
            CloseOption("c", day(11), "AAPL", "unknown", 1, 10.0),
        ])

    def test_positions_summary(self, state):
        frame = positions_summary(state)

        assert isinstance(frame, pd.DataFrame)
        assert list(frame["type"]) == ["share", "option"]
        assert frame.loc[0, "quantity"] == 50
        assert frame.loc[1, "cost_basis"] == pytest.approx(-200.0)

    def test_positions_summary_empty(self):
        assert positions_summary(replay([])).empty

    def test_transactions_frame(self, state):
        frame = transactions_frame(state)

        assert len(frame) == 4
        assert list(frame["type"])[:3] == ["buy_share", "open_option", "sell_share"]
        realized = frame.set_index("id")["realized_pl"]
        assert realized["s"] == pytest.approx(100.0)
        assert pd.isna(realized["b"])

    def test_transactions_frame_includes_assignment_share_leg(self):
        sid = series_id("call", 110.0)
        state = replay([
            buy("b", 2, 100, 100.0),
            open_option("o", 2, "call", "short", 110.0, 1, 250.0),
            AssignOrExercise("a", day(30), TICKER, sid, 1, 110.0),
        ])

        frame = transactions_frame(state)
        realized = frame.set_index("id")["realized_pl"]

        # option leg keeps the 250 credit, shares called away at 110 add 1000
        assert realized["a"] == pytest.approx(1250.0)
        assert frame["realized_pl"].sum() == pytest.approx(state.realized_pl)

    def test_portfolio_statistics(self, state):
        stats = portfolio_statistics(state)

        assert stats["num_transactions"] == 4
        assert stats["num_open_shares"] == 1
        assert stats["num_open_options"] == 1
        assert stats["realized_pl"] == pytest.approx(100.0)
        assert stats["tickers"] == ["AAPL"]
        assert stats["diagnostics_by_kind"] == {"unknown_position": 1}
