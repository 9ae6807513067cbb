"""
Tests for the P&L engine.

This module tests compute_profit_loss end to end on tiny hand-worked inputs:
  - Execution at the next bar's open, marking at the close.
  - FIFO realization across partial and full closes.
  - Close-out, reverse and flip behaviour.
  - One-sided open-equity normalization.
  - Input validation and signal errors.

Every expected series below was worked out by hand; the comments walk through
the arithmetic so a failing test points straight at the step that changed.
"""

import numpy as np
import pandas as pd
import pytest

from src.accounting.errors import (
    IllegalReverseError,
    InvalidSignalEncodingError,
    UnknownAdvancedSignalError,
)
from src.backtesting.engine import (
    ProfitLossResult,
    aggregate_net_liquidity,
    compute_profit_loss,
    compute_profit_loss_arrays,
    normalize_open_equity,
)
from src.data.schemas import ScalarInputError, ShapeMismatchError


def make_narrow_prices(open_prices, close_prices=None) -> np.ndarray:
    """O|C price array; close defaults to open."""
    if close_prices is None:
        close_prices = open_prices
    return np.column_stack([open_prices, close_prices]).astype(float)


def assert_series(actual, expected):
    np.testing.assert_allclose(np.asarray(actual, dtype=float), np.asarray(expected, dtype=float))


# ============================================================================
# Round trips
# ============================================================================

def test_simple_long_round_trip():
    """Buy 2 on bar 1 (fills at 12), sell 2 on bar 3 (fills at 14)."""
    prices = make_narrow_prices([10, 11, 12, 13, 14])
    signal = [0, 2, 0, -2, 0]

    result = compute_profit_loss(prices, signal, 1.0, 0.0)

    assert isinstance(result, ProfitLossResult)
    assert_series(result.cash, [0, 0, 0, 0, 4])
    # Mark on bar 3 is (13 - 12) * 2 = 2, normalized up to the realized 4
    assert_series(result.open_equity, [0, 0, 0, 4, 0])
    assert_series(result.net_liquidity, [0, 0, 0, 4, 4])
    assert_series(result.returns, [0, 0, 0, 4, 0])
    assert result.final_position == 0
    assert result.first_trade_index == 1


def test_partial_fifo_close_then_close_out():
    """
    Buy 1 (fills 101), buy 2 (fills 102), sell 2 (fills 104: closes the
    101 lot and one unit of the 102 lot), then -0.5 closes the rest at 106.
    Closes sit half a point above opens.
    """
    opens = np.arange(100.0, 108.0)
    prices = make_narrow_prices(opens, opens + 0.5)
    signal = [1, 2, 0, -2, 0, -0.5, 0, 0]

    result = compute_profit_loss(prices, signal, 1.0, 0.0)

    assert_series(result.cash, [0, 0, 0, 0, 5, 0, 4, 0])
    # Bar 5 marks at 105.5 - 102 = 3.5, normalized to the realized 4 on bar 6
    assert_series(result.open_equity, [0, 0, 2.5, 5.5, 2.5, 4, 0, 0])
    assert_series(result.net_liquidity, [0, 0, 2.5, 5.5, 7.5, 9, 9, 9])
    assert_series(result.returns, [0, 0, 2.5, 3, 2, 1.5, 0, 0])

    trades = result.trades_frame()
    assert trades['pnl'].tolist() == pytest.approx([3.0, 2.0, 4.0])
    assert trades['origin_index'].tolist() == [0, 1, 1]
    assert trades['exit_index'].tolist() == [4, 4, 6]
    assert result.final_position == 0


def test_reverse_short_to_long_with_costs():
    """
    Sell 3 (fills 48), then 2.5 reverses to long 2 at 49.
    Big point 10, commission 1 per unit.
    """
    prices = make_narrow_prices([50, 50, 48, 47, 49, 52])
    signal = [0, -3, 0, 2.5, 0, 0]

    result = compute_profit_loss(prices, signal, 10.0, 1.0)

    # Cover: (49 - 48) * -3 * 10 - 3 * 1 = -33
    assert_series(result.cash, [0, 0, 0, 0, -33, 0])
    # Losing exit: bar 3 keeps its mark of (47 - 48) * -3 * 10 = 30
    assert_series(result.open_equity, [0, 0, 0, 30, 0, 60])
    assert_series(result.net_liquidity, [0, 0, 0, 30, -33, 27])
    assert_series(result.returns, [0, 0, 0, 30, -63, 60])
    assert result.final_position == 2


def test_oversized_sell_flips_position():
    """Long 2 (fills 10), sell 5 at 11: realize 2, hold short 3 from 11."""
    prices = make_narrow_prices([10, 10, 12, 11, 9, 9])
    signal = [2, 0, -5, 0, 0, 0]

    result = compute_profit_loss(prices, signal, 1.0, 0.0)

    assert_series(result.cash, [0, 0, 0, 2, 0, 0])
    assert_series(result.open_equity, [0, 0, 2, 0, 6, 6])
    assert_series(result.net_liquidity, [0, 0, 2, 2, 8, 8])
    assert_series(result.returns, [0, 0, 2, 0, 6, 0])
    assert result.final_position == -3


def test_returns_are_exact_differences_of_net_liquidity():
    rng = np.random.default_rng(7)
    opens = 100 + np.cumsum(rng.normal(0, 1, 60))
    closes = opens + rng.normal(0, 0.5, 60)
    signal = np.zeros(60)
    signal[[3, 10, 17, 25, 33, 41, 50]] = [2, 1, -1.5, 3, -0.5, -4, 1]

    result = compute_profit_loss(make_narrow_prices(opens, closes), signal, 50.0, 2.5)

    net_liq = result.net_liquidity.to_numpy()
    returns = result.returns.to_numpy()
    assert returns[0] == 0.0
    assert np.array_equal(returns[1:], net_liq[1:] - net_liq[:-1])


# ============================================================================
# Wide form
# ============================================================================

def test_wide_dataframe_marks_against_close():
    prices = pd.DataFrame({
        'open_price': [10.0, 10.0, 10.0, 10.0],
        'high_price': [99.0, 99.0, 99.0, 99.0],
        'low_price': [1.0, 1.0, 1.0, 1.0],
        'closing_price': [10.0, 10.0, 15.0, 15.0],
    })

    result = compute_profit_loss(prices, [1, 0, 0, 0])

    assert_series(result.open_equity, [0, 0, 5, 5])
    assert_series(result.net_liquidity, [0, 0, 5, 5])


def test_wide_array_uses_last_column_as_close():
    prices = np.array([
        [10.0, 99.0, 1.0, 10.0],
        [10.0, 99.0, 1.0, 10.0],
        [10.0, 99.0, 1.0, 15.0],
        [10.0, 99.0, 1.0, 15.0],
    ])

    cash, open_equity, net_liquidity, returns = compute_profit_loss_arrays(
        prices, [1, 0, 0, 0], 1.0, 0.0
    )

    assert_series(cash, [0, 0, 0, 0])
    assert_series(open_equity, [0, 0, 5, 5])
    assert_series(net_liquidity, [0, 0, 5, 5])
    assert_series(returns, [0, 0, 5, 0])


def test_dataframe_index_is_preserved():
    index = pd.date_range("2024-01-01", periods=5, freq="D")
    prices = pd.DataFrame({
        'open_price': [10.0, 11.0, 12.0, 13.0, 14.0],
        'closing_price': [10.0, 11.0, 12.0, 13.0, 14.0],
    }, index=index)

    result = compute_profit_loss(prices, pd.Series([0, 2, 0, -2, 0], index=index))

    assert result.net_liquidity.index.equals(index)
    assert list(result.to_frame().columns) == ['cash', 'open_equity', 'net_liquidity', 'returns']


# ============================================================================
# Nothing to trade
# ============================================================================

@pytest.mark.parametrize("signal", [
    [0, 0, 0, 0],
    [0, 0, 0, 3],          # only trade is on the last bar
    [0, 0.5, -0.5, 0],     # close-outs with nothing open
])
def test_no_executable_trade_gives_zero_series(signal):
    prices = make_narrow_prices([10, 11, 12, 13])

    result = compute_profit_loss(prices, signal, 1.0, 0.0)

    for series in result.as_tuple():
        assert_series(series, [0, 0, 0, 0])
    assert result.closed_trades == []
    assert result.final_position == 0


def test_signal_on_last_bar_is_ignored():
    prices = make_narrow_prices([10, 11, 12, 13])

    result = compute_profit_loss(prices, [1, 0, 0, -1], 1.0, 0.0)

    assert result.final_position == 1
    assert result.closed_trades == []


def test_single_bar_input():
    result = compute_profit_loss(make_narrow_prices([10]), [1], 1.0, 0.0)
    assert_series(result.net_liquidity, [0])


# ============================================================================
# Errors
# ============================================================================

def test_illegal_reverse_is_reported_with_bar_index():
    prices = make_narrow_prices([10, 10, 10, 10])

    with pytest.raises(IllegalReverseError) as exc_info:
        compute_profit_loss(prices, [-50, -1.5, 0, 0], 1.0, 0.0)

    assert exc_info.value.bar_index == 1
    assert exc_info.value.position == -50


def test_bad_fraction_raises_encoding_error():
    prices = make_narrow_prices([10, 10, 10, 10])

    with pytest.raises(InvalidSignalEncodingError):
        compute_profit_loss(prices, [1, 0.3, 0, 0], 1.0, 0.0)


def test_bad_fraction_against_position_raises_unknown_advanced():
    prices = make_narrow_prices([10, 10, 10, 10])

    with pytest.raises(UnknownAdvancedSignalError):
        compute_profit_loss(prices, [1, -1.25, 0, 0], 1.0, 0.0)


def test_bad_fraction_on_first_trade_is_rejected():
    prices = make_narrow_prices([10, 10, 10, 10])

    with pytest.raises(InvalidSignalEncodingError):
        compute_profit_loss(prices, [1.3, 0, 0, 0], 1.0, 0.0)


def test_row_mismatch_raises():
    with pytest.raises(ShapeMismatchError):
        compute_profit_loss(make_narrow_prices([10, 11, 12]), [0, 1], 1.0, 0.0)


def test_three_column_prices_raise():
    with pytest.raises(ShapeMismatchError):
        compute_profit_loss(np.ones((4, 3)), [0, 1, 0, 0], 1.0, 0.0)


def test_multi_column_signal_raises():
    with pytest.raises(ShapeMismatchError):
        compute_profit_loss(make_narrow_prices([10, 11]), np.zeros((2, 2)), 1.0, 0.0)


@pytest.mark.parametrize("big_point, commission", [
    (np.nan, 0.0),
    (1.0, np.inf),
    ([1.0, 2.0], 0.0),
    (True, 0.0),
])
def test_bad_scalars_raise(big_point, commission):
    with pytest.raises(ScalarInputError):
        compute_profit_loss(make_narrow_prices([10, 11]), [1, 0], big_point, commission)


# ============================================================================
# Helpers
# ============================================================================

def test_normalize_open_equity_is_one_sided():
    cash = np.array([0.0, 0.0, 5.0, 0.0, -3.0])
    open_equity = np.array([0.0, 2.0, 0.0, 1.0, 0.0])

    normalized = normalize_open_equity(cash, open_equity)

    # Profit on bar 2 lifts bar 1; loss on bar 4 leaves bar 3 alone
    assert_series(normalized, [0, 5, 0, 1, 0])
    assert_series(open_equity, [0, 2, 0, 1, 0])


def test_aggregate_net_liquidity():
    cash = np.array([0.0, 1.0, 0.0, -2.0])
    open_equity = np.array([0.0, 0.5, 1.5, 0.0])

    net_liquidity, returns = aggregate_net_liquidity(cash, open_equity)

    assert_series(net_liquidity, [0, 1.5, 2.5, -1])
    assert_series(returns, [0, 1.5, 1, -3.5])


def test_metrics_are_attached():
    prices = make_narrow_prices([10, 11, 12, 13, 14])

    result = compute_profit_loss(prices, [0, 2, 0, -2, 0], 1.0, 0.0)

    assert result.metrics['total_pnl'] == pytest.approx(4.0)
    assert result.metrics['realized_pnl'] == pytest.approx(4.0)
    assert result.metrics['num_closed_trades'] == 1
    assert result.metrics['num_bars'] == 5
    assert result.params.big_point_value == 1.0
