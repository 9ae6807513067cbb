"""
Bar-by-bar profit & loss engine for a single instrument.

**Conceptual**: Given a price table and a signal column, the engine replays
the trades the signals describe and reconstructs the account over time:

  - cash:          realized P&L credited (or debited) on each bar.
  - open_equity:   mark-to-market value of the lots still open after each bar.
  - net_liquidity: cumulative cash plus current open equity.
  - returns:       bar-over-bar change in net liquidity.

**Execution model** (document clearly, every number depends on it):
  - A signal on bar i executes at the OPEN of bar i+1 (one bar of lag).
    Realized cash for that execution is booked on bar i+1.
  - Open lots are marked against the CLOSE of bar i+1 after the action of
    signal i has been applied.
  - A signal on the final bar cannot execute (there is no next open) and
    is ignored.
  - Lots are closed first-in, first-out. Commission is charged per unit on
    every closing slice.

**Why a second pass over open equity?**
  Executions happen at synthetic prices (next bar's open), so the bar before
  a profitable exit can carry open equity that disagrees with the cash the
  exit actually realized. When a position is closed out flat with a profit,
  the previous bar's open equity is set to that realized cash. Losses are
  left untouched; the correction is deliberately one-sided.

**Teaching note**: The arithmetic here is floating point and the order of
operations matters for bit-exact reproducibility. Realized cash is
accumulated lot by lot in FIFO order, and net liquidity is a running sum
over cash, so returns[k] == net_liquidity[k] - net_liquidity[k-1] holds
exactly, not just approximately.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pandas as pd

from src.accounting.ledger import ClosedTrade, LotLedger
from src.accounting.signals import SignalAction, decode_signal, is_trade_signal
from src.analytics.risk_metrics import summarize_profit_loss
from src.data.schemas import (
    build_price_table,
    coerce_signal_series,
    validate_price_signal_alignment,
    validate_scalar_inputs,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfitLossParams:
    """
    Contract parameters for a P&L run.

    Attributes:
        big_point_value: Currency value of a one-point move per unit.
        commission_per_unit: Commission per unit closed.
        periods_per_year: Bars per year, for annualized summary metrics.
    """
    big_point_value: float = 1.0
    commission_per_unit: float = 0.0
    periods_per_year: int = 252


@dataclass
class ProfitLossResult:
    """
    Output of a P&L run.

    Attributes:
        cash: Realized P&L booked on each bar.
        open_equity: Mark-to-market value of open lots on each bar.
        net_liquidity: Cumulative cash plus open equity on each bar.
        returns: Bar-over-bar change in net_liquidity (first value 0).
        closed_trades: Every realized lot slice, in execution order.
        final_position: Net position held after the last executable bar.
        first_trade_index: Bar of the first trade signal, or None if there
                          was nothing to trade.
        metrics: Summary statistics (see src.analytics.risk_metrics).
        params: The ProfitLossParams that produced this result.
    """
    cash: pd.Series
    open_equity: pd.Series
    net_liquidity: pd.Series
    returns: pd.Series
    closed_trades: List[ClosedTrade] = field(default_factory=list)
    final_position: int = 0
    first_trade_index: int | None = None
    metrics: Dict[str, float] = field(default_factory=dict)
    params: ProfitLossParams | None = None

    def to_frame(self) -> pd.DataFrame:
        """The four output series as columns of one DataFrame."""
        return pd.DataFrame({
            'cash': self.cash,
            'open_equity': self.open_equity,
            'net_liquidity': self.net_liquidity,
            'returns': self.returns,
        })

    def trades_frame(self) -> pd.DataFrame:
        """Closed trades as a DataFrame (one row per realized slice)."""
        columns = [
            'origin_index', 'exit_index', 'quantity', 'entry_price',
            'exit_price', 'commission', 'pnl',
        ]
        return pd.DataFrame(
            [
                {column: getattr(trade, column) for column in columns}
                for trade in self.closed_trades
            ],
            columns=columns,
        )

    def as_tuple(self) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """(cash, open_equity, net_liquidity, returns) as numpy arrays."""
        return (
            self.cash.to_numpy(),
            self.open_equity.to_numpy(),
            self.net_liquidity.to_numpy(),
            self.returns.to_numpy(),
        )


def _build_bar_series(
    signal: np.ndarray,
    open_prices: np.ndarray,
    close_prices: np.ndarray,
    big_point: float,
    cost: float,
    ledger: LotLedger,
) -> tuple[np.ndarray, np.ndarray, int, int | None]:
    """
    Run the per-bar ledger loop.

    Returns:
        (cash, open_equity, final_position, first_trade_index) before the
        normalization and aggregation passes.
    """
    n_bars = len(signal)
    cash = np.zeros(n_bars, dtype=np.float64)
    open_equity = np.zeros(n_bars, dtype=np.float64)

    first = next((i for i in range(n_bars) if is_trade_signal(signal[i])), None)
    if first is None or first >= n_bars - 1:
        logger.info("No executable trade signal in %d bars; returning flat series", n_bars)
        return cash, open_equity, 0, None

    # Seed the ledger with the integer part of the first trade
    entry = decode_signal(float(signal[first]), 0, first)
    position = entry.quantity
    ledger.push(first, position, open_prices[first + 1])
    ledger.check_position(position, first)
    logger.debug("Bar %d: opened %d at %.6f", first, position, open_prices[first + 1])

    for i in range(first + 1, n_bars - 1):
        exec_bar = i + 1
        exec_price = open_prices[exec_bar]

        if signal[i] != 0:
            decoded = decode_signal(float(signal[i]), position, i)
            quantity = decoded.quantity

            if decoded.action is SignalAction.ADDITIVE:
                ledger.push(i, quantity, exec_price)
                position += quantity

            elif decoded.action is SignalAction.REDUCTIVE:
                if abs(quantity) >= abs(position):
                    # Closes everything; any excess opens on the other side
                    cash[exec_bar] = cash[exec_bar] + ledger.liquidate_all(
                        exec_price, big_point, cost, exit_index=exec_bar
                    )
                    position += quantity
                    if position != 0:
                        ledger.push(i, position, exec_price)
                else:
                    cash[exec_bar] = cash[exec_bar] + ledger.consume_front(
                        abs(quantity), exec_price, big_point, cost, exit_index=exec_bar
                    )
                    position += quantity

            elif decoded.action is SignalAction.CLOSE_ALL:
                cash[exec_bar] = cash[exec_bar] + ledger.liquidate_all(
                    exec_price, big_point, cost, exit_index=exec_bar
                )
                position = 0

            elif decoded.action is SignalAction.REVERSE:
                cash[exec_bar] = cash[exec_bar] + ledger.liquidate_all(
                    exec_price, big_point, cost, exit_index=exec_bar
                )
                ledger.push(i, quantity, exec_price)
                position = quantity

            ledger.check_position(position, i)
            logger.debug(
                "Bar %d: signal %s -> %s, position %d, cash[%d]=%.6f",
                i, signal[i], decoded.action.value, position, exec_bar, cash[exec_bar],
            )

        if position != 0:
            open_equity[exec_bar] = open_equity[exec_bar] + ledger.mark_to_market(
                close_prices[exec_bar], big_point
            )

    return cash, open_equity, position, first


def normalize_open_equity(cash: np.ndarray, open_equity: np.ndarray) -> np.ndarray:
    """
    Clamp open-equity spikes on the bar before a profitable flat exit.

    For bars 1 .. n-2: if open_equity[bar] differs from cash[bar+1], the
    position is flat on bar+1 (open_equity[bar+1] == 0), and cash[bar+1] is
    a profit, then open_equity[bar] is replaced by cash[bar+1].

    Returns:
        A corrected copy of open_equity.
    """
    normalized = open_equity.copy()
    for bar in range(1, len(normalized) - 1):
        if (
            normalized[bar] != cash[bar + 1]
            and normalized[bar + 1] == 0
            and cash[bar + 1] > 0
        ):
            normalized[bar] = cash[bar + 1]
    return normalized


def aggregate_net_liquidity(
    cash: np.ndarray,
    open_equity: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Derive net liquidity and bar-over-bar returns.

    net_liquidity[k] = sum(cash[0..k]) + open_equity[k]
    returns[0] = 0, returns[k] = net_liquidity[k] - net_liquidity[k-1]

    Returns:
        (net_liquidity, returns)
    """
    n_bars = len(cash)
    net_liquidity = np.zeros(n_bars, dtype=np.float64)
    returns = np.zeros(n_bars, dtype=np.float64)

    run_sum = 0.0
    for k in range(n_bars):
        run_sum = run_sum + cash[k]
        net_liquidity[k] = run_sum + open_equity[k]
        if k > 0:
            returns[k] = net_liquidity[k] - net_liquidity[k - 1]

    return net_liquidity, returns


def compute_profit_loss(
    prices,
    signal,
    big_point_value: float = 1.0,
    commission_per_unit: float = 0.0,
    periods_per_year: int = 252,
) -> ProfitLossResult:
    """
    Compute cash, open equity, net liquidity and returns for a signal series.

    **Conceptual**: This is the main entrypoint. It:
      1. Validates input shapes and scalar parameters.
      2. Finds the first bar with a trade signal (|signal| >= 1). If there is
         none, or it sits on the final bar, every series is zero.
      3. Seeds a FIFO lot ledger with that trade and walks forward bar by
         bar, decoding each signal against the current position and
         applying it to the ledger.
      4. Normalizes open equity on bars before profitable flat exits.
      5. Aggregates net liquidity and returns, and summarizes the run.

    Args:
        prices: DataFrame with open_price / closing_price (optionally
               high_price / low_price), or a 2-D array in O|C or O|H|L|C form.
               Rows must be in chronological order.
        signal: One value per bar: Series, single-column DataFrame, or array.
        big_point_value: Currency value of a one-point move per unit.
        commission_per_unit: Commission per unit closed.
        periods_per_year: Bars per year for annualized metrics.

    Returns:
        ProfitLossResult. Series are indexed like `prices` when it is a
        DataFrame, otherwise by bar number.

    Raises:
        ShapeMismatchError: Price/signal shapes are incompatible.
        ScalarInputError: big_point_value or commission_per_unit not finite.
        InvalidSignalEncodingError: A signal value cannot be decoded.
        IllegalReverseError: A reverse instruction points the way already held.
        LedgerInvariantError: The ledger and tracked position disagree.
    """
    price_table = build_price_table(prices)
    signal_values = coerce_signal_series(signal)
    validate_price_signal_alignment(price_table, signal_values)
    validate_scalar_inputs(big_point_value, commission_per_unit)

    big_point = float(big_point_value)
    cost = float(commission_per_unit)

    ledger = LotLedger()
    cash, open_equity, final_position, first = _build_bar_series(
        signal_values,
        price_table.open,
        price_table.close,
        big_point,
        cost,
        ledger,
    )

    open_equity = normalize_open_equity(cash, open_equity)
    net_liquidity, returns = aggregate_net_liquidity(cash, open_equity)

    if isinstance(prices, pd.DataFrame):
        index = prices.index
    else:
        index = pd.RangeIndex(len(signal_values))

    result = ProfitLossResult(
        cash=pd.Series(cash, index=index, name='cash'),
        open_equity=pd.Series(open_equity, index=index, name='open_equity'),
        net_liquidity=pd.Series(net_liquidity, index=index, name='net_liquidity'),
        returns=pd.Series(returns, index=index, name='returns'),
        closed_trades=list(ledger.closed_trades),
        final_position=final_position,
        first_trade_index=first,
        params=ProfitLossParams(
            big_point_value=big_point,
            commission_per_unit=cost,
            periods_per_year=periods_per_year,
        ),
    )
    result.metrics = summarize_profit_loss(
        result.net_liquidity,
        result.returns,
        [trade.pnl for trade in result.closed_trades],
        periods_per_year=periods_per_year,
    )

    logger.info(
        "P&L run complete: %d bars, %d closed slices, final position %d, net liquidity %.2f",
        len(signal_values),
        len(result.closed_trades),
        final_position,
        net_liquidity[-1] if len(net_liquidity) else 0.0,
    )

    return result


def compute_profit_loss_arrays(
    prices,
    signal,
    big_point_value: float,
    commission_per_unit: float,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Four inputs in, four arrays out: (cash, open_equity, net_liquidity, returns).

    Thin wrapper over compute_profit_loss for callers that only want the
    raw series in their original calling convention.
    """
    return compute_profit_loss(prices, signal, big_point_value, commission_per_unit).as_tuple()
