"""
Performance metrics for dollar P&L series.

This module summarizes the output of the P&L engine. Unlike a portfolio equity
curve, net liquidity here starts at zero and is measured in currency, not as a
fraction of capital, so drawdowns are reported in currency and there is no
CAGR. Per-bar returns are currency deltas of net liquidity.

All functions accept pandas Series (or anything pd.Series() accepts) and
return plain floats, with NaN where a statistic is undefined.
"""

import numpy as np
import pandas as pd
from scipy import stats


def compute_total_pnl(net_liquidity: pd.Series) -> float:
    """
    Final net liquidity: realized cash plus whatever is still open.

    Returns 0.0 for an empty series.
    """
    if len(net_liquidity) == 0:
        return 0.0
    return float(net_liquidity.iloc[-1])


def compute_drawdown_series(net_liquidity: pd.Series) -> pd.Series:
    """
    Compute the drawdown time series in currency.

    **Conceptual**: Drawdown answers "how far am I below my best point so far?"
    The account starts flat, so the running peak is floored at zero: a run
    that loses from the first bar is in drawdown from the start.

    **Mathematical**: At each time t:
        peak_t = max(0, net_liquidity_0, ..., net_liquidity_t)
        drawdown_t = net_liquidity_t - peak_t

    Args:
        net_liquidity: Cumulative P&L series.

    Returns:
        Series of drawdowns (values <= 0), same index as input.
    """
    peak = net_liquidity.cummax().clip(lower=0.0)
    return net_liquidity - peak


def compute_max_drawdown(net_liquidity: pd.Series) -> float:
    """
    Compute the maximum drawdown: worst peak-to-trough loss in currency.

    **Edge cases**:
    - Monotonically increasing P&L → 0.0.
    - Empty series → 0.0.

    Returns:
        Maximum drawdown as a scalar (value <= 0).
    """
    if len(net_liquidity) == 0:
        return 0.0
    return float(compute_drawdown_series(net_liquidity).min())


def compute_sharpe_ratio(returns: pd.Series, periods_per_year: int = 252) -> float:
    """
    Compute an annualized Sharpe ratio on per-bar P&L.

    **Mathematical**:
        Sharpe = mean(r_t) / std(r_t) * sqrt(periods_per_year)
    where r_t are bar-over-bar changes in net liquidity. Because r_t is in
    currency rather than percent, the risk-free rate is not subtracted.

    **Edge cases**:
    - Fewer than two observations, or zero volatility → NaN.

    Args:
        returns: Per-bar P&L changes.
        periods_per_year: Number of bars per year (252 for daily).

    Returns:
        Sharpe ratio as a scalar.
    """
    clean_returns = returns.dropna()
    if len(clean_returns) < 2:
        return np.nan

    vol_per_period = clean_returns.std(ddof=1)
    # Use tolerance check instead of exact equality for floating-point safety
    if vol_per_period < 1e-10 or np.isnan(vol_per_period):
        return np.nan

    return float((clean_returns.mean() / vol_per_period) * np.sqrt(periods_per_year))


def compute_hit_rate(trade_pnls: pd.Series) -> float:
    """
    Fraction of closed trades with positive P&L.

    **Mathematical**:
        Hit Rate = count(pnl > 0) / count(non-null pnl)

    Returns:
        Scalar between 0 and 1, or NaN when there are no trades.
    """
    clean = pd.Series(trade_pnls, dtype=float).dropna()
    if len(clean) == 0:
        return np.nan
    return float((clean > 0).sum() / len(clean))


def compute_win_loss_ratio(trade_pnls: pd.Series) -> float:
    """
    Compute the win/loss ratio: average winning trade vs average losing trade.

    **Mathematical**:
        Win/Loss Ratio = mean(pnl | pnl > 0) / |mean(pnl | pnl < 0)|

    **Edge cases**:
    - No losses but some wins → +inf.
    - No wins and no losses → NaN.
    - No wins → 0.

    Returns:
        Win/loss ratio as a scalar.
    """
    clean = pd.Series(trade_pnls, dtype=float).dropna()

    wins = clean[clean > 0]
    losses = clean[clean < 0]

    avg_win = wins.mean() if len(wins) > 0 else 0.0
    avg_loss = losses.mean() if len(losses) > 0 else 0.0

    if avg_loss == 0:
        if avg_win > 0:
            return np.inf
        return np.nan
    return float(avg_win / abs(avg_loss))


def compute_profit_factor(trade_pnls: pd.Series) -> float:
    """
    Gross profit divided by gross loss over closed trades.

    Returns +inf when there are wins and no losses, NaN when there are neither.
    """
    clean = pd.Series(trade_pnls, dtype=float).dropna()
    gross_profit = clean[clean > 0].sum()
    gross_loss = -clean[clean < 0].sum()

    if gross_loss == 0:
        return np.inf if gross_profit > 0 else np.nan
    return float(gross_profit / gross_loss)


def compute_pnl_t_statistic(returns: pd.Series) -> tuple[float, float]:
    """
    One-sample t-test of mean per-bar P&L against zero.

    **Conceptual**: A positive total P&L can be luck. The t-statistic asks
    how many standard errors the average bar's P&L sits away from zero; the
    p-value is the two-sided probability of seeing a mean that extreme if
    the true mean were zero.

    **Edge cases**:
    - Fewer than two observations, or zero variance → (NaN, NaN).

    Returns:
        (t_statistic, p_value)
    """
    clean_returns = pd.Series(returns, dtype=float).dropna()
    if len(clean_returns) < 2 or clean_returns.std(ddof=1) < 1e-10:
        return np.nan, np.nan

    result = stats.ttest_1samp(clean_returns.to_numpy(), popmean=0.0)
    return float(result.statistic), float(result.pvalue)


def summarize_profit_loss(
    net_liquidity: pd.Series,
    returns: pd.Series,
    trade_pnls: list[float],
    periods_per_year: int = 252,
) -> dict[str, float]:
    """
    Collect the summary metrics reported for a P&L run.

    Args:
        net_liquidity: Cumulative P&L per bar.
        returns: Per-bar change in net liquidity.
        trade_pnls: Realized P&L of each closed trade slice.
        periods_per_year: Bars per year for the Sharpe ratio.

    Returns:
        Dictionary of metric name -> value.
    """
    trades = pd.Series(trade_pnls, dtype=float)
    t_stat, p_value = compute_pnl_t_statistic(returns)

    return {
        'total_pnl': compute_total_pnl(net_liquidity),
        'realized_pnl': float(trades.sum()),
        'max_drawdown': compute_max_drawdown(net_liquidity),
        'sharpe_ratio': compute_sharpe_ratio(returns, periods_per_year=periods_per_year),
        'num_closed_trades': len(trades),
        'hit_rate': compute_hit_rate(trades),
        'win_loss_ratio': compute_win_loss_ratio(trades),
        'profit_factor': compute_profit_factor(trades),
        'pnl_t_statistic': t_stat,
        'pnl_p_value': p_value,
        'num_bars': len(net_liquidity),
    }
