#!/usr/bin/env python3
"""
Compute bar-by-bar P&L for a signal file against a price file.

**Purpose**: This script is the command-line front end of the P&L engine. It:
  1. Loads a price CSV and a signal CSV (canonical timestamped format).
  2. Lines the two up bar for bar.
  3. Runs compute_profit_loss with the given contract parameters.
  4. Prints summary metrics and saves results to the results directory.

**Usage**:
    From project root:
    ```bash
    python actions/run_profit_loss.py data/raw/ES.csv data/signals/ES_breakout.csv \
        --big-point 50 --commission 2.5 --name es_breakout
    ```

**Outputs** (saved to --output-dir, default from PNL_RESULTS_DIR):
  - <name>_pnl.csv: cash, open_equity, net_liquidity, returns per bar.
  - <name>_trades.csv: every closed lot slice.
  - <name>_metrics.json: summary metrics.
  - <name>_net_liquidity.png: plot of net liquidity (with --plot).

**Signal convention**: integers buy/sell that many units, +/-0.5 closes out,
+/-X.5 reverses to a net position of X. See src/accounting/signals.py.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.accounting.errors import ProfitLossError
from src.backtesting.engine import ProfitLossResult, compute_profit_loss
from src.config.settings import get_settings
from src.data.io import (
    align_signal_to_prices,
    read_price_csv,
    read_signal_csv,
    write_closed_trades_csv,
    write_profit_loss_csv,
)
from src.data.schemas import SchemaValidationError


def parse_args(argv=None):
    """
    Parse command line arguments.

    Contract parameters default to the values from settings (PNL_* environment
    variables or .env), so a project can fix its multiplier once and only
    pass file paths on the command line.

    Returns:
        Namespace with attributes: prices, signals, big_point, commission,
        signal_column, output_dir, name, plot.
    """
    settings = get_settings().pnl

    parser = argparse.ArgumentParser(
        description="Compute bar-by-bar P&L for a signal series",
        epilog="""
Examples:
  # Shares, no commission
  python actions/run_profit_loss.py data/raw/QQQ.csv data/signals/QQQ.csv

  # Futures contract worth $50 per point, $2.50 per contract
  python actions/run_profit_loss.py data/raw/ES.csv data/signals/ES.csv --big-point 50 --commission 2.5

  # Save a plot of net liquidity too
  python actions/run_profit_loss.py data/raw/ES.csv data/signals/ES.csv --name es --plot
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("prices", help="Price CSV (timestamp, open_price, closing_price[, high_price, low_price])")
    parser.add_argument("signals", help="Signal CSV (timestamp plus one signal column)")

    parser.add_argument(
        "--big-point",
        type=float,
        default=settings.big_point_value,
        help=f"Currency value of a one-point move per unit (default: {settings.big_point_value})",
    )
    parser.add_argument(
        "--commission",
        type=float,
        default=settings.commission_per_unit,
        help=f"Commission per unit closed (default: {settings.commission_per_unit})",
    )
    parser.add_argument(
        "--signal-column",
        type=str,
        default="signal",
        help="Name of the signal column in the signal CSV (default: signal)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=str(settings.results_dir),
        help=f"Directory for result files (default: {settings.results_dir})",
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Prefix for result files (default: signal file name without extension)",
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Also save a PNG plot of net liquidity",
    )

    return parser.parse_args(argv)


def save_net_liquidity_plot(result: ProfitLossResult, timestamps, path: Path) -> None:
    """Plot net liquidity and realized cash (cumulative) over time."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(timestamps, result.net_liquidity.to_numpy(), label="Net liquidity", linewidth=1.5)
    ax.plot(timestamps, result.cash.cumsum().to_numpy(), label="Realized cash", linewidth=1.0, alpha=0.7)
    ax.axhline(0.0, color="grey", linewidth=0.8)
    ax.set_title("Net liquidity")
    ax.set_ylabel("P&L")
    ax.legend()
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(path, dpi=120)
    plt.close(fig)


def _json_value(value):
    # JSON has no inf/nan
    if isinstance(value, (float, np.floating)):
        return float(value) if np.isfinite(value) else None
    if isinstance(value, np.integer):
        return int(value)
    return value


def main(argv=None) -> int:
    """
    Main entrypoint.

    Returns:
        Process exit code (0 on success, 1 on bad input).
    """
    args = parse_args(argv)
    settings = get_settings().pnl
    logging.basicConfig(
        level=settings.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    name = args.name or Path(args.signals).stem
    output_dir = Path(args.output_dir)

    print("=" * 80)
    print(f"Profit & Loss: {name}")
    print("=" * 80)
    print()

    # ========================================================================
    # Step 1: Load inputs
    # ========================================================================
    print("Step 1: Loading prices and signals...")
    try:
        prices = read_price_csv(args.prices)
        signals = read_signal_csv(args.signals, column=args.signal_column)
        signal = align_signal_to_prices(prices, signals, column=args.signal_column)
    except (FileNotFoundError, SchemaValidationError) as e:
        print(f"  ✗ {e}")
        return 1
    print(f"  ✓ Loaded {len(prices)} bars from {prices['timestamp'].min()} to {prices['timestamp'].max()}")
    print()

    # ========================================================================
    # Step 2: Run the engine
    # ========================================================================
    print("Step 2: Computing P&L...")
    print(f"  Big point value: {args.big_point}")
    print(f"  Commission/unit: {args.commission}")
    try:
        result = compute_profit_loss(
            prices,
            signal,
            big_point_value=args.big_point,
            commission_per_unit=args.commission,
            periods_per_year=settings.periods_per_year,
        )
    except (ProfitLossError, SchemaValidationError) as e:
        print(f"  ✗ {e}")
        return 1
    print(f"  ✓ {len(result.closed_trades)} closed trade slices, final position {result.final_position}")
    print()

    # ========================================================================
    # Step 3: Display metrics
    # ========================================================================
    metrics = result.metrics
    print("Step 3: Metrics:")
    print("-" * 80)
    print(f"  Total P&L:         {metrics['total_pnl']:>14,.2f}")
    print(f"  Realized P&L:      {metrics['realized_pnl']:>14,.2f}")
    print(f"  Max Drawdown:      {metrics['max_drawdown']:>14,.2f}")
    print(f"  Sharpe Ratio:      {metrics['sharpe_ratio']:>14.2f}")
    print(f"  Closed Trades:     {metrics['num_closed_trades']:>14,}")
    print(f"  Hit Rate:          {metrics['hit_rate']:>14.2%}")
    print(f"  Profit Factor:     {metrics['profit_factor']:>14.2f}")
    print("-" * 80)
    print()

    # ========================================================================
    # Step 4: Save results
    # ========================================================================
    print(f"Step 4: Saving results to {output_dir}/...")
    output_dir.mkdir(parents=True, exist_ok=True)

    pnl_path = output_dir / f"{name}_pnl.csv"
    write_profit_loss_csv(result, pnl_path, timestamps=prices['timestamp'])
    print(f"  ✓ Saved P&L series: {pnl_path}")

    trades_path = output_dir / f"{name}_trades.csv"
    write_closed_trades_csv(result, trades_path)
    print(f"  ✓ Saved closed trades: {trades_path}")

    metrics_path = output_dir / f"{name}_metrics.json"
    with open(metrics_path, 'w') as f:
        json.dump({k: _json_value(v) for k, v in metrics.items()}, f, indent=2)
    print(f"  ✓ Saved metrics: {metrics_path}")

    if args.plot:
        plot_path = output_dir / f"{name}_net_liquidity.png"
        save_net_liquidity_plot(result, prices['timestamp'], plot_path)
        print(f"  ✓ Saved plot: {plot_path}")
    print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
