"""
pnl_ledger – Main entry point.

Minimal bootstrap script: runs the P&L engine on a tiny built-in example to
verify the project structure is in place.
"""

from src.backtesting.engine import compute_profit_loss


def main() -> None:
    """Run a five-bar round trip and print the resulting net liquidity."""
    prices = [[10.0, 10.0], [11.0, 11.0], [12.0, 12.0], [13.0, 13.0], [14.0, 14.0]]
    signal = [0, 2, 0, -2, 0]
    result = compute_profit_loss(prices, signal, big_point_value=1.0, commission_per_unit=0.0)
    print(f"pnl_ledger bootstrap complete: net liquidity {result.net_liquidity.iloc[-1]:.2f}")


if __name__ == "__main__":
    main()
