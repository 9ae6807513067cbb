"""
Position accounting: signal decoding, FIFO lot ledger, and error types.

Interprets the fractional signal convention and keeps the open lots that
the backtest engine marks to market and realizes against.
"""
