"""
Profit & loss engine and result containers.

Replays a signal series against a price table through a FIFO lot ledger to
produce cash, open equity, net liquidity, and returns per bar.
"""
