"""
Data I/O and schema enforcement for price, signal, and result tables.

Validates input shapes before they reach the P&L engine and handles the
canonical CSV format on disk.
"""
