"""
Analytics over P&L output: drawdowns, risk-adjusted ratios, trade statistics.
"""
