"""
Exceptions raised by the profit & loss engine.

**Conceptual**: Every failure in a P&L run is fatal. The computation is pure
and deterministic, so there is nothing to retry and no partial result worth
returning. Each exception carries the bar index and the raw signal value so
the caller can find the offending row in their signal file immediately.

Shape problems with the inputs (wrong column counts, row mismatches) live in
src.data.schemas as ShapeMismatchError, next to the other data contracts.
"""


class ProfitLossError(Exception):
    """Base class for all errors raised while computing a P&L run."""
    pass


class InvalidSignalEncodingError(ProfitLossError):
    """
    Raised when a signal value cannot be decoded.

    A signal must be zero, a whole number, or a whole number plus/minus
    exactly one half. Anything else (1.3, -0.25, NaN) is rejected.

    Attributes:
        signal: The raw signal value.
        bar_index: Row of the signal in the input series.
    """

    def __init__(self, signal: float, bar_index: int, message: str | None = None):
        self.signal = signal
        self.bar_index = bar_index
        if message is None:
            message = (
                f"Signal {signal!r} at bar {bar_index} is not a valid encoding. "
                f"Expected 0, a whole number, or a whole number with a fractional part of exactly 0.5."
            )
        super().__init__(message)


class UnknownAdvancedSignalError(InvalidSignalEncodingError):
    """
    Raised when a fractional signal opposes the open position but is not a
    known advanced instruction (only the .5 close/reverse family is known).
    """

    def __init__(self, signal: float, bar_index: int):
        super().__init__(
            signal,
            bar_index,
            f"Signal {signal!r} at bar {bar_index} contains an advanced fractional "
            f"instruction that could not be interpreted. Only +/-0.5 (close out) and "
            f"+/-X.5 (reverse to X) are supported.",
        )


class IllegalReverseError(ProfitLossError):
    """
    Raised when a reverse instruction asks for a net position on the side
    already held (e.g. net short 50 and told to "reverse to net short 1").

    Attributes:
        signal: The raw signal value.
        bar_index: Row of the signal in the input series.
        position: Net position held when the signal arrived.
    """

    def __init__(self, signal: float, bar_index: int, position: int):
        self.signal = signal
        self.bar_index = bar_index
        self.position = position
        side = "long" if position > 0 else "short"
        super().__init__(
            f"Signal {signal!r} at bar {bar_index} requests a reverse to net {side} "
            f"while already net {side} {abs(position)}. A reverse must flip the position."
        )


class LedgerInvariantError(ProfitLossError):
    """Raised when the lot ledger no longer agrees with the tracked position."""
    pass
