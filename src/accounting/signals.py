"""
Signal decoding for the fractional signal convention.

**Conceptual**: A strategy communicates with the P&L engine through a single
column of numbers, one per bar. The integer part of a value is a quantity to
buy (positive) or sell (negative). Because nobody trades half a contract, a
fractional part of exactly one half is free to carry extra meaning:

    NET   SIGNAL      ACTION
    any   0           nothing
    any   X           buy or sell X (adds to, reduces, or opens a position)
    any   +/-0.5      close out everything (no-op when already flat)
    <= 0  X.5         close any short, then hold NET = +X
    >= 0  -X.5        close any long, then hold NET = -X
    < 0   -X.5        error: already short, cannot "reverse" to short
    > 0   X.5         error: already long, cannot "reverse" to long

Strategies that never use fractions get plain integer behaviour: with NET = -1
a signal of 2 and a signal of 1.5 both end at NET = +1.

**Why decode into a tagged value?**
  - The .5 test happens once, here, with an exact comparison. Halves are
    exact in binary floating point, so no epsilon is needed or wanted.
  - The engine switches on SignalAction instead of re-inspecting floats.
"""

import math
from dataclasses import dataclass
from enum import Enum

from src.accounting.errors import (
    IllegalReverseError,
    InvalidSignalEncodingError,
    UnknownAdvancedSignalError,
)


class SignalAction(Enum):
    """What a single signal value asks the ledger to do."""
    NO_ACTION = "no_action"
    ADDITIVE = "additive"
    REDUCTIVE = "reductive"
    CLOSE_ALL = "close_all"
    REVERSE = "reverse"


@dataclass(frozen=True)
class DecodedSignal:
    """
    A classified signal.

    Attributes:
        action: The SignalAction to apply.
        quantity: Signed whole-number quantity. For ADDITIVE and REDUCTIVE this
                 is the trade size; for REVERSE it is the new net position;
                 zero for NO_ACTION and CLOSE_ALL.
    """
    action: SignalAction
    quantity: int = 0


def is_trade_signal(value: float) -> bool:
    """True when a signal is large enough to open a position (|value| >= 1)."""
    return abs(value) >= 1


def is_additive(position: int, value: float) -> bool:
    """
    True when trading `value` adds to (or opens) the position.

    A trade is additive if it points the same way as the current position, or
    if there is no position yet. Everything else reduces or flips it.
    """
    return (position <= 0 and value <= -1) or (position >= 0 and value >= 1)


def decode_signal(value: float, position: int, bar_index: int) -> DecodedSignal:
    """
    Classify one raw signal value against the current net position.

    Args:
        value: Raw signal from the signal series.
        position: Net open position before this signal.
        bar_index: Row of the signal (used in error messages only).

    Returns:
        DecodedSignal describing the action.

    Raises:
        InvalidSignalEncodingError: Non-finite value, or a fractional part that
            is not exactly 0.5 on a signal that does not oppose the position.
        UnknownAdvancedSignalError: A fractional part other than 0.5 on a
            signal that opposes the position.
        IllegalReverseError: A reverse (X.5 with X != 0) pointing the same way
            as the position already held.
    """
    if value == 0:
        return DecodedSignal(SignalAction.NO_ACTION)

    if not math.isfinite(value):
        raise InvalidSignalEncodingError(value, bar_index)

    whole = math.trunc(value)
    fraction = abs(value - whole)

    # Plain integer instruction
    if fraction == 0:
        quantity = int(whole)
        if is_additive(position, value):
            return DecodedSignal(SignalAction.ADDITIVE, quantity)
        return DecodedSignal(SignalAction.REDUCTIVE, quantity)

    if fraction != 0.5:
        opposes_position = (position > 0 and value < 0) or (position < 0 and value > 0)
        if opposes_position:
            raise UnknownAdvancedSignalError(value, bar_index)
        raise InvalidSignalEncodingError(value, bar_index)

    # Advanced instruction: +/-0.5 closes out, +/-X.5 reverses to X
    quantity = int(whole)
    if quantity == 0:
        return DecodedSignal(SignalAction.CLOSE_ALL)

    if position == 0:
        # Nothing to reverse; the advanced flag only opens the position.
        return DecodedSignal(SignalAction.ADDITIVE, quantity)

    if (position > 0) == (quantity > 0):
        raise IllegalReverseError(value, bar_index, position)

    return DecodedSignal(SignalAction.REVERSE, quantity)
