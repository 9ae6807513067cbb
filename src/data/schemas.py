"""
Price and signal table contracts for the P&L engine.

**Conceptual**: This module defines the "data contracts" the engine relies on.
The engine itself never checks shapes; it receives a PriceTable and a 1-D
signal array that have already passed through here. Keeping validation at
the boundary means the per-bar loop can index freely without defensive
checks everywhere.

**Price table forms**:
  - Narrow: Open | Close. Execution and mark-to-market both come from here.
  - Wide:   Open | High | Low | Close. Execution still uses Open and
            mark-to-market uses Close; High and Low are carried along.

Inputs can be:
  - A DataFrame with named columns (open_price, closing_price, and optionally
    high_price + low_price, the raw price CSV column names).
  - A 2-D array with 2 columns (O|C) or 4 columns (O|H|L|C).

**Teaching note**: The column order of the 4-column array form is the one
that puts Close last. A DataFrame avoids the question entirely by naming
the columns, which is why the CSV readers in src.data.io always hand over
DataFrames.
"""

import math
from dataclasses import dataclass
from typing import Union

import numpy as np
import pandas as pd


class SchemaValidationError(Exception):
    """
    Raised when an input table does not conform to the expected schema.

    **Usage**: Catch this in actions/scripts to report a bad input file and
    halt, or let it propagate to the user with a clear error message.
    """
    pass


class ShapeMismatchError(SchemaValidationError):
    """
    Raised when price and signal inputs have incompatible shapes: a row-count
    mismatch, a signal with more than one column, or a price table that has
    neither 2 nor 4 columns.
    """
    pass


class ScalarInputError(SchemaValidationError):
    """Raised when big point value or commission is not a finite number."""
    pass


OPEN_COLUMN = 'open_price'
HIGH_COLUMN = 'high_price'
LOW_COLUMN = 'low_price'
CLOSE_COLUMN = 'closing_price'

NARROW_PRICE_COLUMNS = [OPEN_COLUMN, CLOSE_COLUMN]
WIDE_PRICE_COLUMNS = [OPEN_COLUMN, HIGH_COLUMN, LOW_COLUMN, CLOSE_COLUMN]

SIGNAL_COLUMN = 'signal'


@dataclass(frozen=True)
class NarrowPrices:
    """Open | Close price table."""
    open: np.ndarray
    close: np.ndarray

    def __len__(self) -> int:
        return len(self.open)


@dataclass(frozen=True)
class WidePrices:
    """Open | High | Low | Close price table."""
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray

    def __len__(self) -> int:
        return len(self.open)


PriceTable = Union[NarrowPrices, WidePrices]


def _as_float_column(values, name: str, context: str) -> np.ndarray:
    try:
        column = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise SchemaValidationError(
            f"{context}Column '{name}' must be numeric. Error: {e}"
        )
    return column


def build_price_table(
    prices: Union[pd.DataFrame, np.ndarray, list, NarrowPrices, WidePrices],
    context: str | None = None,
) -> PriceTable:
    """
    Convert a price input into a NarrowPrices or WidePrices table.

    **Functionally**:
      - PriceTable instances pass through unchanged.
      - DataFrames are read by column name: open_price and closing_price are
        required; if either high_price or low_price is present, both must be.
      - Arrays must be 2-D with exactly 2 (O|C) or 4 (O|H|L|C) columns.

    Args:
        prices: Price input in one of the supported forms.
        context: Optional description of the source, used in error messages.

    Returns:
        NarrowPrices or WidePrices with float64 columns.

    Raises:
        ShapeMismatchError: Wrong number of columns or wrong dimensionality.
        SchemaValidationError: Missing named columns or non-numeric values.
    """
    ctx = f"{context}: " if context else ""

    if isinstance(prices, (NarrowPrices, WidePrices)):
        return prices

    if isinstance(prices, pd.DataFrame):
        missing = set(NARROW_PRICE_COLUMNS) - set(prices.columns)
        if missing:
            raise SchemaValidationError(
                f"{ctx}Missing required price columns: {sorted(missing)}. "
                f"Expected at least {NARROW_PRICE_COLUMNS}. "
                f"Found columns: {list(prices.columns)}."
            )

        has_high = HIGH_COLUMN in prices.columns
        has_low = LOW_COLUMN in prices.columns
        if has_high != has_low:
            raise ShapeMismatchError(
                f"{ctx}Price table must carry both '{HIGH_COLUMN}' and '{LOW_COLUMN}' "
                f"or neither. Found columns: {list(prices.columns)}."
            )

        open_ = _as_float_column(prices[OPEN_COLUMN], OPEN_COLUMN, ctx)
        close = _as_float_column(prices[CLOSE_COLUMN], CLOSE_COLUMN, ctx)
        if has_high:
            return WidePrices(
                open=open_,
                high=_as_float_column(prices[HIGH_COLUMN], HIGH_COLUMN, ctx),
                low=_as_float_column(prices[LOW_COLUMN], LOW_COLUMN, ctx),
                close=close,
            )
        return NarrowPrices(open=open_, close=close)

    matrix = _as_float_column(prices, 'prices', ctx)
    if matrix.ndim != 2:
        raise ShapeMismatchError(
            f"{ctx}Price array must be 2-dimensional (rows x columns), "
            f"got {matrix.ndim} dimension(s)."
        )

    n_cols = matrix.shape[1]
    if n_cols == 2:
        return NarrowPrices(open=matrix[:, 0].copy(), close=matrix[:, 1].copy())
    if n_cols == 4:
        return WidePrices(
            open=matrix[:, 0].copy(),
            high=matrix[:, 1].copy(),
            low=matrix[:, 2].copy(),
            close=matrix[:, 3].copy(),
        )

    raise ShapeMismatchError(
        f"{ctx}Price array must be in the form 'O | C' (2 columns) or "
        f"'O | H | L | C' (4 columns), got {n_cols} columns."
    )


def coerce_signal_series(
    signal: Union[pd.Series, pd.DataFrame, np.ndarray, list],
    context: str | None = None,
) -> np.ndarray:
    """
    Convert a signal input into a 1-D float64 array.

    A DataFrame or 2-D array is accepted only if it has exactly one column.

    Raises:
        ShapeMismatchError: More than one column, or more than two dimensions.
        SchemaValidationError: Non-numeric values.
    """
    ctx = f"{context}: " if context else ""

    if isinstance(signal, pd.DataFrame):
        if signal.shape[1] != 1:
            raise ShapeMismatchError(
                f"{ctx}Signal must be a single column, got {signal.shape[1]} columns: "
                f"{list(signal.columns)}."
            )
        signal = signal.iloc[:, 0]

    values = _as_float_column(signal, SIGNAL_COLUMN, ctx)

    if values.ndim == 2:
        if values.shape[1] != 1:
            raise ShapeMismatchError(
                f"{ctx}Signal must be a single column array, got {values.shape[1]} columns."
            )
        values = values[:, 0]
    elif values.ndim != 1:
        raise ShapeMismatchError(
            f"{ctx}Signal must be 1-dimensional, got {values.ndim} dimensions."
        )

    return values.copy()


def validate_price_signal_alignment(
    prices: PriceTable,
    signal: np.ndarray,
    context: str | None = None,
) -> None:
    """
    Check that the price table and signal have the same number of rows.

    Raises:
        ShapeMismatchError: If the row counts differ.
    """
    ctx = f"{context}: " if context else ""
    if len(prices) != len(signal):
        raise ShapeMismatchError(
            f"{ctx}The number of rows in the price table ({len(prices)}) and the "
            f"signal ({len(signal)}) are different."
        )


def validate_scalar_inputs(big_point_value: float, commission_per_unit: float) -> None:
    """
    Check that the contract multiplier and commission are finite numbers.

    Raises:
        ScalarInputError: If either value is not a finite real scalar.
    """
    for name, value in (
        ('big_point_value', big_point_value),
        ('commission_per_unit', commission_per_unit),
    ):
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            raise ScalarInputError(
                f"Input '{name}' must be a single scalar number, got {type(value).__name__}."
            )
        if not math.isfinite(value):
            raise ScalarInputError(
                f"Input '{name}' must be finite, got {value}."
            )
