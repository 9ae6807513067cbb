"""
CSV readers and writers for price, signal, and P&L result files.

**Conceptual**: This module is the file boundary of the P&L engine. Prices and
signals arrive as CSVs with a `timestamp` column; results leave as CSVs in
the same canonical format. Centralizing this provides:
  - Consistent timestamp handling (ISO 8601 strings <-> datetime objects).
  - Automatic validation (via schemas.py) at every read.
  - A single place that decides row order.

**Row order**: On disk, every CSV is written newest first (strictly
descending by timestamp), the canonical order for all time series in this
project. The engine needs bars oldest first, so the readers here return
chronological (ascending) order and the writers flip back on the way out.

**Teaching note**: Reversing the order of a price series is harmless for
most analytics, but the P&L engine executes each signal at the NEXT bar's
open. Feeding it newest-first data would execute every trade at the
previous bar's price. The readers sort explicitly so callers never have to
remember.
"""

from pathlib import Path

import pandas as pd

from src.data.schemas import (
    HIGH_COLUMN,
    LOW_COLUMN,
    NARROW_PRICE_COLUMNS,
    SIGNAL_COLUMN,
    SchemaValidationError,
    ShapeMismatchError,
)


def normalize_timestamp_column(
    df: pd.DataFrame,
    col: str = "timestamp",
    ascending: bool = False,
    ensure_date_column: bool = False,
) -> pd.DataFrame:
    """
    Normalize a timestamp column and sort rows by it.

    **Functionally**:
    - Parses the timestamp column using pd.to_datetime if not already datetime
      (handles both "YYYY-MM-DDTHH:MM:SS" and "YYYY-MM-DD HH:MM:SS" formats).
    - Sorts rows by timestamp: descending (newest first, the on-disk order)
      by default, ascending when `ascending=True` (the engine's order).
    - Optionally adds a human-readable "date" column (YYYY-MM-DD).
    - Returns empty DataFrames unchanged.

    Args:
        df: DataFrame containing a timestamp column.
        col: Name of the timestamp column (default: "timestamp").
        ascending: Sort oldest first instead of newest first.
        ensure_date_column: If True, adds a "date" column for inspection.

    Returns:
        New DataFrame with a datetime64 timestamp column, sorted, with a
        fresh RangeIndex.

    Raises:
        KeyError: If the timestamp column doesn't exist.
        ValueError: If the timestamp column can't be parsed as datetime.
    """
    if df.empty:
        return df.copy()

    df_normalized = df.copy()

    if col not in df_normalized.columns:
        raise KeyError(
            f"Timestamp column '{col}' not found in DataFrame. "
            f"Available columns: {list(df_normalized.columns)}"
        )

    if not pd.api.types.is_datetime64_any_dtype(df_normalized[col]):
        try:
            df_normalized[col] = pd.to_datetime(df_normalized[col], format='ISO8601')
        except Exception as e:
            raise ValueError(
                f"Failed to parse '{col}' column as datetime. "
                f"Expected ISO 8601 format (e.g., '2024-01-15 00:00:00' or '2024-01-15T00:00:00'). "
                f"Error: {e}"
            )

    df_normalized = df_normalized.sort_values(col, ascending=ascending).reset_index(drop=True)

    if ensure_date_column and 'date' not in df_normalized.columns:
        df_normalized['date'] = df_normalized[col].dt.strftime('%Y-%m-%d')

    return df_normalized


def write_normalized_csv(
    df: pd.DataFrame,
    path: Path | str,
    timestamp_col: str = "timestamp",
    ensure_date_column: bool = False,
) -> None:
    """
    Write a DataFrame to CSV with normalized timestamps, newest first.

    Timestamps are written as "YYYY-MM-DD HH:MM:SS". The parent directory is
    created if it doesn't exist.

    Raises:
        KeyError: If timestamp column doesn't exist.
        ValueError: If timestamp column can't be parsed as datetime.
        OSError: If file can't be written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df_to_write = normalize_timestamp_column(
        df, col=timestamp_col, ensure_date_column=ensure_date_column
    )

    # No .dt accessor on an empty column
    if not df_to_write.empty:
        df_to_write[timestamp_col] = df_to_write[timestamp_col].dt.strftime('%Y-%m-%d %H:%M:%S')

    try:
        df_to_write.to_csv(path, index=False)
    except Exception as e:
        raise OSError(
            f"Failed to write CSV to {path}. Error: {e}"
        )


def _read_timestamped_csv(path: Path | str, context: str | None) -> tuple[pd.DataFrame, str]:
    path = Path(path)
    context = context or str(path)

    if not path.exists():
        raise FileNotFoundError(
            f"CSV not found: {path}. "
            f"Ensure the file exists and the path is correct."
        )

    try:
        df = pd.read_csv(path)
    except Exception as e:
        raise SchemaValidationError(
            f"{context}: Failed to read CSV. Error: {e}"
        )

    if 'timestamp' not in df.columns:
        raise SchemaValidationError(
            f"{context}: 'timestamp' column missing. "
            f"Found columns: {list(df.columns)}."
        )

    try:
        df = normalize_timestamp_column(df, ascending=True)
    except ValueError as e:
        raise SchemaValidationError(f"{context}: {e}")

    if df['timestamp'].duplicated().any():
        duplicates = df.loc[df['timestamp'].duplicated(), 'timestamp'].tolist()
        raise SchemaValidationError(
            f"{context}: Duplicate timestamps found: {duplicates[:5]} (showing first 5)."
        )

    return df, context


def read_price_csv(path: Path | str, instrument_name: str | None = None) -> pd.DataFrame:
    """
    Read a price CSV for the P&L engine.

    **Expected columns**:
      - timestamp (ISO 8601)
      - open_price, closing_price (required)
      - high_price, low_price (optional, both or neither)
    Other columns (e.g. volume) are kept but ignored by the engine.

    Args:
        path: Path to the CSV file.
        instrument_name: Optional name used in error messages.

    Returns:
        DataFrame sorted oldest first with a parsed timestamp column.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: Missing columns, bad or duplicate timestamps.
        ShapeMismatchError: Only one of high_price / low_price present.
    """
    df, context = _read_timestamped_csv(path, instrument_name)

    missing = set(NARROW_PRICE_COLUMNS) - set(df.columns)
    if missing:
        raise SchemaValidationError(
            f"{context}: Missing required price columns: {sorted(missing)}. "
            f"Expected at least {['timestamp'] + NARROW_PRICE_COLUMNS}. "
            f"Found columns: {list(df.columns)}."
        )

    if (HIGH_COLUMN in df.columns) != (LOW_COLUMN in df.columns):
        raise ShapeMismatchError(
            f"{context}: Price CSV must carry both '{HIGH_COLUMN}' and '{LOW_COLUMN}' "
            f"or neither. Found columns: {list(df.columns)}."
        )

    return df


def read_signal_csv(
    path: Path | str,
    column: str = SIGNAL_COLUMN,
    context: str | None = None,
) -> pd.DataFrame:
    """
    Read a signal CSV for the P&L engine.

    **Expected columns**: timestamp plus exactly one signal column (named
    `column`). Any additional value column is a shape error: the engine
    accepts one signal per bar.

    Returns:
        DataFrame with columns [timestamp, column], sorted oldest first.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: Missing signal column, bad timestamps.
        ShapeMismatchError: More than one signal column.
    """
    df, context = _read_timestamped_csv(path, context)

    value_columns = [c for c in df.columns if c != 'timestamp']
    if len(value_columns) > 1:
        raise ShapeMismatchError(
            f"{context}: Signal CSV must have a single signal column, "
            f"found {value_columns}."
        )
    if column not in df.columns:
        raise SchemaValidationError(
            f"{context}: Signal column '{column}' missing. "
            f"Found columns: {list(df.columns)}."
        )

    return df[['timestamp', column]]


def align_signal_to_prices(
    prices: pd.DataFrame,
    signals: pd.DataFrame,
    column: str = SIGNAL_COLUMN,
) -> pd.Series:
    """
    Line up a signal frame with a price frame bar for bar.

    Both frames must be sorted the same way (the readers above return oldest
    first) and must contain exactly the same timestamps.

    Returns:
        Signal values as a Series with the price frame's index.

    Raises:
        ShapeMismatchError: If row counts or timestamps differ.
    """
    if len(prices) != len(signals):
        raise ShapeMismatchError(
            f"The number of rows in the price data ({len(prices)}) and the "
            f"signal data ({len(signals)}) are different."
        )

    price_ts = prices['timestamp'].reset_index(drop=True)
    signal_ts = signals['timestamp'].reset_index(drop=True)
    mismatched = price_ts != signal_ts
    if mismatched.any():
        first_bad = int(mismatched.idxmax())
        raise ShapeMismatchError(
            f"Price and signal timestamps differ starting at row {first_bad}: "
            f"{price_ts.iloc[first_bad]} vs {signal_ts.iloc[first_bad]}."
        )

    return pd.Series(signals[column].to_numpy(), index=prices.index, name=column)


def build_profit_loss_frame(result, timestamps: pd.Series | None = None) -> pd.DataFrame:
    """
    Flatten a ProfitLossResult into a results table.

    Args:
        result: ProfitLossResult from src.backtesting.engine.
        timestamps: Optional timestamps (one per bar, in the result's order)
                   to include as a `timestamp` column.

    Returns:
        DataFrame with [timestamp,] cash, open_equity, net_liquidity, returns.
    """
    frame = result.to_frame().reset_index(drop=True)
    if timestamps is not None:
        frame.insert(0, 'timestamp', pd.Series(timestamps).reset_index(drop=True))
    return frame


def write_profit_loss_csv(
    result,
    path: Path | str,
    timestamps: pd.Series | None = None,
) -> None:
    """
    Write the four P&L series to CSV.

    With timestamps, the file follows the canonical format (newest first).
    Without, rows are written in bar order with a `bar` column.
    """
    frame = build_profit_loss_frame(result, timestamps)
    if timestamps is not None:
        write_normalized_csv(frame, path)
        return

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.insert(0, 'bar', range(len(frame)))
    frame.to_csv(path, index=False)


def write_closed_trades_csv(result, path: Path | str) -> None:
    """Write the closed trade slices of a ProfitLossResult to CSV, in execution order."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    result.trades_frame().to_csv(path, index=False)
