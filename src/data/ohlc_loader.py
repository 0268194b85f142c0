import pandas as pd
import numpy as np
from typing import List
import os
import logging

from src.fibwave.types import Bar

logger = logging.getLogger(__name__)

FORMAT_A_COLUMNS = ['date', 'time', 'open', 'high', 'low', 'close', 'volume']


def detect_format(filepath: str) -> str:
    """
    Detects the format of the CSV file.

    Args:
        filepath: Path to the CSV file.

    Returns:
        "format_a" for Semicolon-Separated Historical Data.
        "format_b" for TradingView Comma-Separated Data.

    Raises:
        ValueError: If format cannot be detected.
    """
    try:
        with open(filepath, 'r') as f:
            # Read first few lines to be robust against blank leading lines
            lines = [f.readline() for _ in range(10)]
            lines = [line.strip() for line in lines if line.strip()]

            if not lines:
                raise ValueError("File is empty")

            first_line = lines[0]

            if ';' in first_line:
                return "format_a"

            if ',' in first_line:
                if "time" in first_line.lower() and "open" in first_line.lower():
                    return "format_b"

                # Headerless export with a Unix timestamp first field
                parts = first_line.split(',')
                if parts[0].replace('.', '', 1).isdigit():
                    return "format_b"

            raise ValueError(
                "Could not detect CSV format. Expected semicolon-separated "
                "historical format or comma-separated TradingView format."
            )

    except FileNotFoundError:
        raise FileNotFoundError(f"File not found: {filepath}")
    except PermissionError:
        raise PermissionError(f"Permission denied: {filepath}")


def validation_mask(df: pd.DataFrame) -> np.ndarray:
    """
    Row-wise OHLC consistency check.

    A row is valid when every price is finite, low <= high and the close
    (and open, when present) lies within [low, high].
    """
    high = df['high'].to_numpy(dtype='float64')
    low = df['low'].to_numpy(dtype='float64')
    close = df['close'].to_numpy(dtype='float64')

    mask = np.isfinite(high) & np.isfinite(low) & np.isfinite(close)
    mask &= (low <= high) & (low <= close) & (close <= high)

    if 'open' in df.columns:
        open_ = df['open'].to_numpy(dtype='float64')
        # Missing opens are allowed; the engine does not use them
        open_ok = np.isnan(open_) | ((low <= open_) & (open_ <= high))
        mask &= open_ok
    return mask


def load_ohlc(filepath: str) -> pd.DataFrame:
    """
    Loads OHLC data from a CSV file into a standardized DataFrame.

    Args:
        filepath: Path to the CSV file.

    Returns:
        DataFrame with columns: timestamp, open, high, low, close, confirmed,
        sorted by timestamp with a 0..n-1 RangeIndex.

    Raises:
        FileNotFoundError, PermissionError, ValueError.
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")

    if os.path.getsize(filepath) == 0:
        raise ValueError("File is empty")

    fmt = detect_format(filepath)

    try:
        if fmt == "format_a":
            # Format A: DD/MM/YYYY;HH:MM:SS;Open;High;Low;Close;Volume (no header)
            df = pd.read_csv(
                filepath,
                sep=';',
                header=None,
                names=FORMAT_A_COLUMNS,
                dtype={
                    'date': str, 'time': str,
                    'open': 'float64', 'high': 'float64', 'low': 'float64', 'close': 'float64',
                },
                engine='c'
            )
            datetime_str = df['date'] + ' ' + df['time']
            df['timestamp'] = pd.to_datetime(datetime_str, format='%d/%m/%Y %H:%M:%S', utc=True)
            df.drop(columns=['date', 'time'], inplace=True)

        else:  # format_b
            # Format B: time,open,high,low,close[,volume][,confirmed] (header)
            df = pd.read_csv(filepath, sep=',', engine='c')
            df.columns = df.columns.str.lower()

            required = {'time', 'high', 'low', 'close'}
            if not required.issubset(df.columns):
                raise ValueError(f"Missing required columns. Found: {df.columns.tolist()}")

            df['timestamp'] = pd.to_datetime(df['time'], unit='s', utc=True)
            df.drop(columns=['time'], inplace=True)

            if 'open' not in df.columns:
                df['open'] = np.nan
            for c in ['open', 'high', 'low', 'close']:
                df[c] = df[c].astype('float64')

    except (KeyError, ValueError, TypeError, pd.errors.ParserError) as e:
        raise ValueError(f"Error parsing file: {e}")

    if 'confirmed' in df.columns:
        df['confirmed'] = df['confirmed'].astype(str).str.strip().str.lower().isin(
            ['1', 'true', 'yes']
        )
    else:
        df['confirmed'] = True

    df = df[['timestamp', 'open', 'high', 'low', 'close', 'confirmed']]
    df = df.sort_values('timestamp', kind='stable')

    # Duplicate timestamps: keep the last occurrence (most recent revision)
    duplicates = df['timestamp'].duplicated(keep='last').to_numpy()
    if duplicates.any():
        logger.debug(
            f"Duplicate timestamps in {os.path.basename(filepath)}: "
            f"{int(duplicates.sum())} removed (kept last occurrence)"
        )
        df = df[~duplicates]

    valid = validation_mask(df)
    if not valid.all():
        invalid_count = int((~valid).sum())
        total_count = len(df)

        if invalid_count / total_count > 0.01:
            raise ValueError(
                f"Too many invalid rows: {invalid_count}/{total_count} "
                f"({invalid_count / total_count:.2%})"
            )

        logger.warning(f"Dropping {invalid_count} invalid OHLC row(s) from {filepath}")
        df = df[valid]

    return df.reset_index(drop=True)


def dataframe_to_bars(df: pd.DataFrame) -> List[Bar]:
    """
    Convert DataFrame with OHLC columns to a Bar list.

    Bars are indexed 0..n-1 in row order. Column names are matched
    case-insensitively; open, timestamp and confirmed are optional.

    Example:
        >>> df = pd.read_csv("market_data.csv")
        >>> bars = dataframe_to_bars(df)
        >>> engine, results = replay(bars)
    """
    col_map = {c.lower(): c for c in df.columns}
    for required in ('high', 'low', 'close'):
        if required not in col_map:
            raise ValueError(f"Missing required column '{required}'. Found: {list(df.columns)}")

    bars = []
    for values in df.to_dict('records'):
        timestamp = None
        for ts_col in ["timestamp", "time", "date", "datetime"]:
            if ts_col in col_map:
                ts_value = values[col_map[ts_col]]
                if isinstance(ts_value, (int, float, np.integer, np.floating)):
                    timestamp = int(ts_value)
                elif hasattr(ts_value, "timestamp"):
                    timestamp = int(ts_value.timestamp())
                break

        open_price = None
        if 'open' in col_map:
            raw_open = values[col_map['open']]
            if not pd.isna(raw_open):
                open_price = raw_open

        confirmed = True
        if 'confirmed' in col_map:
            confirmed = bool(values[col_map['confirmed']])

        bars.append(
            Bar(
                index=len(bars),
                high=values[col_map['high']],
                low=values[col_map['low']],
                close=values[col_map['close']],
                confirmed=confirmed,
                open=open_price,
                timestamp=timestamp,
            )
        )

    return bars


def load_bars(filepath: str) -> List[Bar]:
    """Load a CSV file straight to engine-ready bars."""
    df = load_ohlc(filepath)
    bars = dataframe_to_bars(df)
    logger.info(f"Loaded {len(bars)} bars from {os.path.basename(filepath)}")
    return bars
