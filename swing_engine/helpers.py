"""
Engine Helpers
Rounding, numeric guards and candle normalisation shared by every engine module.
"""

import logging
import math
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from pydantic import ValidationError

from swing_engine.models import Candle

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


# ============================================================================
# NUMERIC GUARDS
# ============================================================================

def is_num(x: Any) -> bool:
    """True for finite ints and floats (bools excluded)."""
    if isinstance(x, (bool, np.bool_)):
        return False
    if isinstance(x, (int, float, np.integer, np.floating)):
        return math.isfinite(x)
    return False


def round2(x: Any) -> Any:
    """
    Round to 2 decimals, half away from zero.

    Non-numeric and non-finite inputs are returned unchanged.
    """
    if not is_num(x):
        return x
    scaled = math.floor(abs(float(x)) * 100 + 0.5) / 100
    return math.copysign(scaled, x) if scaled else 0.0


def clamp(value: Any, low: float, high: float) -> Any:
    if not is_num(value):
        return value
    return max(low, min(high, value))


def percent_change(current: Any, previous: Any) -> float:
    """Percentage change from previous to current, 0 when undefined."""
    if not is_num(current) or not is_num(previous) or previous == 0:
        return 0.0
    return round2((current - previous) / previous * 100)


def percent_distance(value: Any, reference: Any) -> float:
    """Signed percentage distance of value from reference, 0 when undefined."""
    if not is_num(value) or not is_num(reference) or reference == 0:
        return 0.0
    return round2((value - reference) / reference * 100)


def average(values: Iterable[Any]) -> float:
    valid = [v for v in values if is_num(v)]
    if not valid:
        return 0.0
    return round2(sum(valid) / len(valid))


def last_n(values: Sequence[Any], n: int) -> List[Any]:
    if n <= 0:
        return []
    return list(values[-n:])


def first_num(*values: Any) -> Optional[float]:
    """Return the first finite number among values, else None."""
    for value in values:
        if is_num(value):
            return value
    return None


# ============================================================================
# CANDLE NORMALISATION
# ============================================================================

def _time_key(timestamp: Any) -> Optional[int]:
    """
    Convert a candle timestamp to epoch nanoseconds for ordering.

    Numbers are epoch milliseconds; strings, dates and datetimes are parsed
    with pandas (naive values are read as UTC).
    """
    if timestamp is None or isinstance(timestamp, bool):
        return None
    try:
        if isinstance(timestamp, (int, float, np.integer, np.floating)):
            if not math.isfinite(timestamp):
                return None
            return int(timestamp * 1_000_000)
        if isinstance(timestamp, (str, date, datetime, pd.Timestamp, np.datetime64)):
            ts = pd.Timestamp(timestamp)
            if ts is pd.NaT:
                return None
            if ts.tzinfo is None:
                ts = ts.tz_localize("UTC")
            return int(ts.value)
    except (ValueError, TypeError, OverflowError) as e:
        logger.debug(f"Unparseable candle timestamp {timestamp!r}: {e}")
    return None


def parse_candles(candles: Any) -> List[Candle]:
    """
    Parse raw candles (array or mapping form) into Candle models.

    Rows that fail validation are dropped with a warning.
    """
    if candles is None:
        return []
    if isinstance(candles, pd.DataFrame):
        candles = candles.to_dict(orient="records")
    if not isinstance(candles, (list, tuple)):
        logger.warning(f"Expected a candle sequence, got {type(candles).__name__}")
        return []

    parsed = []
    dropped = 0
    for raw in candles:
        try:
            parsed.append(Candle.model_validate(raw))
        except ValidationError:
            dropped += 1

    if dropped:
        logger.warning(f"Dropped {dropped} unparseable candle(s)")
    return parsed


def normalize_candles(candles: Any) -> pd.DataFrame:
    """
    Normalise raw candles into an ascending, de-duplicated OHLCV frame.

    Args:
        candles: Sequence of candles in array form [ts, o, h, l, c, v]
            or mapping form with key aliases, or a DataFrame

    Returns:
        DataFrame with columns timestamp, open, high, low, close, volume.
        Empty when nothing could be parsed.
    """
    parsed = parse_candles(candles)
    if not parsed:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    df = pd.DataFrame([c.model_dump() for c in parsed], columns=OHLCV_COLUMNS)
    keys = [_time_key(c.timestamp) for c in parsed]

    if all(k is not None for k in keys):
        df["_key"] = keys
        # Stable sort, then keep the last row for each timestamp
        df = df.sort_values("_key", kind="stable")
        df = df.drop_duplicates(subset="_key", keep="last")
        df = df.drop(columns="_key")
    else:
        logger.warning("Candles without usable timestamps; keeping input order")

    df = df.reset_index(drop=True)
    for col in OHLCV_COLUMNS[1:]:
        df[col] = df[col].astype(float)
    return df
