"""
Technical Indicators Engine
Computes the flat indicator set for a candle series using pandas-ta.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import pandas as pd

from swing_engine.config import (
    CLASSIFICATION_RULES, DATA_HEALTH, INDICATORS, MIN_BARS,
)
from swing_engine.helpers import average, is_num, normalize_candles, round2
from swing_engine.models import Trend

logger = logging.getLogger(__name__)

NO_DATA_ERROR = "No valid candle data provided"


# ============================================================================
# SERIES HELPERS
# ============================================================================

def _last_value(series: Optional[pd.Series]) -> Optional[float]:
    """Last value of a pandas-ta result, None when absent or NaN."""
    if series is None or len(series) == 0:
        return None
    value = series.iloc[-1]
    if value is None or pd.isna(value):
        return None
    return round2(float(value))


def _column(frame: Optional[pd.DataFrame], prefix: str) -> Optional[pd.Series]:
    """Pick a pandas-ta output column by its name prefix (e.g. 'MACDh_')."""
    if frame is None or frame.empty:
        return None
    for col in frame.columns:
        if str(col).startswith(prefix):
            return frame[col]
    return None


def _set(indicators: Dict[str, float], value: Optional[float], *names: str) -> None:
    """Store value under each name, skipping missing values."""
    if value is None:
        return
    for name in names:
        indicators[name] = value


# ============================================================================
# MAIN CALCULATION
# ============================================================================

def calculate(candles: Any) -> Dict[str, Any]:
    """
    Compute all technical indicators from candle data.

    Args:
        candles: Raw candles in array or mapping form (any order)

    Returns:
        Flat dict of indicator name to value. Indicators without enough
        history are absent. {"error": ...} when no candle is usable.
    """
    df = normalize_candles(candles)

    if df.empty:
        logger.warning("Cannot compute indicators: no valid candles")
        return {"error": NO_DATA_ERROR}

    indicators: Dict[str, Any] = {}

    try:
        import pandas_ta as ta

        _price_info(df, indicators)
        _moving_averages(ta, df, indicators)
        _momentum(ta, df, indicators)
        _volatility(ta, df, indicators)
        _volume(df, indicators)
        _swing_levels(df, indicators)

        logger.debug(f"Computed {len(indicators)} indicator fields from {len(df)} bars")

    except ImportError:
        logger.error("pandas-ta not installed. Run: pip install pandas-ta")
        indicators["error"] = "pandas-ta not installed"
    except Exception as e:
        logger.error(f"Error calculating indicators: {e}")
        indicators["error"] = str(e)

    return indicators


def _price_info(df: pd.DataFrame, indicators: Dict[str, Any]) -> None:
    last = df.iloc[-1]
    indicators["last"] = float(last["close"])
    indicators["open"] = float(last["open"])
    indicators["high"] = float(last["high"])
    indicators["low"] = float(last["low"])
    indicators["close"] = float(last["close"])
    indicators["volume"] = float(last["volume"])


def _moving_averages(ta, df: pd.DataFrame, indicators: Dict[str, Any]) -> None:
    close = df["close"]
    bars = len(df)

    if bars >= MIN_BARS["EMA20"]:
        value = _last_value(ta.ema(close, length=INDICATORS["ema_short"]))
        _set(indicators, value, "ema20", "ema20_1D")

    if bars >= MIN_BARS["EMA50"]:
        value = _last_value(ta.ema(close, length=INDICATORS["ema_medium"]))
        _set(indicators, value, "ema50", "ema50_1D")

    if bars >= MIN_BARS["SMA20"]:
        value = _last_value(ta.sma(close, length=INDICATORS["sma_short"]))
        _set(indicators, value, "sma20", "sma20_1D", "dma20")

    if bars >= MIN_BARS["SMA50"]:
        value = _last_value(ta.sma(close, length=INDICATORS["sma_medium"]))
        _set(indicators, value, "sma50", "sma50_1D", "dma50")

    if bars >= MIN_BARS["SMA200"]:
        value = _last_value(ta.sma(close, length=INDICATORS["sma_long"]))
        _set(indicators, value, "sma200", "sma200_1D", "dma200")


def _momentum(ta, df: pd.DataFrame, indicators: Dict[str, Any]) -> None:
    close, high, low = df["close"], df["high"], df["low"]
    bars = len(df)

    # RSI
    if bars >= MIN_BARS["RSI"]:
        value = _last_value(ta.rsi(close, length=INDICATORS["rsi_period"]))
        _set(indicators, value, "rsi", "rsi14", "rsi14_1D")

    # MACD (columns: MACD_, MACDh_ histogram, MACDs_ signal)
    if bars >= MIN_BARS["MACD"]:
        macd = ta.macd(
            close,
            fast=INDICATORS["macd_fast"],
            slow=INDICATORS["macd_slow"],
            signal=INDICATORS["macd_signal"],
        )
        _set(indicators, _last_value(_column(macd, "MACD_")), "macd")
        _set(indicators, _last_value(_column(macd, "MACDs_")), "macd_signal")
        _set(indicators, _last_value(_column(macd, "MACDh_")), "macd_histogram")

    # Stochastic, raw %K with a 3-bar %D
    if bars >= MIN_BARS["STOCHASTIC"]:
        stoch = ta.stoch(
            high, low, close,
            k=INDICATORS["stoch_period"],
            d=INDICATORS["stoch_signal"],
            smooth_k=1,
        )
        _set(indicators, _last_value(_column(stoch, "STOCHk_")), "stochastic_k")
        _set(indicators, _last_value(_column(stoch, "STOCHd_")), "stochastic_d")

    # ADX with directional indicators
    if bars >= MIN_BARS["ADX"]:
        adx = ta.adx(high, low, close, length=INDICATORS["adx_period"])
        _set(indicators, _last_value(_column(adx, "ADX_")), "adx", "adx14")
        _set(indicators, _last_value(_column(adx, "DMP_")), "pdi")
        _set(indicators, _last_value(_column(adx, "DMN_")), "mdi")


def _volatility(ta, df: pd.DataFrame, indicators: Dict[str, Any]) -> None:
    close, high, low = df["close"], df["high"], df["low"]
    bars = len(df)

    if bars >= MIN_BARS["ATR"]:
        atr = _last_value(ta.atr(high, low, close, length=INDICATORS["atr_period"]))
        _set(indicators, atr, "atr", "atr14", "atr14_1D")

        last = indicators.get("last")
        if atr is not None and is_num(last) and last != 0:
            indicators["atr_pct"] = round2(atr / last * 100)

    if bars >= MIN_BARS["BOLLINGER"]:
        bb = ta.bbands(
            close,
            length=INDICATORS["bollinger_period"],
            std=INDICATORS["bollinger_std"],
        )
        upper = _last_value(_column(bb, "BBU_"))
        middle = _last_value(_column(bb, "BBM_"))
        lower = _last_value(_column(bb, "BBL_"))
        _set(indicators, upper, "bb_upper")
        _set(indicators, middle, "bb_middle")
        _set(indicators, lower, "bb_lower")
        if upper is not None and lower is not None:
            indicators["bb_width"] = round2(upper - lower)


def _volume(df: pd.DataFrame, indicators: Dict[str, Any]) -> None:
    bars = len(df)

    # Simplified VWAP over the last N bars of typical price
    if bars >= MIN_BARS["VWAP"]:
        recent = df.tail(INDICATORS["vwap_bars"])
        typical = (recent["high"] + recent["low"] + recent["close"]) / 3
        volume_sum = float(recent["volume"].sum())
        if volume_sum > 0:
            indicators["vwap"] = round2(float((typical * recent["volume"]).sum()) / volume_sum)

    if bars >= MIN_BARS["VOLUME"]:
        avg_volume = average(df["volume"].tail(INDICATORS["volume_sma"]).tolist())
        current = float(df["volume"].iloc[-1])
        indicators["volume_20avg"] = round2(avg_volume)
        indicators["volume_vs_avg"] = round2(current / avg_volume) if avg_volume > 0 else 1


def _swing_levels(df: pd.DataFrame, indicators: Dict[str, Any]) -> None:
    bars = len(df)
    closes = df["close"]

    short = INDICATORS["swing_short"]
    if bars >= short:
        recent = df.tail(short)
        indicators["high_20d"] = round2(float(recent["high"].max()))
        indicators["low_20d"] = round2(float(recent["low"].min()))

    long = INDICATORS["swing_long"]
    if bars >= long:
        recent = df.tail(long)
        indicators["high_50d"] = round2(float(recent["high"].max()))
        indicators["low_50d"] = round2(float(recent["low"].min()))

    # Previous session is the second-to-last candle
    if bars >= 2:
        prev = df.iloc[-2]
        indicators["prev_high"] = round2(float(prev["high"]))
        indicators["prev_low"] = round2(float(prev["low"]))
        indicators["prev_close"] = round2(float(prev["close"]))

    month = INDICATORS["return_1m_bars"]
    if bars >= month:
        past = float(closes.iloc[-month])
        if past != 0:
            indicators["return_1m"] = round2((float(closes.iloc[-1]) - past) / past * 100)

    week = INDICATORS["return_1w_bars"]
    if bars > week:
        past = float(closes.iloc[-week - 1])
        if past != 0:
            indicators["weekly_change_pct"] = round2((float(closes.iloc[-1]) - past) / past * 100)

    dma20 = indicators.get("dma20")
    last = indicators.get("last")
    if is_num(dma20) and dma20 != 0 and is_num(last):
        indicators["distance_from_20dma_pct"] = round2((last - dma20) / dma20 * 100)


# ============================================================================
# PRIMITIVES
# ============================================================================

def ema_last(values: Sequence[float], period: int) -> Optional[float]:
    """
    Last value of an SMA-seeded EMA.

    Args:
        values: Numeric series, oldest first
        period: EMA length

    Returns:
        Unrounded EMA at the last value, None with fewer than period values
    """
    if period <= 0 or len(values) < period:
        return None

    import pandas_ta as ta

    result = ta.ema(pd.Series(values, dtype=float), length=period)
    if result is None or len(result) == 0 or pd.isna(result.iloc[-1]):
        return None
    return float(result.iloc[-1])


# ============================================================================
# CLASSIFICATION
# ============================================================================

def determine_trend(indicators: Mapping[str, Any]) -> str:
    """
    Classify trend as BULLISH / BEARISH / NEUTRAL.

    Price vs SMA200 plus the EMA20/EMA50 cross decides when all are present,
    otherwise price vs a +/-2% band around EMA20.
    """
    last = indicators.get("last")
    ema20 = indicators.get("ema20")
    ema50 = indicators.get("ema50")
    sma200 = indicators.get("sma200")

    if not is_num(last) or last == 0:
        return Trend.NEUTRAL.value

    if is_num(sma200) and is_num(ema20) and is_num(ema50):
        if last > sma200 and ema20 > ema50:
            return Trend.BULLISH.value
        if last < sma200 and ema20 < ema50:
            return Trend.BEARISH.value

    if is_num(ema20):
        band = CLASSIFICATION_RULES["trend_ema_band"]
        if last > ema20 * (1 + band):
            return Trend.BULLISH.value
        if last < ema20 * (1 - band):
            return Trend.BEARISH.value

    return Trend.NEUTRAL.value


def determine_volatility(indicators: Mapping[str, Any]) -> str:
    atr_pct = indicators.get("atr_pct")
    if not is_num(atr_pct) or atr_pct == 0:
        return "MEDIUM"
    if atr_pct < CLASSIFICATION_RULES["volatility_low_pct"]:
        return "LOW"
    if atr_pct > CLASSIFICATION_RULES["volatility_high_pct"]:
        return "HIGH"
    return "MEDIUM"


def determine_volume_classification(indicators: Mapping[str, Any]) -> str:
    ratio = indicators.get("volume_vs_avg")
    if not is_num(ratio) or ratio == 0:
        return "AVERAGE"
    if ratio >= CLASSIFICATION_RULES["volume_above_avg"]:
        return "ABOVE_AVERAGE"
    if ratio <= CLASSIFICATION_RULES["volume_below_avg"]:
        return "BELOW_AVERAGE"
    return "AVERAGE"


def check_data_health(indicators: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Report which required and recommended indicator fields are present.

    Returns:
        {ok, missing, available, required_missing}; ok is False iff a
        required field is missing
    """
    required = DATA_HEALTH["required"]
    recommended = DATA_HEALTH["recommended"]

    missing = []
    available = []
    for field in (*required, *recommended):
        if indicators.get(field) is not None:
            available.append(field)
        else:
            missing.append(field)

    required_missing = [f for f in required if f in missing]
    return {
        "ok": not required_missing,
        "missing": missing,
        "available": available,
        "required_missing": required_missing,
    }
