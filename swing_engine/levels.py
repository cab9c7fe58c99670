"""
Price Levels
Pivot points plus merged support / resistance levels.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from swing_engine.helpers import is_num, round2

logger = logging.getLogger(__name__)


# ============================================================================
# PIVOT FORMULAS
# ============================================================================

def calc_classic_pivots(prev_high: Any, prev_low: Any, prev_close: Any) -> Optional[Dict[str, float]]:
    """
    Classic floor-trader pivots from the previous session.

    Returns:
        {pivot, r1, r2, r3, s1, s2, s3}, or None on any non-numeric input
    """
    if not (is_num(prev_high) and is_num(prev_low) and is_num(prev_close)):
        return None

    p = (prev_high + prev_low + prev_close) / 3
    return {
        "pivot": round2(p),
        "r1": round2(2 * p - prev_low),
        "r2": round2(p + (prev_high - prev_low)),
        "r3": round2(prev_high + 2 * (p - prev_low)),
        "s1": round2(2 * p - prev_high),
        "s2": round2(p - (prev_high - prev_low)),
        "s3": round2(prev_low - 2 * (prev_high - p)),
    }


def calc_fibonacci_pivots(prev_high: Any, prev_low: Any, prev_close: Any) -> Optional[Dict[str, float]]:
    """Fibonacci pivots: 0.382 / 0.618 / 1.0 of the range around P."""
    if not (is_num(prev_high) and is_num(prev_low) and is_num(prev_close)):
        return None

    p = (prev_high + prev_low + prev_close) / 3
    rng = prev_high - prev_low
    return {
        "pivot": round2(p),
        "r1": round2(p + 0.382 * rng),
        "r2": round2(p + 0.618 * rng),
        "r3": round2(p + rng),
        "s1": round2(p - 0.382 * rng),
        "s2": round2(p - 0.618 * rng),
        "s3": round2(p - rng),
    }


def calc_camarilla_pivots(prev_high: Any, prev_low: Any, prev_close: Any) -> Optional[Dict[str, float]]:
    """Camarilla pivots anchored on the close, four levels each side."""
    if not (is_num(prev_high) and is_num(prev_low) and is_num(prev_close)):
        return None

    rng = (prev_high - prev_low) * 1.1
    levels = {"pivot": round2((prev_high + prev_low + prev_close) / 3)}
    for n, divisor in enumerate((12, 6, 4, 2), start=1):
        levels[f"r{n}"] = round2(prev_close + rng / divisor)
    for n, divisor in enumerate((12, 6, 4, 2), start=1):
        levels[f"s{n}"] = round2(prev_close - rng / divisor)
    return levels


def calculate(indicators: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Default level set from the previous session, classic formula only.

    Returns:
        {classic, pivot, r1, r2, r3, s1, s2, s3}; every level is None when
        the previous session is unavailable
    """
    classic = calc_classic_pivots(
        indicators.get("prev_high"),
        indicators.get("prev_low"),
        indicators.get("prev_close"),
    )
    if classic is None:
        logger.debug("No previous session available for pivots")

    result: Dict[str, Any] = {"classic": classic}
    for key in ("pivot", "r1", "r2", "r3", "s1", "s2", "s3"):
        result[key] = classic[key] if classic else None
    return result


# ============================================================================
# SUPPORT / RESISTANCE
# ============================================================================

def identify_support_levels(indicators: Mapping[str, Any], pivots: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Levels below price, nearest first."""
    last = indicators.get("last")
    if not is_num(last):
        return []

    candidates = []
    if pivots:
        candidates += [
            (pivots.get("s1"), "pivot_s1", "medium"),
            (pivots.get("s2"), "pivot_s2", "medium"),
            (pivots.get("pivot"), "pivot", "high"),
        ]
    candidates += [
        (indicators.get("ema20"), "ema20", "high"),
        (indicators.get("sma200"), "sma200", "very_high"),
        (indicators.get("low_20d"), "swing_low_20d", "medium"),
    ]

    supports = [
        {"level": level, "type": kind, "strength": strength}
        for level, kind, strength in candidates
        if is_num(level) and level < last
    ]
    return sorted(supports, key=lambda s: -s["level"])


def identify_resistance_levels(indicators: Mapping[str, Any], pivots: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Levels above price, nearest first."""
    last = indicators.get("last")
    if not is_num(last):
        return []

    candidates = []
    if pivots:
        candidates += [
            (pivots.get("r1"), "pivot_r1", "medium"),
            (pivots.get("r2"), "pivot_r2", "medium"),
        ]
    candidates.append((indicators.get("high_20d"), "swing_high_20d", "high"))

    resistances = [
        {"level": level, "type": kind, "strength": strength}
        for level, kind, strength in candidates
        if is_num(level) and level > last
    ]
    return sorted(resistances, key=lambda r: r["level"])


def find_nearest_support(indicators, pivots) -> Optional[Dict[str, Any]]:
    supports = identify_support_levels(indicators, pivots)
    return supports[0] if supports else None


def find_nearest_resistance(indicators, pivots) -> Optional[Dict[str, Any]]:
    resistances = identify_resistance_levels(indicators, pivots)
    return resistances[0] if resistances else None


def analyze_price_position(indicators: Mapping[str, Any], pivots: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Price position relative to EMA20, SMA200, pivot and 20-day extremes.

    Returns:
        Dict of boolean flags (None when the level is unknown) plus an
        overall label: STRONG_BULLISH / BULLISH / BEARISH / NEUTRAL
    """
    last = indicators.get("last")
    if not is_num(last) or last == 0:
        return {"error": "No current price available"}

    ema20 = indicators.get("ema20")
    sma200 = indicators.get("sma200")
    high_20d = indicators.get("high_20d")
    low_20d = indicators.get("low_20d")
    pivot = pivots.get("pivot") if pivots else None

    position = {
        "current_price": last,
        "above_ema20": last > ema20 if is_num(ema20) else None,
        "above_sma200": last > sma200 if is_num(sma200) else None,
        "above_pivot": last > pivot if is_num(pivot) else None,
        "near_20d_high": (high_20d - last) / last * 100 <= 2 if is_num(high_20d) else None,
        "near_20d_low": (last - low_20d) / last * 100 <= 2 if is_num(low_20d) else None,
    }

    if position["above_ema20"] and position["above_sma200"] and position["above_pivot"]:
        position["overall"] = "STRONG_BULLISH"
    elif position["above_ema20"] and position["above_pivot"]:
        position["overall"] = "BULLISH"
    elif not position["above_ema20"] and not position["above_pivot"]:
        position["overall"] = "BEARISH"
    else:
        position["overall"] = "NEUTRAL"

    return position
