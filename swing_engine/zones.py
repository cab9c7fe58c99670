"""
Trading Zones
Entry, stop-loss and target zones, plus zone status and gap checks.

calculate_entry_zone is the one place an entry band is derived. The card
path (pipeline.get_entry_zone) and the full analysis (calculate) both call it.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from swing_engine.config import ZONE_RULES
from swing_engine.helpers import is_num, round2

logger = logging.getLogger(__name__)


# ============================================================================
# ZONE CALCULATIONS
# ============================================================================

def calculate_entry_zone(ema20: Any, pivot: Any, atr: Any, current_price: Any = None) -> Optional[Dict[str, Any]]:
    """
    Entry band around the higher of EMA20 and pivot.

    Args:
        ema20: 20-day EMA
        pivot: Classic pivot
        atr: 14-day ATR, must be positive
        current_price: Accepted for call-site symmetry, not used in the band

    Returns:
        {center, low, high, based_on, spread}, or None when ATR is missing
        or non-positive, or both bases are missing
    """
    if not is_num(atr) or atr <= 0:
        return None

    if is_num(ema20) and is_num(pivot):
        base = max(ema20, pivot)
        based_on = "ema20" if ema20 >= pivot else "pivot"
    elif is_num(ema20):
        base, based_on = ema20, "ema20"
    elif is_num(pivot):
        base, based_on = pivot, "pivot"
    else:
        return None

    spread = ZONE_RULES["entry_spread_atr"] * atr
    return {
        "center": round2(base),
        "low": round2(base - spread),
        "high": round2(base + spread),
        "based_on": based_on,
        "spread": round2(spread),
    }


def calculate_stop_loss_zone(entry: Any, atr: Any, s1: Any = None, swing_low: Any = None) -> Optional[Dict[str, Any]]:
    """Stop for a BUY: s1, else swing low, else entry - 0.8 ATR; less a 0.1 ATR buffer."""
    if not is_num(entry) or not is_num(atr):
        return None

    if is_num(s1) and s1 < entry:
        base, based_on = s1, "s1"
    elif is_num(swing_low) and swing_low < entry:
        base, based_on = swing_low, "swing_low"
    else:
        base, based_on = entry - ZONE_RULES["stop_fallback_atr"] * atr, "atr"

    buffer = ZONE_RULES["stop_buffer_atr"] * atr
    level = base - buffer
    return {
        "level": round2(level),
        "based_on": based_on,
        "buffer": round2(buffer),
        "risk_per_share": round2(entry - level),
    }


def calculate_target_zone(entry: Any, atr: Any, r1: Any = None, high_20d: Any = None,
                          stop_loss: Any = None) -> Optional[Dict[str, Any]]:
    """Target for a BUY: 20-day high, else r1, else entry + 1 ATR."""
    if not is_num(entry) or not is_num(atr):
        return None

    if is_num(high_20d) and high_20d > entry:
        base, based_on = high_20d, "high_20d"
    elif is_num(r1) and r1 > entry:
        base, based_on = r1, "r1"
    else:
        base, based_on = entry + ZONE_RULES["target_fallback_atr"] * atr, "atr"

    reward = base - entry
    risk_reward = None
    if is_num(stop_loss) and entry - stop_loss > 0:
        risk_reward = round2(reward / (entry - stop_loss))

    return {
        "level": round2(base),
        "based_on": based_on,
        "reward_per_share": round2(reward),
        "risk_reward": risk_reward,
    }


def calculate(indicators: Mapping[str, Any], levels: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Complete entry / stop / target zones.

    Args:
        indicators: Indicator set
        levels: Level set from levels.calculate

    Returns:
        {entry, stopLoss, target, summary}, or {"error": ...}
    """
    levels = levels or {}
    atr = indicators.get("atr")

    entry_zone = calculate_entry_zone(
        ema20=indicators.get("ema20"),
        pivot=levels.get("pivot"),
        atr=atr,
        current_price=indicators.get("last"),
    )
    if entry_zone is None:
        logger.debug("Entry zone unavailable: missing ATR or base level")
        return {"error": "Insufficient data for zone calculation"}

    stop_zone = calculate_stop_loss_zone(
        entry=entry_zone["center"],
        atr=atr,
        s1=levels.get("s1"),
        swing_low=indicators.get("low_20d"),
    )
    target_zone = calculate_target_zone(
        entry=entry_zone["center"],
        atr=atr,
        r1=levels.get("r1"),
        high_20d=indicators.get("high_20d"),
        stop_loss=stop_zone["level"] if stop_zone else None,
    )

    return {
        "entry": entry_zone,
        "stopLoss": stop_zone,
        "target": target_zone,
        "summary": {
            "entry_center": entry_zone["center"],
            "entry_range": f"{entry_zone['low']} - {entry_zone['high']}",
            "stop_loss": stop_zone["level"] if stop_zone else None,
            "target": target_zone["level"] if target_zone else None,
            "risk_reward": target_zone["risk_reward"] if target_zone else None,
        },
    }


# ============================================================================
# ZONE STATUS
# ============================================================================

def check_entry_zone_status(current_price: Any, entry_zone: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Where price sits relative to the entry zone.

    Returns:
        {status, inZone, approaching, distance_pct, direction, message}
        with status IN_ZONE / APPROACHING / ABOVE_ZONE / BELOW_ZONE
    """
    if (not is_num(current_price) or current_price == 0 or not entry_zone
            or not is_num(entry_zone.get("low")) or not is_num(entry_zone.get("high"))):
        return {"error": "Invalid inputs"}

    low, high = entry_zone["low"], entry_zone["high"]

    if low <= current_price <= high:
        return {
            "status": "IN_ZONE",
            "inZone": True,
            "approaching": False,
            "distance_pct": 0,
            "direction": "in_zone",
            "message": f"Price is in entry zone ({low} - {high})",
        }

    if current_price > high:
        distance_pct = round2((current_price - high) / current_price * 100)
        direction = "above"
    else:
        distance_pct = round2((low - current_price) / current_price * 100)
        direction = "below"

    approaching = distance_pct <= ZONE_RULES["approaching_pct"]
    if approaching:
        status = "APPROACHING"
        message = f"Price is {distance_pct}% {direction} entry zone, approaching"
    elif direction == "above":
        status = "ABOVE_ZONE"
        message = f"Price is {distance_pct}% above entry zone - wait for pullback"
    else:
        status = "BELOW_ZONE"
        message = f"Price is {distance_pct}% below entry zone"

    return {
        "status": status,
        "inZone": False,
        "approaching": approaching,
        "distance_pct": distance_pct,
        "direction": direction,
        "message": message,
    }


def generate_entry_verdict(current_price: Any, zones: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """READY / WAIT / CAUTION / SKIP verdict from the zone status."""
    if not zones or zones.get("error"):
        return {"verdict": "SKIP", "reason": "Insufficient data for analysis"}

    zone_status = check_entry_zone_status(current_price, zones.get("entry"))
    if zone_status.get("error"):
        return {"verdict": "SKIP", "reason": zone_status["error"]}

    entry = zones["entry"]
    stop = zones.get("stopLoss") or {}
    target = zones.get("target") or {}
    plan = {
        "entry": entry["center"],
        "stopLoss": stop.get("level"),
        "target": target.get("level"),
        "riskReward": target.get("risk_reward"),
    }

    status = zone_status["status"]
    distance_pct = zone_status["distance_pct"]

    if status == "IN_ZONE":
        return {
            "verdict": "READY",
            "simple_verdict": f"READY at ₹{entry['center']}",
            "reason": "Price is in optimal entry zone",
            **plan,
        }
    if status == "APPROACHING":
        return {
            "verdict": "WAIT",
            "simple_verdict": f"WAIT for ₹{entry['center']}",
            "reason": f"Price approaching entry zone ({distance_pct}% {zone_status['direction']})",
            **plan,
        }
    if status == "ABOVE_ZONE":
        return {
            "verdict": "WAIT",
            "simple_verdict": f"WAIT for ₹{entry['center']}",
            "reason": f"Price is {distance_pct}% above entry zone - wait for pullback",
            **plan,
        }
    return {
        "verdict": "CAUTION",
        "simple_verdict": f"CAUTION - below ₹{entry['low']}",
        "reason": f"Price is {distance_pct}% below entry zone - structure may be weakening",
        **plan,
    }


def check_gap_condition(previous_close: Any, open_price: Any, entry_zone: Optional[Mapping[str, Any]],
                        stop_loss: Any = None, atr: Any = None) -> Dict[str, Any]:
    """
    Classify the opening gap against the entry zone and stop.

    Returns:
        {type, verdict, message, ...}; type is one of GAP_UP_PAST_ZONE,
        GAP_UP_SLIGHT, GAP_DOWN_PAST_SL, GAP_DOWN_INTO_ZONE, OPEN_IN_ZONE,
        NO_SIGNIFICANT_GAP, MINOR_GAP or INVALID_DATA
    """
    if (not is_num(previous_close) or previous_close == 0 or not is_num(open_price) or not entry_zone
            or not is_num(entry_zone.get("low")) or not is_num(entry_zone.get("high"))):
        return {"type": "INVALID_DATA", "verdict": "SKIP", "message": "Insufficient data for gap analysis"}

    zone_low, zone_high = entry_zone["low"], entry_zone["high"]
    gap_pct = round2((open_price - previous_close) / previous_close * 100)
    gap = {"gapPct": gap_pct, "gapAbs": round2(open_price - previous_close)}

    if open_price > zone_high:
        distance = round2((open_price - zone_high) / zone_high * 100)
        if distance > ZONE_RULES["gap_chase_pct"]:
            return {
                "type": "GAP_UP_PAST_ZONE", **gap,
                "distanceFromZonePct": distance,
                "verdict": "SKIP",
                "message": "Gapped too far above entry zone - wait for pullback or next setup",
                "suggestion": "Do not chase. If stock pulls back to entry zone later, reassess.",
            }
        return {
            "type": "GAP_UP_SLIGHT", **gap,
            "distanceFromZonePct": distance,
            "verdict": "REASSESS",
            "message": f"Gapped {distance}% above zone - watch first 15 mins for retest",
            "suggestion": "Wait for first 15-min candle. If it retests entry zone, consider entry.",
        }

    if is_num(stop_loss) and open_price < stop_loss:
        return {
            "type": "GAP_DOWN_PAST_SL", **gap,
            "verdict": "SKIP",
            "message": "Gapped below stop loss level - setup invalidated",
            "suggestion": "Structure broken. Remove from watchlist or wait for new setup.",
        }

    if open_price < zone_low and (not is_num(stop_loss) or open_price > stop_loss):
        return {
            "type": "GAP_DOWN_INTO_ZONE", **gap,
            "verdict": "OPPORTUNITY",
            "message": "Gapped down into entry zone - validate with first candle",
            "suggestion": "Wait for first 15-min candle to close green before entering.",
        }

    if zone_low <= open_price <= zone_high:
        return {
            "type": "OPEN_IN_ZONE", **gap,
            "verdict": "READY",
            "message": "Opened within entry zone - good entry opportunity",
            "suggestion": "Consider entry on first 15-min candle confirmation.",
        }

    if abs(gap_pct) < ZONE_RULES["gap_significant_pct"]:
        return {
            "type": "NO_SIGNIFICANT_GAP", **gap,
            "verdict": "PROCEED",
            "message": "Normal open - proceed with planned strategy",
            "suggestion": None,
        }

    direction = "Gap up" if gap_pct > 0 else "Gap down"
    return {
        "type": "MINOR_GAP", **gap,
        "verdict": "PROCEED",
        "message": f"{direction} of {abs(gap_pct)}% - monitor closely",
        "suggestion": "Watch price action in first 15 minutes before committing.",
    }
