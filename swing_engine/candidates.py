"""
Trade Candidate Generator
Builds the four deterministic trade candidates (C1-C4) from indicators and pivots.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from swing_engine.config import CANDIDATE_RULES, SCAN_TYPE_TO_CANDIDATES
from swing_engine.helpers import is_num, round2
from swing_engine.models import Trend
from swing_engine.risk import rr_buy, rr_sell

logger = logging.getLogger(__name__)


# ============================================================================
# SHARED BUILDERS
# ============================================================================

def matches_scan_type(candidate_id: str, scan_type: Optional[str]) -> bool:
    """True when the scan classification prefers this candidate (case-insensitive)."""
    if not scan_type or not isinstance(scan_type, str):
        return False
    preferred = SCAN_TYPE_TO_CANDIDATES.get(scan_type.strip().upper(), ())
    return candidate_id in preferred


def _trigger(left_ref: str, op: str, right_ref: str, right_value: float) -> Dict[str, Any]:
    return {
        "id": "T1",
        "timeframe": "1h",
        "condition": {
            "left": {"ref": left_ref},
            "op": op,
            "right": {"ref": right_ref, "value": right_value},
        },
    }


def _buy_invalidation(entry: float, atr: Any) -> Dict[str, Any]:
    """Two consecutive 1h closes below entry - 1.5 ATR cancel a pending BUY."""
    if is_num(atr) and atr:
        level = round2(entry - CANDIDATE_RULES["invalidation_atr"] * atr)
    else:
        level = round2(entry - entry * CANDIDATE_RULES["invalidation_fallback_pct"])
    return {
        "timeframe": "1h",
        "left": {"ref": "close"},
        "op": "<",
        "right": {"ref": "value", "value": level},
        "occurrences": {"count": 2, "consecutive": True},
        "action": "cancel_entry",
    }


def _sell_invalidation(stop: float) -> Dict[str, Any]:
    """One 1h close above the stop cancels a pending SELL."""
    return {
        "timeframe": "1h",
        "left": {"ref": "close"},
        "op": ">",
        "right": {"ref": "value", "value": stop},
        "occurrences": {"count": 1, "consecutive": False},
        "action": "cancel_entry",
    }


def _distance_pct(last: float, entry: float) -> float:
    return round2(abs(last - entry) / last * 100)


def _band(entry: float, atr: float) -> List[float]:
    spread = CANDIDATE_RULES["entry_spread_atr"] * atr
    return [round2(entry - spread), round2(entry + spread)]


def _candidate(cid: str, name: str, p: Mapping[str, Any], trend_align: float,
               skeleton: Dict[str, Any], **extra_score: float) -> Dict[str, Any]:
    matched = matches_scan_type(cid, p["scan_type"])
    score = {
        "rr": skeleton["riskReward"],
        "trend_align": trend_align,
        **extra_score,
        "distance_pct": _distance_pct(p["last"], skeleton["entry"]),
        "scan_type_bonus": CANDIDATE_RULES["scan_type_bonus"] if matched else 0,
    }
    return {
        "id": cid,
        "name": name,
        "archetype": skeleton["archetype"],
        "matches_scan_type": matched,
        "score": score,
        "skeleton": skeleton,
    }


# ============================================================================
# CANDIDATES
# ============================================================================

def _breakout(p: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """C1: buy a confirmed break above max(r1, 20-day high)."""
    pivots, atr = p["pivots"], p["atr"]
    r1 = pivots.get("r1")
    high_20d = p["high_20d"]

    levels = [v for v in (r1, high_20d) if is_num(v)]
    breakout_level = max(levels) if levels else 0
    if breakout_level <= 0:
        return None

    entry = round2(breakout_level + CANDIDATE_RULES["breakout_buffer_atr"] * atr)

    supports = [v for v in (pivots.get("pivot"), p["ema20"]) if is_num(v)]
    stop = round2(max(supports) if supports else 0)

    r2 = pivots.get("r2")
    target = round2(r2 if is_num(r2) and r2 > entry
                    else entry + CANDIDATE_RULES["breakout_target_atr"] * atr)

    rr = rr_buy(entry, target, stop)
    if rr <= 0:
        return None

    bullish = p["trend"] == Trend.BULLISH.value
    skeleton = {
        "type": "BUY",
        "archetype": "breakout",
        "alignment": "with_trend" if bullish else "neutral",
        "entryType": "stop",
        "entry": entry,
        "entryRange": None,
        "target": target,
        "stopLoss": stop,
        "riskReward": rr,
        "triggers": [_trigger("close", "crosses_above", "entry", entry)],
        "invalidations_pre_entry": [_buy_invalidation(entry, atr)],
    }
    return _candidate("C1", "breakout", p, 1 if bullish else 0.3, skeleton)


def _pullback(p: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """C2: buy a pullback into max(EMA20, pivot)."""
    pivots, atr = p["pivots"], p["atr"]
    bases = [v for v in (p["ema20"], pivots.get("pivot")) if is_num(v)]
    if not bases:
        return None

    entry = round2(max(bases))
    if entry <= 0:
        return None

    s1 = pivots.get("s1")
    stop = round2(s1 if is_num(s1) and s1 < entry
                  else entry - CANDIDATE_RULES["pullback_stop_atr"] * atr)

    high_20d = p["high_20d"]
    target = round2(high_20d if is_num(high_20d) and high_20d > entry
                    else entry + CANDIDATE_RULES["pullback_target_atr"] * atr)

    rr = rr_buy(entry, target, stop)
    if rr <= 0:
        return None

    bullish = p["trend"] == Trend.BULLISH.value
    entry_range = _band(entry, atr)
    skeleton = {
        "type": "BUY",
        "archetype": "pullback",
        "alignment": "with_trend" if bullish else "neutral",
        "entryType": "limit",
        "entry": entry,
        "entryRange": entry_range,
        "target": target,
        "stopLoss": stop,
        "riskReward": rr,
        "triggers": [_trigger("price", ">=", "value", entry_range[0])],
        "invalidations_pre_entry": [_buy_invalidation(entry, atr)],
    }
    return _candidate("C2", "pullback", p, 1 if bullish else 0.4, skeleton)


def _mean_reversion(p: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """C3: buy a bounce off s1 back to the pivot."""
    pivots, atr = p["pivots"], p["atr"]
    s1 = pivots.get("s1")
    if not is_num(s1):
        return None

    entry = round2(s1)
    s2 = pivots.get("s2")
    stop = round2(s2 if is_num(s2) else entry - CANDIDATE_RULES["reversion_atr"] * atr)
    pivot = pivots.get("pivot")
    target = round2(pivot if is_num(pivot) else entry + CANDIDATE_RULES["reversion_atr"] * atr)

    rr = rr_buy(entry, target, stop)
    if rr <= 0:
        return None

    rsi = p["rsi"]
    if is_num(rsi):
        rsi_fit = 1 if rsi < CANDIDATE_RULES["mean_reversion_rsi"] else 0.3
    else:
        rsi_fit = 0.4

    skeleton = {
        "type": "BUY",
        "archetype": "mean-reversion",
        "alignment": "neutral",
        "entryType": "limit",
        "entry": entry,
        "entryRange": _band(entry, atr),
        "target": target,
        "stopLoss": stop,
        "riskReward": rr,
        "triggers": [_trigger("price", "<=", "entry", entry)],
        "invalidations_pre_entry": [_buy_invalidation(entry, atr)],
    }
    trend_align = 1 if p["trend"] == Trend.NEUTRAL.value else 0.5
    return _candidate("C3", "mean_reversion", p, trend_align, skeleton, rsi_fit=rsi_fit)


def _range_fade(p: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """C4: short r1 back down to the pivot."""
    pivots, atr = p["pivots"], p["atr"]
    r1 = pivots.get("r1")
    if not is_num(r1):
        return None

    entry = round2(r1)
    r2 = pivots.get("r2")
    stop = round2(r2 if is_num(r2) else entry + CANDIDATE_RULES["fade_atr"] * atr)
    pivot = pivots.get("pivot")
    target = round2(pivot if is_num(pivot) else entry - CANDIDATE_RULES["fade_atr"] * atr)

    rr = rr_sell(entry, target, stop)
    if rr <= 0:
        return None

    skeleton = {
        "type": "SELL",
        "archetype": "range-fade",
        "alignment": "with_trend" if p["trend"] == Trend.BEARISH.value else "counter_trend",
        "entryType": "stop-limit",
        "entry": entry,
        "entryRange": None,
        "target": target,
        "stopLoss": stop,
        "riskReward": rr,
        "triggers": [_trigger("close", "crosses_below", "entry", entry)],
        "invalidations_pre_entry": [_sell_invalidation(stop)],
    }
    trend_align = 1 if p["trend"] == Trend.NEUTRAL.value else 0.4
    return _candidate("C4", "range_fade", p, trend_align, skeleton)


# Generation order is also the ranking tie-break order
GENERATORS = (
    (_breakout, "C1 (breakout) not viable - invalid geometry"),
    (_pullback, "C2 (pullback) not viable - missing EMA20/Pivot"),
    (_mean_reversion, "C3 (mean-reversion) not viable - missing S1"),
    (_range_fade, "C4 (range-fade) not viable - missing R1"),
)


# ============================================================================
# PUBLIC API
# ============================================================================

def generate(indicators: Mapping[str, Any], levels: Optional[Mapping[str, Any]],
             scan_type: Optional[str] = None, trend: str = Trend.NEUTRAL.value) -> Dict[str, Any]:
    """
    Generate every viable trade candidate.

    Args:
        indicators: Indicator set (last, atr, ema20, high_20d, rsi)
        levels: Pivot levels
        scan_type: Optional scan classification for the match bonus
        trend: BULLISH / BEARISH / NEUTRAL

    Returns:
        {candidates, insufficientData, notes}
    """
    last = indicators.get("last")
    atr = indicators.get("atr")

    if not is_num(last) or last <= 0 or not is_num(atr):
        return {
            "candidates": [],
            "insufficientData": True,
            "notes": ["Missing required data: current price or ATR"],
        }

    pivots = levels or {}
    if not is_num(pivots.get("pivot")) or not pivots.get("pivot"):
        return {
            "candidates": [],
            "insufficientData": True,
            "notes": ["Missing pivot points - need previous session data"],
        }

    if isinstance(trend, Trend):
        trend = trend.value
    if hasattr(scan_type, "value"):
        scan_type = scan_type.value

    params = {
        "last": last,
        "atr": atr,
        "ema20": indicators.get("ema20"),
        "high_20d": indicators.get("high_20d"),
        "rsi": indicators.get("rsi"),
        "pivots": pivots,
        "trend": trend,
        "scan_type": scan_type,
    }

    notes: List[str] = []
    candidates: List[Dict[str, Any]] = []
    for build, not_viable in GENERATORS:
        candidate = build(params)
        if candidate is None:
            notes.append(not_viable)
            continue
        candidate["ok"] = candidate["skeleton"]["riskReward"] >= CANDIDATE_RULES["good_rr"]
        candidates.append(candidate)

    if not candidates:
        notes.append("No candidate with positive risk:reward")

    logger.debug(f"Generated {len(candidates)} candidate(s): {[c['id'] for c in candidates]}")

    return {
        "candidates": candidates,
        "insufficientData": not candidates,
        "notes": notes,
    }


def shrink_for_prompt(candidate: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Compact candidate view: id, name, score and skeleton only."""
    if not candidate:
        return None
    return {
        "id": candidate["id"],
        "name": candidate["name"],
        "score": candidate["score"],
        "skeleton": candidate["skeleton"],
    }
