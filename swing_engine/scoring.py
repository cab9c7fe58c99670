"""
Scoring Engine
Setup score (0-100) with elimination gates, candidate ranking and confidence.

Rubric band tables live in config.SCORING as data. This module only looks up
points; render_breakdown turns a breakdown into display lines.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from swing_engine.config import CONFIDENCE_RULES, SCORING, TREND_STRUCTURE_POINTS
from swing_engine.helpers import clamp, first_num, is_num, round2
from swing_engine.models import Rubric, ScoringConfig, ScoringStrategy

logger = logging.getLogger(__name__)


# ============================================================================
# GRADES
# ============================================================================

def get_grade(score: float, config: ScoringConfig = SCORING) -> str:
    """Letter grade for a numeric score."""
    for grade, minimum in config.grade_thresholds:
        if score >= minimum:
            return grade
    return config.floor_grade


# ============================================================================
# SCORE INPUTS
# ============================================================================

def _levels_value(levels: Optional[Mapping[str, Any]], *keys: str) -> Optional[float]:
    if not levels:
        return None
    return first_num(*(levels.get(k) for k in keys))


def _upside_pct(levels: Optional[Mapping[str, Any]], price: float) -> Optional[float]:
    """Reward % from the trade levels: explicit, else target vs entry, else target vs price."""
    explicit = _levels_value(levels, "rewardPercent", "reward_pct")
    if explicit is not None:
        return explicit

    target = _levels_value(levels, "target")
    if target is None:
        return None

    entry = _levels_value(levels, "entry")
    if entry is not None and entry > 0:
        return abs(target - entry) / entry * 100
    return (target - price) / price * 100


def _trend_structure(price: float, ema20: Any, ema50: Any, sma200: Any) -> Optional[int]:
    """Sum of TREND_STRUCTURE_POINTS for each moving-average condition that holds."""
    if not (is_num(ema20) and is_num(ema50)):
        return None
    conditions = {"ema20_above_ema50": ema20 > ema50}
    if is_num(sma200):
        conditions["ema50_above_sma200"] = ema50 > sma200
        conditions["price_above_sma200"] = price > sma200
    return sum(TREND_STRUCTURE_POINTS[name] for name, holds in conditions.items() if holds)


def score_inputs(stock: Mapping[str, Any], levels: Optional[Mapping[str, Any]],
                 benchmark_return_1m: Any, price: float) -> Dict[str, Optional[float]]:
    """
    Every value a rubric factor can read, keyed by factor input name.

    Missing values are None so the factor scores its no-data outcome.
    """
    volume_ratio = first_num(stock.get("volume_vs_avg"))
    if volume_ratio is None:
        volume = stock.get("volume")
        avg = stock.get("volume_20avg")
        if is_num(volume) and is_num(avg) and avg > 0:
            volume_ratio = volume / avg

    ema20 = first_num(stock.get("ema20"), stock.get("dma20"))
    ema20_distance = abs(price - ema20) / ema20 * 100 if ema20 else None

    atr_pct = first_num(stock.get("atr_pct"))
    atr = stock.get("atr")
    if atr_pct is None and is_num(atr):
        atr_pct = atr / price * 100

    return_1m = stock.get("return_1m")
    relative_strength = None
    if is_num(return_1m) and is_num(benchmark_return_1m):
        relative_strength = return_1m - benchmark_return_1m

    return {
        "volume_vs_avg": volume_ratio,
        "risk_reward": _levels_value(levels, "riskReward", "risk_reward"),
        "rsi": first_num(stock.get("rsi"), stock.get("rsi14")),
        "weekly_change_pct": first_num(stock.get("weekly_change_pct")),
        "upside_pct": _upside_pct(levels, price),
        "relative_strength": relative_strength,
        "price": price,
        "ema20_distance_abs_pct": ema20_distance,
        "trend_structure": _trend_structure(price, ema20, stock.get("ema50"), stock.get("sma200")),
        "atr_pct": atr_pct,
    }


# ============================================================================
# SETUP SCORE
# ============================================================================

def _elimination(stock: Mapping[str, Any], strategy: ScoringStrategy,
                 config: ScoringConfig) -> Optional[Dict[str, Any]]:
    """First elimination gate that fires, or None."""
    rsi = first_num(stock.get("rsi"), stock.get("rsi14"))
    weekly_rsi = first_num(stock.get("weekly_rsi"), stock.get("rsi_weekly"), stock.get("rsi14_1W"))

    if rsi is not None and rsi > config.daily_rsi_max:
        return {"reason": f"RSI {round2(rsi)} > {config.daily_rsi_max:g} - too extended", "value": rsi}
    if weekly_rsi is not None and weekly_rsi > config.weekly_rsi_max:
        return {"reason": f"Weekly RSI {round2(weekly_rsi)} > {config.weekly_rsi_max:g} - weekly overbought",
                "value": weekly_rsi}
    if strategy == ScoringStrategy.PULLBACK and rsi is not None and rsi < config.pullback_rsi_min:
        return {"reason": f"RSI {round2(rsi)} < {config.pullback_rsi_min:g} - trend may be broken", "value": rsi}
    return None


def _score_factors(rubric: Rubric, inputs: Mapping[str, Optional[float]]) -> List[Dict[str, Any]]:
    breakdown = []
    for factor in rubric.factors:
        value = inputs.get(factor.input)
        if value is None:
            breakdown.append({
                "factor": factor.name,
                "points": 0,
                "max": factor.max,
                "reason": factor.missing_reason,
                "value": None,
            })
            continue

        band = factor.match(value)
        breakdown.append({
            "factor": factor.name,
            "points": band.points,
            "max": factor.max,
            "reason": f"{band.label} ({factor.value_format.format(value)})",
            "value": round2(value),
        })
    return breakdown


def calculate_setup_score(
    stock: Mapping[str, Any],
    levels: Optional[Mapping[str, Any]] = None,
    benchmark_return_1m: Any = 0.0,
    debug: bool = False,
    scan_type: Any = None,
    config: ScoringConfig = SCORING,
) -> Dict[str, Any]:
    """
    Score swing-trade quality on a 0-100 scale.

    Elimination gates run first; an eliminated setup scores 0 with a single
    elimination entry and no factor is scored.

    Args:
        stock: Indicator values (last/price, rsi, weekly_rsi, volume_vs_avg, ...)
        levels: Trade levels (entry, target, riskReward, rewardPercent)
        benchmark_return_1m: Benchmark 1-month return for relative strength
        debug: Log the rendered breakdown
        scan_type: "pullback" selects the pullback rubric, anything else momentum
        config: Scoring configuration override

    Returns:
        {score, grade, breakdown, eliminated, eliminationReason, scoring_strategy}
    """
    strategy = ScoringStrategy.from_scan_type(scan_type)
    price = first_num(stock.get("last"), stock.get("price"))

    if price is None or price <= 0:
        return {
            "score": 0,
            "grade": config.floor_grade,
            "breakdown": [{"factor": "error", "points": 0, "max": 0,
                           "reason": "Missing price data", "value": None}],
            "eliminated": False,
            "eliminationReason": None,
            "scoring_strategy": strategy.value,
        }

    gate = _elimination(stock, strategy, config)
    if gate:
        logger.debug(f"Setup eliminated: {gate['reason']}")
        return {
            "score": 0,
            "grade": config.eliminated_grade,
            "breakdown": [{"factor": "elimination", "points": 0, "max": 0,
                           "reason": gate["reason"], "value": round2(gate["value"])}],
            "eliminated": True,
            "eliminationReason": gate["reason"],
            "scoring_strategy": strategy.value,
        }

    inputs = score_inputs(stock, levels, benchmark_return_1m, price)
    breakdown = _score_factors(config.rubric_for(strategy), inputs)
    score = sum(entry["points"] for entry in breakdown)

    if debug:
        for line in render_breakdown(breakdown):
            logger.debug(line)

    return {
        "score": score,
        "grade": get_grade(score, config),
        "breakdown": breakdown,
        "eliminated": False,
        "eliminationReason": None,
        "scoring_strategy": strategy.value,
    }


def render_breakdown(breakdown: List[Mapping[str, Any]]) -> List[str]:
    """Human-readable line per breakdown entry."""
    lines = []
    for entry in breakdown:
        if entry["factor"] in ("elimination", "error"):
            lines.append(f"⛔ {entry['reason']}")
            continue

        maximum = entry.get("max") or 0
        ratio = entry["points"] / maximum if maximum else 0
        if ratio >= 0.7:
            icon = "✅"
        elif ratio >= 0.4:
            icon = "⚠️"
        else:
            icon = "❌"
        lines.append(f"{icon} {entry['factor']}: {entry['points']}/{maximum} pts - {entry['reason']}")
    return lines


def rank_stocks(stocks: List[Mapping[str, Any]], benchmark_return_1m: Any = 0.0,
                scan_type: Any = None, config: ScoringConfig = SCORING) -> List[Dict[str, Any]]:
    """Score each stock and sort by score, highest first (stable)."""
    if not isinstance(stocks, (list, tuple)):
        return []

    scored = []
    for stock in stocks:
        result = calculate_setup_score(
            stock,
            levels=stock.get("levels"),
            benchmark_return_1m=benchmark_return_1m,
            scan_type=scan_type,
            config=config,
        )
        scored.append({
            **stock,
            "setup_score": result["score"],
            "grade": result["grade"],
            "score_breakdown": result["breakdown"],
            "eliminated": result["eliminated"],
        })

    return sorted(scored, key=lambda s: -s["setup_score"])


# ============================================================================
# CANDIDATE SELECTION
# ============================================================================

def pick_best_candidate(stage2: Optional[Mapping[str, Any]], config: ScoringConfig = SCORING) -> Dict[str, Any]:
    """
    Rank trade candidates and pick the best.

    Positive R:R only; candidates at or above the good-R:R mark are
    preferred when any exist. Ties on totalScore keep generation order.

    Returns:
        {best, ranked, reason}
    """
    candidates = (stage2 or {}).get("candidates") or []
    if not stage2 or stage2.get("insufficientData") or not candidates:
        return {"best": None, "ranked": [], "reason": "No valid candidates available"}

    valid = [(i, c) for i, c in enumerate(candidates)
             if is_num((c.get("skeleton") or {}).get("riskReward")) and c["skeleton"]["riskReward"] > 0]
    if not valid:
        return {"best": None, "ranked": [], "reason": "No candidates with positive R:R"}

    good = [(i, c) for i, c in valid if c["skeleton"]["riskReward"] >= config.good_rr]
    pool = good or valid

    scored = []
    for index, candidate in pool:
        score = candidate.get("score") or {}
        rr = first_num(score.get("rr"), candidate["skeleton"]["riskReward"])
        trend_align = first_num(score.get("trend_align"), 0.5)
        distance = first_num(score.get("distance_pct"), 0)
        bonus = first_num(score.get("scan_type_bonus"), 0)

        total = round2(
            rr * config.rr_weight
            + trend_align * config.trend_weight
            - min(distance, config.distance_cap) * config.distance_weight
            + bonus
        )
        scored.append((index, {**candidate, "totalScore": total}))

    scored.sort(key=lambda item: (-item[1]["totalScore"], item[0]))
    ranked = [c for _, c in scored]
    best = ranked[0]

    return {
        "best": best,
        "ranked": ranked,
        "reason": f"Selected {best['name']} (score: {best['totalScore']})",
    }


# ============================================================================
# CONFIDENCE
# ============================================================================

def calculate_confidence(candidate: Optional[Mapping[str, Any]], indicators: Optional[Mapping[str, Any]] = None,
                         sentiment: str = "NEUTRAL", sentiment_confidence: float = 0.5,
                         rules: Mapping[str, Any] = CONFIDENCE_RULES) -> Dict[str, Any]:
    """
    Confidence in a selected candidate.

    Base is min(totalScore, 1), or the default base when the candidate has
    no ranking score. Ordered adjustments are summed and the result clamped.

    Returns:
        {confidence, confidencePercent, baseConfidence, totalAdjustment, adjustments}
    """
    if not candidate:
        return {"confidence": rules["no_candidate"], "adjustments": [], "breakdown": "No candidate"}

    indicators = indicators or {}
    skeleton = candidate.get("skeleton") or {}
    score = candidate.get("score") or {}

    total_score = candidate.get("totalScore")
    base = min(total_score, 1) if is_num(total_score) and total_score != 0 else rules["default_base"]

    is_buy = skeleton.get("type") == "BUY"
    rr = skeleton.get("riskReward")
    has_rr = is_num(rr)
    atr_pct = indicators.get("atr_pct")
    volume_ratio = indicators.get("volume_vs_avg")
    distance = first_num(score.get("distance_pct"), 0)
    trend_align = first_num(score.get("trend_align"), 0.5)

    conflict = (is_buy and sentiment == "BEARISH") or (not is_buy and sentiment == "BULLISH")
    aligned = (is_buy and sentiment == "BULLISH") or (not is_buy and sentiment == "BEARISH")

    checks = [
        ("SENT_CONFLICT", "sentiment_conflict", conflict),
        ("HIGH_VOL_LOW_RR", "high_vol_low_rr",
         is_num(atr_pct) and atr_pct > rules["high_vol_atr_pct"] and has_rr and rr < rules["low_rr"]),
        ("LOW_SENT_CONF", "low_sentiment_confidence",
         is_num(sentiment_confidence) and sentiment_confidence < rules["min_sentiment_confidence"]),
        ("LOW_VOLUME", "low_volume", is_num(volume_ratio) and volume_ratio < rules["low_volume_ratio"]),
        ("POOR_RR", "poor_rr", has_rr and rr < rules["poor_rr_below"]),
        ("FAR_ENTRY", "far_entry", distance > rules["far_entry_pct"]),
        ("SENT_ALIGNED", "sentiment_aligned",
         aligned and is_num(sentiment_confidence)
         and sentiment_confidence >= rules["aligned_sentiment_confidence"]),
        ("STRONG_RR", "strong_rr", has_rr and rr >= rules["strong_rr_from"]),
        ("HIGH_VOLUME", "high_volume", is_num(volume_ratio) and volume_ratio >= rules["high_volume_ratio"]),
        ("CLOSE_ENTRY", "close_entry", distance < rules["close_entry_pct"]),
        ("TREND_ALIGNED", "trend_aligned", trend_align >= rules["trend_aligned_from"]),
    ]
    adjustments = [
        {"factor": factor, "adjustment": rules[key]}
        for factor, key, applies in checks if applies
    ]

    total_adjustment = sum(a["adjustment"] for a in adjustments)
    confidence = clamp(base + total_adjustment, rules["min"], rules["max"])

    return {
        "confidence": round2(confidence),
        "confidencePercent": round2(confidence * 100),
        "baseConfidence": round2(base),
        "totalAdjustment": round2(total_adjustment),
        "adjustments": adjustments,
    }
