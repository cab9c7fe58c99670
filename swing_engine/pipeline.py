"""
Engine Facade
Entry points callers use: full analysis, card entry zone, position management,
stock enrichment and the stage-2 / market payload builders.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from swing_engine import candidates as candidates_mod
from swing_engine import indicators as indicators_mod
from swing_engine import zones as zones_mod
from swing_engine.alerts import check_exit_conditions, check_position_status
from swing_engine.graph import run_analysis
from swing_engine.helpers import first_num, is_num
from swing_engine.levels import calc_classic_pivots
from swing_engine.models import Position
from swing_engine.risk import (
    calculate_risk_reduction, calculate_trailing_stop, recommend_trailing_strategy,
)
from swing_engine.scoring import calculate_setup_score

logger = logging.getLogger(__name__)


# ============================================================================
# FULL ANALYSIS
# ============================================================================

def analyze_stock(candles: Any, scan_type: Optional[str] = None, benchmark_return_1m: float = 0.0,
                  benchmark_candles: Any = None, weekly_rsi: Optional[float] = None) -> Dict[str, Any]:
    """
    Complete analysis: candles -> indicators -> levels -> zones -> candidates -> scoring.

    Args:
        candles: Daily candles in any accepted form
        scan_type: Scan classification (candidate bonus and rubric choice)
        benchmark_return_1m: Benchmark 1-month return for relative strength
        benchmark_candles: Optional benchmark candles for the regime check
        weekly_rsi: Optional weekly RSI for the elimination gate

    Returns:
        Analysis dict, or {"error": ..., "insufficientData": True}
    """
    state = run_analysis(
        candles,
        scan_type=scan_type,
        benchmark_return_1m=benchmark_return_1m,
        benchmark_candles=benchmark_candles,
        weekly_rsi=weekly_rsi,
    )

    ind = state["indicators"]
    if ind.get("error"):
        return {"error": ind["error"], "insufficientData": True}

    cand = state["candidates"]
    selection = state["selection"]
    score = state["setup_score"]
    health = state["data_health"]

    result = {
        "indicators": ind,
        "levels": state["levels"],
        "zones": state["zones"],
        "market": state["market"],
        "candidates": cand,
        "selected": selection["best"],
        "selection_trace": selection["ranked"],
        "selection_reason": selection["reason"],
        "confidence": state["confidence"],
        "setup_score": score["score"],
        "grade": score["grade"],
        "score_breakdown": score["breakdown"],
        "eliminated": score["eliminated"],
        "eliminationReason": score["eliminationReason"],
        "scoring_strategy": score["scoring_strategy"],
        "data_health": health,
        "insufficientData": not health["ok"] or cand["insufficientData"],
    }

    if benchmark_candles is not None:
        result["regime"] = state.get("regime")
        result["regime_warning"] = state.get("regime_warning")

    if state.get("errors"):
        result["errors"] = state["errors"]

    logger.info(
        f"Analysis complete: score {score['score']} ({score['grade']}), "
        f"{len(cand['candidates'])} candidate(s)"
    )
    return result


def get_entry_zone(stock_data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Entry zone for card display.

    Uses the same calculate_entry_zone as the full analysis, deriving the
    pivot from the previous session when it is not supplied.
    """
    pivot = stock_data.get("pivot")
    if not is_num(pivot):
        pivots = calc_classic_pivots(
            stock_data.get("prev_high"),
            stock_data.get("prev_low"),
            stock_data.get("prev_close"),
        )
        pivot = pivots["pivot"] if pivots else None

    return zones_mod.calculate_entry_zone(
        ema20=stock_data.get("ema20"),
        pivot=pivot,
        atr=stock_data.get("atr"),
        current_price=first_num(stock_data.get("last"), stock_data.get("price")),
    )


# ============================================================================
# POSITION MANAGEMENT
# ============================================================================

def manage_position(position: Any, current_data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Trailing stop, exit alerts and P&L status for an open position.

    Args:
        position: actual_entry, current_sl, current_target, qty, days_in_trade
        current_data: current_price, atr, swing_low, ema20, optional trend

    Returns:
        {trail, exit_alerts, status, risk_reduction, strategy, needs_attention}
        or {"error": ...} when the position fails validation
    """
    try:
        pos = position if isinstance(position, Position) else Position.model_validate(position)
    except ValidationError as e:
        logger.warning(f"Rejected position payload: {e.error_count()} validation error(s)")
        return {"error": f"Invalid position: {e.errors()[0]['msg']}"}

    current_price = current_data.get("current_price")
    atr = current_data.get("atr")

    trail = calculate_trailing_stop(
        pos,
        current_price,
        atr=atr,
        swing_low=current_data.get("swing_low"),
        ema20=current_data.get("ema20"),
    )
    exit_alerts = check_exit_conditions(pos, current_price, atr=atr)
    status = check_position_status(current_price, pos.actual_entry, pos.qty or 1)

    risk_reduction = None
    if trail["should_trail"] and is_num(pos.current_sl):
        risk_reduction = calculate_risk_reduction(current_price, pos.current_sl, trail["new_sl"], pos.qty or 1)

    volatility = indicators_mod.determine_volatility(
        {"atr_pct": atr / current_price * 100} if is_num(atr) and is_num(current_price) and current_price else {}
    )
    strategy = recommend_trailing_strategy(
        volatility=volatility,
        trend=current_data.get("trend"),
        days_in_trade=pos.days_in_trade,
        profit_pct=status.get("pnl_pct", 0),
    )

    return {
        "trail": trail,
        "exit_alerts": exit_alerts,
        "status": status,
        "risk_reduction": risk_reduction,
        "strategy": strategy,
        "needs_attention": bool(status.get("needs_attention"))
        or any(a["severity"] == "critical" for a in exit_alerts),
    }


# ============================================================================
# ENRICHMENT AND PAYLOADS
# ============================================================================

ENRICHED_FIELDS = (
    "ema20", "ema50", "sma200", "dma20", "dma50", "rsi", "atr", "atr_pct",
    "volume_vs_avg", "high_20d", "low_20d", "return_1m", "weekly_change_pct",
    "distance_from_20dma_pct",
)


def enrich_stock(stock: Mapping[str, Any], candles: Any, benchmark_return_1m: float = 0.0,
                 scan_type: Optional[str] = None) -> Dict[str, Any]:
    """Stock record plus computed indicators, setup score and card entry zone."""
    ind = indicators_mod.calculate(candles)
    if ind.get("error"):
        return {**stock, "error": ind["error"], "insufficientData": True}

    merged = {**stock, **ind}
    score = calculate_setup_score(
        merged,
        levels=stock.get("levels"),
        benchmark_return_1m=benchmark_return_1m,
        scan_type=scan_type,
    )

    enriched = dict(stock)
    for field in ENRICHED_FIELDS:
        enriched[field] = ind.get(field)
    enriched.update({
        "setup_score": score["score"],
        "grade": score["grade"],
        "score_breakdown": score["breakdown"],
        "eliminated": score["eliminated"],
        "entry_zone": get_entry_zone(merged),
    })
    return enriched


def generate_stage2(indicators: Mapping[str, Any], levels: Optional[Mapping[str, Any]],
                    scan_type: Optional[str] = None, trend: Optional[str] = None) -> Dict[str, Any]:
    """Trade candidates, deriving the trend when the caller has none."""
    trend = trend or indicators_mod.determine_trend(indicators)
    return candidates_mod.generate(indicators, levels, scan_type=scan_type, trend=trend)


def build_market_payload(indicators: Mapping[str, Any], levels: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Structured market context for one stock."""
    trend = indicators_mod.determine_trend(indicators)
    volatility = indicators_mod.determine_volatility(indicators)
    volume_class = indicators_mod.determine_volume_classification(indicators)

    return {
        "priceContext": {
            "last": indicators.get("last"),
            "open": indicators.get("open"),
            "high": indicators.get("high"),
            "low": indicators.get("low"),
            "close": indicators.get("close"),
        },
        "trendMomentum": {
            "ema20_1D": indicators.get("ema20"),
            "ema50_1D": indicators.get("ema50"),
            "sma200_1D": indicators.get("sma200"),
            "atr14_1D": indicators.get("atr"),
            "rsi14_1D": indicators.get("rsi"),
            "trendBias": trend,
        },
        "volumeContext": {
            "classification": volume_class,
            "volume_vs_avg": indicators.get("volume_vs_avg"),
        },
        "swingContext": {
            "prevSession": {
                "high": indicators.get("prev_high"),
                "low": indicators.get("prev_low"),
                "close": indicators.get("prev_close"),
            },
            "pivots": levels,
            "swingLevels": {
                "recent20": {
                    "high": indicators.get("high_20d"),
                    "low": indicators.get("low_20d"),
                },
            },
        },
        "market_summary": {
            "trend": trend,
            "volatility": volatility,
            "volume": volume_class,
        },
    }
