"""
Risk Management Engine
Risk:reward, trailing stops, position sizing and trade risk classification.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from swing_engine.config import RISK_CONFIG
from swing_engine.helpers import is_num, round2

logger = logging.getLogger(__name__)


# ============================================================================
# RISK:REWARD
# ============================================================================

def rr_buy(entry: Any, target: Any, stop_loss: Any) -> float:
    """(target - entry) / (entry - stop); 0 when the risk leg is not positive."""
    if not (is_num(entry) and is_num(target) and is_num(stop_loss)):
        return 0
    risk = entry - stop_loss
    if risk <= 0:
        return 0
    return round2((target - entry) / risk)


def rr_sell(entry: Any, target: Any, stop_loss: Any) -> float:
    """(entry - target) / (stop - entry); 0 when the risk leg is not positive."""
    if not (is_num(entry) and is_num(target) and is_num(stop_loss)):
        return 0
    risk = stop_loss - entry
    if risk <= 0:
        return 0
    return round2((entry - target) / risk)


# ============================================================================
# TRAILING STOP
# ============================================================================

def _position_fields(position: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(position, BaseModel):
        return position.model_dump()
    return dict(position or {})


def _protection(current_price: float, stop: float) -> float:
    return round2((current_price - stop) / current_price * 100)


def calculate_trailing_stop(
    position: Union[BaseModel, Mapping[str, Any]],
    current_price: Any,
    atr: Any = None,
    swing_low: Any = None,
    ema20: Any = None,
) -> Dict[str, Any]:
    """
    Recommend a new stop for an open long position. Stops only move up.

    Six methods propose a stop; only proposals strictly above the current
    stop and strictly below price qualify. The highest qualifying stop wins
    (ties keep method order) unless it reaches the current target.

    Args:
        position: actual_entry, current_sl, current_target
        current_price: Latest price
        atr: Daily ATR
        swing_low: Recent swing low
        ema20: Daily EMA20

    Returns:
        {should_trail, new_sl, method, reason, protection_pct,
        current_profit_pct, all_candidates} when trailing, otherwise
        {should_trail: False, reason, ...}
    """
    fields = _position_fields(position)
    entry = fields.get("actual_entry")
    current_sl = fields.get("current_sl")
    current_target = fields.get("current_target")

    if not is_num(current_price) or current_price <= 0:
        return {"should_trail": False, "reason": "Invalid current price"}
    if not is_num(entry) or entry <= 0:
        return {"should_trail": False, "reason": "Invalid entry price"}

    if current_price <= entry:
        return {
            "should_trail": False,
            "reason": "Position not in profit yet",
            "current_profit_pct": round2((current_price - entry) / entry * 100),
        }

    # No stop yet means any protective level is an improvement
    floor = current_sl if is_num(current_sl) else -math.inf

    def qualifies(stop: float) -> bool:
        return floor < stop < current_price

    profit_pct = (current_price - entry) / entry * 100
    candidates: List[Dict[str, Any]] = []

    # ATR trail below price
    if is_num(atr) and atr > 0:
        atr_stop = round2(current_price - RISK_CONFIG["trail_atr_multiplier"] * atr)
        if qualifies(atr_stop):
            candidates.append({
                "method": "ATR_TRAIL",
                "new_sl": atr_stop,
                "reason": f"{RISK_CONFIG['trail_atr_multiplier']}x ATR (₹{round2(atr)}) below current price ₹{current_price}",
                "protection_pct": _protection(current_price, atr_stop),
            })

    # Swing low less a buffer
    if is_num(swing_low) and floor < swing_low < current_price:
        buffer = (atr * RISK_CONFIG["swing_buffer_atr"] if is_num(atr) and atr
                  else RISK_CONFIG["swing_buffer_fallback"])
        swing_stop = round2(swing_low - buffer)
        if qualifies(swing_stop):
            candidates.append({
                "method": "SWING_LOW",
                "new_sl": swing_stop,
                "reason": f"Recent swing low ₹{swing_low} minus buffer",
                "protection_pct": _protection(current_price, swing_stop),
            })

    # EMA20 less a buffer
    if is_num(ema20) and floor < ema20 < current_price:
        buffer = (atr * RISK_CONFIG["ema_buffer_atr"] if is_num(atr) and atr
                  else RISK_CONFIG["ema_buffer_fallback"])
        ema_stop = round2(ema20 - buffer)
        if qualifies(ema_stop):
            candidates.append({
                "method": "EMA_TRAIL",
                "new_sl": ema_stop,
                "reason": f"Below 20-day average ₹{round2(ema20)} minus buffer",
                "protection_pct": _protection(current_price, ema_stop),
            })

    # Breakeven
    if profit_pct >= RISK_CONFIG["breakeven_after_pct"] and qualifies(entry):
        candidates.append({
            "method": "BREAKEVEN",
            "new_sl": round2(entry),
            "reason": f"Move to breakeven after {round2(profit_pct)}% gain",
            "protection_pct": _protection(current_price, entry),
        })

    # Lock 1% of entry
    if profit_pct >= RISK_CONFIG["lock_1pct_after_pct"]:
        lock_1pct = round2(entry * (1 + RISK_CONFIG["lock_1pct"]))
        if qualifies(lock_1pct):
            candidates.append({
                "method": "LOCK_PROFIT",
                "new_sl": lock_1pct,
                "reason": f"Lock 1% profit after {round2(profit_pct)}% gain",
                "protection_pct": _protection(current_price, lock_1pct),
            })

    # Lock half of the open gain
    if profit_pct > RISK_CONFIG["lock_half_after_pct"]:
        lock_half = round2(entry + (current_price - entry) * RISK_CONFIG["lock_half_fraction"])
        if qualifies(lock_half):
            candidates.append({
                "method": "LOCK_PROFIT",
                "new_sl": lock_half,
                "reason": f"Lock 50% of {round2(profit_pct)}% gain",
                "protection_pct": _protection(current_price, lock_half),
            })

    if not candidates:
        return {
            "should_trail": False,
            "reason": "No trailing level found above current SL",
            "current_sl": current_sl,
            "current_profit_pct": round2(profit_pct),
        }

    # Highest stop first; sorted() is stable so ties keep method order
    ranked = sorted(candidates, key=lambda c: -c["new_sl"])
    best = ranked[0]

    if is_num(current_target) and best["new_sl"] >= current_target:
        logger.debug(f"Trailing stop {best['new_sl']} would reach target {current_target}")
        return {
            "should_trail": False,
            "reason": "Best trailing stop would exceed target",
            "current_sl": current_sl,
            "current_target": current_target,
        }

    return {
        "should_trail": True,
        "new_sl": best["new_sl"],
        "method": best["method"],
        "reason": best["reason"],
        "protection_pct": best["protection_pct"],
        "current_profit_pct": round2(profit_pct),
        "all_candidates": ranked,
    }


def recommend_trailing_strategy(volatility: Optional[str], trend: Optional[str],
                                days_in_trade: int = 0, profit_pct: float = 0.0) -> Dict[str, Any]:
    """Pick the trailing method that suits the current conditions."""
    if volatility == "HIGH":
        return {
            "primary_method": "ATR_TRAIL",
            "atr_multiplier": RISK_CONFIG["high_vol_atr_multiplier"],
            "reason": "Higher volatility requires wider stops to avoid premature exit",
        }
    if trend == "BULLISH" and days_in_trade > RISK_CONFIG["ema_trail_after_days"]:
        return {
            "primary_method": "EMA_TRAIL",
            "reason": "Bullish trend supports using moving average as dynamic support",
        }
    if days_in_trade <= RISK_CONFIG["breakeven_within_days"] and profit_pct >= RISK_CONFIG["breakeven_after_pct"]:
        return {
            "primary_method": "BREAKEVEN",
            "reason": "Early in trade - priority is protecting capital with breakeven stop",
        }
    if profit_pct >= RISK_CONFIG["lock_half_after_pct"]:
        return {
            "primary_method": "LOCK_PROFIT",
            "reason": "Substantial profit - lock in gains with trailing stop",
        }
    return {
        "primary_method": "SWING_LOW",
        "reason": "Swing low provides natural support level for stop placement",
    }


def calculate_risk_reduction(current_price: Any, old_sl: Any, new_sl: Any, qty: Any) -> Dict[str, Any]:
    """Open risk before and after moving the stop."""
    if not all(is_num(v) for v in (current_price, old_sl, new_sl, qty)) or current_price == 0:
        return {"error": "Invalid inputs"}

    old_per_share = current_price - old_sl
    new_per_share = current_price - new_sl
    old_total = old_per_share * qty
    new_total = new_per_share * qty
    reduction = old_total - new_total

    return {
        "old_risk": {
            "per_share": round2(old_per_share),
            "total": round2(old_total),
            "pct": round2(old_per_share / current_price * 100),
        },
        "new_risk": {
            "per_share": round2(new_per_share),
            "total": round2(new_total),
            "pct": round2(new_per_share / current_price * 100),
        },
        "reduction": {
            "amount": round2(reduction),
            "percentage": round2(reduction / old_total * 100) if old_total > 0 else 0,
        },
    }


# ============================================================================
# POSITION SIZING
# ============================================================================

def calculate_position_size(risk_budget: Any, entry: Any, stop_loss: Any,
                            max_position_value: Any = None) -> Dict[str, Any]:
    """
    Shares to buy for a fixed rupee risk budget.

    Args:
        risk_budget: Maximum loss accepted, in INR
        entry: Entry price
        stop_loss: Stop price
        max_position_value: Optional cap on position value

    Returns:
        {recommended_qty, position_value, risk_per_share, total_risk, risk_pct}
        or {"error": ...}
    """
    if not (is_num(risk_budget) and is_num(entry) and is_num(stop_loss)) or entry <= 0:
        return {"error": "Invalid inputs"}

    risk_per_share = abs(entry - stop_loss)
    if risk_per_share <= 0:
        return {"error": "Invalid stop loss - no risk per share"}

    qty = max(int(math.floor(risk_budget / risk_per_share)), 0)

    if is_num(max_position_value) and max_position_value > 0:
        qty = min(qty, int(math.floor(max_position_value / entry)))

    return {
        "recommended_qty": qty,
        "position_value": round2(qty * entry),
        "risk_per_share": round2(risk_per_share),
        "total_risk": round2(qty * risk_per_share),
        "risk_pct": round2(risk_per_share / entry * 100),
    }


def assess_trade_risk(entry: Any, stop_loss: Any, target: Any) -> Dict[str, Any]:
    """
    Classify a BUY plan on two independent axes.

    Returns:
        risk_level from the % distance to stop (LOW / MEDIUM / HIGH) and
        rr_quality from the R:R (POOR .. EXCELLENT)
    """
    if not (is_num(entry) and is_num(stop_loss) and is_num(target)) or entry == 0:
        return {"error": "Invalid inputs"}

    risk_pct = round2((entry - stop_loss) / entry * 100)
    reward_pct = round2((target - entry) / entry * 100)
    rr = rr_buy(entry, target, stop_loss)

    if risk_pct > RISK_CONFIG["risk_high_pct"]:
        risk_level = "HIGH"
        recommendation = "Risk too high - consider tighter stop or smaller position"
    elif risk_pct > RISK_CONFIG["risk_medium_pct"]:
        risk_level = "MEDIUM"
        recommendation = "Moderate risk - ensure position size is appropriate"
    else:
        risk_level = "LOW"
        recommendation = "Good risk control"

    if rr >= RISK_CONFIG["rr_excellent"]:
        rr_quality = "EXCELLENT"
    elif rr >= RISK_CONFIG["rr_good"]:
        rr_quality = "GOOD"
    elif rr >= RISK_CONFIG["rr_acceptable"]:
        rr_quality = "ACCEPTABLE"
    elif rr >= RISK_CONFIG["rr_marginal"]:
        rr_quality = "MARGINAL"
    else:
        rr_quality = "POOR"

    return {
        "risk_pct": risk_pct,
        "reward_pct": reward_pct,
        "risk_reward": rr,
        "risk_level": risk_level,
        "rr_quality": rr_quality,
        "recommendation": recommendation,
    }
