"""
Alert Engine
Stateless checks that turn live price plus position or zone data into alerts.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from swing_engine.config import ALERT_CONFIG
from swing_engine.helpers import is_num, round2
from swing_engine.models import AlertType, Severity

logger = logging.getLogger(__name__)


def _alert(alert_type: AlertType, severity: Severity, message: str, suggestion: str,
           **extra: Any) -> Dict[str, Any]:
    return {
        "type": alert_type.value,
        "severity": severity.value,
        "message": message,
        "suggestion": suggestion,
        **extra,
    }


# ============================================================================
# EXIT CONDITIONS
# ============================================================================

def check_exit_conditions(position: Union[BaseModel, Mapping[str, Any]], current_price: Any,
                          atr: Any = None) -> List[Dict[str, Any]]:
    """
    Stop, target and volatility alerts for an open long position.

    Args:
        position: current_sl, current_target
        current_price: Latest price
        atr: Daily ATR for the volatility check

    Returns:
        List of alerts, empty when price is unusable
    """
    if isinstance(position, BaseModel):
        position = position.model_dump()
    position = position or {}

    alerts: List[Dict[str, Any]] = []
    if not is_num(current_price) or current_price <= 0:
        return alerts

    stop = position.get("current_sl")
    target = position.get("current_target")
    near_pct = ALERT_CONFIG["near_level_pct"]

    if is_num(stop):
        if current_price <= stop:
            alerts.append(_alert(
                AlertType.STOP_HIT, Severity.CRITICAL,
                f"Price ₹{current_price} has hit stop loss ₹{stop}",
                "Exit position",
                action_required=True,
            ))
        else:
            distance = (current_price - stop) / current_price * 100
            if distance <= near_pct:
                alerts.append(_alert(
                    AlertType.NEAR_STOP, Severity.HIGH,
                    f"Price ₹{current_price} is {round2(distance)}% from stop ₹{stop}",
                    "Prepare for possible exit",
                    distance_pct=round2(distance),
                ))

    if is_num(target):
        if current_price >= target:
            alerts.append(_alert(
                AlertType.TARGET_HIT, Severity.CRITICAL,
                f"Price ₹{current_price} has hit target ₹{target}",
                "Book profit or trail stop aggressively",
                action_required=True,
            ))
        else:
            distance = (target - current_price) / current_price * 100
            if 0 < distance <= near_pct:
                alerts.append(_alert(
                    AlertType.NEAR_TARGET, Severity.HIGH,
                    f"Price ₹{current_price} is {round2(distance)}% from target ₹{target}",
                    "Consider booking partial or full profit",
                    distance_pct=round2(distance),
                ))

        if current_price > target and target != 0:
            extension = (current_price - target) / target * 100
            alerts.append(_alert(
                AlertType.BEYOND_TARGET, Severity.MEDIUM,
                f"Price ₹{current_price} has exceeded target ₹{target} by {round2(extension)}%",
                "Trail stop aggressively or book profit",
            ))

    if is_num(atr):
        atr_pct = atr / current_price * 100
        if atr_pct > ALERT_CONFIG["high_volatility_atr_pct"]:
            alerts.append(_alert(
                AlertType.HIGH_VOLATILITY, Severity.MEDIUM,
                f"Daily volatility (ATR) is {round2(atr_pct)}% - elevated risk",
                "Consider wider stops or reduced position size",
                atr_pct=round2(atr_pct),
            ))

    return alerts


# ============================================================================
# ENTRY ZONE
# ============================================================================

def check_entry_zone_proximity(current_price: Any, entry_zone: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    In-zone / approaching alert for a watched entry zone.

    Returns:
        {inZone, approaching, distancePct, direction, alert}
    """
    if (not is_num(current_price) or current_price <= 0 or not entry_zone
            or not is_num(entry_zone.get("low")) or not is_num(entry_zone.get("high"))):
        return {"inZone": False, "approaching": False, "distancePct": None,
                "direction": "unknown", "alert": None}

    low, high = entry_zone["low"], entry_zone["high"]

    if low <= current_price <= high:
        return {
            "inZone": True,
            "approaching": False,
            "distancePct": 0,
            "direction": "in_zone",
            "alert": _alert(
                AlertType.IN_ENTRY_ZONE, Severity.HIGH,
                f"Price ₹{current_price} is in entry zone (₹{low} - ₹{high})",
                "Good entry opportunity",
                urgency="high",
            ),
        }

    if current_price > high:
        distance = round2((current_price - high) / current_price * 100)
        direction = "above"
    else:
        distance = round2((low - current_price) / current_price * 100)
        direction = "below"

    approaching = distance <= ALERT_CONFIG["approaching_zone_pct"]
    alert = None
    if approaching:
        alert = _alert(
            AlertType.APPROACHING_ZONE, Severity.MEDIUM,
            f"Price ₹{current_price} is {distance}% {direction} entry zone",
            "Wait for pullback to entry zone" if direction == "above" else "Monitor for zone entry",
            urgency="medium",
        )

    return {
        "inZone": False,
        "approaching": approaching,
        "distancePct": distance,
        "direction": direction,
        "alert": alert,
    }


# ============================================================================
# POSITION STATUS
# ============================================================================

def check_position_status(current_price: Any, actual_entry: Any, qty: Any = 1) -> Dict[str, Any]:
    """
    Bucket open P&L into a named status; the first matching band wins.

    SIGNIFICANT_LOSS <= -5%, IN_DRAWDOWN <= -2%, STRONG_PROFIT >= 10%,
    GOOD_PROFIT >= 5%, IN_PROFIT >= 2%, FLAT otherwise.
    """
    if not is_num(current_price) or not is_num(actual_entry) or actual_entry == 0:
        return {"error": "Invalid inputs"}
    if not is_num(qty):
        qty = 1

    pnl = (current_price - actual_entry) * qty
    pnl_pct = (current_price - actual_entry) / actual_entry * 100
    alerts: List[Dict[str, Any]] = []

    if pnl_pct <= ALERT_CONFIG["significant_loss_pct"]:
        status, emoji = "SIGNIFICANT_LOSS", "🔴"
        alerts.append(_alert(AlertType.DRAWDOWN, Severity.CRITICAL,
                             f"Position down {round2(abs(pnl_pct))}%",
                             "Review stop loss or consider exit"))
    elif pnl_pct <= ALERT_CONFIG["drawdown_pct"]:
        status, emoji = "IN_DRAWDOWN", "⚠️"
        alerts.append(_alert(AlertType.DRAWDOWN, Severity.MEDIUM,
                             f"Position down {round2(abs(pnl_pct))}%",
                             "Monitor closely"))
    elif pnl_pct >= ALERT_CONFIG["strong_profit_pct"]:
        status, emoji = "STRONG_PROFIT", "🚀"
        alerts.append(_alert(AlertType.PROFIT_MILESTONE, Severity.INFO,
                             f"Position up {round2(pnl_pct)}%",
                             "Consider trailing stop or partial booking"))
    elif pnl_pct >= ALERT_CONFIG["good_profit_pct"]:
        status, emoji = "GOOD_PROFIT", "📈"
        alerts.append(_alert(AlertType.PROFIT_MILESTONE, Severity.INFO,
                             f"Position up {round2(pnl_pct)}%",
                             "Consider moving stop to breakeven"))
    elif pnl_pct >= ALERT_CONFIG["in_profit_pct"]:
        status, emoji = "IN_PROFIT", "📈"
    else:
        status, emoji = "FLAT", "➖"

    return {
        "pnl": round2(pnl),
        "pnl_pct": round2(pnl_pct),
        "status": status,
        "emoji": emoji,
        "alerts": alerts,
        "needs_attention": any(
            a["severity"] in (Severity.CRITICAL.value, Severity.HIGH.value) for a in alerts
        ),
    }


# ============================================================================
# PORTFOLIO SUMMARIES
# ============================================================================

def generate_morning_glance(positions: List[Mapping[str, Any]],
                            price_map: Optional[Mapping[str, float]] = None) -> Dict[str, Any]:
    """
    Status and exit alerts for every open position, plus a one-line summary.

    Args:
        positions: Position dicts with instrument_key, actual_entry, current_sl,
            current_target, qty and optionally current_price
        price_map: instrument_key to latest price

    Returns:
        {total_positions, total_pnl, attention_count, positions, summary}
    """
    price_map = price_map or {}
    if not positions:
        return {
            "total_positions": 0,
            "total_pnl": 0,
            "attention_count": 0,
            "positions": [],
            "summary": "No open positions",
        }

    enriched = []
    for pos in positions:
        current_price = price_map.get(pos.get("instrument_key"))
        if not is_num(current_price):
            current_price = pos.get("current_price")

        exit_alerts = check_exit_conditions(pos, current_price)
        status = check_position_status(current_price, pos.get("actual_entry"), pos.get("qty") or 1)

        enriched.append({
            **pos,
            "current_price": current_price,
            **status,
            "exit_alerts": exit_alerts,
            "all_alerts": status.get("alerts", []) + exit_alerts,
        })

    total_pnl = sum(p.get("pnl") or 0 for p in enriched)
    attention_count = sum(1 for p in enriched if p.get("needs_attention"))

    if attention_count:
        summary = f"{attention_count} position(s) need attention"
    elif total_pnl > 0:
        summary = "Positions looking good, stay patient"
    elif total_pnl < 0:
        summary = "Some drawdown, but structure intact"
    else:
        summary = "Positions are flat"

    logger.info(f"Morning glance: {len(enriched)} positions, {attention_count} need attention")

    return {
        "total_positions": len(positions),
        "total_pnl": round2(total_pnl),
        "attention_count": attention_count,
        "positions": enriched,
        "summary": summary,
    }


def check_watchlist_zones(watchlist: List[Mapping[str, Any]],
                          price_map: Optional[Mapping[str, float]] = None) -> List[Dict[str, Any]]:
    """Watchlist items in or approaching their entry zone, in-zone first then nearest."""
    price_map = price_map or {}
    if not isinstance(watchlist, (list, tuple)):
        return []

    triggered = []
    for item in watchlist:
        price = price_map.get(item.get("symbol"))
        if not is_num(price):
            price = price_map.get(item.get("instrument_key"))
        if not is_num(price) or not item.get("entry_zone"):
            continue

        zone_status = check_entry_zone_proximity(price, item["entry_zone"])
        if zone_status["inZone"] or zone_status["approaching"]:
            triggered.append({
                "symbol": item.get("symbol"),
                "name": item.get("name"),
                "current_price": price,
                "entry_zone": item["entry_zone"],
                **zone_status,
            })

    return sorted(triggered, key=lambda t: (not t["inZone"], t["distancePct"]))
