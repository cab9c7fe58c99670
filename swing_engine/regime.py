"""
Market Regime
Benchmark index position against its 50 EMA. Advisory only, never gates a setup.
"""

import logging
from typing import Any, Dict, Optional

from swing_engine.config import REGIME_CONFIG
from swing_engine.helpers import is_num, normalize_candles, round2
from swing_engine.indicators import ema_last
from swing_engine.models import Regime

logger = logging.getLogger(__name__)


def _unknown(description: str, last: Any = None, ema: Any = None) -> Dict[str, Any]:
    return {
        "regime": Regime.UNKNOWN.value,
        "benchmark_last": last,
        "ema50": ema,
        "distance_pct": None,
        "description": description,
    }


def check_market_regime(benchmark_candles: Any) -> Dict[str, Any]:
    """
    Classify the benchmark against its 50 EMA.

    Args:
        benchmark_candles: Daily benchmark candles in any accepted form

    Returns:
        {regime, benchmark_last, ema50, distance_pct, description};
        regime is BULLISH (> +1%), BEARISH (< -1%), NEUTRAL or UNKNOWN
    """
    period = REGIME_CONFIG["ema_period"]
    band = REGIME_CONFIG["neutral_band_pct"]

    df = normalize_candles(benchmark_candles)
    if len(df) < period:
        return _unknown("Insufficient benchmark data for regime check")

    closes = df["close"].tolist()
    last = closes[-1]

    try:
        ema = ema_last(closes, period)
    except Exception as e:
        logger.error(f"Error calculating benchmark EMA: {e}")
        ema = None

    if not is_num(ema) or not is_num(last) or ema == 0:
        return _unknown("Could not calculate benchmark EMA", last=last, ema=ema)

    distance = round2((last - ema) / ema * 100)

    if distance > band:
        regime = Regime.BULLISH
        description = f"Benchmark {distance}% above {period} EMA - bullish regime"
    elif distance < -band:
        regime = Regime.BEARISH
        description = f"Benchmark {abs(distance)}% below {period} EMA - bearish regime"
    else:
        regime = Regime.NEUTRAL
        description = f"Benchmark within {band:g}% of {period} EMA - neutral/choppy regime"

    logger.debug(description)

    return {
        "regime": regime.value,
        "benchmark_last": round2(last),
        "ema50": round2(ema),
        "distance_pct": distance,
        "description": description,
    }


def get_regime_warning(setup_type: Optional[str], regime_check: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Advisory warning when a setup fights the market regime.

    BUY in BEARISH is high severity, SELL in BULLISH medium, any setup in
    NEUTRAL low. None otherwise.
    """
    if not regime_check:
        return None

    regime = regime_check.get("regime")
    distance = regime_check.get("distance_pct")

    if setup_type == "BUY" and regime == Regime.BEARISH.value:
        return {
            "code": "BEARISH_REGIME",
            "severity": "high",
            "text": f"Market is {abs(distance)}% below 50 EMA - bullish setups have "
                    f"lower success rates in bearish regimes",
            "applies_when": ["entry"],
            "mitigation": [
                "Reduce position size by 50%",
                "Wait for the index to reclaim 50 EMA before aggressive buying",
                "Focus on defensive sectors or cash",
            ],
        }

    if setup_type == "SELL" and regime == Regime.BULLISH.value:
        return {
            "code": "BULLISH_REGIME",
            "severity": "medium",
            "text": f"Market is {distance}% above 50 EMA - bearish setups often fail in strong uptrends",
            "applies_when": ["entry"],
            "mitigation": [
                "Avoid counter-trend shorts in strong markets",
                "If shorting, use tight stops",
            ],
        }

    if regime == Regime.NEUTRAL.value:
        return {
            "code": "CHOPPY_REGIME",
            "severity": "low",
            "text": "Market is near 50 EMA - choppy conditions, breakouts may fail",
            "applies_when": ["entry"],
            "mitigation": [
                "Wait for clear direction before committing",
                "Reduce position size in range-bound markets",
            ],
        }

    return None
