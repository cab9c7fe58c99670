"""
Swing Setup Engine
Deterministic swing-trade analysis from daily OHLCV candles.
"""

__version__ = "0.1.0"
__author__ = "Quant Engineering Team"

from .indicators import calculate as calculate_indicators
from .levels import calc_classic_pivots
from .zones import calculate_entry_zone
from .candidates import generate as generate_candidates
from .scoring import calculate_setup_score, pick_best_candidate, calculate_confidence
from .risk import calculate_trailing_stop
from .regime import check_market_regime
from .pipeline import analyze_stock, get_entry_zone, manage_position

__all__ = [
    "calculate_indicators",
    "calc_classic_pivots",
    "calculate_entry_zone",
    "generate_candidates",
    "calculate_setup_score",
    "pick_best_candidate",
    "calculate_confidence",
    "calculate_trailing_stop",
    "check_market_regime",
    "analyze_stock",
    "get_entry_zone",
    "manage_position",
]
