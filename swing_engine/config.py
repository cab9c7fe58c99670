"""
Configuration for the Swing Setup Engine
All engine constants and thresholds are defined here.
"""

from types import MappingProxyType
from pathlib import Path

from swing_engine.models import (
    Band, Factor, Rubric, ScoringConfig, ScoringStrategy,
)

# ============================================================================
# PROJECT PATHS
# ============================================================================

LOG_DIR = Path.cwd() / "logs"

# ============================================================================
# TECHNICAL INDICATOR PARAMETERS
# ============================================================================

INDICATORS = MappingProxyType({
    "ema_short": 20,
    "ema_medium": 50,
    "sma_short": 20,
    "sma_medium": 50,
    "sma_long": 200,
    "rsi_period": 14,
    "macd_fast": 12,
    "macd_slow": 26,
    "macd_signal": 9,
    "stoch_period": 14,
    "stoch_signal": 3,
    "adx_period": 14,
    "atr_period": 14,
    "bollinger_period": 20,
    "bollinger_std": 2,
    "vwap_bars": 20,
    "volume_sma": 20,
    "swing_short": 20,
    "swing_long": 50,
    "return_1m_bars": 22,
    "return_1w_bars": 5,
})

# Minimum candle count before an indicator is computed at all
MIN_BARS = MappingProxyType({
    "EMA20": 20,
    "EMA50": 50,
    "SMA20": 20,
    "SMA50": 50,
    "SMA200": 200,
    "RSI": 14,
    "ATR": 14,
    "ADX": 14,
    "MACD": 26,
    "STOCHASTIC": 14,
    "BOLLINGER": 20,
    "VWAP": 20,
    "VOLUME": 20,
})

# Trend / volatility / volume classification
CLASSIFICATION_RULES = MappingProxyType({
    "trend_ema_band": 0.02,          # +/-2% around EMA20 when long MAs are missing
    "volatility_low_pct": 1.0,
    "volatility_high_pct": 2.0,
    "volume_above_avg": 1.3,
    "volume_below_avg": 0.7,
})

DATA_HEALTH = MappingProxyType({
    "required": ("last", "ema20", "atr"),
    "recommended": ("sma200", "ema50", "rsi", "prev_high", "prev_low", "prev_close"),
})

# ============================================================================
# ENTRY / STOP / TARGET ZONES
# ============================================================================

ZONE_RULES = MappingProxyType({
    "entry_spread_atr": 0.3,
    "stop_fallback_atr": 0.8,
    "stop_buffer_atr": 0.1,
    "target_fallback_atr": 1.0,
    "approaching_pct": 2.0,
    "gap_chase_pct": 2.0,
    "gap_significant_pct": 1.0,
})

# ============================================================================
# TRADE CANDIDATES
# ============================================================================

CANDIDATE_RULES = MappingProxyType({
    "breakout_buffer_atr": 0.2,
    "breakout_target_atr": 1.2,
    "pullback_stop_atr": 0.8,
    "pullback_target_atr": 1.0,
    "reversion_atr": 0.8,
    "fade_atr": 0.8,
    "entry_spread_atr": 0.3,
    "invalidation_atr": 1.5,
    "invalidation_fallback_pct": 0.03,
    "mean_reversion_rsi": 45,
    "good_rr": 1.5,
    "scan_type_bonus": 0.25,
})

SCAN_TYPE_TO_CANDIDATES = MappingProxyType({
    "BREAKOUT": ("C1",),
    "PULLBACK": ("C2",),
    "MOMENTUM": ("C1", "C2"),
    "CONSOLIDATION": ("C2", "C3"),
    "MEAN_REVERSION": ("C3",),
    "RANGE": ("C3", "C4"),
})

# ============================================================================
# SETUP SCORE RUBRICS
# ============================================================================

# Structure points for the pullback rubric, summed per condition that holds
TREND_STRUCTURE_POINTS = MappingProxyType({
    "ema20_above_ema50": 6,
    "ema50_above_sma200": 5,
    "price_above_sma200": 4,
})

MOMENTUM_RUBRIC = Rubric(
    strategy=ScoringStrategy.MOMENTUM,
    factors=(
        Factor(
            name="Volume Conviction", input="volume_vs_avg", max=20,
            value_format="{:.2f}x avg", missing_reason="No volume data",
            bands=(
                Band(high=1.0, points=2, label="Below average volume, lacks conviction"),
                Band(low=1.0, high=1.2, points=5, label="Average volume"),
                Band(low=1.2, high=1.5, points=8, label="Above average volume"),
                Band(low=1.5, high=2.0, points=12, label="Strong volume"),
                Band(low=2.0, high=2.5, points=16, label="Heavy volume"),
                Band(low=2.5, high=3.0, points=18, label="Very heavy volume"),
                Band(low=3.0, points=20, label="Institutional-grade volume"),
            ),
        ),
        Factor(
            name="Risk:Reward", input="risk_reward", max=20,
            value_format="1:{:.2f}", missing_reason="No R:R available",
            bands=(
                Band(high=1.2, points=0, label="Poor R:R"),
                Band(low=1.2, high=1.5, points=5, label="Marginal R:R"),
                Band(low=1.5, high=2.0, points=10, label="Acceptable R:R"),
                Band(low=2.0, high=2.5, points=14, label="Good R:R"),
                Band(low=2.5, high=3.0, points=17, label="Strong R:R"),
                Band(low=3.0, points=20, label="Excellent R:R"),
            ),
        ),
        Factor(
            name="RSI Position", input="rsi", max=15,
            value_format="RSI {:.1f}", missing_reason="No RSI data",
            bands=(
                Band(high=45, points=3, label="Weak momentum"),
                Band(low=45, high=52, points=8, label="Neutral, building momentum"),
                Band(low=52, high=55, points=12, label="Momentum turning up"),
                Band(low=55, high=62, points=15, label="Sweet spot, momentum without exhaustion"),
                Band(low=62, high=65, points=12, label="Strong momentum"),
                Band(low=65, high=68, points=10, label="Strong but extended"),
                # above the daily RSI gate never reaches scoring
                Band(low=68, points=5, label="Near exhaustion"),
            ),
        ),
        Factor(
            name="Weekly Move", input="weekly_change_pct", max=15,
            value_format="{:+.2f}%", missing_reason="No weekly move data",
            bands=(
                Band(high=0, points=0, label="Negative week"),
                Band(low=0, high=1, points=4, label="Flat week"),
                Band(low=1, high=2, points=8, label="Modest weekly gain"),
                Band(low=2, high=3, points=12, label="Building weekly momentum"),
                Band(low=3, high=7, points=15, label="Ideal weekly momentum"),
                Band(low=7, high=10, points=10, label="Sharp weekly move"),
                Band(low=10, points=5, label="Overextended week, chase risk"),
            ),
        ),
        Factor(
            name="Upside to Target", input="upside_pct", max=15,
            value_format="{:.2f}%", missing_reason="No target available",
            bands=(
                Band(high=4, points=2, label="Limited upside"),
                Band(low=4, high=6, points=4, label="Modest upside"),
                Band(low=6, high=8, points=7, label="Moderate upside"),
                Band(low=8, high=10, points=9, label="Good upside"),
                Band(low=10, high=12, points=11, label="Strong upside"),
                Band(low=12, high=15, points=13, label="Large upside"),
                Band(low=15, points=15, label="Exceptional upside"),
            ),
        ),
        Factor(
            name="Relative Strength", input="relative_strength", max=10,
            value_format="{:+.2f}% vs benchmark", missing_reason="No relative strength data",
            bands=(
                Band(high=0, points=0, label="Underperforming"),
                Band(low=0, high=2, points=4, label="In line with market"),
                Band(low=2, high=5, points=6, label="Outperforming"),
                Band(low=5, high=8, points=8, label="Strong outperformance"),
                Band(low=8, points=10, label="Market leader"),
            ),
        ),
        Factor(
            name="Price Accessibility", input="price", max=5,
            value_format="{:.2f}", missing_reason="No price data",
            bands=(
                Band(high=200, points=5, label="Easy to size positions", right_closed=True),
                Band(low=200, high=500, points=4, label="Accessible price", right_closed=True),
                Band(low=500, high=1000, points=3, label="Mid priced", right_closed=True),
                Band(low=1000, high=2000, points=2, label="Higher priced, coarser sizing", right_closed=True),
                Band(low=2000, points=1, label="Hard to size positions", right_closed=True),
            ),
        ),
    ),
)

PULLBACK_RUBRIC = Rubric(
    strategy=ScoringStrategy.PULLBACK,
    factors=(
        Factor(
            name="EMA20 Proximity", input="ema20_distance_abs_pct", max=25,
            value_format="{:.2f}% from EMA20", missing_reason="No EMA20 data",
            bands=(
                Band(high=0.5, points=25, label="Sitting on EMA20 support", right_closed=True),
                Band(low=0.5, high=1, points=22, label="Right at EMA20", right_closed=True),
                Band(low=1, high=2, points=18, label="Close to EMA20", right_closed=True),
                Band(low=2, high=3, points=12, label="Near EMA20", right_closed=True),
                Band(low=3, high=5, points=6, label="Drifting away from EMA20", right_closed=True),
                Band(low=5, points=2, label="Too far from EMA20, not a pullback", right_closed=True),
            ),
        ),
        Factor(
            name="Volume Decline", input="volume_vs_avg", max=20,
            value_format="{:.2f}x avg", missing_reason="No volume data",
            bands=(
                Band(high=0.6, points=20, label="Very quiet pullback", right_closed=True),
                Band(low=0.6, high=0.7, points=18, label="Quiet pullback", right_closed=True),
                Band(low=0.7, high=0.8, points=16, label="Controlled pullback", right_closed=True),
                Band(low=0.8, high=0.9, points=13, label="Orderly volume", right_closed=True),
                Band(low=0.9, high=1.0, points=10, label="Normal volume", right_closed=True),
                Band(low=1.0, high=1.3, points=5, label="Elevated selling volume", right_closed=True),
                Band(low=1.3, points=0, label="Heavy selling volume", right_closed=True),
            ),
        ),
        Factor(
            name="RSI Cooling", input="rsi", max=15,
            value_format="RSI {:.1f}", missing_reason="No RSI data",
            bands=(
                # below the pullback RSI gate never reaches scoring
                Band(high=35, points=0, label="Trend may be broken"),
                Band(low=35, high=40, points=4, label="Deeply cooled"),
                Band(low=40, high=45, points=8, label="Cooling"),
                Band(low=45, high=52, points=15, label="Ideal pullback zone"),
                Band(low=52, high=58, points=12, label="Mild cooling"),
                Band(low=58, high=65, points=6, label="Barely cooled"),
                Band(low=65, points=0, label="Not cooled yet"),
            ),
        ),
        Factor(
            name="Trend Structure", input="trend_structure", max=15,
            value_format="{:.0f}/15 structure points", missing_reason="No moving average data",
            bands=(
                Band(high=4, points=0, label="No trend support"),
                Band(low=4, high=5, points=4, label="Price above SMA200 only"),
                Band(low=5, high=6, points=5, label="EMA50 above SMA200 only"),
                Band(low=6, high=9, points=6, label="EMA20 above EMA50 only"),
                Band(low=9, high=10, points=9, label="Long-term uptrend, short MAs crossed"),
                Band(low=10, high=11, points=10, label="Short-term uptrend above SMA200"),
                Band(low=11, high=15, points=11, label="MA stack intact, price below SMA200"),
                Band(low=15, points=15, label="Full bullish stack intact"),
            ),
        ),
        Factor(
            name="Risk:Reward", input="risk_reward", max=15,
            value_format="1:{:.2f}", missing_reason="No R:R available",
            bands=(
                Band(high=1.0, points=0, label="Poor R:R"),
                Band(low=1.0, high=1.3, points=3, label="Thin R:R"),
                Band(low=1.3, high=1.5, points=6, label="Marginal R:R"),
                Band(low=1.5, high=2.0, points=10, label="Acceptable R:R"),
                Band(low=2.0, high=2.5, points=13, label="Good R:R"),
                Band(low=2.5, points=15, label="Excellent R:R"),
            ),
        ),
        Factor(
            name="Relative Strength", input="relative_strength", max=5,
            value_format="{:+.2f}% vs benchmark", missing_reason="No relative strength data",
            bands=(
                Band(high=0, points=0, label="Underperforming"),
                Band(low=0, high=2, points=2, label="In line with market"),
                Band(low=2, high=5, points=3, label="Outperformer pulling back"),
                Band(low=5, high=8, points=4, label="Strong outperformer pulling back"),
                Band(low=8, points=5, label="Leader pulling back"),
            ),
        ),
        Factor(
            name="ATR Tradability", input="atr_pct", max=5,
            value_format="ATR {:.2f}%", missing_reason="No ATR data",
            bands=(
                Band(high=1.0, points=1, label="Too quiet to swing"),
                Band(low=1.0, high=1.5, points=3, label="Tight range"),
                Band(low=1.5, high=3.5, points=5, label="Ideal swing volatility"),
                Band(low=3.5, high=5.0, points=3, label="Wide swings"),
                Band(low=5.0, points=1, label="Too volatile"),
            ),
        ),
    ),
)

SCORING = ScoringConfig(
    grade_thresholds=(
        ("A+", 80),
        ("A", 70),
        ("B+", 60),
        ("B", 50),
        ("C", 40),
    ),
    floor_grade="D",
    eliminated_grade="ELIMINATED",
    daily_rsi_max=72.0,
    weekly_rsi_max=72.0,
    pullback_rsi_min=35.0,
    rubrics=(MOMENTUM_RUBRIC, PULLBACK_RUBRIC),
)

# ============================================================================
# CONFIDENCE
# ============================================================================

CONFIDENCE_RULES = MappingProxyType({
    "default_base": 0.5,
    "min": 0.30,
    "max": 0.95,
    "no_candidate": 0.30,

    # Negative adjustments
    "sentiment_conflict": -0.08,
    "high_vol_low_rr": -0.05,
    "low_sentiment_confidence": -0.04,
    "low_volume": -0.03,
    "poor_rr": -0.07,
    "far_entry": -0.04,

    # Positive adjustments
    "sentiment_aligned": 0.04,
    "strong_rr": 0.04,
    "high_volume": 0.02,
    "close_entry": 0.03,
    "trend_aligned": 0.05,

    # Thresholds
    "high_vol_atr_pct": 2.0,
    "low_rr": 1.5,
    "min_sentiment_confidence": 0.5,
    "aligned_sentiment_confidence": 0.7,
    "low_volume_ratio": 0.8,
    "high_volume_ratio": 1.3,
    "poor_rr_below": 1.0,
    "strong_rr_from": 2.0,
    "far_entry_pct": 3.0,
    "close_entry_pct": 0.5,
    "trend_aligned_from": 0.9,
})

# ============================================================================
# RISK MANAGEMENT
# ============================================================================

RISK_CONFIG = MappingProxyType({
    # Trailing stop methods
    "trail_atr_multiplier": 1.5,
    "swing_buffer_atr": 0.1,
    "swing_buffer_fallback": 1.0,
    "ema_buffer_atr": 0.2,
    "ema_buffer_fallback": 2.0,
    "breakeven_after_pct": 2.0,
    "lock_1pct_after_pct": 3.0,
    "lock_1pct": 0.01,
    "lock_half_after_pct": 5.0,
    "lock_half_fraction": 0.5,

    # Trailing method recommendation
    "high_vol_atr_multiplier": 2.0,
    "ema_trail_after_days": 3,
    "breakeven_within_days": 2,

    # Trade risk classification (% distance to stop)
    "risk_high_pct": 5.0,
    "risk_medium_pct": 3.0,

    # R:R quality
    "rr_excellent": 2.5,
    "rr_good": 2.0,
    "rr_acceptable": 1.5,
    "rr_marginal": 1.0,
})

# ============================================================================
# ALERTS
# ============================================================================

ALERT_CONFIG = MappingProxyType({
    "near_level_pct": 1.0,
    "approaching_zone_pct": 2.0,
    "high_volatility_atr_pct": 3.0,

    # Position status bands (P&L %)
    "significant_loss_pct": -5.0,
    "drawdown_pct": -2.0,
    "strong_profit_pct": 10.0,
    "good_profit_pct": 5.0,
    "in_profit_pct": 2.0,
})

# ============================================================================
# MARKET REGIME
# ============================================================================

REGIME_CONFIG = MappingProxyType({
    "ema_period": 50,
    "neutral_band_pct": 1.0,
})

# ============================================================================
# LOGGING
# ============================================================================

LOGGING_CONFIG = MappingProxyType({
    "level": "INFO",  # DEBUG, INFO, WARNING, ERROR
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "log_file": LOG_DIR / "engine.log",
})
