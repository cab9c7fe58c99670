import pytest

from swing_engine.config import RISK_CONFIG
from swing_engine.models import Position
from swing_engine.risk import (
    assess_trade_risk, calculate_position_size, calculate_risk_reduction,
    calculate_trailing_stop, recommend_trailing_strategy, rr_buy, rr_sell,
)


class TestRiskReward:
    def test_buy(self):
        assert rr_buy(100, 110, 95) == 2
        assert rr_buy(100, 110, 100) == 0
        assert rr_buy(100, 110, 105) == 0

    def test_sell(self):
        assert rr_sell(100, 90, 105) == 2
        assert rr_sell(100, 90, 95) == 0

    def test_non_numeric(self):
        assert rr_buy(None, 110, 95) == 0


class TestTrailingStop:
    position = {"actual_entry": 100, "current_sl": 95, "current_target": 130}

    def test_not_in_profit(self):
        result = calculate_trailing_stop(self.position, 99, atr=2)
        assert result["should_trail"] is False
        assert result["current_profit_pct"] == -1

    def test_invalid_price(self):
        assert calculate_trailing_stop(self.position, None)["reason"] == "Invalid current price"

    def test_picks_highest_qualifying_stop(self):
        result = calculate_trailing_stop(self.position, 110, atr=2, swing_low=104, ema20=106)
        assert result["should_trail"] is True
        # ATR 107, swing 103.8, EMA 105.6, breakeven 100, lock-1% 101, lock-half 105
        assert result["new_sl"] == 107
        assert result["method"] == "ATR_TRAIL"
        stops = [c["new_sl"] for c in result["all_candidates"]]
        assert stops == sorted(stops, reverse=True)
        assert len(stops) == 6

    def test_every_candidate_above_current_and_below_price(self):
        result = calculate_trailing_stop(self.position, 110, atr=2, swing_low=104, ema20=106)
        for c in result["all_candidates"]:
            assert 95 < c["new_sl"] < 110

    def test_stop_never_lowered(self):
        position = {"actual_entry": 100, "current_sl": 108, "current_target": 130}
        result = calculate_trailing_stop(position, 110, atr=2, swing_low=104, ema20=106)
        assert result["should_trail"] is False
        assert result["current_sl"] == 108

    def test_rejected_when_reaching_target(self):
        position = {"actual_entry": 100, "current_sl": 95, "current_target": 106}
        result = calculate_trailing_stop(position, 110, atr=2)
        assert result["should_trail"] is False
        assert result["reason"] == "Best trailing stop would exceed target"

    def test_tie_keeps_method_order(self):
        # EMA trail (97 less the 2.0 fallback buffer) and lock-half both land on 95
        position = {"actual_entry": 90, "current_sl": 80}
        result = calculate_trailing_stop(position, 100, ema20=97)
        assert result["new_sl"] == 95
        assert result["method"] == "EMA_TRAIL"
        assert [c["method"] for c in result["all_candidates"][:2]] == ["EMA_TRAIL", "LOCK_PROFIT"]

    def test_missing_current_stop_allows_any_level(self):
        result = calculate_trailing_stop({"actual_entry": 100}, 104, atr=2)
        assert result["should_trail"] is True
        assert result["new_sl"] == 101
        assert result["method"] == "ATR_TRAIL"

    def test_accepts_position_model(self):
        model = Position(actual_entry=100, current_sl=95, current_target=130)
        assert calculate_trailing_stop(model, 110, atr=2) == calculate_trailing_stop(self.position, 110, atr=2)


class TestStrategyAndReduction:
    @pytest.mark.parametrize("kwargs,method", [
        ({"volatility": "HIGH", "trend": "BULLISH"}, "ATR_TRAIL"),
        ({"volatility": "LOW", "trend": "BULLISH", "days_in_trade": 5}, "EMA_TRAIL"),
        ({"volatility": "LOW", "trend": "NEUTRAL", "days_in_trade": 1, "profit_pct": 3}, "BREAKEVEN"),
        ({"volatility": "LOW", "trend": "NEUTRAL", "days_in_trade": 4, "profit_pct": 6}, "LOCK_PROFIT"),
        ({"volatility": "MEDIUM", "trend": "NEUTRAL"}, "SWING_LOW"),
    ])
    def test_recommendation(self, kwargs, method):
        assert recommend_trailing_strategy(**kwargs)["primary_method"] == method

    def test_thresholds_come_from_config(self):
        high = recommend_trailing_strategy("HIGH", "BULLISH")
        assert high["atr_multiplier"] == RISK_CONFIG["high_vol_atr_multiplier"]

        ema_days = RISK_CONFIG["ema_trail_after_days"]
        assert recommend_trailing_strategy("LOW", "BULLISH", days_in_trade=ema_days)["primary_method"] != "EMA_TRAIL"
        assert recommend_trailing_strategy("LOW", "BULLISH", days_in_trade=ema_days + 1)["primary_method"] == "EMA_TRAIL"

        early = RISK_CONFIG["breakeven_within_days"]
        profit = RISK_CONFIG["breakeven_after_pct"]
        assert recommend_trailing_strategy("LOW", "NEUTRAL", early, profit)["primary_method"] == "BREAKEVEN"
        assert recommend_trailing_strategy("LOW", "NEUTRAL", early + 1, profit)["primary_method"] == "SWING_LOW"

    def test_risk_reduction(self):
        result = calculate_risk_reduction(110, 95, 105, 10)
        assert result["old_risk"]["total"] == 150
        assert result["new_risk"]["total"] == 50
        assert result["reduction"]["amount"] == 100
        assert result["reduction"]["percentage"] == 66.67

    def test_risk_reduction_invalid(self):
        assert "error" in calculate_risk_reduction(None, 95, 105, 10)


class TestSizingAndAssessment:
    def test_position_size(self):
        result = calculate_position_size(1000, 100, 95)
        assert result["recommended_qty"] == 200
        assert result["total_risk"] == 1000

    def test_position_size_capped(self):
        result = calculate_position_size(1000, 100, 95, max_position_value=5000)
        assert result["recommended_qty"] == 50

    def test_position_size_no_risk(self):
        assert "error" in calculate_position_size(1000, 100, 100)

    @pytest.mark.parametrize("entry,stop,target,level,quality", [
        (100, 98, 106, "LOW", "EXCELLENT"),
        (100, 96, 108, "MEDIUM", "GOOD"),
        (100, 94, 100, "HIGH", "POOR"),
        (100, 97, 104.5, "LOW", "ACCEPTABLE"),
        (100, 97, 103.3, "LOW", "MARGINAL"),
    ])
    def test_assessment_axes_are_independent(self, entry, stop, target, level, quality):
        result = assess_trade_risk(entry, stop, target)
        assert result["risk_level"] == level
        assert result["rr_quality"] == quality
