import pytest

from swing_engine import indicators
from swing_engine.indicators import (
    NO_DATA_ERROR, check_data_health, determine_trend, determine_volatility,
    determine_volume_classification, ema_last,
)


class TestCalculate:
    @pytest.mark.parametrize("raw", [[], None, [["x", "y"]]])
    def test_no_candles_is_an_error(self, raw):
        assert indicators.calculate(raw) == {"error": NO_DATA_ERROR}

    def test_full_history(self, candles):
        ind = indicators.calculate(candles)
        assert "error" not in ind
        assert ind["last"] == candles[-1][4]
        for key in ("ema20", "ema50", "sma200", "rsi", "atr", "atr_pct", "macd",
                    "macd_signal", "macd_histogram", "adx", "bb_upper", "bb_lower",
                    "vwap", "volume_vs_avg", "high_20d", "low_20d", "high_50d",
                    "prev_high", "prev_low", "prev_close", "return_1m", "weekly_change_pct"):
            assert key in ind, key

    def test_aliases_agree(self, candles):
        ind = indicators.calculate(candles)
        assert ind["ema20"] == ind["ema20_1D"]
        assert ind["sma20"] == ind["dma20"] == ind["sma20_1D"]
        assert ind["rsi"] == ind["rsi14"] == ind["rsi14_1D"]
        assert ind["atr"] == ind["atr14"] == ind["atr14_1D"]

    def test_short_history_leaves_fields_absent(self, short_candles):
        ind = indicators.calculate(short_candles)
        assert ind["last"] == short_candles[-1][4]
        for key in ("ema20", "sma200", "rsi", "atr", "high_20d", "return_1m"):
            assert key not in ind
        assert ind["prev_close"] == short_candles[-2][4]
        assert "weekly_change_pct" in ind

    def test_previous_session_and_swing_range(self, candles):
        ind = indicators.calculate(candles)
        prev = candles[-2]
        assert ind["prev_high"] == prev[2]
        assert ind["prev_low"] == prev[3]
        assert ind["high_20d"] == max(c[2] for c in candles[-20:])
        assert ind["low_20d"] == min(c[3] for c in candles[-20:])

    def test_order_independent(self, candles):
        forward = indicators.calculate(candles)
        backward = indicators.calculate(list(reversed(candles)))
        assert forward == backward

    def test_deterministic(self, candles):
        assert indicators.calculate(candles) == indicators.calculate(candles)

    def test_oscillators_in_range(self, candles):
        ind = indicators.calculate(candles)
        assert 0 <= ind["rsi"] <= 100
        assert ind["atr"] > 0
        assert ind["bb_lower"] <= ind["bb_middle"] <= ind["bb_upper"]


class TestEmaLast:
    def test_constant_series(self):
        assert ema_last([5.0] * 60, 50) == pytest.approx(5.0)

    def test_too_short(self):
        assert ema_last([1.0, 2.0], 50) is None


class TestClassification:
    def test_trend_with_long_averages(self):
        assert determine_trend({"last": 110, "ema20": 105, "ema50": 100, "sma200": 90}) == "BULLISH"
        assert determine_trend({"last": 80, "ema20": 85, "ema50": 90, "sma200": 100}) == "BEARISH"

    def test_trend_falls_back_to_ema20_band(self):
        assert determine_trend({"last": 103, "ema20": 100}) == "BULLISH"
        assert determine_trend({"last": 97, "ema20": 100}) == "BEARISH"
        assert determine_trend({"last": 101, "ema20": 100}) == "NEUTRAL"

    def test_trend_without_price(self):
        assert determine_trend({}) == "NEUTRAL"

    @pytest.mark.parametrize("atr_pct,expected", [
        (0.5, "LOW"), (1.5, "MEDIUM"), (2.5, "HIGH"), (None, "MEDIUM"),
    ])
    def test_volatility(self, atr_pct, expected):
        assert determine_volatility({"atr_pct": atr_pct}) == expected

    @pytest.mark.parametrize("ratio,expected", [
        (1.5, "ABOVE_AVERAGE"), (0.5, "BELOW_AVERAGE"), (1.0, "AVERAGE"), (None, "AVERAGE"),
    ])
    def test_volume(self, ratio, expected):
        assert determine_volume_classification({"volume_vs_avg": ratio}) == expected


class TestDataHealth:
    def test_required_fields(self):
        health = check_data_health({"last": 100, "ema20": 99})
        assert health["ok"] is False
        assert health["required_missing"] == ["atr"]
        assert "last" in health["available"]

    def test_healthy(self, candles):
        health = check_data_health(indicators.calculate(candles))
        assert health["ok"] is True
        assert health["required_missing"] == []
