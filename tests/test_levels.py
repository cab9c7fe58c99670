import pytest

from swing_engine import levels
from swing_engine.levels import (
    analyze_price_position, calc_camarilla_pivots, calc_classic_pivots,
    calc_fibonacci_pivots, find_nearest_resistance, find_nearest_support,
    identify_resistance_levels, identify_support_levels,
)


class TestPivots:
    def test_classic(self):
        p = calc_classic_pivots(110, 100, 105)
        assert p["pivot"] == 105
        assert p["r1"] == 110
        assert p["s1"] == 100
        assert p["r2"] == 115
        assert p["s2"] == 95
        assert p["r3"] == 120
        assert p["s3"] == 90

    @pytest.mark.parametrize("args", [
        (None, 100, 105), (110, "100", 105), (110, 100, float("nan")),
    ])
    def test_non_numeric_input(self, args):
        assert calc_classic_pivots(*args) is None
        assert calc_fibonacci_pivots(*args) is None
        assert calc_camarilla_pivots(*args) is None

    def test_fibonacci(self):
        p = calc_fibonacci_pivots(110, 100, 105)
        assert p["pivot"] == 105
        assert p["r1"] == 108.82
        assert p["s2"] == 98.82
        assert p["r3"] == 115

    def test_camarilla(self):
        p = calc_camarilla_pivots(110, 100, 105)
        assert p["r4"] == 110.5
        assert p["s4"] == 99.5
        assert p["r1"] < p["r2"] < p["r3"] < p["r4"]
        assert p["s1"] > p["s2"] > p["s3"] > p["s4"]


class TestLevelSet:
    def test_from_previous_session(self):
        result = levels.calculate({"prev_high": 110, "prev_low": 100, "prev_close": 105})
        assert result["pivot"] == 105
        assert result["classic"]["r1"] == result["r1"] == 110

    def test_missing_session(self):
        result = levels.calculate({})
        assert result["classic"] is None
        assert all(result[k] is None for k in ("pivot", "r1", "r2", "r3", "s1", "s2", "s3"))


class TestSupportResistance:
    indicators = {"last": 100, "ema20": 98, "sma200": 90, "low_20d": 95, "high_20d": 106}
    pivots = {"pivot": 99, "s1": 96, "s2": 93, "r1": 102, "r2": 104}

    def test_supports_nearest_first(self):
        supports = identify_support_levels(self.indicators, self.pivots)
        assert [s["level"] for s in supports] == [99, 98, 96, 95, 93, 90]
        assert find_nearest_support(self.indicators, self.pivots)["type"] == "pivot"

    def test_resistances_nearest_first(self):
        resistances = identify_resistance_levels(self.indicators, self.pivots)
        assert [r["level"] for r in resistances] == [102, 104, 106]
        assert find_nearest_resistance(self.indicators, self.pivots)["type"] == "pivot_r1"

    def test_no_price(self):
        assert identify_support_levels({}, self.pivots) == []
        assert find_nearest_resistance({}, self.pivots) is None

    def test_price_position(self):
        position = analyze_price_position(self.indicators, self.pivots)
        assert position["overall"] == "STRONG_BULLISH"
        assert position["near_20d_low"] is False

    def test_price_position_bearish(self):
        position = analyze_price_position({"last": 90, "ema20": 98}, {"pivot": 99})
        assert position["overall"] == "BEARISH"
        assert position["above_sma200"] is None
