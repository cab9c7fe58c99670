import pytest

from swing_engine import candidates
from swing_engine.candidates import matches_scan_type, shrink_for_prompt
from swing_engine.risk import rr_buy, rr_sell


def by_id(stage2):
    return {c["id"]: c for c in stage2["candidates"]}


class TestScenario:
    def test_breakout_geometry(self, scenario_levels):
        stage2 = candidates.generate(
            {"last": 100, "atr": 2, "ema20": 98}, scenario_levels, trend="BULLISH",
        )
        c1 = by_id(stage2)["C1"]
        skeleton = c1["skeleton"]
        assert skeleton["entry"] == 101.4
        assert skeleton["stopLoss"] == 98
        assert skeleton["target"] == 104
        assert skeleton["riskReward"] == 0.76
        assert skeleton["entryType"] == "stop"
        assert c1["ok"] is False
        assert c1["score"]["trend_align"] == 1

    def test_all_four_generated(self, scenario_levels):
        stage2 = candidates.generate(
            {"last": 100, "atr": 2, "ema20": 98, "high_20d": 106, "rsi": 40},
            {**scenario_levels, "s2": 91}, trend="NEUTRAL",
        )
        ids = [c["id"] for c in stage2["candidates"]]
        assert ids == ["C1", "C2", "C3", "C4"]
        assert stage2["insufficientData"] is False

        c3 = by_id(stage2)["C3"]
        assert c3["score"]["rsi_fit"] == 1
        assert c3["skeleton"]["entry"] == 94
        assert c3["skeleton"]["stopLoss"] == 91
        assert c3["skeleton"]["target"] == 97

        c4 = by_id(stage2)["C4"]
        assert c4["skeleton"]["type"] == "SELL"
        assert c4["skeleton"]["entry"] == 101
        assert c4["skeleton"]["stopLoss"] == 104
        assert c4["skeleton"]["target"] == 97

    def test_pullback_targets_20d_high(self, scenario_levels):
        stage2 = candidates.generate(
            {"last": 100, "atr": 2, "ema20": 98, "high_20d": 106}, scenario_levels, trend="BULLISH",
        )
        c2 = by_id(stage2)["C2"]["skeleton"]
        assert c2["entry"] == 98
        assert c2["stopLoss"] == 94
        assert c2["target"] == 106
        assert c2["riskReward"] == 2
        assert c2["entryRange"] == [97.4, 98.6]
        assert by_id(stage2)["C2"]["ok"] is True


class TestInvariants:
    def test_rr_sign_matches_side(self, scenario_levels):
        stage2 = candidates.generate(
            {"last": 100, "atr": 2, "ema20": 98, "high_20d": 106}, scenario_levels,
        )
        for c in stage2["candidates"]:
            s = c["skeleton"]
            assert s["riskReward"] > 0
            if s["type"] == "BUY":
                assert s["stopLoss"] < s["entry"] < s["target"]
                assert s["riskReward"] == rr_buy(s["entry"], s["target"], s["stopLoss"])
            else:
                assert s["target"] < s["entry"] < s["stopLoss"]
                assert s["riskReward"] == rr_sell(s["entry"], s["target"], s["stopLoss"])

    def test_non_positive_rr_is_dropped_with_note(self):
        # Breakout stop at EMA20 sits above the entry, so C1 has no positive R:R
        stage2 = candidates.generate(
            {"last": 100, "atr": 2, "ema20": 120},
            {"pivot": 97, "r1": 101, "r2": 104, "s1": 94},
        )
        assert "C1" not in by_id(stage2)
        assert any(note.startswith("C1") for note in stage2["notes"])

    def test_deterministic(self, scenario_levels):
        args = ({"last": 100, "atr": 2, "ema20": 98, "high_20d": 106}, scenario_levels)
        assert candidates.generate(*args) == candidates.generate(*args)


class TestInsufficientData:
    @pytest.mark.parametrize("indicators", [
        {"atr": 2}, {"last": 100}, {"last": 0, "atr": 2},
    ])
    def test_missing_price_or_atr(self, indicators, scenario_levels):
        stage2 = candidates.generate(indicators, scenario_levels)
        assert stage2["candidates"] == []
        assert stage2["insufficientData"] is True

    def test_missing_pivot(self):
        stage2 = candidates.generate({"last": 100, "atr": 2}, {"pivot": None})
        assert stage2["insufficientData"] is True
        assert "pivot" in stage2["notes"][0].lower()


class TestScanType:
    @pytest.mark.parametrize("cid,scan_type,expected", [
        ("C1", "breakout", True),
        ("C2", "BREAKOUT", False),
        ("C2", "Momentum", True),
        ("C3", "consolidation", True),
        ("C4", "range", True),
        ("C1", None, False),
        ("C1", "unknown", False),
    ])
    def test_matches(self, cid, scan_type, expected):
        assert matches_scan_type(cid, scan_type) is expected

    def test_bonus_applied(self, scenario_levels):
        stage2 = candidates.generate(
            {"last": 100, "atr": 2, "ema20": 98, "high_20d": 106}, scenario_levels, scan_type="pullback",
        )
        assert by_id(stage2)["C2"]["score"]["scan_type_bonus"] == 0.25
        assert by_id(stage2)["C1"]["score"]["scan_type_bonus"] == 0


def test_shrink_for_prompt(scenario_levels):
    stage2 = candidates.generate({"last": 100, "atr": 2, "ema20": 98}, scenario_levels)
    compact = shrink_for_prompt(stage2["candidates"][0])
    assert set(compact) == {"id", "name", "score", "skeleton"}
    assert shrink_for_prompt(None) is None
