import json

import pandas as pd
import pytest

from swing_engine import candidates, indicators, levels, runner, zones
from swing_engine.graph import create_analysis_graph, run_analysis
from swing_engine.indicators import NO_DATA_ERROR, determine_trend
from swing_engine.pipeline import (
    analyze_stock, build_market_payload, enrich_stock, generate_stage2, manage_position,
)


class TestAnalyzeStock:
    def test_empty_candles(self):
        assert analyze_stock([]) == {"error": NO_DATA_ERROR, "insufficientData": True}

    def test_full_analysis(self, candles):
        result = analyze_stock(candles)
        assert result["insufficientData"] is False
        assert result["data_health"]["ok"] is True
        assert result["selected"] is not None
        assert result["selected"] == result["selection_trace"][0]
        assert 0 <= result["setup_score"] <= 100
        assert result["scoring_strategy"] == "momentum"
        assert 0.3 <= result["confidence"]["confidence"] <= 0.95
        assert "regime" not in result

    def test_entry_zone_matches_zone_module(self, candles):
        result = analyze_stock(candles)
        ind = indicators.calculate(candles)
        assert result["zones"] == zones.calculate(ind, levels.calculate(ind))

    def test_deterministic(self, candles):
        assert analyze_stock(candles, scan_type="momentum") == analyze_stock(candles, scan_type="momentum")

    def test_pullback_scan(self, candles):
        assert analyze_stock(candles, scan_type="pullback")["scoring_strategy"] == "pullback"

    def test_weekly_rsi_elimination(self, candles):
        result = analyze_stock(candles, weekly_rsi=90)
        assert result["eliminated"] is True
        assert result["setup_score"] == 0

    def test_with_benchmark(self, candles, falling_benchmark):
        result = analyze_stock(candles, benchmark_candles=falling_benchmark)
        assert result["regime"]["regime"] == "BEARISH"
        if result["selected"]["skeleton"]["type"] == "BUY":
            assert result["regime_warning"]["code"] == "BEARISH_REGIME"

    def test_short_history_is_flagged(self, short_candles):
        result = analyze_stock(short_candles)
        assert result["insufficientData"] is True
        assert "atr" in result["data_health"]["required_missing"]


class TestGraph:
    def test_graph_compiles(self):
        assert create_analysis_graph().compile() is not None

    def test_halts_on_indicator_error(self):
        state = run_analysis([])
        assert state["indicators"] == {"error": NO_DATA_ERROR}
        assert "levels" not in state
        assert state["errors"]

    def test_runs_every_stage(self, candles):
        state = run_analysis(candles)
        for key in ("levels", "zones", "candidates", "selection", "confidence", "setup_score"):
            assert key in state
        assert "regime" not in state


class TestManagePosition:
    position = {"actual_entry": 100, "current_sl": 95, "current_target": 130, "qty": 10, "days_in_trade": 5}
    market = {"current_price": 110, "atr": 2, "swing_low": 104, "ema20": 106, "trend": "BULLISH"}

    def test_trailing_and_status(self):
        result = manage_position(self.position, self.market)
        assert result["trail"]["new_sl"] == 107
        assert result["risk_reduction"]["reduction"]["amount"] == 120
        assert result["status"]["status"] == "STRONG_PROFIT"
        assert result["strategy"]["primary_method"] == "EMA_TRAIL"
        assert result["exit_alerts"] == []
        assert result["needs_attention"] is False

    def test_stop_hit_needs_attention(self):
        result = manage_position(self.position, {"current_price": 94})
        assert result["needs_attention"] is True
        assert result["exit_alerts"][0]["type"] == "STOP_HIT"

    @pytest.mark.parametrize("position", [
        {"actual_entry": -5},
        {"current_sl": 95},
        {"actual_entry": 100, "qty": -1},
    ])
    def test_invalid_position(self, position):
        result = manage_position(position, self.market)
        assert result["error"].startswith("Invalid position")


class TestPayloads:
    def test_generate_stage2_derives_trend(self, candles):
        ind = indicators.calculate(candles)
        lv = levels.calculate(ind)
        expected = candidates.generate(ind, lv, trend=determine_trend(ind))
        assert generate_stage2(ind, lv) == expected

    def test_market_payload(self, candles):
        ind = indicators.calculate(candles)
        lv = levels.calculate(ind)
        payload = build_market_payload(ind, lv)
        assert payload["priceContext"]["last"] == ind["last"]
        assert payload["trendMomentum"]["ema20_1D"] == ind["ema20"]
        assert payload["trendMomentum"]["trendBias"] == determine_trend(ind)
        assert payload["swingContext"]["pivots"] == lv
        assert payload["swingContext"]["prevSession"]["close"] == ind["prev_close"]
        assert set(payload["market_summary"]) == {"trend", "volatility", "volume"}

    def test_enrich_stock(self, candles):
        enriched = enrich_stock({"symbol": "TEST"}, candles)
        ind = indicators.calculate(candles)
        assert enriched["symbol"] == "TEST"
        assert enriched["ema20"] == ind["ema20"]
        assert enriched["entry_zone"] == zones.calculate(ind, levels.calculate(ind))["entry"]
        assert "setup_score" in enriched

    def test_enrich_stock_without_candles(self):
        enriched = enrich_stock({"symbol": "TEST"}, [])
        assert enriched["insufficientData"] is True
        assert enriched["symbol"] == "TEST"


class TestRunner:
    @pytest.fixture(autouse=True)
    def _logs_to_tmp(self, tmp_path, monkeypatch):
        monkeypatch.setattr(runner, "LOG_DIR", tmp_path / "logs")
        monkeypatch.setattr(runner, "LOGGING_CONFIG", {
            "level": "WARNING",
            "format": "%(levelname)s - %(message)s",
            "log_file": tmp_path / "logs" / "engine.log",
        })

    def test_analyze_json(self, candles, tmp_path, capsys):
        path = tmp_path / "stock.json"
        path.write_text(json.dumps({"candles": candles}))

        with pytest.raises(SystemExit) as exc:
            runner.main(["analyze", str(path), "--scan-type", "pullback"])

        assert exc.value.code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["scoring_strategy"] == "pullback"
        assert (tmp_path / "logs" / "engine.log").exists()

    def test_analyze_csv(self, candles, tmp_path, capsys):
        path = tmp_path / "stock.csv"
        pd.DataFrame(candles, columns=["timestamp", "open", "high", "low", "close", "volume"]).to_csv(
            path, index=False
        )

        with pytest.raises(SystemExit) as exc:
            runner.main(["analyze", str(path)])

        assert exc.value.code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["indicators"]["last"] == candles[-1][4]

    def test_empty_input_exits_nonzero(self, tmp_path, capsys):
        path = tmp_path / "empty.json"
        path.write_text("[]")

        with pytest.raises(SystemExit) as exc:
            runner.main(["analyze", str(path)])

        assert exc.value.code == 2
        assert json.loads(capsys.readouterr().out)["insufficientData"] is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            runner.main(["analyze", str(tmp_path / "nope.json")])
        assert exc.value.code == 1
