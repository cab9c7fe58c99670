from conftest import make_candles

from swing_engine.regime import check_market_regime, get_regime_warning


class TestMarketRegime:
    def test_bullish(self, rising_benchmark):
        result = check_market_regime(rising_benchmark)
        assert result["regime"] == "BULLISH"
        assert result["distance_pct"] > 1
        assert result["benchmark_last"] == rising_benchmark[-1][4]

    def test_bearish(self, falling_benchmark):
        result = check_market_regime(falling_benchmark)
        assert result["regime"] == "BEARISH"
        assert result["distance_pct"] < -1

    def test_neutral_when_flat(self):
        flat = [[i * 86_400_000, 100, 100, 100, 100, 1000] for i in range(80)]
        result = check_market_regime(flat)
        assert result["regime"] == "NEUTRAL"
        assert result["distance_pct"] == 0

    def test_insufficient_history(self):
        result = check_market_regime(make_candles(30))
        assert result["regime"] == "UNKNOWN"
        assert result["ema50"] is None

    def test_no_data(self):
        assert check_market_regime(None)["regime"] == "UNKNOWN"


class TestRegimeWarning:
    bearish = {"regime": "BEARISH", "distance_pct": -3.2}
    bullish = {"regime": "BULLISH", "distance_pct": 4.1}
    neutral = {"regime": "NEUTRAL", "distance_pct": 0.3}

    def test_buy_in_bearish_market(self):
        warning = get_regime_warning("BUY", self.bearish)
        assert warning["code"] == "BEARISH_REGIME"
        assert warning["severity"] == "high"
        assert "3.2%" in warning["text"]

    def test_sell_in_bullish_market(self):
        warning = get_regime_warning("SELL", self.bullish)
        assert warning["code"] == "BULLISH_REGIME"
        assert warning["severity"] == "medium"

    def test_neutral_applies_to_any_side(self):
        assert get_regime_warning("BUY", self.neutral)["code"] == "CHOPPY_REGIME"
        assert get_regime_warning(None, self.neutral)["severity"] == "low"

    def test_aligned_setup_has_no_warning(self):
        assert get_regime_warning("BUY", self.bullish) is None
        assert get_regime_warning("SELL", self.bearish) is None
        assert get_regime_warning("BUY", None) is None
