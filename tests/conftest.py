"""Shared candle fixtures."""

import numpy as np
import pytest

DAY_MS = 86_400_000
START_MS = 1_704_067_200_000  # 2024-01-01 UTC


def make_candles(n, start=100.0, drift=0.001, vol=0.01, seed=7, base_volume=100_000):
    """Deterministic random-walk daily candles in array form, oldest first."""
    rng = np.random.RandomState(seed)
    candles = []
    close = start
    for i in range(n):
        open_ = close
        close = max(open_ * (1 + drift + rng.normal(0, vol)), 1.0)
        high = max(open_, close) * (1 + abs(rng.normal(0, vol / 2)))
        low = min(open_, close) * (1 - abs(rng.normal(0, vol / 2)))
        volume = float(base_volume * (1 + abs(rng.normal(0, 0.3))))
        candles.append([START_MS + i * DAY_MS, round(open_, 2), round(high, 2),
                        round(low, 2), round(close, 2), round(volume)])
    return candles


@pytest.fixture
def candles():
    """250 bars of gently rising prices."""
    return make_candles(250)


@pytest.fixture
def short_candles():
    """Too few bars for the long averages."""
    return make_candles(10)


@pytest.fixture
def rising_benchmark():
    """Benchmark in a steady uptrend, well above its 50 EMA."""
    return make_candles(120, start=20_000.0, drift=0.004, vol=0.002, seed=11)


@pytest.fixture
def falling_benchmark():
    return make_candles(120, start=20_000.0, drift=-0.004, vol=0.002, seed=13)


@pytest.fixture
def bullish_indicators():
    return {
        "last": 100.0,
        "atr": 2.0,
        "ema20": 98.0,
        "ema50": 95.0,
        "sma200": 90.0,
        "rsi": 58.0,
        "volume_vs_avg": 1.6,
        "atr_pct": 2.0,
    }


@pytest.fixture
def scenario_levels():
    return {"pivot": 97.0, "r1": 101.0, "r2": 104.0, "s1": 94.0}
