"""
Data Models
Pydantic models for engine inputs and rubric configuration.
"""

import math
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# ENUMS
# ============================================================================

class Trend(str, Enum):
    """Trend classification."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class ScanType(str, Enum):
    """Scan classifications that earn a candidate bonus."""
    BREAKOUT = "BREAKOUT"
    PULLBACK = "PULLBACK"
    MOMENTUM = "MOMENTUM"
    CONSOLIDATION = "CONSOLIDATION"
    MEAN_REVERSION = "MEAN_REVERSION"
    RANGE = "RANGE"


class ScoringStrategy(str, Enum):
    """Setup-score rubric selector."""
    MOMENTUM = "momentum"
    PULLBACK = "pullback"

    @classmethod
    def from_scan_type(cls, scan_type: Optional[Any]) -> "ScoringStrategy":
        """Pullback scans use the pullback rubric, everything else momentum."""
        if isinstance(scan_type, ScoringStrategy):
            return scan_type
        if isinstance(scan_type, Enum):
            scan_type = scan_type.value
        if isinstance(scan_type, str) and scan_type.strip().lower() == "pullback":
            return cls.PULLBACK
        return cls.MOMENTUM


class Severity(str, Enum):
    """Alert severity levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class AlertType(str, Enum):
    """Alert types."""
    # Exit alerts
    STOP_HIT = "STOP_HIT"
    NEAR_STOP = "NEAR_STOP"
    TARGET_HIT = "TARGET_HIT"
    NEAR_TARGET = "NEAR_TARGET"
    BEYOND_TARGET = "BEYOND_TARGET"
    HIGH_VOLATILITY = "HIGH_VOLATILITY"

    # Entry alerts
    IN_ENTRY_ZONE = "IN_ENTRY_ZONE"
    APPROACHING_ZONE = "APPROACHING_ZONE"

    # Position alerts
    DRAWDOWN = "DRAWDOWN"
    PROFIT_MILESTONE = "PROFIT_MILESTONE"


class Regime(str, Enum):
    """Broad market bias from the benchmark index."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"
    UNKNOWN = "UNKNOWN"


# ============================================================================
# INPUT MODELS
# ============================================================================

class Candle(BaseModel):
    """One OHLCV bar. Frozen once parsed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: Any
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _from_raw(cls, data: Any) -> Any:
        # Array form: [timestamp, open, high, low, close, volume]
        if isinstance(data, (list, tuple)):
            if len(data) < 5:
                raise ValueError(f"Candle array needs at least 5 fields, got {len(data)}")
            return {
                "timestamp": data[0],
                "open": data[1],
                "high": data[2],
                "low": data[3],
                "close": data[4],
                "volume": data[5] if len(data) > 5 and data[5] is not None else 0,
            }

        if isinstance(data, dict):
            def pick(*keys):
                for key in keys:
                    if data.get(key) is not None:
                        return data[key]
                return None

            volume = pick("volume", "vol", "v")
            return {
                "timestamp": pick("timestamp", "time", "date"),
                "open": pick("open", "o"),
                "high": pick("high", "h"),
                "low": pick("low", "l"),
                "close": pick("close", "c"),
                "volume": volume if volume is not None else 0,
            }

        return data

    @model_validator(mode="after")
    def _finite_prices(self) -> "Candle":
        for name in ("open", "high", "low", "close", "volume"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"Candle {name} is not finite")
        return self


class Position(BaseModel):
    """Caller-owned open position. The engine only reads it."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    actual_entry: float = Field(..., gt=0)
    current_sl: Optional[float] = None
    current_target: Optional[float] = None
    qty: int = Field(default=1, ge=0)
    days_in_trade: int = Field(default=0, ge=0)


# ============================================================================
# SCORING RUBRIC MODELS
# ============================================================================

class Band(BaseModel):
    """
    Half-open numeric band mapped to fixed points.

    [low, high) by default; (low, high] when right_closed is set, for
    "at most" tiers.
    """

    model_config = ConfigDict(frozen=True)

    low: float = -math.inf
    high: float = math.inf
    points: int
    label: str
    right_closed: bool = False

    def contains(self, value: float) -> bool:
        if self.right_closed:
            return self.low < value <= self.high
        return self.low <= value < self.high


class Factor(BaseModel):
    """One scoring factor: an input key plus its band table."""

    model_config = ConfigDict(frozen=True)

    name: str
    input: str
    max: int
    bands: Tuple[Band, ...]
    value_format: str = "{:.2f}"
    missing_reason: str = "No data"

    @model_validator(mode="after")
    def _bands_partition(self) -> "Factor":
        if not self.bands:
            raise ValueError(f"{self.name}: no bands")
        if self.bands[0].low != -math.inf or self.bands[-1].high != math.inf:
            raise ValueError(f"{self.name}: bands must cover the whole real line")
        if len({b.right_closed for b in self.bands}) > 1:
            raise ValueError(f"{self.name}: bands mix open and closed upper edges")
        for prev, nxt in zip(self.bands, self.bands[1:]):
            if prev.high != nxt.low:
                raise ValueError(f"{self.name}: gap or overlap at {prev.high}/{nxt.low}")
        if any(b.points > self.max for b in self.bands):
            raise ValueError(f"{self.name}: band points exceed max {self.max}")
        return self

    def match(self, value: float) -> Band:
        for band in self.bands:
            if band.contains(value):
                return band
        # NaN is the only value no band contains
        raise ValueError(f"{self.name}: no band matches {value!r}")


class Rubric(BaseModel):
    """A scoring rubric: ordered factors summing to at most 100."""

    model_config = ConfigDict(frozen=True)

    strategy: ScoringStrategy
    factors: Tuple[Factor, ...]

    @model_validator(mode="after")
    def _max_total(self) -> "Rubric":
        total = sum(f.max for f in self.factors)
        if total > 100:
            raise ValueError(f"{self.strategy.value} rubric max is {total}, above 100")
        return self


class ScoringConfig(BaseModel):
    """Everything the scorer and ranker read."""

    model_config = ConfigDict(frozen=True)

    # (grade, minimum score), checked in order
    grade_thresholds: Tuple[Tuple[str, float], ...]
    floor_grade: str = "D"
    eliminated_grade: str = "ELIMINATED"

    daily_rsi_max: float = 72.0
    weekly_rsi_max: float = 72.0
    pullback_rsi_min: float = 35.0

    rubrics: Tuple[Rubric, ...]

    # Candidate ranking
    rr_weight: float = 0.55
    trend_weight: float = 0.35
    distance_weight: float = 0.10
    distance_cap: float = 5.0
    good_rr: float = 1.5

    def rubric_for(self, strategy: ScoringStrategy) -> Rubric:
        for rubric in self.rubrics:
            if rubric.strategy == strategy:
                return rubric
        raise KeyError(f"No rubric configured for {strategy.value}")
