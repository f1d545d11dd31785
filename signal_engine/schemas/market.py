"""
CONTRACT 1: Candle Input

Input: ordered list of Candle for one (symbol, timeframe) pair

Candles arrive from the external feed already ordered by time. The engine
treats `time` as an opaque ordering key (epoch seconds or milliseconds,
fixed per feed), never as a stride, so gaps are tolerated.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class Timeframe(str, Enum):
    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"
    W1 = "1w"


# =============================================================================
# INPUT: Candle
# =============================================================================


class Candle(BaseModel):
    """Single OHLCV candlestick. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    time: int = Field(..., description="Epoch seconds or ms, unit fixed per feed")
    open: float = Field(..., gt=0)
    high: float = Field(..., gt=0)
    low: float = Field(..., gt=0)
    close: float = Field(..., gt=0)
    volume: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def check_range(self) -> "Candle":
        if self.high < self.low:
            raise ValueError(f"high {self.high} is below low {self.low}")
        if self.high < max(self.open, self.close):
            raise ValueError("high must be >= open and close")
        if self.low > min(self.open, self.close):
            raise ValueError("low must be <= open and close")
        return self
