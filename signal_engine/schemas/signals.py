"""
CONTRACT 3: Signal Classification & Aggregation

Input: SignalRequest (candles + optional weight map)
Output: SignalOutput (per-indicator signals + AggregateSignal)

Deterministic rules only. Identical inputs always give identical outputs.
"""

from typing import TYPE_CHECKING, Optional, Union
from enum import Enum
from pydantic import BaseModel, Field, StrictFloat, StrictInt, model_validator

from signal_engine.schemas.market import Candle, Timeframe
from signal_engine.schemas.indicators import IndicatorBreakdown

if TYPE_CHECKING:
    from signal_engine.core.config import Settings


# =============================================================================
# ENUMS
# =============================================================================


class SignalType(str, Enum):
    """Per-indicator signal for one bar."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class OverallSignal(str, Enum):
    """Aggregated verdict."""
    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"


class IndicatorName(str, Enum):
    """Indicator keys used by weight maps and signal maps."""
    SMA = "SMA"
    EMA = "EMA"
    RSI = "RSI"
    MACD = "MACD"
    BOLLINGER = "BollingerBands"
    STOCHASTIC = "Stochastic"
    STOCHASTIC_RSI = "StochasticRSI"
    PSAR = "PSAR"


class ClassificationMode(str, Enum):
    CURRENT = "current"      # relation at every bar
    CROSSOVER = "crossover"  # only the bar where the relation flips


class AggregationMethod(str, Enum):
    WEIGHTED_SCORE = "weighted_score"
    MAJORITY_VOTE = "majority_vote"


# =============================================================================
# CONFIG: SignalThresholds
# =============================================================================


class SignalThresholds(BaseModel):
    """Oscillator zones used by the classifier."""

    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    stoch_oversold: float = 20.0
    stoch_overbought: float = 80.0

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SignalThresholds":
        return cls(
            rsi_oversold=settings.rsi_oversold,
            rsi_overbought=settings.rsi_overbought,
            stoch_oversold=settings.stoch_oversold,
            stoch_overbought=settings.stoch_overbought,
        )


# =============================================================================
# OUTPUT: AggregateSignal
# =============================================================================


class AggregateSignal(BaseModel):
    """
    Combined verdict over all configured indicators.

    NEUTRAL, a zero final score and a zero strength always go together.
    """

    overall_signal: OverallSignal
    strength: float = Field(..., ge=0, le=1, description="Consensus magnitude")
    final_score: float
    total_weight: float = Field(default=0.0, ge=0)
    method: AggregationMethod = AggregationMethod.WEIGHTED_SCORE

    @model_validator(mode="after")
    def check_consistency(self) -> "AggregateSignal":
        neutral = self.overall_signal == OverallSignal.NEUTRAL
        if neutral != (self.strength == 0) or neutral != (self.final_score == 0):
            raise ValueError(
                f"inconsistent aggregate: {self.overall_signal.value} "
                f"strength={self.strength} final_score={self.final_score}"
            )
        if self.overall_signal == OverallSignal.BUY and self.final_score < 0:
            raise ValueError("BUY with negative final score")
        if self.overall_signal == OverallSignal.SELL and self.final_score > 0:
            raise ValueError("SELL with positive final score")
        return self

    @classmethod
    def neutral(
        cls,
        total_weight: float = 0.0,
        method: AggregationMethod = AggregationMethod.WEIGHTED_SCORE,
    ) -> "AggregateSignal":
        return cls(
            overall_signal=OverallSignal.NEUTRAL,
            strength=0.0,
            final_score=0.0,
            total_weight=total_weight,
            method=method,
        )


# =============================================================================
# SERVICE CONTRACT: SignalRequest / SignalOutput
# =============================================================================


class SignalRequest(BaseModel):
    """
    Request for a combined signal.
    Sent by: API layer / scheduler
    Received by: Signal Service
    """

    symbol: str = Field(..., min_length=1, description="Trading pair, e.g. BTC-USD")
    timeframe: Timeframe = Timeframe.H1
    candles: list[Candle] = Field(default_factory=list)
    # Strict so booleans and numeric strings are rejected instead of coerced
    weights: Optional[dict[str, Union[StrictFloat, StrictInt]]] = Field(
        default=None,
        description="Indicator weights; falls back to cached, then equal weights",
    )
    mode: ClassificationMode = ClassificationMode.CURRENT
    method: Optional[AggregationMethod] = Field(
        default=None, description="Defaults to the configured aggregation method"
    )
    include_breakdown: bool = False


class SignalOutput(BaseModel):
    """
    Combined signal for one symbol/timeframe at its latest bar.
    Returned by: Signal Service
    Consumed by: API layer, notification delivery
    """

    symbol: str
    timeframe: Timeframe
    time: Optional[int] = Field(default=None, description="Time of the latest candle")
    bars: int = Field(..., ge=0)
    mode: ClassificationMode
    aggregate: AggregateSignal
    signals: dict[IndicatorName, SignalType]
    weights: dict[str, float]
    weights_source: str = Field(..., description="request / cache / default")
    breakdown: Optional[IndicatorBreakdown] = None
    cached: bool = False
