"""
CONTRACT 2: Indicator Engine

Input: list[Candle] + IndicatorParams
Output: IndicatorBundle (in-memory series) and IndicatorBreakdown (projection)

This module only declares the parameter and projection contracts.
The series themselves are NumPy arrays held by the bundle.
"""

from typing import TYPE_CHECKING, Optional
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from signal_engine.core.config import Settings


# =============================================================================
# INPUT: IndicatorParams
# =============================================================================


class IndicatorParams(BaseModel):
    """
    Lookback periods and constants for every indicator in the bundle.

    Values are range-checked by the engine at the call boundary
    (see `check_params`), not here, so that every bad value surfaces
    as the same configuration error.
    """

    model_config = ConfigDict(frozen=True)

    sma_short: int = 20
    sma_long: int = 50
    ema_short: int = 20
    ema_long: int = 50
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bollinger_period: int = 20
    bollinger_multiplier: float = 2.0
    stoch_k_period: int = 14
    stoch_d_period: int = 3
    stoch_rsi_period: int = 14
    stoch_rsi_stoch_period: int = 14
    stoch_rsi_k_period: int = 3
    stoch_rsi_d_period: int = 3
    psar_step: float = 0.02
    psar_max_step: float = 0.2

    @classmethod
    def from_settings(cls, settings: "Settings") -> "IndicatorParams":
        return cls(
            sma_short=settings.sma_short_period,
            sma_long=settings.sma_long_period,
            ema_short=settings.ema_short_period,
            ema_long=settings.ema_long_period,
            rsi_period=settings.rsi_period,
            macd_fast=settings.macd_fast_period,
            macd_slow=settings.macd_slow_period,
            macd_signal=settings.macd_signal_period,
            bollinger_period=settings.bollinger_period,
            bollinger_multiplier=settings.bollinger_multiplier,
            stoch_k_period=settings.stoch_k_period,
            stoch_d_period=settings.stoch_d_period,
            stoch_rsi_period=settings.stoch_rsi_period,
            stoch_rsi_stoch_period=settings.stoch_rsi_stoch_period,
            stoch_rsi_k_period=settings.stoch_rsi_k_period,
            stoch_rsi_d_period=settings.stoch_rsi_d_period,
            psar_step=settings.psar_step,
            psar_max_step=settings.psar_max_step,
        )


# =============================================================================
# OUTPUT: IndicatorBreakdown
# =============================================================================


class IndicatorBreakdown(BaseModel):
    """
    Raw indicator values at a single bar.

    Read-only projection of an IndicatorBundle for research views.
    `None` means the indicator had not accumulated enough history.
    """

    index: Optional[int] = Field(default=None, description="Bar index, None for empty input")
    time: Optional[int] = None
    close: Optional[float] = None

    sma_short: Optional[float] = None
    sma_long: Optional[float] = None
    ema_short: Optional[float] = None
    ema_long: Optional[float] = None

    rsi: Optional[float] = Field(default=None, ge=0, le=100)

    macd_line: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None

    bb_upper: Optional[float] = None
    bb_middle: Optional[float] = None
    bb_lower: Optional[float] = None

    stoch_k: Optional[float] = Field(default=None, ge=0, le=100)
    stoch_d: Optional[float] = None

    stoch_rsi: Optional[float] = Field(default=None, ge=0, le=100)
    stoch_rsi_k: Optional[float] = None
    stoch_rsi_d: Optional[float] = None

    psar: Optional[float] = None
