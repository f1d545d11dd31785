"""
Indicator Engine

CONTRACT:
    Input:  list[Candle] + IndicatorParams
    Output: IndicatorBundle (per-bar series), IndicatorBreakdown (one bar)

RESPONSIBILITIES:
    - Trend: SMA, EMA, MACD, Parabolic SAR
    - Momentum: RSI, Stochastic, Stochastic RSI
    - Volatility: Bollinger Bands
    - Incremental updates via IndicatorStream

Pure NumPy. All math is deterministic and reproducible.
"""

from signal_engine.services.indicators.bundle import (
    BollingerSeries,
    IndicatorBundle,
    MACDSeries,
    StochasticRSISeries,
    StochasticSeries,
    build_breakdown,
    check_order,
    compute_indicators,
)
from signal_engine.services.indicators.streaming import IndicatorStream, check_params

__all__ = [
    "IndicatorBundle",
    "MACDSeries",
    "BollingerSeries",
    "StochasticSeries",
    "StochasticRSISeries",
    "IndicatorStream",
    "compute_indicators",
    "build_breakdown",
    "check_params",
    "check_order",
]
