"""
Signal Engine Schema Contracts

All data exchanged between the engine and its collaborators.
"""

from signal_engine.schemas.market import Candle, Timeframe
from signal_engine.schemas.indicators import IndicatorBreakdown, IndicatorParams
from signal_engine.schemas.signals import (
    AggregateSignal,
    AggregationMethod,
    ClassificationMode,
    IndicatorName,
    OverallSignal,
    SignalOutput,
    SignalRequest,
    SignalThresholds,
    SignalType,
)

__all__ = [
    # Market
    "Candle",
    "Timeframe",
    # Indicators
    "IndicatorParams",
    "IndicatorBreakdown",
    # Signals
    "SignalType",
    "OverallSignal",
    "IndicatorName",
    "ClassificationMode",
    "AggregationMethod",
    "SignalThresholds",
    "AggregateSignal",
    "SignalRequest",
    "SignalOutput",
]
