"""
Crypto Signal Engine

Technical indicators over OHLCV candles, per-indicator BUY/SELL/HOLD
classification and weighted signal aggregation.
"""

from signal_engine.services.base import InvalidConfigurationError
from signal_engine.services.indicators import (
    IndicatorBundle,
    IndicatorStream,
    build_breakdown,
    compute_indicators,
)
from signal_engine.services.signals import (
    SignalService,
    aggregate,
    classify_bar,
    classify_latest,
    classify_signals,
    get_signal_service,
)

__version__ = "0.1.0"

__all__ = [
    "InvalidConfigurationError",
    "IndicatorBundle",
    "IndicatorStream",
    "compute_indicators",
    "build_breakdown",
    "classify_signals",
    "classify_bar",
    "classify_latest",
    "aggregate",
    "SignalService",
    "get_signal_service",
]
