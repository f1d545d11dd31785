"""
Signal Service

CONTRACT:
    Input:  SignalRequest (candles + optional weights)
    Output: SignalOutput

RESPONSIBILITIES:
    - Classify every indicator as BUY / SELL / HOLD (current state or crossover)
    - Aggregate per-indicator signals into one verdict with a strength
    - Resolve weights (request, cache, equal weights) and memoise results

Deterministic rules only. No model inference.
"""

from signal_engine.services.signals.aggregator import (
    SIGNAL_SCORES,
    aggregate,
    equal_weights,
    normalize_weights,
    score_signal,
)
from signal_engine.services.signals.classifier import (
    classify_bar,
    classify_latest,
    classify_signals,
)
from signal_engine.services.signals.interface import SignalServiceInterface
from signal_engine.services.signals.service import SignalService, get_signal_service

__all__ = [
    "SIGNAL_SCORES",
    "aggregate",
    "equal_weights",
    "normalize_weights",
    "score_signal",
    "classify_signals",
    "classify_bar",
    "classify_latest",
    "SignalServiceInterface",
    "SignalService",
    "get_signal_service",
]
