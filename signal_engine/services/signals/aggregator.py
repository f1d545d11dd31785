"""
Signal Aggregator

Combines per-indicator signals into one AggregateSignal.

Weighted score (default):
    final_score  = sum(score_i * w_i)  over the weight map
    total_weight = sum(w_i)
    strength     = |final_score| / total_weight

Majority vote (alternate): plurality of BUY vs SELL among the configured
indicators, ignoring weight magnitudes.

A result that rounds to zero is NEUTRAL with strength 0.
"""

import logging
import math
from collections.abc import Mapping
from enum import Enum
from numbers import Real
from typing import Optional, Union

from signal_engine.schemas.signals import (
    AggregateSignal,
    AggregationMethod,
    IndicatorName,
    OverallSignal,
)
from signal_engine.services.base import InvalidConfigurationError

logger = logging.getLogger(__name__)

AGGREGATOR = "SignalAggregator"

SIGNAL_SCORES = {
    "BUY": 1,
    "SELL": -1,
    "HOLD": 0,
    "NEUTRAL": 0,
}

SCORE_DECIMALS = 2
STRENGTH_DECIMALS = 3

WeightMap = Mapping[Union[IndicatorName, str], float]


def score_signal(signal) -> int:
    """+1 / -1 / 0 for BUY / SELL / HOLD. Strings are case-insensitive; None is HOLD."""
    if signal is None:
        return 0
    key = signal.value if isinstance(signal, Enum) else str(signal)
    try:
        return SIGNAL_SCORES[key.upper()]
    except KeyError:
        raise InvalidConfigurationError(AGGREGATOR, f"unknown signal {signal!r}", {"signal": signal})


def resolve_indicator(key: Union[IndicatorName, str]) -> IndicatorName:
    try:
        return IndicatorName(key)
    except ValueError:
        raise InvalidConfigurationError(
            AGGREGATOR,
            f"unknown indicator {key!r}",
            {"indicator": key, "known": [n.value for n in IndicatorName]},
        )


def equal_weights() -> dict[IndicatorName, float]:
    """Weight 1 for every known indicator."""
    return {name: 1.0 for name in IndicatorName}


def normalize_weights(weights: Optional[WeightMap]) -> dict[IndicatorName, float]:
    """
    Validate a weight map and key it by IndicatorName.

    None means equal weights. Raises InvalidConfigurationError for unknown
    indicators and for weights that are negative, NaN, infinite, boolean or
    not numbers at all.
    """
    if weights is None:
        return equal_weights()
    if not isinstance(weights, Mapping):
        raise InvalidConfigurationError(AGGREGATOR, f"weights must be a mapping, got {type(weights).__name__}")

    normalized = {}
    for key, weight in weights.items():
        name = resolve_indicator(key)
        if isinstance(weight, bool) or not isinstance(weight, Real):
            raise InvalidConfigurationError(AGGREGATOR, f"weight for {name.value} is not a number: {weight!r}")
        weight = float(weight)
        if not math.isfinite(weight) or weight < 0:
            raise InvalidConfigurationError(
                AGGREGATOR, f"weight for {name.value} must be finite and non-negative, got {weight!r}"
            )
        normalized[name] = weight
    return normalized


def _normalize_signals(signals: Mapping) -> dict[IndicatorName, int]:
    return {resolve_indicator(key): score_signal(signal) for key, signal in signals.items()}


# =============================================================================
# METHODS
# =============================================================================


def _weighted_score(scores: dict[IndicatorName, int], weights: dict[IndicatorName, float]) -> AggregateSignal:
    total_weight = math.fsum(weights.values())
    if total_weight <= 0:
        return AggregateSignal.neutral(total_weight=total_weight)

    # Configured indicator without a signal counts as HOLD
    raw = math.fsum(scores.get(name, 0) * weight for name, weight in weights.items())
    final_score = round(raw, SCORE_DECIMALS)
    strength = min(round(abs(raw) / total_weight, STRENGTH_DECIMALS), 1.0)
    if final_score == 0 or strength == 0:
        return AggregateSignal.neutral(total_weight=total_weight)

    return AggregateSignal(
        overall_signal=OverallSignal.BUY if final_score > 0 else OverallSignal.SELL,
        strength=strength,
        final_score=final_score,
        total_weight=total_weight,
        method=AggregationMethod.WEIGHTED_SCORE,
    )


def _majority_vote(scores: dict[IndicatorName, int], weights: dict[IndicatorName, float]) -> AggregateSignal:
    votes = [score for name, score in scores.items() if weights.get(name, 0) > 0]
    total = len(votes)
    buys = votes.count(1)
    sells = votes.count(-1)
    if buys == sells:
        return AggregateSignal.neutral(total_weight=float(total), method=AggregationMethod.MAJORITY_VOTE)

    return AggregateSignal(
        overall_signal=OverallSignal.BUY if buys > sells else OverallSignal.SELL,
        strength=round(max(buys, sells) / total, STRENGTH_DECIMALS),
        final_score=float(buys - sells),
        total_weight=float(total),
        method=AggregationMethod.MAJORITY_VOTE,
    )


def aggregate(
    signals: Mapping,
    weights: Optional[WeightMap] = None,
    method: Union[AggregationMethod, str] = AggregationMethod.WEIGHTED_SCORE,
) -> AggregateSignal:
    """
    Combine a {indicator: signal} map into one verdict.

    Args:
        signals: Indicator name (or IndicatorName) to BUY / SELL / HOLD
        weights: Indicator weights; None means equal weights, {} means none configured
        method: weighted_score or majority_vote

    Returns:
        AggregateSignal, NEUTRAL when nothing is configured or the vote is even
    """
    try:
        method = AggregationMethod(method)
    except ValueError:
        raise InvalidConfigurationError(AGGREGATOR, f"unknown aggregation method {method!r}")

    scores = _normalize_signals(signals)
    weight_map = normalize_weights(weights)

    if method == AggregationMethod.MAJORITY_VOTE:
        result = _majority_vote(scores, weight_map)
    else:
        result = _weighted_score(scores, weight_map)

    logger.debug(
        f"Aggregated {len(scores)} signals via {method.value}: "
        f"{result.overall_signal.value} ({result.final_score:+.2f}, strength {result.strength})"
    )
    return result
