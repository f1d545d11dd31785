"""Tests for signal aggregation."""

import itertools
import math

import pytest

from signal_engine.schemas import AggregationMethod, IndicatorName, OverallSignal, SignalType
from signal_engine.services.base import InvalidConfigurationError
from signal_engine.services.signals import (
    aggregate,
    equal_weights,
    normalize_weights,
    score_signal,
)


class TestScoreSignal:
    """Tests for the signal score map."""

    @pytest.mark.parametrize(
        "signal,score",
        [
            (SignalType.BUY, 1),
            (SignalType.SELL, -1),
            (SignalType.HOLD, 0),
            (OverallSignal.NEUTRAL, 0),
            ("buy", 1),
            ("Sell", -1),
            (None, 0),
        ],
    )
    def test_scores(self, signal, score):
        assert score_signal(signal) == score

    def test_unknown_signal(self):
        with pytest.raises(InvalidConfigurationError):
            score_signal("STRONG_BUY")


class TestWeightedScore:
    """Tests for the weighted score aggregation."""

    def test_single_weight_sell(self):
        result = aggregate({IndicatorName.RSI: SignalType.SELL}, {"RSI": 1})

        assert result.overall_signal == OverallSignal.SELL
        assert result.final_score == -1.0
        assert result.total_weight == 1.0
        assert result.strength == 1.0

    def test_unanimous_buy(self):
        signals = {name: SignalType.BUY for name in IndicatorName}
        result = aggregate(signals)

        assert result.overall_signal == OverallSignal.BUY
        assert result.final_score == 8.0
        assert result.total_weight == 8.0
        assert result.strength == 1.0

    def test_mixed_weights(self):
        signals = {"SMA": "BUY", "RSI": "SELL", "MACD": "BUY"}
        weights = {"SMA": 2, "RSI": 1, "MACD": 0.5}
        result = aggregate(signals, weights)

        assert result.overall_signal == OverallSignal.BUY
        assert result.final_score == 1.5
        assert result.total_weight == 3.5
        assert result.strength == round(1.5 / 3.5, 3)

    def test_missing_signal_counts_as_hold(self):
        result = aggregate({"SMA": "BUY"}, {"SMA": 1, "EMA": 1, "RSI": 2})

        assert result.final_score == 1.0
        assert result.total_weight == 4.0
        assert result.strength == 0.25

    def test_unweighted_signal_excluded(self):
        result = aggregate({"SMA": "BUY", "RSI": "SELL"}, {"RSI": 1})
        assert result.overall_signal == OverallSignal.SELL

    def test_balanced_is_neutral(self):
        result = aggregate({"SMA": "BUY", "RSI": "SELL"}, {"SMA": 1, "RSI": 1})

        assert result.overall_signal == OverallSignal.NEUTRAL
        assert result.strength == 0
        assert result.final_score == 0

    def test_empty_signals(self):
        result = aggregate({})

        assert result.overall_signal == OverallSignal.NEUTRAL
        assert result.strength == 0
        assert result.final_score == 0
        assert result.total_weight == 8.0

    def test_empty_weights(self):
        result = aggregate({"SMA": "BUY"}, {})

        assert result.overall_signal == OverallSignal.NEUTRAL
        assert result.total_weight == 0

    def test_all_zero_weights(self):
        result = aggregate({"SMA": "BUY"}, {"SMA": 0, "RSI": 0})
        assert result.overall_signal == OverallSignal.NEUTRAL

    def test_sub_precision_score_is_neutral(self):
        result = aggregate({"SMA": "BUY"}, {"SMA": 0.001, "RSI": 10})

        assert result.overall_signal == OverallSignal.NEUTRAL
        assert result.strength == 0

    def test_neutral_iff_zero_strength(self):
        names = [IndicatorName.SMA, IndicatorName.RSI, IndicatorName.MACD, IndicatorName.PSAR]
        weight_sets = [
            None,
            {"SMA": 1, "RSI": 1, "MACD": 1, "PSAR": 1},
            {"SMA": 3, "RSI": 0.5, "MACD": 0.25, "PSAR": 0},
            {"SMA": 0.004, "RSI": 0.003},
            {"MACD": 1e-6},
        ]
        choices = [SignalType.BUY, SignalType.SELL, SignalType.HOLD]

        for weights in weight_sets:
            for combo in itertools.product(choices, repeat=len(names)):
                for method in AggregationMethod:
                    result = aggregate(dict(zip(names, combo)), weights, method)
                    neutral = result.overall_signal == OverallSignal.NEUTRAL
                    assert neutral == (result.strength == 0)
                    assert neutral == (result.final_score == 0)
                    assert 0 <= result.strength <= 1


class TestMajorityVote:
    """Tests for the majority vote aggregation."""

    def test_plurality(self):
        signals = {"SMA": "BUY", "EMA": "BUY", "RSI": "SELL", "MACD": "HOLD"}
        result = aggregate(signals, method=AggregationMethod.MAJORITY_VOTE)

        assert result.overall_signal == OverallSignal.BUY
        assert result.final_score == 1.0
        assert result.strength == 0.5
        assert result.method == AggregationMethod.MAJORITY_VOTE

    def test_tie_is_neutral(self):
        signals = {"SMA": "BUY", "RSI": "SELL"}
        result = aggregate(signals, method="majority_vote")

        assert result.overall_signal == OverallSignal.NEUTRAL
        assert result.strength == 0

    def test_ignores_weight_magnitude(self):
        signals = {"SMA": "BUY", "EMA": "BUY", "RSI": "SELL"}
        result = aggregate(signals, {"SMA": 1, "EMA": 1, "RSI": 10}, AggregationMethod.MAJORITY_VOTE)
        assert result.overall_signal == OverallSignal.BUY

    def test_unconfigured_indicators_do_not_vote(self):
        signals = {"SMA": "BUY", "EMA": "BUY", "RSI": "SELL"}
        result = aggregate(signals, {"RSI": 1, "SMA": 0}, AggregationMethod.MAJORITY_VOTE)
        assert result.overall_signal == OverallSignal.SELL

    def test_empty(self):
        result = aggregate({}, method=AggregationMethod.MAJORITY_VOTE)
        assert result.overall_signal == OverallSignal.NEUTRAL

    def test_unknown_method(self):
        with pytest.raises(InvalidConfigurationError):
            aggregate({}, method="unanimous")


class TestWeightValidation:
    """Tests for weight map validation."""

    def test_none_is_equal_weights(self):
        assert normalize_weights(None) == equal_weights()
        assert set(equal_weights()) == set(IndicatorName)

    def test_string_keys_resolved(self):
        weights = normalize_weights({"BollingerBands": 2, "StochasticRSI": 1.5})
        assert weights == {IndicatorName.BOLLINGER: 2.0, IndicatorName.STOCHASTIC_RSI: 1.5}

    @pytest.mark.parametrize(
        "weights",
        [
            {"VWAP": 1},
            {"RSI": -1},
            {"RSI": math.nan},
            {"RSI": math.inf},
            {"RSI": True},
            {"RSI": "heavy"},
            ["RSI"],
        ],
    )
    def test_malformed(self, weights):
        with pytest.raises(InvalidConfigurationError):
            normalize_weights(weights)

    def test_unknown_signal_key(self):
        with pytest.raises(InvalidConfigurationError):
            aggregate({"Ichimoku": "BUY"})
