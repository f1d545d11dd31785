"""
Signal Classifier

Turns indicator series into per-bar BUY / SELL / HOLD signals.

Two modes:
    CURRENT   - where the relation stands at each bar (e.g. fast MA above slow MA)
    CROSSOVER - only the bar on which the relation flips

Any comparison involving a missing (NaN) value is False, so warm-up bars
classify as HOLD. Deterministic and side-effect free.
"""

from typing import Optional, Union

import numpy as np

from signal_engine.schemas.signals import (
    ClassificationMode,
    IndicatorName,
    SignalThresholds,
    SignalType,
)
from signal_engine.services.base import InvalidConfigurationError
from signal_engine.services.indicators.bundle import IndicatorBundle

BUY, HOLD, SELL = 1, 0, -1

_CODE_TO_SIGNAL = {BUY: SignalType.BUY, HOLD: SignalType.HOLD, SELL: SignalType.SELL}


def resolve_mode(mode: Union[ClassificationMode, str]) -> ClassificationMode:
    try:
        return ClassificationMode(mode)
    except ValueError:
        raise InvalidConfigurationError(
            "SignalClassifier", f"unknown classification mode {mode!r}", {"mode": mode}
        )


# =============================================================================
# VECTOR RULES
# =============================================================================


def _codes(buy: np.ndarray, sell: np.ndarray) -> np.ndarray:
    codes = np.zeros(len(buy), dtype=np.int8)
    codes[buy] = BUY
    codes[sell] = SELL
    return codes


def _previous(series: np.ndarray) -> np.ndarray:
    shifted = np.full(len(series), np.nan)
    shifted[1:] = series[:-1]
    return shifted


def _crosses_above(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    diff = a - b
    prev = _previous(diff)
    return (prev <= 0) & (diff > 0)


def _crosses_below(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    diff = a - b
    prev = _previous(diff)
    return (prev >= 0) & (diff < 0)


def _relation(a: np.ndarray, b: np.ndarray, mode: ClassificationMode) -> np.ndarray:
    """BUY when a is (or moves) above b, SELL when below."""
    if mode == ClassificationMode.CROSSOVER:
        return _codes(_crosses_above(a, b), _crosses_below(a, b))
    return _codes(a > b, a < b)


def _rsi(rsi: np.ndarray, mode: ClassificationMode, t: SignalThresholds) -> np.ndarray:
    if mode == ClassificationMode.CROSSOVER:
        prev = _previous(rsi)
        return _codes(
            (prev <= t.rsi_oversold) & (rsi > t.rsi_oversold),
            (prev >= t.rsi_overbought) & (rsi < t.rsi_overbought),
        )
    return _codes(rsi < t.rsi_oversold, rsi > t.rsi_overbought)


def _stochastic(k: np.ndarray, d: np.ndarray, mode: ClassificationMode, t: SignalThresholds) -> np.ndarray:
    oversold = (k < t.stoch_oversold) & (d < t.stoch_oversold)
    overbought = (k > t.stoch_overbought) & (d > t.stoch_overbought)
    if mode == ClassificationMode.CROSSOVER:
        return _codes(_crosses_above(k, d) & oversold, _crosses_below(k, d) & overbought)
    return _codes((k > d) & oversold, (k < d) & overbought)


def _stochastic_rsi(k: np.ndarray, d: np.ndarray, mode: ClassificationMode, t: SignalThresholds) -> np.ndarray:
    oversold = k < t.stoch_oversold
    overbought = k > t.stoch_overbought
    if mode == ClassificationMode.CROSSOVER:
        return _codes(_crosses_above(k, d) & oversold, _crosses_below(k, d) & overbought)
    return _codes((k > d) & oversold, (k < d) & overbought)


def _bollinger(close: np.ndarray, upper: np.ndarray, lower: np.ndarray, mode: ClassificationMode) -> np.ndarray:
    # Mean reversion: below the lower band is a buy
    if mode == ClassificationMode.CROSSOVER:
        return _codes(_crosses_below(close, lower), _crosses_above(close, upper))
    return _codes(close < lower, close > upper)


def _classify_codes(
    bundle: IndicatorBundle, mode: ClassificationMode, thresholds: SignalThresholds
) -> dict[IndicatorName, np.ndarray]:
    close = bundle.close
    with np.errstate(invalid="ignore"):
        return {
            IndicatorName.SMA: _relation(bundle.sma_short, bundle.sma_long, mode),
            IndicatorName.EMA: _relation(close, bundle.ema_short, mode),
            IndicatorName.RSI: _rsi(bundle.rsi, mode, thresholds),
            IndicatorName.MACD: _relation(bundle.macd.line, bundle.macd.signal, mode),
            IndicatorName.BOLLINGER: _bollinger(close, bundle.bollinger.upper, bundle.bollinger.lower, mode),
            IndicatorName.STOCHASTIC: _stochastic(bundle.stochastic.k, bundle.stochastic.d, mode, thresholds),
            IndicatorName.STOCHASTIC_RSI: _stochastic_rsi(
                bundle.stochastic_rsi.k, bundle.stochastic_rsi.d, mode, thresholds
            ),
            IndicatorName.PSAR: _relation(close, bundle.psar, mode),
        }


# =============================================================================
# PUBLIC API
# =============================================================================


def classify_signals(
    bundle: IndicatorBundle,
    mode: Union[ClassificationMode, str] = ClassificationMode.CURRENT,
    thresholds: Optional[SignalThresholds] = None,
) -> dict[IndicatorName, list[SignalType]]:
    """Per-indicator signal series, each the same length as the bundle."""
    mode = resolve_mode(mode)
    codes = _classify_codes(bundle, mode, thresholds or SignalThresholds())
    return {name: [_CODE_TO_SIGNAL[int(c)] for c in series] for name, series in codes.items()}


def classify_bar(
    bundle: IndicatorBundle,
    index: int,
    mode: Union[ClassificationMode, str] = ClassificationMode.CURRENT,
    thresholds: Optional[SignalThresholds] = None,
) -> dict[IndicatorName, SignalType]:
    """Signals at a single bar. Negative indexes count from the end."""
    if not -bundle.bars <= index < bundle.bars:
        raise IndexError(f"bar index {index} out of range for {bundle.bars} bars")
    mode = resolve_mode(mode)
    codes = _classify_codes(bundle, mode, thresholds or SignalThresholds())
    return {name: _CODE_TO_SIGNAL[int(series[index])] for name, series in codes.items()}


def classify_latest(
    bundle: IndicatorBundle,
    mode: Union[ClassificationMode, str] = ClassificationMode.CURRENT,
    thresholds: Optional[SignalThresholds] = None,
) -> dict[IndicatorName, SignalType]:
    """Signals at the last bar; every indicator is HOLD for an empty bundle."""
    if bundle.bars == 0:
        resolve_mode(mode)
        return {name: SignalType.HOLD for name in IndicatorName}
    return classify_bar(bundle, -1, mode, thresholds)
