"""
Streaming Indicator Accumulators

One small mutable accumulator per indicator, advanced one bar at a time.
Every batch function in `calculations` is a fold over these classes, so a
series computed in one pass and a series built candle-by-candle are
bit-identical.

`update(...)` returns the value for the bar just pushed, or None while the
indicator is still warming up.
"""

import logging
import math
from collections import deque
from numbers import Real
from typing import Optional

import numpy as np

from signal_engine.schemas.indicators import IndicatorBreakdown, IndicatorParams
from signal_engine.schemas.market import Candle
from signal_engine.services.base import InvalidConfigurationError, require_period

logger = logging.getLogger(__name__)

ENGINE = "IndicatorEngine"

# Fallbacks for degenerate windows
FLAT_STOCHASTIC = 50.0
NO_LOSS_RSI = 100.0


def _require_positive(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value) or value <= 0:
        raise InvalidConfigurationError(
            ENGINE, f"{name} must be a positive finite number, got {value!r}", {name: value}
        )
    return float(value)


def check_params(params: IndicatorParams) -> IndicatorParams:
    """Range-check every period and constant. Raises InvalidConfigurationError."""
    for name in (
        "sma_short", "sma_long", "ema_short", "ema_long", "rsi_period",
        "macd_fast", "macd_slow", "macd_signal", "bollinger_period",
        "stoch_k_period", "stoch_d_period", "stoch_rsi_period",
        "stoch_rsi_stoch_period", "stoch_rsi_k_period", "stoch_rsi_d_period",
    ):
        require_period(ENGINE, name, getattr(params, name))

    for short, long in (("sma_short", "sma_long"), ("ema_short", "ema_long"), ("macd_fast", "macd_slow")):
        if getattr(params, short) >= getattr(params, long):
            raise InvalidConfigurationError(
                ENGINE,
                f"{short} ({getattr(params, short)}) must be shorter than {long} ({getattr(params, long)})",
            )

    _require_positive("bollinger_multiplier", params.bollinger_multiplier)
    _require_positive("psar_step", params.psar_step)
    _require_positive("psar_max_step", params.psar_max_step)
    if params.psar_step > params.psar_max_step:
        raise InvalidConfigurationError(ENGINE, "psar_step cannot exceed psar_max_step")
    return params


def percent_k(value: float, lowest: float, highest: float) -> float:
    """Position of value inside [lowest, highest] scaled to 0-100. Flat range -> 50."""
    if highest == lowest:
        return FLAT_STOCHASTIC
    return (value - lowest) / (highest - lowest) * 100


def rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return NO_LOSS_RSI
    rs = avg_gain / avg_loss
    return 100 - 100 / (1 + rs)


def population_stddev(window: np.ndarray, mean: float) -> float:
    """Standard deviation dividing by N, centred on the given mean."""
    return float(np.sqrt(np.sum((window - mean) ** 2) / len(window)))


# =============================================================================
# WINDOW PRIMITIVES
# =============================================================================


class RollingWindow:
    """Fixed-size trailing window with an add/subtract running sum."""

    def __init__(self, size: int):
        self.size = require_period(ENGINE, "size", size)
        self._data: deque = deque(maxlen=self.size)
        self._sum = 0.0

    def add(self, value: float) -> None:
        if len(self._data) == self.size:
            self._sum -= self._data[0]
        self._data.append(value)
        self._sum += value

    def __len__(self) -> int:
        return len(self._data)

    def is_full(self) -> bool:
        return len(self._data) == self.size

    @property
    def total(self) -> float:
        return self._sum

    def mean(self) -> Optional[float]:
        return self._sum / self.size if self.is_full() else None

    def max(self) -> Optional[float]:
        return max(self._data) if self._data else None

    def min(self) -> Optional[float]:
        return min(self._data) if self._data else None

    def values(self) -> np.ndarray:
        return np.fromiter(self._data, dtype=np.float64, count=len(self._data))


class SMACalculator:
    def __init__(self, period: int):
        self.period = require_period(ENGINE, "period", period)
        self._window = RollingWindow(self.period)
        self.value: Optional[float] = None

    def update(self, value: float) -> Optional[float]:
        self._window.add(value)
        self.value = self._window.mean()
        return self.value


class EMACalculator:
    """
    EMA seeded with the simple mean of the first `period` values.

    k = 2 / (period + 1); out[t] = v[t] * k + out[t-1] * (1 - k)
    """

    def __init__(self, period: int):
        self.period = require_period(ENGINE, "period", period)
        self.k = 2 / (self.period + 1)
        self._seed_sum = 0.0
        self._count = 0
        self.value: Optional[float] = None

    def update(self, value: float) -> Optional[float]:
        if self.value is None:
            self._count += 1
            self._seed_sum += value
            if self._count == self.period:
                self.value = self._seed_sum / self.period
            return self.value
        self.value = value * self.k + self.value * (1 - self.k)
        return self.value


# =============================================================================
# MOMENTUM
# =============================================================================


class RSICalculator:
    """
    Relative Strength Index with Wilder smoothing.

    The first value appears once `period` price changes have been seen
    (bar index `period`). Their plain averages seed avg_gain/avg_loss; after
    that avg = (avg * (period - 1) + current) / period.
    """

    def __init__(self, period: int = 14):
        self.period = require_period(ENGINE, "period", period)
        self._prev_close: Optional[float] = None
        self._changes = 0
        self._gain_sum = 0.0
        self._loss_sum = 0.0
        self.avg_gain: Optional[float] = None
        self.avg_loss: Optional[float] = None
        self.value: Optional[float] = None

    def update(self, close: float) -> Optional[float]:
        if self._prev_close is None:
            self._prev_close = close
            return None

        change = close - self._prev_close
        self._prev_close = close
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0

        if self.avg_gain is None:
            self._changes += 1
            self._gain_sum += gain
            self._loss_sum += loss
            if self._changes < self.period:
                return None
            self.avg_gain = self._gain_sum / self.period
            self.avg_loss = self._loss_sum / self.period
        else:
            self.avg_gain = (self.avg_gain * (self.period - 1) + gain) / self.period
            self.avg_loss = (self.avg_loss * (self.period - 1) + loss) / self.period

        self.value = rsi_from_averages(self.avg_gain, self.avg_loss)
        return self.value


class StochasticCalculator:
    """%K over the trailing high/low window, %D = mean of the last d_period %K."""

    def __init__(self, k_period: int = 14, d_period: int = 3):
        self.k_period = require_period(ENGINE, "k_period", k_period)
        self.d_period = require_period(ENGINE, "d_period", d_period)
        self._highs = RollingWindow(self.k_period)
        self._lows = RollingWindow(self.k_period)
        self._k_values = RollingWindow(self.d_period)
        self.k: Optional[float] = None
        self.d: Optional[float] = None

    def update(self, high: float, low: float, close: float) -> tuple[Optional[float], Optional[float]]:
        self._highs.add(high)
        self._lows.add(low)
        if not self._highs.is_full():
            return None, None

        self.k = percent_k(close, self._lows.min(), self._highs.max())
        self._k_values.add(self.k)
        self.d = self._k_values.mean()
        return self.k, self.d


class StochasticRSICalculator:
    """
    Stochastic formula applied to the RSI series, then smoothed twice.

    Returns (raw StochRSI, %K, %D); %K = SMA(k_period) of the raw value,
    %D = SMA(d_period) of %K.
    """

    def __init__(
        self,
        rsi_period: int = 14,
        stoch_period: int = 14,
        k_period: int = 3,
        d_period: int = 3,
    ):
        self._rsi = RSICalculator(rsi_period)
        self._rsi_window = RollingWindow(require_period(ENGINE, "stoch_period", stoch_period))
        self._k = SMACalculator(k_period)
        self._d = SMACalculator(d_period)
        self.stoch_rsi: Optional[float] = None
        self.k: Optional[float] = None
        self.d: Optional[float] = None

    def update(self, close: float) -> tuple[Optional[float], Optional[float], Optional[float]]:
        rsi = self._rsi.update(close)
        if rsi is None:
            return None, None, None

        self._rsi_window.add(rsi)
        if not self._rsi_window.is_full():
            return None, None, None

        self.stoch_rsi = percent_k(rsi, self._rsi_window.min(), self._rsi_window.max())
        self.k = self._k.update(self.stoch_rsi)
        self.d = self._d.update(self.k) if self.k is not None else None
        return self.stoch_rsi, self.k, self.d


# =============================================================================
# TREND / VOLATILITY
# =============================================================================


class MACDCalculator:
    """MACD line = EMA(fast) - EMA(slow); signal = EMA of the defined line values."""

    def __init__(self, fast_period: int = 12, slow_period: int = 26, signal_period: int = 9):
        self._fast = EMACalculator(fast_period)
        self._slow = EMACalculator(slow_period)
        self._signal = EMACalculator(signal_period)
        if self._fast.period >= self._slow.period:
            raise InvalidConfigurationError(
                ENGINE, f"fast_period ({fast_period}) must be shorter than slow_period ({slow_period})"
            )

    def update(self, close: float) -> tuple[Optional[float], Optional[float], Optional[float]]:
        fast = self._fast.update(close)
        slow = self._slow.update(close)
        if fast is None or slow is None:
            return None, None, None

        line = fast - slow
        signal = self._signal.update(line)
        histogram = line - signal if signal is not None else None
        return line, signal, histogram


class BollingerCalculator:
    """Middle = SMA; bands = middle +/- multiplier * population stddev of the same window."""

    def __init__(self, period: int = 20, multiplier: float = 2.0):
        self.period = require_period(ENGINE, "period", period)
        self.multiplier = _require_positive("multiplier", multiplier)
        self._window = RollingWindow(self.period)

    def update(self, close: float) -> tuple[Optional[float], Optional[float], Optional[float]]:
        self._window.add(close)
        middle = self._window.mean()
        if middle is None:
            return None, None, None

        width = self.multiplier * population_stddev(self._window.values(), middle)
        return middle + width, middle, middle - width


class ParabolicSARCalculator:
    """
    Parabolic SAR state machine.

    Seeded from the first three bars: uptrend when close[2] > close[1].
    Each step moves the SAR toward the extreme point by AF, rounds to
    2 decimals, clamps it behind the two previous bars, and flips the
    trend when price pierces it.
    """

    def __init__(self, step: float = 0.02, max_step: float = 0.2):
        self.step = _require_positive("step", step)
        self.max_step = _require_positive("max_step", max_step)
        if self.step > self.max_step:
            raise InvalidConfigurationError(ENGINE, "step cannot exceed max_step")

        self._highs: deque = deque(maxlen=3)
        self._lows: deque = deque(maxlen=3)
        self._closes: deque = deque(maxlen=3)
        self._sar: Optional[float] = None
        self.is_uptrend: Optional[bool] = None
        self.ep: Optional[float] = None
        self.af = self.step
        self.reversed = False
        self.value: Optional[float] = None

    def update(self, high: float, low: float, close: float) -> Optional[float]:
        self._highs.append(high)
        self._lows.append(low)
        self._closes.append(close)

        if self._sar is None:
            if len(self._closes) < 3:
                return None
            self._initialise()
            return self.value

        self._advance(high, low)
        return self.value

    def _initialise(self) -> None:
        self.is_uptrend = self._closes[2] > self._closes[1]
        if self.is_uptrend:
            self.ep = max(self._highs)
            self._sar = min(self._lows)
        else:
            self.ep = min(self._lows)
            self._sar = max(self._highs)
        self.af = self.step
        self.reversed = False
        self.value = round(self._sar, 2)

    def _advance(self, high: float, low: float) -> None:
        # deque holds bars i-2, i-1, i
        candidate = round(self._sar + self.af * (self.ep - self._sar), 2)
        self.reversed = False

        if self.is_uptrend:
            candidate = min(candidate, self._lows[1], self._lows[0])
            if low < candidate:
                self.is_uptrend = False
                candidate = self.ep
                self.ep = low
                self.af = self.step
                self.reversed = True
            elif high > self.ep:
                self.ep = high
                self.af = min(self.af + self.step, self.max_step)
        else:
            candidate = max(candidate, self._highs[1], self._highs[0])
            if high > candidate:
                self.is_uptrend = True
                candidate = self.ep
                self.ep = high
                self.af = self.step
                self.reversed = True
            elif low < self.ep:
                self.ep = low
                self.af = min(self.af + self.step, self.max_step)

        self.value = round(candidate, 2)
        self._sar = self.value


# =============================================================================
# INCREMENTAL ENGINE
# =============================================================================


class IndicatorStream:
    """
    Every bundle indicator advanced one candle at a time.

    Use when a single new candle is appended to a series that was already
    processed; the result for bar i equals a full recomputation at bar i.
    """

    def __init__(self, params: Optional[IndicatorParams] = None):
        self.params = check_params(params or IndicatorParams())
        p = self.params
        self._sma_short = SMACalculator(p.sma_short)
        self._sma_long = SMACalculator(p.sma_long)
        self._ema_short = EMACalculator(p.ema_short)
        self._ema_long = EMACalculator(p.ema_long)
        self._rsi = RSICalculator(p.rsi_period)
        self._macd = MACDCalculator(p.macd_fast, p.macd_slow, p.macd_signal)
        self._bollinger = BollingerCalculator(p.bollinger_period, p.bollinger_multiplier)
        self._stochastic = StochasticCalculator(p.stoch_k_period, p.stoch_d_period)
        self._stochastic_rsi = StochasticRSICalculator(
            p.stoch_rsi_period, p.stoch_rsi_stoch_period, p.stoch_rsi_k_period, p.stoch_rsi_d_period
        )
        self._psar = ParabolicSARCalculator(p.psar_step, p.psar_max_step)
        self.bars = 0
        self.last_time: Optional[int] = None

    def update(self, candle: Candle) -> IndicatorBreakdown:
        if self.last_time is not None and candle.time <= self.last_time:
            logger.warning(f"Rejected out-of-order candle at {candle.time} (last {self.last_time})")
            raise InvalidConfigurationError(
                ENGINE,
                f"candle time {candle.time} is not after {self.last_time}",
                {"time": candle.time, "last_time": self.last_time},
            )

        close, high, low = candle.close, candle.high, candle.low
        macd_line, macd_signal, macd_histogram = self._macd.update(close)
        bb_upper, bb_middle, bb_lower = self._bollinger.update(close)
        stoch_k, stoch_d = self._stochastic.update(high, low, close)
        stoch_rsi, stoch_rsi_k, stoch_rsi_d = self._stochastic_rsi.update(close)

        snapshot = IndicatorBreakdown(
            index=self.bars,
            time=candle.time,
            close=close,
            sma_short=self._sma_short.update(close),
            sma_long=self._sma_long.update(close),
            ema_short=self._ema_short.update(close),
            ema_long=self._ema_long.update(close),
            rsi=self._rsi.update(close),
            macd_line=macd_line,
            macd_signal=macd_signal,
            macd_histogram=macd_histogram,
            bb_upper=bb_upper,
            bb_middle=bb_middle,
            bb_lower=bb_lower,
            stoch_k=stoch_k,
            stoch_d=stoch_d,
            stoch_rsi=stoch_rsi,
            stoch_rsi_k=stoch_rsi_k,
            stoch_rsi_d=stoch_rsi_d,
            psar=self._psar.update(high, low, close),
        )
        self.bars += 1
        self.last_time = candle.time
        return snapshot
