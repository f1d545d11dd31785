"""
Technical Indicator Calculations

NumPy series for every indicator in the bundle.
All math is deterministic. Warm-up positions are NaN.

Each function folds the matching accumulator from `streaming` across the
input, so batch and incremental results never drift apart.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from signal_engine.schemas.market import Candle
from signal_engine.services.base import InvalidConfigurationError
from signal_engine.services.indicators.streaming import (
    ENGINE,
    BollingerCalculator,
    EMACalculator,
    MACDCalculator,
    ParabolicSARCalculator,
    RollingWindow,
    RSICalculator,
    SMACalculator,
    StochasticCalculator,
    StochasticRSICalculator,
    population_stddev,
)


@dataclass
class OHLCVData:
    """OHLCV data arrays for calculations."""

    timestamps: np.ndarray
    opens: np.ndarray
    highs: np.ndarray
    lows: np.ndarray
    closes: np.ndarray
    volumes: np.ndarray

    @classmethod
    def from_candles(cls, candles: Sequence[Candle]) -> "OHLCVData":
        return cls(
            timestamps=np.array([c.time for c in candles], dtype=np.int64),
            opens=np.array([c.open for c in candles], dtype=np.float64),
            highs=np.array([c.high for c in candles], dtype=np.float64),
            lows=np.array([c.low for c in candles], dtype=np.float64),
            closes=np.array([c.close for c in candles], dtype=np.float64),
            volumes=np.array([c.volume for c in candles], dtype=np.float64),
        )

    def __len__(self) -> int:
        return len(self.closes)


# =============================================================================
# FOLD HELPERS
# =============================================================================


def _columns(*series) -> list[list[float]]:
    # Plain floats keep rounding identical to the incremental path
    columns = [np.asarray(s, dtype=np.float64).tolist() for s in series]
    if len({len(c) for c in columns}) > 1:
        raise InvalidConfigurationError(ENGINE, "input series must have equal length")
    return columns


def _fold(update: Callable, *series) -> np.ndarray:
    columns = _columns(*series)
    result = np.full(len(columns[0]), np.nan)
    for i, args in enumerate(zip(*columns)):
        value = update(*args)
        if value is not None:
            result[i] = value
    return result


def _fold_many(update: Callable, width: int, *series) -> tuple[np.ndarray, ...]:
    columns = _columns(*series)
    results = tuple(np.full(len(columns[0]), np.nan) for _ in range(width))
    for i, args in enumerate(zip(*columns)):
        for out, value in zip(results, update(*args)):
            if value is not None:
                out[i] = value
    return results


# =============================================================================
# ROLLING WINDOWS
# =============================================================================


def rolling_sum(data: np.ndarray, period: int) -> np.ndarray:
    """Trailing sum, defined from index period - 1."""
    window = RollingWindow(period)

    def push(value: float) -> Optional[float]:
        window.add(value)
        return window.total if window.is_full() else None

    return _fold(push, data)


def rolling_mean(data: np.ndarray, period: int) -> np.ndarray:
    return _fold(SMACalculator(period).update, data)


def rolling_max(data: np.ndarray, period: int) -> np.ndarray:
    window = RollingWindow(period)

    def push(value: float) -> Optional[float]:
        window.add(value)
        return window.max() if window.is_full() else None

    return _fold(push, data)


def rolling_min(data: np.ndarray, period: int) -> np.ndarray:
    window = RollingWindow(period)

    def push(value: float) -> Optional[float]:
        window.add(value)
        return window.min() if window.is_full() else None

    return _fold(push, data)


def rolling_min_max(data: np.ndarray, period: int) -> tuple[np.ndarray, np.ndarray]:
    """(min, max) over the same trailing window."""
    return rolling_min(data, period), rolling_max(data, period)


def rolling_stddev(data: np.ndarray, period: int) -> np.ndarray:
    """Population standard deviation (divide by N) of the trailing window."""
    window = RollingWindow(period)

    def push(value: float) -> Optional[float]:
        window.add(value)
        mean = window.mean()
        return population_stddev(window.values(), mean) if mean is not None else None

    return _fold(push, data)


# =============================================================================
# MOVING AVERAGES
# =============================================================================


def sma(data: np.ndarray, period: int) -> np.ndarray:
    """Simple Moving Average."""
    return rolling_mean(data, period)


def ema(data: np.ndarray, period: int) -> np.ndarray:
    """Exponential Moving Average, seeded with the SMA of the first `period` values."""
    return _fold(EMACalculator(period).update, data)


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


def rsi(closes: np.ndarray, period: int = 14) -> np.ndarray:
    """Relative Strength Index (Wilder). First value at index `period`."""
    return _fold(RSICalculator(period).update, closes)


def stochastic(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    k_period: int = 14,
    d_period: int = 3,
) -> tuple[np.ndarray, np.ndarray]:
    """Stochastic Oscillator. Returns (%K, %D)."""
    return _fold_many(StochasticCalculator(k_period, d_period).update, 2, highs, lows, closes)


def stochastic_rsi(
    closes: np.ndarray,
    rsi_period: int = 14,
    stoch_period: int = 14,
    k_period: int = 3,
    d_period: int = 3,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Stochastic RSI. Returns (raw, %K, %D)."""
    calculator = StochasticRSICalculator(rsi_period, stoch_period, k_period, d_period)
    return _fold_many(calculator.update, 3, closes)


def macd(
    closes: np.ndarray,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    MACD indicator.

    Returns: (macd_line, signal_line, histogram)

    The signal EMA runs over the defined MACD values only and is written
    back at their original positions.
    """
    calculator = MACDCalculator(fast_period, slow_period, signal_period)
    return _fold_many(calculator.update, 3, closes)


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


def bollinger_bands(
    closes: np.ndarray, period: int = 20, std_dev: float = 2.0
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Bollinger Bands.

    Returns: (upper_band, middle_band, lower_band)
    """
    return _fold_many(BollingerCalculator(period, std_dev).update, 3, closes)


# =============================================================================
# TREND INDICATORS
# =============================================================================


def parabolic_sar(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    step: float = 0.02,
    max_step: float = 0.2,
) -> np.ndarray:
    """Parabolic SAR. Defined from index 2, values rounded to 2 decimals."""
    return _fold(ParabolicSARCalculator(step, max_step).update, highs, lows, closes)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_last_valid(arr: np.ndarray) -> Optional[float]:
    """Get last non-NaN value from array."""
    valid = arr[~np.isnan(arr)]
    return float(valid[-1]) if len(valid) > 0 else None
