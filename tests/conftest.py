"""Shared candle fixtures."""

import math

import pytest

from signal_engine.schemas import Candle


def make_candles(closes, start=1_700_000_000, step=3600, spread=0.5):
    """Build candles around a close series; open is the previous close."""
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        open_ = prev
        high = max(open_, close) + spread
        low = max(min(open_, close) - spread, 0.01)
        candles.append(Candle(time=start + i * step, open=open_, high=high, low=low, close=close, volume=10.0))
        prev = close
    return candles


@pytest.fixture
def constant_candles():
    """100 flat candles at 100 (open=high=low=close)."""
    return [
        Candle(time=1_700_000_000 + i * 60, open=100, high=100, low=100, close=100, volume=1)
        for i in range(100)
    ]


@pytest.fixture
def wave_closes():
    """Deterministic oscillating series with a slow drift."""
    return [round(100 + 10 * math.sin(i / 5) + 0.1 * i, 2) for i in range(200)]


@pytest.fixture
def wave_candles(wave_closes):
    return make_candles(wave_closes)


@pytest.fixture
def rising_closes():
    return [100.0 + i for i in range(60)]


@pytest.fixture
def candle_factory():
    return make_candles
