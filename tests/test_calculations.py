"""Tests for indicator series calculations."""

import numpy as np
import pytest

from signal_engine.services.base import InvalidConfigurationError
from signal_engine.services.indicators import calculations as calc
from signal_engine.services.indicators.streaming import ParabolicSARCalculator


class TestRollingWindows:
    """Tests for the rolling window primitives."""

    def test_rolling_sum_and_mean(self):
        values = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        sums = calc.rolling_sum(values, 3)
        means = calc.rolling_mean(values, 3)

        assert np.isnan(sums[:2]).all()
        assert list(sums[2:]) == [6.0, 9.0, 12.0]
        assert list(means[2:]) == [2.0, 3.0, 4.0]

    def test_rolling_min_max(self):
        values = np.array([3.0, 1.0, 4.0, 1.0, 5.0, 9.0])
        lows, highs = calc.rolling_min_max(values, 3)

        assert list(lows[2:]) == [1.0, 1.0, 1.0, 1.0]
        assert list(highs[2:]) == [4.0, 4.0, 5.0, 9.0]

    def test_rolling_stddev_is_population(self):
        values = np.array([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        std = calc.rolling_stddev(values, 8)
        assert std[-1] == pytest.approx(2.0)

    def test_invalid_period(self):
        with pytest.raises(InvalidConfigurationError):
            calc.rolling_mean(np.array([1.0, 2.0]), 0)
        with pytest.raises(InvalidConfigurationError):
            calc.sma(np.array([1.0, 2.0]), 2.5)
        with pytest.raises(InvalidConfigurationError):
            calc.ema(np.array([1.0, 2.0]), True)


class TestMovingAverages:
    """Tests for SMA and EMA."""

    def test_sma_defined_from_period(self, wave_closes):
        period = 20
        result = calc.sma(np.array(wave_closes), period)

        for i, value in enumerate(result):
            if i < period - 1:
                assert np.isnan(value)
            else:
                assert value == pytest.approx(np.mean(wave_closes[i - period + 1 : i + 1]))

    def test_sma_insufficient_data(self):
        result = calc.sma(np.array([100.0, 101.0, 102.0]), 10)
        assert len(result) == 3
        assert np.isnan(result).all()

    def test_ema_seed(self, wave_closes):
        period = 10
        result = calc.ema(np.array(wave_closes), period)

        assert np.isnan(result[: period - 1]).all()
        assert result[period - 1] == pytest.approx(np.mean(wave_closes[:period]))

    def test_ema_recurrence(self, wave_closes):
        period = 10
        k = 2 / (period + 1)
        result = calc.ema(np.array(wave_closes), period)

        for t in range(period, len(wave_closes)):
            assert result[t] == pytest.approx(wave_closes[t] * k + result[t - 1] * (1 - k))

    def test_ema_basic(self):
        result = calc.ema(np.arange(1.0, 11.0), 5)
        # Seed is the SMA of 1..5
        assert result[4] == 3.0
        assert result[5] > result[4]


class TestMomentum:
    """Tests for RSI, Stochastic and Stochastic RSI."""

    def test_rsi_first_value_at_period(self, wave_closes):
        result = calc.rsi(np.array(wave_closes), 14)
        assert np.isnan(result[:14]).all()
        assert not np.isnan(result[14])

    def test_rsi_bounds(self, wave_closes):
        result = calc.rsi(np.array(wave_closes), 14)
        valid = result[~np.isnan(result)]
        assert ((valid >= 0) & (valid <= 100)).all()

    def test_rsi_all_gains_is_100(self, rising_closes):
        result = calc.rsi(np.array(rising_closes), 14)
        valid = result[~np.isnan(result)]
        assert len(valid) == len(rising_closes) - 14
        assert (valid == 100.0).all()

    def test_rsi_all_losses_is_0(self, rising_closes):
        result = calc.rsi(np.array(rising_closes[::-1]), 14)
        assert calc.get_last_valid(result) == 0.0

    def test_stochastic_bounds(self, wave_candles):
        highs = np.array([c.high for c in wave_candles])
        lows = np.array([c.low for c in wave_candles])
        closes = np.array([c.close for c in wave_candles])
        k, d = calc.stochastic(highs, lows, closes, 14, 3)

        assert np.isnan(k[:13]).all()
        assert np.isnan(d[:15]).all()
        valid = k[~np.isnan(k)]
        assert ((valid >= 0) & (valid <= 100)).all()

    def test_stochastic_flat_window_is_50(self):
        flat = np.full(30, 100.0)
        k, d = calc.stochastic(flat, flat, flat, 14, 3)

        assert (k[13:] == 50.0).all()
        assert d[-1] == pytest.approx(50.0)

    def test_stochastic_d_is_mean_of_k(self, wave_candles):
        highs = np.array([c.high for c in wave_candles])
        lows = np.array([c.low for c in wave_candles])
        closes = np.array([c.close for c in wave_candles])
        k, d = calc.stochastic(highs, lows, closes, 14, 3)

        assert d[50] == pytest.approx(np.mean(k[48:51]))

    def test_stochastic_rsi_warmup(self, wave_closes):
        raw, k, d = calc.stochastic_rsi(np.array(wave_closes), 14, 14, 3, 3)

        # RSI from bar 14, full window of 14 RSI values at bar 27
        assert np.isnan(raw[:27]).all()
        assert not np.isnan(raw[27])
        assert not np.isnan(k[29])
        assert not np.isnan(d[31])
        valid = raw[~np.isnan(raw)]
        assert ((valid >= 0) & (valid <= 100)).all()

    def test_stochastic_rsi_flat_rsi_is_50(self, rising_closes):
        # RSI pinned at 100 gives a flat RSI window
        raw, k, d = calc.stochastic_rsi(np.array(rising_closes), 14, 14, 3, 3)
        assert calc.get_last_valid(raw) == 50.0
        assert calc.get_last_valid(d) == pytest.approx(50.0)


class TestMACD:
    """Tests for MACD alignment."""

    def test_macd_alignment(self, wave_closes):
        closes = np.array(wave_closes)
        line, signal, hist = calc.macd(closes, 12, 26, 9)

        assert np.isnan(line[:25]).all()
        assert not np.isnan(line[25])
        assert np.isnan(signal[:33]).all()
        assert not np.isnan(signal[33])
        assert signal[33] == pytest.approx(np.mean(line[25:34]))

        valid = ~np.isnan(hist)
        assert np.allclose(hist[valid], (line - signal)[valid])

    def test_macd_line_is_ema_difference(self, wave_closes):
        closes = np.array(wave_closes)
        line, _, _ = calc.macd(closes, 12, 26, 9)
        expected = calc.ema(closes, 12) - calc.ema(closes, 26)
        assert np.array_equal(line, expected, equal_nan=True)

    def test_macd_fast_must_be_shorter(self):
        with pytest.raises(InvalidConfigurationError):
            calc.macd(np.arange(1.0, 50.0), 26, 12, 9)


class TestBollinger:
    """Tests for Bollinger Bands."""

    def test_bands_collapse_on_constant_series(self):
        upper, middle, lower = calc.bollinger_bands(np.full(30, 100.0), 20, 2.0)

        assert np.isnan(middle[:19]).all()
        assert (upper[19:] == 100.0).all()
        assert (middle[19:] == 100.0).all()
        assert (lower[19:] == 100.0).all()

    def test_band_width(self, wave_closes):
        closes = np.array(wave_closes)
        upper, middle, lower = calc.bollinger_bands(closes, 20, 2.0)
        std = calc.rolling_stddev(closes, 20)

        assert upper[-1] == pytest.approx(middle[-1] + 2 * std[-1])
        assert lower[-1] == pytest.approx(middle[-1] - 2 * std[-1])
        assert middle[-1] == pytest.approx(np.mean(closes[-20:]))

    def test_non_positive_multiplier(self):
        with pytest.raises(InvalidConfigurationError):
            calc.bollinger_bands(np.full(30, 100.0), 20, 0)


class TestParabolicSAR:
    """Tests for the Parabolic SAR state machine."""

    def test_known_sequence(self):
        highs = np.array([10.0, 11.0, 12.0, 13.0, 9.0, 8.5])
        lows = np.array([9.0, 10.0, 11.0, 12.0, 8.0, 7.0])
        closes = np.array([9.5, 10.5, 11.5, 12.5, 8.5, 7.5])
        result = calc.parabolic_sar(highs, lows, closes)

        assert np.isnan(result[:2]).all()
        # Uptrend seeded at the lowest low, then reversal to the prior EP
        assert list(result[2:]) == [9.0, 9.06, 13.0, 13.0]

    def test_reversal_resets_af(self):
        sar = ParabolicSARCalculator(0.02, 0.2)
        for h, l, c in [(10, 9, 9.5), (11, 10, 10.5), (12, 11, 11.5), (13, 12, 12.5)]:
            sar.update(h, l, c)
        assert sar.is_uptrend
        assert sar.af == pytest.approx(0.04)

        sar.update(9, 8, 8.5)
        assert sar.reversed
        assert not sar.is_uptrend
        assert sar.af == 0.02
        assert sar.ep == 8

    def test_af_capped(self):
        sar = ParabolicSARCalculator(0.02, 0.2)
        for i in range(40):
            base = 100 + i
            sar.update(base + 1, base - 0.5, base + 0.5)
        assert sar.is_uptrend
        assert sar.af <= 0.2
        assert sar.af == pytest.approx(0.2)

    def test_clamp_and_reversal_rule(self, wave_candles):
        sar = ParabolicSARCalculator(0.02, 0.2)
        lows, highs = [], []

        for i, candle in enumerate(wave_candles):
            state = (sar.is_uptrend, sar._sar, sar.af, sar.ep)
            value = sar.update(candle.high, candle.low, candle.close)
            lows.append(candle.low)
            highs.append(candle.high)
            if i < 3:
                continue

            was_up, prev_sar, af, ep = state
            candidate = round(prev_sar + af * (ep - prev_sar), 2)
            if was_up:
                bound = min(lows[i - 1], lows[i - 2])
                clamped = min(candidate, bound)
                assert sar.reversed == (candle.low < clamped)
                if not sar.reversed:
                    assert value <= bound + 1e-9
            else:
                bound = max(highs[i - 1], highs[i - 2])
                clamped = max(candidate, bound)
                assert sar.reversed == (candle.high > clamped)
                if not sar.reversed:
                    assert value >= bound - 1e-9

            if sar.reversed:
                assert sar.af == 0.02
                assert value == round(ep, 2)

    @pytest.mark.parametrize("step,max_step", [(0, 0.2), (-0.02, 0.2), (0.3, 0.2), (float("nan"), 0.2)])
    def test_invalid_steps(self, step, max_step):
        with pytest.raises(InvalidConfigurationError):
            ParabolicSARCalculator(step, max_step)


class TestUtilities:
    def test_get_last_valid(self):
        assert calc.get_last_valid(np.array([1.0, 2.0, np.nan])) == 2.0
        assert calc.get_last_valid(np.array([np.nan, np.nan])) is None

    def test_mismatched_lengths(self):
        with pytest.raises(InvalidConfigurationError):
            calc.stochastic(np.ones(5), np.ones(4), np.ones(5))

    def test_empty_input(self):
        assert len(calc.sma(np.array([]), 3)) == 0
        assert len(calc.parabolic_sar(np.array([]), np.array([]), np.array([]))) == 0
