"""
Indicator Bundle

Computes every indicator series for one candle sequence in a single pass
and exposes them by identifier (e.g. "sma20", "ema50", "rsi14", "macd").
Arrays are index-aligned with the candles and frozen after construction.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, Union

import numpy as np

from signal_engine.schemas.indicators import IndicatorBreakdown, IndicatorParams
from signal_engine.schemas.market import Candle
from signal_engine.services.base import InvalidConfigurationError
from signal_engine.services.indicators import calculations as calc
from signal_engine.services.indicators.streaming import ENGINE, check_params

logger = logging.getLogger(__name__)


def _freeze(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class MACDSeries:
    line: np.ndarray
    signal: np.ndarray
    histogram: np.ndarray


@dataclass(frozen=True, eq=False)
class BollingerSeries:
    upper: np.ndarray
    middle: np.ndarray
    lower: np.ndarray


@dataclass(frozen=True, eq=False)
class StochasticSeries:
    k: np.ndarray
    d: np.ndarray


@dataclass(frozen=True, eq=False)
class StochasticRSISeries:
    stoch_rsi: np.ndarray
    k: np.ndarray
    d: np.ndarray


Series = Union[np.ndarray, MACDSeries, BollingerSeries, StochasticSeries, StochasticRSISeries]


@dataclass(frozen=True, eq=False)
class IndicatorBundle(Mapping):
    """
    All indicator series for one candle sequence.

    Attribute access (`bundle.rsi`) and identifier lookup (`bundle["rsi14"]`)
    return the same arrays. Length of every array equals `bars`.
    """

    params: IndicatorParams
    time: np.ndarray
    close: np.ndarray
    high: np.ndarray
    low: np.ndarray
    sma_short: np.ndarray
    sma_long: np.ndarray
    ema_short: np.ndarray
    ema_long: np.ndarray
    rsi: np.ndarray
    macd: MACDSeries
    bollinger: BollingerSeries
    stochastic: StochasticSeries
    stochastic_rsi: StochasticRSISeries
    psar: np.ndarray
    _index: dict = field(init=False, repr=False)

    # Identity comparison; Mapping.__eq__ would compare arrays elementwise
    __eq__ = object.__eq__
    __hash__ = object.__hash__

    def __post_init__(self):
        p = self.params
        object.__setattr__(self, "_index", {
            f"sma{p.sma_short}": self.sma_short,
            f"sma{p.sma_long}": self.sma_long,
            f"ema{p.ema_short}": self.ema_short,
            f"ema{p.ema_long}": self.ema_long,
            f"rsi{p.rsi_period}": self.rsi,
            "macd": self.macd,
            "bollinger": self.bollinger,
            "stochastic": self.stochastic,
            "stochastic_rsi": self.stochastic_rsi,
            "psar": self.psar,
        })

    def __getitem__(self, key: str) -> Series:
        return self._index[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    @property
    def bars(self) -> int:
        return len(self.close)

    @property
    def last_time(self) -> Optional[int]:
        return int(self.time[-1]) if self.bars else None


def check_order(candles: Sequence[Candle]) -> None:
    """Raise unless candle times are strictly ascending."""
    for prev, curr in zip(candles, candles[1:]):
        if curr.time <= prev.time:
            raise InvalidConfigurationError(
                ENGINE,
                f"candles must be in ascending time order ({curr.time} follows {prev.time})",
                {"time": curr.time, "previous": prev.time},
            )


def compute_indicators(
    candles: Sequence[Candle], params: Optional[IndicatorParams] = None
) -> IndicatorBundle:
    """
    Compute the full indicator bundle.

    Fewer candles than a period simply leaves that series NaN; empty input
    yields empty arrays. Bad parameters or unordered candles raise
    InvalidConfigurationError before any math runs.
    """
    params = check_params(params or IndicatorParams())
    check_order(candles)

    data = calc.OHLCVData.from_candles(candles)
    closes, highs, lows = data.closes, data.highs, data.lows

    macd_line, macd_signal, macd_hist = calc.macd(closes, params.macd_fast, params.macd_slow, params.macd_signal)
    bb_upper, bb_middle, bb_lower = calc.bollinger_bands(closes, params.bollinger_period, params.bollinger_multiplier)
    stoch_k, stoch_d = calc.stochastic(highs, lows, closes, params.stoch_k_period, params.stoch_d_period)
    srsi, srsi_k, srsi_d = calc.stochastic_rsi(
        closes,
        params.stoch_rsi_period,
        params.stoch_rsi_stoch_period,
        params.stoch_rsi_k_period,
        params.stoch_rsi_d_period,
    )

    bundle = IndicatorBundle(
        params=params,
        time=_freeze(data.timestamps),
        close=_freeze(closes),
        high=_freeze(highs),
        low=_freeze(lows),
        sma_short=_freeze(calc.sma(closes, params.sma_short)),
        sma_long=_freeze(calc.sma(closes, params.sma_long)),
        ema_short=_freeze(calc.ema(closes, params.ema_short)),
        ema_long=_freeze(calc.ema(closes, params.ema_long)),
        rsi=_freeze(calc.rsi(closes, params.rsi_period)),
        macd=MACDSeries(_freeze(macd_line), _freeze(macd_signal), _freeze(macd_hist)),
        bollinger=BollingerSeries(_freeze(bb_upper), _freeze(bb_middle), _freeze(bb_lower)),
        stochastic=StochasticSeries(_freeze(stoch_k), _freeze(stoch_d)),
        stochastic_rsi=StochasticRSISeries(_freeze(srsi), _freeze(srsi_k), _freeze(srsi_d)),
        psar=_freeze(calc.parabolic_sar(highs, lows, closes, params.psar_step, params.psar_max_step)),
    )
    logger.debug(f"Computed indicator bundle over {bundle.bars} bars")
    return bundle


def _value(arr: np.ndarray, index: int) -> Optional[float]:
    value = float(arr[index])
    return None if np.isnan(value) else value


def build_breakdown(bundle: IndicatorBundle, index: int = -1) -> IndicatorBreakdown:
    """Project one bar of the bundle (latest by default). NaN becomes None."""
    if bundle.bars == 0:
        return IndicatorBreakdown()
    if not -bundle.bars <= index < bundle.bars:
        raise IndexError(f"bar index {index} out of range for {bundle.bars} bars")

    i = index % bundle.bars
    return IndicatorBreakdown(
        index=i,
        time=int(bundle.time[i]),
        close=float(bundle.close[i]),
        sma_short=_value(bundle.sma_short, i),
        sma_long=_value(bundle.sma_long, i),
        ema_short=_value(bundle.ema_short, i),
        ema_long=_value(bundle.ema_long, i),
        rsi=_value(bundle.rsi, i),
        macd_line=_value(bundle.macd.line, i),
        macd_signal=_value(bundle.macd.signal, i),
        macd_histogram=_value(bundle.macd.histogram, i),
        bb_upper=_value(bundle.bollinger.upper, i),
        bb_middle=_value(bundle.bollinger.middle, i),
        bb_lower=_value(bundle.bollinger.lower, i),
        stoch_k=_value(bundle.stochastic.k, i),
        stoch_d=_value(bundle.stochastic.d, i),
        stoch_rsi=_value(bundle.stochastic_rsi.stoch_rsi, i),
        stoch_rsi_k=_value(bundle.stochastic_rsi.k, i),
        stoch_rsi_d=_value(bundle.stochastic_rsi.d, i),
        psar=_value(bundle.psar, i),
    )
