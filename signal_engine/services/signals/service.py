"""
Signal Service Implementation

End-to-end signal generation for one symbol/timeframe:
weights -> indicators -> per-indicator signals -> aggregate.

Only the cache is awaited; all math runs inline and is deterministic.
"""

import hashlib
import json
import logging
from typing import Mapping, Optional, Sequence, Union

from signal_engine.core.config import Settings, get_settings
from signal_engine.schemas.indicators import IndicatorParams
from signal_engine.schemas.market import Candle, Timeframe
from signal_engine.schemas.signals import (
    AggregationMethod,
    ClassificationMode,
    IndicatorName,
    SignalOutput,
    SignalRequest,
    SignalThresholds,
)
from signal_engine.services.cache import SignalCache, get_signal_cache
from signal_engine.services.indicators import build_breakdown, compute_indicators
from signal_engine.services.signals.aggregator import aggregate, normalize_weights
from signal_engine.services.signals.classifier import classify_latest
from signal_engine.services.signals.interface import SignalServiceInterface

logger = logging.getLogger(__name__)


def _tf(timeframe: Union[Timeframe, str]) -> str:
    return timeframe.value if isinstance(timeframe, Timeframe) else timeframe


def weights_digest(weights: Mapping[IndicatorName, float]) -> str:
    """Short stable hash of a normalized weight map."""
    payload = json.dumps({k.value: v for k, v in weights.items()}, sort_keys=True)
    return hashlib.sha1(payload.encode()).hexdigest()[:12]


def inputs_digest(
    candles: Sequence[Candle], params: IndicatorParams, thresholds: SignalThresholds
) -> str:
    """Short stable hash of the candle values and the engine configuration."""
    digest = hashlib.sha1()
    digest.update(params.model_dump_json().encode())
    digest.update(thresholds.model_dump_json().encode())
    for c in candles:
        digest.update(f"{c.time},{c.open!r},{c.high!r},{c.low!r},{c.close!r},{c.volume!r};".encode())
    return digest.hexdigest()[:16]


class SignalService(SignalServiceInterface):
    """
    Signal Service.

    Weight resolution order: request -> cache -> equal weights.
    Results are memoised per (symbol, timeframe, latest bar, bar count,
    mode, method, weights, candle values and engine params) when a cache
    is available.
    """

    def __init__(self, cache: Optional[SignalCache] = None, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        if cache is None and self._settings.enable_cache:
            cache = get_signal_cache()
        self._cache = cache
        self.params = IndicatorParams.from_settings(self._settings)
        self.thresholds = SignalThresholds.from_settings(self._settings)

    @property
    def name(self) -> str:
        return "SignalService"

    async def _resolve_weights(self, request: SignalRequest) -> tuple[Optional[Mapping], str]:
        if request.weights is not None:
            return request.weights, "request"
        if self._cache is not None:
            cached = await self._cache.get_weights(request.symbol, request.timeframe)
            if cached is not None:
                return cached, "cache"
        return None, "default"

    def generate(
        self,
        symbol: str,
        timeframe: Timeframe,
        candles: Sequence[Candle],
        weights: Optional[Mapping] = None,
        mode: ClassificationMode = ClassificationMode.CURRENT,
        method: AggregationMethod = AggregationMethod.WEIGHTED_SCORE,
        weights_source: str = "default",
    ) -> SignalOutput:
        """Synchronous core: compute, classify and aggregate the latest bar."""
        weight_map = normalize_weights(weights)
        bundle = compute_indicators(candles, self.params)
        signals = classify_latest(bundle, mode, self.thresholds)
        result = aggregate(signals, weight_map, method)

        return SignalOutput(
            symbol=symbol,
            timeframe=timeframe,
            time=bundle.last_time,
            bars=bundle.bars,
            mode=mode,
            aggregate=result,
            signals=signals,
            weights={name.value: w for name, w in weight_map.items()},
            weights_source=weights_source,
            breakdown=build_breakdown(bundle),
        )

    async def execute(self, input_data: SignalRequest) -> SignalOutput:
        """Generate the combined signal for the request's latest candle."""
        request = await self.validate_input(input_data)
        method = request.method or self._settings.aggregation_method
        weights, source = await self._resolve_weights(request)
        weight_map = normalize_weights(weights)

        key = None
        if self._cache is not None and request.candles:
            key = SignalCache.signal_key(
                request.symbol,
                request.timeframe,
                request.candles[-1].time,
                len(request.candles),
                request.mode,
                method,
                weights_digest(weight_map),
                inputs_digest(request.candles, self.params, self.thresholds),
            )
            cached = await self._cache.get_cached_signal(key)
            if cached is not None:
                logger.debug(f"Signal cache hit: {key}")
                output = SignalOutput.model_validate(cached)
                return self._shape(output, request, source, cached=True)

        output = self.generate(
            request.symbol,
            request.timeframe,
            request.candles,
            weight_map,
            request.mode,
            method,
            source,
        )
        if key is not None:
            await self._cache.cache_signal(key, output.model_dump(mode="json"))

        logger.info(
            f"{request.symbol} {request.timeframe.value}: {output.aggregate.overall_signal.value} "
            f"(score {output.aggregate.final_score:+.2f}, strength {output.aggregate.strength}, "
            f"{output.bars} bars, weights from {source})"
        )
        return self._shape(output, request, source, cached=False)

    @staticmethod
    def _shape(output: SignalOutput, request: SignalRequest, source: str, cached: bool) -> SignalOutput:
        update = {"cached": cached, "weights_source": source}
        if not request.include_breakdown:
            update["breakdown"] = None
        return output.model_copy(update=update)

    async def update_weights(
        self,
        symbol: str,
        timeframe: Union[Timeframe, str],
        weights: Mapping[str, float],
    ) -> dict[str, float]:
        """Validate and store a weight map, dropping signals computed with the old one."""
        normalized = {name.value: w for name, w in normalize_weights(weights).items()}
        if self._cache is None:
            logger.warning(f"No cache configured; weights for {symbol} not stored")
            return normalized

        await self._cache.invalidate(symbol, timeframe, weights=False)
        await self._cache.set_weights(symbol, timeframe, normalized)
        logger.info(f"Updated weights for {symbol.upper()} {_tf(timeframe)}: {normalized}")
        return normalized

    async def invalidate(self, symbol: str, timeframe: Union[Timeframe, str]) -> int:
        if self._cache is None:
            return 0
        removed = await self._cache.invalidate(symbol, timeframe)
        logger.info(f"Invalidated {removed} cache entries for {symbol.upper()} {_tf(timeframe)}")
        return removed

    async def health_check(self) -> bool:
        """Signal service is always healthy (pure computation, cache optional)."""
        return True


# Singleton instance
_service_instance: Optional[SignalService] = None


def get_signal_service() -> SignalService:
    """Get or create signal service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = SignalService()
    return _service_instance
