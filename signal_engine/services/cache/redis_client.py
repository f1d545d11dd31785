"""
Redis cache client for indicator weights and computed signals.

Weights are pushed by the external configuration store and read on every
signal request. Computed signals are memoised per latest candle so repeated
requests for the same bar skip recomputation.
"""

import json
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

import redis.asyncio as redis

from signal_engine.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: Optional[redis.Redis] = None


async def init_redis(url: Optional[str] = None) -> Optional[redis.Redis]:
    """
    Initialize Redis connection pool.
    Falls back to the in-memory store when the server is unreachable.
    """
    global _redis_pool

    if _redis_pool is not None:
        return _redis_pool

    url = url or settings.redis_url
    try:
        _redis_pool = redis.from_url(url, encoding="utf-8", decode_responses=True)
        await _redis_pool.ping()
        logger.info(f"Redis connected: {url}")
        return _redis_pool
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        _redis_pool = None
        return None


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None
        logger.info("Redis connection closed")


def get_redis() -> Optional[redis.Redis]:
    """Get the Redis connection pool."""
    return _redis_pool


def _tf(timeframe: Union[Enum, str]) -> str:
    return timeframe.value if isinstance(timeframe, Enum) else str(timeframe)


class SignalCache:
    """
    Redis-backed cache with an in-memory TTL fallback.

    Keys:
    - weights:{SYMBOL}:{timeframe} -> JSON {indicator: weight}
    - signal:{SYMBOL}:{timeframe}:{last_time}:{bars}:{mode}:{method}:{weights}:{inputs}
      -> JSON SignalOutput
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        weights_ttl: Optional[int] = None,
        result_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._redis = redis_client
        self.weights_ttl = weights_ttl if weights_ttl is not None else settings.weights_cache_ttl
        self.result_ttl = result_ttl if result_ttl is not None else settings.result_cache_ttl
        self._clock = clock
        # key -> (expires_at or None, value)
        self._memory_cache: Dict[str, Tuple[Optional[float], str]] = {}

    @property
    def redis(self) -> Optional[redis.Redis]:
        return self._redis or _redis_pool

    # ============ Keys ============

    @staticmethod
    def weights_key(symbol: str, timeframe: Union[Enum, str]) -> str:
        return f"weights:{symbol.upper()}:{_tf(timeframe)}"

    @staticmethod
    def signal_prefix(symbol: str, timeframe: Union[Enum, str]) -> str:
        return f"signal:{symbol.upper()}:{_tf(timeframe)}:"

    @classmethod
    def signal_key(
        cls,
        symbol: str,
        timeframe: Union[Enum, str],
        last_time: int,
        bars: int,
        mode: Union[Enum, str],
        method: Union[Enum, str],
        weights_digest: str,
        inputs_digest: str,
    ) -> str:
        return (
            f"{cls.signal_prefix(symbol, timeframe)}{last_time}:{bars}:"
            f"{_tf(mode)}:{_tf(method)}:{weights_digest}:{inputs_digest}"
        )

    # ============ Memory fallback ============

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self._memory_cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._memory_cache[key]
            return None
        return value

    def _memory_set(self, key: str, value: str, ex: Optional[int] = None):
        now = self._clock()
        self._memory_purge(now)
        self._memory_cache[key] = (now + ex if ex else None, value)

    def _memory_purge(self, now: float) -> int:
        """Drop every expired entry. Keys for past bars are never read again."""
        expired = [
            k for k, (expires_at, _) in self._memory_cache.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._memory_cache[key]
        return len(expired)

    def _memory_delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._memory_cache if k.startswith(prefix)]
        for key in keys:
            del self._memory_cache[key]
        return len(keys)

    async def _get(self, key: str) -> Optional[str]:
        if self.redis:
            try:
                return await self.redis.get(key)
            except Exception as e:
                logger.debug(f"Redis get {key} failed: {e}")

        return self._memory_get(key)

    async def _set(self, key: str, value: str, ttl: int) -> bool:
        if self.redis:
            try:
                await self.redis.set(key, value, ex=ttl or None)
                return True
            except Exception as e:
                logger.debug(f"Redis set {key} failed: {e}")

        self._memory_set(key, value, ex=ttl)
        return True

    # ============ Weights ============

    async def set_weights(
        self, symbol: str, timeframe: Union[Enum, str], weights: Mapping[str, float]
    ) -> bool:
        """Store the weight map for a symbol/timeframe."""
        value = json.dumps({_tf(k): v for k, v in weights.items()}, sort_keys=True)
        return await self._set(self.weights_key(symbol, timeframe), value, self.weights_ttl)

    async def get_weights(
        self, symbol: str, timeframe: Union[Enum, str]
    ) -> Optional[Dict[str, float]]:
        """Get the cached weight map. Returns None if not cached."""
        value = await self._get(self.weights_key(symbol, timeframe))
        return json.loads(value) if value else None

    # ============ Computed Signals ============

    async def cache_signal(self, key: str, output: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """Memoise a serialised SignalOutput."""
        return await self._set(key, json.dumps(output), self.result_ttl if ttl is None else ttl)

    async def get_cached_signal(self, key: str) -> Optional[Dict[str, Any]]:
        value = await self._get(key)
        return json.loads(value) if value else None

    # ============ Invalidation ============

    async def invalidate(self, symbol: str, timeframe: Union[Enum, str], weights: bool = True) -> int:
        """
        Drop memoised signals for a symbol/timeframe, and its weights unless
        `weights` is False. Returns the number of keys removed.
        """
        prefix = self.signal_prefix(symbol, timeframe)
        weights_key = self.weights_key(symbol, timeframe)
        removed = 0

        if self.redis:
            try:
                keys = [key async for key in self.redis.scan_iter(match=f"{prefix}*")]
                if weights:
                    keys.append(weights_key)
                if keys:
                    removed = await self.redis.delete(*keys)
            except Exception as e:
                logger.debug(f"Redis invalidate {prefix} failed: {e}")

        removed += self._memory_delete_prefix(prefix)
        if weights and self._memory_cache.pop(weights_key, None) is not None:
            removed += 1
        return removed

    async def clear(self) -> None:
        """Forget everything held in memory (Redis keys expire on their own)."""
        self._memory_cache.clear()


# Singleton instance
_signal_cache: Optional[SignalCache] = None


def get_signal_cache() -> SignalCache:
    """Get the signal cache singleton."""
    global _signal_cache
    if _signal_cache is None:
        _signal_cache = SignalCache()
    return _signal_cache
