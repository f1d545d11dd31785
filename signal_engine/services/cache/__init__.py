"""
Cache module for the signal engine.

Provides Redis caching for indicator weights and computed signals.
"""

from signal_engine.services.cache.redis_client import (
    SignalCache,
    get_signal_cache,
    get_redis,
    init_redis,
    close_redis,
)

__all__ = [
    "SignalCache",
    "get_signal_cache",
    "get_redis",
    "init_redis",
    "close_redis",
]
