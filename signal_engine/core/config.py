"""
Application Configuration

All settings loaded from environment variables (prefix-free, case-insensitive)
or a local .env file.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

from signal_engine.schemas.signals import AggregationMethod


class Settings(BaseSettings):
    """Engine settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Crypto Signal Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # Redis
    redis_url: str = "redis://localhost:6379"
    enable_cache: bool = True

    # Cache TTLs (seconds)
    weights_cache_ttl: int = 300
    result_cache_ttl: int = 60

    # Aggregation: weighted_score (canonical) or majority_vote
    aggregation_method: AggregationMethod = AggregationMethod.WEIGHTED_SCORE

    # Classification thresholds
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    stoch_oversold: float = 20.0
    stoch_overbought: float = 80.0

    # Indicator periods
    sma_short_period: int = 20
    sma_long_period: int = 50
    ema_short_period: int = 20
    ema_long_period: int = 50
    rsi_period: int = 14
    macd_fast_period: int = 12
    macd_slow_period: int = 26
    macd_signal_period: int = 9
    bollinger_period: int = 20
    bollinger_multiplier: float = 2.0
    stoch_k_period: int = 14
    stoch_d_period: int = 3
    stoch_rsi_period: int = 14
    stoch_rsi_stoch_period: int = 14
    stoch_rsi_k_period: int = 3
    stoch_rsi_d_period: int = 3
    psar_step: float = 0.02
    psar_max_step: float = 0.2


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
