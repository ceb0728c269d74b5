"""
Application Configuration

All settings loaded from environment variables.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    app_name: str = "QuantSignal Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS (dashboard origins allowed to read the API)
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Redis (optional mirror of published signal snapshots)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379"
    redis_snapshot_ttl_seconds: int = 900

    # Market data provider: "binance" or "synthetic"
    market_data_provider: str = "binance"
    market_data_base_url: str = "https://api.binance.com"
    market_data_api_key: Optional[str] = None
    synthetic_seed: int = 7

    # Gateway call policy
    request_timeout_seconds: float = 10.0
    max_retries: int = 2
    retry_base_delay_seconds: float = 0.5
    retry_max_delay_seconds: float = 8.0

    # Quota limits (requests per window)
    requests_per_minute: int = 30
    requests_per_hour: int = 600
    requests_per_day: int = 1000
    requests_per_month: int = 30000
    # Short burst tier, off unless set (e.g. 3 calls per 10s on strict free tiers)
    burst_limit: Optional[int] = None
    burst_window_seconds: float = 10.0

    # Circuit breaker
    circuit_failure_threshold: int = 30
    circuit_cooldown_seconds: float = 60.0

    # Tracked matrix
    symbols: list[str] = ["BTC/USDT", "ETH/USDT"]
    timeframes: list[str] = ["15m", "1h", "4h", "1d"]

    # Scheduler
    refresh_interval_seconds: float = 180.0
    max_concurrent_pairs: int = 4
    history_retention: int = 250
    ideal_history: int = 60

    # Confluence
    trading_style: str = "swing"  # Options: swing, scalp

    # Monte Carlo
    monte_carlo_iterations: int = 1000
    monte_carlo_steps: int = 24
    monte_carlo_horizon_bars: int = 24

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
