"""
Market Data Gateway

CONTRACT:
    FetchLatestCandle(symbol, timeframe) -> Candle
    FetchHistory(symbol, timeframe, n)   -> list[Candle]

RESPONSIBILITIES:
    - Fetch closed candles from Binance (or the seeded synthetic walk)
    - Enforce the multi-tier request quota locally
    - Trip a circuit breaker on consecutive upstream failures
    - Retry transient failures a bounded number of times

Raw transport errors never leave this package.
"""

from quantsignal.core.config import Settings
from quantsignal.services.base import InvalidParametersError
from quantsignal.services.data_ingestion.interface import MarketDataGateway
from quantsignal.services.data_ingestion.binance_adapter import BinanceGateway
from quantsignal.services.data_ingestion.mock_data import SyntheticGateway
from quantsignal.services.data_ingestion.rate_limiter import RateLimiter
from quantsignal.services.data_ingestion.guarded import GuardedGateway


def create_gateway(settings: Settings) -> MarketDataGateway:
    """Provider adapter selected by MARKET_DATA_PROVIDER (unguarded)."""
    provider = settings.market_data_provider.lower()
    if provider == "binance":
        return BinanceGateway(settings.market_data_base_url, settings.market_data_api_key)
    if provider == "synthetic":
        return SyntheticGateway(seed=settings.synthetic_seed)
    raise InvalidParametersError(
        "DataIngestion", f"Unknown market data provider {settings.market_data_provider!r}"
    )


__all__ = [
    "MarketDataGateway",
    "BinanceGateway",
    "SyntheticGateway",
    "RateLimiter",
    "GuardedGateway",
    "create_gateway",
]
