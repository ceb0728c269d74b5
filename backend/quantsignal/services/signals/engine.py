"""
Signal Engine wiring.

Builds the object graph once from Settings: one RateLimiter shared by the
guarded gateway and the status query, one history store, one signal cache,
one scheduler.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from quantsignal.core.config import Settings
from quantsignal.schemas.market import TradingStyle, normalize_symbol, parse_timeframe
from quantsignal.services.cache import PriceHistoryStore, SignalCache, SignalMirror
from quantsignal.services.cache.redis_client import get_redis
from quantsignal.services.confluence import ConfluenceConfig, ConfluenceEngine
from quantsignal.services.data_ingestion import (
    GuardedGateway,
    MarketDataGateway,
    RateLimiter,
    create_gateway,
)
from quantsignal.services.indicators import get_indicator_service
from quantsignal.services.risk import MonteCarloSimulator
from quantsignal.services.signals.pipeline import SignalPipeline
from quantsignal.services.signals.scheduler import SignalScheduler
from quantsignal.services.signals.service import SignalQueryService

logger = logging.getLogger(__name__)


@dataclass
class SignalEngine:
    limiter: RateLimiter
    gateway: GuardedGateway
    store: PriceHistoryStore
    cache: SignalCache
    scheduler: SignalScheduler
    query: SignalQueryService

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: Optional[MarketDataGateway] = None,
        limiter: Optional[RateLimiter] = None,
    ) -> "SignalEngine":
        symbols = [normalize_symbol(s) for s in settings.symbols]
        timeframes = [parse_timeframe(tf) for tf in settings.timeframes]
        style = TradingStyle(settings.trading_style.lower())

        limiter = limiter or RateLimiter.from_settings(settings)
        gateway = GuardedGateway.from_settings(
            provider or create_gateway(settings), limiter, settings
        )

        confluence = ConfluenceEngine(ConfluenceConfig(ideal_history=settings.ideal_history))
        pipeline = SignalPipeline(
            get_indicator_service(),
            confluence,
            MonteCarloSimulator(
                iterations=settings.monte_carlo_iterations,
                steps=settings.monte_carlo_steps,
                horizon_bars=settings.monte_carlo_horizon_bars,
            ),
        )

        mirror = None
        if settings.redis_enabled and get_redis() is not None:
            mirror = SignalMirror(ttl=settings.redis_snapshot_ttl_seconds)

        store = PriceHistoryStore(settings.history_retention)
        cache = SignalCache(mirror)
        scheduler = SignalScheduler(
            gateway,
            store,
            cache,
            pipeline,
            symbols,
            timeframes,
            interval_seconds=settings.refresh_interval_seconds,
            max_concurrency=settings.max_concurrent_pairs,
        )
        query = SignalQueryService(cache, limiter, confluence, default_style=style)

        return cls(
            limiter=limiter,
            gateway=gateway,
            store=store,
            cache=cache,
            scheduler=scheduler,
            query=query,
        )

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.gateway.close()


# Process-wide instance, set by the application lifespan
_signal_engine: Optional[SignalEngine] = None


def set_signal_engine(engine: Optional[SignalEngine]) -> None:
    global _signal_engine
    _signal_engine = engine


def get_signal_engine() -> SignalEngine:
    """Get the running signal engine."""
    if _signal_engine is None:
        raise RuntimeError("Signal engine has not been started")
    return _signal_engine
