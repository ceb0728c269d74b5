"""
QuantSignal Engine - FastAPI Application

Main entry point for the query API. The lifespan handler builds the signal
engine and runs its scheduler for the life of the process.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quantsignal.core.config import settings
from quantsignal.core.logging_config import setup_logging
from quantsignal.api.v1 import router as api_v1_router
from quantsignal.services.cache import init_redis, close_redis
from quantsignal.services.signals import SignalEngine, get_signal_engine, set_signal_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    setup_logging(settings.log_level)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}, provider: {settings.market_data_provider}")

    if settings.redis_enabled:
        redis_client = await init_redis(settings.redis_url)
        if redis_client is None:
            logger.info("Redis unavailable - snapshots kept in memory only")

    engine = SignalEngine.from_settings(settings)
    set_signal_engine(engine)
    engine.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await engine.stop()
    set_signal_engine(None)
    await close_redis()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    QuantSignal Signal & Risk Engine API

    ## Architecture
    - **Market Data Gateway**: rate-limited, circuit-broken price fetching
    - **Indicator Engine**: RSI, MACD, Bollinger, Stochastic, ATR (NumPy)
    - **Confluence Engine**: weighted multi-indicator / multi-timeframe scoring
    - **Risk Engine**: per-timeframe stop/target table and Monte Carlo simulation

    ## Core Principles
    - A pair that cannot be computed is reported unavailable, never guessed
    - Snapshots are published atomically once per scheduler cycle
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        engine = get_signal_engine()
    except RuntimeError:
        return {"status": "starting", "app": settings.app_name, "version": settings.app_version}

    snapshot = engine.cache.current()
    limiter = engine.limiter.status()
    scheduler = engine.scheduler
    return {
        "status": "healthy" if scheduler.is_running else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "scheduler_running": scheduler.is_running,
        "cycle": snapshot.cycle,
        "last_cycle_at": scheduler.last_cycle_at.isoformat() if scheduler.last_cycle_at else None,
        "signals": len(snapshot.signals),
        "unavailable": len(snapshot.errors),
        "circuit_state": limiter.circuit_state.value,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "QuantSignal Engine API",
        "docs": "/docs",
        "health": "/health",
    }
