"""
Status API Endpoints
"""

from fastapi import APIRouter

from quantsignal.schemas.gateway import RateLimiterStatus
from quantsignal.services.signals import get_signal_engine

router = APIRouter()


@router.get("/rate-limiter", response_model=RateLimiterStatus)
async def get_rate_limiter_status():
    """Quota usage and circuit breaker state."""
    return get_signal_engine().query.get_rate_limiter_status()
