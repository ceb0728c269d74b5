"""
CONTRACT 5: Gateway Guard

Read-only views of the process-wide rate limiter / circuit breaker state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class QuotaWindowStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    limit: int
    used: int
    window_seconds: float
    utilization: float = Field(..., ge=0)


class RateLimiterStatus(BaseModel):
    """Lock-free snapshot for health/status reporting."""

    model_config = ConfigDict(frozen=True)

    requests_this_window: int
    window_start: Optional[datetime] = None
    circuit_state: CircuitState
    consecutive_failures: int
    opened_at: Optional[datetime] = None
    windows: list[QuotaWindowStatus] = Field(default_factory=list)
    total_requests: int = 0
    total_rejections: int = 0
