"""
Guarded Market Data Gateway

Wraps any MarketDataGateway with the process-wide RateLimiter:

    acquire quota -> call with timeout -> record outcome -> bounded retry

Timeouts, aiohttp errors and UpstreamUnavailableError count as failures
for the circuit breaker and are retried with exponential backoff.
RateLimitedError and CircuitOpenError are raised straight away: no
network call was made, so there is nothing to retry.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp
from pydantic import ValidationError

from quantsignal.core.config import Settings
from quantsignal.schemas.market import Candle, Timeframe
from quantsignal.services.base import (
    InvalidParametersError,
    ServiceError,
    UpstreamUnavailableError,
)
from quantsignal.services.data_ingestion.interface import MarketDataGateway
from quantsignal.services.data_ingestion.rate_limiter import RateLimiter
from quantsignal.utils.retry import ExponentialBackoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (asyncio.TimeoutError, aiohttp.ClientError, UpstreamUnavailableError)


class GuardedGateway(MarketDataGateway):
    """Rate-limited, circuit-broken, retrying view of an inner gateway."""

    def __init__(
        self,
        inner: MarketDataGateway,
        limiter: RateLimiter,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        backoff: Optional[ExponentialBackoff] = None,
    ):
        if max_retries < 0:
            raise InvalidParametersError(self.name, "max_retries must be >= 0")
        self.inner = inner
        self.limiter = limiter
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff = backoff or ExponentialBackoff(base=0.5, max_delay=8.0)

    @classmethod
    def from_settings(
        cls, inner: MarketDataGateway, limiter: RateLimiter, settings: Settings
    ) -> "GuardedGateway":
        return cls(
            inner,
            limiter,
            timeout_seconds=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            backoff=ExponentialBackoff(
                base=settings.retry_base_delay_seconds,
                max_delay=settings.retry_max_delay_seconds,
            ),
        )

    @property
    def name(self) -> str:
        return "GuardedGateway"

    async def _call(self, label: str, factory: Callable[[], Awaitable[T]]) -> T:
        attempts = self.max_retries + 1
        last_error: Optional[BaseException] = None

        for attempt in range(attempts):
            # Raises RateLimitedError / CircuitOpenError without a network call
            self.limiter.acquire()
            try:
                result = await asyncio.wait_for(factory(), timeout=self.timeout_seconds)
            except TRANSIENT_ERRORS as e:
                self.limiter.record_failure()
                last_error = e
                reason = "timeout" if isinstance(e, asyncio.TimeoutError) else str(e)
                logger.warning(f"{label} attempt {attempt + 1}/{attempts} failed: {reason}")
                if attempt < attempts - 1:
                    await asyncio.sleep(self.backoff.calculate(attempt))
                continue
            except (ValidationError, ValueError, ServiceError) as e:
                # Payload that fails validation: retrying returns the same data
                self.limiter.record_failure()
                raise UpstreamUnavailableError(
                    self.name, f"{label} returned unusable data: {e}"
                ) from e
            except BaseException:
                # Cancellation or a bug in the inner gateway says nothing about upstream
                self.limiter.release()
                raise
            else:
                self.limiter.record_success()
                return result

        raise UpstreamUnavailableError(
            self.name,
            f"{label} failed after {attempts} attempts",
            {"last_error": repr(last_error)},
        )

    async def fetch_latest_candle(self, symbol: str, timeframe: Timeframe) -> Candle:
        return await self._call(
            f"latest {symbol} {timeframe.value}",
            lambda: self.inner.fetch_latest_candle(symbol, timeframe),
        )

    async def fetch_history(self, symbol: str, timeframe: Timeframe, n: int) -> list[Candle]:
        return await self._call(
            f"history {symbol} {timeframe.value} x{n}",
            lambda: self.inner.fetch_history(symbol, timeframe, n),
        )

    async def close(self) -> None:
        await self.inner.close()
