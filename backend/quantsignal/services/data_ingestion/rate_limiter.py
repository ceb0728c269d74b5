"""
Rate Limiter & Circuit Breaker

One process-wide object guards every call to the market data provider:

    - sliding-window quota tiers (minute / hour / day / month, plus an
      optional short burst tier). A call that would exceed any tier is
      rejected locally with RateLimitedError.
    - a CLOSED -> OPEN -> HALF_OPEN -> CLOSED circuit breaker driven by
      consecutive upstream failures.

All mutation happens under one threading.Lock held only for the
bookkeeping, never across the network call. status() reads without the
lock and may be a moment stale.
"""

import logging
import threading
import time
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from quantsignal.core.config import Settings
from quantsignal.schemas.gateway import CircuitState, QuotaWindowStatus, RateLimiterStatus
from quantsignal.services.base import CircuitOpenError, RateLimitedError

logger = logging.getLogger(__name__)

SERVICE_NAME = "RateLimiter"

MINUTE = 60.0
HOUR = 3600.0
DAY = 86400.0
MONTH = 30 * DAY


class QuotaWindow:
    """Sliding window of call timestamps (monotonic seconds)."""

    __slots__ = ("name", "limit", "seconds", "events")

    def __init__(self, name: str, limit: int, seconds: float):
        if limit < 1:
            raise ValueError(f"{name} limit must be >= 1, got {limit}")
        self.name = name
        self.limit = limit
        self.seconds = seconds
        self.events: deque[float] = deque()

    def prune(self, now: float) -> None:
        cutoff = now - self.seconds
        while self.events and self.events[0] <= cutoff:
            self.events.popleft()

    def exhausted(self, now: float) -> bool:
        self.prune(now)
        return len(self.events) >= self.limit

    def used(self, now: float) -> int:
        cutoff = now - self.seconds
        return sum(1 for t in tuple(self.events) if t > cutoff)

    def retry_after(self, now: float) -> float:
        """Seconds until the oldest call leaves the window."""
        if not self.events:
            return 0.0
        return max(0.0, self.events[0] + self.seconds - now)


class RateLimiter:
    """
    Quota tiers plus circuit breaker behind a single lock.

    Call protocol for a guarded request:
        limiter.acquire()          # may raise RateLimitedError / CircuitOpenError
        ... network call ...
        limiter.record_success()   # or record_failure() / release()
    """

    def __init__(
        self,
        per_minute: int = 30,
        per_hour: int = 600,
        per_day: int = 1000,
        per_month: int = 30000,
        burst_limit: Optional[int] = None,
        burst_seconds: float = 10.0,
        failure_threshold: int = 30,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Optional[Callable[[], datetime]] = None,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.windows = [
            QuotaWindow("minute", per_minute, MINUTE),
            QuotaWindow("hour", per_hour, HOUR),
            QuotaWindow("day", per_day, DAY),
            QuotaWindow("month", per_month, MONTH),
        ]
        if burst_limit is not None:
            self.windows.append(QuotaWindow("burst", burst_limit, burst_seconds))
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._wall_clock = wall_clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()

        self.state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.opened_at: Optional[datetime] = None
        self._opened_mono: Optional[float] = None
        self._probe_in_flight = False
        self.total_requests = 0
        self.total_rejections = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(
            per_minute=settings.requests_per_minute,
            per_hour=settings.requests_per_hour,
            per_day=settings.requests_per_day,
            per_month=settings.requests_per_month,
            burst_limit=settings.burst_limit,
            burst_seconds=settings.burst_window_seconds,
            failure_threshold=settings.circuit_failure_threshold,
            cooldown_seconds=settings.circuit_cooldown_seconds,
        )

    # =========================================================================
    # CALL PATH
    # =========================================================================

    def acquire(self) -> None:
        """
        Admit one upstream call or raise without touching the network.

        OPEN past its cooldown becomes HALF_OPEN and admits exactly one probe.
        Quota rejections are not counted against the quota.
        """
        with self._lock:
            now = self._clock()

            if self.state == CircuitState.OPEN:
                if now - self._opened_mono >= self.cooldown_seconds:
                    self._transition(CircuitState.HALF_OPEN)
                    self._probe_in_flight = False
                else:
                    self.total_rejections += 1
                    remaining = self.cooldown_seconds - (now - self._opened_mono)
                    raise CircuitOpenError(
                        SERVICE_NAME,
                        f"Circuit open, retry in {remaining:.1f}s",
                        {"retry_after": round(remaining, 3)},
                    )

            if self.state == CircuitState.HALF_OPEN and self._probe_in_flight:
                self.total_rejections += 1
                raise CircuitOpenError(SERVICE_NAME, "Circuit half-open, probe already in flight")

            for window in self.windows:
                if window.exhausted(now):
                    self.total_rejections += 1
                    raise RateLimitedError(
                        SERVICE_NAME,
                        f"{window.name} quota of {window.limit} requests exhausted",
                        {"window": window.name, "retry_after": round(window.retry_after(now), 3)},
                    )

            for window in self.windows:
                window.events.append(now)
            self.total_requests += 1
            if self.state == CircuitState.HALF_OPEN:
                self._probe_in_flight = True

    def record_success(self) -> None:
        with self._lock:
            self.consecutive_failures = 0
            self._probe_in_flight = False
            if self.state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED)
                self.opened_at = None
                self._opened_mono = None

    def record_failure(self) -> None:
        with self._lock:
            self.consecutive_failures += 1
            self._probe_in_flight = False
            if self.state == CircuitState.HALF_OPEN:
                self._open()
            elif (
                self.state == CircuitState.CLOSED
                and self.consecutive_failures >= self.failure_threshold
            ):
                self._open()

    def release(self) -> None:
        """An admitted call ended without an outcome (cancelled)."""
        with self._lock:
            self._probe_in_flight = False

    def _open(self) -> None:
        self._transition(CircuitState.OPEN)
        self._opened_mono = self._clock()
        self.opened_at = self._wall_clock()

    def _transition(self, new_state: CircuitState) -> None:
        if new_state == self.state:
            return
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            f"Circuit {self.state.value} -> {new_state.value} "
            f"(consecutive failures: {self.consecutive_failures})"
        )
        self.state = new_state

    # =========================================================================
    # STATUS
    # =========================================================================

    def status(self) -> RateLimiterStatus:
        """Lock-free snapshot."""
        now = self._clock()
        wall_now = self._wall_clock()
        minute = next(w for w in self.windows if w.name == "minute")
        oldest = next((t for t in tuple(minute.events) if t > now - minute.seconds), None)
        window_start = (
            wall_now - timedelta(seconds=now - oldest) if oldest is not None else None
        )

        windows = []
        for window in self.windows:
            used = window.used(now)
            windows.append(
                QuotaWindowStatus(
                    name=window.name,
                    limit=window.limit,
                    used=used,
                    window_seconds=window.seconds,
                    utilization=round(used / window.limit * 100, 2),
                )
            )

        return RateLimiterStatus(
            requests_this_window=minute.used(now),
            window_start=window_start,
            circuit_state=self.state,
            consecutive_failures=self.consecutive_failures,
            opened_at=self.opened_at,
            windows=windows,
            total_requests=self.total_requests,
            total_rejections=self.total_rejections,
        )
