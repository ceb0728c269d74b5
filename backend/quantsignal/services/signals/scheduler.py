"""
Signal Scheduler

One background task per process. Every cycle it refreshes candle history
for the whole symbol x timeframe matrix through the guarded gateway, runs
the pipeline for each pair with bounded concurrency, and publishes one new
SignalSnapshot.

A pair that fails (upstream error, short history, numeric invariant) is
logged and left out of the published signals; its error is recorded so the
query interface can explain why.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from quantsignal.schemas.market import Timeframe
from quantsignal.services.base import CalculationError, ServiceError
from quantsignal.services.cache.price_history import PriceHistoryStore
from quantsignal.services.cache.signal_cache import SignalCache, SignalSnapshot
from quantsignal.services.data_ingestion.interface import MarketDataGateway
from quantsignal.services.signals.pipeline import PairResult, SignalPipeline

logger = logging.getLogger(__name__)


def is_refresh_due(last_open: datetime, timeframe: Timeframe, now: datetime) -> bool:
    """
    True once the bar after `last_open` has closed.

    The bar after last_open closes when the one after it opens. Monthly bars
    follow the calendar.
    """
    return now >= timeframe.shift(last_open, 2)


class SignalScheduler:
    def __init__(
        self,
        gateway: MarketDataGateway,
        store: PriceHistoryStore,
        cache: SignalCache,
        pipeline: SignalPipeline,
        symbols: list[str],
        timeframes: list[Timeframe],
        interval_seconds: float = 180.0,
        max_concurrency: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.gateway = gateway
        self.store = store
        self.cache = cache
        self.pipeline = pipeline
        self.symbols = symbols
        self.timeframes = timeframes
        self.interval_seconds = interval_seconds
        self.max_concurrency = max_concurrency
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self.cycle = 0
        self.last_cycle_at: Optional[datetime] = None
        self.last_cycle_seconds: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # =========================================================================
    # HISTORY REFRESH
    # =========================================================================

    async def refresh_history(self, symbol: str, timeframe: Timeframe) -> None:
        """
        Spend as little quota as possible keeping the pair's history current.

        Empty store: one history call. Otherwise one latest-candle call, and
        only once a new bar has closed. A gap forces a full refetch.
        """
        latest = self.store.latest(symbol, timeframe)

        if latest is None:
            candles = await self.gateway.fetch_history(symbol, timeframe, self.store.retention)
            kept = self.store.replace(symbol, timeframe, candles)
            logger.info(f"Loaded {kept} candles for {symbol} {timeframe.value}")
            return

        if not is_refresh_due(latest.timestamp, timeframe, self._clock()):
            return

        candle = await self.gateway.fetch_latest_candle(symbol, timeframe)
        if candle.timestamp > timeframe.next_open(latest.timestamp):
            logger.info(f"Gap in {symbol} {timeframe.value} after {latest.timestamp}, refetching")
            candles = await self.gateway.fetch_history(symbol, timeframe, self.store.retention)
            self.store.replace(symbol, timeframe, candles)
        else:
            self.store.append(symbol, timeframe, candle)

    # =========================================================================
    # CYCLE
    # =========================================================================

    async def _process_pair(
        self, semaphore: asyncio.Semaphore, symbol: str, timeframe: Timeframe, generated_at: datetime
    ) -> PairResult:
        async with semaphore:
            await self.refresh_history(symbol, timeframe)
            candles = self.store.snapshot(symbol, timeframe)
            return await asyncio.to_thread(
                self.pipeline.run, symbol, timeframe, candles, generated_at
            )

    async def run_cycle(self) -> SignalSnapshot:
        started = self._clock()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        pairs = [(s, tf) for s in self.symbols for tf in self.timeframes]

        outcomes = await asyncio.gather(
            *(self._process_pair(semaphore, s, tf, started) for s, tf in pairs),
            return_exceptions=True,
        )

        signals, indicators, assessments, errors = {}, {}, {}, {}
        for (symbol, timeframe), outcome in zip(pairs, outcomes):
            key = (symbol, timeframe)
            if isinstance(outcome, PairResult):
                signals[key] = outcome.signal
                indicators[key] = outcome.indicators
                assessments[key] = outcome.assessment
            elif isinstance(outcome, ServiceError):
                logger.warning(f"{symbol} {timeframe.value} unavailable: {outcome}")
                errors[key] = outcome
            elif isinstance(outcome, Exception):
                logger.error(
                    f"{symbol} {timeframe.value} failed unexpectedly",
                    exc_info=(type(outcome), outcome, outcome.__traceback__),
                )
                errors[key] = CalculationError("SignalScheduler", str(outcome))
            else:
                # CancelledError and friends end the cycle
                raise outcome

        self.cycle += 1
        snapshot = SignalSnapshot.build(
            signals, indicators, assessments, errors, cycle=self.cycle, generated_at=started
        )
        await self.cache.publish(snapshot)

        finished = self._clock()
        self.last_cycle_at = finished
        self.last_cycle_seconds = (finished - started).total_seconds()
        return snapshot

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def _loop(self) -> None:
        logger.info(
            f"Scheduler started: {len(self.symbols)} symbols x {len(self.timeframes)} "
            f"timeframes every {self.interval_seconds:g}s"
        )
        while not self._stopping.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Scheduler cycle failed")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self.is_running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name="signal-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped")
