"""
Price History Store

One RingBuffer of closed candles per (symbol, timeframe). The scheduler is
the only writer; calculators read through snapshot(), which copies the
buffer under the lock so a reader never sees a half-applied update.
"""

import logging
import threading
from typing import Optional

from quantsignal.schemas.market import Candle, Timeframe
from quantsignal.services.cache.ring_buffer import RingBuffer

logger = logging.getLogger(__name__)

PairKey = tuple[str, Timeframe]


class PriceHistoryStore:
    def __init__(self, retention: int = 250):
        if retention < 1:
            raise ValueError("retention must be >= 1")
        self.retention = retention
        self._buffers: dict[PairKey, RingBuffer[Candle]] = {}
        self._lock = threading.Lock()

    def replace(self, symbol: str, timeframe: Timeframe, candles: list[Candle]) -> int:
        """Swap in a freshly fetched history. Returns the number kept."""
        buffer: RingBuffer[Candle] = RingBuffer(self.retention)
        last_ts = None
        for candle in candles:
            if last_ts is not None and candle.timestamp <= last_ts:
                continue
            buffer.append(candle)
            last_ts = candle.timestamp

        with self._lock:
            self._buffers[(symbol, timeframe)] = buffer
        return len(buffer)

    def append(self, symbol: str, timeframe: Timeframe, candle: Candle) -> bool:
        """
        Append a closed candle. Recorded candles are never rewritten, so a
        candle that is not strictly newer than the last one is ignored.
        """
        with self._lock:
            buffer = self._buffers.get((symbol, timeframe))
            if buffer is None:
                buffer = RingBuffer(self.retention)
                self._buffers[(symbol, timeframe)] = buffer
            newest = buffer.newest()
            if newest is not None and candle.timestamp <= newest.timestamp:
                return False
            buffer.append(candle)
            return True

    def snapshot(self, symbol: str, timeframe: Timeframe) -> tuple[Candle, ...]:
        with self._lock:
            buffer = self._buffers.get((symbol, timeframe))
            return tuple(buffer) if buffer is not None else ()

    def latest(self, symbol: str, timeframe: Timeframe) -> Optional[Candle]:
        with self._lock:
            buffer = self._buffers.get((symbol, timeframe))
            return buffer.newest() if buffer is not None else None

    def __len__(self) -> int:
        return len(self._buffers)
