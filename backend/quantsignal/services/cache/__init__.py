"""
Cache Layer

- PriceHistoryStore: per-pair ring buffers of closed candles
- SignalCache: atomically swapped snapshot of the latest cycle
- Redis mirror of published snapshots (optional)
"""

from quantsignal.services.cache.ring_buffer import RingBuffer
from quantsignal.services.cache.price_history import PriceHistoryStore
from quantsignal.services.cache.signal_cache import SignalCache, SignalSnapshot
from quantsignal.services.cache.redis_client import (
    SignalMirror,
    init_redis,
    close_redis,
    get_redis,
)

__all__ = [
    "RingBuffer",
    "PriceHistoryStore",
    "SignalCache",
    "SignalSnapshot",
    "SignalMirror",
    "init_redis",
    "close_redis",
    "get_redis",
]
