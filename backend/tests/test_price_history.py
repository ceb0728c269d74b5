"""
Tests for the ring buffer, price history store and signal cache.
"""

import json

import pytest

from conftest import START, build_candles, hours
from quantsignal.schemas.market import Direction, Timeframe
from quantsignal.schemas.signal import AgreementLevel, Signal
from quantsignal.services.base import InsufficientHistoryError
from quantsignal.services.cache import (
    PriceHistoryStore,
    RingBuffer,
    SignalCache,
    SignalMirror,
    SignalSnapshot,
)
from quantsignal.services.risk import calculate_risk_levels


class TestRingBuffer:
    @staticmethod
    def filled(maxlen, items):
        buf = RingBuffer[int](maxlen=maxlen)
        for item in items:
            buf.append(item)
        return buf

    def test_overwrites_oldest(self):
        buf = self.filled(3, [1, 2, 3, 4, 5])
        assert list(buf) == [3, 4, 5]
        assert len(buf) == 3
        assert buf[0] == 3
        assert buf[-1] == 5
        assert buf.newest() == 5

    def test_partial_fill(self):
        buf = self.filled(5, [1, 2])
        assert len(buf) == 2
        assert list(buf) == [1, 2]
        assert buf[-2] == 1

    def test_empty(self):
        buf = RingBuffer[int](maxlen=2)
        assert not buf
        assert buf.newest() is None
        with pytest.raises(IndexError):
            buf[0]

    def test_index_out_of_range(self):
        buf = self.filled(4, [1, 2])
        with pytest.raises(IndexError):
            buf[2]
        with pytest.raises(IndexError):
            buf[-3]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            RingBuffer(maxlen=0)


class TestPriceHistoryStore:
    def test_retention_bound(self):
        store = PriceHistoryStore(retention=50)
        kept = store.replace("BTC/USDT", Timeframe.H1, build_candles([100.0 + i for i in range(80)]))
        assert kept == 50

        snapshot = store.snapshot("BTC/USDT", Timeframe.H1)
        assert len(snapshot) == 50
        assert snapshot[-1].close == 179.0

    def test_replace_drops_out_of_order(self):
        candles = build_candles([100.0, 101.0, 102.0])
        store = PriceHistoryStore()
        kept = store.replace("BTC/USDT", Timeframe.H1, [candles[0], candles[2], candles[1]])
        assert kept == 2
        timestamps = [c.timestamp for c in store.snapshot("BTC/USDT", Timeframe.H1)]
        assert timestamps == sorted(timestamps)

    def test_append_only_strictly_newer(self):
        candles = build_candles([100.0, 101.0, 102.0])
        store = PriceHistoryStore()
        store.replace("BTC/USDT", Timeframe.H1, candles[:2])

        assert not store.append("BTC/USDT", Timeframe.H1, candles[1])
        assert not store.append("BTC/USDT", Timeframe.H1, candles[0])
        assert store.append("BTC/USDT", Timeframe.H1, candles[2])
        assert store.latest("BTC/USDT", Timeframe.H1).timestamp == START + hours(2)

    def test_append_creates_pair(self):
        store = PriceHistoryStore(retention=3)
        assert store.append("ETH/USDT", Timeframe.D1, build_candles([10.0])[0])
        assert len(store) == 1

    def test_snapshot_is_a_copy(self):
        store = PriceHistoryStore()
        store.replace("BTC/USDT", Timeframe.H1, build_candles([100.0, 101.0]))
        before = store.snapshot("BTC/USDT", Timeframe.H1)
        store.append("BTC/USDT", Timeframe.H1, build_candles([1.0, 2.0, 3.0])[2])
        assert len(before) == 2
        assert len(store.snapshot("BTC/USDT", Timeframe.H1)) == 3

    def test_unknown_pair(self):
        store = PriceHistoryStore()
        assert store.snapshot("BTC/USDT", Timeframe.H1) == ()
        assert store.latest("BTC/USDT", Timeframe.H1) is None


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.pending = []

    def set(self, key, value, ex=None):
        self.pending.append((key, value, ex))

    async def execute(self):
        for key, value, ex in self.pending:
            self.client.data[key] = value
            self.client.ttls[key] = ex


class FakeRedis:
    def __init__(self, fail=False):
        self.data = {}
        self.ttls = {}
        self.fail = fail

    def pipeline(self):
        if self.fail:
            raise ConnectionError("redis down")
        return FakePipeline(self)

    async def get(self, key):
        return self.data.get(key)


def make_snapshot(cycle=1):
    levels = calculate_risk_levels(100.0, Direction.LONG, Timeframe.H1)
    signal = Signal(
        symbol="BTC/USDT",
        timeframe=Timeframe.H1,
        direction=Direction.LONG,
        confidence=72.5,
        entry_price=levels.entry_price,
        stop_loss=levels.stop_loss,
        take_profit=levels.take_profit,
        risk_reward_ratio=levels.risk_reward_ratio,
        agreement_level=AgreementLevel.MODERATE,
        generated_at=START,
    )
    error = InsufficientHistoryError("IndicatorService", 34, 10)
    return SignalSnapshot.build(
        signals={("BTC/USDT", Timeframe.H1): signal},
        indicators={},
        assessments={},
        errors={("ETH/USDT", Timeframe.H1): error},
        cycle=cycle,
        generated_at=START,
    )


class TestSignalCache:
    def test_starts_empty(self):
        snapshot = SignalCache().current()
        assert snapshot.cycle == 0
        assert len(snapshot.signals) == 0

    def test_snapshot_is_read_only(self):
        snapshot = make_snapshot()
        with pytest.raises(TypeError):
            snapshot.signals[("ETH/USDT", Timeframe.H1)] = None

    @pytest.mark.asyncio
    async def test_publish_swaps_reference(self):
        cache = SignalCache()
        first = make_snapshot(1)
        await cache.publish(first)
        held = cache.current()

        await cache.publish(make_snapshot(2))
        assert held is first
        assert held.cycle == 1
        assert cache.current().cycle == 2

    @pytest.mark.asyncio
    async def test_mirrors_to_redis(self):
        client = FakeRedis()
        cache = SignalCache(mirror=SignalMirror(client, ttl=120))
        await cache.publish(make_snapshot(4))

        stored = json.loads(client.data["signal:BTC/USDT:1h"])
        assert stored["direction"] == "LONG"
        assert client.ttls["signal:BTC/USDT:1h"] == 120
        assert json.loads(client.data["signals:meta"])["cycle"] == 4

        mirror = SignalMirror(client)
        assert (await mirror.read("signal:BTC/USDT:1h"))["confidence"] == 72.5
        assert await mirror.read("signal:ETH/USDT:1h") is None

    @pytest.mark.asyncio
    async def test_redis_failure_does_not_block_publish(self):
        cache = SignalCache(mirror=SignalMirror(FakeRedis(fail=True), ttl=60))
        await cache.publish(make_snapshot(3))
        assert cache.current().cycle == 3

    @pytest.mark.asyncio
    async def test_mirror_without_client(self):
        mirror = SignalMirror(None, ttl=60)
        assert await mirror.write({"k": "v"}, {}) is False
        assert await mirror.read("k") is None
