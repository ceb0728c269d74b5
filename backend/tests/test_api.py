"""
Tests for the HTTP query interface.

The app is exercised without its lifespan: a signal engine is built over a
scripted gateway, one scheduler cycle is run, and the engine is installed
as the process-wide instance.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import START, MatrixGateway, hours
from quantsignal.api.v1.errors import to_http_exception
from quantsignal.core.config import Settings
from quantsignal.main import app
from quantsignal.services.base import (
    CalculationError,
    CircuitOpenError,
    InsufficientHistoryError,
    InvalidTimeframeError,
    RateLimitedError,
    SignalNotFoundError,
    UpstreamUnavailableError,
)
from quantsignal.services.signals import SignalEngine, set_signal_engine


@pytest.fixture
def engine(walk_candles):
    settings = Settings(
        symbols=["BTC/USDT", "ETH/USDT"],
        timeframes=["1h", "4h"],
        redis_enabled=False,
    )
    gateway = MatrixGateway({"BTC/USDT": walk_candles, "ETH/USDT": walk_candles[:20]})
    engine = SignalEngine.from_settings(settings, provider=gateway)
    engine.scheduler._clock = lambda: START + hours(120)
    asyncio.run(engine.scheduler.run_cycle())

    set_signal_engine(engine)
    yield engine
    set_signal_engine(None)


@pytest.fixture
def client(engine):
    return TestClient(app)


class TestSignals:
    def test_get_signal(self, client):
        response = client.get("/api/v1/signals", params={"symbol": "BTC/USDT", "timeframe": "1h"})
        assert response.status_code == 200
        data = response.json()
        assert data["symbol"] == "BTC/USDT"
        assert data["timeframe"] == "1h"
        assert data["direction"] in ("LONG", "SHORT", "NEUTRAL")

    def test_unavailable_pair_is_404(self, client):
        response = client.get("/api/v1/signals", params={"symbol": "ETH/USDT", "timeframe": "1h"})
        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["error"] == "SignalNotFoundError"
        assert detail["details"]["error"] == "InsufficientHistoryError"

    def test_bad_timeframe_is_400(self, client):
        response = client.get("/api/v1/signals", params={"symbol": "BTC/USDT", "timeframe": "2h"})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "InvalidTimeframeError"

    def test_snapshot(self, client):
        data = client.get("/api/v1/signals/snapshot").json()
        assert data["cycle"] == 1
        assert len(data["signals"]) == 2
        assert set(data["unavailable"]) == {"ETH/USDT:1h", "ETH/USDT:4h"}

    def test_confluence(self, client):
        response = client.get(
            "/api/v1/signals/confluence",
            params={"symbol": "BTC/USDT", "timeframes": ["1h", "4h"], "style": "scalp"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["style"] == "scalp"
        assert data["timeframes"] == ["1h", "4h"]


class TestRisk:
    def test_assessment(self, client):
        response = client.get(
            "/api/v1/risk/assessment", params={"symbol": "BTC/USDT", "timeframe": "4h"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["iterations"] == 1000
        assert data["confidence_interval"][0] <= data["confidence_interval"][1]

    def test_short_history_is_422(self, client):
        response = client.get(
            "/api/v1/risk/assessment", params={"symbol": "ETH/USDT", "timeframe": "1h"}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["details"]["required"] == 34

    def test_levels(self, client):
        response = client.get(
            "/api/v1/risk/levels",
            params={"entry_price": 50000, "direction": "LONG", "timeframe": "1h"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["stop_loss"] == 49600.0
        assert data["take_profit"] == 50800.0

    def test_levels_bad_entry(self, client):
        response = client.get(
            "/api/v1/risk/levels",
            params={"entry_price": -5, "direction": "LONG", "timeframe": "1h"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "InvalidEntryPriceError"

    def test_levels_short_target_below_zero_is_400(self, client):
        response = client.get(
            "/api/v1/risk/levels",
            params={"entry_price": 100, "direction": "SHORT", "timeframe": "1M", "risk_reward": 20},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "InvalidParametersError"


class TestStatus:
    def test_rate_limiter(self, client):
        data = client.get("/api/v1/status/rate-limiter").json()
        assert data["circuit_state"] == "CLOSED"
        assert data["total_requests"] == 4
        assert data["requests_this_window"] == 4

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["cycle"] == 1
        assert data["signals"] == 2
        assert data["unavailable"] == 2
        assert data["scheduler_running"] is False
        assert data["circuit_state"] == "CLOSED"

    def test_health_before_startup(self):
        set_signal_engine(None)
        data = TestClient(app).get("/health").json()
        assert data["status"] == "starting"


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error,status",
        [
            (SignalNotFoundError("q", "missing"), 404),
            (InsufficientHistoryError("q", 34, 10), 422),
            (InvalidTimeframeError("q", "bad"), 400),
            (RateLimitedError("q", "slow down"), 429),
            (CircuitOpenError("q", "open"), 503),
            (UpstreamUnavailableError("q", "down"), 503),
            (CalculationError("q", "nan"), 500),
        ],
    )
    def test_status_codes(self, error, status):
        exc = to_http_exception(error)
        assert exc.status_code == status
        assert exc.detail["error"] == type(error).__name__
