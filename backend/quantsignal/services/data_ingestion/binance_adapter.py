"""
Binance Market Data Adapter

Public REST klines endpoint (no key required):
    GET /api/v3/klines?symbol=BTCUSDT&interval=1h&limit=100

Kline row layout:
    [openTime, open, high, low, close, volume, closeTime, ...]

The last row is usually the still-forming candle; rows whose closeTime is
in the future are dropped.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from quantsignal.core.config import settings
from quantsignal.schemas.market import Candle, Timeframe
from quantsignal.services.base import UpstreamUnavailableError
from quantsignal.services.data_ingestion.interface import MarketDataGateway

logger = logging.getLogger(__name__)

# Binance caps a single klines request
MAX_KLINES_PER_REQUEST = 1000


def to_exchange_symbol(symbol: str) -> str:
    """BTC/USDT -> BTCUSDT"""
    return symbol.replace("/", "").upper()


def parse_kline(row: list[Any]) -> Candle:
    return Candle(
        timestamp=datetime.fromtimestamp(int(row[0]) / 1000, tz=timezone.utc),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )


class BinanceGateway(MarketDataGateway):
    """
    Binance spot market data over aiohttp.

    The gateway itself does not retry or rate-limit; wrap it in a
    GuardedGateway for that.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = (base_url or settings.market_data_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.market_data_api_key
        self._session = session

    @property
    def name(self) -> str:
        return "BinanceGateway"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active HTTP session."""
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["X-MBX-APIKEY"] = self.api_key
            self._session = aiohttp.ClientSession(headers=headers)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get_klines(self, symbol: str, timeframe: Timeframe, limit: int) -> list[list[Any]]:
        session = await self._ensure_session()
        params = {
            "symbol": to_exchange_symbol(symbol),
            "interval": timeframe.value,
            "limit": str(limit),
        }
        async with session.get(f"{self.base_url}/api/v3/klines", params=params) as resp:
            if resp.status != 200:
                body = await resp.text()
                raise UpstreamUnavailableError(
                    self.name,
                    f"klines {symbol} {timeframe.value} returned HTTP {resp.status}",
                    {"status": resp.status, "body": body[:200]},
                )
            payload = await resp.json()

        if not isinstance(payload, list):
            raise UpstreamUnavailableError(
                self.name, f"Unexpected klines payload for {symbol} {timeframe.value}"
            )
        return payload

    def _closed_candles(self, rows: list[list[Any]]) -> list[Candle]:
        now_ms = datetime.now(timezone.utc).timestamp() * 1000
        candles = []
        for row in rows:
            try:
                if int(row[6]) > now_ms:
                    continue
                candles.append(parse_kline(row))
            except (IndexError, TypeError, ValueError) as e:
                raise UpstreamUnavailableError(self.name, f"Malformed kline row: {e}") from e
        return candles

    async def fetch_history(self, symbol: str, timeframe: Timeframe, n: int) -> list[Candle]:
        # One extra row for the forming candle that gets dropped
        limit = min(n + 1, MAX_KLINES_PER_REQUEST)
        rows = await self._get_klines(symbol, timeframe, limit)
        candles = self._closed_candles(rows)
        logger.debug(f"Binance {symbol} {timeframe.value}: {len(candles)} closed candles")
        return candles[-n:]

    async def fetch_latest_candle(self, symbol: str, timeframe: Timeframe) -> Candle:
        rows = await self._get_klines(symbol, timeframe, 2)
        candles = self._closed_candles(rows)
        if not candles:
            raise UpstreamUnavailableError(
                self.name, f"No closed candle available for {symbol} {timeframe.value}"
            )
        return candles[-1]
