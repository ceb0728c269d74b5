"""
Market Data Gateway Interface

Defines the contract every price provider adapter implements.
"""

from abc import ABC, abstractmethod

from quantsignal.schemas.market import Candle, Timeframe


class MarketDataGateway(ABC):
    """
    Market Data Gateway Contract.

    Adapters return CLOSED candles only, oldest first. Any transport or
    payload problem surfaces as UpstreamUnavailableError (or a transport
    exception the guard converts), never as an empty result.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def fetch_latest_candle(self, symbol: str, timeframe: Timeframe) -> Candle:
        """Most recent closed candle."""
        pass

    @abstractmethod
    async def fetch_history(self, symbol: str, timeframe: Timeframe, n: int) -> list[Candle]:
        """Up to n most recent closed candles, oldest first."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
