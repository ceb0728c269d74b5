"""
Signal API Endpoints

Read-only access to the latest published signals.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from quantsignal.api.v1.errors import to_http_exception
from quantsignal.schemas.market import TradingStyle
from quantsignal.schemas.signal import ConfluenceResult, Signal
from quantsignal.services.base import ServiceError
from quantsignal.services.signals import get_signal_engine

router = APIRouter()


class SignalSnapshotResponse(BaseModel):
    cycle: int
    generated_at: Optional[datetime]
    signals: list[Signal]
    unavailable: dict[str, str]


@router.get("", response_model=Signal)
async def get_signal(
    symbol: str = Query(..., description="Pair, e.g. BTC/USDT"),
    timeframe: str = Query(..., description="One of 1m,5m,15m,30m,1h,4h,12h,1d,3d,1w,1M"),
):
    """Current signal for one (symbol, timeframe). 404 when unavailable."""
    try:
        return get_signal_engine().query.get_signal(symbol, timeframe)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/snapshot", response_model=SignalSnapshotResponse)
async def get_snapshot():
    """All signals of the latest cycle, plus the reason for each missing pair."""
    snapshot = get_signal_engine().cache.current()
    return SignalSnapshotResponse(
        cycle=snapshot.cycle,
        generated_at=snapshot.generated_at,
        signals=list(snapshot.signals.values()),
        unavailable={
            f"{symbol}:{timeframe.value}": error.message
            for (symbol, timeframe), error in snapshot.errors.items()
        },
    )


@router.get("/confluence", response_model=ConfluenceResult)
async def get_confluence(
    symbol: str = Query(...),
    timeframes: list[str] = Query(..., description="Repeat for each timeframe"),
    style: Optional[TradingStyle] = Query(None),
):
    """Multi-timeframe confluence over the cached indicators."""
    try:
        return get_signal_engine().query.get_confluence(symbol, timeframes, style)
    except ServiceError as e:
        raise to_http_exception(e)
