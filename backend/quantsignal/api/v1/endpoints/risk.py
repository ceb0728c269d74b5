"""
Risk API Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Query

from quantsignal.api.v1.errors import to_http_exception
from quantsignal.schemas.risk import RiskAssessment, RiskLevels
from quantsignal.services.base import ServiceError
from quantsignal.services.risk import calculate_risk_levels
from quantsignal.services.signals import get_signal_engine

router = APIRouter()


@router.get("/assessment", response_model=RiskAssessment)
async def get_risk_assessment(symbol: str = Query(...), timeframe: str = Query(...)):
    """Monte Carlo assessment of the current signal. 422 on short history."""
    try:
        return get_signal_engine().query.get_risk_assessment(symbol, timeframe)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/levels", response_model=RiskLevels)
async def get_risk_levels(
    entry_price: float = Query(...),
    direction: str = Query(..., description="LONG, SHORT or NEUTRAL"),
    timeframe: str = Query(...),
    risk_reward: Optional[float] = Query(None),
):
    """Stop-loss / take-profit for an arbitrary entry."""
    try:
        return calculate_risk_levels(entry_price, direction, timeframe, risk_reward)
    except ServiceError as e:
        raise to_http_exception(e)
