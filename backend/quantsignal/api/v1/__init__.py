"""
API v1 Router

Query interface over the signal engine.
"""

from fastapi import APIRouter

from quantsignal.api.v1.endpoints import signals, risk, status

router = APIRouter()

# Include all endpoint routers
router.include_router(signals.router, prefix="/signals", tags=["Signals"])
router.include_router(risk.router, prefix="/risk", tags=["Risk"])
router.include_router(status.router, prefix="/status", tags=["Status"])
