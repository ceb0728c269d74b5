"""
Signal Cache

Holds the latest published SignalSnapshot. A snapshot is built completely
by the scheduler and then swapped in with a single reference assignment,
so readers see either the previous cycle or the new one, never a mix.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Optional

from quantsignal.schemas.indicators import IndicatorSet
from quantsignal.schemas.market import Timeframe
from quantsignal.schemas.risk import RiskAssessment
from quantsignal.schemas.signal import Signal
from quantsignal.services.base import ServiceError
from quantsignal.services.cache.redis_client import SignalMirror

logger = logging.getLogger(__name__)

PairKey = tuple[str, Timeframe]

_EMPTY: Mapping = MappingProxyType({})


@dataclass(frozen=True)
class SignalSnapshot:
    """One scheduler cycle's results. Pairs that failed appear only in errors."""

    signals: Mapping[PairKey, Signal] = field(default_factory=lambda: _EMPTY)
    indicators: Mapping[PairKey, IndicatorSet] = field(default_factory=lambda: _EMPTY)
    assessments: Mapping[PairKey, RiskAssessment] = field(default_factory=lambda: _EMPTY)
    errors: Mapping[PairKey, ServiceError] = field(default_factory=lambda: _EMPTY)
    generated_at: Optional[datetime] = None
    cycle: int = 0

    @classmethod
    def build(
        cls,
        signals: dict[PairKey, Signal],
        indicators: dict[PairKey, IndicatorSet],
        assessments: dict[PairKey, RiskAssessment],
        errors: dict[PairKey, ServiceError],
        cycle: int,
        generated_at: Optional[datetime] = None,
    ) -> "SignalSnapshot":
        return cls(
            signals=MappingProxyType(dict(signals)),
            indicators=MappingProxyType(dict(indicators)),
            assessments=MappingProxyType(dict(assessments)),
            errors=MappingProxyType(dict(errors)),
            generated_at=generated_at or datetime.now(timezone.utc),
            cycle=cycle,
        )


class SignalCache:
    def __init__(self, mirror: Optional[SignalMirror] = None):
        self._snapshot = SignalSnapshot()
        self.mirror = mirror

    def current(self) -> SignalSnapshot:
        return self._snapshot

    async def publish(self, snapshot: SignalSnapshot) -> None:
        self._snapshot = snapshot
        logger.info(
            f"Published cycle {snapshot.cycle}: {len(snapshot.signals)} signals, "
            f"{len(snapshot.errors)} pairs unavailable"
        )
        if self.mirror is not None:
            await self.mirror.write(self._mirror_values(snapshot), self._mirror_meta(snapshot))

    @staticmethod
    def _mirror_values(snapshot: SignalSnapshot) -> dict[str, str]:
        values = {}
        for (symbol, timeframe), signal in snapshot.signals.items():
            values[f"signal:{symbol}:{timeframe.value}"] = signal.model_dump_json()
        for (symbol, timeframe), assessment in snapshot.assessments.items():
            values[f"risk:{symbol}:{timeframe.value}"] = assessment.model_dump_json()
        return values

    @staticmethod
    def _mirror_meta(snapshot: SignalSnapshot) -> dict:
        return {
            "generated_at": snapshot.generated_at.isoformat() if snapshot.generated_at else None,
            "cycle": snapshot.cycle,
            "count": len(snapshot.signals),
        }
