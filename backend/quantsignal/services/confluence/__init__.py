"""
Confluence Signal Engine

CONTRACT:
    Input:  IndicatorSet (one timeframe) or {Timeframe: IndicatorSet}
    Output: ConfluenceResult (direction, 0-100 confidence, votes, reasoning)

RESPONSIBILITIES:
    - Weighted indicator voting with a minimum-agreement floor
    - Style-aware timeframe weighting (swing / scalp)
    - Refuse short history, degrade to zero-confidence NEUTRAL when marginal

No learned weights: the ConfluenceConfig is static and validated.
"""

from quantsignal.services.confluence.config import (
    ConfluenceConfig,
    DEFAULT_CONFLUENCE_CONFIG,
)
from quantsignal.services.confluence.engine import (
    ConfluenceEngine,
    agreement_level,
    tally,
)

__all__ = [
    "ConfluenceConfig",
    "DEFAULT_CONFLUENCE_CONFIG",
    "ConfluenceEngine",
    "agreement_level",
    "tally",
]
