"""
Exponential backoff for retried gateway calls.
"""

import random


class ExponentialBackoff:
    """
    Exponential backoff calculator with jitter.

    Args:
        base: Base delay in seconds
        multiplier: Exponential growth factor
        max_delay: Maximum delay cap in seconds
        jitter: Add up to +/-25% random jitter to delays

    Example:
        >>> backoff = ExponentialBackoff(base=1.0, multiplier=2.0, jitter=False)
        >>> backoff.calculate(attempt=2)
        4.0
    """

    def __init__(
        self,
        base: float = 1.0,
        multiplier: float = 2.0,
        max_delay: float = 60.0,
        jitter: bool = True,
    ):
        self.base = base
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = jitter

    def calculate(self, attempt: int) -> float:
        """Delay in seconds before retry number `attempt` (0-indexed)."""
        delay = min(self.base * (self.multiplier**attempt), self.max_delay)

        if self.jitter:
            jitter_amount = delay * 0.25
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)
