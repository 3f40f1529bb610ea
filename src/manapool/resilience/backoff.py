"""Retry delay policies.

The executor asks a :class:`BackoffPolicy` for the delay before retry *n*
(1-indexed). The default :class:`ExponentialBackoff` yields
``initial * 2 ** (n - 1)`` with an optional ceiling, optional jitter and
optional honoring of a server-supplied ``Retry-After``.
"""

import random
from typing import Optional, Protocol

from manapool.resilience.models import ErrorClassification


class BackoffPolicy(Protocol):
    """Computes the delay in seconds before retry ``retry_number``."""

    def delay(
        self,
        retry_number: int,
        classification: Optional[ErrorClassification] = None,
    ) -> float: ...


class ExponentialBackoff:
    """Exponential backoff: ``initial * multiplier ** (n - 1)``.

    Attributes:
        initial: Delay before the first retry, in seconds
        multiplier: Growth factor per retry (default 2.0)
        max_delay: Ceiling on the computed delay (None = uncapped)
        jitter: Fractional jitter range (0.0-1.0, 0.5 => 50-150%)
        honor_retry_after: Wait at least the server's Retry-After when present,
            still bounded by max_delay
    """

    def __init__(
        self,
        initial: float = 1.0,
        *,
        multiplier: float = 2.0,
        max_delay: Optional[float] = None,
        jitter: float = 0.0,
        honor_retry_after: bool = False,
        rng: Optional[random.Random] = None,
    ):
        if initial < 0:
            raise ValueError("initial backoff must be non-negative")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if max_delay is not None and max_delay < 0:
            raise ValueError("max_delay must be non-negative")
        self.initial = initial
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = min(max(jitter, 0.0), 1.0)
        self.honor_retry_after = honor_retry_after
        self._rng = rng or random.Random()

    def base_delay(self, retry_number: int) -> float:
        """Deterministic delay before retry ``retry_number`` (no jitter)."""
        if retry_number < 1:
            raise ValueError("retry_number is 1-indexed")
        delay = self.initial * (self.multiplier ** (retry_number - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def delay(
        self,
        retry_number: int,
        classification: Optional[ErrorClassification] = None,
    ) -> float:
        """Delay before retry ``retry_number``, in seconds."""
        delay = self.base_delay(retry_number)

        if (
            self.honor_retry_after
            and classification is not None
            and classification.backoff_seconds is not None
        ):
            delay = max(delay, classification.backoff_seconds)
            if self.max_delay is not None:
                delay = min(delay, self.max_delay)
            return delay

        if self.jitter > 0:
            jitter_factor = (1.0 - self.jitter) + (2.0 * self.jitter * self._rng.random())
            delay = delay * jitter_factor
        return delay
