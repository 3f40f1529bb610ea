"""Token-bucket rate limiter for outbound requests.

Tokens refill continuously at ``rate`` per second up to ``burst``. Each
request takes one token. A caller that finds the bucket empty reserves the
next token anyway (the balance goes negative) and waits until its
reservation matures, so waiters are served in reservation order and none
starves. A wait that is cancelled hands its token back.

All state is guarded by a ``threading.Lock`` that is never held across an
await, so one limiter can be shared by any number of concurrent calls.
"""

import logging
import threading
import time
from typing import Callable, Optional

from manapool.context import CallContext
from manapool.errors import ContextCancelled
from manapool.resilience.models import SleepFunc

logger = logging.getLogger(__name__)

DEFAULT_RATE = 10.0
DEFAULT_BURST = 1


class TokenBucketLimiter:
    """Token bucket with blocking, cancellable acquisition.

    Attributes:
        rate: Tokens added per second
        burst: Maximum tokens (burst size)

    Example:
        limiter = TokenBucketLimiter(rate=5, burst=2)
        await limiter.acquire(ctx)
    """

    def __init__(
        self,
        rate: float = DEFAULT_RATE,
        burst: int = DEFAULT_BURST,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep_func: Optional[SleepFunc] = None,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = float(rate)
        self.burst = int(burst)
        self._clock = clock
        self._sleep = sleep_func
        self._tokens = float(self.burst)
        self._last_update = clock()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        """Add tokens based on elapsed time. Caller holds the lock."""
        elapsed = max(0.0, now - self._last_update)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last_update = now

    def _reserve(self) -> float:
        """Take one token, returning seconds until it is usable."""
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def _release(self) -> None:
        """Return a reserved token that was never used."""
        with self._lock:
            self._refill(self._clock())
            self._tokens = min(float(self.burst), self._tokens + 1.0)

    def try_acquire(self) -> bool:
        """Take a token only if one is available right now."""
        with self._lock:
            self._refill(self._clock())
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    async def acquire(self, ctx: Optional[CallContext] = None) -> None:
        """Wait for a token, observing ``ctx``.

        Args:
            ctx: Call context; cancellation or deadline aborts the wait.

        Raises:
            ContextCancelled: If the context fired before a token was granted.
        """
        ctx = ctx or CallContext.background()
        ctx.check()

        wait = self._reserve()
        if wait <= 0:
            return

        remaining = ctx.remaining()
        if remaining is not None and wait > remaining:
            self._release()
            raise ContextCancelled("deadline exceeded")

        logger.debug("Rate limiter wait %.3fs", wait)
        try:
            await ctx.sleep(wait, sleep_func=self._sleep)
        except BaseException:
            self._release()
            raise

    @property
    def available_tokens(self) -> float:
        """Current token balance (negative while callers are queued)."""
        with self._lock:
            self._refill(self._clock())
            return self._tokens

    def get_wait_time(self) -> float:
        """Seconds until a token would be available, without reserving one."""
        with self._lock:
            self._refill(self._clock())
            if self._tokens >= 1.0:
                return 0.0
            return (1.0 - self._tokens) / self.rate
