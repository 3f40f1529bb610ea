"""Explicit cancellation signal for logical calls.

A :class:`CallContext` is passed down to every suspension point of a call
(rate limiter wait, transport call, backoff sleep). Each of those waits is
raced against the context, so cancelling it or letting its deadline pass
ends the wait promptly with :class:`~manapool.errors.ContextCancelled`.

Example:
    ctx = CallContext.with_timeout(10.0)
    account = await client.get_seller_account(ctx)

    # elsewhere
    ctx.cancel()
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from manapool.errors import ContextCancelled

T = TypeVar("T")


class CallContext:
    """Cancellation signal with an optional deadline.

    Contexts are cheap; create one per logical call (or share one across a
    group of calls that should be cancelled together).
    """

    def __init__(
        self,
        *,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Create a context.

        Args:
            deadline: Absolute deadline on the ``clock`` timeline, or None.
            clock: Monotonic clock used to evaluate the deadline.
        """
        self._deadline = deadline
        self._clock = clock
        self._event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._cancelled = False

    @classmethod
    def background(cls) -> "CallContext":
        """Context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(
        cls,
        seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CallContext":
        """Context whose deadline is ``seconds`` from now."""
        return cls(deadline=clock() + seconds, clock=clock)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def _get_event(self) -> asyncio.Event:
        # Lazy so a context can be built outside a running loop.
        if self._event is None:
            self._loop = asyncio.get_running_loop()
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    def cancel(self) -> None:
        """Fire the cancellation signal. Idempotent.

        Safe to call from any thread, including outside the event loop the
        context is being awaited on.
        """
        self._cancelled = True
        event, loop = self._event, self._loop
        if event is None or loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(event.set)

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called."""
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once cancelled or past the deadline."""
        if self._cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def check(self) -> None:
        """Raise ContextCancelled if the context is already done."""
        if self._cancelled:
            raise ContextCancelled("cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise ContextCancelled("deadline exceeded")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the context fires first.

        The awaitable is wrapped in a task; if the context is cancelled or
        the deadline passes first, that task is cancelled and
        ContextCancelled is raised.

        Raises:
            ContextCancelled: If the context fired before completion.
        """
        try:
            self.check()
        except ContextCancelled:
            # Avoid "coroutine was never awaited" warnings.
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise

        work: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._get_event().wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            work.cancel()
            waiter.cancel()
            raise

        waiter.cancel()
        if work in done:
            return work.result()

        work.cancel()
        await asyncio.wait({work})
        if self._cancelled:
            raise ContextCancelled("cancelled")
        raise ContextCancelled("deadline exceeded")

    async def sleep(
        self,
        seconds: float,
        sleep_func: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """Sleep for ``seconds`` or until the context fires.

        Args:
            seconds: Delay in seconds; non-positive delays only check the context.
            sleep_func: Injectable sleep (defaults to asyncio.sleep).

        Raises:
            ContextCancelled: If the context fired before the delay elapsed.
        """
        if seconds <= 0:
            self.check()
            return
        _sleep = sleep_func or asyncio.sleep
        await self.run(_sleep(seconds))
