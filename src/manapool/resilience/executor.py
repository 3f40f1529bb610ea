"""Request execution with rate limiting, retry and classification.

Every API call passes through :meth:`RequestExecutor.execute`:

1. Acquire a rate-limit token (bounded by the call context)
2. Perform the transport call (bounded by the per-attempt timeout and the call context)
3. Classify the outcome
4. Return the body, raise a terminal error, or back off and try again

Per-attempt events go to the injected diagnostics sink. The executor owns
no per-call state; a fresh :class:`RetryState` is created for every call.
"""

import logging
from typing import Any, NoReturn, Optional

import httpx

from manapool.context import CallContext
from manapool.diagnostics import NULL_SINK, DiagnosticsSink
from manapool.errors import ContextCancelled, NetworkError
from manapool.request import RequestDescriptor
from manapool.resilience.backoff import BackoffPolicy, ExponentialBackoff
from manapool.resilience.classifier import classify_outcome
from manapool.resilience.models import (
    AttemptOutcome,
    AttemptSuccess,
    ErrorClassification,
    HTTPFailure,
    RetryState,
    SleepFunc,
    TransportFailure,
)
from manapool.resilience.rate_limit import TokenBucketLimiter

logger = logging.getLogger(__name__)


class RequestExecutor:
    """Runs the attempt loop for one logical call at a time.

    One executor is shared by all concurrent calls of a client. Its
    collaborators (HTTP client, limiter, backoff policy, sink) are fixed at
    construction.

    Attributes:
        base_url: Base endpoint; descriptor paths are resolved against it
        timeout: Per-attempt transport timeout in seconds; None keeps the
            HTTP client's own timeout
        max_retries: Retries after the first attempt (0 disables retrying)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str,
        timeout: Optional[float],
        max_retries: int,
        limiter: TokenBucketLimiter,
        backoff: Optional[BackoffPolicy] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        sleep_func: Optional[SleepFunc] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self._http = http_client
        self.base_url = httpx.URL(base_url if base_url.endswith("/") else base_url + "/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.limiter = limiter
        self.backoff: BackoffPolicy = backoff or ExponentialBackoff()
        self.diagnostics: DiagnosticsSink = diagnostics or NULL_SINK
        self._sleep = sleep_func

    def url_for(self, descriptor: RequestDescriptor) -> httpx.URL:
        """Absolute URL for ``descriptor`` (query string excluded)."""
        return self.base_url.join(descriptor.path.lstrip("/"))

    async def execute(
        self,
        descriptor: RequestDescriptor,
        ctx: Optional[CallContext] = None,
    ) -> bytes:
        """Execute ``descriptor`` and return the raw success body.

        Args:
            descriptor: Immutable request, sent verbatim on every attempt.
            ctx: Call context; defaults to a background context.

        Returns:
            Body bytes of the first 2xx response.

        Raises:
            APIError: Terminal non-2xx status, or retryable status after the
                last attempt.
            NetworkError: Transport failure after the last attempt, or the
                context fired during a wait.
        """
        ctx = ctx or CallContext.background()
        state = RetryState()
        total_attempts = self.max_retries + 1

        while True:
            state.attempt += 1

            try:
                await self.limiter.acquire(ctx)
            except ContextCancelled as e:
                raise NetworkError(
                    f"request {e.reason} while waiting for rate limiter", cause=e
                ) from e

            self._emit(
                "debug",
                "attempt %d/%d: %s %s",
                state.attempt,
                total_attempts,
                descriptor.method,
                descriptor.path,
            )

            outcome = await self._attempt(descriptor, ctx)
            classification = classify_outcome(outcome)
            if classification is None:
                if state.attempt > 1:
                    logger.debug(
                        "%s %s succeeded after %d attempts in %.2fs (%.2fs backoff)",
                        descriptor.method,
                        descriptor.path,
                        state.attempt,
                        state.elapsed(),
                        state.total_backoff,
                    )
                assert isinstance(outcome, AttemptSuccess)
                return outcome.body

            self._emit(
                "error",
                "attempt %d/%d failed: %s %s: %s (%s, retryable=%s)",
                state.attempt,
                total_attempts,
                descriptor.method,
                descriptor.path,
                classification.error,
                classification.error_type.value,
                classification.retryable,
            )

            if not classification.retryable:
                self._raise(classification)

            if state.attempt >= total_attempts:
                logger.debug(
                    "%s %s gave up after %d attempts in %.2fs (%.2fs backoff)",
                    descriptor.method,
                    descriptor.path,
                    state.attempt,
                    state.elapsed(),
                    state.total_backoff,
                )
                self._raise(classification)

            # Nothing left to wait for once the caller has given up.
            if ctx.done:
                self._raise(classification)

            delay = self.backoff.delay(state.attempt, classification)
            try:
                await ctx.sleep(delay, sleep_func=self._sleep)
            except ContextCancelled as e:
                raise NetworkError(
                    f"request {e.reason} during retry backoff", cause=e
                ) from e
            state.total_backoff += delay

    async def _attempt(
        self,
        descriptor: RequestDescriptor,
        ctx: CallContext,
    ) -> AttemptOutcome:
        """Perform one transport round trip."""
        try:
            response = await ctx.run(
                self._http.request(
                    descriptor.method,
                    self.url_for(descriptor),
                    params=list(descriptor.params) or None,
                    content=descriptor.body,
                    headers=list(descriptor.headers),
                    timeout=(
                        httpx.USE_CLIENT_DEFAULT if self.timeout is None else self.timeout
                    ),
                )
            )
        except (ContextCancelled, httpx.RequestError) as e:
            return TransportFailure(cause=e)

        if 200 <= response.status_code < 300:
            return AttemptSuccess(
                status=response.status_code,
                body=response.content,
                headers=response.headers,
            )
        return HTTPFailure(
            status=response.status_code,
            body=response.content,
            headers=response.headers,
            response=response,
        )

    @staticmethod
    def _raise(classification: ErrorClassification) -> NoReturn:
        error = classification.error
        if isinstance(error, NetworkError) and error.cause is not None:
            raise error from error.cause
        raise error

    def _emit(self, level: str, format: str, *args: Any) -> None:
        """Forward an event to the sink; a failing sink is logged and ignored."""
        try:
            getattr(self.diagnostics, level)(format, *args)
        except Exception as e:
            logger.warning("Diagnostics sink %s() raised: %s", level, e)
