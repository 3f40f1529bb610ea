"""Tests for the request executor attempt loop.

Tests cover:
- Terminal statuses make exactly one attempt
- Retryable statuses and transport failures make max_retries + 1 attempts
- Backoff delays between attempts
- Cancellation before and during each suspension point
- Diagnostics events and sink isolation
- Descriptor identity across retries
"""

import asyncio
import time

import httpx
import pytest
from conftest import (
    ACCOUNT_JSON,
    RecordingHandler,
    RecordingSleep,
    make_client,
    respond_with,
)

from manapool import CallContext, RequestDescriptor
from manapool.errors import APIError, ContextCancelled, NetworkError
from manapool.resilience import ExponentialBackoff, RequestExecutor, TokenBucketLimiter


class RecordingSink:
    def __init__(self):
        self.debug_events = []
        self.error_events = []

    def debug(self, format, *args):
        self.debug_events.append(format % args)

    def error(self, format, *args):
        self.error_events.append(format % args)


class ExplodingSink:
    def debug(self, format, *args):
        raise RuntimeError("sink broke")

    def error(self, format, *args):
        raise RuntimeError("sink broke")


def _fail_then_succeed(failures, status=503):
    def responder(request, call):
        if call <= failures:
            return httpx.Response(status)
        return httpx.Response(200, json=ACCOUNT_JSON)

    return RecordingHandler(responder)


class TestTerminalFailures:
    """Non-retryable statuses stop after one attempt."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 404, 400, 422])
    async def test_single_attempt(self, status):
        handler = respond_with(status, json={"error": "nope"})
        client = make_client(handler, max_retries=3)
        with pytest.raises(APIError) as exc_info:
            await client.execute(client.build_request("GET", "account"))
        assert handler.calls == 1
        assert exc_info.value.status_code == status


class TestRetryableFailures:
    """Retryable failures are retried until attempts run out."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    @pytest.mark.parametrize("max_retries", [0, 1, 3])
    async def test_attempt_count(self, status, max_retries):
        handler = respond_with(status)
        client = make_client(handler, max_retries=max_retries)
        with pytest.raises(APIError) as exc_info:
            await client.execute(client.build_request("GET", "account"))
        assert handler.calls == max_retries + 1
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_server_error_without_retries(self):
        handler = respond_with(500)
        client = make_client(handler, max_retries=0)
        with pytest.raises(APIError) as exc_info:
            await client.get_seller_account()
        assert handler.calls == 1
        assert exc_info.value.is_server_error
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_exhaustion_logged_with_elapsed_time(self, caplog):
        caplog.set_level("DEBUG", logger="manapool.resilience.executor")
        client = make_client(respond_with(503), max_retries=2)
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert "GET account gave up after 3 attempts in" in caplog.text

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        handler = _fail_then_succeed(2)
        client = make_client(handler, max_retries=3)
        body = await client.execute(client.build_request("GET", "account"))
        assert handler.calls == 3
        assert b"testuser" in body

    @pytest.mark.asyncio
    async def test_transport_failure_retried_then_wrapped(self):
        cause = httpx.ConnectError("connection refused")

        def responder(request, call):
            raise cause

        handler = RecordingHandler(responder)
        client = make_client(handler, max_retries=2)
        with pytest.raises(NetworkError) as exc_info:
            await client.execute(client.build_request("GET", "account"))
        assert handler.calls == 3
        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause


class TestBackoff:
    """Delays between attempts."""

    @pytest.mark.asyncio
    async def test_exponential_sequence(self):
        sleep = RecordingSleep()
        handler = respond_with(500)
        client = make_client(handler, max_retries=4, initial_backoff=0.5, sleep_func=sleep)
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert sleep.delays == [0.5, 1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_max_backoff_caps_delays(self):
        sleep = RecordingSleep()
        client = make_client(
            respond_with(503),
            max_retries=4,
            initial_backoff=1.0,
            max_backoff=3.0,
            sleep_func=sleep,
        )
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert sleep.delays == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_no_sleep_after_last_attempt(self):
        sleep = RecordingSleep()
        client = make_client(respond_with(500), max_retries=0, initial_backoff=1.0, sleep_func=sleep)
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retry_after_ignored_by_default(self):
        sleep = RecordingSleep()
        client = make_client(
            respond_with(429, headers={"Retry-After": "7"}),
            max_retries=1,
            initial_backoff=1.0,
            sleep_func=sleep,
        )
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_retry_after_honored_when_enabled(self):
        sleep = RecordingSleep()
        client = make_client(
            respond_with(429, headers={"Retry-After": "7"}),
            max_retries=1,
            initial_backoff=1.0,
            honor_retry_after=True,
            sleep_func=sleep,
        )
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert sleep.delays == [7.0]

    @pytest.mark.asyncio
    async def test_retry_after_capped_by_max_backoff(self):
        sleep = RecordingSleep()
        client = make_client(
            respond_with(429, headers={"Retry-After": "86400"}),
            max_retries=1,
            initial_backoff=1.0,
            max_backoff=5.0,
            honor_retry_after=True,
            sleep_func=sleep,
        )
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert sleep.delays == [5.0]

    @pytest.mark.asyncio
    async def test_injected_policy(self):
        class FixedBackoff:
            def delay(self, retry_number, classification=None):
                return 0.25

        sleep = RecordingSleep()
        client = make_client(
            respond_with(500), max_retries=2, backoff=FixedBackoff(), sleep_func=sleep
        )
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        assert sleep.delays == [0.25, 0.25]


class TestCancellation:
    """Every suspension point observes the call context."""

    @pytest.mark.asyncio
    async def test_cancelled_before_first_acquire(self):
        handler = respond_with(200, json=ACCOUNT_JSON)
        client = make_client(handler)
        ctx = CallContext()
        ctx.cancel()
        with pytest.raises(NetworkError) as exc_info:
            await client.execute(client.build_request("GET", "account"), ctx)
        assert handler.calls == 0
        assert isinstance(exc_info.value.cause, ContextCancelled)

    @pytest.mark.asyncio
    async def test_expired_deadline_before_first_acquire(self):
        handler = respond_with(200, json=ACCOUNT_JSON)
        client = make_client(handler)
        with pytest.raises(NetworkError):
            await client.execute(
                client.build_request("GET", "account"), CallContext.with_timeout(0)
            )
        assert handler.calls == 0

    @pytest.mark.asyncio
    async def test_deadline_during_transport_call(self):
        async def slow(request):
            await asyncio.sleep(10)
            return httpx.Response(200, json=ACCOUNT_JSON)

        client = make_client(slow, max_retries=3)
        started = time.monotonic()
        with pytest.raises(NetworkError) as exc_info:
            await client.execute(
                client.build_request("GET", "account"), CallContext.with_timeout(0.05)
            )
        assert time.monotonic() - started < 2.0
        assert "deadline exceeded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        handler = respond_with(503)
        client = make_client(handler, max_retries=3, initial_backoff=30.0)
        ctx = CallContext()
        asyncio.get_running_loop().call_later(0.05, ctx.cancel)
        started = time.monotonic()
        with pytest.raises(NetworkError) as exc_info:
            await client.execute(client.build_request("GET", "account"), ctx)
        assert time.monotonic() - started < 2.0
        assert handler.calls == 1
        assert "backoff" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancel_during_rate_limit_wait(self):
        handler = respond_with(200, json=ACCOUNT_JSON)
        client = make_client(handler, requests_per_second=0.1, burst=1)
        await client.execute(client.build_request("GET", "account"))

        ctx = CallContext()
        asyncio.get_running_loop().call_later(0.05, ctx.cancel)
        with pytest.raises(NetworkError) as exc_info:
            await client.execute(client.build_request("GET", "account"), ctx)
        assert handler.calls == 1
        assert "rate limiter" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancelling_one_call_leaves_others(self):
        handler = respond_with(200, json=ACCOUNT_JSON)
        client = make_client(handler)
        cancelled = CallContext()
        cancelled.cancel()

        results = await asyncio.gather(
            client.execute(client.build_request("GET", "account"), cancelled),
            client.execute(client.build_request("GET", "account")),
            return_exceptions=True,
        )
        assert isinstance(results[0], NetworkError)
        assert isinstance(results[1], bytes)


class TestDiagnostics:
    """Sink events are observational only."""

    @pytest.mark.asyncio
    async def test_debug_before_each_attempt_error_per_failure(self):
        sink = RecordingSink()
        client = make_client(_fail_then_succeed(1), max_retries=2, diagnostics=sink)
        await client.execute(client.build_request("GET", "account"))
        assert sink.debug_events == ["attempt 1/3: GET account", "attempt 2/3: GET account"]
        assert len(sink.error_events) == 1
        assert "status 503" in sink.error_events[0]

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_change_outcome(self, caplog):
        client = make_client(_fail_then_succeed(1), max_retries=2, diagnostics=ExplodingSink())
        body = await client.execute(client.build_request("GET", "account"))
        assert b"testuser" in body
        assert "sink" in caplog.text.lower()

    @pytest.mark.asyncio
    async def test_secrets_not_in_events(self):
        sink = RecordingSink()
        client = make_client(respond_with(401), diagnostics=sink)
        with pytest.raises(APIError):
            await client.execute(client.build_request("GET", "account"))
        events = " ".join(sink.debug_events + sink.error_events)
        assert "mp-test-access-token" not in events


class TestDescriptorIdentity:
    """Retries resend the identical request."""

    @pytest.mark.asyncio
    async def test_same_request_every_attempt(self):
        handler = respond_with(500)
        client = make_client(handler, max_retries=2)
        descriptor = client.build_request(
            "POST", "seller/inventory", params={"limit": 10}, json={"price_cents": 499}
        )
        with pytest.raises(APIError):
            await client.execute(descriptor)

        seen = {(r.method, str(r.url), r.content) for r in handler.requests}
        assert len(seen) == 1
        method, url, content = seen.pop()
        assert method == "POST"
        assert url == "https://manapool.com/api/v1/seller/inventory?limit=10"
        assert content == b'{"price_cents":499}'


class TestRequestExecutorDirect:
    """RequestExecutor used without a client."""

    @pytest.mark.asyncio
    async def test_execute_with_own_collaborators(self):
        handler = respond_with(200, content=b"ok")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            executor = RequestExecutor(
                http,
                base_url="https://example.test/api",
                timeout=5.0,
                max_retries=0,
                limiter=TokenBucketLimiter(100, 10),
                backoff=ExponentialBackoff(0.0),
            )
            descriptor = RequestDescriptor.build("get", "/ping")
            assert await executor.execute(descriptor) == b"ok"
        assert str(handler.requests[0].url) == "https://example.test/api/ping"

    def test_rejects_negative_max_retries(self):
        with pytest.raises(ValueError):
            RequestExecutor(
                httpx.AsyncClient(),
                base_url="https://example.test/",
                timeout=1.0,
                max_retries=-1,
                limiter=TokenBucketLimiter(),
            )
