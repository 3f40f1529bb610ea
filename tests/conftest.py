"""Shared test fixtures for manapool tests.

Provides a mock-transport client factory, a recording sleep that never
actually waits, and mock response builders.
"""

from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import httpx
import pytest

from manapool import ManapoolClient

TEST_TOKEN = "mp-test-access-token-123456"
TEST_EMAIL = "seller@example.com"


# ---------------------------------------------------------------------------
# Recording sleep / fake clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock advanced only by RecordingSleep (or by hand)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep that records requested delays and returns immediately."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.delays: list[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


# ---------------------------------------------------------------------------
# Transport helpers
# ---------------------------------------------------------------------------


class RecordingHandler:
    """httpx.MockTransport handler that records requests.

    ``responder`` receives the request and the 1-based call number and
    returns an ``httpx.Response`` (or raises a transport exception).
    """

    def __init__(self, responder: Callable[[httpx.Request, int], httpx.Response]):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request, len(self.requests))


def respond_with(
    status_code: int = 200,
    *,
    json: Any = None,
    content: bytes = b"",
    headers: Optional[dict[str, str]] = None,
) -> RecordingHandler:
    """Handler returning the same response on every call."""

    def responder(request: httpx.Request, call: int) -> httpx.Response:
        if json is not None:
            return httpx.Response(status_code, json=json, headers=headers)
        return httpx.Response(status_code, content=content, headers=headers)

    return RecordingHandler(responder)


def make_client(
    handler: Callable[[httpx.Request], Any],
    **kwargs: Any,
) -> ManapoolClient:
    """Build a client whose transport is ``handler``.

    Defaults keep tests fast: a generous rate limit and a zero initial
    backoff unless the test overrides them.
    """
    kwargs.setdefault("requests_per_second", 1000.0)
    kwargs.setdefault("burst", 100)
    kwargs.setdefault("initial_backoff", 0.0)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ManapoolClient(TEST_TOKEN, TEST_EMAIL, http_client=http_client, **kwargs)


# ---------------------------------------------------------------------------
# Mock response builder
# ---------------------------------------------------------------------------


def make_mock_response(
    *,
    status_code: int = 200,
    headers: dict | None = None,
    content: bytes = b"",
) -> MagicMock:
    """Build a mock httpx.Response.

    Args:
        status_code: HTTP status code.
        headers: Response headers dict.
        content: Raw body.

    Returns:
        MagicMock configured as an httpx.Response.
    """
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.headers = httpx.Headers(headers or {})
    response.content = content
    return response


ACCOUNT_JSON = {
    "username": "testuser",
    "email": "test@example.com",
    "verified": True,
    "singles_live": True,
    "sealed_live": False,
    "payouts_enabled": True,
}

INVENTORY_ITEM_JSON = {
    "id": "inv123",
    "product_type": "single",
    "product_id": "prod456",
    "price_cents": 499,
    "quantity": 5,
    "effective_as_of": "2025-08-05T20:38:54.549229Z",
    "product": {
        "type": "single",
        "id": "prod456",
        "tcgplayer_sku": 123456,
        "single": {
            "scryfall_id": "abc123",
            "mtgjson_id": "def456",
            "name": "Black Lotus",
            "set": "LEA",
            "number": "232",
            "language_id": "EN",
            "condition_id": "NM",
            "finish_id": "NF",
        },
        "sealed": {
            "mtgjson_id": "",
            "name": "",
            "set": "",
            "language_id": "",
        },
    },
}

INVENTORY_JSON = {
    "inventory": [INVENTORY_ITEM_JSON],
    "pagination": {"total": 1, "returned": 1, "offset": 0, "limit": 500},
}
