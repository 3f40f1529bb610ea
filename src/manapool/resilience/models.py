"""Resilience data models, enums, and protocols.

Defines the core types shared by the resilience sub-package:
- ErrorType enum for error classification
- ErrorClassification for retry decisions
- Attempt outcomes produced by one transport round trip
- RetryState for one logical call
- SleepFunc protocol for injectable async sleep
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional, Protocol, Union

from manapool.errors import ManapoolError

if TYPE_CHECKING:
    import httpx


class ErrorType(str, Enum):
    """Classification of failures for retry decisions and diagnostics."""

    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    CANCELLED = "cancelled"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"


@dataclass(frozen=True)
class ErrorClassification:
    """Classification result for one failed attempt.

    Attributes:
        error: Typed error to raise if this failure ends the call
        retryable: Whether another attempt may be made
        error_type: Failure category
        backoff_seconds: Server-suggested delay (Retry-After), if any
    """

    error: ManapoolError
    retryable: bool
    error_type: ErrorType
    backoff_seconds: Optional[float] = None


@dataclass(frozen=True)
class AttemptSuccess:
    """2xx response."""

    status: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TransportFailure:
    """No response: connection, DNS, timeout or cancellation failure."""

    cause: BaseException


@dataclass(frozen=True)
class HTTPFailure:
    """Non-2xx response."""

    status: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    response: Optional["httpx.Response"] = None


AttemptOutcome = Union[AttemptSuccess, TransportFailure, HTTPFailure]


@dataclass
class RetryState:
    """Bookkeeping for one logical call. Never shared between calls."""

    attempt: int = 0
    total_backoff: float = 0.0
    started_at: float = field(default_factory=time.monotonic)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...
