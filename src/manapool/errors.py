"""Manapool client error classes.

Every failed logical call surfaces exactly one of these exceptions:

- :class:`APIError`: the API answered with a non-success status
- :class:`ValidationError`: a local precondition failed, or a successful
  response body did not match the expected shape
- :class:`NetworkError`: the request never produced a response
  (connection, DNS, timeout, cancellation)

Callers branch on the exception type and on the ``APIError`` predicates,
never on message text.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    import httpx


class ManapoolError(Exception):
    """Base exception for all manapool client errors."""


class APIError(ManapoolError):
    """Raised when the Manapool API responds with a non-success status.

    Attributes:
        status_code: HTTP status code returned by the API
        message: Error message from the API, or a descriptive fallback
        request_id: Server-side request identifier (if available)
        response: The raw httpx response (may be None)
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        request_id: Optional[str] = None,
        response: Optional["httpx.Response"] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.request_id = request_id
        self.response = response
        super().__init__(self._format())

    def _format(self) -> str:
        if self.request_id:
            return (
                f"manapool API error (status {self.status_code}, "
                f"request {self.request_id}): {self.message}"
            )
        return f"manapool API error (status {self.status_code}): {self.message}"

    def __str__(self) -> str:
        return self._format()

    @property
    def is_not_found(self) -> bool:
        """True for 404 Not Found."""
        return self.status_code == 404

    @property
    def is_unauthorized(self) -> bool:
        """True for 401 Unauthorized."""
        return self.status_code == 401

    @property
    def is_forbidden(self) -> bool:
        """True for 403 Forbidden."""
        return self.status_code == 403

    @property
    def is_rate_limited(self) -> bool:
        """True for 429 Too Many Requests."""
        return self.status_code == 429

    @property
    def is_server_error(self) -> bool:
        """True for any 5xx status."""
        return 500 <= self.status_code < 600


class ValidationError(ManapoolError):
    """Raised when input validation or response decoding fails.

    Attributes:
        field: Name of the offending option or response part
        message: Human-readable description of the problem
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"validation error for field '{field}': {message}")


class NetworkError(ManapoolError):
    """Raised when no usable response was received.

    Attributes:
        message: Description of what failed
        cause: The underlying transport or cancellation exception, if any
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        if cause is not None:
            super().__init__(f"network error: {message}: {cause}")
        else:
            super().__init__(f"network error: {message}")


class ContextCancelled(Exception):
    """A call context was cancelled or its deadline passed.

    Raised from suspension points inside the client and always wrapped in
    a :class:`NetworkError` before reaching the caller.

    Attributes:
        reason: ``"cancelled"`` or ``"deadline exceeded"``
    """

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(f"context {reason}")
