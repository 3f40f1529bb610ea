"""Diagnostics sinks for request-level events.

The executor reports one debug event per attempt and one error event per
classified failure. Sinks are injected per client; the default discards
everything.
"""

import logging
from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class DiagnosticsSink(Protocol):
    """Receiver for %-style formatted diagnostic events."""

    def debug(self, format: str, *args: Any) -> None: ...

    def error(self, format: str, *args: Any) -> None: ...


class NullSink:
    """Sink that discards all events."""

    def debug(self, format: str, *args: Any) -> None:
        return None

    def error(self, format: str, *args: Any) -> None:
        return None


class LoggingSink:
    """Sink that forwards events to a stdlib logger.

    Example:
        logging.basicConfig(level=logging.DEBUG)
        client = ManapoolClient(token, email, diagnostics=LoggingSink())
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("manapool.requests")

    def debug(self, format: str, *args: Any) -> None:
        self._logger.debug(format, *args)

    def error(self, format: str, *args: Any) -> None:
        self._logger.error(format, *args)


NULL_SINK = NullSink()
