"""Async Python client for the Manapool marketplace API."""

from manapool._version import __version__
from manapool.client import ManapoolClient
from manapool.config import ClientConfig
from manapool.context import CallContext
from manapool.diagnostics import DiagnosticsSink, LoggingSink, NullSink
from manapool.errors import (
    APIError,
    ContextCancelled,
    ManapoolError,
    NetworkError,
    ValidationError,
)
from manapool.models import (
    Account,
    InventoryItem,
    InventoryOptions,
    InventoryResponse,
    Pagination,
    Product,
    Sealed,
    Single,
    Timestamp,
)
from manapool.request import RequestDescriptor

__all__ = [
    "__version__",
    # Client
    "ManapoolClient",
    "ClientConfig",
    "CallContext",
    "RequestDescriptor",
    # Diagnostics
    "DiagnosticsSink",
    "LoggingSink",
    "NullSink",
    # Errors
    "ManapoolError",
    "APIError",
    "ValidationError",
    "NetworkError",
    "ContextCancelled",
    # Models
    "Account",
    "InventoryItem",
    "InventoryOptions",
    "InventoryResponse",
    "Pagination",
    "Product",
    "Sealed",
    "Single",
    "Timestamp",
]
