"""Typed API models."""

from manapool.models.account import Account
from manapool.models.inventory import (
    InventoryItem,
    InventoryItemResponse,
    InventoryResponse,
    Pagination,
    Product,
    Sealed,
    Single,
)
from manapool.models.options import InventoryOptions
from manapool.models.timestamps import Timestamp, format_timestamp, parse_timestamp

__all__ = [
    "Account",
    "InventoryItem",
    "InventoryItemResponse",
    "InventoryOptions",
    "InventoryResponse",
    "Pagination",
    "Product",
    "Sealed",
    "Single",
    "Timestamp",
    "format_timestamp",
    "parse_timestamp",
]
