"""Request option types validated before any network call."""

from dataclasses import dataclass

from manapool.errors import ValidationError

DEFAULT_INVENTORY_LIMIT = 500
MAX_INVENTORY_LIMIT = 500


@dataclass
class InventoryOptions:
    """Pagination for ``GET seller/inventory``.

    A ``limit`` of 0 means "use the default" (500).
    """

    limit: int = 0
    offset: int = 0

    def validate(self) -> None:
        """Check bounds, defaulting a zero limit in place.

        Raises:
            ValidationError: If limit or offset is out of range.
        """
        if self.limit < 0:
            raise ValidationError("limit", "limit must be non-negative")
        if self.limit == 0:
            self.limit = DEFAULT_INVENTORY_LIMIT
        if self.limit > MAX_INVENTORY_LIMIT:
            raise ValidationError("limit", f"limit must not exceed {MAX_INVENTORY_LIMIT}")
        if self.offset < 0:
            raise ValidationError("offset", "offset must be non-negative")

    def to_params(self) -> list[tuple[str, int]]:
        """Query parameters for a validated instance."""
        return [("limit", self.limit), ("offset", self.offset)]
