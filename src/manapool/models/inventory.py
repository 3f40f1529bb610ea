"""Seller inventory models."""

from typing import Optional

from pydantic import BaseModel, Field

from manapool.models.timestamps import Timestamp

CONDITION_NAMES = {
    "NM": "Near Mint",
    "LP": "Lightly Played",
    "MP": "Moderately Played",
    "HP": "Heavily Played",
    "DMG": "Damaged",
}

# Finishes rendered as "Foil" (foil, etched foil)
FOIL_FINISHES = frozenset({"FO", "EF"})


class Single(BaseModel):
    """A single card product."""

    scryfall_id: str = Field(default="", description="Scryfall card id")
    mtgjson_id: str = Field(default="", description="MTGJSON card uuid")
    name: str = Field(default="", description="Card name")
    set_code: str = Field(default="", alias="set", description="Set code")
    number: str = Field(default="", description="Collector number")
    language_id: str = Field(default="", description="Language code (EN, JA, ...)")
    condition_id: str = Field(default="", description="Condition code (NM, LP, MP, HP, DMG)")
    finish_id: str = Field(default="", description="Finish code (NF, FO, EF)")

    model_config = {"populate_by_name": True}

    def condition_name(self) -> str:
        """Human-readable condition, e.g. ``"Near Mint Foil"``."""
        name = CONDITION_NAMES.get(self.condition_id)
        if name is None:
            return "Unknown"
        if self.finish_id in FOIL_FINISHES:
            return f"{name} Foil"
        return name


class Sealed(BaseModel):
    """A sealed product."""

    mtgjson_id: str = Field(default="", description="MTGJSON product uuid")
    name: str = Field(default="", description="Product name")
    set_code: str = Field(default="", alias="set", description="Set code")
    language_id: str = Field(default="", description="Language code")

    model_config = {"populate_by_name": True}


class Product(BaseModel):
    """Catalog product behind an inventory item."""

    type: str = Field(default="", description="Product type (single, sealed)")
    id: str = Field(default="", description="Product id")
    tcgplayer_sku: Optional[int] = Field(None, description="TCGplayer SKU")
    single: Optional[Single] = Field(None, description="Single details, for singles")
    sealed: Optional[Sealed] = Field(None, description="Sealed details, for sealed products")


class InventoryItem(BaseModel):
    """One inventory listing."""

    id: str = Field(..., description="Inventory item id")
    product_type: str = Field(default="", description="Product type")
    product_id: str = Field(default="", description="Product id")
    price_cents: int = Field(..., description="Listing price in cents")
    quantity: int = Field(..., description="Quantity available")
    effective_as_of: Optional[Timestamp] = Field(None, description="When this listing took effect")
    product: Optional[Product] = Field(None, description="Product details")

    def price_dollars(self) -> float:
        """Listing price in dollars."""
        return self.price_cents / 100


class Pagination(BaseModel):
    """Pagination envelope of list responses."""

    total: int = Field(default=0, description="Total matching items")
    returned: int = Field(default=0, description="Items in this page")
    offset: int = Field(default=0, description="Offset of this page")
    limit: int = Field(default=0, description="Page size requested")


class InventoryResponse(BaseModel):
    """Response of ``GET seller/inventory``."""

    inventory: list[InventoryItem] = Field(default_factory=list, description="Inventory page")
    pagination: Pagination = Field(default_factory=Pagination, description="Pagination info")


class InventoryItemResponse(BaseModel):
    """Envelope of single-item inventory lookups."""

    inventory: InventoryItem = Field(..., description="The matching inventory item")
