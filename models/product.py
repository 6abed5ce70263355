"""
Product schemas.

ProductRecord is the shape both sides are reduced to before comparison:
Odoo rows after fetch, PrestaShop rows after parsing.
"""

from pydantic import Field, field_validator
from typing import Optional
from decimal import Decimal
from datetime import datetime

from models.base import BaseSchema


class ProductRecord(BaseSchema):
    """
    A product snapshot with the fields the sync cares about.

    Quantity is an integer; price keeps Decimal precision so that
    9.99 and "9.990000" compare equal.
    """

    id: int = Field(..., description="Internal ID on the system that produced the record")
    sku: str = Field(..., description="Product reference (Odoo default_code / Presta reference)")
    name: str = Field(default="", description="Product name")
    price: Decimal = Field(default=Decimal("0"), description="Sale price, tax excluded")
    quantity: int = Field(default=0, description="Available quantity")
    modified_at: Optional[datetime] = Field(None, description="Last write time (UTC)")

    @field_validator("price", mode="before")
    @classmethod
    def price_from_any(cls, v):
        """Accept floats and numeric strings without binary float noise."""
        if v is None or v == "":
            return Decimal("0")
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("quantity", mode="before")
    @classmethod
    def quantity_from_any(cls, v):
        """Odoo reports qty_available as float; Presta as string."""
        if v is None or v == "":
            return 0
        return int(float(v))


class SyncItem(BaseSchema):
    """
    One unit of work for the sync pipeline.

    Built from a ProductRecord (cron runs) or from a webhook pair,
    in which case price is None and left untouched.
    """

    sku: str = Field(default="", description="Raw SKU, normalized by the pipeline")
    quantity: int = Field(..., description="Desired quantity")
    price: Optional[Decimal] = Field(None, description="Desired price, None to leave as is")

    @classmethod
    def from_record(cls, record: ProductRecord) -> "SyncItem":
        return cls(sku=record.sku, quantity=record.quantity, price=record.price)
