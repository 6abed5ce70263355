"""
Webhook request/response schemas.
"""

from pydantic import Field, field_validator
from typing import Optional, Any

from models.base import BaseSchema


class StockWebhookItem(BaseSchema):
    """
    One (sku, qty) pair pushed by the webhook caller.

    qty is the absolute quantity to publish for the SKU.
    """

    sku: str = Field(..., min_length=1, description="Product reference")
    qty: int = Field(..., description="Quantity")

    @field_validator("qty", mode="before")
    @classmethod
    def qty_integral(cls, v):
        """Reject booleans and non-integral numbers; accept "5"."""
        if isinstance(v, bool):
            raise ValueError("qty must be a number")
        if isinstance(v, float) and not v.is_integer():
            raise ValueError("qty must be an integer")
        return v


class WebhookResponse(BaseSchema):
    """Body returned by every webhook endpoint."""

    status: str = Field(..., description="ok, failed or error")
    requestId: str = Field(..., description="Correlation id")
    summary: Optional[str] = None
    count: Optional[int] = None
    message: Optional[str] = None
    result: Optional[dict[str, Any]] = None


class SaleWebhookItem(StockWebhookItem):
    """A sale notification: qty units of sku were sold."""

    qty: int = Field(..., ge=0, description="Sold quantity")
