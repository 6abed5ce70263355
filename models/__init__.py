"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, FrozenSchema
from models.product import ProductRecord, SyncItem
from models.sync import (
    Flow,
    SyncAction,
    SyncContext,
    CacheEntry,
    ResolutionResult,
    FieldChange,
    UpdateResult,
    AdjustResult,
    AuditRow,
    SyncSummary,
    PRODUCT_AUDIT_COLUMNS,
    STOCK_AUDIT_COLUMNS,
)
from models.webhook import StockWebhookItem, SaleWebhookItem, WebhookResponse

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",

    # Product
    "ProductRecord",
    "SyncItem",

    # Sync
    "Flow",
    "SyncAction",
    "SyncContext",
    "CacheEntry",
    "ResolutionResult",
    "FieldChange",
    "UpdateResult",
    "AdjustResult",
    "AuditRow",
    "SyncSummary",
    "PRODUCT_AUDIT_COLUMNS",
    "STOCK_AUDIT_COLUMNS",

    # Webhook
    "StockWebhookItem",
    "SaleWebhookItem",
    "WebhookResponse",
]
