"""
Sync pipeline schemas: run context, resolution results, write results,
audit rows and run summaries.
"""

from pydantic import Field
from typing import Any, Literal, Optional
from enum import Enum
from decimal import Decimal
from datetime import datetime, timezone

from models.base import BaseSchema, FrozenSchema
from models.product import ProductRecord


class Flow(str, Enum):
    """Which pipeline a run belongs to."""
    PRODUCT = "product"
    STOCK = "stock"
    SALE = "sale"


class SyncAction(str, Enum):
    """Terminal state of one processed item."""
    UPDATED = "updated"
    SKIPPED = "skipped"
    SKIPPED_NEGATIVE_QTY = "skipped_negative_qty"
    DRYRUN = "dryrun"
    FAILED = "failed"
    ERROR = "error"


class SyncContext(FrozenSchema):
    """
    Per-run values threaded through every service call.

    Replaces any process-wide "current request id".
    """

    request_id: str = Field(..., description="Correlation id for logs and CSV names")
    flow: Flow = Field(..., description="Pipeline variant")
    dry_run: bool = Field(default=False, description="Compute and log, never write")
    csv_always: bool = Field(default=False, description="Write audit CSV on real runs")
    since: Optional[datetime] = Field(None, description="ERP modification cutoff")

    def log_context(self) -> dict:
        """Key/values to bind on a structlog logger."""
        return {"request_id": self.request_id, "flow": self.flow.value}


# ===================
# SKU CACHE / RESOLUTION
# ===================

class CacheEntry(BaseSchema):
    """One SKU -> PrestaShop id mapping in the cache file."""

    sku: str = Field(..., description="Normalized SKU (cache key)")
    external_id: int = Field(..., description="PrestaShop product id")
    cached_at: float = Field(..., description="Epoch seconds of the last successful lookup")

    def is_fresh(self, now: float, ttl_seconds: int) -> bool:
        return now - self.cached_at < ttl_seconds


class ResolutionResult(FrozenSchema):
    """Outcome of SkuResolver.resolve(). Not-found is a value, never an exception."""

    ok: bool
    sku: str
    id: Optional[int] = None
    source: Optional[Literal["cache", "api"]] = None
    reason: Optional[Literal["not_found"]] = None

    @classmethod
    def found(cls, sku: str, external_id: int, source: str) -> "ResolutionResult":
        return cls(ok=True, sku=sku, id=external_id, source=source)

    @classmethod
    def not_found(cls, sku: str) -> "ResolutionResult":
        return cls(ok=False, sku=sku, reason="not_found")


# ===================
# WRITE RESULTS
# ===================

class FieldChange(FrozenSchema):
    """Before/after value of a single changed field."""
    before: Any = None
    after: Any = None


class UpdateResult(FrozenSchema):
    """
    Outcome of ReconciliationService.update_partial_by_sku().

    ok=True with skipped/dryrun means nothing was written.
    """

    ok: bool
    skipped: bool = False
    dryrun: bool = False
    changes: dict[str, FieldChange] = Field(default_factory=dict)
    before: Optional[ProductRecord] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    http_code: Optional[int] = None


class AdjustResult(FrozenSchema):
    """Outcome of an Odoo stock write (adjust_stock / sync_sale_to_odoo)."""

    ok: bool
    reason: Optional[str] = None
    quant_id: Optional[int] = None
    quantity: Optional[int] = None
    dryrun: bool = False
    message: Optional[str] = None


# ===================
# AUDIT
# ===================

PRODUCT_AUDIT_COLUMNS = [
    "sku", "price_before", "price_after", "qty_before", "qty_after",
    "action", "reason", "dryrun", "ts",
]

STOCK_AUDIT_COLUMNS = [
    "sku", "qty_before", "qty_after", "price_before", "price_after",
    "action", "detail", "dryrun", "ts",
]


class AuditRow(BaseSchema):
    """One processed item of one pipeline run."""

    sku: str
    qty_before: Optional[int] = None
    qty_after: Optional[int] = None
    price_before: Optional[Decimal] = None
    price_after: Optional[Decimal] = None
    action: SyncAction
    reason: Optional[str] = None
    detail: Optional[str] = None
    dryrun: bool = False
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_csv_row(self, columns: list[str]) -> dict[str, str]:
        """Flatten to strings for csv.DictWriter; None becomes empty."""
        values = {
            "sku": self.sku,
            "qty_before": self.qty_before,
            "qty_after": self.qty_after,
            "price_before": self.price_before,
            "price_after": self.price_after,
            "action": self.action.value,
            "reason": self.reason,
            "detail": self.detail if self.detail is not None else self.reason,
            "dryrun": "true" if self.dryrun else "false",
            "ts": self.ts.isoformat(),
        }
        return {col: "" if values[col] is None else str(values[col]) for col in columns}


class SyncSummary(BaseSchema):
    """What a pipeline run returns to the CLI or webhook."""

    summary: Literal["done", "no_products", "no_items", "erp_unavailable"]
    count: int = 0
    actions: dict[str, int] = Field(default_factory=dict)
    rows: list[AuditRow] = Field(default_factory=list)
    csv_path: Optional[str] = None
