"""
Business logic services.

Each service handles one step of the Odoo → PrestaShop sync.
"""

from services.sku_resolver import SkuCache, SkuResolver
from services.reconciliation_service import (
    ReconciliationService,
    build_odoo_client,
    build_presta_client,
    build_reconciliation_service,
)
from services.audit_service import AuditWriter
from services.sync_state_service import SyncStateStore
from services.sync_pipeline import SyncPipeline
from services.product_sync_service import ProductSyncService, build_product_sync_service
from services.stock_sync_service import StockSyncService, build_stock_sync_service

__all__ = [
    "SkuCache",
    "SkuResolver",
    "ReconciliationService",
    "build_odoo_client",
    "build_presta_client",
    "build_reconciliation_service",
    "AuditWriter",
    "SyncStateStore",
    "SyncPipeline",
    "ProductSyncService",
    "build_product_sync_service",
    "StockSyncService",
    "build_stock_sync_service",
]
