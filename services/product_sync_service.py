"""
Product sync: ERP products modified in the window → shop price/quantity.
"""

from typing import Optional

from config.settings import Settings
from integrations.odoo import OdooClient
from models.sync import PRODUCT_AUDIT_COLUMNS, SyncContext
from services.audit_service import AuditWriter
from services.reconciliation_service import build_odoo_client, build_reconciliation_service
from services.sync_pipeline import SyncPipeline


class ProductSyncService(SyncPipeline):
    """Cron-driven product flow. Audit rows carry the reason column."""

    audit_columns = PRODUCT_AUDIT_COLUMNS


def build_product_sync_service(
    ctx: SyncContext,
    settings: Settings,
    erp: Optional[OdooClient] = None,
) -> ProductSyncService:
    erp = erp or build_odoo_client(settings, ctx.request_id)
    adapter = build_reconciliation_service(ctx, settings, erp=erp)
    return ProductSyncService(ctx, adapter, AuditWriter(settings.dryrun_dir), erp=erp)
