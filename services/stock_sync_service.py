"""
Stock sync: ERP quantities (cron) or webhook pairs → shop quantity.

Webhook items carry no price, so only quantity is compared for them.
"""

from typing import Optional

from config.settings import Settings
from integrations.odoo import OdooClient
from models.product import SyncItem
from models.sync import STOCK_AUDIT_COLUMNS, AuditRow, SyncAction, SyncContext, UpdateResult
from services.audit_service import AuditWriter
from services.reconciliation_service import build_odoo_client, build_reconciliation_service
from services.sync_pipeline import SyncPipeline
from utils.text_utils import format_change

CHANGE_LABELS = {
    "quantity": "Stock",
    "price": "Price",
    "name": "Name",
}


def describe_changes(result: Optional[UpdateResult]) -> Optional[str]:
    """'Stock: 5 → 3 | Price: 9.99 → 8.50', or None without changes."""
    if result is None or not result.changes:
        return None
    return " | ".join(
        format_change(CHANGE_LABELS.get(field, field), change.before, change.after)
        for field, change in result.changes.items()
    )


class StockSyncService(SyncPipeline):
    """Stock flow. The detail column summarizes what changed."""

    audit_columns = STOCK_AUDIT_COLUMNS

    def make_row(
        self,
        sku: str,
        item: SyncItem,
        action: SyncAction,
        result: Optional[UpdateResult] = None,
        reason: Optional[str] = None,
    ) -> AuditRow:
        row = super().make_row(sku, item, action, result, reason)
        if action in (SyncAction.UPDATED, SyncAction.DRYRUN):
            row.detail = describe_changes(result)
        return row


def build_stock_sync_service(
    ctx: SyncContext,
    settings: Settings,
    erp: Optional[OdooClient] = None,
) -> StockSyncService:
    """
    Wire a stock pipeline for one run.

    The ERP client is only needed for cron runs; webhook runs pass
    items directly and never touch it.
    """
    erp = erp or build_odoo_client(settings, ctx.request_id)
    adapter = build_reconciliation_service(ctx, settings, erp=erp)
    return StockSyncService(ctx, adapter, AuditWriter(settings.dryrun_dir), erp=erp)
