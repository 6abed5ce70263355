"""
Shared ERP → shop sync loop.

Takes items (ERP snapshot or webhook), runs each one through the
reconciliation service and turns every outcome into an audit row.
One bad item never stops the batch; only an ERP authentication
failure does.
"""

from collections import Counter
from typing import Optional

import structlog

from exceptions import ErpAuthenticationError, ErpTransportError
from integrations.odoo import OdooClient
from models.product import SyncItem
from models.sync import AuditRow, SyncAction, SyncContext, SyncSummary, UpdateResult
from services.audit_service import AuditWriter
from services.reconciliation_service import ReconciliationService
from utils.text_utils import normalize_sku

logger = structlog.get_logger(__name__)


class SyncPipeline:
    """
    Base pipeline. Subclasses set `audit_columns` and may shape rows.

    Usage:
        pipeline = StockSyncService(ctx, adapter, AuditWriter(dir), erp=odoo)
        summary = pipeline.run()
    """

    audit_columns: list[str] = []

    def __init__(
        self,
        ctx: SyncContext,
        adapter: ReconciliationService,
        audit_writer: AuditWriter,
        erp: Optional[OdooClient] = None,
    ):
        self.ctx = ctx
        self.adapter = adapter
        self.audit_writer = audit_writer
        self.erp = erp
        self.log = logger.bind(**ctx.log_context())

    # ===================
    # RUN
    # ===================

    def run(self, items: Optional[list[SyncItem]] = None) -> SyncSummary:
        """
        Process a batch.

        Args:
            items: Explicit items; when None the ERP snapshot since
                ctx.since is fetched

        Returns:
            SyncSummary

        Raises:
            ErpAuthenticationError: If the ERP rejects the credentials
        """
        self.log.info("sync_started", dry_run=self.ctx.dry_run, since=self.ctx.since)

        if items is None:
            try:
                items = self.fetch_items()
            except ErpTransportError as e:
                self.log.error("erp_unavailable", error=e.message)
                return SyncSummary(summary="erp_unavailable")
            empty_summary = "no_products"
        else:
            empty_summary = "no_items"

        if not items:
            self.log.info("sync_nothing_to_do", summary=empty_summary)
            return SyncSummary(summary=empty_summary)

        rows = []
        for item in items:
            row = self.process_item(item)
            if row is not None:
                rows.append(row)

        actions = Counter(row.action.value for row in rows)

        csv_path = None
        if rows and (self.ctx.dry_run or self.ctx.csv_always):
            csv_path = str(self.audit_writer.write(
                self.ctx.flow.value,
                rows,
                self.audit_columns,
                self.ctx.dry_run,
                self.ctx.request_id
            ))

        self.log.info("sync_completed", count=len(rows), actions=dict(actions), csv_path=csv_path)

        return SyncSummary(
            summary="done",
            count=len(rows),
            actions=dict(actions),
            rows=rows,
            csv_path=csv_path
        )

    def fetch_items(self) -> list[SyncItem]:
        """ERP products modified since ctx.since."""
        if self.erp is None:
            raise ErpAuthenticationError("Odoo is not configured")
        if not self.erp.is_authenticated:
            self.erp.authenticate()
        return [SyncItem.from_record(p) for p in self.erp.fetch_products(self.ctx.since)]

    # ===================
    # PER ITEM
    # ===================

    def desired_fields(self, item: SyncItem) -> dict:
        fields = {"quantity": item.quantity}
        if item.price is not None:
            fields["price"] = item.price
        return fields

    def process_item(self, item: SyncItem) -> Optional[AuditRow]:
        """Run one item; None when it has no SKU."""
        sku = normalize_sku(item.sku)
        if not sku:
            self.log.warning("item_without_sku_dropped", quantity=item.quantity)
            return None

        if item.quantity < 0:
            self.log.warning("negative_quantity_skipped", sku=sku, quantity=item.quantity)
            return self.make_row(sku, item, SyncAction.SKIPPED_NEGATIVE_QTY, reason="negative_qty")

        try:
            result = self.adapter.update_partial_by_sku(sku, self.desired_fields(item), self.ctx.dry_run)
        except ErpAuthenticationError:
            raise
        except Exception as e:
            self.log.error("item_sync_error", sku=sku, error=str(e), error_type=type(e).__name__)
            return self.make_row(sku, item, SyncAction.ERROR, reason=str(e))

        return self.row_from_result(sku, item, result)

    def row_from_result(self, sku: str, item: SyncItem, result: UpdateResult) -> AuditRow:
        if not result.ok:
            if result.reason == "not_found":
                return self.make_row(sku, item, SyncAction.SKIPPED, result, reason="not_found")
            self.log.warning("item_sync_failed", sku=sku, reason=result.reason)
            return self.make_row(sku, item, SyncAction.FAILED, result, reason=result.reason)

        if result.skipped:
            return self.make_row(sku, item, SyncAction.SKIPPED, result, reason=result.reason or "no_changes")

        if result.dryrun:
            return self.make_row(sku, item, SyncAction.DRYRUN, result)

        return self.make_row(sku, item, SyncAction.UPDATED, result)

    def make_row(
        self,
        sku: str,
        item: SyncItem,
        action: SyncAction,
        result: Optional[UpdateResult] = None,
        reason: Optional[str] = None,
    ) -> AuditRow:
        before = result.before if result else None
        return AuditRow(
            sku=sku,
            qty_before=before.quantity if before else None,
            qty_after=item.quantity,
            price_before=before.price if before else None,
            price_after=item.price,
            action=action,
            reason=reason,
            dryrun=self.ctx.dry_run,
        )
