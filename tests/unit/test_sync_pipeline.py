"""
Unit tests for the stock and product pipelines.

Run: pytest tests/unit/test_sync_pipeline.py -v
"""

import csv
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from exceptions import ErpAuthenticationError
from models.product import ProductRecord
from models.sync import STOCK_AUDIT_COLUMNS, AuditRow, Flow, SyncAction
from services.audit_service import AuditWriter, audit_filename
from tests.factories import ProductRecordFactory, SyncItemFactory


def read_csv(path: str) -> list[dict]:
    with open(path, newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


class TestStockPipelineEndToEnd:

    def test_single_item_patches_quantity_once(self, presta, odoo, make_pipeline):
        """ERP says A1=3, shop has id 42 with 5: one PATCH {quantity: 3}."""
        # Arrange
        presta.add_product(42, "A1", quantity=5, price="9.99")
        odoo.products = [ProductRecord(id=7, sku="A1", quantity=3, price="9.99")]
        pipeline = make_pipeline(Flow.STOCK)

        # Act
        summary = pipeline.run()

        # Assert
        assert summary.summary == "done"
        assert summary.count == 1
        assert summary.actions == {"updated": 1}
        assert presta.patches == [("/products/42", {"quantity": 3})]
        row = summary.rows[0]
        assert (row.qty_before, row.qty_after) == (5, 3)
        assert row.detail == "Stock: 5 → 3"
        assert row.price_before == row.price_after == Decimal("9.99")
        assert row.action == SyncAction.UPDATED
        assert summary.csv_path is None

    def test_second_run_is_idempotent(self, presta, odoo, make_pipeline):
        """Should make no write on a repeated run over unchanged input."""
        presta.add_product(42, "A1", quantity=5, price="9.99")
        odoo.products = [ProductRecord(id=7, sku="A1", quantity=3, price="9.99")]

        make_pipeline(Flow.STOCK).run()
        second = make_pipeline(Flow.STOCK).run()

        assert len(presta.patches) == 1
        assert second.actions == {"skipped": 1}
        assert second.rows[0].reason == "no_changes"

    def test_webhook_items_skip_erp_fetch(self, presta, odoo, make_pipeline):
        presta.add_product(42, "A1", quantity=5, price="9.99")
        odoo.fetch_error = AssertionError("ERP must not be read")

        summary = make_pipeline(Flow.STOCK).run([SyncItemFactory.create(sku="A1", quantity=3)])

        assert summary.actions == {"updated": 1}
        assert presta.patches == [("/products/42", {"quantity": 3})]

    def test_empty_item_list(self, make_pipeline):
        summary = make_pipeline(Flow.STOCK).run([])

        assert summary.summary == "no_items"
        assert summary.count == 0


class TestPipelineItemStates:

    def test_negative_quantity_skipped_without_write(self, presta, make_pipeline):
        presta.add_product(42, "A1", quantity=5)

        summary = make_pipeline(Flow.STOCK).run([SyncItemFactory.create(sku="A1", quantity=-2)])

        assert summary.actions == {"skipped_negative_qty": 1}
        assert presta.patches == []
        assert presta.gets == []

    def test_item_without_sku_dropped(self, presta, make_pipeline):
        summary = make_pipeline(Flow.STOCK).run([SyncItemFactory.create(sku="  ", quantity=2)])

        assert summary.count == 0
        assert summary.rows == []

    def test_unknown_sku_skipped_not_found(self, make_pipeline):
        summary = make_pipeline(Flow.STOCK).run([SyncItemFactory.create(sku="NOPE")])

        assert summary.rows[0].action == SyncAction.SKIPPED
        assert summary.rows[0].reason == "not_found"

    def test_http_failure_is_failed_row(self, presta, make_pipeline):
        presta.add_product(42, "A1", quantity=5)
        presta.patch_status = 503

        summary = make_pipeline(Flow.STOCK).run([SyncItemFactory.create(sku="A1", quantity=1)])

        assert summary.rows[0].action == SyncAction.FAILED
        assert summary.rows[0].reason == "http_503"

    def test_unexpected_exception_isolated_to_item(self, presta, make_pipeline):
        """Should record an error row and carry on with the next item."""
        presta.add_product(42, "A1", quantity=5)
        presta.add_product(43, "B2", quantity=5)
        pipeline = make_pipeline(Flow.STOCK)
        real_update = pipeline.adapter.update_partial_by_sku

        def flaky(sku, fields, dry_run):
            if sku == "A1":
                raise RuntimeError("kaboom")
            return real_update(sku, fields, dry_run)

        pipeline.adapter.update_partial_by_sku = flaky

        summary = pipeline.run([SyncItemFactory.create(sku="A1"), SyncItemFactory.create(sku="B2")])

        assert [r.action for r in summary.rows] == [SyncAction.ERROR, SyncAction.UPDATED]
        assert summary.rows[0].reason == "kaboom"

    def test_auth_failure_aborts_run(self, odoo, make_pipeline):
        odoo.auth_error = ErpAuthenticationError("bad credentials")

        with pytest.raises(ErpAuthenticationError):
            make_pipeline(Flow.PRODUCT).run()

    def test_erp_transport_error_on_fetch(self, odoo, make_pipeline, transport_error):
        odoo.fetch_error = transport_error

        summary = make_pipeline(Flow.PRODUCT).run()

        assert summary.summary == "erp_unavailable"
        assert summary.rows == []

    def test_no_products_in_window(self, odoo, make_pipeline):
        summary = make_pipeline(Flow.PRODUCT).run()

        assert summary.summary == "no_products"


class TestDryRunAndAudit:

    def test_dry_run_writes_nothing_and_emits_csv(self, presta, odoo, make_pipeline):
        presta.add_product(42, "A1", quantity=5, price="9.99")
        odoo.products = [ProductRecord(id=7, sku="A1", quantity=3, price="8.50")]

        summary = make_pipeline(Flow.STOCK, dry_run=True).run()

        assert presta.patches == []
        assert summary.actions == {"dryrun": 1}
        rows = read_csv(summary.csv_path)
        assert list(rows[0].keys()) == [
            "sku", "qty_before", "qty_after", "price_before", "price_after",
            "action", "detail", "dryrun", "ts",
        ]
        assert rows[0]["detail"] == "Stock: 5 → 3 | Price: 9.99 → 8.50"
        assert rows[0]["dryrun"] == "true"
        assert "stock_dryrun_" in summary.csv_path
        assert summary.csv_path.endswith("_req12345-test.csv")

    def test_product_flow_csv_columns_with_csv_always(self, presta, odoo, make_pipeline):
        presta.add_product(42, "A1", quantity=5, price="9.99")
        odoo.products = [ProductRecord(id=7, sku="A1", quantity=5, price="9.99")]

        summary = make_pipeline(Flow.PRODUCT, csv_always=True).run()

        rows = read_csv(summary.csv_path)
        assert list(rows[0].keys()) == [
            "sku", "price_before", "price_after", "qty_before", "qty_after",
            "action", "reason", "dryrun", "ts",
        ]
        assert rows[0]["action"] == "skipped"
        assert rows[0]["reason"] == "no_changes"
        assert "product_real_" in summary.csv_path

    def test_batch_of_many_products(self, presta, odoo, make_pipeline):
        records = ProductRecordFactory.create_batch(3, quantity=4)
        for i, record in enumerate(records):
            presta.add_product(100 + i, record.sku, quantity=4, price=str(record.price))
        odoo.products = records

        summary = make_pipeline(Flow.PRODUCT).run()

        assert summary.actions == {"skipped": 3}
        assert presta.patches == []

    def test_product_flow_authenticates_before_fetch(self, odoo, make_pipeline):
        odoo.authenticate = MagicMock(side_effect=odoo.authenticate)

        make_pipeline(Flow.PRODUCT).run()

        odoo.authenticate.assert_called_once()


class TestAuditWriter:

    FROZEN = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

    def write_twice(self, tmp_path, first_id, second_id):
        rows = [AuditRow(sku="A1", qty_before=5, qty_after=3, action=SyncAction.DRYRUN, dryrun=True)]
        writer = AuditWriter(tmp_path)
        with patch("services.audit_service.datetime") as mock_datetime:
            mock_datetime.now.return_value = self.FROZEN
            first = writer.write("stock", rows, STOCK_AUDIT_COLUMNS, True, first_id)
            second = writer.write("stock", rows, STOCK_AUDIT_COLUMNS, True, second_id)
        return first, second

    def test_same_second_runs_keep_both_files(self, tmp_path):
        """Two webhook runs in one second must not share an audit file."""
        first, second = self.write_twice(
            tmp_path, "wh-20261019T120000Z-a1b2c3", "wh-20261019T120000Z-d4e5f6"
        )

        assert first != second
        assert first.name == "stock_dryrun_20261019_120000_wh-20261019T120000Z-a1b2c3.csv"
        assert len(list(tmp_path.iterdir())) == 2
        assert len(read_csv(str(first))) == 1
        assert len(read_csv(str(second))) == 1

    def test_repeated_request_id_gets_suffix(self, tmp_path):
        first, second = self.write_twice(tmp_path, "abc-123", "abc-123")

        assert first.name == "stock_dryrun_20261019_120000_abc-123.csv"
        assert second.name == "stock_dryrun_20261019_120000_abc-123_1.csv"
        assert len(read_csv(str(first))) == 1

    def test_unsafe_request_id_characters_are_dropped(self):
        assert audit_filename("stock", False, "../x y", self.FROZEN) == "stock_real_20261019_120000_xy.csv"
