"""
Unit tests for OdooClient.

The XML-RPC proxies are replaced through proxy_factory.

Run: pytest tests/unit/test_odoo_client.py -v
"""

import xmlrpc.client
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from exceptions import ErpAuthenticationError, ErpTransportError
from integrations.odoo import OdooClient, parse_odoo_datetime
from tests.factories import OdooRowFactory


def make_client(uid=2):
    """OdooClient whose proxies are MagicMocks; returns (client, common, models)."""
    common = MagicMock()
    common.authenticate.return_value = uid
    models = MagicMock()

    def factory(url, timeout):
        return common if url.endswith("/common") else models

    client = OdooClient("https://odoo.test/", "db", "admin", "secret", proxy_factory=factory)
    return client, common, models


def route_execute_kw(models, handlers: dict):
    """Dispatch execute_kw(db, uid, pwd, model, method, args, kwargs) to handlers[(model, method)]."""
    calls = []

    def side_effect(db, uid, pwd, model, method, args, kwargs):
        calls.append((model, method, args, kwargs))
        handler = handlers[(model, method)]
        return handler(args, kwargs) if callable(handler) else handler

    models.execute_kw.side_effect = side_effect
    return calls


class TestAuthenticate:

    def test_authenticate_sets_uid(self):
        client, common, _ = make_client(uid=5)

        client.authenticate()

        assert client.uid == 5
        assert client.is_authenticated
        common.authenticate.assert_called_once_with("db", "admin", "secret", {})

    @pytest.mark.parametrize("uid", [False, 0, None, "2"])
    def test_rejected_uid_raises(self, uid):
        client, _, _ = make_client(uid=uid)

        with pytest.raises(ErpAuthenticationError):
            client.authenticate()

    def test_fault_raises_auth_error(self):
        client, common, _ = make_client()
        common.authenticate.side_effect = xmlrpc.client.Fault(1, "Access denied")

        with pytest.raises(ErpAuthenticationError) as exc:
            client.authenticate()

        assert exc.value.code == "ODOO_AUTH_FAILED"

    def test_calls_require_authentication(self):
        client, _, _ = make_client()

        with pytest.raises(ErpAuthenticationError):
            client.fetch_products()


class TestFetchProducts:

    def test_returns_records_and_drops_rows_without_sku(self):
        client, _, models = make_client()
        client.authenticate()
        rows = [OdooRowFactory.create(id=7, default_code="A1"), OdooRowFactory.create(id=8, default_code=False)]
        route_execute_kw(models, {
            ("product.product", "search"): [7, 8],
            ("product.product", "read"): rows,
        })

        products = client.fetch_products()

        assert [p.sku for p in products] == ["A1"]
        assert products[0].quantity == 3
        assert str(products[0].price) == "9.99"

    def test_since_builds_utc_domain(self):
        client, _, models = make_client()
        client.authenticate()
        calls = route_execute_kw(models, {
            ("product.product", "search"): [],
        })

        client.fetch_products(since=datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))

        assert calls[0][2] == [[["write_date", ">=", "2026-01-15 12:00:00"]]]

    def test_local_refilter_drops_older_rows(self):
        """Should drop rows the server returned but whose write_date is before the cutoff."""
        client, _, models = make_client()
        client.authenticate()
        route_execute_kw(models, {
            ("product.product", "search"): [1, 2],
            ("product.product", "read"): [
                OdooRowFactory.create(id=1, default_code="OLD", write_date="2026-01-15 09:59:59"),
                OdooRowFactory.create(id=2, default_code="NEW", write_date="2026-01-15 10:00:00"),
            ],
        })

        products = client.fetch_products(since=datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc))

        assert [p.sku for p in products] == ["NEW"]

    def test_fault_raises_transport_error(self):
        client, _, models = make_client()
        client.authenticate()
        models.execute_kw.side_effect = xmlrpc.client.Fault(2, "boom")

        with pytest.raises(ErpTransportError):
            client.fetch_products()

    def test_find_product_by_sku_uses_ilike(self):
        client, _, models = make_client()
        client.authenticate()
        calls = route_execute_kw(models, {
            ("product.product", "search"): [7],
            ("product.product", "read"): [OdooRowFactory.create()],
        })

        product = client.find_product_by_sku(" a1 ")

        assert product.sku == "A1"
        assert calls[0][2] == [[["default_code", "=ilike", "A1"]]]


class TestAdjustStock:

    def test_overwrites_existing_quant_and_applies(self):
        client, _, models = make_client()
        client.authenticate()
        calls = route_execute_kw(models, {
            ("stock.location", "search"): [8],
            ("stock.quant", "search"): [55],
            ("stock.quant", "write"): True,
            ("stock.quant", "action_apply_inventory"): True,
        })

        result = client.adjust_stock(7, 4)

        assert result.ok and result.quant_id == 55 and result.quantity == 4
        assert ("stock.quant", "write", [[55], {"inventory_quantity": 4}], {}) in calls
        assert calls[-1][:3] == ("stock.quant", "action_apply_inventory", [[55]])

    def test_creates_quant_when_missing(self):
        client, _, models = make_client()
        client.authenticate()
        calls = route_execute_kw(models, {
            ("stock.quant", "search"): [],
            ("stock.quant", "create"): 99,
            ("stock.quant", "action_apply_inventory"): True,
        })

        result = client.adjust_stock(7, 2, location_id=8)

        assert result.quant_id == 99
        create = [c for c in calls if c[1] == "create"][0]
        assert create[2] == [{"product_id": 7, "location_id": 8, "inventory_quantity": 2}]

    def test_negative_quantity_written_as_zero(self):
        client, _, models = make_client()
        client.authenticate()
        calls = route_execute_kw(models, {
            ("stock.quant", "search"): [55],
            ("stock.quant", "write"): True,
            ("stock.quant", "action_apply_inventory"): True,
        })

        result = client.adjust_stock(7, -3, location_id=8)

        assert result.quantity == 0
        assert ("stock.quant", "write", [[55], {"inventory_quantity": 0}], {}) in calls

    def test_no_internal_location_is_a_result(self):
        client, _, models = make_client()
        client.authenticate()
        route_execute_kw(models, {("stock.location", "search"): []})

        result = client.adjust_stock(7, 4)

        assert result.ok is False
        assert result.reason == "no_location"


class TestParseOdooDatetime:

    def test_plain_format_is_utc(self):
        assert parse_odoo_datetime("2026-01-15 10:30:00") == datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_false_is_none(self):
        assert parse_odoo_datetime(False) is None
