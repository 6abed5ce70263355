"""
Shared test fixtures.

In-memory stand-ins for PrestaShop and Odoo record every call, so tests
can assert both results and the exact writes that were (not) made.
"""

import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

import pytest
from typing import Optional
from unittest.mock import patch

from config.settings import Settings
from exceptions import ErpTransportError
from integrations.prestashop import CommerceResponse
from models.product import ProductRecord
from models.sync import AdjustResult, Flow, SyncContext
from services.audit_service import AuditWriter
from services.reconciliation_service import ReconciliationService
from services.sku_resolver import SkuCache, SkuResolver
from services.stock_sync_service import StockSyncService
from services.product_sync_service import ProductSyncService


# ===================
# MOCK PRESTASHOP
# ===================

class MockPrestaShop:
    """
    In-memory PrestaShop with the PrestaClient interface.

    Usage:
        presta = MockPrestaShop()
        presta.add_product(42, "A1", quantity=5, price="9.99")
        presta.patches  # [(path, payload), ...]
    """

    def __init__(self):
        self.products: dict[int, dict] = {}
        self.gets: list[tuple[str, Optional[dict]]] = []
        self.patches: list[tuple[str, dict]] = []
        self.failing_paths: set[str] = set()
        self.patch_status = 200

    def add_product(self, product_id: int, reference: str, quantity: int = 0, price: str = "0", name: str = ""):
        self.products[product_id] = {
            "id": product_id,
            "reference": reference,
            "quantity": str(quantity),
            "price": price,
            "name": name,
        }

    @property
    def search_calls(self) -> list[tuple[str, dict]]:
        return [(path, params) for path, params in self.gets if params]

    def get(self, path: str, params: Optional[dict] = None) -> CommerceResponse:
        self.gets.append((path, params))

        if path in self.failing_paths:
            return CommerceResponse(code=500, body=None, raw="")

        if params:
            reference = params.get("filters[reference]") or params.get("filter[reference]", "")
            reference = reference.strip("[]")
            matches = [
                {"id": p["id"], "reference": p["reference"]} for p in self.products.values()
                if p["reference"].upper() == reference.upper()
            ]
            return CommerceResponse(code=200, body={"products": matches[:1]}, raw="")

        product_id = int(path.rstrip("/").rsplit("/", 1)[-1])
        product = self.products.get(product_id)
        if product is None:
            return CommerceResponse(code=404, body=None, raw="")
        return CommerceResponse(code=200, body={"product": dict(product)}, raw="")

    def patch(self, path: str, payload: dict, xml_root: str = "product") -> CommerceResponse:
        self.patches.append((path, dict(payload)))
        if self.patch_status >= 300:
            return CommerceResponse(code=self.patch_status, body=None, raw="")

        product_id = int(path.rstrip("/").rsplit("/", 1)[-1])
        for field, value in payload.items():
            self.products[product_id][field] = str(value)
        return CommerceResponse(code=200, body={"product": dict(self.products[product_id])}, raw="")


# ===================
# MOCK ODOO
# ===================

class MockOdoo:
    """
    In-memory Odoo with the OdooClient interface.

    Usage:
        odoo = MockOdoo([ProductRecord(id=7, sku="A1", quantity=3)])
        odoo.adjustments  # [(product_id, quantity), ...]
    """

    def __init__(self, products: Optional[list[ProductRecord]] = None):
        self.products = list(products or [])
        self.is_authenticated = False
        self.adjustments: list[tuple[int, int]] = []
        self.fetch_error: Optional[Exception] = None
        self.auth_error: Optional[Exception] = None
        self.fetch_since = None

    def authenticate(self):
        if self.auth_error:
            raise self.auth_error
        self.is_authenticated = True

    def fetch_products(self, since=None) -> list[ProductRecord]:
        if self.fetch_error:
            raise self.fetch_error
        self.fetch_since = since
        return list(self.products)

    def find_product_by_sku(self, sku: str) -> Optional[ProductRecord]:
        if self.fetch_error:
            raise self.fetch_error
        for product in self.products:
            if product.sku.upper() == sku.upper():
                return product
        return None

    def adjust_stock(self, product_id: int, new_quantity: int, location_id=None) -> AdjustResult:
        quantity = max(0, int(new_quantity))
        self.adjustments.append((product_id, quantity))
        return AdjustResult(ok=True, quant_id=1, quantity=quantity)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with every local path under tmp_path."""
    return Settings(
        _env_file=None,
        presta_url="https://shop.test/api",
        presta_key="KEY",
        odoo_base_url="https://odoo.test",
        odoo_db="db",
        odoo_user="admin",
        odoo_pass="secret",
        cache_dir=str(tmp_path / "cache"),
        dryrun_dir=str(tmp_path / "dryrun"),
        state_dir=str(tmp_path / "logs"),
        lock_dir=str(tmp_path / "locks"),
        webhook_token="hook-secret",
        dry_run=False,
        csv_always=False,
    )


@pytest.fixture
def presta() -> MockPrestaShop:
    return MockPrestaShop()


@pytest.fixture
def odoo() -> MockOdoo:
    return MockOdoo()


@pytest.fixture
def make_ctx():
    """Build a SyncContext with overrides."""
    def _make(flow: Flow = Flow.STOCK, dry_run: bool = False, csv_always: bool = False, since=None):
        return SyncContext(
            request_id="req12345-test",
            flow=flow,
            dry_run=dry_run,
            csv_always=csv_always,
            since=since,
        )
    return _make


@pytest.fixture
def resolver(presta, tmp_path) -> SkuResolver:
    return SkuResolver(presta, SkuCache(tmp_path / "cache" / "sku_to_id.json"), ttl_seconds=3600)


@pytest.fixture
def make_adapter(presta, resolver, odoo, make_ctx):
    def _make(dry_run: bool = False, erp=odoo):
        return ReconciliationService(presta, resolver, make_ctx(dry_run=dry_run), erp=erp)
    return _make


@pytest.fixture
def make_pipeline(presta, resolver, odoo, make_ctx, tmp_path):
    """
    Build a Stock or Product pipeline over the mocks.

    Usage:
        pipeline = make_pipeline(Flow.STOCK, dry_run=True)
    """
    def _make(flow: Flow = Flow.STOCK, dry_run: bool = False, csv_always: bool = False):
        ctx = make_ctx(flow=flow, dry_run=dry_run, csv_always=csv_always)
        adapter = ReconciliationService(presta, resolver, ctx, erp=odoo)
        cls = StockSyncService if flow == Flow.STOCK else ProductSyncService
        return cls(ctx, adapter, AuditWriter(tmp_path / "dryrun"), erp=odoo)
    return _make


@pytest.fixture
def test_client(test_settings):
    """
    FastAPI test client with settings patched to test_settings.

    Usage:
        def test_endpoint(test_client):
            response = test_client.post("/webhook/stock", json={...})
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("routes.webhook.get_settings", return_value=test_settings):
        yield TestClient(app)


@pytest.fixture
def transport_error() -> ErpTransportError:
    return ErpTransportError("product.product", "search", "connection refused")
