"""
Odoo XML-RPC client.

Reads product snapshots and writes stock quants. Business-level misses
(no location, no product) come back as AdjustResult values; XML-RPC
faults and network errors raise ErpTransportError; bad credentials
raise ErpAuthenticationError.
"""

import http.client
import socket
import xmlrpc.client
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from exceptions import ErpAuthenticationError, ErpTransportError
from models.product import ProductRecord
from models.sync import AdjustResult
from utils.text_utils import normalize_sku
from utils.time_range import to_utc

logger = structlog.get_logger(__name__)

PRODUCT_MODEL = "product.product"
LOCATION_MODEL = "stock.location"
QUANT_MODEL = "stock.quant"

PRODUCT_FIELDS = ["id", "default_code", "name", "list_price", "qty_available", "write_date"]

ODOO_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_TRANSPORT_ERRORS = (
    xmlrpc.client.Fault,
    xmlrpc.client.ProtocolError,
    http.client.HTTPException,
    socket.timeout,
    OSError,
)


class TimeoutTransport(xmlrpc.client.Transport):
    """Plain HTTP transport with a socket timeout."""

    def __init__(self, timeout: float, use_datetime: bool = False):
        super().__init__(use_datetime=use_datetime)
        self.timeout = timeout

    def make_connection(self, host):
        conn = super().make_connection(host)
        conn.timeout = self.timeout
        return conn


class TimeoutSafeTransport(xmlrpc.client.SafeTransport):
    """HTTPS transport with a socket timeout."""

    def __init__(self, timeout: float, use_datetime: bool = False):
        super().__init__(use_datetime=use_datetime)
        self.timeout = timeout

    def make_connection(self, host):
        conn = super().make_connection(host)
        conn.timeout = self.timeout
        return conn


def make_server_proxy(url: str, timeout: float) -> xmlrpc.client.ServerProxy:
    """ServerProxy with a timeout-aware transport matching the URL scheme."""
    transport_cls = TimeoutSafeTransport if url.startswith("https") else TimeoutTransport
    return xmlrpc.client.ServerProxy(url, transport=transport_cls(timeout), allow_none=True)


def parse_odoo_datetime(value: Any) -> Optional[datetime]:
    """Odoo write_date ("2025-01-15 10:30:00", UTC) → aware datetime."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value[:19], ODOO_DATETIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        try:
            return to_utc(datetime.fromisoformat(value))
        except ValueError:
            return None


class OdooClient:
    """
    Odoo ERP client.

    Call authenticate() once before anything else.

    Usage:
        client = OdooClient(url, db, user, password)
        client.authenticate()
        products = client.fetch_products(since=cutoff)
    """

    def __init__(
        self,
        base_url: str,
        db: str,
        username: str,
        password: str,
        timeout: int = 30,
        request_id: str = "-",
        proxy_factory: Callable[[str, float], Any] = make_server_proxy,
    ):
        self.base_url = base_url.rstrip("/")
        self.db = db
        self.username = username
        self.password = password
        self.timeout = timeout
        self.uid: Optional[int] = None
        self._proxy_factory = proxy_factory
        self._models = None
        self.log = logger.bind(request_id=request_id)

    # ===================
    # SESSION
    # ===================

    def authenticate(self) -> None:
        """
        Obtain a uid for subsequent execute_kw calls.

        Raises:
            ErpAuthenticationError: On rejected credentials or unreachable server
        """
        self.log.info("odoo_authenticating", url=self.base_url, db=self.db, username=self.username)

        try:
            common = self._proxy_factory(f"{self.base_url}/xmlrpc/2/common", self.timeout)
            uid = common.authenticate(self.db, self.username, self.password, {})
        except _TRANSPORT_ERRORS as e:
            self.log.error("odoo_auth_failed", error=str(e), error_type=type(e).__name__)
            raise ErpAuthenticationError(f"Odoo authentication failed: {e}") from e

        if isinstance(uid, bool) or not isinstance(uid, int) or uid <= 0:
            self.log.error("odoo_auth_rejected", db=self.db, username=self.username)
            raise ErpAuthenticationError(
                "Odoo rejected the credentials",
                details={"db": self.db, "username": self.username}
            )

        self.uid = uid
        self._models = self._proxy_factory(f"{self.base_url}/xmlrpc/2/object", self.timeout)
        self.log.info("odoo_authenticated", uid=uid)

    @property
    def is_authenticated(self) -> bool:
        return self.uid is not None

    def execute_kw(self, model: str, method: str, args: list, kwargs: Optional[dict] = None) -> Any:
        """
        Call a model method.

        Raises:
            ErpAuthenticationError: If authenticate() was not called
            ErpTransportError: On XML-RPC fault or network failure
        """
        if self.uid is None or self._models is None:
            raise ErpAuthenticationError("Not authenticated. Call authenticate() first.")

        self.log.debug("odoo_execute_kw", model=model, method=method)

        try:
            return self._models.execute_kw(
                self.db, self.uid, self.password, model, method, args, kwargs or {}
            )
        except _TRANSPORT_ERRORS as e:
            self.log.error(
                "odoo_execute_kw_failed",
                model=model,
                method=method,
                error=str(e),
                error_type=type(e).__name__
            )
            raise ErpTransportError(model, method, f"execute_kw {model}.{method} failed: {e}") from e

    # ===================
    # PRODUCTS
    # ===================

    def fetch_products(self, since: Optional[datetime] = None) -> list[ProductRecord]:
        """
        Products modified at or after `since` (all products when None).

        The server-side write_date filter is re-checked locally against
        a UTC cutoff; rows outside the window are dropped. Rows without
        default_code are dropped too.

        Raises:
            ErpTransportError: If search or read fails
        """
        cutoff = to_utc(since) if since else None
        domain = [["write_date", ">=", cutoff.strftime(ODOO_DATETIME_FORMAT)]] if cutoff else []

        self.log.info("fetching_products", since=cutoff.isoformat() if cutoff else None)

        ids = self.execute_kw(PRODUCT_MODEL, "search", [domain])
        if not ids:
            self.log.info("no_products_modified", since=cutoff.isoformat() if cutoff else None)
            return []

        rows = self.execute_kw(PRODUCT_MODEL, "read", [ids], {"fields": PRODUCT_FIELDS})

        products = []
        skipped_no_sku = 0
        skipped_out_of_range = 0

        for row in rows:
            record = self._to_record(row)
            if record is None:
                skipped_no_sku += 1
                continue
            if cutoff and record.modified_at and record.modified_at < cutoff:
                skipped_out_of_range += 1
                self.log.debug(
                    "product_outside_window",
                    sku=record.sku,
                    write_date=record.modified_at.isoformat()
                )
                continue
            products.append(record)

        self.log.info(
            "products_fetched",
            searched=len(ids),
            returned=len(products),
            skipped_no_sku=skipped_no_sku,
            skipped_out_of_range=skipped_out_of_range
        )
        return products

    def find_product_by_sku(self, sku: str) -> Optional[ProductRecord]:
        """
        Exact, case-insensitive default_code lookup.

        Returns:
            ProductRecord or None if no product carries that reference

        Raises:
            ErpTransportError: If search or read fails
        """
        sku_norm = normalize_sku(sku)
        if not sku_norm:
            return None

        ids = self.execute_kw(
            PRODUCT_MODEL, "search", [[["default_code", "=ilike", sku_norm]]], {"limit": 1}
        )
        if not ids:
            self.log.info("odoo_product_not_found", sku=sku_norm)
            return None

        rows = self.execute_kw(PRODUCT_MODEL, "read", [ids[:1]], {"fields": PRODUCT_FIELDS})
        return self._to_record(rows[0]) if rows else None

    @staticmethod
    def _to_record(row: dict) -> Optional[ProductRecord]:
        sku = row.get("default_code")
        # Odoo returns False for empty char fields
        if not sku:
            return None
        name = row.get("name")
        return ProductRecord(
            id=int(row.get("id") or 0),
            sku=str(sku),
            name=name if isinstance(name, str) else "",
            price=row.get("list_price") or 0,
            quantity=row.get("qty_available") or 0,
            modified_at=parse_odoo_datetime(row.get("write_date")),
        )

    # ===================
    # STOCK
    # ===================

    def find_internal_location(self) -> Optional[int]:
        """First stock.location with usage=internal, or None."""
        location_ids = self.execute_kw(
            LOCATION_MODEL, "search", [[["usage", "=", "internal"]]], {"limit": 1}
        )
        return location_ids[0] if location_ids else None

    def adjust_stock(
        self,
        product_id: int,
        new_quantity: int,
        location_id: Optional[int] = None
    ) -> AdjustResult:
        """
        Set the on-hand quantity of a product at a location.

        Negative quantities are written as 0. Overwrites the existing
        quant for (product, location) or creates one, then applies the
        inventory adjustment.

        Returns:
            AdjustResult (ok=False with reason for business failures)

        Raises:
            ErpTransportError: On XML-RPC/network failure
        """
        quantity = max(0, int(new_quantity))
        if quantity != new_quantity:
            self.log.warning("negative_quantity_clamped", product_id=product_id, requested=new_quantity)

        self.log.info("adjusting_stock", product_id=product_id, quantity=quantity, location_id=location_id)

        if location_id is None:
            location_id = self.find_internal_location()
            if location_id is None:
                self.log.error("no_internal_location", product_id=product_id)
                return AdjustResult(ok=False, reason="no_location")

        quant_ids = self.execute_kw(
            QUANT_MODEL,
            "search",
            [[["product_id", "=", product_id], ["location_id", "=", location_id]]],
            {"limit": 1}
        )

        if quant_ids:
            quant_id = quant_ids[0]
            self.execute_kw(QUANT_MODEL, "write", [[quant_id], {"inventory_quantity": quantity}])
        else:
            quant_id = self.execute_kw(QUANT_MODEL, "create", [{
                "product_id": product_id,
                "location_id": location_id,
                "inventory_quantity": quantity,
            }])

        self.execute_kw(QUANT_MODEL, "action_apply_inventory", [[quant_id]])

        self.log.info(
            "stock_adjusted",
            product_id=product_id,
            quant_id=quant_id,
            quantity=quantity,
            created=not quant_ids
        )
        return AdjustResult(ok=True, quant_id=quant_id, quantity=quantity)
