"""
Reconciliation between the ERP snapshot and the shop.

Reads the shop's current product, computes the changed fields and
PATCHes only those. Also carries the reverse flow (a shop sale
decrements ERP stock).
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog

from config.settings import Settings
from exceptions import CommerceTransportError, ErpTransportError
from integrations.odoo import OdooClient
from integrations.prestashop import PrestaClient
from integrations.prestashop_auth import PrestaAuth
from models.product import ProductRecord
from models.sync import AdjustResult, FieldChange, SyncContext, UpdateResult
from services.sku_resolver import SkuCache, SkuResolver
from utils.text_utils import normalize_sku
from utils.tree import find_first_key, text_value, to_int

logger = structlog.get_logger(__name__)

FIELD_ALIASES = {
    "qty": "quantity",
    "quantity": "quantity",
    "stock": "quantity",
    "price": "price",
    "list_price": "price",
    "name": "name",
}


def normalize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Map aliases to canonical names; unknown keys are dropped with a warning."""
    normalized = {}
    for key, value in fields.items():
        canonical = FIELD_ALIASES.get(str(key).lower())
        if canonical is None:
            logger.warning("unknown_field_ignored", field=key)
            continue
        normalized[canonical] = value
    return normalized


def record_from_body(body: Any, fallback_id: int, sku: str) -> Optional[ProductRecord]:
    """
    Build a ProductRecord from a GET /products/<id> body.

    Works on {"product": {...}}, a bare product dict, or the XML tree.
    """
    if not isinstance(body, (dict, list)):
        return None

    product = find_first_key(body, "product")
    if not isinstance(product, dict):
        product = body if isinstance(body, dict) else None
    if product is None:
        return None

    return ProductRecord(
        id=to_int(product.get("id")) or fallback_id,
        sku=text_value(product.get("reference")) or sku,
        name=text_value(product.get("name")),
        price=text_value(product.get("price")) or 0,
        quantity=text_value(product.get("quantity")) or 0,
    )


def _as_decimal(value: Any) -> Optional[Decimal]:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def compute_changes(current: ProductRecord, desired: dict[str, Any]) -> dict[str, FieldChange]:
    """
    Fields whose desired value differs from the current one.

    Prices compare as Decimals so "9.990000" equals 9.99.
    """
    changes = {}
    for field, after in desired.items():
        if after is None:
            continue
        before = getattr(current, field)

        if field == "price":
            after_dec = _as_decimal(after)
            if after_dec is None or after_dec == before:
                continue
            changes[field] = FieldChange(before=before, after=after_dec)
        elif field == "quantity":
            if int(after) == before:
                continue
            changes[field] = FieldChange(before=before, after=int(after))
        elif str(after) != before:
            changes[field] = FieldChange(before=before, after=str(after))

    return changes


class ReconciliationService:
    """
    Diff-before-write updates on the shop, plus the sale → ERP flow.

    Usage:
        service = ReconciliationService(client, resolver, ctx, erp=odoo)
        result = service.update_partial_by_sku("A1", {"qty": 3}, dry_run=False)
    """

    def __init__(
        self,
        client: PrestaClient,
        resolver: SkuResolver,
        ctx: SyncContext,
        erp: Optional[OdooClient] = None,
    ):
        self.client = client
        self.resolver = resolver
        self.ctx = ctx
        self.erp = erp
        self.log = logger.bind(**ctx.log_context())

    # ===================
    # READ
    # ===================

    def fetch_by_id(self, product_id: int, sku: str = "") -> Optional[ProductRecord]:
        """Current shop product, or None on HTTP/transport failure."""
        try:
            response = self.client.get(f"/products/{product_id}")
        except CommerceTransportError as e:
            self.log.warning("presta_fetch_failed", sku=sku, id=product_id, error=e.message)
            return None

        if not response.ok:
            self.log.warning("presta_fetch_http_error", sku=sku, id=product_id, status_code=response.code)
            return None

        return record_from_body(response.body, product_id, sku)

    def get_by_sku(self, sku: str) -> Optional[ProductRecord]:
        """Resolve then read the shop product."""
        resolution = self.resolver.resolve(sku)
        if not resolution.ok:
            return None
        return self.fetch_by_id(resolution.id, resolution.sku)

    # ===================
    # WRITE
    # ===================

    def update_partial_by_sku(self, sku: str, fields: dict[str, Any], dry_run: bool) -> UpdateResult:
        """
        Bring the shop product's fields to the given values.

        Only changed fields are sent. No write happens when nothing
        changed or under dry-run.

        Args:
            sku: Product reference
            fields: Desired values; qty/stock/list_price aliases accepted
            dry_run: Compute the diff without writing

        Returns:
            UpdateResult
        """
        sku_norm = normalize_sku(sku)
        desired = normalize_fields(fields)

        if "quantity" in desired and desired["quantity"] is not None and int(desired["quantity"]) < 0:
            self.log.warning("negative_quantity_clamped", sku=sku_norm, requested=desired["quantity"])
            desired["quantity"] = 0

        resolution = self.resolver.resolve(sku_norm)
        if not resolution.ok:
            return UpdateResult(ok=False, reason="not_found")

        current = self.fetch_by_id(resolution.id, sku_norm)
        if current is None:
            return UpdateResult(ok=False, reason="fetch_failed")

        changes = compute_changes(current, desired)
        if not changes:
            self.log.debug("no_changes", sku=sku_norm, id=resolution.id)
            return UpdateResult(ok=True, skipped=True, before=current, reason="no_changes")

        if dry_run:
            self.log.info(
                "presta_patch_simulated",
                sku=sku_norm,
                id=resolution.id,
                changes={k: [str(c.before), str(c.after)] for k, c in changes.items()}
            )
            return UpdateResult(ok=True, dryrun=True, changes=changes, before=current)

        payload = {field: change.after for field, change in changes.items()}

        try:
            response = self.client.patch(f"/products/{resolution.id}", payload)
        except CommerceTransportError as e:
            self.log.error("presta_patch_failed", sku=sku_norm, id=resolution.id, error=e.message)
            return UpdateResult(
                ok=False,
                changes=changes,
                before=current,
                reason="http_error",
                message=e.message
            )

        if not response.ok:
            return UpdateResult(
                ok=False,
                changes=changes,
                before=current,
                reason=f"http_{response.code}",
                http_code=response.code
            )

        self.log.info("presta_patch_executed", sku=sku_norm, id=resolution.id, fields=list(payload))
        return UpdateResult(ok=True, changes=changes, before=current, http_code=response.code)

    # ===================
    # SALE → ERP
    # ===================

    def sync_sale_to_odoo(self, sku: str, sold_qty: int, dry_run: bool = False) -> AdjustResult:
        """
        Decrement ERP stock by a sold quantity, floored at 0.

        Returns:
            AdjustResult; ERP transport failures become reason "transport_error"
        """
        sku_norm = normalize_sku(sku)

        if self.erp is None:
            self.log.error("odoo_not_configured", sku=sku_norm)
            return AdjustResult(ok=False, reason="odoo_not_configured")

        try:
            product = self.erp.find_product_by_sku(sku_norm)
            if product is None:
                return AdjustResult(ok=False, reason="not_found")

            new_quantity = max(0, product.quantity - int(sold_qty))

            self.log.info(
                "sale_sync",
                sku=sku_norm,
                qty_before=product.quantity,
                sold=sold_qty,
                qty_after=new_quantity,
                dry_run=dry_run
            )

            if dry_run:
                return AdjustResult(ok=True, dryrun=True, quantity=new_quantity)

            return self.erp.adjust_stock(product.id, new_quantity)
        except ErpTransportError as e:
            self.log.error("sale_sync_failed", sku=sku_norm, error=e.message)
            return AdjustResult(ok=False, reason="transport_error", message=e.message)


# ===================
# FACTORIES
# ===================

def build_odoo_client(settings: Settings, request_id: str = "-") -> Optional[OdooClient]:
    """OdooClient from settings, or None when credentials are missing."""
    if not settings.odoo_configured:
        logger.warning("odoo_not_configured", request_id=request_id)
        return None
    return OdooClient(
        settings.odoo_base_url,
        settings.odoo_db,
        settings.odoo_user,
        settings.odoo_pass,
        timeout=settings.odoo_timeout,
        request_id=request_id,
    )


def build_presta_client(settings: Settings) -> PrestaClient:
    return PrestaClient(
        settings.presta_url,
        PrestaAuth(settings.presta_key, settings.presta_auth_scheme),
        use_xml=settings.presta_use_xml,
        timeout=settings.presta_timeout,
    )


def build_reconciliation_service(
    ctx: SyncContext,
    settings: Settings,
    erp: Optional[OdooClient] = None,
) -> ReconciliationService:
    """Wire client, resolver and cache for one run."""
    client = build_presta_client(settings)
    resolver = SkuResolver(
        client,
        SkuCache(settings.cache_file),
        ttl_seconds=settings.cache_ttl_seconds,
        search_path=settings.presta_search_path,
        legacy_search_path=settings.presta_legacy_search_path,
        request_id=ctx.request_id,
    )
    return ReconciliationService(client, resolver, ctx, erp=erp)
