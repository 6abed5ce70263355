"""
Webhook API routes.

POST /webhook/stock  {sku, qty} or [{sku, qty}, ...] → shop quantities
POST /webhook/sale   {sku, qty}                      → ERP stock decrement

Every answer is JSON with a requestId; callers authenticate with the
X-Hook-Token header.
"""

import hmac
from typing import Any, Optional

from fastapi import APIRouter, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
import structlog

from config.settings import get_settings
from exceptions import InvalidPayloadError
from models.product import SyncItem
from models.sync import Flow, SyncContext
from models.webhook import SaleWebhookItem, StockWebhookItem, WebhookResponse
from services.reconciliation_service import build_odoo_client, build_reconciliation_service
from services.stock_sync_service import build_stock_sync_service
from utils.request_id import request_id_from

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# HELPERS
# ===================

def token_valid(provided: Optional[str], expected: str) -> bool:
    """Constant-time comparison; an unset token rejects everything."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def respond(status_code: int, body: WebhookResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def read_json(request: Request) -> Any:
    """Parsed body, or None when it is not JSON."""
    try:
        return await request.json()
    except ValueError:
        return None


def parse_stock_items(payload: Any) -> list[StockWebhookItem]:
    """
    Validate {sku, qty} or a list of them.

    Raises:
        InvalidPayloadError: If the body is not an object/list of valid pairs
    """
    if isinstance(payload, dict):
        raw_items = [payload]
    elif isinstance(payload, list):
        raw_items = payload
    else:
        raise InvalidPayloadError(details={"reason": "body must be an object or a list"})

    items = []
    for index, raw in enumerate(raw_items):
        try:
            items.append(StockWebhookItem.model_validate(raw))
        except PydanticValidationError as e:
            raise InvalidPayloadError(details={"index": index, "errors": e.errors(include_url=False)}) from e
    return items


# ===================
# ROUTES
# ===================

@router.post("/stock")
async def stock_webhook(request: Request, x_hook_token: Optional[str] = Header(None)):
    """
    Push absolute quantities for one or more SKUs.

    Runs the stock pipeline on the given items only; the ERP is not read.
    """
    settings = get_settings()
    payload = await read_json(request)
    request_id = request_id_from(payload, prefix="wh-")
    log = logger.bind(request_id=request_id, flow=Flow.STOCK.value)

    if not token_valid(x_hook_token, settings.webhook_token):
        log.warning("webhook_invalid_token")
        return respond(403, WebhookResponse(status="error", requestId=request_id, message="Invalid token"))

    try:
        items = parse_stock_items(payload)
    except InvalidPayloadError as e:
        log.warning("webhook_invalid_payload", details=e.details)
        return respond(400, WebhookResponse(status="error", requestId=request_id, message=e.message))

    ctx = SyncContext(
        request_id=request_id,
        flow=Flow.STOCK,
        dry_run=settings.dry_run,
        csv_always=settings.csv_always,
    )

    try:
        service = build_stock_sync_service(ctx, settings)
        summary = await run_in_threadpool(
            service.run,
            [SyncItem(sku=item.sku, quantity=item.qty) for item in items]
        )
    except Exception as e:
        log.error("webhook_stock_failed", error=str(e), error_type=type(e).__name__)
        return respond(500, WebhookResponse(status="error", requestId=request_id, message=str(e)))

    log.info("webhook_stock_done", summary=summary.summary, count=summary.count)
    return respond(200, WebhookResponse(
        status="ok",
        requestId=request_id,
        summary=summary.summary,
        count=summary.count
    ))


@router.post("/sale")
async def sale_webhook(request: Request, x_hook_token: Optional[str] = Header(None)):
    """
    Report a shop sale so Odoo stock is decremented.

    Business failures (unknown SKU, no location) answer 200 with
    status "failed"; the caller should not retry those.
    """
    settings = get_settings()
    payload = await read_json(request)
    request_id = request_id_from(payload, prefix="wh-")
    log = logger.bind(request_id=request_id, flow=Flow.SALE.value)

    if not token_valid(x_hook_token, settings.webhook_token):
        log.warning("webhook_invalid_token")
        return respond(403, WebhookResponse(status="error", requestId=request_id, message="Invalid token"))

    try:
        if not isinstance(payload, dict):
            raise InvalidPayloadError(details={"reason": "body must be an object"})
        try:
            item = SaleWebhookItem.model_validate(payload)
        except PydanticValidationError as e:
            raise InvalidPayloadError(details={"errors": e.errors(include_url=False)}) from e
    except InvalidPayloadError as e:
        log.warning("webhook_invalid_payload", details=e.details)
        return respond(400, WebhookResponse(status="error", requestId=request_id, message=e.message))

    ctx = SyncContext(request_id=request_id, flow=Flow.SALE, dry_run=settings.dry_run)

    try:
        erp = build_odoo_client(settings, request_id)
        if erp is not None:
            await run_in_threadpool(erp.authenticate)
        adapter = build_reconciliation_service(ctx, settings, erp=erp)
        result = await run_in_threadpool(adapter.sync_sale_to_odoo, item.sku, item.qty, ctx.dry_run)
    except Exception as e:
        log.error("webhook_sale_failed", error=str(e), error_type=type(e).__name__)
        return respond(500, WebhookResponse(status="error", requestId=request_id, message=str(e)))

    log.info("webhook_sale_done", ok=result.ok, reason=result.reason)
    return respond(200, WebhookResponse(
        status="ok" if result.ok else "failed",
        requestId=request_id,
        result=result.model_dump(exclude_none=True)
    ))
