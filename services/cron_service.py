"""
Cron entry points for the stock and product flows.

Usage:
    cron-stock-sync [--dryrun=true|false] [--range=30m|1h|2d] [--force=true]
    cron-product-sync --range=2d --dryrun=true

Dry-run priority:
    - DRY_RUN=true in the environment → always dry-run
    - otherwise real run unless --dryrun=true is passed

Cutoff:
    - the persisted last-sync timestamp when present
    - --range ago when there is none or with --force=true
"""

import argparse
import sys
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from config import configure_logging
from config.settings import Settings, get_settings
from models.sync import Flow, SyncContext
from services.product_sync_service import build_product_sync_service
from services.stock_sync_service import build_stock_sync_service
from services.sync_state_service import SyncStateStore
from utils.cron_lock import cron_lock
from utils.request_id import generate_request_id
from utils.time_range import DEFAULT_RANGE, cutoff_from_range

logger = structlog.get_logger(__name__)

FLOW_BUILDERS = {
    Flow.STOCK: build_stock_sync_service,
    Flow.PRODUCT: build_product_sync_service,
}

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def str2bool(value: str) -> bool:
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got '{value}'")


def build_parser(flow: Flow) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=f"cron-{flow.value}-sync",
        description=f"Sync {flow.value} data from Odoo to PrestaShop.",
        epilog="DRY_RUN=true in the environment always forces a dry-run.",
    )
    parser.add_argument(
        "--dryrun",
        type=str2bool,
        nargs="?",
        const=True,
        default=False,
        help="Simulate: compute changes and write the audit CSV, never PATCH",
    )
    parser.add_argument(
        "--range",
        default=DEFAULT_RANGE,
        help="Cutoff window when no timestamp is stored, e.g. 30m, 1h, 2d (default: 1h)",
    )
    parser.add_argument(
        "--force",
        type=str2bool,
        nargs="?",
        const=True,
        default=False,
        help="Ignore the persisted last-sync timestamp and use --range",
    )
    return parser


def run_cron(
    flow: Flow,
    argv: Optional[list[str]] = None,
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> int:
    """
    One cron run of `flow`.

    Returns:
        Process exit code: 0 on success or when another run holds the
        lock, 1 on error
    """
    args = build_parser(flow).parse_args(argv)
    settings = settings or get_settings()

    request_id = generate_request_id()
    dry_run = settings.dry_run or args.dryrun
    started_at = clock()
    log = logger.bind(request_id=request_id, flow=flow.value)

    with cron_lock(settings.lock_file(flow.value), settings.lock_ttl_seconds) as acquired:
        if not acquired:
            log.info("cron_skipped_locked")
            print("Another run is in progress")
            return 0

        state = SyncStateStore(settings.state_file(flow.value))
        last_sync = None if args.force else state.read()
        since = last_sync or cutoff_from_range(args.range, started_at)

        log.info(
            "cron_started",
            range=args.range,
            since=since.isoformat(),
            dry_run=dry_run,
            force=args.force,
            from_state=last_sync is not None
        )

        ctx = SyncContext(
            request_id=request_id,
            flow=flow,
            dry_run=dry_run,
            csv_always=settings.csv_always,
            since=since,
        )

        try:
            summary = FLOW_BUILDERS[flow](ctx, settings).run()

            if not dry_run and summary.summary != "erp_unavailable":
                state.write(started_at)
        except Exception as e:
            log.error("cron_failed", error=str(e), error_type=type(e).__name__)
            print(f"ERROR: {flow.value} sync failed: {e}")
            return 1

    log.info("cron_finished", summary=summary.summary, count=summary.count, actions=summary.actions)

    line = f"{flow.value} sync {summary.summary}: {summary.count} processed"
    if summary.actions:
        line += " (" + ", ".join(f"{k}={v}" for k, v in sorted(summary.actions.items())) + ")"
    if summary.csv_path:
        line += f" csv={summary.csv_path}"
    print(line)
    return 0


def _main(flow: Flow) -> None:
    settings = get_settings()
    configure_logging(settings)
    sys.exit(run_cron(flow, settings=settings))


def main_stock() -> None:
    _main(Flow.STOCK)


def main_product() -> None:
    _main(Flow.PRODUCT)
