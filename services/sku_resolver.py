"""
SKU → PrestaShop product id resolution.

Lookups go through a JSON file cache with a TTL; misses search the
shop by reference on the primary path, then on the legacy webservice
path. Not-found is a ResolutionResult, never an exception.
"""

import json
import time
from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from exceptions import CommerceTransportError
from integrations.prestashop import PrestaClient
from models.sync import CacheEntry, ResolutionResult
from utils.file_utils import atomic_write_text
from utils.text_utils import normalize_sku
from utils.tree import find_id, iter_mappings, text_value, to_int

logger = structlog.get_logger(__name__)


class SkuCache:
    """
    Whole-file JSON cache: {"<SKU>": {"id": <int>, "ts": <epoch>}}.

    Read entirely, written entirely. A missing or corrupt file reads as
    empty; the next successful lookup rewrites it.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> dict[str, CacheEntry]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("sku_cache_unreadable", path=str(self.path), error=str(e))
            return {}

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning("sku_cache_corrupt", path=str(self.path), error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("sku_cache_corrupt", path=str(self.path), error="not an object")
            return {}

        entries = {}
        for sku, value in data.items():
            if not isinstance(value, dict):
                continue
            try:
                entries[sku] = CacheEntry(
                    sku=sku,
                    external_id=int(value["id"]),
                    cached_at=float(value["ts"])
                )
            except (KeyError, TypeError, ValueError):
                logger.debug("sku_cache_entry_ignored", sku=sku)
        return entries

    def save(self, entries: dict[str, CacheEntry]) -> None:
        payload = {
            sku: {"id": entry.external_id, "ts": int(entry.cached_at)}
            for sku, entry in entries.items()
        }
        try:
            atomic_write_text(self.path, json.dumps(payload, indent=2, sort_keys=True))
        except OSError as e:
            # Resolution still succeeded; the next run searches again
            logger.warning("sku_cache_write_failed", path=str(self.path), error=str(e))


class SkuResolver:
    """
    Resolve SKUs to PrestaShop product ids.

    Usage:
        resolver = SkuResolver(client, SkuCache(path), ttl_seconds=3600)
        result = resolver.resolve("a1")
        if result.ok:
            product_id = result.id
    """

    def __init__(
        self,
        client: PrestaClient,
        cache: SkuCache,
        ttl_seconds: int = 3600,
        search_path: str = "/products",
        legacy_search_path: str = "/api/products/",
        clock: Callable[[], float] = time.time,
        request_id: str = "-",
    ):
        self.client = client
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.search_path = search_path
        self.legacy_search_path = legacy_search_path
        self.clock = clock
        self.log = logger.bind(request_id=request_id)

    def resolve(self, sku: str, force_refresh: bool = False) -> ResolutionResult:
        """
        Resolve one SKU.

        Args:
            sku: Raw reference, normalized here
            force_refresh: Ignore a fresh cache entry

        Returns:
            ResolutionResult with source "cache" or "api", or reason "not_found"
        """
        key = normalize_sku(sku)
        if not key:
            return ResolutionResult.not_found(key)

        entries = self.cache.read()
        now = self.clock()

        if not force_refresh:
            entry = entries.get(key)
            if entry and entry.is_fresh(now, self.ttl_seconds):
                self.log.debug("sku_cache_hit", sku=key, id=entry.external_id)
                return ResolutionResult.found(key, entry.external_id, "cache")

        external_id = self._search(key)
        if external_id is None:
            self.log.info("sku_not_found", sku=key)
            return ResolutionResult.not_found(key)

        entries[key] = CacheEntry(sku=key, external_id=external_id, cached_at=now)
        self.cache.save(entries)

        self.log.info("sku_resolved", sku=key, id=external_id, source="api")
        return ResolutionResult.found(key, external_id, "api")

    def get_id(self, sku: str, force_refresh: bool = False) -> Optional[int]:
        """Resolved id or None."""
        return self.resolve(sku, force_refresh=force_refresh).id

    def refresh(self, sku: str) -> ResolutionResult:
        """Resolve bypassing the cache."""
        return self.resolve(sku, force_refresh=True)

    # ===================
    # SEARCH
    # ===================

    def _search(self, sku: str) -> Optional[int]:
        attempts = [
            (self.search_path, {"filters[reference]": sku, "limit": 1}),
            (self.legacy_search_path, {"filter[reference]": f"[{sku}]", "display": "[id,reference]"}),
        ]

        for path, params in attempts:
            try:
                response = self.client.get(path, params)
            except CommerceTransportError as e:
                self.log.warning("sku_search_failed", sku=sku, path=path, error=e.message)
                continue

            if not response.ok:
                self.log.warning("sku_search_http_error", sku=sku, path=path, status_code=response.code)
                continue

            external_id = self._pick_id(response.body, sku)
            if external_id is None and response.raw and not isinstance(response.body, (dict, list)):
                external_id = find_id(response.raw)
            if external_id is not None:
                return external_id

            self.log.debug("sku_search_no_match", sku=sku, path=path)

        return None

    def _pick_id(self, body: Any, sku: str) -> Optional[int]:
        """
        Id of the listed product whose reference is `sku`.

        Shops that ignore the reference filter return every product, so
        entries carrying a reference are matched one by one. Bodies with
        no reference at all fall back to the first id.
        """
        listed = [
            entry for entry in iter_mappings(body)
            if "reference" in entry and (to_int(entry.get("id")) or 0) > 0
        ]
        if not listed:
            return find_id(body)

        for entry in listed:
            if normalize_sku(text_value(entry["reference"])) == sku:
                return to_int(entry["id"])

        self.log.warning("sku_search_reference_mismatch", sku=sku, listed=len(listed))
        return None
