"""
PrestaShop REST client.

Thin HTTP layer: GET with query params, PATCH with an XML or JSON body.
Every response body is parsed JSON first, then XML, then kept as the
raw string. HTTP error codes are returned, not raised; only failures
without a response raise CommerceTransportError.
"""

import json
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import requests
import structlog

from exceptions import CommerceTransportError
from integrations.prestashop_auth import PrestaAuth
from utils.tree import build_xml, element_to_tree

logger = structlog.get_logger(__name__)

AUTH_ERROR_CODES = (401, 403)


@dataclass
class CommerceResponse:
    """Status code plus parsed body (dict/list/str, None when empty)."""

    code: int
    body: Any = None
    raw: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.code < 300


def parse_body(raw: str) -> Any:
    """
    Decode a response body.

    JSON → dict/list; XML → dict via element_to_tree (root element
    unwrapped); otherwise the raw text. Empty body → None.
    """
    text = (raw or "").strip()
    if not text:
        return None

    try:
        return json.loads(text)
    except ValueError:
        pass

    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return text

    return element_to_tree(root)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class PrestaClient:
    """
    PrestaShop API client.

    Usage:
        client = PrestaClient(url, PrestaAuth(key, "bearer"))
        response = client.get("/products", {"filters[reference]": "A1"})
        if response.ok:
            ...
    """

    def __init__(
        self,
        base_url: str,
        auth: PrestaAuth,
        use_xml: bool = True,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.use_xml = use_xml
        self.timeout = timeout
        self.session = session or requests.Session()

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    # ===================
    # HTTP VERBS
    # ===================

    def get(self, path: str, params: Optional[dict] = None) -> CommerceResponse:
        """GET `path`. Never raises on HTTP status."""
        return self._request("GET", path, params=params)

    def patch(self, path: str, payload: dict, xml_root: str = "product") -> CommerceResponse:
        """
        PATCH only the given fields.

        XML mode wraps them as <prestashop><xml_root>...</xml_root></prestashop>.
        """
        if self.use_xml:
            data = build_xml({xml_root: payload}, "prestashop")
            content_type = "application/xml"
        else:
            data = json.dumps(payload, default=_json_default).encode("utf-8")
            content_type = "application/json"

        return self._request("PATCH", path, data=data, content_type=content_type)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        data: Optional[bytes] = None,
        content_type: Optional[str] = None,
    ) -> CommerceResponse:
        url = self.url_for(path)
        response = self._send(method, url, params, data, content_type)

        if response.code in AUTH_ERROR_CODES and self.auth.handle_auth_error(response.code):
            # At most one retry per request; a failed retry yields the original response
            logger.info("presta_retry_after_auth", method=method, url=url)
            try:
                retry = self._send(method, url, params, data, content_type)
            except CommerceTransportError as e:
                logger.warning("presta_retry_failed", method=method, url=url, error=str(e))
                return response
            if retry.ok:
                return retry
            logger.warning("presta_retry_rejected", method=method, url=url, code=retry.code)

        return response

    def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict],
        data: Optional[bytes],
        content_type: Optional[str],
    ) -> CommerceResponse:
        headers = {"Accept": "application/json, application/xml;q=0.9", **self.auth.headers()}
        if content_type:
            headers["Content-Type"] = content_type

        logger.debug("presta_request", method=method, url=url, params=params)

        try:
            resp = self.session.request(
                method,
                url,
                params=self.auth.sign_params(params),
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("presta_request_failed", method=method, url=url, error=str(e))
            raise CommerceTransportError(method, url, f"{method} {url} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "presta_http_error",
                method=method,
                url=url,
                status_code=resp.status_code,
                body=resp.text[:300]
            )

        return CommerceResponse(code=resp.status_code, body=parse_body(resp.text), raw=resp.text)
