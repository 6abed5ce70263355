"""
PrestaShop credential handling.

The webservice key is sent one of three ways depending on how the
shop is exposed: Authorization: Bearer, HTTP Basic with the key as
user and an empty password, or a ws_key query parameter.
"""

import base64
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

AUTH_SCHEMES = ("bearer", "basic", "ws_key")


class PrestaAuth:
    """Builds auth headers/params for the configured scheme."""

    def __init__(self, api_key: str, scheme: str = "bearer"):
        if scheme not in AUTH_SCHEMES:
            raise ValueError(f"Unknown PrestaShop auth scheme: {scheme}")
        self.api_key = api_key
        self.scheme = scheme

    def headers(self) -> dict[str, str]:
        if not self.api_key or self.scheme == "ws_key":
            return {}
        if self.scheme == "basic":
            token = base64.b64encode(f"{self.api_key}:".encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {token}"}
        return {"Authorization": f"Bearer {self.api_key}"}

    def sign_params(self, params: Optional[dict] = None) -> dict:
        """Query params with ws_key added when that scheme is in use."""
        signed = dict(params or {})
        if self.scheme == "ws_key" and self.api_key:
            signed["ws_key"] = self.api_key
        return signed

    def handle_auth_error(self, status_code: int) -> bool:
        """
        Called on 401/403.

        Returns True if credentials were refreshed and the request may be
        retried. Static keys cannot be refreshed, so this always declines.
        """
        logger.warning("presta_auth_rejected", status_code=status_code, scheme=self.scheme)
        return False
