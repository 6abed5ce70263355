"""
Request id generation.

Ids are sortable (UTC timestamp first) and short enough to embed in
CSV file names. Nothing is stored globally; callers keep the id in
their SyncContext.
"""

import secrets
from datetime import datetime, timezone
from typing import Any, Optional


def generate_request_id(prefix: str = "") -> str:
    """Return e.g. "20260119T101500Z-a1b2c3"."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}{ts}-{secrets.token_hex(3)}"


def request_id_from(payload: Any, prefix: str = "") -> str:
    """Reuse a caller-supplied requestId when it is a non-empty string."""
    candidate: Optional[Any] = payload.get("requestId") if isinstance(payload, dict) else None
    if isinstance(candidate, str) and candidate.strip():
        return candidate.strip()
    return generate_request_id(prefix)
