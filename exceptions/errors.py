"""
Custom exception classes for the application.

Only unrecoverable conditions are raised. Expected outcomes such as
"SKU not found" or "no stock location" travel as result values.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ODOO_AUTH_FAILED")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (400)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# ODOO ERRORS
# ===================

class ErpAuthenticationError(ExternalServiceError):
    """Odoo rejected the credentials or could not be reached to authenticate. Aborts the run."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="odoo",
            code="ODOO_AUTH_FAILED",
            message=message,
            details=details
        )


class ErpTransportError(ExternalServiceError):
    """XML-RPC fault, protocol error or network failure talking to Odoo."""

    def __init__(self, model: str, method: str, message: str):
        super().__init__(
            service="odoo",
            code="ODOO_TRANSPORT_ERROR",
            message=message,
            details={"model": model, "method": method}
        )


# ===================
# PRESTASHOP ERRORS
# ===================

class CommerceTransportError(ExternalServiceError):
    """HTTP request to PrestaShop failed before a response arrived."""

    def __init__(self, method: str, url: str, message: str):
        super().__init__(
            service="prestashop",
            code="PRESTASHOP_TRANSPORT_ERROR",
            message=message,
            details={"method": method, "url": url}
        )


# ===================
# WEBHOOK ERRORS
# ===================

class InvalidPayloadError(ValidationError):
    """Webhook body is not valid JSON or lacks sku/qty."""

    def __init__(self, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_PAYLOAD",
            message="Invalid payload",
            details=details
        )


# ===================
# LOCAL STATE ERRORS
# ===================

class StateFileError(AppError):
    """A required local state file could not be read or written."""

    def __init__(self, path: str, message: str):
        super().__init__(
            code="STATE_FILE_ERROR",
            message=f"State file {path}: {message}",
            status_code=500,
            details={"path": path}
        )
