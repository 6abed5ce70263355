"""
Custom exceptions module.

Raised errors are reserved for unrecoverable conditions; see errors.py.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ExternalServiceError,

    # Odoo
    ErpAuthenticationError,
    ErpTransportError,

    # PrestaShop
    CommerceTransportError,

    # Webhook
    InvalidPayloadError,

    # Local state
    StateFileError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ExternalServiceError",

    # Odoo
    "ErpAuthenticationError",
    "ErpTransportError",

    # PrestaShop
    "CommerceTransportError",

    # Webhook
    "InvalidPayloadError",

    # Local state
    "StateFileError",
]
