"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.webhook import router as webhook_router

__all__ = [
    "webhook_router",
]
