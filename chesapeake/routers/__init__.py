"""
API routers package.
"""
from chesapeake.routers.checkout import router as checkout_router
from chesapeake.routers.health import router as health_router
from chesapeake.routers.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "webhooks_router",
    "checkout_router",
]
