"""Fulfillment service routers package."""

from services.fulfillment_service.routers.admin import router as admin_router
from services.fulfillment_service.routers.orders import router as orders_router

__all__ = [
    "admin_router",
    "orders_router",
]
