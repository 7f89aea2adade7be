"""Fulfillment Service models package."""

from services.fulfillment_service.models.catalog import Product, ProductVariant
from services.fulfillment_service.models.commerce import (
    Customer,
    Order,
    OrderItem,
    OrderStatusHistory,
    PaymentTransaction,
)
from services.fulfillment_service.models.enums import (
    DeliveryMethod,
    InventoryChangeType,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionMethod,
    TransactionStatus,
)
from services.fulfillment_service.models.inventory import InventoryLog

__all__ = [
    "Customer",
    "DeliveryMethod",
    "InventoryChangeType",
    "InventoryLog",
    "Order",
    "OrderItem",
    "OrderSource",
    "OrderStatus",
    "OrderStatusHistory",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentTransaction",
    "Product",
    "ProductVariant",
    "TransactionMethod",
    "TransactionStatus",
]
