"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    product = ProductFactory.create(base_price=Decimal("40.00"))
    variant = ProductVariantFactory.create(product_id=product.id, stock_quantity=3)
    db_session.add_all([product, variant])
    await db_session.commit()
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _suffix() -> str:
    return uuid.uuid4().hex[:8]


def _unique_email() -> str:
    return f"test-{_suffix()}@test.com"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ProductFactory:
    @staticmethod
    def create(**overrides):
        from services.fulfillment_service.models import Product

        suffix = _suffix()
        defaults = {
            "id": _uuid(),
            "name": f"Wax Print Dress {suffix}",
            "slug": f"wax-print-dress-{suffix}",
            "description": "Test product",
            "base_price": Decimal("40.00"),
            "currency": "USD",
            "is_active": True,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Product(**defaults)


class ProductVariantFactory:
    @staticmethod
    def create(product_id=None, **overrides):
        from services.fulfillment_service.models import ProductVariant

        defaults = {
            "id": _uuid(),
            "product_id": product_id or _uuid(),
            "sku": f"SKU-{_suffix().upper()}",
            "size": "M",
            "color": "Blue",
            "color_hex": "#0000FF",
            "stock_quantity": 10,
            "additional_price": Decimal("0.00"),
            "is_active": True,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return ProductVariant(**defaults)


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


class CustomerFactory:
    @staticmethod
    def create(**overrides):
        from services.fulfillment_service.models import Customer

        defaults = {
            "id": _uuid(),
            "user_id": f"user-{_suffix()}",
            "email": _unique_email(),
            "phone": "+243812345678",
            "first_name": "Test",
            "last_name": "Customer",
            "is_guest": False,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Customer(**defaults)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


def guest_info(**overrides) -> dict:
    defaults = {
        "first_name": "Grace",
        "last_name": "Mbuyi",
        "email": _unique_email(),
        "phone": "+243812345678",
    }
    defaults.update(overrides)
    return defaults


def order_payload(items, **overrides) -> dict:
    """JSON body for POST /orders. ``items`` is a list of (variant_id, quantity)."""
    defaults = {
        "guest_info": guest_info(),
        "items": [
            {"variant_id": str(variant_id), "quantity": quantity}
            for variant_id, quantity in items
        ],
        "delivery_method": "HOME_DELIVERY",
        "delivery_address": {
            "full_address": "12 Avenue du Commerce, Gombe",
            "zone": "Gombe",
        },
        "payment_method": "CASH_ON_DELIVERY",
    }
    defaults.update(overrides)
    return defaults


def order_request(items, **overrides):
    """Validated CreateOrderRequest, as the router would hand it to the engine."""
    from services.fulfillment_service.schemas import CreateOrderRequest

    return CreateOrderRequest.model_validate(order_payload(items, **overrides))


async def seed_variant(db, stock=10, base_price="40.00", additional_price="0.00", **overrides):
    """Insert a product with one variant and return the variant."""
    product = ProductFactory.create(base_price=Decimal(base_price))
    variant = ProductVariantFactory.create(
        product_id=product.id,
        stock_quantity=stock,
        additional_price=Decimal(additional_price),
        **overrides,
    )
    db.add_all([product, variant])
    await db.commit()
    return variant
