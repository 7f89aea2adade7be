"""Stock validation and guarded stock mutation for product variants."""

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.logging import get_logger
from services.fulfillment_service.errors import VariantInactive, VariantNotFound
from services.fulfillment_service.models import ProductVariant
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass
class ResolvedLine:
    """One variant of a cart with its price and description snapshot."""

    variant_id: uuid.UUID
    product_id: uuid.UUID
    sku: str
    quantity: int
    available: int
    unit_price: Decimal
    product_name: str
    variant_details: dict

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class StockValidation:
    ok: bool
    lines: list[ResolvedLine] = field(default_factory=list)
    shortages: list[dict] = field(default_factory=list)


def _sum_quantities(items: Iterable) -> "OrderedDict[uuid.UUID, int]":
    totals: OrderedDict[uuid.UUID, int] = OrderedDict()
    for item in items:
        totals[item.variant_id] = totals.get(item.variant_id, 0) + item.quantity
    return totals


async def validate_stock(db: AsyncSession, items: Iterable) -> StockValidation:
    """Check every requested line against current stock.

    ``items`` are objects with ``variant_id`` and ``quantity``. Lines naming
    the same variant are merged before comparison. Unknown or deactivated
    variants fail the whole validation.

    Raises:
        VariantNotFound: a variant id does not exist.
        VariantInactive: the variant or its product is deactivated.
    """
    requested = _sum_quantities(items)

    result = await db.execute(
        select(ProductVariant)
        .where(ProductVariant.id.in_(list(requested)))
        .options(selectinload(ProductVariant.product))
        .execution_options(populate_existing=True)
    )
    variants = {v.id: v for v in result.scalars().all()}

    lines: list[ResolvedLine] = []
    shortages: list[dict] = []

    for variant_id, quantity in requested.items():
        variant = variants.get(variant_id)
        if variant is None:
            raise VariantNotFound(f"Variant not found: {variant_id}")
        if not variant.is_active or not variant.product.is_active:
            raise VariantInactive(f"Variant {variant.sku} is no longer available")

        if quantity > variant.stock_quantity:
            shortages.append(
                {
                    "variant_id": variant_id,
                    "sku": variant.sku,
                    "product_name": variant.product.name,
                    "requested": quantity,
                    "available": variant.stock_quantity,
                }
            )

        lines.append(
            ResolvedLine(
                variant_id=variant_id,
                product_id=variant.product_id,
                sku=variant.sku,
                quantity=quantity,
                available=variant.stock_quantity,
                unit_price=variant.unit_price,
                product_name=variant.product.name,
                variant_details={
                    "size": variant.size,
                    "color": variant.color,
                    "color_hex": variant.color_hex,
                    "sku": variant.sku,
                },
            )
        )

    if shortages:
        logger.info(
            "Stock validation failed for %d of %d variants", len(shortages), len(lines)
        )
    return StockValidation(ok=not shortages, lines=lines, shortages=shortages)


async def apply_stock_delta(
    db: AsyncSession, variant_id: uuid.UUID, delta: int
) -> Optional[tuple[int, int]]:
    """Add ``delta`` (signed) to a variant's stock in a single guarded UPDATE.

    The row changes only if the result stays non-negative, so two sessions
    racing for the last unit cannot both succeed. Returns
    ``(previous_quantity, new_quantity)`` read from the same statement, or
    None when the guard rejected the change (or the variant is gone).
    """
    stmt = (
        update(ProductVariant)
        .where(
            ProductVariant.id == variant_id,
            ProductVariant.stock_quantity + delta >= 0,
        )
        .values(stock_quantity=ProductVariant.stock_quantity + delta)
        .returning(ProductVariant.stock_quantity)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    new_quantity = result.scalar_one_or_none()
    if new_quantity is None:
        return None
    return new_quantity - delta, new_quantity


async def current_stock(db: AsyncSession, variant_id: uuid.UUID) -> Optional[int]:
    """Stock level as stored, bypassing any stale instance in the session."""
    return await db.scalar(
        select(ProductVariant.stock_quantity).where(ProductVariant.id == variant_id)
    )
