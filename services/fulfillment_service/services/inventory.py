"""Stock changes outside the sale path (restock, adjustment, return)."""

import uuid
from typing import Optional

from libs.common.logging import get_logger
from services.fulfillment_service.errors import NegativeStock, VariantNotFound
from services.fulfillment_service.models import (
    InventoryChangeType,
    InventoryLog,
    ProductVariant,
)
from services.fulfillment_service.services.stock import apply_stock_delta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MANUAL_CHANGE_TYPES = frozenset(
    {
        InventoryChangeType.RESTOCK,
        InventoryChangeType.ADJUSTMENT,
        InventoryChangeType.RETURN,
    }
)


async def adjust_stock(
    db: AsyncSession,
    variant_id: uuid.UUID,
    quantity_change: int,
    change_type: InventoryChangeType = InventoryChangeType.ADJUSTMENT,
    *,
    reason: Optional[str] = None,
    actor: Optional[str] = None,
) -> InventoryLog:
    """Apply a signed stock change and record it in the inventory log.

    SALE movements belong to order creation and are refused here. The change
    goes through the same guarded UPDATE as sales, so stock can never drop
    below zero.

    Raises:
        ValueError: zero change or a SALE change type.
        VariantNotFound: unknown variant.
        NegativeStock: the change would take stock below zero.
    """
    if quantity_change == 0:
        raise ValueError("quantity_change must not be zero")
    if change_type not in MANUAL_CHANGE_TYPES:
        raise ValueError(f"{change_type.value} is not a manual inventory change")

    try:
        variant = await db.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFound(f"Variant not found: {variant_id}")
        sku = variant.sku

        change = await apply_stock_delta(db, variant_id, quantity_change)
        if change is None:
            raise NegativeStock(
                f"Adjustment of {quantity_change} would make stock of {sku} negative"
            )
        previous_quantity, new_quantity = change

        log = InventoryLog(
            variant_id=variant_id,
            change_type=change_type,
            quantity_change=quantity_change,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            reason=reason,
            performed_by=actor,
        )
        db.add(log)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Stock %s for %s: %d -> %d (%s) by %s",
        change_type.value,
        sku,
        previous_quantity,
        new_quantity,
        reason or "no reason",
        actor or "system",
        extra={"variant_id": variant_id, "actor": actor},
    )
    return log


async def get_inventory_history(
    db: AsyncSession, variant_id: uuid.UUID, limit: Optional[int] = None
) -> list[InventoryLog]:
    """Inventory log of a variant, oldest first."""
    variant_exists = await db.scalar(
        select(ProductVariant.id).where(ProductVariant.id == variant_id)
    )
    if variant_exists is None:
        raise VariantNotFound(f"Variant not found: {variant_id}")

    query = (
        select(InventoryLog)
        .where(InventoryLog.variant_id == variant_id)
        .order_by(InventoryLog.created_at.asc())
    )
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
