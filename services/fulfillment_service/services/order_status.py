"""Order status workflow.

PENDING -> CONFIRMED -> PROCESSING -> SHIPPED | READY_FOR_PICKUP -> DELIVERED,
with CANCELLED reachable from every non-terminal state. Every change appends
an OrderStatusHistory row in the same transaction as the status write.
"""

import uuid
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.fulfillment_service.errors import InvalidTransition, OrderNotFound
from services.fulfillment_service.models import (
    Order,
    OrderStatus,
    OrderStatusHistory,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
    ),
    OrderStatus.READY_FOR_PICKUP: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def allowed_transitions(from_status: OrderStatus) -> tuple[OrderStatus, ...]:
    return ALLOWED_TRANSITIONS.get(from_status, ())


def can_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return to_status in allowed_transitions(from_status)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def record_initial_status(
    db: AsyncSession, order: Order, *, actor: Optional[str] = None
) -> OrderStatusHistory:
    """Append the creation entry (no from-status) for a freshly inserted order."""
    entry = OrderStatusHistory(
        order_id=order.id,
        from_status=None,
        to_status=order.status,
        changed_by=actor,
        notes="Order created",
    )
    db.add(entry)
    return entry


def transition_order_status(
    db: AsyncSession,
    order: Order,
    to_status: OrderStatus,
    *,
    actor: Optional[str] = None,
    notes: Optional[str] = None,
    force: bool = False,
) -> Optional[OrderStatusHistory]:
    """Move ``order`` to ``to_status`` and stage the matching history entry.

    Returns the new history entry, or None when the order is already in
    ``to_status`` (a no-op). Does not commit.

    ``force`` is the administrative override: it skips the workflow check
    and flags the history entry.

    Raises:
        InvalidTransition: ``to_status`` is not an allowed successor and
            ``force`` is not set.
    """
    from_status = order.status
    if to_status == from_status:
        return None

    allowed = allowed_transitions(from_status)
    if to_status not in allowed:
        if not force:
            raise InvalidTransition(from_status, to_status, allowed)
        logger.warning(
            "Status override on order %s: %s -> %s by %s",
            order.order_number,
            from_status.value,
            to_status.value,
            actor,
        )

    now = utc_now()
    order.status = to_status
    order.updated_at = now
    if to_status == OrderStatus.DELIVERED:
        order.completed_at = now
    elif from_status == OrderStatus.DELIVERED:
        # Only reachable through an override
        order.completed_at = None

    entry = OrderStatusHistory(
        order_id=order.id,
        from_status=from_status,
        to_status=to_status,
        changed_by=actor,
        notes=notes or f"Status changed from {from_status.value} to {to_status.value}",
        is_override=force and to_status not in allowed,
        created_at=now,
    )
    db.add(entry)
    return entry


async def update_order_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    to_status: OrderStatus,
    *,
    actor: Optional[str] = None,
    notes: Optional[str] = None,
    force: bool = False,
) -> Order:
    """Load, transition and commit one order's status.

    The order row is locked for the duration on backends that support it,
    so concurrent updates see each other's result.
    """
    try:
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFound(f"Order not found: {order_id}")

        entry = transition_order_status(
            db, order, to_status, actor=actor, notes=notes, force=force
        )
        # Commit even on a no-op to release the row lock
        await db.commit()
        if entry is None:
            return order
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s moved %s -> %s by %s",
        order.order_number,
        entry.from_status.value,
        entry.to_status.value,
        actor or "system",
        extra={"order_number": order.order_number, "actor": actor},
    )
    return order
