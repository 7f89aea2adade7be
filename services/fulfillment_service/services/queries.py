"""Read-side order queries: back-office listing, customer history, public
tracking and status timelines."""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from libs.auth.models import AuthUser
from services.fulfillment_service.errors import (
    CustomerNotFound,
    OrderAccessDenied,
    OrderNotFound,
)
from services.fulfillment_service.models import (
    Customer,
    Order,
    OrderStatus,
    OrderStatusHistory,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


def _phone_key(phone: Optional[str]) -> str:
    # +243812345678 and 0812345678 are the same subscriber
    return re.sub(r"\D", "", phone or "")[-9:]


def contact_matches(order: Order, email: Optional[str], phone: Optional[str]) -> bool:
    customer = order.customer
    if email and customer.email and email.strip().lower() == customer.email.lower():
        return True
    if phone and customer.phone and _phone_key(phone) == _phone_key(customer.phone):
        return True
    return False


async def track_order(
    db: AsyncSession,
    order_number: str,
    *,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> Order:
    """Return an order by number for an unauthenticated buyer.

    The caller must prove ownership with the email (case-insensitive) or
    phone number the order was placed with.
    """
    result = await db.execute(
        select(Order)
        .where(Order.order_number == order_number.strip().upper())
        .options(
            selectinload(Order.customer),
            selectinload(Order.items),
            selectinload(Order.status_history),
        )
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound(f"Order not found: {order_number}")

    if not contact_matches(order, email, phone):
        raise OrderAccessDenied(
            "The email or phone number does not match this order"
        )
    return order


async def get_status_history(
    db: AsyncSession, order_id: uuid.UUID
) -> list[OrderStatusHistory]:
    """Status timeline of an order, oldest first."""
    order_exists = await db.scalar(select(Order.id).where(Order.id == order_id))
    if order_exists is None:
        raise OrderNotFound(f"Order not found: {order_id}")

    result = await db.execute(
        select(OrderStatusHistory)
        .where(OrderStatusHistory.order_id == order_id)
        .order_by(OrderStatusHistory.created_at.asc())
    )
    return list(result.scalars().all())


@dataclass
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


async def list_orders(
    db: AsyncSession,
    *,
    status: Optional[OrderStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    customer_id: Optional[uuid.UUID] = None,
    page: int = 1,
    page_size: int = 20,
) -> OrderPage:
    """Orders newest first, with their line items.

    ``start_date`` and ``end_date`` bound ``created_at`` inclusively.
    """
    query = select(Order)

    if status is not None:
        query = query.where(Order.status == status)
    if customer_id is not None:
        query = query.where(Order.customer_id == customer_id)
    if start_date is not None:
        query = query.where(Order.created_at >= start_date)
    if end_date is not None:
        query = query.where(Order.created_at <= end_date)

    # Count
    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    # Paginate
    query = (
        query.options(selectinload(Order.items))
        .order_by(Order.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)

    return OrderPage(
        orders=list(result.scalars().all()),
        total=total or 0,
        page=page,
        page_size=page_size,
    )


async def list_customer_orders(
    db: AsyncSession,
    customer_id: uuid.UUID,
    requester: AuthUser,
    **filters,
) -> OrderPage:
    """A customer's own orders. Staff may read any customer's orders.

    Raises:
        CustomerNotFound: unknown customer.
        OrderAccessDenied: the requester is neither staff nor that customer.
    """
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFound(f"Customer not found: {customer_id}")

    if not requester.is_staff and customer.user_id != requester.user_id:
        raise OrderAccessDenied("You can only view your own orders")

    return await list_orders(db, customer_id=customer_id, **filters)


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """One order with its items, payment transactions and status timeline."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(
            selectinload(Order.items),
            selectinload(Order.transactions),
            selectinload(Order.status_history),
        )
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound(f"Order not found: {order_id}")
    return order
