"""Public fulfillment router: checkout, order tracking, customer order history
and delivery zones."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.fulfillment_service.models import OrderStatus
from services.fulfillment_service.schemas import (
    CreateOrderRequest,
    DeliveryFeeResponse,
    DeliveryZoneResponse,
    DeliveryZonesResponse,
    OrderCreatedResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderSummaryResponse,
    OrderTrackingResponse,
    TransactionResponse,
)
from services.fulfillment_service.services.delivery_fee import (
    DEFAULT_DELIVERY_FEE,
    FREE_DELIVERY_THRESHOLD,
    list_delivery_zones,
)
from services.fulfillment_service.services.order_number import format_order_number
from services.fulfillment_service.services.orders import create_order
from services.fulfillment_service.services.queries import (
    list_customer_orders,
    track_order,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["orders"])


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/orders",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_order(
    request: CreateOrderRequest,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create an order for a signed-in customer or a guest."""
    result = await create_order(db, request, actor=current_user)
    return OrderCreatedResponse(
        order=OrderResponse.model_validate(result.order),
        items=[OrderItemResponse.model_validate(i) for i in result.line_items],
        transaction=TransactionResponse.model_validate(result.transaction),
        delivery_fee=DeliveryFeeResponse.model_validate(result.delivery_fee),
    )


# ============================================================================
# TRACKING
# ============================================================================


@router.get("/orders/track/{order_number}", response_model=OrderTrackingResponse)
async def track(
    order_number: str,
    email: Optional[str] = Query(None, max_length=255),
    phone: Optional[str] = Query(None, max_length=50),
    db: AsyncSession = Depends(get_async_db),
):
    """Look up an order by number; the buyer's email or phone must match."""
    order = await track_order(db, order_number, email=email, phone=phone)
    response = OrderTrackingResponse.model_validate(order)
    response.display_number = format_order_number(order.order_number)
    return response


@router.get("/orders/customer/{customer_id}", response_model=OrderListResponse)
async def customer_orders(
    customer_id: uuid.UUID,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """A customer's order history, newest first. Customers only see their own."""
    result = await list_customer_orders(
        db,
        customer_id,
        current_user,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    return OrderListResponse(
        orders=[OrderSummaryResponse.model_validate(o) for o in result.orders],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


# ============================================================================
# DELIVERY ZONES
# ============================================================================


@router.get("/delivery-zones", response_model=DeliveryZonesResponse)
async def delivery_zones():
    """Delivery zones with their fees, cheapest first."""
    return DeliveryZonesResponse(
        zones=[
            DeliveryZoneResponse(name=z.name, fee=z.fee, currency=z.currency)
            for z in list_delivery_zones()
        ],
        default_fee=DEFAULT_DELIVERY_FEE,
        free_delivery_threshold=FREE_DELIVERY_THRESHOLD,
        currency=get_settings().STORE_CURRENCY,
    )
