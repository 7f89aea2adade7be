"""Back-office fulfillment router: order lookup and status, inventory and
payment verification."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_staff
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.fulfillment_service.models import OrderStatus, ProductVariant
from services.fulfillment_service.schemas import (
    InventoryAdjustmentRequest,
    InventoryLogResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderSummaryResponse,
    StatusHistoryResponse,
    StockLevelResponse,
    TransactionResponse,
)
from services.fulfillment_service.services.inventory import (
    adjust_stock,
    get_inventory_history,
)
from services.fulfillment_service.services.order_status import update_order_status
from services.fulfillment_service.services.payments import (
    PaymentProvider,
    get_payment_provider,
    initiate_transaction_payment,
    verify_transaction_payment,
)
from services.fulfillment_service.services.queries import (
    get_order,
    get_status_history,
    list_orders,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-fulfillment"])


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=OrderListResponse)
async def list_all_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """List orders, newest first, filtered by status and creation date."""
    result = await list_orders(
        db,
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


@router.get("/orders/{order_id}", response_model=OrderDetailResponse)
async def get_order_admin(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Order detail with items, payment transactions and status timeline."""
    order = await get_order(db, order_id)
    return OrderDetailResponse.model_validate(order)


# ============================================================================
# ORDER STATUS
# ============================================================================


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def change_order_status(
    order_id: uuid.UUID,
    update: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Move an order along its workflow. ``force`` is reserved for admins."""
    if update.force and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can override the order workflow",
        )

    order = await update_order_status(
        db,
        order_id,
        update.status,
        actor=current_user.user_id,
        notes=update.notes,
        force=update.force,
    )
    return OrderResponse.model_validate(order)


@router.get(
    "/orders/{order_id}/status-history",
    response_model=list[StatusHistoryResponse],
)
async def order_status_history(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Status timeline of an order, oldest first."""
    entries = await get_status_history(db, order_id)
    return [StatusHistoryResponse.model_validate(e) for e in entries]


# ============================================================================
# INVENTORY
# ============================================================================


@router.post(
    "/inventory/{variant_id}/adjust",
    response_model=StockLevelResponse,
    status_code=status.HTTP_201_CREATED,
)
async def adjust_inventory(
    variant_id: uuid.UUID,
    adjustment: InventoryAdjustmentRequest,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Restock, correct or take back stock for one variant."""
    log = await adjust_stock(
        db,
        variant_id,
        adjustment.quantity_change,
        adjustment.change_type,
        reason=adjustment.reason,
        actor=current_user.user_id,
    )
    variant = await db.get(ProductVariant, variant_id)
    return StockLevelResponse(
        variant_id=variant_id,
        sku=variant.sku,
        stock_quantity=log.new_quantity,
        log=InventoryLogResponse.model_validate(log),
    )


@router.get(
    "/inventory/{variant_id}/history",
    response_model=list[InventoryLogResponse],
)
async def inventory_history(
    variant_id: uuid.UUID,
    limit: Optional[int] = Query(None, ge=1, le=500),
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Inventory log of one variant, oldest first."""
    logs = await get_inventory_history(db, variant_id, limit=limit)
    return [InventoryLogResponse.model_validate(log) for log in logs]


# ============================================================================
# PAYMENTS
# ============================================================================


@router.post(
    "/transactions/{transaction_id}/initiate",
    response_model=TransactionResponse,
)
async def initiate_payment(
    transaction_id: uuid.UUID,
    current_user: AuthUser = Depends(require_staff),
    provider: PaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_async_db),
):
    """Ask the mobile money provider to collect a pending transaction."""
    transaction = await initiate_transaction_payment(db, transaction_id, provider)
    return TransactionResponse.model_validate(transaction)


@router.post(
    "/transactions/{transaction_id}/verify",
    response_model=TransactionResponse,
)
async def verify_payment(
    transaction_id: uuid.UUID,
    current_user: AuthUser = Depends(require_staff),
    provider: PaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_async_db),
):
    """Check a transaction with the provider and record the outcome."""
    transaction = await verify_transaction_payment(
        db, transaction_id, provider, verified_by=current_user.user_id
    )
    return TransactionResponse.model_validate(transaction)
