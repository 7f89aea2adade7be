"""Pydantic schemas for fulfillment service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
    field_validator,
)
from services.fulfillment_service.models import (
    DeliveryMethod,
    InventoryChangeType,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionMethod,
    TransactionStatus,
)

# Money is stored as Numeric(12, 2) and rendered as a plain JSON number.
Money = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]

# ============================================================================
# ORDER REQUEST SCHEMAS
# ============================================================================


class GuestInfo(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    # Regional format is checked by the customer resolver
    phone: str = Field(..., max_length=50)


class DeliveryAddress(BaseModel):
    full_address: str = Field(..., min_length=10, max_length=500)
    zone: str = Field(..., min_length=2, max_length=100)
    instructions: Optional[str] = Field(None, max_length=500)


class OrderItemRequest(BaseModel):
    variant_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=100)


class CreateOrderRequest(BaseModel):
    customer_id: Optional[uuid.UUID] = None
    guest_info: Optional[GuestInfo] = None
    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=50)
    delivery_method: DeliveryMethod
    delivery_address: Optional[DeliveryAddress] = None
    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)
    save_customer_info: bool = False
    source: OrderSource = OrderSource.ONLINE


# ============================================================================
# ORDER RESPONSE SCHEMAS
# ============================================================================


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    price_at_purchase: Money
    product_name: str
    variant_details: dict


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    amount: Money
    method: TransactionMethod
    provider: Optional[str] = None
    reference: Optional[str] = None
    status: TransactionStatus
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime


class DeliveryFeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fee: Money
    zone: str
    currency: str
    is_free: bool
    free_delivery_threshold: Money
    amount_needed_for_free_delivery: Money


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None
    delivery_method: DeliveryMethod
    delivery_address: Optional[dict] = None
    delivery_zone: Optional[str] = None
    delivery_fee: Money
    subtotal: Money
    total: Money
    source: OrderSource
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class OrderCreatedResponse(BaseModel):
    order: OrderResponse
    items: list[OrderItemResponse]
    transaction: TransactionResponse
    delivery_fee: DeliveryFeeResponse


class StatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    from_status: Optional[OrderStatus] = None
    to_status: OrderStatus
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    is_override: bool = False
    created_at: datetime


class OrderSummaryResponse(OrderResponse):
    items: list[OrderItemResponse] = []


class OrderTrackingResponse(OrderSummaryResponse):
    # e.g. "MLA 20250123 0001"
    display_number: Optional[str] = None
    status_history: list[StatusHistoryResponse] = []


class OrderDetailResponse(OrderSummaryResponse):
    transactions: list[TransactionResponse] = []
    status_history: list[StatusHistoryResponse] = []


class OrderListResponse(BaseModel):
    """Paginated order list."""

    orders: list[OrderSummaryResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)
    # Administrative override of the declared workflow (admin role only)
    force: bool = False


# ============================================================================
# DELIVERY ZONE SCHEMAS
# ============================================================================


class DeliveryZoneResponse(BaseModel):
    name: str
    fee: Money
    currency: str


class DeliveryZonesResponse(BaseModel):
    zones: list[DeliveryZoneResponse]
    default_fee: Money
    free_delivery_threshold: Money
    currency: str


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================


class InventoryAdjustmentRequest(BaseModel):
    # Signed: positive adds stock, negative removes it
    quantity_change: int
    change_type: InventoryChangeType = InventoryChangeType.ADJUSTMENT
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("quantity_change")
    @classmethod
    def non_zero_change(cls, v: int) -> int:
        if v == 0:
            raise ValueError("quantity_change must not be zero")
        return v

    @field_validator("change_type")
    @classmethod
    def not_a_sale(cls, v: InventoryChangeType) -> InventoryChangeType:
        if v == InventoryChangeType.SALE:
            raise ValueError("SALE movements are recorded by order creation")
        return v


class InventoryLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    variant_id: uuid.UUID
    change_type: InventoryChangeType
    quantity_change: int
    previous_quantity: int
    new_quantity: int
    reason: Optional[str] = None
    performed_by: Optional[str] = None
    order_id: Optional[uuid.UUID] = None
    created_at: datetime


class StockLevelResponse(BaseModel):
    variant_id: uuid.UUID
    sku: str
    stock_quantity: int
    log: InventoryLogResponse
