"""Commerce models: customers, orders, line items, status history, payments."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.fulfillment_service.models.enums import (
    DeliveryMethod,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionMethod,
    TransactionStatus,
    enum_values,
)
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

JsonColumn = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# CUSTOMER MODEL
# ============================================================================


class Customer(Base):
    """Purchaser identity, registered or guest."""

    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Auth user id when the purchaser has an account (null for pure guests)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_guest: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    orders = relationship("Order", back_populates="customer")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self):
        return f"<Customer {self.id} guest={self.is_guest}>"


# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """Orders. Money columns are a snapshot taken at creation and never rewritten."""

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    order_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id"),
        nullable=False,
    )

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="order_status_enum",
        ),
        default=OrderStatus.PENDING,
        server_default="PENDING",
        nullable=False,
    )

    # Payment
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="payment_method_enum",
        ),
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            values_callable=enum_values,
            name="payment_status_enum",
        ),
        default=PaymentStatus.PENDING,
        server_default="PENDING",
        nullable=False,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(100), index=True, nullable=True
    )

    # Delivery
    delivery_method: Mapped[DeliveryMethod] = mapped_column(
        SAEnum(
            DeliveryMethod,
            values_callable=enum_values,
            name="delivery_method_enum",
        ),
        nullable=False,
    )
    delivery_address: Mapped[Optional[dict]] = mapped_column(
        JsonColumn, nullable=True
    )  # {"full_address": "...", "zone": "...", "instructions": "..."}
    delivery_zone: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Pricing
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    source: Mapped[OrderSource] = mapped_column(
        SAEnum(
            OrderSource,
            values_callable=enum_values,
            name="order_source_enum",
        ),
        default=OrderSource.ONLINE,
        server_default="ONLINE",
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_orders_customer_id", "customer_id"),
        Index("ix_orders_status_payment_status", "status", "payment_status"),
        Index("ix_orders_created_at", "created_at"),
    )

    # Relationships
    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at",
    )
    transactions = relationship(
        "PaymentTransaction", back_populates="order", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status}>"


class OrderItem(Base):
    """Order line items (price and description snapshot at order time)."""

    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id"),
        nullable=False,
    )
    variant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("product_variants.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_at_purchase: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Snapshot at order time (catalog may change)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_details: Mapped[dict] = mapped_column(
        JsonColumn, nullable=False, default=dict
    )  # {"size": "M", "color": "Blue", "color_hex": "#0000FF", "sku": "..."}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="positive_quantity"),
        Index("ix_order_items_order_id", "order_id"),
    )

    # Relationships
    order = relationship("Order", back_populates="items")
    variant = relationship("ProductVariant")

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.price_at_purchase) * self.quantity

    def __repr__(self):
        return f"<OrderItem {self.product_name} qty={self.quantity}>"


class OrderStatusHistory(Base):
    """Append-only record of one status transition."""

    __tablename__ = "order_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Null from_status marks the creation entry
    from_status: Mapped[Optional[OrderStatus]] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="order_status_enum",
        ),
        nullable=True,
    )
    to_status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="order_status_enum",
        ),
        nullable=False,
    )
    changed_by: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # Null = system
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_override: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (Index("ix_order_status_history_order_id", "order_id"),)

    # Relationships
    order = relationship("Order", back_populates="status_history")

    def __repr__(self):
        return f"<OrderStatusHistory {self.from_status}->{self.to_status}>"


# ============================================================================
# PAYMENT MODEL
# ============================================================================


class PaymentTransaction(Base):
    """One payment attempt for an order, created PENDING alongside the order."""

    __tablename__ = "payment_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[TransactionMethod] = mapped_column(
        SAEnum(
            TransactionMethod,
            values_callable=enum_values,
            name="transaction_method_enum",
        ),
        nullable=False,
    )
    provider: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(
        String(100), index=True, nullable=True
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            values_callable=enum_values,
            name="transaction_status_enum",
        ),
        default=TransactionStatus.PENDING,
        server_default="PENDING",
        nullable=False,
    )

    verified_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_payment_transactions_order_id", "order_id"),
        Index("ix_payment_transactions_status", "status"),
    )

    # Relationships
    order = relationship("Order", back_populates="transactions")

    def __repr__(self):
        return f"<PaymentTransaction {self.amount} {self.status}>"
