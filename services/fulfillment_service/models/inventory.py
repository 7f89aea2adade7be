"""Inventory audit trail."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.fulfillment_service.models.enums import InventoryChangeType, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class InventoryLog(Base):
    """Append-only record of one stock change.

    previous_quantity/new_quantity are taken from the same statement that
    mutated the variant, never recomputed afterwards.
    """

    __tablename__ = "inventory_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    variant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("product_variants.id"),
        nullable=False,
    )

    change_type: Mapped[InventoryChangeType] = mapped_column(
        SAEnum(
            InventoryChangeType,
            values_callable=enum_values,
            name="inventory_change_type_enum",
        ),
        nullable=False,
    )
    quantity_change: Mapped[int] = mapped_column(
        Integer, nullable=False
    )  # Positive = add, negative = subtract
    previous_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performed_by: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # Null for system-initiated changes
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        Index("ix_inventory_logs_variant_id", "variant_id"),
        Index("ix_inventory_logs_created_at", "created_at"),
    )

    # Relationships
    variant = relationship("ProductVariant", back_populates="inventory_logs")

    def __repr__(self):
        return (
            f"<InventoryLog {self.change_type} {self.previous_quantity}"
            f"->{self.new_quantity}>"
        )
