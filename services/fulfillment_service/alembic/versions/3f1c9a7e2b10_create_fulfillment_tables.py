"""create_fulfillment_tables

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f1c9a7e2b10"
down_revision = None
branch_labels = None
depends_on = None


ENUMS = {
    "order_status_enum": (
        "PENDING",
        "CONFIRMED",
        "PROCESSING",
        "READY_FOR_PICKUP",
        "SHIPPED",
        "DELIVERED",
        "CANCELLED",
    ),
    "payment_status_enum": ("PENDING", "PAID", "FAILED", "REFUNDED"),
    "payment_method_enum": ("MOBILE_MONEY", "CASH_ON_DELIVERY"),
    "delivery_method_enum": ("HOME_DELIVERY", "STORE_PICKUP"),
    "order_source_enum": ("ONLINE", "IN_STORE"),
    "inventory_change_type_enum": ("SALE", "RESTOCK", "ADJUSTMENT", "RETURN"),
    "transaction_method_enum": ("MOBILE_MONEY", "CASH"),
    "transaction_status_enum": ("PENDING", "COMPLETED", "FAILED", "REFUNDED"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created up front; tables only reference them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)
        )
    return columns


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    json_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("is_guest", sa.Boolean(), server_default="false", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_customers_user_id", "customers", ["user_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "product_variants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("size", sa.String(length=50), nullable=True),
        sa.Column("color", sa.String(length=50), nullable=True),
        sa.Column("color_hex", sa.String(length=7), nullable=True),
        sa.Column("stock_quantity", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "additional_price", sa.Numeric(12, 2), server_default="0", nullable=False
        ),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=True),
        *_timestamps(),
        sa.CheckConstraint("stock_quantity >= 0", name="non_negative_stock"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku"),
    )
    op.create_index(
        "ix_product_variants_product_id", "product_variants", ["product_id"]
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_number", sa.String(length=20), nullable=False),
        sa.Column("customer_id", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            _enum("order_status_enum"),
            server_default="PENDING",
            nullable=False,
        ),
        sa.Column("payment_method", _enum("payment_method_enum"), nullable=False),
        sa.Column(
            "payment_status",
            _enum("payment_status_enum"),
            server_default="PENDING",
            nullable=False,
        ),
        sa.Column("payment_reference", sa.String(length=100), nullable=True),
        sa.Column("delivery_method", _enum("delivery_method_enum"), nullable=False),
        sa.Column("delivery_address", json_type, nullable=True),
        sa.Column("delivery_zone", sa.String(length=100), nullable=True),
        sa.Column("delivery_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "source",
            _enum("order_source_enum"),
            server_default="ONLINE",
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_payment_reference", "orders", ["payment_reference"])
    op.create_index(
        "ix_orders_status_payment_status", "orders", ["status", "payment_status"]
    )
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("variant_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_at_purchase", sa.Numeric(12, 2), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("variant_details", json_type, nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint("quantity >= 1", name="positive_quantity"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["variant_id"], ["product_variants.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "order_status_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("from_status", _enum("order_status_enum"), nullable=True),
        sa.Column("to_status", _enum("order_status_enum"), nullable=False),
        sa.Column("changed_by", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_override", sa.Boolean(), server_default="false", nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_order_status_history_order_id", "order_status_history", ["order_id"]
    )

    op.create_table(
        "inventory_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("variant_id", sa.Uuid(), nullable=False),
        sa.Column(
            "change_type", _enum("inventory_change_type_enum"), nullable=False
        ),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("previous_quantity", sa.Integer(), nullable=False),
        sa.Column("new_quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(length=255), nullable=True),
        sa.Column("order_id", sa.Uuid(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["variant_id"], ["product_variants.id"]),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_inventory_logs_variant_id", "inventory_logs", ["variant_id"])
    op.create_index("ix_inventory_logs_created_at", "inventory_logs", ["created_at"])

    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", _enum("transaction_method_enum"), nullable=False),
        sa.Column("provider", sa.String(length=100), nullable=True),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column(
            "status",
            _enum("transaction_status_enum"),
            server_default="PENDING",
            nullable=False,
        ),
        sa.Column("verified_by", sa.String(length=255), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_payment_transactions_order_id", "payment_transactions", ["order_id"]
    )
    op.create_index(
        "ix_payment_transactions_reference", "payment_transactions", ["reference"]
    )
    op.create_index(
        "ix_payment_transactions_status", "payment_transactions", ["status"]
    )


def downgrade() -> None:
    op.drop_table("payment_transactions")
    op.drop_table("inventory_logs")
    op.drop_table("order_status_history")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("product_variants")
    op.drop_table("products")
    op.drop_table("customers")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
