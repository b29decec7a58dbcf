"""initial_pharmacy_schema

Revision ID: 5b1e0c7a9d42
Revises:
Create Date: 2026-10-19 09:12:44.118203
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1e0c7a9d42'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


product_category = sa.Enum("PRESCRIPTION", "OVER_THE_COUNTER", name="product_category")
user_role = sa.Enum("OWNER", "PHARMACIST", "SALES_STAFF", name="user_role")
purchase_order_status = sa.Enum("DRAFT", "ORDERED", "RECEIVED", "CANCELLED", name="purchase_order_status")
inventory_adjustment_type = sa.Enum(
    "COUNT_VARIANCE",
    "DAMAGED_GOODS",
    "EXPIRED_REMOVAL",
    "INITIAL_STOCK",
    "OTHER",
    name="inventory_adjustment_type",
)
payment_method = sa.Enum("CASH", "CARD", "BANK_TRANSFER", "MOBILE_PAYMENT", name="payment_method")


def upgrade() -> None:
    """Upgrade schema."""

    # USERS
    op.create_table(
        "pharmacy_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(128), nullable=False),
        sa.Column("email", sa.String(128), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_pharmacy_users_id", "pharmacy_users", ["id"])
    op.create_index("ix_pharmacy_users_email", "pharmacy_users", ["email"], unique=True)

    # SUPPLIERS
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(128), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_suppliers_id", "suppliers", ["id"])
    op.create_index("ix_suppliers_name", "suppliers", ["name"], unique=True)

    # PRODUCTS
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("active_ingredient", sa.String(255), nullable=True),
        sa.Column("dosage_form", sa.String(128), nullable=True),
        sa.Column("dosage_strength", sa.String(64), nullable=True),
        sa.Column("category", product_category, nullable=False),
        sa.Column("reorder_level", sa.Integer(), nullable=True),
        sa.Column("min_stock", sa.Integer(), nullable=True),
        sa.Column("expiry_alert_days", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("reorder_level IS NULL OR reorder_level >= 0", name="ck_reorder_level_non_negative"),
        sa.CheckConstraint("min_stock IS NULL OR min_stock >= 0", name="ck_min_stock_non_negative"),
        sa.CheckConstraint(
            "expiry_alert_days IS NULL OR expiry_alert_days >= 0",
            name="ck_expiry_alert_days_non_negative",
        ),
    )
    op.create_index("ix_products_id", "products", ["id"])
    op.create_index("ix_products_sku", "products", ["sku"], unique=True)

    # PURCHASE ORDERS
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_code", sa.String(64), nullable=False),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id"), nullable=False),
        sa.Column("status", purchase_order_status, nullable=False),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("expected_date", sa.Date(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("pharmacy_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_purchase_orders_id", "purchase_orders", ["id"])
    op.create_index("ix_purchase_orders_order_code", "purchase_orders", ["order_code"], unique=True)
    op.create_index("ix_purchase_orders_supplier_id", "purchase_orders", ["supplier_id"])
    op.create_index("ix_purchase_orders_status_date", "purchase_orders", ["status", "order_date"])

    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "purchase_order_id",
            sa.Integer(),
            sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(10, 2), nullable=False),
        sa.UniqueConstraint("purchase_order_id", "line_number", name="uq_purchase_order_line_number"),
        sa.CheckConstraint("quantity > 0", name="ck_po_line_quantity_positive"),
        sa.CheckConstraint("unit_cost > 0", name="ck_po_line_unit_cost_positive"),
    )
    op.create_index("ix_purchase_order_lines_id", "purchase_order_lines", ["id"])
    op.create_index("ix_purchase_order_lines_purchase_order_id", "purchase_order_lines", ["purchase_order_id"])
    op.create_index("ix_purchase_order_lines_product_id", "purchase_order_lines", ["product_id"])

    # INVENTORY
    op.create_table(
        "inventory_batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), sa.ForeignKey("purchase_orders.id"), nullable=True),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("quantity_on_hand", sa.Integer(), nullable=False),
        sa.Column("cost_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("selling_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("received_date", sa.Date(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("product_id", "batch_number", name="uq_product_batch_number"),
        sa.CheckConstraint("quantity_on_hand >= 0", name="ck_batch_quantity_non_negative"),
        sa.CheckConstraint("cost_price > 0", name="ck_batch_cost_price_positive"),
        sa.CheckConstraint("selling_price > 0", name="ck_batch_selling_price_positive"),
        sa.CheckConstraint("expiry_date >= received_date", name="ck_batch_expiry_after_received"),
    )
    op.create_index("ix_inventory_batches_id", "inventory_batches", ["id"])
    op.create_index("ix_inventory_batches_product_id", "inventory_batches", ["product_id"])
    op.create_index("ix_inventory_batches_purchase_order_id", "inventory_batches", ["purchase_order_id"])
    op.create_index("ix_inventory_batches_product_expiry", "inventory_batches", ["product_id", "expiry_date"])

    op.create_table(
        "inventory_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("inventory_batches.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("performed_by_id", sa.Integer(), sa.ForeignKey("pharmacy_users.id"), nullable=False),
        sa.Column("adjustment_type", inventory_adjustment_type, nullable=False),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("quantity_change <> 0", name="ck_adjustment_change_non_zero"),
    )
    op.create_index("ix_inventory_adjustments_id", "inventory_adjustments", ["id"])
    op.create_index("ix_inventory_adjustments_batch_id", "inventory_adjustments", ["batch_id"])
    op.create_index("ix_inventory_adjustments_product_id", "inventory_adjustments", ["product_id"])

    # SALES
    op.create_table(
        "sale_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("receipt_number", sa.String(64), nullable=False),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cashier_id", sa.Integer(), sa.ForeignKey("pharmacy_users.id"), nullable=False),
        sa.Column("total_discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", payment_method, nullable=True),
        sa.Column("prescription_image_url", sa.Text(), nullable=True),
        sa.Column("customer_email", sa.String(128), nullable=True),
        sa.CheckConstraint(
            "total_discount IS NULL OR total_discount >= 0",
            name="ck_sale_discount_non_negative",
        ),
        sa.CheckConstraint("total_amount >= 0", name="ck_sale_total_non_negative"),
    )
    op.create_index("ix_sale_transactions_id", "sale_transactions", ["id"])
    op.create_index("ix_sale_transactions_receipt_number", "sale_transactions", ["receipt_number"], unique=True)
    op.create_index("ix_sale_transactions_sold_at", "sale_transactions", ["sold_at"])
    op.create_index("ix_sale_transactions_cashier_id", "sale_transactions", ["cashier_id"])
    op.create_index("ix_sale_transactions_cashier_sold_at", "sale_transactions", ["cashier_id", "sold_at"])

    op.create_table(
        "sale_transaction_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sale_transactions.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("inventory_batches.id"), nullable=True),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.UniqueConstraint("sale_id", "line_number", name="uq_sale_line_number"),
        sa.CheckConstraint("quantity > 0", name="ck_sale_line_quantity_positive"),
        sa.CheckConstraint("unit_price > 0", name="ck_sale_line_unit_price_positive"),
    )
    op.create_index("ix_sale_transaction_lines_id", "sale_transaction_lines", ["id"])
    op.create_index("ix_sale_transaction_lines_sale_id", "sale_transaction_lines", ["sale_id"])
    op.create_index("ix_sale_transaction_lines_product_id", "sale_transaction_lines", ["product_id"])
    op.create_index("ix_sale_transaction_lines_batch_id", "sale_transaction_lines", ["batch_id"])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("sale_transaction_lines")
    op.drop_table("sale_transactions")
    op.drop_table("inventory_adjustments")
    op.drop_table("inventory_batches")
    op.drop_table("purchase_order_lines")
    op.drop_table("purchase_orders")
    op.drop_table("products")
    op.drop_table("suppliers")
    op.drop_table("pharmacy_users")

    bind = op.get_bind()
    for enum_type in (
        payment_method,
        inventory_adjustment_type,
        purchase_order_status,
        user_role,
        product_category,
    ):
        enum_type.drop(bind, checkfirst=True)
