"""initial schema: products, raw_materials, product_bom, orders, order_items

Revision ID: 5b2e9c41d0a7
Revises:
Create Date: 2026-03-02
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b2e9c41d0a7"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUS = sa.Enum("Pending", "Processing", "Completed", "Cancelled", name="order_status")


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "raw_materials",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("unit_of_measure", sa.String(32), nullable=False, server_default="kg"),
        sa.Column("stock", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "product_bom",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("product_id", sa.String(64), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "raw_material_id",
            sa.String(64),
            sa.ForeignKey("raw_materials.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity_per_unit", sa.Numeric(14, 4), nullable=False),
        sa.UniqueConstraint("product_id", "raw_material_id", name="uq_product_bom_product_raw"),
        sa.CheckConstraint("quantity_per_unit >= 0", name="ck_product_bom_qty_nonneg"),
    )
    op.create_index("ix_product_bom_product_id", "product_bom", ["product_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="Pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "order_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.String(64), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_order_item_qty_pos"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "order_status_history",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("old_status", sa.String(32)),
        sa.Column("new_status", sa.String(32), nullable=False),
        sa.Column("changed_by", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_order_status_history_order_time", "order_status_history", ["order_id", "changed_at"])


def downgrade() -> None:
    op.drop_index("ix_order_status_history_order_time", table_name="order_status_history")
    op.drop_table("order_status_history")
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_index("ix_product_bom_product_id", table_name="product_bom")
    op.drop_table("product_bom")
    op.drop_table("raw_materials")
    op.drop_table("products")
    ORDER_STATUS.drop(op.get_bind(), checkfirst=True)
