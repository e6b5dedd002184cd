"""add products / raw_materials stock nonneg constraints

Revision ID: 9d41f7a3c2e8
Revises: 5b2e9c41d0a7
Create Date: 2026-03-09
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "9d41f7a3c2e8"
down_revision: Union[str, Sequence[str], None] = "5b2e9c41d0a7"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# (table, constraint)
CHECKS = [
    ("products", "ck_product_stock_nonneg"),
    ("raw_materials", "ck_raw_material_stock_nonneg"),
]


def _add_check_if_missing(table_name: str, constraint_name: str, check_sql: str) -> None:
    # Idempotent Postgres
    op.execute(
        f"""
        DO $$
        BEGIN
            IF NOT EXISTS (
                SELECT 1
                FROM pg_constraint c
                JOIN pg_class t ON t.oid = c.conrelid
                WHERE t.relname = '{table_name}'
                  AND c.conname = '{constraint_name}'
            ) THEN
                ALTER TABLE {table_name}
                ADD CONSTRAINT {constraint_name}
                CHECK ({check_sql});
            END IF;
        END $$;
        """
    )


def upgrade() -> None:
    # Stock plancher à 0 : on clampe d'abord les lignes déjà négatives
    # (écritures antérieures au moteur de décrément).
    for table_name, _ in CHECKS:
        op.execute(
            f"""
            UPDATE {table_name}
            SET stock = 0
            WHERE stock < 0;
            """
        )

    for table_name, constraint_name in CHECKS:
        _add_check_if_missing(table_name, constraint_name, "stock >= 0")


def downgrade() -> None:
    for table_name, constraint_name in reversed(CHECKS):
        op.execute(f"ALTER TABLE {table_name} DROP CONSTRAINT IF EXISTS {constraint_name};")
