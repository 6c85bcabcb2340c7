"""stockcount baseline: items / batches / count sessions / drifts

Revision ID: 0001_stockcount_baseline
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_stockcount_baseline"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    # ---------- 主数据 ----------
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("contact_name", sa.String(length=128), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_suppliers"),
    )
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_locations"),
    )
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("uom", sa.String(length=32), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("warning_qty", sa.Float(), nullable=True),
        sa.Column("target_sale_price", sa.Float(), nullable=True),
        sa.Column(
            "target_margin_is_percent",
            sa.Boolean(),
            server_default=sa.true(),
            nullable=False,
        ),
        sa.Column("target_margin", sa.Float(), nullable=True),
        sa.Column("default_supplier_id", sa.Integer(), nullable=True),
        sa.Column("default_location_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_items_category_id_categories",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["default_supplier_id"],
            ["suppliers.id"],
            name="fk_items_default_supplier_id_suppliers",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["default_location_id"],
            ["locations.id"],
            name="fk_items_default_location_id_locations",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
    )
    op.create_index("ix_items_category_id", "items", ["category_id"])
    op.create_index("ix_items_default_supplier_id", "items", ["default_supplier_id"])
    op.create_index("ix_items_default_location_id", "items", ["default_location_id"])

    op.create_table(
        "item_forms",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("qty_multiplier", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_item_forms_item_id_items", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_item_forms"),
    )
    op.create_index("ix_item_forms_item_id", "item_forms", ["item_id"])

    # ---------- 批次 ----------
    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("qty", sa.Float(), nullable=False),
        sa.Column("unit_buy_price", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("received_at", TS, nullable=False),
        sa.Column("stockout_at", TS, nullable=True),
        sa.Column("expiry_at", TS, nullable=True),
        sa.CheckConstraint("qty >= 0", name="ck_batches_qty_non_negative"),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_batches_item_id_items", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["location_id"],
            ["locations.id"],
            name="fk_batches_location_id_locations",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["supplier_id"],
            ["suppliers.id"],
            name="fk_batches_supplier_id_suppliers",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_batches"),
    )
    op.create_index("ix_batches_item_status", "batches", ["item_id", "status"])
    op.create_index("ix_batches_item_received", "batches", ["item_id", "received_at"])
    op.create_index("ix_batches_expiry_at", "batches", ["expiry_at"])

    # ---------- 盘点 ----------
    op.create_table(
        "count_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("started_at", TS, nullable=False),
        sa.Column("finished_at", TS, nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_count_sessions"),
    )

    op.create_table(
        "item_counts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("count_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=True),
        sa.Column("counted_qty", sa.Float(), nullable=False),
        sa.Column("counted_at", TS, nullable=False),
        sa.CheckConstraint("counted_qty >= 0", name="ck_item_counts_counted_qty_non_negative"),
        sa.ForeignKeyConstraint(
            ["count_id"],
            ["count_sessions.id"],
            name="fk_item_counts_count_id_count_sessions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_item_counts_item_id_items", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["batch_id"], ["batches.id"], name="fk_item_counts_batch_id_batches", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_item_counts"),
        sa.UniqueConstraint("count_id", "item_id", "batch_id", name="uq_item_counts_key"),
    )
    op.create_index(
        "uq_item_counts_generic",
        "item_counts",
        ["count_id", "item_id"],
        unique=True,
        sqlite_where=sa.text("batch_id IS NULL"),
        postgresql_where=sa.text("batch_id IS NULL"),
    )
    op.create_index("ix_item_counts_item_id", "item_counts", ["item_id"])

    op.create_table(
        "count_drifts",
        sa.Column("count_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("qty_change", sa.Float(), nullable=False),
        sa.Column("drift_at", TS, nullable=False),
        sa.ForeignKeyConstraint(
            ["count_id"],
            ["count_sessions.id"],
            name="fk_count_drifts_count_id_count_sessions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_count_drifts_item_id_items", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("count_id", "item_id", name="pk_count_drifts"),
    )


def downgrade() -> None:
    op.drop_table("count_drifts")
    op.drop_index("ix_item_counts_item_id", table_name="item_counts")
    op.drop_index("uq_item_counts_generic", table_name="item_counts")
    op.drop_table("item_counts")
    op.drop_table("count_sessions")
    op.drop_index("ix_batches_expiry_at", table_name="batches")
    op.drop_index("ix_batches_item_received", table_name="batches")
    op.drop_index("ix_batches_item_status", table_name="batches")
    op.drop_table("batches")
    op.drop_index("ix_item_forms_item_id", table_name="item_forms")
    op.drop_table("item_forms")
    op.drop_index("ix_items_default_location_id", table_name="items")
    op.drop_index("ix_items_default_supplier_id", table_name="items")
    op.drop_index("ix_items_category_id", table_name="items")
    op.drop_table("items")
    op.drop_table("categories")
    op.drop_table("locations")
    op.drop_table("suppliers")
