"""initial schema: master data, plans, entries, stock

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE = sa.Enum("admin", "user", name="role")
PLAN_TYPE = sa.Enum("weekly", "monthly", "annual", name="plan_type")
PLAN_STATUS = sa.Enum("active", "concluded", name="plan_status")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "units_of_measurement",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("symbol", sa.String(20)),
        *_timestamps(),
    )
    op.create_table(
        "foods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column(
            "unit_of_measurement_id",
            sa.Integer(),
            sa.ForeignKey("units_of_measurement.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("description", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_foods_unit_of_measurement_id", "foods", ["unit_of_measurement_id"])

    op.create_table(
        "providers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("email", sa.String(50)),
        sa.Column("phone_number", sa.String(8)),
        sa.Column("address", sa.String(255)),
        *_timestamps(),
    )
    op.create_table(
        "medical_centers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("email", sa.String(254)),
        sa.Column("phone_number", sa.String(32)),
        *_timestamps(),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(254), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", ROLE, nullable=False),
        *_timestamps(),
    )

    # --- PLANNING
    op.create_table(
        "food_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "medical_center_id",
            sa.Integer(),
            sa.ForeignKey("medical_centers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("type", PLAN_TYPE, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", PLAN_STATUS, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_food_plans_medical_center_id", "food_plans", ["medical_center_id"])

    op.create_table(
        "food_plan_children",
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("food_plans.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("child_id", sa.Integer(), sa.ForeignKey("food_plans.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "planned_foods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "food_plan_id",
            sa.Integer(),
            sa.ForeignKey("food_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("food_id", sa.Integer(), sa.ForeignKey("foods.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("provider_id", sa.Integer(), sa.ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_planned_food_qty_nonneg"),
    )
    op.create_index("ix_planned_foods_food_plan_id", "planned_foods", ["food_plan_id"])

    # --- INBOUND
    op.create_table(
        "food_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255)),
        sa.Column(
            "medical_center_id",
            sa.Integer(),
            sa.ForeignKey("medical_centers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("provider_id", sa.Integer(), sa.ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("food_plan_id", sa.Integer(), sa.ForeignKey("food_plans.id", ondelete="RESTRICT")),
        sa.Column("entry_date", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_food_entries_medical_center_id", "food_entries", ["medical_center_id"])
    op.create_index("ix_food_entries_food_plan_id", "food_entries", ["food_plan_id"])

    op.create_table(
        "entered_foods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "food_entry_id",
            sa.Integer(),
            sa.ForeignKey("food_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("food_id", sa.Integer(), sa.ForeignKey("foods.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_entered_food_qty_nonneg"),
    )
    op.create_index("ix_entered_foods_food_entry_id", "entered_foods", ["food_entry_id"])

    # --- INVENTORY
    op.create_table(
        "stock",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "medical_center_id",
            sa.Integer(),
            sa.ForeignKey("medical_centers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("food_id", sa.Integer(), sa.ForeignKey("foods.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("medical_center_id", "food_id", name="uq_stock_center_food"),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_quantity_nonneg"),
    )
    op.create_index("ix_stock_food", "stock", ["food_id"])


def downgrade() -> None:
    op.drop_index("ix_stock_food", table_name="stock")
    op.drop_table("stock")
    op.drop_index("ix_entered_foods_food_entry_id", table_name="entered_foods")
    op.drop_table("entered_foods")
    op.drop_index("ix_food_entries_food_plan_id", table_name="food_entries")
    op.drop_index("ix_food_entries_medical_center_id", table_name="food_entries")
    op.drop_table("food_entries")
    op.drop_index("ix_planned_foods_food_plan_id", table_name="planned_foods")
    op.drop_table("planned_foods")
    op.drop_table("food_plan_children")
    op.drop_index("ix_food_plans_medical_center_id", table_name="food_plans")
    op.drop_table("food_plans")
    op.drop_table("users")
    op.drop_table("medical_centers")
    op.drop_table("providers")
    op.drop_index("ix_foods_unit_of_measurement_id", table_name="foods")
    op.drop_table("foods")
    op.drop_table("units_of_measurement")

    bind = op.get_bind()
    PLAN_STATUS.drop(bind, checkfirst=True)
    PLAN_TYPE.drop(bind, checkfirst=True)
    ROLE.drop(bind, checkfirst=True)
