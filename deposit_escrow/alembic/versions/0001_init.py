"""escrow schema: deposits, move-out inspections, deductions, audit + workflow log

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)


def _insp():
    return inspect(op.get_bind())


def _has_table(name: str) -> bool:
    return name in _insp().get_table_names()


def upgrade() -> None:
    if not _has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=80), nullable=False),
            sa.Column("entity_type", sa.String(length=80), nullable=False),
            sa.Column("entity_id", sa.String(length=80), nullable=False),
            sa.Column("before_json", sa.Text(), nullable=True),
            sa.Column("after_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])

    if not _has_table("workflow_events"):
        op.create_table(
            "workflow_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("property_id", sa.Integer(), nullable=True),
            sa.Column("tenant_id", sa.Integer(), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("event_type", sa.String(length=80), nullable=False),
            sa.Column("payload_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_workflow_events_property_id", "workflow_events", ["property_id"])
        op.create_index("ix_workflow_events_tenant_id", "workflow_events", ["tenant_id"])
        op.create_index("ix_workflow_events_event_type", "workflow_events", ["event_type"])

    if not _has_table("deposit_balances"):
        op.create_table(
            "deposit_balances",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("property_id", sa.Integer(), nullable=False),
            sa.Column("deposit_amount", MONEY, nullable=False),
            sa.Column("deductions", MONEY, nullable=False, server_default="0"),
            sa.Column("refundable_amount", MONEY, nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="held"),
            sa.Column("payment_id", sa.String(length=120), nullable=True),
            sa.Column("monthly_rent_at_creation", MONEY, nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("refunded_amount", MONEY, nullable=True),
            sa.Column("refunded_at", sa.DateTime(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("tenant_id", "property_id", name="uq_deposit_balances_tenant_property"),
        )
        op.create_index("ix_deposit_balances_tenant_id", "deposit_balances", ["tenant_id"])
        op.create_index("ix_deposit_balances_property_id", "deposit_balances", ["property_id"])
        op.create_index("ix_deposit_balances_property_status", "deposit_balances", ["property_id", "status"])

    if not _has_table("move_out_inspections"):
        op.create_table(
            "move_out_inspections",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "deposit_id",
                sa.Integer(),
                sa.ForeignKey("deposit_balances.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("property_id", sa.Integer(), nullable=False),
            sa.Column("inspector_id", sa.Integer(), nullable=False),
            sa.Column("inspection_date", sa.DateTime(), nullable=False),
            sa.Column("checklist_json", sa.Text(), nullable=False, server_default="{}"),
            sa.Column("photos_json", sa.Text(), nullable=False, server_default="[]"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="in_progress"),
            sa.Column("total_deductions", MONEY, nullable=False, server_default="0"),
            sa.Column("refundable_amount", MONEY, nullable=False, server_default="0"),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("deposit_id", name="uq_move_out_inspections_deposit"),
        )
        op.create_index("ix_move_out_inspections_deposit_id", "move_out_inspections", ["deposit_id"])
        op.create_index("ix_move_out_inspections_tenant_id", "move_out_inspections", ["tenant_id"])
        op.create_index("ix_move_out_inspections_property_id", "move_out_inspections", ["property_id"])

    if not _has_table("deduction_items"):
        op.create_table(
            "deduction_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "inspection_id",
                sa.Integer(),
                sa.ForeignKey("move_out_inspections.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("item_description", sa.String(length=255), nullable=False),
            sa.Column("cost", MONEY, nullable=False),
            sa.Column("category", sa.String(length=60), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("proof_photos_json", sa.Text(), nullable=False, server_default="[]"),
            sa.Column("disputed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("dispute_reason", sa.Text(), nullable=True),
            sa.Column("disputed_at", sa.DateTime(), nullable=True),
            sa.Column("disputed_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_deduction_items_inspection_id", "deduction_items", ["inspection_id"])


def downgrade() -> None:
    op.drop_table("deduction_items")
    op.drop_table("move_out_inspections")
    op.drop_table("deposit_balances")
    op.drop_table("workflow_events")
    op.drop_table("audit_events")
