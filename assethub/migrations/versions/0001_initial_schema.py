"""Initial schema: roles, action configs, assets, consumables, approvals

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    """Create all tables."""

    # --- roles (no FK deps) ---
    op.create_table(
        "roles",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("scope", sa.String(64), nullable=False, server_default="global"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("members", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_roles"),
    )

    # --- asset_action_configs (no FK deps) ---
    op.create_table(
        "asset_action_configs",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("label_zh", sa.String(100), nullable=False),
        sa.Column("label_en", sa.String(100), nullable=False),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("default_approver_type", sa.String(16), nullable=False, server_default="none"),
        sa.Column("default_approver_refs", sa.JSON(), nullable=False),
        sa.Column("allow_override", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_asset_action_configs"),
    )

    # --- assets (no FK deps) ---
    op.create_table(
        "assets",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="general"),
        sa.Column("status", sa.String(32), nullable=False, server_default="idle"),
        sa.Column("owner", sa.String(255), nullable=False, server_default=""),
        sa.Column("location", sa.String(255), nullable=False, server_default=""),
        sa.Column("company_code", sa.String(64), nullable=False, server_default="DEFAULT"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_assets"),
    )
    op.create_index("ix_assets_status", "assets", ["status"])

    # --- asset_operations (FK -> assets) ---
    op.create_table(
        "asset_operations",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("asset_id", sa.String(32), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("actor", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_asset_operations"),
        sa.ForeignKeyConstraint(
            ["asset_id"], ["assets.id"],
            name="fk_asset_operations_asset_id_assets", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_asset_operations_asset_id", "asset_operations", ["asset_id"])

    # --- asset_borrow_records (FK -> assets) ---
    op.create_table(
        "asset_borrow_records",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("asset_id", sa.String(32), nullable=False),
        sa.Column("borrow_operation_id", sa.String(32), nullable=False),
        sa.Column("borrower", sa.String(255), nullable=True),
        sa.Column("planned_return_date", sa.String(32), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("return_operation_id", sa.String(32), nullable=True),
        sa.Column("return_operation_date", sa.DateTime(), nullable=True),
        sa.Column("overdue_notified_at", sa.DateTime(), nullable=True),
        sa.Column("external_todo_id", sa.String(128), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_asset_borrow_records"),
        sa.UniqueConstraint("borrow_operation_id", name="uq_asset_borrow_records_borrow_operation_id"),
        sa.ForeignKeyConstraint(
            ["asset_id"], ["assets.id"],
            name="fk_asset_borrow_records_asset_id_assets", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_asset_borrow_records_asset_id", "asset_borrow_records", ["asset_id"])
    op.create_index("ix_asset_borrow_records_status", "asset_borrow_records", ["status"])

    # --- consumables (no FK deps) ---
    op.create_table(
        "consumables",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="general"),
        sa.Column("status", sa.String(32), nullable=False, server_default="in-stock"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reserved_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("safety_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit", sa.String(32), nullable=False, server_default="pcs"),
        sa.Column("keeper", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_consumables"),
    )
    op.create_index("ix_consumables_status", "consumables", ["status"])

    # --- consumable_operations (FK -> consumables) ---
    op.create_table(
        "consumable_operations",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("consumable_id", sa.String(32), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("actor", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("quantity_delta", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reserved_delta", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_consumable_operations"),
        sa.ForeignKeyConstraint(
            ["consumable_id"], ["consumables.id"],
            name="fk_consumable_operations_consumable_id_consumables", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_consumable_operations_consumable_id", "consumable_operations", ["consumable_id"])

    # --- asset_approval_requests (FK -> assets, consumables, operations) ---
    op.create_table(
        "asset_approval_requests",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("asset_id", sa.String(32), nullable=True),
        sa.Column("consumable_id", sa.String(32), nullable=True),
        sa.Column("operation_id", sa.String(32), nullable=True),
        sa.Column("consumable_operation_id", sa.String(32), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("applicant_id", sa.String(64), nullable=False),
        sa.Column("applicant_name", sa.String(255), nullable=True),
        sa.Column("approver_id", sa.String(64), nullable=True),
        sa.Column("approver_name", sa.String(255), nullable=True),
        sa.Column("result", sa.Text(), nullable=True),
        sa.Column("external_todo_id", sa.String(128), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_asset_approval_requests"),
        sa.ForeignKeyConstraint(
            ["asset_id"], ["assets.id"],
            name="fk_asset_approval_requests_asset_id_assets", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["consumable_id"], ["consumables.id"],
            name="fk_asset_approval_requests_consumable_id_consumables", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["operation_id"], ["asset_operations.id"],
            name="fk_asset_approval_requests_operation_id_asset_operations", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["consumable_operation_id"], ["consumable_operations.id"],
            name="fk_asset_approval_requests_consumable_operation_id", ondelete="SET NULL",
        ),
    )
    for column in (
        "asset_id", "consumable_id", "operation_id", "consumable_operation_id",
        "type", "status", "applicant_id", "approver_id", "created_at",
    ):
        op.create_index(f"ix_asset_approval_requests_{column}", "asset_approval_requests", [column])

    # --- asset_approval_history (FK -> asset_approval_requests) ---
    op.create_table(
        "asset_approval_history",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("request_id", sa.String(32), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("from_status", sa.String(32), nullable=True),
        sa.Column("to_status", sa.String(32), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("actor_name", sa.String(255), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id", name="pk_asset_approval_history"),
        sa.ForeignKeyConstraint(
            ["request_id"], ["asset_approval_requests.id"],
            name="fk_asset_approval_history_request_id", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_asset_approval_history_request_id", "asset_approval_history", ["request_id"])
    op.create_index("ix_asset_approval_history_created_at", "asset_approval_history", ["created_at"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("asset_approval_history")
    op.drop_table("asset_approval_requests")
    op.drop_table("consumable_operations")
    op.drop_table("consumables")
    op.drop_table("asset_borrow_records")
    op.drop_table("asset_operations")
    op.drop_table("assets")
    op.drop_table("asset_action_configs")
    op.drop_table("roles")
