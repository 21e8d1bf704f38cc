"""Add approval CC recipients

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "asset_approval_cc_recipients",
        sa.Column("request_id", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("user_name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("request_id", "user_id", name="pk_asset_approval_cc_recipients"),
        sa.ForeignKeyConstraint(
            ["request_id"], ["asset_approval_requests.id"],
            name="fk_asset_approval_cc_recipients_request_id", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_asset_approval_cc_recipients_user_id", "asset_approval_cc_recipients", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_asset_approval_cc_recipients_user_id", table_name="asset_approval_cc_recipients")
    op.drop_table("asset_approval_cc_recipients")
