"""invitations

Revision ID: 0003_invitations
Revises: 0002_hybrid_search
Create Date: 2026-10-19 11:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0003_invitations"
down_revision = "0002_hybrid_search"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "invitations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("token_hash", sa.String(), nullable=False, unique=True),
        sa.Column("token_prefix", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column(
            "owner_id", sa.String(), sa.ForeignKey("owners.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("role", sa.String(), nullable=False, server_default="registered"),
        sa.Column("invited_by", sa.String(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "used_by", sa.String(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('registered', 'tenant_admin')", name="ck_invitations_role"),
    )
    op.create_index("ix_invitations_owner_pending", "invitations", ["owner_id", "used_at"])


def downgrade() -> None:
    op.drop_index("ix_invitations_owner_pending", table_name="invitations")
    op.drop_table("invitations")
