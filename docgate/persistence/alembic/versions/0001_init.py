"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-19 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

from docgate.core.config import EMBED_DIM

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Ensure pgvector is enabled for every environment, not just manual setup.
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "owners",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("plan_tier", sa.String(), nullable=True, server_default="pro"),
        sa.Column("custom_domain", sa.String(), nullable=True, unique=True),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column("accent_color", sa.String(), nullable=True),
        sa.Column("cover_image_url", sa.String(), nullable=True),
        sa.Column("intro_message", sa.Text(), nullable=True),
        sa.Column("default_chunk_limit", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("forced_model", sa.String(), nullable=True),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "default_chunk_limit BETWEEN 1 AND 200", name="ck_owners_default_chunk_limit"
        ),
        sa.CheckConstraint(
            "plan_tier IS NULL OR plan_tier IN ('free', 'pro', 'enterprise', 'unlimited')",
            name="ck_owners_plan_tier",
        ),
        sa.CheckConstraint(
            "forced_model IS NULL OR forced_model IN ('grok', 'grok-reasoning')",
            name="ck_owners_forced_model",
        ),
    )

    op.create_table(
        "role_assignments",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "principal_id", sa.String(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "owner_id", sa.String(), sa.ForeignKey("owners.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("granted_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        # super_admin is the only role without a tenant scope.
        sa.CheckConstraint(
            "(role = 'super_admin' AND owner_id IS NULL) OR "
            "(role IN ('registered', 'tenant_admin') AND owner_id IS NOT NULL)",
            name="ck_role_assignments_scope",
        ),
        sa.UniqueConstraint(
            "principal_id", "owner_id", "role", name="uq_role_assignments_scope_role"
        ),
    )
    op.create_index("ix_role_assignments_principal_id", "role_assignments", ["principal_id"])
    op.create_index("ix_role_assignments_owner_role", "role_assignments", ["owner_id", "role"])
    # NULL scopes are distinct in unique constraints; guard global rows separately.
    op.create_index(
        "uq_role_assignments_global",
        "role_assignments",
        ["principal_id", "role"],
        unique=True,
        postgresql_where=sa.text("owner_id IS NULL"),
    )

    op.create_table(
        "tenant_access_grants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "principal_id", sa.String(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "owner_id", sa.String(), sa.ForeignKey("owners.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("granted_by", sa.String(), nullable=True),
        sa.Column("granted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "principal_id", "owner_id", name="uq_tenant_access_grants_principal_owner"
        ),
    )
    op.create_index("ix_tenant_access_grants_principal_id", "tenant_access_grants", ["principal_id"])
    op.create_index(
        "ix_tenant_access_grants_owner_principal",
        "tenant_access_grants",
        ["owner_id", "principal_id"],
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_custom", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "owner_id", sa.String(), sa.ForeignKey("owners.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("name", "owner_id", name="uq_categories_name_owner"),
    )
    op.create_index("ix_categories_owner_id", "categories", ["owner_id"])
    op.create_index(
        "uq_categories_system_name",
        "categories",
        ["name"],
        unique=True,
        postgresql_where=sa.text("owner_id IS NULL"),
    )

    op.create_table(
        "documents",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column(
            "owner_id", sa.String(), sa.ForeignKey("owners.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("access_level", sa.String(), nullable=False, server_default="public"),
        sa.Column("passcode", sa.String(), nullable=True),
        sa.Column("chunk_limit_override", sa.Integer(), nullable=True),
        sa.Column("forced_model", sa.String(), nullable=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "chunk_limit_override IS NULL OR chunk_limit_override BETWEEN 1 AND 200",
            name="ck_documents_chunk_limit_override",
        ),
        sa.CheckConstraint(
            "access_level IN ('public', 'passcode', 'registered', 'owner_restricted', 'owner_admin_only')",
            name="ck_documents_access_level",
        ),
        sa.CheckConstraint(
            "forced_model IS NULL OR forced_model IN ('grok', 'grok-reasoning')",
            name="ck_documents_forced_model",
        ),
    )
    op.create_index("ix_documents_owner_active", "documents", ["owner_id", "active"])

    op.create_table(
        "document_chunks",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "document_id",
            sa.String(),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        # Keep vector dimension aligned with embedding generation and retrieval.
        sa.Column("embedding", Vector(EMBED_DIM), nullable=False),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("document_id", "chunk_index", name="uq_document_chunks_index"),
    )
    op.create_index("ix_document_chunks_document_id", "document_chunks", ["document_id"])


def downgrade() -> None:
    op.drop_index("ix_document_chunks_document_id", table_name="document_chunks")
    op.drop_table("document_chunks")
    op.drop_index("ix_documents_owner_active", table_name="documents")
    op.drop_table("documents")
    op.drop_index("uq_categories_system_name", table_name="categories")
    op.drop_index("ix_categories_owner_id", table_name="categories")
    op.drop_table("categories")
    op.drop_index("ix_tenant_access_grants_owner_principal", table_name="tenant_access_grants")
    op.drop_index("ix_tenant_access_grants_principal_id", table_name="tenant_access_grants")
    op.drop_table("tenant_access_grants")
    op.drop_index("uq_role_assignments_global", table_name="role_assignments")
    op.drop_index("ix_role_assignments_owner_role", table_name="role_assignments")
    op.drop_index("ix_role_assignments_principal_id", table_name="role_assignments")
    op.drop_table("role_assignments")
    op.drop_table("owners")
    op.drop_table("users")
