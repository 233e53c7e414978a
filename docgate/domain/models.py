from __future__ import annotations

from datetime import datetime
import re
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from docgate.core.config import EMBED_DIM


ROLE_REGISTERED = "registered"
ROLE_TENANT_ADMIN = "tenant_admin"
ROLE_SUPER_ADMIN = "super_admin"
ROLES = (ROLE_REGISTERED, ROLE_TENANT_ADMIN, ROLE_SUPER_ADMIN)

ACCESS_PUBLIC = "public"
ACCESS_PASSCODE = "passcode"
ACCESS_REGISTERED = "registered"
ACCESS_OWNER_RESTRICTED = "owner_restricted"
ACCESS_OWNER_ADMIN_ONLY = "owner_admin_only"
ACCESS_LEVELS = (
    ACCESS_PUBLIC,
    ACCESS_PASSCODE,
    ACCESS_REGISTERED,
    ACCESS_OWNER_RESTRICTED,
    ACCESS_OWNER_ADMIN_ONLY,
)

PLAN_FREE = "free"
PLAN_PRO = "pro"
PLAN_ENTERPRISE = "enterprise"
PLAN_UNLIMITED = "unlimited"
PLAN_TIERS = (PLAN_FREE, PLAN_PRO, PLAN_ENTERPRISE, PLAN_UNLIMITED)

FORCED_MODELS = ("grok", "grok-reasoning")

CHUNK_LIMIT_MIN = 1
CHUNK_LIMIT_MAX = 200
DEFAULT_CHUNK_LIMIT = 50

# URL-safe slugs: lowercase words joined by single hyphens.
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

# JSONB in Postgres, plain JSON elsewhere (tests run on SQLite).
JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    # Opaque principal identity; permissions are always derived from role rows.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Owner(Base):
    __tablename__ = "owners"
    __table_args__ = (
        CheckConstraint(
            f"default_chunk_limit BETWEEN {CHUNK_LIMIT_MIN} AND {CHUNK_LIMIT_MAX}",
            name="ck_owners_default_chunk_limit",
        ),
        CheckConstraint(
            "plan_tier IS NULL OR plan_tier IN ('free', 'pro', 'enterprise', 'unlimited')",
            name="ck_owners_plan_tier",
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    slug: Mapped[str] = mapped_column(String, unique=True)
    name: Mapped[str] = mapped_column(String)
    # Plan tier stays a loose string so unknown values fall back at read time.
    plan_tier: Mapped[str | None] = mapped_column(String, nullable=True, default=PLAN_PRO)
    custom_domain: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    accent_color: Mapped[str | None] = mapped_column(String, nullable=True)
    cover_image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    intro_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_chunk_limit: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_CHUNK_LIMIT, server_default=str(DEFAULT_CHUNK_LIMIT)
    )
    forced_model: Mapped[str | None] = mapped_column(String, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JsonColumn, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class RoleAssignment(Base):
    __tablename__ = "role_assignments"
    __table_args__ = (
        # super_admin is the only role without a tenant scope.
        CheckConstraint(
            "(role = 'super_admin' AND owner_id IS NULL) OR "
            "(role IN ('registered', 'tenant_admin') AND owner_id IS NOT NULL)",
            name="ck_role_assignments_scope",
        ),
        UniqueConstraint("principal_id", "owner_id", "role", name="uq_role_assignments_scope_role"),
        # NULL scopes are distinct in unique constraints; guard global rows separately.
        Index(
            "uq_role_assignments_global",
            "principal_id",
            "role",
            unique=True,
            postgresql_where=text("owner_id IS NULL"),
            sqlite_where=text("owner_id IS NULL"),
        ),
        Index("ix_role_assignments_owner_role", "owner_id", "role"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    principal_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    owner_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("owners.id", ondelete="CASCADE"), nullable=True
    )
    role: Mapped[str] = mapped_column(String)
    granted_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class TenantAccessGrant(Base):
    __tablename__ = "tenant_access_grants"
    __table_args__ = (
        UniqueConstraint("principal_id", "owner_id", name="uq_tenant_access_grants_principal_owner"),
        Index("ix_tenant_access_grants_owner_principal", "owner_id", "principal_id"),
    )

    # Direct membership equivalent to a registered role; pruned when an admin role lands.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    principal_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    owner_id: Mapped[str] = mapped_column(String, ForeignKey("owners.id", ondelete="CASCADE"))
    granted_by: Mapped[str | None] = mapped_column(String, nullable=True)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = (
        # Invitations confer tenant-scoped roles only; super admin is never invitable.
        CheckConstraint(
            "role IN ('registered', 'tenant_admin')", name="ck_invitations_role"
        ),
        Index("ix_invitations_owner_pending", "owner_id", "used_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # Only the SHA-256 of the token is stored; the raw token is shown once at creation.
    token_hash: Mapped[str] = mapped_column(String, unique=True)
    token_prefix: Mapped[str] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    owner_id: Mapped[str] = mapped_column(String, ForeignKey("owners.id", ondelete="CASCADE"))
    role: Mapped[str] = mapped_column(String, default=ROLE_REGISTERED)
    invited_by: Mapped[str | None] = mapped_column(String, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    used_by: Mapped[str | None] = mapped_column(
        String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("name", "owner_id", name="uq_categories_name_owner"),
        Index(
            "uq_categories_system_name",
            "name",
            unique=True,
            postgresql_where=text("owner_id IS NULL"),
            sqlite_where=text("owner_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # NULL owner_id marks a system default visible to every owner.
    owner_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("owners.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        CheckConstraint(
            "chunk_limit_override IS NULL OR "
            f"chunk_limit_override BETWEEN {CHUNK_LIMIT_MIN} AND {CHUNK_LIMIT_MAX}",
            name="ck_documents_chunk_limit_override",
        ),
        CheckConstraint(
            "access_level IN ('public', 'passcode', 'registered', 'owner_restricted', 'owner_admin_only')",
            name="ck_documents_access_level",
        ),
        Index("ix_documents_owner_active", "owner_id", "active"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    slug: Mapped[str] = mapped_column(String, unique=True)
    title: Mapped[str] = mapped_column(String)
    # NULL owner_id marks a private upload keyed by metadata_json["user_id"].
    owner_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("owners.id", ondelete="SET NULL"), nullable=True
    )
    access_level: Mapped[str] = mapped_column(String, default=ACCESS_PUBLIC)
    passcode: Mapped[str | None] = mapped_column(String, nullable=True)
    chunk_limit_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    forced_model: Mapped[str | None] = mapped_column(String, nullable=True)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JsonColumn, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class DocumentChunk(Base):
    __tablename__ = "document_chunks"
    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_document_chunks_index"),
    )

    # Rows are produced by the ingestion pipeline; ranking only reads them.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("documents.id", ondelete="CASCADE"), index=True
    )
    chunk_index: Mapped[int] = mapped_column(Integer)
    content: Mapped[str] = mapped_column(Text)
    # Keep vector dimension aligned with embedding generation and retrieval.
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBED_DIM))
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JsonColumn, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
