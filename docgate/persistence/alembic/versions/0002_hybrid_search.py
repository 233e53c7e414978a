"""hybrid search indexes

Revision ID: 0002_hybrid_search
Revises: 0001_init
Create Date: 2026-10-19 09:30:00.000000
"""
from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_hybrid_search"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Expression must match the tsvector built by the hybrid retriever for the index to apply.
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_document_chunks_content_tsv "
        "ON document_chunks USING gin (to_tsvector('english'::regconfig, content))"
    )
    # Approximate nearest-neighbour index for cosine distance.
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_document_chunks_embedding_hnsw "
        "ON document_chunks USING hnsw (embedding vector_cosine_ops)"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_document_chunks_embedding_hnsw")
    op.execute("DROP INDEX IF EXISTS ix_document_chunks_content_tsv")
