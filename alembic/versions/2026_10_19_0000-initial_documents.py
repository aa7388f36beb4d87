"""Initial schema - documents table backing the document store.

Revision ID: 2026_10_19_0000
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_19_0000"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create documents table."""
    op.create_table(
        "documents",
        sa.Column("collection", sa.String(255), nullable=False),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("collection", "key"),
        sa.CheckConstraint("version >= 1", name="ck_document_version_positive"),
    )
    op.create_index(
        "idx_documents_collection_created_at", "documents", ["collection", "created_at"]
    )
    # Redeem code lookups filter on data->>'code'
    op.create_index(
        "idx_documents_code",
        "documents",
        ["collection", sa.text("(data->>'code')")],
    )


def downgrade() -> None:
    """Drop documents table."""
    op.drop_index("idx_documents_code", table_name="documents")
    op.drop_index("idx_documents_collection_created_at", table_name="documents")
    op.drop_table("documents")
