"""
Database Models - SQLAlchemy ORM models with strict typing.

The document store keeps every record in a single table keyed by
(collection, key); the JSON payload is opaque to the database apart from
field lookups used by DocumentStore.find().
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


DocumentData = JSON().with_variant(JSONB(), "postgresql")


class Document(Base):
    """
    ORM model for documents table.

    version starts at 1 and is bumped on every write; conditional updates
    only commit when the version they read is still current.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(255), primary_key=True)
    key: Mapped[str] = mapped_column(String(255), primary_key=True)

    data: Mapped[dict[str, Any]] = mapped_column(DocumentData, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_document_version_positive"),
        Index("idx_documents_collection_created_at", "collection", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Document(collection={self.collection}, key={self.key}, version={self.version})>"
