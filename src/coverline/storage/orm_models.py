"""SQLAlchemy ORM models for documents, chunks, policies and coverages.

Column types are dialect-portable so the same schema runs on SQLite
(local runs, tests) and PostgreSQL.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base

Money = Numeric(14, 2)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DocumentORM(Base):
    """An uploaded PDF and its processing state."""

    __tablename__ = "documents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    page_count: Mapped[int] = mapped_column(Integer, default=0)

    # PDF text quality
    quality_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    appears_scanned: Mapped[bool] = mapped_column(Boolean, default=False)
    is_hybrid_document: Mapped[bool] = mapped_column(Boolean, default=False)

    document_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    processing_status: Mapped[str] = mapped_column(String(30), default="pending")
    processing_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    chunks: Mapped[list["DocumentChunkORM"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentChunkORM.chunk_index",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_documents_tenant_status", "tenant_id", "processing_status"),
    )


class DocumentChunkORM(Base):
    """A token-bounded span of document text."""

    __tablename__ = "document_chunks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"))
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    chunk_text: Mapped[str] = mapped_column(Text, nullable=False)
    page_start: Mapped[int] = mapped_column(Integer, nullable=False)
    page_end: Mapped[int] = mapped_column(Integer, nullable=False)
    section_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    token_count: Mapped[int] = mapped_column(Integer, nullable=False)

    document: Mapped["DocumentORM"] = relationship(back_populates="chunks")

    __table_args__ = (
        Index("ix_document_chunks_document_index", "document_id", "chunk_index"),
    )


class PolicyORM(Base):
    """A structured policy produced by one extraction run."""

    __tablename__ = "policies"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    source_document_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"))

    policy_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    quote_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    quote_expiration_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    carrier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    carrier_naic: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    insured_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    insured_address_line1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    insured_address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    insured_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    insured_state: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    insured_zip: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    total_premium: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    policy_status: Mapped[str] = mapped_column(String(20), default="quote")

    extraction_confidence: Mapped[float] = mapped_column(Float, default=0.0)
    needs_human_review: Mapped[bool] = mapped_column(Boolean, default=False)
    validation_issues: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    raw_extraction: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    coverages: Mapped[list["CoverageORM"]] = relationship(
        back_populates="policy",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_policies_source_document_id", "source_document_id"),
    )


class CoverageORM(Base):
    """One coverage line belonging to a policy."""

    __tablename__ = "coverages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    policy_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("policies.id", ondelete="CASCADE"))

    coverage_type: Mapped[str] = mapped_column(String(50), nullable=False)
    coverage_subtype: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    each_occurrence_limit: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    aggregate_limit: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    deductible: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    premium: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    is_occurrence_form: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_claims_made: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    retroactive_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    extraction_confidence: Mapped[float] = mapped_column(Float, default=0.0)
    raw_output: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    policy: Mapped["PolicyORM"] = relationship(back_populates="coverages")
