"""Repository layer for database CRUD operations."""

from datetime import UTC, datetime
from typing import Any, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coverline.extract.models import CoverageExtractionResult, PolicyExtractionResult
from coverline.ingest.chunker import Chunk

from .orm_models import CoverageORM, DocumentChunkORM, DocumentORM, PolicyORM

# Statuses after which a document counts as processed
_FINISHED_STATUSES = {"processed", "completed", "needs_review", "failed", "extraction_failed"}


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    if value is None:
        return None
    return value[:length]


class DocumentRepository:
    """Repository for Document operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, file_name: str, storage_path: str, tenant_id: UUID) -> DocumentORM:
        """Register an uploaded document as pending."""
        doc = DocumentORM(
            tenant_id=tenant_id,
            file_name=_truncate(file_name, 255),
            storage_path=storage_path,
            processing_status="pending",
        )
        self.session.add(doc)
        await self.session.flush()
        return doc

    async def get_by_id(self, doc_id: UUID, tenant_id: Optional[UUID] = None) -> Optional[DocumentORM]:
        """Get document by ID, scoped to a tenant when one is given."""
        query = select(DocumentORM).where(DocumentORM.id == doc_id)
        if tenant_id is not None:
            query = query.where(DocumentORM.tenant_id == tenant_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def update_status(self, doc_id: UUID, status: str, error: Optional[str] = None) -> None:
        """Update document processing status."""
        doc = await self.get_by_id(doc_id)
        if doc:
            doc.processing_status = status
            doc.processing_error = error
            if status in _FINISHED_STATUSES:
                doc.processed_at = datetime.now(UTC)
            await self.session.flush()

    def set_document_type(self, doc: DocumentORM, document_type: str) -> None:
        """Record the classified type, clipped to the column width."""
        doc.document_type = _truncate(document_type, 50)

    async def list_recent(self, limit: int = 50) -> Sequence[DocumentORM]:
        result = await self.session.execute(
            select(DocumentORM).order_by(DocumentORM.created_at.desc()).limit(limit)
        )
        return result.scalars().all()


class ChunkRepository:
    """Repository for DocumentChunk operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def replace_for_document(self, document_id: UUID, chunks: list[Chunk]) -> int:
        """Replace a document's chunks with a fresh set. Returns the count stored."""
        await self.session.execute(
            delete(DocumentChunkORM).where(DocumentChunkORM.document_id == document_id)
        )
        self.session.add_all(
            DocumentChunkORM(
                document_id=document_id,
                chunk_index=chunk.index,
                chunk_text=chunk.text,
                page_start=chunk.page_start,
                page_end=chunk.page_end,
                section_type=chunk.section_type,
                token_count=chunk.estimated_tokens,
            )
            for chunk in chunks
        )
        await self.session.flush()
        return len(chunks)

    async def list_for_document(self, document_id: UUID) -> list[Chunk]:
        """Get a document's chunks in index order."""
        result = await self.session.execute(
            select(DocumentChunkORM)
            .where(DocumentChunkORM.document_id == document_id)
            .order_by(DocumentChunkORM.chunk_index)
        )
        return [
            Chunk(
                index=row.chunk_index,
                text=row.chunk_text,
                page_start=row.page_start,
                page_end=row.page_end,
                estimated_tokens=row.token_count,
                section_type=row.section_type,
            )
            for row in result.scalars().all()
        ]


class PolicyRepository:
    """Repository for Policy and Coverage operations.

    Policies are only ever inserted; a rerun creates a new row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_with_coverages(
        self,
        tenant_id: UUID,
        document_id: UUID,
        policy: PolicyExtractionResult,
        coverages: list[CoverageExtractionResult],
        policy_status: str,
        confidence: float,
        needs_human_review: bool,
        validation_issues: Optional[dict[str, Any]] = None,
        raw_extraction: Optional[dict[str, Any]] = None,
    ) -> PolicyORM:
        """Insert a policy together with its coverages."""
        orm_policy = PolicyORM(
            tenant_id=tenant_id,
            source_document_id=document_id,
            policy_number=_truncate(policy.policy_number, 100),
            quote_number=_truncate(policy.quote_number, 100),
            effective_date=policy.effective_date,
            expiration_date=policy.expiration_date,
            quote_expiration_date=policy.quote_expiration_date,
            carrier_name=_truncate(policy.carrier_name, 255),
            carrier_naic=_truncate(policy.carrier_naic, 20),
            insured_name=_truncate(policy.insured_name, 255),
            insured_address_line1=_truncate(policy.insured_address_line1, 255),
            insured_address_line2=_truncate(policy.insured_address_line2, 255),
            insured_city=_truncate(policy.insured_city, 100),
            insured_state=_truncate(policy.insured_state, 50),
            insured_zip=_truncate(policy.insured_zip, 20),
            total_premium=policy.total_premium,
            policy_status=policy_status,
            extraction_confidence=confidence,
            needs_human_review=needs_human_review,
            validation_issues=validation_issues,
            raw_extraction=raw_extraction,
            coverages=[
                CoverageORM(
                    coverage_type=_truncate(c.coverage_type, 50),
                    coverage_subtype=_truncate(c.coverage_subtype, 100),
                    each_occurrence_limit=c.each_occurrence_limit,
                    aggregate_limit=c.aggregate_limit,
                    deductible=c.deductible,
                    premium=c.premium,
                    is_occurrence_form=c.is_occurrence_form,
                    is_claims_made=c.is_claims_made,
                    retroactive_date=c.retroactive_date,
                    details=c.details or None,
                    extraction_confidence=c.confidence,
                    raw_output=c.raw_output or None,
                )
                for c in coverages
            ],
        )
        self.session.add(orm_policy)
        await self.session.flush()
        return orm_policy

    async def get_by_id(self, policy_id: UUID) -> Optional[PolicyORM]:
        result = await self.session.execute(select(PolicyORM).where(PolicyORM.id == policy_id))
        return result.scalar_one_or_none()

    async def list_for_document(self, document_id: UUID) -> Sequence[PolicyORM]:
        """Get every policy extracted from a document, oldest first."""
        result = await self.session.execute(
            select(PolicyORM)
            .where(PolicyORM.source_document_id == document_id)
            .order_by(PolicyORM.created_at)
        )
        return result.scalars().all()

    async def list_recent(self, limit: int = 20) -> Sequence[PolicyORM]:
        result = await self.session.execute(
            select(PolicyORM).order_by(PolicyORM.created_at.desc()).limit(limit)
        )
        return result.scalars().all()

    async def count_all(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(PolicyORM))
        return result.scalar_one()

    async def count_coverages(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(CoverageORM))
        return result.scalar_one()
