"""Structured extraction pipeline.

Turns a processed document (stored chunks) into one persisted Policy with
its Coverages. A run moves through fixed states and either completes with
a new policy id or fails without writing any policy data. Exactly one
completion event is published per run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Literal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coverline.config import CoverlineConfig
from coverline.events import EventPublisher, ExtractionCompletedEvent, InMemoryEventPublisher
from coverline.extract.classifier import DocumentClassifier
from coverline.extract.coverage.factory import CoverageExtractorFactory
from coverline.extract.gateway import CompletionGateway
from coverline.extract.models import ClassificationResult, CoverageExtractionResult, PolicyExtractionResult
from coverline.extract.policy_extractor import PolicyExtractor
from coverline.ingest.chunker import Chunk
from coverline.storage.database import get_session
from coverline.storage.repositories import ChunkRepository, DocumentRepository, PolicyRepository
from coverline.validator import ExtractionValidator, ValidationResult

logger = logging.getLogger(__name__)

PipelineState = Literal[
    "not_started",
    "classifying",
    "extracting_policy",
    "extracting_coverages",
    "validating",
    "persisting",
    "completed",
    "failed",
]

NO_CHUNKS_ERROR = "No text chunks available for extraction"

# Tenant used for local, single-user runs
DEFAULT_TENANT_ID = UUID(int=0)

_KEPT_STATUSES = {"bound", "cancelled"}
_KNOWN_STATUSES = {"quote", "bound", "active", "expired", "cancelled"}


def determine_policy_status(
    effective_date: date | None,
    expiration_date: date | None,
    reported: str | None = None,
    today: date | None = None,
) -> str:
    """Policy status from its term dates.

    A reported `bound` or `cancelled` status is kept since dates can't
    express it. Without both dates the reported status (or `quote`) is used.
    """
    if reported in _KEPT_STATUSES:
        return reported
    if effective_date is None or expiration_date is None:
        return reported if reported in _KNOWN_STATUSES else "quote"
    today = today or date.today()
    if today < effective_date:
        return "quote"
    if today > expiration_date:
        return "expired"
    return "active"


@dataclass
class PipelineRun:
    """State and intermediate results of one extraction run."""

    document_id: UUID
    tenant_id: UUID
    state: PipelineState = "not_started"
    history: list[PipelineState] = field(default_factory=lambda: ["not_started"])
    policy_id: UUID | None = None
    classification: ClassificationResult | None = None
    policy: PolicyExtractionResult | None = None
    coverages: list[CoverageExtractionResult] = field(default_factory=list)
    validation: ValidationResult | None = None
    needs_human_review: bool = False
    error: str | None = None

    def advance(self, state: PipelineState) -> None:
        logger.debug(f"Document {self.document_id}: {self.state} -> {state}")
        self.state = state
        self.history.append(state)

    @property
    def succeeded(self) -> bool:
        return self.state == "completed"


class ExtractionPipeline:
    """Classify, extract, validate and persist one document per run."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: CompletionGateway,
        publisher: EventPublisher,
        validator: ExtractionValidator | None = None,
        timeout: float | None = None,
        coverage_concurrency: int = 5,
        coverage_context_tokens: int = 12000,
        declarations_fallback_pages: int = 3,
    ):
        if coverage_concurrency < 1:
            raise ValueError("coverage_concurrency must be at least 1")
        self.session_factory = session_factory
        self.publisher = publisher
        self.classifier = DocumentClassifier(gateway, timeout)
        self.policy_extractor = PolicyExtractor(gateway, timeout)
        self.coverage_factory = CoverageExtractorFactory(gateway, timeout)
        self.validator = validator or ExtractionValidator()
        self.coverage_concurrency = coverage_concurrency
        self.coverage_context_tokens = coverage_context_tokens
        self.declarations_fallback_pages = declarations_fallback_pages

    @classmethod
    def from_config(
        cls,
        config: CoverlineConfig,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: CompletionGateway,
        publisher: EventPublisher,
    ) -> "ExtractionPipeline":
        return cls(
            session_factory,
            gateway,
            publisher,
            validator=ExtractionValidator(config.confidence_weights(), config.review_threshold),
            timeout=config.extraction_timeout,
            coverage_concurrency=config.coverage_concurrency,
            coverage_context_tokens=config.coverage_context_tokens,
            declarations_fallback_pages=config.declarations_fallback_pages,
        )

    async def extract_structured_data(self, document_id: UUID, tenant_id: UUID) -> UUID | None:
        """Run the pipeline and return the new policy id, or None on failure."""
        run = await self.run(document_id, tenant_id)
        return run.policy_id

    async def run(self, document_id: UUID, tenant_id: UUID) -> PipelineRun:
        run = PipelineRun(document_id=document_id, tenant_id=tenant_id)
        logger.info(f"Starting structured extraction for document {document_id}")

        async with self.session_factory() as session:
            doc = await DocumentRepository(session).get_by_id(document_id, tenant_id)
            if doc is None:
                logger.warning(f"Document not found: {document_id}")
                return await self._fail(run, f"Document {document_id} not found", mark_document=False)
            file_name = doc.file_name
            appears_scanned = doc.appears_scanned
            chunks = await ChunkRepository(session).list_for_document(document_id)

        if not chunks:
            logger.warning(f"Document has no chunks: {document_id}")
            return await self._fail(run, NO_CHUNKS_ERROR)

        try:
            run.advance("classifying")
            run.classification = await self.classifier.classify(self.page_texts(chunks), file_name)

            run.advance("extracting_policy")
            declarations = self.select_declaration_chunks(chunks, run.classification)
            document_type = run.classification.document_type
            run.policy = await self.policy_extractor.extract(
                [c.text for c in declarations],
                document_type if document_type != "unknown" else "policy",
            )

            run.advance("extracting_coverages")
            run.coverages = await self.extract_coverages(run.classification.coverages_detected, chunks)

            run.advance("validating")
            run.validation = self.validator.validate_complete(
                run.policy, run.coverages, run.classification.confidence
            )
            run.needs_human_review = run.validation.needs_human_review or appears_scanned

            run.advance("persisting")
            run.policy_id = await self._persist(run)
        except Exception as e:
            logger.exception(f"Structured extraction failed for document {document_id}")
            return await self._fail(run, str(e) or type(e).__name__)

        run.advance("completed")
        try:
            await self.publisher.publish(ExtractionCompletedEvent(
                document_id=document_id,
                tenant_id=tenant_id,
                policy_id=run.policy_id,
                success=True,
                coverages_extracted=len(run.coverages),
                needs_human_review=run.needs_human_review,
            ))
        except Exception:
            # Policy rows are already committed
            logger.exception(f"Could not publish completion event for document {document_id}")
        logger.info(
            f"Extraction complete for {document_id}: policy {run.policy_id}, "
            f"{len(run.coverages)} coverages, confidence {run.validation.adjusted_confidence:.2f}"
        )
        return run

    @staticmethod
    def page_texts(chunks: list[Chunk]) -> dict[int, str]:
        """Approximate page text rebuilt from chunks, keyed by starting page."""
        pages: dict[int, list[str]] = {}
        for chunk in chunks:
            pages.setdefault(chunk.page_start, []).append(chunk.text)
        return {page: "\n\n".join(texts) for page, texts in sorted(pages.items())}

    def select_declaration_chunks(self, chunks: list[Chunk], classification: ClassificationResult) -> list[Chunk]:
        """Chunks most likely to hold the declarations page."""
        selected = [c for c in chunks if c.section_type == "declarations"]
        if selected:
            return selected

        spans = [s for s in classification.sections if s.section_type == "declarations"]
        selected = [c for c in chunks if any(s.overlaps(c.page_start, c.page_end) for s in spans)]
        if selected:
            return selected

        selected = [c for c in chunks if c.page_start <= self.declarations_fallback_pages]
        return selected or chunks[:1]

    def coverage_context(self, chunks: list[Chunk]) -> list[str]:
        """Chunk texts for coverage prompts, within the context token budget.

        Declarations are admitted first; the selection is returned in
        document order.
        """
        ordered = sorted(chunks, key=lambda c: (c.section_type != "declarations", c.index))
        selected: list[Chunk] = []
        used = 0
        for chunk in ordered:
            if selected and used + chunk.estimated_tokens > self.coverage_context_tokens:
                continue
            selected.append(chunk)
            used += chunk.estimated_tokens
        return [c.text for c in sorted(selected, key=lambda c: c.index)]

    async def extract_coverages(
        self, coverage_types: list[str], chunks: list[Chunk]
    ) -> list[CoverageExtractionResult]:
        """Extract every detected coverage concurrently, preserving input order."""
        context = self.coverage_context(chunks)

        if not coverage_types:
            result = await self.coverage_factory.generic.extract("other", context)
            return [result] if result.confidence > 0 else []

        semaphore = asyncio.Semaphore(self.coverage_concurrency)

        async def extract_one(coverage_type: str) -> CoverageExtractionResult:
            async with semaphore:
                extractor = self.coverage_factory.get_extractor(coverage_type)
                return await extractor.extract(coverage_type, context)

        results = await asyncio.gather(
            *(extract_one(t) for t in coverage_types),
            return_exceptions=True,
        )

        coverages = []
        for coverage_type, result in zip(coverage_types, results):
            if isinstance(result, BaseException):
                error = str(result) or type(result).__name__
                logger.warning(f"Coverage task for {coverage_type} ended with {error}")
                result = CoverageExtractionResult.failure(coverage_type, error)
            coverages.append(result)
        return coverages

    async def _persist(self, run: PipelineRun) -> UUID:
        """Write the policy, its coverages and the document status atomically."""
        policy = run.policy
        status = determine_policy_status(policy.effective_date, policy.expiration_date, policy.policy_status)

        async with self.session_factory() as session:
            async with session.begin():
                docs = DocumentRepository(session)
                doc = await docs.get_by_id(run.document_id, run.tenant_id)
                if doc is None:
                    raise RuntimeError(f"Document {run.document_id} disappeared during extraction")

                row = await PolicyRepository(session).create_with_coverages(
                    tenant_id=run.tenant_id,
                    document_id=run.document_id,
                    policy=policy,
                    coverages=run.coverages,
                    policy_status=status,
                    confidence=run.validation.adjusted_confidence,
                    needs_human_review=run.needs_human_review,
                    validation_issues=run.validation.model_dump(mode="json", include={"errors", "warnings"}),
                    raw_extraction={
                        "document_type": run.classification.document_type,
                        "classification": run.classification.raw_output,
                        "policy": policy.raw_output,
                    },
                )

                if run.classification.success:
                    docs.set_document_type(doc, run.classification.document_type)
                await docs.update_status(
                    run.document_id, "needs_review" if run.needs_human_review else "completed"
                )
                return row.id

    async def _fail(self, run: PipelineRun, error: str, mark_document: bool = True) -> PipelineRun:
        run.error = error
        run.policy_id = None
        run.advance("failed")

        if mark_document:
            try:
                async with get_session(self.session_factory) as session:
                    await DocumentRepository(session).update_status(run.document_id, "extraction_failed", error)
            except Exception:
                logger.exception(f"Could not record extraction failure for document {run.document_id}")

        await self.publisher.publish(ExtractionCompletedEvent(
            document_id=run.document_id,
            tenant_id=run.tenant_id,
            success=False,
            error=error,
        ))
        return run


async def process_pdf(
    path: Path | str,
    config: CoverlineConfig | None = None,
    tenant_id: UUID | None = None,
    gateway: CompletionGateway | None = None,
    publisher: EventPublisher | None = None,
) -> PipelineRun:
    """Register, process and structure one local PDF.

    Args:
        path: PDF file on disk; relative paths not found in the working
            directory are looked up under `storage_root`
        config: Settings; loaded from env and coverline.yaml when omitted
        tenant_id: Owner of the created rows
        gateway: Completion gateway; an LLMClient for the configured model
            when omitted
        publisher: Event sink; in-memory when omitted

    Returns:
        The finished PipelineRun
    """
    from coverline.extract.llm_client import LLMClient
    from coverline.ingest.pdf_extractor import PdfTextExtractor
    from coverline.processing import DocumentProcessor
    from coverline.storage.blob import LocalFileStorage
    from coverline.storage.database import create_engine, create_session_factory, init_db

    config = config or CoverlineConfig()
    path = Path(path)
    tenant_id = tenant_id or DEFAULT_TENANT_ID
    if not path.is_absolute() and not path.exists():
        path = Path(config.storage_root) / path
    if not path.is_file():
        raise FileNotFoundError(f"No such file: {path}")

    if gateway is None:
        config.validate_api_keys(config.default_model)
        gateway = LLMClient(
            model=config.default_model,
            max_tokens=config.max_output_tokens,
            max_retries=config.max_retries,
            rpm=config.rpm,
            timeout=config.llm_timeout,
        )

    engine = create_engine(config.database_url)
    try:
        await init_db(engine)
        session_factory = create_session_factory(engine)
        processor = DocumentProcessor(
            session_factory,
            LocalFileStorage(path.parent),
            PdfTextExtractor(config.scanned_threshold),
            config.chunking_options(),
            block_scanned=config.block_scanned_documents,
        )
        document_id = await processor.register_document(path.name, path.name, tenant_id)
        await processor.process_document(document_id, tenant_id)

        pipeline = ExtractionPipeline.from_config(
            config, session_factory, gateway, publisher or InMemoryEventPublisher()
        )
        return await pipeline.run(document_id, tenant_id)
    finally:
        await engine.dispose()
