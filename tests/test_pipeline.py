"""Tests for coverline.pipeline."""

import asyncio
import json
from datetime import date
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from conftest import CLASSIFIER, GENERAL_LIABILITY, GENERIC, POLICY, UMBRELLA

from coverline.config import CoverlineConfig
from coverline.events import InMemoryEventPublisher
from coverline.extract.models import ClassificationResult, SectionSpan
from coverline.ingest.chunker import Chunk, chunk_pages
from coverline.ingest.pdf_extractor import PdfTextExtractor
from coverline.pipeline import (
    DEFAULT_TENANT_ID,
    NO_CHUNKS_ERROR,
    ExtractionPipeline,
    determine_policy_status,
    process_pdf,
)
from coverline.storage.database import get_session
from coverline.storage.repositories import ChunkRepository, DocumentRepository, PolicyRepository


async def _seed(factory, tenant, chunks, appears_scanned=False):
    async with get_session(factory) as session:
        doc = await DocumentRepository(session).create("policy.pdf", "policy.pdf", tenant)
        doc.appears_scanned = appears_scanned
        if chunks:
            await ChunkRepository(session).replace_for_document(doc.id, chunks)
        return doc.id


async def _snapshot(factory, doc_id):
    async with factory() as session:
        doc = await DocumentRepository(session).get_by_id(doc_id)
        policies = PolicyRepository(session)
        return {
            "document": doc,
            "policies": list(await policies.list_for_document(doc_id)),
            "policy_count": await policies.count_all(),
            "coverage_count": await policies.count_coverages(),
        }


def _run_pipeline(memory_db, gateway, chunks, appears_scanned=False, **kwargs):
    """Seed one document, run the pipeline, return (run, publisher, snapshot)."""
    tenant = uuid4()
    publisher = InMemoryEventPublisher()

    async def scenario():
        async with memory_db() as factory:
            doc_id = await _seed(factory, tenant, chunks, appears_scanned)
            pipeline = ExtractionPipeline(factory, gateway, publisher, **kwargs)
            run = await pipeline.run(doc_id, tenant)
            return run, await _snapshot(factory, doc_id)

    run, snapshot = asyncio.run(scenario())
    return run, publisher, snapshot


def _pipeline(scripted, **kwargs) -> ExtractionPipeline:
    return ExtractionPipeline(None, scripted(), InMemoryEventPublisher(), **kwargs)


class TestDeterminePolicyStatus:
    """Test status derivation from term dates."""

    def test_before_effective_is_quote(self):
        assert determine_policy_status(date(2024, 1, 1), date(2025, 1, 1), today=date(2023, 6, 1)) == "quote"

    def test_within_term_is_active(self):
        assert determine_policy_status(date(2024, 1, 1), date(2025, 1, 1), today=date(2024, 6, 1)) == "active"

    def test_term_bounds_are_active(self):
        assert determine_policy_status(date(2024, 1, 1), date(2025, 1, 1), today=date(2024, 1, 1)) == "active"
        assert determine_policy_status(date(2024, 1, 1), date(2025, 1, 1), today=date(2025, 1, 1)) == "active"

    def test_after_expiration_is_expired(self):
        assert determine_policy_status(date(2024, 1, 1), date(2025, 1, 1), today=date(2025, 1, 2)) == "expired"

    def test_missing_dates(self):
        """Without dates the reported status is used, else quote."""
        assert determine_policy_status(None, date(2025, 1, 1)) == "quote"
        assert determine_policy_status(date(2024, 1, 1), None, "active") == "active"
        assert determine_policy_status(None, None, "renewed") == "quote"

    def test_bound_and_cancelled_are_kept(self):
        """Statuses dates can't express are preserved."""
        today = date(2024, 6, 1)
        assert determine_policy_status(date(2024, 1, 1), date(2025, 1, 1), "cancelled", today) == "cancelled"
        assert determine_policy_status(date(2024, 1, 1), date(2025, 1, 1), "bound", today) == "bound"


class TestChunkSelection:
    """Test declaration and coverage context selection."""

    def test_declarations_by_section_type(self, scripted, sample_chunks):
        """Chunks labelled declarations are preferred."""
        selected = _pipeline(scripted).select_declaration_chunks(sample_chunks, ClassificationResult())
        assert [c.index for c in selected] == [0]

    def test_declarations_by_classifier_span(self, scripted, sample_chunks):
        """Classifier spans are used when no chunk is labelled."""
        unlabelled = [Chunk(c.index, c.text, c.page_start, c.page_end, c.estimated_tokens) for c in sample_chunks]
        classification = ClassificationResult(
            sections=[SectionSpan(section_type="declarations", start_page=3, end_page=4)]
        )
        selected = _pipeline(scripted).select_declaration_chunks(unlabelled, classification)
        assert [c.index for c in selected] == [1, 2]

    def test_declarations_first_pages_fallback(self, scripted, sample_chunks):
        """Without labels or spans the first pages are used."""
        unlabelled = [Chunk(c.index, c.text, c.page_start, c.page_end, c.estimated_tokens) for c in sample_chunks]
        pipeline = _pipeline(scripted, declarations_fallback_pages=2)
        selected = pipeline.select_declaration_chunks(unlabelled, ClassificationResult())
        assert [c.index for c in selected] == [0, 1]

    def test_declarations_last_resort(self, scripted):
        """A document starting late still yields its first chunk."""
        chunks = [Chunk(0, "a", 9, 9, 5), Chunk(1, "b", 10, 10, 5)]
        pipeline = _pipeline(scripted, declarations_fallback_pages=3)
        assert [c.index for c in pipeline.select_declaration_chunks(chunks, ClassificationResult())] == [0]

    def test_coverage_context_budget(self, scripted, sample_chunks):
        """Declarations are admitted first and output stays in document order."""
        pipeline = _pipeline(scripted, coverage_context_tokens=150)
        context = pipeline.coverage_context(sample_chunks)
        assert context == [sample_chunks[0].text, sample_chunks[2].text]

    def test_coverage_context_oversized_first_chunk(self, scripted, sample_chunks):
        """The first admitted chunk is kept even when over budget."""
        pipeline = _pipeline(scripted, coverage_context_tokens=10)
        assert pipeline.coverage_context(sample_chunks) == [sample_chunks[0].text]

    def test_page_texts(self, sample_chunks):
        """Chunks are regrouped by starting page."""
        pages = ExtractionPipeline.page_texts(sample_chunks + [Chunk(3, "tail", 4, 4, 1)])
        assert list(pages) == [1, 2, 4]
        assert pages[4].endswith("\n\ntail")

    def test_concurrency_must_be_positive(self, scripted):
        with pytest.raises(ValueError, match="coverage_concurrency"):
            _pipeline(scripted, coverage_concurrency=0)


class TestExtractCoverages:
    """Test concurrent coverage extraction."""

    def test_results_keep_input_order(self, scripted, sample_chunks, gl_responses):
        """Failed coverages stay in place as failure results."""
        gateway = scripted({
            GENERAL_LIABILITY: gl_responses[GENERAL_LIABILITY],
            UMBRELLA: TimeoutError(),
        })
        pipeline = ExtractionPipeline(None, gateway, InMemoryEventPublisher(), coverage_concurrency=1)
        results = asyncio.run(pipeline.extract_coverages(
            ["umbrella_excess", "general_liability"], sample_chunks
        ))

        assert [r.coverage_type for r in results] == ["umbrella_excess", "general_liability"]
        assert results[0].failed
        assert results[0].details["extraction_error"] == "TimeoutError"
        assert results[1].each_occurrence_limit == Decimal("1000000")

    def test_task_exception_becomes_failure(self, scripted, sample_chunks):
        """An exception escaping a task is converted, not propagated."""
        pipeline = _pipeline(scripted)
        with patch.object(pipeline.coverage_factory, "get_extractor", side_effect=KeyError("boom")):
            results = asyncio.run(pipeline.extract_coverages(["flood"], sample_chunks))
        assert len(results) == 1
        assert results[0].coverage_type == "flood"
        assert results[0].failed

    def test_generic_fallback_when_none_detected(self, scripted, sample_chunks):
        """With no detected coverages one generic extraction runs."""
        gateway = scripted({GENERIC: json.dumps({"premium": 500, "confidence": 0.4})})
        pipeline = ExtractionPipeline(None, gateway, InMemoryEventPublisher())
        results = asyncio.run(pipeline.extract_coverages([], sample_chunks))
        assert [r.coverage_type for r in results] == ["other"]
        assert results[0].premium == Decimal("500")

    def test_generic_fallback_dropped_without_confidence(self, scripted, sample_chunks):
        """An empty generic answer adds no coverage."""
        gateway = scripted({GENERIC: json.dumps({"confidence": 0})})
        pipeline = ExtractionPipeline(None, gateway, InMemoryEventPublisher())
        assert asyncio.run(pipeline.extract_coverages([], sample_chunks)) == []


class TestPipelineRun:
    """Test whole runs against an in-memory database."""

    def test_end_to_end(self, memory_db, scripted, gl_responses, sample_pages):
        """A GL declaration yields one policy, one coverage and a success event."""
        gateway = scripted(gl_responses)
        run, publisher, snap = _run_pipeline(memory_db, gateway, chunk_pages(sample_pages))

        assert run.succeeded
        assert run.history[-2:] == ["persisting", "completed"]
        assert run.history[:2] == ["not_started", "classifying"]
        assert run.policy_id is not None

        assert snap["policy_count"] == 1
        assert snap["coverage_count"] == 1
        policy = snap["policies"][0]
        assert policy.id == run.policy_id
        assert policy.policy_number == "GL-2024-TEST-001"
        assert policy.effective_date == date(2024, 1, 1)
        assert policy.expiration_date == date(2025, 1, 1)
        assert policy.total_premium == Decimal("12500")
        assert policy.policy_status == "expired"
        assert policy.extraction_confidence == pytest.approx(0.893)
        assert not policy.needs_human_review
        assert policy.raw_extraction["document_type"] == "policy"

        coverage = policy.coverages[0]
        assert coverage.coverage_type == "general_liability"
        assert coverage.each_occurrence_limit == Decimal("1000000")
        assert coverage.aggregate_limit == Decimal("2000000")

        doc = snap["document"]
        assert doc.processing_status == "completed"
        assert doc.document_type == "policy"

        assert len(publisher.events) == 1
        event = publisher.events[0]
        assert event.success
        assert event.policy_id == run.policy_id
        assert event.coverages_extracted == 1
        assert not event.needs_human_review

    def test_one_call_per_stage(self, memory_db, scripted, gl_responses, sample_pages):
        """Classifier, policy and each coverage are called once."""
        gateway = scripted(gl_responses)
        _run_pipeline(memory_db, gateway, chunk_pages(sample_pages))
        assert len(gateway.calls_for(CLASSIFIER)) == 1
        assert len(gateway.calls_for(POLICY)) == 1
        assert len(gateway.calls_for(GENERAL_LIABILITY)) == 1
        assert len(gateway.calls) == 3

    def test_no_chunks(self, memory_db, scripted):
        """A document without chunks fails before any model call."""
        gateway = scripted()
        run, publisher, snap = _run_pipeline(memory_db, gateway, [])

        assert run.state == "failed"
        assert run.policy_id is None
        assert run.error == NO_CHUNKS_ERROR
        assert gateway.calls == []
        assert snap["document"].processing_status == "extraction_failed"
        assert snap["document"].processing_error == NO_CHUNKS_ERROR
        assert snap["policy_count"] == 0
        assert [e.success for e in publisher.events] == [False]
        assert publisher.events[0].error == NO_CHUNKS_ERROR

    def test_missing_document(self, memory_db, scripted):
        """An unknown document publishes a failure event and writes nothing."""
        publisher = InMemoryEventPublisher()

        async def scenario():
            async with memory_db() as factory:
                pipeline = ExtractionPipeline(factory, scripted(), publisher)
                return await pipeline.extract_structured_data(uuid4(), uuid4())

        assert asyncio.run(scenario()) is None
        assert len(publisher.events) == 1
        assert not publisher.events[0].success
        assert "not found" in publisher.events[0].error

    def test_other_tenant_cannot_run(self, memory_db, scripted, sample_chunks):
        """Documents are only visible to their own tenant."""
        publisher = InMemoryEventPublisher()

        async def scenario():
            async with memory_db() as factory:
                doc_id = await _seed(factory, uuid4(), sample_chunks)
                run = await ExtractionPipeline(factory, scripted(), publisher).run(doc_id, uuid4())
                return run, await _snapshot(factory, doc_id)

        run, snap = asyncio.run(scenario())
        assert run.state == "failed"
        assert snap["document"].processing_status == "pending"

    def test_persist_failure_rolls_back(self, memory_db, scripted, gl_responses, sample_pages):
        """A write failure leaves no policy rows behind."""
        original = DocumentRepository.update_status

        async def failing(self, doc_id, status, error=None):
            if status in ("completed", "needs_review"):
                raise RuntimeError("disk full")
            await original(self, doc_id, status, error)

        with patch.object(DocumentRepository, "update_status", failing):
            run, publisher, snap = _run_pipeline(memory_db, scripted(gl_responses), chunk_pages(sample_pages))

        assert run.state == "failed"
        assert run.history[-2:] == ["persisting", "failed"]
        assert run.policy_id is None
        assert snap["policy_count"] == 0
        assert snap["coverage_count"] == 0
        assert snap["document"].processing_status == "extraction_failed"
        assert snap["document"].processing_error == "disk full"
        assert len(publisher.events) == 1
        assert publisher.events[0].error == "disk full"

    def test_failed_classification_still_extracts(self, memory_db, scripted, gl_responses, sample_pages):
        """Without a classification the generic extractor runs and review is required."""
        gateway = scripted({
            CLASSIFIER: RuntimeError("overloaded"),
            POLICY: gl_responses[POLICY],
            GENERIC: json.dumps({"premium": 12500, "confidence": 0.5}),
        })
        run, publisher, snap = _run_pipeline(memory_db, gateway, chunk_pages(sample_pages))

        assert run.succeeded
        assert not run.classification.success
        assert [c.coverage_type for c in run.coverages] == ["other"]
        assert run.needs_human_review
        assert snap["document"].processing_status == "needs_review"
        assert snap["document"].document_type is None
        assert publisher.events[0].needs_human_review

    def test_coverage_failure_does_not_fail_run(self, memory_db, scripted, gl_responses, sample_pages):
        """A failed coverage is stored as a failure row and flagged."""
        responses = dict(gl_responses)
        responses[CLASSIFIER] = json.dumps({
            "document_type": "policy",
            "coverages_detected": ["general_liability", "umbrella_excess"],
            "confidence": 0.95,
        })
        responses[UMBRELLA] = TimeoutError()
        run, publisher, snap = _run_pipeline(memory_db, scripted(responses), chunk_pages(sample_pages))

        assert run.succeeded
        assert snap["coverage_count"] == 2
        stored = {c.coverage_type: c for c in snap["policies"][0].coverages}
        assert stored["umbrella_excess"].details == {"extraction_error": "TimeoutError"}
        assert snap["document"].processing_status == "needs_review"
        assert publisher.events[0].coverages_extracted == 2

    def test_scanned_document_needs_review(self, memory_db, scripted, gl_responses, sample_pages):
        """Scanned documents are always routed to review."""
        run, publisher, snap = _run_pipeline(
            memory_db, scripted(gl_responses), chunk_pages(sample_pages), appears_scanned=True
        )
        assert run.succeeded
        assert run.validation.adjusted_confidence >= 0.7
        assert snap["document"].processing_status == "needs_review"
        assert snap["policies"][0].needs_human_review

    def test_long_document_type_is_clipped(self, memory_db, scripted, gl_responses, sample_pages):
        """An over-long classified type fits the document column."""
        responses = dict(gl_responses)
        responses[CLASSIFIER] = json.dumps({
            "document_type": "certificate of insurance " * 4,
            "coverages_detected": ["general_liability"],
            "confidence": 0.95,
        })
        run, _, snap = _run_pipeline(memory_db, scripted(responses), chunk_pages(sample_pages))

        assert run.succeeded
        assert len(run.classification.document_type) > 50
        assert snap["document"].document_type == run.classification.document_type[:50]

    def test_publish_failure_keeps_completed_run(self, memory_db, scripted, gl_responses, sample_pages):
        """A broken publisher doesn't undo a committed extraction."""
        tenant = uuid4()

        class BrokenPublisher:
            async def publish(self, event):
                raise RuntimeError("broker unavailable")

        async def scenario():
            async with memory_db() as factory:
                doc_id = await _seed(factory, tenant, chunk_pages(sample_pages))
                pipeline = ExtractionPipeline(factory, scripted(gl_responses), BrokenPublisher())
                run = await pipeline.run(doc_id, tenant)
                return run, await _snapshot(factory, doc_id)

        run, snap = asyncio.run(scenario())

        assert run.succeeded
        assert run.state == "completed"
        assert run.policy_id is not None
        assert snap["policy_count"] == 1
        assert snap["document"].processing_status == "completed"


class TestProcessPdf:
    """Test the one-file convenience runner."""

    def test_process_local_file(self, tmp_dir, scripted, gl_responses, sample_pages):
        """A local PDF is registered, chunked and structured in one call."""
        pdf = tmp_dir / "declarations.pdf"
        pdf.write_bytes(b"%PDF-1.4 fake")
        config = CoverlineConfig(
            database_url=f"sqlite+aiosqlite:///{tmp_dir / 'coverline.db'}", _env_file=None
        )
        publisher = InMemoryEventPublisher()
        pages = PdfTextExtractor().build_result(sample_pages, pdf.name)

        with patch.object(PdfTextExtractor, "extract", return_value=pages) as extract:
            run = asyncio.run(process_pdf(pdf, config, gateway=scripted(gl_responses), publisher=publisher))

        extract.assert_called_once_with(b"%PDF-1.4 fake", "declarations.pdf")
        assert run.succeeded
        assert run.tenant_id == DEFAULT_TENANT_ID
        assert run.policy.policy_number == "GL-2024-TEST-001"
        assert [e.success for e in publisher.events] == [True]

    def test_missing_file(self, tmp_dir):
        """A path that doesn't exist is rejected before any work."""
        config = CoverlineConfig(storage_root=tmp_dir, _env_file=None)
        with pytest.raises(FileNotFoundError):
            asyncio.run(process_pdf("nope.pdf", config, gateway=object()))
