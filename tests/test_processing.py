"""Tests for coverline.processing.DocumentProcessor."""

import asyncio
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from coverline.ingest.base import PdfExtractionResult
from coverline.ingest.chunker import ChunkingOptions
from coverline.ingest.pdf_extractor import PdfTextExtractor
from coverline.processing import DocumentProcessor
from coverline.storage.blob import LocalFileStorage
from coverline.storage.repositories import ChunkRepository, DocumentRepository


def _extractor(pages: dict[int, str]) -> MagicMock:
    extractor = MagicMock()
    extractor.extract.return_value = PdfTextExtractor().build_result(pages, "test.pdf")
    return extractor


def _run(memory_db, storage, extractor, file_name="test.pdf", tenant=None, **kwargs):
    """Register and process one document; return (outcome, document, chunks)."""
    tenant = tenant or uuid4()

    async def scenario():
        async with memory_db() as factory:
            processor = DocumentProcessor(factory, storage, extractor, **kwargs)
            doc_id = await processor.register_document(file_name, file_name, tenant)
            try:
                outcome = await processor.process_document(doc_id, tenant)
            except Exception as e:
                outcome = e
            async with factory() as session:
                doc = await DocumentRepository(session).get_by_id(doc_id)
                chunks = await ChunkRepository(session).list_for_document(doc_id)
            return outcome, doc, chunks

    return asyncio.run(scenario())


class TestDocumentProcessor:
    """Test the extract-and-chunk stage."""

    def test_processes_document(self, memory_db, tmp_dir, sample_pages):
        """Chunks are stored and quality metrics recorded."""
        (tmp_dir / "test.pdf").write_bytes(b"%PDF-1.4 fake")
        extractor = _extractor(sample_pages)
        outcome, doc, chunks = _run(
            memory_db, LocalFileStorage(tmp_dir), extractor,
            options=ChunkingOptions(target_tokens=50, max_tokens=400, overlap_tokens=0),
        )

        assert outcome == len(chunks) > 1
        assert doc.processing_status == "processed"
        assert doc.page_count == 2
        assert doc.quality_score >= 70
        assert not doc.appears_scanned
        assert doc.processed_at is not None
        assert chunks[0].section_type == "declarations"
        extractor.extract.assert_called_once_with(b"%PDF-1.4 fake", "test.pdf")

    def test_scanned_document_flagged(self, memory_db, tmp_dir):
        """Scanned documents are processed but flagged by default."""
        (tmp_dir / "test.pdf").write_bytes(b"%PDF")
        outcome, doc, chunks = _run(memory_db, LocalFileStorage(tmp_dir), _extractor({1: "", 2: "ab"}))

        assert outcome == len(chunks)
        assert doc.processing_status == "processed"
        assert doc.appears_scanned
        assert doc.quality_score == 0

    def test_scanned_document_blocked(self, memory_db, tmp_dir):
        """With blocking on, scanned documents fail processing."""
        (tmp_dir / "test.pdf").write_bytes(b"%PDF")
        outcome, doc, chunks = _run(
            memory_db, LocalFileStorage(tmp_dir), _extractor({1: "", 2: ""}), block_scanned=True
        )

        assert isinstance(outcome, RuntimeError)
        assert "OCR" in str(outcome)
        assert doc.processing_status == "failed"
        assert "scanned" in doc.processing_error
        assert chunks == []

    def test_unreadable_pdf(self, memory_db, tmp_dir):
        """Extraction failures mark the document failed."""
        (tmp_dir / "test.pdf").write_bytes(b"junk")
        extractor = MagicMock()
        extractor.extract.return_value = PdfExtractionResult.failure("Failed to extract text from PDF: bad xref")
        outcome, doc, _ = _run(memory_db, LocalFileStorage(tmp_dir), extractor)

        assert isinstance(outcome, RuntimeError)
        assert doc.processing_status == "failed"
        assert doc.processing_error == "Failed to extract text from PDF: bad xref"

    def test_missing_blob(self, memory_db, tmp_dir):
        """A missing stored file marks the document failed."""
        outcome, doc, _ = _run(memory_db, LocalFileStorage(tmp_dir), _extractor({1: "text"}))

        assert isinstance(outcome, FileNotFoundError)
        assert doc.processing_status == "failed"

    def test_unknown_document(self, memory_db, tmp_dir):
        """Processing an unregistered document is an error."""

        async def scenario():
            async with memory_db() as factory:
                processor = DocumentProcessor(factory, LocalFileStorage(tmp_dir))
                await processor.process_document(uuid4(), uuid4())

        with pytest.raises(ValueError, match="not found"):
            asyncio.run(scenario())
