"""Document processing: stored PDF -> page text -> persisted chunks.

This is the stage that runs before structuring. It leaves the document in
`processed` (chunks stored) or `failed` (error recorded).
"""

import asyncio
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coverline.ingest.chunker import ChunkingOptions, chunk_pages
from coverline.ingest.pdf_extractor import PdfTextExtractor
from coverline.storage.blob import Storage
from coverline.storage.database import get_session
from coverline.storage.repositories import ChunkRepository, DocumentRepository

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """Extracts, scores and chunks one stored document at a time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: Storage,
        pdf_extractor: PdfTextExtractor | None = None,
        options: ChunkingOptions | None = None,
        block_scanned: bool = False,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.pdf_extractor = pdf_extractor or PdfTextExtractor()
        self.options = options or ChunkingOptions()
        self.block_scanned = block_scanned

    async def register_document(self, file_name: str, storage_path: str, tenant_id: UUID) -> UUID:
        """Create a pending document row and return its id."""
        async with get_session(self.session_factory) as session:
            doc = await DocumentRepository(session).create(file_name, storage_path, tenant_id)
            logger.debug(f"Registered {file_name} as document {doc.id}")
            return doc.id

    async def process_document(self, document_id: UUID, tenant_id: UUID) -> int:
        """Extract and chunk a registered document.

        Returns:
            Number of chunks stored

        Raises:
            ValueError: If the document does not exist for this tenant
            RuntimeError: If the PDF cannot be read, or is scanned while
                scanned documents are blocked
        """
        async with get_session(self.session_factory) as session:
            docs = DocumentRepository(session)
            doc = await docs.get_by_id(document_id, tenant_id)
            if doc is None:
                raise ValueError(f"Document {document_id} not found")
            file_name, storage_path = doc.file_name, doc.storage_path
            await docs.update_status(document_id, "processing")

        try:
            data = await self.storage.download(storage_path)
            result = await asyncio.to_thread(self.pdf_extractor.extract, data, file_name)
            if not result.success:
                raise RuntimeError(result.error or f"Could not read {file_name}")
            if result.appears_scanned and self.block_scanned:
                raise RuntimeError(
                    f"{file_name} appears to be scanned ({result.scanned_page_count}/{result.page_count} "
                    f"pages below quality threshold); OCR is required"
                )
            chunks = await asyncio.to_thread(chunk_pages, result.page_texts, self.options)

            async with get_session(self.session_factory) as session:
                stored = await ChunkRepository(session).replace_for_document(document_id, chunks)
                docs = DocumentRepository(session)
                doc = await docs.get_by_id(document_id)
                doc.page_count = result.page_count
                doc.quality_score = result.quality_score
                doc.appears_scanned = result.appears_scanned
                doc.is_hybrid_document = result.is_hybrid_document
                await docs.update_status(document_id, "processed")
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Processing failed for {file_name}: {error}")
            async with get_session(self.session_factory) as session:
                await DocumentRepository(session).update_status(document_id, "failed", error)
            raise

        logger.info(
            f"Processed {file_name}: {result.page_count} pages, quality {result.quality_score}, "
            f"{stored} chunks"
        )
        return stored
