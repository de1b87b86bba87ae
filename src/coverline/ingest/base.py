"""Base types for PDF text extraction.

Defines the per-page text record and the document-level extraction result
consumed by the chunker and the document processor.
"""

from dataclasses import dataclass, field


@dataclass
class PageText:
    """Text content from a single page of a document."""

    page_number: int
    text: str


@dataclass(frozen=True)
class PdfExtractionResult:
    """Result of extracting text from one PDF.

    `page_texts` maps 1-based page numbers to page text. Failed extractions
    carry `success=False` and an error message instead of raising.
    """

    success: bool
    page_count: int = 0
    page_texts: dict[int, str] = field(default_factory=dict)
    page_scores: dict[int, int] = field(default_factory=dict)
    quality_score: int = 0
    appears_scanned: bool = False
    scanned_page_count: int = 0
    scanned_page_percent: float = 0.0
    is_hybrid_document: bool = False
    error: str | None = None

    @property
    def full_text(self) -> str:
        return "\n\n".join(self.page_texts[n] for n in sorted(self.page_texts))

    def pages(self) -> list[PageText]:
        """Pages in reading order."""
        return [PageText(page_number=n, text=self.page_texts[n]) for n in sorted(self.page_texts)]

    @classmethod
    def failure(cls, error: str) -> "PdfExtractionResult":
        return cls(success=False, error=error)
