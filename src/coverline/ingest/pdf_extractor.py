"""PDF text extraction with per-page quality scoring, backed by pdfplumber.

Words are regrouped into lines by their vertical position so that tabular
declarations pages keep label and value on the same line. Each page gets a
0-100 quality score; low scores mark pages that are probably scanned images.
"""

import io
import logging
import unicodedata
from statistics import mean
from typing import BinaryIO

from coverline.ingest.base import PdfExtractionResult

logger = logging.getLogger(__name__)

# Vertical bucket size (PDF units) used to merge words into one line
LINE_BUCKET = 5

# Pages below this score count as scanned
DEFAULT_SCANNED_THRESHOLD = 30

_MIN_CHARS = 100
_MAX_GARBAGE_RATIO = 0.15
_MAX_WHITESPACE_RATIO = 0.90
_MIN_WORDS = 20
_MIN_LETTER_RATIO = 0.4

# Symbols common in policy text that should not count as garbage
_ALLOWED_SYMBOLS = set("$%#@&*/\\")


def _is_punctuation(ch: str) -> bool:
    return unicodedata.category(ch).startswith("P")


def score_page_quality(text: str) -> int:
    """Score how much a page looks like real extracted text (0-100).

    Rules are applied in priority order; the first one that matches
    determines the score.
    """
    if not text or not text.strip():
        return 0

    total = len(text)
    if total < _MIN_CHARS:
        return min(30, total * 30 // _MIN_CHARS)

    garbage = sum(
        1 for ch in text
        if not ch.isalnum()
        and not ch.isspace()
        and not _is_punctuation(ch)
        and ch not in _ALLOWED_SYMBOLS
    )
    garbage_ratio = garbage / total
    if garbage_ratio > _MAX_GARBAGE_RATIO:
        return max(10, int((1 - garbage_ratio) * 50))

    whitespace_ratio = sum(1 for ch in text if ch.isspace()) / total
    if whitespace_ratio > _MAX_WHITESPACE_RATIO:
        return max(20, int((1 - whitespace_ratio) * 100))

    words = len(text.split())
    if words < _MIN_WORDS:
        return min(50, words * 2 + 10)

    letter_ratio = sum(1 for ch in text if ch.isalpha()) / total
    if letter_ratio < _MIN_LETTER_RATIO:
        return max(40, int(letter_ratio * 150))

    return min(100, 70 + int(letter_ratio * 30))


def _layout_text(page) -> str:
    """Rebuild page text line by line from word positions."""
    lines: dict[int, list[dict]] = {}
    for word in page.extract_words():
        bucket = round(word["top"] / LINE_BUCKET) * LINE_BUCKET
        lines.setdefault(bucket, []).append(word)

    # pdfplumber's `top` grows downward, so ascending order reads top to bottom
    out = []
    for bucket in sorted(lines):
        words = sorted(lines[bucket], key=lambda w: w["x0"])
        out.append(" ".join(w["text"] for w in words))
    return "\n".join(out)


class PdfTextExtractor:
    """Extracts per-page text and quality metrics from PDF bytes."""

    def __init__(self, scanned_threshold: int = DEFAULT_SCANNED_THRESHOLD) -> None:
        self.scanned_threshold = scanned_threshold

    def extract(self, data: bytes | BinaryIO, file_name: str = "document.pdf") -> PdfExtractionResult:
        """Extract text from a PDF byte stream.

        Args:
            data: Raw PDF bytes or a readable binary stream
            file_name: Name used in log messages only

        Returns:
            PdfExtractionResult; `success` is False when the stream cannot be read
        """
        import pdfplumber

        try:
            stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
            page_texts: dict[int, str] = {}
            with pdfplumber.open(stream) as pdf:
                for number, page in enumerate(pdf.pages, start=1):
                    page_texts[number] = self._page_text(page, number, file_name)
        except Exception as e:
            logger.warning(f"PDF extraction failed for {file_name}: {e}")
            return PdfExtractionResult.failure(f"Failed to extract text from PDF: {e}")

        if not page_texts:
            logger.warning(f"No pages found in {file_name}")
            return PdfExtractionResult.failure("Failed to extract text from PDF: document has no pages")

        return self.build_result(page_texts, file_name)

    def build_result(self, page_texts: dict[int, str], file_name: str = "document.pdf") -> PdfExtractionResult:
        """Score already-extracted page text and assemble the result."""
        page_scores = {n: score_page_quality(t) for n, t in page_texts.items()}
        page_count = len(page_texts)
        quality = int(mean(page_scores.values())) if page_scores else 0
        scanned_pages = sum(1 for s in page_scores.values() if s < self.scanned_threshold)
        appears_scanned = quality < self.scanned_threshold

        if appears_scanned:
            logger.warning(
                f"{file_name} appears to be scanned (quality {quality}/100); "
                "structured extraction will be unreliable"
            )
        elif scanned_pages:
            logger.info(f"{file_name}: {scanned_pages}/{page_count} pages look scanned")

        logger.debug(f"Extracted {page_count} pages from {file_name}, quality {quality}")

        return PdfExtractionResult(
            success=True,
            page_count=page_count,
            page_texts=page_texts,
            page_scores=page_scores,
            quality_score=quality,
            appears_scanned=appears_scanned,
            scanned_page_count=scanned_pages,
            scanned_page_percent=round(scanned_pages / page_count * 100, 1) if page_count else 0.0,
            is_hybrid_document=0 < scanned_pages < page_count,
        )

    def _page_text(self, page, number: int, file_name: str) -> str:
        try:
            return _layout_text(page)
        except Exception as e:
            logger.debug(f"Layout extraction failed on page {number} of {file_name}, using plain text: {e}")
            return page.extract_text() or ""
