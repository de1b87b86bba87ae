"""LLM-driven document classification.

Labels the document type and the coverage lines present so the pipeline
knows which coverage extractors to run.
"""

import asyncio
import logging

from coverline.extract.gateway import CompletionGateway
from coverline.extract.json_scan import get_confidence, get_int, get_string, get_string_list, scan_json
from coverline.extract.models import ClassificationResult, SectionSpan
from coverline.extract.prompts import CLASSIFICATION_SYSTEM_PROMPT, build_classification_content

logger = logging.getLogger(__name__)


def _normalize_coverages(values: list[str] | None) -> list[str]:
    seen: list[str] = []
    for value in values or []:
        key = value.strip().lower().replace(" ", "_").replace("-", "_")
        if key and key not in seen:
            seen.append(key)
    return seen


def _parse_sections(raw: object) -> list[SectionSpan]:
    if not isinstance(raw, list):
        return []
    sections = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        section_type = get_string(item, "section_type")
        start = get_int(item, "start_page")
        end = get_int(item, "end_page") or start
        if not section_type or not start or start < 1:
            continue
        sections.append(SectionSpan(
            section_type=section_type.lower(),
            start_page=start,
            end_page=max(start, end),
            form_numbers=get_string_list(item, "form_numbers") or [],
        ))
    return sections


class DocumentClassifier:
    """Classifies a document from its page text."""

    def __init__(self, gateway: CompletionGateway, timeout: float | None = None):
        self.gateway = gateway
        self.timeout = timeout

    async def classify(self, page_texts: dict[int, str], file_name: str | None = None) -> ClassificationResult:
        """Classify a document.

        Never raises for gateway or model-output failures: those give a
        result with success=False, no coverages and confidence 0.
        """
        try:
            raw = await asyncio.wait_for(
                self.gateway.complete(
                    CLASSIFICATION_SYSTEM_PROMPT,
                    build_classification_content(page_texts, file_name),
                ),
                self.timeout,
            )
        except Exception as e:
            logger.warning(f"Classification call failed for {file_name or 'document'}: {e!r}")
            return ClassificationResult(success=False, confidence=0.0, error=str(e) or type(e).__name__)

        parsed = scan_json(raw)
        if not parsed.ok:
            logger.warning(f"Could not parse classification for {file_name or 'document'}: {parsed.error}")
            return ClassificationResult(success=False, confidence=0.0, raw_output=raw, error=parsed.error)

        data = parsed.data
        result = ClassificationResult(
            document_type=(get_string(data, "document_type") or "unknown").lower(),
            coverages_detected=_normalize_coverages(get_string_list(data, "coverages_detected")),
            sections=_parse_sections(data.get("sections")),
            confidence=get_confidence(data),
            raw_output=raw,
        )
        logger.info(
            f"Classified {file_name or 'document'} as {result.document_type} "
            f"with {len(result.coverages_detected)} coverages (confidence {result.confidence:.2f})"
        )
        return result
