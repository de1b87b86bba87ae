"""Text chunker: splits page text into token-bounded, overlapping chunks.

Chunks are cut at paragraph boundaries (falling back to sentences, then
words, for oversized paragraphs), carry their page range, and are labelled
with the policy section they belong to. Token counts use a len/4 estimate.
"""

import math
import re
from dataclasses import dataclass
from typing import Literal

SectionType = Literal["declarations", "coverage_form", "endorsements", "conditions", "none"]

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")

# Header vocabulary, checked against the first line of an all-caps paragraph.
# Order matters: "SECTION IV - CONDITIONS" is a conditions header.
_SECTION_PATTERNS: list[tuple[re.Pattern, SectionType]] = [
    (re.compile(r"\bDECLARATIONS?\b"), "declarations"),
    (re.compile(r"^SCHEDULE\b"), "declarations"),
    (re.compile(r"^LIMITS?\s+OF\s+(LIABILITY|INSURANCE)\b"), "declarations"),
    (re.compile(r"\bENDORSEMENTS?\b"), "endorsements"),
    (re.compile(r"^(GENERAL|SPECIAL|COMMON\s+POLICY)\s+CONDITIONS\b"), "conditions"),
    (re.compile(r"^CONDITIONS?\s*$|\bCONDITIONS\s*$"), "conditions"),
    (re.compile(r"\bCOVERAGE\s+(FORM|PART)\s*$"), "coverage_form"),
    (re.compile(r"^(SECTION|PART|ARTICLE|COVERAGE|FORM)\s+[A-Z0-9]+"), "coverage_form"),
    (re.compile(r"^(EXCLUSIONS?|DEFINITIONS?)\s*$"), "coverage_form"),
]

_MAX_HEADER_CHARS = 100


@dataclass
class ChunkingOptions:
    """Token budget for chunking."""

    target_tokens: int = 500
    max_tokens: int = 1000
    overlap_tokens: int = 50


@dataclass
class Chunk:
    """A chunk of document text with page provenance."""

    index: int
    text: str
    page_start: int
    page_end: int
    estimated_tokens: int
    section_type: SectionType | None = None


@dataclass
class _Part:
    text: str
    page: int
    section: SectionType | None = None
    carried: bool = False  # overlap copied from the previous chunk


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    return math.ceil(len(text) / 4)


def detect_section_type(paragraph: str) -> SectionType | None:
    """Return the section a header-like paragraph opens, or None."""
    first_line = paragraph.strip().split("\n", 1)[0].strip()
    if not first_line or len(first_line) > _MAX_HEADER_CHARS or first_line != first_line.upper():
        return None
    for pattern, section in _SECTION_PATTERNS:
        if pattern.search(first_line):
            return section
    return None


def _is_split_point(part: _Part) -> bool:
    if part.section is not None:
        return True
    text = part.text.strip()
    return len(text) < 100 and text.isupper()


def _split_oversized(text: str, max_tokens: int) -> list[str]:
    """Split a paragraph that exceeds max_tokens into sentence/word batches."""
    max_chars = max_tokens * 4
    pieces: list[str] = []
    current = ""

    def units():
        for sentence in _SENTENCE_END.split(text):
            if len(sentence) <= max_chars:
                yield sentence
                continue
            for word in sentence.split():
                # A single run of characters longer than the budget is sliced
                for i in range(0, len(word), max_chars):
                    yield word[i : i + max_chars]

    for unit in units():
        candidate = f"{current} {unit}" if current else unit
        if len(candidate) > max_chars and current:
            pieces.append(current)
            current = unit
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def _split_pages(pages: dict[int, str], max_tokens: int) -> list[_Part]:
    parts: list[_Part] = []
    for page_number in sorted(pages):
        text = pages[page_number]
        if not text or not text.strip():
            continue
        for paragraph in _PARAGRAPH_BREAK.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            section = detect_section_type(paragraph)
            if estimate_tokens(paragraph) <= max_tokens:
                parts.append(_Part(paragraph, page_number, section))
                continue
            for i, piece in enumerate(_split_oversized(paragraph, max_tokens)):
                parts.append(_Part(piece, page_number, section if i == 0 else None))
    return parts


def _joined_length(parts: list[_Part]) -> int:
    return sum(len(p.text) for p in parts) + 2 * max(len(parts) - 1, 0)


def _overlap(parts: list[_Part], overlap_tokens: int) -> list[_Part]:
    """Trailing text of a finished chunk to repeat at the start of the next."""
    if overlap_tokens <= 0 or not parts:
        return []

    taken: list[_Part] = []
    tokens = 0
    for part in reversed(parts):
        part_tokens = estimate_tokens(part.text)
        if tokens + part_tokens > overlap_tokens * 2:
            break
        taken.insert(0, part)
        tokens += part_tokens
        if tokens >= overlap_tokens:
            break
    if taken:
        return [_Part(p.text, p.page, carried=True) for p in taken]

    # Last paragraph alone is too big: take its trailing words instead
    last = parts[-1]
    budget = overlap_tokens * 4
    tail: list[str] = []
    used = 0
    for word in reversed(last.text.split()):
        if used + len(word) + 1 > budget:
            break
        tail.insert(0, word)
        used += len(word) + 1
    if not tail:
        return []
    return [_Part(" ".join(tail), last.page, carried=True)]


def chunk_pages(pages: dict[int, str], options: ChunkingOptions | None = None) -> list[Chunk]:
    """Split ordered page text into overlapping, token-bounded chunks.

    Args:
        pages: Mapping of 1-based page number to page text
        options: Token budget; defaults to 500 target / 1000 max / 50 overlap

    Returns:
        Chunks with sequential indexes starting at 0. Empty input gives [].
    """
    options = options or ChunkingOptions()
    if options.max_tokens <= 0:
        raise ValueError("max_tokens must be positive")

    parts = _split_pages(pages, options.max_tokens)
    max_chars = options.max_tokens * 4

    chunks: list[Chunk] = []
    current: list[_Part] = []
    inherited: SectionType | None = None

    def emit() -> None:
        nonlocal inherited
        text = "\n\n".join(p.text for p in current)
        fresh = [p for p in current if not p.carried]
        headers = [p.section for p in fresh if p.section is not None]
        section = headers[0] if headers else inherited
        if headers:
            inherited = headers[-1]
        chunks.append(Chunk(
            index=len(chunks),
            text=text,
            page_start=current[0].page,
            page_end=max(p.page for p in current),
            estimated_tokens=estimate_tokens(text),
            section_type=section,
        ))

    for part in parts:
        has_fresh = any(not p.carried for p in current)
        if has_fresh:
            too_big = _joined_length(current + [part]) > max_chars
            natural = (
                estimate_tokens("\n\n".join(p.text for p in current)) >= options.target_tokens
                and _is_split_point(part)
            )
            if too_big or natural:
                emit()
                current = _overlap(current, options.overlap_tokens)
                if _joined_length(current + [part]) > max_chars:
                    current = []
        current.append(part)

    if any(not p.carried for p in current):
        emit()

    return chunks
