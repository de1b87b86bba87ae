"""Pydantic models for classification and extraction results.

These are transient, per-run artifacts. Each carries the raw model output
so that failed or doubtful extractions can be audited later.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

PolicyStatus = Literal["quote", "bound", "active", "expired", "cancelled"]


class SectionSpan(BaseModel):
    """A labelled page range found by the classifier."""

    section_type: str
    start_page: int = Field(ge=1)
    end_page: int = Field(ge=1)
    form_numbers: list[str] = Field(default_factory=list)

    def overlaps(self, page_start: int, page_end: int) -> bool:
        return self.start_page <= page_end and page_start <= self.end_page


class ClassificationResult(BaseModel):
    """Document type and the coverage lines it contains."""

    document_type: str = "unknown"
    coverages_detected: list[str] = Field(default_factory=list)
    sections: list[SectionSpan] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    success: bool = True
    raw_output: str = ""
    error: str | None = None


class PolicyExtractionResult(BaseModel):
    """Policy-level fields pulled from the declarations."""

    policy_number: str | None = None
    quote_number: str | None = None
    effective_date: date | None = None
    expiration_date: date | None = None
    quote_expiration_date: date | None = None
    carrier_name: str | None = None
    carrier_naic: str | None = None
    insured_name: str | None = None
    insured_address_line1: str | None = None
    insured_address_line2: str | None = None
    insured_city: str | None = None
    insured_state: str | None = None
    insured_zip: str | None = None
    total_premium: Decimal | None = None
    policy_status: str = "quote"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    success: bool = True
    raw_output: str = ""
    error: str | None = None


class CoverageExtractionResult(BaseModel):
    """One coverage line with limits and type-specific details."""

    coverage_type: str
    coverage_subtype: str | None = None
    each_occurrence_limit: Decimal | None = None
    aggregate_limit: Decimal | None = None
    deductible: Decimal | None = None
    premium: Decimal | None = None
    is_occurrence_form: bool | None = None
    is_claims_made: bool | None = None
    retroactive_date: date | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    raw_output: str = ""

    @property
    def failed(self) -> bool:
        """True when extraction infrastructure failed (not a low-confidence answer)."""
        return "extraction_error" in self.details

    @classmethod
    def failure(cls, coverage_type: str, error: str, raw_output: str = "") -> "CoverageExtractionResult":
        return cls(
            coverage_type=coverage_type,
            details={"extraction_error": error},
            confidence=0.0,
            raw_output=raw_output,
        )
