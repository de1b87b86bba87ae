"""Business-rule validation and confidence blending for extraction results.

Pure functions over already-extracted data: no I/O, never raises for bad
data. Problems become errors (which force human review) or warnings
(which only lower confidence).
"""

import re
from collections import Counter
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field

from coverline.extract.models import CoverageExtractionResult, PolicyExtractionResult

_NAIC_PATTERN = re.compile(r"^\d{5}$")
_HIGH_PREMIUM = Decimal("10000000")
_MIN_POLICY_NUMBER = 5
_MAX_TERM_MONTHS = 36

# Confidence penalties per issue
_POLICY_ERROR_PENALTY = 0.10
_POLICY_WARNING_PENALTY = 0.02
_COVERAGE_ERROR_PENALTY = 0.15
_COVERAGE_WARNING_PENALTY = 0.03
_OVERALL_ERROR_PENALTY = 0.05
_OVERALL_WARNING_PENALTY = 0.01

# Coverage term used in the blend when no coverages were extracted
DEFAULT_COVERAGE_CONFIDENCE = 0.5


class ValidationIssue(BaseModel):
    field: str
    code: str
    message: str


class ValidationResult(BaseModel):
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    adjusted_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    needs_human_review: bool = False

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ConfidenceWeights:
    """Share of each pipeline stage in the blended confidence."""

    classification: float = 0.10
    policy: float = 0.30
    coverage: float = 0.60

    def __post_init__(self) -> None:
        total = self.classification + self.policy + self.coverage
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Confidence weights must sum to 1.0, got {total:.4f}")


def _term_months(start: date, end: date) -> int:
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


class _Collector:
    def __init__(self) -> None:
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def error(self, field: str, code: str, message: str) -> None:
        self.errors.append(ValidationIssue(field=field, code=code, message=message))

    def warn(self, field: str, code: str, message: str) -> None:
        self.warnings.append(ValidationIssue(field=field, code=code, message=message))

    def adjusted(self, confidence: float, error_penalty: float, warning_penalty: float) -> float:
        value = confidence - len(self.errors) * error_penalty - len(self.warnings) * warning_penalty
        return round(min(1.0, max(0.0, value)), 4)


def _prefixed(issues: list[ValidationIssue], prefix: str) -> list[ValidationIssue]:
    return [i.model_copy(update={"field": f"{prefix}.{i.field}"}) for i in issues]


class ExtractionValidator:
    """Applies field-level business rules and blends stage confidences."""

    def __init__(self, weights: ConfidenceWeights | None = None, review_threshold: float = 0.7):
        self.weights = weights or ConfidenceWeights()
        self.review_threshold = review_threshold

    def _result(self, issues: _Collector, adjusted: float) -> ValidationResult:
        return ValidationResult(
            errors=issues.errors,
            warnings=issues.warnings,
            adjusted_confidence=adjusted,
            needs_human_review=bool(issues.errors) or adjusted < self.review_threshold,
        )

    def validate_policy(self, policy: PolicyExtractionResult) -> ValidationResult:
        issues = _Collector()

        if not policy.insured_name or not policy.insured_name.strip():
            issues.error("insured_name", "REQUIRED_FIELD", "Named insured is required")

        if policy.effective_date and policy.expiration_date:
            if policy.expiration_date < policy.effective_date:
                issues.error(
                    "expiration_date",
                    "INVALID_DATE_RANGE",
                    f"Expiration {policy.expiration_date} precedes effective {policy.effective_date}",
                )
            else:
                months = _term_months(policy.effective_date, policy.expiration_date)
                if months < 1 or months > _MAX_TERM_MONTHS:
                    issues.warn("expiration_date", "UNUSUAL_TERM", f"Policy term of {months} months is unusual")

        if policy.policy_number:
            if len(policy.policy_number.strip()) < _MIN_POLICY_NUMBER:
                issues.warn(
                    "policy_number",
                    "SHORT_POLICY_NUMBER",
                    f"Policy number '{policy.policy_number}' is unusually short",
                )
        elif policy.policy_status != "quote":
            issues.warn("policy_number", "MISSING_POLICY_NUMBER", "Non-quote document has no policy number")

        if policy.carrier_naic and not _NAIC_PATTERN.match(policy.carrier_naic.strip()):
            issues.warn("carrier_naic", "INVALID_NAIC_FORMAT", f"NAIC code '{policy.carrier_naic}' is not 5 digits")

        if policy.total_premium is not None:
            if policy.total_premium < 0:
                issues.error("total_premium", "INVALID_PREMIUM", f"Premium {policy.total_premium} is negative")
            elif policy.total_premium == 0:
                issues.warn("total_premium", "ZERO_PREMIUM", "Premium is zero")
            elif policy.total_premium > _HIGH_PREMIUM:
                issues.warn("total_premium", "HIGH_PREMIUM", f"Premium {policy.total_premium} is unusually high")

        return self._result(
            issues, issues.adjusted(policy.confidence, _POLICY_ERROR_PENALTY, _POLICY_WARNING_PENALTY)
        )

    def validate_coverage(self, coverage: CoverageExtractionResult) -> ValidationResult:
        issues = _Collector()

        if not coverage.coverage_type or not coverage.coverage_type.strip():
            issues.error("coverage_type", "REQUIRED_FIELD", "Coverage type is required")

        if coverage.failed:
            issues.warn(
                "details",
                "EXTRACTION_FAILED",
                f"Extraction failed: {coverage.details.get('extraction_error')}",
            )

        for name in ("each_occurrence_limit", "aggregate_limit"):
            value = getattr(coverage, name)
            if value is not None and value < 0:
                issues.error(name, "INVALID_LIMIT", f"{name} {value} is negative")
        if coverage.deductible is not None and coverage.deductible < 0:
            issues.error("deductible", "INVALID_DEDUCTIBLE", f"Deductible {coverage.deductible} is negative")
        if coverage.premium is not None and coverage.premium < 0:
            issues.error("premium", "INVALID_PREMIUM", f"Premium {coverage.premium} is negative")

        occurrence = coverage.each_occurrence_limit
        if (
            coverage.coverage_type == "general_liability"
            and occurrence is not None
            and coverage.aggregate_limit is not None
            and 0 <= coverage.aggregate_limit < occurrence
        ):
            issues.warn(
                "aggregate_limit",
                "LOW_AGGREGATE",
                f"Aggregate {coverage.aggregate_limit} is below occurrence limit {occurrence}",
            )

        if (
            occurrence is not None
            and occurrence > 0
            and coverage.deductible is not None
            and coverage.deductible >= occurrence
        ):
            issues.warn(
                "deductible",
                "HIGH_DEDUCTIBLE",
                f"Deductible {coverage.deductible} is not below occurrence limit {occurrence}",
            )

        if coverage.is_claims_made and coverage.retroactive_date is None:
            issues.warn("retroactive_date", "MISSING_RETRO_DATE", "Claims-made coverage has no retroactive date")

        return self._result(
            issues, issues.adjusted(coverage.confidence, _COVERAGE_ERROR_PENALTY, _COVERAGE_WARNING_PENALTY)
        )

    def calculate_overall_confidence(
        self,
        classification_confidence: float,
        policy_confidence: float,
        coverage_confidences: list[float],
    ) -> float:
        """Weighted blend of stage confidences, rounded to 4 places."""
        coverage_term = (
            sum(coverage_confidences) / len(coverage_confidences)
            if coverage_confidences
            else DEFAULT_COVERAGE_CONFIDENCE
        )
        blended = (
            classification_confidence * self.weights.classification
            + policy_confidence * self.weights.policy
            + coverage_term * self.weights.coverage
        )
        return round(min(1.0, max(0.0, blended)), 4)

    def validate_complete(
        self,
        policy: PolicyExtractionResult,
        coverages: list[CoverageExtractionResult],
        classification_confidence: float,
    ) -> ValidationResult:
        """Validate a policy with all its coverages and blend confidence."""
        issues = _Collector()

        policy_result = self.validate_policy(policy)
        issues.errors.extend(_prefixed(policy_result.errors, "policy"))
        issues.warnings.extend(_prefixed(policy_result.warnings, "policy"))

        for i, coverage in enumerate(coverages):
            coverage_result = self.validate_coverage(coverage)
            issues.errors.extend(_prefixed(coverage_result.errors, f"coverages[{i}]"))
            issues.warnings.extend(_prefixed(coverage_result.warnings, f"coverages[{i}]"))

        if not coverages:
            issues.warn("coverages", "NO_COVERAGES", "No coverages were extracted")

        counts = Counter(c.coverage_type for c in coverages)
        for coverage_type, count in counts.items():
            if count > 1:
                issues.warn(
                    "coverages",
                    "DUPLICATE_COVERAGE",
                    f"Coverage type {coverage_type} appears {count} times",
                )

        blended = self.calculate_overall_confidence(
            classification_confidence,
            policy.confidence,
            [c.confidence for c in coverages],
        )
        return self._result(
            issues, issues.adjusted(blended, _OVERALL_ERROR_PENALTY, _OVERALL_WARNING_PENALTY)
        )
