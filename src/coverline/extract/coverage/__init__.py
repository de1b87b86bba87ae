"""Coverage-type specialized extractors."""

from coverline.extract.coverage.base import CoverageExtractor, CoverageFamily, Promote
from coverline.extract.coverage.factory import CoverageExtractorFactory, normalize_coverage_type

__all__ = [
    "CoverageExtractor",
    "CoverageExtractorFactory",
    "CoverageFamily",
    "Promote",
    "normalize_coverage_type",
]
