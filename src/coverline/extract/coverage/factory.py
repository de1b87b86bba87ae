"""Maps coverage-type identifiers to extractors."""

import logging

from coverline.extract.coverage.base import CoverageExtractor, CoverageFamily
from coverline.extract.coverage.families import COVERAGE_FAMILIES, GENERIC
from coverline.extract.gateway import CompletionGateway

logger = logging.getLogger(__name__)


def normalize_coverage_type(coverage_type: str) -> str:
    return coverage_type.strip().lower().replace(" ", "_").replace("-", "_")


class CoverageExtractorFactory:
    """Builds one extractor per family and dispatches by coverage type.

    Types no specialized family claims fall through to the generic extractor.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        timeout: float | None = None,
        families: tuple[CoverageFamily, ...] = COVERAGE_FAMILIES,
        fallback: CoverageFamily = GENERIC,
    ):
        self.extractors = [CoverageExtractor(f, gateway, timeout) for f in families]
        self.generic = CoverageExtractor(fallback, gateway, timeout)
        self._by_type: dict[str, CoverageExtractor] = {}
        for extractor in self.extractors:
            for coverage_type in extractor.supported_coverage_types:
                if coverage_type in self._by_type:
                    raise ValueError(
                        f"Coverage type {coverage_type} claimed by both "
                        f"{self._by_type[coverage_type].family.name} and {extractor.family.name}"
                    )
                self._by_type[coverage_type] = extractor

    def get_extractor(self, coverage_type: str) -> CoverageExtractor:
        extractor = self._by_type.get(normalize_coverage_type(coverage_type))
        if extractor is None:
            logger.debug(f"No specialized extractor for {coverage_type}, using {self.generic.family.name}")
            return self.generic
        return extractor

    def supported_coverage_types(self) -> list[str]:
        return sorted(self._by_type)
