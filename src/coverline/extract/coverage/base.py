"""Shared coverage extraction algorithm.

A CoverageFamily describes one prompt family (which coverage types it
serves, its prompts, optional per-type context, and how to build the
details dict). CoverageExtractor runs the same steps for every family:
prompt call, JSON scan, common-field coercion, details hook.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

from coverline.extract.gateway import CompletionGateway
from coverline.extract.json_scan import (
    get_bool,
    get_confidence,
    get_date,
    get_decimal,
    get_int,
    get_list,
    get_object,
    get_string,
    get_string_list,
    scan_json,
)
from coverline.extract.models import CoverageExtractionResult
from coverline.extract.prompts import CHUNK_SEPARATOR

logger = logging.getLogger(__name__)

WILDCARD = "*"

FieldKind = Literal["decimal", "int", "string", "bool", "list", "strings", "object", "any"]


@dataclass(frozen=True)
class Promote:
    """A nested (or top-level) response field copied into `details`."""

    key: str
    kind: FieldKind = "any"
    source: Literal["details", "root"] = "details"


def json_number(value: Decimal) -> int | float:
    """Decimal -> JSON-native number for the details dict."""
    return int(value) if value == value.to_integral_value() else float(value)


def _read(data: dict, promote: Promote) -> Any:
    if promote.kind == "decimal":
        number = get_decimal(data, promote.key)
        return json_number(number) if number is not None else None
    if promote.kind == "int":
        return get_int(data, promote.key)
    if promote.kind == "string":
        return get_string(data, promote.key)
    if promote.kind == "bool":
        return get_bool(data, promote.key)
    if promote.kind == "list":
        return get_list(data, promote.key)
    if promote.kind == "strings":
        return get_string_list(data, promote.key)
    if promote.kind == "object":
        return get_object(data, promote.key)
    return data.get(promote.key)


def promote_fields(data: dict, promoted: tuple[Promote, ...]) -> dict[str, Any]:
    """Collect the listed fields that are present and well-typed."""
    nested = get_object(data, "details") or {}
    out: dict[str, Any] = {}
    for item in promoted:
        value = _read(data if item.source == "root" else nested, item)
        if value is not None:
            out[item.key] = value
    return out


def copy_details(data: dict) -> dict[str, Any]:
    """Nested `details` object copied verbatim."""
    return dict(get_object(data, "details") or {})


@dataclass(frozen=True)
class CoverageFamily:
    """One extractor variant in the dispatch table.

    `prompts` maps coverage type to system prompt; the WILDCARD key is the
    family default. `context` holds the optional sentence injected into the
    user message for a specific coverage type.
    """

    name: str
    coverage_types: tuple[str, ...]
    prompts: Mapping[str, str]
    promoted: tuple[Promote, ...] = ()
    copy_all_details: bool = False
    context: Mapping[str, str] = field(default_factory=dict)
    request: str = "Please extract the coverage details from this text:"

    def claims(self, coverage_type: str) -> bool:
        return WILDCARD in self.coverage_types or coverage_type in self.coverage_types

    def system_prompt(self, coverage_type: str) -> str:
        return self.prompts.get(coverage_type) or self.prompts[WILDCARD]

    def user_content(self, coverage_type: str, chunks: list[str]) -> str:
        parts = [f"Coverage Type: {coverage_type}"]
        context = self.context.get(coverage_type)
        if context:
            parts.append(context)
        parts.append(f"{self.request}\n\n{CHUNK_SEPARATOR.join(chunks)}")
        return "\n\n".join(parts)

    def build_details(self, data: dict) -> dict[str, Any]:
        details = copy_details(data) if self.copy_all_details else {}
        details.update(promote_fields(data, self.promoted))
        return details


class CoverageExtractor:
    """Runs one family's prompt against chunk text and maps the answer."""

    def __init__(self, family: CoverageFamily, gateway: CompletionGateway, timeout: float | None = None):
        self.family = family
        self.gateway = gateway
        self.timeout = timeout

    @property
    def supported_coverage_types(self) -> tuple[str, ...]:
        return self.family.coverage_types

    async def extract(self, coverage_type: str, chunks: list[str]) -> CoverageExtractionResult:
        """Extract one coverage. Never raises: failures give confidence 0."""
        try:
            raw = await asyncio.wait_for(
                self.gateway.complete(
                    self.family.system_prompt(coverage_type),
                    self.family.user_content(coverage_type, chunks),
                ),
                self.timeout,
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning(f"{self.family.name} extraction failed for {coverage_type}: {message}")
            return CoverageExtractionResult.failure(coverage_type, message)

        return self.parse(coverage_type, raw)

    def parse(self, coverage_type: str, raw: str) -> CoverageExtractionResult:
        """Map a raw model response onto a CoverageExtractionResult."""
        parsed = scan_json(raw)
        if not parsed.ok:
            logger.warning(f"Could not parse {coverage_type} extraction: {parsed.error}")
            return CoverageExtractionResult.failure(coverage_type, parsed.error or "Unparseable response", raw)

        data = parsed.data
        try:
            result = CoverageExtractionResult(
                coverage_type=coverage_type,
                coverage_subtype=get_string(data, "coverage_subtype"),
                each_occurrence_limit=get_decimal(data, "each_occurrence_limit"),
                aggregate_limit=get_decimal(data, "aggregate_limit"),
                deductible=get_decimal(data, "deductible"),
                premium=get_decimal(data, "premium"),
                is_occurrence_form=get_bool(data, "is_occurrence_form"),
                is_claims_made=get_bool(data, "is_claims_made"),
                retroactive_date=get_date(data, "retroactive_date"),
                details=self.family.build_details(data),
                confidence=get_confidence(data),
                raw_output=raw,
            )
        except ValueError as e:
            logger.warning(f"{coverage_type} extraction returned unusable values: {e}")
            return CoverageExtractionResult.failure(coverage_type, str(e), raw)
        logger.debug(
            f"{coverage_type}: occurrence={result.each_occurrence_limit} "
            f"aggregate={result.aggregate_limit} confidence={result.confidence:.2f}"
        )
        return result

