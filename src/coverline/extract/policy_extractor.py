"""Policy-level field extraction from declarations text."""

import asyncio
import logging

from coverline.extract.gateway import CompletionGateway
from coverline.extract.json_scan import (
    get_confidence,
    get_date,
    get_decimal,
    get_string,
    scan_json,
)
from coverline.extract.models import PolicyExtractionResult
from coverline.extract.prompts import POLICY_SYSTEM_PROMPT, build_policy_content

logger = logging.getLogger(__name__)

_KNOWN_STATUSES = {"quote", "bound", "active", "expired", "cancelled"}

_STRING_FIELDS = (
    "policy_number",
    "quote_number",
    "carrier_name",
    "carrier_naic",
    "insured_name",
    "insured_address_line1",
    "insured_address_line2",
    "insured_city",
    "insured_state",
    "insured_zip",
)


class PolicyExtractor:
    """Pulls policy number, dates, carrier, insured and premium.

    Best-effort parsing only: a missing insured name is reported by the
    validator, not here.
    """

    def __init__(self, gateway: CompletionGateway, timeout: float | None = None):
        self.gateway = gateway
        self.timeout = timeout

    async def extract(self, chunks: list[str], document_type: str = "policy") -> PolicyExtractionResult:
        try:
            raw = await asyncio.wait_for(
                self.gateway.complete(POLICY_SYSTEM_PROMPT, build_policy_content(chunks, document_type)),
                self.timeout,
            )
        except Exception as e:
            logger.warning(f"Policy extraction call failed: {e!r}")
            return PolicyExtractionResult(success=False, confidence=0.0, error=str(e) or type(e).__name__)

        parsed = scan_json(raw)
        if not parsed.ok:
            logger.warning(f"Could not parse policy extraction: {parsed.error}")
            return PolicyExtractionResult(success=False, confidence=0.0, raw_output=raw, error=parsed.error)

        data = parsed.data
        status = (get_string(data, "policy_status") or "quote").lower()
        if status not in _KNOWN_STATUSES:
            logger.debug(f"Unknown policy status '{status}', treating as quote")
            status = "quote"

        try:
            result = PolicyExtractionResult(
                **{name: get_string(data, name) for name in _STRING_FIELDS},
                effective_date=get_date(data, "effective_date"),
                expiration_date=get_date(data, "expiration_date"),
                quote_expiration_date=get_date(data, "quote_expiration_date"),
                total_premium=get_decimal(data, "total_premium"),
                policy_status=status,
                confidence=get_confidence(data),
                raw_output=raw,
            )
        except ValueError as e:
            logger.warning(f"Policy extraction returned unusable values: {e}")
            return PolicyExtractionResult(success=False, confidence=0.0, raw_output=raw, error=str(e))
        logger.info(f"Extracted policy {result.policy_number or '(no number)'} (confidence {result.confidence:.2f})")
        return result
