"""Shared test fixtures for coverline."""

import json
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from coverline.ingest.chunker import Chunk
from coverline.storage.database import create_engine, create_session_factory, init_db

# System-prompt fragments that identify each LLM stage
CLASSIFIER = "insurance document classifier"
POLICY = "core policy information"
GENERAL_LIABILITY = "Commercial General Liability (CGL)"
UMBRELLA = "Umbrella and Excess Liability"
WORKERS_COMP = "Workers Compensation and Employers Liability"
GENERIC = "commercial insurance coverage of any kind"

DECLARATIONS_TEXT = """COMMERCIAL GENERAL LIABILITY DECLARATIONS

Policy Number: GL-2024-TEST-001
Named Insured: Test Company LLC
123 Main Street, Minneapolis, MN 55401
Insurer: Test Insurance Company (NAIC 12345)

Policy Period: From January 1, 2024 to January 1, 2025 at 12:01 A.M. standard time at the address of the named insured.

LIMITS OF INSURANCE

Each Occurrence Limit $1,000,000
General Aggregate Limit $2,000,000
Products-Completed Operations Aggregate Limit $2,000,000

Total Advance Premium: $12,500"""

COVERAGE_FORM_TEXT = """SECTION I - COVERAGES

Coverage A Bodily Injury And Property Damage Liability. We will pay those sums that the insured becomes legally obligated to pay as damages because of bodily injury or property damage to which this insurance applies.

SECTION IV - COMMERCIAL GENERAL LIABILITY CONDITIONS

Bankruptcy or insolvency of the insured or of the insured's estate will not relieve us of our obligations under this Coverage Part."""


class ScriptedGateway:
    """Completion gateway fake that answers by system-prompt keyword.

    Responses may be strings or exceptions (raised when matched). Every
    call is recorded as a (system_prompt, user_content) pair.
    """

    def __init__(self, responses: dict | None = None, default: str | None = None):
        self.responses = responses or {}
        self.default = default
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_content: str) -> str:
        self.calls.append((system_prompt, user_content))
        for keyword, response in self.responses.items():
            if keyword in system_prompt:
                if isinstance(response, BaseException):
                    raise response
                return response
        if self.default is None:
            raise RuntimeError("No scripted response for prompt")
        return self.default

    def calls_for(self, keyword: str) -> list[tuple[str, str]]:
        return [call for call in self.calls if keyword in call[0]]


@asynccontextmanager
async def memory_database():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_engine("sqlite+aiosqlite://")
    await init_db(engine)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def scripted():
    """ScriptedGateway class, for building per-test fakes."""
    return ScriptedGateway


@pytest.fixture
def memory_db():
    """Async context manager yielding an in-memory session factory."""
    return memory_database


@pytest.fixture
def gl_responses() -> dict[str, str]:
    """Model answers for a one-coverage general liability declaration."""
    return {
        CLASSIFIER: json.dumps({
            "document_type": "policy",
            "coverages_detected": ["General Liability"],
            "sections": [{"section_type": "declarations", "start_page": 1, "end_page": 1}],
            "confidence": 0.95,
        }),
        POLICY: "```json\n" + json.dumps({
            "policy_number": "GL-2024-TEST-001",
            "insured_name": "Test Company LLC",
            "insured_address_line1": "123 Main Street",
            "insured_city": "Minneapolis",
            "insured_state": "MN",
            "insured_zip": "55401",
            "carrier_name": "Test Insurance Company",
            "carrier_naic": "12345",
            "effective_date": "January 1, 2024",
            "expiration_date": "01/01/2025",
            "total_premium": "$12,500",
            "policy_status": "active",
            "confidence": 0.9,
        }) + "\n```",
        GENERAL_LIABILITY: json.dumps({
            "each_occurrence_limit": 1000000,
            "aggregate_limit": "2,000,000",
            "products_completed_ops_aggregate": 2000000,
            "is_occurrence_form": True,
            "is_claims_made": False,
            "premium": 12500,
            "coverage_form_number": "CG 00 01",
            "details": {"has_additional_insured": True, "exclusions": ["Pollution"]},
            "confidence": 0.88,
        }),
    }


@pytest.fixture
def sample_pages() -> dict[int, str]:
    """Two pages: a declarations page and a coverage form page."""
    return {1: DECLARATIONS_TEXT, 2: COVERAGE_FORM_TEXT}


@pytest.fixture
def sample_chunks() -> list[Chunk]:
    """Hand-built chunks spanning declarations, coverage form and endorsements."""
    return [
        Chunk(0, DECLARATIONS_TEXT, 1, 1, 120, "declarations"),
        Chunk(1, COVERAGE_FORM_TEXT, 2, 3, 110, "coverage_form"),
        Chunk(2, "ADDITIONAL INSURED ENDORSEMENT\n\nSchedule of additional insureds.", 4, 4, 20, "endorsements"),
    ]


@pytest.fixture
def tmp_dir():
    """Temporary directory that cleans up after test."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)
