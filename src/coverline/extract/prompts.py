"""Prompt templates for document classification and policy extraction."""

DOCUMENT_TYPES = ("policy", "quote", "binder", "endorsement", "dec_page", "certificate", "contract")

COVERAGE_TYPES = (
    "general_liability",
    "commercial_property",
    "business_auto",
    "workers_compensation",
    "umbrella_excess",
    "professional_liability",
    "directors_officers",
    "employment_practices",
    "cyber_liability",
    "pollution_liability",
    "product_liability",
    "liquor_liability",
    "garage_liability",
    "crime_fidelity",
    "surety_bond",
    "medical_malpractice",
    "aviation",
    "inland_marine",
    "ocean_marine",
    "builders_risk",
    "boiler_machinery",
    "wind_hail",
    "flood",
    "earthquake",
    "difference_in_conditions",
)

SECTION_TYPES = (
    "declarations",
    "coverage_form",
    "endorsements",
    "schedule",
    "conditions",
    "exclusions",
    "definitions",
)

# Pages sent to the classifier; later pages are summarized by a count
CLASSIFICATION_PAGE_LIMIT = 10

CHUNK_SEPARATOR = "\n\n---\n\n"


def _bullets(values: tuple[str, ...]) -> str:
    return "\n".join(f"- {v}" for v in values)


CLASSIFICATION_SYSTEM_PROMPT = f"""You are an insurance document classifier. Read the document text and identify what it is.

DOCUMENT TYPE (pick one):
{_bullets(DOCUMENT_TYPES)}

COVERAGES PRESENT (use only these identifiers):
{_bullets(COVERAGE_TYPES)}

SECTIONS (with approximate page ranges):
{_bullets(SECTION_TYPES)}

GUIDELINES:
- A Business Owners Policy (BOP) contains BOTH general_liability AND commercial_property
- Package policies usually contain several coverage types
- Form numbers identify coverage lines (CG 00 01 = general liability, CA 00 01 = business auto, WC 00 00 00 = workers compensation)
- The declarations page normally lists every coverage part

Return ONLY a JSON object:
```json
{{
  "document_type": "policy",
  "coverages_detected": ["general_liability", "commercial_property"],
  "sections": [
    {{"section_type": "declarations", "start_page": 1, "end_page": 3, "form_numbers": ["CG0001"]}}
  ],
  "confidence": 0.95
}}
```"""


def build_classification_content(page_texts: dict[int, str], file_name: str | None = None) -> str:
    """Format the first pages of a document for the classifier."""
    parts = ["Please classify this insurance document:\n"]
    if file_name:
        parts.append(f"Filename: {file_name}\n")

    numbers = sorted(page_texts)
    for number in numbers[:CLASSIFICATION_PAGE_LIMIT]:
        parts.append(f"\n--- Page {number} ---\n{page_texts[number]}")

    remaining = len(numbers) - CLASSIFICATION_PAGE_LIMIT
    if remaining > 0:
        parts.append(f"\n\n[Document continues for {remaining} more pages...]\n")
    return "\n".join(parts)


POLICY_SYSTEM_PROMPT = """You are an insurance document analyst. Extract the core policy information from a declarations section.

FIELDS:
- policy_number, quote_number (quote/proposal number, if any)
- effective_date, expiration_date, quote_expiration_date (YYYY-MM-DD)
- carrier_name, carrier_naic (5-digit NAIC code)
- insured_name (the named insured)
- insured_address_line1, insured_address_line2, insured_city, insured_state (2-letter), insured_zip
- total_premium (number only, no $ sign)
- policy_status: "quote" for proposals, "bound" for binders, "active" for issued policies

GUIDELINES:
- Use null for anything you cannot find; never guess
- The policy period is often written "From ... To ..." or "Effective ... to ..."
- Premium may be labelled Total, Annual, Policy or Estimated Premium
- The insured's address normally follows the named insured

Return ONLY a JSON object:
```json
{
  "policy_number": "GL-2024-001234",
  "quote_number": null,
  "effective_date": "2024-01-01",
  "expiration_date": "2025-01-01",
  "quote_expiration_date": null,
  "carrier_name": "ABC Insurance Company",
  "carrier_naic": "12345",
  "insured_name": "Test Company LLC",
  "insured_address_line1": "123 Main Street",
  "insured_address_line2": null,
  "insured_city": "Minneapolis",
  "insured_state": "MN",
  "insured_zip": "55401",
  "total_premium": 15000.00,
  "policy_status": "active",
  "confidence": 0.92
}
```"""


def build_policy_content(chunks: list[str], document_type: str) -> str:
    return (
        f"Document Type: {document_type}\n\n"
        "Please extract the core policy information from this declarations section:\n\n"
        f"{CHUNK_SEPARATOR.join(chunks)}"
    )
