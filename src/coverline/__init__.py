"""coverline: Insurance document structuring pipeline.

Turns insurance PDFs (policies, quotes, binders, endorsements) into
structured policy and coverage records: text extraction with quality
scoring, section-aware chunking, LLM classification and extraction,
business-rule validation, and a transactional write.
"""

__version__ = "0.1.0"

from coverline.config import CoverlineConfig
from coverline.events import ExtractionCompletedEvent, InMemoryEventPublisher
from coverline.extract.llm_client import LLMClient
from coverline.pipeline import ExtractionPipeline, PipelineRun, determine_policy_status, process_pdf
from coverline.processing import DocumentProcessor
from coverline.validator import ExtractionValidator

__all__ = [
    "__version__",
    "CoverlineConfig",
    "DocumentProcessor",
    "ExtractionCompletedEvent",
    "ExtractionPipeline",
    "ExtractionValidator",
    "InMemoryEventPublisher",
    "LLMClient",
    "PipelineRun",
    "determine_policy_status",
    "process_pdf",
]
