"""Extraction completion events.

One event is published per pipeline run, whether it produced a policy or not.
"""

import logging
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ExtractionCompletedEvent(BaseModel):
    document_id: UUID
    tenant_id: UUID
    policy_id: UUID | None = None
    success: bool
    error: str | None = None
    coverages_extracted: int = 0
    needs_human_review: bool = False
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class EventPublisher(Protocol):
    async def publish(self, event: ExtractionCompletedEvent) -> None: ...


class InMemoryEventPublisher:
    """Keeps published events in a list and logs them."""

    def __init__(self) -> None:
        self.events: list[ExtractionCompletedEvent] = []

    async def publish(self, event: ExtractionCompletedEvent) -> None:
        self.events.append(event)
        if event.success:
            logger.info(
                f"Extraction completed for document {event.document_id}: policy {event.policy_id}, "
                f"{event.coverages_extracted} coverages, review={event.needs_human_review}"
            )
        else:
            logger.info(f"Extraction failed for document {event.document_id}: {event.error}")
