"""The LLM completion capability consumed by the extractors."""

from typing import Protocol


class CompletionGateway(Protocol):
    """Anything that turns a system prompt plus user content into raw text.

    Implementations retry transient failures internally and raise once they
    give up. Callers cancel by cancelling the awaiting task.
    """

    async def complete(self, system_prompt: str, user_content: str) -> str: ...
