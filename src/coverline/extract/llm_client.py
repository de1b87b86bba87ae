"""LiteLLM-backed completion gateway.

One `LLMClient` is shared by the classifier, the policy extractor and every
coverage extractor of a run. Any LiteLLM provider string works
(`anthropic/...`, `openai/...`, `ollama/...`).

Failed calls are retried: rate limits with exponential back-off, other
errors on a fixed delay schedule. Requests are paced by a sliding one-minute
window so concurrent coverage extractions share a single RPM budget.
"""

import asyncio
import collections
import logging
import time
from dataclasses import dataclass

import litellm

logger = logging.getLogger(__name__)

# Suppress LiteLLM's verbose logging
litellm.suppress_debug_info = True

# Waits between attempts after a failed (non rate-limit) call
DEFAULT_RETRY_DELAYS = (1.0, 5.0, 15.0)

_WINDOW_SECONDS = 60.0
_MAX_RATE_LIMIT_WAIT = 60.0


class _RequestWindow:
    """Paces requests to at most `rpm` per rolling minute (0 disables)."""

    def __init__(self, rpm: int):
        self.rpm = rpm
        self._sent: collections.deque[float] = collections.deque()
        self._lock = asyncio.Lock()

    def _delay(self, now: float) -> float:
        while self._sent and self._sent[0] < now - _WINDOW_SECONDS:
            self._sent.popleft()
        if len(self._sent) < self.rpm:
            return 0.0
        return _WINDOW_SECONDS - (now - self._sent[0]) + 0.1

    async def acquire(self) -> None:
        if self.rpm <= 0:
            return
        async with self._lock:
            delay = self._delay(time.monotonic())
            if delay > 0:
                logger.debug(f"Pacing requests: waiting {delay:.1f}s ({self.rpm} RPM)")
                await asyncio.sleep(delay)
            self._sent.append(time.monotonic())


@dataclass
class UsageStats:
    """Token and cost totals across every call made by one client."""

    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


class LLMClient:
    """Completion gateway over litellm.acompletion."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 4096,
        max_retries: int = 3,
        rate_limit_retries: int = 8,
        rate_limit_base_wait: float = 5.0,
        rpm: int = 40,
        timeout: int = 120,
        retry_delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS,
        temperature: float = 0.1,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.rate_limit_retries = rate_limit_retries
        self.rate_limit_base_wait = rate_limit_base_wait
        self.timeout = timeout
        self.retry_delays = retry_delays
        self.temperature = temperature
        self.usage = UsageStats()
        self._window = _RequestWindow(rpm)

    def _record(self, response: object) -> None:
        self.usage.calls += 1
        tokens = getattr(response, "usage", None)
        if tokens:
            self.usage.input_tokens += tokens.prompt_tokens or 0
            self.usage.output_tokens += tokens.completion_tokens or 0
        try:
            cost = litellm.completion_cost(completion_response=response)
        except Exception as e:
            # Local and custom endpoints have no pricing entry
            logger.debug(f"No cost data for {self.model}: {e}")
            return
        self.usage.cost_usd += cost or 0.0

    def _retry_delay(self, failures: int) -> float:
        if not self.retry_delays:
            return 0.0
        return self.retry_delays[min(failures, len(self.retry_delays)) - 1]

    def _rate_limit_wait(self, hits: int) -> float:
        return min(self.rate_limit_base_wait * 2 ** (hits - 1), _MAX_RATE_LIMIT_WAIT)

    async def _attempt(self, messages: list[dict]) -> str:
        """One request; returns the (possibly blank) response text."""
        await self._window.acquire()
        response = await litellm.acompletion(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
            temperature=self.temperature,
        )
        self._record(response)
        return response.choices[0].message.content or ""

    async def complete(self, system_prompt: str, user_content: str) -> str:
        """Send a system prompt and user message; return the response text.

        Raises:
            RuntimeError: When retries are exhausted or rate limiting persists
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]
        failures = 0
        rate_limit_hits = 0
        last_error = ""

        while failures < self.max_retries:
            try:
                text = await self._attempt(messages)
            except litellm.RateLimitError as exc:
                rate_limit_hits += 1
                if rate_limit_hits > self.rate_limit_retries:
                    raise RuntimeError(f"Rate limited {rate_limit_hits} times by {self.model}") from exc
                wait = self._rate_limit_wait(rate_limit_hits)
                logger.warning(f"{self.model} rate limited; retrying in {wait:.0f}s")
                await asyncio.sleep(wait)
                continue
            except litellm.Timeout:
                last_error = f"Request timed out after {self.timeout}s"
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = str(e) or type(e).__name__
            else:
                if text.strip():
                    return text
                last_error = "Empty response"

            failures += 1
            logger.warning(f"{self.model} call failed ({failures}/{self.max_retries}): {last_error}")
            if failures < self.max_retries:
                await asyncio.sleep(self._retry_delay(failures))

        raise RuntimeError(f"LLM call failed after {failures} attempts: {last_error}")
