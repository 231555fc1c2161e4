"""Base agent class for SpaceMatch LLM agents.

Every agent inherits from BaseAgent, which provides:

- Gemini model access through an injected model factory
- A standard AgentResult return type (Result pattern)
- A hard timeout per call and a bounded retry with jittered backoff
- Latency measurement and token tracking
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from spacematch.app.config import Settings
from spacematch.infra.gemini_client import get_model

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class AgentResult:
    """Standard result type for all agent operations.

    Follows the Result pattern: every agent call returns an AgentResult
    instead of raising exceptions. Callers check ``result.ok`` to
    determine success or failure.

    Attributes:
        ok: True if the operation succeeded.
        data: The response payload (text, parsed JSON, etc.).
        error: Human-readable error description when ``ok`` is False.
        tokens_used: Total tokens consumed (prompt + completion).
        latency_ms: Wall-clock time for the operation in milliseconds.
        attempts: Number of generation attempts made.
    """

    ok: bool
    data: Any = None
    error: Optional[str] = None
    tokens_used: int = 0
    latency_ms: int = 0
    attempts: int = 0

    @classmethod
    def success(
        cls,
        data: Any,
        tokens_used: int = 0,
        latency_ms: int = 0,
        attempts: int = 1,
    ) -> "AgentResult":
        """Create a successful result."""
        return cls(
            ok=True,
            data=data,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
            attempts=attempts,
        )

    @classmethod
    def failure(cls, error: str, latency_ms: int = 0, attempts: int = 1) -> "AgentResult":
        """Create a failure result."""
        return cls(ok=False, error=error, latency_ms=latency_ms, attempts=attempts)


def compute_backoff(attempt: int, base_delay: float, jitter: float, factor: float = 2.0) -> float:
    """Exponential backoff for ``attempt`` (0-based) plus uniform jitter."""
    delay = base_delay * (factor ** attempt)
    if jitter:
        delay += random.uniform(0, jitter)
    return delay


# ---------------------------------------------------------------------------
# Base agent
# ---------------------------------------------------------------------------

class BaseAgent:
    """Base class for SpaceMatch agents.

    The Gemini client is never held as module state: each call builds a
    model through ``model_factory`` (``infra.gemini_client.get_model`` by
    default) from the ``Settings`` the agent was constructed with.

    Example::

        class SummaryAgent(BaseAgent):
            def __init__(self, settings):
                super().__init__(agent_name="summary_agent", settings=settings)

            async def summarize(self, transcript: str) -> AgentResult:
                return await self.generate(prompt=f"Summarize: {transcript}")
    """

    def __init__(
        self,
        agent_name: str,
        settings: Settings,
        model_factory: Callable[..., Any] | None = None,
        model_name: str | None = None,
        temperature: float | None = None,
    ):
        """Initialise the agent.

        Args:
            agent_name: A short, unique name for this agent (used in logs).
            settings: Explicit configuration (API key, timeout, retry policy).
            model_factory: Callable returning a Gemini-compatible model;
                receives ``settings`` plus generation keyword arguments.
            model_name: The Gemini model identifier.
            temperature: Generation temperature (0.0-1.0).
        """
        self.agent_name = agent_name
        self.settings = settings
        self.model_factory = model_factory or get_model
        self.model_name = model_name or settings.extraction_model
        self.temperature = settings.extraction_temperature if temperature is None else temperature

    # ------------------------------------------------------------------
    # Core generation
    # ------------------------------------------------------------------

    async def _generate_once(
        self,
        prompt: str,
        system_instruction: Optional[str],
        json_mode: bool,
        response_schema: dict | None,
    ) -> tuple[str, int]:
        model = self.model_factory(
            self.settings,
            model_name=self.model_name,
            temperature=self.temperature,
            json_mode=json_mode,
            response_schema=response_schema,
            system_instruction=system_instruction,
        )
        response = await asyncio.wait_for(
            model.generate_content_async(prompt),
            timeout=self.settings.extraction_timeout_seconds,
        )

        tokens_used = 0
        if hasattr(response, "usage_metadata") and response.usage_metadata:
            prompt_tokens = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
            completion_tokens = getattr(response.usage_metadata, "candidates_token_count", 0) or 0
            tokens_used = prompt_tokens + completion_tokens

        return response.text, tokens_used

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
        response_schema: dict | None = None,
    ) -> AgentResult:
        """Generate a single-turn response from Gemini.

        Each attempt is bounded by ``settings.extraction_timeout_seconds``;
        up to ``settings.extraction_max_attempts`` attempts are made with a
        jittered exponential backoff in between.

        Returns:
            An ``AgentResult`` with the response text in ``data``.
        """
        start_time = time.time()
        max_attempts = max(1, self.settings.extraction_max_attempts)
        last_error = "no attempts made"

        for attempt in range(max_attempts):
            try:
                response_text, tokens_used = await self._generate_once(
                    prompt, system_instruction, json_mode, response_schema,
                )
                latency_ms = int((time.time() - start_time) * 1000)
                logger.info(
                    "[%s] Generation succeeded: tokens=%d, latency=%dms, attempt=%d",
                    self.agent_name,
                    tokens_used,
                    latency_ms,
                    attempt + 1,
                )
                return AgentResult.success(
                    data=response_text,
                    tokens_used=tokens_used,
                    latency_ms=latency_ms,
                    attempts=attempt + 1,
                )
            except asyncio.TimeoutError:
                last_error = f"timed out after {self.settings.extraction_timeout_seconds}s"
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__

            if attempt < max_attempts - 1:
                wait = compute_backoff(
                    attempt,
                    self.settings.extraction_backoff_seconds,
                    self.settings.extraction_backoff_jitter,
                )
                logger.warning(
                    "[%s] Generation attempt %d/%d failed (%s); retrying in %.2fs",
                    self.agent_name,
                    attempt + 1,
                    max_attempts,
                    last_error,
                    wait,
                )
                await asyncio.sleep(wait)

        latency_ms = int((time.time() - start_time) * 1000)
        logger.error(
            "[%s] Generation failed after %d attempts (%dms): %s",
            self.agent_name,
            max_attempts,
            latency_ms,
            last_error,
        )
        return AgentResult.failure(last_error, latency_ms=latency_ms, attempts=max_attempts)

