"""Requirement Extractor: LLM extraction of partial requirements.

The language model is an opaque boundary: it receives the latest utterance,
the running transcript and the entity type, and is expected to return a
JSON object shaped like ``BrandRequirements`` / ``OwnerRequirements``.
``parse_requirements`` is the strict gate between the two: it either
yields a typed partial value or raises ``ParseError``.
"""

import json
import logging
import re
from typing import Any, Callable

from pydantic import ValidationError

from spacematch.agents.base import BaseAgent
from spacematch.agents.contracts import ExtractionResult
from spacematch.agents.prompts.extraction import (
    BRAND_EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_TEMPLATE,
    OWNER_EXTRACTION_SYSTEM_PROMPT,
)
from spacematch.app.config import Settings
from spacematch.domain.enums import EntityType
from spacematch.domain.errors import ParseError
from spacematch.domain.requirements import (
    BrandRequirements,
    OwnerRequirements,
    requirements_model,
)

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)
_EMBEDDED_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)

# Transcript lines sent with each extraction call
MAX_TRANSCRIPT_LINES = 40


def _strip_nulls(value: Any) -> Any:
    """Drop None/empty members recursively so partial output stays partial."""
    if isinstance(value, dict):
        cleaned = {k: _strip_nulls(v) for k, v in value.items()}
        return {k: v for k, v in cleaned.items() if v not in (None, "", [], {})}
    if isinstance(value, list):
        return [_strip_nulls(v) for v in value if v is not None]
    return value


def parse_requirements(raw_text: str | None, entity_type: EntityType | str) -> BrandRequirements | OwnerRequirements:
    """Strictly parse model output into a typed partial requirements value.

    Accepts plain JSON, JSON wrapped in markdown fences, or a JSON object
    embedded in surrounding prose. Empty output parses to an empty value.

    Raises:
        ParseError: when no JSON object can be recovered or it does not
            match the requirements schema.
    """
    model = requirements_model(EntityType(entity_type).value)
    text = (raw_text or "").strip()
    if not text:
        return model()

    text = _FENCE_PATTERN.sub("", text).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        embedded = _EMBEDDED_OBJECT_PATTERN.search(text)
        if not embedded:
            raise ParseError("No JSON object in extraction output", raw_text=raw_text or "")
        try:
            data = json.loads(embedded.group(0))
        except json.JSONDecodeError as exc:
            raise ParseError(f"Malformed JSON in extraction output: {exc}", raw_text=raw_text or "") from exc

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}", raw_text=raw_text or "")

    try:
        return model.model_validate(_strip_nulls(data))
    except ValidationError as exc:
        raise ParseError(f"Extraction output does not match schema: {exc.error_count()} errors", raw_text=raw_text or "") from exc


class RequirementExtractor(BaseAgent):
    """Extracts partial brand/owner requirements from the conversation."""

    def __init__(self, settings: Settings, model_factory: Callable[..., Any] | None = None):
        super().__init__(
            agent_name="requirement_extractor",
            settings=settings,
            model_factory=model_factory,
        )

    def build_prompt(self, utterance: str, transcript: str) -> str:
        lines = (transcript or "").splitlines()[-MAX_TRANSCRIPT_LINES:]
        return (
            EXTRACTION_TEMPLATE
            .replace("{transcript}", "\n".join(lines) or "(no earlier messages)")
            .replace("{utterance}", utterance)
        )

    async def extract(self, utterance: str, transcript: str, entity_type: EntityType | str) -> ExtractionResult:
        """Extract requirements; never raises.

        Service failures (after the base agent's retry) and unparseable
        output both come back as ``ok=False`` with no requirements.
        """
        entity_type = EntityType(entity_type)
        if not utterance or not utterance.strip():
            return ExtractionResult(ok=True, requirements=requirements_model(entity_type.value)())

        system_prompt = (
            OWNER_EXTRACTION_SYSTEM_PROMPT if entity_type == EntityType.OWNER else BRAND_EXTRACTION_SYSTEM_PROMPT
        )
        result = await self.generate(
            prompt=self.build_prompt(utterance, transcript),
            system_instruction=system_prompt,
            json_mode=True,
            response_schema=requirements_model(entity_type.value).model_json_schema(by_alias=True),
        )

        if not result.ok:
            logger.warning("[%s] Extraction failed: %s", self.agent_name, result.error)
            return ExtractionResult(ok=False, error=result.error, attempts=result.attempts, latency_ms=result.latency_ms)

        try:
            requirements = parse_requirements(result.data, entity_type)
        except ParseError as exc:
            logger.warning("[%s] %s (raw text: %.200s)", self.agent_name, exc, exc.raw_text)
            return ExtractionResult(
                ok=False,
                error=str(exc),
                attempts=result.attempts,
                tokens_used=result.tokens_used,
                latency_ms=result.latency_ms,
            )

        logger.info(
            "[%s] Extracted %s fields: %s",
            self.agent_name,
            entity_type.value,
            sorted(requirements.model_dump(by_alias=True, exclude_none=True)),
        )
        return ExtractionResult(
            ok=True,
            requirements=requirements,
            attempts=result.attempts,
            tokens_used=result.tokens_used,
            latency_ms=result.latency_ms,
        )
