"""Tests for the Requirement Extractor and its strict output parser."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from spacematch.agents.base import AgentResult, compute_backoff
from spacematch.agents.requirement_extractor import RequirementExtractor, parse_requirements
from spacematch.domain.errors import ParseError
from spacematch.domain.requirements import BrandRequirements, OwnerRequirements
from spacematch.infra.gemini_client import clean_schema, get_model


# ── Helpers ──────────────────────────────────────────────────────────────

def _response(text, prompt_tokens=10, completion_tokens=5):
    return SimpleNamespace(
        text=text,
        usage_metadata=SimpleNamespace(prompt_token_count=prompt_tokens, candidates_token_count=completion_tokens),
    )


def _factory(*outcomes):
    """Model factory whose models replay ``outcomes`` (responses or exceptions) in order."""
    model = MagicMock()
    model.generate_content_async = AsyncMock(side_effect=list(outcomes))
    factory = MagicMock(return_value=model)
    return factory, model


# ═══════════════════════════════════════════════════════════════════════
# parse_requirements
# ═══════════════════════════════════════════════════════════════════════


class TestParseRequirements:

    def test_plain_json(self):
        req = parse_requirements('{"area": {"min": 400, "max": 600}}', "brand")
        assert isinstance(req, BrandRequirements)
        assert req.area.max == 600

    def test_markdown_fences(self):
        raw = '```json\n{"location": {"city": "Bangalore", "areas": ["Koramangala"]}}\n```'
        req = parse_requirements(raw, "brand")
        assert req.location.areas == ["Koramangala"]

    def test_json_embedded_in_prose(self):
        raw = 'Here is what I found: {"rentExpectations": {"monthlyRent": 50000}} hope that helps'
        req = parse_requirements(raw, "owner")
        assert isinstance(req, OwnerRequirements)
        assert req.rent_expectations.monthly_rent == 50000

    def test_nulls_are_dropped(self):
        req = parse_requirements('{"area": {"min": null, "max": 900}, "location": {}}', "brand")
        assert req.area.min is None
        assert req.location is None

    def test_empty_output_is_empty_value(self):
        assert parse_requirements("", "owner") == OwnerRequirements()
        assert parse_requirements(None, "brand") == BrandRequirements()

    @pytest.mark.parametrize("raw", [
        "no json here",
        "{not valid json}",
        "[1, 2, 3]",
        '{"area": {"min": "lots"}}',
        '{"area": "big"}',
    ])
    def test_rejects_unusable_output(self, raw):
        with pytest.raises(ParseError) as exc_info:
            parse_requirements(raw, "brand")
        assert exc_info.value.raw_text == raw


# ═══════════════════════════════════════════════════════════════════════
# RequirementExtractor.extract
# ═══════════════════════════════════════════════════════════════════════


class TestExtract:

    @pytest.mark.asyncio
    async def test_empty_utterance_skips_the_model(self, settings):
        factory, model = _factory()
        extractor = RequirementExtractor(settings, model_factory=factory)

        result = await extractor.extract("  ", "", "brand")

        assert result.ok is True
        assert result.requirements == BrandRequirements()
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_success(self, settings):
        extractor = RequirementExtractor(settings)
        mock_result = AgentResult.success(
            data='{"property": {"area": 800}, "location": {"city": "Bangalore", "area": "Indiranagar"}}',
            tokens_used=120,
            latency_ms=300,
        )

        with patch.object(extractor, "generate", new_callable=AsyncMock, return_value=mock_result) as mock_gen:
            result = await extractor.extract("800 sqft in Indiranagar", "User: I am a landlord", "owner")

        assert result.ok is True
        assert result.requirements.property.area == 800
        assert result.tokens_used == 120
        kwargs = mock_gen.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert "OWNERS" in kwargs["system_instruction"]
        assert "800 sqft in Indiranagar" in kwargs["prompt"]
        assert "User: I am a landlord" in kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_service_failure_is_not_raised(self, settings):
        extractor = RequirementExtractor(settings)
        with patch.object(
            extractor, "generate", new_callable=AsyncMock,
            return_value=AgentResult.failure("quota exceeded", attempts=2),
        ):
            result = await extractor.extract("500 sqft", "", "brand")

        assert result.ok is False
        assert result.requirements is None
        assert result.error == "quota exceeded"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_unparseable_output_is_not_raised(self, settings):
        extractor = RequirementExtractor(settings)
        with patch.object(
            extractor, "generate", new_callable=AsyncMock,
            return_value=AgentResult.success(data="I could not find anything."),
        ):
            result = await extractor.extract("500 sqft", "", "brand")

        assert result.ok is False
        assert result.requirements is None
        assert "No JSON object" in result.error

    def test_prompt_keeps_recent_transcript(self, settings):
        extractor = RequirementExtractor(settings)
        transcript = "\n".join(f"User: line {i}" for i in range(60))
        prompt = extractor.build_prompt("500 sqft", transcript)
        assert "line 59" in prompt
        assert "line 10\n" not in prompt
        assert "(no earlier messages)" in extractor.build_prompt("500 sqft", "")


# ═══════════════════════════════════════════════════════════════════════
# BaseAgent retry / timeout (through the model factory)
# ═══════════════════════════════════════════════════════════════════════


class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_retries_once_then_succeeds(self, settings):
        factory, model = _factory(RuntimeError("503 unavailable"), _response('{"area": {"min": 500}}'))
        extractor = RequirementExtractor(settings, model_factory=factory)

        result = await extractor.extract("500 sqft", "", "brand")

        assert result.ok is True
        assert result.attempts == 2
        assert result.tokens_used == 15
        assert model.generate_content_async.await_count == 2
        assert factory.call_args.args[0] is settings

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, settings):
        factory, model = _factory(RuntimeError("boom"), RuntimeError("boom again"))
        extractor = RequirementExtractor(settings, model_factory=factory)

        result = await extractor.extract("500 sqft", "", "brand")

        assert result.ok is False
        assert result.attempts == settings.extraction_max_attempts
        assert result.error == "boom again"

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, settings):
        async def _hang(prompt):
            await asyncio.sleep(10)

        model = MagicMock()
        model.generate_content_async = _hang
        settings.extraction_timeout_seconds = 0.01
        extractor = RequirementExtractor(settings, model_factory=MagicMock(return_value=model))

        result = await extractor.extract("500 sqft", "", "brand")

        assert result.ok is False
        assert "timed out" in result.error

    def test_backoff_grows_exponentially(self):
        assert compute_backoff(0, 0.5, 0) == 0.5
        assert compute_backoff(2, 0.5, 0) == 2.0
        assert 1.0 <= compute_backoff(1, 0.5, 0.25) <= 1.25


# ═══════════════════════════════════════════════════════════════════════
# Gemini client
# ═══════════════════════════════════════════════════════════════════════


class TestGeminiClient:

    def test_clean_schema_inlines_refs_and_optionals(self):
        schema = BrandRequirements.model_json_schema(by_alias=True)
        cleaned = clean_schema(schema)

        assert "$defs" not in cleaned
        area = cleaned["properties"]["area"]
        assert area["type"] == "object"
        assert "min" in area["properties"]
        assert "anyOf" not in str(cleaned)

    @patch("spacematch.infra.gemini_client.glm")
    @patch("spacematch.infra.gemini_client.genai")
    def test_get_model_uses_injected_settings(self, mock_genai, mock_glm, settings):
        model = get_model(
            settings,
            json_mode=True,
            response_schema=OwnerRequirements.model_json_schema(by_alias=True),
            system_instruction="be terse",
        )

        mock_genai.configure.assert_not_called()
        kwargs = mock_genai.GenerativeModel.call_args.kwargs
        assert kwargs["model_name"] == settings.extraction_model
        assert kwargs["generation_config"]["response_mime_type"] == "application/json"
        assert "$defs" not in kwargs["generation_config"]["response_schema"]
        assert kwargs["system_instruction"] == "be terse"
        mock_glm.GenerativeServiceAsyncClient.assert_called_once_with(client_options={"api_key": "test-key"})
        assert model._async_client is mock_glm.GenerativeServiceAsyncClient.return_value

    @patch("spacematch.infra.gemini_client.glm")
    def test_models_keep_their_own_keys(self, mock_glm, settings):
        mock_glm.GenerativeServiceAsyncClient.side_effect = lambda client_options: MagicMock(key=client_options["api_key"])

        model_a = get_model(settings.model_copy(update={"gemini_api_key": "KEY-A"}))
        model_b = get_model(settings.model_copy(update={"gemini_api_key": "KEY-B"}))

        assert model_a._async_client.key == "KEY-A"
        assert model_b._async_client.key == "KEY-B"

    @pytest.mark.asyncio
    async def test_extract_constrains_output_to_schema(self, settings):
        factory, _ = _factory(_response('{"area": {"preferred": 500}}'))
        extractor = RequirementExtractor(settings, model_factory=factory)

        result = await extractor.extract("500 sqft", "", "brand")

        assert result.ok is True
        schema = factory.call_args.kwargs["response_schema"]
        assert schema == BrandRequirements.model_json_schema(by_alias=True)
        assert "monthlyRent" in str(schema)
