"""End-to-end turn tests for the Search Orchestrator.

The LLM boundary is stubbed (``stub_extractor``) or driven through a fake
model factory, so every turn here is deterministic.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from spacematch.agents.contracts import ExtractionResult
from spacematch.agents.requirement_extractor import RequirementExtractor
from spacematch.domain.enums import ConversationPhase, EntityType, Topic
from spacematch.domain.errors import SearchBoundaryFailure
from spacematch.domain.requirements import BrandRequirements
from spacematch.domain.schemas import ListingFilters, SearchTurnRequest, TurnContext
from spacematch.services.conversation_state import (
    create_conversation_state,
    establish_identity,
    get_current_requirements,
    update_requirements,
)
from spacematch.services.entity_classifier import CLARIFICATION_PROMPT
from spacematch.services.listing_source import InMemoryListingSource
from spacematch.services.search_orchestrator import SearchOrchestrator, build_filters


# ── Helpers ──────────────────────────────────────────────────────────────

COMPLETE_BRAND = {
    "area": {"min": 400, "max": 600, "preferred": 500},
    "location": {"city": "Bangalore", "areas": ["Koramangala"]},
    "propertyType": {"primary": "retail_shop"},
    "budget": {"monthlyRent": {"min": 100000, "max": 200000}},
}


def _brand_state(requirements=None):
    state = establish_identity(create_conversation_state("s-1"), "brand", 1.0, "test", user_confirmed=True)
    if requirements:
        state = update_requirements(state, requirements)
    return state


async def _turn(orchestrator, query, state=None, **request_fields):
    return await orchestrator.run_turn(SearchTurnRequest(query=query, **request_fields), state)


@pytest.fixture
def orchestrator(stub_extractor, sample_listings):
    return SearchOrchestrator(stub_extractor, InMemoryListingSource(sample_listings))


# ═══════════════════════════════════════════════════════════════════════
# Owner flow
# ═══════════════════════════════════════════════════════════════════════


class TestOwnerConversation:

    @pytest.mark.asyncio
    async def test_four_turns_reach_redirect(self, orchestrator):
        first = await _turn(orchestrator, "I have a retail space")
        assert first.response.confirmed_entity_type == EntityType.OWNER
        assert first.response.message == "Where is your property located? (city and area)"
        assert first.state.semantic_context.current_topic == Topic.LOCATION

        second = await _turn(orchestrator, "it's in Koramangala", first.state)
        assert second.response.message == "What's the size of your property in sqft?"

        third = await _turn(orchestrator, "500 sqft", second.state)
        assert third.response.message == "What's the monthly rent you're expecting?"
        assert third.response.phase == ConversationPhase.COLLECTING_REQUIREMENTS

        fourth = await _turn(orchestrator, "rent 50k", third.state)
        response = fourth.response
        assert response.phase == ConversationPhase.READY_TO_REDIRECT
        assert response.ready_to_redirect is True

        details = response.collected_details
        assert details["property"]["type"] == "retail_shop"
        assert details["property"]["area"] == pytest.approx(500)
        assert details["location"] == {"city": "Bangalore", "area": "Koramangala"}
        assert details["rentExpectations"]["monthlyRent"] == pytest.approx(50000)
        assert "Size: 500 sqft" in response.message
        assert "₹50,000/month" in response.message
        assert response.summary.search_completeness == 100
        assert fourth.phases == (
            ConversationPhase.COLLECTING_REQUIREMENTS,
            ConversationPhase.READY_TO_REDIRECT,
            ConversationPhase.RESPONDING,
        )

    @pytest.mark.asyncio
    async def test_state_round_trips_through_full_state(self, orchestrator):
        first = await _turn(orchestrator, "I have a retail space")
        context = TurnContext(full_state=first.response.full_state)

        second = await _turn(orchestrator, "it's in Koramangala", context=context)

        assert second.state.session_id == first.state.session_id
        assert second.state.entity_identity.type == EntityType.OWNER
        assert second.state.conversation_length == 4


# ═══════════════════════════════════════════════════════════════════════
# Brand flow
# ═══════════════════════════════════════════════════════════════════════


class TestBrandConversation:

    @pytest.mark.asyncio
    async def test_single_complete_message_searches(self, stub_extractor, sample_listings):
        source = InMemoryListingSource(sample_listings)
        source.search = AsyncMock(wraps=source.search)
        orchestrator = SearchOrchestrator(stub_extractor, source)

        outcome = await _turn(orchestrator, "We need a retail space of 500 sqft in Koramangala, budget 1 to 2 lakhs")
        response = outcome.response

        assert response.confirmed_entity_type == EntityType.BRAND
        assert response.phase == ConversationPhase.READY_TO_SEARCH
        assert [m.listing_id for m in response.matches] == ["blr-kor-1"]
        assert response.message.startswith("Found 1 match for you!")

        filters = source.search.call_args.args[0]
        assert filters == ListingFilters(
            city="Bangalore", property_type="retail", min_price=100000, max_price=200000, min_size=400, max_size=600,
        )

        requirements = response.extracted_requirements
        assert requirements["area"]["preferred"] == pytest.approx(500)
        assert requirements["location"]["areas"] == ["Koramangala"]
        assert requirements["budget"]["monthlyRent"] == {"min": 100000, "max": 200000, "currency": "INR"}
        assert outcome.state.user_profile.currency_format.value == "lakhs"
        assert outcome.state.search_state.has_searched_before is True

    @pytest.mark.asyncio
    async def test_ranked_matches_best_first(self, stub_extractor, sample_listings):
        source = MagicMock()
        source.search = AsyncMock(return_value=sample_listings)
        orchestrator = SearchOrchestrator(stub_extractor, source)

        response = await orchestrator.process_turn(SearchTurnRequest(query="show me options"), _brand_state(COMPLETE_BRAND))

        scores = [m.final_score for m in response.matches]
        assert scores == sorted(scores, reverse=True)
        assert response.matches[0].listing_id == "blr-kor-1"
        assert response.summary.total_matches == 4
        assert response.summary.showing_top == 4
        assert all(0 <= s <= 100 for s in scores)

    @pytest.mark.asyncio
    async def test_asks_one_question_at_a_time(self, orchestrator):
        response = (await _turn(orchestrator, "Looking for a retail space", entity_type="brand")).response
        assert response.message == "What size space are you looking for? (e.g., 1000 sqft, 1200-1500 sqft)"
        assert response.matches == []

    @pytest.mark.asyncio
    async def test_extractor_output_is_merged(self, stub_extractor, orchestrator):
        stub_extractor.extract.return_value = ExtractionResult(
            ok=True, requirements=BrandRequirements.model_validate({"brandProfile": {"name": "Chai Point"}}),
        )
        outcome = await _turn(orchestrator, "We are Chai Point, need 500 sqft", entity_type="brand")

        requirements = get_current_requirements(outcome.state)
        assert requirements.brand_profile.name == "Chai Point"
        assert requirements.area.preferred == 500
        stub_extractor.extract.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_listing_failure_is_apologetic(self, stub_extractor):
        source = MagicMock()
        source.search = AsyncMock(side_effect=SearchBoundaryFailure("Listing API returned 503"))
        orchestrator = SearchOrchestrator(stub_extractor, source)

        outcome = await _turn(orchestrator, "show me options", _brand_state(COMPLETE_BRAND))

        assert outcome.response.message.startswith("Sorry, I couldn't reach our property listings")
        assert outcome.response.matches == []
        assert outcome.response.phase == ConversationPhase.READY_TO_SEARCH
        assert get_current_requirements(outcome.state).location.city == "Bangalore"


# ═══════════════════════════════════════════════════════════════════════
# Degraded extraction
# ═══════════════════════════════════════════════════════════════════════


class TestExtractionFailure:

    @pytest.mark.asyncio
    async def test_service_error_keeps_prior_requirements(self, settings, sample_listings):
        extractor = RequirementExtractor(settings, model_factory=MagicMock(side_effect=RuntimeError("LLM down")))
        orchestrator = SearchOrchestrator(extractor, InMemoryListingSource(sample_listings))

        outcome = await _turn(orchestrator, "show me what you have", _brand_state(COMPLETE_BRAND))

        assert outcome.response.phase == ConversationPhase.READY_TO_SEARCH
        assert [m.listing_id for m in outcome.response.matches] == ["blr-kor-1"]
        assert outcome.response.extracted_requirements == COMPLETE_BRAND

    @pytest.mark.asyncio
    async def test_malformed_output_keeps_prior_requirements(self, settings, sample_listings):
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=MagicMock(text="Sure! Here you go.", usage_metadata=None))
        extractor = RequirementExtractor(settings, model_factory=MagicMock(return_value=model))
        orchestrator = SearchOrchestrator(extractor, InMemoryListingSource(sample_listings))

        outcome = await _turn(orchestrator, "show me what you have", _brand_state(COMPLETE_BRAND))

        assert outcome.response.phase == ConversationPhase.READY_TO_SEARCH
        assert outcome.response.matches

    @pytest.mark.asyncio
    async def test_failure_with_missing_fields_retries_question(self, stub_extractor, orchestrator):
        stub_extractor.extract.return_value = ExtractionResult(ok=False, error="timed out")
        outcome = await _turn(orchestrator, "something vague", entity_type="brand")
        assert outcome.response.message.startswith("Sorry, I didn't quite catch that.")
        assert "What size space" in outcome.response.message


# ═══════════════════════════════════════════════════════════════════════
# Clarifications
# ═══════════════════════════════════════════════════════════════════════


class TestClarifications:

    @pytest.mark.asyncio
    async def test_ambiguous_speaker_then_menu_answer(self, orchestrator):
        first = await _turn(orchestrator, "hello")
        assert first.response.message == CLARIFICATION_PROMPT
        assert first.response.phase == ConversationPhase.NEEDS_ENTITY_TYPE
        assert first.response.confirmed_entity_type is None
        assert first.phases == (ConversationPhase.NEEDS_ENTITY_TYPE, ConversationPhase.RESPONDING)

        second = await _turn(orchestrator, "2", first.state)
        assert second.response.confirmed_entity_type == EntityType.OWNER
        assert second.state.entity_identity.user_confirmed is True
        assert second.response.pending_clarification is None
        assert second.response.message == "Where is your property located? (city and area)"

    @pytest.mark.asyncio
    async def test_bare_number_menu_then_choice(self, stub_extractor, orchestrator):
        first = await _turn(orchestrator, "5", entity_type="brand")
        pending = first.response.pending_clarification
        assert pending is not None
        assert len(pending.options) >= 2
        assert first.response.message.startswith("Just to clarify")
        stub_extractor.extract.assert_not_awaited()

        second = await _turn(orchestrator, "1", first.state, entity_type="brand")
        assert second.state.pending_clarifications == []
        assert len(second.state.learning_data.disambiguations_resolved) == 1

        budget = get_current_requirements(second.state).budget.monthly_rent
        assert (budget.min, budget.max) == (450000, 550000)
        assert second.response.message.startswith("What size space")

    @pytest.mark.asyncio
    async def test_number_in_topic_is_read_without_asking(self, orchestrator):
        state = _brand_state({"location": {"city": "Bangalore"}})
        first = await _turn(orchestrator, "Koramangala please", state)
        assert first.state.semantic_context.current_topic == Topic.AREA

        second = await _turn(orchestrator, "800", first.state)
        assert second.response.pending_clarification is None
        assert get_current_requirements(second.state).area.preferred == 800
        [assumption] = second.state.semantic_context.assumptions
        assert assumption.should_verify is True

    @pytest.mark.asyncio
    async def test_tiny_extracted_area_is_read_as_budget(self, stub_extractor, orchestrator):
        stub_extractor.extract.return_value = ExtractionResult(
            ok=True, requirements=BrandRequirements.model_validate({"area": {"preferred": 5}}),
        )
        outcome = await _turn(orchestrator, "my budget is 5 a month", entity_type="brand")

        requirements = get_current_requirements(outcome.state)
        assert requirements.area is None
        rent = requirements.budget.monthly_rent
        assert (rent.min, rent.max, rent.currency) == (450000, 550000, "INR")
        assert outcome.response.message.startswith("What size space")
        [assumption] = outcome.state.semantic_context.assumptions
        assert assumption.value == 500000
        assert assumption.should_verify is True

    @pytest.mark.asyncio
    async def test_small_area_with_unit_is_kept(self, stub_extractor, orchestrator):
        stub_extractor.extract.return_value = ExtractionResult(
            ok=True, requirements=BrandRequirements.model_validate({"area": {"preferred": 60}}),
        )
        outcome = await _turn(orchestrator, "a 60 sqft kiosk", entity_type="brand")
        assert get_current_requirements(outcome.state).area.preferred == 60

    @pytest.mark.asyncio
    async def test_confirmed_entity_type_from_context(self, orchestrator):
        context = TurnContext(confirmed_entity_type="owner")
        outcome = await _turn(orchestrator, "hello", context=context)
        assert outcome.response.confirmed_entity_type == EntityType.OWNER
        assert outcome.response.phase == ConversationPhase.COLLECTING_REQUIREMENTS


def test_build_filters_maps_property_type():
    brand = BrandRequirements.model_validate(COMPLETE_BRAND | {"propertyType": {"primary": "restaurant_space"}})
    filters = build_filters(brand)
    assert filters.property_type == "restaurant"
    assert filters.min_size == 400
