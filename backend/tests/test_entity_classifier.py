"""Tests for the Entity Classifier (brand vs owner)."""

import pytest

from spacematch.domain.enums import ClassificationResult
from spacematch.services.entity_classifier import (
    CLARIFICATION_PROMPT,
    classify_entity_type,
    classify_with_evidence,
    is_clarification_prompt,
    is_confirmation_reply,
    lexical_scores,
    parse_transcript,
)


PROMPT_HISTORY = "User: hi there\nAssistant: " + CLARIFICATION_PROMPT


class TestSelfIdentification:

    @pytest.mark.parametrize("query", [
        "I am a landlord with a shop in Indiranagar",
        "We own a building on MG Road",
        "I have a 500 sqft property in Koramangala",
        "We are looking for tenants for our space",
        "I want to rent out my ground floor",
    ])
    def test_owner_statements(self, query):
        found = classify_with_evidence(query)
        assert found.result == ClassificationResult.OWNER
        assert found.confidence == 0.9

    @pytest.mark.parametrize("query", [
        "Looking for a retail space in Koramangala",
        "We want to lease around 800 sqft",
        "Opening a cafe in Pune next quarter",
        "Need a small kiosk space in a mall",
    ])
    def test_brand_statements(self, query):
        assert classify_entity_type(query) == ClassificationResult.BRAND

    def test_expanding_brand_with_existing_outlet(self):
        query = "We have an outlet in Indiranagar and are looking for a second space in HSR"
        assert classify_entity_type(query) == ClassificationResult.BRAND

    def test_having_and_needing_space_is_ambiguous(self):
        found = classify_with_evidence("We have a shop in Jayanagar and need another space in HSR")
        assert found.result == ClassificationResult.NEEDS_CLARIFICATION
        assert found.evidence.startswith("conflicting markers")

    def test_later_decisive_line_beats_conflict(self):
        history = (
            "User: We have a shop in Jayanagar and need another space in HSR\n"
            "Assistant: Could you tell me more?\n"
            "User: Our brand wants a second store"
        )
        found = classify_with_evidence("Our brand wants a second store", conversation_history=history)
        assert found.result == ClassificationResult.BRAND

    def test_owner_statement_earlier_in_history_wins(self):
        history = "User: I have a shop in Jayanagar\nAssistant: Where is it located?\nUser: near the metro"
        assert classify_entity_type("near the metro", conversation_history=history) == ClassificationResult.OWNER

    def test_confirmed_identity_short_circuits(self):
        found = classify_with_evidence("I am a landlord", confirmed_entity_type="brand")
        assert found.result == ClassificationResult.BRAND
        assert found.confidence == 1.0


class TestMenuAnswers:

    @pytest.mark.parametrize("reply,expected", [
        ("1", ClassificationResult.BRAND),
        ("brand", ClassificationResult.BRAND),
        ("2", ClassificationResult.OWNER),
        ("Property owner", ClassificationResult.OWNER),
    ])
    def test_answer_after_prompt(self, reply, expected):
        found = classify_with_evidence(reply, conversation_history=PROMPT_HISTORY)
        assert found.result == expected
        assert found.confidence == 1.0
        assert found.user_confirmed is True

    def test_number_without_prompt_is_ambiguous(self):
        assert classify_entity_type("2") == ClassificationResult.NEEDS_CLARIFICATION

    def test_plain_greeting_is_ambiguous(self):
        assert classify_entity_type("hello") == ClassificationResult.NEEDS_CLARIFICATION


class TestHelpers:

    def test_lexical_scores_are_fractions(self):
        brand, owner = lexical_scores("hello")
        assert (brand, owner) == (0.0, 0.0)
        brand, owner = lexical_scores("landlord with space available")
        assert owner > brand
        assert 0 < owner <= 1

    def test_is_confirmation_reply(self):
        assert is_confirmation_reply("1")
        assert is_confirmation_reply("Owner.")
        assert is_confirmation_reply(" option 2 ")
        assert not is_confirmation_reply("I am the owner")
        assert not is_confirmation_reply("")

    def test_is_clarification_prompt(self):
        assert is_clarification_prompt(CLARIFICATION_PROMPT)
        assert not is_clarification_prompt("Which city?")

    def test_parse_transcript_joins_continuation_lines(self):
        turns = parse_transcript(PROMPT_HISTORY)
        assert [speaker for speaker, _ in turns] == ["user", "assistant"]
        assert "2. A property owner" in turns[1][1]
        assert parse_transcript(None) == []
