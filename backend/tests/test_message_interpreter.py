"""Tests for the deterministic Message Interpreter.

Covers size, rent, locality and property-type parsing plus the camelCase
payloads used to back-fill requirements.
"""

import pytest

from spacematch.agents.message_interpreter import (
    brand_payload,
    find_city,
    find_locality,
    find_property_type,
    interpret_message,
    owner_payload,
    requirements_payload,
)


# ═══════════════════════════════════════════════════════════════════════
# interpret_message
# ═══════════════════════════════════════════════════════════════════════


class TestInterpretMessage:

    def test_size_locality_and_budget_range(self):
        result = interpret_message("500 sqft in Koramangala, budget 1 to 2 lakhs")

        assert result.area_sqft == 500
        assert result.localities == ["Koramangala"]
        assert result.city == "Bangalore"
        assert result.zone == "South Bangalore"
        assert (result.min_rent, result.max_rent) == (100_000, 200_000)
        assert result.currency_format == "lakhs"

    def test_size_range(self):
        result = interpret_message("need 1000-1500 sqft")
        assert (result.min_sqft, result.max_sqft) == (1000, 1500)
        assert result.area_sqft is None
        assert not result.has_rent

    def test_square_meters_convert(self):
        assert interpret_message("about 50 sq m").area_sqft == 538

    def test_thousands(self):
        result = interpret_message("rent 50k per month")
        assert result.rent == 50_000
        assert result.currency_format == "thousands"

    def test_ordinals_are_not_amounts(self):
        result = interpret_message("shop on 12th main, rent 80000")
        assert result.rent == 80_000
        assert result.currency_format == "exact"

    def test_large_bare_number_needs_rent_context(self):
        assert interpret_message("75000").rent is None
        assert interpret_message("75000", topic="budget").rent == 75_000

    def test_deposit_months(self):
        result = interpret_message("3 months deposit")
        assert result.deposit_months == 3
        assert not result.has_rent

    def test_fuzzy_locality(self):
        assert interpret_message("something in koramngala").localities == ["Koramangala"]

    def test_explicit_city_overrides_locality_city(self):
        result = interpret_message("shop in HSR, or maybe Pune")
        assert result.localities == ["HSR Layout"]
        assert result.city == "Pune"

    def test_parking(self):
        assert interpret_message("need parking for 4 cars").parking_mentioned

    def test_empty(self):
        assert interpret_message("").is_empty
        assert interpret_message("   ").is_empty


class TestLookups:

    @pytest.mark.parametrize("text,expected", [
        ("a qsr outlet", "qsr"),
        ("a small cafe", "restaurant_space"),
        ("retail shops", "retail_shop"),
        ("food court counter", "food_court"),
        ("nothing relevant", None),
    ])
    def test_find_property_type(self, text, expected):
        assert find_property_type(text) == expected

    def test_find_city_aliases(self):
        assert find_city("Bengaluru please") == "Bangalore"
        assert find_city("gurugram") == "Gurgaon"
        assert find_city("somewhere") is None

    def test_find_locality_variation(self):
        assert find_locality("near indira nagar metro") == ("Indiranagar", "Bangalore", "East Bangalore")


# ═══════════════════════════════════════════════════════════════════════
# Payloads
# ═══════════════════════════════════════════════════════════════════════


class TestPayloads:

    def test_brand_payload_ranges(self):
        payload = brand_payload(interpret_message("500 sqft retail shop in Koramangala, budget 1 to 2 lakhs"))

        assert payload["area"] == {"min": 400, "max": 600, "preferred": 500}
        assert payload["location"] == {"city": "Bangalore", "areas": ["Koramangala"]}
        assert payload["propertyType"] == {"primary": "retail_shop"}
        assert payload["budget"]["monthlyRent"] == {"min": 100_000, "max": 200_000, "currency": "INR"}

    def test_brand_single_rent_widens(self):
        payload = brand_payload(interpret_message("budget 2 lakhs"))
        assert payload["budget"]["monthlyRent"]["min"] == 180_000
        assert payload["budget"]["monthlyRent"]["max"] == 220_000

    def test_owner_payload(self):
        payload = owner_payload(interpret_message("I have 800 sqft in Indiranagar, expecting 1.5 lakhs rent"))

        assert payload["property"] == {"area": 800}
        assert payload["location"] == {"city": "Bangalore", "area": "Indiranagar"}
        assert payload["rentExpectations"] == {"monthlyRent": 150_000}

    def test_requirements_payload_dispatch(self):
        interpretation = interpret_message("500 sqft")
        assert "preferred" in requirements_payload(interpretation, "brand")["area"]
        assert requirements_payload(interpretation, "owner")["property"]["area"] == 500
