"""Tests for the requirements merge policy."""

from spacematch.services.requirements_merge import deep_merge, is_empty


class TestDeepMerge:

    def test_fills_empty_fields(self):
        result = deep_merge({"area": {"min": 400}}, {"area": {"max": 600}, "location": {"city": "Pune"}})
        assert result.merged == {"area": {"min": 400, "max": 600}, "location": {"city": "Pune"}}
        assert set(result.updated_fields) == {"area.max", "location"}
        assert result.contradictions == []

    def test_existing_scalar_wins(self):
        result = deep_merge({"location": {"city": "Bangalore"}}, {"location": {"city": "Mumbai"}})
        assert result.merged["location"]["city"] == "Bangalore"
        [c] = result.contradictions
        assert c.field == "location.city"
        assert (c.old_value, c.new_value) == ("Bangalore", "Mumbai")

    def test_equal_values_are_not_contradictions(self):
        result = deep_merge({"area": {"min": 400.0}}, {"area": {"min": 400}})
        assert result.contradictions == []

    def test_lists_concatenate_without_dedup(self):
        result = deep_merge({"location": {"areas": ["Koramangala"]}}, {"location": {"areas": ["Koramangala", "HSR"]}})
        assert result.merged["location"]["areas"] == ["Koramangala", "Koramangala", "HSR"]

    def test_empty_incoming_is_ignored(self):
        existing = {"location": {"city": "Bangalore"}}
        result = deep_merge(existing, {"location": {"city": ""}, "area": None, "budget": {}})
        assert result.merged == existing
        assert result.updated_fields == []

    def test_inputs_are_not_mutated(self):
        existing = {"location": {"areas": ["A"]}}
        incoming = {"location": {"areas": ["B"]}}
        deep_merge(existing, incoming)
        assert existing == {"location": {"areas": ["A"]}}
        assert incoming == {"location": {"areas": ["B"]}}

    def test_keeps_every_existing_and_adds_every_new_field(self):
        existing = {"a": 1, "b": {"c": 2, "d": None}}
        incoming = {"a": 9, "b": {"c": 3, "d": 4}, "e": 5}
        merged = deep_merge(existing, incoming).merged
        assert merged["a"] == 1
        assert merged["b"]["c"] == 2
        assert merged["b"]["d"] == 4
        assert merged["e"] == 5


class TestHelpers:

    def test_is_empty(self):
        assert is_empty(None) and is_empty("") and is_empty([]) and is_empty({})
        assert not is_empty(0)
        assert not is_empty(False)
