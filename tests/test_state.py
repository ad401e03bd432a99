"""
Unit tests for scoped state and delta merging.
"""

import pytest

from tern.agents.core.enums import StateScope
from tern.agents.core.state import State, extract_scoped, merge_state, scope_of, strip_temp


class TestMergeState:
    """Test cases for merge_state."""

    def test_later_delta_wins(self):
        """Test that deltas applied in order overwrite earlier keys."""
        base = {"a": 1, "b": 2}
        result = merge_state(merge_state(base, {"a": 10}), {"a": 20, "c": 3})

        assert result == {"a": 20, "b": 2, "c": 3}

    def test_unrelated_keys_untouched(self):
        """Test that a delta does not interfere with other keys."""
        result = merge_state({"x": "keep", "y": 1}, {"y": 2})

        assert result["x"] == "keep"

    def test_merge_is_shallow(self):
        """Test that nested values are replaced, not combined."""
        result = merge_state({"nested": {"a": 1, "b": 2}}, {"nested": {"a": 5}})

        assert result == {"nested": {"a": 5}}

    def test_empty_delta_is_noop(self):
        """Test that an empty or missing delta leaves state unchanged."""
        base = {"a": 1}

        assert merge_state(base, {}) == base
        assert merge_state(base, None) == base

    def test_base_not_mutated(self):
        """Test that merging returns a new mapping."""
        base = {"a": 1}
        merge_state(base, {"a": 2})

        assert base == {"a": 1}


class TestScopes:
    """Test cases for scope classification."""

    @pytest.mark.parametrize("key,scope", [
        ("count", StateScope.SESSION),
        ("app:theme", StateScope.APP),
        ("user:name", StateScope.USER),
        ("temp:scratch", StateScope.TEMP),
    ])
    def test_scope_of(self, key, scope):
        """Test classifying keys by prefix."""
        assert scope_of(key) == scope

    def test_strip_temp(self):
        """Test removing temp keys before persistence."""
        delta = {"a": 1, "temp:x": 2, "user:y": 3}

        assert strip_temp(delta) == {"a": 1, "user:y": 3}
        assert strip_temp(None) == {}

    def test_extract_scoped(self):
        """Test selecting the keys of one scope."""
        state = {"a": 1, "app:b": 2, "user:c": 3, "temp:d": 4}

        assert extract_scoped(state, StateScope.APP) == {"app:b": 2}
        assert extract_scoped(state, StateScope.USER) == {"user:c": 3}
        assert extract_scoped(state, StateScope.SESSION) == {"a": 1}


class TestState:
    """Test cases for the State view."""

    def test_reads_prefer_delta(self):
        """Test that pending changes shadow committed values."""
        state = State(value={"a": 1, "b": 2}, delta={"a": 10})

        assert state["a"] == 10
        assert state["b"] == 2
        assert state.get("missing", "default") == "default"

    def test_writes_go_to_delta_only(self):
        """Test that writes never touch the committed value."""
        value = {"a": 1}
        delta = {}
        state = State(value=value, delta=delta)

        state["a"] = 2
        state.update({"b": 3})

        assert value == {"a": 1}
        assert delta == {"a": 2, "b": 3}
        assert state.has_delta()

    def test_to_dict_and_contains(self):
        """Test the merged view."""
        state = State(value={"a": 1}, delta={"b": 2})

        assert state.to_dict() == {"a": 1, "b": 2}
        assert "a" in state
        assert "b" in state
        assert "c" not in state
        assert len(state) == 2
        assert sorted(state) == ["a", "b"]

    def test_missing_key_raises(self):
        """Test that indexing a missing key raises KeyError."""
        state = State(value={}, delta={})

        with pytest.raises(KeyError):
            state["missing"]
