"""
Tests for the layered variable store.
"""

import pytest
from hypothesis import given, strategies as st

from rester.core.exceptions import ScopeError, UnresolvedVariableError
from rester.variables.store import (
    RESOLUTION_ORDER,
    Scope,
    VariableStore,
    to_variable_string,
)


names = st.from_regex(r"[a-z][a-z0-9_]{0,10}", fullmatch=True).filter(
    lambda name: name not in {scope.value for scope in Scope}
)
values = st.text(max_size=20)


class TestResolution:
    """Tests for scope-ordered lookup."""

    def test_resolution_order(self):
        assert RESOLUTION_ORDER == (
            Scope.RUN,
            Scope.RESPONSE,
            Scope.ENVIRONMENT,
            Scope.GLOBAL,
        )

    def test_most_specific_scope_wins(self):
        store = VariableStore(
            {
                Scope.GLOBAL: {"host": "global"},
                Scope.ENVIRONMENT: {"host": "env"},
            }
        )
        assert store.resolve("host") == "env"

        store.set(Scope.RUN, "host", "run")
        assert store.resolve("host") == "run"

    def test_string_scope_keys_are_accepted(self):
        store = VariableStore({"global": {"a": "1"}, "environment": {"b": "2"}})

        assert store.resolve("a") == "1"
        assert store.resolve("b") == "2"

    def test_unknown_scope_raises(self):
        with pytest.raises(ScopeError):
            VariableStore({"session": {"a": "1"}})

    def test_qualified_lookup_reads_one_scope(self):
        store = VariableStore(
            {Scope.GLOBAL: {"token": "g"}, Scope.RUN: {"token": "r"}}
        )

        assert store.resolve("global.token") == "g"
        assert store.resolve("run.token") == "r"
        assert store.get("environment.token") is None

    def test_unqualified_dotted_key(self):
        store = VariableStore({Scope.GLOBAL: {"api.version": "v2"}})

        assert store.resolve("api.version") == "v2"

    def test_missing_key_raises(self):
        store = VariableStore()

        with pytest.raises(UnresolvedVariableError) as exc_info:
            store.resolve("nope")

        assert exc_info.value.names == ["nope"]
        assert store.get("nope", "fallback") == "fallback"
        assert not store.contains("nope")

    def test_values_are_stored_as_strings(self):
        store = VariableStore({Scope.GLOBAL: {"port": 8080, "debug": False}})

        assert store.resolve("port") == "8080"
        assert store.resolve("debug") == "false"

    @given(name=names, low=values, high=values)
    def test_shadowing_never_deletes(self, name, low, high):
        store = VariableStore({Scope.GLOBAL: {name: low}})
        store.set(Scope.RUN, name, high)

        assert store.resolve(name) == high
        assert store.resolve(f"global.{name}") == low


class TestSealing:
    """Tests for read-only scopes during a run."""

    def test_sealed_store_rejects_global_writes(self):
        store = VariableStore()
        store.seal()

        with pytest.raises(ScopeError):
            store.set(Scope.GLOBAL, "a", "1")
        with pytest.raises(ScopeError):
            store.set(Scope.ENVIRONMENT, "a", "1")
        with pytest.raises(ScopeError):
            store.clear(Scope.ENVIRONMENT)

    def test_sealed_store_accepts_run_and_response_writes(self):
        store = VariableStore()
        store.seal()

        store.set(Scope.RUN, "token", "abc")
        store.set(Scope.RESPONSE, "status", 200)

        assert store.resolve("token") == "abc"
        assert store.resolve("response.status") == "200"

    def test_empty_key_rejected(self):
        with pytest.raises(ScopeError):
            VariableStore().set(Scope.RUN, "", "x")

    def test_clear_run_scope(self):
        store = VariableStore({Scope.RUN: {"a": "1"}})
        store.clear(Scope.RUN)

        assert store.scope_items(Scope.RUN) == []


class TestSnapshot:
    """Tests for immutable snapshots."""

    def test_snapshot_is_isolated_from_later_writes(self):
        store = VariableStore({Scope.RUN: {"token": "old"}})
        snapshot = store.snapshot()

        store.set(Scope.RUN, "token", "new")

        assert snapshot.resolve("token") == "old"
        assert store.resolve("token") == "new"

    def test_snapshot_is_read_only(self):
        snapshot = VariableStore({Scope.RUN: {"a": "1"}}).snapshot()

        with pytest.raises(TypeError):
            snapshot["a"] = "2"

    def test_snapshot_mapping_view(self):
        snapshot = VariableStore(
            {Scope.GLOBAL: {"a": "g", "b": "g"}, Scope.RUN: {"a": "r"}}
        ).snapshot()

        assert dict(snapshot) == {"a": "r", "b": "g"}
        assert snapshot.as_dict(Scope.GLOBAL) == {"a": "g", "b": "g"}
        assert "b" in snapshot
        assert len(snapshot) == 2
        with pytest.raises(KeyError):
            snapshot["missing"]

    @given(
        layers=st.dictionaries(
            st.sampled_from(list(Scope)),
            st.dictionaries(names, values, max_size=5),
            max_size=4,
        )
    )
    def test_snapshot_matches_store(self, layers):
        store = VariableStore(layers)
        snapshot = store.snapshot()

        for mapping in layers.values():
            for key in mapping:
                assert snapshot.resolve(key) == store.resolve(key)


class TestStringConversion:
    """Tests for value stringification."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("text", "text"),
            (True, "true"),
            (None, "null"),
            (42, "42"),
            (1.5, "1.5"),
            ({"a": [1, 2]}, '{"a":[1,2]}'),
        ],
    )
    def test_to_variable_string(self, value, expected):
        assert to_variable_string(value) == expected
