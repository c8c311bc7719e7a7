# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for the built-in reducers and reducer resolution."""

import copy
import pickle

import pytest

from loom.graph.reducers import (
    BUILTIN_REDUCERS,
    DEFAULT_REDUCER,
    UNDEFINED,
    concatenate,
    override_if_defined,
    reducer_name,
    replace_if_present,
    resolve_reducer,
    shallow_merge,
)


class TestUndefined:
    """Tests for the UNDEFINED sentinel."""

    def test_is_falsy(self):
        """UNDEFINED is falsy."""
        assert not UNDEFINED

    def test_survives_copy_and_pickle(self):
        """Copies of UNDEFINED are the same object."""
        assert copy.copy(UNDEFINED) is UNDEFINED
        assert copy.deepcopy({"x": UNDEFINED})["x"] is UNDEFINED
        assert pickle.loads(pickle.dumps(UNDEFINED)) is UNDEFINED

    def test_repr(self):
        assert repr(UNDEFINED) == "UNDEFINED"


class TestConcatenate:
    """Tests for the concatenate reducer."""

    def test_appends_in_order(self):
        """Incoming sequence is appended after current."""
        assert concatenate(["a"], ["b", "c"]) == ["a", "b", "c"]

    def test_keeps_duplicates(self):
        assert concatenate(["a"], ["a"]) == ["a", "a"]

    def test_single_item_appended_as_one_element(self):
        """A non-list incoming value becomes a single element."""
        assert concatenate(["a"], "b") == ["a", "b"]
        assert concatenate([], {"role": "user"}) == [{"role": "user"}]

    def test_none_current_treated_as_empty(self):
        assert concatenate(None, ["x"]) == ["x"]

    def test_undefined_incoming_is_noop(self):
        assert concatenate(["x"], UNDEFINED) == ["x"]

    def test_does_not_mutate_inputs(self):
        current = ["a"]
        incoming = ["b"]
        concatenate(current, incoming)
        assert current == ["a"]
        assert incoming == ["b"]


class TestReplaceIfPresent:
    """Tests for the replace_if_present reducer."""

    def test_incoming_wins(self):
        assert replace_if_present("x", "y") == "y"

    @pytest.mark.parametrize("empty", ["", None, UNDEFINED, [], {}, ()])
    def test_empty_incoming_keeps_current(self, empty):
        """Empty or missing incoming values are ignored."""
        assert replace_if_present("x", empty) == "x"

    def test_falsy_non_empty_values_win(self):
        """0 and False are values, not absence."""
        assert replace_if_present(5, 0) == 0
        assert replace_if_present(True, False) is False


class TestShallowMerge:
    """Tests for the shallow_merge reducer."""

    def test_incoming_keys_win(self):
        assert shallow_merge({"a": 1, "b": 2}, {"b": 3, "c": 4}) == {"a": 1, "b": 3, "c": 4}

    def test_is_shallow(self):
        """Nested mappings are replaced, not merged."""
        assert shallow_merge({"a": {"x": 1}}, {"a": {"y": 2}}) == {"a": {"y": 2}}

    def test_none_incoming_keeps_current(self):
        assert shallow_merge({"a": 1}, None) == {"a": 1}

    def test_rejects_non_mapping(self):
        with pytest.raises(TypeError):
            shallow_merge({}, ["not", "a", "dict"])


class TestOverrideIfDefined:
    """Tests for the default reducer."""

    def test_incoming_wins(self):
        assert override_if_defined(1, 2) == 2

    def test_explicit_none_wins(self):
        """None is a defined value."""
        assert override_if_defined(1, None) is None

    def test_undefined_keeps_current(self):
        assert override_if_defined(1, UNDEFINED) == 1

    def test_is_default(self):
        assert DEFAULT_REDUCER is override_if_defined


class TestResolveReducer:
    """Tests for resolve_reducer and reducer_name."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("concat", concatenate),
            ("append", concatenate),
            ("replace", replace_if_present),
            ("merge", shallow_merge),
            ("override", override_if_defined),
            ("replace-if-present", replace_if_present),
        ],
    )
    def test_builtin_names(self, name, expected):
        assert resolve_reducer(name) is expected

    def test_none_resolves_to_default(self):
        assert resolve_reducer(None) is DEFAULT_REDUCER

    def test_callable_passes_through(self):
        def keep_max(current, incoming):
            return max(current, incoming)

        assert resolve_reducer(keep_max) is keep_max

    def test_registry_wins_over_builtins(self):
        """A registry entry may shadow a built-in name."""

        def custom(current, incoming):
            return incoming

        assert resolve_reducer("merge", {"merge": custom}) is custom

    def test_unknown_name_raises_key_error(self):
        with pytest.raises(KeyError):
            resolve_reducer("does_not_exist")

    def test_non_callable_raises_type_error(self):
        with pytest.raises(TypeError):
            resolve_reducer(42)

    def test_reducer_name_of_builtin(self):
        assert reducer_name(concatenate) == "concatenate"
        assert "concat" in BUILTIN_REDUCERS
