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

"""Built-in reducers for merging partial node updates into state.

A reducer is a pure function ``(current, incoming) -> merged``. The runtime
only invokes a field's reducer when a node's update names that field.

Built-ins:
    - concatenate: append incoming items to the current sequence
    - replace_if_present: incoming wins unless it is empty or missing
    - shallow_merge: key-wise union of two mappings, incoming keys win
    - override_if_defined: incoming wins unless it is UNDEFINED

Example:
    from loom.graph.reducers import concatenate, replace_if_present

    concatenate(["a"], ["b", "c"])      # ["a", "b", "c"]
    replace_if_present("x", "")         # "x"
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

Reducer = Callable[[Any, Any], Any]


class _Undefined:
    """Marker for "no value supplied", distinct from an explicit None."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Undefined":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Undefined":
        return self

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED: Any = _Undefined()


def _is_empty(value: Any) -> bool:
    if value is None or value is UNDEFINED:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict)):
        return len(value) == 0
    return False


def concatenate(current: Any, incoming: Any) -> list[Any]:
    """Append incoming to current, preserving order and duplicates."""
    base = [] if current is None or current is UNDEFINED else list(current)
    if incoming is None or incoming is UNDEFINED:
        return base
    if isinstance(incoming, (list, tuple)):
        return base + list(incoming)
    # A single item is appended as one element
    return base + [incoming]


def replace_if_present(current: Any, incoming: Any) -> Any:
    """Incoming wins if it is not empty/undefined, else current is kept."""
    return current if _is_empty(incoming) else incoming


def shallow_merge(current: Any, incoming: Any) -> dict[str, Any]:
    """Key-wise union of two mappings; incoming keys overwrite current ones."""
    merged: dict[str, Any] = {}
    if isinstance(current, Mapping):
        merged.update(current)
    if isinstance(incoming, Mapping):
        merged.update(incoming)
    elif incoming is not None and incoming is not UNDEFINED:
        raise TypeError(
            f"shallow_merge expects a mapping, got {type(incoming).__name__}"
        )
    return merged


def override_if_defined(current: Any, incoming: Any) -> Any:
    """Incoming wins unless explicitly UNDEFINED; None counts as defined."""
    return current if incoming is UNDEFINED else incoming


# Names accepted in declarative documents
BUILTIN_REDUCERS: Dict[str, Reducer] = {
    "concat": concatenate,
    "concatenate": concatenate,
    "append": concatenate,
    "replace": replace_if_present,
    "replace_if_present": replace_if_present,
    "merge": shallow_merge,
    "shallow_merge": shallow_merge,
    "override": override_if_defined,
    "override_if_defined": override_if_defined,
}

DEFAULT_REDUCER: Reducer = override_if_defined


def resolve_reducer(
    reducer: str | Reducer | None,
    registry: Optional[Mapping[str, Reducer]] = None,
) -> Reducer:
    """Resolve a reducer given by name or callable.

    Names are looked up in ``registry`` first, then the built-ins, with
    dashes treated as underscores ("replace-if-present").

    Raises:
        KeyError: If a name is unknown
        TypeError: If the value is neither a name nor a callable
    """
    if reducer is None:
        return DEFAULT_REDUCER
    if callable(reducer):
        return reducer
    if not isinstance(reducer, str):
        raise TypeError(f"Reducer must be a name or callable, got {type(reducer).__name__}")

    if registry and reducer in registry:
        return registry[reducer]
    key = reducer.strip().lower().replace("-", "_")
    if registry and key in registry:
        return registry[key]
    if key in BUILTIN_REDUCERS:
        return BUILTIN_REDUCERS[key]
    raise KeyError(reducer)


def reducer_name(reducer: Reducer) -> str:
    """Canonical name of a reducer for display and schema dumps."""
    for name in ("concatenate", "replace_if_present", "shallow_merge", "override_if_defined"):
        if BUILTIN_REDUCERS[name] is reducer:
            return name
    return getattr(reducer, "__name__", repr(reducer))


__all__ = [
    "Reducer",
    "UNDEFINED",
    "concatenate",
    "replace_if_present",
    "shallow_merge",
    "override_if_defined",
    "BUILTIN_REDUCERS",
    "DEFAULT_REDUCER",
    "resolve_reducer",
    "reducer_name",
]
