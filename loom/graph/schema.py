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

"""Typed state schemas and the reducer engine.

A StateSchema is an ordered, immutable set of fields, each carrying a value
type, a reducer and a default. State values are plain dicts that always
contain every schema field.

Example:
    from loom.graph.schema import StateField, StateSchema

    schema = StateSchema(
        "ChatState",
        [
            StateField("messages", "array", reducer="concat", default=[]),
            StateField("userName", "string", reducer="replace", default=""),
        ],
    )

    state = schema.defaults()
    state = schema.apply_update(state, {"messages": ["Hello"], "userName": "Bob"})
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from loom.graph.reducers import (
    Reducer,
    UNDEFINED,
    override_if_defined,
    reducer_name,
    resolve_reducer,
)

logger = logging.getLogger(__name__)


# Declared type name -> accepted Python types (None accepts anything)
TYPE_MAP: Dict[str, Optional[Tuple[type, ...]]] = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
    "any": None,
}

# Default used when a declared field gives none
ZERO_VALUES: Dict[str, Any] = {
    "string": "",
    "number": 0,
    "integer": 0,
    "boolean": False,
    "array": [],
    "object": {},
    "any": None,
}


class InvalidUpdateError(ValueError):
    """A partial update names an unknown field or produces a mistyped value."""


def _normalise_type(value_type: Any) -> Tuple[str, Optional[Tuple[type, ...]]]:
    if value_type is None:
        return "any", None
    if isinstance(value_type, str):
        key = value_type.strip().lower()
        if key not in TYPE_MAP:
            raise ValueError(
                f"Unknown value type '{value_type}'. Available: {list(TYPE_MAP)}"
            )
        return key, TYPE_MAP[key]
    if isinstance(value_type, type):
        if value_type is object:
            return "any", None
        return value_type.__name__, (value_type,)
    if isinstance(value_type, tuple) and all(isinstance(t, type) for t in value_type):
        return "|".join(t.__name__ for t in value_type), value_type
    raise TypeError(f"Unsupported value type: {value_type!r}")


@dataclass(frozen=True)
class StateField:
    """Definition of one state field.

    Attributes:
        name: Field name
        value_type: Declared type name ("string", "array", ...) or Python type
        reducer: Reducer callable or built-in name
        default: Default value (deep-copied for every run)
        nullable: Whether an explicit None is a valid value
    """

    name: str
    value_type: Any = "any"
    reducer: Any = None
    default: Any = UNDEFINED
    nullable: bool = False
    type_name: str = field(init=False)
    accepted_types: Optional[Tuple[type, ...]] = field(init=False)

    def __post_init__(self) -> None:
        type_name, accepted = _normalise_type(self.value_type)
        object.__setattr__(self, "type_name", type_name)
        object.__setattr__(self, "accepted_types", accepted)
        object.__setattr__(self, "reducer", resolve_reducer(self.reducer))
        if self.default is UNDEFINED:
            if type_name in ZERO_VALUES:
                zero = copy.deepcopy(ZERO_VALUES[type_name])
            else:
                # Python type without a declared default: use its no-arg value
                try:
                    zero = accepted[0]() if accepted else None
                except TypeError:
                    zero = None
                    object.__setattr__(self, "nullable", True)
            object.__setattr__(self, "default", zero)
        if not self.validate(self.default):
            raise ValueError(
                f"Default for field '{self.name}' is not a valid {self.type_name}: "
                f"{self.default!r}"
            )

    def validate(self, value: Any) -> bool:
        """Check that a value is a valid instance of the field's type."""
        if value is None:
            return self.nullable or self.accepted_types is None
        if self.accepted_types is None:
            return True
        if isinstance(value, bool) and bool not in self.accepted_types:
            # bool is an int subclass; "number"/"integer" must not accept it
            return False
        return isinstance(value, self.accepted_types)

    def default_value(self) -> Any:
        """Fresh copy of the default, never shared between runs."""
        return copy.deepcopy(self.default)

    def merge(self, current: Any, incoming: Any) -> Any:
        """Apply this field's reducer."""
        return self.reducer(current, incoming)

    def describe(self) -> Dict[str, Any]:
        return {
            "type": self.type_name,
            "reducer": reducer_name(self.reducer),
            "default": self.default,
            "nullable": self.nullable,
        }


class StateSchema:
    """Ordered, immutable mapping of field name to StateField."""

    def __init__(self, name: str, fields: Iterable[StateField]):
        ordered: Dict[str, StateField] = {}
        for state_field in fields:
            if state_field.name in ordered:
                raise ValueError(f"Duplicate state field '{state_field.name}' in schema '{name}'")
            ordered[state_field.name] = state_field
        self._name = name
        self._fields = MappingProxyType(ordered)

    @classmethod
    def from_annotation(
        cls,
        name: str,
        annotation: Mapping[str, Mapping[str, Any]],
        reducer_registry: Optional[Mapping[str, Reducer]] = None,
    ) -> "StateSchema":
        """Build a schema from a declarative ``annotation`` section.

        Args:
            name: Schema name
            annotation: field -> {"type", "reducer", "default", "nullable"}
            reducer_registry: Extra named reducers

        Raises:
            ValueError: If a field declaration is invalid
            KeyError: If a reducer name is unknown
        """
        fields = []
        for field_name, spec in annotation.items():
            spec = spec or {}
            reducer = resolve_reducer(spec.get("reducer"), reducer_registry)
            fields.append(
                StateField(
                    name=field_name,
                    value_type=spec.get("type", "any"),
                    reducer=reducer,
                    default=spec.get("default", UNDEFINED),
                    nullable=bool(spec.get("nullable", False)),
                )
            )
        return cls(name, fields)

    @property
    def name(self) -> str:
        return self._name

    @property
    def fields(self) -> Mapping[str, StateField]:
        return self._fields

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __getitem__(self, field_name: str) -> StateField:
        return self._fields[field_name]

    def defaults(self) -> Dict[str, Any]:
        """A fully populated state with every field at its default."""
        return {name: f.default_value() for name, f in self._fields.items()}

    def merge(self, field_name: str, current: Any, incoming: Any) -> Any:
        """Merge one field's incoming value into its current value.

        Raises:
            InvalidUpdateError: If the field is unknown or the result is mistyped
        """
        state_field = self._fields.get(field_name)
        if state_field is None:
            raise InvalidUpdateError(
                f"Unknown state field '{field_name}' for schema '{self._name}'"
            )
        merged = state_field.merge(current, incoming)
        if merged is None and state_field.reducer is override_if_defined:
            # An explicit None clears a field under the default reducer
            return merged
        if not state_field.validate(merged):
            raise InvalidUpdateError(
                f"Field '{field_name}' expects {state_field.type_name}, "
                f"reducer produced {type(merged).__name__}"
            )
        return merged

    def apply_update(
        self, state: Mapping[str, Any], update: Optional[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """Return a new state with a partial update reduced into it.

        Fields absent from the update are carried over untouched; their
        reducers are not invoked. The input state is never mutated, and the
        update is validated in full before anything is merged.
        """
        new_state = dict(state)
        if not update:
            return new_state

        unknown = [key for key in update if key not in self._fields]
        if unknown:
            raise InvalidUpdateError(
                f"Unknown state field(s) {unknown} for schema '{self._name}'"
            )

        for key, incoming in update.items():
            new_state[key] = self.merge(key, new_state.get(key), copy.deepcopy(incoming))
        return new_state

    def initial_state(self, initial_input: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Defaults with the run's initial input reduced into them."""
        return self.apply_update(self.defaults(), initial_input)

    def describe(self) -> Dict[str, Any]:
        return {name: f.describe() for name, f in self._fields.items()}

    def __repr__(self) -> str:
        return f"StateSchema({self._name!r}, fields={list(self._fields)})"


def merge(schema: StateSchema, field_name: str, current: Any, incoming: Any) -> Any:
    """Merge ``incoming`` into ``current`` using the field's reducer."""
    return schema.merge(field_name, current, incoming)


def apply_update(
    schema: StateSchema, state: Mapping[str, Any], update: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """Reduce a partial update into ``state``, returning the new state."""
    return schema.apply_update(state, update)


class SchemaRegistry:
    """Named state schemas available to graph compilation."""

    def __init__(self, schemas: Optional[Iterable[StateSchema]] = None) -> None:
        self._schemas: Dict[str, StateSchema] = {}
        for schema in schemas or []:
            self.register(schema)

    def register(self, schema: StateSchema) -> StateSchema:
        """Register a schema under its name.

        Raises:
            ValueError: If a different schema already uses the name
        """
        existing = self._schemas.get(schema.name)
        if existing is not None and existing is not schema:
            raise ValueError(f"Schema '{schema.name}' already registered")
        self._schemas[schema.name] = schema
        logger.debug(f"Registered state schema: {schema.name}")
        return schema

    def get(self, name: str) -> Optional[StateSchema]:
        return self._schemas.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def names(self) -> list[str]:
        return list(self._schemas)


__all__ = [
    "TYPE_MAP",
    "InvalidUpdateError",
    "StateField",
    "StateSchema",
    "SchemaRegistry",
    "merge",
    "apply_update",
]
