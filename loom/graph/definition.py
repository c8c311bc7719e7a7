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

"""Compiled, immutable graph definitions.

Nodes and edges are held in an index-addressed adjacency table
(node id -> its single outgoing edge), so cycles are ordinary data. A
GraphDefinition has no per-run state and is safe to share between any
number of concurrent executions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from loom.capabilities.dispatcher import CapabilityFlags
from loom.graph.schema import StateSchema

if TYPE_CHECKING:
    from loom.graph.executor import NodeContext, Suspend

# Reserved markers
START = "__start__"
END = "__end__"
RESERVED_IDS = frozenset({START, END})


class NodeKind(str, Enum):
    """Kinds of executable node."""

    FUNCTION = "function"
    TOOL = "tool"


class EdgeKind(str, Enum):
    """Types of edges in the graph."""

    NORMAL = "normal"
    CONDITIONAL = "conditional"


@runtime_checkable
class NodeLogic(Protocol):
    """Logic bound to a function node.

    Receives a copy of the current state and a NodeContext; returns a
    partial update, None for "no change", or Suspend to request input.
    Can be sync or async.
    """

    def __call__(
        self, state: Dict[str, Any], context: "NodeContext"
    ) -> Optional[Mapping[str, Any]] | "Suspend" | Awaitable[Any]: ...


@runtime_checkable
class ConditionLogic(Protocol):
    """Condition bound to a conditional edge; returns a target id or label."""

    def __call__(self, state: Dict[str, Any]) -> str | Awaitable[str]: ...


@dataclass(frozen=True)
class Node:
    """A unit of graph execution.

    Attributes:
        id: Unique node identifier
        kind: function or tool
        logic: NodeLogic for function nodes (None for tool nodes)
        capabilities: Enabled capability flags
        messages_key: State field tool nodes read calls from and append results to
        metadata: Additional node metadata
    """

    id: str
    kind: NodeKind = NodeKind.FUNCTION
    logic: Optional[Callable[..., Any]] = None
    capabilities: CapabilityFlags = field(default_factory=CapabilityFlags)
    messages_key: str = "messages"
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Edge:
    """A transition leaving ``source``.

    Attributes:
        source: Source node ID (or START)
        kind: normal or conditional
        target: Target node ID for normal edges
        condition: ConditionLogic for conditional edges
        possible_targets: Declared target set for conditional edges
        path_map: Optional label -> node id translation for condition results
        condition_name: Registry name of the condition, for diagnostics
    """

    source: str
    kind: EdgeKind = EdgeKind.NORMAL
    target: Optional[str] = None
    condition: Optional[Callable[..., Any]] = None
    possible_targets: Tuple[str, ...] = ()
    path_map: Optional[Mapping[str, str]] = None
    condition_name: Optional[str] = None

    @property
    def is_conditional(self) -> bool:
        return self.kind == EdgeKind.CONDITIONAL

    def targets(self) -> Tuple[str, ...]:
        """Every node this edge can lead to."""
        if self.kind == EdgeKind.NORMAL:
            return (self.target,) if self.target else ()
        return self.possible_targets

    def describe(self) -> Dict[str, Any]:
        if self.kind == EdgeKind.NORMAL:
            return {"from": self.source, "to": self.target, "type": self.kind.value}
        data: Dict[str, Any] = {
            "from": self.source,
            "type": self.kind.value,
            "condition": self.condition_name
            or getattr(self.condition, "__name__", repr(self.condition)),
            "possibleTargets": list(self.possible_targets),
        }
        if self.path_map:
            data["pathMap"] = dict(self.path_map)
        return data


class GraphDefinition:
    """Immutable compiled representation of a workflow.

    Built by ``loom.graph.compiler``; do not construct directly unless the
    invariants have already been validated.
    """

    def __init__(
        self,
        name: str,
        schema: StateSchema,
        nodes: Mapping[str, Node],
        edges: Mapping[str, Edge],
        checkpointer: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ):
        self._name = name
        self._schema = schema
        self._nodes = MappingProxyType(dict(nodes))
        self._edges = MappingProxyType(dict(edges))
        self._checkpointer = checkpointer
        self._metadata = MappingProxyType(dict(metadata or {}))
        # Shared runtime for the module-level helpers; lives as long as the graph
        self._default_runtime: Any = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def schema(self) -> StateSchema:
        return self._schema

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    @property
    def edges(self) -> Mapping[str, Edge]:
        """Adjacency table: source id -> outgoing edge."""
        return self._edges

    @property
    def entry_point(self) -> str:
        """Target of the single edge leaving START."""
        edge = self._edges[START]
        assert edge.target is not None
        return edge.target

    @property
    def checkpointer(self) -> Optional[str]:
        """Checkpointer backend selected by the document, if any."""
        return self._checkpointer

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self._metadata

    def node(self, node_id: str) -> Node:
        return self._nodes[node_id]

    def outgoing(self, node_id: str) -> Edge:
        return self._edges[node_id]

    def describe(self) -> Dict[str, Any]:
        """Graph structure as a plain dictionary."""
        return {
            "name": self._name,
            "state": self._schema.describe(),
            "nodes": [
                {
                    "id": node.id,
                    "kind": node.kind.value,
                    "capabilities": node.capabilities.to_dict(),
                }
                for node in self._nodes.values()
            ],
            "edges": [edge.describe() for edge in self._edges.values()],
            "entry_point": self.entry_point,
        }

    def __repr__(self) -> str:
        return f"GraphDefinition({self._name!r}, nodes={list(self._nodes)})"


__all__ = [
    "START",
    "END",
    "RESERVED_IDS",
    "NodeKind",
    "EdgeKind",
    "NodeLogic",
    "ConditionLogic",
    "Node",
    "Edge",
    "GraphDefinition",
]
