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

"""Graph compilation: declarations in, validated GraphDefinition out.

Two front ends share one validator:

    - ``compile_graph(document, ...)`` for declarative documents (dict,
      JSON or YAML) whose handlers and conditions are looked up by name
      in registries
    - ``StateGraph`` for building graphs in code

Example (document):
    definition = compile_graph(
        yaml_text,
        node_registry={"greet": greet},
        condition_registry={"route": route},
    )

Example (builder):
    graph = StateGraph(schema)
    graph.add_node("greet", greet)
    graph.add_conditional_edges("greet", route, ["greet", END])
    graph.set_entry_point("greet")
    definition = graph.compile()
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from loom.capabilities.dispatcher import CapabilityFlags
from loom.core.errors import CompilationError
from loom.graph.definition import (
    END,
    RESERVED_IDS,
    START,
    Edge,
    EdgeKind,
    GraphDefinition,
    Node,
    NodeKind,
)
from loom.graph.reducers import Reducer
from loom.graph.schema import SchemaRegistry, StateSchema

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_NAME = "State"


# =============================================================================
# Document model
# =============================================================================


class FieldDecl(BaseModel):
    """One entry of the ``annotation`` section."""

    model_config = ConfigDict(extra="forbid")

    type: str = "any"
    reducer: Optional[str] = None
    default: Any = None
    nullable: bool = False


class NodeDecl(BaseModel):
    """One entry of the ``nodes`` section."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str = Field(..., min_length=1)
    kind: Literal["function", "tool"] = "function"
    handler: Optional[str] = None
    capabilities: Dict[str, bool] = Field(default_factory=dict)
    messages_key: str = Field("messages", alias="messagesKey")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EdgeDecl(BaseModel):
    """One entry of the ``edges`` section."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    source: str = Field(..., alias="from", min_length=1)
    target: Optional[str] = Field(None, alias="to")
    condition: Optional[str] = None
    possible_targets: Optional[List[str] | Dict[str, str]] = Field(
        None, alias="possibleTargets"
    )
    path_map: Optional[Dict[str, str]] = Field(None, alias="pathMap")

    def label(self) -> str:
        if self.condition:
            return f"{self.source} -?{self.condition}-> {self.possible_targets}"
        return f"{self.source} -> {self.target}"


class StateGraphDecl(BaseModel):
    """The ``stateGraph`` section: schema reference and persistence selection."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    annotation: Optional[str] = None
    checkpointer: Optional[Literal["memory", "sqlite", "json"]] = None
    store: Optional[str] = None


class WorkflowDocument(BaseModel):
    """Top-level declarative workflow document."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    state_annotation: Optional[str] = Field(None, alias="stateAnnotation")
    annotation: Dict[str, FieldDecl] = Field(default_factory=dict)
    nodes: List[NodeDecl] = Field(default_factory=list)
    edges: List[EdgeDecl] = Field(default_factory=list)
    state_graph: StateGraphDecl = Field(default_factory=StateGraphDecl, alias="stateGraph")


def load_document(document: WorkflowDocument | Mapping[str, Any] | str) -> WorkflowDocument:
    """Parse and validate a workflow document.

    Args:
        document: WorkflowDocument, mapping, or JSON/YAML text

    Raises:
        CompilationError: If the text cannot be parsed or fails validation
    """
    if isinstance(document, WorkflowDocument):
        return document

    if isinstance(document, str):
        try:
            data = json.loads(document)
        except json.JSONDecodeError:
            try:
                data = yaml.safe_load(document)
            except yaml.YAMLError as e:
                raise CompilationError(f"Invalid YAML document: {e}") from e
    else:
        data = document

    if not isinstance(data, Mapping):
        raise CompilationError(f"Workflow document must be a mapping, got {type(data).__name__}")

    try:
        return WorkflowDocument.model_validate(dict(data))
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise CompilationError(problems) from e


# =============================================================================
# Structural validation
# =============================================================================


def validate_structure(
    nodes: Mapping[str, Node],
    edges: Sequence[Edge],
    schema: StateSchema,
) -> List[str]:
    """Check the graph invariants.

    Returns:
        List of problems, each naming the offending node or edge
    """
    problems: List[str] = []

    if not nodes:
        problems.append("Graph has no nodes")

    for node_id, node in nodes.items():
        if node_id in RESERVED_IDS:
            problems.append(f"Node id '{node_id}' is reserved")
        if node.kind == NodeKind.FUNCTION and node.logic is None:
            problems.append(f"Function node '{node_id}' has no logic bound")
        if node.kind == NodeKind.TOOL and node.messages_key not in schema:
            problems.append(
                f"Tool node '{node_id}' reads unknown state field '{node.messages_key}'"
            )

    known_sources = set(nodes) | {START}
    known_targets = set(nodes) | {END}
    outgoing: Dict[str, List[Edge]] = defaultdict(list)

    for edge in edges:
        outgoing[edge.source].append(edge)
        if edge.source == END:
            problems.append("No edge may leave __end__")
        elif edge.source not in known_sources:
            problems.append(f"Edge source '{edge.source}' not found")

        if edge.kind == EdgeKind.NORMAL:
            if edge.target == START:
                problems.append(f"Edge {edge.source} -> __start__ may not target __start__")
            elif edge.target not in known_targets:
                problems.append(f"Edge target '{edge.target}' not found (from '{edge.source}')")
            continue

        if edge.condition is None:
            problems.append(f"Conditional edge from '{edge.source}' has no condition bound")
        if not edge.possible_targets:
            problems.append(f"Conditional edge from '{edge.source}' declares no possible targets")
        for target in edge.possible_targets:
            if target not in known_targets:
                problems.append(
                    f"Conditional target '{target}' not found (from '{edge.source}')"
                )
        for label, target in (edge.path_map or {}).items():
            if target not in edge.possible_targets:
                problems.append(
                    f"Path '{label}' -> '{target}' from '{edge.source}' is not a possible target"
                )

    start_edges = outgoing.get(START, [])
    if not start_edges:
        problems.append("No edge leaves __start__ (entry point not set)")
    elif len(start_edges) > 1:
        problems.append(
            f"Exactly one edge must leave __start__, found {len(start_edges)}"
        )
    elif start_edges[0].kind != EdgeKind.NORMAL:
        problems.append("The edge leaving __start__ must be a normal edge")

    for source, source_edges in outgoing.items():
        if source == START or len(source_edges) < 2:
            continue
        kinds = {edge.kind for edge in source_edges}
        if len(kinds) > 1:
            problems.append(
                f"Node '{source}' has both a normal and a conditional outgoing edge"
            )
        else:
            problems.append(f"Node '{source}' has {len(source_edges)} outgoing edges")

    for node_id in nodes:
        if node_id not in outgoing:
            problems.append(f"Node '{node_id}' has no outgoing edge")

    # Reachability from START
    reachable: set[str] = set()
    to_visit = [edge.target for edge in start_edges if edge.target]
    while to_visit:
        node_id = to_visit.pop()
        if node_id in reachable or node_id == END or node_id not in nodes:
            continue
        reachable.add(node_id)
        for edge in outgoing.get(node_id, []):
            to_visit.extend(edge.targets())
    for node_id in nodes:
        if node_id not in reachable:
            problems.append(f"Node '{node_id}' is unreachable from __start__")

    return problems


def build_definition(
    name: str,
    schema: StateSchema,
    nodes: Mapping[str, Node],
    edges: Sequence[Edge],
    checkpointer: Optional[str] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> GraphDefinition:
    """Validate and freeze a graph.

    Raises:
        CompilationError: Listing every structural problem found
    """
    problems = validate_structure(nodes, edges, schema)
    if problems:
        logger.debug(f"Graph '{name}' failed validation: {problems}")
        raise CompilationError(problems)

    adjacency = {edge.source: edge for edge in edges}
    definition = GraphDefinition(
        name=name,
        schema=schema,
        nodes=nodes,
        edges=adjacency,
        checkpointer=checkpointer,
        metadata=metadata,
    )
    logger.debug(f"Compiled graph '{name}' with {len(nodes)} nodes")
    return definition


# =============================================================================
# Document front end
# =============================================================================


def _resolve_schema(
    doc: WorkflowDocument,
    reducer_registry: Optional[Mapping[str, Reducer]],
    schema_registry: Optional[SchemaRegistry],
) -> StateSchema:
    declared = doc.state_annotation
    referenced = doc.state_graph.annotation
    if declared and referenced and declared != referenced:
        raise CompilationError(
            f"stateGraph references schema '{referenced}' but stateAnnotation is '{declared}'"
        )
    name = declared or referenced or DEFAULT_SCHEMA_NAME

    if doc.annotation:
        annotation = {
            field_name: {
                key: value
                for key, value in decl.model_dump().items()
                if key != "default" or "default" in decl.model_fields_set
            }
            for field_name, decl in doc.annotation.items()
        }
        try:
            schema = StateSchema.from_annotation(name, annotation, reducer_registry)
        except KeyError as e:
            raise CompilationError(f"Unknown reducer {e} in annotation '{name}'") from e
        except (TypeError, ValueError) as e:
            raise CompilationError(f"Invalid annotation '{name}': {e}") from e
        if schema_registry is not None and name not in schema_registry:
            schema_registry.register(schema)
        return schema

    if schema_registry is not None:
        schema = schema_registry.get(name)
        if schema is not None:
            return schema
    raise CompilationError(f"State schema '{name}' is not declared or registered")


def compile_graph(
    document: WorkflowDocument | Mapping[str, Any] | str,
    *,
    node_registry: Optional[Mapping[str, Callable[..., Any]]] = None,
    condition_registry: Optional[Mapping[str, Callable[..., Any]]] = None,
    reducer_registry: Optional[Mapping[str, Reducer]] = None,
    schema_registry: Optional[SchemaRegistry] = None,
) -> GraphDefinition:
    """Compile a declarative document into a GraphDefinition.

    Args:
        document: Mapping, WorkflowDocument, or JSON/YAML text
        node_registry: Handler name -> NodeLogic
        condition_registry: Condition name -> ConditionLogic
        reducer_registry: Extra named reducers for the annotation
        schema_registry: Named schemas (consulted when no annotation is inline)

    Returns:
        Immutable GraphDefinition

    Raises:
        CompilationError: On any parse or structural problem
    """
    doc = load_document(document)
    node_registry = node_registry or {}
    condition_registry = condition_registry or {}
    schema = _resolve_schema(doc, reducer_registry, schema_registry)

    problems: List[str] = []
    nodes: Dict[str, Node] = {}
    for decl in doc.nodes:
        if decl.id in nodes:
            problems.append(f"Duplicate node id '{decl.id}'")
            continue

        logic = None
        if decl.kind == NodeKind.FUNCTION.value:
            if not decl.handler:
                problems.append(f"Function node '{decl.id}' must specify 'handler'")
            elif decl.handler not in node_registry:
                problems.append(
                    f"Handler '{decl.handler}' for node '{decl.id}' not found in node_registry. "
                    f"Available: {list(node_registry.keys())}"
                )
            else:
                logic = node_registry[decl.handler]

        try:
            flags = CapabilityFlags.from_dict(decl.capabilities)
        except ValueError as e:
            problems.append(f"Node '{decl.id}': {e}")
            flags = CapabilityFlags()

        metadata = dict(decl.metadata)
        if decl.handler:
            metadata.setdefault("handler", decl.handler)
        nodes[decl.id] = Node(
            id=decl.id,
            kind=NodeKind(decl.kind),
            logic=logic,
            capabilities=flags,
            messages_key=decl.messages_key,
            metadata=metadata,
        )

    edges: List[Edge] = []
    for decl in doc.edges:
        if decl.condition is None:
            if decl.target is None:
                problems.append(f"Edge from '{decl.source}' needs either 'to' or 'condition'")
                continue
            if decl.possible_targets or decl.path_map:
                problems.append(f"Normal edge {decl.label()} may not declare possibleTargets")
            edges.append(Edge(source=decl.source, target=decl.target))
            continue

        if decl.target is not None:
            problems.append(f"Edge from '{decl.source}' declares both 'to' and 'condition'")
            continue

        condition = condition_registry.get(decl.condition)
        if condition is None:
            problems.append(
                f"Condition '{decl.condition}' for edge from '{decl.source}' not found in "
                f"condition_registry. Available: {list(condition_registry.keys())}"
            )

        path_map = decl.path_map
        possible = decl.possible_targets
        if isinstance(possible, dict):
            if path_map:
                problems.append(
                    f"Edge from '{decl.source}' gives both a possibleTargets mapping "
                    f"and a pathMap"
                )
            path_map = possible
            targets = tuple(dict.fromkeys(possible.values()))
        elif possible:
            targets = tuple(possible)
        elif path_map:
            targets = tuple(dict.fromkeys(path_map.values()))
        else:
            targets = ()

        edges.append(
            Edge(
                source=decl.source,
                kind=EdgeKind.CONDITIONAL,
                condition=condition,
                possible_targets=targets,
                path_map=dict(path_map) if path_map else None,
                condition_name=decl.condition,
            )
        )

    problems.extend(validate_structure(nodes, edges, schema))
    if problems:
        raise CompilationError(problems)

    return build_definition(
        name=schema.name,
        schema=schema,
        nodes=nodes,
        edges=edges,
        checkpointer=doc.state_graph.checkpointer,
        metadata={"store": doc.state_graph.store} if doc.state_graph.store else None,
    )


# =============================================================================
# Builder front end
# =============================================================================


class StateGraph:
    """Builder for graphs declared in code.

    Example:
        graph = StateGraph(schema)
        graph.add_node("analyze", analyze)
        graph.add_node("execute", execute)
        graph.add_edge("analyze", "execute")
        graph.add_conditional_edges(
            "execute",
            should_retry,
            {"retry": "analyze", "done": END},
        )
        graph.set_entry_point("analyze")

        definition = graph.compile()
    """

    def __init__(self, schema: StateSchema):
        """Initialize StateGraph.

        Args:
            schema: State schema shared by every node
        """
        self._schema = schema
        self._nodes: Dict[str, Node] = {}
        self._edges: List[Edge] = []

    def add_node(
        self,
        node_id: str,
        logic: Callable[..., Any],
        *,
        capabilities: Optional[CapabilityFlags | Mapping[str, bool]] = None,
        **metadata: Any,
    ) -> "StateGraph":
        """Add a function node.

        Args:
            node_id: Unique node identifier
            logic: NodeLogic callable (sync or async)
            capabilities: Enabled capability flags
            **metadata: Additional metadata

        Returns:
            Self for chaining

        Raises:
            CompilationError: If the id is taken or reserved
        """
        self._check_new_id(node_id)
        self._nodes[node_id] = Node(
            id=node_id,
            kind=NodeKind.FUNCTION,
            logic=logic,
            capabilities=self._flags(capabilities),
            metadata=metadata,
        )
        logger.debug(f"Added node: {node_id}")
        return self

    def add_tool_node(
        self,
        node_id: str,
        *,
        capabilities: Optional[CapabilityFlags | Mapping[str, bool]] = None,
        messages_key: str = "messages",
        **metadata: Any,
    ) -> "StateGraph":
        """Add a tool node that dispatches pending tool calls."""
        self._check_new_id(node_id)
        self._nodes[node_id] = Node(
            id=node_id,
            kind=NodeKind.TOOL,
            capabilities=self._flags(capabilities),
            messages_key=messages_key,
            metadata=metadata,
        )
        logger.debug(f"Added tool node: {node_id}")
        return self

    def add_edge(self, source: str, target: str) -> "StateGraph":
        """Add a normal edge between nodes."""
        self._edges.append(Edge(source=source, target=target))
        logger.debug(f"Added edge: {source} -> {target}")
        return self

    def add_conditional_edges(
        self,
        source: str,
        condition: Callable[..., Any],
        possible_targets: Sequence[str] | Mapping[str, str],
    ) -> "StateGraph":
        """Add a conditional edge.

        Args:
            source: Source node ID
            condition: ConditionLogic returning a target id (or a label)
            possible_targets: Allowed target ids, or label -> target id mapping

        Returns:
            Self for chaining
        """
        if isinstance(possible_targets, Mapping):
            path_map: Optional[Dict[str, str]] = dict(possible_targets)
            targets = tuple(dict.fromkeys(possible_targets.values()))
        else:
            path_map = None
            targets = tuple(possible_targets)

        self._edges.append(
            Edge(
                source=source,
                kind=EdgeKind.CONDITIONAL,
                condition=condition,
                possible_targets=targets,
                path_map=path_map,
                condition_name=getattr(condition, "__name__", None),
            )
        )
        logger.debug(f"Added conditional edge: {source} -> {list(targets)}")
        return self

    def set_entry_point(self, node_id: str) -> "StateGraph":
        """Add the edge leaving START."""
        return self.add_edge(START, node_id)

    def set_finish_point(self, node_id: str) -> "StateGraph":
        """Set a node as finish point (adds edge to END)."""
        return self.add_edge(node_id, END)

    def compile(
        self,
        name: Optional[str] = None,
        checkpointer: Optional[str] = None,
    ) -> GraphDefinition:
        """Validate the graph and freeze it.

        Raises:
            CompilationError: If the graph is invalid
        """
        return build_definition(
            name=name or self._schema.name,
            schema=self._schema,
            nodes=dict(self._nodes),
            edges=list(self._edges),
            checkpointer=checkpointer,
        )

    def _check_new_id(self, node_id: str) -> None:
        if not node_id:
            raise CompilationError("Node id must be a non-empty string")
        if node_id in RESERVED_IDS:
            raise CompilationError(f"Node id '{node_id}' is reserved")
        if node_id in self._nodes:
            raise CompilationError(f"Node '{node_id}' already exists")

    @staticmethod
    def _flags(capabilities: Optional[CapabilityFlags | Mapping[str, bool]]) -> CapabilityFlags:
        if capabilities is None:
            return CapabilityFlags()
        if isinstance(capabilities, CapabilityFlags):
            return capabilities
        try:
            return CapabilityFlags.from_dict(capabilities)
        except ValueError as e:
            raise CompilationError(str(e)) from e


__all__ = [
    "WorkflowDocument",
    "load_document",
    "validate_structure",
    "build_definition",
    "compile_graph",
    "StateGraph",
]
