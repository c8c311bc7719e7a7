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

"""Graph state-machine runtime.

Compile a workflow once, then run any number of executions of it:

    from loom.graph import StateGraph, GraphRuntime, END
    from loom.graph.schema import StateField, StateSchema

    schema = StateSchema("ChatState", [StateField("messages", "array", reducer="concat")])
    graph = StateGraph(schema)
    graph.add_node("agent", call_model)
    graph.add_conditional_edges("agent", should_continue, ["agent", END])
    graph.set_entry_point("agent")

    runtime = GraphRuntime(graph.compile())
    outcome = await runtime.start({"messages": [{"role": "user", "content": "hi"}]})
"""

from loom.graph.checkpoint import (
    CHECKPOINT_VERSION,
    Checkpoint,
    CheckpointerProtocol,
    Interrupt,
    InterruptKind,
    MemoryCheckpointer,
    RunStatus,
)
from loom.graph.checkpointer import JSONFileCheckpointer, SQLiteCheckpointer, create_checkpointer
from loom.graph.compiler import StateGraph, WorkflowDocument, compile_graph, load_document
from loom.graph.config import (
    CheckpointConfig,
    CheckpointMode,
    ExecutionConfig,
    GraphConfig,
    InterruptConfig,
    ObservabilityConfig,
)
from loom.graph.definition import END, START, Edge, EdgeKind, GraphDefinition, Node, NodeKind
from loom.graph.events import EventBus, GraphEvent, GraphEventType
from loom.graph.executor import NodeContext, NodeUpdate, StepExecutor, Suspend
from loom.graph.reducers import (
    UNDEFINED,
    concatenate,
    override_if_defined,
    replace_if_present,
    shallow_merge,
)
from loom.graph.router import ConditionalRouter
from loom.graph.runtime import GraphRuntime, RunOutcome, get_state, resume, start
from loom.graph.schema import SchemaRegistry, StateField, StateSchema, apply_update, merge

compile = compile_graph

__all__ = [
    "CHECKPOINT_VERSION",
    "Checkpoint",
    "CheckpointerProtocol",
    "Interrupt",
    "InterruptKind",
    "MemoryCheckpointer",
    "RunStatus",
    "JSONFileCheckpointer",
    "SQLiteCheckpointer",
    "create_checkpointer",
    "StateGraph",
    "WorkflowDocument",
    "compile",
    "compile_graph",
    "load_document",
    "CheckpointConfig",
    "CheckpointMode",
    "ExecutionConfig",
    "GraphConfig",
    "InterruptConfig",
    "ObservabilityConfig",
    "END",
    "START",
    "Edge",
    "EdgeKind",
    "GraphDefinition",
    "Node",
    "NodeKind",
    "EventBus",
    "GraphEvent",
    "GraphEventType",
    "NodeContext",
    "NodeUpdate",
    "StepExecutor",
    "Suspend",
    "UNDEFINED",
    "concatenate",
    "override_if_defined",
    "replace_if_present",
    "shallow_merge",
    "ConditionalRouter",
    "GraphRuntime",
    "RunOutcome",
    "get_state",
    "resume",
    "start",
    "SchemaRegistry",
    "StateField",
    "StateSchema",
    "apply_update",
    "merge",
]
