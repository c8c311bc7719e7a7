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

"""
Loom - a graph state-machine runtime for agent workflows.

Nodes merge partial outputs into a typed shared state through per-field
reducers; edges (including conditional ones) decide what runs next; any
node can suspend the run to ask for external input and the run resumes
later from a durable checkpoint. External models, agents, MCP tools and
skills are reached only through an injected capability dispatcher.
"""

__version__ = "0.1.0"
__author__ = "Vijaykumar Singh"
__license__ = "Apache-2.0"

from loom.capabilities import CapabilityDispatcher, CapabilityFlags, CapabilityKind
from loom.core.errors import (
    CompilationError,
    LoomError,
    NodeExecutionError,
    RecursionLimitExceeded,
    RoutingViolation,
    RunCancelledError,
)
from loom.graph import (
    END,
    START,
    GraphDefinition,
    GraphRuntime,
    RunOutcome,
    RunStatus,
    StateField,
    StateGraph,
    StateSchema,
    Suspend,
    compile_graph,
)

__all__ = [
    "__version__",
    "CapabilityDispatcher",
    "CapabilityFlags",
    "CapabilityKind",
    "CompilationError",
    "LoomError",
    "NodeExecutionError",
    "RecursionLimitExceeded",
    "RoutingViolation",
    "RunCancelledError",
    "END",
    "START",
    "GraphDefinition",
    "GraphRuntime",
    "RunOutcome",
    "RunStatus",
    "StateField",
    "StateGraph",
    "StateSchema",
    "Suspend",
    "compile_graph",
]
