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

"""Step executor: runs exactly one node per call.

Function nodes invoke their bound logic with a deep copy of the state.
Tool nodes read pending tool calls from the last message of their messages
field and dispatch each through the capability dispatcher. Either way the
executor returns a NodeUpdate or a Suspend, or raises NodeExecutionError;
it never retries.
"""

from __future__ import annotations

import copy
import inspect
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from loom.capabilities.dispatcher import BoundCapabilities, CapabilityDispatcher
from loom.core.errors import NodeExecutionError
from loom.graph.definition import Node, NodeKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Suspend:
    """Returned by node logic to pause the run and request external input.

    Attributes:
        prompt: Payload shown to whoever supplies the resume value
    """

    prompt: Any = None


@dataclass(frozen=True)
class NodeUpdate:
    """Partial state update produced by one node execution."""

    values: Mapping[str, Any] = field(default_factory=dict)


NodeOutcome = Union[NodeUpdate, Suspend]


@dataclass
class NodeContext:
    """Per-invocation context handed to node logic.

    Attributes:
        node_id: Node being executed
        thread_id: Execution the node belongs to
        step: Number of node executions completed so far in this run
        capabilities: Node-scoped capability view
        resume_value: Value supplied to ``resume`` (only on re-entry after a pause)
        resumed: Whether this invocation follows a pause
    """

    node_id: str
    thread_id: str
    step: int
    capabilities: BoundCapabilities
    resume_value: Any = None
    resumed: bool = False


def _extract_tool_calls(message: Any) -> List[Any]:
    if isinstance(message, Mapping):
        calls = message.get("tool_calls")
    else:
        calls = getattr(message, "tool_calls", None)
    return list(calls or [])


def _parse_tool_call(call: Any, index: int) -> tuple[Optional[str], str, Dict[str, Any]]:
    """Normalise a tool call to (call_id, name, arguments).

    Accepts ``{"id", "name", "arguments"|"args"}`` and the nested
    ``{"id", "function": {"name", "arguments"}}`` form, where arguments may
    be a JSON string.
    """
    if not isinstance(call, Mapping):
        call = {
            "id": getattr(call, "id", None),
            "name": getattr(call, "name", None),
            "arguments": getattr(call, "arguments", None),
        }

    call_id = call.get("id") or f"call_{index}"
    function = call.get("function")
    if isinstance(function, Mapping):
        name = function.get("name")
        arguments = function.get("arguments")
    else:
        name = call.get("name")
        arguments = call.get("arguments", call.get("args"))

    if not name:
        raise ValueError(f"Tool call {call_id} has no name")

    if isinstance(arguments, str):
        arguments = json.loads(arguments) if arguments.strip() else {}
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise ValueError(f"Tool call {call_id} arguments must be an object")
    return call_id, str(name), copy.deepcopy(dict(arguments))


def _tool_message(
    call_id: Optional[str], name: str, content: Any, error: bool = False
) -> Dict[str, Any]:
    message: Dict[str, Any] = {
        "role": "tool",
        "tool_call_id": call_id,
        "name": name,
        "content": content,
    }
    if error:
        message["status"] = "error"
    return message


class StepExecutor:
    """Executes a single node (SRP: one node, one step).

    Example:
        executor = StepExecutor(dispatcher)
        context = executor.context_for(node, thread_id="t1", step=0)
        outcome = await executor.run_node(node, state, context)
    """

    def __init__(self, dispatcher: Optional[CapabilityDispatcher] = None):
        """Initialize step executor.

        Args:
            dispatcher: Dispatcher used for capability and tool calls
        """
        self.dispatcher = dispatcher or CapabilityDispatcher()

    def context_for(
        self,
        node: Node,
        thread_id: str,
        step: int,
        resume_value: Any = None,
        resumed: bool = False,
    ) -> NodeContext:
        """Build a NodeContext with capabilities bound to the node's flags."""
        return NodeContext(
            node_id=node.id,
            thread_id=thread_id,
            step=step,
            capabilities=BoundCapabilities(self.dispatcher, node.capabilities, node.id),
            resume_value=resume_value,
            resumed=resumed,
        )

    async def run_node(
        self, node: Node, state: Mapping[str, Any], context: NodeContext
    ) -> NodeOutcome:
        """Run one node against the current state.

        Args:
            node: Node to execute
            state: Current state (never mutated)
            context: Invocation context

        Returns:
            NodeUpdate with the partial update, or Suspend

        Raises:
            NodeExecutionError: If the node fails or returns an invalid value
        """
        started = time.time()
        try:
            if node.kind == NodeKind.TOOL:
                outcome: NodeOutcome = await self._run_tool_node(node, state, context)
            else:
                outcome = await self._run_function_node(node, state, context)
        except NodeExecutionError:
            raise
        except Exception as e:
            raise NodeExecutionError(
                f"Node '{node.id}' failed: {type(e).__name__}: {e}", node_id=node.id
            ) from e

        logger.debug(
            f"Node {node.id} returned {type(outcome).__name__} "
            f"in {(time.time() - started) * 1000:.1f}ms"
        )
        return outcome

    async def _run_function_node(
        self, node: Node, state: Mapping[str, Any], context: NodeContext
    ) -> NodeOutcome:
        if node.logic is None:
            raise NodeExecutionError(f"Node '{node.id}' has no logic bound", node_id=node.id)

        result = node.logic(copy.deepcopy(dict(state)), context)
        if inspect.isawaitable(result):
            result = await result

        if result is None:
            return NodeUpdate({})
        if isinstance(result, (Suspend, NodeUpdate)):
            return result
        if isinstance(result, Mapping):
            return NodeUpdate(dict(result))
        raise NodeExecutionError(
            f"Node '{node.id}' returned {type(result).__name__}; "
            f"expected a dict, None or Suspend",
            node_id=node.id,
        )

    async def _run_tool_node(
        self, node: Node, state: Mapping[str, Any], context: NodeContext
    ) -> NodeOutcome:
        messages = state.get(node.messages_key) or []
        if not isinstance(messages, (list, tuple)):
            raise NodeExecutionError(
                f"Tool node '{node.id}' expected a list in '{node.messages_key}'",
                node_id=node.id,
            )
        calls = _extract_tool_calls(messages[-1]) if messages else []
        if not calls:
            logger.debug(f"Tool node {node.id}: no pending tool calls")
            return NodeUpdate({})

        results: List[Dict[str, Any]] = []
        for index, call in enumerate(calls):
            try:
                call_id, name, arguments = _parse_tool_call(call, index)
            except ValueError as e:
                results.append(_tool_message(f"call_{index}", "unknown", f"Error: {e}", error=True))
                continue

            result = await context.capabilities.call_tool(name, arguments, call_id=call_id)
            if result.ok:
                results.append(_tool_message(call_id, name, result.value))
            else:
                logger.debug(f"Tool {name} failed in node {node.id}: {result.error}")
                results.append(
                    _tool_message(call_id, name, f"Error: {result.error}", error=True)
                )

        return NodeUpdate({node.messages_key: results})


__all__ = [
    "Suspend",
    "NodeUpdate",
    "NodeOutcome",
    "NodeContext",
    "StepExecutor",
]
