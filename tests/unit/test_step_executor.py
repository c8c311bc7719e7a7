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

"""Tests for StepExecutor (function and tool nodes)."""

import json

import pytest

from loom.capabilities.dispatcher import CapabilityDispatcher, CapabilityFlags, CapabilityKind
from loom.capabilities.providers import ToolTableProvider
from loom.core.errors import NodeExecutionError
from loom.graph.definition import Node, NodeKind
from loom.graph.executor import NodeUpdate, StepExecutor, Suspend


def _run(executor, node, state, **kwargs):
    context = executor.context_for(node, thread_id="t1", step=0, **kwargs)
    return executor.run_node(node, state, context)


class TestFunctionNodes:
    """Tests for function node execution."""

    @pytest.mark.asyncio
    async def test_dict_becomes_update(self):
        node = Node("a", logic=lambda state, ctx: {"count": state["count"] + 1})
        outcome = await _run(StepExecutor(), node, {"count": 1})
        assert outcome == NodeUpdate({"count": 2})

    @pytest.mark.asyncio
    async def test_async_logic(self):
        async def logic(state, ctx):
            return {"seen": ctx.node_id}

        outcome = await _run(StepExecutor(), Node("a", logic=logic), {})
        assert outcome.values == {"seen": "a"}

    @pytest.mark.asyncio
    async def test_none_means_no_change(self):
        outcome = await _run(StepExecutor(), Node("a", logic=lambda s, c: None), {})
        assert outcome == NodeUpdate({})

    @pytest.mark.asyncio
    async def test_suspend_passes_through(self):
        node = Node("a", logic=lambda s, c: Suspend({"question": "ok?"}))
        outcome = await _run(StepExecutor(), node, {})
        assert isinstance(outcome, Suspend)
        assert outcome.prompt == {"question": "ok?"}

    @pytest.mark.asyncio
    async def test_resume_value_visible(self):
        node = Node("a", logic=lambda s, ctx: {"answer": ctx.resume_value, "again": ctx.resumed})
        outcome = await _run(StepExecutor(), node, {}, resume_value="yes", resumed=True)
        assert outcome.values == {"answer": "yes", "again": True}

    @pytest.mark.asyncio
    async def test_logic_gets_a_copy(self):
        """Mutating the state argument does not touch the caller's state."""

        def meddle(state, ctx):
            state["items"].append("x")
            return None

        state = {"items": []}
        await _run(StepExecutor(), Node("a", logic=meddle), state)
        assert state == {"items": []}

    @pytest.mark.asyncio
    async def test_exception_wrapped_with_cause(self):
        def broken(state, ctx):
            raise RuntimeError("boom")

        with pytest.raises(NodeExecutionError) as exc_info:
            await _run(StepExecutor(), Node("a", logic=broken), {})
        assert exc_info.value.node_id == "a"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "boom" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_return_type(self):
        with pytest.raises(NodeExecutionError, match="expected a dict"):
            await _run(StepExecutor(), Node("a", logic=lambda s, c: 42), {})

    @pytest.mark.asyncio
    async def test_logic_invoked_once(self):
        """The executor never retries."""
        calls = []

        def broken(state, ctx):
            calls.append(1)
            raise ValueError("nope")

        with pytest.raises(NodeExecutionError):
            await _run(StepExecutor(), Node("a", logic=broken), {})
        assert calls == [1]


class TestToolNodes:
    """Tests for tool node dispatch."""

    def _executor(self):
        return StepExecutor(
            CapabilityDispatcher(
                {
                    CapabilityKind.MCP: ToolTableProvider({"add": lambda a, b: a + b}),
                    CapabilityKind.SKILL: ToolTableProvider({"shout": lambda text: text.upper()}),
                }
            )
        )

    def _node(self, **flags):
        return Node("tools", kind=NodeKind.TOOL, capabilities=CapabilityFlags(**flags))

    @pytest.mark.asyncio
    async def test_dispatches_pending_calls(self):
        state = {
            "messages": [
                {
                    "role": "assistant",
                    "tool_calls": [
                        {"id": "c1", "name": "add", "arguments": {"a": 1, "b": 2}},
                        {
                            "id": "c2",
                            "function": {"name": "shout", "arguments": json.dumps({"text": "hi"})},
                        },
                    ],
                }
            ]
        }
        outcome = await _run(self._executor(), self._node(mcp=True, skills=True), state)
        assert outcome.values == {
            "messages": [
                {"role": "tool", "tool_call_id": "c1", "name": "add", "content": 3},
                {"role": "tool", "tool_call_id": "c2", "name": "shout", "content": "HI"},
            ]
        }

    @pytest.mark.asyncio
    async def test_failed_call_becomes_error_message(self):
        """A disabled capability yields an error tool message, not a failure."""
        state = {
            "messages": [
                {"role": "assistant", "tool_calls": [{"id": "c1", "name": "shout", "args": {"text": "x"}}]}
            ]
        }
        outcome = await _run(self._executor(), self._node(mcp=True), state)
        (message,) = outcome.values["messages"]
        assert message["status"] == "error"
        assert message["tool_call_id"] == "c1"
        assert message["content"].startswith("Error:")

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_error_message(self):
        state = {
            "messages": [
                {"role": "assistant", "tool_calls": [{"id": "c1", "name": "add", "arguments": {"a": 1}}]}
            ]
        }
        outcome = await _run(self._executor(), self._node(mcp=True), state)
        assert outcome.values["messages"][0]["status"] == "error"

    @pytest.mark.asyncio
    async def test_no_pending_calls(self):
        state = {"messages": [{"role": "assistant", "content": "done"}]}
        outcome = await _run(self._executor(), self._node(mcp=True), state)
        assert outcome == NodeUpdate({})

    @pytest.mark.asyncio
    async def test_empty_messages(self):
        outcome = await _run(self._executor(), self._node(mcp=True), {"messages": []})
        assert outcome == NodeUpdate({})

    @pytest.mark.asyncio
    async def test_custom_messages_key(self):
        node = Node(
            "tools",
            kind=NodeKind.TOOL,
            capabilities=CapabilityFlags(mcp=True),
            messages_key="history",
        )
        state = {"history": [{"tool_calls": [{"id": "c1", "name": "add", "arguments": {"a": 2, "b": 2}}]}]}
        outcome = await _run(self._executor(), node, state)
        assert outcome.values["history"][0]["content"] == 4

    @pytest.mark.asyncio
    async def test_provider_cannot_mutate_state(self):
        """Tool providers receive their own copy of the call arguments."""

        def tamper(payload):
            payload["tampered"] = True
            return "ok"

        executor = StepExecutor(
            CapabilityDispatcher({CapabilityKind.MCP: ToolTableProvider({"tamper": tamper})})
        )
        call = {"id": "c1", "name": "tamper", "arguments": {"payload": {"key": "v"}}}
        state = {"messages": [{"role": "assistant", "tool_calls": [call]}]}

        outcome = await _run(executor, self._node(mcp=True), state)

        assert outcome.values["messages"][0]["content"] == "ok"
        assert call["arguments"] == {"payload": {"key": "v"}}
