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

"""Capability dispatcher: the boundary between nodes and external providers.

Nodes never talk to model, A2A, MCP or skill clients directly. They hold a
BoundCapabilities view that forwards each request through the dispatcher,
which enforces the node's enabled-capability flags and turns every provider
failure into a CapabilityResult carrying a CapabilityError.

Example:
    dispatcher = CapabilityDispatcher({
        CapabilityKind.MODEL: my_model_provider,
        CapabilityKind.MCP: CallableProvider(call_mcp_tool),
    })
    flags = CapabilityFlags(model=True, mcp=True)

    result = await dispatcher.dispatch(
        CapabilityRequest(CapabilityKind.MCP, "search", {"q": "loom"}), flags
    )
    if result.ok:
        print(result.value)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from loom.capabilities.providers import call_provider, provider_supports
from loom.core.errors import CapabilityError

logger = logging.getLogger(__name__)


class CapabilityKind(str, Enum):
    """Kinds of external capability a node may invoke."""

    MODEL = "model"
    A2A = "a2a"
    MCP = "mcp"
    SKILL = "skill"

    @classmethod
    def parse(cls, value: "CapabilityKind | str") -> "CapabilityKind":
        if isinstance(value, CapabilityKind):
            return value
        key = str(value).strip().lower()
        if key == "skills":
            key = "skill"
        return cls(key)


# Order used when a tool call does not say which kind serves it
TOOL_KIND_ORDER: Tuple[CapabilityKind, ...] = (
    CapabilityKind.MCP,
    CapabilityKind.A2A,
    CapabilityKind.SKILL,
)


@dataclass(frozen=True)
class CapabilityFlags:
    """Capabilities enabled for one node.

    Attributes:
        model: Node may call the bound model
        a2a: Node may call remote agents
        mcp: Node may call MCP tools
        skills: Node may invoke skills
    """

    model: bool = True
    a2a: bool = False
    mcp: bool = False
    skills: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CapabilityFlags":
        if not data:
            return cls()
        unknown = set(data) - {"model", "a2a", "mcp", "skills", "skill"}
        if unknown:
            raise ValueError(f"Unknown capability flags: {sorted(unknown)}")
        return cls(
            model=bool(data.get("model", True)),
            a2a=bool(data.get("a2a", False)),
            mcp=bool(data.get("mcp", False)),
            skills=bool(data.get("skills", data.get("skill", False))),
        )

    def allows(self, kind: CapabilityKind | str) -> bool:
        kind = CapabilityKind.parse(kind)
        return {
            CapabilityKind.MODEL: self.model,
            CapabilityKind.A2A: self.a2a,
            CapabilityKind.MCP: self.mcp,
            CapabilityKind.SKILL: self.skills,
        }[kind]

    def tool_kinds(self) -> list[CapabilityKind]:
        """Enabled non-model kinds in dispatch order."""
        return [kind for kind in TOOL_KIND_ORDER if self.allows(kind)]

    def to_dict(self) -> Dict[str, bool]:
        return {"model": self.model, "a2a": self.a2a, "mcp": self.mcp, "skills": self.skills}


@dataclass
class CapabilityRequest:
    """A single request to an external capability.

    Attributes:
        kind: Which collaborator serves the request
        name: Tool/skill/agent name (or model id for model calls)
        arguments: Call arguments
        call_id: Caller's correlation id, e.g. a tool-call id
    """

    kind: CapabilityKind
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.kind = CapabilityKind.parse(self.kind)


@dataclass
class CapabilityResult:
    """Outcome of a capability request.

    Failures are values: ``ok`` is False and ``error`` holds the
    CapabilityError. The invoking node decides whether that is recoverable.
    """

    kind: CapabilityKind
    name: str
    ok: bool
    value: Any = None
    error: Optional[CapabilityError] = None
    call_id: Optional[str] = None
    execution_time_ms: float = 0.0

    def unwrap(self) -> Any:
        """Return the value or raise the capability error."""
        if not self.ok:
            assert self.error is not None
            raise self.error
        return self.value


class CapabilityDispatcher:
    """Forwards capability requests to injected providers.

    Never retries and never falls back from one kind to another.
    """

    def __init__(self, providers: Optional[Mapping[CapabilityKind | str, Any]] = None):
        self._providers: Dict[CapabilityKind, Any] = {}
        for kind, provider in (providers or {}).items():
            self._providers[CapabilityKind.parse(kind)] = provider

    def with_providers(
        self, overrides: Optional[Mapping[CapabilityKind | str, Any]]
    ) -> "CapabilityDispatcher":
        """New dispatcher with ``overrides`` layered over these providers."""
        merged: Dict[CapabilityKind | str, Any] = dict(self._providers)
        for kind, provider in (overrides or {}).items():
            merged[CapabilityKind.parse(kind)] = provider
        return CapabilityDispatcher(merged)

    def provider_for(self, kind: CapabilityKind | str) -> Optional[Any]:
        return self._providers.get(CapabilityKind.parse(kind))

    @property
    def kinds(self) -> list[CapabilityKind]:
        return list(self._providers)

    def resolve_tool_kind(self, name: str, flags: CapabilityFlags) -> Optional[CapabilityKind]:
        """Pick the enabled kind whose provider serves a tool name."""
        for kind in flags.tool_kinds():
            provider = self._providers.get(kind)
            if provider is not None and provider_supports(provider, name):
                return kind
        return None

    def _failure(
        self, request: CapabilityRequest, message: str, started: float
    ) -> CapabilityResult:
        return CapabilityResult(
            kind=request.kind,
            name=request.name,
            ok=False,
            error=CapabilityError(message, kind=request.kind.value, capability=request.name),
            call_id=request.call_id,
            execution_time_ms=(time.time() - started) * 1000,
        )

    async def dispatch(
        self, request: CapabilityRequest, flags: CapabilityFlags
    ) -> CapabilityResult:
        """Forward one request to its provider.

        Args:
            request: The capability request
            flags: Enabled capabilities of the requesting node

        Returns:
            CapabilityResult; never raises for provider failures
        """
        started = time.time()
        if not flags.allows(request.kind):
            logger.debug(f"Capability {request.kind.value} not enabled for {request.name}")
            return self._failure(
                request, f"Capability '{request.kind.value}' is not enabled for this node", started
            )

        provider = self._providers.get(request.kind)
        if provider is None:
            return self._failure(
                request, f"No provider registered for capability '{request.kind.value}'", started
            )

        try:
            value = await call_provider(provider, request.name, request.arguments)
        except CapabilityError as e:
            result = self._failure(request, e.message, started)
            result.error = e
            return result
        except Exception as e:
            logger.warning(f"Capability {request.kind.value}:{request.name} failed: {e}")
            result = self._failure(request, f"{type(e).__name__}: {e}", started)
            if result.error is not None:
                result.error.__cause__ = e
            return result

        logger.debug(f"Capability {request.kind.value}:{request.name} succeeded")
        return CapabilityResult(
            kind=request.kind,
            name=request.name,
            ok=True,
            value=value,
            call_id=request.call_id,
            execution_time_ms=(time.time() - started) * 1000,
        )


class BoundCapabilities:
    """Node-scoped view of the dispatcher, handed to node logic.

    Example:
        async def call_model(state, ctx):
            result = await ctx.capabilities.model({"messages": state["messages"]})
            if not result.ok:
                return {"errors": [str(result.error)]}
            return {"messages": [result.value]}
    """

    def __init__(self, dispatcher: CapabilityDispatcher, flags: CapabilityFlags, node_id: str):
        self._dispatcher = dispatcher
        self._flags = flags
        self._node_id = node_id

    @property
    def flags(self) -> CapabilityFlags:
        return self._flags

    @property
    def node_id(self) -> str:
        return self._node_id

    def enabled(self, kind: CapabilityKind | str) -> bool:
        return self._flags.allows(kind) and self._dispatcher.provider_for(kind) is not None

    async def invoke(
        self,
        kind: CapabilityKind | str,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        call_id: Optional[str] = None,
    ) -> CapabilityResult:
        request = CapabilityRequest(
            kind=CapabilityKind.parse(kind),
            name=name,
            arguments=dict(arguments or {}),
            call_id=call_id,
        )
        return await self._dispatcher.dispatch(request, self._flags)

    async def model(self, arguments: Dict[str, Any], name: str = "default") -> CapabilityResult:
        return await self.invoke(CapabilityKind.MODEL, name, arguments)

    async def a2a(self, agent: str, arguments: Dict[str, Any]) -> CapabilityResult:
        return await self.invoke(CapabilityKind.A2A, agent, arguments)

    async def mcp(self, tool: str, arguments: Dict[str, Any]) -> CapabilityResult:
        return await self.invoke(CapabilityKind.MCP, tool, arguments)

    async def skill(self, name: str, arguments: Dict[str, Any]) -> CapabilityResult:
        return await self.invoke(CapabilityKind.SKILL, name, arguments)

    async def call_tool(
        self, name: str, arguments: Dict[str, Any], call_id: Optional[str] = None
    ) -> CapabilityResult:
        """Dispatch a bare tool call to whichever enabled kind serves it."""
        kind = self._dispatcher.resolve_tool_kind(name, self._flags)
        if kind is None:
            return CapabilityResult(
                kind=CapabilityKind.MCP,
                name=name,
                ok=False,
                error=CapabilityError(
                    f"No enabled capability provides tool '{name}'", capability=name
                ),
                call_id=call_id,
            )
        return await self.invoke(kind, name, arguments, call_id=call_id)


__all__ = [
    "CapabilityKind",
    "CapabilityFlags",
    "CapabilityRequest",
    "CapabilityResult",
    "CapabilityDispatcher",
    "BoundCapabilities",
    "TOOL_KIND_ORDER",
]
