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

"""Provider protocol and adapters for external capabilities.

Model, A2A, MCP and skill clients live outside the runtime. Anything with an
``invoke(name, arguments)`` method (sync or async) can be injected as a
provider; ``supports(name)`` is optional and lets the dispatcher pick the
right provider for a bare tool call.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Protocol,
    runtime_checkable,
)


@runtime_checkable
class CapabilityProvider(Protocol):
    """Protocol for an external capability collaborator.

    Retry and backoff policy, if any, belongs to the provider.
    """

    def invoke(self, name: str, arguments: Dict[str, Any]) -> Any | Awaitable[Any]: ...


async def call_provider(provider: Any, name: str, arguments: Dict[str, Any]) -> Any:
    """Invoke a provider, awaiting the result if it is a coroutine."""
    result = provider.invoke(name, arguments)
    if inspect.isawaitable(result):
        return await result
    return result


def provider_supports(provider: Any, name: str) -> bool:
    """Whether a provider claims a capability name.

    Providers without a ``supports`` method accept every name.
    """
    supports = getattr(provider, "supports", None)
    if supports is None:
        return True
    return bool(supports(name))


class CallableProvider:
    """Adapt a plain ``fn(name, arguments)`` callable to the provider protocol.

    Example:
        async def call_mcp(name, arguments):
            return await mcp_session.call_tool(name, arguments)

        provider = CallableProvider(call_mcp, names={"search", "fetch"})
    """

    def __init__(
        self,
        func: Callable[[str, Dict[str, Any]], Any],
        names: Optional[Iterable[str]] = None,
    ):
        self._func = func
        self._names = set(names) if names is not None else None

    def supports(self, name: str) -> bool:
        return self._names is None or name in self._names

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> Any:
        result = self._func(name, arguments)
        if inspect.isawaitable(result):
            return await result
        return result


class ToolTableProvider:
    """Provider backed by a table of named functions called with ``**arguments``.

    Useful for skills and local tools:

        provider = ToolTableProvider({"add": lambda a, b: a + b})
        await provider.invoke("add", {"a": 1, "b": 2})  # 3
    """

    def __init__(self, tools: Mapping[str, Callable[..., Any]]):
        self._tools = dict(tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def supports(self, name: str) -> bool:
        return name in self._tools

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> Any:
        try:
            func = self._tools[name]
        except KeyError:
            raise LookupError(
                f"Unknown capability '{name}'. Available: {list(self._tools)}"
            ) from None
        result = func(**(arguments or {}))
        if asyncio.iscoroutine(result):
            return await result
        return result


__all__ = [
    "CapabilityProvider",
    "CallableProvider",
    "ToolTableProvider",
    "call_provider",
    "provider_supports",
]
