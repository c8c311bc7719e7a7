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

"""Conditional routing between nodes."""

from __future__ import annotations

import copy
import inspect
import logging
from typing import Any, Mapping

from loom.core.errors import RoutingViolation
from loom.graph.definition import Edge, EdgeKind

logger = logging.getLogger(__name__)


class ConditionalRouter:
    """Selects the next node id for an edge.

    Normal edges resolve to their target without evaluating anything. For
    conditional edges the condition's result (translated through the path
    map when one is declared) must be one of the declared possible targets;
    anything else is a RoutingViolation.
    """

    async def next_node(self, edge: Edge, state: Mapping[str, Any]) -> str:
        """Resolve any edge to the next node id."""
        if edge.kind == EdgeKind.NORMAL:
            assert edge.target is not None
            return edge.target
        return await self.route(edge, state)

    async def route(self, edge: Edge, state: Mapping[str, Any]) -> str:
        """Evaluate a conditional edge.

        Args:
            edge: Conditional edge
            state: Current state (the condition receives a copy)

        Returns:
            Selected target node id

        Raises:
            RoutingViolation: If the condition raises or selects an undeclared target
        """
        if edge.condition is None:
            raise RoutingViolation(
                f"Conditional edge from '{edge.source}' has no condition",
                source=edge.source,
                possible_targets=edge.possible_targets,
            )

        try:
            result = edge.condition(copy.deepcopy(dict(state)))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise RoutingViolation(
                f"Condition on edge from '{edge.source}' raised {type(e).__name__}: {e}",
                source=edge.source,
                possible_targets=edge.possible_targets,
            ) from e

        target = result
        if edge.path_map is not None and isinstance(result, str) and result in edge.path_map:
            target = edge.path_map[result]

        if not isinstance(target, str) or target not in edge.possible_targets:
            raise RoutingViolation(
                f"Condition on edge from '{edge.source}' selected {result!r}, "
                f"which is not one of {list(edge.possible_targets)}",
                source=edge.source,
                target=result,
                possible_targets=edge.possible_targets,
            )

        logger.debug(f"Routed {edge.source} -> {target}")
        return target


async def route(edge: Edge, state: Mapping[str, Any]) -> str:
    """Evaluate a conditional edge with a default router."""
    return await ConditionalRouter().route(edge, state)


__all__ = ["ConditionalRouter", "route"]
