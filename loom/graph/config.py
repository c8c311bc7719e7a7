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

"""Focused execution configs.

GraphConfig is a facade composing small configs, each covering one concern:

    - ExecutionConfig: recursion limit
    - CheckpointConfig: where and when checkpoints are written
    - InterruptConfig: static interrupt points
    - ObservabilityConfig: event emission
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, FrozenSet, Iterable, Optional

from loom.config.settings import LoomSettings

DEFAULT_RECURSION_LIMIT = 25


class CheckpointMode(str, Enum):
    """When the runtime writes checkpoints."""

    EVERY_STEP = "every_step"
    INTERRUPTS_ONLY = "interrupts_only"


@dataclass(frozen=True)
class ExecutionConfig:
    """Execution limits."""

    recursion_limit: int = DEFAULT_RECURSION_LIMIT

    def __post_init__(self) -> None:
        if self.recursion_limit <= 0:
            raise ValueError(f"recursion_limit must be positive, got {self.recursion_limit}")


@dataclass(frozen=True)
class CheckpointConfig:
    """State persistence.

    Attributes:
        checkpointer: Backend name used when no checkpointer instance is injected
        path: Database file or directory for durable backends
        mode: every_step or interrupts_only
    """

    checkpointer: str = "memory"
    path: Optional[str] = None
    mode: CheckpointMode = CheckpointMode.EVERY_STEP


@dataclass(frozen=True)
class InterruptConfig:
    """Static interrupt points."""

    interrupt_before: FrozenSet[str] = field(default_factory=frozenset)
    interrupt_after: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(
        cls,
        interrupt_before: Optional[Iterable[str]] = None,
        interrupt_after: Optional[Iterable[str]] = None,
    ) -> "InterruptConfig":
        return cls(frozenset(interrupt_before or ()), frozenset(interrupt_after or ()))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Event emission."""

    emit_events: bool = True


@dataclass(frozen=True)
class GraphConfig:
    """Facade composing the focused configs."""

    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    checkpoint: CheckpointConfig = field(default_factory=CheckpointConfig)
    interrupt: InterruptConfig = field(default_factory=InterruptConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_settings(cls, settings: Optional[LoomSettings] = None) -> "GraphConfig":
        """Build a config from environment-backed settings."""
        settings = settings or LoomSettings()
        return cls(
            execution=ExecutionConfig(recursion_limit=settings.recursion_limit),
            checkpoint=CheckpointConfig(
                checkpointer=settings.checkpointer,
                path=str(settings.resolved_checkpoint_path()),
                mode=CheckpointMode(settings.checkpoint_mode),
            ),
            observability=ObservabilityConfig(emit_events=settings.emit_events),
        )

    def with_overrides(
        self,
        recursion_limit: Optional[int] = None,
        interrupt_before: Optional[Iterable[str]] = None,
        interrupt_after: Optional[Iterable[str]] = None,
        checkpoint_mode: Optional[CheckpointMode | str] = None,
        **_: Any,
    ) -> "GraphConfig":
        """Copy with per-call overrides applied."""
        config = self
        if recursion_limit is not None:
            config = replace(config, execution=ExecutionConfig(recursion_limit=recursion_limit))
        if interrupt_before is not None or interrupt_after is not None:
            config = replace(
                config,
                interrupt=InterruptConfig.of(
                    interrupt_before
                    if interrupt_before is not None
                    else config.interrupt.interrupt_before,
                    interrupt_after
                    if interrupt_after is not None
                    else config.interrupt.interrupt_after,
                ),
            )
        if checkpoint_mode is not None:
            config = replace(
                config,
                checkpoint=replace(config.checkpoint, mode=CheckpointMode(checkpoint_mode)),
            )
        return config


__all__ = [
    "DEFAULT_RECURSION_LIMIT",
    "CheckpointMode",
    "ExecutionConfig",
    "CheckpointConfig",
    "InterruptConfig",
    "ObservabilityConfig",
    "GraphConfig",
]
