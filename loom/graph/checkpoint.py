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

"""Execution checkpoints and the in-memory checkpoint store.

A Checkpoint is a versioned, JSON-serialisable snapshot of one execution:
where it is (current node, step counter), what it holds (state), and why it
stopped (status, pending interrupt, error). Durable backends live in
``loom.graph.checkpointer``.
"""

from __future__ import annotations

import builtins
import copy
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from loom.core.errors import CheckpointError

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = 1


class RunStatus(str, Enum):
    """Lifecycle of an execution."""

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class InterruptKind(str, Enum):
    """Why a run paused."""

    DYNAMIC = "dynamic"  # node returned Suspend
    BEFORE = "before"  # static interrupt_before
    AFTER = "after"  # static interrupt_after


@dataclass
class Interrupt:
    """A pending request for external input.

    Attributes:
        node_id: Node that requested (or is guarded by) the interrupt
        prompt: Payload returned to the caller
        kind: dynamic, before or after
    """

    node_id: str
    prompt: Any = None
    kind: InterruptKind = InterruptKind.DYNAMIC

    def to_dict(self) -> Dict[str, Any]:
        return {"node_id": self.node_id, "prompt": self.prompt, "kind": self.kind.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interrupt":
        return cls(
            node_id=data["node_id"],
            prompt=data.get("prompt"),
            kind=InterruptKind(data.get("kind", InterruptKind.DYNAMIC.value)),
        )


@dataclass
class Checkpoint:
    """Snapshot of an execution.

    Attributes:
        thread_id: Execution identifier
        graph_name: Name of the compiled graph
        current_node: Node that runs next (or is paused on)
        state: Fully populated state
        step: Node executions completed so far
        status: Run status at the time of the snapshot
        pending_interrupt: Set while paused
        node_history: Completed node ids in order
        error: ``LoomError.to_dict()`` of the failure, if failed
        checkpoint_id: Unique id of this snapshot
        timestamp: Creation time (epoch seconds)
        version: Serialisation format version
        metadata: Additional metadata
    """

    thread_id: str
    graph_name: str
    current_node: str
    state: Dict[str, Any]
    step: int = 0
    status: RunStatus = RunStatus.RUNNING
    pending_interrupt: Optional[Interrupt] = None
    node_history: List[str] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    checkpoint_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)
    version: int = CHECKPOINT_VERSION
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize checkpoint to dictionary."""
        return {
            "version": self.version,
            "checkpoint_id": self.checkpoint_id,
            "thread_id": self.thread_id,
            "graph_name": self.graph_name,
            "current_node": self.current_node,
            "state": self.state,
            "step": self.step,
            "status": self.status.value,
            "pending_interrupt": (
                self.pending_interrupt.to_dict() if self.pending_interrupt else None
            ),
            "node_history": list(self.node_history),
            "error": self.error,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        """Deserialize checkpoint from dictionary.

        Raises:
            CheckpointError: If the format version is unknown or fields are missing
        """
        if not isinstance(data, dict):
            raise CheckpointError(
                f"Malformed checkpoint: expected an object, got {type(data).__name__}"
            )
        version = data.get("version")
        if version != CHECKPOINT_VERSION:
            raise CheckpointError(
                f"Unsupported checkpoint version {version!r} (expected {CHECKPOINT_VERSION})"
            )
        try:
            interrupt = data.get("pending_interrupt")
            return cls(
                thread_id=data["thread_id"],
                graph_name=data["graph_name"],
                current_node=data["current_node"],
                state=data["state"],
                step=int(data["step"]),
                status=RunStatus(data["status"]),
                pending_interrupt=Interrupt.from_dict(interrupt) if interrupt else None,
                node_history=list(data.get("node_history", [])),
                error=data.get("error"),
                checkpoint_id=data["checkpoint_id"],
                timestamp=data["timestamp"],
                version=version,
                metadata=data.get("metadata", {}),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise CheckpointError(f"Malformed checkpoint: {e}") from e

    def successor(self, **changes: Any) -> "Checkpoint":
        """Copy of this checkpoint with a fresh id and timestamp."""
        data = copy.deepcopy(self.__dict__)
        data.update(changes)
        data["checkpoint_id"] = uuid.uuid4().hex
        data["timestamp"] = time.time()
        return Checkpoint(**data)


@runtime_checkable
class CheckpointerProtocol(Protocol):
    """Protocol for checkpoint persistence."""

    async def save(self, checkpoint: Checkpoint) -> None:
        """Save a checkpoint."""
        ...

    async def load(self, thread_id: str) -> Optional[Checkpoint]:
        """Load latest checkpoint for thread."""
        ...

    async def list(self, thread_id: str) -> builtins.list[Checkpoint]:
        """List all checkpoints for thread, oldest first."""
        ...

    async def delete_thread(self, thread_id: str) -> int:
        """Delete all checkpoints for thread."""
        ...


class MemoryCheckpointer:
    """In-memory checkpoint storage.

    Suitable for development and testing. Checkpoints are copied on the way
    in and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._checkpoints: dict[str, builtins.list[Checkpoint]] = {}

    async def save(self, checkpoint: Checkpoint) -> None:
        """Save checkpoint to memory."""
        self._checkpoints.setdefault(checkpoint.thread_id, []).append(copy.deepcopy(checkpoint))
        logger.debug(
            f"Saved checkpoint {checkpoint.checkpoint_id} "
            f"(thread: {checkpoint.thread_id}, status: {checkpoint.status.value})"
        )

    async def load(self, thread_id: str) -> Optional[Checkpoint]:
        """Load latest checkpoint."""
        checkpoints = self._checkpoints.get(thread_id, [])
        return copy.deepcopy(checkpoints[-1]) if checkpoints else None

    async def list(self, thread_id: str) -> builtins.list[Checkpoint]:
        """List all checkpoints."""
        return copy.deepcopy(self._checkpoints.get(thread_id, []))

    async def delete_thread(self, thread_id: str) -> int:
        return len(self._checkpoints.pop(thread_id, []))

    def threads(self) -> builtins.list[str]:
        return builtins.list(self._checkpoints)


__all__ = [
    "CHECKPOINT_VERSION",
    "RunStatus",
    "InterruptKind",
    "Interrupt",
    "Checkpoint",
    "CheckpointerProtocol",
    "MemoryCheckpointer",
]
