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

"""Centralized error types for the Loom runtime.

This module provides:
- A base exception carrying category, details and a correlation ID
- Structural errors raised while compiling a graph
- Run-fatal errors (node failure, routing violation, recursion limit, cancel)
- Capability errors surfaced to node logic as ordinary failure values
- Caller errors for misuse of the start/resume API
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""

    COMPILATION = "compilation"
    NODE_EXECUTION = "node_execution"
    ROUTING = "routing"
    RECURSION_LIMIT = "recursion_limit"
    CAPABILITY = "capability"
    CANCELLED = "cancelled"
    CHECKPOINT = "checkpoint"
    INVALID_INPUT = "invalid_input"
    UNKNOWN = "unknown"


class LoomError(Exception):
    """Base exception for all Loom errors.

    Provides structured error information including:
    - Error category
    - Correlation ID for tracking
    - Recovery hint
    - Free-form details for serialization into checkpoints
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": type(self).__name__,
            "error": self.message,
            "category": self.category.value,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return self.message


class CompilationError(LoomError):
    """Graph declaration violates a structural invariant.

    Attributes:
        problems: Every problem found, each naming the offending node or edge
    """

    category = ErrorCategory.COMPILATION

    def __init__(self, problems: Sequence[str] | str, **kwargs: Any):
        if isinstance(problems, str):
            problems = [problems]
        self.problems: List[str] = list(problems)
        super().__init__(
            f"Invalid graph: {'; '.join(self.problems)}",
            recovery_hint="Fix the listed nodes/edges and compile again.",
            **kwargs,
        )
        self.details["problems"] = self.problems


class NodeExecutionError(LoomError):
    """A node's logic failed internally. Never retried by the runtime."""

    category = ErrorCategory.NODE_EXECUTION

    def __init__(self, message: str, node_id: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.node_id = node_id
        self.details["node_id"] = node_id


class RoutingViolation(LoomError):
    """A conditional edge selected a target outside its declared set."""

    category = ErrorCategory.ROUTING

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        target: Any = None,
        possible_targets: Optional[Sequence[str]] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.source = source
        self.target = target
        self.possible_targets = list(possible_targets or [])
        self.details.update(
            {
                "source": source,
                "target": repr(target),
                "possible_targets": self.possible_targets,
            }
        )


class RecursionLimitExceeded(LoomError):
    """The per-run step counter reached the configured ceiling."""

    category = ErrorCategory.RECURSION_LIMIT

    def __init__(self, limit: int, node_id: Optional[str] = None, **kwargs: Any):
        super().__init__(
            f"Recursion limit of {limit} steps reached without hitting __end__"
            + (f" (next node: {node_id})" if node_id else ""),
            recovery_hint=(
                "The graph may never converge. If the workflow is legitimately long, "
                "raise recursion_limit deliberately."
            ),
            **kwargs,
        )
        self.limit = limit
        self.node_id = node_id
        self.details.update({"limit": limit, "node_id": node_id})


class CapabilityError(LoomError):
    """A bound model/tool/skill call failed.

    Returned to node logic inside a CapabilityResult rather than raised
    through the runtime.
    """

    category = ErrorCategory.CAPABILITY

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        capability: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.capability = capability
        self.details.update({"kind": kind, "capability": capability})


class RunCancelledError(LoomError):
    """Externally requested termination observed at a step boundary."""

    category = ErrorCategory.CANCELLED

    def __init__(self, thread_id: str, **kwargs: Any):
        super().__init__(f"Run {thread_id} was cancelled", **kwargs)
        self.thread_id = thread_id
        self.details["thread_id"] = thread_id


# Short alias matching the run-failure reason name
Cancelled = RunCancelledError


class CheckpointError(LoomError):
    """A checkpoint could not be read or written."""

    category = ErrorCategory.CHECKPOINT


class ThreadNotFoundError(LoomError):
    """No checkpoint exists for the requested thread."""

    category = ErrorCategory.INVALID_INPUT

    def __init__(self, thread_id: str, **kwargs: Any):
        super().__init__(f"No execution found for thread: {thread_id}", **kwargs)
        self.thread_id = thread_id


class InvalidResumeError(LoomError):
    """Resume requested for a run that is not paused."""

    category = ErrorCategory.INVALID_INPUT

    def __init__(self, thread_id: str, status: str, **kwargs: Any):
        super().__init__(
            f"Cannot resume thread {thread_id}: run is {status}, not paused", **kwargs
        )
        self.thread_id = thread_id
        self.status = status


# Errors that terminate a run with status FAILED
RUN_FATAL_ERRORS = (
    NodeExecutionError,
    RoutingViolation,
    RecursionLimitExceeded,
    RunCancelledError,
)


def error_from_dict(data: Dict[str, Any]) -> LoomError:
    """Rebuild a (lossy) LoomError from its ``to_dict`` form.

    Used when a failed run is rehydrated from a checkpoint.
    """
    error_types = {
        cls.__name__: cls
        for cls in (
            NodeExecutionError,
            RoutingViolation,
            RecursionLimitExceeded,
            RunCancelledError,
            CapabilityError,
        )
    }
    cls = error_types.get(data.get("type", ""), LoomError)
    error = LoomError.__new__(cls)
    LoomError.__init__(
        error,
        data.get("error", ""),
        details=dict(data.get("details") or {}),
        recovery_hint=data.get("recovery_hint"),
        correlation_id=data.get("correlation_id"),
    )
    for key, value in error.details.items():
        if not hasattr(error, key):
            setattr(error, key, value)
    return error


__all__ = [
    "ErrorCategory",
    "LoomError",
    "CompilationError",
    "NodeExecutionError",
    "RoutingViolation",
    "RecursionLimitExceeded",
    "CapabilityError",
    "RunCancelledError",
    "Cancelled",
    "CheckpointError",
    "ThreadNotFoundError",
    "InvalidResumeError",
    "RUN_FATAL_ERRORS",
    "error_from_dict",
]
