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

"""Graph runtime: drives executions and owns the interrupt/resume lifecycle.

An execution moves through four states:

    RUNNING   --node returns Suspend-->     PAUSED
    PAUSED    --resume(thread_id, value)--> RUNNING (same node, from the top)
    RUNNING   --reaches __end__-->          COMPLETED
    RUNNING   --fatal error-->              FAILED

Each step runs one node, reduces its update into the state, selects the next
node and (by default) writes a checkpoint. A paused execution is nothing
more than its latest checkpoint, so it can be resumed by this runtime or by
a new one in another process sharing the same durable checkpointer.

Example:
    runtime = GraphRuntime(definition)
    outcome = await runtime.start({"messages": []})
    if outcome.status == RunStatus.PAUSED:
        outcome = await runtime.resume(outcome.thread_id, "approved")
    outcome.raise_for_error()
    print(outcome.state)
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping, Optional

from loom.capabilities.dispatcher import CapabilityDispatcher, CapabilityKind
from loom.config.settings import LoomSettings
from loom.core.errors import (
    RUN_FATAL_ERRORS,
    CheckpointError,
    InvalidResumeError,
    LoomError,
    NodeExecutionError,
    RecursionLimitExceeded,
    RunCancelledError,
    ThreadNotFoundError,
    error_from_dict,
)
from loom.graph.checkpoint import (
    Checkpoint,
    CheckpointerProtocol,
    Interrupt,
    InterruptKind,
    RunStatus,
)
from loom.graph.checkpointer import create_checkpointer
from loom.graph.config import CheckpointMode, GraphConfig, InterruptConfig
from loom.graph.definition import END, GraphDefinition
from loom.graph.events import EventBus, GraphEvent, GraphEventType, Observer
from loom.graph.executor import StepExecutor, Suspend
from loom.graph.router import ConditionalRouter

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """Mutable progress of one execution.

    Attributes:
        thread_id: Execution identifier
        current_node: Node that runs next
        state: Current state
        step: Node executions completed so far
        status: Lifecycle state
        pending_interrupt: Set while paused
        node_history: Completed node ids in order
        error: Fatal error, once failed
        metadata: Per-run settings persisted with the checkpoint
    """

    thread_id: str
    current_node: str
    state: Dict[str, Any]
    step: int = 0
    status: RunStatus = RunStatus.RUNNING
    pending_interrupt: Optional[Interrupt] = None
    node_history: List[str] = field(default_factory=list)
    error: Optional[LoomError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_checkpoint(self, graph_name: str) -> Checkpoint:
        return Checkpoint(
            thread_id=self.thread_id,
            graph_name=graph_name,
            current_node=self.current_node,
            state=copy.deepcopy(self.state),
            step=self.step,
            status=self.status,
            pending_interrupt=copy.deepcopy(self.pending_interrupt),
            node_history=list(self.node_history),
            error=self.error.to_dict() if self.error else None,
            metadata=copy.deepcopy(self.metadata),
        )

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint) -> "ExecutionContext":
        return cls(
            thread_id=checkpoint.thread_id,
            current_node=checkpoint.current_node,
            state=copy.deepcopy(checkpoint.state),
            step=checkpoint.step,
            status=checkpoint.status,
            pending_interrupt=copy.deepcopy(checkpoint.pending_interrupt),
            node_history=list(checkpoint.node_history),
            error=error_from_dict(checkpoint.error) if checkpoint.error else None,
            metadata=copy.deepcopy(checkpoint.metadata),
        )


@dataclass
class RunOutcome:
    """Result of ``start`` or ``resume``.

    Attributes:
        thread_id: Execution identifier (use it to resume)
        status: PAUSED, COMPLETED or FAILED
        state: State snapshot; for failed runs, the last checkpointed state
        interrupt: Pending interrupt when paused
        error: Fatal error when failed
        steps: Node executions completed in this execution so far
        node_history: Completed node ids in order
        duration: Wall-clock seconds spent in this call
    """

    thread_id: str
    status: RunStatus
    state: Dict[str, Any]
    interrupt: Optional[Interrupt] = None
    error: Optional[LoomError] = None
    steps: int = 0
    node_history: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.status != RunStatus.FAILED

    @property
    def paused(self) -> bool:
        return self.status == RunStatus.PAUSED

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def raise_for_error(self) -> "RunOutcome":
        """Raise the run's fatal error, if any; otherwise return self."""
        if self.error is not None:
            raise self.error
        return self


class IterationController:
    """Recursion guard (SRP: one counter, one ceiling)."""

    def __init__(self, recursion_limit: int):
        self.recursion_limit = recursion_limit

    def check(self, step: int, node_id: str) -> None:
        """Raise before a node runs once ``recursion_limit`` steps have completed."""
        if step >= self.recursion_limit:
            raise RecursionLimitExceeded(self.recursion_limit, node_id=node_id)


class InterruptHandler:
    """Static interrupt points (SRP: decide whether to pause around a node)."""

    def __init__(self, config: InterruptConfig):
        self.interrupt_before = config.interrupt_before
        self.interrupt_after = config.interrupt_after

    def should_interrupt_before(self, node_id: str) -> bool:
        return node_id in self.interrupt_before

    def should_interrupt_after(self, node_id: str) -> bool:
        return node_id in self.interrupt_after


class CheckpointManager:
    """Checkpoint writes for one graph (SRP: when and what to persist)."""

    def __init__(self, checkpointer: CheckpointerProtocol, graph_name: str):
        self.checkpointer = checkpointer
        self.graph_name = graph_name

    async def save(
        self,
        context: ExecutionContext,
        mode: CheckpointMode = CheckpointMode.EVERY_STEP,
        force: bool = False,
    ) -> Optional[Checkpoint]:
        if not force and mode != CheckpointMode.EVERY_STEP:
            return None
        checkpoint = context.to_checkpoint(self.graph_name)
        await self.checkpointer.save(checkpoint)
        return checkpoint

    async def load(self, thread_id: str) -> Checkpoint:
        """Latest checkpoint for a thread of this graph.

        Raises:
            ThreadNotFoundError: If the thread has no checkpoint
            CheckpointError: If the checkpoint belongs to another graph
        """
        checkpoint = await self.checkpointer.load(thread_id)
        if checkpoint is None:
            raise ThreadNotFoundError(thread_id)
        if checkpoint.graph_name != self.graph_name:
            raise CheckpointError(
                f"Thread {thread_id} belongs to graph '{checkpoint.graph_name}', "
                f"not '{self.graph_name}'"
            )
        return checkpoint

    async def record_failure(self, context: ExecutionContext) -> Checkpoint:
        """Write a FAILED record over the last good checkpoint.

        The record carries the status and error; state, position and history
        stay as they were at the last successful write.
        """
        assert context.error is not None
        last = await self.checkpointer.load(context.thread_id)
        if last is None:
            record = context.to_checkpoint(self.graph_name)
        else:
            record = last.successor(
                status=RunStatus.FAILED,
                pending_interrupt=None,
                error=context.error.to_dict(),
            )
        await self.checkpointer.save(record)
        return record


class GraphRuntime:
    """Executes a compiled GraphDefinition.

    One runtime may drive any number of executions of the same definition
    concurrently; executions of the same thread are serialised.
    """

    def __init__(
        self,
        definition: GraphDefinition,
        *,
        checkpointer: Optional[CheckpointerProtocol] = None,
        config: Optional[GraphConfig] = None,
        settings: Optional[LoomSettings] = None,
        providers: Optional[Mapping[CapabilityKind | str, Any]] = None,
    ):
        """Initialize runtime.

        Args:
            definition: Compiled graph
            checkpointer: Checkpoint store (defaults to the backend the graph
                or config selects)
            config: Execution config (defaults to ``settings`` or built-in defaults)
            settings: Environment-backed settings used when no config is given
            providers: Capability providers keyed by kind
        """
        self._definition = definition
        if config is None:
            config = GraphConfig.from_settings(settings) if settings is not None else GraphConfig()
        self._config = config
        self._checkpointer = checkpointer or self._default_checkpointer()
        self._checkpoints = CheckpointManager(self._checkpointer, definition.name)
        self._dispatcher = CapabilityDispatcher(providers)
        self._router = ConditionalRouter()
        self._events = EventBus(enabled=config.observability.emit_events)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._active: set[str] = set()
        self._cancel_requests: set[str] = set()

    def _default_checkpointer(self) -> CheckpointerProtocol:
        configured = self._config.checkpoint
        backend = self._definition.checkpointer or configured.checkpointer
        path = configured.path if backend == configured.checkpointer else None
        return create_checkpointer(backend, path)

    @property
    def definition(self) -> GraphDefinition:
        return self._definition

    @property
    def checkpointer(self) -> CheckpointerProtocol:
        return self._checkpointer

    @property
    def config(self) -> GraphConfig:
        return self._config

    @asynccontextmanager
    async def _thread_lock(self, thread_id: str) -> AsyncIterator[None]:
        """Serialize operations on one thread; the lock is dropped once unused."""
        lock = self._locks.setdefault(thread_id, asyncio.Lock())
        self._lock_users[thread_id] = self._lock_users.get(thread_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[thread_id] - 1
            if remaining:
                self._lock_users[thread_id] = remaining
            else:
                del self._lock_users[thread_id]
                self._locks.pop(thread_id, None)

    def _executor_for(
        self, providers: Optional[Mapping[CapabilityKind | str, Any]]
    ) -> StepExecutor:
        dispatcher = self._dispatcher.with_providers(providers) if providers else self._dispatcher
        return StepExecutor(dispatcher)

    def subscribe(self, thread_id: str, observer: Observer) -> Callable[[], None]:
        """Register an observer for one thread's events; returns an unsubscribe function."""
        return self._events.subscribe(thread_id, observer)

    async def _emit(
        self,
        event_type: GraphEventType,
        context: ExecutionContext,
        node_id: Optional[str] = None,
        **data: Any,
    ) -> None:
        await self._events.emit(
            GraphEvent(
                type=event_type,
                thread_id=context.thread_id,
                node_id=node_id,
                step=context.step,
                data=data,
            )
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start(
        self,
        initial_input: Optional[Mapping[str, Any]] = None,
        *,
        thread_id: Optional[str] = None,
        providers: Optional[Mapping[CapabilityKind | str, Any]] = None,
        recursion_limit: Optional[int] = None,
        interrupt_before: Optional[Iterable[str]] = None,
        interrupt_after: Optional[Iterable[str]] = None,
        checkpoint_mode: Optional[CheckpointMode | str] = None,
        observers: Optional[Iterable[Observer]] = None,
    ) -> RunOutcome:
        """Start a new execution and run it until it pauses, completes or fails.

        Args:
            initial_input: Partial state reduced onto the schema defaults
            thread_id: Execution id (generated when omitted)
            providers: Capability providers for this call
            recursion_limit: Step ceiling for this execution
            interrupt_before: Nodes to pause before
            interrupt_after: Nodes to pause after
            checkpoint_mode: every_step or interrupts_only
            observers: Observers subscribed before the first event

        Returns:
            RunOutcome carrying the thread_id

        Raises:
            InvalidUpdateError: If the initial input does not fit the schema
            ValueError: If ``thread_id`` already has an execution
        """
        started_at = time.time()
        thread_id = thread_id or uuid.uuid4().hex
        config = self._config.with_overrides(
            recursion_limit=recursion_limit,
            interrupt_before=interrupt_before,
            interrupt_after=interrupt_after,
            checkpoint_mode=checkpoint_mode,
        )
        state = self._definition.schema.initial_state(initial_input)

        async with self._thread_lock(thread_id):
            if await self._checkpointer.load(thread_id) is not None:
                raise ValueError(f"Thread {thread_id} already has an execution; use resume()")
            for observer in observers or ():
                self.subscribe(thread_id, observer)

            context = ExecutionContext(
                thread_id=thread_id,
                current_node=self._definition.entry_point,
                state=state,
                metadata=self._run_metadata(config),
            )
            self._active.add(thread_id)
            try:
                await self._checkpoints.save(context, force=True)
                logger.info(
                    f"Starting graph '{self._definition.name}' (thread: {thread_id}) "
                    f"at {context.current_node}"
                )
                await self._emit(
                    GraphEventType.RUN_STARTED,
                    context,
                    node_id=context.current_node,
                    graph=self._definition.name,
                )
                return await self._drive(
                    context, config, self._executor_for(providers), started_at
                )
            finally:
                self._active.discard(thread_id)
                self._cancel_requests.discard(thread_id)

    async def resume(
        self,
        thread_id: str,
        resume_value: Any = None,
        *,
        providers: Optional[Mapping[CapabilityKind | str, Any]] = None,
        recursion_limit: Optional[int] = None,
        interrupt_before: Optional[Iterable[str]] = None,
        interrupt_after: Optional[Iterable[str]] = None,
        checkpoint_mode: Optional[CheckpointMode | str] = None,
    ) -> RunOutcome:
        """Resume a paused execution.

        The paused node is re-entered from the top with the state it saw
        before pausing; ``NodeContext.resume_value`` carries ``resume_value``
        for that one invocation. After an ``interrupt_after`` pause the run
        continues at the next node instead.

        Raises:
            ThreadNotFoundError: If the thread has no checkpoint
            InvalidResumeError: If the execution is not paused
        """
        started_at = time.time()
        async with self._thread_lock(thread_id):
            checkpoint = await self._checkpoints.load(thread_id)
            if checkpoint.status != RunStatus.PAUSED or checkpoint.pending_interrupt is None:
                raise InvalidResumeError(thread_id, checkpoint.status.value)

            context = ExecutionContext.from_checkpoint(checkpoint)
            interrupt = context.pending_interrupt
            assert interrupt is not None
            config = self._restore_config(context.metadata).with_overrides(
                recursion_limit=recursion_limit,
                interrupt_before=interrupt_before,
                interrupt_after=interrupt_after,
                checkpoint_mode=checkpoint_mode,
            )
            context.metadata = self._run_metadata(config)
            context.pending_interrupt = None
            context.status = RunStatus.RUNNING

            self._active.add(thread_id)
            try:
                logger.info(
                    f"Resuming thread {thread_id} at {context.current_node} "
                    f"({interrupt.kind.value} interrupt on {interrupt.node_id})"
                )
                await self._emit(
                    GraphEventType.RESUMED,
                    context,
                    node_id=interrupt.node_id,
                    kind=interrupt.kind.value,
                )
                reentry = interrupt.kind != InterruptKind.AFTER
                return await self._drive(
                    context,
                    config,
                    self._executor_for(providers),
                    started_at,
                    resumed=reentry,
                    resume_value=resume_value if reentry else None,
                )
            finally:
                self._active.discard(thread_id)
                self._cancel_requests.discard(thread_id)

    async def cancel(self, thread_id: str) -> Optional[RunOutcome]:
        """Request termination of an execution.

        A running execution observes the request at its next step boundary.
        A paused execution fails immediately and its outcome is returned.
        Terminal executions are left alone.

        Raises:
            ThreadNotFoundError: If the thread has no checkpoint
        """
        if thread_id in self._active:
            logger.warning(f"Cancellation requested for running thread {thread_id}")
            self._cancel_requests.add(thread_id)
            return None

        started_at = time.time()
        async with self._thread_lock(thread_id):
            checkpoint = await self._checkpoints.load(thread_id)
            if checkpoint.status != RunStatus.PAUSED:
                logger.debug(f"Thread {thread_id} is {checkpoint.status.value}; nothing to cancel")
                return None
            logger.warning(f"Cancelling paused thread {thread_id}")
            context = ExecutionContext.from_checkpoint(checkpoint)
            return await self._fail(context, RunCancelledError(thread_id), started_at)

    async def get_state(self, thread_id: str) -> Dict[str, Any]:
        """Deep-copied state of the latest checkpoint.

        Raises:
            ThreadNotFoundError: If the thread has no checkpoint
        """
        checkpoint = await self._checkpoints.load(thread_id)
        return copy.deepcopy(checkpoint.state)

    async def get_checkpoint(self, thread_id: str) -> Optional[Checkpoint]:
        """Latest checkpoint for a thread, or None."""
        return await self._checkpointer.load(thread_id)

    async def get_outcome(self, thread_id: str) -> RunOutcome:
        """Rebuild the outcome of an execution from its latest checkpoint."""
        checkpoint = await self._checkpoints.load(thread_id)
        return RunOutcome(
            thread_id=thread_id,
            status=checkpoint.status,
            state=copy.deepcopy(checkpoint.state),
            interrupt=checkpoint.pending_interrupt,
            error=error_from_dict(checkpoint.error) if checkpoint.error else None,
            steps=checkpoint.step,
            node_history=list(checkpoint.node_history),
        )

    async def history(self, thread_id: str) -> List[Checkpoint]:
        """Every checkpoint written for a thread, oldest first."""
        return await self._checkpointer.list(thread_id)

    async def delete_thread(self, thread_id: str) -> int:
        """Forget an execution: drop its checkpoints and observers."""
        async with self._thread_lock(thread_id):
            deleted = await self._checkpointer.delete_thread(thread_id)
        self._events.clear(thread_id)
        return deleted

    # ------------------------------------------------------------------
    # Execution loop
    # ------------------------------------------------------------------

    @staticmethod
    def _run_metadata(config: GraphConfig) -> Dict[str, Any]:
        return {
            "recursion_limit": config.execution.recursion_limit,
            "interrupt_before": sorted(config.interrupt.interrupt_before),
            "interrupt_after": sorted(config.interrupt.interrupt_after),
            "checkpoint_mode": config.checkpoint.mode.value,
        }

    def _restore_config(self, metadata: Mapping[str, Any]) -> GraphConfig:
        return self._config.with_overrides(
            recursion_limit=metadata.get("recursion_limit"),
            interrupt_before=metadata.get("interrupt_before"),
            interrupt_after=metadata.get("interrupt_after"),
            checkpoint_mode=metadata.get("checkpoint_mode"),
        )

    def _check_cancelled(self, context: ExecutionContext) -> None:
        if context.thread_id in self._cancel_requests:
            raise RunCancelledError(context.thread_id)

    async def _drive(
        self,
        context: ExecutionContext,
        config: GraphConfig,
        executor: StepExecutor,
        started_at: float,
        resumed: bool = False,
        resume_value: Any = None,
    ) -> RunOutcome:
        try:
            return await self._run_steps(
                context, config, executor, started_at, resumed, resume_value
            )
        except CheckpointError as e:
            if e.recovery_hint is None:
                e.recovery_hint = (
                    f"The latest checkpoint of thread {context.thread_id} may still be "
                    f"marked running, so it cannot be resumed or cancelled. "
                    f"Call delete_thread() to discard it."
                )
            raise

    async def _run_steps(
        self,
        context: ExecutionContext,
        config: GraphConfig,
        executor: StepExecutor,
        started_at: float,
        resumed: bool,
        resume_value: Any,
    ) -> RunOutcome:
        guard = IterationController(config.execution.recursion_limit)
        interrupts = InterruptHandler(config.interrupt)
        mode = config.checkpoint.mode
        schema = self._definition.schema

        try:
            while context.current_node != END:
                node_id = context.current_node
                self._check_cancelled(context)
                guard.check(context.step, node_id)

                if not resumed and interrupts.should_interrupt_before(node_id):
                    return await self._pause(
                        context, Interrupt(node_id, kind=InterruptKind.BEFORE), started_at
                    )

                node = self._definition.node(node_id)
                node_context = executor.context_for(
                    node,
                    thread_id=context.thread_id,
                    step=context.step,
                    resume_value=resume_value,
                    resumed=resumed,
                )
                resumed, resume_value = False, None

                node_started = time.time()
                outcome = await executor.run_node(node, context.state, node_context)
                if isinstance(outcome, Suspend):
                    self._check_cancelled(context)
                    return await self._pause(
                        context,
                        Interrupt(node_id, prompt=outcome.prompt, kind=InterruptKind.DYNAMIC),
                        started_at,
                    )

                try:
                    context.state = schema.apply_update(context.state, outcome.values)
                except Exception as e:
                    raise NodeExecutionError(
                        f"Node '{node_id}' produced an invalid update: {e}", node_id=node_id
                    ) from e

                context.step += 1
                context.node_history.append(node_id)
                context.current_node = await self._router.next_node(
                    self._definition.outgoing(node_id), context.state
                )
                logger.debug(
                    f"Step {context.step}: {node_id} -> {context.current_node} "
                    f"(thread: {context.thread_id})"
                )
                await self._emit(
                    GraphEventType.STEP_COMPLETED,
                    context,
                    node_id=node_id,
                    next_node=context.current_node,
                    duration=time.time() - node_started,
                )

                if interrupts.should_interrupt_after(node_id):
                    self._check_cancelled(context)
                    return await self._pause(
                        context, Interrupt(node_id, kind=InterruptKind.AFTER), started_at
                    )
                await self._checkpoints.save(context, mode)

            self._check_cancelled(context)
            context.status = RunStatus.COMPLETED
            await self._checkpoints.save(context, force=True)
            logger.info(
                f"Graph '{self._definition.name}' completed (thread: {context.thread_id}, "
                f"steps: {context.step})"
            )
            await self._emit(GraphEventType.COMPLETED, context, steps=context.step)
            self._events.clear(context.thread_id)
            return self._outcome(context, started_at)

        except RUN_FATAL_ERRORS as e:
            return await self._fail(context, e, started_at)

    async def _pause(
        self, context: ExecutionContext, interrupt: Interrupt, started_at: float
    ) -> RunOutcome:
        context.status = RunStatus.PAUSED
        context.pending_interrupt = interrupt
        await self._checkpoints.save(context, force=True)
        logger.info(
            f"Thread {context.thread_id} paused ({interrupt.kind.value}) at {interrupt.node_id}"
        )
        await self._emit(
            GraphEventType.INTERRUPTED,
            context,
            node_id=interrupt.node_id,
            interrupt=interrupt.to_dict(),
        )
        return self._outcome(context, started_at)

    async def _fail(
        self, context: ExecutionContext, error: LoomError, started_at: float
    ) -> RunOutcome:
        if isinstance(error, NodeExecutionError):
            logger.error(f"Thread {context.thread_id} failed: {error}", exc_info=error)
        else:
            logger.warning(f"Thread {context.thread_id} failed: {error}")

        context.status = RunStatus.FAILED
        context.pending_interrupt = None
        context.error = error
        record = await self._checkpoints.record_failure(context)
        await self._emit(
            GraphEventType.FAILED,
            context,
            node_id=context.current_node,
            error=error.to_dict(),
        )
        self._events.clear(context.thread_id)
        outcome = self._outcome(context, started_at)
        outcome.state = copy.deepcopy(record.state)
        return outcome

    @staticmethod
    def _outcome(context: ExecutionContext, started_at: float) -> RunOutcome:
        return RunOutcome(
            thread_id=context.thread_id,
            status=context.status,
            state=copy.deepcopy(context.state),
            interrupt=copy.deepcopy(context.pending_interrupt),
            error=context.error,
            steps=context.step,
            node_history=list(context.node_history),
            duration=time.time() - started_at,
        )


# =============================================================================
# Module-level conveniences
# =============================================================================

def runtime_for(definition: GraphDefinition) -> GraphRuntime:
    """Shared default runtime for a definition.

    The runtime is stored on the definition itself, so both are released
    together once the caller drops the definition.
    """
    runtime = definition._default_runtime
    if runtime is None:
        runtime = GraphRuntime(definition)
        definition._default_runtime = runtime
    return runtime


async def start(
    definition: GraphDefinition,
    initial_input: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> RunOutcome:
    """Start an execution on the definition's shared runtime."""
    return await runtime_for(definition).start(initial_input, **kwargs)


async def resume(
    definition: GraphDefinition, thread_id: str, resume_value: Any = None, **kwargs: Any
) -> RunOutcome:
    """Resume an execution on the definition's shared runtime."""
    return await runtime_for(definition).resume(thread_id, resume_value, **kwargs)


async def get_state(definition: GraphDefinition, thread_id: str) -> Dict[str, Any]:
    """State snapshot from the definition's shared runtime."""
    return await runtime_for(definition).get_state(thread_id)


__all__ = [
    "ExecutionContext",
    "RunOutcome",
    "IterationController",
    "InterruptHandler",
    "CheckpointManager",
    "GraphRuntime",
    "runtime_for",
    "start",
    "resume",
    "get_state",
]
