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

"""Per-execution lifecycle events.

Observers subscribe to one thread at a time, so there is no process-wide
listener list to outgrow. Observers may be sync or async; an observer that
raises is logged and skipped and never affects the run.

Example:
    unsubscribe = runtime.subscribe(thread_id, lambda event: print(event.type))
    ...
    unsubscribe()
"""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class GraphEventType(str, Enum):
    """Lifecycle events of one execution."""

    RUN_STARTED = "run_started"
    STEP_COMPLETED = "step_completed"
    INTERRUPTED = "interrupted"
    RESUMED = "resumed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class GraphEvent:
    """One lifecycle event.

    Attributes:
        type: Event type
        thread_id: Execution the event belongs to
        node_id: Node involved, if any
        step: Step counter at emission time
        data: Event payload
        timestamp: Emission time (epoch seconds)
    """

    type: GraphEventType
    thread_id: str
    node_id: Optional[str] = None
    step: int = 0
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "thread_id": self.thread_id,
            "node_id": self.node_id,
            "step": self.step,
            "data": self.data,
            "timestamp": self.timestamp,
        }


Observer = Callable[[GraphEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Routes events to the observers registered for their thread."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._observers: Dict[str, List[Observer]] = {}

    def subscribe(self, thread_id: str, observer: Observer) -> Callable[[], None]:
        """Register an observer for one thread.

        Returns:
            Function that removes the observer again
        """
        self._observers.setdefault(thread_id, []).append(observer)

        def unsubscribe() -> None:
            observers = self._observers.get(thread_id)
            if observers and observer in observers:
                observers.remove(observer)
                if not observers:
                    del self._observers[thread_id]

        return unsubscribe

    def observer_count(self, thread_id: str) -> int:
        return len(self._observers.get(thread_id, []))

    def clear(self, thread_id: str) -> None:
        self._observers.pop(thread_id, None)

    async def emit(self, event: GraphEvent) -> None:
        """Deliver an event to the thread's observers, in registration order."""
        if not self.enabled:
            return
        for observer in list(self._observers.get(event.thread_id, [])):
            try:
                result = observer(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Observer failed on {event.type.value} event: {e}")


__all__ = ["GraphEventType", "GraphEvent", "Observer", "EventBus"]
