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

"""Core infrastructure: error taxonomy and logging setup."""

from loom.core.errors import (
    Cancelled,
    CapabilityError,
    CheckpointError,
    CompilationError,
    ErrorCategory,
    InvalidResumeError,
    LoomError,
    NodeExecutionError,
    RecursionLimitExceeded,
    RoutingViolation,
    RunCancelledError,
    ThreadNotFoundError,
)
from loom.core.logging_config import configure_logging

__all__ = [
    "Cancelled",
    "CapabilityError",
    "CheckpointError",
    "CompilationError",
    "ErrorCategory",
    "InvalidResumeError",
    "LoomError",
    "NodeExecutionError",
    "RecursionLimitExceeded",
    "RoutingViolation",
    "RunCancelledError",
    "ThreadNotFoundError",
    "configure_logging",
]
