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

"""Tests for the error hierarchy."""

import pytest

from loom.core.errors import (
    RUN_FATAL_ERRORS,
    Cancelled,
    CapabilityError,
    CompilationError,
    ErrorCategory,
    InvalidResumeError,
    LoomError,
    NodeExecutionError,
    RecursionLimitExceeded,
    RoutingViolation,
    RunCancelledError,
    error_from_dict,
)


class TestLoomError:
    """Tests for the base error."""

    def test_to_dict(self):
        error = LoomError("broken", details={"k": "v"}, recovery_hint="retry")
        data = error.to_dict()
        assert data["type"] == "LoomError"
        assert data["error"] == "broken"
        assert data["category"] == ErrorCategory.UNKNOWN.value
        assert data["details"] == {"k": "v"}
        assert data["recovery_hint"] == "retry"
        assert len(data["correlation_id"]) == 8

    def test_str_is_message(self):
        assert str(NodeExecutionError("node a failed", node_id="a")) == "node a failed"


class TestSpecificErrors:
    """Tests for the concrete error types."""

    def test_compilation_error_lists_problems(self):
        error = CompilationError(["one", "two"])
        assert error.problems == ["one", "two"]
        assert str(error) == "Invalid graph: one; two"
        assert CompilationError("single").problems == ["single"]

    def test_routing_violation_fields(self):
        error = RoutingViolation("bad", source="a", target="z", possible_targets=("b", "c"))
        assert error.details["possible_targets"] == ["b", "c"]
        assert error.category == ErrorCategory.ROUTING

    def test_recursion_limit_message(self):
        error = RecursionLimitExceeded(25, node_id="loop")
        assert "25" in str(error)
        assert error.node_id == "loop"

    def test_cancelled_alias(self):
        assert Cancelled is RunCancelledError
        assert RunCancelledError("t1").thread_id == "t1"

    def test_invalid_resume(self):
        error = InvalidResumeError("t1", "completed")
        assert "completed" in str(error)

    def test_run_fatal_errors(self):
        assert CapabilityError not in RUN_FATAL_ERRORS
        assert set(RUN_FATAL_ERRORS) == {
            NodeExecutionError,
            RoutingViolation,
            RecursionLimitExceeded,
            RunCancelledError,
        }


class TestErrorFromDict:
    """Tests for rehydrating errors from checkpoints."""

    @pytest.mark.parametrize(
        "error",
        [
            NodeExecutionError("node failed", node_id="a"),
            RoutingViolation("bad route", source="a", target="z", possible_targets=["b"]),
            RecursionLimitExceeded(3, node_id="a"),
            RunCancelledError("t1"),
            CapabilityError("down", kind="mcp", capability="search"),
        ],
    )
    def test_type_and_message_preserved(self, error):
        restored = error_from_dict(error.to_dict())
        assert type(restored) is type(error)
        assert str(restored) == str(error)
        assert restored.correlation_id == error.correlation_id

    def test_details_become_attributes(self):
        restored = error_from_dict(NodeExecutionError("x", node_id="a").to_dict())
        assert restored.node_id == "a"

    def test_unknown_type_falls_back_to_base(self):
        restored = error_from_dict({"type": "Mystery", "error": "?"})
        assert type(restored) is LoomError
