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

"""Shared pytest fixtures and configuration."""

import os

# Must be set before loom.config.settings is imported
os.environ.setdefault("LOOM_SKIP_ENV_FILE", "1")

import pytest

from loom.graph.schema import StateField, StateSchema


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch):
    """Isolate tests from LOOM_* environment variables and .env files."""
    monkeypatch.setenv("LOOM_SKIP_ENV_FILE", "1")
    for key in list(os.environ):
        if key.startswith("LOOM_") and key != "LOOM_SKIP_ENV_FILE":
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def chat_schema():
    """The ChatState schema used across runtime tests."""
    return StateSchema(
        "ChatState",
        [
            StateField("messages", "array", reducer="concat", default=[]),
            StateField("userName", "string", reducer="replace", default=""),
        ],
    )


@pytest.fixture
def counter_schema():
    """Schema with a counter, an audit trail and a free-form answer."""
    return StateSchema(
        "CounterState",
        [
            StateField("count", "integer", default=0),
            StateField("trail", "array", reducer="concat", default=[]),
            StateField("answer", "any", default=None),
        ],
    )
