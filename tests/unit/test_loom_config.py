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

"""Tests for LoomSettings, GraphConfig and logging setup."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from loom.config.settings import GLOBAL_LOOM_DIR, LoomSettings, load_settings
from loom.core.logging_config import configure_logging
from loom.graph.config import (
    DEFAULT_RECURSION_LIMIT,
    CheckpointMode,
    ExecutionConfig,
    GraphConfig,
    InterruptConfig,
)


@pytest.fixture
def loom_logger():
    """The loom logger, restored after the test."""
    logger = logging.getLogger("loom")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


class TestLoomSettings:
    """Tests for environment-backed settings."""

    def test_defaults(self):
        settings = load_settings()
        assert settings.recursion_limit == DEFAULT_RECURSION_LIMIT
        assert settings.checkpointer == "memory"
        assert settings.checkpoint_mode == "every_step"
        assert settings.log_level == "INFO"
        assert settings.emit_events is True

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("LOOM_RECURSION_LIMIT", "50")
        monkeypatch.setenv("LOOM_CHECKPOINTER", "sqlite")
        monkeypatch.setenv("LOOM_LOG_LEVEL", "debug")
        settings = LoomSettings()
        assert settings.recursion_limit == 50
        assert settings.checkpointer == "sqlite"
        assert settings.log_level == "DEBUG"

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            LoomSettings(log_level="LOUD")
        with pytest.raises(ValidationError):
            LoomSettings(recursion_limit=0)
        with pytest.raises(ValidationError):
            LoomSettings(checkpointer="redis")

    def test_resolved_checkpoint_path(self, tmp_path):
        assert LoomSettings().resolved_checkpoint_path() == GLOBAL_LOOM_DIR / "graph_checkpoints.db"
        assert LoomSettings(checkpointer="json").resolved_checkpoint_path() == (
            GLOBAL_LOOM_DIR / "checkpoints"
        )
        explicit = LoomSettings(checkpoint_path=str(tmp_path / "x.db"))
        assert explicit.resolved_checkpoint_path() == Path(tmp_path / "x.db")


class TestGraphConfig:
    """Tests for the GraphConfig facade."""

    def test_defaults(self):
        config = GraphConfig()
        assert config.execution.recursion_limit == DEFAULT_RECURSION_LIMIT
        assert config.checkpoint.mode == CheckpointMode.EVERY_STEP
        assert config.interrupt.interrupt_before == frozenset()
        assert config.observability.emit_events

    def test_from_settings(self, tmp_path):
        settings = LoomSettings(
            recursion_limit=7,
            checkpointer="sqlite",
            checkpoint_path=str(tmp_path / "c.db"),
            checkpoint_mode="interrupts_only",
            emit_events=False,
        )
        config = GraphConfig.from_settings(settings)
        assert config.execution.recursion_limit == 7
        assert config.checkpoint.checkpointer == "sqlite"
        assert config.checkpoint.path == str(tmp_path / "c.db")
        assert config.checkpoint.mode == CheckpointMode.INTERRUPTS_ONLY
        assert not config.observability.emit_events

    def test_with_overrides(self):
        base = GraphConfig(interrupt=InterruptConfig.of(["a"], ["b"]))
        config = base.with_overrides(recursion_limit=3, interrupt_after=["c"])
        assert config.execution.recursion_limit == 3
        assert config.interrupt.interrupt_before == frozenset({"a"})
        assert config.interrupt.interrupt_after == frozenset({"c"})
        assert base.execution.recursion_limit == DEFAULT_RECURSION_LIMIT

    def test_with_no_overrides_is_identity(self):
        config = GraphConfig()
        assert config.with_overrides() is config

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            ExecutionConfig(recursion_limit=0)
        with pytest.raises(ValueError):
            GraphConfig().with_overrides(checkpoint_mode="sometimes")


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_level_from_settings(self, loom_logger):
        logger = configure_logging(settings=LoomSettings(log_level="warning"))
        assert logger is loom_logger
        assert logger.level == logging.WARNING

    def test_explicit_level_wins(self, loom_logger):
        configure_logging("DEBUG", settings=LoomSettings(log_level="ERROR"))
        assert loom_logger.level == logging.DEBUG

    def test_log_file(self, loom_logger, tmp_path):
        log_file = tmp_path / "logs" / "loom.log"
        configure_logging("INFO", log_file=str(log_file), settings=LoomSettings())
        logging.getLogger("loom.graph.runtime").info("hello")
        for handler in loom_logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text()

    def test_repeated_calls_do_not_stack(self, loom_logger):
        before = len(loom_logger.handlers)
        configure_logging("INFO", settings=LoomSettings())
        configure_logging("INFO", settings=LoomSettings())
        assert len(loom_logger.handlers) == before + 1
