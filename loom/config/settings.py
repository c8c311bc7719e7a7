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

"""Configuration management for the Loom runtime."""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Global directory for durable checkpoint storage
GLOBAL_LOOM_DIR = Path.home() / os.getenv("LOOM_DIR_NAME", ".loom")

CheckpointerBackend = Literal["memory", "sqlite", "json"]
CheckpointMode = Literal["every_step", "interrupts_only"]


class LoomSettings(BaseSettings):
    """Runtime settings.

    Every field can be overridden with a ``LOOM_``-prefixed environment
    variable, e.g. ``LOOM_RECURSION_LIMIT=50``.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOOM_",
        env_file=".env" if not os.getenv("LOOM_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Execution
    recursion_limit: int = Field(25, gt=0, description="Maximum node steps per run")

    # Checkpointing
    checkpointer: CheckpointerBackend = "memory"
    checkpoint_path: Optional[str] = Field(
        None,
        description="Database file (sqlite) or directory (json); defaults under ~/.loom",
    )
    checkpoint_mode: CheckpointMode = "every_step"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Observability
    emit_events: bool = True

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    def resolved_checkpoint_path(self) -> Path:
        """Storage location for the configured durable backend."""
        if self.checkpoint_path:
            return Path(os.path.expanduser(self.checkpoint_path))
        if self.checkpointer == "json":
            return GLOBAL_LOOM_DIR / "checkpoints"
        return GLOBAL_LOOM_DIR / "graph_checkpoints.db"


def load_settings() -> LoomSettings:
    """Load runtime settings.

    Returns:
        LoomSettings instance
    """
    return LoomSettings()
