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

"""Logging setup for applications embedding the runtime."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from loom.config.settings import LoomSettings, load_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_MARK = "_loom_handler"


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    settings: Optional[LoomSettings] = None,
) -> logging.Logger:
    """Configure the ``loom`` logger hierarchy.

    Explicit arguments win over settings. Calling this more than once
    replaces the handlers it installed previously instead of stacking them.

    Args:
        level: Log level name (e.g. "DEBUG")
        log_file: Optional file to log to in addition to stderr
        settings: Settings to read defaults from (loaded if None)

    Returns:
        The configured ``loom`` logger
    """
    settings = settings or load_settings()
    level_name = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger = logging.getLogger("loom")
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)

    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger
