# GTMesh - GridTools Framework
#
# Copyright (c) 2014-2024, ETH Zurich
# All rights reserved.
#
# Please, refer to the LICENSE file in the root directory.
# SPDX-License-Identifier: BSD-3-Clause

from __future__ import annotations

import logging
import os
from typing import Final


def env_flag_to_bool(name: str, default: bool) -> bool:
    """Recognize true or false signaling string values."""
    flag_value = None
    if name in os.environ:
        flag_value = os.environ[name].lower()
    match flag_value:
        case None:
            return default
        case "0" | "false" | "off":
            return False
        case "1" | "true" | "on":
            return True
        case _:
            raise ValueError(
                "Invalid GTMesh environment flag value: use '0 | false | off' or '1 | true | on'."
            )


def env_log_level(name: str, default: int) -> int:
    """Translate a logging level name (or number) from the environment."""
    if (value := os.environ.get(name)) is None:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(
            f"Invalid GTMesh log level '{value}': use one of 'DEBUG | INFO | WARNING | ERROR'."
        )
    return level


#: Master debug flag
#: Changes defaults for all the other options to be as helpful for debugging as possible.
#: Does not override values set in environment variables.
DEBUG: Final[bool] = env_flag_to_bool("GTMESH_DEBUG", default=False)


#: Backend used by operators which do not select one explicitly.
DEFAULT_BACKEND: str = os.environ.get("GTMESH_BACKEND", "embedded")


#: Level of the ``gtmesh`` package logger.
LOG_LEVEL: int = env_log_level("GTMESH_LOG_LEVEL", logging.DEBUG if DEBUG else logging.WARNING)


#: Keep the sources generated by staging backends (e.g. 'roundtrip') on disk.
KEEP_STAGED_SOURCES: bool = env_flag_to_bool("GTMESH_KEEP_STAGED_SOURCES", default=DEBUG)
