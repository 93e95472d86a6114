# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Central logging utilities for the community platform backend.

This module enforces a consistent logging configuration across the
code-base and provides a helper for retrieving module-scoped loggers.

Key Features
------------
1. configure_logging(): idempotent initialization of the root logger.
2. get_logger(name): typed helper that always returns a configured logger.
3. token_snippet(): shortened rendering of credentials for debug output.
"""

from __future__ import annotations

import logging
from typing import Final

from beartype import beartype

__all__: Final = [
    "configure_logging",
    "get_logger",
    "token_snippet",
]

_DEFAULT_LOG_FORMAT: Final = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_is_configured: bool = False


@beartype
def configure_logging(
    *,
    level: int | str = logging.INFO,
    fmt: str = _DEFAULT_LOG_FORMAT,
    force: bool = False,
) -> None:
    """Configure the root logger exactly once.

    Calling this function multiple times is safe – configuration will only
    be applied on the first invocation. With ``force`` a later call still
    resets the root level, which is how the configured ``LOG_LEVEL`` wins over
    the import-time default.
    """
    global _is_configured
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    if _is_configured:
        if force:
            logging.getLogger().setLevel(level)
        return

    logging.basicConfig(level=level, format=fmt)
    _is_configured = True


@beartype
def get_logger(name: str | None = None, *, level: int | None = None) -> logging.Logger:
    """Return a module-scoped logger that is guaranteed to be configured."""
    configure_logging()
    logger = logging.getLogger(name or "community_core")
    if level is not None:
        logger.setLevel(level)
    return logger


@beartype
def token_snippet(value: str, length: int = 10) -> str:
    """Render the first ``length`` characters of a credential for debug logs."""
    if len(value) <= length:
        return "***"
    return f"{value[:length]}..."
