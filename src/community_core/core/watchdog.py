# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Periodic background check that keeps the database connected."""

import asyncio
from typing import Any

from beartype import beartype

from .database import ConnectionManager
from .logging_utils import get_logger

logger = get_logger(__name__)


class ConnectionWatchdog:
    """Re-establish the connection on a fixed interval when it is down."""

    def __init__(self, manager: ConnectionManager, interval_seconds: float = 30.0) -> None:
        self._manager = manager
        self._interval = interval_seconds
        self._task: asyncio.Task[Any] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop (idempotent)."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    @beartype
    async def check_once(self) -> bool:
        """Reconnect if disconnected; return whether the database is connected."""
        if self._manager.is_connected:
            return True

        logger.info("Database connection check: Disconnected - attempting to reconnect...")
        try:
            await self._manager.ensure_connected()
        except Exception as exc:
            logger.error("Failed to reestablish database connection: %s", exc)
            return False

        logger.info("Database reconnection successful")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.check_once()
