# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Database connection management with asyncpg and automatic reconnection.

A ``ConnectionManager`` owns one lazily established connection. Concurrent
callers of ``connect()`` share the in-flight attempt, failures and driver
disconnects schedule a reconnect, and the retry loop keeps running in the
background whether or not any request is waiting.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import asyncpg
from attrs import asdict, define, field, frozen
from beartype import beartype

from .config import Settings
from .logging_utils import get_logger

logger = get_logger(__name__)

Connector = Callable[..., Awaitable[Any]]


@frozen
class ReconnectPolicy:
    """Delay schedule for automatic reconnect attempts."""

    delay_seconds: float = field(default=5.0)
    exponential_backoff: bool = field(default=False)
    max_delay_seconds: float = field(default=30.0)

    @beartype
    def delay_for(self, consecutive_failures: int) -> float:
        """Return the delay before the next attempt.

        Disconnects (no failure yet) and the first failure use the base
        delay; with exponential backoff every further failure doubles it up
        to ``max_delay_seconds``.
        """
        if not self.exponential_backoff or consecutive_failures <= 1:
            return float(self.delay_seconds)
        delay = self.delay_seconds * (2 ** (consecutive_failures - 1))
        return float(min(delay, self.max_delay_seconds))


@frozen
class ConnectionOptions:
    """Immutable driver-level connection options."""

    dsn: str | None = field()
    connect_timeout: float = field(default=10.0)
    command_timeout: float = field(default=45.0)


@define
class ConnectionState:
    """Mutable connection state owned by a single manager."""

    is_connected: bool = field(default=False)
    is_connecting: bool = field(default=False)
    connection_error: BaseException | None = field(default=None)
    reconnect_timer: asyncio.TimerHandle | None = field(default=None)
    connection_task: "asyncio.Task[Any] | None" = field(default=None)
    consecutive_failures: int = field(default=0)


@frozen
class ConnectionStateSnapshot:
    """Immutable diagnostic view of the connection state."""

    is_connected: bool = field()
    is_connecting: bool = field()
    has_error: bool = field()
    error_name: str | None = field(default=None)
    error_message: str | None = field(default=None)
    reconnect_pending: bool = field(default=False)

    def as_dict(self) -> dict[str, Any]:
        """Return the snapshot as a JSON-serialisable mapping."""
        return asdict(self)


def _retrieve_exception(task: "asyncio.Task[Any]") -> None:
    # Mark the outcome as observed even when every waiter was cancelled.
    if not task.cancelled():
        task.exception()


class ConnectionManager:
    """Single shared database connection with retry and reconnect handling."""

    def __init__(
        self,
        options: ConnectionOptions,
        *,
        policy: ReconnectPolicy | None = None,
        connector: Connector | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        """Initialize the manager in the disconnected state.

        Args:
            options: DSN and driver timeouts
            policy: Reconnect delay schedule (constant 5s by default)
            connector: Coroutine function opening a connection; defaults to
                ``asyncpg.connect``
            poll_interval: Polling period of ``wait_for_connection`` in seconds
        """
        self._options = options
        self._policy = policy or ReconnectPolicy()
        self._connector: Connector = connector or asyncpg.connect
        self._poll_interval = poll_interval
        self._state = ConnectionState()
        self._connection: Any = None
        self._lock = asyncio.Lock()
        self._background: set[asyncio.Task[Any]] = set()
        self._closing = False

    @classmethod
    def from_settings(
        cls, settings: Settings, *, connector: Connector | None = None
    ) -> "ConnectionManager":
        """Build a manager from application settings."""
        return cls(
            ConnectionOptions(
                dsn=settings.database_url,
                connect_timeout=settings.db_connect_timeout,
                command_timeout=settings.db_command_timeout,
            ),
            policy=ReconnectPolicy(
                delay_seconds=settings.db_reconnect_delay,
                exponential_backoff=settings.db_reconnect_exponential,
                max_delay_seconds=settings.db_reconnect_max_delay,
            ),
            connector=connector,
        )

    @property
    def state(self) -> ConnectionState:
        """Live connection state (read it, do not mutate it)."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the database is connected."""
        return self._state.is_connected

    @property
    def is_configured(self) -> bool:
        """Check if a connection URL is configured."""
        return bool(self._options.dsn)

    async def connect(self) -> asyncpg.Connection:
        """Return the active connection, joining or starting an attempt.

        Raises:
            Exception: Whatever the driver raised for the attempt this call
                triggered or joined. A reconnect is scheduled regardless.
        """
        if self._state.is_connected and self._connection is not None:
            logger.debug("Using existing database connection")
            return self._connection

        pending = self._state.connection_task
        if self._state.is_connecting and pending is not None:
            logger.info("Connection attempt already in progress, waiting...")
            return await asyncio.shield(pending)

        self._closing = False
        self._state.is_connecting = True
        self._state.connection_error = None
        self._cancel_reconnect()

        task = asyncio.get_running_loop().create_task(self._attempt())
        task.add_done_callback(_retrieve_exception)
        self._state.connection_task = task
        # Waiters may be cancelled; the attempt itself runs to completion.
        return await asyncio.shield(task)

    async def ensure_connected(self) -> asyncpg.Connection:
        """Connect if needed, otherwise return the existing connection."""
        if not self._state.is_connected or self._connection is None:
            return await self.connect()
        return self._connection

    @beartype
    async def wait_for_connection(self, timeout: float | int = 10.0) -> bool:
        """Poll until connected or ``timeout`` seconds elapse.

        Returns:
            bool: True if connected, False on timeout. Never raises.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while not self._state.is_connected:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.error("Connection timeout after %.1fs", timeout)
                return False
            await asyncio.sleep(min(self._poll_interval, remaining))
        return True

    @beartype
    def snapshot(self) -> ConnectionStateSnapshot:
        """Return a diagnostic snapshot of the connection state."""
        error = self._state.connection_error
        return ConnectionStateSnapshot(
            is_connected=self._state.is_connected,
            is_connecting=self._state.is_connecting,
            has_error=error is not None,
            error_name=type(error).__name__ if error is not None else None,
            error_message=str(error) if error is not None else None,
            reconnect_pending=self._state.reconnect_timer is not None,
        )

    @contextlib.asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield the connection with exclusive use for the block.

        An asyncpg connection runs one operation at a time, so request
        handlers sharing it are serialised here.
        """
        connection = await self.ensure_connected()
        async with self._lock:
            yield connection

    async def ping(self) -> bool:
        """Run a trivial query through the shared connection."""
        async with self.acquire() as connection:
            return await connection.fetchval("SELECT 1") == 1

    async def close(self) -> None:
        """Stop reconnecting and close the connection."""
        self._closing = True
        self._cancel_reconnect()

        tasks = list(self._background)
        if self._state.connection_task is not None:
            tasks.append(self._state.connection_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        connection, self._connection = self._connection, None
        self._state.is_connected = False
        self._state.is_connecting = False
        self._state.connection_task = None

        if connection is not None and not connection.is_closed():
            await connection.close()
            logger.info("Database connection closed")

    async def _attempt(self) -> asyncpg.Connection:
        try:
            if not self._options.dsn:
                raise ConnectionError("DATABASE_URL is not configured")
            logger.info("Attempting database connection...")
            connection = await self._connector(
                self._options.dsn,
                timeout=self._options.connect_timeout,
                command_timeout=self._options.command_timeout,
            )
        except Exception as exc:
            self._record_failure(exc)
            raise
        else:
            self._record_success(connection)
            return connection
        finally:
            self._state.is_connecting = False
            if self._state.connection_task is asyncio.current_task():
                self._state.connection_task = None

    def _record_success(self, connection: Any) -> None:
        self._connection = connection
        self._state.is_connected = True
        self._state.consecutive_failures = 0
        connection.add_termination_listener(self._on_termination)
        logger.info("Database connected")

    def _record_failure(self, exc: Exception) -> None:
        self._state.connection_error = exc
        self._state.consecutive_failures += 1
        logger.error("Database connection error: %s", exc)

        if isinstance(exc, (OSError, asyncio.TimeoutError)):
            logger.error(
                "Network error connecting to database - check if the database server is running"
            )
        if not self._options.dsn:
            logger.error("DATABASE_URL environment variable is not set!")

        self._schedule_reconnect()

    def _on_termination(self, connection: Any) -> None:
        # Our own close() also terminates the connection.
        if self._closing or connection is not self._connection:
            return

        logger.warning("Database disconnected - will try to reconnect...")
        self._connection = None
        self._state.is_connected = False
        self._state.connection_error = ConnectionError("Database connection terminated")
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closing or self._state.reconnect_timer is not None:
            return

        delay = self._policy.delay_for(self._state.consecutive_failures)
        loop = asyncio.get_running_loop()
        self._state.reconnect_timer = loop.call_later(delay, self._fire_reconnect)
        logger.info("Reconnect scheduled in %.1fs", delay)

    def _cancel_reconnect(self) -> None:
        if self._state.reconnect_timer is not None:
            self._state.reconnect_timer.cancel()
            self._state.reconnect_timer = None

    def _fire_reconnect(self) -> None:
        self._state.reconnect_timer = None
        logger.info("Attempting to reconnect to database...")
        task = asyncio.get_running_loop().create_task(self._reconnect())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _reconnect(self) -> None:
        try:
            await self.connect()
        except Exception as exc:
            # The failed attempt has already scheduled the next retry.
            logger.error("Reconnection attempt failed: %s", exc)
