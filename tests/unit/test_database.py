"""Unit tests for the database connection manager."""

import asyncio
from collections.abc import Callable

import pytest

from community_core.core.config import Settings
from community_core.core.database import (
    ConnectionManager,
    ConnectionOptions,
    ReconnectPolicy,
)

from tests.conftest import TEST_DSN, FakeConnector

ManagerFactory = Callable[..., ConnectionManager]


class TestReconnectPolicy:
    """Test the reconnect delay schedule."""

    def test_constant_delay_by_default(self) -> None:
        """Test the default policy always waits the base delay."""
        policy = ReconnectPolicy()

        assert [policy.delay_for(n) for n in range(5)] == [5.0] * 5

    def test_exponential_backoff_is_capped(self) -> None:
        """Test exponential backoff doubles per failure up to the cap."""
        policy = ReconnectPolicy(
            delay_seconds=5.0, exponential_backoff=True, max_delay_seconds=30.0
        )

        assert policy.delay_for(0) == 5.0
        assert policy.delay_for(1) == 5.0
        assert policy.delay_for(2) == 10.0
        assert policy.delay_for(3) == 20.0
        assert policy.delay_for(4) == 30.0
        assert policy.delay_for(10) == 30.0

    def test_integer_delays(self) -> None:
        """Test whole-second delays are accepted and returned as floats."""
        policy = ReconnectPolicy(
            delay_seconds=2, exponential_backoff=True, max_delay_seconds=5
        )

        assert policy.delay_for(1) == 2.0
        assert policy.delay_for(3) == 5.0
        assert isinstance(policy.delay_for(3), float)


class TestConnectionManagerConnect:
    """Test establishing the shared connection."""

    @pytest.mark.asyncio
    async def test_connect_success(self, make_manager: ManagerFactory) -> None:
        """Test a successful handshake updates state and registers a listener."""
        connector = FakeConnector()
        manager = make_manager(connector)

        connection = await manager.connect()

        assert manager.is_connected
        assert not manager.state.is_connecting
        assert manager.state.connection_error is None
        assert connector.calls == 1
        assert connector.last_kwargs == {
            "dsn": TEST_DSN,
            "timeout": 10.0,
            "command_timeout": 45.0,
        }
        assert connection.listeners

    @pytest.mark.asyncio
    async def test_connect_returns_existing_connection(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test connect() on a healthy manager performs no new handshake."""
        connector = FakeConnector()
        manager = make_manager(connector)

        first = await manager.connect()
        second = await manager.ensure_connected()

        assert first is second
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_connects_share_one_attempt(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test N concurrent callers trigger exactly one handshake."""
        connector = FakeConnector(delay=0.05)
        manager = make_manager(connector)

        connections = await asyncio.gather(*(manager.connect() for _ in range(10)))

        assert connector.calls == 1
        assert all(connection is connections[0] for connection in connections)
        assert manager.is_connected

    @pytest.mark.asyncio
    async def test_concurrent_connects_share_one_failure(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test joined callers all see the same error and one retry is scheduled."""
        connector = FakeConnector(fail_forever=True, delay=0.02)
        manager = make_manager(connector, delay=10.0)

        results = await asyncio.gather(
            *(manager.connect() for _ in range(5)), return_exceptions=True
        )

        assert connector.calls == 1
        assert all(isinstance(result, OSError) for result in results)
        assert all(result is results[0] for result in results)
        snapshot = manager.snapshot()
        assert not snapshot.is_connected
        assert not snapshot.is_connecting
        assert snapshot.has_error
        assert snapshot.error_name == "OSError"
        assert snapshot.reconnect_pending
        assert manager.state.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_missing_dsn_fails_without_calling_driver(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test an unconfigured manager raises ConnectionError."""
        connector = FakeConnector()
        manager = make_manager(connector, dsn=None, delay=10.0)

        with pytest.raises(ConnectionError, match="DATABASE_URL is not configured"):
            await manager.connect()

        assert connector.calls == 0
        assert not manager.is_configured
        assert manager.snapshot().reconnect_pending

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_attempt(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test the in-flight attempt completes after its caller is cancelled."""
        connector = FakeConnector(delay=0.05)
        manager = make_manager(connector)

        waiter = asyncio.create_task(manager.connect())
        await asyncio.sleep(0.01)
        waiter.cancel()

        assert await manager.wait_for_connection(1.0)
        assert connector.calls == 1


class TestConnectionManagerReconnect:
    """Test automatic recovery after failures and disconnects."""

    @pytest.mark.asyncio
    async def test_failed_attempts_retry_until_success(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test the retry loop keeps going without any caller waiting."""
        connector = FakeConnector(failures=2)
        manager = make_manager(connector)

        with pytest.raises(OSError):
            await manager.connect()

        assert await manager.wait_for_connection(1.0)
        assert connector.calls == 3
        assert manager.state.consecutive_failures == 0
        assert manager.state.connection_error is None

    @pytest.mark.asyncio
    async def test_disconnect_triggers_reconnect(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test a driver-reported termination leads to a fresh connection."""
        connector = FakeConnector()
        manager = make_manager(connector)
        first = await manager.connect()

        first.terminate()

        assert not manager.is_connected
        snapshot = manager.snapshot()
        assert snapshot.reconnect_pending
        assert snapshot.error_name == "ConnectionError"

        assert await manager.wait_for_connection(1.0)
        assert connector.calls == 2
        assert await manager.connect() is connector.connections[1]

    @pytest.mark.asyncio
    async def test_repeated_disconnect_schedules_one_reconnect(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test a second termination while a retry is pending adds no attempt."""
        connector = FakeConnector()
        manager = make_manager(connector, delay=0.05)
        connection = await manager.connect()
        on_termination = connection.listeners[0]

        on_termination(connection)
        timer = manager.state.reconnect_timer
        on_termination(connection)

        assert timer is not None
        assert manager.state.reconnect_timer is timer

        await asyncio.sleep(0.15)

        assert manager.is_connected
        assert connector.calls == 2

    @pytest.mark.asyncio
    async def test_termination_of_stale_connection_is_ignored(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test a late termination from a replaced connection changes nothing."""
        connector = FakeConnector()
        manager = make_manager(connector)
        first = await manager.connect()
        first.terminate()
        assert await manager.wait_for_connection(1.0)

        first.terminate()

        assert manager.is_connected
        assert not manager.snapshot().reconnect_pending

    @pytest.mark.asyncio
    async def test_new_attempt_replaces_pending_timer(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test an explicit attempt supersedes the scheduled retry."""
        connector = FakeConnector(fail_forever=True)
        manager = make_manager(connector, delay=10.0)

        with pytest.raises(OSError):
            await manager.connect()
        timer = manager.state.reconnect_timer

        with pytest.raises(OSError):
            await manager.ensure_connected()

        # A new attempt cancels the pending timer, the failure schedules one
        assert manager.state.reconnect_timer is not None
        assert timer is not None and timer.cancelled()
        assert connector.calls == 2


class TestConnectionManagerWait:
    """Test polling for a connection."""

    @pytest.mark.asyncio
    async def test_wait_times_out_without_connection(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test wait_for_connection returns False instead of raising."""
        manager = make_manager(FakeConnector(fail_forever=True))
        loop = asyncio.get_running_loop()

        started = loop.time()
        assert not await manager.wait_for_connection(0.05)
        assert loop.time() - started >= 0.04

    @pytest.mark.asyncio
    async def test_wait_sees_background_connection(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test wait_for_connection returns True once an attempt succeeds."""
        manager = make_manager(FakeConnector(delay=0.03))
        task = asyncio.create_task(manager.connect())

        assert await manager.wait_for_connection(1.0)
        await task

    @pytest.mark.asyncio
    async def test_wait_accepts_integer_timeout(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test a whole-second timeout is accepted without raising."""
        manager = make_manager(FakeConnector())
        await manager.connect()

        assert await manager.wait_for_connection(1)
        assert await manager.wait_for_connection(0) is True

    @pytest.mark.asyncio
    async def test_wait_returns_immediately_when_connected(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test a connected manager answers without polling."""
        manager = make_manager(FakeConnector())
        await manager.connect()

        assert await manager.wait_for_connection(0.0)


class TestConnectionManagerLifecycle:
    """Test queries, snapshots and shutdown."""

    @pytest.mark.asyncio
    async def test_ping_and_acquire(self, make_manager: ManagerFactory) -> None:
        """Test queries run through the shared connection."""
        connector = FakeConnector()
        manager = make_manager(connector)

        assert await manager.ping()
        async with manager.acquire() as connection:
            assert connection is connector.connections[0]

    @pytest.mark.asyncio
    async def test_close_does_not_schedule_reconnect(
        self, make_manager: ManagerFactory
    ) -> None:
        """Test closing the manager closes the connection and stops retries."""
        connector = FakeConnector()
        manager = make_manager(connector)
        connection = await manager.connect()

        await manager.close()

        assert connection.closed
        assert not manager.is_connected
        assert not manager.snapshot().reconnect_pending

    @pytest.mark.asyncio
    async def test_close_cancels_pending_retry(self, make_manager: ManagerFactory) -> None:
        """Test close() cancels a scheduled reconnect."""
        connector = FakeConnector(fail_forever=True)
        manager = make_manager(connector, delay=0.02)
        with pytest.raises(OSError):
            await manager.connect()

        await manager.close()
        await asyncio.sleep(0.05)

        assert connector.calls == 1
        assert manager.state.reconnect_timer is None

    def test_snapshot_as_dict(self) -> None:
        """Test the snapshot of a fresh manager."""
        manager = ConnectionManager(ConnectionOptions(dsn=TEST_DSN))

        assert manager.snapshot().as_dict() == {
            "is_connected": False,
            "is_connecting": False,
            "has_error": False,
            "error_name": None,
            "error_message": None,
            "reconnect_pending": False,
        }

    def test_from_settings(self) -> None:
        """Test settings map onto options and policy."""
        settings = Settings(
            database_url=TEST_DSN,
            db_reconnect_delay=2.0,
            db_reconnect_exponential=True,
            db_reconnect_max_delay=8.0,
        )

        manager = ConnectionManager.from_settings(settings)

        assert manager.is_configured
        assert manager._policy == ReconnectPolicy(
            delay_seconds=2.0, exponential_backoff=True, max_delay_seconds=8.0
        )
