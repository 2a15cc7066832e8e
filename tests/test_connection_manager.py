"""Tests for ConnectionManager: reuse, coalescing, failures and passive close."""

import asyncio

import pytest

from module.CodeGenErrors import CodeGenConnectionError, CodeGenError
from module.ConnectionManager import ConnectionManager


async def hold_open(srv, reader, writer):
    await reader.read()


class TestAcquireConnection:
    def test_starts_idle(self):
        manager = ConnectionManager(port=1)
        assert manager.state == ConnectionManager.State.IDLE
        assert manager.connect_count == 0

    @pytest.mark.asyncio
    async def test_live_connection_is_returned_without_io(self, scripted_server):
        async with scripted_server(hold_open) as srv:
            manager = ConnectionManager(port=srv.port)
            first = await manager.acquire_connection()
            second = await manager.acquire_connection()

            assert first is second
            assert manager.connect_count == 1
            assert manager.state == ConnectionManager.State.CONNECTED
            await manager.close()

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_share_one_connect(self, scripted_server):
        async with scripted_server(hold_open) as srv:
            manager = ConnectionManager(port=srv.port)
            first, second = await asyncio.gather(
                manager.acquire_connection(),
                manager.acquire_connection(),
            )

            assert first is second
            assert manager.connect_count == 1
            await asyncio.sleep(0.05)
            assert srv.connection_count == 1
            await manager.close()

    @pytest.mark.asyncio
    async def test_state_is_connecting_while_attempt_in_flight(self, scripted_server):
        async with scripted_server(hold_open) as srv:
            manager = ConnectionManager(port=srv.port)
            task = asyncio.ensure_future(manager.acquire_connection())
            await asyncio.sleep(0)

            assert manager.state == ConnectionManager.State.CONNECTING
            await task
            assert manager.state == ConnectionManager.State.CONNECTED
            await manager.close()
            assert manager.state == ConnectionManager.State.IDLE


class TestConnectFailure:
    @pytest.mark.asyncio
    async def test_refused_connect_raises_and_notifies(self, unused_port):
        notified = []
        lines = []
        manager = ConnectionManager(port=unused_port, output=lines.append, notify=notified.append)

        with pytest.raises(CodeGenConnectionError) as exc_info:
            await manager.acquire_connection()

        assert isinstance(exc_info.value, ConnectionError)
        assert isinstance(exc_info.value, CodeGenError)
        assert "Failed to connect to local server" in str(exc_info.value)
        assert notified == [str(exc_info.value)]
        assert lines[0].startswith("Attempting to connect to server at 127.0.0.1:")
        assert lines[-1] == str(exc_info.value)
        assert manager.state == ConnectionManager.State.IDLE

    @pytest.mark.asyncio
    async def test_failure_is_not_retried_automatically(self, unused_port):
        manager = ConnectionManager(port=unused_port)

        with pytest.raises(CodeGenConnectionError):
            await manager.acquire_connection()
        assert manager.connect_count == 1

        with pytest.raises(CodeGenConnectionError):
            await manager.acquire_connection()
        assert manager.connect_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_waiters_share_the_failure(self, unused_port):
        manager = ConnectionManager(port=unused_port)
        results = await asyncio.gather(
            manager.acquire_connection(),
            manager.acquire_connection(),
            return_exceptions=True,
        )

        assert all(isinstance(r, CodeGenConnectionError) for r in results)
        assert manager.connect_count == 1


class TestPassiveClose:
    @pytest.mark.asyncio
    async def test_remote_close_returns_manager_to_idle(self, scripted_server):
        async def close_immediately(srv, reader, writer):
            return

        async with scripted_server(close_immediately) as srv:
            lines = []
            manager = ConnectionManager(port=srv.port, output=lines.append)
            connection = await manager.acquire_connection()
            await asyncio.sleep(0.1)

            assert connection.closed
            assert manager.state == ConnectionManager.State.IDLE
            assert "Server disconnected." in lines

            again = await manager.acquire_connection()
            assert again is not connection
            assert manager.connect_count == 2
            await manager.close()

    @pytest.mark.asyncio
    async def test_half_closed_connection_is_replaced(self, scripted_server):
        async with scripted_server(hold_open) as srv:
            manager = ConnectionManager(port=srv.port)
            connection = await manager.acquire_connection()
            connection.write_eof()

            assert not connection.writable
            replacement = await manager.acquire_connection()

            assert replacement is not connection
            assert connection.closed
            assert manager.connect_count == 2
            await manager.close()


class TestCloseWhileConnecting:
    @pytest.mark.asyncio
    async def test_close_aborts_in_flight_connect(self, scripted_server):
        async with scripted_server(hold_open) as srv:
            manager = ConnectionManager(port=srv.port)
            waiter = asyncio.ensure_future(manager.acquire_connection())
            await asyncio.sleep(0)
            assert manager.state == ConnectionManager.State.CONNECTING

            await manager.close()
            (result,) = await asyncio.gather(waiter, return_exceptions=True)

            assert isinstance(result, CodeGenConnectionError)
            assert "aborted" in str(result)
            await asyncio.sleep(0.05)
            assert manager.state == ConnectionManager.State.IDLE
            assert manager._connection is None

    @pytest.mark.asyncio
    async def test_manager_connects_again_after_aborted_attempt(self, scripted_server):
        async with scripted_server(hold_open) as srv:
            manager = ConnectionManager(port=srv.port)
            waiter = asyncio.ensure_future(manager.acquire_connection())
            await asyncio.sleep(0)
            await manager.close()
            await asyncio.gather(waiter, return_exceptions=True)

            connection = await manager.acquire_connection()
            assert not connection.closed
            assert manager.state == ConnectionManager.State.CONNECTED
            await manager.close()

    @pytest.mark.asyncio
    async def test_failed_connect_with_no_waiters_is_retrieved(self, unused_port):
        manager = ConnectionManager(port=unused_port)
        waiter = asyncio.ensure_future(manager.acquire_connection())
        await asyncio.sleep(0)
        connecting = manager._connecting

        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)
        # asyncio.wait does not read the task's exception
        await asyncio.wait([connecting])

        # exception already marked as retrieved, so asyncio logs nothing on collection
        assert not connecting._log_traceback
        assert isinstance(connecting.exception(), CodeGenConnectionError)
        assert manager.state == ConnectionManager.State.IDLE
