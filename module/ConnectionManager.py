"""
LocalCodeGen - Connection Manager Module
========================================

Owns the single TCP connection to the local code-generation server.

    Idle -> Connecting -> Connected -> Idle

- acquire_connection() returns the live connection when there is one, joins
  the connect attempt already in flight when there is one, and otherwise
  starts a new attempt. Concurrent first callers therefore share one connect.
- A failed connect is logged, pushed to the notification sink and raised as
  CodeGenConnectionError. Nothing is retried; the next call simply tries again.
- When the connection closes, ends or fails, the manager forgets it so the
  next acquire_connection() opens a fresh one.
- close() also aborts a connect attempt still in flight. Its waiters get
  CodeGenConnectionError and the manager stays Idle.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from module.CodeGenErrors import CodeGenConnectionError
from module.LogHelper import LogHelper
from module.SocketConnection import SocketConnection


def _consume_outcome(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()


class ConnectionManager:

    class State(str, Enum):

        IDLE = "idle"
        CONNECTING = "connecting"
        CONNECTED = "connected"

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        connect_timeout_seconds: float = 10.0,
        output: Optional[Callable[[str], None]] = None,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.connect_timeout_seconds = float(connect_timeout_seconds)
        self._output = output
        self._notify = notify
        self._connection: Optional[SocketConnection] = None
        self._connecting: Optional[asyncio.Task] = None
        self.connect_count = 0

    @property
    def state(self) -> "ConnectionManager.State":
        if self._connecting is not None:
            return ConnectionManager.State.CONNECTING
        if self._connection is not None and not self._connection.closed:
            return ConnectionManager.State.CONNECTED
        return ConnectionManager.State.IDLE

    def log(self, level: str, msg: str) -> None:
        getattr(LogHelper, level)(msg)
        if self._output is not None:
            self._output(msg)

    async def acquire_connection(self) -> SocketConnection:
        connection = self._connection
        if connection is not None and not connection.closed:
            if connection.writable:
                return connection

            # 已半关闭但服务端还没结束的连接不能再发请求
            self._connection = None
            await connection.close()

        if self._connecting is None:
            self._connecting = asyncio.get_running_loop().create_task(self._connect())
            # 所有等待者都被取消时也要读取结果，避免 "exception was never retrieved"
            self._connecting.add_done_callback(_consume_outcome)

        connecting = self._connecting
        try:
            # shield：某个等待者被取消时不影响其他等待者
            return await asyncio.shield(connecting)
        except asyncio.CancelledError:
            if not connecting.cancelled():
                raise
            # 连接尝试被 close() 中止
            raise CodeGenConnectionError("Connection attempt aborted: connection manager was closed.") from None

    async def close(self) -> None:
        connecting = self._connecting
        if connecting is not None:
            # 关闭时还在连接中：中止这次连接，等待者收到 CodeGenConnectionError
            connecting.cancel()
            await asyncio.gather(connecting, return_exceptions=True)
            # 尚未开始运行就被取消的任务不会执行 finally
            if self._connecting is connecting:
                self._connecting = None
            self.log("info", "Connection attempt aborted: connection manager was closed.")

        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()

    async def _connect(self) -> SocketConnection:
        self.log("info", f"Attempting to connect to server at {self.host}:{self.port}...")
        self.connect_count += 1
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout_seconds,
            )
        except (asyncio.TimeoutError, OSError) as e:
            if isinstance(e, asyncio.TimeoutError):
                reason = f"timed out after {self.connect_timeout_seconds:g}s"
            else:
                reason = str(e) or type(e).__name__
            message = f"Connection Error: Failed to connect to local server: {reason}"
            self._connection = None
            self.log("error", message)
            if self._notify is not None:
                self._notify(message)
            raise CodeGenConnectionError(message) from e
        finally:
            self._connecting = None

        connection = SocketConnection(reader, writer, on_closed=self._on_connection_closed)
        self._connection = connection
        self.log("info", "Successfully connected to local server.")
        return connection

    def _on_connection_closed(self, connection: SocketConnection, reason: str) -> None:
        if self._connection is connection:
            self._connection = None
        self.log("debug", reason)
