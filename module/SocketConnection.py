"""
LocalCodeGen - Socket Connection Module
=======================================

Wraps one asyncio TCP stream (StreamReader/StreamWriter pair) and turns it into
an event source: a single background reader task pumps every received chunk to
the listeners that are currently subscribed, and reports end-of-stream and
socket errors to them.

Listeners are plain objects with three callbacks:

    on_data(chunk: bytes)    a chunk arrived (strict arrival order)
    on_end()                 the remote end closed its send direction
    on_error(exc: OSError)   the socket failed, or the connection was closed locally

Data that arrives while nobody is subscribed is dropped, so a listener that
has been removed can never observe traffic that belongs to a later exchange.

When the stream ends or fails the connection closes itself and calls the
on_closed callback given by its owner (the ConnectionManager).
"""

import asyncio
from typing import Any, Callable, Optional


class SocketConnection:

    CHUNK_SIZE: int = 4096

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        on_closed: Optional[Callable[["SocketConnection", str], None]] = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._on_closed = on_closed
        self._listeners: list[Any] = []
        self._closed = False
        self._eof_sent = False
        self.peer = writer.get_extra_info("peername")
        self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    @property
    def closed(self) -> bool:
        return self._closed or self._writer.is_closing()

    @property
    def writable(self) -> bool:
        return not self.closed and not self._eof_sent

    def subscribe(self, listener: Any) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def write(self, data: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("connection is closed")
        if self._eof_sent:
            raise BrokenPipeError("connection was half-closed, cannot write")
        self._writer.write(data)

    def write_eof(self) -> None:
        """半关闭：只关闭发送方向，仍可继续接收"""
        if self._eof_sent:
            return
        if not self._writer.can_write_eof():
            raise OSError("transport does not support half-close")
        self._writer.write_eof()
        self._eof_sent = True

    async def drain(self) -> None:
        await self._writer.drain()

    async def close(self) -> None:
        if not self._pump_task.done():
            self._pump_task.cancel()
        if not self._closed:
            # 本地主动关闭时，还在等待响应的监听者要立即收到错误
            self._emit("on_error", ConnectionAbortedError("connection closed locally"))
        self._shutdown("Connection closed.")
        try:
            await self._writer.wait_closed()
        except OSError:
            pass
        await asyncio.gather(self._pump_task, return_exceptions=True)

    async def _pump(self) -> None:
        reason = "Connection closed."
        try:
            while True:
                chunk = await self._reader.read(self.CHUNK_SIZE)
                if not chunk:
                    reason = "Server disconnected."
                    self._emit("on_end")
                    return
                self._emit("on_data", chunk)
        except OSError as e:
            reason = f"Connection error: {e}"
            self._emit("on_error", e)
        finally:
            self._shutdown(reason)

    def _emit(self, event: str, *args: Any) -> None:
        # 回调里可能会退订，先复制一份
        for listener in list(self._listeners):
            getattr(listener, event)(*args)

    def _shutdown(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        if self._on_closed is not None:
            self._on_closed(self, reason)
