"""
LocalCodeGen - Code Generation Client Module
============================================

Request/response exchanger for the local code-generation server.

One exchange:
    1. borrow the connection from the ConnectionManager (connect on demand)
    2. subscribe an exchange listener, then write the JSON request
       (and half-close when the framing asks for it)
    3. accumulate the response text until the framing says it is complete
    4. give up after response_timeout_seconds

Exactly one outcome per exchange: the response text, ResponseTimeoutError or
TransportError (connection failures surface as CodeGenConnectionError from
the manager). The listener is removed on every exit path and the connection is
never closed on success, so it can be reused by the next exchange.

Overlapping send_request() calls are serialized; requests are never pipelined.

Usage:
    async with CodeGenClient(config) as client:
        reply = await client.generate("fib", target_language="cpp")
"""

import asyncio
import codecs
from typing import Callable, Optional

from model.CodeGenRequest import CodeGenRequest, Operation
from model.CodeGenResponse import CodeGenReply, get_decoder
from module.CodeGenErrors import CodeGenError, ResponseTimeoutError, TransportError
from module.ConfigStore import ClientConfig
from module.ConnectionManager import ConnectionManager
from module.ErrorLogger import ErrorLogger
from module.ResponseFraming import SentinelFraming, StreamEndFraming, get_framing


class PendingExchange:
    """Listener that collects one response from a SocketConnection."""

    def __init__(self, framing: StreamEndFraming | SentinelFraming, future: asyncio.Future) -> None:
        self._framing = framing
        self._future = future
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.buffer = ""

    def on_data(self, chunk: bytes) -> None:
        if self._future.done():
            return
        self.buffer += self._decoder.decode(chunk)
        result = self._framing.feed(self.buffer)
        if result is not None:
            self._future.set_result(result)

    def on_end(self) -> None:
        if self._future.done():
            return
        self.buffer += self._decoder.decode(b"", final=True)
        try:
            self._future.set_result(self._framing.finish(self.buffer))
        except CodeGenError as e:
            self._future.set_exception(e)

    def on_error(self, exc: OSError) -> None:
        if self._future.done():
            return
        self._future.set_exception(TransportError(f"Socket communication error during response: {exc}"))


class CodeGenClient:

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        output: Optional[Callable[[str], None]] = None,
        notify: Optional[Callable[[str], None]] = None,
        manager: Optional[ConnectionManager] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.framing = get_framing(self.config.framing)
        self.decoder = get_decoder(self.config.response_format)
        self.manager = manager or ConnectionManager(
            host=self.config.server_host,
            port=self.config.server_port,
            connect_timeout_seconds=self.config.connect_timeout_seconds,
            output=output,
            notify=notify,
        )
        self._lock = asyncio.Lock()

        ErrorLogger.configure(
            enabled=self.config.error_detail_log_enable,
            log_file=self.config.error_detail_log_file,
        )

    async def __aenter__(self) -> "CodeGenClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.manager.close()

    async def generate(
        self,
        prompt_text: str,
        context_text: str = "",
        target_language: Optional[str] = None,
    ) -> CodeGenReply:
        return await self._run(Operation.GENERATE, prompt_text, context_text, target_language)

    async def edit(
        self,
        prompt_text: str,
        context_text: str,
        target_language: Optional[str] = None,
    ) -> CodeGenReply:
        return await self._run(Operation.EDIT, prompt_text, context_text, target_language)

    async def _run(self, operation: Operation, prompt_text: str, context_text: str, target_language: Optional[str]) -> CodeGenReply:
        request = CodeGenRequest(
            operation=operation,
            prompt_text=prompt_text,
            context_text=context_text,
            target_language=target_language or self.config.target_language,
        )
        return self.decoder.decode(await self.send_request(request))

    async def send_request(self, request: CodeGenRequest) -> str:
        async with self._lock:
            try:
                return await self._exchange(request)
            except CodeGenError as e:
                self.manager.log("error", f"Failed to send request to local server: {e}")
                ErrorLogger.log(
                    type(e).__name__,
                    str(e),
                    {
                        "server": f"{self.manager.host}:{self.manager.port}",
                        "framing": self.framing.name,
                        "operation": Operation(request.operation).value,
                        "target_language": request.target_language,
                        "prompt_text": request.prompt_text,
                        "context_chars": len(request.context_text),
                    },
                )
                raise

    async def _exchange(self, request: CodeGenRequest) -> str:
        connection = await self.manager.acquire_connection()
        payload = request.to_wire()

        future = asyncio.get_running_loop().create_future()
        # 必须在写入之前挂上监听，否则可能丢掉最先到达的数据
        unsubscribe = connection.subscribe(PendingExchange(self.framing, future))
        try:
            try:
                connection.write(payload)
                if self.framing.half_close:
                    connection.write_eof()
                await connection.drain()
            except OSError as e:
                raise TransportError(f"Socket communication error during request: {e}") from e

            timeout = self.config.response_timeout_seconds
            try:
                return await asyncio.wait_for(future, timeout=timeout)
            except asyncio.TimeoutError:
                raise ResponseTimeoutError(f"Server response timed out ({timeout:g}s).") from None
        finally:
            unsubscribe()
            if not future.done():
                future.cancel()
            elif not future.cancelled():
                # 标记异常已读取，避免 "exception was never retrieved"
                future.exception()
