import asyncio
import codecs
import json
import threading
from typing import Callable, Optional

from model.CodeGenRequest import CodeGenRequest, Operation
from model.CodeGenResponse import CodeGenReply
from module.LogHelper import LogHelper
from module.ResponseFraming import SentinelFraming, get_framing


def echo_handler(request: CodeGenRequest) -> CodeGenReply:
    language = request.target_language or "text"
    if request.operation == Operation.EDIT:
        code = f"// {language}: {request.prompt_text}\n{request.context_text}"
    else:
        code = f"// {language}: {request.prompt_text}"
    return CodeGenReply.success(code)


class CodeGenServer:
    """Minimal local code-generation server speaking both framings."""

    def __init__(
        self,
        host: str,
        port: int,
        handler: Callable[[CodeGenRequest], CodeGenReply],
        framing: str = "stream_end",
    ) -> None:
        self.host = host
        self.port = int(port)
        self.framing = get_framing(framing)
        self._handler = handler
        self._server: Optional[asyncio.AbstractServer] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._ready = threading.Event()
        self._clients: set[asyncio.StreamWriter] = set()

    @property
    def bound_port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.port
        return self._server.sockets[0].getsockname()[1]

    async def start_async(self) -> None:
        self._server = await asyncio.start_server(self._handle_client, host=self.host, port=self.port)
        LogHelper.info(f"Code generation server listening on {self.host}:{self.bound_port} ({self.framing.name})")

    async def stop_async(self) -> None:
        if self._server is None:
            return
        self._server.close()
        # keep-open 的连接不会自己结束，先逐个关掉
        for w in list(self._clients):
            w.close()
        await self._server.wait_closed()
        self._server = None

    async def serve_forever(self) -> None:
        await self.start_async()
        self._ready.set()
        try:
            while not self._stop.is_set():
                await asyncio.sleep(0.2)
        finally:
            await self.stop_async()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return

        def run() -> None:
            asyncio.run(self.serve_forever())

        self._stop.clear()
        self._ready.clear()
        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)

    def dispatch(self, raw: object) -> CodeGenReply:
        try:
            request = CodeGenRequest.from_dict(raw)
        except ValueError as e:
            return CodeGenReply.error(f"invalid_request: {e}")
        try:
            reply = self._handler(request)
        except Exception as e:
            LogHelper.error("Request handler failed", e)
            return CodeGenReply.error(str(e))
        if not isinstance(reply, CodeGenReply):
            return CodeGenReply.error("invalid_response")
        return reply

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._clients.add(writer)
        try:
            if isinstance(self.framing, SentinelFraming):
                await self._serve_keep_open(reader, writer)
            else:
                await self._serve_half_close(reader, writer)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            self._clients.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def _serve_half_close(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        # 客户端写完后半关闭，读到 EOF 即请求完整
        data = await reader.read()
        try:
            raw = json.loads(data.decode("utf-8", errors="replace"))
        except json.JSONDecodeError:
            reply = CodeGenReply.error("invalid_json")
        else:
            reply = self.dispatch(raw)
        writer.write(reply.to_wire().encode("utf-8"))
        await writer.drain()
        if writer.can_write_eof():
            writer.write_eof()

    async def _serve_keep_open(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        # 请求没有结束符，以一个完整的 JSON 对象为界
        decoder = json.JSONDecoder()
        text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buf = ""
        while True:
            chunk = await reader.read(4096)
            if not chunk:
                return
            buf += text.decode(chunk)
            while buf.strip():
                try:
                    raw, end = decoder.raw_decode(buf.lstrip())
                except json.JSONDecodeError:
                    break
                buf = buf.lstrip()[end:]
                reply = self.dispatch(raw)
                writer.write((reply.to_wire() + SentinelFraming.SENTINEL).encode("utf-8"))
                await writer.drain()
