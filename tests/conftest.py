import asyncio
import json

import pytest

from module.LogHelper import LogHelper


@pytest.fixture(autouse=True)
def isolated_workdir(tmp_path, monkeypatch):
    # log/ 和 config.json 都是相对路径，每个用例放进自己的临时目录
    monkeypatch.chdir(tmp_path)
    LogHelper.reset()
    yield tmp_path
    LogHelper.reset()


class ScriptedServer:
    """Loopback TCP server; every accepted connection runs `script`."""

    def __init__(self, script):
        self._script = script
        self._writers = []
        self.connection_count = 0
        self.requests = []

    async def __aenter__(self):
        self._server = await asyncio.start_server(self._on_client, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc_info):
        self._server.close()
        for w in self._writers:
            w.close()
        await self._server.wait_closed()

    async def _on_client(self, reader, writer):
        self.connection_count += 1
        self._writers.append(writer)
        try:
            await self._script(self, reader, writer)
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def read_request(self, reader):
        decoder = json.JSONDecoder()
        buf = ""
        while True:
            if buf:
                try:
                    obj, _ = decoder.raw_decode(buf)
                    self.requests.append(obj)
                    return obj
                except json.JSONDecodeError:
                    pass
            chunk = await reader.read(4096)
            if not chunk:
                return None
            buf += chunk.decode("utf-8")


@pytest.fixture
def scripted_server():
    return ScriptedServer


def free_port() -> int:
    import socket

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def unused_port():
    return free_port()
