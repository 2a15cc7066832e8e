"""
LocalCodeGen - Response Framing Module
======================================

The code-generation server does not length-prefix its responses, so the end of
a response has to be inferred. Two strategies exist and each one is tied to
the way the request is sent:

    stream_end   request is written and the send direction is half-closed;
                 the response is complete when the server closes its side
    sentinel     request is written and both directions stay open;
                 the response is complete once the received text ends in "\\n"

A framing object is stateless: feed() inspects the accumulated buffer after
every chunk, finish() is called when the stream ends before feed() fired.
"""

from typing import Optional

from module.CodeGenErrors import TransportError


class StreamEndFraming:

    name = "stream_end"
    half_close = True

    def feed(self, buffer: str) -> Optional[str]:
        return None

    def finish(self, buffer: str) -> str:
        return buffer.strip()


class SentinelFraming:

    name = "sentinel"
    half_close = False
    SENTINEL = "\n"

    def feed(self, buffer: str) -> Optional[str]:
        if buffer.endswith(self.SENTINEL):
            return buffer[: -len(self.SENTINEL)].strip()
        return None

    def finish(self, buffer: str) -> str:
        raise TransportError("Server closed the connection before the response terminator was received.")


FRAMINGS = {
    StreamEndFraming.name: StreamEndFraming,
    SentinelFraming.name: SentinelFraming,
}


def get_framing(name: str) -> StreamEndFraming | SentinelFraming:
    try:
        return FRAMINGS[name]()
    except KeyError:
        raise ValueError(f"unknown framing: {name!r} (expected one of {', '.join(FRAMINGS)})") from None
