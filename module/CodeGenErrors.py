"""
LocalCodeGen - Error Types
==========================

Failure kinds raised by the socket client. All of them derive from
CodeGenError so callers can catch the whole family at once, and the
connection/timeout kinds additionally derive from the matching builtin
exception so generic handlers keep working.

    CodeGenConnectionError   TCP connect failed (refused, unreachable, DNS ...)
    ResponseTimeoutError     no response terminator within the timeout
    TransportError           socket error after the connection was established
    ProtocolError            response body is not the expected JSON envelope
"""


class CodeGenError(Exception):
    pass


class CodeGenConnectionError(CodeGenError, ConnectionError):
    pass


class ResponseTimeoutError(CodeGenError, TimeoutError):
    pass


class TransportError(CodeGenError):
    pass


class ProtocolError(CodeGenError):
    pass
