"""
LocalCodeGen - Response Model
=============================

The socket client hands back the server response as an opaque string. What
that string means depends on the server build, so decoding happens here, at
the caller boundary, through a small set of interchangeable decoders:

    raw        the whole response is the generated code
    envelope   strict JSON {"status": "success"|"error", "code": ..., "message": ...}
    lenient    JSON when possible (use its "code" field), raw text otherwise

Usage:
    decoder = get_decoder("envelope")
    reply = decoder.decode(text)
    if reply.ok:
        insert(reply.code)
    else:
        show(reply.message)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

import json_repair as repair

from module.CodeGenErrors import ProtocolError


class ReplyStatus(str, Enum):

    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CodeGenReply:
    status: ReplyStatus
    code: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ReplyStatus.SUCCESS

    @classmethod
    def success(cls, code: str, message: str = "") -> CodeGenReply:
        return cls(status=ReplyStatus.SUCCESS, code=code, message=message)

    @classmethod
    def error(cls, message: str) -> CodeGenReply:
        return cls(status=ReplyStatus.ERROR, code="", message=message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"status": ReplyStatus(self.status).value, "message": self.message}
        # error 状态下 code 没有意义
        d["code"] = self.code if self.ok else ""
        return d

    def to_wire(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class RawDecoder:

    name = "raw"

    def decode(self, text: str) -> CodeGenReply:
        return CodeGenReply.success(text)


class EnvelopeDecoder:

    name = "envelope"

    def decode(self, text: str) -> CodeGenReply:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Failed to parse server response as JSON: {e}") from e

        if not isinstance(data, dict):
            raise ProtocolError(f"Server response is not a JSON object: {type(data).__name__}")

        try:
            status = ReplyStatus(data.get("status"))
        except ValueError:
            raise ProtocolError(f"Unknown response status: {data.get('status')!r}") from None

        message = data.get("message")
        message = message if isinstance(message, str) else ""
        if status == ReplyStatus.ERROR:
            return CodeGenReply.error(message or "Server returned an error status without a specific message.")

        code = data.get("code")
        if not isinstance(code, str):
            raise ProtocolError("Successful response is missing a string 'code' field")
        return CodeGenReply.success(code, message)


class LenientDecoder:

    name = "lenient"

    def decode(self, text: str) -> CodeGenReply:
        stripped = text.strip()
        if not stripped.startswith("{"):
            return CodeGenReply.success(text)

        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            # 服务端偶尔会吐出截断或带尾逗号的 JSON
            data = repair.loads(stripped)

        if isinstance(data, dict) and isinstance(data.get("code"), str) and data["code"]:
            message = data.get("message")
            return CodeGenReply.success(data["code"], message if isinstance(message, str) else "")
        return CodeGenReply.success(text)


DECODERS = {
    RawDecoder.name: RawDecoder,
    EnvelopeDecoder.name: EnvelopeDecoder,
    LenientDecoder.name: LenientDecoder,
}


def get_decoder(name: str) -> RawDecoder | EnvelopeDecoder | LenientDecoder:
    try:
        return DECODERS[name]()
    except KeyError:
        raise ValueError(f"unknown response format: {name!r} (expected one of {', '.join(DECODERS)})") from None
