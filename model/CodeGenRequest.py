from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Operation(str, Enum):

    GENERATE = "generate"           # 在光标处生成代码
    EDIT = "edit"                   # 处理选中的代码


@dataclass
class CodeGenRequest:
    operation: Operation
    prompt_text: str
    context_text: str = ""
    target_language: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "operation": Operation(self.operation).value,
            "promptText": self.prompt_text,
            "contextText": self.context_text,
        }
        if self.target_language is not None:
            d["targetLanguage"] = self.target_language
        return d

    def to_wire(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_dict(cls, d: Any) -> CodeGenRequest:
        if not isinstance(d, dict):
            raise ValueError("request must be a JSON object")
        try:
            operation = Operation(d.get("operation"))
        except ValueError:
            raise ValueError(f"unknown operation: {d.get('operation')!r}") from None
        prompt = d.get("promptText")
        if not isinstance(prompt, str):
            raise ValueError("promptText must be a string")
        context = d.get("contextText", "")
        language = d.get("targetLanguage")
        return cls(
            operation=operation,
            prompt_text=prompt,
            context_text=context if isinstance(context, str) else "",
            target_language=language if isinstance(language, str) else None,
        )
