import json
import os
import re
import threading
from datetime import datetime
from typing import Any


class ErrorLogger:
    _lock = threading.Lock()
    _enabled: bool = True
    _max_chars: int = 2000
    _log_file = "log/error_detail.log"
    _re_secret_tokens = [
        re.compile(r"\b(sk-[A-Za-z0-9_\-]{20,})\b"),
        re.compile(r"\b(gh[pousr]_[A-Za-z0-9]{20,})\b"),
        re.compile(r"\b(AKIA[0-9A-Z]{16})\b"),
        re.compile(r"(?i)\bBearer\s+([A-Za-z0-9\.\-_]{20,})\b"),
        re.compile(r"(?i)\b(?:password|passwd|secret|token)\s*[=:]\s*['\"]?([^\s'\"]{6,})"),
    ]
    _secret_keys = {
        "api_key",
        "apikey",
        "authorization",
        "token",
        "secret",
        "password",
    }

    @classmethod
    def configure(cls, enabled: bool | None = None, max_chars: int | None = None, log_file: str | None = None) -> None:
        if enabled is not None:
            cls._enabled = bool(enabled)
        if isinstance(max_chars, int) and max_chars > 0:
            cls._max_chars = max_chars
        if isinstance(log_file, str) and log_file.strip():
            cls._log_file = log_file.strip()

    @classmethod
    def log_file(cls) -> str:
        return cls._log_file

    @classmethod
    def _redact_token(cls, s: Any) -> Any:
        if not isinstance(s, str):
            return s
        if len(s) <= 12:
            return "***"
        return f"{s[:4]}…{s[-2:]}"

    @classmethod
    def redact(cls, s: str) -> str:
        # prompt 和选中代码里经常混着密钥，落盘前先打码
        for pat in cls._re_secret_tokens:
            s = pat.sub(lambda m: m.group(0).replace(m.group(1), cls._redact_token(m.group(1))), s)
        return s

    @classmethod
    def _sanitize(cls, obj: Any) -> Any:
        if isinstance(obj, dict):
            out: dict[str, Any] = {}
            for k, v in obj.items():
                if str(k).lower() in cls._secret_keys:
                    out[k] = cls._redact_token(v)
                else:
                    out[k] = cls._sanitize(v)
            return out
        if isinstance(obj, (list, tuple)):
            return [cls._sanitize(v) for v in obj]
        if isinstance(obj, str):
            s = cls.redact(obj)
            if len(s) > cls._max_chars:
                s = s[: cls._max_chars] + f"...(truncated, len={len(s)})"
            return s
        return obj

    @classmethod
    def log(cls, error_type: str, message: str, context: dict[str, Any] | None = None) -> None:
        if cls._enabled is not True:
            return

        entry = {
            "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "error_type": error_type,
            "message": cls.redact(message),
            "context": cls._sanitize(context or {}),
        }

        with cls._lock:
            try:
                directory = os.path.dirname(cls._log_file)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                with open(cls._log_file, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False, indent=2))
                    f.write("\n" + "-" * 80 + "\n")
            except OSError:
                return
