import json
import os
from dataclasses import dataclass, fields
from typing import Any

from model.CodeGenResponse import DECODERS
from module.ResponseFraming import FRAMINGS


def config_path() -> str:
    if os.path.isfile("config_dev.json"):
        return "config_dev.json"
    return "config.json"


def load_raw(path: str | None = None) -> tuple[str, dict[str, Any]]:
    p = path or config_path()
    with open(p, "r", encoding="utf-8-sig") as f:
        return p, json.load(f)


def get_value(raw: dict[str, Any], key: str, default: Any = None) -> Any:
    # 配置项可以写成 [值, "说明"] 的形式
    v = raw.get(key, default)
    if isinstance(v, list) and len(v) > 0:
        return v[0]
    return v


@dataclass
class ClientConfig:
    server_host: str = "127.0.0.1"
    server_port: int = 8080
    response_timeout_seconds: float = 120.0
    connect_timeout_seconds: float = 10.0
    framing: str = "stream_end"
    response_format: str = "envelope"
    target_language: str | None = "cpp"
    error_detail_log_enable: bool = True
    error_detail_log_file: str = "log/error_detail.log"

    def __post_init__(self) -> None:
        self.server_port = int(self.server_port)
        self.response_timeout_seconds = float(self.response_timeout_seconds)
        self.connect_timeout_seconds = float(self.connect_timeout_seconds)
        if self.framing not in FRAMINGS:
            raise ValueError(f"unknown framing: {self.framing!r} (expected one of {', '.join(FRAMINGS)})")
        if self.response_format not in DECODERS:
            raise ValueError(f"unknown response format: {self.response_format!r} (expected one of {', '.join(DECODERS)})")
        if self.response_timeout_seconds <= 0:
            raise ValueError("response_timeout_seconds must be positive")
        if self.target_language == "":
            self.target_language = None

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "ClientConfig":
        kwargs = {}
        for f in fields(cls):
            if f.name in raw:
                kwargs[f.name] = get_value(raw, f.name)
        return cls(**kwargs)


def load_client_config(path: str | None = None) -> tuple[str | None, ClientConfig]:
    p = path or config_path()
    if path is None and not os.path.isfile(p):
        return None, ClientConfig()
    p, raw = load_raw(p)
    return p, ClientConfig.from_raw(raw)
