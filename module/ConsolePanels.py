from typing import Optional

from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from model.CodeGenResponse import CodeGenReply
from module.ConfigStore import ClientConfig
from module.LogHelper import LogHelper


def _build_config_panel(config: ClientConfig, path: Optional[str]) -> Panel:
    t = Table(show_header=False, box=None)
    t.add_column("k", style="cyan", ratio=2)
    t.add_column("v", style="white", ratio=6)
    t.add_row("配置文件", path or "(默认值)")
    t.add_row("服务器", f"{config.server_host}:{config.server_port}")
    t.add_row("分帧方式", config.framing)
    t.add_row("响应格式", config.response_format)
    t.add_row("响应超时(s)", f"{config.response_timeout_seconds:g}")
    t.add_row("连接超时(s)", f"{config.connect_timeout_seconds:g}")
    t.add_row("目标语言", config.target_language or "-")
    t.add_row("错误详情日志", config.error_detail_log_file if config.error_detail_log_enable else "关闭")
    return Panel.fit(t, title="配置面板", border_style="bright_blue")


def show_config_panel(config: ClientConfig, path: Optional[str]) -> None:
    LogHelper.print(_build_config_panel(config, path), file=False)


def show_reply_panel(reply: CodeGenReply, language: Optional[str]) -> None:
    if not reply.ok:
        LogHelper.print(Panel(reply.message, title="服务器返回错误", border_style="red"), file=False)
        return

    body = Syntax(reply.code, language or "text", line_numbers=False, word_wrap=True)
    LogHelper.print(Panel(body, title="生成结果", border_style="green"), file=False)
    if reply.message:
        LogHelper.print(reply.message, file=False)
