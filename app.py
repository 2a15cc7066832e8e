"""
LocalCodeGen - Command Line Entry Point
=======================================

Talks to a local code-generation server over TCP.

Usage:
    python app.py generate "A function computing fibonacci numbers" --language cpp
    python app.py edit "Use a range-based for loop" --context-file src/loop.cpp
    python app.py serve --port 8080            # echo server for local testing
    python app.py config                       # show the effective configuration

Configuration is read from config.json (config_dev.json wins when present).
"""

import argparse
import asyncio
import sys
from typing import Optional

from rich.markup import escape
from rich.traceback import install

from model.CodeGenResponse import ReplyStatus
from module.CodeGenClient import CodeGenClient
from module.CodeGenErrors import CodeGenError
from module.CodeGenServer import CodeGenServer, echo_handler
from module.ConfigStore import ClientConfig, load_client_config
from module.ConsolePanels import show_config_panel, show_reply_panel
from module.LogHelper import LogHelper


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="app.py", description="Local code generation client")
    parser.add_argument("--config", default=None, help="path to config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("generate", help="generate code from a prompt")
    p.add_argument("prompt")
    p.add_argument("--context-file", default=None)
    p.add_argument("--language", default=None)

    p = sub.add_parser("edit", help="rework existing code with an instruction")
    p.add_argument("prompt")
    p.add_argument("--context-file", required=True)
    p.add_argument("--language", default=None)

    p = sub.add_parser("serve", help="run the echo code generation server")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--framing", default=None, choices=["stream_end", "sentinel"])

    sub.add_parser("config", help="show the effective configuration")
    return parser


def read_context(path: Optional[str]) -> str:
    if not path:
        return ""
    with open(path, "r", encoding="utf-8-sig") as reader:
        return reader.read()


def notify_user(message: str) -> None:
    LogHelper.print(f"[bold red]{escape(message)}[/]", file=False)


async def run_request(args: argparse.Namespace, config: ClientConfig) -> int:
    context = read_context(args.context_file)
    language = args.language or config.target_language

    async with CodeGenClient(config, notify=notify_user) as client:
        with LogHelper.status("正在请求本地代码生成服务 ..."):
            if args.command == "edit":
                reply = await client.edit(args.prompt, context, language)
            else:
                reply = await client.generate(args.prompt, context, language)

    show_reply_panel(reply, language)
    return 0 if reply.status == ReplyStatus.SUCCESS else 2


async def run_server(args: argparse.Namespace, config: ClientConfig) -> None:
    server = CodeGenServer(
        host=args.host or config.server_host,
        port=args.port if args.port is not None else config.server_port,
        handler=echo_handler,
        framing=args.framing or config.framing,
    )
    await server.serve_forever()


async def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    install()

    try:
        path, config = load_client_config(args.config)
    except (OSError, ValueError) as e:
        LogHelper.error(f"配置文件读取失败: {e}")
        return 1

    if args.command == "config":
        show_config_panel(config, path)
        return 0

    if args.command == "serve":
        await run_server(args, config)
        return 0

    try:
        return await run_request(args, config)
    except CodeGenError as e:
        LogHelper.error(f"Local AI Error: {e}")
        return 1
    except OSError as e:
        LogHelper.error(f"无法读取上下文文件: {e}")
        return 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        LogHelper.error("KeyboardInterrupt - 程序即将退出 ...")
        sys.exit(130)
