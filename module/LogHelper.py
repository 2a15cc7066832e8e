"""
LocalCodeGen - Log Helper Module
================================

Two loggers behind one class-level facade:

1. Console: Rich RichHandler, colour marks the level (DEBUG grey, INFO green,
   WARNING yellow, ERROR red)
2. File: daily rotated log/app.log, 3 days kept, always at DEBUG

Every method takes an optional exception whose traceback is appended, and
file/console switches to pick the targets. Initialisation is lazy so that
LOG_PATH can be changed (tests point it at a temp dir) before the first line
is written.
"""

import logging
import os
import threading
import traceback
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.status import Status


class LogHelper:

    LOG_PATH: str = "./log"
    _LOCK: threading.Lock = threading.Lock()
    _initialized: bool = False

    _console: Optional[Console] = None
    _console_logger: Optional[logging.Logger] = None
    _file_logger: Optional[logging.Logger] = None

    @classmethod
    def _ensure_init(cls) -> None:
        if cls._initialized:
            return

        with cls._LOCK:
            if cls._initialized:
                return

            cls._console = Console(highlight=True, tab_size=4)

            # ========== 文件日志 ==========
            os.makedirs(cls.LOG_PATH, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                os.path.join(cls.LOG_PATH, "app.log"),
                when="midnight",
                interval=1,
                encoding="utf-8",
                backupCount=3,
            )
            file_handler.setFormatter(
                logging.Formatter(
                    "[%(asctime)s] [%(levelname)s] %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            cls._file_logger = logging.getLogger("localcodegen_file")
            cls._file_logger.propagate = False
            cls._file_logger.setLevel(logging.DEBUG)
            cls._file_logger.handlers.clear()
            cls._file_logger.addHandler(file_handler)

            # ========== 控制台日志 ==========
            console_handler = RichHandler(
                console=cls._console,
                markup=False,
                show_path=False,
                rich_tracebacks=False,
                log_time_format="[%X]",
                omit_repeated_times=False,
            )
            cls._console_logger = logging.getLogger("localcodegen_console")
            cls._console_logger.propagate = False
            cls._console_logger.setLevel(logging.DEBUG)
            cls._console_logger.handlers.clear()
            cls._console_logger.addHandler(console_handler)

            cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """关闭所有 handler，下次写日志时按当前 LOG_PATH 重新初始化"""
        with cls._LOCK:
            for logger in (cls._file_logger, cls._console_logger):
                if logger is None:
                    continue
                for handler in list(logger.handlers):
                    handler.close()
                    logger.removeHandler(handler)
            cls._initialized = False

    @classmethod
    def get_console(cls) -> Console:
        cls._ensure_init()
        return cls._console

    @classmethod
    def _log(cls, level: int, msg: str, e: Optional[Exception], file: bool, console: bool) -> None:
        cls._ensure_init()
        if e is not None:
            msg_e = f"{msg} {e}" if msg else f"{e}"
            msg = f"{msg_e}\n{cls.get_trackback(e)}\n"
        if file:
            cls._file_logger.log(level, msg)
        if console:
            cls._console_logger.log(level, msg)

    @classmethod
    def debug(cls, msg: str, e: Optional[Exception] = None, file: bool = True, console: bool = True) -> None:
        cls._log(logging.DEBUG, msg, e, file, console)

    @classmethod
    def info(cls, msg: str, e: Optional[Exception] = None, file: bool = True, console: bool = True) -> None:
        cls._log(logging.INFO, msg, e, file, console)

    @classmethod
    def warning(cls, msg: str, e: Optional[Exception] = None, file: bool = True, console: bool = True) -> None:
        cls._log(logging.WARNING, msg, e, file, console)

    @classmethod
    def error(cls, msg: str, e: Optional[Exception] = None, file: bool = True, console: bool = True) -> None:
        cls._log(logging.ERROR, msg, e, file, console)

    @classmethod
    def print(cls, msg: object = "", file: bool = True, console: bool = True, **kwargs) -> None:
        """不带级别前缀的输出，支持 Rich renderable"""
        cls._ensure_init()
        if file and isinstance(msg, str):
            cls._file_logger.info(msg)
        if console:
            cls._console.print(msg, **kwargs)

    @classmethod
    def status(cls, *args, **kwargs) -> Status:
        cls._ensure_init()
        return cls._console.status(*args, **kwargs)

    @staticmethod
    def get_trackback(e: Exception) -> str:
        return "".join(traceback.format_exception(type(e), e, e.__traceback__)).strip()
