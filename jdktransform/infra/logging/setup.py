"""日志初始化：控制台文本输出、可选 JSONL 文件与 DEBUG 路由开关，经队列异步写入。"""

from __future__ import annotations

import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from queue import Queue
from typing import Any

from jdktransform.config import Settings
from jdktransform.infra.logging.context import get_log_context

_listener: QueueListener | None = None

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def render_payload_preview(payload: Any, *, max_chars: int) -> str | None:
    """将 payload 转为截断后的预览文本，避免写入大对象。"""
    if payload is None:
        return None
    if isinstance(payload, str):
        serialized = payload
    else:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
        except TypeError:
            serialized = str(payload)
    if len(serialized) <= max_chars:
        return serialized
    return f"{serialized[:max_chars]}...(truncated)"


class DebugRoutingFilter(logging.Filter):
    """控制默认日志级别，并允许指定模块放行 DEBUG。"""

    def __init__(self, *, min_level: int, debug_modules: set[str]) -> None:
        super().__init__()
        self._min_level = min_level
        self._debug_modules = debug_modules

    def _module_debug_enabled(self, logger_name: str) -> bool:
        return any(logger_name == item or logger_name.startswith(f"{item}.") for item in self._debug_modules)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self._min_level:
            return True
        if record.levelno != logging.DEBUG:
            return False
        return self._module_debug_enabled(record.name)


class ContextInjectionFilter(logging.Filter):
    """在日志入队前将 contextvars 写入 record，避免跨线程丢失。"""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key in ("run_id", "stage"):
            if getattr(record, key, None) is None and ctx.get(key) is not None:
                setattr(record, key, ctx[key])
        return True


class StructuredJsonFormatter(logging.Formatter):
    """将 LogRecord 规整为统一 JSON 行格式。"""

    def __init__(self, *, service: str, payload_preview_chars: int = 2000) -> None:
        super().__init__()
        self._service = service
        self._payload_preview_chars = payload_preview_chars

    @staticmethod
    def _coerce_number(value: Any) -> int | float | None:
        if value is None:
            return None
        if isinstance(value, (int, float)):
            return value
        try:
            text = str(value)
            return int(text) if text.lstrip("-").isdigit() else float(text)
        except ValueError:
            return None

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()
        error_text = getattr(record, "error", None)
        if error_text is None and record.exc_info:
            error_text = self.formatException(record.exc_info)

        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "module": record.name,
            "event": getattr(record, "event", None),
            "run_id": getattr(record, "run_id", None) or ctx.get("run_id"),
            "stage": getattr(record, "stage", None) or ctx.get("stage"),
            "op": getattr(record, "op", None),
            "duration_ms": self._coerce_number(getattr(record, "duration_ms", None)),
            "exit_code": self._coerce_number(getattr(record, "exit_code", None)),
            "message": record.getMessage(),
            "error_type": getattr(record, "error_type", None),
            "error": str(error_text) if error_text is not None else None,
            "payload_preview": render_payload_preview(
                getattr(record, "payload_preview", None),
                max_chars=self._payload_preview_chars,
            ),
        }
        return json.dumps(entry, ensure_ascii=False)


def _parse_level(level_text: str) -> int:
    return getattr(logging, str(level_text).upper(), logging.INFO)


def configure_logging(settings: Settings) -> None:
    """初始化全局日志输出：控制台总是启用，配置 log_file 时额外写 JSONL。"""
    global _listener
    shutdown_logging()

    queue_obj: Queue[logging.LogRecord] = Queue()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "handlers": {
                "queue": {
                    "class": "logging.handlers.QueueHandler",
                    "queue": queue_obj,
                }
            },
            "root": {
                "level": "DEBUG",
                "handlers": ["queue"],
            },
        }
    )

    root_logger = logging.getLogger()
    queue_handler = next((item for item in root_logger.handlers if isinstance(item, QueueHandler)), None)
    if queue_handler is None:
        raise RuntimeError("queue logging handler is not configured")
    queue_handler.addFilter(ContextInjectionFilter())
    queue_handler.addFilter(
        DebugRoutingFilter(
            min_level=_parse_level(settings.log_level),
            debug_modules=set(settings.log_debug_modules_list()),
        )
    )

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
    handlers: list[logging.Handler] = [console_handler]

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(settings.log_file),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredJsonFormatter(service="jdk-transform"))
        handlers.append(file_handler)

    _listener = QueueListener(queue_obj, *handlers, respect_handler_level=True)
    _listener.start()


def shutdown_logging() -> None:
    """停止队列监听器、关闭底层句柄并摘除根 logger 上的队列句柄。"""
    global _listener
    if _listener is None:
        return
    root_logger = logging.getLogger()
    for handler in [item for item in root_logger.handlers if isinstance(item, QueueHandler)]:
        root_logger.removeHandler(handler)
    try:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
    finally:
        _listener = None
