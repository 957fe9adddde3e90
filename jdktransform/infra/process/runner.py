"""外部进程执行器：合并 stderr 到 stdout，后台线程持续读取输出，等待退出并返回状态。"""

from __future__ import annotations

import contextvars
import logging
import subprocess
import threading
import time
from collections import deque
from collections.abc import Sequence
from typing import IO

from jdktransform.domain.errors import ProcessLaunchError, ProcessTimeoutError
from jdktransform.domain.models import ProcessResult

logger = logging.getLogger(__name__)

# 强制终止后等待读取线程的上限；孙进程可能继承管道并保持打开。
DRAIN_GRACE_SECONDS = 2.0


class _OutputCapture:
    """输出读取状态；只由读取线程写入，调用方在 join 之后读取。"""

    def __init__(self, tail_lines: int) -> None:
        self.tail: deque[str] = deque(maxlen=max(tail_lines, 0))
        self.line_count = 0

    def drain(self, stream: IO[str], label: str) -> None:
        for raw in stream:
            line = raw.rstrip("\r\n")
            self.tail.append(line)
            self.line_count += 1
            logger.info("[%s] %s", label, line, extra={"event": "process.output", "op": label})


class ProcessRunner:
    """同步执行单个外部命令。

    读取线程在进程启动后立即开始，贯穿整个进程生命周期，避免子进程
    因管道缓冲区写满而阻塞；正常退出时线程在 run 返回前必定被 join，
    超时强制终止后最多再等待 DRAIN_GRACE_SECONDS。
    """

    def __init__(self, *, timeout_seconds: float | None = None, tail_lines: int = 40) -> None:
        self._timeout_seconds = timeout_seconds
        self._tail_lines = tail_lines

    def run(self, command: Sequence[str], *, label: str) -> ProcessResult:
        argv = [str(item) for item in command]
        if not argv:
            raise ProcessLaunchError(f"[{label}] empty command")

        started = time.perf_counter()
        logger.debug(
            "process launching",
            extra={"event": "process.launching", "op": label, "payload_preview": argv},
        )
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise ProcessLaunchError(f"[{label}] Unable to start {argv[0]}: {exc}") from exc

        capture = _OutputCapture(self._tail_lines)
        # 复制当前上下文，读取线程输出的日志仍带 run_id/stage。
        ctx = contextvars.copy_context()
        reader = threading.Thread(
            target=ctx.run,
            args=(capture.drain, process.stdout, label),
            name=f"drain-{label}",
            daemon=True,
        )
        reader.start()

        timed_out = False
        try:
            exit_code = process.wait(timeout=self._timeout_seconds)
        except subprocess.TimeoutExpired:
            timed_out = True
            process.kill()
            exit_code = process.wait()
        finally:
            reader.join(timeout=DRAIN_GRACE_SECONDS if timed_out else None)
            if process.stdout is not None and not reader.is_alive():
                process.stdout.close()

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if timed_out:
            logger.error(
                "process timed out",
                extra={"event": "process.timeout", "op": label, "duration_ms": duration_ms},
            )
            raise ProcessTimeoutError(
                f"[{label}] {argv[0]} did not finish within {self._timeout_seconds}s and was killed"
            )

        logger.debug(
            "process exited",
            extra={"event": "process.exited", "op": label, "exit_code": exit_code, "duration_ms": duration_ms},
        )
        return ProcessResult(
            exit_code=exit_code,
            output_tail=tuple(capture.tail),
            line_count=capture.line_count,
            duration_ms=duration_ms,
        )
