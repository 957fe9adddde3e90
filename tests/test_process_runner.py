"""进程执行器测试：验证退出码、输出合并、大输出不阻塞、启动失败与超时终止。"""

from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from jdktransform.domain.errors import ProcessLaunchError, ProcessTimeoutError
from jdktransform.infra.process.runner import ProcessRunner


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def test_run_returns_exit_code_and_merged_output() -> None:
    """stderr 合并进 stdout，退出码原样返回。"""
    runner = ProcessRunner()

    result = runner.run(
        _python("import sys; print('to stdout', flush=True); print('to stderr', file=sys.stderr, flush=True); sys.exit(3)"),
        label="probe",
    )

    assert result.exit_code == 3
    assert set(result.output_tail) == {"to stdout", "to stderr"}
    assert result.line_count == 2


def test_run_drains_output_larger_than_pipe_buffer() -> None:
    """大量输出在进程运行期间被持续读取，不会因管道写满而卡死。"""
    runner = ProcessRunner(timeout_seconds=60, tail_lines=3)

    result = runner.run(_python("import sys\nfor i in range(20000):\n    sys.stdout.write('%05d %s\\n' % (i, 'x' * 90))"), label="flood")

    assert result.exit_code == 0
    assert result.line_count == 20000
    assert len(result.output_tail) == 3
    assert result.output_tail[-1].startswith("19999 ")


def test_run_raises_launch_error_for_missing_executable(tmp_path: Path) -> None:
    """可执行文件不存在时抛出 ProcessLaunchError。"""
    runner = ProcessRunner()

    with pytest.raises(ProcessLaunchError):
        runner.run([str(tmp_path / "bin" / "javac"), "-version"], label="compile")


def test_run_rejects_empty_command() -> None:
    with pytest.raises(ProcessLaunchError):
        ProcessRunner().run([], label="empty")


def test_run_kills_process_after_timeout() -> None:
    """配置超时后，超时进程被终止并抛出 ProcessTimeoutError。"""
    runner = ProcessRunner(timeout_seconds=0.5)

    with pytest.raises(ProcessTimeoutError):
        runner.run(_python("import time; print('sleeping', flush=True); time.sleep(30)"), label="hang")


def test_timeout_does_not_wait_for_grandchild_holding_the_pipe() -> None:
    """子进程被终止后，继承了输出管道的孙进程不会让超时路径无限等待。"""
    runner = ProcessRunner(timeout_seconds=0.5)
    code = (
        "import subprocess, sys, time\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(10)'])\n"
        "print('spawned', flush=True)\n"
        "time.sleep(30)\n"
    )

    started = time.monotonic()
    with pytest.raises(ProcessTimeoutError):
        runner.run(_python(code), label="hang")

    assert time.monotonic() - started < 8
