"""工具链发现：解析运行时 home 目录，构建工具链句柄并探测 jlink 版本。"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from jdktransform.domain.errors import InvalidVersionError, ProcessLaunchError, ToolchainNotFoundError
from jdktransform.domain.models import ToolchainHandle

logger = logging.getLogger(__name__)


def resolve_java_home(candidate: Path | None) -> Path:
    """校验候选 home 目录存在；候选来自显式覆盖或 JAVA_HOME。"""
    if candidate is None or not str(candidate).strip():
        raise ToolchainNotFoundError("Cannot find JAVA_HOME. Pass --java-home or set JAVA_HOME.")
    home = Path(candidate).expanduser()
    if not home.is_dir():
        raise ToolchainNotFoundError(f"JAVA_HOME is set to a directory which does not exist: {home}")
    return home.resolve()


def discover_toolchain(candidate: Path | None) -> ToolchainHandle:
    toolchain = ToolchainHandle.from_home(resolve_java_home(candidate))
    logger.info(
        "Using toolchain at %s",
        toolchain.home,
        extra={"event": "toolchain.resolved", "payload_preview": {"home": str(toolchain.home)}},
    )
    return toolchain


def probe_version(toolchain: ToolchainHandle, *, timeout_seconds: float | None = None) -> str:
    """执行 ``jlink --version`` 并返回去空白的完整标准输出。"""
    command = [str(toolchain.jlink), "--version"]
    try:
        # run 内部同时读取 stdout/stderr，不会因管道写满阻塞。
        completed = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout_seconds,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise InvalidVersionError(f"{toolchain.jlink} --version did not finish within {timeout_seconds}s") from exc
    except OSError as exc:
        raise ProcessLaunchError(f"Unable to start {toolchain.jlink}: {exc}") from exc

    version = (completed.stdout or "").strip()
    if completed.returncode != 0:
        detail = (completed.stderr or completed.stdout or "").strip()
        raise InvalidVersionError(
            f"{toolchain.jlink} --version exited with status {completed.returncode}: {detail}"
        )
    if not version:
        raise InvalidVersionError(f"Invalid value: '{completed.stdout}' reported by {toolchain.jlink} --version")
    logger.info("jlink version %s", version, extra={"event": "toolchain.version.probed"})
    return version
