"""领域数据结构定义：运行参数、工具链句柄与流水线阶段等核心值对象。"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from jdktransform.domain.enums import PipelineState
from jdktransform.domain.errors import StageFailedError

# 已去重的完整包名集合；渲染时按字典序排序。
PackageSet = frozenset[str]

CLASS_SUFFIX = ".class"
DESCRIPTOR_SOURCE_NAME = "module-info.java"
DESCRIPTOR_CLASS_NAME = "module-info.class"


@dataclass(frozen=True, slots=True)
class RunArguments:
    """单次运行的输入：待扫描的类归档与最终镜像输出目录。"""
    android_jar: Path
    output_dir: Path


@dataclass(frozen=True, slots=True)
class ToolchainHandle:
    """工具链句柄：home/bin 下三个可执行文件的绝对路径，解析后只读。"""
    home: Path
    javac: Path
    jmod: Path
    jlink: Path

    @classmethod
    def from_home(cls, home: Path) -> "ToolchainHandle":
        home = home.resolve()
        bin_dir = home / "bin"
        suffix = ".exe" if os.name == "nt" else ""
        return cls(
            home=home,
            javac=bin_dir / f"javac{suffix}",
            jmod=bin_dir / f"jmod{suffix}",
            jlink=bin_dir / f"jlink{suffix}",
        )


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """外部进程执行结果。"""
    exit_code: int
    output_tail: tuple[str, ...]
    line_count: int
    duration_ms: float


@dataclass(frozen=True, slots=True)
class PipelineStage:
    """流水线阶段记录：输入校验、命令（或进程内动作）与输出校验。

    command 与 action 二选一：前者交给进程执行器运行，后者在进程内执行
    （模块归档组装）。阶段在前驱产物就绪时构建，执行后即丢弃。
    """
    name: str
    title: str
    state: PipelineState
    inputs: tuple[Path, ...]
    output: Path
    error_type: type[StageFailedError]
    failure_message: str
    command: tuple[str, ...] | None = None
    action: Callable[[], object] | None = None

    def __post_init__(self) -> None:
        if (self.command is None) == (self.action is None):
            raise ValueError(f"stage {self.name} needs exactly one of command or action")
