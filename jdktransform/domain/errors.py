"""错误分类：所有致命错误共享同一基类，由顶层统一输出并以非零状态退出。"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from pathlib import Path


class JdkTransformError(RuntimeError):
    pass


class ArgumentError(JdkTransformError):
    pass


class ToolchainNotFoundError(JdkTransformError):
    pass


class InvalidVersionError(JdkTransformError):
    pass


class ArchiveReadError(JdkTransformError):
    pass


class DescriptorWriteError(JdkTransformError):
    pass


class ProcessLaunchError(JdkTransformError):
    pass


class ProcessTimeoutError(JdkTransformError):
    pass


class OutputDirectoryError(JdkTransformError):
    pass


class ConcurrentRunError(JdkTransformError):
    pass


class PipelineSequenceError(JdkTransformError):
    """阶段输入缺失：属于编排顺序的逻辑错误，而非用户输入错误。"""


class StageFailedError(JdkTransformError):
    """阶段失败，携带阶段名、命令与工具输出尾部，便于无需重跑即可定位。"""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        command: Sequence[str] | None = None,
        output_tail: Sequence[str] = (),
        artifact: Path | None = None,
    ) -> None:
        self.stage = stage
        self.command = tuple(command) if command else None
        self.output_tail = tuple(output_tail)
        self.artifact = artifact
        super().__init__(self._render(message))

    def _render(self, message: str) -> str:
        lines = [f"[{self.stage}] {message}"]
        if self.command:
            lines.append(f"command: {shlex.join(self.command)}")
        if self.artifact is not None:
            lines.append(f"expected artifact: {self.artifact}")
        if self.output_tail:
            lines.append("tool output (tail):")
            lines.extend(f"    {line}" for line in self.output_tail)
        return "\n".join(lines)


class CompileFailedError(StageFailedError):
    pass


class AssemblyFailedError(StageFailedError):
    pass


class AssemblyWriteError(AssemblyFailedError):
    pass


class PackagingFailedError(StageFailedError):
    pass


class LinkFailedError(StageFailedError):
    pass
