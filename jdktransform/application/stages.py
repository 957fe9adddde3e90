"""阶段执行：统一的“校验输入 → 运行工具 → 校验输出”流程，以及各阶段命令构建。"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from jdktransform.domain.errors import PipelineSequenceError
from jdktransform.domain.models import PipelineStage, ToolchainHandle
from jdktransform.infra.process.runner import ProcessRunner

logger = logging.getLogger(__name__)


def build_compile_command(
    toolchain: ToolchainHandle,
    *,
    module_name: str,
    android_jar: Path,
    descriptor_source: Path,
    output_dir: Path,
) -> tuple[str, ...]:
    # 禁用默认系统模块，以目标归档作为唯一的模块内容编译描述符。
    return (
        str(toolchain.javac),
        "--system=none",
        f"--patch-module={module_name}={android_jar.resolve()}",
        "-d",
        str(output_dir.resolve()),
        str(descriptor_source.resolve()),
    )


def build_package_command(
    toolchain: ToolchainHandle,
    *,
    module_version: str,
    target_platform: str,
    module_archive: Path,
    module_unit: Path,
) -> tuple[str, ...]:
    return (
        str(toolchain.jmod),
        "create",
        "--module-version",
        module_version,
        "--target-platform",
        target_platform,
        "--class-path",
        str(module_archive.resolve()),
        str(module_unit.resolve()),
    )


def build_link_command(
    toolchain: ToolchainHandle,
    *,
    module_name: str,
    module_unit: Path,
    output_dir: Path,
) -> tuple[str, ...]:
    # 合成的描述符并非真实安装的系统模块，system-modules 插件的前提不成立。
    return (
        str(toolchain.jlink),
        "--module-path",
        str(module_unit.resolve()),
        "--add-modules",
        module_name,
        "--output",
        str(output_dir.resolve()),
        "--disable-plugin",
        "system-modules",
    )


class StageExecutor:
    """按统一契约执行单个阶段，四个阶段共用同一流程。"""

    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    def execute(self, stage: PipelineStage) -> Path:
        missing = [path for path in stage.inputs if not path.exists()]
        if missing:
            raise PipelineSequenceError(
                f"[{stage.name}] required input artifact(s) missing: {', '.join(str(path) for path in missing)}"
            )

        started = time.perf_counter()
        logger.info(
            "%s...",
            stage.title,
            extra={
                "event": "stage.started",
                "op": stage.name,
                "payload_preview": {"command": list(stage.command) if stage.command else None},
            },
        )

        output_tail: tuple[str, ...] = ()
        if stage.command is not None:
            result = self._runner.run(stage.command, label=stage.name)
            output_tail = result.output_tail
            if result.exit_code != 0:
                raise stage.error_type(
                    f"{stage.failure_message}: {Path(stage.command[0]).name} exited with status {result.exit_code}",
                    stage=stage.name,
                    command=stage.command,
                    output_tail=output_tail,
                    artifact=stage.output,
                )
        else:
            stage.action()

        # 工具报告成功但未产出预期文件，同样视为失败。
        if not stage.output.exists():
            raise stage.error_type(
                f"{stage.failure_message}: required output artifact was not produced",
                stage=stage.name,
                command=stage.command,
                output_tail=output_tail,
                artifact=stage.output,
            )

        logger.info(
            "Stage %s produced %s",
            stage.name,
            stage.output,
            extra={
                "event": "stage.succeeded",
                "op": stage.name,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return stage.output
