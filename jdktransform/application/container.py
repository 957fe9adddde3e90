"""依赖装配模块：依据配置创建工具链、进程执行器与流水线对象。"""

from __future__ import annotations

from jdktransform.application.descriptor import DescriptorSynthesizer
from jdktransform.application.pipeline import ModuleImagePipeline
from jdktransform.application.stages import StageExecutor
from jdktransform.config import Settings
from jdktransform.domain.models import ToolchainHandle
from jdktransform.infra.process.runner import ProcessRunner
from jdktransform.infra.storage.workspace import ScratchWorkspace
from jdktransform.infra.toolchain.discovery import discover_toolchain, probe_version


def create_process_runner(settings: Settings) -> ProcessRunner:
    return ProcessRunner(
        timeout_seconds=settings.process_timeout_seconds,
        tail_lines=settings.output_tail_lines,
    )


def create_toolchain(settings: Settings) -> ToolchainHandle:
    """启动时解析一次工具链，之后只读传递。"""
    return discover_toolchain(settings.java_home)


def create_pipeline(
    settings: Settings,
    *,
    toolchain: ToolchainHandle | None = None,
    module_version: str | None = None,
    runner: ProcessRunner | None = None,
) -> ModuleImagePipeline:
    """组装流水线；未显式传入的工具链与版本号在此解析。"""
    if toolchain is None:
        toolchain = create_toolchain(settings)
    if module_version is None:
        module_version = probe_version(toolchain, timeout_seconds=settings.process_timeout_seconds)
    return ModuleImagePipeline(
        toolchain=toolchain,
        module_version=module_version,
        target_platform=settings.target_platform,
        workspace=ScratchWorkspace(settings.scratch_dir, settings.module_name),
        stage_executor=StageExecutor(runner or create_process_runner(settings)),
        synthesizer=DescriptorSynthesizer(settings.module_name),
    )
