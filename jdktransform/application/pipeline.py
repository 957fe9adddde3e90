"""流水线编排：扫描 → 生成描述符 → 编译 → 组装 → 打包 → 链接，严格顺序执行，首个失败即终止。"""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from uuid import uuid4

from jdktransform.application.descriptor import DescriptorSynthesizer
from jdktransform.application.stages import (
    StageExecutor,
    build_compile_command,
    build_link_command,
    build_package_command,
)
from jdktransform.domain.enums import STATE_ORDER, PipelineState
from jdktransform.domain.errors import (
    AssemblyFailedError,
    CompileFailedError,
    LinkFailedError,
    PackagingFailedError,
)
from jdktransform.domain.models import PipelineStage, RunArguments, ToolchainHandle
from jdktransform.infra.archive.assembler import ModuleArchiveAssembler
from jdktransform.infra.archive.scanner import ArchiveScanner
from jdktransform.infra.logging.context import bind_log_context
from jdktransform.infra.storage.workspace import ScratchWorkspace, clear_output_dir

logger = logging.getLogger(__name__)

# 链接成功的判定依据：镜像 lib 目录下的模块数据文件。
IMAGE_MODULES_FILE = Path("lib") / "modules"


class ModuleImagePipeline:
    """运行时镜像流水线。

    状态按 describing → compiling_descriptor → assembling_module_archive →
    packaging_module → linking_image → done 前进，任一步失败进入 failed 并终止，
    不重试、不回滚。阶段记录在前驱产物就绪时才构建。
    """

    def __init__(
        self,
        *,
        toolchain: ToolchainHandle,
        module_version: str,
        target_platform: str,
        workspace: ScratchWorkspace,
        stage_executor: StageExecutor,
        synthesizer: DescriptorSynthesizer,
        scanner: ArchiveScanner | None = None,
        assembler: ModuleArchiveAssembler | None = None,
    ) -> None:
        self._toolchain = toolchain
        self._module_version = module_version
        self._target_platform = target_platform
        self._workspace = workspace
        self._stage_executor = stage_executor
        self._synthesizer = synthesizer
        self._scanner = scanner or ArchiveScanner()
        self._assembler = assembler or ModuleArchiveAssembler()
        self._state = PipelineState.created
        self._history: list[PipelineState] = [PipelineState.created]

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def history(self) -> tuple[PipelineState, ...]:
        return tuple(self._history)

    @property
    def module_name(self) -> str:
        return self._synthesizer.module_name

    def run(self, arguments: RunArguments) -> Path:
        """执行完整流水线，返回镜像中的模块数据文件路径。"""
        self._state = PipelineState.created
        self._history = [PipelineState.created]
        with bind_log_context(run_id=uuid4().hex[:12]):
            logger.info(
                "Generating compiler module...",
                extra={
                    "event": "pipeline.started",
                    "payload_preview": {
                        "android_jar": str(arguments.android_jar),
                        "output_dir": str(arguments.output_dir),
                        "module_version": self._module_version,
                    },
                },
            )
            try:
                with self._workspace.exclusive():
                    modules_file = self._run_locked(arguments)
            except Exception as exc:
                self._fail(exc)
                raise
            self._transition(PipelineState.done)
            logger.info(
                "JDK image has been successfully generated to output directory: %s",
                arguments.output_dir,
                extra={"event": "pipeline.succeeded"},
            )
            return modules_file

    def _run_locked(self, arguments: RunArguments) -> Path:
        clear_output_dir(arguments.output_dir)

        self._transition(PipelineState.describing)
        with bind_log_context(stage="describe"):
            logger.info("Generating %s module descriptor...", self.module_name, extra={"event": "descriptor.started"})
            packages = self._scanner.scan(arguments.android_jar)
            descriptor_source = self._synthesizer.write(packages, self._workspace)

        descriptor_class = self._execute(self._compile_stage(arguments, descriptor_source))
        module_archive = self._execute(self._assemble_stage(arguments, descriptor_class))
        module_unit = self._execute(self._package_stage(module_archive))
        return self._execute(self._link_stage(arguments, module_unit))

    def _execute(self, stage: PipelineStage) -> Path:
        self._transition(stage.state)
        with bind_log_context(stage=stage.name):
            return self._stage_executor.execute(stage)

    def _transition(self, state: PipelineState) -> None:
        expected = STATE_ORDER[STATE_ORDER.index(self._state) + 1] if not self._state.terminal else None
        if state != expected:
            raise RuntimeError(f"illegal pipeline transition {self._state.value} -> {state.value}")
        self._state = state
        self._history.append(state)
        logger.debug(
            "pipeline state changed",
            extra={"event": "pipeline.state.changed", "payload_preview": {"state": state.value}},
        )

    def _fail(self, exc: BaseException) -> None:
        failed_in = self._state
        self._state = PipelineState.failed
        self._history.append(PipelineState.failed)
        logger.error(
            "pipeline failed during %s",
            failed_in.value,
            extra={"event": "pipeline.failed", "error_type": type(exc).__name__, "error": str(exc)},
        )

    def _compile_stage(self, arguments: RunArguments, descriptor_source: Path) -> PipelineStage:
        return PipelineStage(
            name="compile",
            title="Compiling module descriptor",
            state=PipelineState.compiling_descriptor,
            inputs=(descriptor_source, arguments.android_jar),
            output=self._workspace.descriptor_class,
            error_type=CompileFailedError,
            failure_message=f"Unable to compile {descriptor_source.name}",
            command=build_compile_command(
                self._toolchain,
                module_name=self.module_name,
                android_jar=arguments.android_jar,
                descriptor_source=descriptor_source,
                output_dir=self._workspace.root,
            ),
        )

    def _assemble_stage(self, arguments: RunArguments, descriptor_class: Path) -> PipelineStage:
        target = self._workspace.module_archive
        return PipelineStage(
            name="assemble",
            title="Creating modular jar file",
            state=PipelineState.assembling_module_archive,
            inputs=(descriptor_class, arguments.android_jar),
            output=target,
            error_type=AssemblyFailedError,
            failure_message="Unable to create modular jar file",
            action=partial(self._assembler.assemble, descriptor_class, arguments.android_jar, target),
        )

    def _package_stage(self, module_archive: Path) -> PipelineStage:
        module_unit = self._workspace.module_unit
        return PipelineStage(
            name="package",
            title="Generating jmod file",
            state=PipelineState.packaging_module,
            inputs=(module_archive,),
            output=module_unit,
            error_type=PackagingFailedError,
            failure_message=f"Unable to generate jmod file for modular jar {module_archive}",
            command=build_package_command(
                self._toolchain,
                module_version=self._module_version,
                target_platform=self._target_platform,
                module_archive=module_archive,
                module_unit=module_unit,
            ),
        )

    def _link_stage(self, arguments: RunArguments, module_unit: Path) -> PipelineStage:
        return PipelineStage(
            name="link",
            title="Creating JDK image",
            state=PipelineState.linking_image,
            inputs=(module_unit,),
            output=arguments.output_dir / IMAGE_MODULES_FILE,
            error_type=LinkFailedError,
            failure_message="Unable to generate JDK image",
            command=build_link_command(
                self._toolchain,
                module_name=self.module_name,
                module_unit=module_unit,
                output_dir=arguments.output_dir,
            ),
        )
