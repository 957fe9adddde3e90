"""领域枚举定义：统一流水线状态取值。"""

from __future__ import annotations

from enum import Enum


class PipelineState(str, Enum):
    """流水线生命周期状态枚举；failed 为吸收态。"""
    created = "created"
    describing = "describing"
    compiling_descriptor = "compiling_descriptor"
    assembling_module_archive = "assembling_module_archive"
    packaging_module = "packaging_module"
    linking_image = "linking_image"
    done = "done"
    failed = "failed"

    @property
    def terminal(self) -> bool:
        return self in {PipelineState.done, PipelineState.failed}


# 严格顺序的前进路径，failed 可从任意非终态进入。
STATE_ORDER: tuple[PipelineState, ...] = (
    PipelineState.created,
    PipelineState.describing,
    PipelineState.compiling_descriptor,
    PipelineState.assembling_module_archive,
    PipelineState.packaging_module,
    PipelineState.linking_image,
    PipelineState.done,
)
