"""模块描述符生成：按字典序渲染 exports 子句并写入临时目录。"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from jdktransform.domain.errors import DescriptorWriteError
from jdktransform.infra.storage.workspace import ScratchWorkspace

logger = logging.getLogger(__name__)


def render_descriptor(module_name: str, packages: Iterable[str]) -> str:
    """渲染 ``module <name> { exports ...; }``，与包集合的迭代顺序无关。"""
    lines = [f"module {module_name} {{"]
    lines.extend(f"    exports {package};" for package in sorted(set(packages)))
    lines.append("}")
    return "\n".join(lines)


class DescriptorSynthesizer:
    """模块描述符生成器。"""

    def __init__(self, module_name: str) -> None:
        self._module_name = module_name

    @property
    def module_name(self) -> str:
        return self._module_name

    def write(self, packages: Iterable[str], workspace: ScratchWorkspace) -> Path:
        packages = frozenset(packages)
        if not packages:
            raise DescriptorWriteError(f"No exportable packages found; refusing to write an empty {self._module_name} descriptor")

        content = render_descriptor(self._module_name, packages).encode("utf-8")
        target = workspace.descriptor_source
        try:
            workspace.reset()
        except OSError as exc:
            raise DescriptorWriteError(f"Unable to recreate scratch directory {workspace.root}: {exc}") from exc
        try:
            target.write_bytes(content)
        except OSError as exc:
            raise DescriptorWriteError(f"Unable to write {target}: {exc}") from exc

        # 写入未报错也要确认文件完整落盘。
        if not target.is_file() or target.stat().st_size != len(content):
            raise DescriptorWriteError(f"Unable to generate {target.name} at {target}")

        logger.info(
            "%s has been written to %s",
            target.name,
            target,
            extra={"event": "descriptor.written", "payload_preview": {"exports": len(packages)}},
        )
        return target
