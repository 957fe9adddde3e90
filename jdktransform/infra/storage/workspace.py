"""工作区管理器：管理临时目录、输出目录清理与单次运行独占锁。"""

from __future__ import annotations

import logging
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from jdktransform.domain.errors import ConcurrentRunError, OutputDirectoryError
from jdktransform.domain.models import DESCRIPTOR_CLASS_NAME, DESCRIPTOR_SOURCE_NAME

logger = logging.getLogger(__name__)


def remove_path(path: Path) -> None:
    """删除文件或目录树；不存在时直接返回。"""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


class ScratchWorkspace:
    """临时工作区，单次运行独占；每次运行前强制清空。

    同一 scratch 目录不支持并发运行：两个运行会互相清空中间产物，
    因此运行期间持有 ``<scratch_dir>.lock``，第二个运行会直接失败。
    """

    def __init__(self, scratch_dir: Path, module_name: str) -> None:
        self._root = scratch_dir
        self._module_name = module_name

    @property
    def root(self) -> Path:
        return self._root

    @property
    def lock_path(self) -> Path:
        return self._root.with_name(f"{self._root.name}.lock")

    @property
    def descriptor_source(self) -> Path:
        return self._root / DESCRIPTOR_SOURCE_NAME

    @property
    def descriptor_class(self) -> Path:
        return self._root / DESCRIPTOR_CLASS_NAME

    @property
    def module_archive(self) -> Path:
        return self._root / f"{self._module_name}-module.jar"

    @property
    def module_unit(self) -> Path:
        return self._root / f"{self._module_name}.jmod"

    def reset(self) -> Path:
        """清空并重建临时目录，确保不残留上次运行的产物。"""
        remove_path(self._root)
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    @contextmanager
    def exclusive(self) -> Iterator[Path]:
        """运行期间持有锁文件；锁已存在时拒绝启动。"""
        lock = self.lock_path
        lock.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise ConcurrentRunError(
                f"Another run holds {lock}; scratch directory {self._root} is in use. "
                "Delete the lock file if no other run is active."
            ) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(f"{os.getpid()}\n")
            yield lock
        finally:
            lock.unlink(missing_ok=True)


def clear_output_dir(output_dir: Path) -> None:
    """删除已存在的输出目录；链接阶段要求目标目录不存在。"""
    if not output_dir.exists() and not output_dir.is_symlink():
        return
    try:
        remove_path(output_dir)
    except OSError as exc:
        raise OutputDirectoryError(f"Unable to delete existing output directory {output_dir}: {exc}") from exc
    logger.info(
        "Deleted existing output directory %s",
        output_dir,
        extra={"event": "workspace.output.cleared"},
    )
