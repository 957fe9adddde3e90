"""测试公共夹具：构造类归档。"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

import pytest

from jdktransform.config import get_settings

ArchiveFactory = Callable[..., Path]


def class_bytes(name: str) -> bytes:
    """伪造的类文件内容：魔数 + 条目名，便于逐字节比对。"""
    return b"\xca\xfe\xba\xbe" + name.encode("utf-8")


@pytest.fixture
def write_archive(tmp_path: Path) -> ArchiveFactory:
    """按给定条目顺序写出归档；.class 条目使用伪造内容，其余为文本。"""

    def _write(entries: Iterable[str], name: str = "android.jar") -> Path:
        path = tmp_path / name
        with ZipFile(path, "w", compression=ZIP_DEFLATED) as archive:
            for entry in entries:
                if entry.endswith("/"):
                    archive.writestr(entry, b"")
                elif entry.endswith(".class"):
                    archive.writestr(entry, class_bytes(entry))
                else:
                    archive.writestr(entry, f"resource {entry}\n")
        return path

    return _write


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """清理影响配置的环境变量与缓存。"""
    for key in ("JAVA_HOME", "JDK_TRANSFORM_JAVA_HOME", "JDK_TRANSFORM_SCRATCH_DIR", "JDK_TRANSFORM_OUTPUT_DIR"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
