"""归档扫描器：枚举类归档条目，从已编译类路径推导去重后的包名集合。"""

from __future__ import annotations

import logging
from pathlib import Path
from zipfile import BadZipFile, ZipFile

from jdktransform.domain.errors import ArchiveReadError
from jdktransform.domain.models import CLASS_SUFFIX, PackageSet

logger = logging.getLogger(__name__)


def package_of(entry_name: str) -> str | None:
    """返回类条目所属包名；非类条目或默认包类返回 None。"""
    if not entry_name.endswith(CLASS_SUFFIX):
        return None
    directory, sep, _ = entry_name.rpartition("/")
    if not sep:
        return None
    return directory.replace("/", ".")


class ArchiveScanner:
    """类归档扫描器。"""

    def scan(self, archive_path: Path) -> PackageSet:
        """随机访问读取归档，返回全部可导出包名。

        默认包中的类（条目名不含分隔符）无法导出，直接跳过，仅记录数量。
        """
        packages: set[str] = set()
        default_package_classes = 0
        try:
            with ZipFile(archive_path) as archive:
                for info in archive.infolist():
                    package = package_of(info.filename)
                    if package is None:
                        if info.filename.endswith(CLASS_SUFFIX):
                            default_package_classes += 1
                        continue
                    packages.add(package)
        except (BadZipFile, OSError) as exc:
            raise ArchiveReadError(f"Unable to read archive {archive_path}: {exc}") from exc

        if default_package_classes:
            logger.warning(
                "skipped %s default-package classes in %s",
                default_package_classes,
                archive_path,
                extra={"event": "archive.scan.default_package_skipped", "payload_preview": {"count": default_package_classes}},
            )
        logger.info(
            "Found %s packages in %s",
            len(packages),
            archive_path.name,
            extra={"event": "archive.scan.succeeded", "payload_preview": {"packages": len(packages)}},
        )
        return frozenset(packages)
