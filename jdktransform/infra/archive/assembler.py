"""模块归档组装器：合并已编译的模块描述符与源归档中的全部类条目。"""

from __future__ import annotations

import logging
import shutil
import zlib
from pathlib import Path
from zipfile import ZIP_DEFLATED, BadZipFile, ZipFile, ZipInfo

from jdktransform.domain.errors import AssemblyWriteError
from jdktransform.domain.models import CLASS_SUFFIX

logger = logging.getLogger(__name__)

# 描述符条目使用固定时间戳，保证重复运行产物一致。
DESCRIPTOR_ENTRY_DATE = (1980, 1, 1, 0, 0, 0)
COPY_BUFFER_SIZE = 64 * 1024


class ModuleArchiveAssembler:
    """模块归档组装器。"""

    def assemble(self, descriptor_class: Path, source_archive: Path, target: Path) -> Path:
        """写出模块归档：描述符条目在前，随后按源顺序逐字节复制全部 .class 条目。

        非类条目（资源、签名、元数据）全部丢弃。先写入 ``<target>.part``，
        成功后再原子改名，失败时不在目标位置留下残缺归档。
        """
        partial = target.with_name(f"{target.name}.part")
        copied = 0
        try:
            with ZipFile(partial, "w", compression=ZIP_DEFLATED) as out, ZipFile(source_archive) as src:
                descriptor_info = ZipInfo(descriptor_class.name, date_time=DESCRIPTOR_ENTRY_DATE)
                descriptor_info.compress_type = ZIP_DEFLATED
                out.writestr(descriptor_info, descriptor_class.read_bytes())

                for info in src.infolist():
                    if not info.filename.endswith(CLASS_SUFFIX) or info.filename == descriptor_info.filename:
                        continue
                    entry = ZipInfo(info.filename, date_time=info.date_time)
                    entry.compress_type = ZIP_DEFLATED
                    with src.open(info) as reader, out.open(entry, "w") as writer:
                        shutil.copyfileobj(reader, writer, COPY_BUFFER_SIZE)
                    copied += 1
            partial.replace(target)
        # 压缩流损坏时 zipfile 抛出 zlib.error 或 EOFError。
        except (BadZipFile, OSError, EOFError, zlib.error) as exc:
            partial.unlink(missing_ok=True)
            raise AssemblyWriteError(
                f"Unable to write module archive: {exc}",
                stage="assemble",
                artifact=target,
            ) from exc

        logger.info(
            "Module archive written to %s",
            target,
            extra={"event": "archive.assemble.succeeded", "payload_preview": {"classes": copied}},
        )
        return target
