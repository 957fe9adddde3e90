"""全局配置加载模块：从环境变量构建运行参数并提供缓存访问。"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _csv_to_list(value: str) -> list[str]:
    """将逗号分隔字符串转换为去空白列表。"""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """工具运行配置对象，从环境变量读取并提供类型化访问。"""
    model_config = SettingsConfigDict(
        env_prefix="JDK_TRANSFORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # 显式覆盖优先，其次回退到 JAVA_HOME。
    java_home: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("JDK_TRANSFORM_JAVA_HOME", "JAVA_HOME"),
    )
    output_dir: Path = Field(default=Path("./compiler_module"))
    scratch_dir: Path = Field(default=Path("./temp"))

    module_name: str = "java.base"
    target_platform: str = "android"

    process_timeout_seconds: float | None = None
    output_tail_lines: int = 40

    log_level: str = "INFO"
    log_file: Path | None = None
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 3
    log_debug_modules: str = ""

    @field_validator("java_home", mode="before")
    @classmethod
    def _blank_as_unset(cls, value: object) -> object:
        # 空的 JAVA_HOME 视为未设置，而不是当前目录。
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def log_debug_modules_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_modules)

    def resolved(self) -> "Settings":
        """返回路径字段均已锚定到当前工作目录的副本。"""
        cwd = Path.cwd()
        updates: dict[str, Path] = {}
        for name in ("output_dir", "scratch_dir", "log_file"):
            value = getattr(self, name)
            if value is not None and not value.is_absolute():
                updates[name] = (cwd / value).resolve()
        return self.model_copy(update=updates) if updates else self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """构建并缓存 Settings。"""
    return Settings()
