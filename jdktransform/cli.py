"""命令行入口：解析参数、初始化日志、运行流水线；任何致命错误打印信息与用法并返回 1。"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, TextIO

from pydantic import ValidationError

from jdktransform.application.container import create_pipeline
from jdktransform.config import Settings, get_settings
from jdktransform.domain.errors import ArgumentError, JdkTransformError
from jdktransform.domain.models import RunArguments
from jdktransform.infra.logging.setup import configure_logging, shutdown_logging

BANNER = """\
JDK Transform
Generates the 'compiler module': a custom JDK image whose java.base module
exports every package of the given android.jar. The image is used for code
completion and code actions in the IDE.
"""


class _ArgumentParser(argparse.ArgumentParser):
    """参数错误抛出 ArgumentError，由顶层统一输出，而不是直接 exit(2)。"""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise ArgumentError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="jdk-transform", description=BANNER, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(
        "-a",
        "--android-jar",
        required=True,
        help="android.jar whose classes are included in the java.base module of the generated image. REQUIRED.",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        help="Directory in which the JDK image is generated. This directory will be DELETED. Default: ./compiler_module",
    )
    parser.add_argument("--java-home", help="JDK used for javac/jmod/jlink. Default: $JAVA_HOME")
    parser.add_argument("--scratch-dir", help="Scratch directory for intermediate files. Default: ./temp")
    parser.add_argument("--timeout", type=float, help="Kill a tool that runs longer than this many seconds")
    parser.add_argument("--log-level", help="Log level: DEBUG/INFO/WARNING/ERROR")
    parser.add_argument("--log-file", help="Also write JSON lines logs to this file")
    return parser


def _require_value(name: str, value: str | None) -> str | None:
    if value is not None and not value.strip():
        raise ArgumentError(f"Invalid value for {name}: '{value}'")
    return value


def parse_arguments(argv: Sequence[str] | None, settings: Settings) -> tuple[RunArguments, Settings]:
    """解析命令行，返回运行参数与叠加了 CLI 覆盖的配置。"""
    args = build_parser().parse_args(argv)

    android_jar_text = _require_value("--android-jar", args.android_jar)
    overrides: dict[str, Any] = {}
    for name, key in (("--java-home", "java_home"), ("--scratch-dir", "scratch_dir"), ("--log-file", "log_file")):
        value = _require_value(name, getattr(args, key))
        if value is not None:
            overrides[key] = Path(value).expanduser()
    if _require_value("--log-level", args.log_level) is not None:
        overrides["log_level"] = args.log_level.upper()
    if args.timeout is not None:
        if args.timeout <= 0:
            raise ArgumentError(f"Invalid value for --timeout: {args.timeout}")
        overrides["process_timeout_seconds"] = args.timeout
    output_dir_text = _require_value("--output-dir", args.output_dir)
    if output_dir_text is not None:
        overrides["output_dir"] = Path(output_dir_text).expanduser()

    settings = settings.model_copy(update=overrides).resolved()

    android_jar = Path(android_jar_text).expanduser().resolve()
    if not android_jar.is_file():
        raise ArgumentError(f"android.jar file does not exist: {android_jar}")
    return RunArguments(android_jar=android_jar, output_dir=settings.output_dir), settings


def print_failure(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stderr
    print(file=stream)
    print(message, file=stream)
    print(file=stream)
    print(file=stream)
    print(build_parser().format_help(), file=stream)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        arguments, settings = parse_arguments(argv, get_settings())
        configure_logging(settings)
        try:
            create_pipeline(settings).run(arguments)
        finally:
            shutdown_logging()
    except (JdkTransformError, ValidationError, OSError) as exc:
        print_failure(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
