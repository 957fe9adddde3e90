"""命令行测试：验证参数错误、致命错误的输出与退出码，以及配置覆盖。"""

from __future__ import annotations

from pathlib import Path

import pytest

from jdktransform import cli
from jdktransform.config import Settings
from jdktransform.domain.errors import ArgumentError, LinkFailedError
from jdktransform.domain.models import RunArguments


class _PipelineStub:
    """测试用流水线桩：记录运行参数，可选抛出错误。"""

    def __init__(self, error: Exception | None = None) -> None:
        self.arguments: RunArguments | None = None
        self._error = error

    def run(self, arguments: RunArguments) -> Path:
        self.arguments = arguments
        if self._error is not None:
            raise self._error
        return arguments.output_dir / "lib" / "modules"


def test_missing_android_jar_prints_usage(capsys: pytest.CaptureFixture[str]) -> None:
    """缺少必填参数时返回 1，并在 stderr 输出错误与用法。"""
    exit_code = cli.main([])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "--android-jar" in err
    assert "usage: jdk-transform" in err


def test_nonexistent_android_jar_is_rejected(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """android.jar 不存在时返回 1。"""
    exit_code = cli.main(["-a", str(tmp_path / "android.jar")])

    assert exit_code == 1
    assert "does not exist" in capsys.readouterr().err


def test_blank_value_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ArgumentError):
        cli.parse_arguments(["-a", "  "], Settings())


def test_parse_arguments_applies_overrides(
    tmp_path: Path,
    write_archive,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """CLI 参数覆盖配置，相对路径按工作目录解析。"""
    monkeypatch.chdir(tmp_path)
    archive = write_archive(["a/A.class"])

    arguments, settings = cli.parse_arguments(
        ["--android-jar", str(archive), "-o", "out", "--java-home", str(tmp_path / "jdk"), "--timeout", "30"],
        Settings(),
    )

    assert arguments.android_jar == archive.resolve()
    assert arguments.output_dir == (tmp_path / "out").resolve()
    assert settings.output_dir == arguments.output_dir
    assert settings.java_home == tmp_path / "jdk"
    assert settings.process_timeout_seconds == 30
    assert settings.scratch_dir == (tmp_path / "temp").resolve()


def test_default_output_dir(tmp_path: Path, write_archive, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    archive = write_archive(["a/A.class"])

    arguments, _ = cli.parse_arguments(["-a", str(archive)], Settings())

    assert arguments.output_dir == (tmp_path / "compiler_module").resolve()


def test_missing_toolchain_exits_with_error(
    tmp_path: Path,
    write_archive,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """找不到 JAVA_HOME 时返回 1 并输出原因。"""
    monkeypatch.chdir(tmp_path)
    archive = write_archive(["a/A.class"])

    exit_code = cli.main(["-a", str(archive)])

    assert exit_code == 1
    assert "Cannot find JAVA_HOME" in capsys.readouterr().err


def test_successful_run_returns_zero(tmp_path: Path, write_archive, monkeypatch: pytest.MonkeyPatch) -> None:
    """流水线成功时返回 0。"""
    monkeypatch.chdir(tmp_path)
    archive = write_archive(["a/A.class"])
    stub = _PipelineStub()
    monkeypatch.setattr(cli, "create_pipeline", lambda settings: stub)

    exit_code = cli.main(["-a", str(archive), "-o", "image"])

    assert exit_code == 0
    assert stub.arguments == RunArguments(android_jar=archive.resolve(), output_dir=(tmp_path / "image").resolve())


def test_stage_failure_returns_one(
    tmp_path: Path,
    write_archive,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """阶段失败时返回 1，stderr 包含阶段名与用法。"""
    monkeypatch.chdir(tmp_path)
    archive = write_archive(["a/A.class"])
    error = LinkFailedError("Unable to generate JDK image", stage="link", command=("jlink", "--output", "image"))
    monkeypatch.setattr(cli, "create_pipeline", lambda settings: _PipelineStub(error))

    exit_code = cli.main(["-a", str(archive)])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "[link] Unable to generate JDK image" in err
    assert "command: jlink --output image" in err
    assert "usage: jdk-transform" in err
