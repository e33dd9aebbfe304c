from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from shipyard import __version__
from shipyard.cli.app import app
from shipyard.core.errors import ErrorCode
from shipyard.services import build as build_mod
from shipyard.test.fakes import fake_toolchain

runner = CliRunner()

CONFIG = """
[product]
name = "coredns"

[version]
file = "coremain/version.go"
pattern = 'CoreVersion\\s*=\\s*"([^"]+)"'

[[targets]]
os = "darwin"
arch = "amd64"

[[targets]]
os = "windows"
arch = "amd64"

[[targets]]
os = "linux"
arch = "arm64"

[release]
repo = "coredns/coredns"
"""


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "shipyard.toml").write_text(CONFIG, encoding="utf-8")
    (tmp_path / "coremain").mkdir()
    (tmp_path / "coremain" / "version.go").write_text(
        'package coremain\n\nconst CoreVersion = "1.5.1"\n', encoding="utf-8"
    )
    monkeypatch.setenv("SHIPYARD_ROOT", str(tmp_path))
    return tmp_path


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_root_must_be_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHIPYARD_ROOT", str(tmp_path))
    result = runner.invoke(app, ["--root", str(tmp_path), "version"])
    assert result.exit_code == int(ErrorCode.USER_ERROR)


def test_missing_project_is_precondition(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHIPYARD_ROOT", str(tmp_path))
    result = runner.invoke(app, ["version"])
    assert result.exit_code == int(ErrorCode.PRECONDITION_ERROR)


def test_version_command(project: Path) -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "1.5.1" in result.output


def test_version_mismatch_exit_code(project: Path) -> None:
    result = runner.invoke(app, ["version", "--expect-version", "v1.6.0"])
    assert result.exit_code == int(ErrorCode.PRECONDITION_ERROR)
    assert "version_mismatch" in result.output


def test_build_and_package(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(build_mod, "run_process", fake_toolchain())

    built = runner.invoke(app, ["build", "--allow-dirty", "-j", "2"])
    assert built.exit_code == 0, built.output
    assert (project / "build" / "windows" / "amd64" / "coredns.exe").is_file()

    packed = runner.invoke(app, ["package"])
    assert packed.exit_code == 0, packed.output
    assert (project / "release" / "coredns_1.5.1_linux_arm64.tgz.sha256").is_file()

    verified = runner.invoke(app, ["verify"])
    assert verified.exit_code == 0, verified.output
    assert "3 checksum(s) OK" in verified.output


def test_build_failure_lists_targets(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(build_mod, "run_process", fake_toolchain(fail={"linux/arm64"}))
    result = runner.invoke(app, ["build", "--allow-dirty"])
    assert result.exit_code == int(ErrorCode.BUILD_ERROR)
    assert "build failed for 1 target(s): linux/arm64" in result.output


def test_package_without_build(project: Path) -> None:
    result = runner.invoke(app, ["package"])
    assert result.exit_code == int(ErrorCode.BUILD_ERROR)
    assert "artifact_missing" in result.output


def test_publish_dry_run(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(build_mod, "run_process", fake_toolchain())
    assert runner.invoke(app, ["build", "--allow-dirty"]).exit_code == 0
    assert runner.invoke(app, ["package"]).exit_code == 0

    result = runner.invoke(app, ["publish", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "upload coredns_1.5.1_darwin_amd64.tgz.sha256" in result.output


def test_images_without_container_config(project: Path) -> None:
    result = runner.invoke(app, ["images", "--dry-run"])
    assert result.exit_code == int(ErrorCode.PRECONDITION_ERROR)
    assert "[container] is not configured" in result.output


def test_clean_is_dry_by_default(project: Path) -> None:
    (project / "release").mkdir()
    result = runner.invoke(app, ["clean"])
    assert result.exit_code == 0
    assert (project / "release").exists()

    result = runner.invoke(app, ["clean", "-y"])
    assert result.exit_code == 0
    assert not (project / "release").exists()
