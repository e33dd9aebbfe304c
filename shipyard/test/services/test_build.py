from __future__ import annotations

from pathlib import Path

import pytest

from shipyard.core.matrix import PlatformMatrix, PlatformTarget, linux
from shipyard.core.result import Err, Ok
from shipyard.output.console import MockConsole
from shipyard.platform.process import ProcessError
from shipyard.services import build as build_mod
from shipyard.services.build import BuildOrchestrator
from shipyard.services.version import Version
from shipyard.test.fakes import COREDNS_TARGETS, fake_toolchain, make_config, make_project

VERSION = Version("1.5.1")


def _orchestrator(tmp_path: Path) -> tuple[BuildOrchestrator, MockConsole]:
    console = MockConsole()
    svc = BuildOrchestrator(project=make_project(tmp_path), config=make_config(), console=console)
    return svc, console


def test_output_paths_are_per_target(tmp_path: Path) -> None:
    svc, _ = _orchestrator(tmp_path)
    win = PlatformTarget(os="windows", arch="amd64")
    assert svc.output_path(win) == tmp_path / "build" / "windows" / "amd64" / "coredns.exe"
    assert svc.output_path(linux("arm")) == tmp_path / "build" / "linux" / "arm" / "coredns"


def test_command_and_env_select_target(tmp_path: Path) -> None:
    svc, _ = _orchestrator(tmp_path)
    target = linux("arm64")
    binary = svc.output_path(target)
    assert svc.command(target, VERSION, binary) == ["go", "build", "-o", str(binary), "."]
    env = svc.target_env(target, VERSION, binary)
    assert env["GOOS"] == "linux"
    assert env["GOARCH"] == "arm64"
    assert env["CGO_ENABLED"] == "0"
    assert env["VERSION"] == "1.5.1"


def test_build_all_produces_one_binary_per_target(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(build_mod, "run_process", fake_toolchain())
    svc, _ = _orchestrator(tmp_path)
    matrix = PlatformMatrix(entries=COREDNS_TARGETS)

    report = svc.build_all(matrix, VERSION, jobs=3)
    result = report.collect()
    assert isinstance(result, Ok)
    assert [a.target for a in result.value] == list(COREDNS_TARGETS)
    for artifact in result.value:
        assert artifact.path.is_file()
        assert artifact.path.read_bytes() == f"binary {artifact.target} 1.5.1".encode()


def test_build_all_clears_stale_binaries(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(build_mod, "run_process", fake_toolchain())
    svc, _ = _orchestrator(tmp_path)
    stale = tmp_path / "build" / "freebsd" / "amd64" / "coredns"
    stale.parent.mkdir(parents=True)
    stale.write_bytes(b"old")

    svc.build_all(PlatformMatrix(entries=COREDNS_TARGETS), VERSION, jobs=2)
    assert not stale.exists()


def test_failure_reports_every_failing_target(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(build_mod, "run_process", fake_toolchain(fail={"linux/arm64", "linux/s390x"}))
    svc, _ = _orchestrator(tmp_path)
    matrix = PlatformMatrix(entries=(linux("amd64"), linux("arm64"), linux("s390x")))

    report = svc.build_all(matrix, VERSION, jobs=3)
    assert not report.ok
    # Siblings still complete.
    assert [a.target for a in report.values] == [linux("amd64")]
    result = report.collect()
    assert isinstance(result, Err)
    assert result.error.failed_targets == (linux("arm64"), linux("s390x"))
    assert all(e.kind == "toolchain_failed" for e in result.error.errors)
    assert "cannot build for linux/arm64" in result.error.errors[0].message


def test_timeout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def slow(cmd: list[str], cwd: Path, env: dict[str, str] | None = None, *, timeout: float | None = None):
        del cwd, env
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr="", timed_out=True))

    monkeypatch.setattr(build_mod, "run_process", slow)
    svc, _ = _orchestrator(tmp_path)
    result = svc.build(linux("amd64"), VERSION)
    assert isinstance(result, Err)
    assert result.error.kind == "timeout"


def test_missing_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def silent(cmd: list[str], cwd: Path, env: dict[str, str] | None = None, *, timeout: float | None = None):
        del cmd, cwd, env, timeout
        return Ok("")

    monkeypatch.setattr(build_mod, "run_process", silent)
    svc, _ = _orchestrator(tmp_path)
    result = svc.build(linux("amd64"), VERSION)
    assert isinstance(result, Err)
    assert result.error.kind == "output_missing"


def test_dry_run_touches_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def never(*args: object, **kwargs: object):
        raise AssertionError("toolchain must not run")

    monkeypatch.setattr(build_mod, "run_process", never)
    svc, console = _orchestrator(tmp_path)
    report = svc.build_all(PlatformMatrix(entries=COREDNS_TARGETS), VERSION, jobs=2, dry_run=True)
    assert report.ok
    assert not (tmp_path / "build").exists()
    assert console.find("GOOS=windows GOARCH=amd64")
