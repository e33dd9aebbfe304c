from __future__ import annotations

import json
from pathlib import Path

import pytest

from shipyard.core.result import Err, Ok, Result
from shipyard.platform.process import ProcessError
from shipyard.services.model import AssetRef
from shipyard.services.release import gh as gh_mod
from shipyard.services.release.host import GhReleaseHost, ReleaseHost
from shipyard.test.fakes import FakeReleaseHost


class Recorder:
    def __init__(self, responses: list[Result[str, ProcessError]]) -> None:
        self.responses = responses
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        self.calls.append(cmd)
        return self.responses.pop(0)


def _host(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, responses: list[Result[str, ProcessError]]):
    recorder = Recorder(responses)
    monkeypatch.setattr(gh_mod, "run_process", recorder)
    monkeypatch.setattr(gh_mod, "sleep", lambda s: None)
    host = GhReleaseHost(repo="coredns/coredns", cwd=tmp_path, retry_attempts=2, retry_delay=0)
    return host, recorder


def _gh_err(stderr: str) -> Err[ProcessError]:
    return Err(ProcessError(command=("gh", "api"), returncode=1, stdout="", stderr=stderr))


def test_protocols() -> None:
    assert isinstance(GhReleaseHost(repo="a/b", cwd=Path(".")), ReleaseHost)
    assert isinstance(FakeReleaseHost(), ReleaseHost)


def test_find_release_not_found(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    host, recorder = _host(tmp_path, monkeypatch, [_gh_err("gh: Not Found (HTTP 404)")])
    assert host.find_release("v1.5.1") == Ok(None)
    assert recorder.calls[0] == ["gh", "api", "repos/coredns/coredns/releases/tags/v1.5.1"]


def test_find_release_lists_assets(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    host, recorder = _host(
        tmp_path,
        monkeypatch,
        [
            Ok(json.dumps({"id": 17, "tag_name": "v1.5.1"})),
            Ok("1\tcoredns_1.5.1_linux_amd64.tgz\n2\tcoredns_1.5.1_linux_amd64.tgz.sha256\n"),
        ],
    )
    result = host.find_release("v1.5.1")
    assert isinstance(result, Ok)
    record = result.value
    assert record is not None
    assert record.id == 17
    assert record.assets == (
        AssetRef(id=1, name="coredns_1.5.1_linux_amd64.tgz"),
        AssetRef(id=2, name="coredns_1.5.1_linux_amd64.tgz.sha256"),
    )
    assert "--paginate" in recorder.calls[1]


def test_create_release(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    host, recorder = _host(tmp_path, monkeypatch, [Ok(json.dumps({"id": 5, "tag_name": "v1.5.1"}))])
    result = host.create_release("v1.5.1", "v1.5.1")
    assert isinstance(result, Ok)
    assert result.value.id == 5
    assert "tag_name=v1.5.1" in recorder.calls[0]


def test_create_release_duplicate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    host, _ = _host(
        tmp_path,
        monkeypatch,
        [_gh_err('HTTP 422: Validation Failed {"code":"already_exists","field":"tag_name"}')],
    )
    result = host.create_release("v1.5.1", "v1.5.1")
    assert isinstance(result, Err)
    assert result.error.kind == "duplicate"


def test_upload_asset(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    archive = tmp_path / "coredns_1.5.1_linux_amd64.tgz"
    archive.write_bytes(b"tgz")
    host, recorder = _host(tmp_path, monkeypatch, [Ok(json.dumps({"id": 99, "name": archive.name}))])
    result = host.upload_asset(17, archive.name, "application/gzip", archive)
    assert result == Ok(AssetRef(id=99, name=archive.name))
    cmd = recorder.calls[0]
    assert "Content-Type: application/gzip" in cmd
    assert cmd[cmd.index("--input") + 1] == str(archive)
    assert any(part.endswith("/releases/17/assets?name=coredns_1.5.1_linux_amd64.tgz") for part in cmd)


def test_upload_transient_then_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    archive = tmp_path / "a.tgz"
    archive.write_bytes(b"")
    host, recorder = _host(
        tmp_path,
        monkeypatch,
        [_gh_err("HTTP 503 Service Unavailable"), _gh_err("HTTP 503 Service Unavailable")],
    )
    result = host.upload_asset(1, "a.tgz", "application/gzip", archive)
    assert isinstance(result, Err)
    assert result.error.kind == "transient"
    assert result.error.asset == "a.tgz"
    assert len(recorder.calls) == 2
