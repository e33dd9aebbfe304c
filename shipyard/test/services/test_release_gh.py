from __future__ import annotations

from pathlib import Path

import pytest

from shipyard.core.result import Err, Ok
from shipyard.platform.process import ProcessError
from shipyard.services.release import gh as gh_mod


def _err(*, stderr: str, returncode: int = 1, timed_out: bool = False) -> Err[ProcessError]:
    return Err(
        ProcessError(
            command=("gh", "api", "repos/coredns/coredns"),
            returncode=returncode,
            stdout="",
            stderr=stderr,
            timed_out=timed_out,
        )
    )


def _no_sleep(seconds: float) -> None:
    del seconds


@pytest.mark.parametrize(
    ("stderr", "kind"),
    [
        ("HTTP 503 Service Unavailable", "transient"),
        ("gh: HTTP 502 Bad Gateway", "transient"),
        ("read: connection reset by peer", "transient"),
        ("HTTP 401: Bad credentials", "auth"),
        ("HTTP 403: Resource not accessible by integration", "auth"),
        ("HTTP 404: Not Found (https://api.github.com/...)", "not_found"),
        ('HTTP 422: Validation Failed {"code":"already_exists","field":"name"}', "already_exists"),
        ("HTTP 422: Validation Failed", "api"),
    ],
)
def test_classify(stderr: str, kind: str) -> None:
    error = _err(stderr=stderr).error
    assert gh_mod.classify_gh_error(error) == kind


def test_classify_timeout() -> None:
    assert gh_mod.classify_gh_error(_err(stderr="", timed_out=True).error) == "timeout"


def test_run_gh_retries_transient_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []
    delays: list[float] = []
    responses = [
        _err(stderr="HTTP 503 Service Unavailable"),
        _err(stderr="HTTP 502 Bad Gateway"),
        Ok('{"ok": true}'),
    ]

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return responses.pop(0)

    monkeypatch.setattr(gh_mod, "run_process", fake_run)
    monkeypatch.setattr(gh_mod, "sleep", delays.append)

    result = gh_mod.run_gh(["gh", "api", "x"], cwd=tmp_path, retry_attempts=3, retry_delay=0.5)
    assert isinstance(result, Ok)
    assert len(calls) == 3
    assert delays == [0.5, 1.0]


def test_run_gh_gives_up_after_attempts(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return _err(stderr="HTTP 503 Service Unavailable")

    monkeypatch.setattr(gh_mod, "run_process", fake_run)
    monkeypatch.setattr(gh_mod, "sleep", _no_sleep)

    result = gh_mod.run_gh(["gh", "api", "x"], cwd=tmp_path, retry_attempts=3)
    assert isinstance(result, Err)
    assert len(calls) == 3


def test_run_gh_does_not_retry_auth(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return _err(stderr="HTTP 401: Bad credentials")

    monkeypatch.setattr(gh_mod, "run_process", fake_run)
    monkeypatch.setattr(gh_mod, "sleep", _no_sleep)

    result = gh_mod.run_gh(["gh", "api", "x"], cwd=tmp_path)
    assert isinstance(result, Err)
    assert len(calls) == 1


def test_ensure_gh_auth(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        gh_mod, "run_process", lambda cmd, *, cwd, timeout=None: _err(stderr="not logged in")
    )
    result = gh_mod.ensure_gh_auth(cwd=tmp_path)
    assert isinstance(result, Err)
    assert result.error.kind == "auth_required"


def test_ensure_gh_available(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(gh_mod.shutil, "which", lambda name: None)
    result = gh_mod.ensure_gh_available()
    assert isinstance(result, Err)
    assert result.error.kind == "tool_missing"
