from __future__ import annotations

from pathlib import Path

import pytest

from shipyard.core.failures import PhaseFailure, PreconditionError
from shipyard.core.matrix import default_matrix
from shipyard.core.result import Err, Ok
from shipyard.output.console import MockConsole
from shipyard.platform.process import ProcessError
from shipyard.services.container import runtime as runtime_mod
from shipyard.services.container.manifest import ManifestPublisher
from shipyard.services.container.runtime import ContainerRuntime, DockerRuntime, platform_for
from shipyard.services.model import ContainerImage
from shipyard.services.version import Version
from shipyard.test.fakes import FakeRuntime, make_config, make_project

VERSION = Version("1.5.1")


def _publisher(tmp_path: Path, runtime: FakeRuntime) -> ManifestPublisher:
    config = make_config(container=True)
    assert config.container is not None
    return ManifestPublisher(
        project=make_project(tmp_path),
        config=config,
        console=MockConsole(),
        runtime=runtime,
        container=config.container,
    )


def _images() -> tuple[ContainerImage, ...]:
    return tuple(
        ContainerImage(target=t, ref=f"coredns/coredns:coredns-{t.arch}")
        for t in default_matrix().container_targets()
    )


def test_manifest_covers_every_arch(tmp_path: Path) -> None:
    runtime = FakeRuntime()
    result = _publisher(tmp_path, runtime).publish_manifest(default_matrix(), _images(), VERSION)
    assert isinstance(result, Ok)
    assert result.value.refs == ("coredns/coredns:1.5.1", "coredns/coredns:latest")

    creates = runtime.ops("manifest_create")
    assert [c[1] for c in creates] == ["coredns/coredns:1.5.1", "coredns/coredns:latest"]
    assert creates[0][2:] == tuple(i.ref for i in _images())
    assert len(runtime.ops("manifest_annotate")) == 10
    assert [c[1] for c in runtime.ops("manifest_push")] == ["coredns/coredns:1.5.1", "coredns/coredns:latest"]


def test_incomplete_architectures_publish_nothing(tmp_path: Path) -> None:
    runtime = FakeRuntime()
    pushed = tuple(i for i in _images() if i.target.arch != "s390x")
    assert len(pushed) == 4

    result = _publisher(tmp_path, runtime).publish_manifest(default_matrix(), pushed, VERSION)
    assert isinstance(result, Err)
    assert isinstance(result.error, PreconditionError)
    assert result.error.kind == "incomplete_architectures"
    assert "s390x" in result.error.message
    assert runtime.calls == []


def test_push_failure_stops_before_manifest(tmp_path: Path) -> None:
    runtime = FakeRuntime(fail_push={"coredns/coredns:coredns-arm"})
    publisher = _publisher(tmp_path, runtime)
    pushed = publisher.push_all(_images(), jobs=3).collect()
    assert isinstance(pushed, Err)
    assert isinstance(pushed.error, PhaseFailure)
    assert [t.arch for t in pushed.error.failed_targets] == ["arm"]
    assert pushed.error.errors[0].kind == "push_failed"
    assert runtime.ops("manifest_create") == []


def test_push_timeout_is_its_own_kind(tmp_path: Path) -> None:
    runtime = FakeRuntime(slow={"coredns/coredns:coredns-ppc64le"})
    pushed = _publisher(tmp_path, runtime).push_all(_images(), jobs=2).collect()
    assert isinstance(pushed, Err)
    assert [t.arch for t in pushed.error.failed_targets] == ["ppc64le"]
    assert pushed.error.errors[0].kind == "timeout"
    assert "timed out" in pushed.error.errors[0].message


def test_manifest_command_failure(tmp_path: Path) -> None:
    class BrokenRuntime(FakeRuntime):
        def manifest_push(self, list_ref: str):
            return Err(ProcessError(command=("docker",), returncode=1, stdout="", stderr="unauthorized"))

    result = _publisher(tmp_path, BrokenRuntime()).publish_manifest(default_matrix(), _images(), VERSION)
    assert isinstance(result, Err)
    assert isinstance(result.error, PhaseFailure)
    assert result.error.errors[0].kind == "manifest_failed"
    assert "unauthorized" in result.error.errors[0].message


def test_arm_platform_variant() -> None:
    assert platform_for("arm") == "linux/arm/v7"
    assert platform_for("ppc64le") == "linux/ppc64le"


def test_docker_runtime_commands(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], cwd: Path, env: dict[str, str] | None = None, *, timeout: float | None = None):
        del cwd, env, timeout
        calls.append(cmd)
        return Ok("")

    monkeypatch.setattr(runtime_mod, "run_process", fake_run)
    runtime = DockerRuntime(cwd=tmp_path)
    assert isinstance(runtime, ContainerRuntime)

    runtime.build(tmp_path, "img:coredns-arm", arch="arm", labels={"b": "2", "a": "1"})
    runtime.manifest_annotate("img:1.5.1", "img:coredns-arm", arch="arm")
    runtime.manifest_push("img:1.5.1")
    assert calls == [
        [
            "docker", "build", "--platform", "linux/arm/v7",
            "--label", "a=1", "--label", "b=2",
            "-t", "img:coredns-arm", str(tmp_path),
        ],
        ["docker", "manifest", "annotate", "--os", "linux", "--arch", "arm", "--variant", "v7", "img:1.5.1", "img:coredns-arm"],
        ["docker", "manifest", "push", "--purge", "img:1.5.1"],
    ]


@pytest.mark.parametrize(
    ("outcome", "expected"),
    [
        (Ok('{"org.opencontainers.image.version":"1.5.1"}\n'), {"org.opencontainers.image.version": "1.5.1"}),
        (Ok("null\n"), {}),
        (Err(ProcessError(command=("docker",), returncode=1, stdout="", stderr="No such image")), None),
    ],
)
def test_docker_image_labels(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, outcome: object, expected: object
) -> None:
    def fake_run(cmd: list[str], cwd: Path, env: dict[str, str] | None = None, *, timeout: float | None = None):
        del cwd, env, timeout
        assert cmd[:3] == ["docker", "image", "inspect"]
        return outcome

    monkeypatch.setattr(runtime_mod, "run_process", fake_run)
    assert DockerRuntime(cwd=tmp_path).image_labels("img:coredns-amd64") == expected
