"""Container runtime adapter.

`ContainerRuntime` covers the docker operations the container path needs;
`DockerRuntime` runs the docker CLI. Tests substitute a fake.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Protocol, runtime_checkable

from shipyard.core.failures import PreconditionError
from shipyard.core.result import Err, Ok, Result
from shipyard.core.timeouts import (
    DOCKER_BUILD_TIMEOUT_SECONDS,
    DOCKER_MANIFEST_TIMEOUT_SECONDS,
    DOCKER_PUSH_TIMEOUT_SECONDS,
)
from shipyard.platform.process import ProcessError
from shipyard.platform.process import run as run_process

__all__ = ["ContainerRuntime", "DockerRuntime", "ensure_docker_available", "platform_for"]

# docker manifest annotate / --platform need the ARM variant.
_VARIANTS = {"arm": "v7"}


def platform_for(arch: str) -> str:
    variant = _VARIANTS.get(arch)
    return f"linux/{arch}/{variant}" if variant else f"linux/{arch}"


@runtime_checkable
class ContainerRuntime(Protocol):
    def image_labels(self, ref: str) -> dict[str, str] | None:
        """Labels of a local image, or None when `ref` does not exist."""
        ...

    def build(
        self,
        context: Path,
        ref: str,
        *,
        arch: str,
        labels: dict[str, str],
        timeout: float,
    ) -> Result[None, ProcessError]: ...

    def push(self, ref: str, *, timeout: float) -> Result[None, ProcessError]: ...

    def manifest_create(self, list_ref: str, refs: list[str]) -> Result[None, ProcessError]: ...

    def manifest_annotate(
        self, list_ref: str, ref: str, *, arch: str
    ) -> Result[None, ProcessError]: ...

    def manifest_push(self, list_ref: str) -> Result[None, ProcessError]: ...


class DockerRuntime:
    def __init__(self, *, cwd: Path, docker: str = "docker") -> None:
        self._cwd = cwd
        self._docker = docker

    def _run(self, args: list[str], *, timeout: float) -> Result[None, ProcessError]:
        result = run_process([self._docker, *args], cwd=self._cwd, timeout=timeout)
        if isinstance(result, Err):
            return result
        return Ok(None)

    def image_labels(self, ref: str) -> dict[str, str] | None:
        result = run_process(
            [self._docker, "image", "inspect", "--format", "{{json .Config.Labels}}", ref],
            cwd=self._cwd,
            timeout=DOCKER_MANIFEST_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return None
        try:
            data = json.loads(result.value or "null")
        except json.JSONDecodeError:
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def build(
        self,
        context: Path,
        ref: str,
        *,
        arch: str,
        labels: dict[str, str],
        timeout: float = DOCKER_BUILD_TIMEOUT_SECONDS,
    ) -> Result[None, ProcessError]:
        args = ["build", "--platform", platform_for(arch)]
        for key, value in sorted(labels.items()):
            args += ["--label", f"{key}={value}"]
        return self._run([*args, "-t", ref, str(context)], timeout=timeout)

    def push(
        self, ref: str, *, timeout: float = DOCKER_PUSH_TIMEOUT_SECONDS
    ) -> Result[None, ProcessError]:
        return self._run(["push", ref], timeout=timeout)

    def manifest_create(self, list_ref: str, refs: list[str]) -> Result[None, ProcessError]:
        return self._run(
            ["manifest", "create", "--amend", list_ref, *refs],
            timeout=DOCKER_MANIFEST_TIMEOUT_SECONDS,
        )

    def manifest_annotate(self, list_ref: str, ref: str, *, arch: str) -> Result[None, ProcessError]:
        args = ["manifest", "annotate", "--os", "linux", "--arch", arch]
        variant = _VARIANTS.get(arch)
        if variant:
            args += ["--variant", variant]
        return self._run([*args, list_ref, ref], timeout=DOCKER_MANIFEST_TIMEOUT_SECONDS)

    def manifest_push(self, list_ref: str) -> Result[None, ProcessError]:
        return self._run(
            ["manifest", "push", "--purge", list_ref],
            timeout=DOCKER_PUSH_TIMEOUT_SECONDS,
        )


def ensure_docker_available() -> Result[None, PreconditionError]:
    if shutil.which("docker") is None:
        return Err(
            PreconditionError(
                kind="tool_missing",
                message="docker: missing",
                hint="Install Docker and log in to the target registry",
            )
        )
    return Ok(None)
