"""Per-target binary builds.

The toolchain is an external command from `[build] command`. For each target
it runs with the target selected through the environment (GOOS/GOARCH by
default) and must leave exactly one binary at
`build/<os>/<arch>/<product>[.exe]`.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from shipyard.core.failures import BuildError
from shipyard.core.matrix import PlatformMatrix, PlatformTarget
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import Style
from shipyard.platform.process import run as run_process

from .base import BaseService
from .model import Artifact
from .pool import PhaseReport, run_per_target
from .version import Version


class BuildOrchestrator(BaseService):
    """Build service for the platform matrix."""

    def prepare(self, *, dry_run: bool = False) -> None:
        """Clear the scratch build directory so no stale binary survives."""
        build_dir = self._project.build_dir
        self._console.print(f"rm -rf {build_dir}", Style.DIM)
        if dry_run:
            return
        if build_dir.exists():
            shutil.rmtree(build_dir)
        build_dir.mkdir(parents=True)

    def output_path(self, target: PlatformTarget) -> Path:
        return self._project.build_dir / target.os / target.arch / target.exe_name(self.product)

    def command(self, target: PlatformTarget, version: Version, binary: Path) -> list[str]:
        values = {
            "{binary}": str(binary),
            "{version}": version.value,
            "{os}": target.os,
            "{arch}": target.arch,
            "{product}": self.product,
        }
        out: list[str] = []
        for part in self._config.build.command:
            for key, value in values.items():
                part = part.replace(key, value)
            out.append(part)
        return out

    def target_env(self, target: PlatformTarget, version: Version, binary: Path) -> dict[str, str]:
        cfg = self._config.build
        env = dict(os.environ)
        env.update(dict(cfg.env))
        env[cfg.os_env] = target.os
        env[cfg.arch_env] = target.arch
        env[cfg.binary_env] = str(binary)
        env[cfg.version_env] = version.value
        return env

    def build(
        self,
        target: PlatformTarget,
        version: Version,
        *,
        dry_run: bool = False,
    ) -> Result[Artifact, BuildError]:
        """Build one target.

        Returns:
            Ok(Artifact) with the binary path
            Err(BuildError) on toolchain failure, timeout, or missing output
        """
        binary = self.output_path(target)
        cmd = self.command(target, version, binary)
        cfg = self._config.build
        self._console.print(
            f"[{target}] {cfg.os_env}={target.os} {cfg.arch_env}={target.arch} {' '.join(cmd)}",
            Style.DIM,
        )
        if dry_run:
            return Ok(Artifact(target=target, path=binary))

        binary.parent.mkdir(parents=True, exist_ok=True)
        result = run_process(
            cmd,
            cwd=self._project.root,
            env=self.target_env(target, version, binary),
            timeout=cfg.timeout,
        )
        if isinstance(result, Err):
            e = result.error
            if e.timed_out:
                return Err(
                    BuildError(
                        target=target,
                        kind="timeout",
                        message=f"toolchain did not finish within {cfg.timeout:.0f}s",
                    )
                )
            return Err(
                BuildError(
                    target=target,
                    kind="toolchain_failed",
                    message=f"{e}: {e.detail}" if e.detail != str(e) else str(e),
                )
            )

        if not binary.is_file():
            return Err(
                BuildError(
                    target=target,
                    kind="output_missing",
                    message=f"toolchain succeeded but {binary} does not exist",
                )
            )

        self._console.success(f"[{target}] {binary.relative_to(self._project.root)}")
        return Ok(Artifact(target=target, path=binary))

    def build_all(
        self,
        matrix: PlatformMatrix,
        version: Version,
        *,
        jobs: int,
        dry_run: bool = False,
    ) -> PhaseReport[Artifact]:
        """Clear the scratch directory, then build every target concurrently."""
        self.prepare(dry_run=dry_run)
        return run_per_target(
            "build",
            matrix.targets(),
            lambda t: self.build(t, version, dry_run=dry_run),
            jobs=jobs,
        )
