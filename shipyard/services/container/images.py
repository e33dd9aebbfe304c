"""Per-architecture container images.

For each container-eligible Linux target the archive is unpacked into
`build/docker/<arch>/` next to a copy of the project's Dockerfile, and the
context is built as `<image>:<product>-<arch>`.

The per-arch tag carries no version, so every image is labelled with the
version and the SHA-256 of the archive it was built from. An existing local
image is reused only when both labels match the archive of this run.
"""

from __future__ import annotations

import shutil
import tarfile
from pathlib import Path

from shipyard.core.config import Config, ContainerConfig
from shipyard.core.failures import PreconditionError, RegistryError
from shipyard.core.matrix import PlatformMatrix, PlatformTarget
from shipyard.core.project import Project
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.services.base import BaseService
from shipyard.services.checksum import sha256_file
from shipyard.services.container.runtime import ContainerRuntime
from shipyard.services.model import ContainerImage, DistributionUnit
from shipyard.services.pool import PhaseReport, run_per_target
from shipyard.services.version import Version

VERSION_LABEL = "org.opencontainers.image.version"
ARCHIVE_DIGEST_LABEL = "io.shipyard.archive.sha256"


def image_ref(image: str, product: str, target: PlatformTarget) -> str:
    return f"{image}:{product}-{target.arch}"


def unpack_archive(archive: Path, dest: Path) -> None:
    """Extract a distribution archive into `dest`.

    Raises:
        OSError, tarfile.TarError: On unreadable or unsafe archives.
    """
    with tarfile.open(archive, "r:gz") as tar:
        tar.extractall(dest, filter="data")


def labels_match(existing: dict[str, str] | None, wanted: dict[str, str]) -> bool:
    if existing is None:
        return False
    return all(existing.get(k) == v for k, v in wanted.items())


class ContainerImageBuilder(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: Config,
        console: ConsoleProtocol,
        runtime: ContainerRuntime,
        container: ContainerConfig,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._runtime = runtime
        self._container = container

    def ref_for(self, target: PlatformTarget) -> str:
        return image_ref(self._container.image, self.product, target)

    def stage_dir(self, target: PlatformTarget) -> Path:
        return self._project.docker_dir / target.arch

    def stage(self, target: PlatformTarget, unit: DistributionUnit) -> Result[Path, RegistryError]:
        """Prepare the per-arch build context (Dockerfile + unpacked binary)."""
        stage = self.stage_dir(target)
        dockerfile = self._project.root / self._container.dockerfile
        try:
            if stage.exists():
                shutil.rmtree(stage)
            stage.mkdir(parents=True)
            shutil.copyfile(dockerfile, stage / "Dockerfile")
            unpack_archive(unit.path, stage)
        except (OSError, tarfile.TarError) as e:
            return Err(
                RegistryError(
                    target=target,
                    kind="stage_failed",
                    message=f"cannot stage build context: {e}",
                )
            )
        return Ok(stage)

    def labels_for(
        self, unit: DistributionUnit, version: Version
    ) -> Result[dict[str, str], RegistryError]:
        digest = unit.checksum
        if digest is None:
            try:
                digest = sha256_file(unit.path)
            except OSError as e:
                return Err(
                    RegistryError(
                        target=unit.target,
                        kind="stage_failed",
                        message=f"cannot read {unit.name}: {e}",
                    )
                )
        return Ok({VERSION_LABEL: version.value, ARCHIVE_DIGEST_LABEL: digest})

    def build_image(
        self,
        target: PlatformTarget,
        unit: DistributionUnit,
        matrix: PlatformMatrix,
        version: Version,
        *,
        rebuild: bool = False,
        dry_run: bool = False,
    ) -> Result[ContainerImage, RegistryError | PreconditionError]:
        if not matrix.container_eligible(target):
            return Err(
                PreconditionError(
                    kind="not_container_eligible",
                    message=f"{target} is not part of the container image",
                )
            )
        return self._build(target, unit, version, rebuild=rebuild, dry_run=dry_run)

    def _build(
        self,
        target: PlatformTarget,
        unit: DistributionUnit,
        version: Version,
        *,
        rebuild: bool,
        dry_run: bool,
    ) -> Result[ContainerImage, RegistryError]:
        ref = self.ref_for(target)
        image = ContainerImage(target=target, ref=ref)

        if dry_run:
            self._console.print(f"[{target}] docker build -t {ref} {self.stage_dir(target)}", Style.DIM)
            return Ok(image)

        labels = self.labels_for(unit, version)
        if isinstance(labels, Err):
            return labels

        if not rebuild and labels_match(self._runtime.image_labels(ref), labels.value):
            self._console.print(f"[{target}] {ref} is up to date for {version}, skipping build", Style.DIM)
            return Ok(image)

        self._console.print(f"[{target}] docker build -t {ref} {self.stage_dir(target)}", Style.DIM)
        staged = self.stage(target, unit)
        if isinstance(staged, Err):
            return staged

        result = self._runtime.build(
            staged.value,
            ref,
            arch=target.arch,
            labels=labels.value,
            timeout=self._container.build_timeout,
        )
        if isinstance(result, Err):
            e = result.error
            return Err(
                RegistryError(
                    target=target,
                    kind="timeout" if e.timed_out else "build_failed",
                    message=f"docker build {ref}: {e.detail}",
                )
            )

        self._console.success(f"[{target}] {ref}")
        return Ok(image)

    def build_all(
        self,
        matrix: PlatformMatrix,
        units: tuple[DistributionUnit, ...],
        version: Version,
        *,
        jobs: int,
        rebuild: bool = False,
        dry_run: bool = False,
    ) -> Result[PhaseReport[ContainerImage], PreconditionError]:
        """Build every container-eligible target from its distribution unit."""
        by_target = {u.target: u for u in units}
        targets = matrix.container_targets()
        missing = [str(t) for t in targets if t not in by_target]
        if missing:
            return Err(
                PreconditionError(
                    kind="missing_inputs",
                    message=f"no distribution archive for: {', '.join(missing)}",
                    hint="Run: shipyard package",
                )
            )

        return Ok(
            run_per_target(
                "images",
                targets,
                lambda t: self._build(t, by_target[t], version, rebuild=rebuild, dry_run=dry_run),
                jobs=jobs,
            )
        )
