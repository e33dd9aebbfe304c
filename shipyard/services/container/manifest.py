"""Registry push and multi-arch manifest lists.

A manifest list is only ever published over the full set of
container-eligible architectures: if any of them has no image pushed in
this run, nothing is created or overwritten.
"""

from __future__ import annotations

from shipyard.core.config import Config, ContainerConfig
from shipyard.core.failures import PhaseFailure, PipelineError, PreconditionError, RegistryError
from shipyard.core.matrix import PlatformMatrix
from shipyard.core.project import Project
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.services.base import BaseService
from shipyard.services.container.runtime import ContainerRuntime
from shipyard.services.model import ContainerImage, ManifestList
from shipyard.services.pool import PhaseReport, run_per_target
from shipyard.services.version import Version

LATEST_TAG = "latest"


class ManifestPublisher(BaseService):
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

    def list_refs(self, version: Version) -> tuple[str, str]:
        image = self._container.image
        return (f"{image}:{version.value}", f"{image}:{LATEST_TAG}")

    def push_image(
        self,
        image: ContainerImage,
        *,
        dry_run: bool = False,
    ) -> Result[ContainerImage, RegistryError]:
        self._console.print(f"[{image.target}] docker push {image.ref}", Style.DIM)
        if dry_run:
            return Ok(image)

        result = self._runtime.push(image.ref, timeout=self._container.push_timeout)
        if isinstance(result, Err):
            e = result.error
            return Err(
                RegistryError(
                    target=image.target,
                    kind="timeout" if e.timed_out else "push_failed",
                    message=f"docker push {image.ref}: {e.detail}",
                )
            )
        return Ok(image)

    def push_all(
        self,
        images: tuple[ContainerImage, ...],
        *,
        jobs: int,
        dry_run: bool = False,
    ) -> PhaseReport[ContainerImage]:
        by_target = {i.target: i for i in images}
        return run_per_target(
            "push",
            tuple(by_target),
            lambda t: self.push_image(by_target[t], dry_run=dry_run),
            jobs=jobs,
        )

    def check_coverage(
        self,
        matrix: PlatformMatrix,
        pushed: tuple[ContainerImage, ...],
    ) -> Result[None, PreconditionError]:
        have = {i.target.key for i in pushed}
        missing = [t for t in matrix.container_targets() if t.key not in have]
        if missing:
            return Err(
                PreconditionError(
                    kind="incomplete_architectures",
                    message="no pushed image for: " + ", ".join(t.arch for t in missing),
                    hint="Push every architecture before publishing the manifest list.",
                )
            )
        return Ok(None)

    def publish_manifest(
        self,
        matrix: PlatformMatrix,
        pushed: tuple[ContainerImage, ...],
        version: Version,
        *,
        dry_run: bool = False,
    ) -> Result[ManifestList, PipelineError]:
        """Publish `<image>:<version>` and `<image>:latest` over all pushed images."""
        coverage = self.check_coverage(matrix, pushed)
        if isinstance(coverage, Err):
            return coverage

        eligible = {t.key for t in matrix.container_targets()}
        images = tuple(i for i in pushed if i.target.key in eligible)
        refs = [i.ref for i in images]

        for list_ref in self.list_refs(version):
            self._console.print(f"docker manifest create --amend {list_ref} {' '.join(refs)}", Style.DIM)
            if dry_run:
                continue

            created = self._runtime.manifest_create(list_ref, refs)
            if isinstance(created, Err):
                return Err(self._failure(list_ref, f"create: {created.error.detail}"))

            for image in images:
                annotated = self._runtime.manifest_annotate(list_ref, image.ref, arch=image.target.arch)
                if isinstance(annotated, Err):
                    return Err(self._failure(list_ref, f"annotate {image.ref}: {annotated.error.detail}"))

            pushed_list = self._runtime.manifest_push(list_ref)
            if isinstance(pushed_list, Err):
                return Err(self._failure(list_ref, f"push: {pushed_list.error.detail}"))

            self._console.success(list_ref)

        return Ok(ManifestList(refs=self.list_refs(version), images=images))

    def _failure(self, list_ref: str, detail: str) -> PhaseFailure:
        return PhaseFailure(
            phase="manifest",
            errors=(RegistryError(target=None, kind="manifest_failed", message=f"{list_ref}: {detail}"),),
        )
