"""Release pipeline phases.

Phases, in order:

    resolve-version -> build -> package (+ checksum) -> publish
                                        \\-> images -> manifest

Each phase can be invoked on its own and picks up its inputs from disk
(`build/`, `release/`), so a failed run is resumed by re-running the failed
phase. Any failed target aborts the phase as a whole and no dependent phase
is started. The binary-release path and the container path only share the
packaged archives; a failure on one does not stop the other.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from shipyard.core.config import Config
from shipyard.core.failures import PackageError, PhaseFailure, PipelineError, PreconditionError
from shipyard.core.matrix import PlatformMatrix, PlatformTarget
from shipyard.core.project import Project
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.services.build import BuildOrchestrator
from shipyard.services.checksum import ChecksumEngine
from shipyard.services.container.images import ContainerImageBuilder
from shipyard.services.container.manifest import ManifestPublisher
from shipyard.services.container.runtime import (
    ContainerRuntime,
    DockerRuntime,
    ensure_docker_available,
)
from shipyard.services.model import Artifact, ContainerImage, DistributionUnit, ManifestList
from shipyard.services.package import Packager
from shipyard.services.pool import run_per_target
from shipyard.services.release.gh import ensure_gh_auth, ensure_gh_available
from shipyard.services.release.host import GhReleaseHost, ReleaseHost
from shipyard.services.release.publisher import PublishReport, ReleasePublisher, ReleaseStatus
from shipyard.services.version import Version, resolve_version, verify_tree


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Outcome of a full release run past the packaging phase."""

    version: Version
    units: tuple[DistributionUnit, ...]
    publish: Result[PublishReport, PipelineError]
    manifest: Result[ManifestList, PipelineError] | None

    @property
    def errors(self) -> tuple[PipelineError, ...]:
        out: list[PipelineError] = []
        if isinstance(self.publish, Err):
            out.append(self.publish.error)
        if isinstance(self.manifest, Err):
            out.append(self.manifest.error)
        return tuple(out)


class Pipeline:
    def __init__(
        self,
        *,
        project: Project,
        config: Config,
        console: ConsoleProtocol,
        matrix: PlatformMatrix,
        jobs: int | None = None,
        dry_run: bool = False,
        host: ReleaseHost | None = None,
        runtime: ContainerRuntime | None = None,
    ) -> None:
        self._project = project
        self._config = config
        self._console = console
        self._matrix = matrix
        self._jobs = jobs or config.build.jobs
        self._dry_run = dry_run
        self._host = host
        self._runtime = runtime

        self._builder = BuildOrchestrator(project=project, config=config, console=console)
        self._packager = Packager(project=project, config=config, console=console)
        self._checksums = ChecksumEngine(console=console)

    @property
    def matrix(self) -> PlatformMatrix:
        return self._matrix

    # -- collaborators -------------------------------------------------------

    def _release_host(self) -> Result[ReleaseHost, PreconditionError]:
        if self._host is not None:
            return Ok(self._host)
        release = self._config.require_release()
        if isinstance(release, Err):
            return release
        for check in (ensure_gh_available(), ensure_gh_auth(cwd=self._project.root)):
            if isinstance(check, Err):
                return check
        cfg = release.value
        self._host = GhReleaseHost(
            repo=cfg.repo,
            cwd=self._project.root,
            retry_attempts=cfg.retry_attempts,
            retry_delay=cfg.retry_delay,
            upload_timeout=cfg.upload_timeout,
        )
        return Ok(self._host)

    def _container_runtime(self) -> Result[ContainerRuntime, PreconditionError]:
        if self._runtime is not None:
            return Ok(self._runtime)
        if not self._dry_run:
            available = ensure_docker_available()
            if isinstance(available, Err):
                return available
        self._runtime = DockerRuntime(cwd=self._project.root)
        return Ok(self._runtime)

    def _publisher(self) -> Result[ReleasePublisher, PreconditionError]:
        release = self._config.require_release()
        if isinstance(release, Err):
            return release
        if self._dry_run and self._host is None:
            # Dry runs never reach the host; skip gh checks.
            host: ReleaseHost = GhReleaseHost(repo=release.value.repo, cwd=self._project.root)
        else:
            resolved = self._release_host()
            if isinstance(resolved, Err):
                return resolved
            host = resolved.value
        return Ok(
            ReleasePublisher(
                project=self._project,
                config=self._config,
                console=self._console,
                host=host,
                release=release.value,
            )
        )

    def _container_services(
        self,
    ) -> Result[tuple[ContainerImageBuilder, ManifestPublisher], PreconditionError]:
        container = self._config.require_container()
        if isinstance(container, Err):
            return container
        runtime = self._container_runtime()
        if isinstance(runtime, Err):
            return runtime
        builder = ContainerImageBuilder(
            project=self._project,
            config=self._config,
            console=self._console,
            runtime=runtime.value,
            container=container.value,
        )
        publisher = ManifestPublisher(
            project=self._project,
            config=self._config,
            console=self._console,
            runtime=runtime.value,
            container=container.value,
        )
        return Ok((builder, publisher))

    # -- phases --------------------------------------------------------------

    def resolve_version(self, *, expect: str | None = None) -> Result[Version, PreconditionError]:
        result = resolve_version(self._project, self._config, expect=expect)
        if isinstance(result, Ok):
            self._console.info(f"{self._config.product} {result.value} (tag {result.value.tag})")
        return result

    def build(
        self, version: Version, *, verify: bool = True
    ) -> Result[tuple[Artifact, ...], PipelineError]:
        self._console.header(f"Build {len(self._matrix)} target(s)")
        if verify and not self._dry_run:
            clean = verify_tree(self._project, version)
            if isinstance(clean, Err):
                return clean
        report = self._builder.build_all(
            self._matrix, version, jobs=self._jobs, dry_run=self._dry_run
        )
        return report.collect()

    def _pack_one(
        self, artifact: Artifact, version: Version
    ) -> Result[DistributionUnit, PackageError]:
        packed = self._packager.pack(artifact, version, dry_run=self._dry_run)
        if isinstance(packed, Err):
            return packed
        return self._checksums.checksum(packed.value, dry_run=self._dry_run)

    def package(self, version: Version) -> Result[tuple[DistributionUnit, ...], PipelineError]:
        """Archive and checksum the binaries of the current matrix."""
        self._console.header("Package")
        artifacts = {
            t: Artifact(target=t, path=self._builder.output_path(t)) for t in self._matrix
        }
        report = run_per_target(
            "package",
            self._matrix.targets(),
            lambda t: self._pack_one(artifacts[t], version),
            jobs=self._jobs,
        )
        return report.collect()

    def packaged_units(
        self, version: Version
    ) -> Result[tuple[DistributionUnit, ...], PreconditionError]:
        """Distribution units already in `release/` for every target."""
        units: list[DistributionUnit] = []
        missing: list[PlatformTarget] = []
        for target in self._matrix:
            unit = DistributionUnit(target=target, path=self._packager.archive_path(target, version))
            path = unit.path
            if self._dry_run:
                units.append(unit)
                continue
            if not path.is_file() or not unit.checksum_path.is_file():
                missing.append(target)
                continue
            digest = unit.checksum_path.read_text(encoding="utf-8").split(" ", 1)[0].strip()
            units.append(unit.with_checksum(digest))

        if missing:
            return Err(
                PreconditionError(
                    kind="missing_inputs",
                    message="no archive/checksum for: " + ", ".join(str(t) for t in missing),
                    hint="Run: shipyard package",
                )
            )
        return Ok(tuple(units))

    def verify(self, version: Version) -> Result[tuple[DistributionUnit, ...], PipelineError]:
        """Re-hash every packaged archive against its side file."""
        found = self.packaged_units(version)
        if isinstance(found, Err):
            return found
        if self._dry_run:
            return found

        errors: list[PackageError] = []
        for unit in found.value:
            checked = self._checksums.verify(unit.checksum_path)
            if isinstance(checked, Err):
                errors.append(
                    PackageError(
                        target=unit.target,
                        kind="checksum_mismatch",
                        message=f"{checked.error.path.name}: {checked.error.message}",
                    )
                )
            else:
                self._console.success(f"{unit.name}  {checked.value}")
        if errors:
            return Err(PhaseFailure(phase="verify", errors=tuple(errors)))
        return found

    def publish(
        self,
        version: Version,
        units: tuple[DistributionUnit, ...] | None = None,
    ) -> Result[PublishReport, PipelineError]:
        self._console.header(f"Publish release {version.tag}")
        publisher = self._publisher()
        if isinstance(publisher, Err):
            return publisher
        if units is None:
            found = self.packaged_units(version)
            if isinstance(found, Err):
                return found
            units = found.value
        return publisher.value.publish(version, units, jobs=self._jobs, dry_run=self._dry_run)

    def release_status(self, version: Version) -> Result[ReleaseStatus, PipelineError]:
        publisher = self._publisher()
        if isinstance(publisher, Err):
            return publisher
        status = publisher.value.status(version, self._matrix)
        if isinstance(status, Err):
            e = status.error
            if e.kind == "auth":
                return Err(PreconditionError(kind="auth_required", message=e.message))
            return Err(PhaseFailure(phase="status", errors=(e,)))
        return Ok(status.value)

    def images(
        self,
        version: Version,
        units: tuple[DistributionUnit, ...] | None = None,
        *,
        rebuild: bool = False,
    ) -> Result[tuple[ContainerImage, ...], PipelineError]:
        self._console.header("Container images")
        services = self._container_services()
        if isinstance(services, Err):
            return services
        builder, _ = services.value
        if units is None:
            found = self.packaged_units(version)
            if isinstance(found, Err):
                return found
            units = found.value

        report = builder.build_all(
            self._matrix, units, version, jobs=self._jobs, rebuild=rebuild, dry_run=self._dry_run
        )
        if isinstance(report, Err):
            return report
        return report.value.collect()

    def manifest(
        self,
        version: Version,
        images: tuple[ContainerImage, ...] | None = None,
    ) -> Result[ManifestList, PipelineError]:
        """Push every per-arch image, then publish the manifest lists."""
        self._console.header(f"Manifest {version}")
        services = self._container_services()
        if isinstance(services, Err):
            return services
        builder, publisher = services.value
        if images is None:
            images = tuple(
                ContainerImage(target=t, ref=builder.ref_for(t))
                for t in self._matrix.container_targets()
            )

        pushed = publisher.push_all(images, jobs=self._jobs, dry_run=self._dry_run).collect()
        if isinstance(pushed, Err):
            return pushed
        return publisher.publish_manifest(self._matrix, pushed.value, version, dry_run=self._dry_run)

    def clean(self) -> None:
        for path in (self._project.build_dir, self._project.release_dir):
            self._console.print(f"rm -rf {path}", Style.DIM)
            if not self._dry_run and path.exists():
                shutil.rmtree(path)

    def run(
        self,
        *,
        expect: str | None = None,
        verify: bool = True,
        rebuild_images: bool = False,
    ) -> Result[RunSummary, PipelineError]:
        """Full release: both paths after a complete build and package."""
        version = self.resolve_version(expect=expect)
        if isinstance(version, Err):
            return version

        built = self.build(version.value, verify=verify)
        if isinstance(built, Err):
            return built

        packed = self.package(version.value)
        if isinstance(packed, Err):
            return packed
        units = packed.value

        published = self.publish(version.value, units)

        manifest: Result[ManifestList, PipelineError] | None = None
        if self._config.container is None:
            self._console.warning("[container] not configured, skipping images and manifest")
        else:
            images = self.images(version.value, units, rebuild=rebuild_images)
            manifest = images if isinstance(images, Err) else self.manifest(version.value, images.value)

        return Ok(RunSummary(version=version.value, units=units, publish=published, manifest=manifest))
