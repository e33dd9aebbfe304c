"""Publishing distribution units as release assets.

Idempotency keys:
- the release is looked up by tag before it is created, so re-running a
  failed publish reuses the same release record
- every asset name is checked against the release before upload and
  skipped when present; a duplicate rejected by the API also counts as
  present, never as a second copy

Uploads run concurrently across units; uploads of one asset name are
serialized by a per-name lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from pathlib import Path

from shipyard.core.config import Config, ReleaseConfig
from shipyard.core.failures import PhaseFailure, PipelineError, PreconditionError, UploadError
from shipyard.core.matrix import PlatformMatrix, PlatformTarget
from shipyard.core.project import Project
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.services.base import BaseService
from shipyard.services.model import (
    AssetRef,
    DistributionUnit,
    ReleaseRecord,
    archive_name,
    checksum_name,
)
from shipyard.services.pool import run_per_target
from shipyard.services.release.host import ReleaseHost
from shipyard.services.version import Version

ARCHIVE_CONTENT_TYPE = "application/gzip"
CHECKSUM_CONTENT_TYPE = "text/plain"


@dataclass(frozen=True, slots=True)
class UploadOutcome:
    target: PlatformTarget
    uploaded: tuple[AssetRef, ...]
    skipped: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class PublishReport:
    release: ReleaseRecord
    outcomes: tuple[UploadOutcome, ...]

    @property
    def uploaded_count(self) -> int:
        return sum(len(o.uploaded) for o in self.outcomes)

    @property
    def skipped_count(self) -> int:
        return sum(len(o.skipped) for o in self.outcomes)


@dataclass(frozen=True, slots=True)
class ReleaseStatus:
    """Remote completeness of a release against the matrix."""

    release: ReleaseRecord | None
    missing: tuple[tuple[PlatformTarget, tuple[str, ...]], ...]

    @property
    def complete(self) -> bool:
        return self.release is not None and not self.missing


def expected_assets(product: str, version: Version, target: PlatformTarget) -> tuple[str, str]:
    archive = archive_name(product, version.value, target)
    return (archive, checksum_name(archive))


class ReleasePublisher(BaseService):
    def __init__(
        self,
        *,
        project: Project,
        config: Config,
        console: ConsoleProtocol,
        host: ReleaseHost,
        release: ReleaseConfig,
    ) -> None:
        super().__init__(project=project, config=config, console=console)
        self._host = host
        self._release = release
        self._guard = threading.Lock()
        self._name_locks: dict[str, threading.Lock] = {}
        self._present: set[str] = set()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            return self._name_locks.setdefault(name, threading.Lock())

    def _is_present(self, name: str) -> bool:
        with self._guard:
            return name in self._present

    def _mark_present(self, names: list[str] | tuple[str, ...]) -> None:
        with self._guard:
            self._present.update(names)

    def ensure_release(self, version: Version) -> Result[ReleaseRecord, UploadError]:
        """Look up the release for `version.tag`, creating it only if absent."""
        found = self._host.find_release(version.tag)
        if isinstance(found, Err):
            return found

        record = found.value
        if record is None:
            self._console.print(f"create release {version.tag} in {self._release.repo}", Style.DIM)
            title = self._release.title.replace("{version}", version.value)
            created = self._host.create_release(version.tag, title)
            if isinstance(created, Err):
                # Another run may have created it in between; the tag is the key.
                if created.error.kind != "duplicate":
                    return created
                again = self._host.find_release(version.tag)
                if isinstance(again, Err):
                    return again
                if again.value is None:
                    return created
                record = again.value
            else:
                record = created.value
        else:
            self._console.info(
                f"reusing release {record.tag} (id {record.id}, {len(record.assets)} asset(s))"
            )

        self._mark_present(tuple(a.name for a in record.assets))
        return Ok(record)

    def _upload_one(
        self,
        release: ReleaseRecord,
        target: PlatformTarget,
        path: Path,
        content_type: str,
    ) -> Result[AssetRef | None, UploadError]:
        """Upload one file; Ok(None) when the name already exists."""
        name = path.name
        with self._lock_for(name):
            if self._is_present(name):
                return Ok(None)

            result = self._host.upload_asset(release.id, name, content_type, path)
            if isinstance(result, Ok):
                self._mark_present((name,))
                return Ok(result.value)

            error = replace(result.error, target=target, asset=name)
            if error.kind == "auth":
                return Err(error)

            # A failed or rejected transfer may still have registered the name.
            listing = self._host.list_assets(release.id)
            if isinstance(listing, Ok) and any(a.name == name for a in listing.value):
                self._mark_present((name,))
                return Ok(None)
            return Err(error)

    def upload_asset(
        self,
        release: ReleaseRecord,
        unit: DistributionUnit,
        *,
        dry_run: bool = False,
    ) -> Result[UploadOutcome, UploadError]:
        """Upload the archive, then its checksum side file."""
        uploaded: list[AssetRef] = []
        skipped: list[str] = []
        files = (
            (unit.path, ARCHIVE_CONTENT_TYPE),
            (unit.checksum_path, CHECKSUM_CONTENT_TYPE),
        )
        for path, content_type in files:
            if self._is_present(path.name):
                self._console.print(f"[{unit.target}] skip {path.name} (already on release)", Style.DIM)
                skipped.append(path.name)
                continue

            self._console.print(f"[{unit.target}] upload {path.name}", Style.DIM)
            if dry_run:
                continue

            result = self._upload_one(release, unit.target, path, content_type)
            if isinstance(result, Err):
                return result
            if result.value is None:
                skipped.append(path.name)
            else:
                uploaded.append(result.value)

        return Ok(UploadOutcome(target=unit.target, uploaded=tuple(uploaded), skipped=tuple(skipped)))

    def publish(
        self,
        version: Version,
        units: tuple[DistributionUnit, ...],
        *,
        jobs: int,
        dry_run: bool = False,
    ) -> Result[PublishReport, PipelineError]:
        """Ensure the release exists, then upload every unit.

        On failure the release is left in place; re-running uploads only what
        is still missing.
        """
        if dry_run:
            release = ReleaseRecord(id=0, tag=version.tag)
            self._console.print(f"ensure release {version.tag} in {self._release.repo}", Style.DIM)
        else:
            ensured = self.ensure_release(version)
            if isinstance(ensured, Err):
                e = ensured.error
                if e.kind == "auth":
                    return Err(
                        PreconditionError(
                            kind="auth_required",
                            message=e.message,
                            hint="Run: gh auth login (token needs contents:write)",
                        )
                    )
                return Err(PhaseFailure(phase="publish", errors=(e,)))
            release = ensured.value

        by_target = {u.target: u for u in units}
        report = run_per_target(
            "publish",
            tuple(by_target),
            lambda t: self.upload_asset(release, by_target[t], dry_run=dry_run),
            jobs=jobs,
        )
        collected = report.collect()
        if isinstance(collected, Err):
            return collected
        return Ok(PublishReport(release=release, outcomes=collected.value))

    def status(self, version: Version, matrix: PlatformMatrix) -> Result[ReleaseStatus, UploadError]:
        """List the targets whose assets are not (all) on the remote release."""
        found = self._host.find_release(version.tag)
        if isinstance(found, Err):
            return found

        record = found.value
        present = {a.name for a in record.assets} if record is not None else set()
        missing: list[tuple[PlatformTarget, tuple[str, ...]]] = []
        for target in matrix.targets():
            names = tuple(
                n for n in expected_assets(self.product, version, target) if n not in present
            )
            if names:
                missing.append((target, names))
        return Ok(ReleaseStatus(release=record, missing=tuple(missing)))
