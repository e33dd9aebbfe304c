"""Distribution archives.

One `.tgz` per target, named `<product>_<version>_<os>_<arch>.tgz`, holding
exactly one entry: the binary under its platform executable name, mode 0755.

Archives are reproducible: tar and gzip metadata (mtime, owner, gzip
header) are normalized so packing the same binary twice gives the same
bytes, and therefore the same published checksum.
"""

from __future__ import annotations

import gzip
import os
import tarfile
from pathlib import Path

from shipyard.core.failures import PackageError
from shipyard.core.matrix import PlatformTarget
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import Style

from .base import BaseService
from .model import Artifact, DistributionUnit, archive_name
from .version import Version

_EXEC_MODE = 0o755


def _tar_info(name: str, size: int) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name=name)
    info.size = size
    info.mode = _EXEC_MODE
    info.mtime = 0
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    info.type = tarfile.REGTYPE
    return info


def write_archive(dest: Path, *, source: Path, entry_name: str) -> None:
    """Write a single-entry, normalized gzip tarball atomically.

    Raises:
        OSError: On read or write failure (the partial file is removed).
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".part")
    try:
        with (
            tmp.open("wb") as raw,
            gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz,
            tarfile.open(fileobj=gz, mode="w", format=tarfile.GNU_FORMAT) as tar,
            source.open("rb") as src,
        ):
            tar.addfile(_tar_info(entry_name, source.stat().st_size), src)
        os.replace(tmp, dest)
    finally:
        tmp.unlink(missing_ok=True)


class Packager(BaseService):
    def archive_path(self, target: PlatformTarget, version: Version) -> Path:
        return self._project.release_dir / archive_name(self.product, version.value, target)

    def pack(
        self,
        artifact: Artifact,
        version: Version,
        *,
        dry_run: bool = False,
    ) -> Result[DistributionUnit, PackageError]:
        target = artifact.target
        dest = self.archive_path(target, version)
        entry = target.exe_name(self.product)
        self._console.print(f"[{target}] tar -zcf {dest.name} {entry}", Style.DIM)
        if dry_run:
            return Ok(DistributionUnit(target=target, path=dest))

        if not artifact.path.is_file():
            return Err(
                PackageError(
                    target=target,
                    kind="artifact_missing",
                    message=f"binary not found: {artifact.path}",
                )
            )

        try:
            write_archive(dest, source=artifact.path, entry_name=entry)
        except (OSError, tarfile.TarError) as e:
            return Err(
                PackageError(
                    target=target,
                    kind="write_failed",
                    message=f"cannot write {dest.name}: {e}",
                )
            )

        return Ok(DistributionUnit(target=target, path=dest))
