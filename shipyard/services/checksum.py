"""SHA-256 checksums and their `.sha256` side files.

Side file format (one line, as produced by `sha256sum`):

    <hex-digest>  <archive-name>
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from shipyard.core.failures import PackageError
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style

from .model import DistributionUnit

_CHUNK = 1024 * 1024


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def format_checksum_line(digest: str, name: str) -> str:
    return f"{digest}  {name}\n"


@dataclass(frozen=True, slots=True)
class ChecksumMismatch:
    path: Path
    message: str


class ChecksumEngine:
    def __init__(self, *, console: ConsoleProtocol) -> None:
        self._console = console

    def checksum(
        self,
        unit: DistributionUnit,
        *,
        dry_run: bool = False,
    ) -> Result[DistributionUnit, PackageError]:
        """Digest the archive and write its side file.

        Returns the unit with `checksum` filled in.
        """
        self._console.print(f"[{unit.target}] sha256sum {unit.name}", Style.DIM)
        if dry_run:
            return Ok(unit)

        try:
            digest = sha256_file(unit.path)
            unit.checksum_path.write_text(format_checksum_line(digest, unit.name), encoding="utf-8")
        except OSError as e:
            return Err(
                PackageError(
                    target=unit.target,
                    kind="write_failed",
                    message=f"cannot checksum {unit.name}: {e}",
                )
            )
        return Ok(unit.with_checksum(digest))

    def verify(self, side_file: Path) -> Result[str, ChecksumMismatch]:
        """Check an archive against its `.sha256` side file.

        The archive is looked up next to the side file by the name it records.
        """
        try:
            line = side_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            return Err(ChecksumMismatch(path=side_file, message=f"cannot read: {e}"))

        expected, sep, name = line.partition("  ")
        if not sep or not expected or not name:
            return Err(ChecksumMismatch(path=side_file, message="malformed checksum line"))

        archive = side_file.parent / name.strip()
        try:
            actual = sha256_file(archive)
        except OSError as e:
            return Err(ChecksumMismatch(path=archive, message=f"cannot read: {e}"))

        if actual != expected.lower():
            return Err(ChecksumMismatch(path=archive, message=f"expected {expected}, got {actual}"))
        return Ok(actual)
