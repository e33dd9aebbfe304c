from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from shipyard.core.matrix import PlatformTarget


def archive_name(product: str, version: str, target: PlatformTarget) -> str:
    return f"{product}_{version}_{target.os}_{target.arch}.tgz"


def checksum_name(archive: str) -> str:
    return f"{archive}.sha256"


@dataclass(frozen=True, slots=True)
class Artifact:
    """One compiled binary, owned by exactly one target."""

    target: PlatformTarget
    path: Path


@dataclass(frozen=True, slots=True)
class DistributionUnit:
    """Packaged archive for a target; `checksum` is None until computed."""

    target: PlatformTarget
    path: Path
    checksum: str | None = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def checksum_path(self) -> Path:
        return self.path.with_name(checksum_name(self.path.name))

    def with_checksum(self, digest: str) -> DistributionUnit:
        return replace(self, checksum=digest)


@dataclass(frozen=True, slots=True)
class AssetRef:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    id: int
    tag: str
    assets: tuple[AssetRef, ...] = ()

    def has_asset(self, name: str) -> bool:
        return any(a.name == name for a in self.assets)


@dataclass(frozen=True, slots=True)
class ContainerImage:
    target: PlatformTarget
    ref: str  # <image>:<product>-<arch>


@dataclass(frozen=True, slots=True)
class ManifestList:
    refs: tuple[str, ...]  # <image>:<version>, <image>:latest
    images: tuple[ContainerImage, ...]
