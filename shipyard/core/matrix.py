"""Build target matrix.

A `PlatformMatrix` is the fixed, ordered set of (os, arch) pairs a release
ships for. It is constructed once from configuration and passed explicitly
to every pipeline step.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .failures import PreconditionError
from .result import Err, Ok, Result

__all__ = [
    "PlatformTarget",
    "PlatformMatrix",
    "DEFAULT_TARGETS",
    "default_matrix",
]


@dataclass(frozen=True, slots=True)
class PlatformTarget:
    """One (os, arch) build target.

    `container_eligible` marks targets that take part in the multi-arch
    image. It is data rather than a name check because the constraint comes
    from external tooling support.
    """

    os: str
    arch: str
    container_eligible: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.os, self.arch)

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.is_windows else ""

    def exe_name(self, product: str) -> str:
        """Binary file name for this target, e.g. "coredns.exe" on Windows."""
        return f"{product}{self.exe_suffix}"

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


def linux(arch: str, *, container: bool = True) -> PlatformTarget:
    return PlatformTarget(os="linux", arch=arch, container_eligible=container)


DEFAULT_TARGETS: tuple[PlatformTarget, ...] = (
    PlatformTarget(os="darwin", arch="amd64"),
    PlatformTarget(os="windows", arch="amd64"),
    linux("amd64"),
    linux("arm"),
    linux("arm64"),
    # docker manifest has no mips support.
    linux("mips", container=False),
    linux("ppc64le"),
    linux("s390x"),
)


@dataclass(frozen=True, slots=True)
class PlatformMatrix:
    """Ordered, duplicate-free, non-empty tuple of targets.

    Use `PlatformMatrix.create()` to validate; direct construction is meant
    for already-validated data.
    """

    entries: tuple[PlatformTarget, ...]

    @classmethod
    def create(cls, targets: Iterable[PlatformTarget]) -> Result[PlatformMatrix, PreconditionError]:
        entries = tuple(targets)
        if not entries:
            return Err(
                PreconditionError(
                    kind="empty_matrix",
                    message="platform matrix is empty",
                    hint="Declare at least one [[targets]] entry in shipyard.toml",
                )
            )

        seen: set[tuple[str, str]] = set()
        for t in entries:
            if t.key in seen:
                return Err(
                    PreconditionError(
                        kind="duplicate_target",
                        message=f"duplicate target in matrix: {t}",
                    )
                )
            seen.add(t.key)

        return Ok(cls(entries=entries))

    def targets(self) -> tuple[PlatformTarget, ...]:
        return self.entries

    def container_eligible(self, target: PlatformTarget) -> bool:
        return target.os == "linux" and target.container_eligible

    def container_targets(self) -> tuple[PlatformTarget, ...]:
        return tuple(t for t in self.entries if self.container_eligible(t))

    def find(self, os: str, arch: str) -> PlatformTarget | None:
        for t in self.entries:
            if t.key == (os, arch):
                return t
        return None

    def __iter__(self) -> Iterator[PlatformTarget]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def default_matrix() -> PlatformMatrix:
    return PlatformMatrix(entries=DEFAULT_TARGETS)
