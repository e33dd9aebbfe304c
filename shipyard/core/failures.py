"""Failure taxonomy of the release pipeline.

Lower layers return one of these through `Err(...)`; the pipeline collects
the per-target ones into a `PhaseFailure` so the operator sees every
failing target at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from shipyard.core.matrix import PlatformTarget

__all__ = [
    "PreconditionError",
    "BuildError",
    "PackageError",
    "UploadError",
    "RegistryError",
    "TargetError",
    "PhaseFailure",
    "PipelineError",
]

PreconditionKind = Literal[
    "empty_matrix",
    "duplicate_target",
    "dirty_tree",
    "version_missing",
    "version_mismatch",
    "auth_required",
    "tool_missing",
    "incomplete_architectures",
    "not_container_eligible",
    "missing_inputs",
    "config_invalid",
]


@dataclass(frozen=True, slots=True)
class PreconditionError:
    """Fatal, never retried."""

    kind: PreconditionKind
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class BuildError:
    target: PlatformTarget
    kind: Literal["toolchain_failed", "timeout", "output_missing"]
    message: str


@dataclass(frozen=True, slots=True)
class PackageError:
    target: PlatformTarget
    kind: Literal["artifact_missing", "write_failed", "checksum_mismatch"]
    message: str


@dataclass(frozen=True, slots=True)
class UploadError:
    """Release API failure for one asset (or for the release record itself).

    `transient` and `timeout` are retryable; `auth` never is. `duplicate`
    means the asset name already exists on the release.
    """

    target: PlatformTarget | None
    asset: str | None
    kind: Literal["transient", "timeout", "auth", "duplicate", "api"]
    message: str

    @property
    def retryable(self) -> bool:
        return self.kind in ("transient", "timeout")


@dataclass(frozen=True, slots=True)
class RegistryError:
    target: PlatformTarget | None
    kind: Literal["stage_failed", "build_failed", "push_failed", "manifest_failed", "timeout"]
    message: str


TargetError = BuildError | PackageError | UploadError | RegistryError


@dataclass(frozen=True, slots=True)
class PhaseFailure:
    """Aggregated per-target failures of one phase.

    The phase is aborted as a whole; `errors` holds one entry per failing
    target, in matrix order.
    """

    phase: str
    errors: tuple[TargetError, ...]

    @property
    def failed_targets(self) -> tuple[PlatformTarget, ...]:
        out: list[PlatformTarget] = []
        for e in self.errors:
            if e.target is not None and e.target not in out:
                out.append(e.target)
        return tuple(out)

    @property
    def message(self) -> str:
        labels = [str(t) for t in self.failed_targets]
        if not labels:
            return f"{self.phase} failed"
        return f"{self.phase} failed for {len(labels)} target(s): {', '.join(labels)}"

    @property
    def hint(self) -> str | None:
        return "Fix the listed targets, then re-run this phase."


PipelineError = PreconditionError | PhaseFailure
