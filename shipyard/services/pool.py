"""Bounded per-target worker pool.

Each phase submits one job per target to a thread pool; every job blocks on
its own external call (toolchain, upload, docker). All jobs are awaited even
when some fail, so the report names every failing target, and results come
back in matrix order regardless of completion order.
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from shipyard.core.failures import PhaseFailure, TargetError
from shipyard.core.matrix import PlatformTarget
from shipyard.core.result import Err, Ok, Result

__all__ = ["PhaseReport", "run_per_target"]


@dataclass(frozen=True, slots=True)
class PhaseReport[T]:
    phase: str
    results: tuple[tuple[PlatformTarget, Result[T, TargetError]], ...]

    @property
    def values(self) -> tuple[T, ...]:
        return tuple(r.value for _, r in self.results if isinstance(r, Ok))

    @property
    def errors(self) -> tuple[TargetError, ...]:
        return tuple(r.error for _, r in self.results if isinstance(r, Err))

    @property
    def ok(self) -> bool:
        return not self.errors

    def collect(self) -> Result[tuple[T, ...], PhaseFailure]:
        """All values, or a PhaseFailure listing every failed target."""
        if self.errors:
            return Err(PhaseFailure(phase=self.phase, errors=self.errors))
        return Ok(self.values)


def run_per_target[T](
    phase: str,
    targets: Sequence[PlatformTarget],
    job: Callable[[PlatformTarget], Result[T, TargetError]],
    *,
    jobs: int,
) -> PhaseReport[T]:
    """Run `job` for every target on at most `jobs` threads."""
    results: dict[PlatformTarget, Result[T, TargetError]] = {}
    if targets:
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, min(jobs, len(targets))),
            thread_name_prefix=f"shipyard-{phase}",
        ) as executor:
            futures = {executor.submit(job, target): target for target in targets}
            for future in concurrent.futures.as_completed(futures):
                results[futures[future]] = future.result()

    return PhaseReport(phase=phase, results=tuple((t, results[t]) for t in targets))
