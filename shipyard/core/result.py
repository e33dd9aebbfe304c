"""Result type for explicit error handling.

Every pipeline step returns either `Ok(value)` or `Err(error)` so that the
orchestrator can aggregate per-target failures instead of unwinding on the
first exception.

Usage:
    match build(target, version):
        case Ok(artifact):
            ...
        case Err(error):
            failures.append(error)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful outcome carrying `value`."""

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failed outcome carrying `error`."""

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
