"""Error presentation utilities.

Centralized failure formatting and exit code mapping: every failing target
is printed on its own line with its failure kind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipyard.core.errors import ErrorCode
from shipyard.core.failures import (
    BuildError,
    PackageError,
    PhaseFailure,
    PipelineError,
    PreconditionError,
    RegistryError,
    TargetError,
    UploadError,
)
from shipyard.output.console import Style

if TYPE_CHECKING:
    from shipyard.output.console import ConsoleProtocol

__all__ = ["print_pipeline_error", "pipeline_error_exit_code", "format_target_error"]


def format_target_error(error: TargetError) -> str:
    label = str(error.target) if error.target is not None else "-"
    match error:
        case UploadError(asset=asset, kind=kind, message=message) if asset:
            return f"{label}: {kind}: {asset}: {message}"
        case _:
            return f"{label}: {error.kind}: {error.message}"


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    match error:
        case PreconditionError(kind=kind, message=message, hint=hint):
            console.error(f"{message} ({kind})")
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case PhaseFailure(errors=errors):
            console.error(error.message)
            for e in errors:
                console.print(f"  {format_target_error(e)}", Style.ERROR)
            if error.hint:
                console.print(f"hint: {error.hint}", Style.DIM)


def _target_error_code(error: TargetError) -> ErrorCode:
    match error:
        case PackageError(kind="checksum_mismatch"):
            return ErrorCode.IO_ERROR
        case BuildError() | PackageError():
            return ErrorCode.BUILD_ERROR
        case UploadError(kind="auth"):
            return ErrorCode.PRECONDITION_ERROR
        case UploadError():
            return ErrorCode.NETWORK_ERROR
        case RegistryError():
            return ErrorCode.REGISTRY_ERROR


def pipeline_error_exit_code(error: PipelineError) -> int:
    match error:
        case PreconditionError():
            return int(ErrorCode.PRECONDITION_ERROR)
        case PhaseFailure(errors=errors) if errors:
            # Lowest code wins.
            return int(min(_target_error_code(e) for e in errors))
        case PhaseFailure():
            return int(ErrorCode.BUILD_ERROR)
