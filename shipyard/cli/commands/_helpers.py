"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from shipyard.core.failures import PipelineError
from shipyard.core.result import Err, Result
from shipyard.output.errors import pipeline_error_exit_code, print_pipeline_error
from shipyard.services.pipeline import Pipeline

if TYPE_CHECKING:
    from shipyard.cli.context import CLIContext


def unwrap_or_exit[T](result: Result[T, PipelineError], ctx: CLIContext) -> T:
    """Return the Ok value; on Err print every failing target and exit with its code."""
    if isinstance(result, Err):
        print_pipeline_error(result.error, ctx.console)
        raise typer.Exit(code=pipeline_error_exit_code(result.error))
    return result.value


def make_pipeline(ctx: CLIContext, *, jobs: int | None, dry_run: bool) -> Pipeline:
    return Pipeline(
        project=ctx.project,
        config=ctx.config,
        console=ctx.console,
        matrix=ctx.matrix,
        jobs=jobs,
        dry_run=dry_run,
    )


JOBS_OPTION = typer.Option(None, "--jobs", "-j", min=1, help="Parallel workers (default: [build] jobs)")
DRY_RUN_OPTION = typer.Option(False, "--dry-run", help="Print what would run; change nothing")
EXPECT_OPTION = typer.Option(
    None, "--expect-version", help="Fail unless the resolved version equals this (e.g. a CI tag)"
)
