"""Clean command - remove build/ and release/."""

from __future__ import annotations

import typer

from shipyard.cli.commands._helpers import make_pipeline
from shipyard.cli.context import build_context


def clean(
    yes: bool = typer.Option(False, "--yes", "-y", help="Execute (default is dry-run)"),
) -> None:
    """Remove build outputs. Dry-run by default, use -y to execute."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=None, dry_run=not yes)
    pipeline.clean()
    if not yes:
        ctx.console.info("use -y to execute")
