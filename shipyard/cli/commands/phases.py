"""Single-phase commands.

Each command runs one pipeline phase and reads its inputs from the
previous phase's output on disk, so a failed run is resumed by re-running
the phase that failed.
"""

from __future__ import annotations

import typer

from shipyard.cli.commands._helpers import (
    DRY_RUN_OPTION,
    EXPECT_OPTION,
    JOBS_OPTION,
    make_pipeline,
    unwrap_or_exit,
)
from shipyard.cli.context import build_context
from shipyard.output.console import Style


def version(
    expect: str | None = EXPECT_OPTION,
) -> None:
    """Print the version that would be released."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=None, dry_run=False)
    v = unwrap_or_exit(pipeline.resolve_version(expect=expect), ctx)
    ctx.console.print(f"{v}")


def build(
    jobs: int | None = JOBS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    expect: str | None = EXPECT_OPTION,
    allow_dirty: bool = typer.Option(
        False, "--allow-dirty", help="Skip the clean-tree and tag checks"
    ),
) -> None:
    """Cross-compile the binary for every target."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=jobs, dry_run=dry_run)
    v = unwrap_or_exit(pipeline.resolve_version(expect=expect), ctx)
    artifacts = unwrap_or_exit(pipeline.build(v, verify=not allow_dirty), ctx)
    ctx.console.success(f"built {len(artifacts)} target(s)")


def package(
    jobs: int | None = JOBS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Archive and checksum the built binaries into release/."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=jobs, dry_run=dry_run)
    v = unwrap_or_exit(pipeline.resolve_version(), ctx)
    units = unwrap_or_exit(pipeline.package(v), ctx)
    for unit in units:
        ctx.console.print(f"  {unit.path}", Style.DIM)
    ctx.console.success(f"packaged {len(units)} archive(s)")


def verify() -> None:
    """Check every archive in release/ against its .sha256 file."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=None, dry_run=False)
    v = unwrap_or_exit(pipeline.resolve_version(), ctx)
    units = unwrap_or_exit(pipeline.verify(v), ctx)
    ctx.console.success(f"{len(units)} checksum(s) OK")


def publish(
    jobs: int | None = JOBS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Create the hosted release (if needed) and upload missing assets."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=jobs, dry_run=dry_run)
    v = unwrap_or_exit(pipeline.resolve_version(), ctx)
    report = unwrap_or_exit(pipeline.publish(v), ctx)
    ctx.console.success(
        f"release {report.release.tag}: {report.uploaded_count} uploaded, "
        f"{report.skipped_count} already present"
    )


def images(
    jobs: int | None = JOBS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    rebuild: bool = typer.Option(False, "--rebuild", help="Rebuild images even when they match this release"),
) -> None:
    """Build one container image per eligible linux target."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=jobs, dry_run=dry_run)
    v = unwrap_or_exit(pipeline.resolve_version(), ctx)
    built = unwrap_or_exit(pipeline.images(v, rebuild=rebuild), ctx)
    for image in built:
        ctx.console.print(f"  {image.ref}", Style.DIM)
    ctx.console.success(f"{len(built)} image(s) ready")


def manifest(
    jobs: int | None = JOBS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Push per-arch images and publish the multi-arch manifest lists."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=jobs, dry_run=dry_run)
    v = unwrap_or_exit(pipeline.resolve_version(), ctx)
    published = unwrap_or_exit(pipeline.manifest(v), ctx)
    for ref in published.refs:
        ctx.console.success(f"pushed {ref} ({len(published.images)} arch)")
