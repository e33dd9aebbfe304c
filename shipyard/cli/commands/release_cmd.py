"""Full release run and remote status."""

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
from shipyard.core.result import Err, Ok
from shipyard.output.console import Style
from shipyard.output.errors import pipeline_error_exit_code, print_pipeline_error


def release(
    jobs: int | None = JOBS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    expect: str | None = EXPECT_OPTION,
    allow_dirty: bool = typer.Option(
        False, "--allow-dirty", help="Skip the clean-tree and tag checks"
    ),
    rebuild_images: bool = typer.Option(
        False, "--rebuild-images", help="Rebuild container images even when they match this release"
    ),
) -> None:
    """Build, package, publish and ship images for every target."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=jobs, dry_run=dry_run)
    summary = unwrap_or_exit(
        pipeline.run(expect=expect, verify=not allow_dirty, rebuild_images=rebuild_images),
        ctx,
    )

    ctx.console.header(f"Summary {summary.version.tag}")
    match summary.publish:
        case Ok(report):
            ctx.console.success(
                f"release: {report.uploaded_count} uploaded, {report.skipped_count} already present"
            )
        case Err(e):
            print_pipeline_error(e, ctx.console)

    match summary.manifest:
        case None:
            ctx.console.print("images: skipped", Style.DIM)
        case Ok(published):
            ctx.console.success("images: " + ", ".join(published.refs))
        case Err(e):
            print_pipeline_error(e, ctx.console)

    if summary.errors:
        raise typer.Exit(code=min(pipeline_error_exit_code(e) for e in summary.errors))


def status() -> None:
    """Show which release assets are missing on the hosting service."""
    ctx = build_context()
    pipeline = make_pipeline(ctx, jobs=None, dry_run=False)
    v = unwrap_or_exit(pipeline.resolve_version(), ctx)
    st = unwrap_or_exit(pipeline.release_status(v), ctx)

    if st.release is None:
        ctx.console.warning(f"release {v.tag} does not exist yet")
        return
    if st.complete:
        ctx.console.success(f"release {v.tag} is complete ({len(st.release.assets)} assets)")
        return
    ctx.console.warning(f"release {v.tag} is missing assets for {len(st.missing)} target(s)")
    for target, names in st.missing:
        ctx.console.print(f"  {target}: {', '.join(names)}", Style.DIM)
