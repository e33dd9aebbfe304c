from __future__ import annotations

import os
from pathlib import Path

import typer

from shipyard import __version__
from shipyard.cli.commands.clean import clean
from shipyard.cli.commands.phases import build, images, manifest, package, publish, verify, version
from shipyard.cli.commands.release_cmd import release, status
from shipyard.core.errors import ErrorCode
from shipyard.core.project import is_project_root


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(version)
app.command()(build)
app.command()(package)
app.command()(verify)
app.command()(publish)
app.command()(images)
app.command()(manifest)
app.command()(release)
app.command()(status)
app.command()(clean)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    show_version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
    root: Path | None = typer.Option(
        None,
        "--root",
        help="Project root (overrides auto detection)",
    ),
) -> None:
    if root is not None:
        try:
            resolved = root.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --root: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not resolved.is_dir() or not is_project_root(resolved):
            typer.echo(
                f"error: --root '{resolved}' is not a project (missing shipyard.toml)",
                err=True,
            )
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        os.environ["SHIPYARD_ROOT"] = str(resolved)


def main() -> None:
    app()
