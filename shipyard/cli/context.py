from __future__ import annotations

from dataclasses import dataclass

import typer

from shipyard.core.config import Config, load_config
from shipyard.core.errors import ErrorCode
from shipyard.core.matrix import PlatformMatrix
from shipyard.core.project import Project, detect_project
from shipyard.core.result import Err
from shipyard.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    project: Project
    config: Config
    matrix: PlatformMatrix
    console: ConsoleProtocol


def build_context() -> CLIContext:
    project_result = detect_project()
    if isinstance(project_result, Err):
        typer.echo(f"error: {project_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.PRECONDITION_ERROR))
    project = project_result.value

    config_result = load_config(project.config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.PRECONDITION_ERROR))
    config = config_result.value

    matrix_result = config.matrix()
    if isinstance(matrix_result, Err):
        typer.echo(f"error: {matrix_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.PRECONDITION_ERROR))

    return CLIContext(
        project=project,
        config=config,
        matrix=matrix_result.value,
        console=RichConsole(),
    )
