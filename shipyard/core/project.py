"""Project root detection and scratch paths.

The project root is the directory holding `shipyard.toml`. Detection order:
1. SHIPYARD_ROOT environment variable (if set, it must be valid)
2. Search upward from the start directory (or cwd)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_FILENAME
from .result import Err, Ok, Result

__all__ = [
    "Project",
    "ProjectError",
    "detect_project",
    "find_project_upward",
    "is_project_root",
]


@dataclass(frozen=True)
class ProjectError:
    """Error when the project root cannot be detected."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Project:
    """A source tree being released.

    Layout under the root:
    - shipyard.toml (required)
    - build/<os>/<arch>/ per-target binaries (scratch, cleared per run)
    - build/docker/<arch>/ image build contexts (scratch)
    - release/ archives and checksum files
    """

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILENAME

    @property
    def build_dir(self) -> Path:
        return self.root / "build"

    @property
    def docker_dir(self) -> Path:
        return self.build_dir / "docker"

    @property
    def release_dir(self) -> Path:
        return self.root / "release"

    def __str__(self) -> str:
        return str(self.root)


def is_project_root(path: Path) -> bool:
    return (path / CONFIG_FILENAME).is_file()


def find_project_upward(start: Path) -> Path | None:
    for parent in (start, *start.parents):
        if is_project_root(parent):
            return parent
    return None


def detect_project(
    *,
    start_dir: Path | None = None,
    env_var: str = "SHIPYARD_ROOT",
) -> Result[Project, ProjectError]:
    env_value = os.environ.get(env_var)
    if env_value:
        env_path = Path(env_value).expanduser().resolve()
        if env_path.is_dir() and is_project_root(env_path):
            return Ok(Project(root=env_path))
        return Err(
            ProjectError(
                message=f"${env_var} is set to '{env_value}' but it has no {CONFIG_FILENAME}",
                searched_from=env_path if env_path.is_dir() else None,
            )
        )

    search_start = (start_dir or Path.cwd()).resolve()
    found = find_project_upward(search_start)
    if found is None:
        return Err(
            ProjectError(
                message=f"Could not find project ({CONFIG_FILENAME} not found)",
                searched_from=search_start,
            )
        )
    return Ok(Project(root=found))
