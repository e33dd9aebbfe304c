"""Version resolution and source tree consistency checks.

The version is read once per run from the file named in `[version]` and is
then passed, frozen, to every phase. A release must never be built from a
tree that disagrees with it, so the checks here are preconditions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from shipyard.core.config import Config
from shipyard.core.failures import PreconditionError
from shipyard.core.project import Project
from shipyard.core.result import Err, Ok, Result
from shipyard.core.timeouts import GIT_TIMEOUT_SECONDS
from shipyard.platform.process import run as run_process

__all__ = ["Version", "resolve_version", "verify_tree"]

_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.+-]+)?$")
_RELEASE_TAG_RE = re.compile(r"^v\d+\.\d+\.\d+")


@dataclass(frozen=True, slots=True)
class Version:
    value: str

    @property
    def tag(self) -> str:
        return f"v{self.value}"

    def __str__(self) -> str:
        return self.value


def parse_version(raw: str) -> Result[Version, PreconditionError]:
    value = raw.strip().removeprefix("v")
    if not _SEMVER_RE.match(value):
        return Err(
            PreconditionError(
                kind="version_missing",
                message=f"not a semantic version: {raw!r}",
            )
        )
    return Ok(Version(value=value))


def resolve_version(
    project: Project,
    config: Config,
    *,
    expect: str | None = None,
) -> Result[Version, PreconditionError]:
    """Extract the version from project metadata.

    When `expect` is given (e.g. from a CI tag), a different resolved value is
    a `version_mismatch`.
    """
    path = project.root / config.version.file
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(
            PreconditionError(
                kind="version_missing",
                message=f"cannot read version file: {path}",
                hint=str(e),
            )
        )

    try:
        match = re.search(config.version.pattern, text, flags=re.MULTILINE)
    except re.error as e:
        return Err(
            PreconditionError(
                kind="config_invalid",
                message=f"invalid [version] pattern: {e}",
            )
        )
    if match is None or not match.groups():
        return Err(
            PreconditionError(
                kind="version_missing",
                message=f"version pattern did not match in {config.version.file}",
                hint=config.version.pattern,
            )
        )

    parsed = parse_version(match.group(1))
    if isinstance(parsed, Err):
        return parsed
    version = parsed.value

    if expect is not None and expect.strip().removeprefix("v") != version.value:
        return Err(
            PreconditionError(
                kind="version_mismatch",
                message=f"{config.version.file} declares {version.value}, expected {expect}",
            )
        )
    return Ok(version)


def verify_tree(project: Project, version: Version) -> Result[None, PreconditionError]:
    """Check once per run that the working tree can produce `version`.

    - the tree must be clean (no uncommitted or untracked files)
    - if HEAD carries release tags, one of them must be `version.tag`
    """
    status = run_process(
        ["git", "status", "--porcelain"], cwd=project.root, timeout=GIT_TIMEOUT_SECONDS
    )
    if isinstance(status, Err):
        return Err(
            PreconditionError(
                kind="dirty_tree",
                message="cannot inspect working tree (git status failed)",
                hint=status.error.detail,
            )
        )

    # Scratch output directories are expected to be ignored by the project.
    dirty = [line for line in status.value.splitlines() if line.strip()]
    if dirty:
        return Err(
            PreconditionError(
                kind="dirty_tree",
                message=f"working tree has {len(dirty)} uncommitted change(s)",
                hint="Commit or stash changes; binaries must match the declared version.",
            )
        )

    tags = run_process(
        ["git", "tag", "--points-at", "HEAD"], cwd=project.root, timeout=GIT_TIMEOUT_SECONDS
    )
    if isinstance(tags, Ok):
        release_tags = [t.strip() for t in tags.value.splitlines() if _RELEASE_TAG_RE.match(t.strip())]
        if release_tags and version.tag not in release_tags:
            return Err(
                PreconditionError(
                    kind="version_mismatch",
                    message=f"HEAD is tagged {', '.join(release_tags)} but version is {version.tag}",
                )
            )

    return Ok(None)
