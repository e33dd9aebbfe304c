from __future__ import annotations

import json
import shutil
from pathlib import Path
from time import sleep
from typing import Literal

from shipyard.core.failures import PreconditionError
from shipyard.core.result import Err, Ok, Result
from shipyard.core.timeouts import GH_RETRY_ATTEMPTS, GH_RETRY_DELAY_SECONDS, GH_TIMEOUT_SECONDS
from shipyard.platform.process import ProcessError
from shipyard.platform.process import run as run_process

GhFailureKind = Literal["transient", "timeout", "auth", "not_found", "already_exists", "api"]

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "unexpected eof",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)

_AUTH_MARKERS = (
    "http 401",
    "http 403",
    "bad credentials",
    "requires authentication",
    "resource not accessible",
    "gh auth login",
    "must have push access",
)


def classify_gh_error(error: ProcessError) -> GhFailureKind:
    if error.timed_out:
        return "timeout"
    text = f"{error.stderr}\n{error.stdout}".lower()
    if any(marker in text for marker in _AUTH_MARKERS):
        return "auth"
    if "already_exists" in text:
        return "already_exists"
    if "http 404" in text or "not found" in text:
        return "not_found"
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return "transient"
    return "api"


def run_gh(
    cmd: list[str],
    *,
    cwd: Path,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_RETRY_ATTEMPTS,
    retry_delay: float = GH_RETRY_DELAY_SECONDS,
) -> Result[str, ProcessError]:
    """Run a gh command, retrying transient failures with linear backoff.

    Authentication, not-found and validation failures are returned at once.
    """
    attempts = max(1, retry_attempts)
    result = run_process(cmd, cwd=cwd, timeout=timeout)
    for attempt in range(1, attempts):
        if isinstance(result, Ok):
            break
        if classify_gh_error(result.error) not in ("transient", "timeout"):
            break
        sleep(retry_delay * attempt)
        result = run_process(cmd, cwd=cwd, timeout=timeout)
    return result


def parse_json(text: str) -> object | None:
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError:
        return None
    return obj


def ensure_gh_available() -> Result[None, PreconditionError]:
    if shutil.which("gh") is None:
        return Err(
            PreconditionError(
                kind="tool_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(*, cwd: Path) -> Result[None, PreconditionError]:
    result = run_process(["gh", "auth", "status"], cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            PreconditionError(
                kind="auth_required",
                message="gh auth required",
                hint="Run: gh auth login (or set GH_TOKEN)",
            )
        )
    return Ok(None)
