"""Release hosting backends.

`ReleaseHost` is the narrow API the publisher needs: look up a release by
tag, create one, list its assets, upload one asset. `GhReleaseHost`
implements it on top of `gh api` so authentication stays with gh.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote

from shipyard.core.failures import UploadError
from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_int, get_str
from shipyard.core.timeouts import (
    GH_RETRY_ATTEMPTS,
    GH_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)
from shipyard.platform.process import ProcessError
from shipyard.services.model import AssetRef, ReleaseRecord
from shipyard.services.release.gh import classify_gh_error, parse_json, run_gh

__all__ = ["ReleaseHost", "GhReleaseHost"]

_UPLOADS_BASE = "https://uploads.github.com"


@runtime_checkable
class ReleaseHost(Protocol):
    """Remote release API."""

    def find_release(self, tag: str) -> Result[ReleaseRecord | None, UploadError]:
        """Return the release for `tag`, or None if there is none."""
        ...

    def create_release(self, tag: str, title: str) -> Result[ReleaseRecord, UploadError]: ...

    def list_assets(self, release_id: int) -> Result[tuple[AssetRef, ...], UploadError]: ...

    def upload_asset(
        self,
        release_id: int,
        name: str,
        content_type: str,
        path: Path,
    ) -> Result[AssetRef, UploadError]: ...


def _upload_error(error: ProcessError, *, message: str, asset: str | None = None) -> UploadError:
    text = f"{message}: {error.detail}"
    match classify_gh_error(error):
        case "transient":
            return UploadError(target=None, asset=asset, kind="transient", message=text)
        case "timeout":
            return UploadError(target=None, asset=asset, kind="timeout", message=text)
        case "auth":
            return UploadError(target=None, asset=asset, kind="auth", message=text)
        case "already_exists":
            return UploadError(target=None, asset=asset, kind="duplicate", message=text)
        case _:
            return UploadError(target=None, asset=asset, kind="api", message=text)


def _parse_release(text: str) -> ReleaseRecord | None:
    data = as_str_dict(parse_json(text))
    if data is None:
        return None
    release_id = get_int(data, "id")
    tag = get_str(data, "tag_name")
    if release_id is None or tag is None:
        return None
    return ReleaseRecord(id=release_id, tag=tag)


class GhReleaseHost:
    def __init__(
        self,
        *,
        repo: str,
        cwd: Path,
        retry_attempts: int = GH_RETRY_ATTEMPTS,
        retry_delay: float = GH_RETRY_DELAY_SECONDS,
        upload_timeout: float = GH_UPLOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._repo = repo
        self._cwd = cwd
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._upload_timeout = upload_timeout

    def _gh(self, cmd: list[str], *, timeout: float = GH_TIMEOUT_SECONDS) -> Result[str, ProcessError]:
        return run_gh(
            cmd,
            cwd=self._cwd,
            timeout=timeout,
            retry_attempts=self._retry_attempts,
            retry_delay=self._retry_delay,
        )

    def find_release(self, tag: str) -> Result[ReleaseRecord | None, UploadError]:
        result = self._gh(["gh", "api", f"repos/{self._repo}/releases/tags/{tag}"])
        if isinstance(result, Err):
            if classify_gh_error(result.error) == "not_found":
                return Ok(None)
            return Err(_upload_error(result.error, message=f"release lookup failed: {tag}"))

        record = _parse_release(result.value)
        if record is None:
            return Err(
                UploadError(target=None, asset=None, kind="api", message=f"unexpected release payload: {tag}")
            )

        assets = self.list_assets(record.id)
        if isinstance(assets, Err):
            return assets
        return Ok(ReleaseRecord(id=record.id, tag=record.tag, assets=assets.value))

    def create_release(self, tag: str, title: str) -> Result[ReleaseRecord, UploadError]:
        result = self._gh(
            [
                "gh",
                "api",
                "--method",
                "POST",
                f"repos/{self._repo}/releases",
                "-f",
                f"tag_name={tag}",
                "-f",
                f"name={title}",
            ]
        )
        if isinstance(result, Err):
            return Err(_upload_error(result.error, message=f"release creation failed: {tag}"))

        record = _parse_release(result.value)
        if record is None:
            return Err(
                UploadError(target=None, asset=None, kind="api", message=f"unexpected release payload: {tag}")
            )
        return Ok(record)

    def list_assets(self, release_id: int) -> Result[tuple[AssetRef, ...], UploadError]:
        result = self._gh(
            [
                "gh",
                "api",
                "--paginate",
                f"repos/{self._repo}/releases/{release_id}/assets?per_page=100",
                "--jq",
                r'.[] | "\(.id)\t\(.name)"',
            ]
        )
        if isinstance(result, Err):
            return Err(_upload_error(result.error, message=f"asset listing failed: release {release_id}"))

        out: list[AssetRef] = []
        for line in result.value.splitlines():
            asset_id, sep, name = line.partition("\t")
            if not sep or not asset_id.strip().isdigit():
                continue
            out.append(AssetRef(id=int(asset_id), name=name.strip()))
        return Ok(tuple(out))

    def upload_asset(
        self,
        release_id: int,
        name: str,
        content_type: str,
        path: Path,
    ) -> Result[AssetRef, UploadError]:
        url = f"{_UPLOADS_BASE}/repos/{self._repo}/releases/{release_id}/assets?name={quote(name)}"
        result = self._gh(
            [
                "gh",
                "api",
                "--method",
                "POST",
                "-H",
                f"Content-Type: {content_type}",
                url,
                "--input",
                str(path),
            ],
            timeout=self._upload_timeout,
        )
        if isinstance(result, Err):
            return Err(_upload_error(result.error, message=f"upload failed: {name}", asset=name))

        data = as_str_dict(parse_json(result.value))
        asset_id = get_int(data, "id") if data is not None else None
        if asset_id is None:
            return Err(
                UploadError(target=None, asset=name, kind="api", message=f"unexpected upload payload: {name}")
            )
        return Ok(AssetRef(id=asset_id, name=name))
