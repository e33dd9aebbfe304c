"""Typed loading of `shipyard.toml`.

The file describes one product: how to find its version, how to build it
for a target, which targets to ship, and where releases and images go.
Sections `[release]` and `[container]` are optional; phases that need them
fail with a precondition error when they are absent.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .failures import PreconditionError
from .matrix import DEFAULT_TARGETS, PlatformMatrix, PlatformTarget
from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)
from .timeouts import (
    BUILD_TIMEOUT_SECONDS,
    DEFAULT_JOBS,
    DOCKER_BUILD_TIMEOUT_SECONDS,
    DOCKER_PUSH_TIMEOUT_SECONDS,
    GH_RETRY_ATTEMPTS,
    GH_RETRY_DELAY_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)

__all__ = [
    "CONFIG_FILENAME",
    "Config",
    "ConfigError",
    "BuildConfig",
    "ContainerConfig",
    "ReleaseConfig",
    "VersionConfig",
    "load_config",
]

CONFIG_FILENAME = "shipyard.toml"

DEFAULT_VERSION_PATTERN = r"""version\s*=\s*["']([^"']+)["']"""
DEFAULT_BUILD_COMMAND = ("go", "build", "-o", "{binary}", ".")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class VersionConfig:
    """Where the version string lives.

    `pattern` is a regex whose first group captures the version.
    """

    file: str
    pattern: str = DEFAULT_VERSION_PATTERN


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Toolchain invocation.

    `command` items may contain `{binary}`, `{version}`, `{os}`, `{arch}` and
    `{product}` placeholders. The target is also selected through the
    environment variables named by `os_env` / `arch_env`.
    """

    command: tuple[str, ...] = DEFAULT_BUILD_COMMAND
    jobs: int = DEFAULT_JOBS
    os_env: str = "GOOS"
    arch_env: str = "GOARCH"
    binary_env: str = "BINARY"
    version_env: str = "VERSION"
    env: tuple[tuple[str, str], ...] = (("CGO_ENABLED", "0"),)
    timeout: float = BUILD_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Remote release hosting (GitHub repository slug)."""

    repo: str
    title: str = "v{version}"
    retry_attempts: int = GH_RETRY_ATTEMPTS
    retry_delay: float = GH_RETRY_DELAY_SECONDS
    upload_timeout: float = GH_UPLOAD_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class ContainerConfig:
    """Multi-arch image settings."""

    image: str
    dockerfile: str = "Dockerfile"
    build_timeout: float = DOCKER_BUILD_TIMEOUT_SECONDS
    push_timeout: float = DOCKER_PUSH_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    product: str
    version: VersionConfig
    build: BuildConfig = field(default_factory=BuildConfig)
    targets: tuple[PlatformTarget, ...] = DEFAULT_TARGETS
    release: ReleaseConfig | None = None
    container: ContainerConfig | None = None

    def matrix(self) -> Result[PlatformMatrix, PreconditionError]:
        return PlatformMatrix.create(self.targets)

    def require_release(self) -> Result[ReleaseConfig, PreconditionError]:
        if self.release is None:
            return Err(
                PreconditionError(
                    kind="config_invalid",
                    message="[release] is not configured",
                    hint=f'Add [release] repo = "owner/name" to {CONFIG_FILENAME}',
                )
            )
        return Ok(self.release)

    def require_container(self) -> Result[ContainerConfig, PreconditionError]:
        if self.container is None:
            return Err(
                PreconditionError(
                    kind="config_invalid",
                    message="[container] is not configured",
                    hint=f'Add [container] image = "registry/name" to {CONFIG_FILENAME}',
                )
            )
        return Ok(self.container)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from parsed TOML.

        Raises:
            ValueError: If a required key is missing or malformed.
        """
        product_tbl: StrDict = get_table(data, "product") or {}
        product = get_str(product_tbl, "name")
        if product is None:
            raise ValueError("[product] name is required")

        version_tbl: StrDict = get_table(data, "version") or {}
        version_file = get_str(version_tbl, "file")
        if version_file is None:
            raise ValueError("[version] file is required")

        return cls(
            product=product,
            version=VersionConfig(
                file=version_file,
                pattern=get_str(version_tbl, "pattern") or DEFAULT_VERSION_PATTERN,
            ),
            build=_build_from_dict(get_table(data, "build") or {}),
            targets=_targets_from_dict(data),
            release=_release_from_dict(get_table(data, "release")),
            container=_container_from_dict(get_table(data, "container")),
        )


def _int_or(tbl: StrDict, key: str, default: int) -> int:
    value = get_int(tbl, key)
    return default if value is None else value


def _float_or(tbl: StrDict, key: str, default: float) -> float:
    value = get_float(tbl, key)
    return default if value is None else value


def _positive(section: str, key: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"[{section}] {key} must be > 0")


def _build_from_dict(tbl: StrDict) -> BuildConfig:
    command = get_str_list(tbl, "command")
    if "command" in tbl and not command:
        raise ValueError("[build] command must be a non-empty list of strings")

    env_tbl = get_table(tbl, "env")
    if env_tbl is None:
        env = BuildConfig().env
    else:
        env = tuple((k, str(v)) for k, v in env_tbl.items())

    jobs = _int_or(tbl, "jobs", DEFAULT_JOBS)
    if jobs < 1:
        raise ValueError("[build] jobs must be >= 1")
    timeout = _float_or(tbl, "timeout", BUILD_TIMEOUT_SECONDS)
    _positive("build", "timeout", timeout)

    return BuildConfig(
        command=tuple(command) if command else DEFAULT_BUILD_COMMAND,
        jobs=jobs,
        os_env=get_str(tbl, "os_env") or "GOOS",
        arch_env=get_str(tbl, "arch_env") or "GOARCH",
        binary_env=get_str(tbl, "binary_env") or "BINARY",
        version_env=get_str(tbl, "version_env") or "VERSION",
        env=env,
        timeout=timeout,
    )


def _targets_from_dict(data: Mapping[str, object]) -> tuple[PlatformTarget, ...]:
    raw = get_list(data, "targets")
    if raw is None:
        return DEFAULT_TARGETS

    out: list[PlatformTarget] = []
    for item in raw:
        tbl = as_str_dict(item)
        if tbl is None:
            raise ValueError("[[targets]] entries must be tables")
        os_name = get_str(tbl, "os")
        arch = get_str(tbl, "arch")
        if os_name is None or arch is None:
            raise ValueError("[[targets]] entries need both os and arch")
        container = get_bool(tbl, "container")
        if container is None:
            container = os_name == "linux"
        out.append(PlatformTarget(os=os_name, arch=arch, container_eligible=container))
    return tuple(out)


def _release_from_dict(tbl: StrDict | None) -> ReleaseConfig | None:
    if tbl is None:
        return None
    repo = get_str(tbl, "repo")
    if repo is None or "/" not in repo:
        raise ValueError('[release] repo must look like "owner/name"')

    attempts = _int_or(tbl, "retry_attempts", GH_RETRY_ATTEMPTS)
    if attempts < 1:
        raise ValueError("[release] retry_attempts must be >= 1")
    delay = _float_or(tbl, "retry_delay", GH_RETRY_DELAY_SECONDS)
    if delay < 0:
        raise ValueError("[release] retry_delay must be >= 0")
    upload_timeout = _float_or(tbl, "upload_timeout", GH_UPLOAD_TIMEOUT_SECONDS)
    _positive("release", "upload_timeout", upload_timeout)

    return ReleaseConfig(
        repo=repo,
        title=get_str(tbl, "title") or "v{version}",
        retry_attempts=attempts,
        retry_delay=delay,
        upload_timeout=upload_timeout,
    )


def _container_from_dict(tbl: StrDict | None) -> ContainerConfig | None:
    if tbl is None:
        return None
    image = get_str(tbl, "image")
    if image is None:
        raise ValueError("[container] image is required")
    build_timeout = _float_or(tbl, "build_timeout", DOCKER_BUILD_TIMEOUT_SECONDS)
    push_timeout = _float_or(tbl, "push_timeout", DOCKER_PUSH_TIMEOUT_SECONDS)
    _positive("container", "build_timeout", build_timeout)
    _positive("container", "push_timeout", push_timeout)
    return ContainerConfig(
        image=image,
        dockerfile=get_str(tbl, "dockerfile") or "Dockerfile",
        build_timeout=build_timeout,
        push_timeout=push_timeout,
    )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and validate `shipyard.toml`.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))
