"""Core domain types: configuration, platform matrix, results, failures."""

from .config import Config, ConfigError, load_config
from .errors import ErrorCode
from .failures import (
    BuildError,
    PackageError,
    PhaseFailure,
    PipelineError,
    PreconditionError,
    RegistryError,
    UploadError,
)
from .matrix import PlatformMatrix, PlatformTarget
from .project import Project, ProjectError, detect_project
from .result import Err, Ok, Result

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    # errors
    "ErrorCode",
    # failures
    "BuildError",
    "PackageError",
    "PhaseFailure",
    "PipelineError",
    "PreconditionError",
    "RegistryError",
    "UploadError",
    # matrix
    "PlatformMatrix",
    "PlatformTarget",
    # project
    "Project",
    "ProjectError",
    "detect_project",
    # result
    "Err",
    "Ok",
    "Result",
]
