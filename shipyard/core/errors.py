"""Process exit codes.

Each failure kind of the release pipeline maps to one stable exit code so
that CI scripts can tell a dirty tree from a flaky upload.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and must remain stable:
    - 0: Success
    - 1: User error (bad arguments, unknown target)
    - 2: Precondition error (dirty tree, missing credentials, bad config)
    - 3: Build or package error (toolchain failed, archive not written)
    - 4: Network error (release API unreachable, upload failed)
    - 5: I/O error (file not found, checksum mismatch)
    - 6: Registry error (image build, push or manifest failed)
    """

    OK = 0
    USER_ERROR = 1
    PRECONDITION_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    REGISTRY_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
