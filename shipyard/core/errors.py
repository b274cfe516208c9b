"""Exit codes for CLI commands.

These values are used as process exit codes and should remain stable, since
CI steps branch on them.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success (including a gate skip)
    - 1: User error (bad event payload, bad arguments)
    - 2: Configuration error (missing or invalid shipyard.toml)
    - 3: Build error (a build task failed)
    - 4: Publish error (registry publish or release record failed)
    - 5: Upload error (storage write failed or conflicted)
    - 6: Run was superseded by a newer run on the same key
    """

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    BUILD_ERROR = 3
    PUBLISH_ERROR = 4
    UPLOAD_ERROR = 5
    SUPERSEDED = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
