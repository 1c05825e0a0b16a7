"""Error kinds raised by the dashboard.

Errors are constructed where the failure happens and carry their kind and
HTTP status, so request handlers never have to guess from a bare exception.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    PRECONDITION = "precondition"
    EXTERNAL_PROCESS = "external_process"
    STORAGE = "storage"
    UNKNOWN_ACTION = "unknown_action"


class DashboardError(Exception):
    kind: ErrorKind
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DashboardError):
    """A required request field is missing or malformed."""

    kind = ErrorKind.VALIDATION
    http_status = 400


class UnknownAction(ValidationError):
    kind = ErrorKind.UNKNOWN_ACTION


class PreconditionError(DashboardError):
    """A directory or binary the tool needs is not set up on this host."""

    kind = ErrorKind.PRECONDITION
    http_status = 500


class ExternalProcessError(DashboardError):
    """A wrapped command could not be spawned or exited non-zero."""

    kind = ErrorKind.EXTERNAL_PROCESS
    http_status = 500


class CommandError(ExternalProcessError):
    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class StorageFailure(DashboardError):
    """The state file could not be written. Logged, never surfaced."""

    kind = ErrorKind.STORAGE
